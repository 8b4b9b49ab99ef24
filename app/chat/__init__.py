"""
Chat app for team messaging.

This app handles:
- Project, direct and group chats with membership and favorites
- Message sending, editing, soft deletion and history paging
- Read cursors and unread counts
- Typing indicators and substring search
- Polling sync for clients

Related apps:
    - authentication: User model, system roles and people search
    - core: ServiceResult / BaseService

Usage:
    from chat.services import ChatDirectoryService, MessageService

    chat = ChatDirectoryService.get_or_create_direct_chat(user, other.id).data
    result = MessageService.send_message(user, chat.id, "Hello @sam")
"""
