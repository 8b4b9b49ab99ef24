"""
Tests for polling sync: the server snapshot and the client-side reconciler.
"""

import pytest

from chat.constants import ERROR_CODES, MESSAGE_CONFIG, SYNC_CONFIG
from chat.presence import TypingTracker
from chat.serializers import MessageSerializer
from chat.services import MessageService, TypingService
from chat.sync import MessageReconciler, SyncService


def wire(message_id, created_at, content="hi", **extra):
    return {"id": message_id, "created_at": created_at, "content": content, **extra}


# =============================================================================
# MessageReconciler
# =============================================================================


class TestMessageReconciler:
    def test_orders_by_created_at_then_id(self):
        reconciler = MessageReconciler()

        reconciler.merge(
            [
                wire(3, "2026-03-02T09:00:02Z"),
                wire(2, "2026-03-02T09:00:01Z"),
                wire(1, "2026-03-02T09:00:01Z"),
            ]
        )

        assert [m["id"] for m in reconciler.messages] == [1, 2, 3]

    def test_arrival_order_does_not_matter(self):
        """
        Pages merged newest-first end up in the same order as oldest-first.

        Why it matters: "load older" pages arrive after newer ones.
        """
        a = MessageReconciler()
        b = MessageReconciler()
        older = [wire(1, "2026-03-02T09:00:00Z"), wire(2, "2026-03-02T09:01:00Z")]
        newer = [wire(3, "2026-03-02T09:02:00Z")]

        a.merge(older)
        a.merge(newer)
        b.merge(newer)
        b.merge(older)

        assert a.messages == b.messages

    def test_duplicate_poll_is_noop(self):
        reconciler = MessageReconciler([wire(1, "2026-03-02T09:00:00Z")])

        result = reconciler.merge([wire(1, "2026-03-02T09:00:00Z")])

        assert result.is_noop
        assert len(reconciler) == 1

    def test_newer_copy_replaces_stale_one(self):
        """
        Edits and tombstones arrive as new copies of a known id.

        Why it matters: without replacing by id the client would show
        deleted content until a full reload.
        """
        reconciler = MessageReconciler([wire(1, "2026-03-02T09:00:00Z", "secret")])

        result = reconciler.merge(
            [wire(1, "2026-03-02T09:00:00Z", MESSAGE_CONFIG.TOMBSTONE_CONTENT, is_deleted=True)]
        )

        assert result.changed == [1]
        assert result.added == []
        assert reconciler.messages[0]["content"] == MESSAGE_CONFIG.TOMBSTONE_CONTENT

    def test_stale_copy_never_revives_a_tombstone(self):
        """
        A pre-delete copy arriving after the tombstone is ignored.

        Why it matters: poll responses can land out of request order; the
        deleted text must not reappear on screen.
        """
        reconciler = MessageReconciler(
            [wire(1, "2026-03-02T09:00:00Z", MESSAGE_CONFIG.TOMBSTONE_CONTENT, is_deleted=True)]
        )

        result = reconciler.merge([wire(1, "2026-03-02T09:00:00Z", "secret", is_deleted=False)])

        assert result.is_noop
        assert reconciler.messages[0]["content"] == MESSAGE_CONFIG.TOMBSTONE_CONTENT
        assert reconciler.messages[0]["is_deleted"] is True

    def test_unedited_copy_never_replaces_an_edit(self):
        reconciler = MessageReconciler(
            [wire(1, "2026-03-02T09:00:00Z", "final", is_edited=True, is_deleted=False)]
        )

        result = reconciler.merge(
            [wire(1, "2026-03-02T09:00:00Z", "draft", is_edited=False, is_deleted=False)]
        )

        assert result.is_noop
        assert reconciler.messages[0]["content"] == "final"

    def test_edit_then_delete_in_any_order_ends_deleted(self):
        draft = wire(1, "2026-03-02T09:00:00Z", "draft")
        edited = wire(1, "2026-03-02T09:00:00Z", "final", is_edited=True)
        deleted = wire(
            1,
            "2026-03-02T09:00:00Z",
            MESSAGE_CONFIG.TOMBSTONE_CONTENT,
            is_edited=True,
            is_deleted=True,
            deleted_at="2026-03-02T09:05:00Z",
        )
        forward = MessageReconciler()
        backward = MessageReconciler()

        for page in (draft, edited, deleted):
            forward.merge([page])
        for page in (deleted, edited, draft):
            backward.merge([page])

        assert forward.messages == backward.messages == [deleted]

    def test_reports_added_ids(self):
        reconciler = MessageReconciler([wire(1, "2026-03-02T09:00:00Z")])

        result = reconciler.merge([wire(1, "2026-03-02T09:00:00Z"), wire(2, "2026-03-02T09:00:05Z")])

        assert result.added == [2]
        assert 2 in reconciler

    def test_oldest_id_is_paging_cursor(self):
        reconciler = MessageReconciler(
            [wire(7, "2026-03-02T09:05:00Z"), wire(4, "2026-03-02T09:00:00Z")]
        )

        assert reconciler.oldest_id == 4
        assert MessageReconciler().oldest_id is None

    def test_invalid_timestamp_is_rejected(self):
        with pytest.raises(ValueError):
            MessageReconciler().merge([wire(1, "yesterday")])


# =============================================================================
# SyncService
# =============================================================================


@pytest.mark.django_db
class TestSyncSnapshot:
    def test_bundles_messages_and_typing(self, group_chat, member_user, admin_user):
        typing_service = TypingService(TypingTracker())
        MessageService.send_message(admin_user, group_chat.id, "one")
        MessageService.send_message(admin_user, group_chat.id, "two")
        typing_service.set_typing_status(admin_user, group_chat.id, True)

        result = SyncService.snapshot(member_user, group_chat.id, typing_service)

        assert result.success
        snapshot = result.data
        assert [m.content for m in snapshot["messages"]] == ["one", "two"]
        assert [t.user_id for t in snapshot["typing_users"]] == [admin_user.id]
        assert snapshot["poll_interval"] == SYNC_CONFIG.POLL_INTERVAL_SECONDS
        assert snapshot["server_time"] is not None

    def test_non_member_is_rejected(self, group_chat, other_user):
        result = SyncService.snapshot(other_user, group_chat.id, TypingService(TypingTracker()))

        assert result.error_code == ERROR_CODES.NOT_A_MEMBER

    def test_polls_reconcile_edits_and_deletes(self, group_chat, member_user, admin_user):
        typing_service = TypingService(TypingTracker())
        first = MessageService.send_message(admin_user, group_chat.id, "draft").data
        reconciler = MessageReconciler()

        def poll():
            snapshot = SyncService.snapshot(member_user, group_chat.id, typing_service).data
            return reconciler.merge(MessageSerializer(snapshot["messages"], many=True).data)

        assert poll().added == [first.id]
        assert poll().is_noop

        MessageService.edit_message(admin_user, first.id, "final")
        second = MessageService.send_message(admin_user, group_chat.id, "more").data
        result = poll()

        assert result.changed == [first.id]
        assert result.added == [second.id]

        MessageService.delete_message(admin_user, second.id)
        poll()

        assert [m["content"] for m in reconciler.messages] == [
            "final",
            MESSAGE_CONFIG.TOMBSTONE_CONTENT,
        ]
