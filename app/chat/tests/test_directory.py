"""
Tests for ChatDirectoryService.

Covers chat creation (direct, project, group), group management,
favorites, the chat list and chat info.

Test Organization:
    - Each service method has its own test class
    - Tests use descriptive names: test_<scenario>_<expected_outcome>
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from authentication.models import SystemRole
from authentication.tests.factories import UserFactory
from chat.constants import ERROR_CODES
from chat.models import Chat, ChatKind, ChatRole, DirectChatPair, Membership, Message
from chat.services import ChatDirectoryService, MessageService
from chat.tests.factories import ChatFactory, MembershipFactory, MessageFactory, ProjectChatFactory


def roles_of(chat) -> dict[int, str]:
    return dict(Membership.objects.filter(chat=chat).values_list("user_id", "role"))


# =============================================================================
# get_or_create_direct_chat
# =============================================================================


@pytest.mark.django_db
class TestGetOrCreateDirectChat:
    def test_creates_chat_with_both_members(self):
        ana, ben = UserFactory(), UserFactory()

        result = ChatDirectoryService.get_or_create_direct_chat(ana, ben.id)

        assert result.success
        assert result.data.kind == ChatKind.DIRECT
        assert set(roles_of(result.data)) == {ana.id, ben.id}
        assert set(roles_of(result.data).values()) == {ChatRole.MEMBER}

    def test_same_chat_regardless_of_who_asks(self):
        """
        Either participant lands in the same chat.

        Why it matters: two direct chats for one pair would split the
        conversation history.
        """
        ana, ben = UserFactory(), UserFactory()

        first = ChatDirectoryService.get_or_create_direct_chat(ana, ben.id)
        second = ChatDirectoryService.get_or_create_direct_chat(ben, ana.id)
        third = ChatDirectoryService.get_or_create_direct_chat(ana, ben.id)

        assert first.data.id == second.data.id == third.data.id
        assert Chat.objects.filter(kind=ChatKind.DIRECT).count() == 1

    def test_pair_is_stored_canonically(self):
        ana, ben = UserFactory(), UserFactory()

        chat = ChatDirectoryService.get_or_create_direct_chat(ben, ana.id).data

        pair = DirectChatPair.objects.get(chat=chat)
        assert pair.user_lower_id == min(ana.id, ben.id)
        assert pair.user_higher_id == max(ana.id, ben.id)

    def test_self_chat_is_rejected(self):
        ana = UserFactory()

        result = ChatDirectoryService.get_or_create_direct_chat(ana, ana.id)

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR
        assert not Chat.objects.exists()

    def test_unknown_user_is_not_found(self):
        ana = UserFactory()

        result = ChatDirectoryService.get_or_create_direct_chat(ana, 999999)

        assert result.error_code == ERROR_CODES.NOT_FOUND

    def test_inactive_user_is_not_found(self):
        ana, gone = UserFactory(), UserFactory(is_active=False)

        result = ChatDirectoryService.get_or_create_direct_chat(ana, gone.id)

        assert result.error_code == ERROR_CODES.NOT_FOUND

    def test_missing_membership_is_restored(self):
        """
        A caller whose membership row went missing is re-added.

        Why it matters: otherwise the pair's only chat would be
        unreachable for one of its two users forever.
        """
        ana, ben = UserFactory(), UserFactory()
        chat = ChatDirectoryService.get_or_create_direct_chat(ana, ben.id).data
        Membership.objects.filter(chat=chat, user=ana).delete()

        result = ChatDirectoryService.get_or_create_direct_chat(ana, ben.id)

        assert result.data.id == chat.id
        assert Membership.objects.filter(chat=chat, user=ana).exists()

    def test_lost_race_returns_winner(self, monkeypatch):
        """
        When a concurrent request inserts the pair first, the loser's
        unique violation is turned into the winner's chat.

        Simulated by making the first lookup miss although the chat exists.
        """
        ana, ben = UserFactory(), UserFactory()
        winner = ChatDirectoryService.get_or_create_direct_chat(ben, ana.id).data

        original = ChatDirectoryService._find_direct
        calls = []

        def stale_first_lookup(lower, higher):
            calls.append((lower, higher))
            if len(calls) == 1:
                return None
            return original(lower, higher)

        monkeypatch.setattr(ChatDirectoryService, "_find_direct", staticmethod(stale_first_lookup))

        result = ChatDirectoryService.get_or_create_direct_chat(ana, ben.id)

        assert result.success
        assert result.data.id == winner.id
        assert len(calls) == 2
        assert Chat.objects.count() == 1


# =============================================================================
# get_or_create_project_chat
# =============================================================================


@pytest.mark.django_db
class TestGetOrCreateProjectChat:
    def test_creates_named_chat_with_caller(self):
        ana = UserFactory()

        result = ChatDirectoryService.get_or_create_project_chat(ana, "PRJ-7", "Warehouse")

        assert result.success
        assert result.data.kind == ChatKind.PROJECT
        assert result.data.name == "Chat: Warehouse"
        assert result.data.project_ref == "PRJ-7"
        assert roles_of(result.data) == {ana.id: ChatRole.MEMBER}

    def test_name_falls_back_to_reference(self):
        result = ChatDirectoryService.get_or_create_project_chat(UserFactory(), "PRJ-8")

        assert result.data.name == "Chat: PRJ-8"

    def test_second_user_joins_existing_chat(self):
        ana, ben = UserFactory(), UserFactory()
        first = ChatDirectoryService.get_or_create_project_chat(ana, "PRJ-7", "Warehouse")

        second = ChatDirectoryService.get_or_create_project_chat(ben, "PRJ-7", "Renamed")

        assert second.data.id == first.data.id
        assert second.data.name == "Chat: Warehouse"
        assert set(roles_of(first.data)) == {ana.id, ben.id}

    def test_blank_reference_is_rejected(self):
        result = ChatDirectoryService.get_or_create_project_chat(UserFactory(), "  ")

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR

    def test_lost_race_returns_winner(self, monkeypatch):
        ana, ben = UserFactory(), UserFactory()
        winner = ChatDirectoryService.get_or_create_project_chat(ana, "PRJ-9").data

        original = ChatDirectoryService._find_project
        calls = []

        def stale_first_lookup(project_ref):
            calls.append(project_ref)
            return None if len(calls) == 1 else original(project_ref)

        monkeypatch.setattr(ChatDirectoryService, "_find_project", staticmethod(stale_first_lookup))

        result = ChatDirectoryService.get_or_create_project_chat(ben, "PRJ-9")

        assert result.data.id == winner.id
        assert Chat.objects.filter(project_ref="PRJ-9").count() == 1
        assert Membership.objects.filter(chat=winner, user=ben).exists()


# =============================================================================
# create_group_chat
# =============================================================================


@pytest.mark.django_db
class TestCreateGroupChat:
    def test_creator_is_admin_and_others_members(self):
        ana, ben, cleo = UserFactory(), UserFactory(), UserFactory()

        result = ChatDirectoryService.create_group_chat(ana, "Ops", [ben.id, cleo.id])

        assert result.success
        assert result.data.kind == ChatKind.GROUP
        assert roles_of(result.data) == {
            ana.id: ChatRole.ADMIN,
            ben.id: ChatRole.MEMBER,
            cleo.id: ChatRole.MEMBER,
        }

    def test_duplicates_and_creator_are_ignored(self):
        ana, ben = UserFactory(), UserFactory()

        result = ChatDirectoryService.create_group_chat(ana, "Ops", [ben.id, ben.id, ana.id])

        assert roles_of(result.data) == {ana.id: ChatRole.ADMIN, ben.id: ChatRole.MEMBER}

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name_is_rejected(self, name):
        result = ChatDirectoryService.create_group_chat(UserFactory(), name, [])

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR
        assert "name" in result.errors
        assert not Chat.objects.exists()

    def test_unknown_member_is_rejected(self):
        result = ChatDirectoryService.create_group_chat(UserFactory(), "Ops", [999999])

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR
        assert "member_ids" in result.errors
        assert not Chat.objects.exists()

    def test_name_is_trimmed(self):
        result = ChatDirectoryService.create_group_chat(UserFactory(), "  Ops  ", [])

        assert result.data.name == "Ops"


# =============================================================================
# update_group_chat
# =============================================================================


@pytest.mark.django_db
class TestUpdateGroupChat:
    def test_chat_manager_renames(self, group_chat, manager_user):
        result = ChatDirectoryService.update_group_chat(manager_user, group_chat.id, name="Night crew")

        assert result.success
        group_chat.refresh_from_db()
        assert group_chat.name == "Night crew"

    def test_chat_admin_changes_image(self, group_chat, admin_user):
        ChatDirectoryService.update_group_chat(
            admin_user, group_chat.id, image="https://cdn.example.com/crew.png"
        )

        group_chat.refresh_from_db()
        assert group_chat.image == "https://cdn.example.com/crew.png"

    def test_plain_member_is_forbidden(self, group_chat, member_user):
        result = ChatDirectoryService.update_group_chat(member_user, group_chat.id, name="Mine")

        assert result.error_code == ERROR_CODES.FORBIDDEN
        group_chat.refresh_from_db()
        assert group_chat.name == "Crew"

    def test_outsider_is_not_a_member(self, group_chat, other_user):
        result = ChatDirectoryService.update_group_chat(other_user, group_chat.id, name="Mine")

        assert result.error_code == ERROR_CODES.NOT_A_MEMBER

    def test_system_admin_edits_without_membership(self, group_chat, system_admin, other_user):
        """
        System ADMINs manage any group without being in it.

        Why it matters: authority is the OR of system and chat role.
        """
        result = ChatDirectoryService.update_group_chat(
            system_admin, group_chat.id, add_member_ids=[other_user.id]
        )

        assert result.success
        assert roles_of(group_chat)[other_user.id] == ChatRole.MEMBER
        assert system_admin.id not in roles_of(group_chat)

    def test_adding_existing_member_is_noop(self, group_chat, admin_user, member_user):
        before = roles_of(group_chat)

        result = ChatDirectoryService.update_group_chat(
            admin_user, group_chat.id, add_member_ids=[member_user.id, admin_user.id]
        )

        assert result.success
        assert roles_of(group_chat) == before

    def test_removes_members(self, group_chat, manager_user, member_user):
        result = ChatDirectoryService.update_group_chat(
            manager_user, group_chat.id, remove_member_ids=[member_user.id]
        )

        assert result.success
        assert member_user.id not in roles_of(group_chat)

    def test_removing_chat_admin_is_rejected_even_for_superadmin(self, group_chat, superadmin, admin_user):
        """
        Chat ADMINs are never removed, whoever asks.

        Why it matters: a group must always keep the member who owns it.
        """
        result = ChatDirectoryService.update_group_chat(
            superadmin, group_chat.id, remove_member_ids=[admin_user.id]
        )

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR
        assert admin_user.id in roles_of(group_chat)

    def test_rejected_removal_applies_nothing(self, group_chat, manager_user, admin_user, other_user):
        ChatDirectoryService.update_group_chat(
            manager_user,
            group_chat.id,
            name="Changed",
            add_member_ids=[other_user.id],
            remove_member_ids=[admin_user.id],
        )

        group_chat.refresh_from_db()
        assert group_chat.name == "Crew"
        assert other_user.id not in roles_of(group_chat)

    def test_blank_name_is_rejected(self, group_chat, admin_user):
        result = ChatDirectoryService.update_group_chat(admin_user, group_chat.id, name="  ")

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR

    def test_unknown_added_user_is_rejected(self, group_chat, admin_user):
        result = ChatDirectoryService.update_group_chat(
            admin_user, group_chat.id, add_member_ids=[999999]
        )

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR
        assert "add_member_ids" in result.errors

    def test_non_group_chat_is_rejected(self, superadmin):
        project = ProjectChatFactory()

        result = ChatDirectoryService.update_group_chat(superadmin, project.id, name="X")

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR

    def test_missing_chat_is_not_found(self, superadmin):
        result = ChatDirectoryService.update_group_chat(superadmin, 999999, name="X")

        assert result.error_code == ERROR_CODES.NOT_FOUND


# =============================================================================
# delete_group_chat
# =============================================================================


@pytest.mark.django_db
class TestDeleteGroupChat:
    def test_system_admin_deletes_chat_and_history(self, group_chat, system_admin, member_user):
        MessageFactory.create_batch(3, chat=group_chat, author=member_user)

        result = ChatDirectoryService.delete_group_chat(system_admin, group_chat.id)

        assert result.success
        assert not Chat.objects.filter(pk=group_chat.id).exists()
        assert not Membership.objects.filter(chat_id=group_chat.id).exists()
        assert not Message.objects.filter(chat_id=group_chat.id).exists()

    @pytest.mark.parametrize("fixture", ["admin_user", "manager_user", "member_user"])
    def test_chat_roles_cannot_delete(self, request, group_chat, fixture):
        user = request.getfixturevalue(fixture)

        result = ChatDirectoryService.delete_group_chat(user, group_chat.id)

        assert result.error_code == ERROR_CODES.FORBIDDEN
        assert Chat.objects.filter(pk=group_chat.id).exists()

    def test_other_chats_are_untouched(self, group_chat, superadmin):
        keep = ChatFactory()
        kept_message = MessageFactory(chat=keep)

        ChatDirectoryService.delete_group_chat(superadmin, group_chat.id)

        assert Message.objects.filter(pk=kept_message.pk).exists()

    def test_direct_chat_cannot_be_deleted(self, superadmin):
        ana, ben = UserFactory(), UserFactory()
        chat = ChatDirectoryService.get_or_create_direct_chat(ana, ben.id).data

        result = ChatDirectoryService.delete_group_chat(superadmin, chat.id)

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR


# =============================================================================
# toggle_favorite
# =============================================================================


@pytest.mark.django_db
class TestToggleFavorite:
    def test_flips_flag(self, group_chat, member_user):
        on = ChatDirectoryService.toggle_favorite(member_user, group_chat.id)
        off = ChatDirectoryService.toggle_favorite(member_user, group_chat.id)

        assert on.data.is_favorite is True
        assert off.data.is_favorite is False

    def test_only_affects_caller(self, group_chat, member_user, admin_user):
        ChatDirectoryService.toggle_favorite(member_user, group_chat.id)

        assert not Membership.objects.get(chat=group_chat, user=admin_user).is_favorite

    def test_non_member_fails(self, group_chat, other_user):
        result = ChatDirectoryService.toggle_favorite(other_user, group_chat.id)

        assert result.error_code == ERROR_CODES.NOT_A_MEMBER


# =============================================================================
# list_user_chats
# =============================================================================


@pytest.mark.django_db
class TestListUserChats:
    def test_favorites_first_then_recent_activity(self):
        ana, ben = UserFactory(), UserFactory()
        base = timezone.now()

        with freeze_time(base):
            old = ChatDirectoryService.create_group_chat(ana, "Old", [ben.id]).data
            fav = ChatDirectoryService.create_group_chat(ana, "Fav", [ben.id]).data
            quiet = ChatDirectoryService.create_group_chat(ana, "Quiet", [ben.id]).data
        with freeze_time(base + timedelta(minutes=1)):
            MessageService.send_message(ben, old.id, "first")
        with freeze_time(base + timedelta(minutes=2)):
            MessageService.send_message(ben, quiet.id, "newest")
        ChatDirectoryService.toggle_favorite(ana, fav.id)

        summaries = ChatDirectoryService.list_user_chats(ana).data

        assert [s.chat.name for s in summaries] == ["Fav", "Quiet", "Old"]

    def test_carries_last_message_unread_and_members(self):
        ana, ben = UserFactory(), UserFactory()
        chat = ChatDirectoryService.create_group_chat(ana, "Ops", [ben.id]).data
        MessageService.send_message(ben, chat.id, "one")
        last = MessageService.send_message(ben, chat.id, "two").data

        summary = ChatDirectoryService.list_user_chats(ana).data[0]

        assert summary.last_message.id == last.id
        assert summary.unread_count == 2
        assert summary.membership.role == ChatRole.ADMIN
        assert {m.user_id for m in summary.members} == {ana.id, ben.id}

    def test_only_callers_chats(self, group_chat, other_user):
        mine = ChatFactory()
        MembershipFactory(chat=mine, user=other_user)

        summaries = ChatDirectoryService.list_user_chats(other_user).data

        assert [s.chat.id for s in summaries] == [mine.id]

    def test_empty_list(self, other_user):
        assert ChatDirectoryService.list_user_chats(other_user).data == []


# =============================================================================
# get_chat_info
# =============================================================================


@pytest.mark.django_db
class TestGetChatInfo:
    def test_member_view(self, group_chat, member_user):
        info = ChatDirectoryService.get_chat_info(member_user, group_chat.id).data

        assert info.user_role == ChatRole.MEMBER
        assert info.user_system_role == SystemRole.WORKER
        assert info.can_edit is False
        assert info.can_delete is False
        assert len(info.members) == 3

    def test_manager_can_edit_not_delete(self, group_chat, manager_user):
        info = ChatDirectoryService.get_chat_info(manager_user, group_chat.id).data

        assert info.can_edit is True
        assert info.can_delete is False

    def test_system_admin_member_can_delete(self, group_chat, system_admin):
        MembershipFactory(chat=group_chat, user=system_admin)

        info = ChatDirectoryService.get_chat_info(system_admin, group_chat.id).data

        assert info.can_edit is True
        assert info.can_delete is True

    def test_rights_are_false_outside_groups(self, superadmin):
        chat = ChatDirectoryService.get_or_create_project_chat(superadmin, "PRJ-1").data

        info = ChatDirectoryService.get_chat_info(superadmin, chat.id).data

        assert info.can_edit is False
        assert info.can_delete is False

    def test_non_member_fails(self, group_chat, other_user):
        result = ChatDirectoryService.get_chat_info(other_user, group_chat.id)

        assert result.error_code == ERROR_CODES.NOT_A_MEMBER

    def test_missing_chat_is_not_found(self, other_user):
        result = ChatDirectoryService.get_chat_info(other_user, 999999)

        assert result.error_code == ERROR_CODES.NOT_FOUND
