"""
Tests for AttachmentService: descriptor validation, upload and per-chat listing.
"""

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from chat.constants import ATTACHMENT_CONFIG, ERROR_CODES
from chat.services import AttachmentService, MessageService


@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path
    settings.MEDIA_URL = "/media/"
    return tmp_path


def descriptor(name="report.pdf"):
    return {"url": f"/media/chat/{name}", "name": name, "size": 10, "type": "application/pdf"}


# =============================================================================
# validate_descriptors
# =============================================================================


class TestValidateDescriptors:
    def test_valid_list(self):
        assert AttachmentService.validate_descriptors([descriptor(), descriptor("b.png")]) == []

    def test_empty_list_is_valid(self):
        assert AttachmentService.validate_descriptors([]) == []

    def test_not_a_list(self):
        assert AttachmentService.validate_descriptors({"url": "x"}) != []

    def test_item_not_an_object(self):
        errors = AttachmentService.validate_descriptors(["https://x"])

        assert errors == ["Attachment 0 must be an object."]

    def test_missing_required_keys(self):
        errors = AttachmentService.validate_descriptors([{"url": " ", "size": 3}])

        assert errors == ["Attachment 0 is missing 'url'.", "Attachment 0 is missing 'name'."]

    def test_too_many(self):
        attachments = [descriptor(f"f{n}") for n in range(ATTACHMENT_CONFIG.MAX_ATTACHMENTS_PER_MESSAGE + 1)]

        assert AttachmentService.validate_descriptors(attachments) != []


# =============================================================================
# store
# =============================================================================


@pytest.mark.django_db
class TestStore:
    def test_saves_file_and_returns_descriptor(self, media_root, member_user):
        upload = SimpleUploadedFile("site plan.pdf", b"%PDF-1.7 data", content_type="application/pdf")

        result = AttachmentService.store(member_user, upload)

        assert result.success
        data = result.data
        assert data["name"] == "site plan.pdf"
        assert data["size"] == len(b"%PDF-1.7 data")
        assert data["type"] == "application/pdf"
        assert data["url"].startswith("/media/chat/")
        stored = list((media_root / "chat").iterdir())
        assert len(stored) == 1
        assert stored[0].name.endswith("-site_plan.pdf")
        assert stored[0].read_bytes() == b"%PDF-1.7 data"

    def test_same_name_never_collides(self, media_root, member_user):
        first = AttachmentService.store(member_user, SimpleUploadedFile("a.txt", b"one")).data
        second = AttachmentService.store(member_user, SimpleUploadedFile("a.txt", b"two")).data

        assert first["url"] != second["url"]

    def test_empty_file_is_rejected(self, media_root, member_user):
        result = AttachmentService.store(member_user, SimpleUploadedFile("empty.txt", b""))

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR
        assert not (media_root / "chat").exists()

    def test_oversized_file_is_rejected(self, media_root, member_user, settings):
        settings.CHAT_ATTACHMENT_MAX_BYTES = 4

        result = AttachmentService.store(member_user, SimpleUploadedFile("big.bin", b"12345"))

        assert result.error_code == ERROR_CODES.VALIDATION_ERROR
        assert "file" in result.errors

    def test_path_components_are_dropped(self, media_root, member_user):
        result = AttachmentService.store(member_user, SimpleUploadedFile("../../etc/passwd", b"x"))

        assert result.data["name"] == "passwd"
        assert (media_root / "chat").is_dir()


# =============================================================================
# get_chat_attachments
# =============================================================================


@pytest.mark.django_db
class TestGetChatAttachments:
    def test_flattens_newest_first_with_origin(self, group_chat, member_user, admin_user):
        first = MessageService.send_message(
            admin_user, group_chat.id, "old", attachments=[descriptor("a.pdf")]
        ).data
        MessageService.send_message(member_user, group_chat.id, "no files")
        second = MessageService.send_message(
            member_user, group_chat.id, "", attachments=[descriptor("b.png"), descriptor("c.png")]
        ).data

        result = AttachmentService.get_chat_attachments(member_user, group_chat.id)

        assert [a["name"] for a in result.data] == ["b.png", "c.png", "a.pdf"]
        assert result.data[0]["message_id"] == second.id
        assert result.data[0]["uploaded_by"] == "Bea Member"
        assert result.data[2]["message_id"] == first.id
        assert result.data[2]["uploaded_at"] == first.created_at

    def test_deleted_messages_contribute_nothing(self, group_chat, member_user):
        message = MessageService.send_message(
            member_user, group_chat.id, "", attachments=[descriptor()]
        ).data
        MessageService.delete_message(member_user, message.id)

        assert AttachmentService.get_chat_attachments(member_user, group_chat.id).data == []

    def test_non_member_is_rejected(self, group_chat, other_user):
        result = AttachmentService.get_chat_attachments(other_user, group_chat.id)

        assert result.error_code == ERROR_CODES.NOT_A_MEMBER
