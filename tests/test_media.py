import pytest

from app.errors import ValidationError
from app.types.contracts import FileAttachment
from app.utils import media, sms
from config import settings


def test_object_key_is_scoped_to_user():
    key = media.object_key("u1", "../../etc/passwd")
    user, name = key.split("/", 1)
    assert user == "u1"
    assert name.endswith("-passwd")


def test_upload_rejects_large_files(monkeypatch):
    monkeypatch.setattr(settings, "MAX_ATTACHMENT_MB", 1)
    with pytest.raises(ValidationError, match="Maximum size is 1MB"):
        media.upload_attachment("u1", "big.bin", b"x" * (1024 * 1024 + 1))


def test_upload_stores_object(monkeypatch):
    stored = {}

    class FakeS3:
        def put_object(self, **kwargs):
            stored.update(kwargs)

    monkeypatch.setattr(settings, "ATTACHMENTS_S3_BUCKET", "vault-bucket")
    monkeypatch.setattr(media, "_client", lambda: FakeS3())
    attachment = media.upload_attachment("u1", "note.txt", b"hello")

    assert stored["Bucket"] == "vault-bucket"
    assert stored["ContentType"] == "text/plain"
    assert attachment.path == stored["Key"]
    assert (attachment.name, attachment.size) == ("note.txt", 5)


def test_pending_upload_has_no_attachment():
    pending = FileAttachment(name="note.txt", size=5, type="text/plain")
    with pytest.raises(ValueError, match="has not been uploaded"):
        pending.to_attachment()


def test_delete_attachments_skips_empty():
    assert media.delete_attachments(["", None]) == 0


def test_send_sms_dev_mode(monkeypatch, caplog):
    monkeypatch.setattr(sms, "TELNYX_API_KEY", None)
    with caplog.at_level("INFO"):
        sms.send_sms("whatsapp:+1 555 000 1111", "hi")
    assert "+15550001111" in caplog.text
