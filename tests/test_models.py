"""Tests for the domain models and display helpers."""

from neurosci_ai.domain.models import (
    DEFAULT_TITLE,
    Conversation,
    FileUpload,
    derive_title,
    file_icon,
    format_file_size,
)


def test_new_conversation_defaults():
    conversation = Conversation()
    assert conversation.title == DEFAULT_TITLE == "New Chat"
    assert conversation.messages == []
    assert conversation.is_starred is False
    assert Conversation().id != conversation.id


def test_title_kept_when_short():
    assert derive_title("Hello") == "Hello"
    assert derive_title("x" * 40) == "x" * 40


def test_title_truncated_when_long():
    content = "Describe the freezing behaviour seen in fear conditioning"
    assert derive_title(content) == content[:40] + "..."


def test_file_upload_from_path(tmp_path):
    path = tmp_path / "session.csv"
    path.write_bytes(b"frame,x,y\n1,0,0\n")

    upload = FileUpload.from_path(path)

    assert upload.name == "session.csv"
    assert upload.content_type == "text/csv"
    assert upload.size == 16
    assert upload.url.startswith("file://")

    attachment = upload.to_attachment()
    assert (attachment.name, attachment.type, attachment.size) == ("session.csv", "text/csv", 16)


def test_attachment_reference_without_path():
    attachment = FileUpload(name="clip.mp4", content_type="video/mp4", data=b"1234").to_attachment()
    assert attachment.size == 4
    assert attachment.url.endswith("/clip.mp4")


def test_format_file_size():
    assert format_file_size(512) == "512 B"
    assert format_file_size(2048) == "2.0 KB"
    assert format_file_size(5 * 1048576) == "5.0 MB"


def test_file_icon():
    assert file_icon("image/png") == "🖼️"
    assert file_icon("application/pdf") == "📄"
    assert file_icon("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet") == "📊"
    assert file_icon("application/zip") == "📁"
