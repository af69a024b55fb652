"""Tests for MediaStore."""

import pytest

from app.exceptions import InvalidMediaReference, MediaFileMissing
from app.services.media_store import MediaStore, extension_for, mimetype_for

MESSAGE_ID = "false_5551234@c.us_3EB0ABCDEF"


def test_store_writes_file_named_after_kind_and_message(media_store: MediaStore):
    ref = media_store.store(b"\x89PNG...", "image/png", "image", MESSAGE_ID)

    assert ref.filename.startswith("image_")
    assert ref.filename.endswith("_3EB0ABCDEF.png")
    assert ref.size == 8
    assert ref.mimetype == "image/png"
    assert media_store.resolve(ref.filename) == b"\x89PNG..."


def test_store_never_overwrites(media_store: MediaStore, monkeypatch):
    monkeypatch.setattr(
        media_store, "build_filename", lambda kind, message_id, mime: "image_1_x.png"
    )
    first = media_store.store(b"one", "image/png", "image", MESSAGE_ID)
    second = media_store.store(b"two", "image/png", "image", MESSAGE_ID)

    assert first.filename == "image_1_x.png"
    assert second.filename == "image_1_x-1.png"
    assert media_store.resolve(first.filename) == b"one"
    assert media_store.resolve(second.filename) == b"two"


def test_unknown_id_shape_uses_placeholder_suffix(media_store: MediaStore):
    name = media_store.build_filename("document", "weird-id", None)
    assert name.endswith("_unknown.bin")


@pytest.mark.parametrize(
    "mime,ext",
    [
        ("image/jpeg", ".jpg"),
        ("audio/ogg; codecs=opus", ".ogg"),
        ("application/x-nothing-known", ".bin"),
        (None, ".bin"),
    ],
)
def test_extension_for(mime, ext):
    assert extension_for(mime) == ext


def test_mimetype_for_known_and_unknown():
    assert mimetype_for("image_1_x.jpg") == "image/jpeg"
    assert mimetype_for("blob_1_x.bin") == "application/octet-stream"


@pytest.mark.parametrize(
    "filename", ["../../etc/passwd", "/etc/passwd", "..", "", "a\x00b"]
)
def test_resolve_rejects_escaping_paths(media_store: MediaStore, tmp_path, filename):
    (tmp_path / "secret.txt").write_text("secret")
    with pytest.raises(InvalidMediaReference):
        media_store.resolve(filename)


def test_resolve_missing_file(media_store: MediaStore):
    media_store.base_dir.mkdir(parents=True, exist_ok=True)
    with pytest.raises(MediaFileMissing):
        media_store.resolve("image_1_missing.png")


def test_discard_removes_file_once(media_store: MediaStore):
    ref = media_store.store(b"bytes", "image/png", "image", MESSAGE_ID)

    assert media_store.discard(ref.filename) is True
    assert media_store.discard(ref.filename) is False
    with pytest.raises(MediaFileMissing):
        media_store.resolve(ref.filename)


def test_discard_rejects_names_outside_root(media_store: MediaStore):
    media_store.store(b"bytes", "image/png", "image", MESSAGE_ID)
    with pytest.raises(InvalidMediaReference):
        media_store.discard("../outside.png")
