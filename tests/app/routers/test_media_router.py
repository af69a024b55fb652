"""Tests for media download / view."""

from fastapi.testclient import TestClient

from app.core.app_state import AppState


def _stored_media(tracker_state: AppState, make_ledger_row, content=b"%PDF-1.4"):
    ref = tracker_state.media_store.store(
        content, "application/pdf", "document", "false_5551234@c.us_3EB0DOC"
    )
    return make_ledger_row(
        message_id="false_5551234@c.us_3EB0DOC",
        kind="document",
        media_filename=ref.filename,
        media_mimetype=ref.mimetype,
        media_size=ref.size,
    )


def test_download_media(client: TestClient, tracker_state: AppState, make_ledger_row):
    message = _stored_media(tracker_state, make_ledger_row)

    resp = client.get(f"/messages/{message.message_id}/download")

    assert resp.status_code == 200
    assert resp.content == b"%PDF-1.4"
    assert resp.headers["content-type"].startswith("application/pdf")
    assert resp.headers["content-disposition"].startswith("attachment;")
    assert resp.headers["x-message-id"] == message.message_id
    assert resp.headers["x-original-filename"] == "3EB0DOC.pdf"


def test_view_media_inline(client: TestClient, tracker_state: AppState, make_ledger_row):
    message = _stored_media(tracker_state, make_ledger_row)

    resp = client.get(f"/messages/{message.message_id}/view")

    assert resp.status_code == 200
    assert resp.headers["content-disposition"] == (
        f'inline; filename="{message.media_filename}"'
    )


def test_message_without_media(client: TestClient, make_ledger_row):
    message = make_ledger_row()
    assert client.get(f"/messages/{message.message_id}/download").status_code == 404


def test_unknown_message(client: TestClient):
    assert client.get("/messages/nope/view").status_code == 404


def test_missing_file_on_disk(client: TestClient, tracker_state: AppState, make_ledger_row):
    tracker_state.media_store.base_dir.mkdir(parents=True, exist_ok=True)
    message = make_ledger_row(media_filename="image_1_gone.png")
    assert client.get(f"/messages/{message.message_id}/download").status_code == 404


def test_traversal_filename_is_rejected(client: TestClient, make_ledger_row, tmp_path):
    (tmp_path / "secret.txt").write_text("secret")
    message = make_ledger_row(media_filename="../secret.txt")

    resp = client.get(f"/messages/{message.message_id}/download")

    assert resp.status_code == 400
    assert b"secret" not in resp.content
