"""Media read-back for ingested attachments."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from app.exceptions import InvalidMediaReference, MediaFileMissing
from app.models.message import Message
from app.routers.utils.dependencies import get_media_store, get_message_by_id
from app.services.media_store import MediaStore, mimetype_for

media_router = APIRouter(prefix="/messages", tags=["Media"])


def _read_media(message: Message, store: MediaStore) -> tuple[bytes, str]:
    if not message.media_filename:
        raise HTTPException(status_code=404, detail="Message has no media")
    try:
        content = store.resolve(message.media_filename)
    except MediaFileMissing as e:
        raise HTTPException(status_code=404, detail="Media file not found on disk") from e
    except InvalidMediaReference as e:
        raise HTTPException(status_code=400, detail="Invalid media filename") from e
    return content, message.media_mimetype or mimetype_for(message.media_filename)


def _download_name(filename: str) -> str:
    # Drop the '{kind}_{millis}_' prefix the store adds.
    parts = filename.split("_", 2)
    return parts[2] if len(parts) == 3 else filename


@media_router.get("/{message_id}/download")
def download_media(
    message: Message = Depends(get_message_by_id),
    store: MediaStore = Depends(get_media_store),
) -> Response:
    """Return the attachment as a file download."""
    content, mime_type = _read_media(message, store)
    name = _download_name(message.media_filename)
    return Response(
        content=content,
        media_type=mime_type,
        headers={
            "Content-Disposition": f'attachment; filename="{name}"',
            "X-Message-ID": message.message_id,
            "X-Original-Filename": name,
            "X-File-Size": str(len(content)),
        },
    )


@media_router.get("/{message_id}/view")
def view_media(
    message: Message = Depends(get_message_by_id),
    store: MediaStore = Depends(get_media_store),
) -> Response:
    """Return the attachment for inline display."""
    content, mime_type = _read_media(message, store)
    return Response(
        content=content,
        media_type=mime_type,
        headers={"Content-Disposition": f'inline; filename="{message.media_filename}"'},
    )
