"""
Attachment storage: streams uploaded files to ``UPLOAD_FOLDER``.

Files are copied in chunks while the SHA-256 digest and size are computed,
so callers can hand over an open stream without reading it into memory.

A stored file belongs to the session transaction that added its row: it is
kept on commit and deleted from disk when that transaction rolls back.
"""

import hashlib
import logging
import mimetypes
import os
import uuid

from flask import current_app
from sqlalchemy import event
from sqlalchemy.orm import Session

from bimtrack.models import db
from bimtrack.models.attachment import Attachment

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
_PENDING_FILES_KEY = "bimtrack.pending_attachment_files"


def _storage_dir() -> str:
    folder = current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    return folder


def _track_pending(path: str) -> None:
    db.session.info.setdefault(_PENDING_FILES_KEY, []).append(path)


@event.listens_for(Session, "after_commit")
def _keep_committed_files(session) -> None:
    session.info.pop(_PENDING_FILES_KEY, None)


@event.listens_for(Session, "after_soft_rollback")
def _discard_rolled_back_files(session, previous_transaction) -> None:
    """Delete files whose attachment rows were rolled back."""
    if previous_transaction.parent is not None:
        return
    for path in session.info.pop(_PENDING_FILES_KEY, []):
        if os.path.exists(path):
            os.remove(path)
            logger.debug("Removed attachment file %s after rollback", path)


def store(stream, filename: str, author=None) -> Attachment:
    """Persist ``stream`` as an attachment named after ``filename``.

    Args:
        stream: Readable binary file object; consumed but not closed.
        filename: Original name; only the basename is kept for display.
        author: Optional User recorded as the uploader.

    Returns:
        The flushed Attachment row.
    """
    display_name = os.path.basename(filename) or "attachment"
    disk_name = f"{uuid.uuid4().hex}_{display_name}"
    path = os.path.join(_storage_dir(), disk_name)

    digest = hashlib.sha256()
    size = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                digest.update(chunk)
                size += len(chunk)
                out.write(chunk)
    except Exception:
        if os.path.exists(path):
            os.remove(path)
        raise
    _track_pending(path)

    attachment = Attachment(
        file_name=display_name,
        file_path=path,
        file_size=size,
        content_type=mimetypes.guess_type(display_name)[0] or "application/octet-stream",
        digest=digest.hexdigest(),
        author_id=author.id if author else None,
    )
    db.session.add(attachment)
    db.session.flush()
    logger.debug("Stored attachment %s (%d bytes) at %s", display_name, size, path)
    return attachment
