"""
Attachment: stored file metadata.

The bytes live under ``UPLOAD_FOLDER``; this row records where, how big,
and the SHA-256 digest computed while the file was streamed to disk.
"""

import uuid
from datetime import datetime, timezone

from bimtrack.models import db


def _uuid():
    return str(uuid.uuid4())


class Attachment(db.Model):
    __tablename__ = "attachments"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(500), nullable=False, comment="Server storage path")
    file_size = db.Column(db.Integer, nullable=True, comment="Size in bytes")
    content_type = db.Column(db.String(100), nullable=True)
    digest = db.Column(db.String(64), nullable=True, comment="SHA-256 hex digest")
    author_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "content_type": self.content_type,
            "digest": self.digest,
            "author_id": self.author_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Attachment {self.id[:8]}: {self.file_name}>"
