"""
BIM Issue Tracker
Work package domain models.

Models:
    - Status: workflow state; exactly one row is flagged as the default
    - Type: work package classification (Task, Issue, Clash, ...)
    - WorkPackage: the tracked work item
    - Journal: one entry of a work package's note thread
"""

from datetime import datetime, timezone

from bimtrack.models import db


class Status(db.Model):
    """Work package status. New work packages fall back to the default one."""

    __tablename__ = "statuses"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_closed = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, default=0)

    @classmethod
    def default(cls):
        """Return the default status, or None if none is flagged."""
        return cls.query.filter_by(is_default=True).order_by(cls.position, cls.id).first()

    def __repr__(self):
        return f"<Status {self.id}: {self.name}>"


class Type(db.Model):
    __tablename__ = "types"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    position = db.Column(db.Integer, default=0)

    def __repr__(self):
        return f"<Type {self.id}: {self.name}>"


class WorkPackage(db.Model):
    """Work item tracked inside a project."""

    __tablename__ = "work_packages"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    type_id = db.Column(db.Integer, db.ForeignKey("types.id"), nullable=False)
    status_id = db.Column(db.Integer, db.ForeignKey("statuses.id"), nullable=False)
    author_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    subject = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default="")
    lock_version = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    type = db.relationship("Type")
    status = db.relationship("Status")
    author = db.relationship("User")
    journals = db.relationship(
        "Journal", backref="work_package", lazy="dynamic",
        cascade="all, delete-orphan", order_by="Journal.id",
    )

    def to_dict(self, include_journals=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "type": self.type.name if self.type else None,
            "status_id": self.status_id,
            "status": self.status.name if self.status else None,
            "author_id": self.author_id,
            "subject": self.subject,
            "description": self.description,
            "lock_version": self.lock_version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_journals:
            result["journals"] = [j.to_dict() for j in self.journals]
        return result

    def __repr__(self):
        return f"<WorkPackage {self.id}: {self.subject[:40]}>"


class Journal(db.Model):
    """Note appended to a work package thread."""

    __tablename__ = "journals"

    id = db.Column(db.Integer, primary_key=True)
    work_package_id = db.Column(
        db.Integer, db.ForeignKey("work_packages.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    notes = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "work_package_id": self.work_package_id,
            "user_id": self.user_id,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Journal {self.id}: wp#{self.work_package_id} by user#{self.user_id}>"
