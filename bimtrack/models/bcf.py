"""
BIM Issue Tracker
BCF domain models.

Models:
    - BcfIssue: one imported BCF topic, keyed by (uuid, project_id)
    - BcfViewpoint: saved view of a topic plus optional snapshot attachment
    - BcfComment: topic comment, optionally bound to a work package journal

Viewpoints and comments are unique by uuid within their issue; the
``has_uuid`` helper on both collections is what keeps re-imports additive.
"""

from datetime import datetime, timezone

from bimtrack.models import db


class UuidCollection(list):
    """Relationship collection that can answer membership by ``uuid``."""

    def has_uuid(self, uuid):
        return self.find_by_uuid(uuid) is not None

    def find_by_uuid(self, uuid):
        return next((item for item in self if item.uuid == uuid), None)


class BcfIssue(db.Model):
    """BCF topic imported into a project.

    ``subject``, ``description`` and ``status_id`` are owned by the bound
    work package and exposed here read-only.
    """

    __tablename__ = "bcf_issues"

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(64), nullable=False, comment="Topic folder name in the archive")
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    work_package_id = db.Column(
        db.Integer, db.ForeignKey("work_packages.id", ondelete="SET NULL"),
        nullable=True,
    )
    markup = db.Column(db.LargeBinary, nullable=True, comment="Raw markup.bcf of the last import")

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("uuid", "project_id", name="uq_bcf_issue_uuid_project"),
    )

    work_package = db.relationship("WorkPackage")
    viewpoints = db.relationship(
        "BcfViewpoint", back_populates="issue", collection_class=UuidCollection,
        cascade="all, delete-orphan", order_by="BcfViewpoint.id",
    )
    comments = db.relationship(
        "BcfComment", back_populates="issue", collection_class=UuidCollection,
        cascade="all, delete-orphan", order_by="BcfComment.id",
    )

    @property
    def subject(self):
        return self.work_package.subject if self.work_package else None

    @property
    def description(self):
        return self.work_package.description if self.work_package else None

    @property
    def status_id(self):
        return self.work_package.status_id if self.work_package else None

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "uuid": self.uuid,
            "project_id": self.project_id,
            "work_package_id": self.work_package_id,
            "subject": self.subject,
            "description": self.description,
            "status_id": self.status_id,
            "viewpoint_count": len(self.viewpoints),
            "comment_count": len(self.comments),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            result["viewpoints"] = [v.to_dict() for v in self.viewpoints]
            result["comments"] = [c.to_dict() for c in self.comments]
            result["work_package"] = (
                self.work_package.to_dict(include_journals=True) if self.work_package else None
            )
        return result

    def __repr__(self):
        return f"<BcfIssue {self.id}: {self.uuid} project#{self.project_id}>"


class BcfViewpoint(db.Model):
    __tablename__ = "bcf_viewpoints"

    id = db.Column(db.Integer, primary_key=True)
    issue_id = db.Column(
        db.Integer, db.ForeignKey("bcf_issues.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    uuid = db.Column(db.String(64), nullable=False)
    viewpoint = db.Column(db.LargeBinary, nullable=False, comment="Raw .bcfv XML")
    viewpoint_name = db.Column(db.String(255), nullable=False)
    snapshot_id = db.Column(
        db.String(36), db.ForeignKey("attachments.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        db.UniqueConstraint("issue_id", "uuid", name="uq_bcf_viewpoint_issue_uuid"),
    )

    issue = db.relationship("BcfIssue", back_populates="viewpoints")
    snapshot = db.relationship("Attachment")

    def to_dict(self):
        return {
            "id": self.id,
            "uuid": self.uuid,
            "viewpoint_name": self.viewpoint_name,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
        }

    def __repr__(self):
        return f"<BcfViewpoint {self.id}: {self.uuid}>"


class BcfComment(db.Model):
    __tablename__ = "bcf_comments"

    id = db.Column(db.Integer, primary_key=True)
    issue_id = db.Column(
        db.Integer, db.ForeignKey("bcf_issues.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    uuid = db.Column(db.String(64), nullable=False)
    date = db.Column(db.String(64), default="", comment="Raw Date token from the markup")
    author = db.Column(db.String(200), default="", comment="Author e-mail from the markup")
    comment = db.Column(db.Text, default="")
    journal_id = db.Column(
        db.Integer, db.ForeignKey("journals.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        db.UniqueConstraint("issue_id", "uuid", name="uq_bcf_comment_issue_uuid"),
    )

    issue = db.relationship("BcfIssue", back_populates="comments")
    journal = db.relationship("Journal")

    def to_dict(self):
        return {
            "id": self.id,
            "uuid": self.uuid,
            "date": self.date,
            "author": self.author,
            "comment": self.comment,
            "journal_id": self.journal_id,
        }

    def __repr__(self):
        return f"<BcfComment {self.id}: {self.uuid}>"
