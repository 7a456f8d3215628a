"""Project domain model: container for work packages and BCF issues."""

from datetime import datetime, timezone

from bimtrack.models import db


class Project(db.Model):
    """A project groups work packages, members and imported BCF topics."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    identifier = db.Column(db.String(100), unique=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(30), nullable=False, default="active")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    members = db.relationship(
        "ProjectMember", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    work_packages = db.relationship("WorkPackage", backref="project", lazy="dynamic")
    bcf_issues = db.relationship("BcfIssue", backref="project", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "identifier": self.identifier,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.identifier}>"
