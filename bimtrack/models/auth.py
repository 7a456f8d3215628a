"""
Auth Models: users, roles, permissions, project_members.

Permission codenames used by the BCF import:
    manage_bcf               - may trigger imports and browse BCF issues
    add_work_packages        - may create work packages
    edit_work_packages       - may update work packages
    add_work_package_notes   - may append notes to a work package thread
"""

from datetime import datetime, timezone

from bimtrack.models import db


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, unique=True)
    full_name = db.Column(db.String(200))
    status = db.Column(db.String(20), default="active")  # active, invited, locked
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project_memberships = db.relationship(
        "ProjectMember", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    @property
    def is_active(self):
        return self.status == "active"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "status": self.status,
            "is_admin": self.is_admin,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"


# ═══════════════════════════════════════════════════════════════
# 2. ROLES & PERMISSIONS
# ═══════════════════════════════════════════════════════════════
class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, default="")

    role_permissions = db.relationship(
        "RolePermission", back_populates="role", cascade="all, delete-orphan",
    )

    @property
    def permission_codenames(self):
        return {rp.permission.codename for rp in self.role_permissions}

    def __repr__(self):
        return f"<Role {self.id}: {self.name}>"


class Permission(db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    codename = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(300), default="")

    def __repr__(self):
        return f"<Permission {self.codename}>"


class RolePermission(db.Model):
    __tablename__ = "role_permissions"

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(
        db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    permission_id = db.Column(
        db.Integer, db.ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        db.UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )

    role = db.relationship("Role", back_populates="role_permissions")
    permission = db.relationship("Permission")


# ═══════════════════════════════════════════════════════════════
# 3. PROJECT_MEMBERS (User ↔ Project assignment)
# ═══════════════════════════════════════════════════════════════
class ProjectMember(db.Model):
    __tablename__ = "project_members"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role_id = db.Column(
        db.Integer, db.ForeignKey("roles.id", ondelete="SET NULL"), nullable=True
    )
    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_member"),
        db.Index("ix_project_members_project", "project_id"),
        db.Index("ix_project_members_user", "user_id"),
    )

    user = db.relationship("User", back_populates="project_memberships")
    role = db.relationship("Role")
    project = db.relationship("Project", back_populates="members")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "role": self.role.name if self.role else None,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }
