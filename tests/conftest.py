"""
Shared pytest fixtures for the BIM Issue Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - statuses / issue_type: work package catalog rows
    - project, importer, member_factory: project with an importing user
    - make_bcf_archive: in-memory .bcfzip builder
"""

import io
import zipfile

import pytest

from bimtrack import create_app
from bimtrack.models import db as _db
from bimtrack.models.auth import Permission, ProjectMember, Role, RolePermission, User
from bimtrack.models.project import Project
from bimtrack.models.work_package import Status, Type

ALL_PERMISSIONS = (
    "manage_bcf",
    "add_work_packages",
    "edit_work_packages",
    "add_work_package_notes",
)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    application.config["UPLOAD_FOLDER"] = str(tmp_path_factory.mktemp("attachments"))
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Catalog fixtures ─────────────────────────────────────────────────────


@pytest.fixture()
def statuses():
    """New (default), Open, Closed."""
    rows = {
        "New": Status(name="New", is_default=True, position=1),
        "Open": Status(name="Open", position=2),
        "Closed": Status(name="Closed", is_closed=True, position=3),
    }
    _db.session.add_all(rows.values())
    _db.session.commit()
    return rows


@pytest.fixture()
def issue_type():
    t = Type(name="Issue", position=1)
    _db.session.add(t)
    _db.session.commit()
    return t


def _make_role(name, codenames):
    role = Role(name=name)
    for codename in codenames:
        perm = Permission.query.filter_by(codename=codename).first()
        if perm is None:
            perm = Permission(codename=codename)
            _db.session.add(perm)
        role.role_permissions.append(RolePermission(permission=perm))
    _db.session.add(role)
    _db.session.flush()
    return role


@pytest.fixture()
def member_role():
    return _make_role("member", ALL_PERMISSIONS)


@pytest.fixture()
def reader_role():
    """Project role without any write permission."""
    return _make_role("reader", ())


@pytest.fixture()
def project(statuses, issue_type):
    p = Project(identifier="tower-a", name="Tower A")
    _db.session.add(p)
    _db.session.commit()
    return p


@pytest.fixture()
def member_factory(project, member_role):
    """Create a committed user and add them to ``project``."""

    def _make(email, role=None, status="active"):
        user = User(email=email, full_name=email.split("@")[0], status=status)
        _db.session.add(user)
        _db.session.flush()
        _db.session.add(ProjectMember(
            project_id=project.id, user_id=user.id, role_id=(role or member_role).id,
        ))
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def importer(member_factory):
    """The user running imports; holds every project permission."""
    return member_factory("importer@example.com")


# ── BCF archive builder ──────────────────────────────────────────────────


def markup_xml(title="Leak in roof", status="Open", description="",
               viewpoints=(), comments=()):
    """Build markup.bcf bytes.

    viewpoints: iterable of (guid, viewpoint_file, snapshot_file_or_None)
    comments:   iterable of (guid, date, author, text)
    """
    parts = ['<?xml version="1.0" encoding="UTF-8"?>', "<Markup>"]
    parts.append(f'<Topic Guid="t" TopicType="Issue" TopicStatus="{status}">')
    parts.append(f"<Title>{title}</Title>")
    if description:
        parts.append(f"<Description>{description}</Description>")
    parts.append("</Topic>")
    for guid, date, author, text in comments:
        parts.append(
            f'<Comment Guid="{guid}"><Date>{date}</Date>'
            f"<Author>{author}</Author><Comment>{text}</Comment></Comment>"
        )
    for guid, viewpoint, snapshot in viewpoints:
        parts.append(f'<Viewpoints Guid="{guid}"><Viewpoint>{viewpoint}</Viewpoint>')
        if snapshot:
            parts.append(f"<Snapshot>{snapshot}</Snapshot>")
        parts.append("</Viewpoints>")
    parts.append("</Markup>")
    return "".join(parts).encode("utf-8")


@pytest.fixture()
def build_markup():
    """Return the markup.bcf builder."""
    return markup_xml


@pytest.fixture()
def make_bcf_archive():
    """Return a builder: ``{topic_uuid: {filename: bytes}}`` → zip bytes."""

    def _build(topics):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("bcf.version", '<Version VersionId="2.1"/>')
            for topic_uuid, files in topics.items():
                for filename, content in files.items():
                    zf.writestr(f"{topic_uuid}/{filename}", content)
        return buf.getvalue()

    return _build
