"""
BIM Issue Tracker
Tests: BCF API.

Covers:
    - POST /bcf/import: success, partial, not a zip, missing file
    - X-User-Id authentication and manage_bcf permission guard
    - GET /bcf/issues list and /bcf/issues/<uuid> detail
    - CLI bcf-import command
"""

import io

import pytest

from bimtrack.models.bcf import BcfIssue

TOPIC = "5d6e7f80-1111-4222-8333-444455556666"


def _url(project_id, suffix=""):
    return f"/api/v1/projects/{project_id}/bcf{suffix}"


def _headers(user):
    return {"X-User-Id": str(user.id)}


def _upload(client, project_id, data, user, filename="coordination.bcfzip"):
    return client.post(
        _url(project_id, "/import"),
        data={"file": (io.BytesIO(data), filename)},
        content_type="multipart/form-data",
        headers=_headers(user) if user else {},
    )


@pytest.fixture()
def archive_bytes(make_bcf_archive, build_markup):
    return make_bcf_archive({
        TOPIC: {
            "markup.bcf": build_markup(
                title="Duct clash", status="Open",
                viewpoints=[("v1", "viewpoint.bcfv", "snapshot.png")],
                comments=[("c1", "2019-03-01", "importer@example.com", "Reroute duct")],
            ),
            "viewpoint.bcfv": b"<VisualizationInfo/>",
            "snapshot.png": b"\x89PNG\r\n\x1a\n",
        },
    })


# ═════════════════════════════════════════════════════════════════════════════
# IMPORT
# ═════════════════════════════════════════════════════════════════════════════

class TestImport:
    def test_import_success(self, client, project, importer, archive_bytes):
        res = _upload(client, project.id, archive_bytes, importer)
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == "completed"
        assert data["total"] == 1
        assert data["imported"][0]["uuid"] == TOPIC
        assert data["imported"][0]["subject"] == "Duct clash"
        assert data["imported"][0]["viewpoint_count"] == 1
        assert data["imported"][0]["comment_count"] == 1

    def test_import_partial(self, client, project, importer, make_bcf_archive, build_markup):
        data = make_bcf_archive({
            "a-broken": {"markup.bcf": b"<Markup>"},
            "b-fine": {"markup.bcf": build_markup()},
        })
        res = _upload(client, project.id, data, importer)
        assert res.status_code == 207
        body = res.get_json()
        assert body["status"] == "partial"
        assert body["errors"][0]["entry"] == "a-broken/markup.bcf"

    def test_import_all_failed(self, client, project, importer, make_bcf_archive):
        data = make_bcf_archive({"only": {"markup.bcf": b"garbage"}})
        res = _upload(client, project.id, data, importer)
        assert res.status_code == 422
        assert res.get_json()["status"] == "error"

    def test_import_not_a_zip(self, client, project, importer):
        res = _upload(client, project.id, b"plain text", importer)
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "Not a valid BCF archive" in body["error"]

    def test_import_missing_file(self, client, project, importer):
        res = client.post(_url(project.id, "/import"), data={}, headers=_headers(importer))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_reimport_keeps_single_issue(self, client, project, importer, archive_bytes):
        _upload(client, project.id, archive_bytes, importer)
        res = _upload(client, project.id, archive_bytes, importer)
        assert res.status_code == 200
        assert BcfIssue.query.count() == 1


# ═════════════════════════════════════════════════════════════════════════════
# ACCESS CONTROL
# ═════════════════════════════════════════════════════════════════════════════

class TestAccess:
    def test_missing_header(self, client, project, archive_bytes):
        res = _upload(client, project.id, archive_bytes, None)
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_unknown_user(self, client, project):
        res = client.get(_url(project.id, "/issues"), headers={"X-User-Id": "9999"})
        assert res.status_code == 401

    def test_locked_user(self, client, project, member_factory):
        locked = member_factory("locked@example.com", status="locked")
        res = client.get(_url(project.id, "/issues"), headers=_headers(locked))
        assert res.status_code == 401

    def test_without_manage_bcf(self, client, project, member_factory, reader_role, archive_bytes):
        viewer = member_factory("viewer@example.com", role=reader_role)
        res = _upload(client, project.id, archive_bytes, viewer)
        assert res.status_code == 403
        assert BcfIssue.query.count() == 0

    def test_non_member(self, client, project, importer):
        from bimtrack.models import db
        from bimtrack.models.project import Project

        other = Project(identifier="tower-b", name="Tower B")
        db.session.add(other)
        db.session.commit()
        res = client.get(_url(other.id, "/issues"), headers=_headers(importer))
        assert res.status_code == 403

    def test_admin_bypasses_membership(self, client, project, archive_bytes):
        from bimtrack.models import db
        from bimtrack.models.auth import User

        admin = User(email="admin@example.com", is_admin=True)
        db.session.add(admin)
        db.session.commit()
        res = _upload(client, project.id, archive_bytes, admin)
        assert res.status_code == 200

    def test_unknown_project(self, client, importer):
        res = client.get(_url(9999, "/issues"), headers=_headers(importer))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


# ═════════════════════════════════════════════════════════════════════════════
# BROWSE
# ═════════════════════════════════════════════════════════════════════════════

class TestBrowse:
    def test_list_issues(self, client, project, importer, archive_bytes):
        _upload(client, project.id, archive_bytes, importer)
        res = client.get(_url(project.id, "/issues"), headers=_headers(importer))
        assert res.status_code == 200
        data = res.get_json()
        assert data["total"] == 1
        assert data["items"][0]["uuid"] == TOPIC
        assert "viewpoints" not in data["items"][0]

    def test_list_empty(self, client, project, importer):
        res = client.get(_url(project.id, "/issues"), headers=_headers(importer))
        assert res.get_json() == {"items": [], "total": 0}

    def test_issue_detail(self, client, project, importer, archive_bytes):
        _upload(client, project.id, archive_bytes, importer)
        res = client.get(_url(project.id, f"/issues/{TOPIC}"), headers=_headers(importer))
        assert res.status_code == 200
        data = res.get_json()
        assert [v["uuid"] for v in data["viewpoints"]] == ["v1"]
        assert data["viewpoints"][0]["snapshot"]["file_name"] == "snapshot.png"
        assert [c["uuid"] for c in data["comments"]] == ["c1"]
        assert data["comments"][0]["journal_id"] is not None
        notes = [j["notes"] for j in data["work_package"]["journals"]]
        assert notes == ["(Updated in BCF import)", "Reroute duct"]

    def test_issue_detail_not_found(self, client, project, importer):
        res = client.get(_url(project.id, "/issues/nope"), headers=_headers(importer))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


# ═════════════════════════════════════════════════════════════════════════════
# CLI
# ═════════════════════════════════════════════════════════════════════════════

class TestCli:
    def test_bcf_import_command(self, app, project, importer, archive_bytes, tmp_path):
        path = tmp_path / "coordination.bcfzip"
        path.write_bytes(archive_bytes)

        runner = app.test_cli_runner()
        result = runner.invoke(
            args=["bcf-import", str(project.id), str(path), "--user", "importer@example.com"],
        )

        assert result.exit_code == 0, result.output
        assert "completed" in result.output
        assert BcfIssue.query.filter_by(uuid=TOPIC).count() == 1

    def test_bcf_import_unknown_user(self, app, project, archive_bytes, tmp_path):
        path = tmp_path / "coordination.bcfzip"
        path.write_bytes(archive_bytes)

        result = app.test_cli_runner().invoke(
            args=["bcf-import", str(project.id), str(path), "--user", "ghost@example.com"],
        )

        assert result.exit_code != 0
        assert "ghost@example.com" in result.output
