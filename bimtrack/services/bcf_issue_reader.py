"""
BCF issue reader: merges one topic's markup into the issue graph.

Steps (each safe to re-run on the same archive):
  1. find or initialize the BcfIssue keyed by (topic uuid, project)
  2. replace the stored markup
  3. append viewpoints whose uuid is not yet known
  4. create or update the bound work package
  5. append comments whose uuid is not yet known, mirroring them as notes

Transaction policy: flush() only. The archive importer commits per topic.
Work package and note failures are logged and never abort the topic, so
whatever was merged locally stays in the session.
"""

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from bimtrack.core.exceptions import (
    CommentSyncFailure,
    MissingEntryError,
    ReconciliationError,
    WorkItemSyncFailure,
)
from bimtrack.models import db
from bimtrack.models.bcf import BcfComment, BcfIssue, BcfViewpoint
from bimtrack.models.work_package import Type
from bimtrack.services import attachment_service, permission_service, work_package_service
from bimtrack.services.bcf_markup import MarkupExtractor

logger = logging.getLogger(__name__)

DEFAULT_TYPE_NAME = "Issue"
DEFAULT_IMPORT_NOTE = "(Updated in BCF import)"


def find_or_initialize_issue(topic_uuid: str, project) -> BcfIssue:
    """Return the issue for ``(topic_uuid, project)``, building one if absent."""
    issue = BcfIssue.query.filter_by(uuid=topic_uuid, project_id=project.id).first()
    if issue is None:
        issue = BcfIssue(uuid=topic_uuid, project_id=project.id)
        db.session.add(issue)
    return issue


def resolve_comment_author(candidate, project, fallback):
    """Pick who a mirrored comment is attributed to.

    The matched project member when they may add notes, ``fallback``
    (the importing user) otherwise.
    """
    if candidate is None:
        return fallback
    if not permission_service.can_add_notes(candidate, project):
        return fallback
    return candidate


class IssueReader:
    """Reconciles one ``<topic>/markup.bcf`` entry into a BcfIssue.

    Args:
        project: Target Project.
        archive: BcfArchive the entry belongs to (read-only, shareable).
        entry: ArchiveEntry of the topic's markup file.
        current_user: User performing the import; fallback comment author.
        statuses: StatusMap shared across the import run. Built from the
                  status catalog when omitted.
    """

    def __init__(self, project, archive, entry, current_user, statuses=None):
        self.project = project
        self.archive = archive
        self.entry = entry
        self.user = current_user

        self.topic_uuid = entry.topic_uuid
        if not self.topic_uuid:
            raise ReconciliationError(f"Entry {entry.name} is not inside a topic folder")

        self.extractor = MarkupExtractor(statuses)
        self.markup = entry.read()
        self.document = self.extractor.parse(self.markup, source=entry.name)

        type_name = current_app.config.get("BCF_WORK_PACKAGE_TYPE", DEFAULT_TYPE_NAME)
        self.type = Type.query.filter_by(name=type_name).first()
        if self.type is None:
            logger.warning("Work package type %r not found; work package sync will fail", type_name)

        self.issue = find_or_initialize_issue(self.topic_uuid, project)

    def extract(self) -> BcfIssue:
        """Run all reconciliation steps and return the merged issue."""
        try:
            self.issue.markup = self.markup
            self.build_viewpoints()
            db.session.flush()

            self.synchronize_with_work_package()
            self.build_comments()
            db.session.flush()
        except SQLAlchemyError as exc:
            raise ReconciliationError(
                f"Could not persist BCF {self.topic_uuid}: {exc}", topic_uuid=self.topic_uuid,
            ) from exc

        logger.info(
            "Reconciled BCF %s into issue %s", self.topic_uuid, self.issue.id,
            extra={"project_id": self.project.id, "topic_uuid": self.topic_uuid,
                   "issue_id": self.issue.id, "event_type": "bcf_topic_reconciled"},
        )
        return self.issue

    # ── Viewpoints ───────────────────────────────────────────────────────

    def build_viewpoints(self):
        for vp in self.document.viewpoints:
            if not vp.uuid:
                logger.warning("Skipping viewpoint without Guid in BCF %s", self.topic_uuid)
                continue
            if self.issue.viewpoints.has_uuid(vp.uuid):
                continue

            viewpoint = BcfViewpoint(
                uuid=vp.uuid,
                viewpoint=self.read_entry(vp.viewpoint),
                viewpoint_name=vp.viewpoint,
            )
            snapshot = self.as_file_entry(vp.snapshot)
            if snapshot is not None:
                try:
                    viewpoint.snapshot = attachment_service.store(
                        snapshot, snapshot.filename, author=self.user,
                    )
                finally:
                    snapshot.close()
            self.issue.viewpoints.append(viewpoint)

    # ── Work package ─────────────────────────────────────────────────────

    def synchronize_with_work_package(self):
        try:
            call = self._sync_work_package()
        except WorkItemSyncFailure as failure:
            logger.error(
                "Failed to synchronize BCF %s with work package: %s",
                self.topic_uuid, "; ".join(failure.errors),
                extra={"project_id": self.project.id, "topic_uuid": self.topic_uuid,
                       "event_type": "bcf_work_package_sync_failed"},
            )
            return

        self.issue.work_package = call.result
        note = current_app.config.get("BCF_IMPORT_NOTE", DEFAULT_IMPORT_NOTE)
        self.create_comment(self.user, note)

    def _sync_work_package(self):
        if self.issue.work_package is not None:
            call = work_package_service.update_work_package(
                self.issue.work_package, self.work_package_attributes(), self.user,
            )
        else:
            call = work_package_service.create_work_package(
                self.work_package_attributes(), self.user,
            )
        if not call.success:
            raise WorkItemSyncFailure(self.topic_uuid, call.errors)
        return call

    def work_package_attributes(self) -> dict:
        attributes = self.extractor.work_package_attributes(self.document)
        attributes.update(project=self.project, type=self.type)
        return attributes

    # ── Comments ─────────────────────────────────────────────────────────

    def build_comments(self):
        for record in self.document.comments:
            if not record.uuid:
                logger.warning("Skipping comment without Guid in BCF %s", self.topic_uuid)
                continue
            if self.issue.comments.has_uuid(record.uuid):
                continue

            comment = BcfComment(
                uuid=record.uuid,
                date=record.date,
                author=record.author,
                comment=record.comment,
            )
            self.issue.comments.append(comment)

            # Cannot link to a journal when no work package
            if self.issue.work_package is None:
                continue

            author = self.get_comment_author(record.author)
            journal = self.create_comment(author, record.comment)
            if journal is not None:
                comment.journal = journal

    def get_comment_author(self, email: str):
        candidate = permission_service.find_member_by_email(self.project, email)
        return resolve_comment_author(candidate, self.project, self.user)

    def create_comment(self, author, content: str):
        """Append a note to the bound work package; None if it failed."""
        call = work_package_service.add_note(self.issue.work_package, author, content)
        if call.success:
            return call.result

        failure = CommentSyncFailure(self.topic_uuid, call.errors)
        logger.error(
            "%s", failure,
            extra={"project_id": self.project.id, "topic_uuid": self.topic_uuid,
                   "work_package_id": self.issue.work_package_id,
                   "event_type": "bcf_comment_sync_failed"},
        )
        return None

    # ── Archive access ───────────────────────────────────────────────────

    def as_file_entry(self, filename: str):
        """Stream wrapper for ``<topic>/<filename>``; None when absent or blank."""
        if not filename:
            return None
        entry = self.archive.find_entry(self.archive.entry_path(self.topic_uuid, filename))
        if entry is None:
            logger.warning("Snapshot %s missing from BCF %s", filename, self.topic_uuid)
            return None
        return entry.open(filename=filename)

    def read_entry(self, filename: str) -> bytes:
        path = self.archive.entry_path(self.topic_uuid, filename)
        entry = self.archive.find_entry(path) if filename else None
        if entry is None:
            raise MissingEntryError(path, topic_uuid=self.topic_uuid)
        return entry.read()


def reconcile(project, archive, entry, current_user, statuses=None) -> BcfIssue:
    """Merge one markup entry into the project's BCF issues."""
    return IssueReader(project, archive, entry, current_user, statuses=statuses).extract()
