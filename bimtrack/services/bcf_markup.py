"""
BCF markup extraction: turns one ``markup.bcf`` document into plain data.

Only the sections the importer needs are extracted; the document is not
validated against the BCF schema, it just has to be well-formed XML.

    Markup
    ├── Topic @TopicStatus
    │   ├── Title
    │   └── Description
    ├── Comment @Guid        (0..n)  Date, Author, Comment
    └── Viewpoints @Guid     (0..n)  Viewpoint, Snapshot
"""

import logging
from dataclasses import dataclass, field
from xml.etree import ElementTree as ET

from bimtrack.core.exceptions import MalformedXmlError
from bimtrack.services import status_service

logger = logging.getLogger(__name__)

ROOT_TAG = "Markup"


@dataclass(frozen=True)
class ViewpointRecord:
    uuid: str
    viewpoint: str
    snapshot: str = ""


@dataclass(frozen=True)
class CommentRecord:
    uuid: str
    date: str
    author: str
    comment: str


@dataclass(frozen=True)
class MarkupDocument:
    """Parsed, read-only view of one topic's markup."""

    title: str = ""
    description: str = ""
    status_token: str = ""
    viewpoints: tuple[ViewpointRecord, ...] = field(default_factory=tuple)
    comments: tuple[CommentRecord, ...] = field(default_factory=tuple)


class StatusMap:
    """Status name → id lookup with a fallback default id.

    Built once per import run and shared by reference; it reflects the
    status table at construction time and never re-queries it.
    """

    def __init__(self, mapping: dict[str, int], default_id: int | None) -> None:
        self._mapping = dict(mapping)
        self.default_id = default_id

    @classmethod
    def from_catalog(cls, catalog=status_service) -> "StatusMap":
        return cls(dict(catalog.list_statuses()), catalog.default_status_id())

    def resolve(self, token: str) -> int | None:
        """Exact, case-sensitive match; unknown tokens map to the default."""
        return self._mapping.get(token, self.default_id)

    def __contains__(self, token):
        return token in self._mapping

    def __len__(self):
        return len(self._mapping)


def _text(node, path: str) -> str:
    return node.findtext(path, default="") or ""


class MarkupExtractor:
    """Parses markup documents and derives work package attributes."""

    def __init__(self, statuses: StatusMap | None = None) -> None:
        self.statuses = statuses if statuses is not None else StatusMap.from_catalog()

    def parse(self, xml_bytes: bytes, source: str | None = None) -> MarkupDocument:
        """Parse markup bytes.

        Raises:
            MalformedXmlError: if the bytes are not well-formed XML.
        """
        try:
            root = ET.fromstring(xml_bytes)
        except ET.ParseError as exc:
            raise MalformedXmlError(source, str(exc)) from exc

        if root.tag != ROOT_TAG:
            logger.warning("Markup %s has root <%s>, expected <%s>", source or "", root.tag, ROOT_TAG)
            return MarkupDocument()

        topic = root.find("Topic")
        return MarkupDocument(
            title=_text(root, "Topic/Title"),
            description=_text(root, "Topic/Description"),
            status_token=topic.get("TopicStatus", "") if topic is not None else "",
            viewpoints=tuple(
                ViewpointRecord(
                    uuid=node.get("Guid", ""),
                    viewpoint=_text(node, "Viewpoint"),
                    snapshot=_text(node, "Snapshot"),
                )
                for node in root.findall("Viewpoints")
            ),
            comments=tuple(
                CommentRecord(
                    uuid=node.get("Guid", ""),
                    date=_text(node, "Date"),
                    author=_text(node, "Author"),
                    comment=_text(node, "Comment"),
                )
                for node in root.findall("Comment")
            ),
        )

    def resolve_status(self, token: str) -> int | None:
        if token not in self.statuses:
            logger.debug("Unknown topic status %r, using default", token)
        return self.statuses.resolve(token)

    def work_package_attributes(self, document: MarkupDocument) -> dict:
        """Minimal attribute set forwarded to the work package service.

        Project and type are filled in by the caller.
        """
        return {
            "subject": document.title,
            "description": document.description,
            "status_id": self.resolve_status(document.status_token),
        }
