"""Status catalog: read access to the work package status table."""

import logging

from bimtrack.models import db
from bimtrack.models.work_package import Status

logger = logging.getLogger(__name__)


def list_statuses() -> list[tuple[str, int]]:
    """Return every status as ``(name, id)``, ordered by position."""
    rows = (
        db.session.query(Status.name, Status.id)
        .order_by(Status.position, Status.id)
        .all()
    )
    return [(name, status_id) for name, status_id in rows]


def default_status_id() -> int | None:
    """Return the id of the default status, or None if none is flagged."""
    status = Status.default()
    if status is None:
        logger.warning("No default status configured")
        return None
    return status.id
