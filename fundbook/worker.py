"""Background task definitions for asynchronous processing."""

import logging

from celery import Task
from celery.signals import after_setup_logger

from fundbook.core.celery_app import celery_app
from fundbook.core.config import get_settings
from fundbook.core.logging import setup_logging

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = ("created", "edited", "deleted", "cleared_pending")


@after_setup_logger.connect
def configure_worker_logging(**kwargs) -> None:
    settings = get_settings()
    setup_logging("worker", level=settings.LOG_LEVEL, debug=settings.DEBUG)


@celery_app.task(name="audit_log_event", bind=True)
def audit_log_event(
    self: Task,
    event_id: str | None,
    action: str,
    data: dict,
) -> dict:
    """
    Write a committed ledger mutation to the audit log.

    Queued only after the mutation's transaction has committed, so a
    rolled back request never leaves an audit entry behind.

    Args:
        event_id: UUID of the event, None for user-wide actions
        action: One of "created", "edited", "deleted", "cleared_pending"
        data: JSON-safe payload with keys:
            - user_id: UUID string
            - plus action specific values (request body, cleared count)

    Returns:
        dict: Result with success status and message
    """
    if action not in AUDIT_ACTIONS:
        logger.warning("Unknown audit action %r for event %s", action, event_id)

    message = f"Audit log for event {event_id}: {action} {data}"
    logger.info("[AUDIT TASK %s] %s", self.request.id, message)

    return {
        "success": True,
        "message": message,
        "task_id": self.request.id,
        "event_id": event_id,
        "action": action,
    }
