"""
Event dispatcher.

Routes a notification to the handler for its kind. Only pushes are
archived; other known kinds and unknown kinds are logged and dropped.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from archiver.errors import InvalidNotificationError
from archiver.models.archive import PipelineResult
from archiver.models.notification import EventType, Notification
from archiver.services.pipeline import ArchivalPipeline, build_pipeline
from archiver.services.provenance import ProvenanceRecorder
from archiver.services.queue_client import decode_message_body
from archiver.utils.logging import get_logger, log_notification


logger = get_logger(__name__)


class EventDispatcher:
    """Dispatches notifications by event kind."""

    def __init__(self, pipeline: ArchivalPipeline):
        self.pipeline = pipeline

    async def dispatch(self, notification: Notification) -> Optional[PipelineResult]:
        """
        Handle one notification.

        Returns:
            The pipeline result for pushes, None for dropped kinds
        """
        kind = notification.kind
        log_notification(
            logger,
            project_key=notification.project_key,
            repository=notification.repository_name,
            branch=notification.branch,
            event_type=kind.name if kind else str(notification.type),
        )

        match kind:
            case EventType.GIT_PUSHED:
                if not notification.repository_name or not notification.branch:
                    raise InvalidNotificationError(
                        f"Push notification {notification.id} names no repository or branch"
                    )
                return await self.pipeline.run(notification)
            case EventType.PULL_REQUEST_CREATED | EventType.PULL_REQUEST_UPDATED:
                logger.warning(f"No archive handler for event type {kind.name}, dropping")
                return None
            case None:
                logger.warning(f"No event handler found for event type: {notification.type}")
                return None

    async def dispatch_message(self, body: str) -> Optional[PipelineResult]:
        """
        Parse a queue message body and dispatch it.

        Raises:
            ValueError: If the body is not a notification JSON object
            InvalidNotificationError: If a push names no repository or branch
        """
        payload = json.loads(decode_message_body(body))
        if not isinstance(payload, dict):
            raise ValueError("Notification body must be a JSON object")
        return await self.dispatch(Notification.from_payload(payload))


@asynccontextmanager
async def open_dispatcher(settings: Any, session: Any = None) -> AsyncIterator[EventDispatcher]:
    """
    Build a dispatcher with live clients and release them afterwards.

    Raises:
        ConfigurationError: If a required setting is missing
        StorageError: If the metadata store is unreachable
    """
    provenance = ProvenanceRecorder(settings.redis_url, settings.provenance_ttl_days)
    pipeline = build_pipeline(settings, provenance, session=session)
    await provenance.initialize()
    try:
        yield EventDispatcher(pipeline)
    finally:
        await provenance.close()
