"""
Webhook endpoint for VCS host notifications.

Accepts every notification, extracts its ordering key and forwards the
original JSON to the archive queue. The response only reflects acceptance
into the queue, never the archival outcome.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from archiver.models.api_response import WebhookAccepted, WebhookError
from archiver.services.queue_client import QueueClient, QueueDoesNotExistError, message_group_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_queue_client(request: Request) -> QueueClient:
    """Queue client created at application startup."""
    return request.app.state.queue_client


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=WebhookError(error=error, message=message).model_dump(),
    )


@router.post(
    "",
    response_model=WebhookAccepted,
    responses={400: {"model": WebhookError}, 500: {"model": WebhookError}},
)
async def receive_webhook(request: Request, queue: QueueClient = Depends(get_queue_client)):
    """
    Forward a notification to the archive queue.

    The message group is ``{projectKey}/{repositoryName}/{ref}`` so the queue
    delivers notifications for one branch one at a time, in order.

    Returns:
        200 with messageId and contentHash when enqueued,
        400 when the body is not a JSON object or the queue does not exist,
        500 otherwise
    """
    raw_body = await request.body()

    try:
        body = raw_body.decode("utf-8")
        payload = json.loads(body)
    except ValueError as e:
        logger.warning(f"Rejected webhook with invalid JSON: {e}")
        return _error(400, "Invalid payload", str(e))

    if not isinstance(payload, dict):
        return _error(400, "Invalid payload", "Body must be a JSON object")

    try:
        group_id = message_group_id(payload)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, lambda: queue.send(body, group_id))
    except QueueDoesNotExistError as e:
        logger.error(f"Queue does not exist: {e}")
        return _error(400, "Queue does not exist", str(e))
    except Exception as e:
        logger.error(f"Error forwarding webhook to queue: {e}", exc_info=True)
        return _error(500, "Internal server error", "Unable to enqueue notification")

    logger.info(
        f"Enqueued notification {result['MessageId']} for {group_id}",
        extra={"message_group_id": group_id}
    )
    return WebhookAccepted(messageId=result["MessageId"], contentHash=result["MD5OfMessageBody"])
