"""API response data models."""

from pydantic import BaseModel


class WebhookAccepted(BaseModel):
    """Response when a notification was accepted into the queue."""

    messageId: str
    contentHash: str


class WebhookError(BaseModel):
    """Error response from the webhook endpoint."""

    error: str
    message: str
