"""
SQS FIFO queue client.

The queue groups messages by ``{projectKey}/{repositoryName}/{ref}`` so at
most one notification per branch is in flight; that grouping is what keeps two
runs off the same working copy. Redrive and dead-lettering are queue policy.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import unquote_plus

from botocore.exceptions import ClientError

from archiver.utils.logging import get_logger


logger = get_logger(__name__)

QUEUE_MISSING_CODES = {
    "AWS.SimpleQueueService.NonExistentQueue",
    "QueueDoesNotExist",
}


class QueueDoesNotExistError(Exception):
    """Raised when the configured queue does not exist."""
    pass


@dataclass
class QueueMessage:
    message_id: str
    receipt_handle: str
    body: str


def _field(container: Any, name: str) -> Any:
    return container.get(name) if isinstance(container, dict) else None


def message_group_id(payload: Dict[str, Any]) -> str:
    """
    Build the ordering key of a webhook payload.

    Missing or mistyped parts become empty segments; this never raises.
    """
    project_key = _field(_field(payload, "project"), "projectKey")
    content = _field(payload, "content")
    repository_name = _field(_field(content, "repository"), "name")
    ref = _field(content, "ref")
    return "/".join("" if part is None else str(part) for part in (project_key, repository_name, ref))



def decode_message_body(body: str) -> str:
    """
    Return the JSON text of a message body.

    Bodies sent through a form-encoded SendMessage call may arrive still
    URL-encoded; raw JSON is returned unchanged.
    """
    stripped = body.lstrip()
    if stripped.startswith("{") or stripped.startswith("["):
        return body
    return unquote_plus(body)


class QueueClient:
    """Sends and receives notifications on the archive queue."""

    def __init__(self, sqs_client: Any, queue_url: str):
        """
        Args:
            sqs_client: boto3 SQS client
            queue_url: URL of the FIFO queue
        """
        self.sqs_client = sqs_client
        self.queue_url = queue_url

    def send(self, body: str, group_id: str) -> Dict[str, str]:
        """
        Enqueue a notification body.

        Returns:
            {"MessageId": ..., "MD5OfMessageBody": ...}

        Raises:
            QueueDoesNotExistError: If the queue is missing
            ClientError: For other SQS failures
        """
        try:
            response = self.sqs_client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=body,
                MessageGroupId=group_id,
                MessageDeduplicationId=hashlib.sha256(body.encode("utf-8")).hexdigest(),
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in QUEUE_MISSING_CODES:
                raise QueueDoesNotExistError(str(e)) from e
            raise

        return {
            "MessageId": response["MessageId"],
            "MD5OfMessageBody": response.get("MD5OfMessageBody", ""),
        }

    def receive(self, wait_seconds: int = 20) -> Optional[QueueMessage]:
        """Long-poll for a single message."""
        response = self.sqs_client.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=1,
            WaitTimeSeconds=wait_seconds,
        )
        messages = response.get("Messages") or []
        if not messages:
            return None

        message = messages[0]
        return QueueMessage(
            message_id=message["MessageId"],
            receipt_handle=message["ReceiptHandle"],
            body=message["Body"],
        )

    def delete(self, message: QueueMessage) -> None:
        self.sqs_client.delete_message(
            QueueUrl=self.queue_url,
            ReceiptHandle=message.receipt_handle,
        )
