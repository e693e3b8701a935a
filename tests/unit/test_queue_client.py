"""
Unit tests for the SQS queue client.
"""

import json
from unittest.mock import MagicMock
from urllib.parse import quote_plus

import pytest
from botocore.exceptions import ClientError

from archiver.services.queue_client import (
    QueueClient,
    QueueDoesNotExistError,
    QueueMessage,
    decode_message_body,
    message_group_id,
)


@pytest.fixture
def sqs_client():
    return MagicMock()


@pytest.fixture
def queue(sqs_client) -> QueueClient:
    return QueueClient(sqs_client, "https://sqs.example/123/archive.fifo")


def test_message_group_id(push_payload):
    assert message_group_id(push_payload) == "PROJ/web-app/refs/heads/main"


def test_message_group_id_tolerates_missing_fields():
    assert message_group_id({"type": 18}) == "//"


def test_message_group_id_tolerates_mistyped_fields():
    assert message_group_id({"project": "PROJ", "content": ["web-app"]}) == "//"
    assert message_group_id({"project": {"projectKey": 7}, "content": {"repository": "web-app", "ref": None}}) == "7//"


def test_decode_raw_json_body(push_payload):
    body = json.dumps(push_payload)

    assert decode_message_body(body) == body


def test_decode_url_encoded_body(push_payload):
    body = json.dumps(push_payload)

    assert json.loads(decode_message_body(quote_plus(body))) == push_payload


def test_send_deduplicates_on_content(queue, sqs_client):
    sqs_client.send_message.return_value = {"MessageId": "m-1", "MD5OfMessageBody": "md5"}

    queue.send('{"a": 1}', "PROJ/web-app/refs/heads/main")
    queue.send('{"a": 1}', "PROJ/web-app/refs/heads/main")
    queue.send('{"a": 2}', "PROJ/web-app/refs/heads/main")

    ids = [c.kwargs["MessageDeduplicationId"] for c in sqs_client.send_message.call_args_list]
    assert ids[0] == ids[1]
    assert ids[0] != ids[2]


def test_send_missing_queue(queue, sqs_client):
    sqs_client.send_message.side_effect = ClientError(
        {"Error": {"Code": "QueueDoesNotExist", "Message": "gone"}}, "SendMessage"
    )

    with pytest.raises(QueueDoesNotExistError):
        queue.send("{}", "g")


def test_send_other_error_propagates(queue, sqs_client):
    sqs_client.send_message.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "no"}}, "SendMessage"
    )

    with pytest.raises(ClientError):
        queue.send("{}", "g")


def test_receive_single_message(queue, sqs_client):
    sqs_client.receive_message.return_value = {
        "Messages": [{"MessageId": "m-1", "ReceiptHandle": "rh-1", "Body": "{}"}]
    }

    message = queue.receive(wait_seconds=5)

    assert message == QueueMessage(message_id="m-1", receipt_handle="rh-1", body="{}")
    sqs_client.receive_message.assert_called_once_with(
        QueueUrl="https://sqs.example/123/archive.fifo",
        MaxNumberOfMessages=1,
        WaitTimeSeconds=5,
    )


def test_receive_empty(queue, sqs_client):
    sqs_client.receive_message.return_value = {}

    assert queue.receive() is None


def test_delete(queue, sqs_client):
    queue.delete(QueueMessage(message_id="m-1", receipt_handle="rh-1", body="{}"))

    sqs_client.delete_message.assert_called_once_with(
        QueueUrl="https://sqs.example/123/archive.fifo",
        ReceiptHandle="rh-1",
    )
