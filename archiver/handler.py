"""
Queue record handler.

Entry point for a queue-triggered function: receives an SQS event holding
exactly one record and archives the notification in it. A failed record is
reported in ``batchItemFailures`` so the queue redrives only that item, up
to the queue's receive limit, before dead-lettering it.

Run locally against a saved queue event with::

    python -m archiver.handler sqs-event.json
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from archiver.config import settings
from archiver.errors import ConfigurationError
from archiver.services.dispatcher import EventDispatcher, open_dispatcher
from archiver.utils.logging import get_logger, log_error_with_context, setup_logging


setup_logging(settings.log_level)
logger = get_logger(__name__)


async def process_records(records: List[Dict[str, Any]], dispatcher: EventDispatcher) -> Dict[str, Any]:
    """
    Process queue records and collect per-record failures.

    Raises:
        ConfigurationError: If the batch does not hold exactly one record
    """
    if len(records) != 1:
        raise ConfigurationError(
            f"Expected exactly 1 record per invocation to preserve per-branch ordering, "
            f"got {len(records)}; set the queue trigger batch size to 1"
        )

    failures: List[Dict[str, str]] = []
    for record in records:
        message_id = record.get("messageId", "")
        try:
            await dispatcher.dispatch_message(record["body"])
        except Exception as e:
            log_error_with_context(logger, f"Error processing queue message {message_id}: {e}", e,
                                   message_id=message_id)
            failures.append({"itemIdentifier": message_id})

    return {"batchItemFailures": failures}


async def handle_event(event: Dict[str, Any], dispatcher: Optional[EventDispatcher] = None) -> Dict[str, Any]:
    records = event.get("Records") or []
    if dispatcher is not None:
        return await process_records(records, dispatcher)

    async with open_dispatcher(settings) as live_dispatcher:
        return await process_records(records, live_dispatcher)


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Queue trigger entry point.

    Args:
        event: SQS event with a ``Records`` list
        context: Runtime context (unused)

    Returns:
        Partial batch response
    """
    logger.info("Received queue event", extra={"record_count": len(event.get("Records") or [])})
    return asyncio.run(handle_event(event))


def main(argv: Optional[List[str]] = None) -> int:
    """Replay a saved queue event file through the pipeline."""
    parser = argparse.ArgumentParser(description="Replay a saved SQS event through the archive pipeline")
    parser.add_argument("event_file", help="Path to an SQS event JSON file")
    args = parser.parse_args(argv)

    with open(args.event_file, encoding="utf-8") as f:
        event = json.load(f)

    result = handler(event, None)
    print(json.dumps(result, indent=2))
    return 1 if result["batchItemFailures"] else 0


if __name__ == "__main__":
    sys.exit(main())
