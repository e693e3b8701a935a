"""
Worker process for the archive queue.

Long-polls the queue one message at a time and runs the archival pipeline
for it. A message is deleted only after it was processed successfully;
otherwise it becomes visible again after the queue's visibility timeout and
is redelivered, up to the queue's receive limit, before being dead-lettered.
Implements graceful shutdown on SIGTERM/SIGINT.
"""

import asyncio
import signal
import sys
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from archiver.config import settings
from archiver.services.aws import create_session
from archiver.services.dispatcher import EventDispatcher, open_dispatcher
from archiver.services.queue_client import QueueClient, QueueMessage
from archiver.utils.logging import setup_logging, get_logger
from archiver.utils.resilience import retry_with_backoff

# Configure structured logging
setup_logging(settings.log_level.upper())
logger = get_logger(__name__)


class Worker:
    """Worker process that polls the queue and archives pushes."""

    def __init__(self, queue: QueueClient, dispatcher: EventDispatcher, wait_seconds: int = 20):
        self.queue = queue
        self.dispatcher = dispatcher
        self.wait_seconds = wait_seconds
        self.running = False
        self.current_message: Optional[QueueMessage] = None

    async def start(self) -> None:
        """Register signal handlers and process messages until stopped."""
        logger.info("Starting worker process...")
        self.running = True
        self._register_signal_handlers()
        await self._process_messages()

    def stop(self) -> None:
        """
        Stop the worker after the current message.

        A message in progress is finished, not abandoned.
        """
        if self.current_message:
            logger.info(f"Waiting for current message {self.current_message.message_id} to complete...")
        self.running = False

    @retry_with_backoff(max_retries=5, base_delay=1.0, max_delay=30.0, exceptions=(ClientError, BotoCoreError))
    async def _receive(self) -> Optional[QueueMessage]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.queue.receive(self.wait_seconds))

    async def _process_messages(self) -> None:
        """Main polling loop."""
        logger.info("Starting message processing loop...")

        while self.running:
            try:
                message = await self._receive()
                if message is None:
                    continue

                self.current_message = message
                await self.process_message(message)
                self.current_message = None

            except asyncio.CancelledError:
                logger.info("Message processing cancelled")
                break

        logger.info("Message processing loop stopped")

    async def process_message(self, message: QueueMessage) -> bool:
        """
        Process one message, deleting it on success.

        Returns:
            True if the message was processed and deleted
        """
        logger.info(f"Processing message {message.message_id}")

        try:
            await self.dispatcher.dispatch_message(message.body)
        except Exception as e:
            logger.error(
                f"Failed to process message {message.message_id}, leaving it for redelivery: {e}",
                exc_info=True
            )
            return False

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, lambda: self.queue.delete(message))
        logger.info(f"Message {message.message_id} processed and deleted")
        return True

    def _register_signal_handlers(self) -> None:
        """Register signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, self._handle_signal, signum)

        logger.info("Signal handlers registered (SIGTERM, SIGINT)")

    def _handle_signal(self, signum: int) -> None:
        logger.info(f"Received signal {signal.Signals(signum).name}, initiating graceful shutdown...")
        self.stop()


async def main(session: Any = None) -> None:
    """Main entry point for worker process."""
    logger.info("Worker process starting...")

    if session is None:
        session = create_session(settings.aws_region, settings.aws_profile)
    queue = QueueClient(session.client("sqs"), settings.require("sqs_queue_url"))

    async with open_dispatcher(settings, session=session) as dispatcher:
        worker = Worker(queue, dispatcher, wait_seconds=settings.worker_wait_seconds)
        await worker.start()

    logger.info("Worker process stopped")


def main_sync() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Worker process failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main_sync()
