"""
FastAPI application entry point for webhook ingress.
"""

from fastapi import FastAPI

from archiver import __version__
from archiver.api import webhooks
from archiver.config import settings
from archiver.services.aws import create_session
from archiver.services.queue_client import QueueClient
from archiver.utils.logging import setup_logging, get_logger

# Configure structured logging
setup_logging(settings.log_level)

logger = get_logger(__name__)

app = FastAPI(
    title="Git Push Archiver",
    description="Receives VCS push notifications and queues them for archiving",
    version=__version__
)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "version": __version__}


app.include_router(webhooks.router)


@app.on_event("startup")
async def startup_event():
    """Create the queue client on application startup."""
    logger.info("Starting webhook ingress")

    session = create_session(settings.aws_region, settings.aws_profile)
    app.state.queue_client = QueueClient(session.client("sqs"), settings.require("sqs_queue_url"))
    logger.info("Queue client initialized")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down webhook ingress")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
