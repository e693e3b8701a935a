"""Business logic services package."""

from archiver.services.archive_producer import ArchiveProducer, build_object_key
from archiver.services.change_detector import ChangeDetector
from archiver.services.credentials import CredentialProvider
from archiver.services.dispatcher import EventDispatcher, open_dispatcher
from archiver.services.git_client import GitClient
from archiver.services.object_store import S3ObjectStore
from archiver.services.pipeline import ArchivalPipeline, build_pipeline
from archiver.services.provenance import ProvenanceRecorder
from archiver.services.queue_client import QueueClient, QueueDoesNotExistError
from archiver.services.repository_config import RepositoryConfigService

__all__ = [
    'ArchiveProducer',
    'build_object_key',
    'ChangeDetector',
    'CredentialProvider',
    'EventDispatcher',
    'open_dispatcher',
    'GitClient',
    'S3ObjectStore',
    'ArchivalPipeline',
    'build_pipeline',
    'ProvenanceRecorder',
    'QueueClient',
    'QueueDoesNotExistError',
    'RepositoryConfigService',
]
