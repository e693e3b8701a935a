"""
Archival pipeline.

Consumes one push notification and drives it through:

    idle -> config_loaded -> filtered -> credentials_ready -> synced -> archived
         -> per archive: compared -> uploaded | skipped -> recorded
         -> done | failed

Whole-run steps (credentials, sync, archive creation) abort the run before
anything is stored. Per-archive steps run concurrently and fail
independently; the run fails after every archive has finished if any one of
them failed. Provenance is written only after the object store returned a
version id, so a run cut short never leaves a record without an object.

Precondition: no two runs operate on the same (project, repository, branch)
at once. The queue's per-branch message grouping guarantees this; the
working-copy path is not locked here.
"""

import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from archiver.errors import InvalidNotificationError, PipelineError, StorageError
from archiver.models.archive import (
    Archive,
    ArchiveOutcome,
    ArchiveStatus,
    PipelineResult,
    PipelineState,
    StoredVersion,
)
from archiver.models.notification import Notification
from archiver.services.archive_producer import ArchiveProducer
from archiver.services.aws import create_session
from archiver.services.change_detector import ChangeDetector
from archiver.services.credentials import CredentialProvider
from archiver.services.git_client import GitClient
from archiver.services.object_store import S3ObjectStore
from archiver.services.provenance import ProvenanceRecorder
from archiver.services.repository_config import RepositoryConfigService
from archiver.utils.logging import ContextLoggerAdapter, get_logger, log_error_with_context, log_step_transition
from archiver.utils.metrics import RunMetrics, track_api_call
from archiver.utils.resilience import ErrorRecoveryManager


logger = get_logger(__name__)

UNSAFE_SEGMENTS = {".", ".."}


def validate_identity(project_key: str, repository_name: str, branch: str) -> None:
    """
    Reject identities that cannot be used as path segments.

    Project and repository must be single non-empty segments; the branch may
    span several segments (``feature/x``) but none may be empty, ``.`` or ``..``.

    Raises:
        InvalidNotificationError: On the first unsafe value
    """
    for label, value in (("project key", project_key), ("repository name", repository_name)):
        if not value or value in UNSAFE_SEGMENTS or "/" in value or "\\" in value or "\0" in value:
            raise InvalidNotificationError(f"Unsafe {label}: {value!r}")

    segments = branch.split("/")
    if "\\" in branch or "\0" in branch or any(not s or s in UNSAFE_SEGMENTS for s in segments):
        raise InvalidNotificationError(f"Unsafe branch: {branch!r}")


async def run_in_thread(func: Callable, *args, **kwargs) -> Any:
    """Run a blocking call (git, boto3, zip I/O) off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: func(*args, **kwargs))


class ArchivalPipeline:
    """Turns one push notification into stored, deduplicated archive versions."""

    def __init__(
        self,
        config_service: RepositoryConfigService,
        credential_provider: CredentialProvider,
        git_client: GitClient,
        object_store: S3ObjectStore,
        provenance: ProvenanceRecorder,
        remote_url_template: str,
        git_server: str,
        work_dir: Path,
        change_detector: Optional[ChangeDetector] = None,
    ):
        """
        Args:
            config_service: Per-repository archive policy loader
            credential_provider: SSH key fetcher
            git_client: Working copy operations
            object_store: Versioned archive storage
            provenance: Metadata recorder
            remote_url_template: Format string with {server}, {project_key}, {repository}
            git_server: Value substituted for {server}
            work_dir: Root of the working copies
            change_detector: Archive comparison; a default detector when None
        """
        self.config_service = config_service
        self.credential_provider = credential_provider
        self.git_client = git_client
        self.object_store = object_store
        self.provenance = provenance
        self.remote_url_template = remote_url_template
        self.git_server = git_server
        self.work_dir = Path(work_dir)
        self.change_detector = change_detector or ChangeDetector()
        self.archive_producer = ArchiveProducer(git_client)

    def remote_url(self, project_key: str, repository_name: str) -> str:
        return self.remote_url_template.format(
            server=self.git_server,
            project_key=project_key,
            repository=repository_name,
        )

    def working_copy_path(self, project_key: str, repository_name: str, branch: str) -> Path:
        """
        Deterministic working copy location of a branch.

        Raises:
            InvalidNotificationError: If the identity is unsafe or the path leaves work_dir
        """
        validate_identity(project_key, repository_name, branch)

        path = self.work_dir / project_key / repository_name / branch
        root = self.work_dir.resolve()
        resolved = path.resolve()
        if resolved == root or root not in resolved.parents:
            raise InvalidNotificationError(f"Working copy {path} resolves outside {root}")
        return path

    async def run(self, notification: Notification) -> PipelineResult:
        """
        Archive the branch a push notification refers to.

        Returns:
            PipelineResult in state DONE (possibly skipped, possibly with no uploads)

        Raises:
            ArchiverError: If a whole-run step fails
            PipelineError: If any archive failed, after all archives finished
        """
        project_key = notification.project_key
        repository_name = notification.repository_name
        branch = notification.branch

        run_logger = logger.with_context(
            project_key=project_key, repository=repository_name, branch=branch
        )
        metrics = RunMetrics(project_key, repository_name, branch)
        metrics.start()
        state = PipelineState.IDLE

        try:
            validate_identity(project_key, repository_name, branch)
            config = self.config_service.load(project_key, repository_name)
            state = PipelineState.CONFIG_LOADED
            log_step_transition(run_logger, state.value, "completed")

            if not config.triggers_on(branch):
                run_logger.info(f"Branch {branch} is not configured to trigger, skip")
                log_step_transition(run_logger, PipelineState.FILTERED.value, "skipped")
                metrics.complete(PipelineState.DONE.value)
                return PipelineResult(state=PipelineState.DONE, skipped=True)
            state = PipelineState.FILTERED

            async with track_api_call(metrics, "secretsmanager", "GetSecretValue",
                                      self.credential_provider.secret_name, run_logger):
                ssh_keys = await run_in_thread(self.credential_provider.fetch)
            state = PipelineState.CREDENTIALS_READY
            log_step_transition(run_logger, state.value, "completed")

            working_copy = self.working_copy_path(project_key, repository_name, branch)
            await run_in_thread(
                self.git_client.sync,
                ssh_keys,
                self.remote_url(project_key, repository_name),
                branch,
                working_copy,
            )
            state = PipelineState.SYNCED
            log_step_transition(run_logger, state.value, "completed", working_copy=str(working_copy))

            run_dir = Path(tempfile.mkdtemp(prefix="archiver-run-"))
            try:
                archives = await run_in_thread(
                    self.archive_producer.produce,
                    working_copy,
                    config,
                    project_key,
                    repository_name,
                    branch,
                    run_dir / "archives",
                )
                state = PipelineState.ARCHIVED
                metrics.record_archives_produced(len(archives))
                log_step_transition(run_logger, state.value, "completed", archive_count=len(archives))

                outcomes = await asyncio.gather(*(
                    self._process_archive(archive, branch, notification, run_dir / f"previous-{index}",
                                          metrics, run_logger)
                    for index, archive in enumerate(archives)
                ))
            finally:
                shutil.rmtree(run_dir, ignore_errors=True)

        except Exception as e:
            log_error_with_context(run_logger, f"Pipeline failed after state {state.value}: {e}", e,
                                   step=state.value)
            metrics.complete(PipelineState.FAILED.value, error_message=str(e))
            raise

        outcomes = list(outcomes)
        failed = [o for o in outcomes if o.status == ArchiveStatus.FAILED]
        ErrorRecoveryManager.handle_partial_failure(
            "archive_upload",
            total_items=len(outcomes),
            successful_items=len(outcomes) - len(failed),
            errors=[o.error.message for o in failed if o.error],
            context={"project_key": project_key, "repository": repository_name, "branch": branch},
        )

        if failed:
            metrics.complete(PipelineState.FAILED.value, error_message=f"{len(failed)} archive(s) failed")
            raise PipelineError(
                f"{len(failed)} of {len(outcomes)} archive(s) failed for "
                f"{project_key}/{repository_name}@{branch}",
                outcomes,
            )

        metrics.complete(PipelineState.DONE.value)
        log_step_transition(run_logger, PipelineState.DONE.value, "completed")
        return PipelineResult(state=PipelineState.DONE, outcomes=outcomes)

    async def _process_archive(
        self,
        archive: Archive,
        branch: str,
        notification: Notification,
        scratch_dir: Path,
        metrics: RunMetrics,
        run_logger: ContextLoggerAdapter,
    ) -> ArchiveOutcome:
        """
        Compare, upload and record one archive.

        Never raises for ordinary failures: the error is captured in the
        returned outcome so sibling archives are unaffected.
        """
        archive_logger = run_logger.with_context(object_key=archive.object_key)
        step = "fetch_previous"
        version_id: Optional[str] = None

        try:
            try:
                async with track_api_call(metrics, "s3", "GetObject", archive.object_key, archive_logger):
                    previous = await run_in_thread(
                        self.object_store.download_latest,
                        archive.object_key,
                        scratch_dir / "previous.zip",
                    )
            except Exception as e:
                archive_logger.warning(f"Treating previous version as absent: {e}")
                previous = None

            step = "compare"
            unchanged = await run_in_thread(self.change_detector.is_unchanged, previous, archive.file_path)
            if unchanged:
                archive_logger.info(f"No changes detected for {archive.object_key}, skipping upload")
                log_step_transition(archive_logger, "skipped", "completed")
                metrics.record_outcome(ArchiveStatus.UNCHANGED.value)
                return ArchiveOutcome(object_key=archive.object_key, status=ArchiveStatus.UNCHANGED)

            step = "upload"
            async with track_api_call(metrics, "s3", "PutObject", archive.object_key, archive_logger):
                version_id = await run_in_thread(self.object_store.put, archive.object_key, archive.file_path)
            if not version_id:
                raise StorageError(
                    f"Upload of {archive.object_key} returned no version id; "
                    "is versioning enabled on the bucket?"
                )
            log_step_transition(archive_logger, "uploaded", "completed", version_id=version_id)

            step = "record_provenance"
            async with track_api_call(metrics, "redis", "SET", archive.object_key, archive_logger):
                await self.provenance.record(
                    StoredVersion(object_key=archive.object_key, version_id=version_id),
                    branch,
                    notification,
                )
            log_step_transition(archive_logger, "recorded", "completed", version_id=version_id)

            metrics.record_outcome(ArchiveStatus.UPLOADED.value)
            return ArchiveOutcome(
                object_key=archive.object_key,
                status=ArchiveStatus.UPLOADED,
                version_id=version_id,
            )

        except Exception as e:
            if version_id:
                archive_logger.error(
                    f"Object {archive.object_key} version {version_id} was stored without a provenance record"
                )
            log_error_with_context(archive_logger, f"Archive {archive.object_key} failed at {step}: {e}", e,
                                   step=step)
            metrics.record_outcome(ArchiveStatus.FAILED.value)
            return ArchiveOutcome(
                object_key=archive.object_key,
                status=ArchiveStatus.FAILED,
                version_id=version_id,
                error=ErrorRecoveryManager.build_error_record(e, step, archive.object_key),
            )

        finally:
            shutil.rmtree(scratch_dir, ignore_errors=True)
            archive.file_path.unlink(missing_ok=True)


def build_pipeline(settings: Any, provenance: ProvenanceRecorder, session: Any = None) -> ArchivalPipeline:
    """
    Construct a pipeline with real clients from settings.

    Args:
        settings: Application settings
        provenance: An initialized provenance recorder
        session: boto3 session; built from settings when None

    Raises:
        ConfigurationError: If a required setting is missing
    """
    bucket = settings.require("s3_bucket_name")
    secret_name = settings.require("ssh_secret_name")
    git_server = settings.require("git_server_url")

    if session is None:
        session = create_session(settings.aws_region, settings.aws_profile)

    return ArchivalPipeline(
        config_service=RepositoryConfigService(settings.archive_configs_dir),
        credential_provider=CredentialProvider(session.client("secretsmanager"), secret_name),
        git_client=GitClient(clone_depth=settings.clone_depth),
        object_store=S3ObjectStore(session.client("s3"), bucket),
        provenance=provenance,
        remote_url_template=settings.git_remote_url_template,
        git_server=git_server,
        work_dir=settings.work_dir,
    )
