"""
Provenance recorder backed by Redis.

One record per stored object version, keyed by the store's version id:

    provenance:{version_id} -> JSON ProvenanceRecord   (expires at expires_at)

Records are written once with ``SET NX EXAT`` in a single command: no
read-before-write, no update in place, expiry is left to Redis.
"""

import json
import time
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError, ConnectionError, TimeoutError

from archiver.errors import StorageError
from archiver.models.archive import ProvenanceRecord, StoredVersion
from archiver.models.notification import Notification
from archiver.utils.logging import get_logger
from archiver.utils.resilience import retry_with_backoff


logger = get_logger(__name__)

SECONDS_PER_DAY = 86400


class ProvenanceRecorder:
    """
    Writes and reads provenance records.

    Provides:
    - Connection pooling
    - Write-once record insertion with TTL
    - Record lookup by version id for audits
    """

    RECORD_KEY = "provenance:{version_id}"

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_days: Optional[int] = None,
        connection_timeout: int = 5
    ):
        """
        Initialize the recorder.

        Args:
            redis_url: Redis connection URL. If None, will load from settings.
            ttl_days: Record lifetime in days. If None, will load from settings.
            connection_timeout: Connection timeout in seconds
        """
        self._redis_url = redis_url
        self._ttl_days = ttl_days
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._connection_timeout = connection_timeout

    @property
    def ttl_seconds(self) -> int:
        if self._ttl_days is None:
            from archiver.config import settings
            self._ttl_days = settings.provenance_ttl_days
        return self._ttl_days * SECONDS_PER_DAY

    @retry_with_backoff(max_retries=3, base_delay=1.0, exceptions=(ConnectionError, TimeoutError))
    async def _ping(self) -> None:
        await self._client.ping()

    async def initialize(self) -> None:
        """
        Initialize Redis connection pool.

        Raises:
            StorageError: If Redis is unreachable after retries
        """
        if not self._redis_url:
            from archiver.config import settings
            self._redis_url = settings.redis_url

        self._pool = ConnectionPool.from_url(
            self._redis_url,
            max_connections=10,
            decode_responses=True,
            socket_timeout=self._connection_timeout,
            socket_connect_timeout=self._connection_timeout
        )
        self._client = redis.Redis(connection_pool=self._pool)

        try:
            await self._ping()
        except RedisError as e:
            raise StorageError(f"Failed to connect to Redis: {e}") from e

        logger.info("Redis connection pool initialized successfully")

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        logger.info("Redis connection pool closed")

    @asynccontextmanager
    async def _get_client(self):
        if not self._client:
            raise RuntimeError("Redis client not initialized. Call initialize() first.")

        yield self._client

    def _record_key(self, version_id: str) -> str:
        return self.RECORD_KEY.format(version_id=version_id)

    def build_record(self, version: StoredVersion, branch: str, notification: Notification) -> ProvenanceRecord:
        return ProvenanceRecord(
            version_id=version.version_id,
            object_key=version.object_key,
            project_key=notification.project_key,
            repository_name=notification.repository_name,
            branch_name=branch,
            user=notification.user_name,
            revisions=json.dumps(notification.revisions),
            notification=json.dumps(notification.payload),
            expires_at=int(time.time()) + self.ttl_seconds,
        )

    async def record(self, version: StoredVersion, branch: str, notification: Notification) -> ProvenanceRecord:
        """
        Write the provenance record of a stored version.

        Args:
            version: Object key and version id returned by the store
            branch: Branch the archive was produced from
            notification: Triggering notification

        Returns:
            The written record

        Raises:
            StorageError: If the write fails or a record for the version id exists
        """
        record = self.build_record(version, branch, notification)

        try:
            async with self._get_client() as client:
                written = await client.set(
                    self._record_key(record.version_id),
                    record.model_dump_json(),
                    nx=True,
                    exat=record.expires_at,
                )
        except RedisError as e:
            raise StorageError(f"Failed to record provenance for {version.object_key}: {e}") from e

        if not written:
            raise StorageError(
                f"Provenance record for version {record.version_id} of {record.object_key} already exists"
            )

        logger.info(
            f"Recorded provenance for {record.object_key} version {record.version_id}",
            extra={"object_key": record.object_key, "version_id": record.version_id}
        )
        return record

    async def get(self, version_id: str) -> Optional[ProvenanceRecord]:
        """
        Read a provenance record back.

        Returns:
            The record, or None if absent or expired
        """
        try:
            async with self._get_client() as client:
                data = await client.get(self._record_key(version_id))
        except RedisError as e:
            raise StorageError(f"Failed to read provenance for version {version_id}: {e}") from e

        if not data:
            return None
        return ProvenanceRecord.model_validate_json(data)
