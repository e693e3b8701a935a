"""
Versioned object store backed by S3.

The bucket has versioning enabled: every put under a key creates a new
version and returns its VersionId; nothing is overwritten in place.
"""

from pathlib import Path
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from archiver.errors import StorageError
from archiver.utils.logging import get_logger


logger = get_logger(__name__)

MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}


class S3ObjectStore:
    """Reads and writes archive objects in a versioned S3 bucket."""

    def __init__(self, s3_client: Any, bucket: str):
        """
        Args:
            s3_client: boto3 S3 client
            bucket: Bucket name
        """
        self.s3_client = s3_client
        self.bucket = bucket

    def download_latest(self, object_key: str, destination: Path) -> Optional[Path]:
        """
        Download the current version of ``object_key``.

        Any failure is reported as "no previous version": the caller then
        uploads unconditionally, which is safe.

        Returns:
            The downloaded file, or None if absent or unreadable
        """
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            self.s3_client.download_file(self.bucket, object_key, str(destination))
            return destination
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in MISSING_OBJECT_CODES:
                logger.info(f"No stored version of {object_key} yet", extra={"object_key": object_key})
            else:
                logger.warning(
                    f"Failed to download s3://{self.bucket}/{object_key}: {e}",
                    extra={"object_key": object_key}
                )
        except (BotoCoreError, OSError) as e:
            logger.warning(
                f"Failed to download s3://{self.bucket}/{object_key}: {e}",
                extra={"object_key": object_key}
            )

        destination.unlink(missing_ok=True)
        return None

    def put(self, object_key: str, source: Path) -> Optional[str]:
        """
        Upload ``source`` as a new version of ``object_key``.

        Returns:
            The VersionId assigned by the store, or None if it returned none

        Raises:
            StorageError: If the upload fails
        """
        try:
            with source.open("rb") as body:
                response = self.s3_client.put_object(
                    Bucket=self.bucket,
                    Key=object_key,
                    Body=body,
                    ContentType="application/zip",
                )
        except (ClientError, BotoCoreError, OSError) as e:
            raise StorageError(f"Failed to upload s3://{self.bucket}/{object_key}: {e}") from e

        return response.get("VersionId")
