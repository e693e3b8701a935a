"""
VCS credential retrieval.

The SSH key pair lives in a secret as a JSON object::

    {"id_ed25519": "<private key>", "id_ed25519.pub": "<public key>"}

Key material contains raw newlines inside the JSON strings, so the secret is
parsed leniently. Keys are written to fixed paths with owner-only
permissions before any git command runs.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from archiver.errors import CredentialError
from archiver.models.credentials import SSHKeyPair
from archiver.utils.logging import get_logger


logger = get_logger(__name__)

PRIVATE_KEY_FIELD = "id_ed25519"
PUBLIC_KEY_FIELD = "id_ed25519.pub"


def default_key_dir() -> Path:
    return Path(tempfile.gettempdir()) / "archiver" / ".ssh"


def parse_key_secret(secret_string: Optional[str]) -> dict:
    """
    Parse and validate the key secret.

    Raises:
        CredentialError: If the secret is empty, not a JSON object, or lacks a key field
    """
    if not secret_string:
        raise CredentialError("SSH key secret has no string value")

    try:
        secret = json.loads(secret_string, strict=False)
    except ValueError as e:
        raise CredentialError(f"SSH key secret is not valid JSON: {e}") from e

    if not isinstance(secret, dict):
        raise CredentialError("SSH key secret must be a JSON object")

    for field in (PRIVATE_KEY_FIELD, PUBLIC_KEY_FIELD):
        value = secret.get(field)
        if not isinstance(value, str) or not value.strip():
            raise CredentialError(f"SSH key secret is missing '{field}'")

    return secret


def _write_owner_only(path: Path, content: str) -> None:
    if not content.endswith("\n"):
        content += "\n"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    # O_CREAT mode does not apply to an existing file
    os.chmod(path, 0o600)


class CredentialProvider:
    """Fetches the SSH key secret and installs it on local disk."""

    def __init__(self, secrets_client: Any, secret_name: str, key_dir: Optional[Path] = None):
        """
        Args:
            secrets_client: boto3 Secrets Manager client
            secret_name: Name or ARN of the key secret
            key_dir: Directory the key files are written to
        """
        self.secrets_client = secrets_client
        self.secret_name = secret_name
        self.key_dir = Path(key_dir) if key_dir else default_key_dir()

    def fetch(self) -> SSHKeyPair:
        """
        Fetch the key pair and write it to disk.

        Returns:
            Paths of the installed key files

        Raises:
            CredentialError: If the secret cannot be read or is malformed
        """
        try:
            response = self.secrets_client.get_secret_value(SecretId=self.secret_name)
        except (ClientError, BotoCoreError) as e:
            raise CredentialError(f"Unable to read secret {self.secret_name}: {e}") from e

        secret = parse_key_secret(response.get("SecretString"))

        self.key_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self.key_dir, 0o700)

        keys = SSHKeyPair(
            private_key_path=self.key_dir / PRIVATE_KEY_FIELD,
            public_key_path=self.key_dir / PUBLIC_KEY_FIELD,
        )
        _write_owner_only(keys.private_key_path, secret[PRIVATE_KEY_FIELD])
        _write_owner_only(keys.public_key_path, secret[PUBLIC_KEY_FIELD])

        logger.info(f"Installed SSH keys from secret {self.secret_name}")
        return keys
