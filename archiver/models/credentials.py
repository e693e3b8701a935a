"""VCS credential models."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class SSHKeyPair(BaseModel):
    """Local paths of the SSH key pair git authenticates with."""

    model_config = ConfigDict(frozen=True)

    private_key_path: Path
    public_key_path: Path

    @property
    def ssh_command(self) -> str:
        """Value for GIT_SSH_COMMAND using this key."""
        return f"ssh -o StrictHostKeyChecking=no -o IdentitiesOnly=yes -i {self.private_key_path}"
