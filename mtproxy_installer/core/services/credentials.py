"""
Credential generator — per-user random secrets.

Secrets are 16 bytes from the OS CSPRNG (``secrets`` module),
hex-encoded to 32 lowercase characters.
"""

from __future__ import annotations

import logging
import secrets

from mtproxy_installer.core.errors import DuplicateUsername
from mtproxy_installer.core.models.plan import UserCredential
from mtproxy_installer.core.services.validation import validate_username

logger = logging.getLogger(__name__)

SECRET_BYTES = 16


def generate_secret() -> str:
    return secrets.token_hex(SECRET_BYTES)


def new_credential(username: str) -> UserCredential:
    """Create a credential for *username*.

    Raises:
        InvalidUsername: if the name is empty or has disallowed characters.
    """
    name = validate_username(username)
    return UserCredential(username=name, secret=generate_secret())


class CredentialBook:
    """Ordered credentials for one installer run.

    Rejects a username that was already added. Insertion order is kept
    because it decides the order of the generated listing.
    """

    def __init__(self) -> None:
        self._credentials: dict[str, UserCredential] = {}

    def add(self, username: str) -> UserCredential:
        """Validate *username*, generate its secret and record it.

        Raises:
            InvalidUsername: malformed name.
            DuplicateUsername: name already added in this run.
        """
        name = validate_username(username)
        if name in self._credentials:
            raise DuplicateUsername(f"User {name!r} was already added.")
        credential = new_credential(name)
        self._credentials[name] = credential
        logger.info("Added user %s", name)
        return credential

    @property
    def credentials(self) -> tuple[UserCredential, ...]:
        return tuple(self._credentials.values())

    def __len__(self) -> int:
        return len(self._credentials)

    def __contains__(self, username: object) -> bool:
        return username in self._credentials
