"""
Installation plan — the immutable input to rendering and registration.

``InstallAnswers`` holds what the operator typed (or what the answers
file said), unvalidated. ``InstallationPlan`` is built from it exactly once
by ``build_plan`` after every field has been validated and every user has
a generated secret; it is frozen and passed down read-only.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UserCredential(BaseModel):
    """A proxy user and its 32-hex-character secret."""

    model_config = ConfigDict(frozen=True)

    username: str
    secret: str

    def config_line(self) -> str:
        """The credential-table row written under ``[access.users]``."""
        return f'{self.username} = "{self.secret}"'


class InstallAnswers(BaseModel):
    """Raw installer answers, before validation and secret generation.

    Ports may still be strings here; ``build_plan`` parses them.
    Empty ``tls_domain`` and ``None`` ``host_port`` mean "use the default".
    """

    users: list[str] = Field(default_factory=list)
    port: int | str = 443
    announce_ip: str = ""
    tls_domain: str = ""
    host_port: int | str | None = None
    create_service: bool = True
    auto_update: bool = True
    replace_existing: bool = False


class InstallationPlan(BaseModel):
    """Validated, immutable description of one installation."""

    model_config = ConfigDict(frozen=True)

    users: tuple[UserCredential, ...]
    listen_port: int
    announce_address: str
    tls_domain: str
    host_port: int
    enable_service: bool = True
    enable_auto_update: bool = True

    @property
    def port_mapping(self) -> str:
        """Compose port mapping, ``host:container``."""
        return f"{self.host_port}:{self.listen_port}"

    @property
    def usernames(self) -> list[str]:
        return [u.username for u in self.users]
