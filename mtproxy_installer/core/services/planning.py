"""
Plan construction — turn raw answers into an immutable InstallationPlan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mtproxy_installer.core.errors import DuplicateUsername, ValidationFailure
from mtproxy_installer.core.models.plan import InstallAnswers, InstallationPlan, UserCredential
from mtproxy_installer.core.services.credentials import CredentialBook
from mtproxy_installer.core.services.validation import (
    default_tls_domain,
    parse_port,
    validate_hostlike,
    validate_username,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _ServerFields:
    listen_port: int
    announce_address: str
    tls_domain: str
    host_port: int


def _server_fields(answers: InstallAnswers) -> _ServerFields:
    listen_port = parse_port(answers.port, "port")
    announce = validate_hostlike(answers.announce_ip, "announce address")
    tls_domain = validate_hostlike(
        answers.tls_domain or default_tls_domain(announce), "TLS domain"
    )
    raw_host = answers.host_port
    if raw_host is None or (isinstance(raw_host, str) and not raw_host.strip()):
        host_port = listen_port
    else:
        host_port = parse_port(raw_host, "host port")
    return _ServerFields(listen_port, announce, tls_domain, host_port)


def validate_answers(answers: InstallAnswers) -> None:
    """Check every answer without generating secrets.

    Lets unattended installs fail before the host is touched.

    Raises:
        ValidationFailure: on the first invalid field.
    """
    seen: set[str] = set()
    for raw in answers.users:
        name = validate_username(raw)
        if name in seen:
            raise DuplicateUsername(f"User {name!r} was already added.")
        seen.add(name)
    if not seen:
        raise ValidationFailure("At least one user is required.")
    _server_fields(answers)


def build_plan(
    answers: InstallAnswers,
    credentials: tuple[UserCredential, ...] | None = None,
) -> InstallationPlan:
    """Validate *answers* and build the plan.

    Args:
        answers: Raw answers. ``answers.users`` is used only when
            *credentials* is not given.
        credentials: Credentials already generated interactively.

    Raises:
        ValidationFailure: on the first invalid field.
    """
    if credentials is None:
        book = CredentialBook()
        for username in answers.users:
            book.add(username)
        credentials = book.credentials

    if not credentials:
        raise ValidationFailure("At least one user is required.")

    fields = _server_fields(answers)
    plan = InstallationPlan(
        users=tuple(credentials),
        listen_port=fields.listen_port,
        announce_address=fields.announce_address,
        tls_domain=fields.tls_domain,
        host_port=fields.host_port,
        enable_service=answers.create_service,
        enable_auto_update=answers.auto_update,
    )
    logger.info(
        "Plan: %d user(s), ports %s, announce %s, tls domain %s",
        len(plan.users),
        plan.port_mapping,
        plan.announce_address,
        plan.tls_domain,
    )
    return plan
