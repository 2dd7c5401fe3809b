"""
Answers-file loader — reads an unattended-install YAML into InstallAnswers.

Example::

    users: [alice, bob]
    port: 443
    announce_ip: 203.0.113.5
    tls_domain: example.com      # optional, default online.<ip>.sslip.io
    host_port: 8443              # optional, default = port
    create_service: true
    auto_update: true
    replace_existing: false      # replace a detected installation?

The YAML may also wrap everything under an ``install`` key.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from mtproxy_installer.core.errors import ValidationFailure
from mtproxy_installer.core.models.plan import InstallAnswers

logger = logging.getLogger(__name__)


class ConfigError(ValidationFailure):
    """Raised when the answers file is missing, unreadable or malformed."""


def load_answers(path: Path) -> InstallAnswers:
    """Load and shape-check an answers file.

    Field-level validation (usernames, ports, addresses) happens later in
    ``validate_answers`` / ``build_plan``.

    Raises:
        ConfigError: If the file is missing, not YAML, or has the wrong shape.
    """
    if not path.is_file():
        raise ConfigError(f"Answers file not found: {path}")

    logger.debug("Loading answers from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    if "install" in data and isinstance(data["install"], dict):
        data = data["install"]

    users = data.get("users")
    if isinstance(users, str):
        data["users"] = [users]
    elif users is not None and not isinstance(users, list):
        raise ConfigError(f"'users' in {path} must be a list of usernames")
    elif isinstance(users, list):
        data["users"] = [str(u) for u in users]

    try:
        answers = InstallAnswers.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ConfigError(f"Invalid answers file {path}: {location}: {first['msg']}") from e

    logger.info("Loaded answers for %d user(s) from %s", len(answers.users), path)
    return answers
