"""
Input validation — checks applied before anything is written.

Pure functions, no I/O. Each raises a ``ValidationFailure`` subclass
with an actionable message; callers never get a partially valid value.
"""

from __future__ import annotations

import re

from mtproxy_installer.core.errors import InvalidPort, InvalidUsername, ValidationFailure

# Usernames become TOML keys and list entries
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# Addresses and domains are written inside double-quoted TOML strings:
# no quotes, backslashes, whitespace or control characters
_HOSTLIKE_RE = re.compile(r"^[A-Za-z0-9.:\[\]_-]+$")

MIN_PORT = 1
MAX_PORT = 65535


def validate_username(username: str) -> str:
    """Return the stripped username, or raise ``InvalidUsername``."""
    name = (username or "").strip()
    if not name:
        raise InvalidUsername("Username must not be empty.")
    if not _USERNAME_RE.match(name):
        raise InvalidUsername(
            f"Invalid username {name!r}: only letters, digits, '_' and '-' are allowed."
        )
    return name


def parse_port(value: int | str, field: str = "port") -> int:
    """Parse *value* as a TCP port (1–65535), or raise ``InvalidPort``."""
    if isinstance(value, bool):
        raise InvalidPort(f"Invalid {field}: {value!r} is not a number.")
    if isinstance(value, int):
        port = value
    else:
        text = str(value).strip()
        # isdigit() alone admits "²" and other digits int() rejects
        if not (text.isascii() and text.isdecimal()):
            raise InvalidPort(f"Invalid {field}: {value!r} is not a number.")
        port = int(text)
    if not MIN_PORT <= port <= MAX_PORT:
        raise InvalidPort(f"Invalid {field}: {port} is outside {MIN_PORT}–{MAX_PORT}.")
    return port


def validate_hostlike(value: str, field: str) -> str:
    """Validate an address or domain that is embedded in generated text."""
    text = (value or "").strip()
    if not text:
        raise ValidationFailure(f"{field} is required.")
    if not _HOSTLIKE_RE.match(text):
        raise ValidationFailure(
            f"Invalid {field} {text!r}: only letters, digits, '.', ':', '-', '_' and brackets are allowed."
        )
    return text


def default_tls_domain(announce_address: str) -> str:
    """The masking domain used when none is given: ``online.<ip>.sslip.io``."""
    return f"online.{announce_address}.sslip.io"
