"""Reading operator-supplied cluster credentials.

The credential is an opaque text blob (typically a kubeconfig). clusterdock
never parses it; it only has to be non-blank before onboarding can continue.
"""

from __future__ import annotations

from pathlib import Path

from clusterdock.api.model import Credential
from clusterdock.core.exceptions import ConfigurationError

MAX_CREDENTIAL_BYTES = 1024 * 1024


def require_credential(text: str) -> Credential:
    if not text or not text.strip():
        raise ConfigurationError("Credential is empty")
    return text


def read_credential(path: str | Path) -> Credential:
    """Read an uploaded access-config file as UTF-8 text."""
    p = Path(path).expanduser()
    if not p.is_file():
        raise ConfigurationError(f"Credential file not found: {p}")
    if p.stat().st_size > MAX_CREDENTIAL_BYTES:
        raise ConfigurationError(f"Credential file {p} is larger than 1 MiB")
    try:
        text = p.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ConfigurationError(f"Credential file {p} is not UTF-8 text") from e
    return require_credential(text)
