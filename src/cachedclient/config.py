"""Configuration resolution with environment overrides.

:func:`resolve_config` merges explicit arguments, environment variables and
model defaults into a validated :class:`~cachedclient.models.ClientConfig`.

Precedence (high to low):
    1. Explicit arguments
    2. Environment variables (``CACHEDCLIENT_TIMEOUT``, ``CACHEDCLIENT_VERIFY_SSL``,
       ``CACHEDCLIENT_FOLLOW_REDIRECTS``)
    3. Defaults declared on :class:`~cachedclient.models.ClientConfig`
"""

from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import ValidationError

from cachedclient.exceptions import ConfigError
from cachedclient.models import ClientConfig

_ENV_PREFIX = "CACHEDCLIENT_"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _env(name: str) -> Optional[str]:
    """Return the stripped value of ``CACHEDCLIENT_<name>``, or ``None`` when unset or blank."""
    value = os.environ.get(f"{_ENV_PREFIX}{name}", "").strip()
    return value or None


def _env_float(name: str) -> Optional[float]:
    raw = _env(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{_ENV_PREFIX}{name} must be a number, got {raw!r}") from None


def _env_bool(name: str) -> Optional[bool]:
    raw = _env(name)
    if raw is None:
        return None
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{_ENV_PREFIX}{name} must be a boolean, got {raw!r}")


def resolve_config(
    base_url: str,
    collection_name: Optional[str] = None,
    timeout: Optional[float] = None,
    verify_ssl: Optional[bool] = None,
    headers: Optional[dict[str, str]] = None,
    follow_redirects: Optional[bool] = None,
) -> ClientConfig:
    """Resolve a :class:`ClientConfig` with full precedence chain.

    Args:
        base_url: Base address for every relative URL.
        collection_name: Cache collection name; defaults to *base_url*.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify TLS certificates.
        headers: Extra headers sent with every request.
        follow_redirects: Whether to follow HTTP redirects.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If an environment value cannot be parsed or the merged
            values fail validation.
    """
    values: dict[str, Any] = {"base_url": base_url}
    if collection_name is not None:
        values["collection_name"] = collection_name
    if headers is not None:
        values["headers"] = dict(headers)

    # 2. Environment variables
    env_timeout = _env_float("TIMEOUT")
    if env_timeout is not None:
        values["timeout"] = env_timeout
    env_verify = _env_bool("VERIFY_SSL")
    if env_verify is not None:
        values["verify_ssl"] = env_verify
    env_redirects = _env_bool("FOLLOW_REDIRECTS")
    if env_redirects is not None:
        values["follow_redirects"] = env_redirects

    # 1. Explicit arguments (highest precedence)
    if timeout is not None:
        values["timeout"] = timeout
    if verify_ssl is not None:
        values["verify_ssl"] = verify_ssl
    if follow_redirects is not None:
        values["follow_redirects"] = follow_redirects

    try:
        return ClientConfig.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid client configuration: {exc}") from exc
