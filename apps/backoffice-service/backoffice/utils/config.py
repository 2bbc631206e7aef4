"""Ownership settings sourced from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Optional

logger = logging.getLogger(__name__)

IdentityPolicy = Literal["live", "snapshot"]

IDENTITY_POLICY_LIVE: IdentityPolicy = "live"
IDENTITY_POLICY_SNAPSHOT: IdentityPolicy = "snapshot"

DEFAULT_PLACEHOLDER_NAME = "Unknown owner"
DEFAULT_MAX_SESSIONS = 256


def _normalize_bool(value: Optional[str], default: bool = True) -> bool:
    """Return normalized boolean from environment-style value."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"", "0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return True
    return default


def _normalize_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    value = value.strip()
    if not value.isdigit() or int(value) <= 0:
        return default
    return int(value)


def _normalize_policy(value: Optional[str]) -> IdentityPolicy:
    if value is None or not value.strip():
        return IDENTITY_POLICY_LIVE
    normalized = value.strip().lower()
    if normalized in (IDENTITY_POLICY_LIVE, IDENTITY_POLICY_SNAPSHOT):
        return normalized  # type: ignore[return-value]
    logger.warning("Unknown OWNERSHIP_IDENTITY_POLICY '%s'; using '%s'.", value, IDENTITY_POLICY_LIVE)
    return IDENTITY_POLICY_LIVE


@dataclass(frozen=True)
class OwnershipSettings:
    identity_policy: IdentityPolicy = IDENTITY_POLICY_LIVE
    load_node_detail: bool = True
    placeholder_name: str = DEFAULT_PLACEHOLDER_NAME
    max_sessions: int = DEFAULT_MAX_SESSIONS

    @classmethod
    def from_env(cls) -> "OwnershipSettings":
        placeholder = (os.getenv("OWNERSHIP_PLACEHOLDER_NAME") or "").strip()
        return cls(
            identity_policy=_normalize_policy(os.getenv("OWNERSHIP_IDENTITY_POLICY")),
            load_node_detail=_normalize_bool(os.getenv("OWNERSHIP_LOAD_NODE_DETAIL"), default=True),
            placeholder_name=placeholder or DEFAULT_PLACEHOLDER_NAME,
            max_sessions=_normalize_int(os.getenv("OWNERSHIP_MAX_SESSIONS"), DEFAULT_MAX_SESSIONS),
        )


@lru_cache(maxsize=None)
def get_ownership_settings() -> OwnershipSettings:
    """Return the cached settings sourced from the environment."""
    return OwnershipSettings.from_env()


def refresh_ownership_settings_cache() -> None:
    """Invalidate cached settings (useful for tests)."""
    get_ownership_settings.cache_clear()
