"""
Environment-driven settings.

Values come from the process environment, optionally seeded from a ``.env``
file in the working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from miro_mcp.client import DEFAULT_BASE_URL


class ConfigurationError(Exception):
    """A required setting is missing or malformed."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def _int(env: Mapping[str, str], name: str, default: int, low: int, high: Optional[int] = None) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'.") from None
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f">= {low}"
        raise ConfigurationError(f"{name} must be {bound}, got {value}.")
    return value


@dataclass(frozen=True)
class Settings:
    api_token: str
    board_id: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    page_size: int = 50
    max_workers: int = 8
    history_size: int = 20

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, *, dotenv: bool = True) -> Settings:
        """Build settings from *env* (default: ``os.environ`` after ``load_dotenv``)."""
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        token = env.get("MIRO_API_TOKEN", "").strip()
        if not token:
            raise ConfigurationError("MIRO_API_TOKEN environment variable is required.")
        board_id = env.get("MIRO_BOARD_ID", "").strip()
        if not board_id:
            raise ConfigurationError("MIRO_BOARD_ID environment variable is required.")

        raw_timeout = env.get("MIRO_TIMEOUT", "").strip()
        try:
            timeout = float(raw_timeout) if raw_timeout else 30.0
        except ValueError:
            raise ConfigurationError(f"MIRO_TIMEOUT must be a number, got '{raw_timeout}'.") from None
        if timeout <= 0:
            raise ConfigurationError(f"MIRO_TIMEOUT must be positive, got {timeout:g}.")

        return cls(
            api_token=token,
            board_id=board_id,
            base_url=env.get("MIRO_API_BASE_URL", "").strip() or DEFAULT_BASE_URL,
            timeout=timeout,
            page_size=_int(env, "MIRO_PAGE_SIZE", 50, 10, 50),
            max_workers=_int(env, "MIRO_MAX_WORKERS", 8, 1),
            history_size=_int(env, "MIRO_HISTORY_SIZE", 20, 1),
        )
