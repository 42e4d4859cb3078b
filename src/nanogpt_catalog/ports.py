"""
ports.py — Collaborators the host application plugs into the core.

The core never prompts, stores secrets or shows messages by itself; it goes
through these ports.  Default implementations cover headless use: the API
key from the environment, configuration from a fixed snapshot and messages
sent to the log.
"""

from __future__ import annotations

import logging
import os
from typing import Awaitable, Callable, List, Optional, Protocol, runtime_checkable

from .config import ProviderConfig, settings

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialAccessor(Protocol):
    async def get(self) -> Optional[str]:
        """Return the stored credential, or None."""

    async def prompt(self) -> Optional[str]:
        """Ask the user for a credential (None when dismissed)."""

    async def store(self, credential: str) -> None:
        ...


@runtime_checkable
class ConfigProvider(Protocol):
    def snapshot(self) -> ProviderConfig:
        ...


@runtime_checkable
class Notifier(Protocol):
    def inform(self, message: str) -> None:
        ...


async def ensure_credential(accessor: CredentialAccessor, silent: bool) -> Optional[str]:
    """Return the stored credential, prompting for one unless ``silent``."""
    credential = await accessor.get()
    if credential or silent:
        return credential or None
    entered = await accessor.prompt()
    if entered and entered.strip():
        credential = entered.strip()
        await accessor.store(credential)
        return credential
    return None


# ══════════════════════════════════════════════════════════════════════════════
# Default implementations
# ══════════════════════════════════════════════════════════════════════════════


class EnvCredentialAccessor:
    """Reads the API key from ``NANOGPT_API_KEY`` (or a custom variable)."""

    def __init__(
        self,
        env_name: Optional[str] = None,
        prompt_fn: Optional[Callable[[], Awaitable[Optional[str]]]] = None,
    ) -> None:
        self._env_name = env_name or settings.api_key_env
        self._prompt_fn = prompt_fn
        self._stored: Optional[str] = None

    async def get(self) -> Optional[str]:
        return self._stored or os.getenv(self._env_name) or None

    async def prompt(self) -> Optional[str]:
        if self._prompt_fn is None:
            return None
        return await self._prompt_fn()

    async def store(self, credential: str) -> None:
        # process-local only; persistence is the host's job
        self._stored = credential


class StaticConfigProvider:
    def __init__(self, config: Optional[ProviderConfig] = None) -> None:
        self._config = config or ProviderConfig()

    def snapshot(self) -> ProviderConfig:
        return self._config


class LoggingNotifier:
    def inform(self, message: str) -> None:
        logger.info("%s", message)


class RecordingNotifier:
    """Keeps every message; handy for hosts that batch notifications."""

    def __init__(self) -> None:
        self.messages: List[str] = []

    def inform(self, message: str) -> None:
        self.messages.append(message)
