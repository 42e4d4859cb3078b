"""
config.py — Centralised configuration for the NanoGPT catalog client

Endpoint categories, defaults, retry knobs and the host configuration
snapshot live here.  Nothing deeper in the stack hard-codes an endpoint
URL; everything referencing a category looks it up in these dictionaries.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    ByokProvider,
    ByokToggle,
    EndpointDescriptor,
    FeatureToggleSnapshot,
    MemoryToggle,
    ModelCategory,
    ReasoningEffort,
    ReasoningToggle,
    RetryPolicy,
    SearchMode,
    SearchToggle,
)


def _env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key, "").lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


class Settings:
    """
    Simple settings object populated from environment variables.
    """

    # Server
    host: str = os.getenv("ROUTER_HOST", "0.0.0.0")
    port: int = int(os.getenv("ROUTER_PORT", "7545"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = _env_bool("DEBUG", False)
    admin_token: str = os.getenv("ADMIN_TOKEN", "")

    # Upstream
    base_url: str = os.getenv("NANOGPT_BASE_URL", "https://nano-gpt.com/api/v1")
    api_key_env: str = "NANOGPT_API_KEY"
    user_agent: str = os.getenv("NANOGPT_USER_AGENT", "nanogpt-catalog/0.1.0")

    # Discovery
    discovery_timeout: float = float(os.getenv("DISCOVERY_TIMEOUT", "10"))
    discovery_retries: int = int(os.getenv("DISCOVERY_RETRIES", "3"))
    retry_base_delay: float = float(os.getenv("RETRY_BASE_DELAY", "1.0"))
    retry_backoff_multiplier: float = float(os.getenv("RETRY_BACKOFF_MULTIPLIER", "2.0"))
    # A malformed catalog is unlikely to differ by category, but the
    # upstream client has always escalated on it.
    escalate_on_validation_error: bool = _env_bool("ESCALATE_ON_VALIDATION_ERROR", True)
    error_snippet_length: int = int(os.getenv("ERROR_SNIPPET_LENGTH", "200"))

    # Cache
    catalog_cache_ttl: int = int(os.getenv("CATALOG_CACHE_TTL", "3600"))
    catalog_cache_maxsize: int = int(os.getenv("CATALOG_CACHE_MAXSIZE", "64"))

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.discovery_retries,
            base_delay=self.retry_base_delay,
            backoff_multiplier=self.retry_backoff_multiplier,
        )


settings = Settings()


# ══════════════════════════════════════════════════════════════════════════════
# Model defaults
# ══════════════════════════════════════════════════════════════════════════════

DEFAULT_CONTEXT_LENGTH = 128_000
DEFAULT_MAX_OUTPUT_TOKENS = 16_000
DEFAULT_MEMORY_DAYS = 30

CLIENT_ID_HEADER = "User-Agent"
BYOK_HEADER = "x-use-byok"


# ══════════════════════════════════════════════════════════════════════════════
# Endpoint catalogue (single source of truth)
# ══════════════════════════════════════════════════════════════════════════════

# Every category definition:
#   url          : REST endpoint that returns the detailed model list
#   display_name : label shown in a model-type picker
#   description  : one-line explanation of the tier
# Insertion order is the fallback priority order.

ENDPOINT_CATALOGUE: Dict[str, Dict[str, Any]] = {
    "all": {
        "url": f"{settings.base_url}/models?detailed=true",
        "display_name": "All Models",
        "description": "Access to all available NanoGPT models",
    },
    "premium": {
        "url": "https://nano-gpt.com/api/paid/v1/models?detailed=true",
        "display_name": "Premium Models",
        "description": "Access to premium NanoGPT models",
    },
    "subscription": {
        "url": "https://nano-gpt.com/api/subscription/v1/models?detailed=true",
        "display_name": "Subscription Models",
        "description": "Access to subscription-based NanoGPT models",
    },
}

CATEGORY_PRIORITY_ORDER: list[ModelCategory] = [ModelCategory(c) for c in ENDPOINT_CATALOGUE]


def get_endpoint(category: ModelCategory | str) -> EndpointDescriptor:
    """Return the endpoint descriptor for ``category`` (KeyError if unknown)."""
    cat = ModelCategory(category)
    entry = ENDPOINT_CATALOGUE[cat.value]
    return EndpointDescriptor(
        category=cat,
        url=entry["url"],
        display_label=entry["display_name"],
        description=entry["description"],
    )


def endpoint_registry() -> list[EndpointDescriptor]:
    """All endpoints in fallback priority order."""
    return [get_endpoint(c) for c in CATEGORY_PRIORITY_ORDER]


# ══════════════════════════════════════════════════════════════════════════════
# Host configuration snapshot
# ══════════════════════════════════════════════════════════════════════════════


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", protected_namespaces=())


class ReasoningConfig(_Frozen):
    enabled: bool = True
    default_effort: ReasoningEffort = ReasoningEffort.MEDIUM


class MemoryConfig(_Frozen):
    enabled: bool = True
    default_days: int = Field(DEFAULT_MEMORY_DAYS, ge=1, le=365)


class SearchConfig(_Frozen):
    enabled: bool = True
    default_mode: SearchMode = SearchMode.STANDARD


class ByokConfig(_Frozen):
    enabled: bool = False
    default_provider: ByokProvider = ByokProvider.OPENAI


class ProviderConfig(_Frozen):
    """Read-only snapshot of the host's NanoGPT settings.

    The host owns persistence; this object is handed to the core per call
    and is never written back.  Use :meth:`with_model_temperature` to get
    an updated copy.
    """

    reasoning: ReasoningConfig = Field(default_factory=ReasoningConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    byok: ByokConfig = Field(default_factory=ByokConfig)
    model_type: ModelCategory = ModelCategory.ALL
    model_temperatures: Dict[str, float] = Field(default_factory=dict)

    def toggles(self) -> FeatureToggleSnapshot:
        return FeatureToggleSnapshot(
            reasoning=ReasoningToggle(self.reasoning.enabled, self.reasoning.default_effort.value),
            memory=MemoryToggle(self.memory.enabled, self.memory.default_days),
            search=SearchToggle(self.search.enabled, self.search.default_mode.value),
            byok=ByokToggle(self.byok.enabled, self.byok.default_provider.value),
        )

    def temperature_for(self, model_id: str) -> Optional[float]:
        return self.model_temperatures.get(model_id)

    def with_model_temperature(self, model_id: str, temperature: Optional[float]) -> "ProviderConfig":
        temps = dict(self.model_temperatures)
        if temperature is None:
            temps.pop(model_id, None)
        else:
            if not 0.0 <= temperature <= 2.0:
                raise ValueError("Temperature must be between 0 and 2")
            temps[model_id] = temperature
        return self.model_copy(update={"model_temperatures": temps})

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ProviderConfig":
        """Build a snapshot from a host settings dict (missing keys use defaults)."""
        return cls.model_validate(dict(data or {}))


def initialize_env_vars() -> None:
    """Load a local .env file without overwriting existing variables."""
    from dotenv import load_dotenv

    load_dotenv(override=False)
