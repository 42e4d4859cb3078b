"""
models.py — Schemas and value objects for the NanoGPT catalog client.

Three layers:
  1. Upstream response schemas (pydantic, no coercion) used to validate catalogs
  2. Catalog value objects  (EndpointDescriptor, ModelDescriptor)
  3. Composition / retry types (toggle snapshots, ComposedRequest, RetryPolicy)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, PlainValidator, StrictBool, StrictStr


# ══════════════════════════════════════════════════════════════════════════════
# Enumerations
# ══════════════════════════════════════════════════════════════════════════════


class ModelCategory(str, Enum):
    ALL          = "all"
    PREMIUM      = "premium"
    SUBSCRIPTION = "subscription"


class ReasoningEffort(str, Enum):
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"


class SearchMode(str, Enum):
    STANDARD = "standard"   # :online
    DEEP     = "deep"       # :online/linkup-deep


class ByokProvider(str, Enum):
    OPENAI    = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE    = "google"


ModelFeature = Literal["tools", "json_mode", "structured_outputs", "web_search", "reasoning"]

SamplingParameter = Literal[
    "temperature",
    "top_p",
    "top_k",
    "repetition_penalty",
    "frequency_penalty",
    "presence_penalty",
    "stop",
    "seed",
]


# ══════════════════════════════════════════════════════════════════════════════
# Upstream response schemas
# ══════════════════════════════════════════════════════════════════════════════


class _Schema(BaseModel):
    model_config = ConfigDict(extra="allow")


def _strict_number(value: Any) -> Union[int, float]:
    # no "128000" -> 128000 or True -> 1 coercion
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Input should be a number")
    return value


Number = Annotated[Union[int, float], PlainValidator(_strict_number)]


class CatalogPricing(_Schema):
    prompt: Optional[Number] = None
    completion: Optional[Number] = None
    image: Optional[Number] = None
    request: Optional[Number] = None


class CatalogEntry(_Schema):
    id: StrictStr
    object: StrictStr
    name: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    created: Optional[Number] = None
    owned_by: Optional[StrictStr] = None
    vision: Optional[StrictBool] = None
    context_length: Optional[Number] = None
    max_output_length: Optional[Number] = None
    pricing: Optional[CatalogPricing] = None
    supported_features: Optional[List[ModelFeature]] = None
    supported_sampling_parameters: Optional[List[SamplingParameter]] = None


class CatalogResponse(_Schema):
    object: StrictStr
    data: List[CatalogEntry]


# ══════════════════════════════════════════════════════════════════════════════
# Catalog value objects
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class EndpointDescriptor:
    category: ModelCategory
    url: str
    display_label: str
    description: str = ""


@dataclass(frozen=True)
class Capabilities:
    tool_calling: bool = True
    image_input: bool = False


@dataclass(frozen=True)
class ModelDescriptor:
    """A single model as listed by one catalog category."""
    id: str
    display_name: str
    context_length: int
    max_output_tokens: int
    capabilities: Capabilities
    category: ModelCategory
    pricing: Optional[Dict[str, float]] = None
    owned_by: Optional[str] = None
    description: Optional[str] = None
    created: Optional[float] = None
    supported_features: Tuple[str, ...] = ()
    supported_sampling_parameters: Tuple[str, ...] = ()
    degraded: bool = False                      # built from defaults after a bad entry

    family = "nanogpt"
    detail = "NanoGPT.com"
    version = "1.0.0"

    @property
    def tooltip(self) -> str:
        if self.owned_by:
            return f"Owned by {self.owned_by}"
        return "NanoGPT Model"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "context_length": self.context_length,
            "max_output_tokens": self.max_output_tokens,
            "capabilities": {
                "tool_calling": self.capabilities.tool_calling,
                "image_input": self.capabilities.image_input,
            },
            "category": self.category.value,
            "pricing": dict(self.pricing) if self.pricing is not None else None,
            "owned_by": self.owned_by,
            "tooltip": self.tooltip,
            "family": self.family,
            "detail": self.detail,
            "version": self.version,
            "supported_features": list(self.supported_features),
            "supported_sampling_parameters": list(self.supported_sampling_parameters),
            "degraded": self.degraded,
        }


@dataclass(frozen=True)
class FetchResult:
    """Output of one successful catalog fetch."""
    category: ModelCategory
    descriptors: Tuple[ModelDescriptor, ...]
    degraded_count: int = 0


@dataclass(frozen=True)
class CatalogResolution:
    """Outcome of a fallback resolution across categories."""
    descriptors: Tuple[ModelDescriptor, ...]
    origin: ModelCategory
    preferred: ModelCategory
    degraded_count: int = 0
    failures: Tuple[Tuple[ModelCategory, Exception], ...] = ()

    @property
    def fell_back(self) -> bool:
        return self.origin is not self.preferred

    def __iter__(self):
        # allows ``descriptors, origin = resolution``
        return iter((self.descriptors, self.origin))


# ══════════════════════════════════════════════════════════════════════════════
# Feature toggles and composition
# ══════════════════════════════════════════════════════════════════════════════

# Toggle values are kept as received; the composer validates them.


@dataclass(frozen=True)
class ReasoningToggle:
    enabled: bool = False
    effort: str = "medium"


@dataclass(frozen=True)
class MemoryToggle:
    enabled: bool = False
    days: int = 30


@dataclass(frozen=True)
class SearchToggle:
    enabled: bool = False
    mode: str = "standard"


@dataclass(frozen=True)
class ByokToggle:
    enabled: bool = False
    provider: str = "openai"


@dataclass(frozen=True)
class FeatureToggleSnapshot:
    reasoning: ReasoningToggle = field(default_factory=ReasoningToggle)
    memory: MemoryToggle = field(default_factory=MemoryToggle)
    search: SearchToggle = field(default_factory=SearchToggle)
    byok: ByokToggle = field(default_factory=ByokToggle)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "FeatureToggleSnapshot":
        """Build from ``{"search": {"enabled": True, "mode": "deep"}, ...}``."""
        data = data or {}
        return cls(
            reasoning=ReasoningToggle(**data.get("reasoning", {})),
            memory=MemoryToggle(**data.get("memory", {})),
            search=SearchToggle(**data.get("search", {})),
            byok=ByokToggle(**data.get("byok", {})),
        )


@dataclass(frozen=True)
class FeatureOverride:
    """Per-call values; ``None`` falls through to the snapshot."""
    reasoning_enabled: Optional[bool] = None
    reasoning_effort: Optional[str] = None
    memory_enabled: Optional[bool] = None
    memory_days: Optional[int] = None
    search_enabled: Optional[bool] = None
    search_mode: Optional[str] = None
    byok_enabled: Optional[bool] = None
    byok_provider: Optional[str] = None
    temperature: Optional[float] = None


@dataclass(frozen=True)
class ComposedRequest:
    base_id: str
    suffix: str                                 # ":online:memory-90", "" when no tokens
    headers: Dict[str, str] = field(default_factory=dict)
    body_fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def model_id(self) -> str:
        """Identifier to send upstream: base id plus suffix tokens."""
        return self.base_id + self.suffix


# ══════════════════════════════════════════════════════════════════════════════
# Retry
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0                     # seconds
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Suspension between ``attempt`` and ``attempt + 1`` (1-based)."""
        return self.base_delay * self.backoff_multiplier ** (attempt - 1)
