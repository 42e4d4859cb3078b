"""
composer.py — Map a base model id plus feature toggles to request fragments.

NanoGPT reads feature markers from the model id left to right, so suffix
order is fixed: search first, then memory.

  search standard  → :online
  search deep      → :online/linkup-deep
  memory (default) → :memory
  memory (N days)  → :memory-N

Reasoning and BYOK never appear in the id.  Reasoning is a body field;
BYOK is the ``x-use-byok`` header plus a body field.

``compose`` performs no I/O, reads no global state and validates every
input before building anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config import BYOK_HEADER, DEFAULT_MEMORY_DAYS
from .errors import ValidationError
from .models import (
    ByokProvider,
    ComposedRequest,
    FeatureOverride,
    FeatureToggleSnapshot,
    ReasoningEffort,
    SearchMode,
)

SEARCH_SUFFIXES: Dict[str, str] = {
    SearchMode.STANDARD.value: ":online",
    SearchMode.DEEP.value: ":online/linkup-deep",
}

_EFFORTS = frozenset(e.value for e in ReasoningEffort)
_PROVIDERS = frozenset(p.value for p in ByokProvider)

MIN_MEMORY_DAYS = 1
MAX_MEMORY_DAYS = 365
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0


@dataclass(frozen=True)
class _Effective:
    reasoning_enabled: Any
    reasoning_effort: Any
    memory_enabled: Any
    memory_days: Any
    search_enabled: Any
    search_mode: Any
    byok_enabled: Any
    byok_provider: Any
    temperature: Any


def _pick(override: Any, default: Any) -> Any:
    return default if override is None else override


def _plain(value: Any) -> Any:
    # str-Enum members compare equal to their value but hash differently
    return getattr(value, "value", value)


def _merge(toggles: FeatureToggleSnapshot, override: Optional[FeatureOverride]) -> _Effective:
    o = override or FeatureOverride()
    return _Effective(
        reasoning_enabled=_pick(o.reasoning_enabled, toggles.reasoning.enabled),
        reasoning_effort=_plain(_pick(o.reasoning_effort, toggles.reasoning.effort)),
        memory_enabled=_pick(o.memory_enabled, toggles.memory.enabled),
        memory_days=_pick(o.memory_days, toggles.memory.days),
        search_enabled=_pick(o.search_enabled, toggles.search.enabled),
        search_mode=_plain(_pick(o.search_mode, toggles.search.mode)),
        byok_enabled=_pick(o.byok_enabled, toggles.byok.enabled),
        byok_provider=_plain(_pick(o.byok_provider, toggles.byok.provider)),
        temperature=o.temperature,
    )


def _check_flag(path: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise ValidationError(path, "a boolean")


def _check_choice(path: str, value: Any, allowed: frozenset) -> None:
    if not isinstance(value, str) or value not in allowed:
        raise ValidationError(path, "one of " + ", ".join(sorted(allowed)))


def _validate(base_id: Any, eff: _Effective) -> None:
    if not isinstance(base_id, str) or not base_id.strip():
        raise ValidationError("base_id", "a non-empty model id")

    _check_flag("reasoning.enabled", eff.reasoning_enabled)
    _check_flag("memory.enabled", eff.memory_enabled)
    _check_flag("search.enabled", eff.search_enabled)
    _check_flag("byok.enabled", eff.byok_enabled)

    days = eff.memory_days
    if isinstance(days, bool) or not isinstance(days, int) or not MIN_MEMORY_DAYS <= days <= MAX_MEMORY_DAYS:
        raise ValidationError("memory.days", f"an integer between {MIN_MEMORY_DAYS} and {MAX_MEMORY_DAYS}")

    _check_choice("reasoning.effort", eff.reasoning_effort, _EFFORTS)
    _check_choice("search.mode", eff.search_mode, frozenset(SEARCH_SUFFIXES))
    _check_choice("byok.provider", eff.byok_provider, _PROVIDERS)

    t = eff.temperature
    if t is not None and (
        isinstance(t, bool) or not isinstance(t, (int, float)) or not MIN_TEMPERATURE <= t <= MAX_TEMPERATURE
    ):
        raise ValidationError("temperature", f"a number between {MIN_TEMPERATURE:g} and {MAX_TEMPERATURE:g}")


def memory_suffix(days: int) -> str:
    if days == DEFAULT_MEMORY_DAYS:
        return ":memory"
    return f":memory-{days}"


def compose(
    base_id: str,
    toggles: Optional[FeatureToggleSnapshot] = None,
    override: Optional[FeatureOverride] = None,
) -> ComposedRequest:
    """Build the suffix, headers and body fields for one request.

    Raises ValidationError (and builds nothing) if any effective value is
    out of range.
    """
    eff = _merge(toggles or FeatureToggleSnapshot(), override)
    _validate(base_id, eff)

    tokens: List[str] = []
    if eff.search_enabled:
        tokens.append(SEARCH_SUFFIXES[eff.search_mode])
    if eff.memory_enabled:
        tokens.append(memory_suffix(eff.memory_days))

    headers: Dict[str, str] = {}
    body: Dict[str, Any] = {}
    if eff.reasoning_enabled:
        body["reasoning"] = {"enabled": True, "effort": eff.reasoning_effort}
    if eff.byok_enabled:
        headers[BYOK_HEADER] = "true"
        body["byok"] = {"enabled": True, "provider": eff.byok_provider}
    if eff.temperature is not None:
        body["temperature"] = float(eff.temperature)

    return ComposedRequest(
        base_id=base_id,
        suffix="".join(tokens),
        headers=headers,
        body_fields=body,
    )
