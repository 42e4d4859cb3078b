"""
normalizer.py — Turn validated catalog entries into ModelDescriptor objects.

Fills context/output limits with defaults when the upstream leaves them
null, derives capability flags and keeps pricing as-is.  A bad entry never
aborts the batch: it degrades to a minimal descriptor flagged ``degraded``.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Mapping, Optional, Tuple

from .config import DEFAULT_CONTEXT_LENGTH, DEFAULT_MAX_OUTPUT_TOKENS
from .models import Capabilities, ModelCategory, ModelDescriptor

logger = logging.getLogger(__name__)

_PRICING_FIELDS = ("prompt", "completion", "image", "request")


def _token_limit(value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number, got {type(value).__name__}")
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"expected a positive finite number, got {value}")
    return int(value)


def _pricing(value: Any) -> Optional[Dict[str, float]]:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise TypeError("pricing must be a mapping")
    return {k: value[k] for k in _PRICING_FIELDS if value.get(k) is not None}


def _str_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    return tuple(str(v) for v in value)


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def minimal_descriptor(model_id: str, category: ModelCategory) -> ModelDescriptor:
    """Descriptor built from defaults only."""
    return ModelDescriptor(
        id=model_id,
        display_name=model_id,
        context_length=DEFAULT_CONTEXT_LENGTH,
        max_output_tokens=DEFAULT_MAX_OUTPUT_TOKENS,
        capabilities=Capabilities(tool_calling=True, image_input=False),
        category=category,
        degraded=True,
    )


def normalize(raw: Mapping[str, Any], category: ModelCategory, index: int = 0) -> ModelDescriptor:
    """Build a descriptor for one catalog entry.  Never raises."""
    raw_id = raw.get("id") if isinstance(raw, Mapping) else None
    model_id = raw_id if isinstance(raw_id, str) and raw_id else f"model-{index}"
    try:
        vision = raw.get("vision")
        descriptor = ModelDescriptor(
            id=model_id,
            display_name=_optional_str(raw.get("name")) or model_id,
            context_length=_token_limit(raw.get("context_length"), DEFAULT_CONTEXT_LENGTH),
            max_output_tokens=_token_limit(raw.get("max_output_length"), DEFAULT_MAX_OUTPUT_TOKENS),
            # every NanoGPT chat model accepts tools
            capabilities=Capabilities(tool_calling=True, image_input=vision is True),
            category=category,
            pricing=_pricing(raw.get("pricing")),
            owned_by=_optional_str(raw.get("owned_by")),
            description=_optional_str(raw.get("description")),
            created=raw.get("created"),
            supported_features=_str_tuple(raw.get("supported_features")),
            supported_sampling_parameters=_str_tuple(raw.get("supported_sampling_parameters")),
            degraded=model_id != raw_id,
        )
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Failed to process model %s, using defaults: %s", model_id, exc)
        return minimal_descriptor(model_id, category)

    if descriptor.degraded:
        logger.warning("Catalog entry %d has no usable id, listed as %s", index, model_id)
    else:
        logger.debug("Processed model %s (%s)", model_id, category.value)
    return descriptor
