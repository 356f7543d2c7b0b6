"""
Video pricing resolution.

Models carry a declarative `VideoModelPricing`; this module turns it into a
USD cost for one generation:

1. Per-second pricing (e.g. OpenAI Sora): cost = rate x duration
2. Flat per-generation pricing (e.g. WaveSpeed): cost = rate, whatever the duration
3. Resolution overrides replace only the rate fields they define

Per-second pricing wins when both rates are present. Missing pricing is free.
"""
from typing import Optional, TYPE_CHECKING

from brandforge.providers.base import VideoModelPricing

if TYPE_CHECKING:
    from brandforge.providers.registry import ProviderRegistry


def effective_rates(
    pricing: VideoModelPricing,
    resolution: Optional[str] = None,
) -> tuple[Optional[float], Optional[float]]:
    """Get (cost_per_second, cost_per_generation) after applying any resolution override."""
    per_second = pricing.estimated_cost_per_second
    per_generation = pricing.estimated_cost_per_generation

    if resolution and pricing.pricing_by_resolution:
        override = pricing.pricing_by_resolution.get(resolution)
        if override is not None:
            if override.estimated_cost_per_second is not None:
                per_second = override.estimated_cost_per_second
            if override.estimated_cost_per_generation is not None:
                per_generation = override.estimated_cost_per_generation

    return per_second, per_generation


def resolve_cost(
    pricing: Optional[VideoModelPricing],
    duration_seconds: Optional[float],
    resolution: Optional[str] = None,
) -> float:
    """
    Calculate the cost of one generation in the pricing's currency.

    Args:
        pricing: The model's pricing descriptor (None = unknown = free)
        duration_seconds: Video length; None or <= 0 prices per-second models at 0
        resolution: Optional resolution label ('480p', '720p', ...) for overrides

    Returns:
        Cost as a float, never negative
    """
    if pricing is None:
        return 0.0

    per_second, per_generation = effective_rates(pricing, resolution)

    if per_second is not None and per_second > 0:
        if not duration_seconds or duration_seconds <= 0:
            return 0.0
        return duration_seconds * per_second

    if per_generation is not None and per_generation > 0:
        return per_generation

    return 0.0


def lookup_model_cost(
    registry: "ProviderRegistry",
    provider_name: str,
    model_id: str,
    duration_seconds: Optional[float],
    resolution: Optional[str] = None,
) -> float:
    """Look up a model's pricing in the registry and compute cost. Unknown models cost 0."""
    model = registry.find_model(provider_name, model_id)
    if model is None or model.pricing is None:
        return 0.0
    return resolve_cost(model.pricing, duration_seconds, resolution)


def format_cost(cost: float) -> str:
    """Format cost for display (e.g., "$0.0012" or "<$0.0001")."""
    if cost == 0:
        return "$0.00"
    if cost < 0.0001:
        return "<$0.0001"
    if cost < 0.01:
        return f"${cost:.4f}"
    return f"${cost:.2f}"
