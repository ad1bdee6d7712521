"""Support/Resistance zone detection from a volume profile — pure functions."""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from app.market.models import Candle
from app.strategy.models import SRZone


@dataclass(frozen=True)
class VolumeBucket:
    """Volume traded inside one price bin; ``price`` is the bin midpoint."""

    price: float
    volume: float


def calculate_volume_profile(
    candles: Sequence[Candle], buckets: int = 100
) -> list[VolumeBucket]:
    """Distribute traded volume across equal-width price bins.

    The bins span the lowest low to the highest high.  Each candle spreads
    its volume over the bins its ``[low, high]`` range overlaps, in
    proportion to the overlap.  A candle with no range puts all of its
    volume in the bin containing its price.

    Returns an empty list for no candles or a zero price range.
    """
    if buckets <= 0:
        raise ValueError(f"buckets must be positive, got {buckets}")
    if not candles:
        return []

    lows = np.array([c.low for c in candles], dtype=float)
    highs = np.array([c.high for c in candles], dtype=float)
    volumes = np.array([c.volume for c in candles], dtype=float)

    range_low = float(lows.min())
    range_high = float(highs.max())
    if range_high <= range_low:
        return []

    edges = np.linspace(range_low, range_high, buckets + 1)
    bin_low, bin_high = edges[:-1], edges[1:]
    profile = np.zeros(buckets)

    for low, high, volume in zip(lows, highs, volumes):
        if high > low:
            overlap = np.minimum(bin_high, high) - np.maximum(bin_low, low)
            profile += volume * np.clip(overlap, 0.0, None) / (high - low)
        else:
            idx = int((low - range_low) / (range_high - range_low) * buckets)
            profile[min(idx, buckets - 1)] += volume

    mids = (bin_low + bin_high) / 2
    return [VolumeBucket(price=float(p), volume=float(v)) for p, v in zip(mids, profile)]


def find_volume_point_of_control(
    profile: Sequence[VolumeBucket],
) -> Optional[VolumeBucket]:
    """The bin with the most traded volume, or ``None`` for an empty profile."""
    if not profile:
        return None
    return max(profile, key=lambda b: b.volume)


def _merge_buckets(
    buckets: list[VolumeBucket], threshold: float
) -> list[tuple[float, float]]:
    """Merge bins closer than *threshold* to an existing cluster.

    Volumes add up; the cluster price becomes the average of the two prices.
    Returns ``(price, volume)`` pairs.
    """
    clusters: list[list[float]] = []
    for bucket in buckets:
        for cluster in clusters:
            if abs(cluster[0] - bucket.price) < threshold:
                cluster[0] = (cluster[0] + bucket.price) / 2
                cluster[1] += bucket.volume
                break
        else:
            clusters.append([bucket.price, bucket.volume])
    return [(price, volume) for price, volume in clusters]


def find_support_resistance_zones(
    candles: Sequence[Candle],
    current_price: float,
    top_n: int = 10,
    merge_pct: float = 0.02,
    zone_width_pct: float = 0.01,
    per_side: int = 2,
) -> list[SRZone]:
    """Derive support and resistance bands from volume concentration.

    Args:
        candles: Candle window, typically daily.
        current_price: Price that splits support (below) from resistance.
        top_n: Number of highest-volume bins considered.
        merge_pct: Bins closer than this fraction of the price range merge.
        zone_width_pct: Half-width of each zone as a fraction of its price.
        per_side: Zones kept per type, closest to *current_price* first.

    Returns:
        Up to ``2 × per_side`` ``SRZone`` objects sorted by price.
    """
    profile = calculate_volume_profile(candles)
    if not profile:
        return []

    price_range = max(c.high for c in candles) - min(c.low for c in candles)
    heaviest = sorted(
        (b for b in profile if b.volume > 0), key=lambda b: b.volume, reverse=True
    )[:top_n]
    clusters = _merge_buckets(heaviest, price_range * merge_pct)

    supports: list[SRZone] = []
    resistances: list[SRZone] = []
    for price, volume in sorted(clusters):
        zone = SRZone(
            zone_type="support" if price < current_price else "resistance",
            min_price=price * (1 - zone_width_pct),
            max_price=price * (1 + zone_width_pct),
            strength=volume,
        )
        (supports if zone.zone_type == "support" else resistances).append(zone)

    def _distance(z: SRZone) -> float:
        return abs(z.midpoint - current_price)

    kept = sorted(supports, key=_distance)[:per_side] + sorted(resistances, key=_distance)[:per_side]
    kept.sort(key=lambda z: z.midpoint)
    return kept
