"""
Time-bucketed averaging of charted values.

Points are grouped into fixed-width buckets keyed by
floor(epoch_ms / width) * width and each bucket is reduced to its mean. The
output is a rolling window: only the most recent `max_buckets` survive, and
empty buckets are never materialized, so consumers must not assume uniform
spacing.
"""
import logging
import math
from typing import Dict, Iterable, List, Tuple

from agrilink.models.sensor_reading import AveragedDataPoint, RawPoint
from agrilink.models.timestamps import format_bucket, parse_epoch_ms

logger = logging.getLogger(__name__)

BUCKET_MS = 5 * 60 * 1000
MAX_BUCKETS = 60


def bucket_key(epoch_ms: int, bucket_ms: int = BUCKET_MS) -> int:
    return (epoch_ms // bucket_ms) * bucket_ms


def aggregate(
    points: Iterable[RawPoint],
    bucket_ms: int = BUCKET_MS,
    max_buckets: int = MAX_BUCKETS,
) -> List[AveragedDataPoint]:
    """Average points per bucket, oldest first, keeping the last max_buckets."""
    buckets: Dict[int, Tuple[float, int]] = {}
    skipped = 0

    for point in points:
        epoch_ms = parse_epoch_ms(point.timestamp)
        if epoch_ms is None:
            logger.warning(f"Invalid timestamp: {point.timestamp!r}")
            skipped += 1
            continue
        try:
            value = float(point.value)
        except (TypeError, ValueError):
            value = math.nan
        if not math.isfinite(value):
            logger.warning(f"Invalid value at {point.timestamp}: {point.value!r}")
            skipped += 1
            continue

        key = bucket_key(epoch_ms, bucket_ms)
        total, count = buckets.get(key, (0.0, 0))
        buckets[key] = (total + value, count + 1)

    if skipped:
        logger.debug(f"Skipped {skipped} unusable points while aggregating")

    keys = sorted(buckets)[-max_buckets:] if max_buckets > 0 else []
    return [
        AveragedDataPoint(
            timestamp=format_bucket(key),
            value=buckets[key][0] / buckets[key][1],
            count=buckets[key][1],
        )
        for key in keys
    ]
