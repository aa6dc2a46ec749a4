import logging
from collections import deque
from enum import Enum
from typing import Callable, Deque, List, Optional, Sequence, Union

from agrilink.event_hub import EventHub, Subscription
from agrilink.models.events import Topic
from agrilink.models.sensor_reading import AveragedDataPoint, CombinedReading, RawPoint, SensorReading
from agrilink.models.timestamps import parse_epoch_ms
from agrilink.processing.aggregator import BUCKET_MS, MAX_BUCKETS, aggregate, bucket_key
from agrilink.scheduler import Debouncer, Scheduler

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 30.0
NO_DATA_MESSAGE = "No data available from the server"
# Live points held while a burst is still arriving; the oldest are dropped first
MAX_QUEUED = 100

Reading = Union[SensorReading, CombinedReading]


class SeriesKind(Enum):
    """Quantities that can be charted."""
    MOISTURE = "moisture"
    TEMPERATURE = "temperature"
    NUTRIENTS = "nutrients"

    @classmethod
    def parse(cls, value: str) -> "SeriesKind":
        try:
            return cls(value.strip().lower())
        except (AttributeError, ValueError):
            raise ValueError(f"Invalid kind: {value}. Valid values are: {', '.join(k.value for k in cls)}") from None


def extract_value(reading: Reading, kind: SeriesKind) -> float:
    if kind is SeriesKind.MOISTURE:
        return reading.moisture
    if kind is SeriesKind.TEMPERATURE:
        return reading.temperature
    # Nutrients chart the mean NPK index
    return (reading.nitrogen + reading.phosphorus + reading.potassium) / 3


def to_points(readings: Sequence[Reading], kind: SeriesKind) -> List[RawPoint]:
    return [RawPoint(timestamp=r.timestamp, value=extract_value(r, kind)) for r in readings]


class HistoricalSeries:
    """
    Averaged chart series for one quantity, kept current from live readings.

    Live updates are queued and coalesced: the aggregate is recomputed from raw
    points once the stream has been quiet for `debounce_seconds`. Raw points
    older than the oldest displayed bucket are discarded after each pass, and
    at most `max_queued` live points wait for the next pass.
    """

    def __init__(
        self,
        hub: EventHub,
        history_source: Callable[[], Sequence[Reading]],
        kind: SeriesKind,
        scheduler: Scheduler,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        bucket_ms: int = BUCKET_MS,
        max_buckets: int = MAX_BUCKETS,
        max_queued: int = MAX_QUEUED,
        on_change: Optional[Callable[[List[AveragedDataPoint]], None]] = None,
    ):
        self.kind = kind
        self.bucket_ms = bucket_ms
        self.max_buckets = max_buckets
        self.points: List[AveragedDataPoint] = []
        self.error: Optional[str] = None
        self.recompute_count = 0
        self._hub = hub
        self._history_source = history_source
        self._on_change = on_change
        self._raw: List[RawPoint] = []
        self._queued: Deque[RawPoint] = deque(maxlen=max(max_queued, 1))
        self._debouncer = Debouncer(scheduler, debounce_seconds, self._flush)
        self._subscription: Optional[Subscription] = None

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def open(self) -> List[AveragedDataPoint]:
        """Load retained history and start following live data."""
        points = self.load()
        if self._subscription is None:
            self._subscription = self._hub.subscribe(Topic.DATA, self._on_data)
        return points

    def load(self) -> List[AveragedDataPoint]:
        """Rebuild the series from retained history, dropping queued live points."""
        self._debouncer.cancel()
        self._queued.clear()
        readings = self._history_source()
        if not readings:
            logger.warning(f"No history available for {self.kind.value} series")
            self.error = NO_DATA_MESSAGE
            self._raw = []
            self._set_points([])
            return self.points

        self.error = None
        self._raw = to_points(readings, self.kind)
        self._recompute()
        logger.info(f"Loaded {len(readings)} readings into {len(self.points)} {self.kind.value} buckets")
        return self.points

    def close(self):
        self._debouncer.cancel()
        if self._subscription is not None:
            self._hub.unsubscribe(self._subscription)
            self._subscription = None

    def _on_data(self, topic: Topic, reading: CombinedReading):
        self._queued.append(RawPoint(timestamp=reading.timestamp, value=extract_value(reading, self.kind)))
        self._debouncer.trigger()

    def _flush(self):
        self._raw.extend(self._queued)
        self._queued.clear()
        self._recompute()

    def _recompute(self):
        points = aggregate(self._raw, self.bucket_ms, self.max_buckets)
        self.recompute_count += 1
        if points:
            self.error = None
            oldest = parse_epoch_ms(points[0].timestamp)
            self._raw = [
                p for p in self._raw
                if (epoch := parse_epoch_ms(p.timestamp)) is not None and bucket_key(epoch, self.bucket_ms) >= oldest
            ]
        else:
            self._raw = []
        self._set_points(points)

    def _set_points(self, points: List[AveragedDataPoint]):
        self.points = points
        if self._on_change is not None:
            self._on_change(points)
