"""
Sample aggregator module.

Stores time-ordered sample streams and answers time-aligned queries on them.

Each registered stream keeps its samples sorted by time. A query at time t
returns either the nearest preceding sample, or, when interpolation is
requested, a sample interpolated between the two samples bracketing t.
Samples must provide an ``interpolate(other, fraction)`` method to be
queried with interpolation.

Stream parameters:
    - on_pop: Optional callback ``on_pop(time, sample)`` for dropped samples
    - buffer_size: Maximum number of retained samples (0 = unbounded)
    - period: Minimum spacing between accepted samples (0 = accept all)
    - lookback: Retention window in seconds relative to the newest sample
"""

from bisect import bisect_right
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

PopCallback = Callable[[float, Any], None]


class SampleStream:
    """Time-ordered buffer for a single stream."""

    def __init__(
        self,
        index: int,
        on_pop: Optional[PopCallback] = None,
        buffer_size: int = 0,
        period: float = 0.0,
        lookback: float = 10.0,
    ):
        if buffer_size < 0:
            raise ValueError(f"buffer_size must be >= 0, got {buffer_size}")
        if period < 0:
            raise ValueError(f"period must be >= 0, got {period}")
        if lookback < 0:
            raise ValueError(f"lookback must be >= 0, got {lookback}")

        self.index = index
        self.on_pop = on_pop
        self.buffer_size = buffer_size
        self.period = period
        self.lookback = lookback

        self.times: List[float] = []
        self.samples: List[Any] = []

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def latest_time(self) -> Optional[float]:
        return self.times[-1] if self.times else None

    def push(self, time: float, sample: Any) -> bool:
        """
        Append a sample.

        Returns:
            True if the sample was accepted
        """
        if self.times:
            last = self.times[-1]
            if time < last:
                logger.warning(
                    f"Stream {self.index}: dropping sample at {time:.6f}, "
                    f"older than newest sample at {last:.6f}"
                )
                return False
            if self.period > 0 and time - last < self.period:
                logger.debug(
                    f"Stream {self.index}: dropping sample at {time:.6f} "
                    f"(period {self.period})"
                )
                return False

        self.times.append(time)
        self.samples.append(sample)
        self._trim()
        return True

    def _trim(self) -> None:
        """Apply buffer size and lookback retention."""
        drop = 0
        if self.buffer_size > 0 and len(self.samples) > self.buffer_size:
            drop = len(self.samples) - self.buffer_size

        # Keep the newest sample at or before the cutoff so that queries
        # inside the window still find a preceding sample.
        cutoff = self.times[-1] - self.lookback
        first_kept = bisect_right(self.times, cutoff) - 1
        drop = max(drop, first_kept)

        if drop <= 0:
            return

        dropped_times = self.times[:drop]
        dropped_samples = self.samples[:drop]
        del self.times[:drop]
        del self.samples[:drop]

        logger.debug(f"Stream {self.index}: dropped {drop} sample(s) outside retention")
        if self.on_pop is not None:
            for t, s in zip(dropped_times, dropped_samples):
                self.on_pop(t, s)

    def query(self, time: float, interpolate: bool = False) -> Optional[Any]:
        """
        Get the sample at a given time.

        Args:
            time: Query time
            interpolate: Interpolate between bracketing samples

        Returns:
            Sample, or None if no suitable data exists
        """
        if not self.times:
            return None

        # Index of the last sample at or before `time`
        idx = bisect_right(self.times, time) - 1
        if idx < 0:
            return None

        if not interpolate or self.times[idx] == time:
            return self.samples[idx]

        if idx + 1 >= len(self.times):
            # No sample after `time` yet
            return None

        t0, t1 = self.times[idx], self.times[idx + 1]
        fraction = (time - t0) / (t1 - t0)
        return self.samples[idx].interpolate(self.samples[idx + 1], fraction)


class StreamAggregator:
    """
    Collection of sample streams addressed by integer index.

    Stream indices are assigned in registration order starting at 0 and are
    never reused.
    """

    def __init__(self):
        self._streams: Dict[int, SampleStream] = {}
        self._next_index = 0

    @property
    def stream_count(self) -> int:
        return len(self._streams)

    def register_stream(
        self,
        on_pop: Optional[PopCallback] = None,
        buffer_size: int = 0,
        period: float = 0.0,
        lookback: float = 10.0,
    ) -> int:
        """
        Register a new stream.

        Args:
            on_pop: Callback invoked with (time, sample) for every dropped sample
            buffer_size: Maximum number of samples kept (0 = unbounded)
            period: Minimum time between accepted samples (0 = no decimation)
            lookback: Retention window in seconds

        Returns:
            Index of the new stream
        """
        index = self._next_index
        self._streams[index] = SampleStream(index, on_pop, buffer_size, period, lookback)
        self._next_index += 1

        logger.debug(
            f"Registered stream {index} (buffer_size={buffer_size}, "
            f"period={period}, lookback={lookback})"
        )
        return index

    def _stream(self, stream_index: int) -> SampleStream:
        try:
            return self._streams[stream_index]
        except KeyError:
            raise KeyError(f"Unknown stream index {stream_index}") from None

    def push(self, stream_index: int, time: float, sample: Any) -> bool:
        """Push a sample into a stream. Returns True if it was accepted."""
        return self._stream(stream_index).push(time, sample)

    def query(self, stream_index: int, time: float, interpolate: bool = False) -> Optional[Any]:
        """Time-aligned lookup on a stream, see SampleStream.query."""
        return self._stream(stream_index).query(time, interpolate)

    def sample_count(self, stream_index: int) -> int:
        return len(self._stream(stream_index))

    def latest_time(self, stream_index: int) -> Optional[float]:
        return self._stream(stream_index).latest_time
