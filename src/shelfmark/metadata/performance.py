# ABOUTME: Rolling record of provider call latency and success used by the "fastest" strategy.
# ABOUTME: Owned by the orchestrator and updated after every provider call.

import logging
from collections import deque
from dataclasses import dataclass
from statistics import fmean

logger = logging.getLogger(__name__)

_DEFAULT_MAX_SAMPLES = 100


@dataclass(frozen=True)
class CallSample:
    """Duration in seconds of one provider call and whether it succeeded."""

    duration: float
    succeeded: bool


class PerformanceHistory:
    """Bounded per-provider history of call samples."""

    def __init__(self, max_samples: int = _DEFAULT_MAX_SAMPLES) -> None:
        if max_samples <= 0:
            msg = f"max_samples must be positive, got {max_samples}"
            raise ValueError(msg)
        self._max_samples = max_samples
        self._samples: dict[str, deque[CallSample]] = {}

    def record(self, provider: str, duration: float, *, succeeded: bool = True) -> None:
        samples = self._samples.setdefault(provider, deque(maxlen=self._max_samples))
        samples.append(CallSample(duration=max(0.0, duration), succeeded=succeeded))
        logger.debug("Recorded %s call: %.3fs succeeded=%s", provider, duration, succeeded)

    def mean_latency(self, provider: str) -> float | None:
        """Mean duration of recorded calls, or None when nothing was recorded."""
        samples = self._samples.get(provider)
        if not samples:
            return None
        return fmean(s.duration for s in samples)

    def success_rate(self, provider: str) -> float | None:
        samples = self._samples.get(provider)
        if not samples:
            return None
        return sum(1 for s in samples if s.succeeded) / len(samples)

    def sample_count(self, provider: str) -> int:
        return len(self._samples.get(provider, ()))

    def providers(self) -> list[str]:
        return sorted(self._samples)
