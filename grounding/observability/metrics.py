from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Iterable, Tuple

from grounding.settings import settings


_RETRIEVAL_LATENCY_BUCKETS: Tuple[float, ...] = (250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)
_RETRIEVAL_PATHS: Tuple[str, ...] = ("category", "fallback")


@dataclass
class HistogramState:
    buckets: Dict[float, int]
    inf_count: int
    count: int
    total: float


class Histogram:
    def __init__(self, bucket_boundaries: Iterable[float]) -> None:
        self._boundaries = tuple(sorted(float(boundary) for boundary in bucket_boundaries))
        self._state = self._empty_state()
        self._lock = Lock()

    @property
    def boundaries(self) -> Tuple[float, ...]:
        return self._boundaries

    def observe(self, value: float) -> None:
        with self._lock:
            state = self._state
            state.count += 1
            state.total += value
            for boundary in self._boundaries:
                if value <= boundary:
                    state.buckets[boundary] += 1
                    break
            else:
                state.inf_count += 1

    def snapshot(self) -> HistogramState:
        with self._lock:
            return HistogramState(
                buckets=dict(self._state.buckets),
                inf_count=self._state.inf_count,
                count=self._state.count,
                total=self._state.total,
            )

    def reset(self) -> None:
        with self._lock:
            self._state = self._empty_state()

    def _empty_state(self) -> HistogramState:
        return HistogramState(
            buckets={boundary: 0 for boundary in self._boundaries},
            inf_count=0,
            count=0,
            total=0.0,
        )


class MetricsRegistry:
    def __init__(self) -> None:
        self._retrieval_counters: Dict[str, int] = defaultdict(int)
        self._fetch_failures: Dict[str, int] = defaultdict(int)
        self._ungrounded_total = 0
        self._lock = Lock()
        self._latency_histogram = Histogram(_RETRIEVAL_LATENCY_BUCKETS)

    def increment_retrieval(self, path: str) -> None:
        if not settings.metrics_enabled:
            return
        with self._lock:
            self._retrieval_counters[path] += 1

    def increment_ungrounded(self) -> None:
        if not settings.metrics_enabled:
            return
        with self._lock:
            self._ungrounded_total += 1

    def increment_fetch_failure(self, kind: str) -> None:
        if not settings.metrics_enabled:
            return
        with self._lock:
            self._fetch_failures[kind] += 1

    def observe_latency(self, latency_ms: float) -> None:
        if not settings.metrics_enabled:
            return
        self._latency_histogram.observe(latency_ms)

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            retrievals = dict(self._retrieval_counters)
            failures = dict(self._fetch_failures)
            ungrounded = self._ungrounded_total
        return {
            "retrievals": retrievals,
            "fetch_failures": failures,
            "ungrounded_total": ungrounded,
            "histogram": self._latency_histogram.snapshot(),
        }

    def reset(self) -> None:
        with self._lock:
            self._retrieval_counters.clear()
            self._fetch_failures.clear()
            self._ungrounded_total = 0
        self._latency_histogram.reset()


_registry: MetricsRegistry | None = None


def get_metrics_registry() -> MetricsRegistry:
    global _registry
    if _registry is None:
        _registry = MetricsRegistry()
    return _registry


def format_prometheus_metrics() -> str:
    if not settings.metrics_enabled:
        return ""

    snapshot = get_metrics_registry().snapshot()
    lines = []

    lines.append("# HELP retrieval_requests_total Retrievals by grounding path")
    lines.append("# TYPE retrieval_requests_total counter")
    retrievals: Dict[str, int] = snapshot["retrievals"]
    for path in _RETRIEVAL_PATHS:
        lines.append(f'retrieval_requests_total{{path="{path}"}} {retrievals.get(path, 0)}')

    lines.append("# HELP retrieval_ungrounded_total Retrievals that produced no context")
    lines.append("# TYPE retrieval_ungrounded_total counter")
    lines.append(f"retrieval_ungrounded_total {snapshot['ungrounded_total']}")

    lines.append("# HELP fetch_failures_total Failed source fetches by error kind")
    lines.append("# TYPE fetch_failures_total counter")
    failures: Dict[str, int] = snapshot["fetch_failures"]
    for kind in sorted(failures):
        lines.append(f'fetch_failures_total{{kind="{kind}"}} {failures[kind]}')

    lines.append("# HELP retrieval_latency_ms_bucket Histogram of retrieval latency in milliseconds")
    lines.append("# TYPE retrieval_latency_ms_bucket histogram")
    histogram: HistogramState = snapshot["histogram"]
    cumulative = 0
    for boundary in _RETRIEVAL_LATENCY_BUCKETS:
        cumulative += histogram.buckets.get(boundary, 0)
        lines.append(f'retrieval_latency_ms_bucket{{le="{int(boundary)}"}} {cumulative}')
    lines.append('retrieval_latency_ms_bucket{le="+Inf"} ' + str(cumulative + histogram.inf_count))
    lines.append(f"retrieval_latency_ms_count {histogram.count}")
    lines.append(f"retrieval_latency_ms_sum {round(histogram.total, 6)}")

    return "\n".join(lines) + "\n"
