# src/typedevents/core/metrics.py
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from statistics import mean
from typing import Any, Deque, Dict, List, Optional, Tuple

Labels = Tuple[Tuple[str, str], ...]

_SAMPLE_LIMIT = 2048


def _freeze(labels: Dict[str, Any]) -> Labels:
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _quantile(ordered: List[float], q: float) -> float:
    if not ordered:
        return 0.0
    pos = int(round((len(ordered) - 1) * q))
    return ordered[min(max(pos, 0), len(ordered) - 1)]


class Counter:
    """Monotonic float counter (handler calls, failures, ...)."""
    __slots__ = ("name", "labels", "_total", "_lock")

    def __init__(self, name: str, labels: Labels = ()):
        self.name = name
        self.labels = labels
        self._total = 0.0
        self._lock = threading.Lock()

    def inc(self, n: float = 1.0) -> None:
        with self._lock:
            self._total += n

    def value(self) -> float:
        with self._lock:
            return self._total


class Histogram:
    """Bounded window of samples, summarised on demand."""
    __slots__ = ("name", "labels", "_samples", "_lock")

    def __init__(self, name: str, labels: Labels = (), limit: int = _SAMPLE_LIMIT):
        self.name = name
        self.labels = labels
        self._samples: Deque[float] = deque(maxlen=limit)
        self._lock = threading.Lock()

    def observe(self, v: float) -> None:
        with self._lock:
            self._samples.append(float(v))

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            ordered = sorted(self._samples)
        summary = {"count": float(len(ordered)), "min": 0.0, "max": 0.0, "mean": 0.0, "p50": 0.0, "p99": 0.0}
        if ordered:
            summary.update(
                min=ordered[0],
                max=ordered[-1],
                mean=mean(ordered),
                p50=_quantile(ordered, 0.50),
                p99=_quantile(ordered, 0.99),
            )
        return summary


_lock = threading.RLock()
_counters: Dict[Tuple[str, Labels], Counter] = {}
_hists: Dict[Tuple[str, Labels], Histogram] = {}


def _counter(name: str, labels: Dict[str, Any]) -> Counter:
    key = (name, _freeze(labels))
    with _lock:
        if key not in _counters:
            _counters[key] = Counter(*key)
        return _counters[key]


def _hist(name: str, labels: Dict[str, Any]) -> Histogram:
    key = (name, _freeze(labels))
    with _lock:
        if key not in _hists:
            _hists[key] = Histogram(*key)
        return _hists[key]


def inc_counter(name: str, n: float = 1.0, **labels: Any) -> None:
    _counter(name, labels).inc(n)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    _hist(name, labels).observe(v)


def counter_value(name: str, **labels: Any) -> float:
    with _lock:
        m = _counters.get((name, _freeze(labels)))
    return 0.0 if m is None else m.value()


def reset() -> None:
    """Forget every series (tests)."""
    with _lock:
        _counters.clear()
        _hists.clear()


class Timer:
    """Record the wall time of a ``with`` block, in ms, into a histogram."""
    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self._t0 = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        observe_hist(self.hist_name, (time.perf_counter() - self._t0) * 1000.0, **self.labels)
        return False


def snapshot_all() -> dict:
    with _lock:
        counters, hists = list(_counters.values()), list(_hists.values())
    return {
        "counters": [{"name": m.name, "labels": dict(m.labels), "value": m.value()} for m in counters],
        "hists": [{"name": m.name, "labels": dict(m.labels), **m.snapshot()} for m in hists],
    }


# ---------------- Exporter (log every N seconds) ----------------

def _log_snapshot(logger: logging.Logger, json_mode: bool) -> None:
    snap = snapshot_all()
    if json_mode:
        for c in snap["counters"]:
            logger.info({"type": "counter", **c})
        for h in snap["hists"]:
            logger.info({"type": "hist", **h})
        return
    for c in snap["counters"]:
        logger.info("[ctr] %s %s value=%.0f", c["name"], c["labels"], c["value"])
    for h in snap["hists"]:
        logger.info(
            "[hist] %s %s n=%d min=%.3f p50=%.3f p99=%.3f max=%.3f mean=%.3f",
            h["name"], h["labels"], int(h["count"]), h["min"], h["p50"], h["p99"], h["max"], h["mean"],
        )


class _Exporter(threading.Thread):
    def __init__(self, interval_sec: float, json_mode: bool, logger: logging.Logger):
        super().__init__(name="typedevents-metrics", daemon=True)
        self.interval = float(interval_sec)
        self.json_mode = json_mode
        self.logger = logger
        self._halt = threading.Event()

    def run(self) -> None:
        while not self._halt.wait(self.interval):
            _log_snapshot(self.logger, self.json_mode)

    def halt(self, timeout: float) -> None:
        self._halt.set()
        self.join(timeout=timeout)


_EXPORTER: Optional[_Exporter] = None


def start_exporter(interval_sec: float = 5.0, json_mode: bool = False, logger: Optional[logging.Logger] = None) -> None:
    """Log a snapshot every ``interval_sec`` from a daemon thread; no-op if running."""
    global _EXPORTER
    if _EXPORTER is not None:
        return
    _EXPORTER = _Exporter(interval_sec, json_mode, logger or logging.getLogger("typedevents.metrics"))
    _EXPORTER.start()


def stop_exporter(timeout: float = 1.0) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        _EXPORTER.halt(timeout)
        _EXPORTER = None


def force_emit(logger: Optional[logging.Logger] = None, json_mode: bool = False) -> None:
    """Log a snapshot now (useful for tests without sleeping)."""
    _log_snapshot(logger or logging.getLogger("typedevents.metrics"), json_mode)
