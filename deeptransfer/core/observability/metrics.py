from __future__ import annotations

from collections import Counter
from typing import Dict

from prometheus_client import Counter as PromCounter

# Named counters (custom, in-process snapshot)
_NAMED = Counter()

TRANSFER_RECORDS_EXPORTED_TOTAL = PromCounter(
    "transfer_records_exported_total",
    "Records written to export streams",
    ["format"],
)

TRANSFER_RECORDS_IMPORTED_TOTAL = PromCounter(
    "transfer_records_imported_total",
    "Root records persisted by streaming imports",
)

TRANSFER_FAILURES_TOTAL = PromCounter(
    "transfer_failures_total",
    "Transfer requests that failed, by error kind",
    ["kind"],
)


def reset_metrics() -> None:
    """
    Test helper: clears named counters to avoid cross-test leakage.
    Prometheus counters are process-wide and never reset.
    """
    _NAMED.clear()


def inc_named(name: str, value: int = 1) -> None:
    if not name:
        return
    _NAMED[name] += int(value)


def snapshot_named() -> Dict[str, int]:
    return dict(_NAMED)


def record_exported(fmt: str) -> None:
    _NAMED[f"exported_{fmt}"] += 1
    TRANSFER_RECORDS_EXPORTED_TOTAL.labels(format=fmt).inc()


def record_imported() -> None:
    _NAMED["imported"] += 1
    TRANSFER_RECORDS_IMPORTED_TOTAL.inc()


def record_failure(kind: str) -> None:
    _NAMED[f"failure_{kind}"] += 1
    TRANSFER_FAILURES_TOTAL.labels(kind=kind).inc()
