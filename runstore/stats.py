"""
Comparative statistics for a run against its historical peers.

The 95th percentile is an order statistic, not an interpolated percentile:
with ``n`` matching runs ordered by the metric descending, the value at offset
``n // 20`` is taken. It costs one indexed sort per metric. Equal values are
ordered by ``id`` descending so results do not depend on the backend.
"""
from __future__ import annotations

from typing import Any

from runstore.adapter import StorageAdapter
from runstore.query import Criteria, build_select

METRICS = ("wt", "cpu", "pmu")
SCOPES = ("url", "canonical_url")

AGGREGATE_NAMES = [f"{func}_{metric}" for metric in METRICS for func in ("avg", "min", "max")]
AGGREGATES = ", ".join(
    ["COUNT(id) AS count"]
    + [f"{name[:3].upper()}({name[4:]}) AS {name}" for name in AGGREGATE_NAMES]
)


def percentile_offset(count: int) -> int:
    return int(count) // 20


def _scoped(scope: str, value: str | None, **clauses) -> Criteria:
    if value is None:
        return Criteria(raw_where=f"{scope} IS NULL", **clauses)
    if value == "":
        # Empty filter values are emitted as raw fragments, not bound
        return Criteria(raw_where=f"{scope} = ''", **clauses)
    return Criteria(equality_filters={scope: value}, **clauses)


def scope_aggregates(adapter: StorageAdapter, scope: str, value: str) -> dict[str, Any]:
    """Count, average, min and max of every metric over runs where ``scope = value``"""
    sql, params = build_select(_scoped(scope, value, select=AGGREGATES))
    row = adapter.fetch(adapter.execute(sql, params)) or {}
    aggregates = {key: row.get(key) for key in ["count", *AGGREGATE_NAMES]}
    aggregates["count"] = int(aggregates["count"] or 0)
    return aggregates


def percentile_95(
    adapter: StorageAdapter, scope: str, value: str, metric: str, count: int
) -> Any:
    """Approximate 95th percentile of ``metric`` among ``count`` matching runs.

    Returns None when nothing matches.
    """
    if metric not in METRICS:
        raise ValueError(f"Unknown metric {metric!r}")
    if count <= 0:
        return None
    criteria = _scoped(
        scope,
        value,
        select=f"{metric} AS value",
        order_by=f"{metric} DESC, id",
        limit=1,
        offset=percentile_offset(count),
    )
    row = adapter.fetch(adapter.execute(*build_select(criteria)))
    return None if row is None else row["value"]


def scope_stats(adapter: StorageAdapter, scope: str, value: str) -> dict[str, Any]:
    if scope not in SCOPES:
        raise ValueError(f"Unknown scope {scope!r}")
    row = scope_aggregates(adapter, scope, value)
    row["url"] = value
    for metric in METRICS:
        row[f"p95_{metric}"] = percentile_95(adapter, scope, value, metric, row["count"])
    return row


def comparative_stats(
    adapter: StorageAdapter, url: str, canonical_url: str
) -> dict[str, dict[str, Any]]:
    """Statistics of all runs sharing ``url``, and of all runs sharing
    ``canonical_url``, keyed by scope name"""
    return {
        "url": scope_stats(adapter, "url", url),
        "canonical_url": scope_stats(adapter, "canonical_url", canonical_url),
    }
