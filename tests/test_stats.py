import pytest

from runstore.stats import (
    AGGREGATE_NAMES,
    comparative_stats,
    percentile_95,
    percentile_offset,
    scope_aggregates,
    scope_stats,
)
from utils_test import make_payload, make_request


@pytest.mark.parametrize(
    "count, offset", [(0, 0), (1, 0), (19, 0), (20, 1), (39, 1), (40, 2), (1000, 50)]
)
def test_percentile_offset(count, offset):
    assert percentile_offset(count) == offset


def save_runs(repo, url, values):
    for wt in values:
        repo.save_run(
            make_payload(wt=wt, cpu=wt * 2, pmu=wt * 3), request=make_request(url)
        )


def test_twenty_runs(repo):
    save_runs(repo, "/report", range(1, 21))
    stats = scope_stats(repo.adapter, "url", "/report")

    assert stats["url"] == "/report"
    assert stats["count"] == 20
    assert stats["min_wt"] == 1
    assert stats["max_wt"] == 20
    assert stats["avg_wt"] == pytest.approx(10.5)
    assert stats["p95_wt"] == 19
    assert stats["p95_cpu"] == 38
    assert stats["p95_pmu"] == 57


def test_nineteen_runs_take_the_maximum(repo):
    save_runs(repo, "/report", range(1, 20))
    stats = scope_stats(repo.adapter, "url", "/report")
    assert stats["p95_wt"] == stats["max_wt"] == 19


def test_no_matching_runs(repo):
    stats = scope_stats(repo.adapter, "url", "/never-seen")
    assert stats["count"] == 0
    for name in AGGREGATE_NAMES:
        assert stats[name] is None
    assert stats["p95_wt"] is None
    assert stats["p95_cpu"] is None
    assert stats["p95_pmu"] is None


def test_equal_values(repo):
    save_runs(repo, "/flat", [7] * 25)
    stats = scope_stats(repo.adapter, "url", "/flat")
    assert stats["p95_wt"] == 7
    assert stats["min_wt"] == stats["max_wt"] == 7


def test_canonical_scope_spans_urls(repo):
    save_runs(repo, "/user/1", [10, 20])
    save_runs(repo, "/user/2", [30])
    save_runs(repo, "/about", [1000])

    aggregates = scope_aggregates(repo.adapter, "canonical_url", "/user/N")
    assert aggregates["count"] == 3
    assert aggregates["max_wt"] == 30
    assert aggregates["min_wt"] == 10


def test_empty_and_null_scope_values(repo):
    save_runs(repo, "", [5])
    assert scope_aggregates(repo.adapter, "url", "")["count"] == 1
    assert scope_aggregates(repo.adapter, "url", None)["count"] == 0


def test_comparative_stats(repo):
    save_runs(repo, "/user/1", [10, 20])
    save_runs(repo, "/user/2", [30])

    stats = comparative_stats(repo.adapter, "/user/1", "/user/N")
    assert set(stats) == {"url", "canonical_url"}
    assert stats["url"]["count"] == 2
    assert stats["url"]["url"] == "/user/1"
    assert stats["canonical_url"]["count"] == 3
    assert stats["canonical_url"]["url"] == "/user/N"
    assert set(stats["url"]) == set(stats["canonical_url"])


def test_unknown_metric_or_scope(repo):
    with pytest.raises(ValueError):
        percentile_95(repo.adapter, "url", "/x", "memory", 10)
    with pytest.raises(ValueError):
        scope_stats(repo.adapter, "server_name", "web-1")
