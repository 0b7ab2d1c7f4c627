from __future__ import annotations

import datetime
import logging
import os
import uuid
import zlib
from collections.abc import Callable, Mapping
from typing import Any, NamedTuple

import msgpack
import pandas
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from runstore.adapter import StorageAdapter, make_adapter
from runstore.config import Settings, load_settings
from runstore.context import RequestContext
from runstore.errors import DecodeError, IntegrityViolation, QueryError
from runstore.query import Criteria, as_criteria, build_select
from runstore.schema import BINARY_COLUMNS, details as details_table
from runstore.serializers import Serializer, compress, decompress, get_serializer
from runstore.stats import SCOPES, comparative_stats
from runstore.urls import canonicalize_url

logger = logging.getLogger("runstore")

POST_PLACEHOLDER = {"Skipped": "Post data omitted by rule"}

DECODE_ERRORS = (
    zlib.error,
    ValueError,  # includes json.JSONDecodeError and UnicodeDecodeError
    TypeError,
    msgpack.exceptions.UnpackException,
)


class RunResult(NamedTuple):
    payload: dict[str, Any] | None
    metadata: dict[str, Any] | None
    description: str
    comparative: dict[str, dict[str, Any]] | None

    @property
    def found(self) -> bool:
        return self.metadata is not None


def materialize(value: Any) -> Any:
    """Read binary column values that arrive as views or streams into bytes"""
    if isinstance(value, (memoryview, bytearray)):
        return bytes(value)
    if hasattr(value, "read"):
        chunks = []
        while chunk := value.read():
            chunks.append(chunk)
        return b"".join(chunks)
    return value


def headline_metric(payload: Mapping[str, Any], name: str) -> int:
    main = payload.get("main()") or {}
    value = int(main.get(name) or 0)
    if value < 0:
        raise ValueError(f"main() {name} must be non-negative, got {value}")
    return value


class RunRepository:
    """Save profiler runs and load them back with comparative statistics.

    Parameters
    ----------
    adapter
        Storage adapter for the configured backend.
    settings
        Serializer choice, POST capture policy, server identity.
    serializer
        Overrides the serializer named in ``settings``.
    normalizer
        Maps a raw URL to its canonical grouping key.
    """

    def __init__(
        self,
        adapter: StorageAdapter,
        settings: Settings | None = None,
        serializer: Serializer | None = None,
        normalizer: Callable[[str], str] = canonicalize_url,
    ):
        self.adapter = adapter
        self.settings = settings or Settings()
        self.serializer = serializer or get_serializer(self.settings.serializer)
        self.normalizer = normalizer

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RunRepository:
        settings = settings or load_settings()
        return cls(make_adapter(settings), settings)

    def close(self) -> None:
        self.adapter.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @staticmethod
    def gen_run_id() -> str:
        return uuid.uuid4().hex

    def save_run(
        self,
        payload: Mapping[str, Any],
        run_type: Any = None,
        run_id: str | None = None,
        details: Mapping[str, Any] | None = None,
        request: RequestContext | None = None,
    ) -> str:
        """Persist one run and return its id.

        Raises
        ------
        IntegrityViolation
            If ``run_id`` already exists or the insert did not affect exactly
            one row.
        """
        run_id = run_id or self.gen_run_id()
        details = details or {}
        request = request or RequestContext.from_process()
        encode = self.serializer.encode

        post = request.post if self.settings.save_post else POST_PLACEHOLDER
        blobs = {
            "perfdata": compress(encode(dict(payload))),
            "get": encode(request.get),
            "cookie": encode(request.cookie),
            "post": encode(post),
        }
        values = {
            "id": run_id,
            "url": request.url,
            "canonical_url": self.normalizer(request.url),
            "timestamp": datetime.datetime.fromtimestamp(
                int(request.timestamp), datetime.timezone.utc
            ).replace(tzinfo=None),
            "server_name": request.server_name,
            "type": int(details.get("type", 0)),
            "pmu": headline_metric(payload, "pmu"),
            "wt": headline_metric(payload, "wt"),
            "cpu": headline_metric(payload, "cpu"),
            "server_id": self.settings.server_id,
            "extra_tag": os.environ.get(self.settings.extra_tag_env) or None,
        }

        statement = details_insert(values)
        for column in BINARY_COLUMNS:
            statement = self.adapter.bind_binary(statement, column, blobs[column])

        try:
            self.adapter.execute(statement)
        except IntegrityError as e:
            raise IntegrityViolation(run_id) from e

        affected = self.adapter.affected_rows()
        if affected != 1:
            raise IntegrityViolation(run_id, affected)

        logger.info("Saved run %s (namespace=%s) for %s", run_id, run_type, request.url)
        return run_id

    def get_run(self, run_id: str, run_type: Any = None) -> RunResult:
        """Load a run, its metadata and comparative statistics for its URL.

        A missing run gives a result with ``found == False``. A stored blob that
        cannot be decoded raises :class:`~runstore.errors.DecodeError`.
        """
        description = f"Run (namespace={run_type})"
        statement = select(details_table).where(details_table.c.id == run_id)
        row = self.adapter.fetch(self.adapter.execute(statement))
        if row is None:
            logger.debug("Run %s not found", run_id)
            return RunResult(None, None, description, None)

        for column in BINARY_COLUMNS:
            if row.get(column) is not None:
                row[column] = materialize(row[column])

        payload = self._decode(run_id, "perfdata", row.pop("perfdata"), compressed=True)
        for column in ("get", "cookie", "post"):
            row[column] = self._decode(run_id, column, row[column])

        comparative = comparative_stats(self.adapter, row["url"], row["canonical_url"])
        return RunResult(payload, row, description, comparative)

    def _decode(self, run_id: str, column: str, blob: bytes | None, compressed=False):
        if blob is None:
            return None
        try:
            if compressed:
                blob = decompress(blob)
            return self.serializer.decode(blob)
        except DECODE_ERRORS as e:
            logger.warning("Run %s: %s is not valid %s data", run_id, column, self.serializer.name)
            raise DecodeError(run_id, column, e) from e

    def get_runs(self, criteria: Criteria | Mapping[str, Any] | None = None):
        """Rows of the runs table matching ``criteria``"""
        sql, params = build_select(criteria)
        return self.adapter.execute(sql, params)

    def get_hard_hit(
        self,
        days: int,
        column: str = "url",
        criteria: Criteria | Mapping[str, Any] | None = None,
    ):
        """Most frequently hit endpoints over the last ``days`` days with their
        total and average wall time"""
        if column not in SCOPES:
            raise QueryError(f"Cannot rank runs by {column!r}")
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            raise QueryError(f"days must be a non-negative integer, got {days!r}")
        criteria = as_criteria(criteria)
        recent = f"{self.adapter.date_sub(days)} <= timestamp"
        criteria = criteria.merge(
            select=(
                f"{column}, COUNT({column}) AS count, "
                "SUM(wt) AS total_wall, AVG(wt) AS avg_wall"
            ),
            raw_where=f"({criteria.raw_where}) AND {recent}" if criteria.raw_where else recent,
            group_by=column,
            order_by="count",
        )
        return self.get_runs(criteria)

    def _url_stats_criteria(self, criteria) -> Criteria:
        return as_criteria(criteria).merge(
            select=(
                f"id, {self.adapter.unix_timestamp('timestamp')} AS timestamp, "
                "pmu, wt, cpu"
            )
        )

    def get_url_stats(self, criteria: Criteria | Mapping[str, Any] | None = None):
        """Per-run timestamp and metrics for plotting, e.g.
        ``{"canonical_url": key, "limit": 100}``"""
        return self.get_runs(self._url_stats_criteria(criteria))

    def url_stats_frame(
        self, criteria: Criteria | Mapping[str, Any] | None = None
    ) -> pandas.DataFrame:
        """:meth:`get_url_stats` as a DataFrame with a datetime ``timestamp``"""
        sql, params = build_select(self._url_stats_criteria(criteria))
        df = pandas.read_sql(
            self.adapter.prepare(sql), self.adapter.connect(), params=params
        )
        return df.assign(
            timestamp=pandas.to_datetime(pandas.to_numeric(df.timestamp), unit="s")
        )

    def get_distinct(self, column: str) -> list:
        if column not in details_table.c:
            raise QueryError(f"Unknown column {column!r}")
        statement = select(details_table.c[column]).distinct()
        return [row[0] for row in self.adapter.execute(statement)]


def details_insert(values: Mapping[str, Any]):
    return details_table.insert().values(**values)
