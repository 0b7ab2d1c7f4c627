from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from runstore.errors import QueryError

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Legacy mapping key -> Criteria field
CLAUSE_KEYS = {
    "select": "select",
    "where": "raw_where",
    "group by": "group_by",
    "order by": "order_by",
    "limit": "limit",
    "offset": "offset",
}
CLAUSE_FIELDS = {"raw_where", "group_by", "order_by"}


@dataclass
class Criteria:
    """Declarative description of a SELECT against the runs table.

    ``equality_filters`` are bound as named parameters. Every other field is
    inserted verbatim and must never be built from user input without
    validating it first.
    """

    equality_filters: dict[str, Any] = field(default_factory=dict)
    raw_where: str | None = None
    group_by: str | None = None
    order_by: str | None = None
    limit: int | None = None
    offset: int | None = None
    select: str | None = None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Criteria:
        """Build criteria from a flat mapping such as
        ``{"status": "active", "order by": "wt", "limit": 10}``.

        Clause keys are ``select``, ``where``, ``group by``, ``order by``,
        ``limit`` and ``offset``; any other key is an equality filter.
        """
        kwargs: dict[str, Any] = {}
        filters: dict[str, Any] = {}
        for key, value in mapping.items():
            if key in ("limit", "offset") and isinstance(value, str):
                if not value.isdigit():
                    raise QueryError(f"{key} must be a non-negative integer, got {value!r}")
                value = int(value)
            if key in CLAUSE_KEYS:
                name = CLAUSE_KEYS[key]
            elif key in CLAUSE_FIELDS:
                name = key
            else:
                filters[key] = value
                continue
            if name in kwargs:
                raise QueryError(f"Conflicting keys for the {name!r} clause")
            kwargs[name] = value
        return cls(equality_filters=filters, **kwargs)

    def merge(self, **overrides: Any) -> Criteria:
        """Copy with some clauses replaced"""
        values = {
            "equality_filters": dict(self.equality_filters),
            "raw_where": self.raw_where,
            "group_by": self.group_by,
            "order_by": self.order_by,
            "limit": self.limit,
            "offset": self.offset,
            "select": self.select,
        }
        values.update(overrides)
        return Criteria(**values)


def as_criteria(criteria: Criteria | Mapping[str, Any] | None) -> Criteria:
    if criteria is None:
        return Criteria()
    if isinstance(criteria, Criteria):
        return criteria
    return Criteria.from_mapping(criteria)


def _check_count(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise QueryError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def build_select(
    criteria: Criteria | Mapping[str, Any] | None, table: str = "details"
) -> tuple[str, dict[str, Any]]:
    """Assemble a parameterized SELECT statement.

    Returns
    -------
    The SQL text with ``:name`` placeholders and the parameter map to bind.

    Example
    -------
    >>> build_select({"status": "active", "limit": 10})
    ('SELECT * FROM details WHERE status = :status LIMIT 10', {'status': 'active'})
    """
    criteria = as_criteria(criteria)

    parts = [f"SELECT {criteria.select or '*'} FROM {table}"]
    params: dict[str, Any] = {}

    conditions = []
    for column, value in criteria.equality_filters.items():
        if value is None or value == "":
            # The key is itself a boolean expression
            conditions.append(column)
            continue
        if not IDENTIFIER.match(column):
            raise QueryError(f"Cannot bind a value to filter {column!r}")
        conditions.append(f"{column} = :{column}")
        params[column] = value
    if criteria.raw_where:
        conditions.append(criteria.raw_where)
    if conditions:
        parts.append("WHERE " + " AND ".join(conditions))

    if criteria.group_by:
        parts.append(f"GROUP BY {criteria.group_by}")
    if criteria.order_by:
        parts.append(f"ORDER BY {criteria.order_by} DESC")
    if criteria.limit is not None:
        parts.append(f"LIMIT {_check_count('limit', criteria.limit)}")
    if criteria.offset is not None:
        if criteria.limit is None:
            raise QueryError("offset requires a limit")
        parts.append(f"OFFSET {_check_count('offset', criteria.offset)}")

    return " ".join(parts), params
