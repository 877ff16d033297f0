# app/services/query.py
import enum
import operator
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import asc, desc

from app.core.exceptions import ValidationFailed, QueryCastError

RESERVED_KEYS = frozenset({"page", "sort", "limit", "fields"})
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100

OPERATORS = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
    "ne": operator.ne,
}

_FILTER_KEY_RE = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)(?:\[(?P<op>[a-z]+)\])?$")
_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


@dataclass
class ListQuery:
    filters: List[Any] = field(default_factory=list)
    order_by: List[Any] = field(default_factory=list)
    include_fields: Optional[Set[str]] = None
    exclude_fields: Set[str] = field(default_factory=set)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def project(self, item: dict) -> dict:
        if self.include_fields is not None:
            return {k: v for k, v in item.items() if k in self.include_fields or k == "sid"}
        if self.exclude_fields:
            return {k: v for k, v in item.items() if k not in self.exclude_fields or k == "sid"}
        return item


def cast_value(column, path: str, raw: str):
    """Converts a query-string value to the Python type of `column`"""
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw

    try:
        if python_type is bool:
            lowered = raw.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(raw)
        if python_type is datetime:
            return datetime.fromisoformat(raw)
        if isinstance(python_type, type) and issubclass(python_type, enum.Enum):
            return python_type(raw)
        return python_type(raw)
    except (ValueError, TypeError):
        raise QueryCastError(path, raw)


def _positive_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationFailed(f"Invalid input data. {name} must be a positive integer")
    if value < 1:
        raise ValidationFailed(f"Invalid input data. {name} must be a positive integer")
    return value


def _split_list(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class QueryBuilder:
    """
    Turns list-endpoint query parameters into SQL clauses for one model.

    Only fields in `filterable` can be used as filter targets; `page`, `sort`,
    `limit` and `fields` are always treated as paging/shaping keys. Keys that
    are neither are rejected or dropped according to `unknown_policy`.
    """

    def __init__(
            self,
            model,
            filterable: Iterable[str],
            sortable: Optional[Iterable[str]] = None,
            default_sort: str = "-created_at",
            unknown_policy: str = "reject",
    ):
        if unknown_policy not in ("reject", "ignore"):
            raise ValueError(f"Unknown policy: {unknown_policy}")
        self.model = model
        self.filterable = frozenset(filterable)
        self.sortable = frozenset(sortable) if sortable is not None else self.filterable
        self.default_sort = default_sort
        self.unknown_policy = unknown_policy

    def _column(self, name: str):
        return getattr(self.model, name)

    def _unknown(self, message: str) -> None:
        if self.unknown_policy == "reject":
            raise ValidationFailed(message)

    def build_filters(self, params: Sequence[Tuple[str, str]]) -> List[Any]:
        equalities = {}
        clauses = []

        for key, raw in params:
            if key in RESERVED_KEYS:
                continue

            match = _FILTER_KEY_RE.match(key)
            if not match or match.group("field") not in self.filterable:
                self._unknown(f"Invalid input data. Cannot filter by '{key}'")
                continue

            name, op = match.group("field"), match.group("op")
            column = self._column(name)
            if op is None:
                equalities.setdefault(name, []).append(cast_value(column, name, raw))
            elif op in OPERATORS:
                clauses.append(OPERATORS[op](column, cast_value(column, name, raw)))
            else:
                self._unknown(f"Invalid input data. Unsupported operator '{op}' for '{name}'")

        for name, values in equalities.items():
            column = self._column(name)
            clauses.append(column == values[0] if len(values) == 1 else column.in_(values))

        return clauses

    def build_sort(self, raw: Optional[str]) -> List[Any]:
        order_by = []
        for token in _split_list(raw or self.default_sort):
            descending = token.startswith("-")
            name = token.lstrip("-")
            if name not in self.sortable and name != "sid":
                self._unknown(f"Invalid input data. Cannot sort by '{name}'")
                continue
            column = self._column(name)
            order_by.append(desc(column) if descending else asc(column))
        order_by.append(asc(self.model.sid))
        return order_by

    def build(self, params: Sequence[Tuple[str, str]]) -> ListQuery:
        # last value wins for the paging/shaping keys
        reserved = {key: value for key, value in params if key in RESERVED_KEYS}

        query = ListQuery(
            filters=self.build_filters(params),
            order_by=self.build_sort(reserved.get("sort")),
            page=_positive_int("page", reserved.get("page"), DEFAULT_PAGE),
            limit=_positive_int("limit", reserved.get("limit"), DEFAULT_LIMIT),
        )

        if reserved.get("fields"):
            names = _split_list(reserved["fields"])
            excluded = {n[1:] for n in names if n.startswith("-")}
            included = {n for n in names if not n.startswith("-")}
            if included:
                query.include_fields = included
            else:
                query.exclude_fields = excluded

        return query

    def apply(self, stmt, query: ListQuery):
        return (
            stmt.where(*query.filters)
            .order_by(*query.order_by)
            .offset(query.offset)
            .limit(query.limit)
        )
