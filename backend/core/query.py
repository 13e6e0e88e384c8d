"""
List-endpoint query construction shared by the user and announcement
listings.

Two steps, kept apart so the first can be tested without a database:

1. :func:`build_query_spec` turns untrusted request parameters into a
   :class:`QuerySpec` – a plain description of filters, sort keys and the
   page window that knows nothing about SQL.
2. :func:`paginate` applies a spec to a SQLAlchemy ``Query`` through a
   *field map* (wire name → mapped column) and returns a :class:`Page`.

Only names present in the field map can be filtered or sorted on, so a
client can never reach an arbitrary column.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Union

from fastapi import Query
from sqlalchemy import or_

from core.errors import ValidationError
from core.schemas import Pagination
from core.timeutil import as_utc

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SORT = "createdAt"


# ---------------------------------------------------------------------------
# Request parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ListParams:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    search: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_by: str = DEFAULT_SORT
    order: str = "desc"


def list_params(
    page: int = Query(DEFAULT_PAGE, ge=1, description="1-based page number"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Page size"),
    search: str = Query("", max_length=200, description="Case-insensitive keyword"),
    start_date: Optional[datetime] = Query(
        None, alias="startDate", description="Created at or after (ISO-8601)"
    ),
    end_date: Optional[datetime] = Query(
        None, alias="endDate", description="Created at or before (ISO-8601)"
    ),
    sort_by: str = Query(DEFAULT_SORT, alias="sortBy"),
    order: Literal["asc", "desc"] = Query("desc"),
) -> ListParams:
    """
    FastAPI dependency for the common list parameters.  Non-numeric or
    out-of-range ``page`` / ``limit`` values are rejected with 400 by the
    request validator rather than coerced.
    """
    return ListParams(
        page=page,
        limit=limit,
        search=search.strip(),
        start_date=as_utc(start_date),
        end_date=as_utc(end_date),
        sort_by=sort_by,
        order=order,
    )


# ---------------------------------------------------------------------------
# Storage-independent query description
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Condition:
    field: str
    op: str  # eq | gt | gte | lt | lte | contains | is_null
    value: Any = None


@dataclass(frozen=True)
class AnyOf:
    conditions: Tuple[Condition, ...]


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = True


Clause = Union[Condition, AnyOf]


@dataclass(frozen=True)
class QuerySpec:
    where: Tuple[Clause, ...] = ()
    sort: Tuple[SortKey, ...] = ()
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def build_query_spec(
    params: ListParams,
    *,
    search_fields: Iterable[str],
    sortable: Iterable[str],
    equals: Optional[Mapping[str, Any]] = None,
    date_field: str = DEFAULT_SORT,
) -> QuerySpec:
    """
    Translate *params* into a :class:`QuerySpec`.

    * ``search`` matches any of *search_fields* (OR).
    * each non-``None`` entry of *equals* adds an equality filter.
    * ``start_date`` / ``end_date`` bound *date_field*, both inclusive.
    * every clause above is AND-ed together.

    Raises :class:`ValidationError` when ``sort_by`` is not in *sortable*.
    """
    if params.sort_by not in set(sortable):
        raise ValidationError(f"Cannot sort by '{params.sort_by}'")

    where: List[Clause] = []
    if params.search:
        where.append(
            AnyOf(tuple(Condition(name, "contains", params.search) for name in search_fields))
        )
    for name, value in (equals or {}).items():
        if value is not None:
            where.append(Condition(name, "eq", value))
    if params.start_date is not None:
        where.append(Condition(date_field, "gte", params.start_date))
    if params.end_date is not None:
        where.append(Condition(date_field, "lte", params.end_date))

    return QuerySpec(
        where=tuple(where),
        sort=(SortKey(params.sort_by, descending=params.order == "desc"),),
        page=params.page,
        limit=params.limit,
    )


# ---------------------------------------------------------------------------
# SQLAlchemy execution
# ---------------------------------------------------------------------------


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


_OPERATORS = {
    "eq": lambda col, value: col == value,
    "gt": lambda col, value: col > value,
    "gte": lambda col, value: col >= value,
    "lt": lambda col, value: col < value,
    "lte": lambda col, value: col <= value,
    # Literal substring; the search term is never interpreted as a pattern
    "contains": lambda col, value: col.ilike(f"%{_escape_like(value)}%", escape="\\"),
    "is_null": lambda col, value: col.is_(None),
}


def _to_sql(clause: Clause, fields: Mapping[str, Any]):
    if isinstance(clause, AnyOf):
        return or_(*(_to_sql(c, fields) for c in clause.conditions))
    return _OPERATORS[clause.op](fields[clause.field], clause.value)


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit)

    def pagination(self) -> Pagination:
        return Pagination(total=self.total, page=self.page, pages=self.pages, limit=self.limit)


def paginate(query, spec: QuerySpec, fields: Dict[str, Any]) -> Page:
    """
    Run *spec* against *query*.  ``total`` is counted before the page
    window is applied; ``items`` holds at most ``spec.limit`` rows.
    """
    filtered = query.filter(*(_to_sql(clause, fields) for clause in spec.where))
    total = filtered.order_by(None).count()

    ordering = [
        fields[key.field].desc() if key.descending else fields[key.field].asc()
        for key in spec.sort
    ]
    items = filtered.order_by(*ordering).offset(spec.offset).limit(spec.limit).all()
    return Page(items=items, total=total, page=spec.page, limit=spec.limit)
