"""
Read query construction for the backend REST interface.

Queries are immutable values: building one never touches the network, and
rendering produces the query parameters and headers understood by the
backend's tabular interface. Execution lives in ``backend_client``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, List, Mapping, Optional, Tuple, Union

from formations.core.exceptions import ValidationError
from formations.core.models import FormationFilters, SortDirection

SINGLE_OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"

# Characters that would change the meaning of a value inside an OR group
_RESERVED = re.compile(r'[,.:()"\\\s]')

SEARCH_COLUMNS = ("etablissement", "filiere", "ville")
CATEGORY_COLUMN = "voie"


def quote_value(value: Any) -> str:
    """Render a value for use inside a logical group, quoting when needed."""
    text = str(value)
    if not _RESERVED.search(text):
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass(frozen=True)
class Eq:
    """Exact equality on one column."""

    column: str
    value: Any

    def as_param(self) -> Tuple[str, str]:
        return self.column, f"eq.{self.value}"

    def render(self) -> str:
        return f"{self.column}.eq.{quote_value(self.value)}"


@dataclass(frozen=True)
class ILike:
    """Case-insensitive pattern match on one column (``%`` wildcards)."""

    column: str
    pattern: str

    def as_param(self) -> Tuple[str, str]:
        return self.column, f"ilike.{self.pattern}"

    def render(self) -> str:
        return f"{self.column}.ilike.{quote_value(self.pattern)}"


Term = Union[Eq, ILike]


@dataclass(frozen=True)
class OrGroup:
    """Terms joined by logical OR; the group itself is AND-ed with siblings."""

    terms: Tuple[Term, ...]

    def as_param(self) -> Tuple[str, str]:
        return "or", "(" + ",".join(term.render() for term in self.terms) + ")"


Predicate = Union[Eq, ILike, OrGroup]


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = False

    def render(self) -> str:
        return f"{self.column}.{'asc' if self.ascending else 'desc'}"


@dataclass(frozen=True)
class Query:
    """An immutable read over one table of the backend."""

    table: str
    columns: str = "*"
    count: Optional[str] = None
    filters: Tuple[Predicate, ...] = field(default_factory=tuple)
    offset: Optional[int] = None
    limit: Optional[int] = None
    orders: Tuple[Order, ...] = field(default_factory=tuple)
    single: bool = False

    def select(self, columns: str = "*", count: Optional[str] = None) -> "Query":
        return replace(self, columns=columns, count=count)

    def eq(self, column: str, value: Any) -> "Query":
        return replace(self, filters=self.filters + (Eq(column, value),))

    def ilike(self, column: str, pattern: str) -> "Query":
        return replace(self, filters=self.filters + (ILike(column, pattern),))

    def or_(self, terms: List[Term]) -> "Query":
        if not terms:
            return self
        return replace(self, filters=self.filters + (OrGroup(tuple(terms)),))

    def range(self, start: int, end: int) -> "Query":
        """Restrict to rows ``start`` through ``end`` inclusive (zero-based)."""
        return replace(self, offset=start, limit=end - start + 1)

    def order(self, column: str, ascending: bool = False) -> "Query":
        return replace(self, orders=self.orders + (Order(column, ascending),))

    def as_single(self) -> "Query":
        """Expect exactly one row; the backend rejects zero or several."""
        return replace(self, single=True)

    def to_params(self) -> List[Tuple[str, str]]:
        """Render query-string parameters, in construction order."""
        params = [("select", self.columns)]
        params.extend(predicate.as_param() for predicate in self.filters)
        if self.offset is not None:
            params.append(("offset", str(self.offset)))
        if self.limit is not None:
            params.append(("limit", str(self.limit)))
        if self.orders:
            params.append(("order", ",".join(order.render() for order in self.orders)))
        return params

    def to_headers(self) -> Mapping[str, str]:
        headers = {}
        if self.count:
            headers["Prefer"] = f"count={self.count}"
        if self.single:
            headers["Accept"] = SINGLE_OBJECT_MEDIA_TYPE
        return headers


def page_range(page: int, page_size: int) -> Tuple[int, int]:
    """Inclusive zero-based row range covered by a 1-based page."""
    if page < 1:
        raise ValidationError("page must be >= 1", details={"page": page})
    if page_size <= 0:
        raise ValidationError("page_size must be positive", details={"page_size": page_size})
    return (page - 1) * page_size, page * page_size - 1


def search_terms(search: str) -> List[Term]:
    pattern = f"%{search}%"
    return [ILike(column, pattern) for column in SEARCH_COLUMNS]


def category_terms(filters: FormationFilters) -> List[Term]:
    """Selected track categories and the catch-all category, as one OR group."""
    terms: List[Term] = [Eq(CATEGORY_COLUMN, voie) for voie in filters.types]
    if filters.autre:
        terms.append(Eq(CATEGORY_COLUMN, filters.autre))
    return terms


def build_formation_query(
    table: str,
    page: int = 1,
    page_size: int = 500,
    filters: Optional[Union[FormationFilters, Mapping[str, Any]]] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[Union[SortDirection, str]] = None,
) -> Query:
    """
    Build the listing query for one page of formations.

    Args:
        table: Listing table name
        page: 1-based page number
        page_size: Rows per page
        filters: Filter set (model or plain mapping)
        sort_by: Column to order by; no ordering when empty
        sort_direction: Ascending only when exactly "asc"

    Returns:
        Query requesting an exact total count

    Raises:
        ValidationError: On a page below 1 or a non-positive page size
    """
    start, end = page_range(page, page_size)
    filters = FormationFilters.from_mapping(filters)

    query = Query(table).select("*", count="exact")

    if filters.search:
        query = query.or_(search_terms(filters.search))

    query = query.or_(category_terms(filters))

    if filters.departement:
        query = query.eq("departement", filters.departement)
    if filters.ville:
        query = query.eq("ville", filters.ville)

    query = query.range(start, end)

    if sort_by:
        direction = sort_direction
        if isinstance(direction, SortDirection):
            direction = direction.value
        query = query.order(sort_by, ascending=direction == SortDirection.ASC.value)

    return query
