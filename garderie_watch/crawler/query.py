# garderie_watch/crawler/query.py
"""
Query parameters understood by the magarderie.com search page.

Every index request carries the same fixed set of parameters built once per
run from :class:`~garderie_watch.config.QueryConfig`; only the page number
changes between requests.
"""
from __future__ import annotations

from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, List, Sequence

__all__ = [
    "QueryParam",
    "TYPE_ALL",
    "OUTPUT_LIST",
    "garderie_type",
    "postal_code",
    "age_in_months",
    "max_price",
    "number_of_spaces",
    "page_number",
    "output_format",
    "build_query_params",
    "index_query",
]


@dataclass(slots=True, frozen=True)
class QueryParam:
    """A single ``name=value`` pair of the search query string."""

    name: str
    value: Any


def _require_number(value: Any, message: str) -> None:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(message)


def garderie_type(value: str) -> QueryParam:
    return QueryParam("SType", value)


def postal_code(value: str) -> QueryParam:
    return QueryParam("SPostal", value)


def age_in_months(value: int) -> QueryParam:
    _require_number(value, "Age in months should be a number")
    return QueryParam("SAge", value)


def max_price(value: float) -> QueryParam:
    _require_number(value, "Max price should be a number")
    return QueryParam("SMaxPrice", value)


def number_of_spaces(value: int) -> QueryParam:
    _require_number(value, "Number of spaces should be a number")
    return QueryParam("SNumber", value)


def page_number(value: int) -> QueryParam:
    _require_number(value, "Page number should be a number")
    return QueryParam("SPag", value)


def output_format(value: str) -> QueryParam:
    return QueryParam("SOut", value)


# every garderie type at once
TYPE_ALL = garderie_type("12345")
# the parser only understands the list layout
OUTPUT_LIST = output_format("list")


def build_query_params(query_config: Any) -> List[QueryParam]:
    """Translate the query section of the config into fixed query parameters.

    Absent optional fields are left out of the query instead of being defaulted.
    """
    params: List[QueryParam] = []
    if query_config.number_of_spaces is not None:
        params.append(number_of_spaces(query_config.number_of_spaces))
    if query_config.postal_code:
        params.append(postal_code(query_config.postal_code))
    if query_config.max_price is not None:
        params.append(max_price(query_config.max_price))
    if query_config.age_in_months is not None:
        params.append(age_in_months(query_config.age_in_months))
    params.append(TYPE_ALL)
    params.append(OUTPUT_LIST)
    return params


def index_query(base_params: Sequence[QueryParam], page_num: int) -> Dict[str, str]:
    """Build the query-string mapping for index page ``page_num``.

    The first page is requested without ``SPag``.
    """
    if not isinstance(page_num, int) or page_num < 1:
        page_num = 1
    params = list(base_params)
    if page_num > 1:
        params.append(page_number(page_num))
    return {p.name: str(p.value) for p in params}
