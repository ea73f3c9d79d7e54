"""
Listing query builder for the users table

Turns raw listing parameters into a normalized query and applies it to a
collection of user records. Invalid parameters never raise: each one falls
back to its default independently, so the listing endpoint always answers.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 5
DEFAULT_SORT = "id"
DEFAULT_SORT_DIR = "asc"

# Page numbers and sizes are 32-bit in the store; larger values are treated as invalid
MAX_PAGE_VALUE = 2**31 - 1

SORTABLE_FIELDS = ("id", "name", "rut", "email", "birthday")
SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class ListingQuery:
    """Normalized listing parameters"""
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    sort: str = DEFAULT_SORT
    sort_dir: str = DEFAULT_SORT_DIR
    search: Optional[str] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def descending(self) -> bool:
        return self.sort_dir == "desc"


@dataclass
class PagedResult:
    """One page of records plus the pagination metadata describing it"""
    page: int
    page_size: int
    sort: str
    sort_dir: str
    total_count: int
    total_pages: int
    data: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape of the envelope"""
        return {
            "page": self.page,
            "pageSize": self.page_size,
            "sort": self.sort,
            "sortDir": self.sort_dir,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
            "data": self.data,
        }


def _parse_positive_int(value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        parsed = value
    else:
        text = str(value).strip()
        # int() also takes underscores and non-ASCII digits
        if "_" in text or not text.isascii():
            return default
        try:
            parsed = int(text)
        except ValueError:
            return default
    return parsed if 0 < parsed <= MAX_PAGE_VALUE else default


def _parse_choice(value: Any, choices: Iterable[str], default: str) -> str:
    if value is None:
        return default
    candidate = str(value).lower()
    return candidate if candidate in choices else default


def _parse_search(value: Any) -> Optional[str]:
    if value is None:
        return None
    term = str(value).strip()
    return term or None


def normalize_listing_params(
    page: Any = None,
    page_size: Any = None,
    sort: Any = None,
    sort_dir: Any = None,
    search: Any = None
) -> ListingQuery:
    """
    Coerce raw listing parameters into a ListingQuery

    Args:
        page: Requested page (1-based); non-numeric or non-positive means 1
        page_size: Records per page; non-numeric or non-positive means 5
        sort: One of id, name, rut, email, birthday (any case); otherwise id
        sort_dir: asc or desc (any case); otherwise asc
        search: Substring to look for in name or email; blank means no search

    Returns:
        ListingQuery holding the effective values
    """
    return ListingQuery(
        page=_parse_positive_int(page, DEFAULT_PAGE),
        page_size=_parse_positive_int(page_size, DEFAULT_PAGE_SIZE),
        sort=_parse_choice(sort, SORTABLE_FIELDS, DEFAULT_SORT),
        sort_dir=_parse_choice(sort_dir, SORT_DIRECTIONS, DEFAULT_SORT_DIR),
        search=_parse_search(search),
    )


def matches_search(record: Any, search: Optional[str]) -> bool:
    """Case-insensitive substring match on name or email"""
    if not search:
        return True
    term = search.lower()
    return term in record.name.lower() or term in (record.email or "").lower()


def filter_users(records: Iterable[Any], search: Optional[str]) -> List[Any]:
    return [record for record in records if matches_search(record, search)]


def _sort_key(sort: str):
    if sort == "email":
        return lambda record: record.email or ""
    if sort in ("name", "rut", "birthday"):
        return lambda record: getattr(record, sort)
    return lambda record: record.id


def sort_users(records: Iterable[Any], sort: str, sort_dir: str) -> List[Any]:
    """
    Order records by one field

    Strings compare by code point, so ordering is case-sensitive even though
    search is not. A missing email sorts as the empty string.
    """
    return sorted(records, key=_sort_key(sort), reverse=(sort_dir == "desc"))


def calculate_total_pages(total_count: int, page_size: int) -> int:
    if total_count <= 0:
        return 0
    return (total_count + page_size - 1) // page_size


def apply_listing(records: Iterable[Any], query: ListingQuery) -> tuple[List[Any], int]:
    """
    Run filter, sort and skip/take over a record collection

    Returns:
        Tuple of (records on the requested page, filtered count before paging)
    """
    filtered = filter_users(records, query.search)
    ordered = sort_users(filtered, query.sort, query.sort_dir)
    page_rows = ordered[query.offset:query.offset + query.limit]
    return page_rows, len(filtered)


def to_paged_result(query: ListingQuery, rows: List[Any], total_count: int) -> PagedResult:
    """Wrap an already-executed page in the response envelope"""
    return PagedResult(
        page=query.page,
        page_size=query.page_size,
        sort=query.sort,
        sort_dir=query.sort_dir,
        total_count=total_count,
        total_pages=calculate_total_pages(total_count, query.page_size),
        data=list(rows),
    )


def build_paged_result(all_records: Iterable[Any], params: Dict[str, Any]) -> PagedResult:
    """
    Build the listing response for a full record collection

    Args:
        all_records: Every user record, in any order
        params: Raw request parameters keyed by their wire names
                (page, pageSize, sort, sortDir, search)

    Returns:
        PagedResult for the requested page
    """
    query = normalize_listing_params(
        page=params.get("page"),
        page_size=params.get("pageSize"),
        sort=params.get("sort"),
        sort_dir=params.get("sortDir"),
        search=params.get("search"),
    )
    rows, total_count = apply_listing(all_records, query)
    logger.debug(f"Listing {query} matched {total_count} records")
    return to_paged_result(query, rows, total_count)
