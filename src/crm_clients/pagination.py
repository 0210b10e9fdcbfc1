"""
Exhaustive paging over Supabase (PostgREST) queries.

PostgREST caps every response (1000 rows by default). Anything that
aggregates or de-duplicates must see all rows, so every read in the
adapters goes through paginate() rather than a single execute().
"""

from typing import Any, Callable, Iterator, Sequence

from crm_core.errors import DataSourceUnavailable
from crm_core.logging import get_logger

logger = get_logger(__name__)

# Returns a fresh, unexecuted query builder each call. Builders are mutable,
# so a page's .range() must never be applied to a builder reused across pages.
QueryFactory = Callable[[], Any]


def paginate(build_query: QueryFactory, page_size: int, table: str | None = None) -> list[dict]:
    """
    Run a query page by page until a short page comes back.

    page_size must not exceed the server's max-rows setting, otherwise a
    capped page looks short and paging stops early.

    Raises:
        DataSourceUnavailable: any failure while executing a page.
    """
    rows: list[dict] = []
    offset = 0
    pages = 0
    while True:
        try:
            response = build_query().range(offset, offset + page_size - 1).execute()
        except Exception as exc:
            logger.warning("Query failed", table=table, offset=offset, error=str(exc))
            raise DataSourceUnavailable(f"Query on {table or 'store'} failed: {exc}", table=table) from exc

        page = response.data or []
        rows.extend(page)
        pages += 1
        if len(page) < page_size:
            break
        offset += len(page)

    logger.debug("Query paged", table=table, pages=pages, rows=len(rows))
    return rows


def chunked(values: Sequence, size: int) -> Iterator[list]:
    """Split values into lists of at most size items."""
    values = list(values)
    for start in range(0, len(values), size):
        yield values[start:start + size]


def paginate_in(
    build_query: Callable[[list], Any],
    values: Sequence,
    chunk_size: int,
    page_size: int,
    table: str | None = None,
) -> list[dict]:
    """
    paginate() for an IN filter over many values.

    build_query receives one chunk of values and returns a fresh builder
    with the IN filter applied; each chunk is paged to exhaustion.
    """
    rows: list[dict] = []
    for chunk in chunked(values, chunk_size):
        rows.extend(paginate(lambda chunk=chunk: build_query(chunk), page_size, table=table))
    return rows
