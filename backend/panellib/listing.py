"""
Paginated list controller.

Holds the table state of one list screen (page, page size, search, sort) and
keeps its rows in sync with the remote collection. Every state change issues
one new fetch; a response is applied only if no newer fetch was issued in the
meantime, so out-of-order completions never overwrite newer state.
"""
import logging
import math
from dataclasses import replace
from typing import Any, Optional

from .client import ListQuery, PageResult, ResourceClient
from .errors import RemoteError

_logger = logging.getLogger(__name__)

IDLE = 'idle'
FETCHING = 'fetching'
ERROR = 'error'


class ListController:
    def __init__(self, client: ResourceClient, page_size: int = 10):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.client = client
        self.query = ListQuery(page_size=page_size)
        self.result = PageResult()
        self.status = IDLE
        self.error: Optional[RemoteError] = None
        self._total_known = False
        self._seq = 0

    # ── Read-only view ──────────────────────────────────────────

    @property
    def rows(self) -> list[dict[str, Any]]:
        return self.result.rows

    @property
    def total(self) -> int:
        return self.result.total

    @property
    def page(self) -> int:
        return self.query.page

    @property
    def max_pages(self) -> int:
        return max(1, math.ceil(self.result.total / self.query.page_size))

    @property
    def can_previous(self) -> bool:
        return self.status != FETCHING and self.query.page > 1

    @property
    def can_next(self) -> bool:
        return self.status != FETCHING and self._total_known and self.query.page < self.max_pages

    # ── Fetching ────────────────────────────────────────────────

    async def refresh(self) -> bool:
        """Fetch the current query. Returns False if the response was stale."""
        self._seq += 1
        seq = self._seq
        query = self.query
        self.status = FETCHING
        try:
            result = await self.client.list_page(query)
        except RemoteError as exc:
            if seq != self._seq:
                _logger.debug("Discarding stale failure for request %d: %s", seq, exc)
                return False
            self.status = ERROR
            self.error = exc
            raise
        if seq != self._seq:
            _logger.debug(
                "Discarding stale %s page %d (request %d, latest %d)",
                self.client.schema.path, query.page, seq, self._seq,
            )
            return False
        self.result = result
        self._total_known = True
        self.status = IDLE
        self.error = None
        return True

    async def _clamp_page(self) -> None:
        if self._total_known and self.query.page > self.max_pages:
            self.query = replace(self.query, page=self.max_pages)
            await self.refresh()

    # ── State changes ───────────────────────────────────────────

    async def set_search(self, term: str) -> None:
        # page is not reset to 1
        self.query = replace(self.query, search=term or '')
        await self.refresh()

    async def set_sort(self, column: str) -> None:
        q = self.query
        if q.sort_field == column and q.sort_direction == 'asc':
            direction = 'desc'
        else:
            direction = 'asc'
        self.query = replace(q, sort_field=column, sort_direction=direction)
        await self.refresh()

    async def set_page(self, page: int) -> bool:
        """Move to ``page``. Out-of-range pages are ignored and return False."""
        if page < 1 or (self._total_known and page > self.max_pages):
            return False
        self.query = replace(self.query, page=page)
        await self.refresh()
        return True

    async def next_page(self) -> bool:
        return await self.set_page(self.query.page + 1)

    async def previous_page(self) -> bool:
        return await self.set_page(self.query.page - 1)

    async def set_page_size(self, page_size: int) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.query = replace(self.query, page_size=page_size)
        if await self.refresh():
            await self._clamp_page()

    async def delete(self, record_id: int) -> None:
        """Delete a record, then refetch; an emptied last page moves back one page."""
        try:
            await self.client.delete_record(record_id)
        except RemoteError as exc:
            self.status = ERROR
            self.error = exc
            raise
        if await self.refresh():
            await self._clamp_page()
