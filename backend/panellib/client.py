"""
Remote resource client: authenticated CRUD calls against one backend collection.

Every call is single-shot. Failures are normalized into the
:mod:`panellib.errors` taxonomy and raised immediately; nothing is retried.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

import httpx

from .errors import FALLBACK_MESSAGE, TransportError, error_for_status
from .schemas import EntitySchema
from .session import SessionProvider

_logger = logging.getLogger(__name__)

SortDirection = Literal['asc', 'desc']


@dataclass(frozen=True)
class ListQuery:
    page: int = 1
    page_size: int = 10
    search: str = ''
    sort_field: str = ''
    sort_direction: SortDirection = 'asc'

    def params(self) -> dict[str, Any]:
        """Query parameters in the backend's format. Empty search/sort are omitted."""
        params: dict[str, Any] = {'page': self.page, 'limit': self.page_size}
        if self.search:
            params['search'] = self.search
        if self.sort_field:
            params['orderBy[name]'] = self.sort_field
            params['orderBy[direction]'] = self.sort_direction
        return params


@dataclass(frozen=True)
class PageMeta:
    first: int = 0
    last: int = 0
    current_page: int = 1
    max_pages: int = 1
    limit: int = 0
    count: int = 0
    total: Optional[int] = None

    @classmethod
    def from_json(cls, meta: dict) -> "PageMeta":
        return cls(
            first=int(meta.get('first') or 0),
            last=int(meta.get('last') or 0),
            current_page=int(meta.get('currentPage') or 1),
            max_pages=int(meta.get('maxPages') or 1),
            limit=int(meta.get('limit') or 0),
            count=int(meta.get('count') or 0),
            total=int(meta['total']) if meta.get('total') is not None else None,
        )


@dataclass(frozen=True)
class PageResult:
    rows: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    meta: Optional[PageMeta] = None

    def to_json(self) -> dict[str, Any]:
        meta = self.meta
        return {
            'rows': self.rows,
            'total': self.total,
            'meta': None if meta is None else {
                'first': meta.first,
                'last': meta.last,
                'currentPage': meta.current_page,
                'maxPages': meta.max_pages,
                'limit': meta.limit,
                'count': meta.count,
                'total': meta.total,
            },
        }


def error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of a backend error body."""
    try:
        body = response.json()
    except ValueError:
        return FALLBACK_MESSAGE
    if not isinstance(body, dict):
        return FALLBACK_MESSAGE
    message = body.get('message')
    if isinstance(message, list):
        message = "; ".join(str(m) for m in message if m)
    if message:
        return str(message)
    error = body.get('error')
    if isinstance(error, str) and error:
        return error
    return FALLBACK_MESSAGE


def unwrap(response: httpx.Response) -> Any:
    """Return the envelope's ``data`` or raise the normalized error."""
    if not response.is_success:
        err = error_for_status(response.status_code, error_message(response))
        _logger.warning(
            "Backend error %d: %s %s | %s",
            response.status_code, response.request.method, response.request.url, err.message,
        )
        raise err
    try:
        body = response.json()
    except ValueError as exc:
        raise TransportError("Malformed response from backend", response.status_code) from exc
    if not isinstance(body, dict) or 'data' not in body:
        raise TransportError("Malformed response from backend", response.status_code)
    return body['data']


class ResourceClient:
    """CRUD access to ``{base_url}/{schema.path}`` on behalf of one session."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        schema: EntitySchema,
        session: SessionProvider,
    ):
        self.http = http
        self.schema = schema
        self.session = session
        self.url = f"{base_url.rstrip('/')}/{schema.path}"

    def _headers(self) -> dict[str, str]:
        return {
            'Authorization': f"Bearer {self.session.access_token()}",
            'Accept': 'application/json',
        }

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        headers = self._headers()
        _logger.debug("%s %s", method, url)
        try:
            response = await self.http.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as exc:
            _logger.warning("Backend unreachable: %s %s | %s", method, url, type(exc).__name__)
            raise TransportError(f"Backend unreachable: {type(exc).__name__}") from exc
        if method == 'DELETE' and response.is_success:
            return None
        return unwrap(response)

    async def list_page(self, query: ListQuery) -> PageResult:
        data = await self._request('GET', self.url, params=query.params())
        try:
            meta = PageMeta.from_json(data.get('meta') or {})
            rows = list(data['data'])
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise TransportError("Malformed page from backend") from exc
        total = meta.total if meta.total is not None else meta.count
        return PageResult(rows=rows, total=total, meta=meta)

    async def get_record(self, record_id: int) -> dict[str, Any]:
        data = await self._request('GET', f"{self.url}/{record_id}")
        if not isinstance(data, dict):
            raise TransportError("Malformed record from backend")
        return data

    async def create_record(self, fields: dict[str, Any]) -> dict[str, Any]:
        body = {k: v for k, v in fields.items() if k != 'id'}
        return await self._request('POST', self.url, json=body)

    async def update_record(self, record_id: int, fields: dict[str, Any]) -> dict[str, Any]:
        body = {k: v for k, v in fields.items() if k != 'id'}
        return await self._request('PATCH', f"{self.url}/{record_id}", json=body)

    async def delete_record(self, record_id: int) -> None:
        await self._request('DELETE', f"{self.url}/{record_id}")
