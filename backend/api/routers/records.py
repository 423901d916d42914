"""Records router: the same CRUD proxy for every managed collection."""
from fastapi import APIRouter, Query, Depends
from typing import Literal

from panellib.client import ListQuery, ResourceClient
from panellib.errors import RemoteError
from panellib.schemas import EMPLOYEE, LEAVE, USER, EntitySchema
from ..dependencies import PAGE_SIZE, _logger, remote_to_http, resource_client
from ..types import EntityRecord


def build_router(schema: EntitySchema) -> APIRouter:
    """Forward list/get/create/update/delete for ``schema`` to the backend."""
    router = APIRouter()
    base = f"/api/{schema.path}"
    tags = [schema.tag]
    client_dep = resource_client(schema)
    CreateBody = schema.create_model
    UpdateBody = schema.update_model or schema.create_model

    @router.get(base, tags=tags, summary=f"List {schema.path}", description=f"Return one page of {schema.path}. Search and sort are passed through to the backend.")
    async def list_records(
        page: int = Query(1, ge=1),
        limit: int = Query(PAGE_SIZE, ge=1, le=100),
        search: str = Query(''),
        sort: str = Query(''),
        direction: Literal['asc', 'desc'] = Query('asc'),
        client: ResourceClient = Depends(client_dep),
    ):
        query = ListQuery(page=page, page_size=limit, search=search, sort_field=sort, sort_direction=direction)
        try:
            result = await client.list_page(query)
        except RemoteError as e:
            raise remote_to_http(e, f'list_{schema.path}')
        return result.to_json()

    @router.get(base + "/{record_id}", tags=tags, summary=f"Get {schema.name} by ID")
    async def get_record(record_id: int, client: ResourceClient = Depends(client_dep)) -> EntityRecord:
        try:
            return await client.get_record(record_id)
        except RemoteError as e:
            raise remote_to_http(e, f'get_{schema.name}/{record_id}')

    @router.post(base, tags=tags, summary=f"Create {schema.name}")
    async def create_record(body: CreateBody, client: ResourceClient = Depends(client_dep)):
        try:
            record = await client.create_record(body.model_dump(mode='json'))
        except RemoteError as e:
            raise remote_to_http(e, f'create_{schema.name}')
        _logger.info("WRITE CREATE | entity=%s id=%s", schema.name, (record or {}).get('id'))
        return {"ok": True, "record": record}

    @router.patch(base + "/{record_id}", tags=tags, summary=f"Update {schema.name}")
    async def update_record(record_id: int, body: UpdateBody, client: ResourceClient = Depends(client_dep)):
        try:
            record = await client.update_record(record_id, body.model_dump(mode='json'))
        except RemoteError as e:
            raise remote_to_http(e, f'update_{schema.name}/{record_id}')
        _logger.info("WRITE UPDATE | entity=%s id=%d", schema.name, record_id)
        return {"ok": True, "record": record}

    @router.delete(base + "/{record_id}", tags=tags, summary=f"Delete {schema.name}")
    async def delete_record(record_id: int, client: ResourceClient = Depends(client_dep)):
        try:
            await client.delete_record(record_id)
        except RemoteError as e:
            raise remote_to_http(e, f'delete_{schema.name}/{record_id}')
        _logger.info("WRITE DELETE | entity=%s id=%d", schema.name, record_id)
        return {"ok": True}

    return router


employees = build_router(EMPLOYEE)
leaves = build_router(LEAVE)
users = build_router(USER)
