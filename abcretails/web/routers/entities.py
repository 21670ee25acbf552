"""
Resource endpoints for table entities.

One router per entity kind, generated by create_entity_router. Updates must
carry the version tag from a previous read, either in the If-Match header or
in the body's etag.
"""

from typing import List, Optional, Type

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status

from abcretails.storage.models import TableEntity
from abcretails.storage.service import StorageService
from abcretails.web.dependencies import get_storage_service


def _entity_response(entity: TableEntity, response: Response) -> dict:
    if entity.etag:
        response.headers["ETag"] = entity.etag
    return entity.model_dump(mode="json")


def create_entity_router(entity_type: Type[TableEntity], prefix: str) -> APIRouter:
    """
    Build list/get/create/update/delete routes for entity_type under prefix.

    Args:
        entity_type: Entity model served by the router
        prefix: URL prefix, e.g. "/customers"
    """
    router = APIRouter(prefix=prefix, tags=[entity_type.__name__])
    kind = entity_type.__name__

    @router.get("", summary=f"List {kind} entities")
    async def list_entities(
        service: StorageService = Depends(get_storage_service),
    ) -> List[dict]:
        entities = await service.get_all_entities(entity_type)
        return [entity.model_dump(mode="json") for entity in entities]

    @router.get("/{partition_key}/{row_key}", summary=f"Get {kind}")
    async def get_entity(
        partition_key: str,
        row_key: str,
        response: Response,
        service: StorageService = Depends(get_storage_service),
    ) -> dict:
        entity = await service.get_entity(entity_type, partition_key, row_key)
        if entity is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{kind} {partition_key}/{row_key} not found",
            )
        return _entity_response(entity, response)

    @router.post("", status_code=status.HTTP_201_CREATED, summary=f"Create {kind}")
    async def create_entity(
        entity: entity_type,
        response: Response,
        service: StorageService = Depends(get_storage_service),
    ) -> dict:
        created = await service.add_entity(entity)
        return _entity_response(created, response)

    @router.put("/{partition_key}/{row_key}", summary=f"Update {kind}")
    async def update_entity(
        partition_key: str,
        row_key: str,
        entity: entity_type,
        response: Response,
        if_match: Optional[str] = Header(default=None),
        service: StorageService = Depends(get_storage_service),
    ) -> dict:
        if (entity.PartitionKey, entity.RowKey) != (partition_key, row_key):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="PartitionKey and RowKey cannot be changed",
            )
        if if_match:
            entity.etag = if_match
        updated = await service.update_entity(entity)
        return _entity_response(updated, response)

    @router.delete(
        "/{partition_key}/{row_key}",
        status_code=status.HTTP_204_NO_CONTENT,
        summary=f"Delete {kind}",
    )
    async def delete_entity(
        partition_key: str,
        row_key: str,
        service: StorageService = Depends(get_storage_service),
    ) -> Response:
        await service.delete_entity(entity_type, partition_key, row_key)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router
