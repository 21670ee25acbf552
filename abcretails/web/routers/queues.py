"""Send and receive queue messages."""

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from abcretails.storage.service import StorageService
from abcretails.web.dependencies import get_storage_service

router = APIRouter(prefix="/queues", tags=["queues"])


class SendMessageRequest(BaseModel):
    """Request model for enqueueing a message."""
    message: str = Field(..., min_length=1)


@router.post(
    "/{queue_name}/messages",
    status_code=status.HTTP_201_CREATED,
    summary="Send Message",
)
async def send_message(
    queue_name: str,
    body: SendMessageRequest,
    service: StorageService = Depends(get_storage_service),
) -> dict:
    await service.send_message(queue_name, body.message)
    return {"queue": queue_name, "status": "queued"}


@router.get("/{queue_name}/messages", summary="Receive Message")
async def receive_message(
    queue_name: str,
    service: StorageService = Depends(get_storage_service),
):
    message = await service.receive_message(queue_name)
    if message is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return {"queue": queue_name, "message": message}
