"""Product image and payment proof uploads to blob storage."""

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from abcretails.storage.models import FileUpload
from abcretails.storage.service import StorageService
from abcretails.web.dependencies import get_storage_service

router = APIRouter(prefix="/uploads", tags=["uploads"])


async def read_upload(file: UploadFile) -> FileUpload:
    """Read a multipart upload fully into memory."""
    return FileUpload(
        filename=file.filename or "",
        content=await file.read(),
        content_type=file.content_type,
    )


@router.post("/images", status_code=status.HTTP_201_CREATED, summary="Upload Product Image")
async def upload_image(
    file: UploadFile = File(...),
    service: StorageService = Depends(get_storage_service),
) -> dict:
    url = await service.upload_image(
        await read_upload(file), service.config.containers.product_images
    )
    if url is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    return {"url": url}


@router.post("/payment-proofs", status_code=status.HTTP_201_CREATED, summary="Upload Payment Proof")
async def upload_payment_proof(
    file: UploadFile = File(...),
    service: StorageService = Depends(get_storage_service),
) -> dict:
    blob_name = await service.upload_file(
        await read_upload(file), service.config.containers.payment_proofs
    )
    return {"blob_name": blob_name}


@router.delete(
    "/{container_name}/{blob_name}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Blob",
)
async def delete_blob(
    container_name: str,
    blob_name: str,
    service: StorageService = Depends(get_storage_service),
) -> Response:
    await service.delete_blob(blob_name, container_name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
