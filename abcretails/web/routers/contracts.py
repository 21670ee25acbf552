"""Contract documents kept in the contracts file share."""

from fastapi import APIRouter, Depends, File, Response, UploadFile, status

from abcretails.storage.service import StorageService
from abcretails.web.dependencies import get_storage_service
from abcretails.web.routers.uploads import read_upload

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post("", status_code=status.HTTP_201_CREATED, summary="Upload Contract")
async def upload_contract(
    file: UploadFile = File(...),
    service: StorageService = Depends(get_storage_service),
) -> dict:
    shares = service.config.shares
    file_name = await service.upload_to_file_share(
        await read_upload(file), shares.contracts, shares.payments_directory
    )
    return {"file_name": file_name}


@router.get("/{file_name}", summary="Download Contract")
async def download_contract(
    file_name: str,
    service: StorageService = Depends(get_storage_service),
) -> Response:
    shares = service.config.shares
    data = await service.download_from_file_share(
        shares.contracts, file_name, shares.payments_directory
    )
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )
