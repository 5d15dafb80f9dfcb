# booking_api/routes/uploads.py - one upload endpoint per mount path
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from typing import List
import logging
from booking_api.auth.dependencies import get_current_user
from booking_api.auth.models import TokenData
from booking_api.middleware.upload import (
    UPLOAD_DESTINATIONS,
    InvalidFileTypeError,
    UploadTooLargeError,
    store_upload,
)
from booking_api.utils.responses import success_response

logger = logging.getLogger(__name__)

GENERAL_UPLOAD_PATH = "/api/v1/uploads"

def build_upload_router(mount_path: str) -> APIRouter:
    """POST {mount_path}/upload stores into the folder mapped to that mount path"""
    router = APIRouter(prefix=mount_path, tags=["uploads"])

    @router.post("/upload", status_code=status.HTTP_201_CREATED)
    async def upload_file(
        file: UploadFile = File(...),
        user: TokenData = Depends(get_current_user)
    ):
        logger.info(f"📤 Upload to {mount_path} by {user.sub}: '{file.filename}' ({file.content_type})")
        try:
            stored = await store_upload(file, mount_path)
        except InvalidFileTypeError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except UploadTooLargeError as e:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
        except Exception as e:
            logger.error(f"❌ Upload to {mount_path} failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="File upload failed"
            )
        finally:
            await file.close()

        return success_response("File uploaded successfully", stored, status.HTTP_201_CREATED)

    return router

def upload_routers() -> List[APIRouter]:
    return [build_upload_router(path) for path in [*UPLOAD_DESTINATIONS, GENERAL_UPLOAD_PATH]]
