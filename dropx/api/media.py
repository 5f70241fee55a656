"""
媒体存储API
"""
import logging

from fastapi import APIRouter, Depends

from dropx.core.exceptions import UpstreamStorageError
from dropx.schemas.media import MediaAuthResponse
from dropx.services.media_store import MediaStore, get_media_store
from dropx.utils.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["媒体存储"])


@router.get("/imagekit-auth", response_model=MediaAuthResponse)
async def get_imagekit_auth(
    store: MediaStore = Depends(get_media_store),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    生成浏览器直传ImageKit所需的签名参数（token、expire、signature）
    """
    try:
        params = store.get_authentication_parameters()
    except Exception as e:
        logger.exception("Error generating ImageKit auth params for user %s", current_user_id)
        raise UpstreamStorageError("Failed to generate authentication parameters") from e
    
    return MediaAuthResponse(**params)
