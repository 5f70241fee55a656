"""
文件夹管理API
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from dropx.api.files import to_file_response
from dropx.db.database import get_db
from dropx.schemas.file import FileResponse
from dropx.schemas.folder import FolderCreate, FolderCreateResponse
from dropx.services.file_service import FileService
from dropx.utils.auth import get_current_user_id, ensure_same_user

router = APIRouter(prefix="/api", tags=["文件夹管理"])


@router.post("/folders/create", response_model=FolderCreateResponse)
async def create_folder(
    folder_data: FolderCreate,
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    创建文件夹
    """
    # 只能在自己的账号下创建
    ensure_same_user(folder_data.userId, current_user_id)

    folder = await FileService.create_folder(
        db,
        current_user_id,
        folder_data.name,
        folder_data.parentId or None
    )
    
    return FolderCreateResponse(
        message="Folder created successfully",
        folder=to_file_response(folder)
    )


@router.get("/folders/{folder_id}/path", response_model=List[FileResponse])
async def get_folder_path(
    folder_id: str,
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    获取从根目录到该文件夹的路径（面包屑导航）
    """
    chain = await FileService.get_breadcrumbs(db, current_user_id, folder_id)
    return [to_file_response(node) for node in chain]
