"""
文件管理API
"""
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from dropx.core.exceptions import ValidationError
from dropx.db.database import get_db
from dropx.schemas.file import (
    FileResponse, TrashToggleResponse, DeleteFileResponse, EmptyTrashResponse,
    FileRename, FileMove, FileTreeNode, UploadRecordCreate
)
from dropx.services.file_service import FileService
from dropx.services.media_store import MediaStore, get_media_store
from dropx.utils.auth import get_current_user_id, ensure_same_user

router = APIRouter(prefix="/api", tags=["文件管理"])


def to_file_response(node) -> FileResponse:
    """ORM节点转换为响应模型"""
    return FileResponse(
        id=node.id,
        name=node.name,
        path=node.path,
        size=node.size,
        type=node.type,
        fileUrl=node.file_url,
        thumbnailUrl=node.thumbnail_url,
        userId=node.user_id,
        parentId=node.parent_id,
        isFolder=node.is_folder,
        isStarred=node.is_starred,
        isTrash=node.is_trash,
        createdAt=node.created_at,
        updatedAt=node.updated_at
    )


@router.get("/files", response_model=List[FileResponse])
async def list_files(
    userId: Optional[str] = Query(None),
    parentId: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    获取某个文件夹下的文件与文件夹，不传 parentId 时返回根目录
    """
    ensure_same_user(userId, current_user_id)

    nodes = await FileService.list_children(db, current_user_id, parentId or None)
    return [to_file_response(node) for node in nodes]


@router.get("/files/starred", response_model=List[FileResponse])
async def list_starred_files(
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    获取所有星标文件（不含回收站）
    """
    nodes = await FileService.list_flagged(db, current_user_id, "starred")
    return [to_file_response(node) for node in nodes]


@router.get("/files/trash", response_model=List[FileResponse])
async def list_trash_files(
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    获取回收站中的所有节点
    """
    nodes = await FileService.list_flagged(db, current_user_id, "trash")
    return [to_file_response(node) for node in nodes]


@router.get("/files/tree", response_model=List[FileTreeNode])
async def get_file_tree(
    includeTrash: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    获取完整层级结构（树形结构）
    """
    return await FileService.get_tree(db, current_user_id, include_trash=includeTrash)


@router.post("/files/upload", response_model=FileResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    userId: Optional[str] = Form(None),
    parentId: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    上传文件（multipart/form-data：file、userId、parentId）
    """
    ensure_same_user(userId, current_user_id)

    if file is None:
        raise ValidationError("No file provided")

    # multipart 解析后已知大小，超限时不再把内容读入内存
    FileService.validate_upload(file.filename, file.content_type, file.size)

    content = await file.read()
    new_file = await FileService.upload_file(
        db,
        store,
        current_user_id,
        content,
        declared_name=file.filename or "",
        mime_type=file.content_type or "",
        parent_id=parentId or None
    )
    return to_file_response(new_file)


@router.post("/upload", response_model=FileResponse)
async def register_upload(
    record: UploadRecordCreate,
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    登记浏览器直传到ImageKit的文件
    """
    ensure_same_user(record.userId, current_user_id)

    upload_info = record.imagekit.model_dump() if record.imagekit else None
    new_file = await FileService.register_uploaded_file(db, current_user_id, upload_info)
    return to_file_response(new_file)


@router.patch("/files/{file_id}/star", response_model=FileResponse)
async def toggle_star(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    切换星标
    """
    node = await FileService.toggle_star(db, current_user_id, file_id)
    return to_file_response(node)


@router.patch("/files/{file_id}/trash", response_model=TrashToggleResponse)
async def toggle_trash(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    移入回收站 / 从回收站恢复
    """
    node, action = await FileService.toggle_trash(db, current_user_id, file_id)
    return TrashToggleResponse(
        **to_file_response(node).model_dump(),
        message=f"File {action} successfully"
    )


@router.patch("/files/{file_id}/rename", response_model=FileResponse)
async def rename_file(
    file_id: str,
    rename_data: FileRename,
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    重命名文件或文件夹
    """
    node = await FileService.rename_node(db, current_user_id, file_id, rename_data.name)
    return to_file_response(node)


@router.patch("/files/{file_id}/move", response_model=FileResponse)
async def move_file(
    file_id: str,
    move_data: FileMove,
    db: AsyncSession = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    移动文件或文件夹
    """
    node = await FileService.move_node(db, current_user_id, file_id, move_data.parentId)
    return to_file_response(node)


@router.delete("/files/empty-trash", response_model=EmptyTrashResponse)
async def empty_trash(
    db: AsyncSession = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    清空回收站
    """
    deleted_count = await FileService.empty_trash(db, store, current_user_id)
    if deleted_count == 0:
        return EmptyTrashResponse(message="No files in trash", deletedCount=0)

    return EmptyTrashResponse(
        message=f"Successfully deleted {deleted_count} files from trash",
        deletedCount=deleted_count
    )


@router.delete("/files/{file_id}/delete", response_model=DeleteFileResponse)
async def delete_file(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
    current_user_id: str = Depends(get_current_user_id)
):
    """
    永久删除文件或文件夹（文件夹连同其所有后代）
    """
    node = await FileService.delete_node(db, store, current_user_id, file_id)
    return DeleteFileResponse(
        message="File deleted successfully",
        deletedFile=to_file_response(node)
    )
