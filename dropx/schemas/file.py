"""
文件/文件夹Schema模型
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class FileResponse(BaseModel):
    """节点响应模型（文件与文件夹共用）"""
    id: str
    name: str
    path: str
    size: int
    type: str
    fileUrl: str
    thumbnailUrl: Optional[str] = None
    userId: str
    parentId: Optional[str] = None
    isFolder: bool
    isStarred: bool
    isTrash: bool
    createdAt: datetime
    updatedAt: datetime
    
    class Config:
        from_attributes = True


class TrashToggleResponse(FileResponse):
    """移入/移出回收站响应模型"""
    message: str


class DeleteFileResponse(BaseModel):
    """永久删除响应模型"""
    success: bool = True
    message: str
    deletedFile: FileResponse


class EmptyTrashResponse(BaseModel):
    """清空回收站响应模型"""
    success: bool = True
    message: str
    deletedCount: int = 0


class FileRename(BaseModel):
    """重命名请求模型"""
    name: str = Field(..., max_length=255, description="新名称")


class FileMove(BaseModel):
    """移动请求模型"""
    parentId: Optional[str] = Field(None, description="目标文件夹ID，为null表示移动到根目录")


class ImageKitUploadInfo(BaseModel):
    """客户端直传ImageKit后回传的文件信息"""
    url: Optional[str] = None
    name: Optional[str] = None
    filePath: Optional[str] = None
    size: Optional[int] = None
    fileType: Optional[str] = None
    thumbnailUrl: Optional[str] = None


class UploadRecordCreate(BaseModel):
    """登记客户端直传文件请求模型"""
    imagekit: Optional[ImageKitUploadInfo] = None
    userId: Optional[str] = None


class FileTreeNode(BaseModel):
    """层级树节点模型（支持递归）"""
    id: str
    name: str
    type: str
    parentId: Optional[str] = None
    isFolder: bool
    isStarred: bool
    isTrash: bool
    size: int
    fileUrl: str
    children: List['FileTreeNode'] = []


# 启用前向引用
FileTreeNode.model_rebuild()
