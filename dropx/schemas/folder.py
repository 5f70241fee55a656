"""
文件夹Schema模型
"""
from pydantic import BaseModel, Field
from typing import Optional

from dropx.schemas.file import FileResponse


class FolderCreate(BaseModel):
    """创建文件夹请求模型"""
    name: Optional[str] = Field(None, max_length=255, description="文件夹名称")
    userId: Optional[str] = Field(None, description="当前用户ID，必须与登录身份一致")
    parentId: Optional[str] = Field(None, description="父文件夹ID，为null表示根目录")


class FolderCreateResponse(BaseModel):
    """创建文件夹响应模型"""
    success: bool = True
    message: str
    folder: FileResponse
