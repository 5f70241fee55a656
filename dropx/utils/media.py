"""
媒体文件相关的纯函数工具
"""
import uuid
from typing import Optional

PDF_MIME_TYPE = "application/pdf"


def is_supported_mime_type(mime_type: Optional[str]) -> bool:
    """只允许图片与PDF"""
    if not mime_type:
        return False
    mime_type = mime_type.strip().lower()
    return mime_type.startswith("image/") or mime_type == PDF_MIME_TYPE


def build_storage_name(declared_name: str) -> str:
    """
    生成存储对象名：UUID + 原扩展名

    与用户上传的文件名无关，同名文件并发上传不会在媒体存储中冲突。
    """
    extension = ""
    if declared_name and "." in declared_name:
        extension = declared_name.rsplit(".", 1)[-1].strip()
    unique = str(uuid.uuid4())
    return f"{unique}.{extension}" if extension else unique


def build_storage_folder(root: str, user_id: str, parent_id: Optional[str] = None) -> str:
    """用户文件在媒体存储中的目录：/{root}/{user_id}[/folders/{parent_id}]"""
    folder = f"/{root.strip('/')}/{user_id}"
    if parent_id:
        folder = f"{folder}/folders/{parent_id}"
    return folder


def _last_segment(value: str) -> Optional[str]:
    segment = value.split("/")[-1] if value else ""
    return segment or None


def derive_media_identifier(file_url: Optional[str], path: Optional[str]) -> Optional[str]:
    """
    从存储的URL/路径推导媒体存储中的对象标识

    先去掉URL的查询参数取最后一段路径；取不到时退回到存储路径的最后一段。
    
    Examples:
        >>> derive_media_identifier("https://ik.imagekit.io/x/DropX/u1/a.jpg?tr=w-100", None)
        'a.jpg'
        >>> derive_media_identifier("", "/DropX/u1/b.png")
        'b.png'
    """
    identifier = None
    if file_url:
        identifier = _last_segment(file_url.split("?", 1)[0])
    if not identifier and path:
        identifier = _last_segment(path)
    return identifier
