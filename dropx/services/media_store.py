"""
媒体存储服务（ImageKit）

只依赖三个能力：上传字节、按名称查找对象、按对象ID删除；
另外为浏览器直传生成签名参数。
"""
import hashlib
import hmac
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional, Dict, Any

import httpx

from dropx.core.config import settings
from dropx.core.exceptions import UpstreamStorageError

logger = logging.getLogger(__name__)


@dataclass
class MediaObject:
    """媒体存储中的对象"""
    file_id: str
    name: str
    file_path: str
    url: str
    thumbnail_url: Optional[str] = None
    size: int = 0


class MediaStore:
    """媒体存储接口"""

    async def upload(self, *, content: bytes, file_name: str, folder: str) -> MediaObject:
        raise NotImplementedError

    async def find_by_name(self, name: str) -> Optional[MediaObject]:
        raise NotImplementedError

    async def delete(self, file_id: str) -> None:
        raise NotImplementedError

    def get_authentication_parameters(self) -> Dict[str, Any]:
        raise NotImplementedError


class ImageKitMediaStore(MediaStore):
    """基于 ImageKit REST API 的媒体存储实现"""

    def __init__(
        self,
        public_key: str,
        private_key: str,
        url_endpoint: str,
        api_base: str = "https://api.imagekit.io/v1",
        upload_base: str = "https://upload.imagekit.io/api/v1",
        timeout: float = 30.0,
        auth_expire_seconds: int = 30 * 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.public_key = public_key
        self.private_key = private_key
        self.url_endpoint = url_endpoint
        self.api_base = api_base.rstrip("/")
        self.upload_base = upload_base.rstrip("/")
        self.timeout = timeout
        self.auth_expire_seconds = auth_expire_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        # ImageKit 私钥作为 Basic Auth 用户名，密码为空
        return httpx.AsyncClient(
            auth=(self.private_key, ""),
            timeout=self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _to_media_object(data: Dict[str, Any]) -> MediaObject:
        return MediaObject(
            file_id=data["fileId"],
            name=data.get("name", ""),
            file_path=data.get("filePath", ""),
            url=data.get("url", ""),
            thumbnail_url=data.get("thumbnailUrl") or None,
            size=data.get("size") or 0,
        )

    async def upload(self, *, content: bytes, file_name: str, folder: str) -> MediaObject:
        """
        上传文件
        
        Args:
            content: 文件内容
            file_name: 存储对象名（调用方已保证唯一，因此关闭 useUniqueFileName）
            folder: 目标目录
        
        Raises:
            UpstreamStorageError: 网络错误或ImageKit返回非2xx
        """
        url = f"{self.upload_base}/files/upload"
        form = {
            "fileName": file_name,
            "folder": folder,
            "useUniqueFileName": "false",
        }
        try:
            async with self._client() as client:
                response = await client.post(url, data=form, files={"file": (file_name, content)})
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("ImageKit upload of %s failed: %s", file_name, e)
            raise UpstreamStorageError("Failed to upload file") from e
        
        if not isinstance(data, dict) or "fileId" not in data:
            logger.error("Unexpected ImageKit upload response for %s: %r", file_name, data)
            raise UpstreamStorageError("Failed to upload file")
        
        return self._to_media_object(data)

    async def find_by_name(self, name: str) -> Optional[MediaObject]:
        """按对象名查找，只返回文件类型的第一条结果"""
        url = f"{self.api_base}/files"
        params = {"searchQuery": f'name = "{name}"', "limit": 1}
        try:
            async with self._client() as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                items = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("ImageKit search for %s failed: %s", name, e)
            raise UpstreamStorageError("Failed to search media storage") from e
        
        for item in items or []:
            if isinstance(item.get("fileId"), str):
                return self._to_media_object(item)
        return None

    async def delete(self, file_id: str) -> None:
        """按对象ID删除"""
        url = f"{self.api_base}/files/{file_id}"
        try:
            async with self._client() as client:
                response = await client.delete(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("ImageKit delete of %s failed: %s", file_id, e)
            raise UpstreamStorageError("Failed to delete from media storage") from e

    def get_authentication_parameters(
        self,
        token: Optional[str] = None,
        expire: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        生成浏览器直传ImageKit所需的签名参数

        signature = HMAC-SHA1(private_key, token + expire)
        """
        token = token or str(uuid.uuid4())
        expire = expire or int(time.time()) + self.auth_expire_seconds
        signature = hmac.new(
            self.private_key.encode(),
            f"{token}{expire}".encode(),
            hashlib.sha1,
        ).hexdigest()
        return {"token": token, "expire": expire, "signature": signature}


def get_media_store() -> MediaStore:
    """媒体存储依赖（测试中通过 dependency_overrides 替换）"""
    return ImageKitMediaStore(
        public_key=settings.IMAGEKIT_PUBLIC_KEY,
        private_key=settings.IMAGEKIT_PRIVATE_KEY,
        url_endpoint=settings.IMAGEKIT_URL_ENDPOINT,
        api_base=settings.IMAGEKIT_API_BASE,
        upload_base=settings.IMAGEKIT_UPLOAD_BASE,
        timeout=settings.IMAGEKIT_TIMEOUT_SECONDS,
        auth_expire_seconds=settings.IMAGEKIT_AUTH_EXPIRE_SECONDS,
    )
