"""
媒体存储Schema模型
"""
from pydantic import BaseModel


class MediaAuthResponse(BaseModel):
    """客户端直传所需的签名参数"""
    token: str
    expire: int
    signature: str
