"""
认证工具函数

身份由外部身份提供方签发的JWT确定，sub 即用户ID；本服务只校验签名与有效期。
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from fastapi import Header
from dropx.core.config import settings
from dropx.core.exceptions import UnauthorizedError


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    创建JWT访问token

    线上token由外部身份提供方签发，这里用于本地联调与测试时签发同一格式的token。
    
    Args:
        data: 要编码到token中的数据
        expires_delta: token过期时间增量，默认使用配置中的时间
    
    Returns:
        str: JWT token字符串
    """
    to_encode = data.copy()
    
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def verify_token(token: str) -> Dict[str, Any]:
    """
    验证JWT token
    
    Raises:
        UnauthorizedError: token无效或过期
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthorizedError()


async def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    """
    从请求头获取当前用户ID（通过JWT token）
    
    Args:
        authorization: Authorization请求头，格式为 "Bearer {token}"
    
    Returns:
        str: 用户ID
    
    Raises:
        UnauthorizedError: 未提供token、格式错误、token无效或缺少 sub
    """
    if not authorization or not authorization.strip():
        raise UnauthorizedError()
    
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError()
    
    payload = verify_token(parts[1])
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError()
    
    return str(user_id)


def ensure_same_user(claimed_user_id: Optional[str], current_user_id: str) -> None:
    """客户端携带的userId必须与登录身份一致，不一致时拒绝而不是替换"""
    if claimed_user_id != current_user_id:
        raise UnauthorizedError()
