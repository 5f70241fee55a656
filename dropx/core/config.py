"""
应用配置文件
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """应用配置"""
    
    # 应用基本配置
    APP_NAME: str = "DropX"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    
    # 数据库配置
    DB_USERNAME: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "dropx"
    DB_URL: Optional[str] = None  # 显式指定时优先于上面的分项配置
    
    # JWT配置（由身份提供方签发，sub 即用户ID）
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    
    # CORS配置
    CORS_ORIGINS: list = ["*"]
    
    # ImageKit配置
    IMAGEKIT_PUBLIC_KEY: str = ""
    IMAGEKIT_PRIVATE_KEY: str = ""
    IMAGEKIT_URL_ENDPOINT: str = ""
    IMAGEKIT_API_BASE: str = "https://api.imagekit.io/v1"
    IMAGEKIT_UPLOAD_BASE: str = "https://upload.imagekit.io/api/v1"
    IMAGEKIT_TIMEOUT_SECONDS: float = 30.0
    IMAGEKIT_AUTH_EXPIRE_SECONDS: int = 30 * 60
    
    # 文件存储配置
    STORAGE_ROOT: str = "DropX"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024  # 5 MiB
    MEDIA_CLEANUP_CONCURRENCY: Optional[int] = None  # None 表示不限制并发
    
    @property
    def DATABASE_URL(self) -> str:
        """获取数据库连接URL"""
        if self.DB_URL:
            return self.DB_URL
        return f"postgresql+asyncpg://{self.DB_USERNAME}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
    
    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
