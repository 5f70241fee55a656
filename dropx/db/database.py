"""
数据库连接和会话管理
"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from dropx.core.config import settings


def _engine_options(url: str) -> dict:
    # SQLite（测试/本地）不支持连接池参数
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


# 创建异步引擎
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

# 创建会话工厂
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# 创建Base类
Base = declarative_base()


async def get_db() -> AsyncSession:
    """
    获取数据库会话依赖

    请求处理中出现异常时回滚，避免残留未提交的修改
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_models() -> None:
    """创建缺失的数据表（开发环境使用，生产环境建议走迁移）"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
