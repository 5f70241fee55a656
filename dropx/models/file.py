"""
文件/文件夹节点模型

文件与文件夹共用一张表：
- is_folder=True 的记录才可以作为其他记录的 parent_id；
- parent_id 为空表示位于根目录；
- 文件夹的 size=0、type="folder"、file_url=""。
"""
import uuid

from sqlalchemy import Column, BigInteger, String, Text, Boolean, TIMESTAMP, Index, func
from dropx.db.database import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class File(Base):
    __tablename__ = "files"
    __table_args__ = (
        Index("ix_files_user_parent", "user_id", "parent_id"),
        Index("ix_files_user_trash", "user_id", "is_trash"),
    )
    
    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    path = Column(Text, nullable=False)  # 媒体存储中的路径（文件夹为合成路径）
    size = Column(BigInteger, nullable=False, default=0)
    type = Column(String(255), nullable=False)  # MIME类型，文件夹为 "folder"
    
    file_url = Column(Text, nullable=False, default="")
    thumbnail_url = Column(Text, nullable=True)
    
    user_id = Column(String(255), nullable=False, index=True)  # 身份提供方的用户ID
    parent_id = Column(String(36), nullable=True)  # 不建外键：级联由服务层处理
    
    is_folder = Column(Boolean, nullable=False, default=False)
    is_starred = Column(Boolean, nullable=False, default=False)
    is_trash = Column(Boolean, nullable=False, default=False)
    
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
