"""
文件层级服务

所有操作都显式接收当前用户ID（owner_id），每条查询都带上 user_id 过滤，
不会先查出别人的数据再判断权限。
"""
import logging
import uuid
from collections import defaultdict
from typing import Optional, List, Tuple, Dict, Any, Iterable, Set

from sqlalchemy import select, update, delete, and_, or_, not_
from sqlalchemy.ext.asyncio import AsyncSession

from dropx.core.config import settings
from dropx.core.exceptions import (
    ValidationError,
    NotFoundError,
    PayloadTooLargeError,
    UnsupportedTypeError,
    UpstreamStorageError,
)
from dropx.models.file import File
from dropx.schemas.file import FileTreeNode
from dropx.services.media_cleanup import remove_media_objects
from dropx.services.media_store import MediaStore
from dropx.utils.media import (
    is_supported_mime_type,
    build_storage_name,
    build_storage_folder,
)

logger = logging.getLogger(__name__)

FOLDER_TYPE = "folder"
TRASH_ACTION_MOVED = "moved to trash"
TRASH_ACTION_RESTORED = "restored"
MAX_NAME_LENGTH = 255


class FileService:
    """文件/文件夹层级服务类"""

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    @staticmethod
    def _clean_name(name: Optional[str], message: str) -> str:
        if not name or not isinstance(name, str) or not name.strip():
            raise ValidationError(message)
        name = name.strip()
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Name must be at most {MAX_NAME_LENGTH} characters")
        return name

    @staticmethod
    def validate_upload(declared_name: Optional[str], mime_type: Optional[str], size: Optional[int]) -> None:
        """
        上传前的本地校验，依次检查类型、大小与文件名长度

        size 为 None 时跳过大小检查（路由层在读取内容前调用时可能拿不到大小）。

        Raises:
            UnsupportedTypeError: 类型不支持
            PayloadTooLargeError: 超过大小上限
            ValidationError: 文件名过长
        """
        if not is_supported_mime_type(mime_type) or len(mime_type) > MAX_NAME_LENGTH:
            raise UnsupportedTypeError()

        if size is not None and size > settings.MAX_UPLOAD_BYTES:
            raise PayloadTooLargeError(size, settings.MAX_UPLOAD_BYTES)

        if declared_name and len(declared_name.strip()) > MAX_NAME_LENGTH:
            raise ValidationError(f"File name must be at most {MAX_NAME_LENGTH} characters")

    @staticmethod
    async def _get_owned(db: AsyncSession, owner_id: str, node_id: str) -> File:
        """按 (id, user_id) 查询节点，不存在或不属于当前用户时抛出 NotFoundError"""
        result = await db.execute(
            select(File).where(
                and_(
                    File.id == node_id,
                    File.user_id == owner_id
                )
            )
        )
        node = result.scalar_one_or_none()
        if not node:
            raise NotFoundError("File not found")
        return node

    @staticmethod
    async def _get_owned_folder(
        db: AsyncSession,
        owner_id: str,
        folder_id: str,
        message: str = "Parent folder not found"
    ) -> File:
        """父文件夹必须存在、属于当前用户且 is_folder=True"""
        result = await db.execute(
            select(File).where(
                and_(
                    File.id == folder_id,
                    File.user_id == owner_id,
                    File.is_folder == True
                )
            )
        )
        folder = result.scalar_one_or_none()
        if not folder:
            raise NotFoundError(message)
        return folder

    @staticmethod
    async def _load_owner_nodes(db: AsyncSession, owner_id: str) -> List[File]:
        result = await db.execute(select(File).where(File.user_id == owner_id))
        return list(result.scalars().all())

    @staticmethod
    def _collect_descendant_ids(nodes: Iterable[File], root_ids: Set[str]) -> Set[str]:
        """收集 root_ids 下所有后代节点的ID（不含 root_ids 本身）"""
        children = defaultdict(list)
        for node in nodes:
            if node.parent_id:
                children[node.parent_id].append(node.id)

        descendants = set()
        stack = list(root_ids)
        while stack:
            current = stack.pop()
            for child_id in children.get(current, []):
                if child_id in descendants or child_id in root_ids:
                    continue
                descendants.add(child_id)
                stack.append(child_id)
        return descendants

    @staticmethod
    async def _toggle(db: AsyncSession, node: File, owner_id: str, column) -> File:
        """单条条件更新翻转布尔字段（并发时后写者生效）"""
        await db.execute(
            update(File)
            .where(
                and_(
                    File.id == node.id,
                    File.user_id == owner_id
                )
            )
            .values({column: not_(column)})
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(node)
        return node

    # ------------------------------------------------------------------
    # 创建
    # ------------------------------------------------------------------

    @classmethod
    async def create_folder(
        cls,
        db: AsyncSession,
        owner_id: str,
        name: Optional[str],
        parent_id: Optional[str] = None
    ) -> File:
        """
        创建文件夹

        Args:
            db: 数据库会话
            owner_id: 当前用户ID
            name: 文件夹名称（去除首尾空白后不能为空）
            parent_id: 父文件夹ID，None 表示根目录

        Raises:
            ValidationError: 名称为空
            NotFoundError: 父文件夹不存在、不是文件夹或不属于当前用户
        """
        name = cls._clean_name(name, "Folder name is required")

        if parent_id:
            await cls._get_owned_folder(db, owner_id, parent_id)

        folder = File(
            id=str(uuid.uuid4()),
            name=name,
            path=f"/folders/{owner_id}/{uuid.uuid4()}",
            size=0,
            type=FOLDER_TYPE,
            file_url="",
            thumbnail_url=None,
            user_id=owner_id,
            parent_id=parent_id,
            is_folder=True,
            is_starred=False,
            is_trash=False
        )
        db.add(folder)
        await db.commit()
        await db.refresh(folder)

        logger.info("Folder %s created for user %s", folder.id, owner_id)
        return folder

    @classmethod
    async def upload_file(
        cls,
        db: AsyncSession,
        store: MediaStore,
        owner_id: str,
        content: Optional[bytes],
        declared_name: str,
        mime_type: str,
        parent_id: Optional[str] = None
    ) -> File:
        """
        上传文件并创建记录

        步骤：
        1. 校验类型（仅图片与PDF）、大小（不超过 MAX_UPLOAD_BYTES）与文件名长度，在任何网络请求之前完成
        2. 校验父文件夹
        3. 以与原文件名无关的唯一名称上传到媒体存储
        4. 上传成功后才写入数据库，避免出现没有内容的记录

        Raises:
            ValidationError: 未提供文件
            UnsupportedTypeError: 类型不支持
            PayloadTooLargeError: 超过大小上限
            ValidationError: 文件名过长
            NotFoundError: 父文件夹无效
            UpstreamStorageError: 媒体存储上传失败
        """
        if content is None:
            raise ValidationError("No file provided")

        size = len(content)
        cls.validate_upload(declared_name, mime_type, size)

        if parent_id:
            await cls._get_owned_folder(db, owner_id, parent_id)

        storage_name = build_storage_name(declared_name)
        folder_path = build_storage_folder(settings.STORAGE_ROOT, owner_id, parent_id)

        try:
            media = await store.upload(content=content, file_name=storage_name, folder=folder_path)
        except UpstreamStorageError:
            raise
        except Exception as e:
            logger.exception("Unexpected media storage failure while uploading %s", storage_name)
            raise UpstreamStorageError("Failed to upload file") from e

        # 注意：媒体对象已写入而数据库写入失败时会留下孤立对象，目前没有补偿清理
        new_file = File(
            name=(declared_name or "").strip() or storage_name,
            path=media.file_path,
            size=size,
            type=mime_type,
            file_url=media.url,
            thumbnail_url=media.thumbnail_url,
            user_id=owner_id,
            parent_id=parent_id,
            is_folder=False,
            is_starred=False,
            is_trash=False
        )
        db.add(new_file)
        await db.commit()
        await db.refresh(new_file)

        logger.info("File %s uploaded for user %s (%d bytes)", new_file.id, owner_id, size)
        return new_file

    @classmethod
    async def register_uploaded_file(
        cls,
        db: AsyncSession,
        owner_id: str,
        upload_info: Optional[Dict[str, Any]]
    ) -> File:
        """
        登记浏览器直传到媒体存储的文件（记录在根目录）

        Args:
            upload_info: 媒体存储返回的文件信息，至少包含 url
        """
        if not upload_info or not upload_info.get("url"):
            raise ValidationError("Invalid file upload data")

        name = (upload_info.get("name") or "").strip() or "Untitled"
        file_type = upload_info.get("fileType") or "image"
        if len(name) > MAX_NAME_LENGTH or len(file_type) > MAX_NAME_LENGTH:
            raise ValidationError("Invalid file upload data")
        root = settings.STORAGE_ROOT.strip("/")

        new_file = File(
            name=name,
            path=upload_info.get("filePath") or f"/{root}/{owner_id}/{name}",
            size=upload_info.get("size") or 0,
            type=file_type,
            file_url=upload_info["url"],
            thumbnail_url=upload_info.get("thumbnailUrl") or None,
            user_id=owner_id,
            parent_id=None,
            is_folder=False,
            is_starred=False,
            is_trash=False
        )
        db.add(new_file)
        await db.commit()
        await db.refresh(new_file)
        return new_file

    # ------------------------------------------------------------------
    # 标记
    # ------------------------------------------------------------------

    @classmethod
    async def toggle_star(cls, db: AsyncSession, owner_id: str, node_id: str) -> File:
        """切换星标"""
        node = await cls._get_owned(db, owner_id, node_id)
        return await cls._toggle(db, node, owner_id, File.is_starred)

    @classmethod
    async def toggle_trash(cls, db: AsyncSession, owner_id: str, node_id: str) -> Tuple[File, str]:
        """
        移入/移出回收站

        不会递归影响子节点，子节点保留各自的 is_trash。

        Returns:
            (更新后的节点, 操作描述)，操作描述由新状态决定
        """
        node = await cls._get_owned(db, owner_id, node_id)
        node = await cls._toggle(db, node, owner_id, File.is_trash)
        action = TRASH_ACTION_MOVED if node.is_trash else TRASH_ACTION_RESTORED
        return node, action

    @classmethod
    async def rename_node(cls, db: AsyncSession, owner_id: str, node_id: str, name: Optional[str]) -> File:
        """重命名文件或文件夹"""
        name = cls._clean_name(name, "Name is required")
        node = await cls._get_owned(db, owner_id, node_id)

        node.name = name
        await db.commit()
        await db.refresh(node)
        return node

    @classmethod
    async def move_node(
        cls,
        db: AsyncSession,
        owner_id: str,
        node_id: str,
        parent_id: Optional[str]
    ) -> File:
        """
        移动节点到另一个文件夹（parent_id 为 None 时移动到根目录）

        Raises:
            NotFoundError: 节点或目标文件夹不存在
            ValidationError: 目标是节点自身或其后代（会形成环）
        """
        node = await cls._get_owned(db, owner_id, node_id)

        if parent_id:
            if parent_id == node.id:
                raise ValidationError("Cannot move a folder into itself")

            parent = await cls._get_owned_folder(db, owner_id, parent_id, "Destination folder not found")

            # 沿父链向上检查，目标不能位于自己的子树中
            visited = {parent.id}
            current_parent_id = parent.parent_id
            while current_parent_id and current_parent_id not in visited:
                if current_parent_id == node.id:
                    raise ValidationError("Cannot move a folder into its own subfolder")
                visited.add(current_parent_id)
                ancestor_result = await db.execute(
                    select(File.parent_id).where(
                        and_(
                            File.id == current_parent_id,
                            File.user_id == owner_id
                        )
                    )
                )
                current_parent_id = ancestor_result.scalar_one_or_none()

        node.parent_id = parent_id or None
        await db.commit()
        await db.refresh(node)
        return node

    # ------------------------------------------------------------------
    # 删除
    # ------------------------------------------------------------------

    @classmethod
    async def delete_node(cls, db: AsyncSession, store: MediaStore, owner_id: str, node_id: str) -> File:
        """
        永久删除节点

        先尽力清理媒体存储（失败只记录日志），再无条件删除数据库记录。
        删除文件夹时级联删除其所有后代，不留下指向不存在父节点的记录。

        Returns:
            被删除的节点
        """
        node = await cls._get_owned(db, owner_id, node_id)

        targets = [node]
        if node.is_folder:
            nodes = await cls._load_owner_nodes(db, owner_id)
            descendant_ids = cls._collect_descendant_ids(nodes, {node.id})
            targets.extend(n for n in nodes if n.id in descendant_ids)

        await remove_media_objects(store, targets, settings.MEDIA_CLEANUP_CONCURRENCY)

        await db.execute(
            delete(File)
            .where(
                and_(
                    File.user_id == owner_id,
                    File.id.in_([n.id for n in targets])
                )
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        logger.info("Deleted %s %s and %d descendants for user %s",
                    FOLDER_TYPE if node.is_folder else "file", node.id, len(targets) - 1, owner_id)
        return node

    @classmethod
    async def empty_trash(cls, db: AsyncSession, store: MediaStore, owner_id: str) -> int:
        """
        清空回收站

        回收站为空时直接返回0，不调用媒体存储；否则并发清理所有文件的媒体对象，
        全部结束后一次性删除记录（包括回收站中文件夹的后代）。

        Returns:
            int: 删除的记录数
        """
        result = await db.execute(
            select(File).where(
                and_(
                    File.user_id == owner_id,
                    File.is_trash == True
                )
            )
        )
        trashed = list(result.scalars().all())
        if not trashed:
            return 0

        targets = list(trashed)
        extra_ids: Set[str] = set()
        trashed_folder_ids = {n.id for n in trashed if n.is_folder}
        if trashed_folder_ids:
            nodes = await cls._load_owner_nodes(db, owner_id)
            trashed_ids = {n.id for n in trashed}
            extra_ids = cls._collect_descendant_ids(nodes, trashed_folder_ids) - trashed_ids
            targets.extend(n for n in nodes if n.id in extra_ids)

        await remove_media_objects(store, targets, settings.MEDIA_CLEANUP_CONCURRENCY)

        condition = File.is_trash == True
        if extra_ids:
            condition = or_(condition, File.id.in_(extra_ids))

        deleted = await db.execute(
            delete(File)
            .where(
                and_(
                    File.user_id == owner_id,
                    condition
                )
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        logger.info("Emptied trash for user %s: %d records", owner_id, deleted.rowcount)
        return deleted.rowcount

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    @staticmethod
    async def list_children(db: AsyncSession, owner_id: str, parent_id: Optional[str] = None) -> List[File]:
        """
        列出某个文件夹（或根目录）下的节点

        传入其他用户的文件夹ID时返回空列表。
        """
        if parent_id:
            parent_condition = File.parent_id == parent_id
        else:
            parent_condition = File.parent_id.is_(None)

        result = await db.execute(
            select(File)
            .where(
                and_(
                    File.user_id == owner_id,
                    parent_condition
                )
            )
            .order_by(File.is_folder.desc(), File.name.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_flagged(db: AsyncSession, owner_id: str, flag: str) -> List[File]:
        """
        跨层级列出带星标或在回收站中的节点

        Args:
            flag: "starred"（不含回收站中的）或 "trash"
        """
        if flag == "starred":
            condition = and_(File.is_starred == True, File.is_trash == False)
        elif flag == "trash":
            condition = File.is_trash == True
        else:
            raise ValidationError(f"Unknown filter: {flag}")

        result = await db.execute(
            select(File)
            .where(
                and_(
                    File.user_id == owner_id,
                    condition
                )
            )
            .order_by(File.is_folder.desc(), File.name.asc())
        )
        return list(result.scalars().all())

    @classmethod
    async def get_tree(cls, db: AsyncSession, owner_id: str, include_trash: bool = False) -> List[FileTreeNode]:
        """获取用户的完整层级（树形结构）"""
        nodes = await cls._load_owner_nodes(db, owner_id)
        if not include_trash:
            nodes = [n for n in nodes if not n.is_trash]
        return build_file_tree(nodes, None)

    @classmethod
    async def get_breadcrumbs(cls, db: AsyncSession, owner_id: str, folder_id: str) -> List[File]:
        """
        获取从根目录到指定文件夹的路径（含该文件夹本身）
        """
        folder = await cls._get_owned_folder(db, owner_id, folder_id, "Folder not found")

        chain = [folder]
        visited = {folder.id}
        current_parent_id = folder.parent_id
        while current_parent_id and current_parent_id not in visited:
            result = await db.execute(
                select(File).where(
                    and_(
                        File.id == current_parent_id,
                        File.user_id == owner_id
                    )
                )
            )
            parent = result.scalar_one_or_none()
            if not parent:
                break
            chain.append(parent)
            visited.add(parent.id)
            current_parent_id = parent.parent_id

        chain.reverse()
        return chain


def build_file_tree(nodes: List[File], parent_id: Optional[str] = None) -> List[FileTreeNode]:
    """
    构建层级树结构（文件夹在前，文件在后，同类按名称排序）
    """
    current = [n for n in nodes if n.parent_id == parent_id]
    current.sort(key=lambda n: (not n.is_folder, n.name.lower()))

    result = []
    for node in current:
        # 递归获取子节点
        children = build_file_tree(nodes, node.id) if node.is_folder else []
        result.append(
            FileTreeNode(
                id=node.id,
                name=node.name,
                type=node.type,
                parentId=node.parent_id,
                isFolder=node.is_folder,
                isStarred=node.is_starred,
                isTrash=node.is_trash,
                size=node.size,
                fileUrl=node.file_url,
                children=children
            )
        )
    return result
