"""
媒体存储的尽力清理

删除记录前先尝试删除媒体存储中的对象；这里的任何失败都只记录日志，
不会影响随后的数据库删除。
"""
import asyncio
import logging
from typing import Iterable, List, Optional

from dropx.models.file import File
from dropx.services.media_store import MediaStore
from dropx.utils.media import derive_media_identifier

logger = logging.getLogger(__name__)


async def remove_media_object(store: MediaStore, node: File) -> bool:
    """
    删除单个文件在媒体存储中的对象
    
    先按推导出的名称查找，找到则用存储自身的对象ID删除，失败时再用推导出的标识删除；
    查不到或查找失败时直接用推导出的标识删除。
    
    Returns:
        bool: 是否成功删除（文件夹或无法推导标识时返回False）
    """
    if node.is_folder:
        return False
    
    identifier = derive_media_identifier(node.file_url, node.path)
    if not identifier:
        logger.warning("No media identifier for file %s, skipping storage cleanup", node.id)
        return False
    
    try:
        try:
            found = await store.find_by_name(identifier)
        except Exception as e:
            logger.warning("Media lookup for %s failed, deleting directly: %s", identifier, e)
            found = None
        
        if found is None:
            await store.delete(identifier)
            return True

        try:
            await store.delete(found.file_id)
        except Exception as e:
            # 按存储ID删除失败时再用推导出的标识直接删除一次
            logger.warning("Deleting media object %s failed, retrying with %s: %s", found.file_id, identifier, e)
            await store.delete(identifier)
        return True
    except Exception:
        logger.exception("Failed to delete file %s from media storage", node.id)
        return False


async def remove_media_objects(
    store: MediaStore,
    nodes: Iterable[File],
    concurrency: Optional[int] = None,
) -> List[bool]:
    """
    并发清理多个文件，所有尝试结束后才返回
    
    Args:
        store: 媒体存储
        nodes: 待清理的节点（文件夹会被跳过）
        concurrency: 最大并发数，None 表示不限制
    """
    files = [node for node in nodes if not node.is_folder]
    if not files:
        return []
    
    semaphore = asyncio.Semaphore(concurrency) if concurrency else None
    
    async def _remove(node: File) -> bool:
        if semaphore is None:
            return await remove_media_object(store, node)
        async with semaphore:
            return await remove_media_object(store, node)
    
    results = await asyncio.gather(*(_remove(node) for node in files), return_exceptions=True)
    
    outcome = []
    for node, result in zip(files, results):
        if isinstance(result, BaseException):
            logger.error("Media cleanup for file %s raised: %r", node.id, result)
            outcome.append(False)
        else:
            outcome.append(result)
    
    removed = sum(outcome)
    if removed < len(files):
        logger.warning("Media cleanup removed %d of %d objects", removed, len(files))
    return outcome
