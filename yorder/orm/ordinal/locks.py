"""分组锁

进程内的分组锁注册表：每个 (命名空间, 分组) 一把可重入锁，按需创建。

- 不同分组的锁互不阻塞，同一分组的操作串行执行
- 可重入：同一线程在持有锁时再次进入（例如外层事务中连续调用多个引擎操作）不会死锁
- 等待超时抛出 TransactionConflict(code=LOCK_TIMEOUT)

跨进程的互斥由存储自身保证（行锁、advisory lock、SQLite 写锁）。
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from yorder.exceptions import ErrorCode, TransactionConflict
from yorder.log import get_logger

logger = get_logger("yorder.orm.ordinal")


def _lock_key(namespace: str, group: Any) -> Tuple[str, Hashable]:
    try:
        hash(group)
    except TypeError:
        group = repr(group)
    return namespace, group


class GroupLockRegistry:
    """分组锁注册表
    
    使用示例:
        registry = GroupLockRegistry()
        
        with registry.lock("menu_item", 3, timeout=5):
            ...
        
        # 需要把释放时机交给别处（如外层事务结束）时
        release = registry.acquire("menu_item", 3)
        tx.on_finish(lambda ctx: release())
    """
    
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, Hashable], threading.RLock] = {}
    
    def get(self, namespace: str, group: Any) -> threading.RLock:
        """获取（必要时创建）分组对应的锁"""
        key = _lock_key(namespace, group)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock
    
    def acquire(
        self,
        namespace: str,
        group: Any,
        timeout: Optional[float] = None
    ) -> Callable[[], None]:
        """获取分组锁，返回释放函数
        
        Args:
            namespace: 命名空间（一般是表名）
            group: 分组值
            timeout: 等待秒数，None 表示一直等待
        
        Raises:
            TransactionConflict: 等待超时
        """
        lock = self.get(namespace, group)
        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            logger.warning(f"等待分组锁超时: {namespace}[{group!r}] (timeout={timeout}s)")
            raise TransactionConflict(
                f"等待分组锁超时: {namespace}[{group!r}]",
                code=ErrorCode.LOCK_TIMEOUT,
                group=group,
                timeout=timeout,
            )
        return lock.release
    
    @contextmanager
    def lock(self, namespace: str, group: Any, timeout: Optional[float] = None):
        """持有分组锁的上下文管理器"""
        release = self.acquire(namespace, group, timeout)
        try:
            yield
        finally:
            release()
    
    def clear(self) -> None:
        """清空注册表（仅用于测试，调用时不能有线程持有锁）"""
        with self._guard:
            self._locks.clear()
    
    def __len__(self) -> int:
        return len(self._locks)


# 全局默认注册表
group_locks = GroupLockRegistry()


__all__ = [
    "GroupLockRegistry",
    "group_locks",
]
