"""内存记录存储

基于字典的存储实现，适用于测试和单进程场景。
atomic() 在执行前为整个分组做快照，失败时恢复快照；
同一线程嵌套调用时每一层各自快照。
"""

import itertools
import threading
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

from yorder.exceptions import InvariantViolationDetected
from yorder.log import get_logger

from ..groups import GroupKey
from ..locks import GroupLockRegistry, group_locks
from .base import RecordStore

logger = get_logger("yorder.orm.ordinal")

T = TypeVar("T")


class MemoryRecordStore(RecordStore):
    """内存记录存储
    
    记录可以是任意带 id、序号字段和分组字段的对象；
    id 为 None 的记录在 insert() 时自动分配自增 id。
    
    使用示例:
        store = MemoryRecordStore(group_by="playlist_id")
        engine = OrdinalEngine(store)
        
        engine.insert(Track(title="A", playlist_id=1))
    """
    
    def __init__(
        self,
        group_by: Union[str, List[str], None] = None,
        field_name: str = "order",
        namespace: str = "memory",
        lock_registry: GroupLockRegistry = None,
        lock_timeout: Optional[float] = None,
    ):
        self.group_key = GroupKey(group_by)
        self.field_name = field_name
        self.namespace = namespace
        self.locks = lock_registry or group_locks
        self.lock_timeout = lock_timeout
        
        self._records: Dict[Any, Any] = {}
        self._ids = itertools.count(1)
        self._guard = threading.RLock()
    
    # ==================== 内部方法 ====================
    
    def _members(self, group: Any) -> List[Any]:
        with self._guard:
            return [r for r in self._records.values() if self.group_key.matches(r, group)]
    
    # ==================== 记录访问 ====================
    
    def load_order(self, record: Any) -> Optional[int]:
        if self.record_id(record) not in self._records:
            return None
        return self.read_order(record)
    
    def write_order(self, record: Any, value: int) -> None:
        self.set_order(record, value)
    
    # ==================== 分组查询 ====================
    
    def query_max(self, group: Any) -> int:
        return max((self.read_order(r) for r in self._members(group)), default=0)
    
    def query_min(self, group: Any) -> int:
        return min((self.read_order(r) for r in self._members(group)), default=0)
    
    def count(self, group: Any) -> int:
        return len(self._members(group))
    
    def find_by_group_and_order(self, group: Any, order: int) -> Optional[Any]:
        matches = [r for r in self._members(group) if self.read_order(r) == order]
        if len(matches) > 1:
            raise InvariantViolationDetected(
                f"序号 {order} 上存在 {len(matches)} 条记录",
                group=group,
                orders=self.list_orders(group),
            )
        return matches[0] if matches else None
    
    def list_group(self, group: Any) -> List[Any]:
        return sorted(self._members(group), key=lambda r: (self.read_order(r), self.record_id(r)))
    
    def list_orders(self, group: Any) -> List[int]:
        return sorted(self.read_order(r) for r in self._members(group))
    
    def get(self, record_id: Any) -> Optional[Any]:
        return self._records.get(record_id)
    
    # ==================== 批量更新 ====================
    
    def shift_range(
        self,
        group: Any,
        lower: int,
        upper: Optional[int],
        delta: int,
        excluding_id: Any = None
    ) -> int:
        affected = 0
        for record in self._members(group):
            if excluding_id is not None and self.record_id(record) == excluding_id:
                continue
            order = self.read_order(record)
            if order >= lower and (upper is None or order <= upper):
                self.set_order(record, order + delta)
                affected += 1
        return affected
    
    # ==================== 记录增删 ====================
    
    def insert(self, record: Any) -> Any:
        with self._guard:
            if self.record_id(record) is None:
                record.id = next(self._ids)
            self._records[self.record_id(record)] = record
        return record
    
    def remove(self, record: Any) -> None:
        with self._guard:
            self._records.pop(self.record_id(record), None)
    
    # ==================== 原子操作 ====================
    
    def atomic(self, group: Any, body: Callable[[], T]) -> T:
        # 分组锁可重入；每一层各自快照，内层失败只恢复内层的修改
        with self.locks.lock(self.namespace, group, self.lock_timeout):
            snapshot = {
                self.record_id(r): (r, self.read_order(r)) for r in self._members(group)
            }
            try:
                return body()
            except Exception:
                self._restore(group, snapshot)
                logger.debug(f"原子操作失败，已恢复分组快照: {group!r}")
                raise
    
    def _restore(self, group: Any, snapshot: Dict[Any, tuple]) -> None:
        with self._guard:
            for record in self._members(group):
                if self.record_id(record) not in snapshot:
                    self._records.pop(self.record_id(record), None)
            for record_id, (record, order) in snapshot.items():
                self._records[record_id] = record
                self.set_order(record, order)


__all__ = [
    "MemoryRecordStore",
]
