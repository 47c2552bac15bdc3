"""记录存储抽象基类

定义序号引擎依赖的存储接口。引擎只通过这些方法读写记录，
存储负责分组过滤、批量更新和原子操作。
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, TypeVar

from ..groups import GroupKey

T = TypeVar("T")


class RecordStore(ABC):
    """记录存储抽象基类
    
    约定:
        - 所有查询都按分组过滤，分组值的含义见 GroupKey
        - 空分组的最大/最小序号为 0
        - 批量更新返回受影响的行数，由引擎校验
        - atomic() 内的所有写入要么全部生效，要么全部撤销，
          且同一分组的 atomic() 串行执行
    """
    
    group_key: GroupKey
    field_name: str = "order"
    
    # ==================== 记录访问 ====================
    
    def group_of(self, record: Any) -> Any:
        """记录当前（内存中）的分组值"""
        return self.group_key.of(record)
    
    def record_id(self, record: Any) -> Any:
        """记录标识"""
        return record.id
    
    def read_order(self, record: Any) -> int:
        """读取记录内存中的序号（可能已过期，调用方负责刷新）"""
        return getattr(record, self.field_name) or 0
    
    def set_order(self, record: Any, value: int) -> None:
        """只修改内存中的序号，不写存储"""
        setattr(record, self.field_name, value)
    
    @abstractmethod
    def load_order(self, record: Any) -> Optional[int]:
        """从存储读取记录已持久化的序号
        
        Returns:
            序号，记录尚未持久化时返回 None
        """
        pass
    
    @abstractmethod
    def write_order(self, record: Any, value: int) -> None:
        """修改记录序号并写入存储"""
        pass
    
    # ==================== 分组查询 ====================
    
    @abstractmethod
    def query_max(self, group: Any) -> int:
        """分组内最大序号，空分组返回 0"""
        pass
    
    @abstractmethod
    def query_min(self, group: Any) -> int:
        """分组内最小序号，空分组返回 0"""
        pass
    
    @abstractmethod
    def count(self, group: Any) -> int:
        """分组内记录数"""
        pass
    
    @abstractmethod
    def find_by_group_and_order(self, group: Any, order: int) -> Optional[Any]:
        """查找分组内指定序号的记录
        
        Raises:
            InvariantViolationDetected: 同一序号上存在多条记录
        """
        pass
    
    @abstractmethod
    def list_group(self, group: Any) -> List[Any]:
        """分组内全部记录，按 (序号, id) 升序"""
        pass
    
    @abstractmethod
    def list_orders(self, group: Any) -> List[int]:
        """分组内全部序号，升序"""
        pass
    
    # ==================== 批量更新 ====================
    
    @abstractmethod
    def shift_range(
        self,
        group: Any,
        lower: int,
        upper: Optional[int],
        delta: int,
        excluding_id: Any = None
    ) -> int:
        """把分组内序号位于 [lower, upper] 的记录统一加上 delta
        
        Args:
            group: 分组值
            lower: 下界（含）
            upper: 上界（含），None 表示不设上界
            delta: 增量，可以为负
            excluding_id: 排除的记录 id
        
        Returns:
            受影响的行数
        """
        pass
    
    def increment_field(self, group: Any, order_equals: int, excluding_id: Any = None) -> int:
        """分组内序号等于 order_equals 的记录（排除 excluding_id）序号加 1"""
        return self.shift_range(group, order_equals, order_equals, 1, excluding_id)
    
    def decrement_field(self, group: Any, order_equals: int, excluding_id: Any = None) -> int:
        """分组内序号等于 order_equals 的记录（排除 excluding_id）序号减 1"""
        return self.shift_range(group, order_equals, order_equals, -1, excluding_id)
    
    # ==================== 记录增删 ====================
    
    @abstractmethod
    def insert(self, record: Any) -> Any:
        """持久化新记录（序号已由引擎分配）"""
        pass
    
    @abstractmethod
    def remove(self, record: Any) -> None:
        """删除记录"""
        pass
    
    # ==================== 原子操作 ====================
    
    @abstractmethod
    def atomic(self, group: Any, body: Callable[[], T]) -> T:
        """在分组锁和事务内执行 body
        
        body 抛出的异常原样向上传播，此前的写入全部撤销。
        """
        pass


__all__ = [
    "RecordStore",
]
