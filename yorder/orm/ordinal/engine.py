"""序号引擎

维护分组内连续的 1..N 序号：边界查询、上移/下移、创建时分配序号、
删除时压缩，以及移动到指定位置等扩展操作。

引擎本身不保存任何状态，每次调用都从存储重新计算；
所有写操作都在 store.atomic() 中执行，失败时整体撤销，引擎不做重试。
"""

from collections import Counter
from typing import Any, Callable, List

from yorder.exceptions import (
    ErrorCode,
    InvalidPositionError,
    InvariantViolationDetected,
    TransactionConflict,
)
from yorder.log import get_logger

from .groups import UNSET
from .stores.base import RecordStore

logger = get_logger("yorder.orm.ordinal")


class OrdinalEngine:
    """序号引擎
    
    上移（decrement_order）和下移（increment_order）与相邻记录交换序号：
    先把相邻位置上的记录（按 id 排除自身）挪到当前位置，再写入自身的新序号。
    相邻位置上必须恰好有一条记录，否则说明分组序号已损坏，抛出
    InvariantViolationDetected 并撤销整个操作。
    
    使用示例:
        engine = OrdinalEngine(SQLAlchemyRecordStore(MenuItem))
        
        engine.insert(MenuItem(menu_id=1, title="首页"))    # order = 当前最大值 + 1
        engine.decrement_order(item)                        # 上移一位
        engine.is_highest(item)                             # 是否在最后
        engine.is_lowest(item, group=2)                     # 按另一个分组判断
        engine.move_to(item, 1)                             # 移到最前
        engine.remove(item)                                 # 删除并压缩后续序号
    
    Args:
        store: 记录存储
        check_integrity_after_write: 每次写操作后校验分组序号（调试用，有额外查询开销）
    """
    
    def __init__(self, store: RecordStore, check_integrity_after_write: bool = False):
        self.store = store
        self.check_integrity_after_write = check_integrity_after_write
    
    def __repr__(self):
        return f"OrdinalEngine({self.store!r})"
    
    # ==================== 边界查询 ====================
    
    def lowest_order(self, group: Any) -> int:
        """分组内最小序号，空分组返回 0"""
        return self.store.query_min(group)
    
    def highest_order(self, group: Any) -> int:
        """分组内最大序号，空分组返回 0"""
        return self.store.query_max(group)
    
    def is_lowest(self, record: Any, group: Any = UNSET) -> bool:
        """记录是否在分组最前
        
        Args:
            record: 记录（使用内存中的序号）
            group: 显式指定分组，只用于查询过滤，不会修改记录
        """
        lowest = self.lowest_order(self._resolve_group(record, group))
        return lowest > 0 and self.store.read_order(record) == lowest
    
    def is_highest(self, record: Any, group: Any = UNSET) -> bool:
        """记录是否在分组最后，参数同 is_lowest"""
        highest = self.highest_order(self._resolve_group(record, group))
        return highest > 0 and self.store.read_order(record) == highest
    
    # ==================== 上移 / 下移 ====================
    
    def decrement_order(self, record: Any) -> bool:
        """上移一位（序号减 1）
        
        Returns:
            是否发生了交换；已经在最前时返回 False
        """
        if self.is_lowest(record):
            logger.debug(f"已在最前，忽略上移: id={self.store.record_id(record)}")
            return False
        group = self.store.group_of(record)
        return self.store.atomic(group, lambda: self._step(record, group, -1))
    
    def increment_order(self, record: Any) -> bool:
        """下移一位（序号加 1）
        
        Returns:
            是否发生了交换；已经在最后时返回 False
        """
        if self.is_highest(record):
            logger.debug(f"已在最后，忽略下移: id={self.store.record_id(record)}")
            return False
        group = self.store.group_of(record)
        return self.store.atomic(group, lambda: self._step(record, group, 1))
    
    def _step(self, record: Any, group: Any, step: int) -> bool:
        current = self._current_order(record)
        # 持锁后重新判断边界：等锁期间分组可能已经变化
        boundary = self.store.query_min(group) if step < 0 else self.store.query_max(group)
        if current == boundary:
            return False
        
        target = current + step
        record_id = self.store.record_id(record)
        if step < 0:
            affected = self.store.increment_field(group, target, excluding_id=record_id)
        else:
            affected = self.store.decrement_field(group, target, excluding_id=record_id)
        if affected != 1:
            raise InvariantViolationDetected(
                f"位置 {target} 上应有且仅有 1 条记录，实际 {affected} 条",
                group=group,
                orders=self.store.list_orders(group),
            )
        
        self.store.write_order(record, target)
        self._after_write(group)
        logger.debug(f"交换序号: {group!r} id={record_id} {current} -> {target}")
        return True
    
    # ==================== 创建 / 删除 ====================
    
    def assign_order(self, record: Any) -> int:
        """插入前分配序号
        
        序号未设置（0 / None）时分配为 当前最大值 + 1；调用方显式指定的序号保持不变，
        但必须位于 1..最大值+1 之间。只修改内存中的记录，不会移动其他记录。
        需要并发安全时请使用 insert()。
        
        Raises:
            InvalidPositionError: 显式指定的序号越界
        """
        group = self.store.group_of(record)
        order = self._new_order(record, group, self.highest_order(group))
        self.store.set_order(record, order)
        return order
    
    def insert(self, record: Any) -> Any:
        """在分组锁内分配序号并持久化新记录
        
        显式指定序号时插入到该位置，原来位于该位置及之后的记录依次后移。
        """
        group = self.store.group_of(record)
        
        def body():
            highest = self.store.query_max(group)
            order = self._new_order(record, group, highest)
            if order <= highest:
                self.store.shift_range(group, order, None, 1)
            self.store.set_order(record, order)
            self.store.insert(record)
            self._after_write(group)
            logger.debug(f"插入记录: {group!r} id={self.store.record_id(record)} order={order}")
            return record
        
        return self.store.atomic(group, body)
    
    def remove(self, record: Any) -> None:
        """删除记录，并把分组内排在它之后的记录依次前移"""
        group = self.store.group_of(record)
        
        def body():
            current = self._current_order(record)
            highest = self.store.query_max(group)
            self.store.remove(record)
            shifted = self.store.shift_range(group, current + 1, None, -1)
            if shifted != highest - current:
                raise InvariantViolationDetected(
                    f"删除位置 {current} 后应前移 {highest - current} 条记录，实际 {shifted} 条",
                    group=group,
                    orders=self.store.list_orders(group),
                )
            self._after_write(group)
            logger.debug(f"删除记录: {group!r} order={current}，后续 {shifted} 条前移")
        
        self.store.atomic(group, body)
    
    # ==================== 移动到指定位置 ====================
    
    def move_to(self, record: Any, position: int) -> bool:
        """移动到分组内指定位置（1..N），中间的记录依次顺移
        
        Returns:
            位置是否发生变化
        
        Raises:
            InvalidPositionError: 目标位置越界
        """
        return self._move(record, lambda group: position)
    
    def move_to_top(self, record: Any) -> bool:
        """移到分组最前"""
        if self.is_lowest(record):
            return False
        return self._move(record, lambda group: 1)
    
    def move_to_bottom(self, record: Any) -> bool:
        """移到分组最后"""
        if self.is_highest(record):
            return False
        return self._move(record, self.store.count)
    
    def _move(self, record: Any, resolve_position: Callable[[Any], int]) -> bool:
        group = self.store.group_of(record)
        
        def body():
            current = self._current_order(record)
            size = self.store.count(group)
            position = resolve_position(group)
            if not isinstance(position, int) or not 1 <= position <= size:
                raise InvalidPositionError(
                    f"目标位置必须在 1..{size} 之间",
                    position=position,
                    size=size,
                )
            if position == current:
                return False
            
            record_id = self.store.record_id(record)
            if position < current:
                affected = self.store.shift_range(group, position, current - 1, 1, record_id)
            else:
                affected = self.store.shift_range(group, current + 1, position, -1, record_id)
            if affected != abs(position - current):
                raise InvariantViolationDetected(
                    f"位置 {min(position, current)}..{max(position, current)} 之间的记录数与序号不符",
                    group=group,
                    orders=self.store.list_orders(group),
                )
            
            self.store.write_order(record, position)
            self._after_write(group)
            logger.debug(f"移动记录: {group!r} id={record_id} {current} -> {position}")
            return True
        
        return self.store.atomic(group, body)
    
    def swap(self, first: Any, second: Any) -> bool:
        """交换同一分组内两条记录的序号
        
        Raises:
            InvalidPositionError: 两条记录不在同一分组（code=GROUP_MISMATCH）
        """
        group = self.store.group_of(first)
        other_group = self.store.group_of(second)
        if group != other_group:
            raise InvalidPositionError(
                "只能交换同一分组内的记录",
                code=ErrorCode.GROUP_MISMATCH,
                groups=[group, other_group],
            )
        if self.store.record_id(first) == self.store.record_id(second):
            return False
        
        def body():
            first_order = self._current_order(first)
            second_order = self._current_order(second)
            self.store.set_order(first, second_order)
            self.store.write_order(second, first_order)
            self._after_write(group)
            logger.debug(f"交换记录: {group!r} {first_order} <-> {second_order}")
            return True
        
        return self.store.atomic(group, body)
    
    # ==================== 完整性 ====================
    
    def check_integrity(self, group: Any) -> int:
        """校验分组序号是否为连续的 1..N
        
        Returns:
            分组内记录数
        
        Raises:
            InvariantViolationDetected: 存在断号或重号
        """
        orders = self.store.list_orders(group)
        expected = list(range(1, len(orders) + 1))
        if orders != expected:
            duplicates = sorted(o for o, n in Counter(orders).items() if n > 1)
            missing = sorted(set(expected) - set(orders))
            raise InvariantViolationDetected(
                f"分组 {group!r} 的序号不连续",
                details=[f"重复: {duplicates}", f"缺失: {missing}"],
                group=group,
                orders=orders,
            )
        return len(orders)
    
    def normalize(self, group: Any) -> int:
        """按 (序号, id) 的现有顺序把分组重新编号为 1..N
        
        管理操作，引擎不会自动调用。
        
        Returns:
            被修改的记录数
        """
        def body():
            changed = 0
            for position, record in enumerate(self.store.list_group(group), 1):
                if self.store.read_order(record) != position:
                    self.store.write_order(record, position)
                    changed += 1
            return changed
        
        changed = self.store.atomic(group, body)
        logger.info(f"分组 {group!r} 重新编号完成，修改 {changed} 条记录")
        return changed
    
    def get_sorted(self, group: Any) -> List[Any]:
        """分组内全部记录，按序号升序"""
        return self.store.list_group(group)
    
    # ==================== 内部方法 ====================
    
    def _resolve_group(self, record: Any, group: Any) -> Any:
        return self.store.group_of(record) if group is UNSET else group
    
    def _new_order(self, record: Any, group: Any, highest: int) -> int:
        requested = self.store.read_order(record)
        if requested <= 0:
            return highest + 1
        if requested > highest + 1:
            raise InvalidPositionError(
                f"新记录的序号必须在 1..{highest + 1} 之间",
                position=requested,
                group=group,
            )
        return requested
    
    def _current_order(self, record: Any) -> int:
        """校验内存中的序号与存储一致，返回当前序号"""
        persisted = self.store.load_order(record)
        if persisted is None:
            raise InvalidPositionError(
                "记录尚未持久化，无法调整位置",
                record_id=self.store.record_id(record),
            )
        in_memory = self.store.read_order(record)
        if persisted != in_memory:
            raise TransactionConflict(
                "记录序号已被其他操作修改，请刷新后重试",
                code=ErrorCode.VERSION_CONFLICT,
                record_id=self.store.record_id(record),
                expected=in_memory,
                actual=persisted,
            )
        return persisted
    
    def _after_write(self, group: Any) -> None:
        if self.check_integrity_after_write:
            self.check_integrity(group)


__all__ = [
    "OrdinalEngine",
]
