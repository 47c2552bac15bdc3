"""序号管理 Mixin

为 SQLAlchemy 模型提供序号操作方法，所有操作委托给按模型类缓存的 OrdinalEngine。

使用示例:
    from yorder.orm import CoreModel
    from yorder.orm.ordinal import OrdinalFieldMixin, OrdinalMixin
    
    # 全表一个分组
    class Banner(CoreModel, OrdinalFieldMixin, OrdinalMixin):
        title = mapped_column(String(100))
    
    banner = Banner.create(title="首页横幅")    # order = 当前最大值 + 1
    banner.decrement_order()                     # 上移一位
    banner.increment_order()                     # 下移一位
    
    # 按歌单分组
    class PlaylistItem(CoreModel, OrdinalFieldMixin, OrdinalMixin):
        __ordinal_group_by__ = "playlist_id"
        
        playlist_id = mapped_column(Integer)
        title = mapped_column(String(100))
    
    item.is_highest()                            # 在本歌单中是否排最后
    item.is_highest(group=2)                     # 按歌单 2 的最大序号判断
    PlaylistItem.highest_order(2)                # 歌单 2 的最大序号
"""

from typing import Any, List, Optional, Union

from .engine import OrdinalEngine
from .groups import UNSET
from .registry import get_ordinal_engine


class OrdinalMixin:
    """序号管理 Mixin
    
    字段要求（使用者需定义或使用 OrdinalFieldMixin）:
        - order: int  分组内序号，1..N 连续
    
    可配置属性（子类可覆盖）:
        - __ordinal_field__: 序号字段名，默认取配置 YORDER_ORDER_FIELD_NAME（"order"）
        - __ordinal_group_by__: 分组字段，默认 None（不分组）
            - 字符串: 单字段分组，如 "playlist_id"
            - 列表: 多字段分组，如 ["tenant_id", "playlist_id"]，分组值为元组
    
    创建记录请使用 create()，或通过 activate_ordinal_assignment() 注册创建钩子；
    不要直接修改序号字段。
    
    分组模型上的类方法（lowest_order、get_sorted 等）必须显式传入 group，
    group=None 表示分组字段为 NULL 的分组；不分组的模型可以省略。
    """
    
    # ==================== 配置 ====================
    
    # 序号字段名（子类可覆盖）
    __ordinal_field__: Optional[str] = None
    
    # 分组字段（子类可覆盖）
    __ordinal_group_by__: Union[str, List[str], None] = None
    
    # ==================== 引擎 ====================
    
    @classmethod
    def ordinal_engine(cls) -> OrdinalEngine:
        """当前模型类的序号引擎"""
        return get_ordinal_engine(cls)
    
    @property
    def ordinal_group(self) -> Any:
        """当前记录所在分组的分组值"""
        return self.ordinal_engine().store.group_of(self)
    
    @classmethod
    def _class_group(cls, group: Any) -> Any:
        # 分组模型的类方法必须显式指定分组；传 None 表示分组字段为 NULL 的分组
        if group is not UNSET:
            return group
        fields = cls.ordinal_engine().store.group_key.fields
        if fields:
            raise TypeError(f"{cls.__name__} 按 {fields} 分组，需要显式指定 group")
        return None
    
    # ==================== 边界查询 ====================
    
    @classmethod
    def lowest_order(cls, group: Any = UNSET) -> int:
        """分组内最小序号，空分组返回 0"""
        return cls.ordinal_engine().lowest_order(cls._class_group(group))
    
    @classmethod
    def highest_order(cls, group: Any = UNSET) -> int:
        """分组内最大序号，空分组返回 0"""
        return cls.ordinal_engine().highest_order(cls._class_group(group))
    
    def is_lowest(self, group: Any = UNSET) -> bool:
        """是否排在分组最前，group 只作为查询条件，不会修改记录"""
        return self.ordinal_engine().is_lowest(self, group)
    
    def is_highest(self, group: Any = UNSET) -> bool:
        """是否排在分组最后，group 只作为查询条件，不会修改记录"""
        return self.ordinal_engine().is_highest(self, group)
    
    # ==================== 位置调整 ====================
    
    def decrement_order(self) -> bool:
        """上移一位，已在最前时不做任何事并返回 False"""
        return self.ordinal_engine().decrement_order(self)
    
    def increment_order(self) -> bool:
        """下移一位，已在最后时不做任何事并返回 False"""
        return self.ordinal_engine().increment_order(self)
    
    def move_to(self, position: int) -> bool:
        """移动到指定位置（1..N）"""
        return self.ordinal_engine().move_to(self, position)
    
    def move_to_top(self) -> bool:
        return self.ordinal_engine().move_to_top(self)
    
    def move_to_bottom(self) -> bool:
        return self.ordinal_engine().move_to_bottom(self)
    
    def swap_order(self, other: "OrdinalMixin") -> bool:
        """与同一分组内的另一条记录交换位置"""
        return self.ordinal_engine().swap(self, other)
    
    # ==================== 创建 / 删除 ====================
    
    @classmethod
    def create(cls, **kwargs):
        """创建记录并分配序号
        
        未指定序号时追加到分组末尾；指定序号时插入到该位置，后面的记录依次后移。
        
        使用示例:
            item = PlaylistItem.create(playlist_id=1, title="Song")
            first = PlaylistItem.create(playlist_id=1, title="Intro", order=1)
        """
        return cls.ordinal_engine().insert(cls(**kwargs))
    
    def remove_from_order(self) -> None:
        """删除记录，分组内排在后面的记录依次前移"""
        self.ordinal_engine().remove(self)
    
    # ==================== 查询 / 维护 ====================
    
    @classmethod
    def get_sorted(cls, group: Any = UNSET) -> list:
        """分组内全部记录，按序号升序"""
        return cls.ordinal_engine().get_sorted(cls._class_group(group))
    
    @classmethod
    def check_order_integrity(cls, group: Any = UNSET) -> int:
        """校验分组序号为 1..N，返回记录数；不连续时抛出 InvariantViolationDetected"""
        return cls.ordinal_engine().check_integrity(cls._class_group(group))
    
    @classmethod
    def normalize_order(cls, group: Any = UNSET) -> int:
        """重新编号为 1..N，返回修改的记录数"""
        return cls.ordinal_engine().normalize(cls._class_group(group))


__all__ = [
    "OrdinalMixin",
]
