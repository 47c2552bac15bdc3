"""序号模块

维护分组内连续的 1..N 序号，支持上移/下移、边界查询、创建时分配序号。

导出:
    - OrdinalFieldMixin: 序号字段 Mixin（提供 order 字段）
    - OrdinalMixin: 序号管理 Mixin（模型上的操作方法）
    - OrdinalEngine: 序号引擎
    - RecordStore / SQLAlchemyRecordStore / MemoryRecordStore: 记录存储
    - GroupKey / GroupLockRegistry: 分组键、分组锁
    - activate_ordinal_assignment: 注册创建时序号分配钩子

使用示例:
    from yorder.orm import CoreModel
    from yorder.orm.ordinal import OrdinalFieldMixin, OrdinalMixin
    
    class PlaylistItem(CoreModel, OrdinalFieldMixin, OrdinalMixin):
        __ordinal_group_by__ = "playlist_id"
        
        playlist_id = mapped_column(Integer)
        title = mapped_column(String(100))
    
    a = PlaylistItem.create(playlist_id=1, title="A")   # order=1
    b = PlaylistItem.create(playlist_id=1, title="B")   # order=2
    
    b.decrement_order()     # b.order=1, a.order=2
    a.is_highest()          # True
"""

from .groups import UNSET, GroupKey
from .locks import GroupLockRegistry, group_locks
from .stores import (
    RecordStore,
    MemoryRecordStore,
    SQLAlchemyRecordStore,
    translate_errors,
)
from .engine import OrdinalEngine
from .registry import (
    get_ordering_settings,
    configure_ordering,
    get_ordinal_engine,
    reset_ordinal_engines,
)
from .ordinal_fields import OrdinalFieldMixin
from .ordinal_mixin import OrdinalMixin
from .hooks import (
    activate_ordinal_assignment,
    deactivate_ordinal_assignment,
    is_ordinal_assignment_active,
)

__all__ = [
    "UNSET",
    "GroupKey",
    "GroupLockRegistry",
    "group_locks",
    "RecordStore",
    "MemoryRecordStore",
    "SQLAlchemyRecordStore",
    "translate_errors",
    "OrdinalEngine",
    "get_ordering_settings",
    "configure_ordering",
    "get_ordinal_engine",
    "reset_ordinal_engines",
    "OrdinalFieldMixin",
    "OrdinalMixin",
    "activate_ordinal_assignment",
    "deactivate_ordinal_assignment",
    "is_ordinal_assignment_active",
]
