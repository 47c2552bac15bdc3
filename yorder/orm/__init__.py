"""ORM 模块

导出:
    - Base / IdModel / CoreModel: 模型基类
    - init_database / db_session_scope / ...: 数据库会话管理
    - transaction_manager / TransactionPropagation / ...: 事务管理
    - OrdinalFieldMixin / OrdinalMixin / OrdinalEngine / ...: 序号管理

使用示例:
    from yorder.orm import CoreModel, OrdinalFieldMixin, OrdinalMixin, init_database
    
    class MenuItem(CoreModel, OrdinalFieldMixin, OrdinalMixin):
        __ordinal_group_by__ = "menu_id"
        
        menu_id = mapped_column(Integer)
        title = mapped_column(String(100))
    
    engine, session_scope = init_database("sqlite:///./app.db")
    CoreModel.metadata.create_all(engine)
"""

from .id_model import Base, IdModel
from .core_model import CoreModel
from .db_session import (
    db_manager,
    init_database,
    get_engine,
    db_session_scope,
    on_request_end,
)
from .transaction import (
    TransactionState,
    TransactionError,
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
    PropagationError,
    TransactionPropagation,
    TransactionContext,
    TransactionManager,
    transaction_manager,
    get_current_transaction,
    transaction_with_retry,
)
from .ordinal import (
    UNSET,
    GroupKey,
    GroupLockRegistry,
    group_locks,
    RecordStore,
    MemoryRecordStore,
    SQLAlchemyRecordStore,
    OrdinalEngine,
    configure_ordering,
    get_ordinal_engine,
    reset_ordinal_engines,
    OrdinalFieldMixin,
    OrdinalMixin,
    activate_ordinal_assignment,
    deactivate_ordinal_assignment,
)

__all__ = [
    # 模型
    "Base",
    "IdModel",
    "CoreModel",
    # 会话
    "db_manager",
    "init_database",
    "get_engine",
    "db_session_scope",
    "on_request_end",
    # 事务
    "TransactionState",
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAlreadyCommittedError",
    "PropagationError",
    "TransactionPropagation",
    "TransactionContext",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",
    "transaction_with_retry",
    # 序号
    "UNSET",
    "GroupKey",
    "GroupLockRegistry",
    "group_locks",
    "RecordStore",
    "MemoryRecordStore",
    "SQLAlchemyRecordStore",
    "OrdinalEngine",
    "configure_ordering",
    "get_ordinal_engine",
    "reset_ordinal_engines",
    "OrdinalFieldMixin",
    "OrdinalMixin",
    "activate_ordinal_assignment",
    "deactivate_ordinal_assignment",
]
