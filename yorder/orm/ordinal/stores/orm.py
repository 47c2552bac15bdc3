"""SQLAlchemy 记录存储

基于 SQLAlchemy ORM 的存储实现：

- 分组内的批量位移使用单条 UPDATE 语句，并同步 session 中已加载的对象的序号
- atomic() 先获取进程内分组锁，再通过事务管理器执行（REQUIRED 传播）：
  已有活跃事务时加入外层事务，分组锁保持到外层事务结束；
  加入外层事务时 body 在保存点内执行，失败只回滚 body 自身的写入；
  否则开启新事务并在 body 成功后提交
- 跨进程互斥：PostgreSQL 使用事务级 advisory lock，
  其他支持行锁的数据库对分组行执行 SELECT ... FOR UPDATE，
  SQLite 依赖数据库写锁
- 数据库异常转换为 StoreUnavailable / TransactionConflict
"""

import zlib
from contextlib import contextmanager
from typing import Any, Callable, List, Optional, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from yorder.exceptions import (
    ErrorCode,
    InvariantViolationDetected,
    OrdinalError,
    StoreUnavailable,
    TransactionConflict,
)
from yorder.log import get_logger

from ...transaction import TransactionManager, transaction_manager
from ..groups import GroupKey
from ..locks import GroupLockRegistry, group_locks
from .base import RecordStore

logger = get_logger("yorder.orm.ordinal")

T = TypeVar("T")

# 标记记录的序号已在分组锁内分配，before_flush 钩子据此跳过
ORDER_ASSIGNED_ATTR = "_ordinal_assigned"

# OperationalError 中表示锁竞争（而不是连接失败）的关键字
_LOCK_ERROR_MARKERS = (
    "database is locked",
    "deadlock",
    "lock wait timeout",
    "could not obtain lock",
    "could not serialize",
    "lock timeout",
)


def _is_lock_error(error: DBAPIError) -> bool:
    message = str(error.orig if error.orig is not None else error).lower()
    return any(marker in message for marker in _LOCK_ERROR_MARKERS)


@contextmanager
def translate_errors(group: Any = None):
    """把 SQLAlchemy 异常转换为序号引擎异常
    
    - 锁竞争、唯一约束、版本号冲突 → TransactionConflict
    - 连接失败等其他 OperationalError / 连接失效 → StoreUnavailable
    """
    try:
        yield
    except OrdinalError:
        raise
    except StaleDataError as e:
        raise TransactionConflict(
            "记录已被其他事务修改", code=ErrorCode.VERSION_CONFLICT, group=group
        ) from e
    except IntegrityError as e:
        raise TransactionConflict(f"违反约束: {e.orig}", group=group) from e
    except OperationalError as e:
        if _is_lock_error(e):
            raise TransactionConflict(f"锁冲突: {e.orig}", group=group) from e
        raise StoreUnavailable(f"数据库不可用: {e.orig}", group=group) from e
    except DBAPIError as e:
        if e.connection_invalidated:
            raise StoreUnavailable(f"数据库连接已失效: {e.orig}", group=group) from e
        raise


class SQLAlchemyRecordStore(RecordStore):
    """SQLAlchemy 记录存储
    
    模型配置:
        __ordinal_field__: 序号字段名，默认 "order"
        __ordinal_group_by__: 分组字段，None / 字段名 / 字段名列表
    
    使用示例:
        store = SQLAlchemyRecordStore(MenuItem)
        store.query_max(3)                 # menu_id=3 分组的最大序号
        
        # 指定 session 来源
        store = SQLAlchemyRecordStore(MenuItem, session_factory=lambda: session)
    """
    
    def __init__(
        self,
        model_cls: type,
        session_factory: Callable[[], Session] = None,
        field_name: str = None,
        lock_registry: GroupLockRegistry = None,
        lock_timeout: Optional[float] = None,
        manager: TransactionManager = None,
    ):
        self.model_cls = model_cls
        self.field_name = field_name or getattr(model_cls, "__ordinal_field__", None) or "order"
        self.group_key = GroupKey(getattr(model_cls, "__ordinal_group_by__", None))
        self.session_factory = session_factory
        self.locks = lock_registry or group_locks
        self.lock_timeout = lock_timeout
        self.manager = manager or transaction_manager
    
    def __repr__(self):
        return f"SQLAlchemyRecordStore({self.model_cls.__name__}, group_by={self.group_key.fields})"
    
    # ==================== 内部方法 ====================
    
    @property
    def namespace(self) -> str:
        return self.model_cls.__tablename__
    
    @property
    def session(self) -> Session:
        """当前使用的 session：活跃事务的 session > session_factory > 模型 query.session"""
        current = self.manager.current_transaction
        if current is not None and current.is_active:
            return current.session
        if self.session_factory is not None:
            return self.session_factory()
        query = getattr(self.model_cls, "query", None)
        if query is None:
            raise StoreUnavailable(
                f"{self.model_cls.__name__} 未绑定 session，请先调用 init_database() 或传入 session_factory"
            )
        return query.session
    
    @property
    def column(self):
        return getattr(self.model_cls, self.field_name)
    
    def _where_group(self, stmt, group: Any):
        for field, value in self.group_key.filters(group).items():
            col = getattr(self.model_cls, field)
            stmt = stmt.where(col.is_(None) if value is None else col == value)
        return stmt
    
    def _scalar(self, stmt, group: Any = None):
        with translate_errors(group):
            return self.session.execute(stmt).scalar()
    
    # ==================== 记录访问 ====================
    
    def load_order(self, record: Any) -> Optional[int]:
        record_id = self.record_id(record)
        if record_id is None:
            return None
        stmt = select(self.column).where(self.model_cls.id == record_id)
        with translate_errors():
            return self.session.execute(stmt).scalar_one_or_none()
    
    def write_order(self, record: Any, value: int) -> None:
        self.set_order(record, value)
        with translate_errors(self.group_of(record)):
            self.session.flush()
    
    # ==================== 分组查询 ====================
    
    def query_max(self, group: Any) -> int:
        return self._scalar(self._where_group(select(func.max(self.column)), group), group) or 0
    
    def query_min(self, group: Any) -> int:
        return self._scalar(self._where_group(select(func.min(self.column)), group), group) or 0
    
    def count(self, group: Any) -> int:
        stmt = self._where_group(select(func.count()).select_from(self.model_cls), group)
        return self._scalar(stmt, group) or 0
    
    def find_by_group_and_order(self, group: Any, order: int) -> Optional[Any]:
        stmt = self._where_group(select(self.model_cls), group).where(self.column == order)
        with translate_errors(group):
            matches = self.session.execute(stmt.limit(2)).scalars().all()
        if len(matches) > 1:
            raise InvariantViolationDetected(
                f"序号 {order} 上存在多条记录",
                group=group,
                orders=self.list_orders(group),
            )
        return matches[0] if matches else None
    
    def list_group(self, group: Any) -> List[Any]:
        stmt = self._where_group(select(self.model_cls), group).order_by(
            self.column, self.model_cls.id
        )
        with translate_errors(group):
            return list(self.session.execute(stmt).scalars().all())
    
    def list_orders(self, group: Any) -> List[int]:
        stmt = self._where_group(select(self.column), group).order_by(self.column)
        with translate_errors(group):
            return list(self.session.execute(stmt).scalars().all())
    
    # ==================== 批量更新 ====================
    
    def shift_range(
        self,
        group: Any,
        lower: int,
        upper: Optional[int],
        delta: int,
        excluding_id: Any = None
    ) -> int:
        stmt = self._where_group(update(self.model_cls), group).where(self.column >= lower)
        if upper is not None:
            stmt = stmt.where(self.column <= upper)
        if excluding_id is not None:
            stmt = stmt.where(self.model_cls.id != excluding_id)
        # 默认 synchronize_session="auto"：在 Python 中同步 session 里已加载的对象
        stmt = stmt.values({self.field_name: self.column + delta})
        with translate_errors(group):
            result = self.session.execute(stmt)
        return result.rowcount
    
    # ==================== 记录增删 ====================
    
    def insert(self, record: Any) -> Any:
        session = self.session
        setattr(record, ORDER_ASSIGNED_ATTR, True)
        with translate_errors(self.group_of(record)):
            session.add(record)
            session.flush()
        return record
    
    def remove(self, record: Any) -> None:
        session = self.session
        with translate_errors(self.group_of(record)):
            session.delete(record)
            session.flush()
    
    # ==================== 原子操作 ====================
    
    def lock_group_rows(self, session: Session, group: Any) -> None:
        """在 session 的当前事务内对分组加跨进程锁（SQLite 依赖数据库写锁，不做处理）"""
        dialect = session.get_bind().dialect.name
        if dialect == "sqlite":
            return
        if dialect == "postgresql":
            key = zlib.crc32(f"{self.namespace}:{group!r}".encode("utf-8"))
            session.execute(select(func.pg_advisory_xact_lock(key)))
            return
        stmt = self._where_group(select(self.model_cls.id), group).with_for_update()
        session.execute(stmt).all()
    
    def _ensure_begun(self, session: Session) -> None:
        # pysqlite 只在 DML 前隐式 BEGIN，此时 SAVEPOINT 会成为最外层事务，RELEASE 即提交
        connection = session.connection()
        if connection.dialect.name != "sqlite":
            return
        dbapi_connection = connection.connection.dbapi_connection
        if not getattr(dbapi_connection, "in_transaction", True):
            connection.exec_driver_sql("BEGIN")
    
    def _expire_orders(self, session: Session) -> None:
        # 批量 UPDATE 同步到内存的序号不会随保存点回滚而失效
        for obj in list(session.identity_map.values()):
            if isinstance(obj, self.model_cls):
                session.expire(obj, [self.field_name])
    
    def atomic(self, group: Any, body: Callable[[], T]) -> T:
        release = self.locks.acquire(self.namespace, group, self.lock_timeout)
        try:
            session = self.session
            with translate_errors(group):
                # 先探测连接，连接失败直接报 StoreUnavailable
                session.connection()
        except BaseException:
            release()
            raise
        
        outer = self.manager.current_transaction
        joining = outer is not None and outer.is_active
        
        with translate_errors(group):
            with self.manager.transaction(session=session) as tx:
                # 加入外层事务时 tx 是外层上下文，锁保持到外层事务结束
                tx.on_finish(lambda ctx: release())
                self.lock_group_rows(session, group)
                if not joining:
                    return body()
                # body 失败只回滚到保存点，外层事务提交时分组仍是 1..N
                self._ensure_begun(session)
                try:
                    with tx.savepoint():
                        return body()
                except Exception:
                    self._expire_orders(session)
                    raise


__all__ = [
    "ORDER_ASSIGNED_ATTR",
    "SQLAlchemyRecordStore",
    "translate_errors",
]
