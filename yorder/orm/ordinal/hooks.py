"""创建时自动分配序号

通过 SQLAlchemy Session 的 before_flush 事件，在 flush 开始前为本次新增的记录分配序号，
分配与 INSERT 位于同一事务内：

- 未设置序号时分配为 当前最大值 + 1（同一次 flush 中的多条新记录依次递增）
- 显式指定的序号位于 1..N+1 之间时插入到该位置，原来位于该位置及之后的记录依次后移
- 显式序号越界时抛出 InvalidPositionError，flush 失败

序号字段、分组字段、锁超时与 Model.create() 相同（取自 get_ordinal_engine(model_cls) 的存储）。
读取最大值前获取进程内分组锁并对分组加跨进程锁（PostgreSQL advisory lock / FOR UPDATE），
分组锁保持到 session 的事务结束（提交、回滚或关闭）。

需要显式激活:
    activate_ordinal_assignment(MenuItem)

    session.add(MenuItem(menu_id=1, title="首页"))
    session.commit()                       # order 自动分配
"""

from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import event, func, select, update
from sqlalchemy.orm import Session

from yorder.exceptions import InvalidPositionError
from yorder.log import get_logger

from .registry import get_ordinal_engine
from .stores.orm import ORDER_ASSIGNED_ATTR, SQLAlchemyRecordStore, translate_errors

logger = get_logger("yorder.orm.ordinal")

_active_models: Set[type] = set()

# session.info 中保存本事务已持有的分组锁: {(表名, repr(分组)): 释放函数}
_HELD_LOCKS_KEY = "ordinal_group_locks"


def _registered_model(cls: type) -> Optional[type]:
    for model_cls in _active_models:
        if issubclass(cls, model_cls):
            return model_cls
    return None


def _group_conditions(store: SQLAlchemyRecordStore, group: Any) -> list:
    conditions = []
    for field, value in store.group_key.filters(group).items():
        col = getattr(store.model_cls, field)
        conditions.append(col.is_(None) if value is None else col == value)
    return conditions


def _hold_group_lock(session: Session, store: SQLAlchemyRecordStore, group: Any) -> None:
    held = session.info.setdefault(_HELD_LOCKS_KEY, {})
    key = (store.namespace, repr(group))
    if key in held:
        return
    held[key] = store.locks.acquire(store.namespace, group, store.lock_timeout)
    with translate_errors(group):
        store.lock_group_rows(session, group)


def _release_group_locks(session: Session, transaction) -> None:
    if transaction.parent is not None:
        return
    held = session.info.pop(_HELD_LOCKS_KEY, None)
    for release in (held or {}).values():
        release()


def _assign_group(session: Session, store: SQLAlchemyRecordStore, group: Any, targets: List[Any]) -> None:
    model_cls = store.model_cls
    field_name = store.field_name
    column = store.column
    conditions = _group_conditions(store, group)

    with translate_errors(group):
        stored = session.execute(select(func.max(column)).where(*conditions)).scalar() or 0

    pending: List[Any] = []
    for target in targets:
        highest = stored + len(pending)
        requested = getattr(target, field_name) or 0

        if requested <= 0:
            order = highest + 1
        elif requested > highest + 1:
            raise InvalidPositionError(
                f"新记录的序号必须在 1..{highest + 1} 之间",
                position=requested,
                group=group,
            )
        else:
            order = requested
            if requested <= stored:
                with translate_errors(group):
                    session.execute(
                        update(model_cls.__table__)
                        .where(*conditions, column >= requested)
                        .values({column.name: column + 1})
                    )
                for obj in list(session.identity_map.values()):
                    if isinstance(obj, model_cls) and store.group_key.matches(obj, group):
                        session.expire(obj, [field_name])
            for other in pending:
                current = getattr(other, field_name)
                if current >= requested:
                    setattr(other, field_name, current + 1)

        setattr(target, field_name, order)
        setattr(target, ORDER_ASSIGNED_ATTR, True)
        pending.append(target)
        logger.debug(f"自动分配序号: {model_cls.__name__} {group!r} order={order}")


def _assign_pending(session: Session, flush_context, instances) -> None:
    if not _active_models:
        return

    # (模型类, 分组) -> 本次 flush 中待分配的新记录（保持加入 session 的顺序）
    batches: Dict[Tuple[type, Any], List[Any]] = {}
    for target in list(session.new):
        model_cls = type(target)
        if _registered_model(model_cls) is None or getattr(target, ORDER_ASSIGNED_ATTR, False):
            continue
        store = get_ordinal_engine(model_cls).store
        batches.setdefault((model_cls, store.group_of(target)), []).append(target)

    if not batches:
        return

    # 开启 session 事务，分组锁随它结束而释放
    with translate_errors():
        session.connection()

    # 固定加锁顺序，两个 flush 涉及相同的多个分组时不会交叉等待
    for model_cls, group in sorted(batches, key=repr):
        store = get_ordinal_engine(model_cls).store
        _hold_group_lock(session, store, group)
        _assign_group(session, store, group, batches[(model_cls, group)])


def activate_ordinal_assignment(model_cls: type) -> None:
    """为模型（及其子类）注册创建时序号分配，重复调用无副作用"""
    _active_models.add(model_cls)
    if not event.contains(Session, "before_flush", _assign_pending):
        event.listen(Session, "before_flush", _assign_pending)
    if not event.contains(Session, "after_transaction_end", _release_group_locks):
        event.listen(Session, "after_transaction_end", _release_group_locks)
    logger.debug(f"已激活序号自动分配: {model_cls.__name__}")


def deactivate_ordinal_assignment(model_cls: type) -> None:
    """移除创建时序号分配（已持有的分组锁仍在各自事务结束时释放）"""
    _active_models.discard(model_cls)
    if not _active_models and event.contains(Session, "before_flush", _assign_pending):
        event.remove(Session, "before_flush", _assign_pending)
    logger.debug(f"已移除序号自动分配: {model_cls.__name__}")


def is_ordinal_assignment_active(model_cls: type) -> bool:
    return _registered_model(model_cls) is not None


__all__ = [
    "activate_ordinal_assignment",
    "deactivate_ordinal_assignment",
    "is_ordinal_assignment_active",
]
