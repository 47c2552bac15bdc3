"""序号测试辅助工具

提供读取分组序号、断言序号连续的辅助函数
"""

from typing import Any, Dict


def orders_by_title(engine, group: Any) -> Dict[str, int]:
    """分组内 {title: order}
    
    Args:
        engine: OrdinalEngine
        group: 分组值
    """
    return {r.title: r.order for r in engine.get_sorted(group)}


def assert_dense(engine, group: Any, size: int = None) -> None:
    """断言分组序号恰好为 1..N
    
    Args:
        engine: OrdinalEngine
        group: 分组值
        size: 期望的记录数，None 时不检查
    """
    orders = engine.store.list_orders(group)
    assert orders == list(range(1, len(orders) + 1)), f"分组 {group!r} 序号不连续: {orders}"
    if size is not None:
        assert len(orders) == size
