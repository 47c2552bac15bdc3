"""测试辅助工具"""

from .ordinal_helpers import orders_by_title, assert_dense

__all__ = [
    "orders_by_title",
    "assert_dense",
]
