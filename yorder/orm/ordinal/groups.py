"""分组键

把模型的分组配置（__ordinal_group_by__）和分组值互相转换：

- None       → 不分组，整张表是一个分组，分组值为 None
- "menu_id"  → 单字段分组，分组值就是字段值
- ["a", "b"] → 多字段分组，分组值是按字段顺序组成的元组
"""

from typing import Any, Dict, List, Union


class _Unset:
    """未传参标记（分组值本身可以是 None）"""
    
    def __repr__(self):
        return "UNSET"
    
    def __bool__(self):
        return False


UNSET = _Unset()


class GroupKey:
    """分组键
    
    使用示例:
        key = GroupKey(["category_id", "status"])
        key.of(product)                    # -> (3, "active")
        key.filters((3, "active"))         # -> {"category_id": 3, "status": "active"}
    """
    
    def __init__(self, group_by: Union[str, List[str], None] = None):
        if not group_by:
            self.fields: List[str] = []
        elif isinstance(group_by, str):
            self.fields = [group_by]
        else:
            self.fields = list(group_by)
    
    @property
    def is_composite(self) -> bool:
        return len(self.fields) > 1
    
    def of(self, record: Any) -> Any:
        """读取记录当前（内存中）的分组值"""
        if not self.fields:
            return None
        if not self.is_composite:
            return getattr(record, self.fields[0])
        return tuple(getattr(record, field) for field in self.fields)
    
    def filters(self, group: Any) -> Dict[str, Any]:
        """把分组值转换为 {字段: 值} 的过滤条件
        
        Raises:
            ValueError: 多字段分组时分组值不是等长的元组/列表
        """
        if not self.fields:
            return {}
        if not self.is_composite:
            return {self.fields[0]: group}
        if not isinstance(group, (tuple, list)) or len(group) != len(self.fields):
            raise ValueError(
                f"分组字段为 {self.fields}，分组值必须是长度为 {len(self.fields)} 的元组，实际为 {group!r}"
            )
        return dict(zip(self.fields, group))
    
    def matches(self, record: Any, group: Any) -> bool:
        """记录是否属于指定分组"""
        return self.of(record) == (tuple(group) if self.is_composite else group)
    
    def __repr__(self):
        return f"GroupKey({self.fields!r})"


__all__ = [
    "UNSET",
    "GroupKey",
]
