"""序号字段定义

提供标准的序号字段定义 Mixin，简化模型定义。

使用示例:
    from yorder.orm import CoreModel
    from yorder.orm.ordinal import OrdinalFieldMixin, OrdinalMixin
    
    class MenuItem(CoreModel, OrdinalFieldMixin, OrdinalMixin):
        __ordinal_group_by__ = "menu_id"
        
        menu_id = mapped_column(Integer)
        title = mapped_column(String(100))
"""

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column


class OrdinalFieldMixin:
    """序号字段 Mixin
    
    字段说明:
        - order: 分组内的位置，从 1 开始连续编号；0 表示尚未分配
    
    order 是 SQL 关键字，SQLAlchemy 会自动加引号，直接使用即可:
        MenuItem.query.order_by(MenuItem.order).all()
    """
    
    order: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        index=True,
        comment="分组内序号"
    )


__all__ = [
    "OrdinalFieldMixin",
]
