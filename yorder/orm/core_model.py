"""
ORM基础模型

提供自动表名、时间戳、乐观锁版本号和常用的 CRUD 操作
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, TYPE_CHECKING

from sqlalchemy import Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, declared_attr, Session, Query

if TYPE_CHECKING:
    from typing_extensions import Self

from yorder.log import get_logger
from yorder.utils import to_snake_case

from .id_model import IdModel


logger = get_logger("orm.transaction")


class CoreModel(IdModel):
    """ORM基础模型类
    
    继承自 IdModel，提供功能：
    - 自动表名生成（驼峰转下划线）
    - 创建/更新时间戳
    - 乐观锁版本号（ver），并发修改同一条记录时 flush 抛出 StaleDataError
    - 常用 CRUD 操作方法
    - 事务上下文中的提交抑制
    
    使用示例:
        from yorder.orm import CoreModel, init_database
        
        init_database("sqlite:///./app.db")
        
        class MenuItem(CoreModel):
            title: Mapped[str] = mapped_column(String(100))
        
        item = MenuItem(title="首页")
        item.save(commit=True)
    """
    __abstract__ = True
    
    # 注意：query 属性需要在 init_database 后通过 scoped_session.query_property() 设置
    if TYPE_CHECKING:
        query: ClassVar[Query[Self]]
    
    query = None
    
    @declared_attr.directive
    def __tablename__(cls) -> str:
        """驼峰命名转下划线"""
        name = cls.__name__
        if '_' in name:
            raise ValueError(f'{name}字符中包含下划线，无法转换')
        return to_snake_case(name)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        comment="创建时间"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=True,
        onupdate=func.now(),
        comment="更新时间"
    )
    
    # 版本控制字段
    ver: Mapped[int] = mapped_column(Integer, default=1, nullable=False, comment="版本号")
    
    # 系统字段列表（构造时自动忽略这些字段）
    _system_fields: ClassVar[set] = {'id', 'created_at', 'updated_at', 'ver'}
    
    __mapper_args__ = {"version_id_col": ver}
    
    def __init__(self, **kwargs):
        """初始化模型实例
        
        系统字段（id, created_at, updated_at, ver）由系统管理，传入的值会被忽略。
        """
        for field in self._system_fields:
            kwargs.pop(field, None)
        super().__init__(**kwargs)
    
    def __repr__(self):
        return f"<{self.__class__.__name__} id={self.id}>"
    
    @property
    def session(self) -> Session:
        """获取当前 session
        
        优先从 query 属性获取（支持测试环境），否则从全局 scoped_session 获取。
        每次访问都重新解析，多线程下各线程拿到各自的 session。
        """
        if self.__class__.query is not None:
            return self.__class__.query.session
        from .db_session import db_manager
        return db_manager.get_session()
    
    # ==================== CRUD 操作方法 ====================
    
    def save(self, commit: bool = False) -> Self:
        """保存对象（新增或更新）
        
        Args:
            commit: 是否立即提交
                   - 无事务时：执行 session.commit()
                   - 有事务时：commit 被抑制，只做 flush
        """
        self.session.add(self)
        self._commit_or_flush(commit)
        return self
    
    @classmethod
    def save_all(cls, objects: list, commit: bool = False) -> list:
        """批量保存对象"""
        if not objects:
            return objects
        session = cls.query.session
        session.add_all(objects)
        if commit:
            if cls._should_suppress_commit():
                session.flush()
            else:
                session.commit()
        return objects
    
    def delete(self, commit: bool = False):
        """删除对象
        
        注意：对有序模型直接删除会在分组序号里留下空位，
        应改用 OrdinalMixin.remove_from_order()。
        """
        self.session.delete(self)
        self._commit_or_flush(commit)
    
    def refresh(self, attribute_names: list = None) -> Self:
        """从数据库重新加载对象状态
        
        其他事务修改了序号后，内存中的值不会自动更新，需要调用此方法。
        """
        if attribute_names:
            self.session.refresh(self, attribute_names)
        else:
            self.session.refresh(self)
        return self
    
    @classmethod
    def get(cls, id: int):
        """根据ID获取对象，不存在返回None"""
        return cls.query.filter_by(id=id).one_or_none()
    
    @classmethod
    def get_all(cls):
        """获取所有记录"""
        return cls.query.all()
    
    def to_dict(self, exclude: set = None) -> dict:
        """转换为字典（只包含列字段）"""
        exclude = exclude or set()
        return {
            column.key: getattr(self, column.key)
            for column in self.__mapper__.column_attrs
            if column.key not in exclude
        }
    
    # ==================== 提交控制 ====================
    
    def _commit_or_flush(self, commit: bool = False):
        """根据参数决定是否提交
        
        在事务上下文中 commit=True 会被抑制，改为 flush 以获取自动生成字段。
        """
        if not commit:
            return
        if self._should_suppress_commit():
            self.session.flush()
            return
        self.session.commit()
    
    @classmethod
    def _should_suppress_commit(cls) -> bool:
        """当前是否处于会抑制提交的事务上下文中"""
        from .transaction import get_current_transaction
        tx = get_current_transaction()
        if tx is not None and tx.should_suppress_commit():
            logger.debug("commit=True 被事务上下文抑制")
            return True
        return False
