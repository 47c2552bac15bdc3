"""创建时序号分配钩子测试

测试 activate_ordinal_assignment 注册的 before_flush 钩子：
1. 未设置序号时分配为 max + 1
2. 显式序号插入到指定位置
3. 与 Model.create() 同时使用时不会重复后移
4. 激活/移除
5. 分组锁保持到事务结束
6. 序号字段名取自配置
"""

import threading

import pytest
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, sessionmaker, scoped_session

from yorder.exceptions import InvalidPositionError
from yorder.orm import (
    Base,
    CoreModel,
    OrdinalFieldMixin,
    OrdinalMixin,
    activate_ordinal_assignment,
    configure_ordering,
    deactivate_ordinal_assignment,
    group_locks,
)
from yorder.orm.ordinal import is_ordinal_assignment_active


class HookMenuItem(CoreModel, OrdinalFieldMixin, OrdinalMixin):
    """菜单项 - 按菜单分组"""
    __tablename__ = "test_ordinal_hook_menu_item"
    __table_args__ = {'extend_existing': True}
    __ordinal_group_by__ = "menu"

    menu: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(100))


class HookSlide(CoreModel, OrdinalMixin):
    """幻灯片 - 序号字段名来自配置"""
    __tablename__ = "test_ordinal_hook_slide"
    __table_args__ = {'extend_existing': True}
    __ordinal_group_by__ = "deck"

    deck: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(100))
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


def try_lock(namespace, group, results):
    """在另一个线程中尝试获取分组锁"""
    def worker():
        lock = group_locks.get(namespace, group)
        acquired = lock.acquire(timeout=0.1)
        if acquired:
            lock.release()
        results.append(acquired)

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join()


class TestOrdinalAssignmentHook:
    """before_flush 钩子测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, memory_engine):
        """初始化数据库并激活钩子"""
        Base.metadata.create_all(bind=memory_engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
        self.session_scope = scoped_session(SessionLocal)
        CoreModel.query = self.session_scope.query_property()
        activate_ordinal_assignment(HookMenuItem)
        yield
        deactivate_ordinal_assignment(HookMenuItem)
        self.session_scope.remove()

    def orders(self, menu):
        self.session_scope().expire_all()
        return {item.title: item.order for item in HookMenuItem.get_sorted(menu)}

    def test_assigns_next_order_on_save(self):
        for title in ["A", "B", "C"]:
            HookMenuItem(menu="main", title=title).save(commit=True)
        HookMenuItem(menu="side", title="S").save(commit=True)

        assert self.orders("main") == {"A": 1, "B": 2, "C": 3}
        assert self.orders("side") == {"S": 1}

    def test_assigns_in_single_flush(self):
        session = self.session_scope()
        session.add(HookMenuItem(menu="main", title="A"))
        session.add(HookMenuItem(menu="main", title="B"))
        session.commit()

        assert self.orders("main") == {"A": 1, "B": 2}

    def test_explicit_order_shifts_followers(self):
        for title in ["A", "B"]:
            HookMenuItem(menu="main", title=title).save(commit=True)

        HookMenuItem(menu="main", title="X", order=1).save(commit=True)

        assert self.orders("main") == {"X": 1, "A": 2, "B": 3}

    def test_explicit_order_out_of_range(self):
        HookMenuItem(menu="main", title="A").save(commit=True)

        with pytest.raises(InvalidPositionError):
            HookMenuItem(menu="main", title="X", order=5).save(commit=True)
        self.session_scope().rollback()

        assert self.orders("main") == {"A": 1}

    def test_create_is_not_shifted_twice(self):
        for title in ["A", "B"]:
            HookMenuItem.create(menu="main", title=title)

        HookMenuItem.create(menu="main", title="X", order=2)

        assert self.orders("main") == {"A": 1, "X": 2, "B": 3}
        assert HookMenuItem.check_order_integrity("main") == 3

    def test_activation_is_idempotent(self):
        activate_ordinal_assignment(HookMenuItem)
        activate_ordinal_assignment(HookMenuItem)
        assert is_ordinal_assignment_active(HookMenuItem)

        HookMenuItem(menu="main", title="A").save(commit=True)
        assert self.orders("main") == {"A": 1}

        deactivate_ordinal_assignment(HookMenuItem)
        assert not is_ordinal_assignment_active(HookMenuItem)

    def test_deactivated_leaves_order_unset(self):
        deactivate_ordinal_assignment(HookMenuItem)

        HookMenuItem(menu="main", title="A").save(commit=True)

        assert self.orders("main") == {"A": 0}

    def test_group_lock_held_until_commit(self):
        results = []
        session = self.session_scope()
        session.add(HookMenuItem(menu="main", title="A"))
        session.flush()

        try_lock("test_ordinal_hook_menu_item", "main", results)
        try_lock("test_ordinal_hook_menu_item", "side", results)
        session.commit()
        try_lock("test_ordinal_hook_menu_item", "main", results)

        assert results == [False, True, True]

    def test_group_lock_released_on_rollback(self):
        results = []
        session = self.session_scope()
        session.add(HookMenuItem(menu="main", title="A"))
        session.flush()
        session.rollback()

        try_lock("test_ordinal_hook_menu_item", "main", results)

        assert results == [True]
        assert self.orders("main") == {}


class TestConfiguredFieldName:
    """序号字段名取自 configure_ordering(field_name=...)"""

    @pytest.fixture(autouse=True)
    def setup_db(self, memory_engine):
        """初始化数据库、序号配置并激活钩子"""
        Base.metadata.create_all(bind=memory_engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
        self.session_scope = scoped_session(SessionLocal)
        CoreModel.query = self.session_scope.query_property()
        configure_ordering(field_name="position")
        activate_ordinal_assignment(HookSlide)
        yield
        deactivate_ordinal_assignment(HookSlide)
        configure_ordering()
        self.session_scope.remove()

    def positions(self, deck):
        self.session_scope().expire_all()
        return {slide.title: slide.position for slide in HookSlide.get_sorted(deck)}

    def test_hook_assigns_configured_field(self):
        HookSlide.create(deck="intro", title="A")

        session = self.session_scope()
        session.add(HookSlide(deck="intro", title="B"))
        session.add(HookSlide(deck="intro", title="C"))
        session.commit()

        assert self.positions("intro") == {"A": 1, "B": 2, "C": 3}
        assert HookSlide.check_order_integrity("intro") == 3

    def test_hook_explicit_position_shifts_followers(self):
        for title in ["A", "B"]:
            HookSlide(deck="intro", title=title).save(commit=True)

        HookSlide(deck="intro", title="X", position=1).save(commit=True)

        assert self.positions("intro") == {"X": 1, "A": 2, "B": 3}
