"""数据库会话管理测试

测试 init_database / db_session_scope / on_request_end，以及序号模型在默认会话下的使用。
"""

import pytest
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from yorder.config import DatabaseSettings
from yorder.orm import (
    Base,
    CoreModel,
    OrdinalFieldMixin,
    OrdinalMixin,
    db_manager,
    db_session_scope,
    get_engine,
    init_database,
    on_request_end,
)


class SessionMenuItem(CoreModel, OrdinalFieldMixin, OrdinalMixin):
    """菜单项 - 全表一个分组"""
    __tablename__ = "test_db_session_menu_item"
    __table_args__ = {'extend_existing': True}

    title: Mapped[str] = mapped_column(String(100))


class TestDatabaseManager:
    """DatabaseManager 测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self):
        engine, self.session_scope = init_database("sqlite:///:memory:")
        Base.metadata.create_all(bind=engine)
        yield
        db_manager.dispose()
        CoreModel.query = None

    def test_memory_database_uses_static_pool(self):
        assert isinstance(get_engine().pool, StaticPool)
        assert db_manager.is_initialized

    def test_query_property_is_bound(self):
        assert CoreModel.query is not None
        assert SessionMenuItem.query.session is db_manager.get_session()

    def test_ordinal_model_with_default_session(self):
        first = SessionMenuItem.create(title="首页")
        second = SessionMenuItem.create(title="关于")

        second.decrement_order()

        assert [item.title for item in SessionMenuItem.get_sorted()] == ["关于", "首页"]
        assert first.is_highest()

    def test_session_scope_commits(self):
        with db_session_scope() as session:
            session.add(SessionMenuItem(title="脚本", order=1))

        assert SessionMenuItem.query.count() == 1

    def test_session_scope_rolls_back_on_error(self):
        with pytest.raises(RuntimeError):
            with db_session_scope() as session:
                session.add(SessionMenuItem(title="失败", order=1))
                raise RuntimeError("任务失败")

        assert SessionMenuItem.query.count() == 0

    def test_on_request_end_commits_pending(self):
        SessionMenuItem(title="待提交", order=1).save()

        on_request_end()

        assert SessionMenuItem.query.count() == 1

    def test_init_from_config(self):
        db_manager.dispose()
        engine, _ = init_database(config=DatabaseSettings(url="sqlite:///:memory:"))

        assert get_engine() is engine

    def test_missing_url(self):
        with pytest.raises(ValueError):
            init_database(config=DatabaseSettings(url=""))


class TestUninitialized:
    """未初始化时的错误"""

    def test_get_engine_before_init(self):
        db_manager.dispose()
        with pytest.raises(RuntimeError):
            get_engine()
