"""序号引擎并发集成测试

使用 SQLite 文件库（每个线程独立连接、独立 session）验证：
1. 同一空分组的并发创建不会得到重复序号
2. 不同分组的并发创建互不影响
3. 并发上移/下移后分组序号仍为 1..N
4. 内存中的序号过期时操作以 TransactionConflict 失败
5. 存储不可用时抛出 StoreUnavailable
6. 通过 before_flush 钩子并发创建时序号不重复
"""

import random
import threading
import time
from typing import Optional

import pytest
from sqlalchemy import String, create_engine, event
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker, scoped_session

from yorder.exceptions import StoreUnavailable, TransactionConflict
from yorder.orm import (
    Base,
    CoreModel,
    OrdinalEngine,
    OrdinalFieldMixin,
    OrdinalMixin,
    SQLAlchemyRecordStore,
    activate_ordinal_assignment,
    deactivate_ordinal_assignment,
)

from tests.helpers import assert_dense


class RaceTrack(CoreModel, OrdinalFieldMixin, OrdinalMixin):
    """并发测试曲目 - 按歌单分组"""
    __tablename__ = "test_ordinal_race_track"
    __table_args__ = {'extend_existing': True}
    __ordinal_group_by__ = "playlist"

    playlist: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    title: Mapped[str] = mapped_column(String(100))


class RaceNote(CoreModel, OrdinalFieldMixin, OrdinalMixin):
    """并发测试便签 - 通过创建钩子分配序号"""
    __tablename__ = "test_ordinal_race_note"
    __table_args__ = {'extend_existing': True}
    __ordinal_group_by__ = "board"

    board: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(100))


def run_threads(target, args_list):
    errors = []

    def wrapper(*args):
        try:
            target(*args)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=wrapper, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return errors


@pytest.mark.concurrency
class TestConcurrentOrdinal:
    """多线程并发测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, file_engine):
        """初始化文件数据库，session 按线程隔离"""
        Base.metadata.create_all(bind=file_engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
        self.session_scope = scoped_session(SessionLocal)
        CoreModel.query = self.session_scope.query_property()
        self.engine = RaceTrack.ordinal_engine()
        yield
        self.session_scope.remove()

    def create(self, playlist, title):
        try:
            RaceTrack.create(playlist=playlist, title=title)
        finally:
            self.session_scope.remove()

    def test_concurrent_creation_into_empty_group(self):
        errors = run_threads(self.create, [("race", f"T{i}") for i in range(10)])

        assert errors == []
        assert_dense(self.engine, "race", size=10)

    def test_concurrent_creation_in_different_groups(self):
        args = [(f"g{i % 3}", f"T{i}") for i in range(12)]
        errors = run_threads(self.create, args)

        assert errors == []
        for group in ("g0", "g1", "g2"):
            assert_dense(self.engine, group, size=4)

    def test_concurrent_hook_creation_into_empty_group(self):
        def slow_flush(session, flush_context, instances):
            # 拉长读取最大值与 INSERT 之间的间隔
            time.sleep(0.05)

        def add(title):
            session = self.session_scope()
            try:
                session.add(RaceNote(board="race", title=title))
                session.commit()
            finally:
                self.session_scope.remove()

        activate_ordinal_assignment(RaceNote)
        event.listen(Session, "before_flush", slow_flush)
        try:
            errors = run_threads(add, [(f"N{i}",) for i in range(6)])
        finally:
            event.remove(Session, "before_flush", slow_flush)
            deactivate_ordinal_assignment(RaceNote)

        assert errors == []
        assert_dense(RaceNote.ordinal_engine(), "race", size=6)

    def test_concurrent_moves_keep_invariant(self):
        for i in range(6):
            RaceTrack.create(playlist="storm", title=f"S{i}")
        RaceTrack.create(playlist="calm", title="C0")
        self.session_scope.remove()

        def mover(seed):
            rng = random.Random(seed)
            session = self.session_scope()
            try:
                for _ in range(15):
                    track = RaceTrack.query.filter_by(title=f"S{rng.randint(0, 5)}").one()
                    try:
                        if rng.random() < 0.5:
                            track.decrement_order()
                        else:
                            track.increment_order()
                    except TransactionConflict:
                        session.rollback()
            finally:
                self.session_scope.remove()

        errors = run_threads(mover, [(seed,) for seed in range(4)])

        assert errors == []
        assert_dense(self.engine, "storm", size=6)
        assert_dense(self.engine, "calm", size=1)

    def test_stale_in_memory_order_is_conflict(self, file_engine):
        a = RaceTrack.create(playlist="base", title="A")
        b = RaceTrack.create(playlist="base", title="B")
        c = RaceTrack.create(playlist="base", title="C")
        assert c.order == 3

        # 另一个 session 把 C 移到最前
        other = sessionmaker(bind=file_engine)()
        try:
            other_engine = OrdinalEngine(
                SQLAlchemyRecordStore(RaceTrack, session_factory=lambda: other)
            )
            other_c = other.get(RaceTrack, c.id)
            assert other_engine.move_to_top(other_c) is True
        finally:
            other.close()

        # 本 session 中 C 仍是 3
        with pytest.raises(TransactionConflict):
            c.decrement_order()

        self.session_scope().expire_all()
        assert c.order == 1
        assert_dense(self.engine, "base", size=3)

    def test_store_unavailable(self, tmp_path):
        broken = create_engine(f"sqlite:///{tmp_path}/missing/dir/x.db")
        session = sessionmaker(bind=broken)()
        engine = OrdinalEngine(SQLAlchemyRecordStore(RaceTrack, session_factory=lambda: session))
        try:
            with pytest.raises(StoreUnavailable):
                engine.highest_order("base")
            with pytest.raises(StoreUnavailable):
                engine.insert(RaceTrack(playlist="base", title="X"))
        finally:
            session.close()
            broken.dispose()
