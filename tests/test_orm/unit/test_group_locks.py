"""分组锁注册表测试"""

import threading

import pytest

from yorder.exceptions import ErrorCode, TransactionConflict
from yorder.orm.ordinal import GroupLockRegistry


class TestGroupLockRegistry:
    """GroupLockRegistry 测试"""

    def setup_method(self):
        self.registry = GroupLockRegistry()

    def hold_in_thread(self, namespace, group):
        """在另一个线程中持有锁，返回 (释放事件, 线程)"""
        held = threading.Event()
        release = threading.Event()

        def holder():
            with self.registry.lock(namespace, group):
                held.set()
                release.wait(2)

        worker = threading.Thread(target=holder)
        worker.start()
        held.wait(2)
        return release, worker

    def test_same_key_returns_same_lock(self):
        assert self.registry.get("menu", 1) is self.registry.get("menu", 1)
        assert self.registry.get("menu", 1) is not self.registry.get("menu", 2)
        assert self.registry.get("menu", 1) is not self.registry.get("banner", 1)
        assert len(self.registry) == 3

    def test_composite_and_unhashable_groups(self):
        assert self.registry.get("shelf", (1, "left")) is self.registry.get("shelf", (1, "left"))
        assert self.registry.get("shelf", [1, "left"]) is self.registry.get("shelf", [1, "left"])

    def test_reentrant_in_same_thread(self):
        with self.registry.lock("menu", 1):
            with self.registry.lock("menu", 1, timeout=0.01):
                pass

    def test_timeout_raises_conflict(self):
        release, worker = self.hold_in_thread("menu", 1)
        try:
            with pytest.raises(TransactionConflict) as exc_info:
                self.registry.acquire("menu", 1, timeout=0.05)
        finally:
            release.set()
            worker.join()

        assert exc_info.value.code == ErrorCode.LOCK_TIMEOUT
        assert exc_info.value.status_code == 409

    def test_different_groups_do_not_block(self):
        release, worker = self.hold_in_thread("menu", 1)
        try:
            unlock = self.registry.acquire("menu", 2, timeout=0.05)
            unlock()
        finally:
            release.set()
            worker.join()

    def test_acquire_returns_release(self):
        unlock = self.registry.acquire("menu", 1)
        unlock()

        release, worker = self.hold_in_thread("menu", 1)
        release.set()
        worker.join()

    def test_clear(self):
        self.registry.get("menu", 1)
        self.registry.clear()
        assert len(self.registry) == 0
