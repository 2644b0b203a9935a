"""
进程内锁
- 每个房间、每个客人一把锁，按 id 排序获取（先房间后客人），避免死锁
- 读写闸门：普通写操作持有共享端，清空数据持有独占端
"""
from contextlib import contextmanager
from typing import Dict, Iterable, Optional
import logging
import threading

logger = logging.getLogger(__name__)


class LockRegistry:
    """房间 / 客人锁注册表"""

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._room_locks: Dict[int, threading.RLock] = {}
        self._guest_locks: Dict[int, threading.RLock] = {}

        self._gate = threading.Condition()
        self._shared_holders = 0
        self._exclusive_held = False
        self._exclusive_waiting = 0
        self._local = threading.local()

    def _lock_for(self, table: Dict[int, threading.RLock], key: int) -> threading.RLock:
        with self._registry_lock:
            lock = table.get(key)
            if lock is None:
                lock = threading.RLock()
                table[key] = lock
            return lock

    def room_lock(self, room_id: int) -> threading.RLock:
        return self._lock_for(self._room_locks, room_id)

    def guest_lock(self, guest_id: int) -> threading.RLock:
        return self._lock_for(self._guest_locks, guest_id)

    def _depth(self) -> int:
        return getattr(self._local, "depth", 0)

    @contextmanager
    def shared(self):
        """共享端：同一线程可重入"""
        if self._depth() == 0:
            with self._gate:
                while self._exclusive_held or self._exclusive_waiting:
                    self._gate.wait()
                self._shared_holders += 1
        self._local.depth = self._depth() + 1
        try:
            yield
        finally:
            self._local.depth -= 1
            if self._local.depth == 0:
                with self._gate:
                    self._shared_holders -= 1
                    if self._shared_holders == 0:
                        self._gate.notify_all()

    @contextmanager
    def exclusive(self):
        """独占端：等待所有共享持有者退出"""
        with self._gate:
            self._exclusive_waiting += 1
            try:
                while self._exclusive_held or self._shared_holders:
                    self._gate.wait()
            finally:
                self._exclusive_waiting -= 1
            self._exclusive_held = True
        try:
            yield
        finally:
            with self._gate:
                self._exclusive_held = False
                self._gate.notify_all()

    @contextmanager
    def hold(self, room_ids: Optional[Iterable[int]] = None,
             guest_ids: Optional[Iterable[int]] = None):
        """持有共享闸门及指定房间、客人的锁"""
        rooms = sorted({r for r in (room_ids or []) if r is not None})
        guests = sorted({g for g in (guest_ids or []) if g is not None})
        locks = [self.room_lock(r) for r in rooms] + [self.guest_lock(g) for g in guests]

        with self.shared():
            acquired = []
            try:
                for lock in locks:
                    lock.acquire()
                    acquired.append(lock)
                yield
            finally:
                for lock in reversed(acquired):
                    lock.release()


# 全局锁注册表
lock_registry = LockRegistry()
