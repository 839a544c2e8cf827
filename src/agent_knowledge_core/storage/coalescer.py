"""
持久化合并器 - 对快照写入进行防抖与串行化
"""

import asyncio
from typing import Callable, Optional

from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..errors import PersistenceError
from ..models.snapshot import KnowledgeSnapshot
from .base import BaseKeyValueStore


class PersistenceCoalescer:
    """
    快照写入合并器

    只使用一个“写入中”标志而不是写入队列：同一时间最多一个写入，
    写入期间到达的新快照会替换尚未开始的待写快照，中间快照不会落盘。
    """

    def __init__(
        self,
        store: BaseKeyValueStore,
        key: str,
        debounce: float = 0.5,
        max_attempts: int = 2,
        retry_wait: float = 0.0,
        on_error: Optional[Callable[[PersistenceError], None]] = None,
    ):
        """
        Args:
            store: 后端键值存储
            key: 快照写入的键
            debounce: 防抖窗口（秒），变更停止超过该时长后才写入，连续变更合并为一次写入
            max_attempts: 每次写入的最大尝试次数（默认失败后重试一次）
            retry_wait: 重试前等待时间（秒）
            on_error: 重试仍失败时的回调
        """
        self.store = store
        self.key = key
        self.debounce = debounce
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait
        self._on_error = on_error

        self._pending: Optional[KnowledgeSnapshot] = None
        self._in_flight = False
        self._task: Optional[asyncio.Task] = None
        self._wake = asyncio.Event()
        self._rescheduled = asyncio.Event()
        self._closed = False

        self.written_version = -1
        self.write_count = 0
        self.last_error: Optional[PersistenceError] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def pending(self) -> Optional[KnowledgeSnapshot]:
        return self._pending

    @property
    def idle(self) -> bool:
        return self._task is None

    def schedule(self, snapshot: KnowledgeSnapshot) -> None:
        """登记最新快照；没有写入进行时立即启动写入任务"""
        if self._closed:
            logger.warning(f"合并器已关闭，忽略快照 v{snapshot.version}")
            return
        if snapshot.version <= self.written_version:
            logger.debug(f"快照 v{snapshot.version} 已过期，忽略")
            return
        if self._pending is not None and snapshot.version < self._pending.version:
            return

        if self._pending is not None:
            logger.debug(f"快照 v{snapshot.version} 替换待写快照 v{self._pending.version}")
        self._pending = snapshot
        self._rescheduled.set()
        if self._task is None:
            self._task = asyncio.create_task(self._drain(), name=f"persist:{self.key}")

    async def flush(self) -> bool:
        """
        跳过防抖窗口，等待所有待写快照完成

        Returns:
            最后一次写入是否成功
        """
        while self._task is not None:
            self._wake.set()
            self._rescheduled.set()
            await asyncio.shield(self._task)
        return self.last_error is None

    async def close(self) -> bool:
        success = await self.flush()
        self._closed = True
        return success

    async def _drain(self) -> None:
        try:
            while self._pending is not None:
                await self._settle()

                snapshot, self._pending = self._pending, None
                self._in_flight = True
                try:
                    await self._write(snapshot)
                finally:
                    self._in_flight = False
        finally:
            self._task = None
            self._wake.clear()
            self._rescheduled.clear()

    async def _settle(self) -> None:
        """等待变更停止：每个新快照都会重新开始防抖窗口，flush() 直接结束等待"""
        if self.debounce <= 0:
            return
        while not self._wake.is_set():
            self._rescheduled.clear()
            try:
                await asyncio.wait_for(self._rescheduled.wait(), timeout=self.debounce)
            except asyncio.TimeoutError:
                return

    async def _write(self, snapshot: KnowledgeSnapshot) -> bool:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_fixed(self.retry_wait),
                retry=retry_if_exception_type(PersistenceError),
                reraise=True,
            ):
                with attempt:
                    # 重试时使用最新的快照
                    if attempt.retry_state.attempt_number > 1 and self._pending is not None:
                        snapshot, self._pending = self._pending, None
                    await self._save(snapshot)
        except PersistenceError as e:
            self.last_error = e
            logger.error(f"快照写入失败，内存状态保持有效: {e}")
            if self._on_error is not None:
                self._on_error(e)
            return False

        self.written_version = snapshot.version
        self.write_count += 1
        self.last_error = None
        logger.info(f"快照已写入: {self.key} v{snapshot.version} ({snapshot.count} 条)")
        return True

    async def _save(self, snapshot: KnowledgeSnapshot) -> None:
        try:
            success = await self.store.save(self.key, snapshot.to_dict())
        except Exception as e:
            raise PersistenceError(f"Saving snapshot v{snapshot.version} failed: {e}") from e
        if not success:
            raise PersistenceError(
                f"Store rejected snapshot v{snapshot.version}",
                {"key": self.key, "version": snapshot.version},
            )
