import asyncio
import random
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from loguru import logger

from ..errors import DuplicateIdError
from ..models.job import JobFinished, ProgressEvent, ProgressTick
from ..models.knowledge_item import ItemStatus

EventSink = Callable[[ProgressEvent], bool]


class BaseProgressSource(ABC):
    """Base class for anything that drives ingestion progress.

    A source turns out-of-band work into ``ProgressTick`` and ``JobFinished``
    messages and hands them to ``sink``. The sink returns ``False`` once the
    item no longer exists, which tells the source to stop.
    """

    def __init__(self, sink: EventSink):
        self._sink = sink

    @abstractmethod
    def start(self, item_id: str) -> None:
        """Begin driving progress for ``item_id``"""
        pass

    @abstractmethod
    def cancel(self, item_id: str) -> bool:
        """Stop future ticks for ``item_id`` without emitting a terminal event"""
        pass

    @abstractmethod
    def is_running(self, item_id: str) -> bool:
        pass

    async def aclose(self) -> None:
        """Release resources held by the source"""
        pass


class SimulatedProgressEmitter(BaseProgressSource):
    """Stub backend that advances each item by bounded random steps.

    Every item gets its own asyncio task, so a batch of N items advances in
    parallel. Exactly one ``JobFinished`` is emitted per item unless the item
    is cancelled first.
    """

    def __init__(
        self,
        sink: EventSink,
        tick_interval: float = 0.2,
        min_step: int = 1,
        max_step: int = 15,
        failure_rate: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(sink)
        if min_step < 1 or max_step < min_step:
            raise ValueError(f"Invalid step bounds: [{min_step}, {max_step}]")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")
        self.tick_interval = tick_interval
        self.min_step = min_step
        self.max_step = max_step
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()
        self._tasks: Dict[str, asyncio.Task] = {}

    def start(self, item_id: str) -> None:
        if item_id in self._tasks:
            raise DuplicateIdError(item_id)
        self._tasks[item_id] = asyncio.create_task(self._run(item_id), name=f"progress:{item_id}")

    def cancel(self, item_id: str) -> bool:
        task = self._tasks.pop(item_id, None)
        if task is None:
            return False
        # the terminal event may be handled from inside the task itself
        if task is not asyncio.current_task():
            task.cancel()
        logger.debug(f"Progress cancelled for {item_id}")
        return True

    def is_running(self, item_id: str) -> bool:
        return item_id in self._tasks

    @property
    def running(self) -> int:
        return len(self._tasks)

    async def aclose(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, item_id: str) -> None:
        progress = 0
        finished = False
        try:
            while True:
                await asyncio.sleep(self.tick_interval)
                delta = self._rng.randint(self.min_step, self.max_step)
                progress += delta
                if progress >= 100:
                    break
                if not self._sink(ProgressTick(item_id=item_id, delta=delta)):
                    logger.debug(f"Item {item_id} is gone, stopping progress")
                    return

            # at most one terminal event per run, even if the sink raises
            finished = True
            if self._rng.random() < self.failure_rate:
                self._sink(JobFinished(item_id, ItemStatus.FAILED, "Simulated ingestion failure"))
            else:
                self._sink(JobFinished(item_id, ItemStatus.COMPLETED))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Progress task failed for {item_id}: {e}")
            if not finished:
                self._sink(JobFinished(item_id, ItemStatus.FAILED, str(e)))
        finally:
            if self._tasks.get(item_id) is asyncio.current_task():
                del self._tasks[item_id]
