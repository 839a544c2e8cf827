"""
控制器池 - 按智能体ID管理控制器实例
"""

import asyncio
from typing import Dict, List, Optional

from loguru import logger

from ..storage.base import BaseKeyValueStore
from ..storage.entity_store import BaseEntityStore, KeyValueEntityStore
from ..utils.config_utils import KnowledgeSettings
from .controller import KnowledgeController


class ControllerPool:
    """每个智能体一个控制器，控制器之间只共享后端存储"""

    def __init__(
        self,
        store: BaseKeyValueStore,
        settings: Optional[KnowledgeSettings] = None,
        entity_store: Optional[BaseEntityStore] = None,
    ):
        self.store = store
        self.settings = settings or KnowledgeSettings()
        self.entity_store = entity_store or KeyValueEntityStore(store)
        self._controllers: Dict[str, KnowledgeController] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._controllers)

    async def get(self, agent_id: str) -> KnowledgeController:
        """获取（必要时创建并初始化）智能体的控制器"""
        controller = self._controllers.get(agent_id)
        if controller is not None:
            return controller

        async with self._lock:
            controller = self._controllers.get(agent_id)
            if controller is None:
                controller = KnowledgeController(
                    agent_id,
                    self.store,
                    entity_store=self.entity_store,
                    settings=self.settings,
                )
                await controller.initialize()
                self._controllers[agent_id] = controller
                logger.info(f"创建控制器: {agent_id}")
        return controller

    async def flush(self, agent_id: str) -> bool:
        """写入该智能体待写的快照；控制器未加载时无需写入"""
        controller = self._controllers.get(agent_id)
        if controller is None:
            return True
        return await controller.flush()

    def agent_ids(self) -> List[str]:
        return list(self._controllers.keys())

    async def close(self) -> None:
        controllers = list(self._controllers.values())
        self._controllers.clear()
        for controller in controllers:
            await controller.close()
