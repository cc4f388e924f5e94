"""
Persistence of flow instances.

`MemoryFlowStore` keeps flows in process memory and hands out copies, so a flow only
changes when it is written back with `update`. `FileFlowStore` additionally writes each
flow to a JSON file, which lets flows survive between CLI invocations.

Both provide a per-flow `asyncio.Lock`; the flow manager holds it while a step runs so
concurrent `advance_flow` calls for the same flow are serialized.
"""
from __future__ import annotations

import asyncio
import copy
from datetime import timedelta
import json
import logging
import os

from .constants import FLOW_STATUS_IN_PROGRESS
from .exceptions import NotFound
from .models import FlowInstance, utcnow

logger = logging.getLogger("__main__")


class MemoryFlowStore:
    """In-memory flow instance store."""

    def __init__(self) -> None:
        self._flows: dict[str, dict] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, flow_id: str) -> asyncio.Lock:
        """Return the lock serializing work on one flow.

        Only in-progress flows keep their lock; a finished flow gets a fresh one, since
        nothing can change it anymore.

        Raises:
            NotFound: If no flow with this id exists
        """
        data = self._flows.get(flow_id)
        if data is None:
            raise NotFound(f"Flow {flow_id} not found")
        if data.get("status") != FLOW_STATUS_IN_PROGRESS:
            return asyncio.Lock()
        lock = self._locks.get(flow_id)
        if lock is None:
            lock = self._locks[flow_id] = asyncio.Lock()
        return lock

    async def get(self, flow_id: str) -> FlowInstance:
        """Load a flow.

        Raises:
            NotFound: If no flow with this id exists
        """
        data = self._flows.get(flow_id)
        if data is None:
            raise NotFound(f"Flow {flow_id} not found")
        return FlowInstance.from_dict(data)

    async def create(self, flow: FlowInstance) -> None:
        self._flows[flow.id] = copy.deepcopy(flow.to_dict())

    async def update(self, flow: FlowInstance) -> None:
        if flow.id not in self._flows:
            raise NotFound(f"Flow {flow.id} not found")
        self._flows[flow.id] = copy.deepcopy(flow.to_dict())
        if flow.is_terminal:
            # waiters still hold the old lock and find the flow finished
            self._locks.pop(flow.id, None)

    async def delete(self, flow_id: str) -> None:
        self._flows.pop(flow_id, None)
        self._locks.pop(flow_id, None)

    async def list_flows(self, status: str | None = None) -> list[FlowInstance]:
        flows = [FlowInstance.from_dict(data) for data in self._flows.values()]
        if status is not None:
            flows = [flow for flow in flows if flow.status == status]
        return sorted(flows, key=lambda flow: flow.created_at)

    async def purge_stale(self, max_age: timedelta) -> int:
        """Delete in-progress flows not touched for longer than `max_age`.

        Returns:
            Number of flows deleted
        """
        cutoff = utcnow() - max_age
        stale = [
            flow.id
            for flow in await self.list_flows(FLOW_STATUS_IN_PROGRESS)
            if flow.updated_at < cutoff
        ]
        for flow_id in stale:
            await self.delete(flow_id)
        if stale:
            logger.info("[FLOW-STORE] Purged %s stale flow(s)", len(stale))
        return len(stale)


class FileFlowStore(MemoryFlowStore):
    """Flow store persisting one JSON file per flow in `storage_dir`."""

    def __init__(self, storage_dir: str) -> None:
        super().__init__()
        self.storage_dir = storage_dir
        os.makedirs(self.storage_dir, exist_ok=True)
        self._load_all()

    def _path(self, flow_id: str) -> str:
        return os.path.join(self.storage_dir, f"{flow_id}.json")

    def _load_all(self) -> None:
        for file_name in os.listdir(self.storage_dir):
            if not file_name.endswith(".json"):
                continue
            path = os.path.join(self.storage_dir, file_name)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                self._flows[data["id"]] = data
            except (OSError, ValueError, KeyError) as err:
                logger.warning("[FLOW-STORE] Skipping unreadable flow file %s: %s", path, err)
        logger.debug(
            "[FLOW-STORE] Loaded %s flow(s) from %s", len(self._flows), self.storage_dir
        )

    def _write(self, flow: FlowInstance) -> None:
        path = self._path(flow.id)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(flow.to_dict(), f, indent=2)
        os.replace(tmp_path, path)

    async def create(self, flow: FlowInstance) -> None:
        await super().create(flow)
        self._write(flow)

    async def update(self, flow: FlowInstance) -> None:
        await super().update(flow)
        self._write(flow)

    async def delete(self, flow_id: str) -> None:
        await super().delete(flow_id)
        try:
            os.remove(self._path(flow_id))
        except FileNotFoundError:
            pass
