"""
Persistence hooks for contextual memory.

Provides snapshot and restore of an agent's memory store so experience
can survive a process restart. Experience tied to a world layout should
still be cleared on level change; persistence only covers restarts.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .config import MemoryConfig
from .store import MemoryStore

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class MemoryPersistence:
    """
    Handles persistence of memory stores to disk.

    Features:
    - Atomic writes (temp file + rename)
    - Version compatibility checking
    - Graceful degradation on load failure
    """

    def __init__(self, base_path: str):
        """
        Initialize persistence handler.

        Args:
            base_path: Directory for storing snapshots
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def snapshot(
        self,
        agent_id: str,
        store: MemoryStore,
        config: Optional[MemoryConfig] = None,
    ) -> bool:
        """
        Save a memory store to disk.

        Args:
            agent_id: Agent identifier
            store: Store to save
            config: Config the store was built with

        Returns:
            True if save succeeded
        """
        try:
            snapshot_data = {
                "version": SNAPSHOT_VERSION,
                "agent_id": agent_id,
                "config": config.to_dict() if config else None,
                "store": store.to_dict(),
            }

            path = self._get_path(agent_id)
            temp_path = path.with_suffix(".tmp")

            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(snapshot_data, f, indent=2)

            temp_path.replace(path)

            logger.debug(f"Memory snapshot saved for {agent_id} ({len(store)} contexts)")
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to save memory snapshot for {agent_id}: {e}")
            return False

    def restore(self, agent_id: str) -> Optional[Dict[str, Any]]:
        """
        Load a raw snapshot from disk.

        Returns:
            Snapshot dictionary, or None if missing, corrupt or incompatible
        """
        path = self._get_path(agent_id)

        if not path.exists():
            logger.debug(f"No memory snapshot found for {agent_id}")
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read memory snapshot for {agent_id}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Memory snapshot for {agent_id} is not an object")
            return None

        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            logger.warning(f"Incompatible memory snapshot version: {version}")
            return None

        return data

    def restore_store(
        self,
        agent_id: str,
        capacity: Optional[int] = None,
    ) -> Tuple[Optional[MemoryConfig], Optional[MemoryStore]]:
        """
        Rebuild the config and store from a snapshot.

        Args:
            agent_id: Agent identifier
            capacity: Override the saved capacity

        Returns:
            (config or None, store or None)
        """
        data = self.restore(agent_id)
        if data is None:
            return None, None

        try:
            config = MemoryConfig.from_dict(data["config"]) if data.get("config") else None
            if capacity is None and config is not None:
                capacity = config.capacity
            store = MemoryStore.from_dict(data.get("store", {}), capacity=capacity)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Error restoring memory for {agent_id}: {e}")
            return None, None

        logger.debug(f"Memory restored for {agent_id} ({len(store)} contexts)")
        return config, store

    def delete(self, agent_id: str) -> bool:
        """
        Delete the saved snapshot for an agent.

        Returns:
            True if deletion succeeded or file didn't exist
        """
        path = self._get_path(agent_id)
        try:
            if path.exists():
                path.unlink()
                logger.debug(f"Deleted memory snapshot for {agent_id}")
            return True
        except OSError as e:
            logger.warning(f"Failed to delete memory snapshot for {agent_id}: {e}")
            return False

    def _get_path(self, agent_id: str) -> Path:
        safe_id = "".join(c if c.isalnum() else "_" for c in agent_id)
        return self.base_path / f"{safe_id}_memory.json"
