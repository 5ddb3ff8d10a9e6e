"""
Persistence Adapter
===================

Saves and restores the learning state through a small key/blob storage
interface, so the engine does not care whether blobs land on disk, in a
browser-style key/value store, or in memory during tests.

Blobs:
    MODEL_NAME          Network model record (versioned JSON)
    REPLAY_BUFFER_NAME  JSON list of experience records, oldest first
    POLICY_STATE_NAME   Exploration rate, step count and episode history

Every operation reports success as a bool. Storage and decoding failures
are logged and never propagate into the game loop.

Usage:
    store = CheckpointStore(FileStorage('brain_data'), config)
    store.save_session(agent)
    ...
    store.restore_session(agent)
"""

import json
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from config import Config
from .network import NeuralNetwork
from .replay_buffer import ReplayBuffer
from src.utils.logger import get_logger, log_model_event

logger = get_logger(__name__)


class Storage(Protocol):
    """Named blob storage."""

    def read(self, name: str) -> Optional[bytes]:
        """Return the blob, or None if it does not exist."""

    def write(self, name: str, data: bytes) -> None:
        """Create or replace a blob. May raise OSError."""

    def exists(self, name: str) -> bool:
        ...

    def names(self) -> List[str]:
        """All stored blob names, sorted."""


class FileStorage:
    """
    Blobs as files under a root directory.

    Names may contain '/' to place blobs in subdirectories, which are
    created on write.
    """

    def __init__(self, root: str):
        self.root = root

    def _path(self, name: str) -> str:
        return os.path.join(self.root, *name.split('/'))

    def read(self, name: str) -> Optional[bytes]:
        path = self._path(name)
        if not os.path.exists(path):
            return None
        with open(path, 'rb') as f:
            return f.read()

    def write(self, name: str, data: bytes) -> None:
        path = self._path(name)
        dir_path = os.path.dirname(path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        # Write to a sibling file first so a crash never leaves a torn blob
        tmp_path = path + '.tmp'
        with open(tmp_path, 'wb') as f:
            f.write(data)
        os.replace(tmp_path, path)

    def exists(self, name: str) -> bool:
        return os.path.isfile(self._path(name))

    def names(self) -> List[str]:
        if not os.path.isdir(self.root):
            return []
        found = []
        for dir_path, _, filenames in os.walk(self.root):
            for filename in filenames:
                if filename.endswith('.tmp'):
                    continue
                rel = os.path.relpath(os.path.join(dir_path, filename), self.root)
                found.append(rel.replace(os.sep, '/'))
        return sorted(found)


class MemoryStorage:
    """In-process storage (tests, and hosts without a writable disk)."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    def read(self, name: str) -> Optional[bytes]:
        return self._blobs.get(name)

    def write(self, name: str, data: bytes) -> None:
        self._blobs[name] = bytes(data)

    def exists(self, name: str) -> bool:
        return name in self._blobs

    def names(self) -> List[str]:
        return sorted(self._blobs)


class CheckpointStore:
    """
    Model, replay buffer and session persistence on top of a Storage.

    Example:
        >>> store = CheckpointStore(MemoryStorage())
        >>> store.save_model(agent.network)
        True
        >>> store.load_model(agent.network)
        True
    """

    def __init__(self, storage: Storage, config: Optional[Config] = None):
        self.storage = storage
        self.config = config or Config()

    # ------------------------------------------------------------------
    # Raw blob helpers
    # ------------------------------------------------------------------

    def _write_json(self, name: str, payload: Any) -> bool:
        try:
            self.storage.write(name, json.dumps(payload).encode('utf-8'))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write {name}: {e}")
            return False
        return True

    def _read_json(self, name: str) -> Any:
        """Decoded blob, or None if it is missing or unreadable."""
        try:
            blob = self.storage.read(name)
        except OSError as e:
            logger.error(f"Failed to read {name}: {e}")
            return None
        if blob is None:
            logger.info(f"No stored blob named {name}")
            return None
        try:
            return json.loads(blob.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Blob {name} is not valid JSON: {e}")
            return None

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    def save_model(self, network: NeuralNetwork, name: Optional[str] = None) -> bool:
        name = name or self.config.MODEL_NAME
        if not self._write_json(name, network.to_model_dict()):
            return False
        log_model_event('save', name, parameters=network.count_parameters())
        return True

    def load_model(self, network: NeuralNetwork, name: Optional[str] = None) -> bool:
        """
        Load a model record into network.

        A missing, unreadable or rejected record leaves the network's
        current parameters in place.
        """
        name = name or self.config.MODEL_NAME
        data = self._read_json(name)
        if data is None:
            return False
        if not network.load_model_dict(data):
            log_model_event('reject', name)
            return False
        log_model_event('load', name)
        return True

    def save_model_with_timestamp(self, network: NeuralNetwork, prefix: str = 'brain') -> Optional[str]:
        """
        Save a snapshot named '<prefix>_model_YYYY-MM-DD_HH-MM-SS.json'.

        Returns:
            The blob name, or None if the write failed
        """
        stamp = datetime.now().strftime('%Y-%m-%d_%H-%M-%S')
        name = f"{prefix}_model_{stamp}.json"
        return name if self.save_model(network, name) else None

    def list_models(self) -> List[str]:
        """Names of every stored model blob (timestamped snapshots included)."""
        try:
            names = self.storage.names()
        except OSError as e:
            logger.error(f"Failed to list storage: {e}")
            return []
        return [
            name for name in names
            if name == self.config.MODEL_NAME or '_model_' in name.rsplit('/', 1)[-1]
        ]

    # ------------------------------------------------------------------
    # Replay buffer
    # ------------------------------------------------------------------

    def save_replay_buffer(self, buffer: ReplayBuffer, name: Optional[str] = None) -> bool:
        name = name or self.config.REPLAY_BUFFER_NAME
        if not self._write_json(name, buffer.to_records()):
            return False
        log_model_event('save', name, experiences=len(buffer))
        return True

    def load_replay_buffer(self, buffer: ReplayBuffer, name: Optional[str] = None) -> bool:
        """
        Replace buffer contents with the stored records.

        Invalid records are skipped; of the valid ones only the most recent
        capacity records are kept.
        """
        name = name or self.config.REPLAY_BUFFER_NAME
        records = self._read_json(name)
        if records is None:
            return False
        if not isinstance(records, list):
            logger.warning(f"Replay buffer blob {name} is not a list")
            return False

        valid = buffer.valid_experiences(records)
        loaded = buffer.replace(valid)
        log_model_event(
            'load', name,
            experiences=loaded,
            skipped=len(records) - len(valid),
            truncated=len(valid) - loaded,
        )
        return True

    # ------------------------------------------------------------------
    # Whole session
    # ------------------------------------------------------------------

    def save_session(self, agent) -> bool:
        """Save model, replay buffer and policy state (all three attempted)."""
        model_ok = self.save_model(agent.network)
        buffer_ok = self.save_replay_buffer(agent.memory)
        policy_ok = self._write_json(self.config.POLICY_STATE_NAME, agent.policy_state_dict())
        return model_ok and buffer_ok and policy_ok

    def restore_session(self, agent) -> bool:
        """
        Restore whatever parts of a saved session exist.

        Returns:
            True if the model was restored (the buffer and policy state are
            optional extras)
        """
        model_ok = self.load_model(agent.network)
        self.load_replay_buffer(agent.memory)

        policy = self._read_json(self.config.POLICY_STATE_NAME)
        if policy is not None:
            agent.load_policy_state_dict(policy)

        return model_ok
