"""
Episode history and performance metrics consumed by observability tooling.
"""

import time
from collections import deque
from dataclasses import dataclass, field, asdict
from typing import Any, Deque, Dict, List, Optional

import numpy as np


@dataclass(frozen=True)
class EpisodeRecord:
    """Outcome of one finished episode."""
    timestamp: float
    total_reward: float
    exploration_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'totalReward': self.total_reward,
            'explorationRate': self.exploration_rate,
        }


@dataclass
class PerformanceMetrics:
    """Snapshot of the learning engine for dashboards and logs."""
    exploration_rate: float
    replay_buffer_size: int
    episode_count: int
    average_reward: float
    recent_rewards: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase mapping, the format observability tooling reads."""
        data = asdict(self)
        return {
            'explorationRate': data['exploration_rate'],
            'replayBufferSize': data['replay_buffer_size'],
            'episodeCount': data['episode_count'],
            'averageReward': data['average_reward'],
            'recentRewards': data['recent_rewards'],
        }


class EpisodeHistory:
    """
    Bounded history of finished episodes (oldest dropped first).

    Example:
        >>> history = EpisodeHistory(max_length=100)
        >>> history.add(total_reward=-8.9, exploration_rate=0.19)
        >>> history.average_reward(10)
        -8.9
    """

    def __init__(self, max_length: int = 100):
        self.max_length = max_length
        self._records: Deque[EpisodeRecord] = deque(maxlen=max_length)

    def add(
        self,
        total_reward: float,
        exploration_rate: float,
        timestamp: Optional[float] = None
    ) -> EpisodeRecord:
        record = EpisodeRecord(
            timestamp=time.time() if timestamp is None else timestamp,
            total_reward=float(total_reward),
            exploration_rate=float(exploration_rate),
        )
        self._records.append(record)
        return record

    def recent(self, n: int) -> List[EpisodeRecord]:
        if n <= 0:
            return []
        return list(self._records)[-n:]

    def recent_rewards(self, n: int) -> List[float]:
        return [record.total_reward for record in self.recent(n)]

    def average_reward(self, n: int) -> float:
        """Mean reward of the last n episodes (0.0 with no history)."""
        rewards = self.recent_rewards(n)
        if not rewards:
            return 0.0
        return float(np.mean(rewards))

    def records(self) -> List[EpisodeRecord]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
