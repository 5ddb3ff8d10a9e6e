"""
Tests for episode history and performance metrics.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.ai.metrics import EpisodeHistory, EpisodeRecord, PerformanceMetrics


class TestEpisodeHistory:

    def test_starts_empty(self):
        history = EpisodeHistory()
        assert len(history) == 0
        assert history.average_reward(10) == 0.0
        assert history.recent_rewards(10) == []

    def test_bounded_oldest_dropped(self):
        history = EpisodeHistory(max_length=3)
        for i in range(5):
            history.add(total_reward=float(i), exploration_rate=0.2, timestamp=float(i))
        assert len(history) == 3
        assert [r.timestamp for r in history.records()] == [2.0, 3.0, 4.0]

    def test_average_uses_last_n(self):
        history = EpisodeHistory()
        for reward in [100.0] * 5 + [1.0, 2.0, 3.0]:
            history.add(total_reward=reward, exploration_rate=0.1)
        assert history.average_reward(3) == pytest.approx(2.0)
        assert history.recent_rewards(3) == [1.0, 2.0, 3.0]

    def test_recent_with_zero(self):
        history = EpisodeHistory()
        history.add(1.0, 0.1)
        assert history.recent(0) == []

    def test_clear(self):
        history = EpisodeHistory()
        history.add(1.0, 0.1)
        history.clear()
        assert len(history) == 0


class TestRecords:

    def test_episode_record_dict(self):
        record = EpisodeRecord(timestamp=1.5, total_reward=-8.9, exploration_rate=0.19)
        assert record.to_dict() == {'timestamp': 1.5, 'totalReward': -8.9, 'explorationRate': 0.19}

    def test_performance_metrics_dict(self):
        metrics = PerformanceMetrics(
            exploration_rate=0.1,
            replay_buffer_size=12,
            episode_count=2,
            average_reward=-4.0,
            recent_rewards=[-3.0, -5.0],
        )
        assert metrics.to_dict() == {
            'explorationRate': 0.1,
            'replayBufferSize': 12,
            'episodeCount': 2,
            'averageReward': -4.0,
            'recentRewards': [-3.0, -5.0],
        }
