"""
Tests for the Replay Buffer.

These tests verify:
    - Buffer initialization
    - Experience storage (push)
    - Strict FIFO eviction when full
    - Sampling behavior (uniform, with replacement)
    - Record persistence format and load truncation
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.ai.errors import InvalidExperienceError
from src.ai.replay_buffer import Experience, ReplayBuffer


@pytest.fixture
def state_size():
    """State size for testing."""
    return 20


@pytest.fixture
def buffer(state_size):
    """Create a replay buffer instance."""
    return ReplayBuffer(capacity=100, state_size=state_size, rng=np.random.default_rng(0))


@pytest.fixture
def sample_experience(state_size):
    """Create a sample experience tuple."""
    def _make_experience(reward=1.0, terminal=False):
        state = np.random.rand(state_size)
        next_state = np.random.rand(state_size)
        return state, 'jump', reward, next_state, terminal
    return _make_experience


class TestReplayBufferInitialization:
    """Test buffer initialization."""

    def test_buffer_starts_empty(self, buffer):
        assert len(buffer) == 0

    def test_capacity_set_correctly(self, buffer):
        assert buffer.capacity == 100

    def test_state_size_auto_detection(self):
        """State size should auto-detect on first push."""
        buffer = ReplayBuffer(capacity=10)
        buffer.push(np.zeros(7), 'left', 0.0, np.zeros(7), False)
        assert buffer._state_size == 7

    def test_zero_capacity_rejected(self):
        with pytest.raises(ValueError):
            ReplayBuffer(capacity=0)


class TestReplayBufferPush:
    """Test experience storage."""

    def test_push_increases_size(self, buffer, sample_experience):
        buffer.push(*sample_experience())
        assert len(buffer) == 1

    def test_push_stores_values(self, buffer, state_size):
        state = np.full(state_size, 0.25)
        next_state = np.full(state_size, 0.75)
        buffer.push(state, 'roll', -10.0, next_state, True, timestamp=123.0)

        stored = next(iter(buffer))
        np.testing.assert_array_equal(stored.state, state)
        np.testing.assert_array_equal(stored.next_state, next_state)
        assert stored.action == 'roll'
        assert stored.reward == -10.0
        assert stored.terminal is True
        assert stored.timestamp == 123.0

    def test_stored_copy_is_independent(self, buffer, state_size):
        state = np.zeros(state_size)
        buffer.push(state, 'left', 0.0, state, False)
        state[0] = 1.0
        assert next(iter(buffer)).state[0] == 0.0

    @pytest.mark.parametrize("state", [None, [], ['x'] * 20, np.zeros(19), np.full(20, np.inf)])
    def test_invalid_state_rejected(self, buffer, state):
        with pytest.raises(InvalidExperienceError):
            buffer.push(state, 'left', 0.0, np.zeros(20), False)
        assert len(buffer) == 0

    def test_mismatched_next_state_rejected(self):
        buffer = ReplayBuffer(capacity=10)
        with pytest.raises(InvalidExperienceError):
            buffer.push(np.zeros(5), 'left', 0.0, np.zeros(6), False)


class TestReplayBufferEviction:
    """Bounded FIFO: the oldest experience goes first."""

    def test_never_exceeds_capacity(self, state_size):
        buffer = ReplayBuffer(capacity=10)
        for i in range(25):
            buffer.push(np.zeros(state_size), 'none', 0.0, np.zeros(state_size), False)
            assert len(buffer) == min(i + 1, 10)

    def test_strict_fifo_order(self, state_size):
        buffer = ReplayBuffer(capacity=5)
        for i in range(12):
            buffer.push(np.zeros(state_size), 'left', float(i), np.zeros(state_size), False,
                        timestamp=float(i))
        assert [e.timestamp for e in buffer] == [7.0, 8.0, 9.0, 10.0, 11.0]

    def test_clear(self, buffer, sample_experience):
        for _ in range(5):
            buffer.push(*sample_experience())
        buffer.clear()
        assert len(buffer) == 0
        assert list(buffer) == []


class TestReplayBufferSample:
    """Test sampling behavior."""

    def test_sample_returns_correct_size(self, buffer, sample_experience):
        for _ in range(50):
            buffer.push(*sample_experience())
        assert len(buffer.sample(32)) == 32

    def test_sample_with_replacement(self, buffer, sample_experience):
        """A batch may be larger than the buffer; duplicates are allowed."""
        for _ in range(3):
            buffer.push(*sample_experience())
        batch = buffer.sample(30)
        assert len(batch) == 30
        assert len({e.timestamp for e in batch}) <= 3

    def test_sample_only_returns_stored(self, state_size):
        buffer = ReplayBuffer(capacity=4, rng=np.random.default_rng(1))
        for i in range(10):
            buffer.push(np.zeros(state_size), 'left', float(i), np.zeros(state_size), False)
        rewards = {e.reward for e in buffer.sample(100)}
        assert rewards <= {6.0, 7.0, 8.0, 9.0}

    def test_sample_covers_buffer(self, state_size):
        buffer = ReplayBuffer(capacity=4, rng=np.random.default_rng(2))
        for i in range(4):
            buffer.push(np.zeros(state_size), 'left', float(i), np.zeros(state_size), False)
        rewards = {e.reward for e in buffer.sample(200)}
        assert rewards == {0.0, 1.0, 2.0, 3.0}

    def test_sample_empty_raises(self, buffer):
        with pytest.raises(RuntimeError):
            buffer.sample(1)

    def test_is_ready(self, buffer, sample_experience):
        assert not buffer.is_ready(32)
        for _ in range(32):
            buffer.push(*sample_experience())
        assert buffer.is_ready(32)


class TestReplayBufferRecords:
    """Persistence record format."""

    def test_record_keys(self, buffer, sample_experience):
        buffer.push(*sample_experience())
        record = buffer.to_records()[0]
        assert set(record) == {'state', 'action', 'reward', 'nextState', 'terminal', 'timestamp'}

    def test_load_records_restores_order(self, buffer, sample_experience):
        for i in range(5):
            buffer.push(*sample_experience(reward=float(i)))
        restored = ReplayBuffer(capacity=100)
        assert restored.load_records(buffer.to_records()) == 5
        assert [e.reward for e in restored] == [0.0, 1.0, 2.0, 3.0, 4.0]

    def test_load_truncates_to_most_recent(self, state_size):
        records = [
            Experience(np.zeros(state_size), 'left', float(i), np.zeros(state_size), False, float(i)).to_dict()
            for i in range(10)
        ]
        buffer = ReplayBuffer(capacity=4)
        assert buffer.load_records(records) == 4
        assert [e.reward for e in buffer] == [6.0, 7.0, 8.0, 9.0]

    def test_load_skips_invalid_records(self, state_size):
        good = Experience(np.zeros(state_size), 'left', 1.0, np.zeros(state_size), False, 1.0).to_dict()
        records = [
            good,
            {'state': [0.0] * state_size, 'action': 'left'},  # no reward / nextState
            'not a record',
            {**good, 'state': None},
            {**good, 'state': [0.0] * (state_size - 1)},
        ]
        buffer = ReplayBuffer(capacity=10, state_size=state_size)
        assert buffer.load_records(records) == 1

    def test_non_numeric_timestamp_rejected(self, state_size):
        good = Experience(np.zeros(state_size), 'left', 1.0, np.zeros(state_size), False, 1.0).to_dict()
        with pytest.raises(InvalidExperienceError):
            Experience.from_dict({**good, 'timestamp': 'yesterday'})

        buffer = ReplayBuffer(capacity=10, state_size=state_size)
        assert buffer.load_records([good, {**good, 'timestamp': 'yesterday'}]) == 1

    def test_invalid_records_dropped_before_truncation(self, state_size):
        def record(timestamp, size=state_size):
            return {'state': [0.0] * size, 'action': 'left', 'reward': timestamp,
                    'nextState': [0.0] * size, 'terminal': False, 'timestamp': timestamp}

        records = [record(1.0), record(2.0), record(9.0, size=state_size - 1)]
        buffer = ReplayBuffer(capacity=2, state_size=state_size)
        assert buffer.load_records(records) == 2
        assert [e.reward for e in buffer] == [1.0, 2.0]
        assert [e.timestamp for e in buffer] == [1.0, 2.0]

    def test_valid_experiences_sizes_from_first_record(self, state_size):
        records = [
            {'state': [0.0] * 3, 'action': 'left', 'reward': 0.0, 'nextState': [0.0] * 3},
            {'state': [0.0] * state_size, 'action': 'left', 'reward': 1.0,
             'nextState': [0.0] * state_size},
            {'state': [1.0] * 3, 'action': 'jump', 'reward': 2.0, 'nextState': [1.0] * 3},
        ]
        valid = ReplayBuffer(capacity=10).valid_experiences(records)
        assert [e.reward for e in valid] == [0.0, 2.0]

    def test_done_alias(self, state_size):
        record = {
            'state': [0.0] * state_size, 'action': 'jump', 'reward': -10,
            'nextState': [0.0] * state_size, 'done': True,
        }
        assert Experience.from_dict(record).terminal is True

    def test_load_replaces_contents(self, buffer, sample_experience):
        for _ in range(5):
            buffer.push(*sample_experience())
        assert buffer.load_records([]) == 0
        assert len(buffer) == 0
