"""
Experience Replay Buffer
========================

A bounded memory of past transitions that the policy samples to train on.

Why Experience Replay?
    1. Breaks correlation between consecutive frames
       (Neural networks learn poorly from correlated data)

    2. Improves sample efficiency
       (Each transition can be used for multiple training steps)

How it works:
    1. The policy stores (state, action, reward, next_state, terminal) tuples
    2. During training, it samples random batches from the buffer
    3. Old experiences are discarded when the buffer is full (strict FIFO)

References:
    Mnih et al., 2015 - "Human-level control through deep reinforcement learning"
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import numpy as np

from .errors import InvalidExperienceError


@dataclass(frozen=True)
class Experience:
    """
    One observed transition.

        - state: Feature vector before the action
        - action: Action label taken ('left', 'right', 'jump', 'roll', 'none')
        - reward: Reward received
        - next_state: Feature vector after the action
        - terminal: Whether the transition ended the episode
        - timestamp: Seconds since the epoch when the transition was stored
    """
    state: np.ndarray
    action: Optional[str]
    reward: float
    next_state: np.ndarray
    terminal: bool
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.tolist(),
            'action': self.action,
            'reward': self.reward,
            'nextState': self.next_state.tolist(),
            'terminal': self.terminal,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Experience':
        """
        Parse a persisted record ('done' is accepted for 'terminal').

        Raises:
            InvalidExperienceError: If a field is missing or malformed
        """
        if not isinstance(data, Mapping):
            raise InvalidExperienceError("Experience record is not an object")
        if data.get('state') is None or data.get('nextState') is None:
            raise InvalidExperienceError("Experience record is missing a state")
        try:
            state = np.asarray(data['state'], dtype=np.float64)
            next_state = np.asarray(data['nextState'], dtype=np.float64)
            reward = float(data['reward'])
            timestamp = float(data.get('timestamp') or 0.0)
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidExperienceError(f"Malformed experience record: {e}") from e
        terminal = data.get('terminal', data.get('done', False))
        action = data.get('action')
        return cls(
            state=state,
            action=None if action is None else str(action),
            reward=reward,
            next_state=next_state,
            terminal=bool(terminal),
            timestamp=timestamp,
        )


class ReplayBuffer:
    """
    Fixed-size FIFO buffer of experiences with contiguous numpy storage.

    Optimizations:
        - Contiguous numpy arrays for the state vectors (cache-friendly)
        - Circular buffer: eviction is an index bump, not a list shift
        - Lazy initialization to support unknown state_size at creation

    Iteration yields experiences oldest first.

    Example:
        >>> buffer = ReplayBuffer(capacity=1000)
        >>> buffer.push(state, 'jump', 1.1, next_state, False)
        >>> batch = buffer.sample(batch_size=32)
    """

    def __init__(
        self,
        capacity: int,
        state_size: int = 0,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize the replay buffer.

        Args:
            capacity: Maximum number of experiences to store
            state_size: Size of state vector (auto-detected on first push if 0)
            rng: Generator used for sampling
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._state_size = state_size
        self._size = 0  # Current number of experiences stored
        self._position = 0  # Current write position for circular buffer
        self._initialized = False
        self._rng = rng if rng is not None else np.random.default_rng()

        if state_size > 0:
            self._init_arrays(state_size)

    def _init_arrays(self, state_size: int) -> None:
        """Initialize contiguous storage arrays."""
        self._state_size = state_size
        self.states = np.zeros((self.capacity, state_size), dtype=np.float64)
        self.actions = np.empty(self.capacity, dtype=object)
        self.rewards = np.zeros(self.capacity, dtype=np.float64)
        self.next_states = np.zeros((self.capacity, state_size), dtype=np.float64)
        self.terminals = np.zeros(self.capacity, dtype=bool)
        self.timestamps = np.zeros(self.capacity, dtype=np.float64)
        self._initialized = True

    def _check_vector(self, name: str, vector: Any, size: Optional[int] = None) -> np.ndarray:
        """Validate one state vector; size defaults to the buffer's state size."""
        if size is None:
            size = self._state_size if self._initialized else 0
        if vector is None:
            raise InvalidExperienceError(f"Experience is missing its {name}")
        try:
            array = np.asarray(vector, dtype=np.float64).ravel()
        except (TypeError, ValueError) as e:
            raise InvalidExperienceError(f"{name} is not numeric: {e}") from e
        if array.size == 0:
            raise InvalidExperienceError(f"{name} is empty")
        if size and array.shape[0] != size:
            raise InvalidExperienceError(
                f"{name} has {array.shape[0]} features, expected {size}"
            )
        if not np.all(np.isfinite(array)):
            raise InvalidExperienceError(f"{name} contains non-finite values")
        return array

    def push(
        self,
        state: np.ndarray,
        action: Optional[str],
        reward: float,
        next_state: np.ndarray,
        terminal: bool,
        timestamp: Optional[float] = None
    ) -> None:
        """
        Add an experience to the buffer.

        When the buffer is full, the oldest experience is overwritten.

        Args:
            state: Feature vector before the action
            action: Action label taken
            reward: Reward received
            next_state: Feature vector after the action
            terminal: Whether the episode ended
            timestamp: Storage time (defaults to now)

        Raises:
            InvalidExperienceError: If a state vector is missing or has the
                wrong length
        """
        state_array = self._check_vector('state', state)
        next_array = self._check_vector('next_state', next_state)
        if state_array.shape != next_array.shape:
            raise InvalidExperienceError("state and next_state lengths differ")

        # Lazy initialization on first push
        if not self._initialized:
            self._init_arrays(state_array.shape[0])

        np.copyto(self.states[self._position], state_array)
        self.actions[self._position] = action
        self.rewards[self._position] = reward
        np.copyto(self.next_states[self._position], next_array)
        self.terminals[self._position] = bool(terminal)
        self.timestamps[self._position] = time.time() if timestamp is None else timestamp

        # Update position and size
        self._position = (self._position + 1) % self.capacity
        self._size = min(self._size + 1, self.capacity)

    def append(self, experience: Experience) -> None:
        """Add an Experience record (see push)."""
        self.push(
            experience.state,
            experience.action,
            experience.reward,
            experience.next_state,
            experience.terminal,
            experience.timestamp,
        )

    def extend(self, experiences: Iterable[Experience]) -> int:
        """
        Append experiences in order, skipping invalid ones.

        Returns:
            Number of experiences stored
        """
        stored = 0
        for experience in experiences:
            try:
                self.append(experience)
            except InvalidExperienceError:
                continue
            stored += 1
        return stored

    def _ordered_indices(self) -> np.ndarray:
        """Storage indices from oldest to newest."""
        start = (self._position - self._size) % self.capacity
        return (start + np.arange(self._size)) % self.capacity

    def _experience_at(self, index: int) -> Experience:
        return Experience(
            state=self.states[index].copy(),
            action=self.actions[index],
            reward=float(self.rewards[index]),
            next_state=self.next_states[index].copy(),
            terminal=bool(self.terminals[index]),
            timestamp=float(self.timestamps[index]),
        )

    def sample(self, batch_size: int) -> List[Experience]:
        """
        Sample a random batch of experiences, uniformly with replacement.

        Duplicates within a batch are possible.

        Args:
            batch_size: Number of experiences to sample

        Returns:
            List of Experience copies

        Raises:
            RuntimeError: If the buffer is empty
        """
        if not self._initialized or self._size == 0:
            raise RuntimeError("Cannot sample from an empty buffer. Call push() first.")

        ordered = self._ordered_indices()
        picks = self._rng.integers(0, self._size, size=batch_size)
        return [self._experience_at(int(ordered[i])) for i in picks]

    def __iter__(self) -> Iterator[Experience]:
        for index in self._ordered_indices():
            yield self._experience_at(int(index))

    def __len__(self) -> int:
        """Return current buffer size."""
        return self._size

    def is_ready(self, batch_size: int) -> bool:
        """Check if buffer has enough experiences for sampling."""
        return self._size >= batch_size

    def clear(self) -> None:
        """Clear all experiences from the buffer."""
        self._size = 0
        self._position = 0

    def to_records(self) -> List[Dict[str, Any]]:
        """Plain records, oldest first (persistence format)."""
        return [experience.to_dict() for experience in self]

    def valid_experiences(self, records: Iterable[Any]) -> List[Experience]:
        """
        Parse persisted records, dropping every one this buffer cannot store.

        An empty buffer with no fixed state size takes its size from the
        first valid record.
        """
        valid = []
        size = self._state_size if self._initialized else 0
        for record in records:
            try:
                experience = Experience.from_dict(record)
                state = self._check_vector('state', experience.state, size)
                self._check_vector('next_state', experience.next_state, state.shape[0])
            except InvalidExperienceError:
                continue
            size = state.shape[0]
            valid.append(experience)
        return valid

    def replace(self, experiences: List[Experience]) -> int:
        """
        Replace the contents, keeping the most recent capacity experiences.

        Returns:
            Number of experiences stored
        """
        self.clear()
        return self.extend(experiences[-self.capacity:])

    def load_records(self, records: Iterable[Any]) -> int:
        """
        Replace the contents with persisted records.

        Invalid records are dropped before truncation, so when more than
        capacity records are valid the most recent valid ones are kept.

        Returns:
            Number of experiences loaded
        """
        return self.replace(self.valid_experiences(records))


# Testing
if __name__ == "__main__":
    print("Testing ReplayBuffer (contiguous numpy storage)...")

    buffer = ReplayBuffer(capacity=100)

    state_size = 20
    for i in range(50):
        state = np.random.rand(state_size)
        next_state = np.random.rand(state_size)
        buffer.push(state, 'jump', float(np.random.randn()), next_state, np.random.random() > 0.9)

    print(f"Buffer size: {len(buffer)}")
    print(f"Is ready for batch of 32: {buffer.is_ready(32)}")

    batch = buffer.sample(32)
    print(f"Sampled {len(batch)} experiences, first action: {batch[0].action}")

    for i in range(100):  # Overflow capacity
        state = np.random.rand(state_size)
        buffer.push(state, 'none', 0.0, state, False)

    print(f"Buffer size after overflow: {len(buffer)} (capacity: {buffer.capacity})")
