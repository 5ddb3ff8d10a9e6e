"""
Q-Learning Agent
================

The decision engine: owns the network, the replay buffer and the policy
state, and turns each perceived game state into one control action.

Key Components:
    1. Feature Encoder - Game state -> feature vector
    2. Network         - Scores LEFT / RIGHT / JUMP / ROLL
    3. Replay Buffer   - Stores transitions for training
    4. Epsilon-Greedy  - Balances exploration vs exploitation

Per control tick:
    1. select_action(state)       -> action for the actuation layer
    2. (actuation executes it, perception observes the result)
    3. update(next_state, dead)   -> reward, store transition, train

Training step (runs once the buffer holds a mini-batch):
    1. Sample MINI_BATCH_SIZE transitions uniformly, with replacement
    2. target = r                          if terminal
              = r + gamma * max Q(s')      otherwise
    3. Only the taken action's output moves toward the target:
           Q(s, a) <- (1 - alpha) * Q(s, a) + alpha * target
       every other output keeps its prediction (zero error)
    4. Decay epsilon, then scale it down by the player's skill estimate

Policy states:
    Idle       - no reference state/action (start of an episode)
    Observing  - holds last_state/last_action, waiting for the outcome
"""

import random
from typing import Any, Callable, Dict, Optional, Union

import numpy as np

from config import Config
from .actions import Action, ALL_ACTIONS, action_to_index
from .errors import InvalidExperienceError, UnmappedActionError
from .features import FeatureEncoder, GameState, GameStateLike, as_game_state
from .metrics import EpisodeHistory, PerformanceMetrics
from .network import NeuralNetwork
from .replay_buffer import Experience, ReplayBuffer
from src.utils.logger import get_logger, log_episode_metrics

logger = get_logger(__name__)


# Returns the current skill estimate in [0, 1], or None when unknown
SkillProvider = Callable[[], Optional[float]]


class Agent:
    """
    Epsilon-greedy Q-learning agent.

    One instance is the whole learning engine: construct it once and pass
    it to whatever drives the game loop.

    Attributes:
        network: Q-network used for action selection and training
        memory: Experience replay buffer
        epsilon: Current exploration rate
        history: Finished-episode reward history

    Example:
        >>> agent = Agent(Config(SEED=7))
        >>> action = agent.select_action(game_state)
        >>> agent.update(next_game_state, is_terminal=False)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        network: Optional[NeuralNetwork] = None,
        skill_provider: Optional[SkillProvider] = None,
        seed: Optional[int] = None
    ):
        """
        Initialize the agent.

        Args:
            config: Configuration object
            network: Pre-built network (default: fresh random network)
            skill_provider: Difficulty collaborator returning a skill in [0, 1]
            seed: Seed for weights, exploration and sampling (default: config.SEED)
        """
        self.config = config or Config()
        seed = self.config.SEED if seed is None else seed

        self._rng = random.Random(seed)
        np_rng = np.random.default_rng(seed)

        self.encoder = FeatureEncoder(self.config)
        self.network = network or NeuralNetwork(
            input_size=self.config.INPUT_SIZE,
            hidden_size=self.config.HIDDEN_SIZE,
            output_size=self.config.OUTPUT_SIZE,
            learning_rate=self.config.LEARNING_RATE,
            activation=self.config.ACTIVATION,
            rng=np_rng,
        )
        self.memory = ReplayBuffer(
            capacity=self.config.REPLAY_BUFFER_SIZE,
            state_size=self.config.INPUT_SIZE,
            rng=np_rng,
        )
        self.skill_provider = skill_provider

        # Exploration
        self.epsilon = self.config.EXPLORATION_RATE

        # Per-episode policy state
        self.last_state: Optional[GameState] = None
        self.last_action: Optional[Action] = None
        self.last_reward = 0.0

        self.history = EpisodeHistory(self.config.EPISODE_HISTORY_LENGTH)

        # Training step counter (counts completed mini-batches)
        self.steps = 0

        # Whether the last selected action came from the exploration branch
        self._last_action_explored = False
        self.explored_actions = 0
        self.greedy_actions = 0

    # ------------------------------------------------------------------
    # Action selection
    # ------------------------------------------------------------------

    @property
    def is_observing(self) -> bool:
        """True once a reference state and action exist for this episode."""
        return self.last_state is not None and self.last_action is not None

    @property
    def replay_buffer_size(self) -> int:
        return len(self.memory)

    @property
    def last_action_explored(self) -> bool:
        return self._last_action_explored

    def get_q_values(self, state: GameStateLike) -> Optional[np.ndarray]:
        """Network output for a game state (None if the forward pass fails)."""
        return self.network.forward(self.encoder.extract(state))

    def select_action(self, state: GameStateLike) -> Action:
        """
        Select an action using the epsilon-greedy policy.

        Exploration draws uniformly from all five labels, NONE included.
        Exploitation only ever returns one of the four network actions.

        Args:
            state: Current game state

        Returns:
            Selected action (also recorded as last_action)
        """
        if self._rng.random() < self.epsilon:
            self._last_action_explored = True
            self.explored_actions += 1
            action = self._rng.choice(ALL_ACTIONS)
        else:
            self._last_action_explored = False
            self.greedy_actions += 1
            action = self._greedy_action(state)

        self.last_state = as_game_state(state)
        self.last_action = action
        return action

    def _greedy_action(self, state: GameStateLike) -> Action:
        prediction = self.network.predict(self.encoder.extract(state))
        if prediction is None:
            logger.warning("Prediction failed, falling back to NONE")
            return Action.NONE
        return prediction.action

    # ------------------------------------------------------------------
    # Reward
    # ------------------------------------------------------------------

    def calculate_reward(
        self,
        current: GameStateLike,
        previous: GameStateLike,
        action: Union[Action, str, None],
        is_terminal: bool
    ) -> float:
        """
        Reward for the transition previous -> current.

        Drops in score or coins are not penalized; only gains count.

        Args:
            current: State after the action
            previous: State before the action
            action: Action taken (does not affect the reward)
            is_terminal: Whether the character died

        Returns:
            Reward (0.0 if either state is missing)
        """
        current_state = as_game_state(current)
        previous_state = as_game_state(previous)
        if current_state is None or previous_state is None:
            return 0.0

        weights = self.config.REWARDS
        reward = weights.survival

        if current_state.score is not None and previous_state.score is not None:
            reward += max(0.0, current_state.score - previous_state.score) * weights.distance

        if current_state.coins is not None and previous_state.coins is not None:
            reward += max(0.0, current_state.coins - previous_state.coins) * weights.coin

        # Only comparable when both frames report their powerups
        if current_state.powerups is not None and previous_state.powerups is not None:
            new_powerups = [p for p in current_state.powerups if p not in previous_state.powerups]
            reward += len(new_powerups) * weights.powerup

        if is_terminal:
            reward += weights.death

        return reward

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def update(self, next_state: GameStateLike, is_terminal: bool = False) -> Optional[float]:
        """
        Observe the outcome of the last action.

        In the Idle state this only records next_state as the reference.
        Otherwise it computes the reward, stores the transition, runs a
        training step and moves the reference to next_state.

        Args:
            next_state: State observed after the last action
            is_terminal: Whether the character died

        Returns:
            The transition's reward, or None if nothing was recorded
        """
        next_game_state = as_game_state(next_state)

        if not self.is_observing:
            self.last_state = next_game_state
            return None

        reward = self.calculate_reward(next_game_state, self.last_state, self.last_action, is_terminal)
        self.last_reward = reward

        try:
            self.memory.push(
                self.encoder.extract(self.last_state),
                self.last_action.value,
                reward,
                self.encoder.extract(next_game_state),
                is_terminal,
            )
        except InvalidExperienceError as e:
            logger.warning(f"Transition not stored: {e}")

        self.learn()

        self.last_state = next_game_state

        if is_terminal:
            self.history.add(total_reward=self.last_reward, exploration_rate=self.epsilon)
            log_episode_metrics(
                episode=len(self.history),
                total_reward=self.last_reward,
                epsilon=self.epsilon,
                buffer_size=len(self.memory),
                avg_reward=self.history.average_reward(self.config.METRICS_WINDOW),
            )

        return reward

    def learn(self) -> Optional[float]:
        """
        Perform one Q-learning training step from the replay buffer.

        Returns:
            Mean absolute output error over the trained samples, or None if
            the buffer does not yet hold a mini-batch
        """
        batch_size = self.config.MINI_BATCH_SIZE
        if not self.memory.is_ready(batch_size):
            return None

        errors = []
        for experience in self.memory.sample(batch_size):
            try:
                error = self._train_on_experience(experience)
            except (InvalidExperienceError, UnmappedActionError) as e:
                logger.debug(f"Skipping training sample: {e}")
                continue
            if error is not None:
                errors.append(error)

        self.steps += 1
        self.decay_epsilon()

        return float(np.mean(errors)) if errors else 0.0

    def _train_on_experience(self, experience: Experience) -> Optional[float]:
        if not experience.action:
            raise InvalidExperienceError("Experience has no action")

        current_q = self.network.forward(experience.state)
        next_q = self.network.forward(experience.next_state)
        if current_q is None or next_q is None:
            raise InvalidExperienceError("Experience states do not fit the network")

        max_next_q = float(np.max(next_q)) if next_q.size else 0.0
        target_q = experience.reward
        if not experience.terminal:
            target_q += self.config.DISCOUNT_FACTOR * max_next_q

        action_index = action_to_index(experience.action, self.config.UNMAPPED_ACTION_INDEX)

        # Only the taken action moves; NONE (index 4) has no output to move
        updated_q = current_q.copy()
        if 0 <= action_index < updated_q.size:
            alpha = self.config.LEARNING_RATE
            updated_q[action_index] = (1 - alpha) * updated_q[action_index] + alpha * target_q

        return self.network.train(experience.state, updated_q)

    # ------------------------------------------------------------------
    # Exploration schedule
    # ------------------------------------------------------------------

    def decay_epsilon(self) -> None:
        """
        Decay epsilon toward its floor, then scale by the skill estimate.

            epsilon = max(min, epsilon * decay)
            epsilon = max(min, epsilon * (1 - skill * SKILL_SENSITIVITY))
        """
        floor = self.config.MIN_EXPLORATION_RATE
        self.epsilon = max(floor, self.epsilon * self.config.EXPLORATION_DECAY)

        skill = self._current_skill()
        if skill is not None:
            scale = 1.0 - skill * self.config.SKILL_SENSITIVITY
            self.epsilon = max(floor, self.epsilon * scale)

    def _current_skill(self) -> Optional[float]:
        if self.skill_provider is None:
            return None
        try:
            skill = self.skill_provider()
        except Exception as e:
            logger.warning(f"Skill estimate unavailable: {e}")
            return None
        if skill is None:
            return None
        try:
            skill = float(skill)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric skill estimate: {skill!r}")
            return None
        if not np.isfinite(skill):
            return None
        return min(1.0, max(0.0, skill))

    # ------------------------------------------------------------------
    # Episode lifecycle and metrics
    # ------------------------------------------------------------------

    def reset_episode(self) -> None:
        """Return to Idle. Epsilon and the replay buffer carry over."""
        self.last_state = None
        self.last_action = None
        self.last_reward = 0.0
        self._last_action_explored = False

    def get_performance_metrics(self) -> PerformanceMetrics:
        window = self.config.METRICS_WINDOW
        return PerformanceMetrics(
            exploration_rate=self.epsilon,
            replay_buffer_size=self.replay_buffer_size,
            episode_count=len(self.history),
            average_reward=self.history.average_reward(window),
            recent_rewards=self.history.recent_rewards(window),
        )

    def policy_state_dict(self) -> Dict[str, Any]:
        """State that survives restarts besides the model and buffer."""
        return {
            'explorationRate': self.epsilon,
            'steps': self.steps,
            'episodes': [record.to_dict() for record in self.history.records()],
        }

    def load_policy_state_dict(self, data: Any) -> bool:
        """Restore policy_state_dict output; malformed data is ignored."""
        try:
            epsilon = float(data['explorationRate'])
            steps = int(data.get('steps', 0))
            episodes = [
                (float(e['totalReward']), float(e['explorationRate']), float(e['timestamp']))
                for e in data.get('episodes', [])
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Policy state rejected: {e}")
            return False

        floor = self.config.MIN_EXPLORATION_RATE
        self.epsilon = min(1.0, max(floor, epsilon))
        self.steps = steps
        self.history.clear()
        for total_reward, exploration_rate, timestamp in episodes:
            self.history.add(total_reward, exploration_rate, timestamp)
        return True
