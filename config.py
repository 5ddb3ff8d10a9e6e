"""
Configuration file for the Lane Runner Brain
============================================

All hyperparameters, reward weights, and persistence options are centralized here.
Modify these values to experiment with different learning configurations.

Usage:
    from config import Config
    cfg = Config()
    print(cfg.LEARNING_RATE)

    # Options coming from a JSON settings file use the camelCase names
    cfg = Config.from_dict({'learningRate': 0.05, 'miniBatchSize': 16})
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional


# Number of feature slots the encoder writes before the reserved tail:
# lane one-hot (3) + lane flags (6) + powerups (3) + score + coins
ENCODED_FEATURES: int = 14

SUPPORTED_ACTIVATIONS = ('sigmoid', 'relu', 'tanh')


@dataclass
class RewardWeights:
    """
    Reward table used by the decision policy.

    ``obstacle`` and ``mission`` are recognized so settings files that carry
    them load cleanly, but the reward function does not read them.
    """
    coin: float = 1.0
    obstacle: float = -5.0
    survival: float = 0.1
    distance: float = 0.01
    powerup: float = 3.0
    mission: float = 5.0
    death: float = -10.0

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RewardWeights':
        """
        Build a complete table from a partial mapping.

        A supplied table replaces the defaults as a whole: weights it does
        not name are 0.
        """
        known = {f.name for f in fields(cls)}
        values = {name: 0.0 for name in known}
        for name, value in data.items():
            if name in known:
                values[name] = float(value)
        return cls(**values)


@dataclass
class Config:
    """
    Central configuration for the learning engine.

    Sections:
    1. Neural Network - Architecture configuration
    2. Policy - Q-learning hyperparameters
    3. Exploration - Epsilon-greedy settings
    4. Replay - Experience replay settings
    5. Rewards - Reward shaping table
    6. Features - Feature encoder normalization
    7. System - Paths, logging and seeding
    """

    # =========================================================================
    # NEURAL NETWORK ARCHITECTURE
    # =========================================================================

    # Input layer size (feature vector length). Slots past ENCODED_FEATURES
    # are reserved and always 0.
    INPUT_SIZE: int = 20

    # Hidden layer size (single hidden layer)
    HIDDEN_SIZE: int = 16

    # Output layer size: LEFT, RIGHT, JUMP, ROLL
    OUTPUT_SIZE: int = 4

    # Activation function: 'sigmoid', 'relu', 'tanh'
    ACTIVATION: str = 'sigmoid'

    # =========================================================================
    # POLICY HYPERPARAMETERS
    # =========================================================================

    # Learning rate - used both as the network step size and as the
    # Q-value blending factor (alpha)
    LEARNING_RATE: float = 0.1

    # Discount factor (gamma) - How much to value future rewards
    DISCOUNT_FACTOR: float = 0.95

    # Output index used for action labels the network does not know.
    # None makes unknown labels raise UnmappedActionError instead.
    UNMAPPED_ACTION_INDEX: Optional[int] = 0

    # =========================================================================
    # EXPLORATION SETTINGS (Epsilon-Greedy)
    # =========================================================================

    # Starting exploration rate
    EXPLORATION_RATE: float = 0.2

    # Minimum exploration rate
    MIN_EXPLORATION_RATE: float = 0.01

    # Decay applied after every training batch: epsilon *= EXPLORATION_DECAY
    EXPLORATION_DECAY: float = 0.995

    # How strongly the skill estimate scales exploration down:
    # epsilon *= (1 - skill * SKILL_SENSITIVITY)
    SKILL_SENSITIVITY: float = 0.5

    # =========================================================================
    # EXPERIENCE REPLAY
    # =========================================================================

    # Replay buffer capacity
    REPLAY_BUFFER_SIZE: int = 1000

    # Experiences sampled per training step (also the minimum buffer fill)
    MINI_BATCH_SIZE: int = 32

    # =========================================================================
    # REWARD SHAPING
    # =========================================================================

    REWARDS: RewardWeights = field(default_factory=RewardWeights)

    # =========================================================================
    # FEATURE ENCODING
    # =========================================================================

    # Score and coin counts are divided by these and clipped to [0, 1]
    SCORE_NORMALIZER: float = 100_000.0
    COIN_NORMALIZER: float = 1_000.0

    # Maximum number of powerup flags written into the feature vector
    MAX_POWERUP_FLAGS: int = 3

    # =========================================================================
    # METRICS
    # =========================================================================

    # Number of finished episodes kept in the reward history
    EPISODE_HISTORY_LENGTH: int = 100

    # Number of episodes averaged for the reported average reward
    METRICS_WINDOW: int = 10

    # =========================================================================
    # SYSTEM SETTINGS
    # =========================================================================

    # Storage blob names
    MODEL_NAME: str = 'model/model.json'
    REPLAY_BUFFER_NAME: str = 'data/replay_buffer.json'
    POLICY_STATE_NAME: str = 'data/policy_state.json'

    # Paths
    DATA_DIR: str = 'brain_data'
    LOG_DIR: str = 'logs'

    # Write a log file under LOG_DIR in addition to the console
    LOG_TO_FILE: bool = False

    # Logging level name: 'DEBUG', 'INFO', 'WARNING', 'ERROR'
    LOG_LEVEL: str = 'INFO'

    # Random seed for reproducibility (None for random)
    SEED: Optional[int] = None

    # Option names accepted by from_dict, mapped to field names
    _OPTION_NAMES = {
        'inputSize': 'INPUT_SIZE',
        'hiddenSize': 'HIDDEN_SIZE',
        'outputSize': 'OUTPUT_SIZE',
        'activation': 'ACTIVATION',
        'learningRate': 'LEARNING_RATE',
        'discountFactor': 'DISCOUNT_FACTOR',
        'explorationRate': 'EXPLORATION_RATE',
        'minExplorationRate': 'MIN_EXPLORATION_RATE',
        'explorationDecay': 'EXPLORATION_DECAY',
        'replayBufferSize': 'REPLAY_BUFFER_SIZE',
        'miniBatchSize': 'MINI_BATCH_SIZE',
        'skillSensitivity': 'SKILL_SENSITIVITY',
        'unmappedActionIndex': 'UNMAPPED_ACTION_INDEX',
        'seed': 'SEED',
    }

    def __post_init__(self):
        """Validation."""
        assert self.INPUT_SIZE >= ENCODED_FEATURES, \
            f"INPUT_SIZE must be at least {ENCODED_FEATURES} to hold the encoded features"
        assert self.HIDDEN_SIZE > 0, "HIDDEN_SIZE must be positive"
        assert 0 < self.OUTPUT_SIZE <= 4, "OUTPUT_SIZE must be between 1 and 4 (one output per gameplay action)"
        assert self.ACTIVATION in SUPPORTED_ACTIVATIONS, \
            f"ACTIVATION must be one of {SUPPORTED_ACTIVATIONS}"
        assert self.LEARNING_RATE > 0, "Learning rate must be positive"
        assert 0 < self.DISCOUNT_FACTOR <= 1, "Discount factor must be in (0, 1]"
        assert 0 <= self.MIN_EXPLORATION_RATE <= self.EXPLORATION_RATE <= 1, \
            "Exploration rates must satisfy 0 <= min <= start <= 1"
        assert 0 < self.EXPLORATION_DECAY <= 1, "Exploration decay must be in (0, 1]"
        assert 0 <= self.SKILL_SENSITIVITY <= 1, "Skill sensitivity must be in [0, 1]"
        assert self.MINI_BATCH_SIZE > 0, "Mini-batch size must be positive"
        assert self.MINI_BATCH_SIZE <= self.REPLAY_BUFFER_SIZE, \
            "Mini-batch size cannot exceed replay buffer capacity"
        assert 0 <= self.MAX_POWERUP_FLAGS <= 3, "At most 3 powerup flags fit in the feature layout"
        assert self.EPISODE_HISTORY_LENGTH > 0, "Episode history length must be positive"

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> 'Config':
        """
        Build a config from camelCase options (settings file format).

        Unknown options are ignored. A ``rewards`` table replaces the whole
        default reward table (see RewardWeights.from_dict).
        """
        kwargs: Dict[str, Any] = {}
        for option, value in options.items():
            if option == 'rewards' and isinstance(value, Mapping):
                kwargs['REWARDS'] = RewardWeights.from_dict(value)
            elif option in cls._OPTION_NAMES:
                kwargs[cls._OPTION_NAMES[option]] = value
        return cls(**kwargs)


# Global config instance for easy importing
config = Config()


if __name__ == "__main__":
    # Print configuration summary
    cfg = Config()
    print("=" * 60)
    print("Lane Runner Brain - Configuration Summary")
    print("=" * 60)
    print(f"\nNeural Network:")
    print(f"   Input size: {cfg.INPUT_SIZE}")
    print(f"   Hidden size: {cfg.HIDDEN_SIZE}")
    print(f"   Output size: {cfg.OUTPUT_SIZE}")
    print(f"   Activation: {cfg.ACTIVATION}")
    print(f"\nPolicy:")
    print(f"   Learning rate: {cfg.LEARNING_RATE}")
    print(f"   Gamma: {cfg.DISCOUNT_FACTOR}")
    print(f"   Mini-batch: {cfg.MINI_BATCH_SIZE} / buffer {cfg.REPLAY_BUFFER_SIZE}")
    print(f"\nExploration:")
    print(f"   Epsilon: {cfg.EXPLORATION_RATE} -> {cfg.MIN_EXPLORATION_RATE}")
    print(f"   Decay: {cfg.EXPLORATION_DECAY}")
    print("=" * 60)
