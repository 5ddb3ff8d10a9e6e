"""
Feature Encoder
===============

Turns a perceived game-state record into the fixed-length vector the
network consumes.

Feature layout (default INPUT_SIZE = 20):

    0-2    player lane one-hot (left, center, right)
    3-4    left lane   (obstacle, coin)
    5-6    center lane (obstacle, coin)
    7-8    right lane  (obstacle, coin)
    9-11   active powerups (one flag per powerup, up to 3)
    12     normalized score
    13     normalized coin count
    14-    reserved, always 0

Every value lies in [0, 1]. Anything that is not an active gameplay frame
encodes as all zeros.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np

from config import Config
from src.utils.logger import get_logger

logger = get_logger(__name__)


LANES = ('left', 'center', 'right')

GAMEPLAY_SCREEN = 'gameplay'


@dataclass(frozen=True)
class LaneContents:
    """What perception saw in one lane."""
    obstacles: bool = False
    coins: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> 'LaneContents':
        if not isinstance(data, Mapping):
            return cls()
        return cls(obstacles=bool(data.get('obstacles')), coins=bool(data.get('coins')))


@dataclass(frozen=True)
class GameState:
    """
    Game-state record produced by the perception layer.

    Every field has a default so partially detected frames still encode:
        screen_type:     '' (not gameplay, encodes as zeros)
        lanes:           no lanes seen (no obstacle/coin flags)
        player_position: None (no lane flag set)
        powerups:        None (not reported; encodes like an empty list)
        score, coins:    None (normalized slots stay 0)
    """
    screen_type: str = ''
    lanes: Dict[str, LaneContents] = field(default_factory=dict)
    player_position: Optional[str] = None
    powerups: Optional[List[str]] = None
    score: Optional[float] = None
    coins: Optional[float] = None

    @property
    def is_gameplay(self) -> bool:
        return self.screen_type == GAMEPLAY_SCREEN

    def lane(self, name: str) -> LaneContents:
        return self.lanes.get(name, LaneContents())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'GameState':
        """
        Build a record from perception output (camelCase keys).

        Unknown keys are ignored and malformed values fall back to the
        field defaults.
        """
        raw_lanes = data.get('lanes')
        lanes: Dict[str, LaneContents] = {}
        if isinstance(raw_lanes, Mapping):
            for name in LANES:
                if name in raw_lanes:
                    lanes[name] = LaneContents.from_dict(raw_lanes[name])

        raw_powerups = data.get('powerups')
        powerups = [str(p) for p in raw_powerups] if isinstance(raw_powerups, (list, tuple)) else None

        return cls(
            screen_type=str(data.get('screenType') or ''),
            lanes=lanes,
            player_position=data.get('playerPosition'),
            powerups=powerups,
            score=_as_number(data.get('score')),
            coins=_as_number(data.get('coins')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'screenType': self.screen_type,
            'lanes': {
                name: {'obstacles': lane.obstacles, 'coins': lane.coins}
                for name, lane in self.lanes.items()
            },
            'playerPosition': self.player_position,
            'powerups': None if self.powerups is None else list(self.powerups),
            'score': self.score,
            'coins': self.coins,
        }


GameStateLike = Union[GameState, Mapping[str, Any], None]


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if np.isfinite(number) else None


def as_game_state(state: GameStateLike) -> Optional[GameState]:
    """Coerce a perception record into a GameState (None stays None)."""
    if state is None or isinstance(state, GameState):
        return state
    if isinstance(state, Mapping):
        return GameState.from_dict(state)
    logger.warning(f"Unsupported game state type: {type(state).__name__}")
    return None


class FeatureEncoder:
    """
    Deterministic GameState -> feature vector mapping.

    Example:
        >>> encoder = FeatureEncoder(Config())
        >>> x = encoder.extract({'screenType': 'gameplay', 'playerPosition': 'center'})
        >>> x.shape
        (20,)
    """

    LANE_ONE_HOT = 0
    LANE_FLAGS = 3
    POWERUPS = 9
    SCORE = 12
    COINS = 13

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.input_size = self.config.INPUT_SIZE

    def zeros(self) -> np.ndarray:
        return np.zeros(self.input_size, dtype=np.float64)

    def extract(self, state: GameStateLike) -> np.ndarray:
        """
        Encode a game state.

        Args:
            state: GameState, raw perception mapping, or None

        Returns:
            Vector of exactly INPUT_SIZE values in [0, 1]
        """
        features = self.zeros()

        game_state = as_game_state(state)
        if game_state is None:
            logger.debug("No game state, encoding zeros")
            return features
        if not game_state.is_gameplay:
            return features

        # Player lane one-hot
        if game_state.player_position in LANES:
            features[self.LANE_ONE_HOT + LANES.index(game_state.player_position)] = 1.0

        # Obstacle/coin flags, left -> center -> right
        for i, name in enumerate(LANES):
            lane = game_state.lane(name)
            features[self.LANE_FLAGS + 2 * i] = 1.0 if lane.obstacles else 0.0
            features[self.LANE_FLAGS + 2 * i + 1] = 1.0 if lane.coins else 0.0

        # Powerup flags (first MAX_POWERUP_FLAGS active powerups)
        active = min(len(game_state.powerups or ()), self.config.MAX_POWERUP_FLAGS)
        features[self.POWERUPS:self.POWERUPS + active] = 1.0

        if game_state.score is not None:
            features[self.SCORE] = np.clip(game_state.score / self.config.SCORE_NORMALIZER, 0.0, 1.0)
        if game_state.coins is not None:
            features[self.COINS] = np.clip(game_state.coins / self.config.COIN_NORMALIZER, 0.0, 1.0)

        return features
