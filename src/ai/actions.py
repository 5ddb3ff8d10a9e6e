"""
Action labels and their network output indices.

The network has one output per gameplay action (LEFT, RIGHT, JUMP, ROLL).
NONE is a valid label for the policy to emit, but it has no network output
of its own: its index (4) lies past the default output layer.
"""

from enum import Enum
from typing import Optional, Union

from .errors import UnmappedActionError
from src.utils.logger import get_logger

logger = get_logger(__name__)


class Action(str, Enum):
    """Control action consumed by the actuation layer."""
    LEFT = 'left'
    RIGHT = 'right'
    JUMP = 'jump'
    ROLL = 'roll'
    NONE = 'none'


# Every label the policy can emit, in index order
ALL_ACTIONS = (Action.LEFT, Action.RIGHT, Action.JUMP, Action.ROLL, Action.NONE)

# Labels the network scores, in output order
NETWORK_ACTIONS = ALL_ACTIONS[:4]

ACTION_INDEX = {action.value: i for i, action in enumerate(ALL_ACTIONS)}


def action_to_index(label: Union[str, Action, None], default_index: Optional[int] = 0) -> int:
    """
    Map an action label to its output index.

    Args:
        label: Action label ('left', Action.JUMP, ...)
        default_index: Index returned for labels that are not recognized.
            None disables the fallback.

    Returns:
        Output index of the label

    Raises:
        UnmappedActionError: If the label is unknown and default_index is None
    """
    key = label.value if isinstance(label, Action) else label
    if key in ACTION_INDEX:
        return ACTION_INDEX[key]

    if default_index is None:
        raise UnmappedActionError(f"Unknown action label: {label!r}")

    logger.debug(f"Unmapped action {label!r}, using index {default_index}")
    return default_index


def index_to_action(index: int) -> Action:
    """Map a network output index back to its label."""
    return NETWORK_ACTIONS[index]
