"""
Engine Factory
==============

Builds a ready-to-run learning engine from a Config: logging configured
from LOG_LEVEL / LOG_DIR / LOG_TO_FILE, checkpoints stored under DATA_DIR,
and any saved session restored.

Usage:
    agent, store = create_engine(Config(LOG_LEVEL='DEBUG'))
    action = agent.select_action(game_state)
    ...
    store.save_session(agent)
"""

from typing import Optional, Tuple

from config import Config
from .agent import Agent, SkillProvider
from .persistence import CheckpointStore, FileStorage, Storage
from src.utils.logger import LogLevel, get_logger, setup_logging

logger = get_logger(__name__)


def configure_logging(config: Config) -> None:
    """Apply the config's logging settings to the 'brain' namespace."""
    setup_logging(
        log_dir=config.LOG_DIR,
        level=LogLevel.from_name(config.LOG_LEVEL),
        file_output=config.LOG_TO_FILE,
        force=True,
    )


def create_engine(
    config: Optional[Config] = None,
    storage: Optional[Storage] = None,
    skill_provider: Optional[SkillProvider] = None,
    restore: bool = True
) -> Tuple[Agent, CheckpointStore]:
    """
    Create an agent and the checkpoint store it saves to.

    Args:
        config: Configuration (default: Config())
        storage: Blob storage (default: FileStorage(config.DATA_DIR))
        skill_provider: Difficulty collaborator passed to the agent
        restore: Restore a previously saved session if one exists

    Returns:
        (agent, store)
    """
    config = config or Config()
    configure_logging(config)

    if storage is None:
        storage = FileStorage(config.DATA_DIR)
    store = CheckpointStore(storage, config)
    agent = Agent(config, skill_provider=skill_provider)

    if restore:
        if store.restore_session(agent):
            logger.info(f"Resumed session (epsilon={agent.epsilon:.4f}, buffer={len(agent.memory)})")
        else:
            logger.info("No saved model, starting fresh")

    return agent, store
