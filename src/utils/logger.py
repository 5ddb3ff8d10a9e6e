"""
Logging for the learning engine.

Every module logs through a child of the 'brain' logger:

    from src.utils.logger import get_logger

    logger = get_logger(__name__)      # src.ai.agent -> brain.ai.agent
    logger.info("Replay buffer loaded")

The first get_logger call installs a console handler at INFO. Hosts that
build the engine through src.ai.engine.create_engine get the level, log
directory and file output from Config (LOG_LEVEL, LOG_DIR, LOG_TO_FILE)
instead; that call reconfigures the namespace with force=True.

Two helpers keep recurring events on one greppable line each:
    log_episode_metrics  ->  brain.policy  "ep=3 | reward=-9.90 | eps=0.1980"
    log_model_event      ->  brain.model   "LOAD | model/model.json"
"""

import logging
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

NAMESPACE = 'brain'

LINE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'


class LogLevel(Enum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR

    @classmethod
    def from_name(cls, name: Optional[str]) -> 'LogLevel':
        """Level for a config name such as 'debug' or 'WARNING'; unknown names give INFO."""
        if not name:
            return cls.INFO
        return cls.__members__.get(str(name).strip().upper(), cls.INFO)


_initialized = False
_file_handler: Optional[logging.FileHandler] = None


class ColoredFormatter(logging.Formatter):
    """Colors the level name when the console is a terminal."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().format(record)
        # Color a copy so file handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def _close_file_handler(namespace_logger: logging.Logger) -> None:
    global _file_handler
    if _file_handler is None:
        return
    namespace_logger.removeHandler(_file_handler)
    _file_handler.close()
    _file_handler = None


def setup_logging(
    log_dir: str = 'logs',
    level: LogLevel = LogLevel.INFO,
    console_output: bool = True,
    file_output: bool = False,
    log_filename: Optional[str] = None,
    force: bool = False,
) -> None:
    """
    Configure the 'brain' logger namespace.

    Only the first call takes effect unless force is set, in which case the
    existing handlers (and any open log file) are replaced.

    Args:
        log_dir: Directory for the log file (created if missing)
        level: Minimum level for the namespace and the console
        console_output: Attach a stdout handler
        file_output: Attach a file handler that records every level
        log_filename: File name inside log_dir (default: brain_YYYYMMDD_HHMMSS.log)
        force: Reconfigure even if logging is already set up
    """
    global _initialized, _file_handler

    if _initialized and not force:
        return

    namespace_logger = logging.getLogger(NAMESPACE)
    _close_file_handler(namespace_logger)
    namespace_logger.handlers.clear()
    namespace_logger.setLevel(level.value)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level.value)
        console_handler.setFormatter(ColoredFormatter(LINE_FORMAT))
        namespace_logger.addHandler(console_handler)

    if file_output:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        if log_filename is None:
            log_filename = f"{NAMESPACE}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        _file_handler = logging.FileHandler(directory / log_filename, mode='a', encoding='utf-8')
        _file_handler.setLevel(logging.DEBUG)
        _file_handler.setFormatter(logging.Formatter(LINE_FORMAT))
        namespace_logger.addHandler(_file_handler)

    _initialized = True
    namespace_logger.debug(f"Logging configured (level={level.name}, file={file_output})")


def get_logger(name: str) -> logging.Logger:
    """Child logger of the 'brain' namespace for a module name (leading 'src.' dropped)."""
    if not _initialized:
        setup_logging()

    if name.startswith('src.'):
        name = name[len('src.'):]
    return logging.getLogger(f'{NAMESPACE}.{name}')


def get_log_path() -> Optional[Path]:
    """Path of the open log file, or None when file output is off."""
    if _file_handler is not None:
        return Path(_file_handler.baseFilename)
    return None


def log_episode_metrics(
    episode: int,
    total_reward: float,
    epsilon: float,
    buffer_size: Optional[int] = None,
    avg_reward: Optional[float] = None,
) -> None:
    """
    One INFO line per finished episode on 'brain.policy'.

    Args:
        episode: Number of finished episodes so far
        total_reward: Reward recorded for the episode
        epsilon: Exploration rate after the episode
        buffer_size: Replay buffer fill, if known
        avg_reward: Recent average reward, if known
    """
    fields = [f"ep={episode}", f"reward={total_reward:.2f}", f"eps={epsilon:.4f}"]
    if buffer_size is not None:
        fields.append(f"buffer={buffer_size}")
    if avg_reward is not None:
        fields.append(f"avg_reward={avg_reward:.3f}")
    get_logger('policy').info(" | ".join(fields))


def log_model_event(event: str, path: str, **kwargs) -> None:
    """One INFO line on 'brain.model' for a blob event ('save', 'load', 'reject')."""
    parts = [event.upper(), path]
    parts.extend(f"{key}={value}" for key, value in kwargs.items())
    get_logger('model').info(" | ".join(parts))
