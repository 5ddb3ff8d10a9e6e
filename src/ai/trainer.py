"""
Supervised Trainer
==================

Pre-trains the network from labelled gameplay, e.g. frames recorded while
a human played, before the policy starts learning on its own.

Each sample pairs a game state with the action taken in it:

    {'gameState': {...perception record...}, 'action': 'jump'}

The target for a sample is a one-hot vector over the network outputs, so
training pushes the taken action's output toward 1 and every other output
toward 0.

Training loop (per epoch):
    1. Shuffle the samples
    2. Walk them in batches of BATCH_SIZE (default 10)
    3. One network.train() step per sample
    4. Report per-batch progress to the optional callback
"""

import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from config import Config
from .actions import NETWORK_ACTIONS, ACTION_INDEX
from .errors import InvalidExperienceError
from .features import FeatureEncoder, as_game_state
from .network import NeuralNetwork
from src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class BatchProgress:
    """Progress report passed to the callback after every batch."""
    epoch: int
    total_epochs: int
    batch_start: int
    batch_end: int
    total_samples: int
    batch_error: float


@dataclass
class TrainingResult:
    """Outcome of a fit() call."""
    success: bool
    epochs: int = 0
    errors: List[float] = field(default_factory=list)
    final_error: Optional[float] = None
    samples_processed: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'epochs': self.epochs,
            'errors': list(self.errors),
            'finalError': self.final_error,
            'samplesProcessed': self.samples_processed,
        }


ProgressCallback = Callable[[BatchProgress], None]


class Trainer:
    """
    Supervised training loop for a NeuralNetwork.

    Example:
        >>> trainer = Trainer(agent.network, Config(SEED=0))
        >>> result = trainer.fit(samples, epochs=20)
        >>> result.errors[-1] < result.errors[0]
        True
    """

    BATCH_SIZE = 10

    def __init__(
        self,
        network: NeuralNetwork,
        config: Optional[Config] = None,
        encoder: Optional[FeatureEncoder] = None,
        seed: Optional[int] = None
    ):
        """
        Initialize the trainer.

        Args:
            network: Network to train in place
            config: Configuration object
            encoder: Feature encoder (default: built from config)
            seed: Seed for the per-epoch shuffle (default: config.SEED)
        """
        self.network = network
        self.config = config or Config()
        self.encoder = encoder or FeatureEncoder(self.config)
        self._rng = random.Random(self.config.SEED if seed is None else seed)

    def _encode_sample(self, sample: Any):
        """
        Return (features, one-hot target) for a labelled sample.

        Raises:
            InvalidExperienceError: If the state is missing or the label has
                no network output
        """
        if not isinstance(sample, Mapping):
            raise InvalidExperienceError("Sample is not a mapping")

        state = as_game_state(sample.get('gameState'))
        if state is None:
            raise InvalidExperienceError("Sample has no game state")

        label = sample.get('action')
        label = getattr(label, 'value', label)
        index = ACTION_INDEX.get(label)
        if index is None or index >= min(len(NETWORK_ACTIONS), self.network.output_size):
            raise InvalidExperienceError(f"Action {label!r} has no network output")

        target = np.zeros(self.network.output_size, dtype=np.float64)
        target[index] = 1.0
        return self.encoder.extract(state), target

    def fit(
        self,
        samples: Sequence[Any],
        epochs: int = 1,
        progress_callback: Optional[ProgressCallback] = None
    ) -> TrainingResult:
        """
        Train the network on labelled samples.

        Args:
            samples: {'gameState', 'action'} mappings
            epochs: Number of passes over the data
            progress_callback: Called with a BatchProgress after each batch

        Returns:
            TrainingResult with the mean absolute error of every epoch
        """
        if not samples:
            logger.error("No training data provided")
            return TrainingResult(success=False, error="Invalid training data")

        epochs = max(1, epochs)
        total = len(samples)
        errors: List[float] = []

        logger.info(f"Starting training with {total} samples for {epochs} epochs")

        for epoch in range(epochs):
            shuffled = list(samples)
            self._rng.shuffle(shuffled)

            batch_errors = []
            for batch_start in range(0, total, self.BATCH_SIZE):
                batch_end = min(batch_start + self.BATCH_SIZE, total)

                sample_errors = []
                for sample in shuffled[batch_start:batch_end]:
                    try:
                        features, target = self._encode_sample(sample)
                    except InvalidExperienceError as e:
                        logger.debug(f"Skipping sample: {e}")
                        continue
                    error = self.network.train(features, target)
                    if error is not None:
                        sample_errors.append(error)

                batch_error = float(np.mean(sample_errors)) if sample_errors else 0.0
                if sample_errors:
                    batch_errors.append(batch_error)

                if progress_callback is not None:
                    progress_callback(BatchProgress(
                        epoch=epoch + 1,
                        total_epochs=epochs,
                        batch_start=batch_start,
                        batch_end=batch_end,
                        total_samples=total,
                        batch_error=batch_error,
                    ))

            if not batch_errors:
                logger.error("No valid samples in training data")
                return TrainingResult(success=False, epochs=epoch, errors=errors,
                                      error="No valid samples")

            epoch_error = float(np.mean(batch_errors))
            errors.append(epoch_error)
            logger.debug(f"Epoch {epoch + 1}/{epochs}, Error: {epoch_error:.4f}")

        logger.info(f"Training completed with final error: {errors[-1]:.4f}")

        return TrainingResult(
            success=True,
            epochs=epochs,
            errors=errors,
            final_error=errors[-1],
            samples_processed=total,
        )
