"""
Two-Layer Q-Network
===================

The neural network that scores the four gameplay actions for a feature vector.

Theory:
    The network approximates Q(s, a) for a hand-engineered state vector.

    Input:  Feature vector (lane, lane contents, powerups, score, coins)
    Output: One value per action (LEFT, RIGHT, JUMP, ROLL)

    hidden = act(W_ih . x + b_h)
    out    = act(W_ho . hidden + b_o)

Training is plain per-sample gradient descent on squared error, with no
momentum and no batching inside a call. The hidden-layer error is the output
error pushed back through W_ho^T (computed before W_ho is updated):

    e_o   = target - out
    e_h   = W_ho^T . e_o
    W_ho += lr * (e_o * act'(out)) . hidden^T
    W_ih += lr * (e_h * act'(hidden)) . x^T

Key Features:
    - sigmoid / relu / tanh activations
    - Shape-checked matrix operations (mismatches never produce output)
    - Versioned JSON model format with strict validation on load
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from config import Config, SUPPORTED_ACTIVATIONS
from .actions import Action, NETWORK_ACTIONS, index_to_action
from .errors import ConfigurationError, ShapeMismatchError
from src.utils.logger import get_logger

logger = get_logger(__name__)


FORMAT_VERSION = '1.0'
SUPPORTED_FORMAT_VERSIONS = ('1.0',)

MODEL_SECTIONS = ('config', 'weights', 'biases', 'metadata')
REQUIRED_CONFIG_FIELDS = ('inputSize', 'hiddenSize', 'outputSize', 'learningRate')


def _matmul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    if a.ndim != 2 or b.ndim != 2 or a.shape[1] != b.shape[0]:
        raise ShapeMismatchError('multiplication', a.shape, b.shape)
    return a @ b


def _add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    if a.shape != b.shape:
        raise ShapeMismatchError('addition', a.shape, b.shape)
    return a + b


def _column(values: Any) -> np.ndarray:
    """Accept a flat sequence, a row, or a column and return a column vector."""
    try:
        array = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ShapeMismatchError('conversion', (), (-1, 1)) from e
    return array.reshape(-1, 1)


@dataclass
class Prediction:
    """Best action for a feature vector plus all action scores."""
    action: Action
    confidence: float
    confidences: Dict[str, float]


class NeuralNetwork:
    """
    Feedforward network with one hidden layer.

    Parameters are owned by the instance; accessors hand out copies.

    Attributes:
        input_size, hidden_size, output_size: Layer sizes
        learning_rate: Gradient descent step size
        activation: Activation function name

    Example:
        >>> net = NeuralNetwork(input_size=20, hidden_size=16, output_size=4, seed=0)
        >>> q_values = net.forward(np.zeros(20))  # Shape: (4,)
    """

    def __init__(
        self,
        input_size: int,
        hidden_size: int,
        output_size: int,
        learning_rate: float = 0.1,
        activation: str = 'sigmoid',
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize the network with random parameters in [-0.5, 0.5).

        Args:
            input_size: Feature vector length
            hidden_size: Number of hidden neurons
            output_size: Number of action outputs
            learning_rate: Gradient descent step size
            activation: 'sigmoid', 'relu' or 'tanh'
            seed: Seed for the weight initialization
            rng: Generator to draw weights from (overrides seed)
        """
        if activation not in SUPPORTED_ACTIVATIONS:
            raise ValueError(f"Unsupported activation: {activation}")
        if not 0 < output_size <= len(NETWORK_ACTIONS):
            raise ValueError(f"output_size must be between 1 and {len(NETWORK_ACTIONS)}")

        self.input_size = input_size
        self.hidden_size = hidden_size
        self.output_size = output_size
        self.learning_rate = learning_rate
        self.activation = activation

        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._init_weights()

    @classmethod
    def from_config(cls, config: Config, seed: Optional[int] = None) -> 'NeuralNetwork':
        return cls(
            input_size=config.INPUT_SIZE,
            hidden_size=config.HIDDEN_SIZE,
            output_size=config.OUTPUT_SIZE,
            learning_rate=config.LEARNING_RATE,
            activation=config.ACTIVATION,
            seed=config.SEED if seed is None else seed,
        )

    def _init_weights(self) -> None:
        """Draw every parameter uniformly from [-0.5, 0.5)."""
        self.w_input_hidden = self._rng.random((self.hidden_size, self.input_size)) - 0.5
        self.w_hidden_output = self._rng.random((self.output_size, self.hidden_size)) - 0.5
        self.b_hidden = self._rng.random((self.hidden_size, 1)) - 0.5
        self.b_output = self._rng.random((self.output_size, 1)) - 0.5

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def _activate(self, z: np.ndarray) -> np.ndarray:
        if self.activation == 'relu':
            return np.maximum(z, 0.0)
        if self.activation == 'tanh':
            return np.tanh(z)
        # Clip keeps exp() finite for extreme pre-activations
        return 1.0 / (1.0 + np.exp(-np.clip(z, -500.0, 500.0)))

    def _derivative(self, y: np.ndarray) -> np.ndarray:
        """Activation derivative expressed in terms of the activated value y."""
        if self.activation == 'relu':
            return (y > 0).astype(np.float64)
        if self.activation == 'tanh':
            return 1.0 - y * y
        return y * (1.0 - y)

    # ------------------------------------------------------------------
    # Forward / train
    # ------------------------------------------------------------------

    def _forward(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Return (hidden, output) column vectors; raises ShapeMismatchError."""
        hidden = self._activate(_add(_matmul(self.w_input_hidden, x), self.b_hidden))
        output = self._activate(_add(_matmul(self.w_hidden_output, hidden), self.b_output))
        return hidden, output

    def forward(self, x: Sequence[float]) -> Optional[np.ndarray]:
        """
        Forward pass through the network.

        Args:
            x: Feature vector of length input_size

        Returns:
            Output vector of length output_size, or None if x has the
            wrong shape
        """
        try:
            _, output = self._forward(_column(x))
        except ShapeMismatchError as e:
            logger.error(f"Forward pass failed: {e}")
            return None
        return output.ravel()

    def predict(self, x: Sequence[float]) -> Optional[Prediction]:
        """Pick the highest scoring action (first index wins ties)."""
        output = self.forward(x)
        if output is None:
            return None
        best = int(np.argmax(output))
        return Prediction(
            action=index_to_action(best),
            confidence=float(output[best]),
            confidences={index_to_action(i).value: float(v) for i, v in enumerate(output)},
        )

    def train(self, x: Sequence[float], target: Sequence[float]) -> Optional[float]:
        """
        One gradient descent step toward target.

        Args:
            x: Feature vector of length input_size
            target: Desired output vector of length output_size

        Returns:
            Mean absolute output error before the update, or None if the
            shapes do not match (parameters are left untouched)
        """
        try:
            inputs = _column(x)
            targets = _column(target)
            hidden, output = self._forward(inputs)
            if targets.shape != output.shape:
                raise ShapeMismatchError('subtraction', targets.shape, output.shape)
            output_errors = targets - output
            hidden_errors = _matmul(self.w_hidden_output.T, output_errors)
        except ShapeMismatchError as e:
            logger.error(f"Training step failed: {e}")
            return None

        output_delta = output_errors * self._derivative(output) * self.learning_rate
        self.w_hidden_output += output_delta @ hidden.T
        self.b_output += output_delta

        hidden_delta = hidden_errors * self._derivative(hidden) * self.learning_rate
        self.w_input_hidden += hidden_delta @ inputs.T
        self.b_hidden += hidden_delta

        return float(np.mean(np.abs(output_errors)))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_parameters(self) -> Dict[str, np.ndarray]:
        """Copies of all parameters."""
        return {
            'input_to_hidden': self.w_input_hidden.copy(),
            'hidden_to_output': self.w_hidden_output.copy(),
            'hidden_bias': self.b_hidden.copy(),
            'output_bias': self.b_output.copy(),
        }

    def get_weights(self) -> List[np.ndarray]:
        """Weight matrices (copies), input side first."""
        return [self.w_input_hidden.copy(), self.w_hidden_output.copy()]

    def get_layer_info(self) -> List[Dict]:
        return [
            {'name': 'Input', 'neurons': self.input_size, 'type': 'input'},
            {'name': 'Hidden', 'neurons': self.hidden_size, 'type': 'hidden'},
            {'name': 'Output', 'neurons': self.output_size, 'type': 'output'},
        ]

    def count_parameters(self) -> int:
        """Return total number of trainable parameters."""
        return sum(p.size for p in self.get_parameters().values())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_model_dict(self) -> Dict[str, Any]:
        """Model record: {config, weights, biases, metadata}."""
        return {
            'config': {
                'inputSize': self.input_size,
                'hiddenSize': self.hidden_size,
                'outputSize': self.output_size,
                'learningRate': self.learning_rate,
                'activation': self.activation,
            },
            'weights': {
                'inputToHidden': self.w_input_hidden.tolist(),
                'hiddenToOutput': self.w_hidden_output.tolist(),
            },
            'biases': {
                'hidden': self.b_hidden.tolist(),
                'output': self.b_output.tolist(),
            },
            'metadata': {
                'timestamp': int(time.time() * 1000),
                'formatVersion': FORMAT_VERSION,
            },
        }

    def serialize(self) -> bytes:
        return json.dumps(self.to_model_dict()).encode('utf-8')

    def _validate_model(self, data: Any) -> Dict[str, Any]:
        """
        Check a model record against this network's architecture.

        Returns:
            The parsed parameters and config values to install

        Raises:
            ConfigurationError: On any missing, malformed or mismatched field
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("Model record is not an object")

        unknown = set(data) - set(MODEL_SECTIONS)
        if unknown:
            raise ConfigurationError(f"Unknown model sections: {sorted(unknown)}")

        metadata = data.get('metadata') or {}
        if not isinstance(metadata, Mapping):
            raise ConfigurationError("Model metadata is not an object")
        version = str(metadata.get('formatVersion', metadata.get('version', FORMAT_VERSION)))
        if version not in SUPPORTED_FORMAT_VERSIONS:
            raise ConfigurationError(f"Unsupported model format version: {version}")

        cfg = data.get('config')
        weights = data.get('weights')
        biases = data.get('biases')
        if not isinstance(cfg, Mapping) or not isinstance(weights, Mapping) or not isinstance(biases, Mapping):
            raise ConfigurationError("Model must contain config, weights and biases")

        missing = [name for name in REQUIRED_CONFIG_FIELDS if cfg.get(name) in (None, 0)]
        if missing:
            raise ConfigurationError(f"Model config missing fields: {missing}")

        sizes = (cfg['inputSize'], cfg['hiddenSize'], cfg['outputSize'])
        expected = (self.input_size, self.hidden_size, self.output_size)
        if sizes != expected:
            raise ConfigurationError(f"Architecture mismatch (saved: {sizes}, current: {expected})")

        activation = cfg.get('activation', 'sigmoid')
        if activation not in SUPPORTED_ACTIVATIONS:
            raise ConfigurationError(f"Unsupported activation: {activation}")

        try:
            learning_rate = float(cfg['learningRate'])
            w_ih = np.asarray(weights['inputToHidden'], dtype=np.float64)
            w_ho = np.asarray(weights['hiddenToOutput'], dtype=np.float64)
            b_h = np.asarray(biases['hidden'], dtype=np.float64)
            b_o = np.asarray(biases['output'], dtype=np.float64)
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed parameters: {e}") from e

        # Flat bias lists are accepted as column vectors
        if b_h.ndim == 1:
            b_h = b_h.reshape(-1, 1)
        if b_o.ndim == 1:
            b_o = b_o.reshape(-1, 1)

        checks = (
            ('inputToHidden', w_ih.shape, (self.hidden_size, self.input_size)),
            ('hiddenToOutput', w_ho.shape, (self.output_size, self.hidden_size)),
            ('hidden bias', b_h.shape, (self.hidden_size, 1)),
            ('output bias', b_o.shape, (self.output_size, 1)),
        )
        for name, actual, wanted in checks:
            if actual != wanted:
                raise ConfigurationError(f"{name} has shape {actual}, expected {wanted}")

        for array in (w_ih, w_ho, b_h, b_o):
            if not np.all(np.isfinite(array)):
                raise ConfigurationError("Model parameters contain non-finite values")

        return {
            'learning_rate': learning_rate,
            'activation': activation,
            'w_ih': w_ih,
            'w_ho': w_ho,
            'b_h': b_h,
            'b_o': b_o,
        }

    def load_model_dict(self, data: Any) -> bool:
        """
        Install parameters from a model record.

        Returns:
            True if loaded; False if the record was rejected, in which case
            the current parameters are kept
        """
        try:
            parsed = self._validate_model(data)
        except ConfigurationError as e:
            logger.warning(f"Model rejected, keeping current parameters: {e}")
            return False

        self.learning_rate = parsed['learning_rate']
        self.activation = parsed['activation']
        self.w_input_hidden = parsed['w_ih']
        self.w_hidden_output = parsed['w_ho']
        self.b_hidden = parsed['b_h']
        self.b_output = parsed['b_o']
        return True

    def deserialize(self, blob: bytes) -> bool:
        try:
            data = json.loads(blob.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Model blob is not valid JSON, keeping current parameters: {e}")
            return False
        return self.load_model_dict(data)


# Testing
if __name__ == "__main__":
    config = Config()
    net = NeuralNetwork.from_config(config, seed=0)

    print("=" * 60)
    print("Q-Network Architecture")
    print("=" * 60)
    for i, info in enumerate(net.get_layer_info()):
        print(f"Layer {i}: {info['name']} - {info['neurons']} neurons ({info['type']})")
    print(f"\nTotal parameters: {net.count_parameters():,}")

    x = np.zeros(config.INPUT_SIZE)
    x[1] = 1.0
    print(f"\nForward pass: {net.forward(x)}")
    print(f"Prediction: {net.predict(x)}")
    print("=" * 60)
