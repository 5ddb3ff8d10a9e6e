"""
AI Module
=========

On-device Q-learning components for the lane-runner agent.

Classes:
    NeuralNetwork   - Two-layer Q-network
    FeatureEncoder  - Game state -> feature vector
    Agent           - Epsilon-greedy Q-learning policy
    ReplayBuffer    - Experience replay memory
    CheckpointStore - Model / replay buffer / session persistence
    Trainer         - Supervised pre-training from labelled gameplay

Functions:
    create_engine   - Agent plus checkpoint store built from a Config
"""

from .actions import Action
from .agent import Agent
from .engine import create_engine
from .features import FeatureEncoder, GameState
from .network import NeuralNetwork
from .persistence import CheckpointStore, FileStorage, MemoryStorage
from .replay_buffer import Experience, ReplayBuffer
from .trainer import Trainer

__all__ = [
    'Action', 'Agent', 'FeatureEncoder', 'GameState', 'NeuralNetwork',
    'CheckpointStore', 'FileStorage', 'MemoryStorage',
    'Experience', 'ReplayBuffer', 'Trainer', 'create_engine',
]
