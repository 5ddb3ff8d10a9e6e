"""
Integration tests for the Lane Runner Brain.

These tests verify end-to-end functionality:
    - The agent plays episodes against a scripted lane-runner
    - Training runs and exploration decays during play
    - Save/restore preserves the learning state
"""

import random

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from src.ai.actions import ALL_ACTIONS, Action
from src.ai.agent import Agent
from src.ai.persistence import CheckpointStore, FileStorage


LANES = ('left', 'center', 'right')


class ScriptedRunner:
    """
    Minimal stand-in for the perception layer of a lane-runner.

    One obstacle row scrolls toward the player each tick; standing in a
    blocked lane without jumping or rolling ends the episode.
    """

    def __init__(self, seed=0, max_ticks=40):
        self._rng = random.Random(seed)
        self.max_ticks = max_ticks
        self.reset()

    def reset(self):
        self.lane = 1
        self.score = 0
        self.coins = 0
        self.ticks = 0
        self._next_row()
        return self.observe()

    def _next_row(self):
        self.blocked = {lane: self._rng.random() < 0.3 for lane in LANES}
        self.coin_lanes = {lane: self._rng.random() < 0.3 for lane in LANES}

    def observe(self):
        return {
            'screenType': 'gameplay',
            'playerPosition': LANES[self.lane],
            'lanes': {
                lane: {'obstacles': self.blocked[lane], 'coins': self.coin_lanes[lane]}
                for lane in LANES
            },
            'powerups': [],
            'score': self.score,
            'coins': self.coins,
        }

    def step(self, action):
        if action == Action.LEFT:
            self.lane = max(0, self.lane - 1)
        elif action == Action.RIGHT:
            self.lane = min(2, self.lane + 1)

        lane = LANES[self.lane]
        dead = self.blocked[lane] and action not in (Action.JUMP, Action.ROLL)
        if self.coin_lanes[lane]:
            self.coins += 1

        self.score += 10
        self.ticks += 1
        self._next_row()
        return self.observe(), dead or self.ticks >= self.max_ticks


@pytest.fixture
def config():
    """Small batches so training starts within the first episode."""
    return Config(MINI_BATCH_SIZE=8, REPLAY_BUFFER_SIZE=200, SEED=0)


def play(agent, runner, episodes):
    for _ in range(episodes):
        state = runner.reset()
        agent.reset_episode()
        done = False
        while not done:
            action = agent.select_action(state)
            state, done = runner.step(action)
            agent.update(state, is_terminal=done)


class TestAgentGameIntegration:

    def test_actions_are_valid_labels(self, config):
        agent = Agent(config)
        runner = ScriptedRunner(seed=1)
        state = runner.reset()
        for _ in range(50):
            action = agent.select_action(state)
            assert action in ALL_ACTIONS
            state, done = runner.step(action)
            if done:
                state = runner.reset()

    def test_episodes_fill_buffer_and_history(self, config):
        agent = Agent(config)
        play(agent, ScriptedRunner(seed=2), episodes=5)

        metrics = agent.get_performance_metrics()
        assert metrics.episode_count == 5
        assert 0 < metrics.replay_buffer_size <= config.REPLAY_BUFFER_SIZE
        assert len(metrics.recent_rewards) == 5

    def test_training_decays_exploration(self, config):
        agent = Agent(config)
        play(agent, ScriptedRunner(seed=3), episodes=15)
        assert agent.steps > 0
        assert config.MIN_EXPLORATION_RATE <= agent.epsilon < config.EXPLORATION_RATE

    def test_parameters_change_during_play(self, config):
        agent = Agent(config)
        before = agent.network.get_parameters()
        play(agent, ScriptedRunner(seed=4), episodes=15)
        after = agent.network.get_parameters()
        assert not np.array_equal(before['hidden_to_output'], after['hidden_to_output'])

    @pytest.mark.slow
    def test_buffer_stays_bounded(self):
        config = Config(MINI_BATCH_SIZE=8, REPLAY_BUFFER_SIZE=50, SEED=0)
        agent = Agent(config)
        play(agent, ScriptedRunner(seed=5, max_ticks=100), episodes=20)
        assert len(agent.memory) <= 50


class TestSaveRestore:

    def test_session_survives_restart(self, config, tmp_path):
        agent = Agent(config)
        play(agent, ScriptedRunner(seed=6), episodes=5)

        store = CheckpointStore(FileStorage(str(tmp_path)), config)
        assert store.save_session(agent)

        restarted = Agent(Config(MINI_BATCH_SIZE=8, REPLAY_BUFFER_SIZE=200, SEED=99))
        assert store.restore_session(restarted)

        assert restarted.epsilon == pytest.approx(agent.epsilon)
        assert len(restarted.memory) == len(agent.memory)
        assert len(restarted.history) == len(agent.history)

        state = ScriptedRunner(seed=7).reset()
        np.testing.assert_allclose(
            restarted.get_q_values(state), agent.get_q_values(state), atol=1e-9
        )

    def test_restored_agent_keeps_learning(self, config, tmp_path):
        agent = Agent(config)
        play(agent, ScriptedRunner(seed=8), episodes=10)
        store = CheckpointStore(FileStorage(str(tmp_path)), config)
        store.save_session(agent)

        restarted = Agent(config)
        store.restore_session(restarted)
        steps_before = restarted.steps
        play(restarted, ScriptedRunner(seed=9), episodes=10)
        assert restarted.steps > steps_before
