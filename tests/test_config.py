"""
Tests for Config validation.

These tests verify that invalid configurations are caught early
rather than causing cryptic runtime errors during play.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config, RewardWeights, ENCODED_FEATURES


class TestConfigValidation:
    """Test Config.__post_init__ validation."""

    def test_valid_config_passes(self):
        """Default config should validate without errors."""
        cfg = Config()
        assert cfg is not None

    def test_defaults(self):
        cfg = Config()
        assert cfg.INPUT_SIZE == 20
        assert cfg.HIDDEN_SIZE == 16
        assert cfg.OUTPUT_SIZE == 4
        assert cfg.EXPLORATION_RATE == 0.2
        assert cfg.MIN_EXPLORATION_RATE == 0.01
        assert cfg.REPLAY_BUFFER_SIZE == 1000
        assert cfg.MINI_BATCH_SIZE == 32

    def test_invalid_learning_rate_zero(self):
        """LEARNING_RATE=0 should fail validation."""
        cfg = Config()
        cfg.LEARNING_RATE = 0
        with pytest.raises(AssertionError):
            cfg.__post_init__()

    def test_invalid_discount_zero(self):
        cfg = Config()
        cfg.DISCOUNT_FACTOR = 0
        with pytest.raises(AssertionError):
            cfg.__post_init__()

    def test_invalid_discount_exceeds_one(self):
        cfg = Config()
        cfg.DISCOUNT_FACTOR = 1.5
        with pytest.raises(AssertionError):
            cfg.__post_init__()

    def test_valid_discount_exactly_one(self):
        """DISCOUNT_FACTOR=1.0 should be valid (no discounting)."""
        cfg = Config()
        cfg.DISCOUNT_FACTOR = 1.0
        cfg.__post_init__()

    def test_min_exploration_above_start_fails(self):
        cfg = Config()
        cfg.MIN_EXPLORATION_RATE = 0.5
        with pytest.raises(AssertionError):
            cfg.__post_init__()

    def test_decay_above_one_fails(self):
        cfg = Config()
        cfg.EXPLORATION_DECAY = 1.01
        with pytest.raises(AssertionError):
            cfg.__post_init__()

    def test_batch_larger_than_buffer_fails(self):
        with pytest.raises(AssertionError):
            Config(REPLAY_BUFFER_SIZE=10, MINI_BATCH_SIZE=32)

    def test_input_too_small_for_features_fails(self):
        with pytest.raises(AssertionError):
            Config(INPUT_SIZE=ENCODED_FEATURES - 1)

    def test_input_exactly_feature_count_passes(self):
        Config(INPUT_SIZE=ENCODED_FEATURES)

    def test_unknown_activation_fails(self):
        with pytest.raises(AssertionError):
            Config(ACTIVATION='softplus')

    @pytest.mark.parametrize("output_size", [0, 5])
    def test_output_size_out_of_range_fails(self, output_size):
        with pytest.raises(AssertionError):
            Config(OUTPUT_SIZE=output_size)


class TestConfigFromDict:
    """Test building a config from camelCase options."""

    def test_maps_option_names(self):
        cfg = Config.from_dict({
            'inputSize': 24,
            'hiddenSize': 8,
            'learningRate': 0.05,
            'discountFactor': 0.9,
            'miniBatchSize': 16,
        })
        assert cfg.INPUT_SIZE == 24
        assert cfg.HIDDEN_SIZE == 8
        assert cfg.LEARNING_RATE == 0.05
        assert cfg.DISCOUNT_FACTOR == 0.9
        assert cfg.MINI_BATCH_SIZE == 16

    def test_unknown_options_ignored(self):
        cfg = Config.from_dict({'frobnicate': True})
        assert cfg.INPUT_SIZE == 20

    def test_rewards_table_is_complete(self):
        """Weights missing from a supplied table are 0, not the defaults."""
        cfg = Config.from_dict({'rewards': {'coin': 1, 'survival': 0.1, 'death': -10}})
        assert cfg.REWARDS.coin == 1.0
        assert cfg.REWARDS.survival == 0.1
        assert cfg.REWARDS.death == -10.0
        assert cfg.REWARDS.distance == 0.0
        assert cfg.REWARDS.powerup == 0.0

    def test_invalid_options_still_validated(self):
        with pytest.raises(AssertionError):
            Config.from_dict({'explorationRate': 2.0})


class TestRewardWeights:

    def test_default_table(self):
        weights = RewardWeights()
        assert weights.to_dict() == {
            'coin': 1.0, 'obstacle': -5.0, 'survival': 0.1, 'distance': 0.01,
            'powerup': 3.0, 'mission': 5.0, 'death': -10.0,
        }

    def test_unknown_keys_dropped(self):
        weights = RewardWeights.from_dict({'coin': 2, 'bonus': 99})
        assert weights.coin == 2.0
        assert 'bonus' not in weights.to_dict()
