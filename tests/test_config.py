"""
test_config.py
~~~~~~~~~~~~~~

Tests for the training configuration.
"""

import pytest

from fixednet.config import DEFAULT_LAYER_SIZES, TrainingConfig, parse_layer_sizes


@pytest.mark.unit
class TestTrainingConfig:
    """Test defaults, environment overrides and validation."""

    def test_defaults(self, clean_env):
        config = TrainingConfig.from_env()
        assert config.layer_sizes == DEFAULT_LAYER_SIZES == (784, 128, 64, 10)
        assert config.learning_rate == 0.001
        assert config.epochs == 20
        assert config.seed is None
        assert config.num_classes == 10
        assert config.validate() is config

    def test_environment_overrides(self, clean_env):
        clean_env.setenv('FIXEDNET_LAYER_SIZES', '16, 8,4')
        clean_env.setenv('FIXEDNET_LEARNING_RATE', '0.05')
        clean_env.setenv('FIXEDNET_EPOCHS', '3')
        clean_env.setenv('FIXEDNET_SEED', '11')
        clean_env.setenv('FIXEDNET_DATA_DIR', '/tmp/mnist')
        clean_env.setenv('FIXEDNET_DTYPE', 'float64')

        config = TrainingConfig.from_env()

        assert config.layer_sizes == (16, 8, 4)
        assert config.learning_rate == 0.05
        assert config.epochs == 3
        assert config.seed == 11
        assert config.data_dir == '/tmp/mnist'
        assert config.dtype == 'float64'
        assert config.num_classes == 4

    def test_unparseable_environment_value(self, clean_env):
        clean_env.setenv('FIXEDNET_EPOCHS', 'many')
        with pytest.raises(ValueError):
            TrainingConfig.from_env()

    def test_parse_layer_sizes_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_layer_sizes('784,abc,10')

    @pytest.mark.parametrize('overrides', [
        {'layer_sizes': (10,)},
        {'layer_sizes': (10, 0, 2)},
        {'learning_rate': 0.0},
        {'learning_rate': float('nan')},
        {'learning_rate': float('inf')},
        {'epochs': 0},
        {'dtype': 'int32'},
        {'dtype': 'not-a-dtype'},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            TrainingConfig(**overrides).validate()

    def test_nan_learning_rate_from_environment_rejected(self, clean_env):
        clean_env.setenv('FIXEDNET_LEARNING_RATE', 'nan')
        with pytest.raises(ValueError, match='Learning rate'):
            TrainingConfig.from_env().validate()
