"""
config.py
~~~~~~~~~

Training configuration. Defaults match the reference MNIST setup and can be
overridden through environment variables or the command line.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

import numpy as np

DEFAULT_LAYER_SIZES = (784, 128, 64, 10)


def parse_layer_sizes(value: str) -> Tuple[int, ...]:
    """Parse a comma separated list such as ``"784,128,64,10"``."""
    try:
        return tuple(int(part) for part in value.split(',') if part.strip())
    except ValueError as e:
        raise ValueError(f"Invalid layer sizes {value!r}: {e}") from e


@dataclass(frozen=True)
class TrainingConfig:
    """Hyperparameters and locations for a training run."""

    layer_sizes: Tuple[int, ...] = field(default=DEFAULT_LAYER_SIZES)
    learning_rate: float = 0.001
    epochs: int = 20
    seed: Optional[int] = None
    data_dir: str = 'data'
    dtype: str = 'float32'

    @classmethod
    def from_env(cls) -> 'TrainingConfig':
        """
        Build a configuration from ``FIXEDNET_*`` environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable cannot be parsed
        """
        config = cls()
        overrides = {}

        layer_sizes = os.getenv('FIXEDNET_LAYER_SIZES')
        if layer_sizes:
            overrides['layer_sizes'] = parse_layer_sizes(layer_sizes)

        learning_rate = os.getenv('FIXEDNET_LEARNING_RATE')
        if learning_rate:
            overrides['learning_rate'] = float(learning_rate)

        epochs = os.getenv('FIXEDNET_EPOCHS')
        if epochs:
            overrides['epochs'] = int(epochs)

        seed = os.getenv('FIXEDNET_SEED')
        if seed:
            overrides['seed'] = int(seed)

        data_dir = os.getenv('FIXEDNET_DATA_DIR')
        if data_dir:
            overrides['data_dir'] = data_dir

        dtype = os.getenv('FIXEDNET_DTYPE')
        if dtype:
            overrides['dtype'] = dtype

        return replace(config, **overrides)

    def validate(self) -> 'TrainingConfig':
        """
        Check that the values describe a runnable training job.

        Returns:
            TrainingConfig: self, for chaining

        Raises:
            ValueError: On the first invalid value found
        """
        if len(self.layer_sizes) < 2:
            raise ValueError(
                f"Need at least input and output layer sizes, got {self.layer_sizes}"
            )
        if any(size <= 0 for size in self.layer_sizes):
            raise ValueError(f"Layer sizes must be positive, got {self.layer_sizes}")
        if not np.isfinite(self.learning_rate) or self.learning_rate <= 0:
            raise ValueError(
                f"Learning rate must be positive, got {self.learning_rate}"
            )
        if self.epochs < 1:
            raise ValueError(f"Epochs must be at least 1, got {self.epochs}")

        try:
            dtype = np.dtype(self.dtype)
        except TypeError as e:
            raise ValueError(f"Unknown dtype {self.dtype!r}") from e
        if not np.issubdtype(dtype, np.floating):
            raise ValueError(f"dtype must be floating point, got {self.dtype!r}")

        return self

    @property
    def num_classes(self) -> int:
        return self.layer_sizes[-1]
