"""
conftest.py
~~~~~~~~~~~

Shared fixtures.
"""

import pytest

CONFIG_ENV_VARS = (
    'FIXEDNET_LAYER_SIZES',
    'FIXEDNET_LEARNING_RATE',
    'FIXEDNET_EPOCHS',
    'FIXEDNET_SEED',
    'FIXEDNET_DATA_DIR',
    'FIXEDNET_DTYPE',
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove configuration variables inherited from the environment."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
