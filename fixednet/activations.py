"""
activations.py
~~~~~~~~~~~~~~

Elementwise activation functions. Both work on numpy arrays and scalars,
so they can be handed to ``Matrix.apply(..., vectorized=True)``.
"""

import numpy as np


def sigmoid(z):
    """The sigmoid function 1 / (1 + e^-z)."""
    # exp overflows to inf for very negative z, which saturates to 0.
    with np.errstate(over='ignore'):
        return 1.0 / (1.0 + np.exp(-z))


def sigmoid_prime(z):
    """Derivative of the sigmoid function, evaluated at z."""
    s = sigmoid(z)
    return s * (1.0 - s)
