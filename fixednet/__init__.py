"""
fixednet package
~~~~~~~~~~~~~~~~

Fixed-dimension matrices and a small sigmoid feedforward network trained
with per-sample gradient descent. Contains the matrix operators, the
network, the IDX dataset loader, configuration, persistence and the
training command line.
"""

from fixednet.matrix import Matrix, ShapeMismatchError
from fixednet.network import Evaluation, Network

__version__ = "1.0.0"

__all__ = ['Matrix', 'ShapeMismatchError', 'Network', 'Evaluation']
