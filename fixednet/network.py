"""
network.py
~~~~~~~~~~

A fully-connected feedforward network trained with per-sample stochastic
gradient descent. All arithmetic goes through the ``Matrix`` operators.

Each layer ``k`` owns a weight matrix of shape ``sizes[k+1] x sizes[k]``
and a bias column of shape ``sizes[k+1] x 1``. Weights start uniform in
[0, 1) and biases at zero. The loss is the squared error between the final
sigmoid activation and a one-hot target.
"""

import logging
import operator
import time
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from fixednet.activations import sigmoid, sigmoid_prime
from fixednet.matrix import Matrix, ShapeMismatchError

# Configure module logger
logger = logging.getLogger(__name__)

Sample = Tuple[Matrix, Matrix]
EpochCallback = Callable[[Dict[str, Any]], None]


class ForwardPass(NamedTuple):
    """Intermediate values of one forward pass."""
    pre_activations: List[Matrix]
    activations: List[Matrix]


class Gradients(NamedTuple):
    """Per-layer parameter gradients for one sample, plus the network output."""
    weights: List[Matrix]
    biases: List[Matrix]
    output: Matrix


class Evaluation(NamedTuple):
    """Outcome of classifying a held-out sample set."""
    correct: int
    incorrect: int

    @property
    def total(self) -> int:
        return self.correct + self.incorrect

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return 100.0 * self.correct / self.total


class Network:
    """
    Parameters and training procedure of a sigmoid feedforward network.

    Args:
        sizes: Layer widths, input first, e.g. ``[784, 128, 64, 10]``
        rng: Random generator used for the weight initialization
        seed: Seed for a new generator, used when ``rng`` is not given
        dtype: numpy dtype of every parameter matrix
        activation: Elementwise activation, applied to whole arrays
        activation_prime: Derivative of ``activation``
    """

    def __init__(
        self,
        sizes: Sequence[int],
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        dtype: Any = np.float32,
        activation: Callable = sigmoid,
        activation_prime: Callable = sigmoid_prime
    ):
        if len(sizes) < 2:
            raise ValueError(
                f"A network needs at least an input and an output layer, got {list(sizes)}"
            )
        sizes = [operator.index(size) for size in sizes]
        if any(size <= 0 for size in sizes):
            raise ValueError(f"Layer sizes must be positive, got {sizes}")

        if rng is None:
            rng = np.random.default_rng(seed)

        self.sizes = sizes
        self.dtype = np.dtype(dtype)
        self.activation = activation
        self.activation_prime = activation_prime

        self.weights = [
            Matrix.random(n_out, n_in, rng=rng, dtype=self.dtype)
            for n_in, n_out in zip(self.sizes[:-1], self.sizes[1:])
        ]
        self.biases = [
            Matrix.zeros(n_out, 1, dtype=self.dtype)
            for n_out in self.sizes[1:]
        ]

    @property
    def num_layers(self) -> int:
        """Number of weight/bias pairs."""
        return len(self.weights)

    @property
    def layers(self) -> List[Tuple[Matrix, Matrix]]:
        return list(zip(self.weights, self.biases))

    def copy(self) -> 'Network':
        """Return an independent copy of this network."""
        clone = Network.__new__(Network)
        clone.sizes = list(self.sizes)
        clone.dtype = self.dtype
        clone.activation = self.activation
        clone.activation_prime = self.activation_prime
        clone.weights = [w.copy() for w in self.weights]
        clone.biases = [b.copy() for b in self.biases]
        return clone

    def _check_sample_shapes(self, x: Matrix, y: Optional[Matrix] = None) -> None:
        expected_in = (self.sizes[0], 1)
        if x.shape != expected_in:
            raise ShapeMismatchError(
                f"Expected an input of shape {expected_in}, got {x.shape}"
            )
        expected_out = (self.sizes[-1], 1)
        if y is not None and y.shape != expected_out:
            raise ShapeMismatchError(
                f"Expected a target of shape {expected_out}, got {y.shape}"
            )

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def forward(self, x: Matrix) -> ForwardPass:
        """
        Run the input through every layer.

        Args:
            x: Input column vector of shape ``sizes[0] x 1``

        Returns:
            ForwardPass: Pre-activations ``z_k`` per layer and activations
            ``a_k``, where ``activations[0]`` is the input itself
        """
        self._check_sample_shapes(x)

        pre_activations = []
        activations = [x]
        a = x
        for w, b in zip(self.weights, self.biases):
            z = w @ a + b
            a = z.apply(self.activation, vectorized=True)
            pre_activations.append(z)
            activations.append(a)
        return ForwardPass(pre_activations, activations)

    def feedforward(self, x: Matrix) -> Matrix:
        """Return the output activation for input ``x``."""
        return self.forward(x).activations[-1]

    def predict(self, x: Matrix) -> int:
        """Return the predicted class index for input ``x``."""
        return self.feedforward(x).argmax()

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def backprop(self, x: Matrix, y: Matrix) -> Gradients:
        """
        Compute the squared-error gradients for one sample.

        Args:
            x: Input column vector
            y: One-hot target column vector

        Returns:
            Gradients: ``dW_k`` and ``db_k`` for every layer and the output
            activation of the forward pass
        """
        self._check_sample_shapes(x, y)
        pre_activations, activations = self.forward(x)

        nabla_w: List[Matrix] = [None] * self.num_layers
        nabla_b: List[Matrix] = [None] * self.num_layers

        delta = (activations[-1] - y) * 2.0
        for k in reversed(range(self.num_layers)):
            dz = pre_activations[k].apply(self.activation_prime, vectorized=True).hadamard(delta)
            nabla_w[k] = dz @ activations[k].transpose()
            nabla_b[k] = dz
            if k > 0:
                delta = self.weights[k].transpose() @ dz

        return Gradients(nabla_w, nabla_b, activations[-1])

    def update_from_sample(self, x: Matrix, y: Matrix, eta: float) -> bool:
        """
        Take one gradient descent step on a single sample.

        Args:
            x: Input column vector
            y: One-hot target column vector
            eta: Learning rate

        Returns:
            bool: True if the sample was misclassified before the update
        """
        gradients = self.backprop(x, y)

        for w, nw in zip(self.weights, gradients.weights):
            w -= nw * eta
        for b, nb in zip(self.biases, gradients.biases):
            b -= nb * eta

        return gradients.output.argmax() != y.argmax()

    def SGD(
        self,
        training_data: Sequence[Sample],
        epochs: int,
        eta: float,
        callback: Optional[EpochCallback] = None
    ) -> List[int]:
        """
        Train with stochastic gradient descent, one sample at a time.

        Samples are visited in the order given, every epoch.

        Args:
            training_data: Sequence of ``(x, y)`` pairs
            epochs: Number of passes over the data
            eta: Learning rate
            callback: Called after each epoch with a progress dictionary
                (``epoch``, ``total_epochs``, ``errors``, ``total``,
                ``elapsed_time``)

        Returns:
            list: Number of misclassified samples in each epoch
        """
        history = []
        total = len(training_data)
        start = time.time()

        for epoch in range(epochs):
            errors = 0
            for x, y in training_data:
                if self.update_from_sample(x, y, eta):
                    errors += 1

            history.append(errors)
            elapsed = time.time() - start
            logger.info(
                f"Epoch {epoch + 1}/{epochs}: {errors}/{total} misclassified "
                f"({elapsed:.1f}s elapsed)"
            )

            if callback is not None:
                callback({
                    'epoch': epoch + 1,
                    'total_epochs': epochs,
                    'errors': errors,
                    'total': total,
                    'elapsed_time': elapsed
                })

        return history

    def evaluate(self, test_data: Sequence[Sample]) -> Evaluation:
        """
        Classify every sample without updating the parameters.

        Returns:
            Evaluation: Counts of correct and incorrect predictions
        """
        incorrect = 0
        for x, y in test_data:
            self._check_sample_shapes(x, y)
            if self.predict(x) != y.argmax():
                incorrect += 1

        evaluation = Evaluation(len(test_data) - incorrect, incorrect)
        logger.debug(
            f"Evaluated {evaluation.total} samples: {evaluation.correct} correct"
        )
        return evaluation
