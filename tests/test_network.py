"""
test_network.py
~~~~~~~~~~~~~~~

Tests for forward propagation, backpropagation and SGD training.
"""

import pickle

import numpy as np
import pytest

from fixednet.activations import sigmoid, sigmoid_prime
from fixednet.matrix import Matrix, ShapeMismatchError
from fixednet.network import Evaluation, Network


def one_hot(index, size):
    y = Matrix.zeros(size, 1)
    y.set(index, 0, 1.0)
    return y


def squared_error(net, x, y):
    diff = (net.feedforward(x) - y).to_numpy()
    return float(np.sum(diff * diff))


@pytest.fixture
def simple_network():
    """Create a small 3-layer network with a fixed seed."""
    return Network([3, 5, 4, 2], seed=0, dtype=np.float64)


@pytest.fixture
def sample():
    x = Matrix.column([0.2, 0.7, 0.4])
    return x, one_hot(1, 2)


@pytest.fixture
def separable_data():
    """Two well separated classes in two dimensions."""
    points = [
        ([0.9, 0.1], 0), ([0.8, 0.2], 0), ([1.0, 0.0], 0), ([0.7, 0.1], 0),
        ([0.1, 0.9], 1), ([0.2, 0.8], 1), ([0.0, 1.0], 1), ([0.1, 0.7], 1),
    ]
    return [(Matrix.column(p), one_hot(label, 2)) for p, label in points]


@pytest.mark.unit
class TestActivations:
    """Test the sigmoid and its derivative."""

    def test_sigmoid_values(self):
        assert sigmoid(0.0) == pytest.approx(0.5)
        assert np.allclose(sigmoid(np.array([-1000.0, 1000.0])), [0.0, 1.0])

    def test_sigmoid_prime_matches_finite_difference(self):
        for z in (-2.0, 0.0, 0.5, 3.0):
            eps = 1e-6
            numeric = (sigmoid(z + eps) - sigmoid(z - eps)) / (2 * eps)
            assert sigmoid_prime(z) == pytest.approx(numeric, rel=1e-6)

    def test_sigmoid_keeps_float32(self):
        assert sigmoid(np.zeros(3, dtype=np.float32)).dtype == np.float32


@pytest.mark.unit
class TestInitialization:
    """Test parameter shapes and initial values."""

    def test_parameter_shapes(self, simple_network):
        assert simple_network.num_layers == 3
        assert [w.shape for w in simple_network.weights] == [(5, 3), (4, 5), (2, 4)]
        assert [b.shape for b in simple_network.biases] == [(5, 1), (4, 1), (2, 1)]

    def test_weights_uniform_unit_interval(self):
        net = Network([784, 128, 64, 10], seed=1)
        for w in net.weights:
            values = w.to_numpy()
            assert values.min() >= 0.0
            assert values.max() < 1.0

    def test_biases_start_at_zero(self, simple_network):
        for b in simple_network.biases:
            assert not b.to_numpy().any()

    def test_default_dtype_is_float32(self):
        net = Network([2, 3, 2], seed=0)
        assert all(w.dtype == np.float32 for w in net.weights)

    def test_seed_makes_initialization_reproducible(self):
        n1 = Network([4, 3, 2], seed=9)
        n2 = Network([4, 3, 2], rng=np.random.default_rng(9))
        assert n1.weights == n2.weights

    def test_invalid_sizes_rejected(self):
        with pytest.raises(ValueError):
            Network([10])
        with pytest.raises(ValueError):
            Network([3, 0, 2])

    def test_non_integer_sizes_rejected(self):
        with pytest.raises(TypeError):
            Network([2.7, 3, 2])
        with pytest.raises(TypeError):
            Network([2, '3', 2])

    def test_numpy_integer_sizes_accepted(self):
        net = Network(np.array([3, 4, 2]), seed=0)
        assert net.sizes == [3, 4, 2]
        assert all(type(size) is int for size in net.sizes)


@pytest.mark.unit
class TestForward:
    """Test forward propagation and prediction."""

    def test_forward_matches_manual_computation(self, simple_network, sample):
        x, _ = sample
        pre_activations, activations = simple_network.forward(x)

        a = x.to_numpy()
        for k, (w, b) in enumerate(simple_network.layers):
            z = w.to_numpy() @ a + b.to_numpy()
            assert np.allclose(pre_activations[k].to_numpy(), z)
            a = 1.0 / (1.0 + np.exp(-z))
            assert np.allclose(activations[k + 1].to_numpy(), a)

        assert activations[0] == x

    def test_feedforward_output_shape(self, simple_network, sample):
        x, _ = sample
        assert simple_network.feedforward(x).shape == (2, 1)

    def test_wrong_input_shape_rejected(self, simple_network):
        with pytest.raises(ShapeMismatchError):
            simple_network.feedforward(Matrix.column([0.1, 0.2]))
        with pytest.raises(ShapeMismatchError):
            simple_network.feedforward(Matrix.zeros(1, 3))

    def test_predict_tie_goes_to_last_class(self):
        net = Network([3, 4, 4, 5], seed=0, dtype=np.float64)
        net.weights[-1] = Matrix.zeros(5, 4, dtype=np.float64)
        # every output is sigmoid(0) == 0.5
        assert net.predict(Matrix.column([0.3, 0.1, 0.9])) == 4


@pytest.mark.unit
class TestBackprop:
    """Test gradients and the per-sample update."""

    def test_gradient_shapes(self, simple_network, sample):
        gradients = simple_network.backprop(*sample)
        assert [g.shape for g in gradients.weights] == [w.shape for w in simple_network.weights]
        assert [g.shape for g in gradients.biases] == [b.shape for b in simple_network.biases]
        assert gradients.output.shape == (2, 1)

    def test_gradients_match_finite_differences(self, simple_network, sample):
        x, y = sample
        gradients = simple_network.backprop(x, y)
        eps = 1e-6

        for k in range(simple_network.num_layers):
            for params, grads in ((simple_network.weights, gradients.weights),
                                  (simple_network.biases, gradients.biases)):
                param = params[k]
                for i in range(param.rows):
                    for j in range(param.cols):
                        original = param.get(i, j)
                        param.set(i, j, original + eps)
                        loss_plus = squared_error(simple_network, x, y)
                        param.set(i, j, original - eps)
                        loss_minus = squared_error(simple_network, x, y)
                        param.set(i, j, original)

                        numeric = (loss_plus - loss_minus) / (2 * eps)
                        assert grads[k].get(i, j) == pytest.approx(numeric, rel=1e-4, abs=1e-8)

    def test_bias_gradient_equals_pre_activation_delta(self, simple_network, sample):
        x, y = sample
        gradients = simple_network.backprop(x, y)
        pre_activations, activations = simple_network.forward(x)
        expected = pre_activations[-1].apply(sigmoid_prime).hadamard((activations[-1] - y) * 2.0)
        assert np.allclose(gradients.biases[-1].to_numpy(), expected.to_numpy())

    def test_wrong_target_shape_rejected(self, simple_network, sample):
        x, _ = sample
        with pytest.raises(ShapeMismatchError):
            simple_network.backprop(x, one_hot(0, 3))

    def test_update_subtracts_scaled_gradients(self, simple_network, sample):
        x, y = sample
        eta = 0.1
        before = simple_network.copy()
        gradients = before.backprop(x, y)

        simple_network.update_from_sample(x, y, eta)

        for k in range(simple_network.num_layers):
            expected_w = before.weights[k].to_numpy() - eta * gradients.weights[k].to_numpy()
            expected_b = before.biases[k].to_numpy() - eta * gradients.biases[k].to_numpy()
            assert np.allclose(simple_network.weights[k].to_numpy(), expected_w)
            assert np.allclose(simple_network.biases[k].to_numpy(), expected_b)

    def test_update_reports_misclassification(self, simple_network, sample):
        x, y = sample
        predicted = simple_network.predict(x)
        misclassified = simple_network.update_from_sample(x, y, 0.01)
        assert misclassified == (predicted != y.argmax())

    def test_update_keeps_parameter_objects(self, simple_network, sample):
        weights = list(simple_network.weights)
        simple_network.update_from_sample(*sample, 0.5)
        assert all(w is original for w, original in zip(simple_network.weights, weights))

    def test_copy_is_independent(self, simple_network, sample):
        clone = simple_network.copy()
        clone.update_from_sample(*sample, 1.0)
        assert clone.weights != simple_network.weights


@pytest.mark.unit
class TestEvaluation:
    """Test the held-out evaluation."""

    def test_evaluate_counts_mismatches(self, simple_network):
        rng = np.random.default_rng(5)
        data = [
            (Matrix.random(3, 1, rng=rng), one_hot(i % 2, 2))
            for i in range(10)
        ]
        expected_incorrect = sum(
            simple_network.predict(x) != y.argmax() for x, y in data
        )
        before = simple_network.copy()

        evaluation = simple_network.evaluate(data)

        assert evaluation.incorrect == expected_incorrect
        assert evaluation.total == len(data)
        assert simple_network.weights == before.weights

    def test_percentage(self):
        assert Evaluation(3, 1).percentage == pytest.approx(75.0)
        assert Evaluation(0, 0).percentage == 0.0


@pytest.mark.integration
class TestTraining:
    """End-to-end SGD on a tiny separable dataset."""

    def test_training_reaches_zero_errors(self, separable_data):
        net = Network([2, 4, 4, 2], seed=3, dtype=np.float64)
        epochs = 2000

        history = net.SGD(separable_data, epochs=epochs, eta=1.0)

        assert len(history) == epochs
        assert 0 in history
        assert history[-1] == 0
        quarter = epochs // 4
        assert np.mean(history[-quarter:]) <= np.mean(history[:quarter])
        assert net.evaluate(separable_data) == Evaluation(len(separable_data), 0)

    def test_callback_receives_progress(self, separable_data):
        net = Network([2, 3, 2], seed=0, dtype=np.float64)
        updates = []

        history = net.SGD(separable_data, epochs=3, eta=0.1, callback=updates.append)

        assert [u['epoch'] for u in updates] == [1, 2, 3]
        assert all(u['total_epochs'] == 3 for u in updates)
        assert all(u['total'] == len(separable_data) for u in updates)
        assert [u['errors'] for u in updates] == history
        assert all(u['elapsed_time'] >= 0 for u in updates)

    def test_error_counter_resets_each_epoch(self, separable_data):
        net = Network([2, 3, 2], seed=0, dtype=np.float64)
        history = net.SGD(separable_data, epochs=5, eta=0.01)
        assert all(0 <= errors <= len(separable_data) for errors in history)

    def test_trained_network_pickles(self, separable_data):
        net = Network([2, 3, 2], seed=0)
        net.SGD(separable_data, epochs=2, eta=0.1)
        restored = pickle.loads(pickle.dumps(net))
        assert restored.sizes == net.sizes
        assert restored.weights == net.weights
        assert restored.biases == net.biases
