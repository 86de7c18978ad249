"""
Neural network building blocks with hand-written backward passes.

Every forward() is written against generic scalars, so it runs on float
arrays and on object arrays of jets alike. backward() is the analytic
gradient derived by hand; evaluating forward() on jets is how that
derivation gets checked (see microjet.gradcheck).
"""

from functools import reduce

import numpy as np

from microjet import rng
from microjet.engine import exp, log, maximum, value_of

# Elementwise maximum that works on object arrays of jets
_maximum_elementwise = np.frompyfunc(maximum, 2, 1)


def _as_array(a):
    # Keep jets in object arrays, everything else becomes float
    a = np.asarray(a)
    return a if a.dtype == object else a.astype(float)


class Module:
    """
    Base class for all layers.

    Parameters live in ``self.params`` and the gradients of the last
    backward() call in ``self.grads``, both keyed by name.
    """

    def __init__(self):
        self.params = {}
        self.grads = {}

    def parameters(self):
        """Return the parameter arrays in a fixed order."""
        return [self.params[k] for k in sorted(self.params)]

    def set_parameters(self, values):
        """Replace the parameters, in the order of parameters()."""
        for k, v in zip(sorted(self.params), values):
            self.params[k] = _as_array(v)

    def zero_grad(self):
        """Reset all gradients to zero."""
        for k, p in self.params.items():
            self.grads[k] = np.zeros(np.shape(p))

    def flat_parameters(self):
        """All parameters concatenated into one float vector."""
        params = self.parameters()
        if not params:
            return np.zeros(0)
        return np.concatenate([np.ravel(value_of_array(p)) for p in params])

    def load_flat(self, flat):
        """
        Inverse of flat_parameters(); ``flat`` may hold jets.

        Example:
            >>> layer = Linear(2, 1)
            >>> layer.load_flat(layer.flat_parameters())
        """
        flat = np.asarray(flat)
        values, offset = [], 0
        for p in self.parameters():
            size = np.size(p)
            values.append(flat[offset:offset + size].reshape(np.shape(p)))
            offset += size
        if offset != flat.size:
            raise ValueError(f"expected {offset} parameters, got {flat.size}")
        self.set_parameters(values)

    def flat_grads(self):
        """Gradients of the last backward() in flat_parameters() order."""
        keys = sorted(self.params)
        if not keys:
            return np.zeros(0)
        return np.concatenate([np.ravel(self.grads[k]) for k in keys])


def value_of_array(a):
    """Float values of an array that may hold jets."""
    a = np.asarray(a)
    if a.dtype != object:
        return a.astype(float)
    return np.vectorize(lambda v: float(value_of(v)), otypes=[float])(a)


class Linear(Module):
    """
    Fully-connected layer: y = x @ W.T + b

    Args:
        nin: Number of input features
        nout: Number of output features
        weights: Optional pre-initialized weights (nout, nin)
        bias: Optional pre-initialized bias (nout,)
        use_bias: Whether to use a bias term (default: True)

    Example:
        >>> layer = Linear(3, 2)
        >>> y = layer.forward(np.ones((4, 3)))  # shape (4, 2)
    """

    def __init__(self, nin, nout, weights=None, bias=None, use_bias=True):
        super().__init__()
        # Xavier/Glorot uniform initialization
        limit = np.sqrt(6.0 / (nin + nout))

        if weights is not None:
            self.params['W'] = _as_array(weights).reshape(nout, nin)
        else:
            self.params['W'] = rng.uniform(np.empty((nout, nin)), -limit, limit)

        self.use_bias = use_bias
        if use_bias:
            if bias is not None:
                self.params['b'] = _as_array(bias).reshape(nout)
            else:
                self.params['b'] = np.zeros(nout)
        self.zero_grad()

    def forward(self, x):
        """
        Args:
            x: Input with shape (batch_size, nin)

        Returns:
            Output with shape (batch_size, nout)
        """
        act = _as_array(x) @ self.params['W'].T
        if self.use_bias:
            act = act + self.params['b']
        return act

    def backward(self, x, top_grad):
        """
        Given dL/dy, store dL/dW and dL/db and return dL/dx.

        dL/dW = top^T x, dL/db = sum over the batch of top, dL/dx = top W
        """
        x = value_of_array(x)
        top_grad = np.asarray(top_grad, dtype=float)
        self.grads['W'] = top_grad.T @ x
        if self.use_bias:
            self.grads['b'] = top_grad.sum(axis=0)
        return top_grad @ value_of_array(self.params['W'])

    def __repr__(self):
        nout, nin = np.shape(self.params['W'])
        return f"Linear({nin} → {nout})"


class ReLU(Module):
    """max(x, 0) elementwise."""

    def forward(self, x):
        x = _as_array(x)
        if x.dtype == object:
            return _maximum_elementwise(x, 0.0)
        return np.maximum(x, 0.0)

    def backward(self, x, top_grad):
        # Gradient only flows where the input was positive
        return np.asarray(top_grad, dtype=float) * (value_of_array(x) > 0)

    def __repr__(self):
        return "ReLU()"


class MLP(Module):
    """
    Multi-layer perceptron: Linear layers with ReLU in between.

    The last layer is linear so a loss can be put on top.

    Args:
        nin: Number of input features
        nouts: Output sizes of each layer, e.g. [16, 16, 1]
        weights: Optional list of weights, one per Linear layer
        biases: Optional list of biases, one per Linear layer

    Example:
        >>> mlp = MLP(3, [4, 2])
        >>> loss_fn = L2Loss()
        >>> x, t = np.ones((5, 3)), np.zeros((5, 2))
        >>> loss = loss_fn.forward(mlp.forward(x), t)
        >>> mlp.backward(loss_fn.backward(mlp.forward(x), t))
    """

    def __init__(self, nin, nouts, weights=None, biases=None):
        super().__init__()
        sizes = [nin] + list(nouts)
        self.layers = []
        for i in range(len(nouts)):
            self.layers.append(Linear(
                sizes[i], sizes[i + 1],
                weights=weights[i] if weights is not None else None,
                bias=biases[i] if biases is not None else None,
            ))
            if i != len(nouts) - 1:
                self.layers.append(ReLU())
        self._inputs = []

    def forward(self, x):
        # Remember every layer input for backward()
        self._inputs = []
        for layer in self.layers:
            self._inputs.append(x)
            x = layer.forward(x)
        return x

    def backward(self, top_grad):
        """Backpropagate through the inputs seen by the last forward()."""
        if len(self._inputs) != len(self.layers):
            raise RuntimeError("backward() called before forward()")
        for layer, x in zip(reversed(self.layers), reversed(self._inputs)):
            top_grad = layer.backward(x, top_grad)
        return top_grad

    def parameters(self):
        return [p for layer in self.layers for p in layer.parameters()]

    def set_parameters(self, values):
        values = list(values)
        for layer in self.layers:
            n = len(layer.parameters())
            layer.set_parameters(values[:n])
            values = values[n:]

    def zero_grad(self):
        for layer in self.layers:
            layer.zero_grad()

    def flat_grads(self):
        grads = [layer.flat_grads() for layer in self.layers]
        return np.concatenate(grads) if grads else np.zeros(0)

    def __repr__(self):
        layer_str = ' → '.join(str(layer) for layer in self.layers)
        return f"MLP[\n  {layer_str}\n]"


class L2Loss(Module):
    """L = 1/(2n) * sum((prediction - target)^2), n = number of elements."""

    def forward(self, prediction, target):
        prediction = _as_array(prediction)
        target = _as_array(target)
        diff = prediction - target
        return np.sum(diff * diff) / (2 * prediction.size)

    def backward(self, prediction, target):
        prediction = value_of_array(prediction)
        return (prediction - value_of_array(target)) / prediction.size


class SoftmaxWithLogLoss(Module):
    """
    Softmax followed by the negative log-likelihood, averaged over the batch.

    L = -1/B * sum_i log(softmax(x_i)[label_i])
    """

    def forward(self, logits, labels):
        logits = _as_array(logits)
        labels = np.asarray(labels, dtype=int)
        batch = logits.shape[0]

        total = 0.0
        for row, label in zip(logits, labels):
            # The shift is a constant: softmax does not depend on it
            shift = value_of(reduce(maximum, row))
            shifted = row - shift
            log_sum = log(np.sum(exp(shifted)))
            total = total + (log_sum - shifted[label])
        return total / batch

    def backward(self, logits, labels):
        x = value_of_array(logits)
        labels = np.asarray(labels, dtype=int)
        batch = x.shape[0]

        e = np.exp(x - x.max(axis=1, keepdims=True))
        probs = e / e.sum(axis=1, keepdims=True)
        # dL/dx = (softmax - onehot) / B
        probs[np.arange(batch), labels] -= 1
        return probs / batch

    @staticmethod
    def softmax(logits):
        x = value_of_array(logits)
        e = np.exp(x - x.max(axis=-1, keepdims=True))
        return e / e.sum(axis=-1, keepdims=True)
