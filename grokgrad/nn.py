"""
Neural network building blocks for grokgrad.

Every layer implements the same two-method capability:

    forward(inputs) -> list of output Tensors
    parameters()    -> list of leaf Tensors an optimizer should update

Layers own their parameter Tensors; the Tensors themselves are shared by
reference with every graph built from them, so gradients computed by
Tensor.backward() land directly on the parameters returned here.
"""

import logging

import numpy as np

from grokgrad.engine import Tensor
from grokgrad.errors import ConfigurationError, ShapeMismatchError

logger = logging.getLogger(__name__)


def _check_positive(**sizes):
    for name, value in sizes.items():
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
            raise ConfigurationError(f"{name} must be a positive integer, got {value}")


def _check_arity(layer, inputs, expected):
    if len(inputs) != expected:
        raise ConfigurationError(
            f"{type(layer).__name__}.forward expects {expected} input(s), got {len(inputs)}"
        )


class Layer:
    """
    Base class for all layers.

    Provides common functionality for managing parameters and gradients.
    """

    def forward(self, inputs):
        raise NotImplementedError(f"{type(self).__name__} must implement forward()")

    def __call__(self, *inputs):
        """Shorthand: layer(x, h) == layer.forward([x, h])"""
        return self.forward(list(inputs))

    def zero_grad(self):
        """
        Reset all parameter gradients to zero.

        Tensor.backward() already clears every buffer it reaches; this is for
        drivers that inspect or clear gradients between passes themselves.
        """
        for p in self.parameters():
            p.grad = np.zeros_like(p.data)

    def parameters(self):
        """
        Return a list of all trainable parameters (weights and biases).

        Override this in subclasses to return actual parameters.
        """
        return []


class Sigmoid(Layer):
    """Elementwise sigmoid as a layer (single input, single output)."""

    def forward(self, inputs):
        _check_arity(self, inputs, 1)
        return [inputs[0].sigmoid()]

    def __repr__(self):
        return "Sigmoid()"


class Tanh(Layer):
    """Elementwise tanh as a layer (single input, single output)."""

    def forward(self, inputs):
        _check_arity(self, inputs, 1)
        return [inputs[0].tanh()]

    def __repr__(self):
        return "Tanh()"


class ReLU(Layer):
    """Elementwise ReLU as a layer (single input, single output)."""

    def forward(self, inputs):
        _check_arity(self, inputs, 1)
        return [inputs[0].relu()]

    def __repr__(self):
        return "ReLU()"


class Linear(Layer):
    """
    Fully-connected (affine) layer: output = x . W + b

    Args:
        n_inputs: Number of input features
        n_outputs: Number of output features
        use_bias: Whether to add a bias row (default: True)
        weights: Optional pre-initialized weights (n_inputs, n_outputs)
        bias: Optional pre-initialized bias (n_outputs,)
        rng: numpy Generator used for initialization (default: fresh default_rng())
        name: Optional name for debugging

    Example:
        >>> layer = Linear(3, 5, rng=np.random.default_rng(0))
        >>> x = Tensor([[1, 2, 3], [4, 5, 6]])  # batch of 2 rows
        >>> [y] = layer.forward([x])            # shape (2, 5)
    """

    def __init__(self, n_inputs, n_outputs, use_bias=True, weights=None, bias=None, rng=None, name=""):
        _check_positive(n_inputs=n_inputs, n_outputs=n_outputs)
        self.name = name

        if weights is not None:
            weights = np.array(weights, dtype=float)
            if weights.shape != (n_inputs, n_outputs):
                raise ShapeMismatchError(
                    f"weights must have shape {(n_inputs, n_outputs)}, got {weights.shape}"
                )
            self.W = Tensor(weights, name=f"W_{name}")
        else:
            rng = rng if rng is not None else np.random.default_rng()
            # Small symmetric range: width 0.5 centered on zero
            self.W = Tensor(rng.uniform(-0.25, 0.25, (n_inputs, n_outputs)), name=f"W_{name}")

        self.use_bias = use_bias
        if self.use_bias:
            if bias is not None:
                bias = np.array(bias, dtype=float)
                if bias.size != n_outputs:
                    raise ShapeMismatchError(f"bias must have {n_outputs} values, got {bias.size}")
                self.b = Tensor(bias.reshape(1, n_outputs), name=f"b_{name}")
            else:
                self.b = Tensor(np.zeros((1, n_outputs)), name=f"b_{name}")
        else:
            self.b = None

        logger.debug("Linear %d -> %d (bias=%s)", n_inputs, n_outputs, use_bias)

    def forward(self, inputs):
        """
        Forward pass.

        Args:
            inputs: [x] with x of shape (batch_size, n_inputs)

        Returns:
            [output] with output of shape (batch_size, n_outputs)
        """
        _check_arity(self, inputs, 1)
        x = inputs[0]

        act = x.dot(self.W)
        if self.use_bias:
            # Broadcast the single bias row across the batch
            act = act + self.b.expand(0, x.rows)

        return [act]

    def parameters(self):
        """Return list of trainable parameters (weights and bias)."""
        params = [self.W]
        if self.use_bias:
            params.append(self.b)
        return params

    def __repr__(self):
        bias = "bias" if self.use_bias else "no bias"
        return f"Linear({self.W.rows} → {self.W.cols}, {bias})"


class Embedding(Layer):
    """
    Lookup table mapping integer ids to dense rows.

    The single input Tensor's first row is read as a sequence of ids (stored
    as floats and truncated); the output stacks the matching rows in order.

    Example:
        >>> emb = Embedding(10, 4, rng=np.random.default_rng(0))
        >>> [vectors] = emb.forward([Tensor([[3, 1, 3]])])  # shape (3, 4)
    """

    def __init__(self, vocab_size, embedding_size, rng=None, weights=None):
        _check_positive(vocab_size=vocab_size, embedding_size=embedding_size)

        if weights is not None:
            weights = np.array(weights, dtype=float)
            if weights.shape != (vocab_size, embedding_size):
                raise ShapeMismatchError(
                    f"weights must have shape {(vocab_size, embedding_size)}, got {weights.shape}"
                )
        else:
            rng = rng if rng is not None else np.random.default_rng()
            # Uniform in [-0.5, 0.5) scaled by 1/embedding_size
            weights = (rng.uniform(0.0, 1.0, (vocab_size, embedding_size)) - 0.5) / embedding_size

        self.weights = Tensor(weights, name="embedding")
        logger.debug("Embedding %d x %d", vocab_size, embedding_size)

    @classmethod
    def from_weights(cls, weights):
        """Build an Embedding around an existing (vocab_size, embedding_size) table."""
        weights = np.atleast_2d(np.array(weights, dtype=float))
        if weights.ndim > 2:
            raise ShapeMismatchError(f"embedding table must be 2-D, got shape {weights.shape}")
        vocab_size, embedding_size = weights.shape
        return cls(vocab_size, embedding_size, weights=weights)

    def clone(self):
        """Deep copy: the new table is an independent leaf holding the same values."""
        return type(self).from_weights(self.weights.data.copy())

    def __copy__(self):
        return self.clone()

    def forward(self, inputs):
        _check_arity(self, inputs, 1)
        indices = inputs[0].data[0].astype(int)
        return [self.weights.index_select(indices)]

    def parameters(self):
        return [self.weights]

    def __repr__(self):
        return f"Embedding({self.weights.rows}, {self.weights.cols})"


class Sequential(Layer):
    """
    Ordered composition of single-output layers.

    Example:
        >>> model = Sequential([Linear(3, 4), Tanh(), Linear(4, 1)])
        >>> [y] = model.forward([x])
    """

    def __init__(self, layers=None):
        self.layers = list(layers) if layers is not None else []

    def add(self, layer):
        """Append a layer to the end of the chain."""
        self.layers.append(layer)

    def __len__(self):
        return len(self.layers)

    def __iter__(self):
        return iter(self.layers)

    def forward(self, inputs):
        """Thread one Tensor through every layer; each must return exactly one output."""
        _check_arity(self, inputs, 1)
        x = inputs[0]
        for layer in self.layers:
            outputs = layer.forward([x])
            if len(outputs) != 1:
                raise ConfigurationError(
                    f"Sequential can only chain single-output layers, "
                    f"{layer!r} returned {len(outputs)} outputs"
                )
            x = outputs[0]
        return [x]

    def parameters(self):
        """Return all trainable parameters from all layers, in layer order."""
        return [p for layer in self.layers for p in layer.parameters()]

    def __repr__(self):
        layer_str = ' → '.join(str(layer) for layer in self.layers)
        return f"Sequential[\n  {layer_str}\n]"


class RNNCell(Layer):
    """
    Elman recurrent cell.

        new_hidden = activation(w_ih(input) + w_hh(hidden))
        output     = w_ho(new_hidden)

    The cell keeps no state between calls: the caller threads the hidden
    Tensor returned by one step into the next.

    Args:
        n_inputs: Number of input features per step
        n_hidden: Hidden state width
        n_outputs: Number of output features per step
        activation: Layer applied to the hidden pre-activation (default: Sigmoid())
        rng: numpy Generator shared by all sublayers

    Example:
        >>> cell = RNNCell(1, 2, 1, activation=Tanh())
        >>> hidden = cell.create_start_state(batch_size=1)
        >>> for x in sequence:
        ...     output, hidden = cell.forward([x, hidden])
    """

    def __init__(self, n_inputs, n_hidden, n_outputs, activation=None, rng=None):
        _check_positive(n_inputs=n_inputs, n_hidden=n_hidden, n_outputs=n_outputs)
        rng = rng if rng is not None else np.random.default_rng()

        self.n_hidden = n_hidden
        self.activation = activation if activation is not None else Sigmoid()

        self.w_ih = Linear(n_inputs, n_hidden, rng=rng, name="ih")
        self.w_hh = Linear(n_hidden, n_hidden, rng=rng, name="hh")
        self.w_ho = Linear(n_hidden, n_outputs, rng=rng, name="ho")

    def create_start_state(self, batch_size):
        """Zero hidden state of shape (batch_size, n_hidden) for a fresh sequence."""
        _check_positive(batch_size=batch_size)
        return Tensor(np.zeros((batch_size, self.n_hidden)), name="hidden")

    def forward(self, inputs):
        """
        One time step.

        Args:
            inputs: [input, hidden]

        Returns:
            [output, new_hidden]
        """
        _check_arity(self, inputs, 2)
        x, hidden = inputs

        input_part = self.w_ih.forward([x])[0]
        state_part = self.w_hh.forward([hidden])[0]

        [new_hidden] = self.activation.forward([input_part + state_part])
        [output] = self.w_ho.forward([new_hidden])

        return [output, new_hidden]

    def parameters(self):
        return self.w_ih.parameters() + self.w_hh.parameters() + self.w_ho.parameters()

    def __repr__(self):
        return (f"RNNCell(n_hidden={self.n_hidden}, w_ih={self.w_ih}, w_hh={self.w_hh}, "
                f"w_ho={self.w_ho}, activation={self.activation})")


class LSTMCell(Layer):
    """
    Long short-term memory cell.

        f = sigmoid(xf(x) + hf(h))        forget gate
        i = sigmoid(xi(x) + hi(h))        input gate
        o = sigmoid(xo(x) + ho(h))        output gate
        g = tanh(xc(x) + hc(h))           candidate cell
        cell   = f * prev_cell + i * g
        hidden = o * tanh(cell)
        output = w_ho(hidden)

    Input-side projections carry a bias, hidden-side projections and the
    output projection do not.
    """

    _sublayers = ("xf", "xi", "xo", "xc", "hf", "hi", "ho", "hc", "w_ho")

    def __init__(self, n_inputs, n_hidden, n_outputs, rng=None):
        _check_positive(n_inputs=n_inputs, n_hidden=n_hidden, n_outputs=n_outputs)
        rng = rng if rng is not None else np.random.default_rng()

        self.xf = Linear(n_inputs, n_hidden, rng=rng, name="xf")
        self.xi = Linear(n_inputs, n_hidden, rng=rng, name="xi")
        self.xo = Linear(n_inputs, n_hidden, rng=rng, name="xo")
        self.xc = Linear(n_inputs, n_hidden, rng=rng, name="xc")

        self.hf = Linear(n_hidden, n_hidden, use_bias=False, rng=rng, name="hf")
        self.hi = Linear(n_hidden, n_hidden, use_bias=False, rng=rng, name="hi")
        self.ho = Linear(n_hidden, n_hidden, use_bias=False, rng=rng, name="ho")
        self.hc = Linear(n_hidden, n_hidden, use_bias=False, rng=rng, name="hc")

        self.w_ho = Linear(n_hidden, n_outputs, use_bias=False, rng=rng, name="w_ho")

        self.n_hidden = n_hidden

    def create_start_state(self, batch_size):
        """
        Initial (hidden, cell) pair of shape (batch_size, n_hidden).

        Both are zero except column 0, which is 1.0 in every row.
        """
        _check_positive(batch_size=batch_size)
        h = np.zeros((batch_size, self.n_hidden))
        c = np.zeros((batch_size, self.n_hidden))
        h[:, 0] = 1.0
        c[:, 0] = 1.0
        return Tensor(h, name="hidden"), Tensor(c, name="cell")

    def forward(self, inputs):
        """
        One time step.

        Args:
            inputs: [input, prev_hidden, prev_cell]

        Returns:
            [output, hidden, cell]
        """
        _check_arity(self, inputs, 3)
        x, prev_hidden, prev_cell = inputs

        f = (self.xf(x)[0] + self.hf(prev_hidden)[0]).sigmoid()
        i = (self.xi(x)[0] + self.hi(prev_hidden)[0]).sigmoid()
        o = (self.xo(x)[0] + self.ho(prev_hidden)[0]).sigmoid()
        g = (self.xc(x)[0] + self.hc(prev_hidden)[0]).tanh()

        c = f * prev_cell + i * g
        h = o * c.tanh()

        [output] = self.w_ho.forward([h])
        return [output, h, c]

    def parameters(self):
        return [p for name in self._sublayers for p in getattr(self, name).parameters()]

    def __repr__(self):
        return f"LSTMCell(n_inputs={self.xf.W.rows}, n_hidden={self.n_hidden}, n_outputs={self.w_ho.W.cols})"
