import itertools
import logging

import numpy as np

from grokgrad.errors import ConfigurationError, IndexOutOfRangeError, ShapeMismatchError

logger = logging.getLogger(__name__)

# Creation counter: parents always receive a smaller index than their children
_creation_index = itertools.count()


class Tensor:
    """
    Wraps a 2-D matrix and records how it was produced for automatic differentiation.

    A Tensor is a node in the computation graph. Leaves are created directly from
    data (weights, biases, embedding tables, inputs); every operation returns a new
    node that references its parents verbatim, so the same leaf can be shared by
    many forward passes and many layers.

    Example:
        >>> x = Tensor([[1.0, 2.0]])
        >>> w = Tensor([[3.0], [4.0]])
        >>> y = x @ w        # y.data = [[11.0]]
        >>> y.backward()
        >>> w.grad           # [[1.0], [2.0]]
    """

    def __init__(self, data, _children=(), _op='', name=""):
        """
        Initialize a Tensor.

        Args:
            data: Scalar, sequence or 2-D array. Scalars and 1-D data become one row.
            _children: Tuple of parent Tensors (internal use for autograd)
            _op: Tag of the operation that created this Tensor (internal)
            name: Optional name for debugging and visualization
        """
        data = np.array(data, dtype=float)
        if data.ndim > 2:
            raise ShapeMismatchError(f"Tensor data must be at most 2-D, got shape {data.shape}")
        self.data = np.atleast_2d(data)

        # Gradient buffer is absent until a backward pass reaches this node
        self.grad = None

        self.name = name

        # Internal variables for building the computational graph
        self._backward = lambda: None
        self._prev = tuple(_children)
        self._op = _op
        self._id = next(_creation_index)
        # Operation arguments, for display only
        self._detail = ""

    @property
    def shape(self):
        return self.data.shape

    @property
    def rows(self):
        return self.data.shape[0]

    @property
    def cols(self):
        return self.data.shape[1]

    @property
    def op(self):
        """Tag of the producing operation ('' for leaves)."""
        return self._op

    @property
    def parents(self):
        """Parent nodes in the order they were given to the operation."""
        return self._prev

    @property
    def is_leaf(self):
        return not self._prev

    def _lift(self, other):
        """Turn a plain number into a constant leaf shaped like self; wrap anything else as-is."""
        if isinstance(other, Tensor):
            return other
        if np.isscalar(other):
            return Tensor(np.full_like(self.data, other))
        return Tensor(other)

    def _check_same_shape(self, other, op):
        if self.shape != other.shape:
            raise ShapeMismatchError(
                f"'{op}' requires identical shapes, got {self.shape} and {other.shape}"
            )

    def __add__(self, other):
        """
        Elementwise addition. Both operands must have the same shape;
        use expand() first to broadcast a bias row.

        Example:
            >>> a = Tensor([[1, 2], [3, 4]])
            >>> b = Tensor([[5, 6], [7, 8]])
            >>> c = a + b  # [[6, 8], [10, 12]]
        """
        other = self._lift(other)
        self._check_same_shape(other, '+')

        out = Tensor(self.data + other.data, (self, other), '+')

        def _backward():
            """d(a+b)/da = 1, d(a+b)/db = 1"""
            self.grad += out.grad
            other.grad += out.grad

        out._backward = _backward
        return out

    def __mul__(self, other):
        """
        Elementwise (Hadamard) product of two equally shaped Tensors.

        Example:
            >>> a = Tensor([[3.0, 2.0]])
            >>> b = Tensor([[4.0, 5.0]])
            >>> c = a * b  # [[12.0, 10.0]]
        """
        other = self._lift(other)
        self._check_same_shape(other, '*')

        out = Tensor(self.data * other.data, (self, other), '*')

        def _backward():
            """d(a*b)/da = b, d(a*b)/db = a"""
            self.grad += other.data * out.grad
            other.grad += self.data * out.grad

        out._backward = _backward
        return out

    def dot(self, other):
        """
        Matrix product: (n x k) . (k x m) -> (n x m)

        Example:
            >>> A = Tensor([[1, 2], [3, 4]])
            >>> B = Tensor([[5, 6], [7, 8]])
            >>> C = A.dot(B)  # same as A @ B
        """
        if not isinstance(other, Tensor):
            other = Tensor(other)
        if self.cols != other.rows:
            raise ShapeMismatchError(
                f"dot requires A.cols == B.rows, got {self.shape} and {other.shape}"
            )

        out = Tensor(self.data @ other.data, (self, other), 'dot')

        def _backward():
            """
            - d(A.B)/dA = grad . B.T
            - d(A.B)/dB = A.T . grad
            """
            self.grad += out.grad @ other.data.T
            other.grad += self.data.T @ out.grad

        out._backward = _backward
        return out

    def __matmul__(self, other):
        return self.dot(other)

    def expand(self, axis, n):
        """
        Replicate a size-1 dimension `n` times along `axis`.

        Used to broadcast a (1 x m) bias row across every row of a batch.

        Example:
            >>> b = Tensor([[1.0, 2.0]])
            >>> b.expand(0, 3).data
            array([[1., 2.], [1., 2.], [1., 2.]])
        """
        if axis not in (0, 1):
            raise ConfigurationError(f"expand axis must be 0 or 1, got {axis}")
        if n < 0:
            raise ConfigurationError(f"expand count must not be negative, got {n}")
        if self.shape[axis] != 1:
            raise ShapeMismatchError(
                f"expand along axis {axis} requires size 1 there, got shape {self.shape}"
            )

        out = Tensor(np.repeat(self.data, n, axis=axis), (self,), 'expand')
        out._detail = f"axis={axis}, n={n}"

        def _backward():
            """Every replica received a gradient: sum them back into the single source."""
            self.grad += out.grad.sum(axis=axis, keepdims=True)

        out._backward = _backward
        return out

    def index_select(self, indices):
        """
        Gather rows by position, in the given order (embedding lookup).

        Example:
            >>> table = Tensor([[0.0, 0.1], [1.0, 1.1], [2.0, 2.1]])
            >>> table.index_select([2, 0]).data
            array([[2. , 2.1], [0. , 0.1]])
        """
        indices = np.asarray(indices, dtype=int).reshape(-1)
        bad = indices[(indices < 0) | (indices >= self.rows)]
        if bad.size:
            raise IndexOutOfRangeError(
                f"index {int(bad[0])} out of range for {self.rows} rows"
            )

        out = Tensor(self.data[indices], (self,), 'index_select')
        out._detail = f"{indices.size} rows"

        def _backward():
            """Scatter-add each gathered row's gradient back; repeated rows accumulate."""
            np.add.at(self.grad, indices, out.grad)

        out._backward = _backward
        return out

    def __pow__(self, other):
        """
        Raise every element to a scalar power.

        Example:
            >>> x = Tensor([[3.0]])
            >>> y = x ** 2  # [[9.0]]
        """
        assert isinstance(other, (int, float)), "Only supporting int/float powers"

        out = Tensor(self.data ** other, (self,), f'**{other}')

        def _backward():
            """d(x^n)/dx = n * x^(n-1)"""
            self.grad += (other * self.data ** (other - 1)) * out.grad

        out._backward = _backward
        return out

    def relu(self):
        """
        ReLU activation: max(0, x)

        Example:
            >>> x = Tensor([[-1, 0, 1, 2]])
            >>> y = x.relu()  # [[0, 0, 1, 2]]
        """
        out = Tensor(np.maximum(0, self.data), (self,), 'relu')

        def _backward():
            """Gradient only flows where the output was positive."""
            self.grad += (out.data > 0) * out.grad

        out._backward = _backward
        return out

    def sigmoid(self):
        """
        Sigmoid activation: 1 / (1 + e^(-x)), squashing into (0, 1).

        Example:
            >>> x = Tensor([[0, 1, -1]])
            >>> y = x.sigmoid()  # [[0.5, 0.73, 0.27]]
        """
        # For x >= 0: 1 / (1 + e^(-x)); for x < 0: e^x / (1 + e^x)
        with np.errstate(over='ignore', invalid='ignore'):
            sigmoid_data = np.where(
                self.data >= 0,
                1 / (1 + np.exp(-self.data)),
                np.exp(self.data) / (1 + np.exp(self.data))
            )
        out = Tensor(sigmoid_data, (self,), 'sigmoid')

        def _backward():
            """ds/dx = s(x) * (1 - s(x))"""
            self.grad += out.data * (1 - out.data) * out.grad

        out._backward = _backward
        return out

    def tanh(self):
        """
        Hyperbolic tangent activation, squashing into (-1, 1).

        Example:
            >>> x = Tensor([[0.0]])
            >>> y = x.tanh()  # [[0.0]]
        """
        out = Tensor(np.tanh(self.data), (self,), 'tanh')

        def _backward():
            """dtanh/dx = 1 - tanh(x)^2"""
            self.grad += (1 - out.data ** 2) * out.grad

        out._backward = _backward
        return out

    def sum(self, axis=None):
        """
        Sum all elements (-> 1 x 1) or along an axis, keeping the result 2-D.

        Example:
            >>> x = Tensor([[1, 2], [3, 4]])
            >>> x.sum().data         # [[10]]
            >>> x.sum(axis=0).data   # [[4, 6]]
        """
        if axis is None:
            data = np.sum(self.data).reshape(1, 1)
        elif axis in (0, 1):
            data = np.sum(self.data, axis=axis, keepdims=True)
        else:
            raise ConfigurationError(f"sum axis must be None, 0 or 1, got {axis}")

        out = Tensor(data, (self,), 'sum')

        def _backward():
            """Every summed element contributes with slope 1."""
            self.grad += np.broadcast_to(out.grad, self.data.shape)

        out._backward = _backward
        return out

    def transpose(self):
        """Swap rows and columns."""
        out = Tensor(self.data.T, (self,), 'T', name=f"{self.name}.T" if self.name else "")

        def _backward():
            self.grad += out.grad.T

        out._backward = _backward
        return out

    @property
    def T(self):
        return self.transpose()

    def backward(self, grad=None):
        """
        Propagate gradients from this node to everything it was computed from.

        All gradient buffers reachable from this node are reset to zero first,
        so repeated calls never mix gradients of different passes. Nodes are then
        visited in reverse creation order, which is a valid reverse topological
        order because a parent always exists before its children.

        Args:
            grad: Incoming gradient for this node (default: ones, i.e. dL/dL = 1)

        Example:
            >>> x = Tensor([[2.0]])
            >>> y = x * 3 + 1
            >>> y.backward()
            >>> x.grad  # [[3.0]]
        """
        seed = np.ones_like(self.data) if grad is None else np.array(grad, dtype=float)
        if seed.ndim < 2:
            seed = np.atleast_2d(seed)
        if seed.shape != self.shape:
            raise ShapeMismatchError(
                f"backward seed of shape {seed.shape} does not match tensor shape {self.shape}"
            )

        # Collect every reachable node without recursion (long unrolled sequences)
        visited = {}
        stack = [self]
        while stack:
            v = stack.pop()
            if v._id not in visited:
                visited[v._id] = v
                stack.extend(v._prev)

        order = sorted(visited.values(), key=lambda v: v._id, reverse=True)
        logger.debug("backward from %s over %d nodes", self.shape, len(order))

        for v in order:
            v.grad = np.zeros_like(v.data)
        self.grad = seed

        for v in order:
            v._backward()

    # Derived operations built from the ones above

    def __neg__(self):
        """Negation: -x = x * -1"""
        return self * -1

    def __radd__(self, other):
        return self + other

    def __sub__(self, other):
        """Subtraction: a - b = a + (-b)"""
        return self + (-self._lift(other))

    def __rsub__(self, other):
        return self._lift(other) + (-self)

    def __rmul__(self, other):
        return self * other

    def __repr__(self):
        name_str = f"'{self.name}' " if self.name else ""
        op_str = f" from {self._op}" if self._op else ""
        return f"Tensor({name_str}shape={self.shape}, data={self.data.tolist()}{op_str})"


def dot(a, b):
    """Matrix product of two Tensors."""
    return a.dot(b)


def expand(tensor, axis, n):
    """Broadcast a size-1 dimension of `tensor` to size `n` along `axis`."""
    return tensor.expand(axis, n)


def index_select(tensor, indices):
    """Gather rows of `tensor` by position."""
    return tensor.index_select(indices)


def sigmoid(tensor):
    return tensor.sigmoid()


def tanh(tensor):
    return tensor.tanh()


def relu(tensor):
    return tensor.relu()
