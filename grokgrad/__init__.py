"""
Grokgrad: a minimal educational deep-learning library.

This package provides a matrix-valued automatic differentiation engine and
composable layers (linear, embedding, sequential, RNN and LSTM cells) for
building and training small neural networks with hand-traceable math.
"""

from grokgrad.engine import Tensor, dot, expand, index_select, relu, sigmoid, tanh
from grokgrad.errors import ConfigurationError, GrokgradError, IndexOutOfRangeError, ShapeMismatchError
from grokgrad import nn
from grokgrad.utils import draw_dot, setup_logger, trace

__version__ = "0.1.0"
__all__ = [
    "Tensor",
    "dot",
    "expand",
    "index_select",
    "relu",
    "sigmoid",
    "tanh",
    "nn",
    "draw_dot",
    "trace",
    "setup_logger",
    "GrokgradError",
    "ShapeMismatchError",
    "IndexOutOfRangeError",
    "ConfigurationError",
]
