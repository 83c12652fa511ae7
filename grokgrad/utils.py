"""
Inspection utilities for grokgrad computational graphs.

This module provides functions to walk and visualize the graph recorded by
Tensor operations, and a small helper for wiring up log output.
"""

import logging

import numpy as np
from graphviz import Digraph


def trace(root):
    """
    Collect every node and edge of the computational graph ending at `root`.

    Args:
        root: A Tensor, typically the output of a forward pass or a loss

    Returns:
        tuple: (nodes, edges) where:
            - nodes: set of all Tensors in the graph
            - edges: set of (parent, child) tuples

    Example:
        >>> x = Tensor([[2.0]])
        >>> y = Tensor([[3.0]])
        >>> z = x * y + x
        >>> nodes, edges = trace(z)
        >>> len(nodes)  # x, y, x*y and z
        4
    """
    nodes, edges = set(), set()
    stack = [root]
    while stack:
        v = stack.pop()
        if v not in nodes:
            nodes.add(v)
            for parent in v.parents:
                edges.add((parent, v))
                stack.append(parent)
    return nodes, edges


def _short_repr(arr, max_shape=(4, 4)):
    """
    Compact text for a matrix inside a graph node.

    Small matrices are printed in full, one line per row; larger ones are
    summarized by shape plus their first and last three values.
    """
    if arr is None:
        return "-"
    arr = np.asarray(arr)

    if arr.size == 0:
        return "[]"

    if arr.shape[0] <= max_shape[0] and arr.shape[-1] <= max_shape[1]:
        lines = [" ".join(f"{x:.4f}" for x in row) for row in arr]
        return "\\n" + "\\n".join(lines)

    flat = arr.flatten()
    vals = ", ".join(f"{x:.4f}" for x in flat[:3]) + ", ..., " + ", ".join(f"{x:.4f}" for x in flat[-3:])
    return f"shape={arr.shape}\\n[{vals}]"


def draw_dot(root, format='svg', rankdir='LR'):
    """
    Visualize the computational graph ending at `root` as a directed graph.

    Creates a Graphviz diagram showing:
    - Tensor nodes with their data and gradients
    - Operation nodes (dot, +, sigmoid, ...)
    - Edges showing data flow through the computation

    Args:
        root: A Tensor to visualize from
        format: Output format ('svg', 'png', 'pdf', etc.)
        rankdir: Graph direction - 'LR' (left-right) or 'TB' (top-bottom)

    Returns:
        Digraph: call .render() on it, or display it in a notebook

    Note:
        Building the Digraph only needs the `graphviz` Python package;
        rendering also needs the Graphviz system binaries.
    """
    assert rankdir in ['LR', 'TB'], "rankdir must be 'LR' (left-right) or 'TB' (top-bottom)"

    nodes, _ = trace(root)

    dot = Digraph(format=format, graph_attr={'rankdir': rankdir})

    # Creation order keeps the output stable between runs
    for n in sorted(nodes, key=lambda v: v._id):
        node_id = f"t{n._id}"
        rows, cols = n.shape
        label = (f'{{ {n.name} | {rows}x{cols} | '
                 f'{{ data {_short_repr(n.data)} | grad {_short_repr(n.grad)} }} }}')
        dot.node(name=node_id, label=label, shape='record')

        if n.op:
            op_id = f"op{n._id}"
            op_label = f"{n.op} ({n._detail})" if n._detail else n.op
            dot.node(name=op_id, label=op_label)
            dot.edge(op_id, node_id)
            for parent in n.parents:
                dot.edge(f"t{parent._id}", op_id)

    return dot


def setup_logger(name="grokgrad", level=logging.INFO, log_file=None):
    """
    Attach console (and optionally file) output to a logger.

    The library itself only emits records; call this from a driver script
    to see them. Calling it again for the same logger adds no handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if log_file is not None:
        fh = logging.FileHandler(log_file)
        fh.setLevel(level)
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    return logger
