"""
Element-wise vector primitives.

Inputs are any float sequences; results are new ``list[float]`` (or
``float``) values, inputs are never modified. Binary operations raise
``DimensionMismatchError`` instead of truncating or padding.
"""

from typing import List, Sequence

import numpy as np

from memory_ai.errors import DimensionMismatchError, InvalidInputError

Vector = Sequence[float]


def as_vector(v: Vector) -> np.ndarray:
    x = np.asarray(v, dtype=np.float64)
    if x.ndim != 1:
        raise InvalidInputError(f"Expected a flat vector, got shape {x.shape}")
    return x


def _pair(a: Vector, b: Vector):
    x = as_vector(a)
    y = as_vector(b)
    if x.shape[0] != y.shape[0]:
        raise DimensionMismatchError(x.shape[0], y.shape[0])
    return x, y


def dot_product(a: Vector, b: Vector) -> float:
    x, y = _pair(a, b)
    return float(np.dot(x, y))


def magnitude(a: Vector) -> float:
    return float(np.linalg.norm(as_vector(a)))


def normalize(a: Vector) -> List[float]:
    x = as_vector(a)
    mag = np.linalg.norm(x)
    if mag == 0.0:
        raise InvalidInputError("Cannot normalize zero vector")
    return (x / mag).tolist()


def add(a: Vector, b: Vector) -> List[float]:
    x, y = _pair(a, b)
    return (x + y).tolist()


def subtract(a: Vector, b: Vector) -> List[float]:
    x, y = _pair(a, b)
    return (x - y).tolist()


def scale(a: Vector, k: float) -> List[float]:
    return (as_vector(a) * float(k)).tolist()


def distance(a: Vector, b: Vector) -> float:
    x, y = _pair(a, b)
    return float(np.linalg.norm(x - y))
