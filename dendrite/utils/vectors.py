"""
Vector codec and similarity primitive.

Embeddings travel through the code as ``list[float]``; storage keeps them as
DuckDB ``DOUBLE[]`` columns, and the queue/CLI paths use the bracketed text
form ``"[0.1,0.2,...]"``. Conversions between the forms are lossless for
the float values they carry.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

VECTOR_DIMENSION = 768


def to_list(vector: Sequence[float] | np.ndarray | None) -> list[float] | None:
    """Normalize any vector-like value to a plain list of Python floats."""
    if vector is None:
        return None
    if isinstance(vector, np.ndarray):
        return [float(x) for x in vector.ravel()]
    return [float(x) for x in vector]


def to_array(vector: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(vector, dtype=np.float64)


def to_storage_string(vector: Sequence[float] | np.ndarray | None) -> str | None:
    """Format as ``[x0,x1,...]`` using repr so values parse back exactly."""
    values = to_list(vector)
    if values is None:
        return None
    return "[" + ",".join(repr(v) for v in values) + "]"


def from_storage_string(text: str | None) -> list[float] | None:
    """
    Parse the bracketed text form.

    Blank or ``None`` input yields ``None``. Raises ValueError on anything
    that is not a bracketed, comma-separated list of numbers.
    """
    if text is None:
        return None
    body = text.strip()
    if not body:
        return None
    if not (body.startswith("[") and body.endswith("]")):
        raise ValueError(f"Not a vector literal: {text[:40]!r}")
    body = body[1:-1].strip()
    if not body:
        return []
    return [float(part) for part in body.split(",")]


def has_dimension(vector: Sequence[float] | None, dimension: int = VECTOR_DIMENSION) -> bool:
    return vector is not None and len(vector) == dimension


def cosine_similarity(
    a: Sequence[float] | np.ndarray | None,
    b: Sequence[float] | np.ndarray | None,
) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 when either input is missing, empty, zero-norm, or when the
    dimensions differ. Otherwise the result is symmetric and clamped to
    [-1, 1].
    """
    if a is None or b is None:
        return 0.0
    va = to_array(a)
    vb = to_array(b)
    if va.size == 0 or vb.size == 0 or va.shape != vb.shape:
        return 0.0

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    sim = float(np.dot(va, vb)) / (norm_a * norm_b)
    if math.isnan(sim):
        return 0.0
    return max(-1.0, min(1.0, sim))
