"""Small linear-algebra helpers for the calibration trainer."""

from __future__ import annotations

import numpy as np
import structlog

logger = structlog.get_logger(__name__)


def ridge_regression(X: np.ndarray, y: np.ndarray, lam: float) -> np.ndarray:
    """Closed-form ridge fit: solve ``(XᵀX + λI) w = Xᵀy``.

    The penalty is applied to every coordinate, the bias included.  A
    singular system (only possible with ``lam == 0``) yields a zero vector.
    """
    n, p = X.shape
    if n == 0:
        return np.zeros(p)
    A = X.T @ X + lam * np.eye(p)
    b = X.T @ y
    try:
        return np.linalg.solve(A, b)
    except np.linalg.LinAlgError:
        logger.warning("calibration.singular_system", n=n, p=p, lam=lam)
        return np.zeros(p)


def sample_variance(values: np.ndarray, axis: int = 0) -> np.ndarray | float:
    """Unbiased (``n - 1``) variance; ``0`` when fewer than two values."""
    values = np.asarray(values, dtype=float)
    if values.shape[axis] < 2:
        shape = values.shape[:axis] + values.shape[axis + 1:]
        return np.zeros(shape) if shape else 0.0
    return np.var(values, axis=axis, ddof=1)
