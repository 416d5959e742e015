"""
Loss functions used to score predictions in permutation importance.

This module implements:
- `mse`, `rmse`, `mae`: regression losses over numeric responses.
- `log_loss`: binary cross-entropy over positive-class probabilities.
- `error_rate`: share of mismatched labels (any label type).
- `mcc_loss`: 1 - Matthews Correlation Coefficient at a 0.5 threshold.
- `resolve_loss`: look up a loss by name (or accept a callable) and check
  that it is defined for the response vector at hand.

Notes
-----
- Every loss has the signature ``loss(y_true, y_pred) -> float`` and is
  "lower is better", so importance = perturbed loss - baseline loss is
  positive for useful features.
- Small epsilons are used to avoid division-by-zero and log(0).
"""

import math
from typing import Callable, Dict, Tuple, Union

import numpy as np
import pandas as pd

from ..errors import InvalidConfiguration

LossFn = Callable[[np.ndarray, np.ndarray], float]


def mse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Mean squared error."""
    diff = np.asarray(y_true, dtype=float) - np.asarray(y_pred, dtype=float)
    return float(np.mean(diff ** 2))


def rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Root mean squared error."""
    return math.sqrt(mse(y_true, y_pred))


def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Mean absolute error."""
    diff = np.asarray(y_true, dtype=float) - np.asarray(y_pred, dtype=float)
    return float(np.mean(np.abs(diff)))


def log_loss(y_true: np.ndarray, y_pred: np.ndarray, eps: float = 1e-12) -> float:
    """Binary cross-entropy between 0/1 labels and positive-class probabilities."""
    y = np.asarray(y_true, dtype=float)
    p = np.clip(np.asarray(y_pred, dtype=float), eps, 1.0 - eps)
    return float(-np.mean(y * np.log(p) + (1.0 - y) * np.log(1.0 - p)))


def error_rate(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Fraction of predictions that differ from the true label."""
    return float(np.mean(np.asarray(y_true) != np.asarray(y_pred)))


def mcc_loss(y_true: np.ndarray, y_pred: np.ndarray, thr: float = 0.5) -> float:
    """1 - MCC, with predictions binarized at ``thr``.

    MCC formula: (TP*TN - FP*FN) / sqrt((TP+FP)(TP+FN)(TN+FP)(TN+FN)).
    """
    y = np.asarray(y_true).ravel().astype(int)
    yhat = (np.asarray(y_pred, dtype=float).ravel() >= thr).astype(int)

    # Confusion matrix counts
    tp = int(np.sum((yhat == 1) & (y == 1)))
    tn = int(np.sum((yhat == 0) & (y == 0)))
    fp = int(np.sum((yhat == 1) & (y == 0)))
    fn = int(np.sum((yhat == 0) & (y == 1)))

    num = (tp * tn) - (fp * fn)
    den = math.sqrt((tp + fp) * (tp + fn) * (tn + fp) * (tn + fn)) + 1e-8
    return float(1.0 - num / den)


# name -> (function, requirement on y_true)
LOSSES: Dict[str, Tuple[LossFn, str]] = {
    "mse": (mse, "numeric"),
    "rmse": (rmse, "numeric"),
    "mae": (mae, "numeric"),
    "log_loss": (log_loss, "binary"),
    "error_rate": (error_rate, "any"),
    "mcc": (mcc_loss, "binary"),
}


def _is_numeric(y: np.ndarray) -> bool:
    return pd.api.types.is_numeric_dtype(pd.Series(y).infer_objects()) and not pd.api.types.is_bool_dtype(y)


def _is_binary(y: np.ndarray) -> bool:
    if not _is_numeric(y) and not pd.api.types.is_bool_dtype(y):
        return False
    return set(np.unique(np.asarray(y, dtype=float))).issubset({0.0, 1.0})


def resolve_loss(loss: Union[str, LossFn], y_true: np.ndarray) -> Tuple[str, LossFn]:
    """Return ``(name, fn)`` for ``loss`` after checking it suits ``y_true``.

    Raises
    ------
    InvalidConfiguration
        If the name is unknown, or the loss is undefined for the response
        type (e.g. ``"mse"`` on string labels, ``"log_loss"`` on non-binary
        targets).
    """
    if callable(loss):
        return getattr(loss, "__name__", "custom"), loss
    if loss not in LOSSES:
        raise InvalidConfiguration(f"Unknown loss '{loss}'. Available: {sorted(LOSSES)}")

    fn, requirement = LOSSES[loss]
    y = np.asarray(y_true)
    if requirement == "numeric" and not _is_numeric(y):
        raise InvalidConfiguration(f"Loss '{loss}' requires a numeric response, got dtype {y.dtype}.")
    if requirement == "binary" and not _is_binary(y):
        raise InvalidConfiguration(f"Loss '{loss}' requires binary 0/1 labels.")
    return loss, fn
