"""
Model boundary: the single capability the engine relies on.

Every interpretation routine treats a fitted model as an opaque object with
one operation, ``predict(frame) -> np.ndarray`` returning one numeric output
per row. Heterogeneous model objects are adapted to that contract here,
at the boundary:

- ``EstimatorModel``      : objects exposing ``predict`` (scikit-learn style).
- ``ProbabilityModel``    : objects exposing ``predict_proba``; the positive
  class column is used as the output.
- ``FunctionModel``       : plain callables taking the whole DataFrame.
- ``RowFunctionModel``    : callables evaluated row by row on mappings.
- ``ColumnAlignedModel``  : wraps another model and reorders / backfills
  columns to the feature order the model was fitted with.

``as_model`` picks the right adapter for an arbitrary object.
"""

from typing import Any, Callable, List, Mapping, Optional, Protocol, runtime_checkable

import numpy as np
import pandas as pd

from ..errors import InvalidConfiguration


@runtime_checkable
class PredictiveModel(Protocol):
    """Anything that maps a feature frame to one numeric output per row."""

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        ...


def _as_vector(out: Any, n_rows: int) -> np.ndarray:
    arr = np.asarray(out)
    if arr.ndim == 2 and arr.shape[1] == 1:
        arr = arr[:, 0]
    if arr.ndim != 1 or arr.shape[0] != n_rows:
        raise InvalidConfiguration(
            f"Model returned output of shape {np.shape(out)} for {n_rows} rows; "
            "expected one value per row."
        )
    return arr


class EstimatorModel:
    """Adapter for estimators exposing ``predict``."""

    def __init__(self, estimator: Any) -> None:
        self.estimator = estimator

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return _as_vector(self.estimator.predict(X), len(X))


class ProbabilityModel:
    """Adapter for classifiers: output is the probability of ``positive_index``."""

    def __init__(self, estimator: Any, positive_index: int = 1) -> None:
        self.estimator = estimator
        self.positive_index = positive_index

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        proba = np.asarray(self.estimator.predict_proba(X))
        if proba.ndim == 2 and proba.shape[1] > 1:
            proba = proba[:, self.positive_index]
        return _as_vector(proba, len(X))


class FunctionModel:
    """Adapter for ``fn(frame) -> outputs``."""

    def __init__(self, fn: Callable[[pd.DataFrame], Any]) -> None:
        self.fn = fn

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return _as_vector(self.fn(X), len(X))


class RowFunctionModel:
    """Adapter for ``fn(row) -> float`` where ``row`` maps feature name to value.

    Convenient for small hand-written models (e.g. ``lambda r: r["x"] * r["y"]``);
    slow for large frames since it evaluates rows one at a time.
    """

    def __init__(self, fn: Callable[[Mapping[str, Any]], float]) -> None:
        self.fn = fn

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        out = [self.fn(row) for row in X.to_dict(orient="records")]
        return np.asarray(out, dtype=float)


class ColumnAlignedModel:
    """Ensure the frame has the fitted feature order before predicting.

    - Missing columns are created and filled with ``fill_value``.
    - Extra columns are dropped.
    """

    def __init__(self, model: PredictiveModel, feature_order: List[str], fill_value: Any = 0.0) -> None:
        self.model = model
        self.feature_order = list(feature_order)
        self.fill_value = fill_value

    def align_columns(self, X: pd.DataFrame) -> pd.DataFrame:
        aligned = X.copy()
        for c in self.feature_order:
            if c not in aligned.columns:
                aligned[c] = self.fill_value
        return aligned[self.feature_order]

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return self.model.predict(self.align_columns(X))


def as_model(obj: Any, use_proba: bool = False, feature_order: Optional[List[str]] = None) -> PredictiveModel:
    """Adapt ``obj`` to the ``PredictiveModel`` contract.

    Args
    ----
    obj:
        A fitted estimator, an already adapted model, or a callable over a
        DataFrame.
    use_proba:
        Prefer ``predict_proba`` (positive class) over ``predict`` when the
        object has both.
    feature_order:
        If given, columns are aligned to this order before predicting.

    Raises
    ------
    InvalidConfiguration
        If ``obj`` exposes neither ``predict``/``predict_proba`` nor ``__call__``.
    """
    if use_proba and hasattr(obj, "predict_proba"):
        model = ProbabilityModel(obj)
    elif isinstance(obj, _ADAPTERS):
        model = obj
    elif hasattr(obj, "predict"):
        model = EstimatorModel(obj)
    elif callable(obj):
        model = FunctionModel(obj)
    else:
        raise InvalidConfiguration(
            f"Object of type {type(obj).__name__} has no predict() and is not callable."
        )
    if feature_order:
        model = ColumnAlignedModel(model, feature_order)
    return model


_ADAPTERS = (EstimatorModel, ProbabilityModel, FunctionModel, RowFunctionModel, ColumnAlignedModel)


def predict_frame(
    model: PredictiveModel,
    X: pd.DataFrame,
    max_batch_rows: Optional[int] = None,
    dtype: Any = float,
) -> np.ndarray:
    """Predict ``X`` in chunks of at most ``max_batch_rows`` rows.

    Outputs are cast to ``dtype``; pass ``dtype=None`` to keep label
    predictions (e.g. class names) as returned by the model.
    """
    if max_batch_rows is None or len(X) <= max_batch_rows:
        return np.asarray(model.predict(X), dtype=dtype).ravel()
    parts = [
        np.asarray(model.predict(X.iloc[start:start + max_batch_rows]), dtype=dtype).ravel()
        for start in range(0, len(X), max_batch_rows)
    ]
    return np.concatenate(parts)
