"""
Interaction strength via Friedman's H-statistic.

Both variants compare partial dependence functions evaluated at each row's
own feature values, every function centered to mean zero over the rows:

- Pairwise, features j and k::

      H²_jk = Var(PD_jk - PD_j - PD_k) / Var(PD_jk)

  zero when the joint effect of j and k is the sum of their separate effects.

- One-vs-all, feature j::

      H²_j = Var(f - PD_j - PD_¬j) / Var(f)

  where ``f`` are the raw predictions and ``PD_¬j`` is the partial
  dependence on every feature except j. With ``M[k, i]`` the prediction for
  row i with x_j replaced by row k's value, ``f = diag(M)``,
  ``PD_j = mean over i`` and ``PD_¬j = mean over k`` of the same matrix, so
  one batched evaluation yields all three terms.

Each H² costs O(N²) predictions, so ``sample_size`` rows are drawn (seeded)
before scoring. ``interaction_strength`` ranks many features or pairs,
reports progress after each one and can be cancelled between them.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..errors import InsufficientVariance, InvalidConfiguration
from .dataset import Dataset, DatasetLike, as_dataset
from .dependence import conditional_predictions
from .models import PredictiveModel
from .parallel import ProgressFn, StopFn, run_units

logger = logging.getLogger(__name__)

VARIANCE_TOL = 1e-12


@dataclass
class InteractionScore:
    """H² for one feature (one-vs-all) or one feature pair.

    ``h_squared`` is ``None`` when undefined (prediction variance too small);
    ``reason`` then says why.
    """
    features: List[str]
    h_squared: Optional[float]
    reason: Optional[str] = None

    @property
    def h(self) -> Optional[float]:
        return None if self.h_squared is None else math.sqrt(self.h_squared)


@dataclass
class InteractionResult:
    mode: str
    target: Optional[str]
    n_rows: int
    scores: List[InteractionScore] = field(default_factory=list)
    complete: bool = True

    def as_mapping(self) -> Dict[str, Optional[float]]:
        return {" x ".join(s.features): s.h_squared for s in self.scores}

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        for entry, score in zip(out["scores"], self.scores):
            entry["h"] = score.h
        return out


def _prepare(data: DatasetLike, names: Sequence[str], sample_size: Optional[int], seed: int) -> Dataset:
    ds = as_dataset(data)
    ds.require(*names)
    if ds.n_rows == 0:
        raise InvalidConfiguration("Empty dataset.")
    if sample_size is not None:
        ds = ds.sample_rows(n=int(sample_size), seed=seed)
    return ds


def _centered(v: np.ndarray) -> np.ndarray:
    return v - v.mean()


def _own_value_pd(
    model: PredictiveModel,
    ds: Dataset,
    names: Sequence[str],
    max_batch_rows: Optional[int],
) -> np.ndarray:
    """Centered PD of ``names`` evaluated at every row's own values."""
    points = list(ds.frame[list(names)].itertuples(index=False, name=None))
    preds = conditional_predictions(model, ds, names, points, max_batch_rows)
    return _centered(preds.mean(axis=1))


def _ratio(residual: np.ndarray, total: np.ndarray, label: str, variance_tol: float) -> float:
    denom = float(np.var(total))
    if denom <= variance_tol:
        raise InsufficientVariance(
            f"Prediction variance {denom:.3g} too small to score interaction of {label}."
        )
    return float(np.clip(np.var(residual) / denom, 0.0, 1.0))


def _pairwise(model, ds, a, b, pd_a, pd_b, max_batch_rows, variance_tol) -> float:
    pd_ab = _own_value_pd(model, ds, [a, b], max_batch_rows)
    return _ratio(pd_ab - pd_a - pd_b, pd_ab, f"{a} x {b}", variance_tol)


def _overall(model, ds, name, max_batch_rows, variance_tol) -> float:
    points = [(v,) for v in ds.frame[name].tolist()]
    m = conditional_predictions(model, ds, [name], points, max_batch_rows)
    f = _centered(np.diag(m).copy())
    pd_j = _centered(m.mean(axis=1))
    pd_rest = _centered(m.mean(axis=0))
    return _ratio(f - pd_j - pd_rest, f, name, variance_tol)


def h_statistic(
    model: PredictiveModel,
    data: DatasetLike,
    feature_a: str,
    feature_b: str,
    sample_size: Optional[int] = None,
    seed: int = 42,
    max_batch_rows: Optional[int] = None,
    variance_tol: float = VARIANCE_TOL,
) -> float:
    """Pairwise H² between ``feature_a`` and ``feature_b``, in [0, 1].

    Raises
    ------
    InsufficientVariance
        If the joint partial dependence is (near) constant.
    """
    if feature_a == feature_b:
        raise InvalidConfiguration("H-statistic needs two distinct features.")
    ds = _prepare(data, [feature_a, feature_b], sample_size, seed)
    pd_a = _own_value_pd(model, ds, [feature_a], max_batch_rows)
    pd_b = _own_value_pd(model, ds, [feature_b], max_batch_rows)
    return _pairwise(model, ds, feature_a, feature_b, pd_a, pd_b, max_batch_rows, variance_tol)


def h_statistic_overall(
    model: PredictiveModel,
    data: DatasetLike,
    feature: str,
    sample_size: Optional[int] = None,
    seed: int = 42,
    max_batch_rows: Optional[int] = None,
    variance_tol: float = VARIANCE_TOL,
) -> float:
    """One-vs-all H² of ``feature`` against every other feature, in [0, 1].

    Raises
    ------
    InsufficientVariance
        If the model's predictions are (near) constant.
    """
    ds = _prepare(data, [feature], sample_size, seed)
    return _overall(model, ds, feature, max_batch_rows, variance_tol)


def interaction_strength(
    model: PredictiveModel,
    data: DatasetLike,
    feature: Optional[str] = None,
    features: Optional[Sequence[str]] = None,
    sample_size: Optional[int] = 200,
    seed: int = 42,
    n_jobs: int = 1,
    progress: Optional[ProgressFn] = None,
    should_stop: Optional[StopFn] = None,
    max_batch_rows: Optional[int] = None,
    variance_tol: float = VARIANCE_TOL,
) -> InteractionResult:
    """
    Rank interaction strengths.

    Args
    ----
    model:
        Fitted model exposing ``predict(DataFrame)``.
    data:
        Background rows.
    feature:
        ``None`` for one-vs-all scores of every feature in ``features``;
        a feature name for pairwise scores between it and every other
        feature in ``features``.
    features:
        Restrict the analysis to these features (default: all columns).
    sample_size:
        Rows drawn (seeded) before scoring; ``None`` uses every row.
    seed:
        RNG seed for row sampling.
    n_jobs:
        Number of threads scoring units concurrently.
    progress:
        Optional ``progress(done, total, InteractionScore)`` callback, called
        after each feature or pair is scored.
    should_stop:
        Optional cancellation predicate checked between units; a cancelled
        run returns the scores computed so far with ``complete=False``.
    max_batch_rows:
        Optional cap on rows per predict call.
    variance_tol:
        Denominator variance at or below which H² is undefined.

    Returns
    -------
    InteractionResult
        Scores ranked by descending H²; undefined scores come last.
    """
    ds = as_dataset(data)
    subset = list(dict.fromkeys(features)) if features is not None else ds.feature_names
    required = subset + ([feature] if feature is not None else [])
    ds = _prepare(ds, required, sample_size, seed)

    if feature is None:
        mode = "one_vs_all"
        units = subset

        def _compute(unit: str) -> float:
            return _overall(model, ds, unit, max_batch_rows, variance_tol)

        def _label(unit: str) -> List[str]:
            return [unit]
    else:
        mode = "pairwise"
        units = [name for name in subset if name != feature]
        pd_target = _own_value_pd(model, ds, [feature], max_batch_rows)

        def _compute(unit: str) -> float:
            pd_other = _own_value_pd(model, ds, [unit], max_batch_rows)
            return _pairwise(model, ds, feature, unit, pd_target, pd_other, max_batch_rows, variance_tol)

        def _label(unit: str) -> List[str]:
            return [feature, unit]

    def _score(unit: str) -> InteractionScore:
        try:
            h2 = _compute(unit)
        except InsufficientVariance as e:
            logger.warning("Interaction undefined for %s: %s", _label(unit), e)
            return InteractionScore(features=_label(unit), h_squared=None, reason=str(e))
        logger.debug("H² %s = %.6g", _label(unit), h2)
        return InteractionScore(features=_label(unit), h_squared=h2)

    logger.info(
        "Interaction strength (%s%s): %d units on %d rows",
        mode, f", target={feature}" if feature else "", len(units), ds.n_rows,
    )
    results, complete = run_units(units, _score, n_jobs=n_jobs, progress=progress, should_stop=should_stop)
    scores = sorted(
        results.values(),
        key=lambda s: (s.h_squared is None, -(s.h_squared or 0.0), s.features),
    )
    return InteractionResult(mode=mode, target=feature, n_rows=ds.n_rows, scores=scores, complete=complete)
