"""
Permutation Feature Importance (PFI).

The importance of a feature is the degradation of a loss when that
feature's column is randomly shuffled, breaking its relationship with the
response while leaving its marginal distribution intact. Shuffles are
repeated ``n_repeats`` times per feature and summarized by the mean loss and
the variance across repeats (Monte Carlo noise).

Notes
-----
- Works for any object satisfying ``PredictiveModel`` (see ``.models``).
- Every random draw comes from ``random_seed``: one independent stream per
  feature is spawned from a ``numpy.random.SeedSequence``, so the result is
  identical whether features are scored inline or on worker threads.
- ``sample_fraction`` scores a seeded row subsample instead of the full data.
  This trades cost for extra sampling variance on top of the shuffle noise;
  the fraction and the rows used are reported in the result.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from ..errors import InvalidConfiguration
from .dataset import DatasetLike, as_dataset, sample_indices
from .metrics import LossFn, resolve_loss
from .models import PredictiveModel, predict_frame
from .parallel import ProgressFn, StopFn, run_units

logger = logging.getLogger(__name__)

MODES = ("difference", "ratio")


@dataclass
class FeatureImportance:
    """Importance of one feature.

    Attributes
    ----------
    feature:
        Column name.
    importance:
        ``mean_loss - baseline`` (difference mode) or ``mean_loss / baseline``
        (ratio mode).
    mean_loss:
        Mean loss over the shuffled repeats.
    loss_variance:
        Sample variance of the repeat losses; ``None`` when only one repeat
        was run.
    losses:
        Raw loss of every repeat.
    """
    feature: str
    importance: float
    mean_loss: float
    loss_variance: Optional[float]
    losses: List[float] = field(default_factory=list)


@dataclass
class PermutationImportanceResult:
    baseline_loss: float
    loss: str
    mode: str
    n_repeats: int
    n_rows: int
    sample_fraction: float
    scores: List[FeatureImportance]
    complete: bool = True
    # Positions (in the input data) of the rows scored
    rows: List[int] = field(default_factory=list)

    def as_mapping(self) -> Dict[str, float]:
        """``{feature: importance}`` in descending order of importance."""
        return {s.feature: s.importance for s in self.scores}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _aggregate(name: str, losses: List[float], baseline: float, mode: str) -> FeatureImportance:
    mean_loss = float(np.mean(losses))
    variance = float(np.var(losses, ddof=1)) if len(losses) > 1 else None
    if mode == "difference":
        # Mean of per-repeat differences: exactly 0 when no shuffle changes the loss
        importance = float(np.mean(np.asarray(losses) - baseline))
    elif baseline != 0:
        importance = mean_loss / baseline
    else:
        # A perfect baseline: no change is a ratio of 1, anything else is undefined
        importance = 1.0 if mean_loss == 0 else math.nan
    return FeatureImportance(
        feature=name,
        importance=float(importance),
        mean_loss=mean_loss,
        loss_variance=variance,
        losses=[float(v) for v in losses],
    )


def permutation_importance(
    model: PredictiveModel,
    data: DatasetLike,
    y: Sequence[Any],
    loss: Union[str, LossFn] = "mse",
    n_repeats: int = 5,
    mode: str = "difference",
    features: Optional[Sequence[str]] = None,
    sample_fraction: Optional[float] = None,
    random_seed: int = 42,
    n_jobs: int = 1,
    progress: Optional[ProgressFn] = None,
    should_stop: Optional[StopFn] = None,
    max_batch_rows: Optional[int] = None,
) -> PermutationImportanceResult:
    """
    Compute permutation feature importance.

    Args
    ----
    model:
        Fitted model exposing ``predict(DataFrame)``.
    data:
        Feature rows (``Dataset``, DataFrame, or list of mappings).
    y:
        True response aligned with the rows of ``data``.
    loss:
        Loss name (``mse``, ``rmse``, ``mae``, ``log_loss``, ``error_rate``,
        ``mcc``) or a callable ``loss(y_true, y_pred) -> float``.
    n_repeats:
        Number of independent shuffles per feature (R >= 1).
    mode:
        ``"difference"`` or ``"ratio"`` of perturbed vs baseline loss.
    features:
        Restrict scoring to these features (default: all columns).
    sample_fraction:
        Optional fraction of rows in (0, 1] to score on.
    random_seed:
        Seed for row sampling and permutations.
    n_jobs:
        Number of threads scoring features concurrently.
    progress:
        Optional ``progress(done, total, FeatureImportance)`` callback.
    should_stop:
        Optional cancellation predicate checked between features; a cancelled
        run returns the features scored so far with ``complete=False``.
    max_batch_rows:
        Optional cap on rows per predict call.

    Returns
    -------
    PermutationImportanceResult
        Baseline loss and per-feature scores sorted by descending importance.

    Raises
    ------
    InvalidConfiguration
        If ``n_repeats < 1``, ``mode`` is unknown, ``y`` does not match the
        row count, the dataset is empty, or the loss is undefined for ``y``.
    InvalidFeature
        If a requested feature is not a column of ``data``.
    """
    # Fail fast on configuration before any predict call
    if not isinstance(n_repeats, (int, np.integer)) or n_repeats < 1:
        raise InvalidConfiguration(f"n_repeats must be an integer >= 1, got {n_repeats!r}.")
    if mode not in MODES:
        raise InvalidConfiguration(f"Unknown mode '{mode}'. Use one of {MODES}.")

    ds = as_dataset(data)
    if ds.n_rows == 0:
        raise InvalidConfiguration("Empty dataset.")
    y = np.asarray(y)
    if y.ndim != 1 or len(y) != ds.n_rows:
        raise InvalidConfiguration(f"Response has shape {y.shape}, expected ({ds.n_rows},).")

    names = list(dict.fromkeys(features)) if features is not None else ds.feature_names
    ds.require(*names)
    loss_name, loss_fn = resolve_loss(loss, y)

    all_names = ds.feature_names
    streams = np.random.SeedSequence(random_seed).spawn(len(all_names) + 1)

    fraction = 1.0
    idx = np.arange(ds.n_rows)
    if sample_fraction is not None:
        if not (0.0 < sample_fraction <= 1.0):
            raise InvalidConfiguration("sample_fraction must be in (0, 1].")
        fraction = float(sample_fraction)
        idx = sample_indices(ds.n_rows, max(1, int(round(fraction * ds.n_rows))), streams[0])
        ds, y = ds.take(idx), y[idx]

    logger.info(
        "Permutation importance: %d features, %d rows, R=%d, loss=%s, mode=%s",
        len(names), ds.n_rows, n_repeats, loss_name, mode,
    )

    baseline = float(loss_fn(y, predict_frame(model, ds.frame, max_batch_rows, dtype=None)))

    def _score(name: str) -> FeatureImportance:
        rng = np.random.default_rng(streams[all_names.index(name) + 1])
        losses = []
        for _ in range(n_repeats):
            shuffled = ds.permuted(name, rng)
            pred = predict_frame(model, shuffled.frame, max_batch_rows, dtype=None)
            losses.append(float(loss_fn(y, pred)))
        score = _aggregate(name, losses, baseline, mode)
        logger.debug("Feature %s: importance=%.6g", name, score.importance)
        return score

    results, complete = run_units(names, _score, n_jobs=n_jobs, progress=progress, should_stop=should_stop)
    scores = sorted(results.values(), key=lambda s: (math.isnan(s.importance), -s.importance, s.feature))

    logger.info("Permutation importance finished (%d/%d features)", len(scores), len(names))
    return PermutationImportanceResult(
        baseline_loss=baseline,
        loss=loss_name,
        mode=mode,
        n_repeats=int(n_repeats),
        n_rows=ds.n_rows,
        sample_fraction=fraction,
        scores=scores,
        complete=complete,
        rows=[int(i) for i in idx],
    )
