"""
Partial Dependence (PDP) and Individual Conditional Expectation (ICE).

PDP estimates the marginal effect of one or two features on the model's
output: the feature column is overwritten with a constant grid value in a
copy of the data (every other column keeps its observed per-row values) and
the copy's predictions are averaged. ICE keeps the per-row predictions
instead of averaging them, showing how heterogeneous the effect is.

Grids
-----
- Continuous feature: ``grid_resolution`` equally spaced values over the
  observed [min, max]. A zero-range feature yields a single-point grid.
- Discrete feature (non-numeric, boolean, categorical, or forced via
  ``discrete``): the observed levels, sorted when orderable.
- An explicit grid may be supplied per feature; continuous grids are sorted,
  discrete grids keep the caller's order.

Cost
----
The work is one prediction per (grid point, row) pair. All overridden copies
are stacked into a single frame and predicted in as few calls as
``max_batch_rows`` allows, rather than one predict call per grid point.
"""

import itertools
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from ..errors import InvalidConfiguration, InvalidFeature
from .dataset import (
    CONTINUOUS,
    Dataset,
    DatasetLike,
    FeatureDescriptor,
    as_dataset,
    overrides_as_records,
    sample_indices,
)
from .models import PredictiveModel, predict_frame

logger = logging.getLogger(__name__)

GridSpec = Union[Sequence[Any], Mapping[str, Sequence[Any]]]


@dataclass
class ICECurve:
    row_index: int
    values: List[float]


@dataclass
class PartialDependenceResult:
    """PD curve (one feature) or surface (two features), with optional ICE.

    Attributes
    ----------
    features:
        Analyzed feature names (one or two).
    kinds:
        ``"continuous"`` / ``"discrete"`` for each feature.
    grid:
        Grid values, one list per feature.
    average:
        Mean prediction per grid point; a ``len(grid[0]) x len(grid[1])``
        nested list for two features.
    ice:
        Per-row curves over ``grid[0]`` (single feature only).
    centered:
        Whether ICE curves were shifted to start at 0.
    n_rows:
        Number of rows averaged over.
    """
    features: List[str]
    kinds: List[str]
    grid: List[List[Any]]
    average: List[Any]
    n_rows: int
    ice: Optional[List[ICECurve]] = None
    centered: bool = False

    def points(self) -> List[tuple]:
        """``(grid value, average prediction)`` pairs for a single feature."""
        if len(self.features) != 1:
            raise InvalidConfiguration("points() is only defined for single-feature curves.")
        return list(zip(self.grid[0], self.average))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _py(value: Any) -> Any:
    """numpy scalar -> plain Python scalar (for JSON-friendly results)."""
    return value.item() if isinstance(value, np.generic) else value


def feature_grid(
    descriptor: FeatureDescriptor,
    grid_resolution: int = 20,
    grid: Optional[Sequence[Any]] = None,
) -> List[Any]:
    """Grid values for one feature.

    Raises
    ------
    InvalidConfiguration
        If an explicit grid is empty, or ``grid_resolution < 2`` for a
        continuous feature with a non-zero range.
    """
    if grid is not None:
        values = [_py(v) for v in grid]
        if not values:
            raise InvalidConfiguration(f"Empty grid for feature '{descriptor.name}'.")
        if descriptor.kind == CONTINUOUS:
            values = sorted(set(float(v) for v in values))
        return values

    if descriptor.kind != CONTINUOUS:
        return [_py(v) for v in descriptor.levels]
    if descriptor.is_degenerate:
        # Zero observed range: a single-point curve
        return [float(descriptor.minimum)]
    if grid_resolution < 2:
        raise InvalidConfiguration("grid_resolution must be >= 2.")
    return [float(v) for v in np.linspace(descriptor.minimum, descriptor.maximum, int(grid_resolution))]


def conditional_predictions(
    model: PredictiveModel,
    ds: Dataset,
    features: Sequence[str],
    points: Sequence[Sequence[Any]],
    max_batch_rows: Optional[int] = None,
) -> np.ndarray:
    """Predictions with ``features`` fixed at each point, for every row.

    Returns
    -------
    np.ndarray
        Shape ``(len(points), n_rows)``; entry ``[p, i]`` is the prediction
        for row ``i`` with ``features`` overwritten by ``points[p]``.
    """
    n = ds.n_rows
    assignments = overrides_as_records(features, points)
    per_call = len(assignments)
    if max_batch_rows is not None:
        per_call = max(1, int(max_batch_rows) // max(n, 1))

    blocks = []
    for start in range(0, len(assignments), per_call):
        chunk = assignments[start:start + per_call]
        stacked = ds.stack_overrides(chunk)
        blocks.append(predict_frame(model, stacked).reshape(len(chunk), n))
    if not blocks:
        return np.empty((0, n))
    return np.vstack(blocks)


def partial_dependence_at(
    model: PredictiveModel,
    data: DatasetLike,
    features: Sequence[str],
    points: Sequence[Sequence[Any]],
    max_batch_rows: Optional[int] = None,
) -> np.ndarray:
    """Partial dependence evaluated at arbitrary value tuples of ``features``."""
    ds = as_dataset(data)
    ds.require(*features)
    return conditional_predictions(model, ds, features, points, max_batch_rows).mean(axis=1)


def _normalize_features(features: Union[str, Sequence[str]]) -> List[str]:
    names = [features] if isinstance(features, str) else list(features)
    if not 1 <= len(names) <= 2:
        raise InvalidConfiguration(f"Partial dependence takes one or two features, got {len(names)}.")
    if len(set(names)) != len(names):
        raise InvalidConfiguration(f"Duplicate feature in {names}.")
    return names


def _grid_for(name: str, grid: Optional[GridSpec], n_features: int) -> Optional[Sequence[Any]]:
    if grid is None:
        return None
    if isinstance(grid, Mapping):
        return grid.get(name)
    if n_features != 1:
        raise InvalidConfiguration("Pass grids as a {feature: values} mapping for two features.")
    return grid


def partial_dependence(
    model: PredictiveModel,
    data: DatasetLike,
    features: Union[str, Sequence[str]],
    grid_resolution: int = 20,
    grid: Optional[GridSpec] = None,
    discrete: Optional[Sequence[str]] = None,
    ice: bool = False,
    centered: bool = False,
    ice_sample: Optional[int] = None,
    seed: int = 42,
    max_batch_rows: Optional[int] = None,
) -> PartialDependenceResult:
    """
    Compute a partial dependence curve (one feature) or surface (two
    features), optionally with ICE curves.

    Args
    ----
    model:
        Fitted model exposing ``predict(DataFrame)``.
    data:
        Background rows used to average out the other features.
    features:
        One feature name, or a sequence of one or two names.
    grid_resolution:
        Number of grid points for continuous features.
    grid:
        Optional explicit grid: a list of values for a single feature, or a
        ``{feature: values}`` mapping.
    discrete:
        Feature names to treat as discrete even if numeric.
    ice:
        If True, also return one ICE curve per row (single feature only).
    centered:
        Subtract each ICE curve's value at the first grid point (c-ICE).
    ice_sample:
        If set, return ICE curves only for this many seeded, randomly chosen
        rows. The PD average always uses every row.
    seed:
        RNG seed for ``ice_sample``.
    max_batch_rows:
        Optional cap on rows per predict call.

    Raises
    ------
    InvalidFeature
        If a feature is absent from the data.
    InvalidConfiguration
        For more than two or duplicate features, an empty explicit grid,
        ``grid_resolution < 2``, ICE requested for two features, or
        ``ice_sample < 1``.
    EmptyDomain
        If a feature has no observed values (including an empty dataset).
    """
    names = _normalize_features(features)
    ds = as_dataset(data)
    ds.require(*names)
    if ice and len(names) != 1:
        raise InvalidConfiguration("ICE curves are only available for a single feature.")
    if ice_sample is not None and int(ice_sample) < 1:
        raise InvalidConfiguration(f"ice_sample must be >= 1, got {ice_sample!r}.")
    forced = set(discrete or [])
    unknown = forced.difference(ds.feature_names)
    if unknown:
        raise InvalidFeature(sorted(unknown)[0], ds.feature_names)

    descriptors = [ds.describe(name, discrete=name in forced) for name in names]
    grids = [
        feature_grid(d, grid_resolution, _grid_for(d.name, grid, len(names)))
        for d in descriptors
    ]
    points = list(itertools.product(*grids))

    logger.info(
        "Partial dependence for %s: %s grid points x %d rows",
        names, "x".join(str(len(g)) for g in grids), ds.n_rows,
    )
    preds = conditional_predictions(model, ds, names, points, max_batch_rows)
    averages = preds.mean(axis=1)

    if len(names) == 1:
        average: List[Any] = [float(v) for v in averages]
    else:
        average = averages.reshape(len(grids[0]), len(grids[1])).tolist()

    curves = None
    if ice:
        rows = ds.row_indices() if ice_sample is None else sample_indices(ds.n_rows, int(ice_sample), seed)
        ice_values = preds[:, rows].T
        if centered:
            ice_values = ice_values - ice_values[:, [0]]
        curves = [
            ICECurve(row_index=int(i), values=[float(v) for v in vals])
            for i, vals in zip(rows, ice_values)
        ]

    return PartialDependenceResult(
        features=names,
        kinds=[d.kind for d in descriptors],
        grid=grids,
        average=average,
        n_rows=ds.n_rows,
        ice=curves,
        centered=bool(centered and ice),
    )
