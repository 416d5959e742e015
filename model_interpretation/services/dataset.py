"""
Tabular dataset abstraction used by every interpretation routine.

A ``Dataset`` wraps a pandas DataFrame whose columns are the model's input
features. It is treated as immutable: every perturbation (constant override,
column shuffle, grid stacking, row subsampling) returns a new object and the
wrapped frame is never modified in place.

Key operations
--------------
- ``with_column`` / ``with_columns``: copy-with-override of one or more columns.
- ``permuted``: copy with one column shuffled by a caller-supplied RNG.
- ``stack_overrides``: many overridden copies concatenated into one frame so
  that a model can be called once for a whole grid (batched prediction).
- ``describe``: build a ``FeatureDescriptor`` (continuous range or levels).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..errors import EmptyDomain, InvalidConfiguration, InvalidFeature

CONTINUOUS = "continuous"
DISCRETE = "discrete"


@dataclass(frozen=True)
class FeatureDescriptor:
    """Value domain of a single feature.

    Attributes
    ----------
    name:
        Column name.
    kind:
        ``"continuous"`` or ``"discrete"``.
    minimum, maximum:
        Observed range (continuous features only).
    levels:
        Observed levels in presentation order (discrete features only).
    """
    name: str
    kind: str
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    levels: List[Any] = field(default_factory=list)

    @property
    def is_degenerate(self) -> bool:
        """True when the feature takes a single observed value."""
        if self.kind == CONTINUOUS:
            return self.minimum == self.maximum
        return len(self.levels) == 1


def _ordered_levels(values: pd.Series) -> List[Any]:
    if isinstance(values.dtype, pd.CategoricalDtype):
        present = set(values.unique())
        return [c for c in values.cat.categories if c in present]
    levels = list(pd.unique(values))
    try:
        return sorted(levels)
    except TypeError:
        # Mixed, unorderable levels keep order of first appearance
        return levels


def _is_discrete(values: pd.Series) -> bool:
    dtype = values.dtype
    if isinstance(dtype, pd.CategoricalDtype):
        return True
    if pd.api.types.is_bool_dtype(dtype):
        return True
    return not pd.api.types.is_numeric_dtype(dtype)


class Dataset:
    """Immutable, column-named feature matrix."""

    def __init__(self, frame: pd.DataFrame) -> None:
        if not isinstance(frame, pd.DataFrame):
            raise InvalidConfiguration(f"Expected a pandas DataFrame, got {type(frame).__name__}.")
        self._frame = frame.reset_index(drop=True)

    @classmethod
    def from_records(cls, rows: Sequence[Mapping[str, Any]]) -> "Dataset":
        """Build a dataset from a sequence of ``{feature: value}`` rows."""
        return cls(pd.DataFrame(list(rows)))

    @property
    def frame(self) -> pd.DataFrame:
        """The underlying frame. Callers must not modify it in place."""
        return self._frame

    @property
    def feature_names(self) -> List[str]:
        return list(self._frame.columns)

    @property
    def n_rows(self) -> int:
        return len(self._frame)

    def __len__(self) -> int:
        return self.n_rows

    def require(self, *names: str) -> None:
        """Raise ``InvalidFeature`` for the first name missing from the dataset."""
        for name in names:
            if name not in self._frame.columns:
                raise InvalidFeature(name, self.feature_names)

    def column(self, name: str) -> pd.Series:
        self.require(name)
        return self._frame[name]

    def with_columns(self, overrides: Mapping[str, Any]) -> "Dataset":
        """Copy of the dataset with the given columns replaced.

        Each value may be a scalar (broadcast to every row) or a vector with
        one entry per row.
        """
        self.require(*overrides)
        out = self._frame.copy()
        for name, value in overrides.items():
            out[name] = _fill_like(self._frame[name], value, len(out))
        return Dataset(out)

    def with_column(self, name: str, value: Any) -> "Dataset":
        """Copy of the dataset with column ``name`` replaced by ``value``."""
        return self.with_columns({name: value})

    def permuted(self, name: str, rng: np.random.Generator) -> "Dataset":
        """Copy with column ``name`` shuffled across rows (without replacement)."""
        values = self.column(name).to_numpy()
        return self.with_column(name, values[rng.permutation(len(values))])

    def stack_overrides(self, assignments: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
        """Concatenate one overridden copy of the dataset per assignment.

        The result has ``len(assignments) * n_rows`` rows; block ``j`` holds
        the original rows with the columns of ``assignments[j]`` set to the
        given constants.
        """
        n = self.n_rows
        reps = len(assignments)
        if reps == 0:
            return self._frame.iloc[0:0].copy()
        stacked = self._frame.iloc[np.tile(np.arange(n), reps)].reset_index(drop=True)
        names = list(assignments[0])
        self.require(*names)
        for name in names:
            consts = np.empty(reps, dtype=object)
            consts[:] = [a[name] for a in assignments]
            stacked[name] = _fill_like(self._frame[name], np.repeat(consts, n), len(stacked))
        return stacked

    def sample_rows(
        self,
        n: Optional[int] = None,
        fraction: Optional[float] = None,
        seed: int = 42,
    ) -> "Dataset":
        """Seeded subsample of rows (without replacement).

        Exactly one of ``n`` or ``fraction`` may be given; if the requested
        size covers the whole dataset the dataset itself is returned.
        """
        if n is not None and fraction is not None:
            raise InvalidConfiguration("Pass either 'n' or 'fraction', not both.")
        if fraction is not None:
            if not (0.0 < fraction <= 1.0):
                raise InvalidConfiguration("fraction must be in (0, 1].")
            n = max(1, int(round(fraction * self.n_rows)))
        if n is None or n >= self.n_rows:
            return self
        return self.take(sample_indices(self.n_rows, n, seed))

    def row_indices(self) -> np.ndarray:
        return np.arange(self.n_rows)

    def take(self, indices: Sequence[int]) -> "Dataset":
        """Subset of rows by position, renumbered from 0."""
        return Dataset(self._frame.iloc[np.asarray(indices, dtype=int)])

    def describe(self, name: str, discrete: bool = False) -> FeatureDescriptor:
        """Describe the observed domain of ``name``.

        Raises
        ------
        EmptyDomain
            If the column has no non-missing values.
        """
        values = self.column(name).dropna()
        if len(values) == 0:
            raise EmptyDomain(f"Feature '{name}' has no observed values.")
        if discrete or _is_discrete(values):
            return FeatureDescriptor(name=name, kind=DISCRETE, levels=_ordered_levels(values))
        return FeatureDescriptor(
            name=name,
            kind=CONTINUOUS,
            minimum=float(values.min()),
            maximum=float(values.max()),
        )


def sample_indices(n_rows: int, n: int, seed: Union[int, np.random.SeedSequence]) -> np.ndarray:
    """Sorted positions of ``n`` rows drawn without replacement (all rows if ``n >= n_rows``)."""
    if n < 1:
        raise InvalidConfiguration("Sample size must be >= 1.")
    if n >= n_rows:
        return np.arange(n_rows)
    rng = np.random.default_rng(seed)
    return np.sort(rng.choice(n_rows, size=n, replace=False))


def _fill_like(original: pd.Series, value: Any, length: int) -> Any:
    """Shape ``value`` as a column of ``length`` rows keeping categorical dtype."""
    if np.ndim(value) == 0:
        value = np.repeat(np.array([value], dtype=object), length)
    elif len(value) != length:
        raise InvalidConfiguration(
            f"Override for '{original.name}' has {len(value)} values, expected {length}."
        )
    if isinstance(original.dtype, pd.CategoricalDtype):
        categories = original.cat.categories
        unseen = [v for v in pd.unique(pd.Series(value, dtype=object).dropna()) if v not in categories]
        if unseen:
            raise InvalidConfiguration(
                f"Values {unseen} are not categories of '{original.name}': {list(categories)}."
            )
        return pd.Categorical(value, categories=categories)
    return pd.Series(np.asarray(value)).infer_objects().to_numpy()


DatasetLike = Union[Dataset, pd.DataFrame, Iterable[Mapping[str, Any]]]


def as_dataset(data: DatasetLike) -> Dataset:
    """Accept a ``Dataset``, a DataFrame or a list of row mappings."""
    if isinstance(data, Dataset):
        return data
    if isinstance(data, pd.DataFrame):
        return Dataset(data)
    return Dataset.from_records(list(data))


def overrides_as_records(names: Sequence[str], points: Iterable[Sequence[Any]]) -> List[Dict[str, Any]]:
    """Turn value tuples into ``{name: value}`` assignments for ``stack_overrides``."""
    return [dict(zip(names, point)) for point in points]
