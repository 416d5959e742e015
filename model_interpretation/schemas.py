"""
Input/output schemas for the Model Interpretation API.

Rows are free-form ``{feature name: scalar}`` mappings: the engine is model
agnostic, so no fixed feature set is declared here. Numeric, boolean and
string (categorical) values are accepted; ``None`` marks a missing value.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictBool

from .config import settings

FeatureValue = Union[StrictBool, int, float, str, None]
Row = Dict[str, FeatureValue]


class PermutationRequest(BaseModel):
    """Request payload for permutation feature importance.

    Attributes
    ----------
    data:
        Feature rows.
    target:
        True response, one value per row.
    loss:
        Loss name: ``mse``, ``rmse``, ``mae``, ``log_loss``, ``error_rate``
        or ``mcc``.
    n_repeats:
        Number of shuffles per feature.
    mode:
        ``difference`` or ``ratio`` of shuffled vs baseline loss.
    features:
        (Optional) restrict scoring to these features.
    sample_fraction:
        (Optional) score on a seeded fraction of the rows.
    top_k:
        (Optional) also return the top-K features as a compact summary.
    random_seed:
        Seed used to make the shuffling reproducible.
    """
    data: List[Row]
    target: List[FeatureValue]
    loss: str = "mse"
    n_repeats: int = settings.DEFAULT_REPEATS
    mode: Literal["difference", "ratio"] = "difference"
    features: Optional[List[str]] = None
    sample_fraction: Optional[float] = None
    top_k: Optional[int] = Field(default=None, ge=1)
    random_seed: int = settings.DEFAULT_SEED


class ImportanceItem(BaseModel):
    feature: str
    # None when the ratio is unbounded (zero baseline loss)
    importance: Optional[float]
    mean_loss: float
    loss_variance: Optional[float] = None
    losses: List[float] = []


class PermutationResponse(BaseModel):
    baseline_loss: float
    loss: str
    mode: str
    n_repeats: int
    n_rows: int
    sample_fraction: float
    complete: bool
    scores: List[ImportanceItem]
    rows: List[int] = []
    top: Optional[List[ImportanceItem]] = None


class PDPRequest(BaseModel):
    """Request payload for Partial Dependence (and optional ICE).

    Attributes
    ----------
    data:
        Background rows used to average out the other features.
    features:
        One feature name, or a list of one or two names.
    grid_resolution:
        Number of grid points for continuous features.
    grid:
        (Optional) explicit grid: a list for a single feature, or a
        ``{feature: values}`` mapping.
    discrete:
        (Optional) numeric features to treat as discrete levels.
    ice:
        Whether to include ICE curves (single feature only).
    centered:
        Whether ICE curves are centered at the first grid point.
    ice_sample:
        (Optional) number of rows to sample for ICE curves.
    seed:
        Seed for ICE row sampling.
    """
    data: List[Row]
    features: Union[str, List[str]]
    grid_resolution: int = settings.DEFAULT_GRID_RESOLUTION
    grid: Optional[Union[List[FeatureValue], Dict[str, List[FeatureValue]]]] = None
    discrete: Optional[List[str]] = None
    ice: bool = False
    centered: bool = False
    ice_sample: Optional[int] = Field(default=None, ge=1)
    seed: int = settings.DEFAULT_SEED


class PDPResponse(BaseModel):
    features: List[str]
    kinds: List[str]
    grid: List[List[FeatureValue]]
    average: List[Any]
    n_rows: int
    ice: Optional[List[Dict[str, Any]]] = None
    centered: bool = False


class InteractionRequest(BaseModel):
    """Request payload for H-statistic interaction strength.

    Attributes
    ----------
    data:
        Background rows.
    feature:
        (Optional) target feature for pairwise scores; omit for one-vs-all.
    features:
        (Optional) restrict the analysis to these features.
    sample_size:
        Rows sampled before scoring (the cost is quadratic in rows).
    seed:
        Seed for row sampling.
    """
    data: List[Row]
    feature: Optional[str] = None
    features: Optional[List[str]] = None
    sample_size: Optional[int] = Field(default=settings.INTERACTION_SAMPLE_SIZE, ge=1)
    seed: int = settings.DEFAULT_SEED


class InteractionItem(BaseModel):
    features: List[str]
    h_squared: Optional[float]
    h: Optional[float] = None
    reason: Optional[str] = None


class InteractionResponse(BaseModel):
    mode: str
    target: Optional[str]
    n_rows: int
    complete: bool
    scores: List[InteractionItem]
