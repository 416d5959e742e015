"""
Model-agnostic interpretation engine.

Explains any fitted model exposing ``predict(DataFrame)`` with permutation
feature importance, partial dependence / ICE curves and Friedman's
H-statistic interaction strength.
"""

from .errors import (
    EmptyDomain,
    InsufficientVariance,
    InterpretationError,
    InvalidConfiguration,
    InvalidFeature,
)
from .services.dataset import Dataset, FeatureDescriptor
from .services.dependence import partial_dependence, partial_dependence_at
from .services.importance import permutation_importance
from .services.interaction import h_statistic, h_statistic_overall, interaction_strength
from .services.models import PredictiveModel, RowFunctionModel, as_model

__version__ = "0.1.0"

__all__ = [
    "Dataset",
    "EmptyDomain",
    "FeatureDescriptor",
    "InsufficientVariance",
    "InterpretationError",
    "InvalidConfiguration",
    "InvalidFeature",
    "PredictiveModel",
    "RowFunctionModel",
    "as_model",
    "h_statistic",
    "h_statistic_overall",
    "interaction_strength",
    "partial_dependence",
    "partial_dependence_at",
    "permutation_importance",
]
