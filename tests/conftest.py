"""Shared fixtures: the two-feature scenario and a few hand-written models."""

import numpy as np
import pandas as pd
import pytest

from model_interpretation.services.models import FunctionModel


class CountingModel:
    """Wraps a frame function and counts predict calls / rows seen."""

    def __init__(self, fn):
        self.fn = fn
        self.calls = 0
        self.rows = []

    def predict(self, X):
        self.calls += 1
        self.rows.append(len(X))
        return np.asarray(self.fn(X), dtype=float)


@pytest.fixture
def xy_frame():
    """100 rows, x and y uniform on [0, 10]."""
    rng = np.random.default_rng(0)
    return pd.DataFrame({"x": rng.uniform(0, 10, 100), "y": rng.uniform(0, 10, 100)})


@pytest.fixture
def x_only_model():
    return FunctionModel(lambda df: df["x"].to_numpy(dtype=float))


@pytest.fixture
def product_model():
    return FunctionModel(lambda df: (df["x"] * df["y"]).to_numpy(dtype=float))


@pytest.fixture
def additive_model():
    return FunctionModel(lambda df: (2.0 * df["x"] + 3.0 * df["y"]).to_numpy(dtype=float))


@pytest.fixture
def counting():
    return CountingModel
