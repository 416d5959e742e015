"""
Unit tests for pickled model artifact loading.
"""

import pickle

import numpy as np
import pandas as pd
import pytest

from model_interpretation.services.artifacts import load_model
from model_interpretation.services.models import ColumnAlignedModel, EstimatorModel, ProbabilityModel


class SumModel:
    def predict(self, X):
        return X.sum(axis=1).to_numpy()


class ThresholdClassifier:
    def predict(self, X):
        return (X["a"] > 0).astype(int).to_numpy()

    def predict_proba(self, X):
        p = np.clip(X["a"].to_numpy() / 10.0, 0.0, 1.0)
        return np.column_stack([1.0 - p, p])


def _dump(path, obj):
    with open(path, "wb") as f:
        pickle.dump(obj, f)
    return path


def test_bare_model(tmp_path):
    path = _dump(tmp_path / "model.pkl", SumModel())
    model = load_model(path)

    assert isinstance(model, EstimatorModel)
    frame = pd.DataFrame({"a": [1.0, 2.0], "b": [3.0, 4.0]})
    np.testing.assert_allclose(model.predict(frame), [4.0, 6.0])


def test_bundle_with_feature_order(tmp_path):
    path = _dump(tmp_path / "bundle.pkl", {"model": SumModel(), "feature_order": ["a", "b"]})
    model = load_model(path)

    assert isinstance(model, ColumnAlignedModel)
    # "b" missing -> 0, "z" dropped
    frame = pd.DataFrame({"z": [100.0], "a": [2.0]})
    np.testing.assert_allclose(model.predict(frame), [2.0])


def test_bundle_with_proba(tmp_path):
    path = _dump(tmp_path / "clf.pkl", {"model": ThresholdClassifier(), "use_proba": True})
    model = load_model(path)

    assert isinstance(model, ProbabilityModel)
    np.testing.assert_allclose(model.predict(pd.DataFrame({"a": [5.0, 20.0]})), [0.5, 1.0])


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_model(tmp_path / "nothing.pkl")
