"""
Unit tests for loss functions and loss resolution.
"""

import math

import numpy as np
import pytest

from model_interpretation.errors import InvalidConfiguration
from model_interpretation.services.metrics import (
    error_rate,
    log_loss,
    mae,
    mcc_loss,
    mse,
    resolve_loss,
    rmse,
)


def test_regression_losses():
    y = np.array([1.0, 2.0, 3.0])
    p = np.array([1.0, 4.0, 0.0])
    assert mse(y, p) == pytest.approx((0 + 4 + 9) / 3)
    assert rmse(y, p) == pytest.approx(math.sqrt(13 / 3))
    assert mae(y, p) == pytest.approx(5 / 3)


def test_error_rate_on_labels():
    y = np.array(["cat", "dog", "dog", "cat"])
    p = np.array(["cat", "cat", "dog", "cat"])
    assert error_rate(y, p) == pytest.approx(0.25)


def test_log_loss_confident_and_wrong():
    y = np.array([0, 1])
    assert log_loss(y, np.array([0.01, 0.99])) < 0.02
    assert log_loss(y, np.array([0.99, 0.01])) > 4.0


def test_mcc_loss_perfect_and_inverted():
    y = np.array([0, 1, 0, 1])
    assert mcc_loss(y, np.array([0.1, 0.9, 0.2, 0.8])) == pytest.approx(0.0, abs=1e-6)
    assert mcc_loss(y, np.array([0.9, 0.1, 0.8, 0.2])) == pytest.approx(2.0, abs=1e-6)


class TestResolveLoss:

    def test_known_name(self):
        name, fn = resolve_loss("mae", np.array([1.0, 2.0]))
        assert name == "mae"
        assert fn is mae

    def test_unknown_name(self):
        with pytest.raises(InvalidConfiguration):
            resolve_loss("hinge", np.array([1.0]))

    def test_mse_on_string_labels(self):
        with pytest.raises(InvalidConfiguration):
            resolve_loss("mse", np.array(["a", "b"]))

    def test_log_loss_needs_binary(self):
        with pytest.raises(InvalidConfiguration):
            resolve_loss("log_loss", np.array([0, 1, 2]))
        assert resolve_loss("log_loss", np.array([0, 1, 1]))[0] == "log_loss"

    def test_error_rate_accepts_anything(self):
        assert resolve_loss("error_rate", np.array(["a", "b"]))[0] == "error_rate"

    def test_callable_passthrough(self):
        def weird(y_true, y_pred):
            return 0.0

        name, fn = resolve_loss(weird, np.array(["a"]))
        assert name == "weird"
        assert fn is weird
