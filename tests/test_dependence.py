"""
Unit tests for partial dependence and ICE.
"""

import numpy as np
import pandas as pd
import pytest

from model_interpretation.errors import EmptyDomain, InvalidConfiguration, InvalidFeature
from model_interpretation.services.dataset import CONTINUOUS, DISCRETE, FeatureDescriptor
from model_interpretation.services.dependence import (
    feature_grid,
    partial_dependence,
    partial_dependence_at,
)
from model_interpretation.services.models import FunctionModel


class TestSingleFeature:

    def test_identity_line(self, x_only_model, xy_frame):
        res = partial_dependence(x_only_model, xy_frame, "x", grid_resolution=20)
        grid = np.array(res.grid[0])

        assert len(grid) == 20
        assert grid[0] == pytest.approx(xy_frame["x"].min())
        assert grid[-1] == pytest.approx(xy_frame["x"].max())
        assert np.all(np.diff(grid) > 0)
        np.testing.assert_allclose(np.diff(grid), np.diff(grid)[0])
        np.testing.assert_allclose(res.average, grid)

    def test_ignored_feature_is_flat(self, x_only_model, xy_frame):
        res = partial_dependence(x_only_model, xy_frame, "y", grid_resolution=5)
        np.testing.assert_allclose(res.average, xy_frame["x"].mean())

    def test_points(self, x_only_model, xy_frame):
        res = partial_dependence(x_only_model, xy_frame, "x", grid_resolution=3)
        assert [g for g, _ in res.points()] == res.grid[0]

    def test_constant_feature_single_point(self, xy_frame):
        frame = xy_frame.assign(c=3.0)
        model = FunctionModel(lambda df: (df["x"] + df["c"]).to_numpy())
        res = partial_dependence(model, frame, "c", grid_resolution=20)

        assert res.grid == [[3.0]]
        assert res.average == [pytest.approx(model.predict(frame).mean())]

    def test_discrete_levels(self, xy_frame):
        frame = xy_frame.assign(g=["b", "a"] * 50)
        model = FunctionModel(lambda df: (df["g"].map({"a": 1.0, "b": 2.0}) + df["x"]).to_numpy())
        res = partial_dependence(model, frame, "g")

        assert res.kinds == [DISCRETE]
        assert res.grid == [["a", "b"]]
        mean_x = frame["x"].mean()
        np.testing.assert_allclose(res.average, [1.0 + mean_x, 2.0 + mean_x])

    def test_caller_order_for_discrete(self, xy_frame):
        frame = xy_frame.assign(g=["b", "a"] * 50)
        model = FunctionModel(lambda df: df["g"].map({"a": 1.0, "b": 2.0}).to_numpy())
        res = partial_dependence(model, frame, "g", grid=["b", "a"])
        assert res.grid == [["b", "a"]]
        assert res.average == [2.0, 1.0]

    def test_forced_discrete_numeric(self, x_only_model):
        frame = pd.DataFrame({"x": [1.0, 2.0, 2.0, 5.0], "y": [0.0] * 4})
        res = partial_dependence(x_only_model, frame, "x", discrete=["x"])
        assert res.kinds == [DISCRETE]
        assert res.grid == [[1.0, 2.0, 5.0]]

    def test_explicit_continuous_grid_is_sorted(self, x_only_model, xy_frame):
        res = partial_dependence(x_only_model, xy_frame, "x", grid=[5.0, 1.0, 3.0])
        assert res.grid == [[1.0, 3.0, 5.0]]
        np.testing.assert_allclose(res.average, [1.0, 3.0, 5.0])


class TestICE:

    def test_one_curve_per_row(self, product_model, xy_frame):
        res = partial_dependence(product_model, xy_frame, "x", grid_resolution=6, ice=True)

        assert len(res.ice) == len(xy_frame)
        assert all(len(c.values) == 6 for c in res.ice)
        # PD is the average of the ICE curves
        mean_curve = np.mean([c.values for c in res.ice], axis=0)
        np.testing.assert_allclose(mean_curve, res.average)

    def test_row_curve_values(self, product_model, xy_frame):
        res = partial_dependence(product_model, xy_frame, "x", grid_resolution=4, ice=True)
        curve = res.ice[7]
        y7 = xy_frame["y"].iloc[7]
        np.testing.assert_allclose(curve.values, np.array(res.grid[0]) * y7)

    def test_centered_curves_start_at_zero(self, product_model, xy_frame):
        res = partial_dependence(product_model, xy_frame, "x", ice=True, centered=True)
        assert res.centered
        assert all(c.values[0] == 0.0 for c in res.ice)

    def test_ice_sample(self, product_model, xy_frame):
        res = partial_dependence(product_model, xy_frame, "x", ice=True, ice_sample=10, seed=3)
        rows = [c.row_index for c in res.ice]
        assert len(rows) == 10
        assert len(set(rows)) == 10
        # PD still averages every row
        assert res.n_rows == 100

    def test_ice_requires_single_feature(self, product_model, xy_frame):
        with pytest.raises(InvalidConfiguration):
            partial_dependence(product_model, xy_frame, ["x", "y"], ice=True)

    def test_ice_sample_checked_before_predicting(self, counting, xy_frame):
        model = counting(lambda df: df["x"])
        with pytest.raises(InvalidConfiguration):
            partial_dependence(model, xy_frame, "x", ice=True, ice_sample=0)
        assert model.calls == 0


class TestTwoFeatures:

    def test_surface_shape_and_values(self, product_model, xy_frame):
        res = partial_dependence(
            product_model, xy_frame, ["x", "y"],
            grid={"x": [1.0, 2.0, 3.0, 4.0, 5.0], "y": [0.0, 1.0, 2.0, 10.0]},
        )
        surface = np.array(res.average)

        assert surface.shape == (5, 4)
        np.testing.assert_allclose(surface, np.outer(res.grid[0], res.grid[1]))

    def test_default_grids(self, additive_model, xy_frame):
        res = partial_dependence(additive_model, xy_frame, ["x", "y"], grid_resolution=3)
        assert np.array(res.average).shape == (3, 3)
        assert res.kinds == [CONTINUOUS, CONTINUOUS]

    def test_list_grid_ambiguous_for_two_features(self, additive_model, xy_frame):
        with pytest.raises(InvalidConfiguration):
            partial_dependence(additive_model, xy_frame, ["x", "y"], grid=[1.0, 2.0])


class TestBatching:

    def test_single_predict_call_by_default(self, counting, xy_frame):
        model = counting(lambda df: df["x"])
        partial_dependence(model, xy_frame, "x", grid_resolution=10)
        assert model.calls == 1
        assert model.rows == [10 * 100]

    def test_batch_cap(self, counting, xy_frame):
        model = counting(lambda df: df["x"])
        res = partial_dependence(model, xy_frame, "x", grid_resolution=10, max_batch_rows=300)
        assert model.calls == 4
        assert model.rows == [300, 300, 300, 100]
        np.testing.assert_allclose(res.average, res.grid[0])


class TestErrors:

    def test_unknown_feature(self, x_only_model, xy_frame):
        with pytest.raises(InvalidFeature):
            partial_dependence(x_only_model, xy_frame, "z")

    def test_too_many_features(self, x_only_model, xy_frame):
        frame = xy_frame.assign(z=1.0)
        with pytest.raises(InvalidConfiguration):
            partial_dependence(x_only_model, frame, ["x", "y", "z"])

    def test_duplicate_features(self, x_only_model, xy_frame):
        with pytest.raises(InvalidConfiguration):
            partial_dependence(x_only_model, xy_frame, ["x", "x"])

    def test_resolution_too_small(self, x_only_model, xy_frame):
        with pytest.raises(InvalidConfiguration):
            partial_dependence(x_only_model, xy_frame, "x", grid_resolution=1)

    def test_empty_dataset(self, x_only_model):
        with pytest.raises(EmptyDomain):
            partial_dependence(x_only_model, pd.DataFrame({"x": [], "y": []}), "x")

    def test_empty_explicit_grid(self, x_only_model, xy_frame):
        with pytest.raises(InvalidConfiguration):
            partial_dependence(x_only_model, xy_frame, "x", grid=[])

    def test_unknown_category_in_grid(self, counting, xy_frame):
        frame = xy_frame.assign(g=pd.Categorical(["a", "b"] * 50))
        model = counting(lambda df: df["x"])
        with pytest.raises(InvalidConfiguration):
            partial_dependence(model, frame, "g", grid=["a", "c"])
        assert model.calls == 0


def test_partial_dependence_at(product_model, xy_frame):
    out = partial_dependence_at(product_model, xy_frame, ["x"], [(2.0,), (4.0,)])
    mean_y = xy_frame["y"].mean()
    np.testing.assert_allclose(out, [2.0 * mean_y, 4.0 * mean_y])


def test_feature_grid_degenerate_ignores_resolution():
    d = FeatureDescriptor(name="c", kind=CONTINUOUS, minimum=1.5, maximum=1.5)
    assert feature_grid(d, grid_resolution=1) == [1.5]
