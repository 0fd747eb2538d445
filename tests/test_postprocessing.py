"""
test_postprocessing.py - Tests for smoothing and normalization of joined columns
"""

import numpy as np
import pandas as pd
import pytest

from spata import JoinOptions
from spata.processing.normalization import normalize_columns, normalize_imap
from spata.processing.postprocessing import post_process
from spata.spatial.smoothing import smooth_columns, smooth_values


def grid(n: int = 5) -> np.ndarray:
    """(n*n × 2) coordinates of a regular grid."""
    xs, ys = np.meshgrid(np.arange(n, dtype=float), np.arange(n, dtype=float))
    return np.column_stack([xs.ravel(), ys.ravel()])


@pytest.fixture
def table():
    """5×5 grid with a noisy numeric column, a plane and a categorical column."""
    coords = grid(5)
    rng = np.random.default_rng(7)
    return pd.DataFrame({
        "barcodes": [f"spot_{i}" for i in range(25)],
        "sample": "s1",
        "x": coords[:, 0],
        "y": coords[:, 1],
        "noisy": rng.normal(size=25),
        "plane": 2 * coords[:, 0] - 3 * coords[:, 1] + 1,
        "region": pd.Categorical(["a", "b", "c", "d", "e"] * 5),
    })


# ===========================================================================
# SECTION 1 — Normalization
# ===========================================================================


class TestNormalization:

    def test_min_max(self):
        np.testing.assert_allclose(
            normalize_imap([2.0, 4.0, 6.0], name="v", verbose=False), [0.0, 0.5, 1.0]
        )

    def test_constant_maps_to_middle(self):
        np.testing.assert_array_equal(
            normalize_imap([3.0, 3.0, 3.0], name="v", verbose=False), [0.5, 0.5, 0.5]
        )

    def test_nan_kept(self):
        result = normalize_imap([1.0, np.nan, 3.0], name="v", verbose=False)
        assert np.isnan(result[1])
        np.testing.assert_allclose(result[[0, 2]], [0.0, 1.0])

    def test_all_nan(self):
        assert np.isnan(normalize_imap([np.nan, np.nan], name="v", verbose=False)).all()

    def test_message(self, capsys):
        normalize_imap([1.0, 2.0], name="GFAP", aspect="Gene", verbose=True)
        assert capsys.readouterr().out.strip() == "Normalizing Gene 'GFAP'."

    def test_columns_independent(self, table):
        result = normalize_columns(table, ["noisy", "plane"], verbose=False)

        for col in ["noisy", "plane"]:
            assert result[col].min() == pytest.approx(0.0)
            assert result[col].max() == pytest.approx(1.0)
        pd.testing.assert_series_equal(result["x"], table["x"])

    def test_categorical_untouched(self, table):
        result = normalize_columns(table, ["region"], verbose=False)
        pd.testing.assert_series_equal(result["region"], table["region"])

    def test_input_not_modified(self, table):
        before = table.copy()
        normalize_columns(table, ["noisy"], verbose=False)
        pd.testing.assert_frame_equal(table, before)


# ===========================================================================
# SECTION 2 — Smoothing
# ===========================================================================


class TestSmoothing:

    def test_plane_reproduced(self, table):
        """A local linear fit leaves a linear field unchanged."""
        smoothed = smooth_values(table["plane"], grid(5), span=0.3)
        np.testing.assert_allclose(smoothed, table["plane"].values, atol=1e-8)

    def test_noise_reduced(self, table):
        smoothed = smooth_values(table["noisy"], grid(5), span=0.5)

        assert smoothed.shape == (25,)
        assert not np.allclose(smoothed, table["noisy"].values)
        assert smoothed.std() < table["noisy"].std()

    def test_nan_stays_nan(self, table):
        values = table["noisy"].to_numpy().copy()
        values[4] = np.nan
        smoothed = smooth_values(values, grid(5), span=0.5)

        assert np.isnan(smoothed[4])
        assert np.isfinite(np.delete(smoothed, 4)).all()

    def test_too_few_values_returned_as_is(self):
        values = np.array([1.0, np.nan, 5.0])
        coords = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
        smoothed = smooth_values(values, coords)

        np.testing.assert_array_equal(smoothed[[0, 2]], [1.0, 5.0])
        assert np.isnan(smoothed[1])

    @pytest.mark.parametrize("span", [0, -1.0])
    def test_span_must_be_positive(self, table, span):
        with pytest.raises(ValueError):
            smooth_values(table["noisy"], grid(5), span=span)

    def test_coords_shape_checked(self, table):
        with pytest.raises(ValueError):
            smooth_values(table["noisy"], grid(4))

    def test_columns_skip_categorical(self, table, capsys):
        result = smooth_columns(table, ["region", "noisy"], span=0.5, aspect="feature")
        out = capsys.readouterr().out

        pd.testing.assert_series_equal(result["region"], table["region"])
        assert "Smoothing feature 'noisy'." in out
        assert "Smoothing feature 'region'." not in out


# ===========================================================================
# SECTION 3 — Post-processing order
#
# smooth (optional) → normalize (optional, never for features)
# ===========================================================================


class TestPostProcess:

    def test_nothing_requested(self, table):
        options = JoinOptions(smooth=False, normalize=False, verbose=False)
        result = post_process(table, ["noisy"], options, aspect="gene")
        pd.testing.assert_frame_equal(result, table)

    def test_smoothing_changes_values_not_shape(self, table):
        options = JoinOptions(smooth=True, smooth_span=0.5, normalize=False, verbose=False)
        result = post_process(table, ["noisy"], options, aspect="gene")

        assert result.shape == table.shape
        assert not np.allclose(result["noisy"], table["noisy"])
        pd.testing.assert_series_equal(result["plane"], table["plane"])

    def test_smooth_then_normalize(self, table):
        options = JoinOptions(smooth=True, smooth_span=0.5, normalize=True, verbose=False)
        result = post_process(table, ["noisy"], options, aspect="gene")

        expected = normalize_imap(
            smooth_values(table["noisy"], grid(5), span=0.5), name="noisy", verbose=False
        )
        np.testing.assert_allclose(result["noisy"].values, expected)

    def test_features_not_normalized(self, table):
        options = JoinOptions(normalize=True, verbose=False)
        result = post_process(table, ["noisy"], options, aspect="feature",
                              normalize_eligible=False)
        pd.testing.assert_series_equal(result["noisy"], table["noisy"])

    def test_message_order(self, table, capsys):
        options = JoinOptions(smooth=True, smooth_span=0.5, normalize=True, verbose=True)
        post_process(table, ["noisy"], options, aspect="gene set")
        out = capsys.readouterr().out

        assert out.index("Smoothing gene set 'noisy'.") < out.index("Normalizing Gene set 'noisy'.")
