"""
conftest.py - Shared test fixtures for spata

pytest automatically reads this file before running any test.
Every fixture defined here is available to ALL test files by name.

Fixtures
--------
obj_basic : one sample ('s1'), 16 spots on a 4×4 grid, 6 genes,
            3 features and 3 gene sets
obj_tiny  : one sample, 4 spots, 3 genes with hand-picked values
            (easy to compute means by hand)
obj_multi : two samples ('s1' and 's2')
coords    : coordinate table of obj_basic
"""

import numpy as np
import pandas as pd
import pytest

from spata import spata

# ===========================================================================
# Constants — the size of our fake dataset
# ===========================================================================

GRID = 4                  # 4×4 grid of spots
N_SPOTS = GRID * GRID     # 16 spots
GENES = [f"g{i}" for i in range(1, 7)]   # g1 ... g6

GENE_SETS = {
    "GS_A": ["g1", "g2", "g3"],
    "GS_B": ["g4", "g5", "NOT_IN_MATRIX"],     # one member missing from the matrix
    "GS_EMPTY": ["MISSING_1", "MISSING_2"],     # no member in the matrix
}


def make_sample(sample: str, seed: int):
    """
    Build expression, coordinates and features for one fake sample.

    Returns
    -------
    tuple
        (counts genes × barcodes, coordinates, feature data)
    """
    rng = np.random.default_rng(seed)

    barcodes = [f"{sample}_spot_{i}" for i in range(N_SPOTS)]
    xs, ys = np.meshgrid(np.arange(GRID), np.arange(GRID))

    # --- Expression (genes × barcodes, the usual count-matrix layout) ---
    counts = pd.DataFrame(
        rng.integers(0, 10, (len(GENES), N_SPOTS)).astype(float),
        index=GENES,
        columns=barcodes,
    )

    # --- Coordinates ---
    coordinates = pd.DataFrame({
        "barcodes": barcodes,
        "sample": sample,
        "x": xs.ravel().astype(float),
        "y": ys.ravel().astype(float),
    })

    # --- Features: numeric + categorical ---
    feature_data = pd.DataFrame({
        "barcodes": barcodes,
        "sample": sample,
        "n_counts": counts.sum(axis=0).values,
        "cluster": pd.Categorical(rng.choice(["A", "B"], N_SPOTS)),
        "score": rng.normal(size=N_SPOTS),
    })

    return counts, coordinates, feature_data


# ===========================================================================
# Fixture 1: single-sample object
# ===========================================================================


@pytest.fixture
def obj_basic():
    """
    The standard single-sample spata object.

    16 spots × 6 genes, features n_counts / cluster / score,
    gene sets GS_A, GS_B (partially in matrix) and GS_EMPTY.
    """
    counts, coordinates, feature_data = make_sample("s1", seed=42)

    return spata(
        expression={"s1": counts},
        coordinates=coordinates,
        feature_data=feature_data,
        gene_sets=GENE_SETS,
        verbose=False,
    )


@pytest.fixture
def coords(obj_basic):
    """Coordinate table of obj_basic — the usual input to the joinWith-family."""
    return obj_basic.coords(of_sample="s1")


# ===========================================================================
# Fixture 2: tiny object with hand-picked values
# ===========================================================================


@pytest.fixture
def obj_tiny():
    """
    3 genes × 4 spots, values chosen so means are easy:

        g1: 1 2 3 4
        g2: 2 4 6 8
        g3: 3 0 3 0
        ----------- mean
            2 2 4 4
    """
    barcodes = ["b1", "b2", "b3", "b4"]
    counts = pd.DataFrame(
        [[1.0, 2.0, 3.0, 4.0],
         [2.0, 4.0, 6.0, 8.0],
         [3.0, 0.0, 3.0, 0.0]],
        index=["g1", "g2", "g3"],
        columns=barcodes,
    )
    coordinates = pd.DataFrame({
        "barcodes": barcodes,
        "sample": "tiny",
        "x": [0.0, 1.0, 0.0, 1.0],
        "y": [0.0, 0.0, 1.0, 1.0],
    })

    return spata(
        expression={"tiny": counts},
        coordinates=coordinates,
        gene_sets={"G12": ["g1", "g2", "g_absent"]},
        verbose=False,
    )


# ===========================================================================
# Fixture 3: two samples
# ===========================================================================


@pytest.fixture
def obj_multi():
    """Two samples, 's1' and 's2', each built like obj_basic."""
    counts_1, coords_1, features_1 = make_sample("s1", seed=1)
    counts_2, coords_2, features_2 = make_sample("s2", seed=2)

    return spata(
        expression={"s1": counts_1, "s2": counts_2},
        coordinates=pd.concat([coords_1, coords_2], ignore_index=True),
        feature_data=pd.concat([features_1, features_2], ignore_index=True),
        gene_sets=GENE_SETS,
        verbose=False,
    )
