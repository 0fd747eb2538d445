"""
smoothing.py - Spatial smoothing of per-spot values

Local linear regression over spot coordinates (loess with degree 1): every
spot's value is replaced by the prediction of a tricube-weighted plane fitted
to its nearest neighbors. `span` is the fraction of spots entering each fit.
"""

import numpy as np
import pandas as pd
from sklearn.neighbors import NearestNeighbors

# Fewest spots a local plane is fitted to
MIN_NEIGHBORS = 6


def _tricube(u: np.ndarray) -> np.ndarray:
    u = np.clip(np.abs(u), 0.0, 1.0)
    return (1 - u**3) ** 3


def smooth_values(values, coords: np.ndarray, span: float = 0.02) -> np.ndarray:
    """
    Smooth one numeric vector over 2D coordinates.

    Parameters
    ----------
    values : array-like
        Values per spot (n_spots,)
    coords : np.ndarray
        Spot coordinates (n_spots × 2)
    span : float
        Fraction of spots in each local fit, > 0

    Returns
    -------
    np.ndarray
        Smoothed values. Spots with missing values or coordinates stay NaN.
    """
    if span <= 0:
        raise ValueError(f"span must be positive, got {span}")

    values = np.asarray(values, dtype=float)
    coords = np.asarray(coords, dtype=float)
    if coords.shape != (len(values), 2):
        raise ValueError(f"coords must have shape ({len(values)}, 2), got {coords.shape}")

    smoothed = np.full(len(values), np.nan)
    valid = np.isfinite(values) & np.isfinite(coords).all(axis=1)
    n_valid = int(valid.sum())
    if n_valid == 0:
        return smoothed
    if n_valid < 3:
        smoothed[valid] = values[valid]
        return smoothed

    pts = coords[valid]
    y = values[valid]

    k = int(np.ceil(span * n_valid))
    k = min(max(k, MIN_NEIGHBORS), n_valid)

    nn = NearestNeighbors(n_neighbors=k).fit(pts)
    dist, idx = nn.kneighbors(pts)  # includes the spot itself

    # Bandwidth: distance to the farthest neighbor of each spot
    h = dist[:, -1:].copy()
    h[h == 0] = 1.0
    weights = _tricube(dist / h)

    # Design matrix centred on each spot: prediction is the intercept
    offsets = pts[idx] - pts[:, None, :]                      # (n, k, 2)
    A = np.concatenate([np.ones((n_valid, k, 1)), offsets], axis=2)  # (n, k, 3)
    AtW = A.transpose(0, 2, 1) * weights[:, None, :]          # (n, 3, k)
    AtWA = AtW @ A                                            # (n, 3, 3)
    AtWy = AtW @ y[idx][:, :, None]                           # (n, 3, 1)
    beta = np.linalg.pinv(AtWA) @ AtWy

    smoothed[valid] = beta[:, 0, 0]
    return smoothed


def smooth_columns(df: pd.DataFrame,
                   subset: list[str],
                   span: float = 0.02,
                   aspect: str = "variable",
                   x_col: str = "x",
                   y_col: str = "y",
                   verbose: bool = True) -> pd.DataFrame:
    """
    Smooth selected numeric columns of a table, one column at a time.

    Non-numeric columns in `subset` are left untouched.

    Parameters
    ----------
    df : pd.DataFrame
        Table with coordinate columns
    subset : list of str
        Columns to smooth
    span : float
        Smoothing span
    aspect : str
        Kind of variable, used in messages ('gene', 'feature', ...)

    Returns
    -------
    pd.DataFrame
        Copy of `df` with smoothed columns
    """
    result = df.copy()
    coords = result[[x_col, y_col]].to_numpy(dtype=float)

    for name in subset:
        if name not in result.columns:
            continue
        column = result[name]
        if not pd.api.types.is_numeric_dtype(column) or pd.api.types.is_bool_dtype(column):
            if verbose:
                print(f"  Skipping {aspect} '{name}' (not numeric).")
            continue

        if verbose:
            print(f"Smoothing {aspect} '{name}'.")
        result[name] = smooth_values(column.to_numpy(dtype=float), coords, span=span)

    return result
