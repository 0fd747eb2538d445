"""
normalization.py - Column-wise rescaling of joined values

Rescales each column independently to the [0, 1] range.
"""

import numpy as np
import pandas as pd
from sklearn.preprocessing import minmax_scale


def normalize_imap(values,
                   name: str,
                   aspect: str = "Variable",
                   verbose: bool = True) -> np.ndarray:
    """
    Min-max rescale one column to [0, 1].

    Missing values stay missing. A constant column maps to 0.5 (the middle
    of the target range).

    Parameters
    ----------
    values : array-like
        Numeric values
    name : str
        Column name, used in messages
    aspect : str
        Kind of variable, used in messages ('Gene', 'Gene set', ...)
    verbose : bool
        Print a message

    Returns
    -------
    np.ndarray
        Rescaled values

    Examples
    --------
    >>> normalize_imap([2.0, 4.0, 6.0], name='GFAP', verbose=False)
    array([0. , 0.5, 1. ])
    """
    if verbose:
        print(f"Normalizing {aspect} '{name}'.")

    values = np.asarray(values, dtype=float)
    finite = np.isfinite(values)
    result = np.full(values.shape, np.nan)

    if not finite.any():
        return result

    lo, hi = values[finite].min(), values[finite].max()
    if lo == hi:
        result[finite] = 0.5
        return result

    result[finite] = minmax_scale(values[finite], feature_range=(0, 1))
    return result


def normalize_columns(df: pd.DataFrame,
                      subset: list[str],
                      aspect: str = "Variable",
                      verbose: bool = True) -> pd.DataFrame:
    """
    Rescale selected numeric columns of a table, one column at a time.

    Returns
    -------
    pd.DataFrame
        Copy of `df` with normalized columns
    """
    result = df.copy()

    for name in subset:
        if name not in result.columns:
            continue
        column = result[name]
        if not pd.api.types.is_numeric_dtype(column) or pd.api.types.is_bool_dtype(column):
            continue
        result[name] = normalize_imap(column.to_numpy(dtype=float), name, aspect=aspect, verbose=verbose)

    return result
