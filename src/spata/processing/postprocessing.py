"""
postprocessing.py - Smoothing and normalization of newly joined columns
"""

import pandas as pd

from ..data.config import JoinOptions, SpataConfig
from ..spatial.smoothing import smooth_columns
from .normalization import normalize_columns


def post_process(joined_df: pd.DataFrame,
                 columns: list[str],
                 options: JoinOptions,
                 aspect: str,
                 normalize_eligible: bool = True,
                 config: SpataConfig | None = None) -> pd.DataFrame:
    """
    Apply optional smoothing, then optional normalization, to `columns`.

    Only the listed columns are touched. Feature passthrough columns are
    never normalized: callers pass `normalize_eligible=False` for them.

    Parameters
    ----------
    joined_df : pd.DataFrame
        Coordinate table with the new columns attached
    columns : list of str
        Names of the newly attached columns
    options : JoinOptions
        smooth, smooth_span, normalize and verbose are used
    aspect : str
        Kind of variable ('feature', 'gene', 'gene set'), used in messages
    normalize_eligible : bool
        Whether normalization may apply to these columns
    config : SpataConfig, optional
        Supplies the coordinate column names

    Returns
    -------
    pd.DataFrame
    """
    config = config or SpataConfig()
    x_col, y_col = config.coordinate_columns()

    if options.smooth:
        joined_df = smooth_columns(
            joined_df,
            subset=columns,
            span=options.smooth_span,
            aspect=aspect,
            x_col=x_col,
            y_col=y_col,
            verbose=options.verbose,
        )

    if options.normalize and normalize_eligible:
        joined_df = normalize_columns(
            joined_df,
            subset=columns,
            aspect=aspect.capitalize(),
            verbose=options.verbose,
        )

    return joined_df
