"""
joining.py - Join barcodes with additional variables

Each member of the joinWith-family takes a coordinate table containing at
least the barcodes and sample columns (e.g. from `spata.coords()`) and
left-joins it over the barcodes with features, gene expression or gene set
scores. The input table is never modified; row count and order are kept.

Examples
--------
>>> coords = obj.coords(of_sample='s1')
>>> df = join_with_genes(obj, coords, genes=['GFAP', 'MBP'], average_genes=True)
>>> df = join_with_variables(obj, coords,
...                          variables={'features': ['seurat_clusters'],
...                                     'gene_sets': ['HM_HYPOXIA']},
...                          method_gs='zscore', smooth=True)
"""

import pandas as pd

from ..data.checks import ResolvedRequest, VariableRequest, resolve_request
from ..data.config import JoinOptions
from ..data.core import spata
from .postprocessing import post_process
from .scoring import Column, feature_columns, gene_columns, gene_set_columns


def _left_join(coords_df: pd.DataFrame,
               new_columns: list[Column],
               key_values,
               barcodes_col: str) -> pd.DataFrame:
    """
    Left-join ordered (name, values) pairs onto `coords_df` by barcode.

    `key_values` are the barcodes the values are aligned to. A new column
    whose name already exists replaces the existing one in place.
    """
    new = pd.DataFrame(
        dict(new_columns),
        index=pd.Index(key_values, name=barcodes_col).astype(str),
    )
    new = new.reindex(coords_df[barcodes_col].astype(str).values)

    joined = coords_df.copy()
    for name, _ in new_columns:
        joined[name] = new[name].values
    return joined


def _join_features(obj: spata,
                   coords_df: pd.DataFrame,
                   resolved: ResolvedRequest,
                   options: JoinOptions) -> pd.DataFrame:
    cfg = obj.config
    barcodes = coords_df[cfg.barcodes_col].astype(str).values

    fdata = obj.feature_data_for(of_sample=resolved.sample)
    columns = feature_columns(fdata, barcodes, resolved.features, cfg.barcodes_col)
    joined = _left_join(coords_df, columns, barcodes, cfg.barcodes_col)

    return post_process(
        joined, [name for name, _ in columns], options,
        aspect="feature", normalize_eligible=False, config=cfg,
    )


def _join_genes(obj: spata,
                coords_df: pd.DataFrame,
                resolved: ResolvedRequest,
                options: JoinOptions) -> pd.DataFrame:
    cfg = obj.config
    barcodes = coords_df[cfg.barcodes_col].astype(str).values

    columns = gene_columns(
        obj.expr_mtr(of_sample=resolved.sample),
        resolved.genes,
        barcodes,
        average_genes=options.average_genes,
        mean_name=cfg.mean_genes_name,
    )
    joined = _left_join(coords_df, columns, barcodes, cfg.barcodes_col)

    return post_process(
        joined, [name for name, _ in columns], options,
        aspect="gene", normalize_eligible=True, config=cfg,
    )


def _join_gene_sets(obj: spata,
                    coords_df: pd.DataFrame,
                    resolved: ResolvedRequest,
                    options: JoinOptions) -> pd.DataFrame:
    cfg = obj.config
    barcodes = coords_df[cfg.barcodes_col].astype(str).values

    columns = gene_set_columns(
        obj.expr_mtr(of_sample=resolved.sample),
        obj.gene_sets,
        resolved.gene_sets,
        barcodes,
        method=options.method_gs,
        verbose=options.verbose,
    )
    joined = _left_join(coords_df, columns, barcodes, cfg.barcodes_col)

    return post_process(
        joined, [name for name, _ in columns], options,
        aspect="gene set", normalize_eligible=True, config=cfg,
    )


_JOINERS = {
    'features': _join_features,
    'genes': _join_genes,
    'gene_sets': _join_gene_sets,
}


def join(obj: spata,
         coords_df: pd.DataFrame,
         request: VariableRequest | dict,
         options: JoinOptions | None = None) -> pd.DataFrame:
    """
    Join a coordinate table with any combination of variable classes.

    The whole request is validated first; then features, genes and gene sets
    are joined in that order, each on the table produced by the previous step.

    Parameters
    ----------
    obj : spata
        A valid spata object
    coords_df : pd.DataFrame
        Coordinate table of a single sample (barcodes, sample, x, y, ...)
    request : VariableRequest or dict
        Variables to join. A dict must be keyed by 'features', 'genes'
        and/or 'gene_sets'.
    options : JoinOptions, optional
        Join options (defaults: no smoothing, normalization on)

    Returns
    -------
    pd.DataFrame
        `coords_df` with one new column per variable
    """
    options = options or JoinOptions()
    if not isinstance(request, VariableRequest):
        request = VariableRequest.from_mapping(request)

    resolved = resolve_request(obj, coords_df, request, options)

    joined_df = coords_df
    for variable_class in request.classes():
        joined_df = _JOINERS[variable_class](obj, joined_df, resolved, options)

    return joined_df


def join_with_features(obj: spata,
                       coords_df: pd.DataFrame,
                       features,
                       smooth: bool = False,
                       smooth_span: float = 0.02,
                       verbose: bool = True) -> pd.DataFrame:
    """
    Join a coordinate table with feature columns.

    Parameters
    ----------
    obj : spata
        A valid spata object
    coords_df : pd.DataFrame
        Coordinate table of a single sample
    features : str or list of str
        Feature names
    smooth : bool
        Spatially smooth numeric features
    smooth_span : float
        Smoothing span
    verbose : bool
        Print progress messages

    Returns
    -------
    pd.DataFrame
    """
    options = JoinOptions(smooth=smooth, smooth_span=smooth_span,
                          normalize=False, verbose=verbose)
    return join(obj, coords_df, VariableRequest(features=features), options)


def join_with_genes(obj: spata,
                    coords_df: pd.DataFrame,
                    genes,
                    average_genes: bool = False,
                    smooth: bool = False,
                    smooth_span: float = 0.02,
                    normalize: bool = True,
                    verbose: bool = True) -> pd.DataFrame:
    """
    Join a coordinate table with gene expression.

    Parameters
    ----------
    genes : str or list of str
        Gene names
    average_genes : bool
        Join the per-spot mean of all genes as one column ('mean_genes')
        instead of one column per gene
    normalize : bool
        Rescale the joined columns to [0, 1]

    Other parameters as in `join_with_features`.
    """
    options = JoinOptions(average_genes=average_genes, smooth=smooth,
                          smooth_span=smooth_span, normalize=normalize,
                          verbose=verbose)
    return join(obj, coords_df, VariableRequest(genes=genes), options)


def join_with_gene_sets(obj: spata,
                        coords_df: pd.DataFrame,
                        gene_sets,
                        method_gs: str = "mean",
                        smooth: bool = False,
                        smooth_span: float = 0.02,
                        normalize: bool = True,
                        verbose: bool = True) -> pd.DataFrame:
    """
    Join a coordinate table with gene set scores.

    Parameters
    ----------
    gene_sets : str or list of str
        Gene set names. Output columns follow this order.
    method_gs : str
        'mean', 'gsva', 'ssgsea', 'zscore' or 'plage'

    Other parameters as in `join_with_genes`.
    """
    options = JoinOptions(method_gs=method_gs, smooth=smooth,
                          smooth_span=smooth_span, normalize=normalize,
                          verbose=verbose)
    return join(obj, coords_df, VariableRequest(gene_sets=gene_sets), options)


def join_with_variables(obj: spata,
                        coords_df: pd.DataFrame,
                        variables: dict,
                        method_gs: str = "mean",
                        average_genes: bool = False,
                        smooth: bool = False,
                        smooth_span: float = 0.02,
                        normalize: bool = True,
                        verbose: bool = True) -> pd.DataFrame:
    """
    Join a coordinate table with several variable classes at once.

    Parameters
    ----------
    variables : dict
        Keys must contain at least one of 'features', 'genes' or
        'gene_sets'; values are the names to join for that class.

    Other parameters as in `join_with_genes` and `join_with_gene_sets`.
    """
    options = JoinOptions(average_genes=average_genes, method_gs=method_gs,
                          smooth=smooth, smooth_span=smooth_span,
                          normalize=normalize, verbose=verbose)
    return join(obj, coords_df, variables, options)
