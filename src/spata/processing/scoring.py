"""
scoring.py - Turn expression into per-spot columns

Provides the values the joinWith-family attaches to a coordinate table:

- feature_columns: feature data passthrough
- gene_columns: single genes, one column per gene, or their average
- gene_set_columns: one score per gene set, via a GeneSetScorer

Every function returns an ordered list of (column name, values) pairs aligned
to the barcodes it was given.
"""

import numpy as np
import pandas as pd

from ..data.config import ENRICHMENT_METHODS, InvalidMethod
from ..data.expression import ExpressionMatrix
from ..data.gene_sets import GeneSetCatalog
from .enrichment import ENRICHMENT_FUNCTIONS

Column = tuple[str, np.ndarray]


def feature_columns(feature_df: pd.DataFrame,
                    barcodes,
                    features: list[str],
                    barcodes_col: str = "barcodes") -> list[Column]:
    """
    Select feature columns for the given barcodes. No aggregation.

    Categorical features keep their dtype.
    """
    fdata = feature_df.set_index(feature_df[barcodes_col].astype(str))
    aligned = fdata.reindex(pd.Index(barcodes).astype(str))
    return [(feature, aligned[feature].values) for feature in features]


def gene_columns(matrix: ExpressionMatrix,
                 genes: list[str],
                 barcodes,
                 average_genes: bool = False,
                 mean_name: str = "mean_genes") -> list[Column]:
    """
    Expression of the requested genes for the given barcodes.

    Parameters
    ----------
    matrix : ExpressionMatrix
        Expression of one sample
    genes : list of str
        Validated gene names
    barcodes : list-like
        Barcodes defining row order
    average_genes : bool
        Collapse all genes into their per-spot arithmetic mean
    mean_name : str
        Column name used for averaged values

    Returns
    -------
    list of (str, np.ndarray)
        One column named `mean_name` when averaging, otherwise one column
        per gene named by the gene.
    """
    values = matrix.values(genes, barcodes)  # (n_barcodes × n_genes)

    if average_genes:
        return [(mean_name, values.mean(axis=1))]

    return [(gene, values[:, i]) for i, gene in enumerate(genes)]


class GeneSetScorer:
    """
    Scoring strategy for gene sets.

    Subclasses implement `score`, which maps each gene set to one value per
    barcode. Strategies whose work is shared across gene sets may also
    override `prepare`, which is called once with every gene set of a
    request before the per-set `score` calls.
    """

    method: str = ""

    @property
    def is_slow(self) -> bool:
        """Whether scoring may take noticeably long."""
        return False

    def prepare(self, matrix: ExpressionMatrix, gene_sets: dict[str, list[str]]) -> None:
        """Precompute scores for all `gene_sets` of a request. No-op by default."""

    def score(self,
              matrix: ExpressionMatrix,
              gene_sets: dict[str, list[str]],
              barcodes=None) -> pd.DataFrame:
        """
        Parameters
        ----------
        matrix : ExpressionMatrix
            Expression of one sample
        gene_sets : dict
            Gene set name -> genes present in `matrix`
        barcodes : list-like, optional
            Barcodes defining output rows. If None, all barcodes of `matrix`.

        Returns
        -------
        pd.DataFrame
            (barcodes × gene sets) scores
        """
        raise NotImplementedError


class MeanScorer(GeneSetScorer):
    """Arithmetic mean of the gene set's genes per spot."""

    method = "mean"

    def score(self, matrix, gene_sets, barcodes=None):
        if barcodes is None:
            barcodes = matrix.barcodes
        barcodes = pd.Index(barcodes).astype(str)

        scores = {}
        for name, genes in gene_sets.items():
            if len(genes) == 0:
                scores[name] = np.full(len(barcodes), np.nan)
            else:
                scores[name] = matrix.values(genes, barcodes).mean(axis=1)

        return pd.DataFrame(scores, index=barcodes)


class EnrichmentScorer(GeneSetScorer):
    """
    Statistical enrichment scores ('gsva', 'ssgsea', 'zscore', 'plage').

    Scores are computed over all genes and barcodes of the sample and then
    subset to the requested barcodes. Gene sets handed to `prepare` are
    scored in a single call of the enrichment function, and the scores are
    kept for as long as the scorer is used on the same matrix.
    """

    def __init__(self, method: str, **method_kwargs):
        if method not in ENRICHMENT_FUNCTIONS:
            raise InvalidMethod(method)
        self.method = method
        self.method_kwargs = method_kwargs
        self._matrix = None
        self._scores: dict[str, np.ndarray] = {}

    @property
    def is_slow(self) -> bool:
        return True

    def prepare(self, matrix, gene_sets):
        if self._matrix is not matrix:
            self._matrix = matrix
            self._scores = {}

        pending = {name: genes for name, genes in gene_sets.items() if name not in self._scores}
        if not pending:
            return

        X = matrix.get_dense().T.astype(float)  # genes × barcodes
        gene_idx = {
            name: matrix.gene_names.get_indexer(pd.Index(genes).astype(str)).tolist()
            for name, genes in pending.items()
        }
        func = ENRICHMENT_FUNCTIONS[self.method]
        scores = func(X, gene_idx, **self.method_kwargs)

        for name, row in zip(pending, scores):
            self._scores[name] = row

    def score(self, matrix, gene_sets, barcodes=None):
        self.prepare(matrix, gene_sets)

        result = pd.DataFrame(
            {name: self._scores[name] for name in gene_sets},
            index=matrix.barcodes,
        )
        if barcodes is not None:
            result = result.reindex(pd.Index(barcodes).astype(str))
        return result


def get_scorer(method: str) -> GeneSetScorer:
    """Scoring strategy for a gene set method, or InvalidMethod."""
    if method == "mean":
        return MeanScorer()
    if method in ENRICHMENT_METHODS:
        return EnrichmentScorer(method)
    raise InvalidMethod(method)


def gene_set_columns(matrix: ExpressionMatrix,
                     catalog: GeneSetCatalog,
                     gene_sets: list[str],
                     barcodes,
                     method: str = "mean",
                     verbose: bool = True,
                     scorer: GeneSetScorer | None = None) -> list[Column]:
    """
    Score gene sets in the order given, one progress line per gene set.

    `scorer.prepare` sees all gene sets before the first one is scored, so
    work shared across gene sets is done once per request.

    The effective genes of a gene set are its catalog members that exist in
    `matrix`; the others are dropped. A gene set left without genes scores
    NaN.

    Parameters
    ----------
    matrix : ExpressionMatrix
        Expression of one sample
    catalog : GeneSetCatalog
        Gene set catalog
    gene_sets : list of str
        Validated gene set names
    barcodes : list-like
        Barcodes defining row order
    method : str
        'mean' or an enrichment method
    verbose : bool
        Print one progress message per gene set
    scorer : GeneSetScorer, optional
        Overrides the strategy chosen by `method`

    Returns
    -------
    list of (str, np.ndarray)
    """
    if scorer is None:
        scorer = get_scorer(method)

    effective = {name: catalog.effective_genes(name, matrix.gene_names) for name in gene_sets}
    total = len(effective)
    columns = []

    for i, (name, genes) in enumerate(effective.items(), start=1):

        if verbose:
            msg = (f"Calculating expression score for gene set ({i}/{total}) "
                   f"'{name}' according to method: '{scorer.method}'.")
            if scorer.is_slow:
                msg += " This might take a few moments."
            print(msg)

        if i == 1:
            scorer.prepare(matrix, effective)

        scores = scorer.score(matrix, {name: genes}, barcodes)
        columns.append((name, scores[name].to_numpy()))

    return columns
