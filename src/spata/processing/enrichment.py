"""
enrichment.py - Single-sample gene set enrichment scores

Scores of the GSVA family, computed per spot:

- 'gsva'   : Hänzelmann et al. (2013), via gseapy.gsva
- 'ssgsea' : Barbie et al. (2009), via gseapy.ssgsea
- 'zscore' : Lee et al. (2008), combined z-scores
- 'plage'  : Tomfohr et al. (2005), first right singular vector

All functions take a dense genes × spots matrix and a dict mapping gene set
names to row indices, and return a (n_sets × n_spots) array. A gene set
without genes scores NaN. Every set of one call is scored against the same
whole-matrix statistics, so callers should pass all gene sets at once.
"""

import gseapy as gp
import numpy as np
import pandas as pd


def standardize_rows(X: np.ndarray) -> np.ndarray:
    """
    Z-score every gene across spots (sample standard deviation).

    Genes with zero variance are set to 0.
    """
    mean = X.mean(axis=1, keepdims=True)
    if X.shape[1] > 1:
        sd = X.std(axis=1, ddof=1, keepdims=True)
    else:
        sd = np.zeros_like(mean)
    with np.errstate(divide='ignore', invalid='ignore'):
        Z = (X - mean) / sd
    Z[~np.isfinite(Z)] = 0.0
    return Z


def zscore_scores(X: np.ndarray, gene_sets: dict) -> np.ndarray:
    """Sum of gene z-scores divided by sqrt(set size)."""
    Z = standardize_rows(X)
    scores = np.full((len(gene_sets), X.shape[1]), np.nan)

    for i, idx in enumerate(gene_sets.values()):
        if len(idx) == 0:
            continue
        scores[i] = Z[idx].sum(axis=0) / np.sqrt(len(idx))

    return scores


def plage_scores(X: np.ndarray, gene_sets: dict) -> np.ndarray:
    """
    First right singular vector of the standardized gene set matrix.

    The sign of a singular vector is arbitrary; it is oriented to correlate
    positively with the mean z-score of the set.
    """
    Z = standardize_rows(X)
    scores = np.full((len(gene_sets), X.shape[1]), np.nan)

    for i, idx in enumerate(gene_sets.values()):
        if len(idx) == 0:
            continue
        Zs = Z[idx]
        _, _, vt = np.linalg.svd(Zs, full_matrices=False)
        v = vt[0]
        if np.dot(v, Zs.mean(axis=0)) < 0:
            v = -v
        scores[i] = v

    return scores



def _run_gseapy(func, X: np.ndarray, gene_sets: dict, **kwargs) -> np.ndarray:
    """
    Run a gseapy single-sample method on all non-empty gene sets at once.

    Genes and spots are passed under positional labels ('G0', 'S0', ...),
    so gene names never have to survive gseapy's label handling.

    Returns
    -------
    np.ndarray
        (n_sets × n_spots) enrichment scores ('ES')
    """
    n_genes, n_spots = X.shape
    scores = np.full((len(gene_sets), n_spots), np.nan)

    labelled = {
        f"set_{i}": [f"G{g}" for g in idx]
        for i, idx in enumerate(gene_sets.values())
        if len(idx) > 0
    }
    if not labelled:
        return scores

    data = pd.DataFrame(
        X,
        index=[f"G{g}" for g in range(n_genes)],
        columns=[f"S{s}" for s in range(n_spots)],
    )
    largest = max(len(genes) for genes in labelled.values())
    result = func(
        data=data,
        gene_sets=labelled,
        outdir=None,
        min_size=1,
        max_size=largest,
        threads=1,
        verbose=False,
        **kwargs,
    )

    es = result.res2d.pivot(index="Term", columns="Name", values="ES").astype(float)
    es = es.reindex(index=[f"set_{i}" for i in range(len(gene_sets))], columns=data.columns)
    scores[:] = es.to_numpy()
    return scores


def ssgsea_scores(X: np.ndarray,
                  gene_sets: dict,
                  weight: float = 0.25,
                  normalize: bool = True) -> np.ndarray:
    """
    Single-sample GSEA (gseapy.ssgsea).

    Genes are ranked within each spot and in-set steps of the random walk
    are weighted by rank ** `weight`. With `normalize`, each gene set's
    scores are divided by their range across spots, which keeps a set's
    score independent of the other sets scored alongside it.
    """
    scores = _run_gseapy(gp.ssgsea, X, gene_sets,
                         sample_norm_method="rank", weight=weight, no_plot=True)

    if normalize:
        for i, row in enumerate(scores):
            finite = np.isfinite(row)
            if finite.any():
                spread = row[finite].max() - row[finite].min()
                if spread > 0:
                    scores[i] = row / spread

    return scores


def gsva_scores(X: np.ndarray,
                gene_sets: dict,
                kcdf: str = "Gaussian",
                mx_diff: bool = True) -> np.ndarray:
    """
    Gene set variation analysis (gseapy.gsva).

    Expression is turned into per-gene kernel CDF values, genes are ranked
    within each spot, and a Kolmogorov-Smirnov-like random walk is run for
    each gene set. With `mx_diff`, the score is the sum of the largest
    positive and negative deviations.
    """
    return _run_gseapy(gp.gsva, X, gene_sets, kcdf=kcdf, mx_diff=mx_diff)


ENRICHMENT_FUNCTIONS = {
    'gsva': gsva_scores,
    'ssgsea': ssgsea_scores,
    'zscore': zscore_scores,
    'plage': plage_scores,
}
