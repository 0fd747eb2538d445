"""
expression.py - Efficient expression matrix with automatic sparse handling
"""

import numpy as np
import pandas as pd
from scipy import sparse

from .config import InvalidCoordsTable, UnknownVariable


class ExpressionMatrix:
    """
    Expression matrix of one sample with automatic sparse/dense handling.

    Stored as barcodes × genes. Lookups by gene or barcode never fall back to
    missing values: an unknown name is an error.
    """

    def __init__(
        self,
        data: np.ndarray | sparse.spmatrix | pd.DataFrame,
        barcodes: pd.Index,
        gene_names: pd.Index,
        auto_sparse: bool = True,
        sparse_threshold: float = 0.5,
    ):
        """
        Initialize expression matrix.

        Parameters
        ----------
        data : np.ndarray, sparse matrix, or pd.DataFrame
            Expression data (barcodes × genes)
        barcodes : pd.Index
            Spot barcodes
        gene_names : pd.Index
            Gene names
        auto_sparse : bool
            Automatically convert to sparse if beneficial
        sparse_threshold : float
            Sparsity threshold for conversion (0-1)
        """
        if isinstance(data, pd.DataFrame):
            data = data.values

        if data.shape[0] != len(barcodes):
            raise ValueError(f"Data rows ({data.shape[0]}) != barcodes ({len(barcodes)})")
        if data.shape[1] != len(gene_names):
            raise ValueError(f"Data cols ({data.shape[1]}) != gene_names ({len(gene_names)})")

        if auto_sparse and isinstance(data, np.ndarray) and data.size > 0:
            sparsity = 1 - np.count_nonzero(data) / data.size
            if sparsity > sparse_threshold:
                data = sparse.csr_matrix(data)

        self._data = data
        self._barcodes = pd.Index(barcodes).astype(str)
        self._gene_names = pd.Index(gene_names).astype(str)
        self._is_sparse = sparse.issparse(data)

        if self._barcodes.has_duplicates:
            raise ValueError("Barcodes of an expression matrix must be unique")
        if self._gene_names.has_duplicates:
            raise ValueError("Gene names of an expression matrix must be unique")

    @classmethod
    def from_count_matrix(cls, counts: pd.DataFrame, **kwargs) -> "ExpressionMatrix":
        """
        Create from a genes × barcodes DataFrame (count-matrix layout).

        Parameters
        ----------
        counts : pd.DataFrame
            Rows are genes, columns are barcodes
        """
        return cls(
            data=counts.values.T,
            barcodes=counts.columns,
            gene_names=counts.index,
            **kwargs,
        )

    @property
    def shape(self) -> tuple[int, int]:
        """Return (n_barcodes, n_genes)."""
        return self._data.shape

    @property
    def is_sparse(self) -> bool:
        return self._is_sparse

    @property
    def barcodes(self) -> pd.Index:
        return self._barcodes

    @property
    def gene_names(self) -> pd.Index:
        return self._gene_names

    def get_dense(self) -> np.ndarray:
        """Get dense representation."""
        if self._is_sparse:
            return self._data.toarray()
        return np.asarray(self._data)

    def has_genes(self, gene_names) -> np.ndarray:
        """Boolean mask telling which of `gene_names` are present."""
        return pd.Index(gene_names).astype(str).isin(self._gene_names)

    def _gene_indices(self, gene_names) -> np.ndarray:
        gene_names = pd.Index(gene_names).astype(str)
        indices = self._gene_names.get_indexer(gene_names)
        if (indices < 0).any():
            raise UnknownVariable("gene", gene_names[indices < 0].tolist())
        return indices

    def _barcode_indices(self, barcodes) -> np.ndarray:
        barcodes = pd.Index(barcodes).astype(str)
        indices = self._barcodes.get_indexer(barcodes)
        if (indices < 0).any():
            missing = barcodes[indices < 0]
            raise InvalidCoordsTable(
                f"{len(missing)} barcodes not found in expression matrix "
                f"(e.g. '{missing[0]}')"
            )
        return indices

    def values(self, gene_names, barcodes=None) -> np.ndarray:
        """
        Extract dense expression values.

        Parameters
        ----------
        gene_names : list-like
            Genes to extract, in output column order
        barcodes : list-like, optional
            Barcodes to extract, in output row order. If None, all barcodes.

        Returns
        -------
        np.ndarray
            (n_barcodes × n_genes) float array
        """
        gene_idx = self._gene_indices(gene_names)
        if barcodes is None:
            cell_idx = np.arange(self.shape[0])
        else:
            cell_idx = self._barcode_indices(barcodes)

        if self._is_sparse:
            data = self._data[cell_idx, :][:, gene_idx].toarray()
        else:
            data = np.asarray(self._data)[np.ix_(cell_idx, gene_idx)]
        return np.asarray(data, dtype=float)

    def to_dataframe(self, gene_names=None) -> pd.DataFrame:
        """
        Convert to a genes × barcodes DataFrame (count-matrix layout).

        Warning: This creates a dense representation in memory.
        """
        if gene_names is None:
            gene_names = self._gene_names
        gene_names = pd.Index(gene_names).astype(str)
        return pd.DataFrame(
            self.values(gene_names).T,
            index=gene_names,
            columns=self._barcodes,
        )

    def memory_usage_mb(self) -> float:
        """Estimate memory usage in MB."""
        if self._is_sparse:
            total_bytes = self._data.data.nbytes + self._data.indices.nbytes + self._data.indptr.nbytes
        else:
            total_bytes = self._data.nbytes

        return total_bytes / (1024 * 1024)

    def __repr__(self) -> str:
        kind = "sparse" if self._is_sparse else "dense"
        return f"ExpressionMatrix({self.shape[0]} barcodes × {self.shape[1]} genes, {kind})"
