"""
gene_sets.py - Gene set catalog

Maps gene set identifiers ("ont") to their member genes. The catalog is stored
long-form (one row per ont/gene pair), the layout gene set databases such as
MSigDB exports are usually distributed in.
"""

import logging

import pandas as pd

logger = logging.getLogger(__name__)


class GeneSetCatalog:
    """
    Collection of named gene sets.

    Parameters
    ----------
    gene_sets : pd.DataFrame or dict, optional
        Either a long DataFrame with one row per (gene set, gene) pair, or a
        dict mapping gene set names to lists of genes.
    gene_set_col : str
        Column holding the gene set name in the DataFrame form
    gene_col : str
        Column holding the gene symbol in the DataFrame form
    """

    def __init__(self,
                 gene_sets: pd.DataFrame | dict | None = None,
                 gene_set_col: str = "ont",
                 gene_col: str = "gene"):
        self.gene_set_col = gene_set_col
        self.gene_col = gene_col

        if gene_sets is None:
            gene_sets = {}

        if isinstance(gene_sets, dict):
            rows = [
                (str(name), str(gene))
                for name, genes in gene_sets.items()
                for gene in genes
            ]
            df = pd.DataFrame(rows, columns=[gene_set_col, gene_col])
        elif isinstance(gene_sets, pd.DataFrame):
            missing = [c for c in (gene_set_col, gene_col) if c not in gene_sets.columns]
            if missing:
                raise ValueError(f"Gene set DataFrame is missing columns: {missing}")
            df = gene_sets[[gene_set_col, gene_col]].astype(str)
        else:
            raise TypeError(f"Unsupported gene_sets type: {type(gene_sets)}")

        self._df = df.drop_duplicates().reset_index(drop=True)
        self._members = {
            name: group[gene_col].tolist()
            for name, group in self._df.groupby(gene_set_col, sort=False)
        }

    @property
    def names(self) -> list[str]:
        """Gene set names in catalog order."""
        return list(self._members)

    def __contains__(self, name) -> bool:
        return str(name) in self._members

    def __len__(self) -> int:
        return len(self._members)

    def members(self, name: str) -> list[str]:
        """All member genes of a gene set."""
        if name not in self._members:
            raise KeyError(f"Gene set '{name}' not in catalog")
        return list(self._members[name])

    def effective_genes(self, name: str, available) -> list[str]:
        """
        Members of `name` that are present in `available`.

        Members missing from `available` are dropped silently.
        """
        available = set(pd.Index(available).astype(str))
        members = self.members(name)
        genes = [gene for gene in members if gene in available]

        if len(genes) < len(members):
            logger.debug(
                "Gene set '%s': %d of %d genes not in expression matrix",
                name, len(members) - len(genes), len(members),
            )
        return genes

    def subset(self, names) -> "GeneSetCatalog":
        """New catalog holding only the given gene sets."""
        names = [str(name) for name in names]
        return GeneSetCatalog(
            {name: self._members[name] for name in names if name in self._members},
            gene_set_col=self.gene_set_col,
            gene_col=self.gene_col,
        )

    def to_dict(self) -> dict[str, list[str]]:
        return {name: list(genes) for name, genes in self._members.items()}

    def to_dataframe(self) -> pd.DataFrame:
        return self._df.copy()

    def __repr__(self) -> str:
        return f"GeneSetCatalog({len(self)} gene sets, {len(self._df)} gene entries)"
