"""
core.py - Main spata class for spatial gene-expression data

The spata class holds per-sample expression matrices, spot coordinates,
feature annotations and a gene set catalog, kept aligned on the spot
barcodes of every sample.
"""
from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import anndata
import logging
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from .config import SpataConfig, InvalidObject
from .expression import ExpressionMatrix
from .gene_sets import GeneSetCatalog

logger = logging.getLogger(__name__)


class spata:
    """
    Spatial gene-expression data structure.

    Core Principles:
    - Coordinates are the master table: one row per (sample, barcode)
    - Feature data is aligned to the coordinates
    - One expression matrix per sample, covering all of its barcodes
    - Gene sets are shared by all samples

    Attributes
    ----------
    _expression : Dict[str, ExpressionMatrix]
        Expression matrix per sample
    _coordinates : pd.DataFrame
        barcodes, sample, x, y
    _feature_data : pd.DataFrame
        barcodes, sample and one column per feature
    _gene_sets : GeneSetCatalog
        Gene set catalog
    """

    def __init__(self,
                 expression: Dict[str, Union[ExpressionMatrix, pd.DataFrame]],
                 coordinates: pd.DataFrame,
                 feature_data: Optional[pd.DataFrame] = None,
                 gene_sets: Optional[Union[GeneSetCatalog, pd.DataFrame, Dict[str, List[str]]]] = None,
                 config: Optional[SpataConfig] = None,
                 verbose: bool = True):
        """
        Initialize spata object.

        Parameters
        ----------
        expression : dict
            Sample name -> ExpressionMatrix, or a genes × barcodes DataFrame
        coordinates : DataFrame
            Spot coordinates with barcodes, sample, x and y columns
        feature_data : DataFrame, optional
            Spot annotations with a barcodes column (and a sample column when
            the object holds several samples). Aligned to the coordinates.
        gene_sets : GeneSetCatalog, DataFrame or dict, optional
            Gene set catalog, long (ont, gene) DataFrame or name -> genes dict
        config : SpataConfig, optional
            Configuration object
        verbose : bool
            Print initialization progress
        """
        self.config = config or SpataConfig()
        self.verbose = verbose

        # STEP 1: Expression matrices
        self._expression = self._prepare_expression(expression)
        self._print(f"[1/4] Expression: {len(self._expression)} sample(s)")

        # STEP 2: Coordinates (master table)
        self._coordinates = self._prepare_coordinates(coordinates)
        self._print(f"[2/4] Coordinates: {len(self._coordinates):,} spots")

        # STEP 3: Feature data aligned to coordinates
        self._feature_data = self._prepare_feature_data(feature_data)
        self._print(f"[3/4] Feature data: {len(self.feature_names())} features")

        # STEP 4: Gene sets
        self._gene_sets = self._prepare_gene_sets(gene_sets)
        self._print(f"[4/4] Gene sets: {len(self._gene_sets)}")

        status = self.validate_consistency(raise_error=False)
        if not status['overall']:
            failed = [k for k, v in status.items() if not v and k != 'overall']
            logger.warning("spata object has consistency issues with: %s", ", ".join(failed))

    def _print(self, msg: str) -> None:
        if self.verbose:
            print(msg)

    # ========== Data Preparation Methods ==========

    def _prepare_expression(self, expression) -> Dict[str, ExpressionMatrix]:
        """Convert every sample's expression to an ExpressionMatrix."""
        if not isinstance(expression, dict) or not expression:
            raise TypeError("expression must be a non-empty dict of sample -> matrix")

        prepared = {}
        for sample, mtr in expression.items():
            if isinstance(mtr, ExpressionMatrix):
                prepared[str(sample)] = mtr
            elif isinstance(mtr, pd.DataFrame):
                prepared[str(sample)] = ExpressionMatrix.from_count_matrix(
                    mtr, sparse_threshold=self.config.auto_sparse_threshold
                )
            else:
                raise TypeError(f"Unsupported expression type for sample '{sample}': {type(mtr)}")
        return prepared

    def _prepare_coordinates(self, coordinates: pd.DataFrame) -> pd.DataFrame:
        """Validate the coordinate table and tie it to the expression samples."""
        cfg = self.config
        required = [cfg.barcodes_col, cfg.sample_col, cfg.x_col, cfg.y_col]
        missing = [c for c in required if c not in coordinates.columns]
        if missing:
            raise ValueError(f"Coordinates are missing columns: {missing}")

        coords = coordinates.copy().reset_index(drop=True)
        coords[cfg.barcodes_col] = coords[cfg.barcodes_col].astype(str)
        coords[cfg.sample_col] = coords[cfg.sample_col].astype(str)

        if coords.duplicated([cfg.sample_col, cfg.barcodes_col]).any():
            raise ValueError("Barcodes must be unique within each sample")

        unknown = set(coords[cfg.sample_col]) - set(self._expression)
        if unknown:
            raise ValueError(f"Coordinates reference samples without expression: {sorted(unknown)}")

        return coords

    def _prepare_feature_data(self, feature_data: Optional[pd.DataFrame]) -> pd.DataFrame:
        """Prepare and align feature data to the coordinates."""
        cfg = self.config
        keys = [cfg.barcodes_col, cfg.sample_col]
        base = self._coordinates[keys].copy()

        if feature_data is None:
            return base

        if cfg.barcodes_col not in feature_data.columns:
            if feature_data.index.name == cfg.barcodes_col:
                feature_data = feature_data.reset_index()
            else:
                raise ValueError(f"Feature data must have a '{cfg.barcodes_col}' column")

        fdata = feature_data.copy()
        fdata[cfg.barcodes_col] = fdata[cfg.barcodes_col].astype(str)

        if cfg.sample_col not in fdata.columns:
            if len(self._expression) > 1:
                raise ValueError(
                    f"Feature data of a multi-sample object needs a '{cfg.sample_col}' column"
                )
            fdata[cfg.sample_col] = next(iter(self._expression))
        fdata[cfg.sample_col] = fdata[cfg.sample_col].astype(str)

        if fdata.duplicated(keys).any():
            raise ValueError("Feature data has duplicated barcodes")

        aligned = base.merge(fdata, on=keys, how='left')

        n_extra = len(fdata) - len(fdata.merge(base, on=keys, how='inner'))
        feature_cols = [c for c in aligned.columns if c not in keys]
        if feature_cols:
            n_missing = aligned[feature_cols].isna().all(axis=1).sum()
            if n_missing > 0:
                logger.warning("%d spots missing feature data (filled with NaN)", n_missing)
        if n_extra > 0:
            logger.warning("%d feature rows not in coordinates (dropped)", n_extra)

        return aligned

    def _prepare_gene_sets(self, gene_sets) -> GeneSetCatalog:
        if isinstance(gene_sets, GeneSetCatalog):
            return gene_sets
        return GeneSetCatalog(
            gene_sets,
            gene_set_col=self.config.gene_set_col,
            gene_col=self.config.gene_col,
        )

    # ========== Consistency Validation ==========

    def validate_consistency(self, raise_error: bool = False) -> Dict[str, bool]:
        """
        Validate all components are consistent.

        Parameters
        ----------
        raise_error : bool
            If True, raise InvalidObject on inconsistency

        Returns
        -------
        dict
            Status of each component
        """
        cfg = self.config
        status = {}
        issues = []

        # Every sample with expression has coordinates and vice versa
        coord_samples = set(self._coordinates[cfg.sample_col])
        status['samples'] = coord_samples == set(self._expression)
        if not status['samples']:
            issues.append(
                f"Samples with expression {sorted(self._expression)} != "
                f"samples with coordinates {sorted(coord_samples)}"
            )

        # Every barcode of the coordinates exists in its expression matrix
        status['expression_barcodes'] = True
        for sample, group in self._coordinates.groupby(cfg.sample_col):
            mtr = self._expression.get(sample)
            if mtr is None:
                continue
            n_missing = (~group[cfg.barcodes_col].isin(mtr.barcodes)).sum()
            if n_missing > 0:
                status['expression_barcodes'] = False
                issues.append(f"Sample '{sample}': {n_missing} barcodes missing in expression matrix")

        # Feature data aligned row for row
        status['feature_data'] = (
            len(self._feature_data) == len(self._coordinates)
            and (self._feature_data[cfg.barcodes_col].values
                 == self._coordinates[cfg.barcodes_col].values).all()
        )
        if not status['feature_data']:
            issues.append("Feature data is not aligned to coordinates")

        status['gene_sets'] = isinstance(self._gene_sets, GeneSetCatalog)
        if not status['gene_sets']:
            issues.append("Gene sets are not a GeneSetCatalog")

        status['overall'] = all(status.values())

        if issues and raise_error:
            raise InvalidObject("\n".join(issues))

        return status

    # ========== Properties ==========

    @property
    def samples(self) -> List[str]:
        """Sample names."""
        return list(self._expression)

    @property
    def n_samples(self) -> int:
        return len(self._expression)

    @property
    def expression(self) -> Dict[str, ExpressionMatrix]:
        return self._expression

    @property
    def coordinates(self) -> pd.DataFrame:
        return self._coordinates

    @property
    def feature_data(self) -> pd.DataFrame:
        return self._feature_data

    @property
    def gene_sets(self) -> GeneSetCatalog:
        return self._gene_sets

    # ========== Access Methods ==========

    def _single_sample(self, of_sample) -> str:
        """Resolve `of_sample` (name or one-element list-like) to a known sample."""
        if of_sample is None:
            if self.n_samples != 1:
                raise ValueError(f"Object holds {self.n_samples} samples; specify of_sample")
            return self.samples[0]

        if not isinstance(of_sample, str):
            of_sample = list(pd.unique(pd.Series(list(of_sample), dtype=str)))
            if len(of_sample) != 1:
                raise ValueError(f"Exactly one sample required, got {of_sample}")
            of_sample = of_sample[0]

        if of_sample not in self._expression:
            raise ValueError(f"Unknown sample '{of_sample}'. Samples: {self.samples}")
        return of_sample

    def expr_mtr(self, of_sample=None) -> ExpressionMatrix:
        """
        Get the expression matrix of one sample.

        Parameters
        ----------
        of_sample : str or list-like, optional
            Sample name. May be omitted for single-sample objects.

        Returns
        -------
        ExpressionMatrix
        """
        return self._expression[self._single_sample(of_sample)]

    def feature_data_for(self, of_sample=None) -> pd.DataFrame:
        """Feature data (barcodes, sample, features) of one sample."""
        sample = self._single_sample(of_sample)
        mask = self._feature_data[self.config.sample_col] == sample
        return self._feature_data[mask].reset_index(drop=True)

    def coords(self, of_sample=None) -> pd.DataFrame:
        """
        Coordinate table (barcodes, sample, x, y) of one sample.

        This is the usual starting point for the joinWith-family.
        """
        sample = self._single_sample(of_sample)
        cfg = self.config
        mask = self._coordinates[cfg.sample_col] == sample
        cols = [cfg.barcodes_col, cfg.sample_col, cfg.x_col, cfg.y_col]
        return self._coordinates.loc[mask, cols].reset_index(drop=True)

    def genes(self, of_sample=None) -> List[str]:
        """Genes of one sample, or of all samples when None and several exist."""
        if of_sample is None and self.n_samples > 1:
            genes = pd.Index([])
            for mtr in self._expression.values():
                genes = genes.union(mtr.gene_names, sort=False)
            return genes.tolist()
        return self.expr_mtr(of_sample).gene_names.tolist()

    def feature_names(self) -> List[str]:
        """Names of all feature columns."""
        keys = self.config.required_coords_columns()
        return [c for c in self._feature_data.columns if c not in keys]

    def gene_set_names(self) -> List[str]:
        return self._gene_sets.names

    def add_features(self, feature_df: pd.DataFrame, overwrite: bool = False) -> None:
        """
        Add feature columns keyed by barcodes (and sample).

        Parameters
        ----------
        feature_df : pd.DataFrame
            Must contain a barcodes column. A sample column is required for
            multi-sample objects.
        overwrite : bool
            Replace features that already exist
        """
        cfg = self.config
        keys = [cfg.barcodes_col, cfg.sample_col]

        new = feature_df.copy()
        if cfg.barcodes_col not in new.columns:
            raise ValueError(f"feature_df must have a '{cfg.barcodes_col}' column")
        new[cfg.barcodes_col] = new[cfg.barcodes_col].astype(str)
        if cfg.sample_col not in new.columns:
            new[cfg.sample_col] = self._single_sample(None)
        new[cfg.sample_col] = new[cfg.sample_col].astype(str)

        added = [c for c in new.columns if c not in keys]
        existing = [c for c in added if c in self._feature_data.columns]
        if existing and not overwrite:
            raise ValueError(f"Features already exist: {existing}. Use overwrite=True")

        base = self._feature_data.drop(columns=existing)
        self._feature_data = base.merge(new[keys + added], on=keys, how='left')
        self._print(f"  ✓ Added {len(added)} feature(s)")

    # ========== Summary ==========

    def _estimate_memory_usage(self) -> float:
        """Estimate total memory usage in MB."""
        total_bytes = sum(m.memory_usage_mb() for m in self._expression.values()) * 1024 * 1024
        total_bytes += self._coordinates.memory_usage(deep=True).sum()
        total_bytes += self._feature_data.memory_usage(deep=True).sum()
        return total_bytes / (1024 * 1024)

    def summary(self) -> Dict[str, any]:
        """
        Get comprehensive summary of the object.

        Returns
        -------
        dict
            Summary statistics
        """
        cfg = self.config
        spots_per_sample = self._coordinates[cfg.sample_col].value_counts()

        return {
            'n_samples': self.n_samples,
            'samples': self.samples,
            'n_spots': len(self._coordinates),
            'spots_per_sample': spots_per_sample.to_dict(),
            'n_genes': {s: m.shape[1] for s, m in self._expression.items()},
            'n_features': len(self.feature_names()),
            'n_gene_sets': len(self._gene_sets),
            'memory_usage_mb': self._estimate_memory_usage(),
        }

    def __repr__(self) -> str:
        return (f"spata object\n"
                f"  Samples:   {self.n_samples}\n"
                f"  Spots:     {len(self._coordinates):,}\n"
                f"  Features:  {len(self.feature_names())}\n"
                f"  Gene sets: {len(self._gene_sets)}")

    def __str__(self) -> str:
        return self.__repr__()

    # ========== Constructors ==========

    @staticmethod
    def from_anndata(adata: 'anndata.AnnData',
                     sample_name: str,
                     spatial_key: str = 'spatial',
                     gene_sets=None,
                     config: Optional[SpataConfig] = None,
                     verbose: bool = True) -> 'spata':
        """
        Create a single-sample spata object from an AnnData object.

        Extracts:
        - Expression: adata.X
        - Feature data: adata.obs
        - Coordinates: adata.obsm[spatial_key] (first two columns)

        Parameters
        ----------
        adata : anndata.AnnData
            AnnData object
        sample_name : str
            Name of the sample
        spatial_key : str
            Key in obsm for spatial coordinates
        gene_sets : GeneSetCatalog, DataFrame or dict, optional
            Gene set catalog
        config : SpataConfig, optional
            Configuration

        Returns
        -------
        spata
        """
        import anndata

        if not isinstance(adata, anndata.AnnData):
            raise TypeError("Input must be AnnData object")
        if spatial_key not in adata.obsm:
            raise ValueError(f"No spatial coordinates found in obsm['{spatial_key}']")

        config = config or SpataConfig()
        barcodes = pd.Index(adata.obs_names).astype(str)

        expression = ExpressionMatrix(
            data=adata.X,
            barcodes=barcodes,
            gene_names=adata.var_names,
            sparse_threshold=config.auto_sparse_threshold,
        )

        spatial_array = np.asarray(adata.obsm[spatial_key])
        coordinates = pd.DataFrame({
            config.barcodes_col: barcodes,
            config.sample_col: sample_name,
            config.x_col: spatial_array[:, 0],
            config.y_col: spatial_array[:, 1],
        })

        feature_data = adata.obs.copy()
        feature_data.index = barcodes
        feature_data = feature_data.drop(
            columns=[c for c in config.required_coords_columns() if c in feature_data.columns]
        )
        feature_data.index.name = config.barcodes_col
        feature_data = feature_data.reset_index()

        return spata(
            expression={sample_name: expression},
            coordinates=coordinates,
            feature_data=feature_data,
            gene_sets=gene_sets,
            config=config,
            verbose=verbose,
        )
