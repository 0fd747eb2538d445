"""
checks.py - Input validation for the joinWith-family

Every check either returns a validated value or raises one of the spata
errors. Checks that return a cleaned-up version of their input ("adjusting
checks") are run for the whole request before anything is computed, so a
failing request never produces partial columns.
"""
from collections.abc import Mapping
from dataclasses import dataclass

import pandas as pd

from .config import (
    GENE_SET_METHODS,
    VARIABLE_CLASSES,
    InvalidCoordsTable,
    InvalidMethod,
    InvalidObject,
    InvalidRequest,
    JoinOptions,
    UnknownVariable,
)
from .core import spata
from .expression import ExpressionMatrix


@dataclass
class VariableRequest:
    """
    Variables to join onto a coordinate table.

    At least one of the three classes must be given.
    """

    features: list[str] | None = None
    genes: list[str] | None = None
    gene_sets: list[str] | None = None

    @classmethod
    def from_mapping(cls, variables) -> "VariableRequest":
        """
        Build from a bundle keyed by 'features', 'genes' and/or 'gene_sets'.

        Other keys are ignored. A known key mapped to None is an error.
        """
        if not isinstance(variables, Mapping):
            raise InvalidRequest(
                f"variables must be a mapping keyed by {list(VARIABLE_CLASSES)}, "
                f"got {type(variables).__name__}"
            )
        if not any(key in variables for key in VARIABLE_CLASSES):
            raise InvalidRequest(
                f"variables must contain at least one of {list(VARIABLE_CLASSES)}"
            )
        empty = [key for key in VARIABLE_CLASSES if key in variables and variables[key] is None]
        if empty:
            raise InvalidRequest(f"No names given for {empty}")
        return cls(**{key: variables[key] for key in VARIABLE_CLASSES if key in variables})

    def classes(self) -> list[str]:
        """Requested variable classes in processing order."""
        return [key for key in VARIABLE_CLASSES if getattr(self, key) is not None]


@dataclass
class ResolvedRequest:
    """A request whose names have all been validated against one sample."""

    sample: str
    features: list[str] | None = None
    genes: list[str] | None = None
    gene_sets: list[str] | None = None


def check_object(obj) -> None:
    """Raise InvalidObject unless `obj` is a consistent spata object."""
    if not isinstance(obj, spata):
        raise InvalidObject(f"Expected a spata object, got {type(obj).__name__}")
    obj.validate_consistency(raise_error=True)


def check_coords_df(obj: spata, coords_df: pd.DataFrame) -> str:
    """
    Validate a coordinate table against the object.

    The table must carry barcodes and sample columns, belong to exactly one
    known sample, and hold unique barcodes that exist in that sample.

    Returns
    -------
    str
        The sample the table belongs to
    """
    cfg = obj.config

    if not isinstance(coords_df, pd.DataFrame):
        raise InvalidCoordsTable(f"coords_df must be a DataFrame, got {type(coords_df).__name__}")

    missing = [c for c in cfg.required_coords_columns() if c not in coords_df.columns]
    if missing:
        raise InvalidCoordsTable(f"coords_df is missing required columns: {missing}")

    samples = pd.unique(coords_df[cfg.sample_col].astype(str))
    if len(samples) == 0:
        raise InvalidCoordsTable("coords_df is empty")
    if len(samples) > 1:
        raise InvalidCoordsTable(
            f"coords_df must contain a single sample, found {len(samples)}: {list(samples)}"
        )

    sample = samples[0]
    if sample not in obj.samples:
        raise InvalidCoordsTable(f"Sample '{sample}' not found. Samples: {obj.samples}")

    barcodes = coords_df[cfg.barcodes_col].astype(str)
    if barcodes.duplicated().any():
        raise InvalidCoordsTable("coords_df contains duplicated barcodes")

    known = obj.expr_mtr(sample).barcodes
    unknown = barcodes[~barcodes.isin(known)]
    if len(unknown) > 0:
        raise InvalidCoordsTable(
            f"{len(unknown)} barcodes of coords_df not found in sample '{sample}' "
            f"(e.g. '{unknown.iloc[0]}')"
        )

    return sample


def check_smooth(obj: spata, coords_df: pd.DataFrame, smooth: bool, smooth_span: float) -> None:
    """Validate smoothing parameters and the coordinates smoothing needs."""
    if isinstance(smooth_span, bool) or not isinstance(smooth_span, (int, float)) or smooth_span <= 0:
        raise ValueError(f"smooth_span must be a positive number, got {smooth_span!r}")

    if smooth:
        x_col, y_col = obj.config.coordinate_columns()
        missing = [c for c in (x_col, y_col) if c not in coords_df.columns]
        if missing:
            raise InvalidCoordsTable(f"Smoothing requires coordinate columns: {missing}")
        for col in (x_col, y_col):
            if not pd.api.types.is_numeric_dtype(coords_df[col]):
                raise InvalidCoordsTable(f"Coordinate column '{col}' must be numeric")


def check_method(method_gs: str) -> str:
    """Raise InvalidMethod unless `method_gs` is a known gene set method."""
    if method_gs not in GENE_SET_METHODS:
        raise InvalidMethod(method_gs)
    return method_gs


def _as_name_list(names, aspect: str) -> list[str]:
    """Turn a name or list of names into a de-duplicated list of strings."""
    if names is None:
        raise InvalidRequest(f"No {aspect}s specified")
    if isinstance(names, str):
        names = [names]
    names = [str(name) for name in names]
    if not names:
        raise InvalidRequest(f"No {aspect}s specified")
    return list(dict.fromkeys(names))


def check_features(obj: spata, features) -> list[str]:
    """Validate feature names against the object's feature data."""
    features = _as_name_list(features, "feature")
    known = set(obj.feature_names())
    missing = [f for f in features if f not in known]
    if missing:
        raise UnknownVariable("feature", missing)
    return features


def check_genes(obj: spata, genes, matrix: ExpressionMatrix) -> list[str]:
    """Validate gene names against the rows of an expression matrix."""
    genes = _as_name_list(genes, "gene")
    present = matrix.has_genes(genes)
    if not present.all():
        raise UnknownVariable("gene", [g for g, ok in zip(genes, present) if not ok])
    return genes


def check_gene_sets(obj: spata, gene_sets) -> list[str]:
    """Validate gene set names against the object's gene set catalog."""
    gene_sets = _as_name_list(gene_sets, "gene set")
    missing = [gs for gs in gene_sets if gs not in obj.gene_sets]
    if missing:
        raise UnknownVariable("gene set", missing)
    return gene_sets


def resolve_request(obj: spata,
                    coords_df: pd.DataFrame,
                    request: VariableRequest,
                    options: JoinOptions) -> ResolvedRequest:
    """
    Validate a complete request before any value is computed.

    Parameters
    ----------
    obj : spata
        spata object
    coords_df : pd.DataFrame
        Coordinate table of a single sample
    request : VariableRequest
        Requested features, genes and gene sets
    options : JoinOptions
        Join options

    Returns
    -------
    ResolvedRequest
    """
    check_object(obj)
    sample = check_coords_df(obj, coords_df)
    check_smooth(obj, coords_df, options.smooth, options.smooth_span)

    if not request.classes():
        raise InvalidRequest(
            f"Request must contain at least one of {list(VARIABLE_CLASSES)}"
        )

    resolved = ResolvedRequest(sample=sample)

    if request.features is not None:
        resolved.features = check_features(obj, request.features)

    if request.genes is not None:
        resolved.genes = check_genes(obj, request.genes, obj.expr_mtr(sample))

    if request.gene_sets is not None:
        check_method(options.method_gs)
        resolved.gene_sets = check_gene_sets(obj, request.gene_sets)

    return resolved
