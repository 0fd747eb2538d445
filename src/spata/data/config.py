"""
config.py - Configuration and error types for spata

Contains:
- SpataConfig: Column names and default settings
- JoinOptions: Options controlling the joinWith-family of functions
- Error taxonomy raised by validation and joining
"""

from dataclasses import dataclass

# Gene set scoring methods besides plain averaging
ENRICHMENT_METHODS = ("gsva", "ssgsea", "zscore", "plage")
GENE_SET_METHODS = ("mean",) + ENRICHMENT_METHODS

# Keys of a multi-class variable request, in processing order
VARIABLE_CLASSES = ("features", "genes", "gene_sets")


@dataclass
class SpataConfig:
    """Configuration for spata column names and settings."""

    # Column names
    barcodes_col: str = "barcodes"
    sample_col: str = "sample"
    x_col: str = "x"
    y_col: str = "y"

    # Gene set catalog columns
    gene_set_col: str = "ont"
    gene_col: str = "gene"

    # Name of the column produced by averaging several genes
    mean_genes_name: str = "mean_genes"

    # Processing settings
    auto_sparse_threshold: float = 0.5  # Convert to sparse if >50% zeros

    def coordinate_columns(self) -> tuple[str, str]:
        """Return (x_column, y_column)."""
        return self.x_col, self.y_col

    def required_coords_columns(self) -> tuple[str, str]:
        """Columns every coordinate table must carry."""
        return self.barcodes_col, self.sample_col


@dataclass
class JoinOptions:
    """
    Options shared by all members of the joinWith-family.

    Attributes
    ----------
    average_genes : bool
        Collapse several requested genes into one averaged column.
    method_gs : str
        Gene set scoring method: 'mean' or one of ENRICHMENT_METHODS.
    smooth : bool
        Spatially smooth the newly joined numeric columns.
    smooth_span : float
        Fraction of spots contributing to each local fit (> 0).
    normalize : bool
        Rescale newly joined gene and gene set columns to [0, 1].
    verbose : bool
        Print progress messages.
    """

    average_genes: bool = False
    method_gs: str = "mean"
    smooth: bool = False
    smooth_span: float = 0.02
    normalize: bool = True
    verbose: bool = True


class SpataError(Exception):
    """Base exception for spata errors."""

    pass


class InvalidObject(SpataError):
    """Raised when a spata object fails structural validation."""

    pass


class InvalidCoordsTable(SpataError):
    """Raised when a coordinate table is missing columns or mixes samples."""

    pass


class UnknownVariable(SpataError):
    """Raised when requested features, genes or gene sets do not exist."""

    def __init__(self, aspect: str, missing: list[str]):
        self.aspect = aspect
        self.missing = list(missing)
        super().__init__(
            f"Could not find {len(self.missing)} {aspect}(s): "
            + ", ".join(f"'{name}'" for name in self.missing)
        )


class InvalidMethod(SpataError):
    """Raised when an unknown gene set scoring method is requested."""

    def __init__(self, method):
        self.method = method
        super().__init__(
            f"Invalid method to handle gene sets: {method!r}. "
            f"Valid methods: {', '.join(GENE_SET_METHODS)}"
        )


class InvalidRequest(SpataError):
    """Raised when a variable request names nothing that can be joined."""

    pass
