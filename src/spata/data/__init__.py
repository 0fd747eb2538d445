"""
data - Core data structures and input validation

This module contains the main spata data structure, configuration
classes, the gene set catalog and the checks run before joining.
"""

from .config import (
    SpataConfig,
    JoinOptions,
    SpataError,
    InvalidObject,
    InvalidCoordsTable,
    UnknownVariable,
    InvalidMethod,
    InvalidRequest,
)

from .expression import ExpressionMatrix
from .gene_sets import GeneSetCatalog
from .core import spata
from .checks import (
    VariableRequest,
    ResolvedRequest,
    check_object,
    check_coords_df,
    check_smooth,
    check_method,
    check_features,
    check_genes,
    check_gene_sets,
    resolve_request,
)

__all__ = [
    # Core class
    'spata',

    # Configuration
    'SpataConfig',
    'JoinOptions',

    # Components
    'ExpressionMatrix',
    'GeneSetCatalog',

    # Checks
    'VariableRequest',
    'ResolvedRequest',
    'check_object',
    'check_coords_df',
    'check_smooth',
    'check_method',
    'check_features',
    'check_genes',
    'check_gene_sets',
    'resolve_request',

    # Exceptions
    'SpataError',
    'InvalidObject',
    'InvalidCoordsTable',
    'UnknownVariable',
    'InvalidMethod',
    'InvalidRequest',
]
