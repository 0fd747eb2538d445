# src/spata/__init__.py

"""
spata - Spatial gene-expression data exploration

Joins spot coordinates with features, gene expression and gene set scores.
"""

# Core data structures
from .data.core import spata
from .data.config import (
    SpataConfig,
    JoinOptions,
    SpataError,
    InvalidObject,
    InvalidCoordsTable,
    UnknownVariable,
    InvalidMethod,
    InvalidRequest,
)
from .data.expression import ExpressionMatrix
from .data.gene_sets import GeneSetCatalog
from .data.checks import VariableRequest

# joinWith-family
from .processing.joining import (
    join,
    join_with_features,
    join_with_genes,
    join_with_gene_sets,
    join_with_variables,
)

# Import submodules
from . import data
from . import processing
from . import spatial

__version__ = '0.1.0'

__all__ = [
    # Core classes
    'spata',
    'SpataConfig',
    'JoinOptions',
    'ExpressionMatrix',
    'GeneSetCatalog',
    'VariableRequest',

    # Joining
    'join',
    'join_with_features',
    'join_with_genes',
    'join_with_gene_sets',
    'join_with_variables',

    # Exceptions
    'SpataError',
    'InvalidObject',
    'InvalidCoordsTable',
    'UnknownVariable',
    'InvalidMethod',
    'InvalidRequest',

    # Submodules
    'data',
    'processing',
    'spatial',
]
