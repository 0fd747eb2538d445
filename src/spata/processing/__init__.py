"""
spata.processing - Scoring, normalization and joining

Turns expression into per-spot columns and joins them onto coordinate tables.
"""

from .normalization import *
from .enrichment import *
from .scoring import *
from .postprocessing import *
from .joining import *

# Define what gets imported with "from spata.processing import *"
__all__ = [
    # Normalization
    'normalize_imap', 'normalize_columns',

    # Enrichment scores
    'gsva_scores', 'ssgsea_scores', 'zscore_scores', 'plage_scores',

    # Scoring
    'feature_columns', 'gene_columns', 'gene_set_columns',
    'GeneSetScorer', 'MeanScorer', 'EnrichmentScorer', 'get_scorer',

    # Post-processing
    'post_process',

    # Joining
    'join', 'join_with_features', 'join_with_genes',
    'join_with_gene_sets', 'join_with_variables',
]
