"""Reconcile phylogenetic trees with trait-data tables for comparative analyses."""

from .core.alignment import AlignedPair, align, column_equals, complete_cases, subset, with_name_column
from .core.config import DefaultConfig, load_config, setup_logging
from .core.data_loader import DataLoader
from .core.data_table import DataTable, NameKey
from .core.exceptions import (
    AlignmentError,
    AmbiguousMatchError,
    ColumnNotFoundError,
    ConfigurationError,
    DuplicateNameWarning,
    MalformedTreeError,
    MissingBranchLengthError,
    NoOverlapError,
    PhyloAlignError,
    ReconciliationHalted,
    TreeParseError,
)
from .core.matching import MatchReport, match
from .core.pipeline import Pipeline
from .core.tree import Tree

__version__ = "0.1.0"
