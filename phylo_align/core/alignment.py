"""
Pruning and row alignment that turn a tree and a trait table into a matched pair.

The pair returned by align() has one row per tip, and row i of the table
always belongs to tip i of the tree. Numerical routines that index trait
vectors by tip position rely on that ordering.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pandas as pd

from .data_table import as_data_table
from .exceptions import AmbiguousMatchError, NoOverlapError
from .matching import MatchReport, match
from .tree import Tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlignedPair:
    """A pruned tree and the table rows for its tips, in tip order.

    ``report`` records what was dropped to get here and does not take part in
    equality.
    """

    tree: Tree
    table: object
    report: MatchReport = field(default=None, compare=False)

    def __iter__(self):
        yield self.tree
        yield self.table

    def trait(self, column) -> pd.Series:
        """Values of one column as a Series indexed by tip label."""
        values = [row[column] for row in self.table.rows()]
        return pd.Series(values, index=self.tree.tip_labels(), name=column)


def align(tree, data_table, name_key_column=None) -> AlignedPair:
    """
    Restricts a tree and a data table to their shared taxa.

    Tips without data are pruned from the tree, rows without a tip are dropped
    from the table, and the remaining rows are reordered to follow the pruned
    tree's tip order. Neither input is modified.

    Raises:
        ColumnNotFoundError: If name_key_column is not a column of the table.
        NoOverlapError: If the tree and the table share no taxon.
        AmbiguousMatchError: If a shared taxon has more than one row.
    """
    table = as_data_table(data_table, name_key_column)
    report = match(tree, table)
    if not report.shared:
        raise NoOverlapError(report)

    ambiguous = {name for name in table.duplicated_names() if name in report.shared}
    if ambiguous:
        raise AmbiguousMatchError(ambiguous, report)

    pruned = tree.prune(report.tree_not_data)
    position = {
        name: i for i, name in enumerate(table.names()) if name in report.shared
    }
    aligned = table.take(position[label] for label in pruned.tip_labels())

    logger.info(
        "Aligned %d taxa (dropped %d tips without data, %d rows without a tip)",
        len(report.shared), len(report.tree_not_data), len(report.data_not_tree),
    )
    return AlignedPair(pruned, aligned, report)


def with_name_column(pair: AlignedPair, column="taxon") -> AlignedPair:
    """Returns the pair with its taxon names copied into an ordinary column."""
    return AlignedPair(pair.tree, pair.table.with_name_column(column), pair.report)


def subset(pair: AlignedPair, predicate) -> AlignedPair:
    """
    Keeps the rows for which predicate(row) is true and re-prunes the tree to
    match, so the tip/row pairing still holds.

    Raises:
        NoOverlapError: If no row passes the predicate.
    """
    keep = [i for i, row in enumerate(pair.table.rows()) if predicate(row)]
    logger.debug("Subset keeps %d of %d rows", len(keep), len(pair.table))
    return align(pair.tree, pair.table.take(keep))


def complete_cases(*columns):
    """Predicate that is true for rows with no missing value in columns (all columns if none given)."""
    def predicate(row):
        fields = columns or tuple(row)
        return not any(pd.isna(row[name]) for name in fields)
    return predicate


def column_equals(column, value):
    """Predicate that is true for rows whose column equals value."""
    def predicate(row):
        return row[column] == value
    return predicate
