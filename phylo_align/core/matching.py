"""
Reconciliation of tree tip names against the taxon names of a trait table.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field

from .data_table import as_data_table
from .exceptions import DuplicateNameWarning

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchReport:
    """Outcome of matching a tree against a data table.

    Attributes:
        tree_not_data: Tip names with no row in the table.
        data_not_tree: Table names with no tip in the tree.
        shared: Names present in both.
        warnings: One DuplicateNameWarning per name found on several rows.
    """

    tree_not_data: frozenset = field(default_factory=frozenset)
    data_not_tree: frozenset = field(default_factory=frozenset)
    shared: frozenset = field(default_factory=frozenset)
    warnings: tuple = ()

    @property
    def is_clean(self) -> bool:
        return not self.tree_not_data and not self.data_not_tree

    def summary(self) -> str:
        """Lists both difference sets in full, one name per line."""
        lines = [f"{len(self.shared)} taxa shared by tree and data"]
        for title, names in (
            ("In tree but not in data", self.tree_not_data),
            ("In data but not in tree", self.data_not_tree),
        ):
            lines.append(f"{title} ({len(names)}):")
            lines.extend(f"  {name}" for name in sorted(names))
        for warning in self.warnings:
            lines.append(f"Warning: {warning}")
        return "\n".join(lines)


def match(tree, data_table, name_key_column=None) -> MatchReport:
    """
    Computes which taxa appear only in the tree and which only in the data.

    Args:
        tree: A Tree.
        data_table: A DataTable or pandas DataFrame (possibly empty).
        name_key_column: Column holding taxon names. Required for a DataFrame
            keyed on a column; overrides the key of a DataTable when given.

    Returns:
        A MatchReport. Rows sharing a name collapse to one taxon; each such
        name is reported as a DuplicateNameWarning, both in the report and
        through the warnings module.

    Raises:
        ColumnNotFoundError: If name_key_column is not a column of the table.
        MalformedTreeError: If the tree has duplicate tip names or an unnamed tip.
    """
    table = as_data_table(data_table, name_key_column)
    tips = tree.validate().tip_names()
    names = table.distinct_names()

    found = tuple(
        DuplicateNameWarning(name, count)
        for name, count in sorted(table.duplicated_names().items())
    )
    for warning in found:
        warnings.warn(warning, stacklevel=2)

    report = MatchReport(
        tree_not_data=frozenset(tips - names),
        data_not_tree=frozenset(names - tips),
        shared=frozenset(tips & names),
        warnings=found,
    )
    logger.debug(
        "Matched %d tips against %d names: %d shared, %d tree-only, %d data-only",
        len(tips), len(names), len(report.shared),
        len(report.tree_not_data), len(report.data_not_tree),
    )
    return report
