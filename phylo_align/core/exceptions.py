"""
Exceptions raised while reading, reconciling and aligning trees and trait data.

Every error carries an optional suggestion telling the user how to fix the
input before re-running the analysis.
"""

from __future__ import annotations


class PhyloAlignError(Exception):
    """Base exception for phylo_align errors."""

    def __init__(self, message: str, suggestion: str | None = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(self.full_message)

    @property
    def full_message(self) -> str:
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


def _preview(names, limit: int = 10) -> str:
    ordered = sorted(names)
    shown = ", ".join(ordered[:limit])
    if len(ordered) > limit:
        shown += f", ... ({len(ordered) - limit} more)"
    return shown


class ConfigurationError(PhyloAlignError):
    """Raised when a configuration file cannot be used."""


class TreeParseError(PhyloAlignError):
    """Raised when tree text cannot be parsed at all."""

    def __init__(self, detail: str, source: str | None = None):
        where = f" in '{source}'" if source else ""
        super().__init__(
            message=f"Could not parse tree{where}: {detail}",
            suggestion=(
                "Check that the file is a single Newick (or Nexus) tree, that "
                "parentheses are balanced and that the description ends with ';'."
            ),
        )
        self.source = source


class MalformedTreeError(PhyloAlignError):
    """Raised when a parsed tree violates a structural invariant."""

    def __init__(self, message: str, names: set[str] | None = None):
        self.names = set(names or ())
        if self.names:
            message = f"{message}: {_preview(self.names)}"
        super().__init__(
            message=message,
            suggestion="Every tip needs a unique, non-empty name. Rename or remove the offending tips.",
        )


class MissingBranchLengthError(PhyloAlignError):
    """Raised when an operation needs branch lengths the tree does not have."""

    def __init__(self, operation: str, n_missing: int):
        super().__init__(
            message=f"{operation} needs branch lengths but {n_missing} edge(s) have none",
            suggestion="Use a tree with lengths on every edge (e.g. a dated or ML tree).",
        )
        self.n_missing = n_missing


class ColumnNotFoundError(PhyloAlignError, KeyError):
    """Raised when the name-key column is absent from the table."""

    def __init__(self, column: str, available: list[str]):
        super().__init__(
            message=f"Name-key column '{column}' not found in data table",
            suggestion=f"Available columns: {', '.join(map(str, available)) or '(none)'}",
        )
        self.column = column
        self.available = list(available)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return self.full_message


class DuplicateNameWarning(UserWarning):
    """A taxon name appears on more than one row of the data table."""

    def __init__(self, name: str, count: int):
        self.name = name
        self.count = count
        super().__init__(
            f"Taxon '{name}' appears in {count} rows of the data table; "
            "name-based matching will treat them as one taxon"
        )

    def __eq__(self, other):
        if not isinstance(other, DuplicateNameWarning):
            return NotImplemented
        return (self.name, self.count) == (other.name, other.count)

    def __hash__(self):
        return hash((self.name, self.count))


class AlignmentError(PhyloAlignError):
    """Base class for errors that stop a tree/table alignment."""

    def __init__(self, message: str, suggestion: str | None = None, report=None):
        super().__init__(message, suggestion)
        self.report = report


class NoOverlapError(AlignmentError):
    """Raised when the tree and the table share no taxa."""

    def __init__(self, report=None):
        super().__init__(
            message="Tree tips and data-table names have no taxon in common",
            suggestion=(
                "Check that the right name-key column was chosen and that names use "
                "the same spelling (e.g. 'Genus_species' in both files)."
            ),
            report=report,
        )


class AmbiguousMatchError(AlignmentError):
    """Raised when a shared taxon has more than one candidate row."""

    def __init__(self, names: set[str], report=None):
        super().__init__(
            message=f"Taxa with more than one row in the data table: {_preview(names)}",
            suggestion="Remove or merge duplicate rows so that each taxon has exactly one row.",
            report=report,
        )
        self.names = set(names)


class ReconciliationHalted(PhyloAlignError):
    """Raised by the pipeline when the tree and data need manual correction."""

    def __init__(self, report, cause: str | None = None):
        message = "Tree and data table do not match"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(
            message=f"{message}\n{report.summary()}",
            suggestion="Correct the names listed above in the source files and re-run.",
        )
        self.report = report
