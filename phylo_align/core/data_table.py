"""
Trait-data table with a declared taxon-name key.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

import pandas as pd

from .exceptions import ColumnNotFoundError


@dataclass(frozen=True)
class NameKey:
    """Resolved handle to where a table keeps its taxon names.

    ``column`` is the column name, or None when the names live in the row index.
    """

    column: object = None

    @property
    def is_index(self) -> bool:
        return self.column is None

    @property
    def label(self):
        """Key under which row() exposes the taxon name."""
        return "index" if self.is_index else self.column


NameKey.INDEX = NameKey(None)


def resolve_name_key(frame: pd.DataFrame, name_key) -> NameKey:
    """
    Checks a requested name key against a frame.

    Args:
        frame: The table data.
        name_key: A column name, a NameKey, or None for the row index.

    Raises:
        ColumnNotFoundError: If the column is not in the frame.
    """
    if name_key is None:
        return NameKey.INDEX
    key = name_key if isinstance(name_key, NameKey) else NameKey(name_key)
    if not key.is_index and key.column not in frame.columns:
        raise ColumnNotFoundError(key.column, list(frame.columns))
    return key


def _as_name(value):
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return str(value)


class DataTable:
    """
    Ordered rows of trait data together with the column that names each taxon.

    The wrapped DataFrame is copied on the way in and on the way out, so a
    DataTable never changes after construction.
    """

    def __init__(self, frame, name_key=None):
        if not isinstance(frame, pd.DataFrame):
            frame = pd.DataFrame(frame)
        self._key = resolve_name_key(frame, name_key)
        self._frame = frame.copy()

    @property
    def name_key(self) -> NameKey:
        return self._key

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame.copy()

    @property
    def columns(self) -> list:
        return list(self._frame.columns)

    def __len__(self):
        return len(self._frame)

    def _raw_names(self):
        if self._key.is_index:
            return self._frame.index
        return self._frame[self._key.column]

    def names(self) -> list:
        """Taxon name of every row, in row order. Missing names are None."""
        return [_as_name(value) for value in self._raw_names()]

    def name(self, i: int):
        return self.names()[i]

    def distinct_names(self) -> set[str]:
        return {name for name in self.names() if name is not None}

    def duplicated_names(self) -> dict[str, int]:
        """Names carried by more than one row, with their row counts."""
        counts = Counter(name for name in self.names() if name is not None)
        return {name: count for name, count in counts.items() if count > 1}

    def row(self, i: int) -> dict:
        """
        Values of row i keyed by column, with the taxon name under
        ``name_key.label`` in the same string form names() uses.

        Raises:
            ValueError: If the names live in the index and a column already
                uses the label 'index'.
        """
        values = self._frame.iloc[[i]].to_dict("records")[0]
        label = self._key.label
        if self._key.is_index:
            if label in values:
                raise ValueError(
                    f"Column '{label}' clashes with the index-held taxon names; "
                    f"use rekey() or with_name_column() with another column name"
                )
            return {label: _as_name(self._frame.index[i]), **values}
        values[label] = _as_name(self._frame[label].iloc[i])
        return values

    def rows(self):
        for i in range(len(self)):
            yield self.row(i)

    def take(self, positions) -> "DataTable":
        """New table holding the rows at the given positions, in that order."""
        return DataTable(self._frame.iloc[list(positions)], self._key)

    def rekey(self, name_key) -> "DataTable":
        return DataTable(self._frame, name_key)

    def with_name_column(self, column="taxon") -> "DataTable":
        """
        Copies the taxon names into an ordinary first column and keys the new
        table on it. Useful when the names are held in the row index.
        """
        if not self._key.is_index and self._key.column == column:
            return self
        if column in self._frame.columns:
            raise ValueError(f"Column '{column}' already exists in the data table")
        frame = self._frame.copy()
        frame.insert(0, column, self.names())
        return DataTable(frame, column)

    def __eq__(self, other):
        if not isinstance(other, DataTable):
            return NotImplemented
        return self._key == other._key and self._frame.equals(other._frame)

    __hash__ = None

    def __repr__(self):
        return f"DataTable(rows={len(self)}, name_key={self._key.label!r}, columns={self.columns!r})"


def as_data_table(data, name_key_column=None) -> DataTable:
    """
    Accepts a DataTable or a pandas DataFrame and returns a DataTable keyed on
    name_key_column. A DataTable keeps its own key when no column is given.
    """
    if isinstance(data, DataTable):
        return data if name_key_column is None else data.rekey(name_key_column)
    return DataTable(data, name_key_column)
