import numpy as np
import pandas as pd
import pytest

from phylo_align.core.data_table import DataTable, NameKey, as_data_table
from phylo_align.core.exceptions import ColumnNotFoundError


class TestDataTable:
    """
    Tests for the trait table and its name key.
    """
    def setup_method(self, method):
        self.frame = pd.DataFrame({
            'species': ['A', 'B', 'A', np.nan],
            'mass': [1.0, 2.0, 3.0, 4.0],
        })

    def test_column_key(self):
        table = DataTable(self.frame, 'species')
        assert table.name_key == NameKey('species')
        assert table.names() == ['A', 'B', 'A', None]
        assert table.distinct_names() == {'A', 'B'}
        assert table.duplicated_names() == {'A': 2}

    def test_index_key_by_default(self):
        table = DataTable(self.frame.dropna().set_index('species'))
        assert table.name_key.is_index
        assert table.names() == ['A', 'B', 'A']
        assert table.row(1) == {'index': 'B', 'mass': 2.0}

    def test_unknown_column(self):
        with pytest.raises(ColumnNotFoundError):
            DataTable(self.frame, 'taxon')

    def test_frame_is_a_copy(self):
        table = DataTable(self.frame, 'species')
        table.frame.loc[0, 'mass'] = 99.0
        self.frame.loc[1, 'mass'] = 99.0
        assert table.frame['mass'].tolist() == [1.0, 2.0, 3.0, 4.0]

    def test_take_reorders(self):
        table = DataTable(self.frame, 'species').take([1, 0])
        assert table.names() == ['B', 'A']
        assert table.row(0)['mass'] == 2.0

    def test_rekey(self):
        frame = self.frame.assign(code=['a1', 'b1', 'a2', 'x'])
        table = as_data_table(DataTable(frame, 'species'), 'code')
        assert table.names() == ['a1', 'b1', 'a2', 'x']

    def test_with_name_column_on_column_key(self):
        table = DataTable(self.frame, 'species')
        assert table.with_name_column('species') is table
        with pytest.raises(ValueError):
            table.with_name_column('mass')

    def test_equality(self):
        assert DataTable(self.frame, 'species') == DataTable(self.frame.copy(), 'species')
        assert DataTable(self.frame, 'species') != DataTable(self.frame)

    def test_row_keeps_column_types(self):
        frame = pd.DataFrame({'species': ['A', 'B'], 'count': [3, 4], 'mass': [1.5, 2.5]})
        row = DataTable(frame, 'species').row(0)
        assert row == {'species': 'A', 'count': 3, 'mass': 1.5}
        assert not isinstance(row['count'], float)

    def test_row_gives_names_as_strings(self):
        frame = pd.DataFrame({'id': [10, 20], 'mass': [1.0, 2.0]})
        table = DataTable(frame, 'id')
        assert table.row(1)['id'] == '20' == table.name(1)

    def test_index_key_clashing_with_index_column(self):
        frame = pd.DataFrame({'index': [1.0, 2.0]}, index=['A', 'B'])
        table = DataTable(frame)
        assert table.names() == ['A', 'B']
        with pytest.raises(ValueError):
            table.row(0)
        assert table.with_name_column('taxon').row(0)['taxon'] == 'A'
