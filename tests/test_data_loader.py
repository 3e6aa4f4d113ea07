import os

import pandas as pd
import pytest

from phylo_align.core.config import DefaultConfig
from phylo_align.core.data_loader import DataLoader
from phylo_align.core.exceptions import ColumnNotFoundError, MalformedTreeError, TreeParseError

# Define base path for examples, assuming tests are run from project root or tests/
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
EXAMPLES_DIR = os.path.join(BASE_DIR, "examples")


class TestDataLoader:
    """
    Tests for reading and writing trees and trait tables.
    """
    def setup_method(self, method):
        self.tree_path = os.path.join(EXAMPLES_DIR, "primates_tree.nwk")
        self.traits_path = os.path.join(EXAMPLES_DIR, "primates_traits.csv")
        self.loader = DataLoader()

    def test_load_tree(self):
        tree = self.loader.load_tree(self.tree_path)
        assert tree.n_tips == 6
        assert "Papio_anubis" in tree.tip_names()
        assert tree.is_binary()
        assert tree.is_ultrametric()
        assert self.loader.tree is tree

    def test_load_tree_missing_file(self):
        with pytest.raises(FileNotFoundError):
            self.loader.load_tree(os.path.join(EXAMPLES_DIR, "no_such_tree.nwk"))

    def test_load_tree_bad_syntax(self, tmp_path):
        path = tmp_path / "broken.nwk"
        path.write_text("((A,B),C;")
        with pytest.raises(TreeParseError):
            self.loader.load_tree(str(path))

    def test_load_tree_duplicate_tips(self, tmp_path):
        path = tmp_path / "dup.nwk"
        path.write_text("((A:1,A:1):1,B:2);")
        with pytest.raises(MalformedTreeError):
            self.loader.load_tree(str(path))

    def test_load_tree_unsupported_format(self):
        with pytest.raises(ValueError):
            self.loader.load_tree(self.tree_path, tree_format='phyloxml')

    def test_load_nexus_tree(self, tmp_path):
        path = tmp_path / "tree.nex"
        path.write_text(
            "#NEXUS\n"
            "begin trees;\n"
            "    tree t1 = ((A:1.0,B:1.0):1.0,C:2.0);\n"
            "end;\n"
        )
        tree = self.loader.load_tree(str(path), tree_format='nexus')
        assert tree.tip_names() == {"A", "B", "C"}

    def test_load_trait_data(self):
        table = self.loader.load_trait_data(self.traits_path)
        assert len(table) == 6
        assert table.name_key.column == 'species'
        assert table.columns == ['species', 'family', 'body_mass', 'brain_mass']
        assert table.names()[0] == 'Macaca_mulatta'

    def test_load_trait_data_keeps_names_as_text(self, tmp_path):
        path = tmp_path / "numeric_names.csv"
        path.write_text("species,mass\n001,1.5\n002,2.5\n")
        table = self.loader.load_trait_data(str(path))
        assert table.names() == ['001', '002']

    def test_load_trait_data_missing_key(self):
        with pytest.raises(ColumnNotFoundError):
            self.loader.load_trait_data(self.traits_path, name_key='taxon')

    def test_separator_from_config(self, tmp_path):
        config = DefaultConfig()
        config.table_separator = '\t'
        path = tmp_path / "traits.tsv"
        path.write_text("species\tmass\nA\t1.0\nB\t2.0\n")
        table = DataLoader(config).load_trait_data(str(path))
        assert table.columns == ['species', 'mass']

    def test_tree_round_trip(self, tmp_path):
        tree = self.loader.load_tree(self.tree_path)
        out = tmp_path / "out.nwk"
        self.loader.write_tree(tree, str(out))
        assert self.loader.load_tree(str(out)) == tree

    def test_table_round_trip(self, tmp_path):
        table = self.loader.load_trait_data(self.traits_path)
        out = tmp_path / "out.csv"
        self.loader.write_trait_data(table, str(out))
        again = self.loader.load_trait_data(str(out))
        pd.testing.assert_frame_equal(again.frame, table.frame)

    def test_validate_data(self):
        self.loader.load_tree(self.tree_path)
        self.loader.load_trait_data(self.traits_path)
        report = self.loader.validate_data()
        assert report.tree_not_data == {'Papio_anubis'}
        assert report.data_not_tree == {'Hylobates_lar'}

    def test_validate_data_without_inputs(self):
        with pytest.raises(ValueError):
            self.loader.validate_data()
