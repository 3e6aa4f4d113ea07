import logging
import os

import pandas as pd
from Bio import Phylo
from Bio.Nexus.Nexus import NexusError

from .config import DefaultConfig
from .data_table import DataTable
from .exceptions import ColumnNotFoundError, TreeParseError
from .matching import match
from .tree import Tree

logger = logging.getLogger(__name__)

_UNSET = object()


class DataLoader:
    """
    Handles loading and writing of phylogenetic trees and trait tables, and the
    consistency check between them.
    """
    def __init__(self, config=None):
        """
        Initializes the DataLoader with a configuration object.

        Args:
            config: A configuration object. If None, DefaultConfig is used.
        """
        self.config = config if config is not None else DefaultConfig()
        self.tree = None
        self.traits = None

    def load_tree(self, file_path: str, tree_format: str = None) -> Tree:
        """
        Loads a phylogenetic tree from a specified file.

        Args:
            file_path (str): The path to the tree file.
            tree_format (str): 'newick' or 'nexus'. Defaults to config.tree_format.

        Returns:
            Tree: The validated tree, also kept as self.tree.

        Raises:
            FileNotFoundError: If the tree file does not exist.
            TreeParseError: If the file is not a readable tree.
            MalformedTreeError: If the tree has duplicate or unnamed tips.
            ValueError: If the tree format is unsupported.
        """
        tree_format = (tree_format or self.config.tree_format).lower()
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"Tree file not found: {file_path}")

        if tree_format == 'newick':
            with open(file_path, 'r') as f:
                tree = Tree.from_newick(f.read(), source=str(file_path))
        elif tree_format == 'nexus':
            try:
                bio_tree = Phylo.read(file_path, 'nexus')
            except (NexusError, ValueError) as e:
                raise TreeParseError(str(e), str(file_path)) from e
            # Bio.Nexus reports [&U] and "no marker" alike, so only [&R] is kept.
            tree = Tree(bio_tree, rooted=True if bio_tree.rooted else None)
        else:
            raise ValueError(f"Unsupported tree format '{tree_format}'. Use 'newick' or 'nexus'.")

        tree.validate()
        logger.info("Tree loaded from %s: %d tips", file_path, tree.n_tips)
        self.tree = tree
        return tree

    def load_trait_data(self, file_path: str, name_key=_UNSET, **kwargs) -> DataTable:
        """
        Loads trait data from a delimited text file.

        Args:
            file_path (str): The path to the trait data file.
            name_key: Column holding taxon names; None uses the row index (pass
                index_col as well). Defaults to config.name_key_column.
            **kwargs: Additional keyword arguments passed to pandas.read_csv.

        Returns:
            DataTable: The table, also kept as self.traits.

        Raises:
            FileNotFoundError: If the data file does not exist.
            ColumnNotFoundError: If the name-key column is not in the file.
        """
        if name_key is _UNSET:
            name_key = self.config.name_key_column
        kwargs.setdefault('sep', self.config.table_separator)
        if isinstance(name_key, str) and 'dtype' not in kwargs:
            header = pd.read_csv(file_path, sep=kwargs['sep'], nrows=0).columns
            if name_key not in header:
                raise ColumnNotFoundError(name_key, list(header))
            # Names such as '001' must not be read as numbers.
            kwargs['dtype'] = {name_key: str}

        frame = pd.read_csv(file_path, **kwargs)
        table = DataTable(frame, name_key)
        logger.info("Trait data loaded from %s: %d rows, %d columns", file_path, len(table), len(table.columns))
        self.traits = table
        return table

    def write_tree(self, tree: Tree, file_path: str):
        """Writes a tree as Newick, keeping full branch-length precision."""
        with open(file_path, 'w') as f:
            f.write(tree.to_newick() + "\n")
        logger.debug("Tree written to %s", file_path)

    def write_trait_data(self, table: DataTable, file_path: str, **kwargs):
        """Writes a table as delimited text; an index-held name key is written as the first column."""
        kwargs.setdefault('sep', self.config.table_separator)
        kwargs.setdefault('index', table.name_key.is_index)
        table.frame.to_csv(file_path, **kwargs)
        logger.debug("Trait data written to %s", file_path)

    def validate_data(self, tree=None, traits=None):
        """
        Checks that the taxa of the tree and the trait table agree.

        Args:
            tree: The tree to validate. If None, uses self.tree.
            traits: The trait table to validate. If None, uses self.traits.

        Returns:
            MatchReport: Both difference sets; mismatches are logged as warnings.

        Raises:
            ValueError: If no tree or table has been given or loaded.
        """
        current_tree = tree if tree is not None else self.tree
        current_traits = traits if traits is not None else self.traits
        if current_tree is None or current_traits is None:
            raise ValueError("Tree and/or trait data have not been loaded yet.")

        report = match(current_tree, current_traits)
        if report.tree_not_data:
            logger.warning("Taxa in tree but not in trait data: %s", sorted(report.tree_not_data))
        if report.data_not_tree:
            logger.warning("Taxa in trait data but not in tree: %s", sorted(report.data_not_tree))
        if report.is_clean:
            logger.info("Tree and trait data contain the same %d taxa", len(report.shared))
        return report
