import logging
import os

from ..analysis import comparative_methods
from .alignment import align
from .config import DefaultConfig
from .data_loader import DataLoader
from .exceptions import AlignmentError, ReconciliationHalted

logger = logging.getLogger(__name__)


class Pipeline:
    """
    Runs the reconciliation workflow: read tree, read traits, match, report, align.

    The aligned pair it returns is what downstream comparative analyses take
    as input. Whenever the tree and the data cannot be paired safely the
    pipeline stops with ReconciliationHalted, whose message lists every
    mismatched name so the source files can be corrected before re-running.
    """
    def __init__(self, config=None):
        """
        Initializes the Pipeline with a configuration object.

        Args:
            config: A configuration object or a dict as returned by load_config.
                    If None, DefaultConfig is used.
        """
        if isinstance(config, dict):
            config = DefaultConfig.from_dict(config)
        self.config = config if config is not None else DefaultConfig()
        self.data_loader = DataLoader(self.config)
        self.report = None
        self.analysis_results = None

    def run_analysis(self, tree_file, data_file, tree_format=None, resolve_polytomies=False, **read_kwargs):
        """
        Runs the full reconciliation.

        Args:
            tree_file: Path to the tree file.
            data_file: Path to the delimited trait file.
            tree_format: 'newick' or 'nexus'. Defaults to config.tree_format.
            resolve_polytomies: Randomly resolve polytomies in the aligned tree,
                seeded with config.random_seed.
            **read_kwargs: Passed to DataLoader.load_trait_data.

        Returns:
            AlignedPair: The pruned tree and its rows in tip order.

        Raises:
            ReconciliationHalted: If names disagree and config.halt_on_mismatch
                is set, or if the pair cannot be aligned.
        """
        tree = self.data_loader.load_tree(tree_file, tree_format=tree_format)
        traits = self.data_loader.load_trait_data(data_file, **read_kwargs)

        self.report = self.data_loader.validate_data(tree, traits)
        for line in self.report.summary().splitlines():
            logger.info(line)

        if self.config.halt_on_mismatch and not self.report.is_clean:
            raise ReconciliationHalted(self.report)

        try:
            self.analysis_results = align(tree, traits)
        except AlignmentError as e:
            raise ReconciliationHalted(e.report or self.report, cause=e.message) from e

        if not self.analysis_results.tree.is_binary():
            if resolve_polytomies:
                resolved = self.analysis_results.tree.resolve_polytomies(seed=self.config.random_seed)
                # Resolution can reorder tips, so the rows are realigned.
                self.analysis_results = align(resolved, self.analysis_results.table)
                logger.info("Resolved polytomies (seed %s)", self.config.random_seed)
            else:
                logger.warning("Aligned tree contains polytomies; some analyses need resolve_polytomies() first")

        tree_check = self.analysis_results.tree
        if tree_check.has_branch_lengths() and not tree_check.is_ultrametric(self.config.ultrametric_tolerance):
            logger.warning("Aligned tree is not ultrametric within tolerance %g", self.config.ultrametric_tolerance)
        return self.analysis_results

    def _require_results(self, action):
        if self.analysis_results is None:
            raise ValueError(f"run_analysis() must complete before {action}")
        return self.analysis_results

    def phylogenetic_signal(self, trait):
        """
        Blomberg's K permutation test on a trait of the aligned pair, using
        config.n_permutations and config.random_seed.
        """
        pair = self._require_results("testing phylogenetic signal")
        return comparative_methods.phylogenetic_signal(
            pair, trait,
            n_permutations=self.config.n_permutations,
            seed=self.config.random_seed,
        )

    def save_results(self, output_directory=None):
        """
        Writes the aligned tree and trait table.

        Args:
            output_directory: Target directory, created if needed. Defaults to
                config.output_directory.

        Returns:
            Tuple of (tree_path, table_path).
        """
        pair = self._require_results("saving results")
        output_directory = output_directory or self.config.output_directory
        os.makedirs(output_directory, exist_ok=True)

        tree_path = os.path.join(output_directory, "aligned_tree.nwk")
        table_path = os.path.join(output_directory, "aligned_traits.csv")
        self.data_loader.write_tree(pair.tree, tree_path)
        self.data_loader.write_trait_data(pair.table, table_path)
        logger.info("Aligned tree and traits written to %s", output_directory)
        return tree_path, table_path
