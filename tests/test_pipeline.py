import os

import pytest

from phylo_align.core.config import DefaultConfig, load_config
from phylo_align.core.data_loader import DataLoader
from phylo_align.core.exceptions import ReconciliationHalted
from phylo_align.core.pipeline import Pipeline

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
EXAMPLES_DIR = os.path.join(BASE_DIR, "examples")
TREE_FILE = os.path.join(EXAMPLES_DIR, "primates_tree.nwk")
TRAITS_FILE = os.path.join(EXAMPLES_DIR, "primates_traits.csv")


class TestPipeline:
    """
    Tests for the read, match, report, align workflow.
    """
    def test_halts_on_mismatch_by_default(self):
        pipeline = Pipeline()
        with pytest.raises(ReconciliationHalted) as excinfo:
            pipeline.run_analysis(TREE_FILE, TRAITS_FILE)
        message = str(excinfo.value)
        assert "Papio_anubis" in message
        assert "Hylobates_lar" in message
        assert excinfo.value.report.tree_not_data == {'Papio_anubis'}
        assert pipeline.analysis_results is None

    def test_aligns_when_allowed(self):
        config = DefaultConfig()
        config.halt_on_mismatch = False
        pair = Pipeline(config).run_analysis(TREE_FILE, TRAITS_FILE)
        assert pair.tree.tip_labels() == [
            'Homo_sapiens', 'Pan_troglodytes', 'Gorilla_gorilla', 'Pongo_abelii', 'Macaca_mulatta',
        ]
        assert pair.table.names() == pair.tree.tip_labels()
        assert pair.tree.is_ultrametric()

    def test_accepts_loaded_config_dict(self):
        config = load_config(os.path.join(EXAMPLES_DIR, "config.yaml"))
        pipeline = Pipeline(config)
        assert pipeline.config.halt_on_mismatch is False
        pair = pipeline.run_analysis(TREE_FILE, TRAITS_FILE)
        assert len(pair.table) == 5
        assert pipeline.report.data_not_tree == {'Hylobates_lar'}

    def test_alignment_failure_is_reported(self, tmp_path):
        traits = tmp_path / "no_overlap.csv"
        traits.write_text("species,mass\nCanis_lupus,30.0\nFelis_catus,4.0\n")
        config = DefaultConfig()
        config.halt_on_mismatch = False
        with pytest.raises(ReconciliationHalted) as excinfo:
            Pipeline(config).run_analysis(TREE_FILE, str(traits))
        assert "Canis_lupus" in str(excinfo.value)
        assert "no taxon in common" in str(excinfo.value)


class TestPipelineSettings:
    """
    Tests for the analysis and output settings read from the configuration.
    """
    def setup_method(self, method):
        self.config = load_config(os.path.join(EXAMPLES_DIR, "config.yaml"))

    def test_signal_test_uses_configured_seed_and_permutations(self):
        first = Pipeline(self.config)
        first.run_analysis(TREE_FILE, TRAITS_FILE)
        result = first.phylogenetic_signal('body_mass')
        assert result.n_permutations == 199

        second = Pipeline(self.config)
        second.run_analysis(TREE_FILE, TRAITS_FILE)
        assert second.phylogenetic_signal('body_mass') == result

    def test_save_results_writes_to_output_directory(self, tmp_path):
        self.config['output_directory'] = str(tmp_path / "results")
        pipeline = Pipeline(self.config)
        pair = pipeline.run_analysis(TREE_FILE, TRAITS_FILE)
        tree_path, table_path = pipeline.save_results()

        assert os.path.dirname(tree_path) == str(tmp_path / "results")
        assert DataLoader(pipeline.config).load_tree(tree_path) == pair.tree
        assert DataLoader(pipeline.config).load_trait_data(table_path).names() == pair.tree.tip_labels()

    def test_resolve_polytomies_uses_configured_seed(self, tmp_path):
        tree_file = tmp_path / "star.nwk"
        tree_file.write_text("(A:1,B:1,C:1,D:1,E:1);\n")
        traits = tmp_path / "traits.csv"
        traits.write_text("species,x\nA,1\nB,2\nC,3\nD,4\nE,5\n")

        trees = []
        for _ in range(2):
            pair = Pipeline(self.config).run_analysis(str(tree_file), str(traits), resolve_polytomies=True)
            assert pair.tree.is_binary()
            assert pair.table.names() == pair.tree.tip_labels()
            trees.append(pair.tree)
        assert trees[0] == trees[1]

    def test_results_needed_before_analysis(self):
        pipeline = Pipeline(self.config)
        with pytest.raises(ValueError):
            pipeline.phylogenetic_signal('body_mass')
        with pytest.raises(ValueError):
            pipeline.save_results()
