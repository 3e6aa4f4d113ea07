"""
Phylogenetic Comparative Methods (PCM)

Helpers that account for phylogenetic non-independence of trait data held in
an AlignedPair: the phylogenetic variance-covariance matrix and Blomberg's K
measure of phylogenetic signal.
"""

from dataclasses import dataclass
import logging

import numpy as np
import pandas as pd
from scipy.linalg import cho_factor, cho_solve

logger = logging.getLogger(__name__)


def vcv(tree):
    """
    Phylogenetic variance-covariance matrix under Brownian motion.

    Entry (i, j) is the length of the path shared by tips i and j from the
    root, i.e. the depth of their most recent common ancestor. The diagonal
    holds root-to-tip distances.

    Args:
        tree: A Tree with lengths on every edge.

    Returns:
        A square DataFrame indexed by tip label, in tip order.
    """
    tree.require_branch_lengths("vcv")
    tree.tip_names()
    labels = tree.tip_labels()
    position = {name: i for i, name in enumerate(labels)}
    matrix = np.zeros((len(labels), len(labels)))

    bio_tree = tree.to_biopython()
    for clade in bio_tree.find_clades():
        if clade is bio_tree.root:
            continue
        below = [position[tip.name] for tip in clade.get_terminals()]
        matrix[np.ix_(below, below)] += clade.branch_length
    return pd.DataFrame(matrix, index=labels, columns=labels)


def _trait_vector(pair, trait):
    values = pd.to_numeric(pair.trait(trait), errors='raise')
    if values.isna().any():
        missing = sorted(values.index[values.isna()])
        raise ValueError(
            f"Trait '{trait}' has missing values for {missing}; "
            f"filter with subset(pair, complete_cases('{trait}')) first"
        )
    return values.to_numpy(dtype=float)


class _KStatistic:
    """Blomberg's K for one covariance matrix, reusable across permutations."""

    def __init__(self, cov):
        n = cov.shape[0]
        if n < 3:
            raise ValueError(f"Blomberg's K needs at least 3 taxa, got {n}")
        self.n = n
        self.factor = cho_factor(cov)
        ones = np.ones(n)
        self.inv_ones = cho_solve(self.factor, ones)
        self.sum_inv = ones @ self.inv_ones
        self.expected = (np.trace(cov) - n / self.sum_inv) / (n - 1)

    def __call__(self, x):
        root_state = (self.inv_ones @ x) / self.sum_inv
        residuals = x - root_state
        mse0 = residuals @ residuals
        mse = residuals @ cho_solve(self.factor, residuals)
        return (mse0 / mse) / self.expected


def blombergs_k(pair, trait):
    """
    Blomberg's K (Blomberg, Garland & Ives 2003) for a continuous trait.

    K = 1 is the signal expected under Brownian motion on the tree; K < 1 means
    close relatives resemble each other less than that, K > 1 more.

    Args:
        pair: An AlignedPair whose tree has branch lengths.
        trait: Name of a numeric column of pair.table.

    Raises:
        ValueError: If the trait has missing values or fewer than 3 taxa.
    """
    x = _trait_vector(pair, trait)
    return float(_KStatistic(vcv(pair.tree).to_numpy())(x))


@dataclass(frozen=True)
class SignalResult:
    k: float
    p_value: float
    n_permutations: int


def phylogenetic_signal(pair, trait, n_permutations=999, seed=None):
    """
    Blomberg's K with a permutation test.

    Trait values are shuffled across tips n_permutations times; the p-value is
    the share of permutations (counting the observed arrangement) whose K is
    at least the observed K.

    Args:
        pair: An AlignedPair whose tree has branch lengths.
        trait: Name of a numeric column of pair.table.
        n_permutations: Number of random shuffles.
        seed: Seed (or numpy Generator) for the shuffles.

    Returns:
        SignalResult
    """
    if n_permutations < 1:
        raise ValueError("n_permutations must be at least 1")
    x = _trait_vector(pair, trait)
    statistic = _KStatistic(vcv(pair.tree).to_numpy())
    observed = float(statistic(x))

    rng = np.random.default_rng(seed)
    null = np.array([statistic(rng.permutation(x)) for _ in range(n_permutations)])
    p_value = (np.count_nonzero(null >= observed) + 1) / (n_permutations + 1)
    logger.info("Blomberg's K for '%s': %.4f (p = %.4f, %d permutations)", trait, observed, p_value, n_permutations)
    return SignalResult(k=observed, p_value=float(p_value), n_permutations=n_permutations)
