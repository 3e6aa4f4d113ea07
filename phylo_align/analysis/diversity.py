"""
Community diversity indices and species-accumulation curves.

A community table has one row per site (or sample) and one numeric column per
species holding abundances. A DataTable can be passed directly; its taxon
names then label the sites.
"""

import logging

import numpy as np
import pandas as pd
from scipy.stats import entropy

from ..core.data_table import DataTable

logger = logging.getLogger(__name__)


def _abundances(counts):
    values = np.asarray(counts, dtype=float)
    if np.any(values < 0):
        raise ValueError("Abundances must be non-negative")
    return values


def _proportions(counts):
    values = _abundances(counts)
    total = values.sum()
    if total == 0:
        return values
    return values / total


def richness(counts):
    """Number of species with a positive abundance."""
    return int(np.count_nonzero(_abundances(counts) > 0))


def shannon(counts, base=None):
    """Shannon index H' = -sum(p * log p); natural log unless base is given."""
    p = _proportions(counts)
    if not p.any():
        return 0.0
    return float(entropy(p, base=base))


def simpson(counts):
    """Gini-Simpson index 1 - sum(p^2)."""
    p = _proportions(counts)
    if not p.any():
        return 0.0
    return float(1.0 - np.sum(p ** 2))


def inverse_simpson(counts):
    """Inverse Simpson index 1 / sum(p^2)."""
    p = _proportions(counts)
    if not p.any():
        return 0.0
    return float(1.0 / np.sum(p ** 2))


def _community_frame(community):
    if isinstance(community, DataTable):
        frame = community.frame
        if not community.name_key.is_index:
            frame = frame.drop(columns=[community.name_key.column])
        frame.index = community.names()
    else:
        frame = pd.DataFrame(community)
    return frame.select_dtypes(include='number')


def diversity_table(community):
    """
    Richness, Shannon, Simpson and inverse Simpson for every site.

    Args:
        community: Sites x species abundance DataFrame or DataTable.

    Returns:
        DataFrame indexed like the sites.
    """
    frame = _community_frame(community)
    records = {
        site: {
            'richness': richness(row),
            'shannon': shannon(row),
            'simpson': simpson(row),
            'inverse_simpson': inverse_simpson(row),
        }
        for site, row in frame.iterrows()
    }
    return pd.DataFrame.from_dict(records, orient='index')


def species_accumulation(community, n_permutations=100, seed=None):
    """
    Species-accumulation curve by random site ordering.

    For each permutation the sites are visited in a random order and the
    cumulative number of species seen is recorded after each site.

    Args:
        community: Sites x species abundance DataFrame or DataTable.
        n_permutations: Number of random site orders.
        seed: Seed (or numpy Generator) for the site orders.

    Returns:
        DataFrame with columns 'sites' (1..n), 'richness' (mean cumulative
        richness) and 'sd' (its standard deviation across permutations).
    """
    if n_permutations < 1:
        raise ValueError("n_permutations must be at least 1")
    presence = _community_frame(community).to_numpy() > 0
    n_sites = presence.shape[0]
    if n_sites == 0:
        raise ValueError("Community table has no sites")

    rng = np.random.default_rng(seed)
    curves = np.empty((n_permutations, n_sites))
    for i in range(n_permutations):
        order = rng.permutation(n_sites)
        seen = np.logical_or.accumulate(presence[order], axis=0)
        curves[i] = seen.sum(axis=1)

    sd = curves.std(axis=0, ddof=1) if n_permutations > 1 else np.zeros(n_sites)
    logger.debug("Species accumulation over %d sites, %d permutations", n_sites, n_permutations)
    return pd.DataFrame({
        'sites': np.arange(1, n_sites + 1),
        'richness': curves.mean(axis=0),
        'sd': sd,
    })
