"""
Rooted phylogenetic tree value used throughout phylo_align.

A Tree wraps a Bio.Phylo tree. Public operations never modify the wrapped
clades: every transformation works on a deep copy and returns a new Tree.
"""

from __future__ import annotations

import copy
import logging
import re
from collections import Counter
from io import StringIO

import numpy as np
from Bio import Phylo
from Bio.Phylo import BaseTree, Newick
from Bio.Phylo.NewickIO import NewickError

from .exceptions import MalformedTreeError, MissingBranchLengthError, TreeParseError

logger = logging.getLogger(__name__)

_ROOT_MARKER = re.compile(r"^\s*\[&([RrUu])\]\s*")
_NEEDS_QUOTES = re.compile(r"[\s(),:;\[\]']")
_QUOTED_OR_COMMENT = re.compile(r"'(?:[^']|'')*'|\[[^\]]*\]")
_BAD_BRANCH_LENGTH = re.compile(
    r":(?!\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?\s*(?:[,);\[]|$))"
)


def _add_lengths(parent_length, child_length):
    if parent_length is None and child_length is None:
        return None
    return (parent_length or 0.0) + (child_length or 0.0)


def _check_branch_lengths(text, source):
    # Mask quoted labels and comments, keeping offsets, so a ':' inside them is not checked.
    masked = _QUOTED_OR_COMMENT.sub(lambda m: " " * len(m.group()), text)
    bad = _BAD_BRANCH_LENGTH.search(masked)
    if bad:
        snippet = text[max(bad.start() - 15, 0):bad.start() + 15].strip()
        raise TreeParseError(f"branch length is not a number near '{snippet}'", source)


def _collapse_unary(bio_tree, only=None):
    """
    Removes single-child nodes in place, summing the merged edge lengths.
    With ``only``, just the nodes whose id() is in that set are removed.
    """
    def unary(clade):
        return len(clade.clades) == 1 and (only is None or id(clade) in only)

    root = bio_tree.root
    while unary(root):
        root = root.clades[0]
        root.branch_length = None
    bio_tree.root = root

    stack = [root]
    while stack:
        parent = stack.pop()
        for index, child in enumerate(parent.clades):
            while unary(child):
                only_child = child.clades[0]
                only_child.branch_length = _add_lengths(child.branch_length, only_child.branch_length)
                child = only_child
            parent.clades[index] = child
            stack.append(child)


def _format_label(label):
    if label is None:
        return ""
    text = str(label)
    if _NEEDS_QUOTES.search(text):
        return "'" + text.replace("'", "''") + "'"
    return text


def _clade_to_newick(clade):
    text = ""
    if clade.clades:
        text = "(" + ",".join(_clade_to_newick(child) for child in clade.clades) + ")"
    if clade.name is not None:
        text += _format_label(clade.name)
    elif getattr(clade, "confidence", None) is not None:
        text += repr(float(clade.confidence))
    if clade.branch_length is not None:
        text += ":" + repr(float(clade.branch_length))
    return text


class Tree:
    """
    Immutable rooted phylogeny with the structural queries needed before
    matching it against a trait table.

    Args:
        bio_tree: A Bio.Phylo tree. It is deep-copied, so later changes to the
            argument do not affect this Tree.
        rooted: Explicit root marker. True or False overrides the degree-based
            convention used by is_rooted(); None means no marker was given.
    """

    def __init__(self, bio_tree: BaseTree.Tree, rooted: bool | None = None):
        if not isinstance(bio_tree, BaseTree.Tree):
            raise TypeError(f"Expected a Bio.Phylo tree, got {type(bio_tree).__name__}")
        self._tree = copy.deepcopy(bio_tree)
        self._rooted = rooted

    @classmethod
    def _wrap(cls, bio_tree, rooted):
        # Takes ownership of a tree that was already copied by the caller.
        tree = cls.__new__(cls)
        tree._tree = bio_tree
        tree._rooted = rooted
        return tree

    @classmethod
    def from_newick(cls, text: str, source: str | None = None) -> "Tree":
        """
        Parses a single Newick tree description.

        A leading [&R] or [&U] comment is read as an explicit root marker.

        Raises:
            TreeParseError: If the text is not a valid Newick tree or a branch
                length is not a number.
        """
        rooted = None
        marker = _ROOT_MARKER.match(text)
        if marker:
            rooted = marker.group(1).upper() == "R"
            text = text[marker.end():]
        _check_branch_lengths(text, source)
        try:
            bio_tree = Phylo.read(StringIO(text), "newick")
        except (NewickError, ValueError) as e:
            raise TreeParseError(str(e), source) from e
        return cls._wrap(bio_tree, rooted)

    # ------------------------------------------------------------------
    # Read-only accessors

    @property
    def root_marker(self) -> bool | None:
        return self._rooted

    @property
    def n_tips(self) -> int:
        return len(self._tree.get_terminals())

    def __len__(self):
        return self.n_tips

    def tip_labels(self) -> list:
        """Tip names in left-to-right (preorder) order."""
        return [tip.name for tip in self._tree.get_terminals()]

    def tip_label(self, i: int):
        return self.tip_labels()[i]

    def tip_names(self) -> set[str]:
        """
        Returns the set of all tip names.

        Raises:
            MalformedTreeError: If two tips share a name.
        """
        labels = self.tip_labels()
        duplicates = {name for name, count in Counter(labels).items() if count > 1}
        if duplicates:
            raise MalformedTreeError("Duplicate tip names", duplicates)
        return set(labels)

    def validate(self) -> "Tree":
        """Checks tip naming invariants and returns self for chaining."""
        unnamed = sum(1 for label in self.tip_labels() if label is None or str(label).strip() == "")
        if unnamed:
            raise MalformedTreeError(f"Tree has {unnamed} unnamed tip(s)")
        self.tip_names()
        return self

    def to_biopython(self) -> BaseTree.Tree:
        """Returns an independent Bio.Phylo copy for use by external routines."""
        return copy.deepcopy(self._tree)

    def to_newick(self) -> str:
        """
        Serialises the tree to Newick, keeping every branch length at full
        float precision. Edges without a length are written without one.
        """
        prefix = ""
        if self._rooted is not None:
            prefix = "[&R] " if self._rooted else "[&U] "
        return prefix + _clade_to_newick(self._tree.root) + ";"

    def __eq__(self, other):
        if not isinstance(other, Tree):
            return NotImplemented
        return self.to_newick() == other.to_newick()

    def __hash__(self):
        return hash(self.to_newick())

    def __repr__(self):
        return f"Tree(n_tips={self.n_tips}, newick={self.to_newick()[:60]!r})"

    # ------------------------------------------------------------------
    # Structural queries

    def _missing_lengths(self) -> int:
        root = self._tree.root
        return sum(
            1 for clade in self._tree.find_clades()
            if clade is not root and clade.branch_length is None
        )

    def has_branch_lengths(self) -> bool:
        return self._missing_lengths() == 0

    def require_branch_lengths(self, operation: str):
        missing = self._missing_lengths()
        if missing:
            raise MissingBranchLengthError(operation, missing)

    def is_binary(self) -> bool:
        """True iff every internal node, the root included, has exactly two children."""
        return all(len(clade.clades) == 2 for clade in self._tree.get_nonterminals())

    def is_rooted(self) -> bool:
        """
        An explicit [&R]/[&U] marker decides; otherwise the tree counts as
        rooted when its root has exactly two children.
        """
        if self._rooted is not None:
            return self._rooted
        return len(self._tree.root.clades) == 2

    def _tip_depths(self) -> list[float]:
        depths = []
        stack = [(self._tree.root, 0.0)]
        while stack:
            clade, depth = stack.pop()
            if not clade.clades:
                depths.append(depth)
            for child in clade.clades:
                stack.append((child, depth + child.branch_length))
        return depths

    def root_to_tip_distances(self) -> dict[str, float]:
        """Maps every tip name to its root-to-tip path length, in tip order."""
        self.require_branch_lengths("root_to_tip_distances")
        self.tip_names()
        distances = {}
        stack = [(self._tree.root, 0.0)]
        while stack:
            clade, depth = stack.pop()
            if not clade.clades:
                distances[clade.name] = depth
            for child in clade.clades:
                stack.append((child, depth + child.branch_length))
        return {name: distances[name] for name in self.tip_labels()}

    def is_ultrametric(self, tolerance: float = 1e-6) -> bool:
        """
        True iff the spread of root-to-tip distances is within
        tolerance * (longest distance).

        Raises:
            MissingBranchLengthError: If any non-root edge has no length.
        """
        self.require_branch_lengths("is_ultrametric")
        depths = self._tip_depths()
        longest = max(depths)
        return (longest - min(depths)) <= tolerance * longest

    # ------------------------------------------------------------------
    # Transformations (each returns a new Tree)

    def prune(self, names) -> "Tree":
        """
        Drops the named tips. Internal nodes left with a single child are
        collapsed, adding their edge length to the surviving child.
        Names that are not tips are ignored.
        """
        names = set(names)
        bio_tree = copy.deepcopy(self._tree)
        terminals = bio_tree.get_terminals()
        kept_tips = {id(tip) for tip in terminals if tip.name not in names}
        if not kept_tips:
            raise ValueError("Cannot prune every tip from the tree")

        # Postorder, so internal nodes emptied below are dropped by their parent.
        shrunk = set()
        for clade in list(bio_tree.find_clades(order="postorder")):
            if not clade.clades:
                continue
            kept = [child for child in clade.clades if child.clades or id(child) in kept_tips]
            if len(kept) == 1 and len(clade.clades) > 1:
                shrunk.add(id(clade))
            clade.clades = kept
        _collapse_unary(bio_tree, only=shrunk)

        if names:
            logger.debug("Pruned %d tip(s); %d remain", self.n_tips - len(kept_tips), len(kept_tips))
        return Tree._wrap(bio_tree, self._rooted)

    def keep_tips(self, names) -> "Tree":
        """Prunes every tip that is not named."""
        names = set(names)
        return self.prune(label for label in self.tip_labels() if label not in names)

    def resolve_polytomies(self, seed=None) -> "Tree":
        """
        Randomly resolves every polytomy into binary splits joined by
        zero-length edges, and collapses single-child nodes.

        Args:
            seed: Seed (or numpy Generator) for the random joins. The same seed
                always gives the same topology.

        Returns:
            A new binary Tree with the same tip set.
        """
        rng = np.random.default_rng(seed)
        new_length = 0.0 if self.has_branch_lengths() else None
        bio_tree = copy.deepcopy(self._tree)
        _collapse_unary(bio_tree)

        resolved = 0
        for clade in list(bio_tree.find_clades(order="preorder")):
            while len(clade.clades) > 2:
                i, j = sorted(int(k) for k in rng.choice(len(clade.clades), size=2, replace=False))
                right = clade.clades.pop(j)
                left = clade.clades.pop(i)
                clade.clades.insert(i, Newick.Clade(branch_length=new_length, clades=[left, right]))
                resolved += 1
        logger.debug("Inserted %d node(s) while resolving polytomies", resolved)
        return Tree._wrap(bio_tree, self._rooted)

    def force_ultrametric(self) -> "Tree":
        """
        Stretches edges so every tip sits at the largest root-to-tip distance.

        Working down from the root, each edge takes a share of the distance
        still missing to the target depth in proportion to its length against
        the longest path below it. Trees that are already ultrametric come back
        unchanged.

        This is numerical smoothing for trees that are ultrametric up to
        rounding. Applied to trees with fossil or otherwise non-contemporaneous
        tips it distorts divergence times and should not be used.

        Raises:
            MissingBranchLengthError: If any non-root edge has no length.
        """
        self.require_branch_lengths("force_ultrametric")
        bio_tree = copy.deepcopy(self._tree)

        heights = {}
        for clade in bio_tree.find_clades(order="postorder"):
            heights[id(clade)] = max(
                (child.branch_length + heights[id(child)] for child in clade.clades),
                default=0.0,
            )
        target = heights[id(bio_tree.root)]

        stack = [(bio_tree.root, 0.0)]
        while stack:
            parent, depth = stack.pop()
            remaining = target - depth
            for child in parent.clades:
                span = child.branch_length + heights[id(child)]
                if span > 0:
                    child.branch_length = child.branch_length * remaining / span
                else:
                    child.branch_length = remaining if not child.clades else 0.0
                stack.append((child, depth + child.branch_length))
        return Tree._wrap(bio_tree, self._rooted)
