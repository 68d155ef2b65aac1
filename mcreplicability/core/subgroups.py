"""
Subgroup analyses for MCReplicability.

Partitions the observation table by a grouping column (optionally
collapsing fine categories into coarse ones) and runs the Monte Carlo
passes per group. All groups share the seed and the replicate index range,
so replicate ``i`` of one group is paired with replicate ``i`` of every
other group.
"""

import warnings
from collections.abc import Mapping
from itertools import combinations
from types import MappingProxyType
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import ConfigurationError, EmptyGroupError
from ..utils.validators import _validate_columns
from .observations import n_studies
from .results import contrast
from .simulation import EstimateDistribution, ReplicateRunner


class GroupPartition(Mapping):
    """Immutable mapping from group label to that group's observation table.

    Attributes:
        group_key: Grouping column the partition was built from.
        hierarchy: Coarse label to fine labels mapping, when categories
            were collapsed.
    """

    def __init__(
        self,
        group_key: str,
        tables: Dict[str, pd.DataFrame],
        hierarchy: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self.group_key = group_key
        self._tables = MappingProxyType(dict(tables))
        self.hierarchy = MappingProxyType({k: tuple(v) for k, v in hierarchy.items()}) if hierarchy else None

    def __getitem__(self, label):
        return self._tables[label]

    def __iter__(self):
        return iter(self._tables)

    def __len__(self):
        return len(self._tables)

    @property
    def labels(self) -> List:
        return list(self._tables)

    def study_counts(self) -> Dict:
        return {label: n_studies(table) for label, table in self._tables.items()}

    def __repr__(self):
        return f"GroupPartition('{self.group_key}', {self.study_counts()})"


def _collapse(labels: pd.Series, hierarchy: Mapping[str, Sequence[str]]) -> pd.Series:
    """Map fine category labels onto their coarse parent labels."""
    parent_of = {}
    for coarse, fine_labels in hierarchy.items():
        for fine in fine_labels:
            if fine in parent_of:
                raise ConfigurationError(f"Category '{fine}' is assigned to both '{parent_of[fine]}' and '{coarse}'")
            parent_of[fine] = coarse
    return labels.map(parent_of)


def partition(
    table: pd.DataFrame,
    group_key: str,
    hierarchy: Optional[Mapping[str, Sequence[str]]] = None,
    levels: Optional[Sequence] = None,
) -> GroupPartition:
    """Split an observation table by a grouping column.

    Args:
        table: Canonical observation table.
        group_key: Grouping column.
        hierarchy: Optional ``{coarse: [fine, ...]}`` mapping. Rows are
            relabelled with their coarse category; rows whose category is
            not listed are excluded.
        levels: Optional labels to keep, in reporting order. Defaults to
            the hierarchy keys, or to all observed labels sorted.

    Returns:
        ``GroupPartition`` with one table per label.

    Raises:
        ConfigurationError: Unknown grouping column or overlapping
            hierarchy.
        EmptyGroupError: A requested label has no studies.
    """
    _validate_columns(table, [group_key]).raise_if_invalid()

    labels = table[group_key]
    if labels.isna().any():
        warnings.warn(f"Excluding {int(labels.isna().sum())} row(s) without a '{group_key}' label", stacklevel=2)

    if hierarchy:
        collapsed = _collapse(labels, hierarchy)
        unmapped = collapsed.isna() & labels.notna()
        if unmapped.any():
            leftover = sorted(map(str, pd.unique(labels[unmapped])))
            warnings.warn(
                f"Excluding {int(unmapped.sum())} row(s) of '{group_key}' with categories outside the hierarchy: {', '.join(leftover)}",
                stacklevel=2,
            )
        labels = collapsed

    if levels is None:
        levels = list(hierarchy) if hierarchy else sorted(pd.unique(labels.dropna()), key=str)

    tables = {}
    for label in levels:
        subset = table.loc[(labels == label).to_numpy()].reset_index(drop=True)
        if len(subset) == 0:
            raise EmptyGroupError(group_key, label)
        tables[label] = subset

    return GroupPartition(group_key, tables, hierarchy)


def run_grouped(
    group_partition: GroupPartition,
    repetitions: int,
    bootstrap: bool,
    seed: int,
    fitter,
    n_jobs: int = 1,
    warn_failure_rate: float = 0.10,
    progress=None,
    cancel_check: Optional[Callable[[], bool]] = None,
) -> Dict[str, EstimateDistribution]:
    """Run one Monte Carlo pass per group with matched replicate indices.

    Small groups are run like any other; their extra failures show up in
    the distribution's failure count.
    """
    runner = ReplicateRunner(repetitions=repetitions, seed=seed, n_jobs=n_jobs, warn_failure_rate=warn_failure_rate)
    return {
        label: runner.run(
            table,
            fitter,
            bootstrap=bootstrap,
            label=str(label),
            progress=progress,
            cancel_check=cancel_check,
        )
        for label, table in group_partition.items()
    }


def resolve_pairs(labels: Sequence, pairs: Optional[Sequence[Tuple]] = None) -> List[Tuple]:
    """Contrast pairs to compute, checked against the group labels.

    Defaults to all ``(a, b)`` pairs in label order.

    Raises:
        ConfigurationError: A pair names a label that is not a group.
    """
    if pairs is None:
        return list(combinations(labels, 2))

    pairs = [tuple(pair) for pair in pairs]
    malformed = [pair for pair in pairs if len(pair) != 2]
    if malformed:
        raise ConfigurationError(f"Contrast pairs must be (a, b) tuples, got: {malformed}")
    unknown = [label for pair in pairs for label in pair if label not in labels]
    if unknown:
        raise ConfigurationError(f"Unknown group label(s) in contrast pairs: {', '.join(map(str, unknown))}")
    return pairs


def pairwise_contrasts(
    distributions: Mapping[str, EstimateDistribution],
    metric: str = "arp",
    pairs: Optional[Sequence[Tuple[str, str]]] = None,
    allow_partial: bool = False,
) -> Dict[Tuple[str, str], Tuple[np.ndarray, np.ndarray]]:
    """Paired deltas for group pairs.

    Args:
        distributions: Label to distribution mapping from ``run_grouped``.
        metric: Metric to contrast.
        pairs: ``(a, b)`` pairs to compute ``a - b`` for. Defaults to all
            pairs in label order.
        allow_partial: See ``contrast``.

    Returns:
        ``{(a, b): (indices, deltas)}``.
    """
    pairs = resolve_pairs(list(distributions), pairs)
    return {(a, b): contrast(distributions[a], distributions[b], metric=metric, allow_partial=allow_partial) for a, b in pairs}
