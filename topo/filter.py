"""Node eligibility predicates."""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from kubernetes.client import V1Node

from topo.labels import INVTSC_LABEL, TSC_FREQUENCY_LABEL, node_labels

NodePredicate = Callable[[V1Node], bool]


def has_inv_tsc_frequency(node: Optional[V1Node]) -> bool:
    """True for nodes with an invariant TSC that report a measured frequency."""
    if node is None:
        return False
    labels = node_labels(node)
    return labels.get(INVTSC_LABEL) == "true" and TSC_FREQUENCY_LABEL in labels


def filter_nodes(nodes: Iterable[Optional[V1Node]], *predicates: NodePredicate) -> List[V1Node]:
    """Keep the nodes matching every predicate, in snapshot order."""
    return [
        node for node in nodes
        if node is not None and all(pred(node) for pred in predicates)
    ]
