"""Node label keys and TSC frequency extraction."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from kubernetes.client import V1Node

logger = logging.getLogger(__name__)

INVTSC_LABEL = "cpu-feature.node.kubevirt.io/invtsc"
TSC_FREQUENCY_LABEL = "cpu-timer.node.kubevirt.io/tsc-frequency"
TSC_SCALABLE_LABEL = "cpu-timer.node.kubevirt.io/tsc-scalable"
TSC_FREQUENCY_SCHEDULING_LABEL = "scheduling.node.kubevirt.io/tsc-frequency"
TSC_FREQUENCY_SCHEDULING_PREFIX = TSC_FREQUENCY_SCHEDULING_LABEL + "-"


class TopologyError(Exception):
    """Base error for node topology reconciliation."""


class FrequencyError(TopologyError):
    """The native TSC frequency of a node could not be determined."""

    def __init__(self, node_name: Optional[str], reason: str) -> None:
        super().__init__(f"node {node_name}: {reason}")
        self.node_name = node_name
        self.reason = reason


def node_labels(node: V1Node) -> Dict[str, str]:
    if node is None or node.metadata is None:
        return {}
    return node.metadata.labels or {}


def node_name(node: V1Node) -> Optional[str]:
    if node is None or node.metadata is None:
        return None
    return node.metadata.name


def tsc_frequency_from_node(node: V1Node) -> Tuple[int, bool]:
    """
    Read the native TSC frequency and the scalability flag of a node.

    Args:
        node: Kubernetes node

    Returns:
        (frequency in Hz, scalable)

    Raises:
        FrequencyError: If the frequency label is missing or malformed
    """
    labels = node_labels(node)
    raw = labels.get(TSC_FREQUENCY_LABEL)
    if raw is None:
        raise FrequencyError(node_name(node), f"label {TSC_FREQUENCY_LABEL} not found")
    try:
        frequency = int(raw)
    except (TypeError, ValueError):
        raise FrequencyError(node_name(node), f"invalid TSC frequency {raw!r}") from None
    if frequency <= 0:
        raise FrequencyError(node_name(node), f"TSC frequency must be positive, got {frequency}")

    scalable = labels.get(TSC_SCALABLE_LABEL, "false").lower() == "true"
    return frequency, scalable


def tsc_frequencies_on_node(node: V1Node) -> Set[int]:
    """Frequencies the node currently advertises through scheduling labels."""
    frequencies: Set[int] = set()
    for key in node_labels(node):
        if not key.startswith(TSC_FREQUENCY_SCHEDULING_PREFIX):
            continue
        suffix = key[len(TSC_FREQUENCY_SCHEDULING_PREFIX):]
        try:
            frequencies.add(int(suffix))
        except ValueError:
            # Not ours to manage
            logger.debug(f"Ignoring malformed scheduling label {key} on node {node_name(node)}")
    return frequencies


def to_label(frequency: int) -> str:
    return f"{TSC_FREQUENCY_SCHEDULING_PREFIX}{frequency}"


def to_labels(frequencies: Iterable[int]) -> List[str]:
    return [to_label(freq) for freq in sorted(frequencies)]


def labels_equal(a: Optional[Mapping[str, str]], b: Optional[Mapping[str, str]]) -> bool:
    """Structural equality of two label mappings; None counts as empty."""
    return dict(a or {}) == dict(b or {})
