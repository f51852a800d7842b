"""Per-node TSC frequency label diff."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Set, Tuple

from kubernetes.client import V1Node

from topo.labels import tsc_frequencies_on_node, tsc_frequency_from_node


@dataclass(frozen=True)
class ScalingPolicy:
    """
    Which required frequencies a scalable node may present.

    Any value at or below native. Values above native are accepted when they
    lie within tolerance_ppm of the native frequency. The native frequency is
    always labelled, so "< native" and "<= native" select the same labels and
    tolerance_ppm is the only knob.
    """

    tolerance_ppm: int = 250

    def __post_init__(self) -> None:
        if self.tolerance_ppm < 0:
            raise ValueError(f"tolerance_ppm must be >= 0, got {self.tolerance_ppm}")

    def within_tolerance(self, frequency: int, native: int) -> bool:
        return abs(frequency - native) * 1_000_000 <= native * self.tolerance_ppm

    def can_present(self, frequency: int, native: int) -> bool:
        if frequency > native:
            return self.within_tolerance(frequency, native)
        return True


DEFAULT_POLICY = ScalingPolicy()


def calculate_tsc_label_diff(
    required_frequencies: Iterable[int],
    frequencies_on_node: Iterable[int],
    node_frequency: int,
    scalable: bool,
    policy: ScalingPolicy = DEFAULT_POLICY,
) -> Tuple[Set[int], Set[int]]:
    """
    Compute which frequency labels to add to and remove from a node.

    The node's own frequency is always part of the wanted set. A non-scalable
    node wants nothing else; a scalable node wants every required frequency
    the policy lets it present.

    Returns:
        (to_add, to_remove) as sets of frequencies
    """
    wanted: Set[int] = {node_frequency}
    for freq in required_frequencies:
        if freq is None or freq <= 0 or freq == node_frequency:
            continue
        if scalable and policy.can_present(freq, node_frequency):
            wanted.add(freq)

    present = set(frequencies_on_node)
    return wanted - present, present - wanted


def diff(
    required_frequencies: Iterable[int],
    node: V1Node,
    policy: ScalingPolicy = DEFAULT_POLICY,
) -> Tuple[Set[int], Set[int]]:
    """Label diff for a node; raises FrequencyError if its frequency is unknown."""
    node_frequency, scalable = tsc_frequency_from_node(node)
    return calculate_tsc_label_diff(
        required_frequencies,
        tsc_frequencies_on_node(node),
        node_frequency,
        scalable,
        policy,
    )
