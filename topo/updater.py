"""Periodic reconciliation of TSC frequency labels on nodes."""

from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Set

from kubernetes.client import CoreV1Api, V1Node

from topo.diff import DEFAULT_POLICY, ScalingPolicy, diff
from topo.filter import filter_nodes, has_inv_tsc_frequency
from topo.hinter import Hinter, HinterError
from topo.labels import TopologyError, labels_equal, node_labels, node_name, to_labels
from topo.patch import patch_node
from topo.wait import jitter_until

DEFAULT_JITTER_FACTOR = 1.2

_module_logger = logging.getLogger(__name__)


@dataclass
class CycleStats:
    """Outcome counters of a single reconciliation cycle."""
    updated: int = 0
    skipped: int = 0
    error: int = 0

    @property
    def total(self) -> int:
        return self.updated + self.skipped + self.error

    def summary(self) -> str:
        return (
            f"TSC frequency node update status: {self.updated} updated, "
            f"{self.skipped} skipped, {self.error} errors"
        )

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class NodeTopologyUpdater:
    """Keeps the TSC frequency scheduling labels of every eligible node current."""

    def __init__(
        self,
        core_api: CoreV1Api,
        hinter: Hinter,
        node_store: Any,
        policy: ScalingPolicy = DEFAULT_POLICY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Args:
            core_api: CoreV1Api used to patch nodes
            hinter: Source of cluster-wide required frequencies
            node_store: Anything with a list() returning V1Node objects
            policy: Which frequencies scalable nodes may present
            logger: Logger for per-node errors and cycle summaries
        """
        self.core_api = core_api
        self.hinter = hinter
        self.node_store = node_store
        self.policy = policy
        self.logger = logger or _module_logger

        self._lock = threading.Lock()
        self._last_stats: Optional[CycleStats] = None
        self._last_cycle_at: Optional[float] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.interval: Optional[float] = None

    def run(
        self,
        interval: float,
        stop_event: threading.Event,
        jitter_factor: float = DEFAULT_JITTER_FACTOR,
    ) -> None:
        """Reconcile now and then every jittered interval until stop_event is set."""
        self.interval = interval
        self.logger.info(f"Starting node topology updater, interval={interval}s, jitter={jitter_factor}")
        jitter_until(self.run_once, interval, jitter_factor, True, stop_event)
        self.logger.info("Node topology updater stopped")

    def start(self, interval: float, jitter_factor: float = DEFAULT_JITTER_FACTOR) -> None:
        """Run in a daemon thread."""
        if self._thread and self._thread.is_alive():
            self.logger.warning("Node topology updater already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            args=(interval, self._stop_event, jitter_factor),
            name="node-topology-updater",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run_once(self) -> CycleStats:
        """
        Run a single reconciliation cycle over the current node snapshot.

        Raises:
            Exception: Whatever prevented the cycle from running, after the
                summary line has been logged with an aborted marker
        """
        stats = CycleStats()
        try:
            required = self.required_frequencies()
            nodes = filter_nodes(self.node_store.list(), has_inv_tsc_frequency)

            for node in nodes:
                name = node_name(node)
                try:
                    modified = self.calculate_node_label_changes(node, required)
                except TopologyError as e:
                    stats.error += 1
                    self.logger.error(f"Could not calculate TSC frequencies for node {name}: {e}")
                    continue

                if labels_equal(node_labels(node), node_labels(modified)):
                    stats.skipped += 1
                    continue

                try:
                    patch_node(self.core_api, node, modified)
                except TopologyError as e:
                    stats.error += 1
                    self.logger.error(f"Could not patch TSC frequencies for node {name}: {e}")
                    continue
                stats.updated += 1
        except Exception as e:
            self.logger.error(f"{stats.summary()} (aborted: {e})")
            raise

        self.logger.info(stats.summary())
        with self._lock:
            self._last_stats = stats
            self._last_cycle_at = time.time()
        return stats

    def required_frequencies(self) -> Set[int]:
        """Frequencies in use plus the lowest common frequency, when available."""
        required = set(self.hinter.tsc_frequencies_in_use())
        try:
            required.add(self.hinter.lowest_tsc_frequency_on_cluster())
        except HinterError as e:
            self.logger.error(f"Failed to calculate lowest TSC frequency for nodes: {e}")
        return required

    def calculate_node_label_changes(self, node: V1Node, required: Set[int]) -> V1Node:
        """
        Copy of the node carrying the desired scheduling labels.

        Raises:
            FrequencyError: If the node's native frequency is unknown
        """
        to_add, to_remove = diff(required, node, self.policy)

        modified = copy.deepcopy(node)
        labels = dict(node_labels(node))
        for key in to_labels(to_add):
            labels[key] = "true"
        for key in to_labels(to_remove):
            labels.pop(key, None)
        modified.metadata.labels = labels
        return modified

    def status(self) -> Dict[str, Any]:
        with self._lock:
            stats = self._last_stats
            last_cycle_at = self._last_cycle_at
        return {
            "interval_s": self.interval,
            "last_cycle_at": last_cycle_at,
            "last_stats": stats.to_dict() if stats else None,
        }
