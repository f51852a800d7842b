"""Sources of cluster-wide required TSC frequencies."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Set

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from topo.filter import filter_nodes, has_inv_tsc_frequency
from topo.labels import FrequencyError, TopologyError, tsc_frequency_from_node

logger = logging.getLogger(__name__)

VMI_GROUP = "kubevirt.io"
VMI_VERSION = "v1"
VMI_PLURAL = "virtualmachineinstances"


class HinterError(TopologyError):
	"""The lowest common TSC frequency of the cluster is unavailable."""


class Hinter(ABC):
	@abstractmethod
	def lowest_tsc_frequency_on_cluster(self) -> int:
		raise NotImplementedError

	@abstractmethod
	def tsc_frequencies_in_use(self) -> Set[int]:
		raise NotImplementedError


class StaticHinter(Hinter):
	"""Hinter returning fixed values."""

	def __init__(self, lowest: Optional[int] = None, in_use: Iterable[int] = ()) -> None:
		self.lowest = lowest
		self.in_use = set(in_use)

	def lowest_tsc_frequency_on_cluster(self) -> int:
		if self.lowest is None:
			raise HinterError("no lowest TSC frequency configured")
		return self.lowest

	def tsc_frequencies_in_use(self) -> Set[int]:
		return set(self.in_use)


class KubernetesHinter(Hinter):
	"""
	Hinter backed by the node store and KubeVirt VirtualMachineInstances.

	The lowest frequency is taken over every node reporting a measured TSC
	frequency. Frequencies in use come from the TSC topology hints of running
	VMIs.
	"""

	def __init__(self, node_store: Any, custom_api: Optional[client.CustomObjectsApi] = None) -> None:
		self.node_store = node_store
		self.custom_api = custom_api or client.CustomObjectsApi()

	def lowest_tsc_frequency_on_cluster(self) -> int:
		lowest: Optional[int] = None
		for node in filter_nodes(self.node_store.list(), has_inv_tsc_frequency):
			try:
				freq, _ = tsc_frequency_from_node(node)
			except FrequencyError as e:
				logger.debug(f"Skipping node for lowest frequency: {e}")
				continue
			if lowest is None or freq < lowest:
				lowest = freq
		if lowest is None:
			raise HinterError("no node with a TSC frequency found")
		return lowest

	def tsc_frequencies_in_use(self) -> Set[int]:
		try:
			vmis = self.custom_api.list_cluster_custom_object(
				group=VMI_GROUP,
				version=VMI_VERSION,
				plural=VMI_PLURAL,
			)
		except ApiException as e:
			# An empty set here would strip labels running VMIs still need
			raise HinterError(f"could not list VMIs: status={e.status}, reason={e.reason}") from e

		frequencies: Set[int] = set()
		for item in vmis.get("items", []):
			freq = _topology_hint_frequency(item)
			if freq:
				frequencies.add(freq)
		return frequencies


def _topology_hint_frequency(vmi: Dict[str, Any]) -> Optional[int]:
	hints = (vmi.get("status") or {}).get("topologyHints") or {}
	value = hints.get("tscFrequency")
	if value is None:
		return None
	try:
		return int(value)
	except (TypeError, ValueError):
		name = (vmi.get("metadata") or {}).get("name")
		logger.warning(f"VMI {name} has invalid tscFrequency hint {value!r}")
		return None
