"""Node store kept current through the Kubernetes watch API."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Dict, List, Optional

from kubernetes import client, watch
from kubernetes.client import V1Node
from kubernetes.client.exceptions import ApiException

logger = logging.getLogger(__name__)


class NodeStore:
	"""
	In-memory view of cluster nodes.

	Seeded by a full list, then updated from a node watch running in a
	daemon thread. list() hands out copies so callers may mutate them.
	"""

	def __init__(
		self,
		core_api: Optional[client.CoreV1Api] = None,
		watch_timeout_s: int = 30,
		retry_delay_s: float = 5.0,
	) -> None:
		self.core_api = core_api or client.CoreV1Api()
		self.watch_timeout_s = watch_timeout_s
		self.retry_delay_s = retry_delay_s

		self._lock = threading.RLock()
		self._nodes: Dict[str, V1Node] = {}
		self._resource_version: Optional[str] = None
		self._thread: Optional[threading.Thread] = None
		self._stop_event = threading.Event()
		self._watch: Optional[watch.Watch] = None

	def start(self) -> None:
		if self._thread and self._thread.is_alive():
			logger.warning("NodeStore already running")
			return
		self._stop_event.clear()
		self.resync()
		self._thread = threading.Thread(target=self._watch_loop, name="node-store", daemon=True)
		self._thread.start()
		logger.info(f"NodeStore started with {len(self._nodes)} nodes")

	def stop(self) -> None:
		self._stop_event.set()
		if self._watch is not None:
			self._watch.stop()
		if self._thread:
			self._thread.join(timeout=5.0)
			self._thread = None
		logger.info("NodeStore stopped")

	def resync(self) -> None:
		"""Replace the store contents with a fresh node list."""
		node_list = self.core_api.list_node()
		with self._lock:
			self._nodes = {node.metadata.name: node for node in node_list.items}
			self._resource_version = node_list.metadata.resource_version if node_list.metadata else None

	def list(self) -> List[V1Node]:
		with self._lock:
			return [copy.deepcopy(node) for node in self._nodes.values()]

	def get(self, name: str) -> Optional[V1Node]:
		with self._lock:
			node = self._nodes.get(name)
			return copy.deepcopy(node) if node is not None else None

	def apply_event(self, event_type: str, node: V1Node) -> None:
		name = node.metadata.name
		with self._lock:
			if event_type == "DELETED":
				self._nodes.pop(name, None)
			elif event_type in ("ADDED", "MODIFIED"):
				self._nodes[name] = node
			if node.metadata.resource_version:
				self._resource_version = node.metadata.resource_version

	def _watch_loop(self) -> None:
		while not self._stop_event.is_set():
			self._watch = watch.Watch()
			try:
				for event in self._watch.stream(
					self.core_api.list_node,
					resource_version=self._resource_version,
					timeout_seconds=self.watch_timeout_s,
				):
					if self._stop_event.is_set():
						break
					self.apply_event(event["type"], event["object"])
			except ApiException as e:
				if e.status == 410:
					# resourceVersion too old
					logger.info("Node watch expired, resyncing")
					try:
						self.resync()
					except Exception as resync_error:
						logger.error(f"Error resyncing nodes: {resync_error}")
						self._stop_event.wait(self.retry_delay_s)
				else:
					logger.error(f"Error watching nodes: {e}")
					self._stop_event.wait(self.retry_delay_s)
			except Exception as e:
				logger.error(f"Error watching nodes: {e}")
				self._stop_event.wait(self.retry_delay_s)
