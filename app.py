from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Optional

from kubernetes import client, config

from topo.api import create_app
from topo.cache import NodeStore
from topo.config import ConfigError, Settings, load_settings
from topo.hinter import KubernetesHinter
from topo.updater import NodeTopologyUpdater

logger = logging.getLogger(__name__)


def load_kube_config(kubeconfig: Optional[str] = None) -> None:
	"""Load an explicit kubeconfig, else in-cluster config, else the default kubeconfig."""
	if kubeconfig:
		config.load_kube_config(config_file=kubeconfig)
		logger.info(f"Loaded kubeconfig: {kubeconfig}")
		return
	try:
		config.load_incluster_config()
		logger.info("Loaded in-cluster Kubernetes config")
	except config.ConfigException:
		config.load_kube_config()
		logger.info("Loaded kubeconfig")


def build_updater(settings: Settings) -> NodeTopologyUpdater:
	"""Wire the node store, hinter and updater against the configured cluster."""
	load_kube_config(settings.kubeconfig)
	core_api = client.CoreV1Api()

	node_store = NodeStore(core_api)
	node_store.start()

	hinter = KubernetesHinter(node_store, client.CustomObjectsApi())
	return NodeTopologyUpdater(core_api, hinter, node_store, policy=settings.scaling())


def start_status_server(updater: NodeTopologyUpdater, port: int) -> threading.Thread:
	"""Serve /healthz and /status for probes from a daemon thread."""
	app = create_app(updater)
	status_thread = threading.Thread(
		target=app.run,
		kwargs={"host": "0.0.0.0", "port": port, "threaded": True, "use_reloader": False},
		name="status-api",
		daemon=True,
	)
	status_thread.start()
	return status_thread


def main() -> int:
	try:
		settings = load_settings()
	except ConfigError as e:
		print(f"Invalid configuration: {e}", file=sys.stderr)
		return 2

	logging.basicConfig(
		level=settings.log_level.upper(),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)

	updater = build_updater(settings)
	stop_event = threading.Event()

	def _shutdown(signum, frame):
		logger.info(f"Received signal {signum}, stopping")
		stop_event.set()

	signal.signal(signal.SIGTERM, _shutdown)
	signal.signal(signal.SIGINT, _shutdown)

	start_status_server(updater, settings.status_port)

	updater.run(settings.interval_s, stop_event, jitter_factor=settings.jitter_factor)
	updater.node_store.stop()
	return 0


if __name__ == "__main__":
	sys.exit(main())
