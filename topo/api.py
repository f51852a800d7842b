from __future__ import annotations

from typing import Any

from flask import Flask, jsonify

from topo.updater import NodeTopologyUpdater


def create_app(updater: NodeTopologyUpdater) -> Flask:
	app = Flask(__name__)
	app.config['topology_updater'] = updater

	@app.get("/healthz")
	def healthz() -> Any:
		return jsonify({"status": "ok"})

	@app.get("/status")
	def status() -> Any:
		return jsonify(app.config['topology_updater'].status())

	return app
