"""Settings for the node topology updater."""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

import yaml

from topo.diff import ScalingPolicy
from topo.labels import TopologyError

logger = logging.getLogger(__name__)

CONFIG_ENV = "TOPO_CONFIG"


class ConfigError(TopologyError):
	"""Invalid configuration."""


@dataclass
class Settings:
	interval_s: float = 30.0
	jitter_factor: float = 1.2
	tolerance_ppm: int = 250
	kubeconfig: Optional[str] = None
	log_level: str = "INFO"
	status_port: int = 8080

	def validate(self) -> None:
		if self.interval_s <= 0:
			raise ConfigError(f"interval_s must be positive, got {self.interval_s}")
		if self.jitter_factor < 0:
			raise ConfigError(f"jitter_factor must be >= 0, got {self.jitter_factor}")
		if self.tolerance_ppm < 0:
			raise ConfigError(f"tolerance_ppm must be >= 0, got {self.tolerance_ppm}")
		if not isinstance(logging.getLevelName(self.log_level.upper()), int):
			raise ConfigError(f"unknown log_level {self.log_level!r}")

	def scaling(self) -> ScalingPolicy:
		return ScalingPolicy(tolerance_ppm=self.tolerance_ppm)


# env var -> (field, parser)
_ENV_FIELDS = {
	"TOPO_INTERVAL_S": ("interval_s", float),
	"TOPO_JITTER_FACTOR": ("jitter_factor", float),
	"TOPO_TOLERANCE_PPM": ("tolerance_ppm", int),
	"TOPO_KUBECONFIG": ("kubeconfig", str),
	"TOPO_LOG_LEVEL": ("log_level", str),
	"TOPO_STATUS_PORT": ("status_port", int),
}


def _load_yaml(path: str) -> Dict[str, Any]:
	try:
		with open(path, 'r') as f:
			data = yaml.safe_load(f) or {}
	except (OSError, yaml.YAMLError) as e:
		raise ConfigError(f"could not read config file {path}: {e}") from e
	if not isinstance(data, dict):
		raise ConfigError(f"config file {path} must contain a mapping")
	return data


def load_settings(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
	"""
	Build settings from an optional YAML file overlaid by TOPO_* variables.

	Args:
		path: YAML file; defaults to $TOPO_CONFIG when set
		environ: Environment mapping (defaults to os.environ)

	Raises:
		ConfigError: If the file or a value is invalid
	"""
	environ = os.environ if environ is None else environ
	path = path or environ.get(CONFIG_ENV)

	known = {f.name for f in fields(Settings)}
	values: Dict[str, Any] = {}

	if path:
		for key, value in _load_yaml(path).items():
			if key not in known:
				raise ConfigError(f"unknown config key {key!r} in {path}")
			values[key] = value
		logger.info(f"Loaded config from {path}")

	for env_name, (field_name, parse) in _ENV_FIELDS.items():
		raw = environ.get(env_name)
		if raw is None or raw == "":
			continue
		try:
			values[field_name] = parse(raw)
		except ValueError as e:
			raise ConfigError(f"invalid value for {env_name}: {raw!r}") from e

	try:
		settings = Settings(**values)
		settings.interval_s = float(settings.interval_s)
		settings.jitter_factor = float(settings.jitter_factor)
		settings.tolerance_ppm = int(settings.tolerance_ppm)
		settings.status_port = int(settings.status_port)
		settings.log_level = str(settings.log_level)
	except (TypeError, ValueError) as e:
		raise ConfigError(f"invalid config value: {e}") from e

	settings.validate()
	return settings
