"""Minimal merge patches for node objects."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional

from kubernetes.client import ApiClient, CoreV1Api, V1Node
from kubernetes.client.exceptions import ApiException

from topo.labels import TopologyError, node_name

logger = logging.getLogger(__name__)

_serializer: Optional[ApiClient] = None


class PatchError(TopologyError):
    """A node patch could not be built or was rejected by the API server."""

    def __init__(self, node_name: Optional[str], reason: str) -> None:
        super().__init__(f"node {node_name}: {reason}")
        self.node_name = node_name
        self.reason = reason


def _to_dict(obj: Any) -> Dict[str, Any]:
    global _serializer
    if isinstance(obj, dict):
        return copy.deepcopy(obj)
    if _serializer is None:
        _serializer = ApiClient()
    return _serializer.sanitize_for_serialization(obj)


def create_two_way_merge_patch(original: Dict[str, Any], modified: Dict[str, Any]) -> Dict[str, Any]:
    """
    Diff two JSON-like records into a merge patch.

    Keys whose value changed carry the new value, keys missing from
    `modified` map to None and nested mappings are diffed recursively.
    Lists are compared as whole values. An empty dict means no change.
    """
    patch: Dict[str, Any] = {}
    for key, old in original.items():
        if key not in modified:
            patch[key] = None
            continue
        new = modified[key]
        if isinstance(old, dict) and isinstance(new, dict):
            nested = create_two_way_merge_patch(old, new)
            if nested:
                patch[key] = nested
        elif old != new:
            patch[key] = copy.deepcopy(new)
    for key, new in modified.items():
        if key not in original:
            patch[key] = copy.deepcopy(new)
    return patch


def build_node_patch(original: V1Node, modified: V1Node) -> Optional[Dict[str, Any]]:
    """Merge patch turning `original` into `modified`, or None when they match."""
    try:
        patch = create_two_way_merge_patch(_to_dict(original), _to_dict(modified))
    except (TypeError, ValueError) as e:
        raise PatchError(node_name(original), f"could not create merge patch: {e}") from e
    return patch or None


def patch_node(core_api: CoreV1Api, original: V1Node, modified: V1Node) -> Optional[Dict[str, Any]]:
    """
    Submit the changes between two versions of a node.

    Args:
        core_api: CoreV1Api used for the request
        original: Node as read from the cluster
        modified: Same node with the desired labels

    Returns:
        The submitted patch, or None if nothing had to be sent

    Raises:
        PatchError: If the patch cannot be built or the API call fails
    """
    name = node_name(original)
    patch = build_node_patch(original, modified)
    if patch is None:
        return None
    try:
        core_api.patch_node(name, patch)
    except ApiException as e:
        raise PatchError(name, f"could not patch the node: status={e.status}, reason={e.reason}") from e
    except Exception as e:
        raise PatchError(name, f"could not patch the node: {e}") from e
    logger.debug(f"Patched node {name}: {patch}")
    return patch
