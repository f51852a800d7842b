import copy
import sys
from pathlib import Path
from typing import Dict, List, Optional

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest
from kubernetes.client import V1Node, V1ObjectMeta
from kubernetes.client.exceptions import ApiException

from topo.labels import (
    INVTSC_LABEL,
    TSC_FREQUENCY_LABEL,
    TSC_SCALABLE_LABEL,
    to_label,
)


def make_node(
    name: str,
    frequency: Optional[object] = None,
    scalable: Optional[bool] = None,
    advertised: tuple = (),
    invtsc: bool = True,
    extra: Optional[Dict[str, str]] = None,
) -> V1Node:
    labels: Dict[str, str] = {"kubernetes.io/hostname": name}
    if invtsc:
        labels[INVTSC_LABEL] = "true"
    if frequency is not None:
        labels[TSC_FREQUENCY_LABEL] = str(frequency)
    if scalable is not None:
        labels[TSC_SCALABLE_LABEL] = "true" if scalable else "false"
    for freq in advertised:
        labels[to_label(freq)] = "true"
    labels.update(extra or {})
    return V1Node(api_version="v1", kind="Node", metadata=V1ObjectMeta(name=name, labels=labels))


class FakeCoreApi:
    """Records patch_node calls; names in `failing` get an ApiException."""

    def __init__(self, failing=()) -> None:
        self.failing = set(failing)
        self.patches: List[tuple] = []

    def patch_node(self, name, body):
        if name in self.failing:
            raise ApiException(status=500, reason="Internal Server Error")
        self.patches.append((name, copy.deepcopy(body)))
        return body


class FakeNodeStore:
    def __init__(self, nodes) -> None:
        self.nodes = list(nodes)
        self.list_calls = 0

    def list(self):
        self.list_calls += 1
        return [copy.deepcopy(node) for node in self.nodes]


@pytest.fixture
def core_api():
    return FakeCoreApi()
