import pytest
from kubernetes.client import V1Node, V1ObjectMeta

from conftest import make_node
from topo.filter import filter_nodes, has_inv_tsc_frequency
from topo.labels import (
    TSC_FREQUENCY_SCHEDULING_PREFIX,
    FrequencyError,
    labels_equal,
    to_labels,
    tsc_frequencies_on_node,
    tsc_frequency_from_node,
)


def test_frequency_and_scalability_are_read_from_labels():
    assert tsc_frequency_from_node(make_node("a", frequency=2400000000, scalable=True)) == (2400000000, True)
    assert tsc_frequency_from_node(make_node("b", frequency=2400000000, scalable=False)) == (2400000000, False)


@pytest.mark.parametrize("frequency", [None, "", "abc", "0", "-10"])
def test_invalid_frequency_raises(frequency):
    node = make_node("bad", frequency=frequency)
    with pytest.raises(FrequencyError) as excinfo:
        tsc_frequency_from_node(node)
    assert excinfo.value.node_name == "bad"


def test_malformed_scheduling_labels_are_ignored():
    node = make_node(
        "n",
        frequency=1000,
        advertised=(1000, 900),
        extra={TSC_FREQUENCY_SCHEDULING_PREFIX + "garbage": "true"},
    )
    assert tsc_frequencies_on_node(node) == {1000, 900}


def test_to_labels_is_sorted():
    assert to_labels({900, 100}) == [
        TSC_FREQUENCY_SCHEDULING_PREFIX + "100",
        TSC_FREQUENCY_SCHEDULING_PREFIX + "900",
    ]


def test_labels_equal():
    assert labels_equal({"a": "1"}, {"a": "1"})
    assert labels_equal(None, {})
    assert not labels_equal({"a": "1"}, {"a": "2"})
    assert not labels_equal({"a": "1"}, {"a": "1", "b": "1"})


def test_filter_excludes_nodes_without_frequency():
    nodes = [
        make_node("ok", frequency=1000),
        make_node("no-freq"),
        make_node("no-invtsc", frequency=1000, invtsc=False),
        V1Node(metadata=V1ObjectMeta(name="bare")),
        None,
    ]
    assert [n.metadata.name for n in filter_nodes(nodes, has_inv_tsc_frequency)] == ["ok"]
    assert not has_inv_tsc_frequency(None)
