"""Tests for rebuilding the cluster topology from an epoch log."""
import pytest

from sdupgrade.errors import MalformedRecord, SystemFailure
from sdupgrade.layouts import CURRENT_VERSION, SD_MAX_COPIES, encode_node_sequence
from sdupgrade.topology import build_topology, count_zones, topology_from_epoch_file
from tests.helpers import TIMESTAMP, make_node


def test_count_distinct_zones():
    nodes = [make_node(1, 1, 10), make_node(2, 1, 10), make_node(3, 2, 5)]
    assert count_zones(nodes) == 2


def test_gateways_are_not_counted():
    nodes = [make_node(1, 1, 10), make_node(2, 7, 0), make_node(3, 8, 0)]
    assert count_zones(nodes) == 1
    assert count_zones([make_node(1, 1, 0)]) == 0
    assert count_zones([]) == 0


def test_zone_count_is_capped():
    nodes = [make_node(i, i, 4) for i in range(1, SD_MAX_COPIES + 10)]
    assert count_zones(nodes) == SD_MAX_COPIES


def test_build_topology_orders_by_identity():
    nodes = [make_node(3, 1, 10), make_node(1, 2, 10), make_node(2, 2, 0)]
    topology = build_topology(nodes)
    assert [n['nid']['addr'][-1] for n in topology['nodes']] == [1, 2, 3]
    assert topology['nr_nodes'] == 3
    assert topology['nr_zones'] == 2


def test_same_address_different_port():
    nodes = [make_node(1, 1, 10, port=7001), make_node(1, 2, 10, port=7000)]
    topology = build_topology(nodes)
    assert [n['nid']['port'] for n in topology['nodes']] == [7000, 7001]


def test_topology_from_epoch_file(write_file):
    nodes = [make_node(1, 1, 10), make_node(2, 1, 0), make_node(3, 2, 5)]
    path = write_file("epoch", encode_node_sequence(nodes, CURRENT_VERSION) + TIMESTAMP)
    topology = topology_from_epoch_file(path)
    assert topology['nodes'] == nodes
    assert topology['nr_zones'] == 2


def test_topology_from_malformed_epoch_file(write_file):
    bl = encode_node_sequence([make_node(1, 1, 10)], CURRENT_VERSION)
    path = write_file("epoch", bl[:-8] + TIMESTAMP)
    with pytest.raises(MalformedRecord):
        topology_from_epoch_file(path)


def test_topology_from_missing_file(tmp_path):
    with pytest.raises(SystemFailure):
        topology_from_epoch_file(str(tmp_path / "epoch"))
