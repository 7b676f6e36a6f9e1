"""Tests for the binary record layouts."""
import struct

import pytest

from sdupgrade.errors import MalformedRecord, UsageError
from sdupgrade.layouts import (CURRENT_VERSION, ORIG_VERSION_0_7, ORIG_VERSION_0_8,
                               SD_CONFIG_SIZE, decode_config, decode_epoch, decode_inode,
                               decode_node, decode_node_sequence, encode_config, encode_epoch,
                               encode_inode, encode_node, encode_node_sequence, inode_size,
                               node_size)
from tests.helpers import TIMESTAMP, make_config, make_inode, make_node


def test_node_sizes():
    assert node_size(ORIG_VERSION_0_7) == 56
    assert node_size(ORIG_VERSION_0_8) == 80
    assert node_size(CURRENT_VERSION) == 80


def test_inode_sizes():
    assert inode_size(ORIG_VERSION_0_7) == 568 + 4096 + 4 * (1 << 20)
    assert inode_size(ORIG_VERSION_0_8) == 568 + 4096 + 12 * (1 << 20)
    assert inode_size(CURRENT_VERSION) == inode_size(ORIG_VERSION_0_8)


def test_unknown_version():
    with pytest.raises(UsageError):
        node_size("v0.6")
    with pytest.raises(UsageError):
        inode_size("v1.0")


def test_decode_v07_node_offsets():
    bl = (bytes(12) + bytes([10, 0, 0, 1]) + struct.pack("<H", 7000) +
          bytes(12) + bytes([192, 168, 0, 1]) + struct.pack("<H", 7001) + bytes(4) +
          struct.pack("<H2xIQ", 64, 3, 1 << 40))
    node, i = decode_node(bl, 0, ORIG_VERSION_0_7)
    assert i == 56
    assert node == make_node(1, zone=3, nr_vnodes=64)


def test_encode_node_tree_link_is_zero():
    bl = encode_node(make_node(1, zone=3, nr_vnodes=64), CURRENT_VERSION)
    assert len(bl) == 80
    assert bl[:24] == bytes(24)
    assert struct.unpack_from("<H", bl, 64)[0] == 64
    assert struct.unpack_from("<I", bl, 68)[0] == 3


def test_v08_node_ignores_tree_link():
    bl = b"\xff" * 24 + encode_node(make_node(2, 1, 8), ORIG_VERSION_0_7)
    node, _ = decode_node(bl, 0, ORIG_VERSION_0_8)
    assert node == make_node(2, 1, 8)


def test_node_sequence():
    nodes = [make_node(1, 1, 10), make_node(2, 2, 0), make_node(3, 2, 5)]
    bl = encode_node_sequence(nodes, ORIG_VERSION_0_8)
    assert decode_node_sequence(bl, ORIG_VERSION_0_8) == nodes
    assert decode_node_sequence(b"", ORIG_VERSION_0_8) == []


def test_node_sequence_remainder():
    bl = encode_node_sequence([make_node(1, 1, 10)], ORIG_VERSION_0_7)
    with pytest.raises(MalformedRecord):
        decode_node_sequence(bl + b"\0", ORIG_VERSION_0_7)
    with pytest.raises(MalformedRecord):
        decode_node_sequence(bl[:-1], ORIG_VERSION_0_7)


def test_decode_epoch():
    bl = encode_node_sequence([make_node(1, 1, 10)], CURRENT_VERSION) + TIMESTAMP
    epoch = decode_epoch(bl, CURRENT_VERSION)
    assert epoch['timestamp'] == TIMESTAMP
    assert epoch['nodes'] == [make_node(1, 1, 10)]
    with pytest.raises(MalformedRecord):
        decode_epoch(TIMESTAMP[:5], CURRENT_VERSION)


def test_config_offsets():
    bl = make_config(0x0004, block_size_shift=7)
    assert len(bl) == SD_CONFIG_SIZE
    assert bl[29] == 7
    assert struct.unpack_from("<H", bl, 30)[0] == 0x0004
    config = decode_config(bl)
    assert config['version'] == 0x0004
    assert config['copies'] == 3
    assert encode_config(config) == bl


def test_config_decodes_any_tag():
    assert decode_config(make_config(0xbeef))['version'] == 0xbeef


def test_config_wrong_size():
    with pytest.raises(MalformedRecord):
        decode_config(bytes(SD_CONFIG_SIZE - 1))


def test_inode_wrong_size():
    bl = encode_inode(make_inode(ORIG_VERSION_0_7), ORIG_VERSION_0_7)
    with pytest.raises(MalformedRecord):
        decode_inode(bl, ORIG_VERSION_0_8)


def test_v07_inode_fields():
    inode = make_inode(ORIG_VERSION_0_7, copy_policy=0x0102)
    bl = encode_inode(inode, ORIG_VERSION_0_7)
    assert bl[:4] == b"vol0"
    # u16 copy policy follows the five 64-bit times and sizes
    assert struct.unpack_from("<H", bl, 552)[0] == 0x0102
    decoded = decode_inode(bl, ORIG_VERSION_0_7)
    assert decoded['vdi_id'] == 0x7c2b25
    assert decoded['child_vdi_id'][0] == 0x7c2b26
    assert decoded['data_vdi_id'][-1] == 0x7c2b25


def test_encode_epoch():
    nodes = [make_node(1, 1, 10), make_node(2, 2, 0)]
    bl = encode_epoch(nodes, TIMESTAMP, CURRENT_VERSION)
    assert len(bl) == 2 * 80 + 8
    assert bl[-8:] == TIMESTAMP
    assert decode_epoch(bl, CURRENT_VERSION) == {'nodes': nodes, 'timestamp': TIMESTAMP}
