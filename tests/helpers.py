"""Builders for synthetic sheepdog records."""
import struct

from sdupgrade.layouts import (CONFIG_VERSION_0_7, SD_INODE_DATA_INDEX, encode_config,
                               empty_inode)

TIMESTAMP = struct.pack("<q", 1401234567)


def ipv4(a, b, c, d):
    return bytes(12) + bytes([a, b, c, d])


def make_node(host, zone, nr_vnodes, port=7000, space=1 << 40):
    return {
        'nid': {
            'addr': ipv4(10, 0, 0, host),
            'port': port,
            'io_addr': ipv4(192, 168, 0, host),
            'io_port': port + 1,
        },
        'nr_vnodes': nr_vnodes,
        'zone': zone,
        'space': space,
    }


def make_config(version=CONFIG_VERSION_0_7, **fields):
    config = {
        'ctime': 0x53a1b2c300000000,
        'flags': 0x0001,
        'copies': 3,
        'store': b"plain".ljust(16, b"\0"),
        'shutdown': 0,
        'copy_policy': 0,
        'block_size_shift': 0,
        'version': version,
        'space': 1 << 42,
    }
    config.update(fields)
    return encode_config(config)


def make_inode(version, **fields):
    inode = empty_inode(version)
    inode.update({
        'name': b"vol0".ljust(256, b"\0"),
        'tag': b"nightly".ljust(256, b"\0"),
        'create_time': 0x53a1b2c3 << 32,
        'vm_clock_nsec': 12345,
        'vdi_size': 10 << 30,
        'vm_state_size': 4096,
        'copy_policy': 0,
        'nr_copies': 3,
        'block_size_shift': 22,
        'snap_id': 2,
        'vdi_id': 0x7c2b25,
        'parent_vdi_id': 0x7c2b24,
    })
    data = [0] * SD_INODE_DATA_INDEX
    data[0] = 0x7c2b25
    data[1] = 0x7c2b24
    data[SD_INODE_DATA_INDEX - 1] = 0x7c2b25
    inode['data_vdi_id'] = tuple(data)
    if 'child_vdi_id' in inode:
        children = list(inode['child_vdi_id'])
        children[0] = 0x7c2b26
        inode['child_vdi_id'] = tuple(children)
    if 'gref' in inode:
        inode['gref'] = b"\x01\x00\x00\x00\x02\x00\x00\x00" * SD_INODE_DATA_INDEX
    inode.update(fields)
    return inode
