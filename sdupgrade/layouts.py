'''

Copyright (C) 2020 CloudFerro

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

'''
import logging
import struct

from .errors import MalformedRecord, UsageError

_uint8 = "<B"
s_uint8 = 1
_uint16 = "<H"
s_uint16 = 2
_uint32 = "<I"
s_uint32 = 4
_uint64 = "<Q"
s_uint64 = 8
_int64 = "<q"
s_int64 = 8

l = logging.getLogger(__name__)

ORIG_VERSION_0_7 = "v0.7"
ORIG_VERSION_0_8 = "v0.8"
CURRENT_VERSION = "current"
ORIG_VERSIONS = (ORIG_VERSION_0_7, ORIG_VERSION_0_8)

# config tags: 0x0002 v0.7.x, 0x0004 v0.8.x
CONFIG_VERSION_0_7 = 0x0002
CONFIG_VERSION_0_8 = 0x0004
CONFIG_VERSION = 0x0006

SD_CONFIG_SIZE = 40
STORE_LEN = 16
SD_DEFAULT_BLOCK_SIZE_SHIFT = 22
SD_MAX_COPIES = 31

NODE_ID_SIZE = 40
RB_NODE_SIZE = 24
TIMESTAMP_SIZE = s_int64

SD_MAX_VDI_LEN = 256
SD_MAX_VDI_TAG_LEN = 256
MAX_CHILDREN = 1024
SD_INODE_DATA_INDEX = 1 << 20
GREF_SIZE = 8

_node_id = "<16sH16sH4x"
_node_body = "<H2xIQ"
_config = f"<QHB{STORE_LEN}sBBBHQ"

CONFIG_FIELDS = ('ctime', 'flags', 'copies', 'store', 'shutdown',
                 'copy_policy', 'block_size_shift', 'version', 'space')

# v0.8 and current nodes start with the in-memory tree link of the sheep
# that wrote them; it carries no information on disk.
NODE_LAYOUTS = {
    ORIG_VERSION_0_7: {'link': 0},
    ORIG_VERSION_0_8: {'link': RB_NODE_SIZE},
    CURRENT_VERSION: {'link': RB_NODE_SIZE},
}

_INODE_TIMES = ('create_time', 'snap_ctime', 'vm_clock_nsec', 'vdi_size',
                'vm_state_size')

INODE_LAYOUTS = {
    ORIG_VERSION_0_7: {
        'header': f"<{SD_MAX_VDI_LEN}s{SD_MAX_VDI_TAG_LEN}sQQQQQHBBIII",
        'fields': ('name', 'tag') + _INODE_TIMES + (
            'copy_policy', 'nr_copies', 'block_size_shift', 'snap_id',
            'vdi_id', 'parent_vdi_id'),
        'table': ('child_vdi_id', MAX_CHILDREN),
        'gref': False,
    },
    ORIG_VERSION_0_8: {
        'header': f"<{SD_MAX_VDI_LEN}s{SD_MAX_VDI_TAG_LEN}sQQQQQBBBBIII",
        'fields': ('name', 'tag') + _INODE_TIMES + (
            'copy_policy', 'store_policy', 'nr_copies', 'block_size_shift',
            'snap_id', 'vdi_id', 'parent_vdi_id'),
        'table': ('child_vdi_id', MAX_CHILDREN),
        'gref': True,
    },
    CURRENT_VERSION: {
        'header': f"<{SD_MAX_VDI_LEN}s{SD_MAX_VDI_TAG_LEN}sQQQQQBBBBIIII",
        'fields': ('name', 'tag') + _INODE_TIMES + (
            'copy_policy', 'store_policy', 'nr_copies', 'block_size_shift',
            'snap_id', 'vdi_id', 'parent_vdi_id', 'btree_counter'),
        # unused slots left over from the old children table
        'table': (None, MAX_CHILDREN - 1),
        'gref': True,
    },
}


def node_layout(version):
    try:
        return NODE_LAYOUTS[version]
    except KeyError:
        raise UsageError(f"unknown node record version: {version}") from None


def inode_layout(version):
    try:
        return INODE_LAYOUTS[version]
    except KeyError:
        raise UsageError(f"unknown inode record version: {version}") from None


def node_size(version):
    return node_layout(version)['link'] + NODE_ID_SIZE + struct.calcsize(_node_body)


def inode_size(version):
    layout = inode_layout(version)
    size = struct.calcsize(layout['header'])
    size += layout['table'][1] * s_uint32
    size += SD_INODE_DATA_INDEX * s_uint32
    if layout['gref']:
        size += SD_INODE_DATA_INDEX * GREF_SIZE
    return size


def empty_node():
    return {
        'nid': {'addr': bytes(16), 'port': 0, 'io_addr': bytes(16), 'io_port': 0},
        'nr_vnodes': 0,
        'zone': 0,
        'space': 0,
    }


def decode_node_id(bl, i):
    nid = {}
    nid['addr'],i = bytes_decode(bl,i,16)
    nid['port'],i = uint16_decode(bl,i)
    nid['io_addr'],i = bytes_decode(bl,i,16)
    nid['io_port'],i = uint16_decode(bl,i)
    i+=4
    return nid,i


def encode_node_id(nid):
    return struct.pack(_node_id, nid['addr'], nid['port'], nid['io_addr'], nid['io_port'])


def decode_node(bl, i, version):
    end = i + node_size(version)
    i += node_layout(version)['link']
    node = {}
    node['nid'],i = decode_node_id(bl,i)
    node['nr_vnodes'],i = uint16_decode(bl,i)
    i+=2
    node['zone'],i = uint32_decode(bl,i)
    node['space'],i = uint64_decode(bl,i)
    return node,end


def encode_node(node, version):
    link = bytes(node_layout(version)['link'])
    body = struct.pack(_node_body, node['nr_vnodes'], node['zone'], node['space'])
    return link + encode_node_id(node['nid']) + body


def check_node_sequence_size(length, version):
    size = node_size(version)
    if length % size != 0:
        raise MalformedRecord(
            f"invalid epoch log file size: {length} bytes of node records "
            f"is not a multiple of the {version} node size {size}")
    return length // size


def decode_node_sequence(bl, version):
    """Decode a run of fixed-size node records.

    A trailing remainder shorter than one record is reported as
    MalformedRecord instead of being dropped.
    """
    check_node_sequence_size(len(bl), version)
    nodes = []
    i = 0
    while i < len(bl):
        node,i = decode_node(bl,i,version)
        nodes.append(node)
    l.debug(f"decoded {len(nodes)} {version} node records")
    return nodes


def encode_node_sequence(nodes, version):
    return b"".join(encode_node(n, version) for n in nodes)


def split_epoch(bl):
    if len(bl) < TIMESTAMP_SIZE:
        raise MalformedRecord(f"invalid epoch log file: only {len(bl)} bytes")
    return bl[:-TIMESTAMP_SIZE], bl[-TIMESTAMP_SIZE:]


def decode_epoch(bl, version):
    node_bl, timestamp = split_epoch(bl)
    return {'nodes': decode_node_sequence(node_bl, version), 'timestamp': timestamp}


def encode_epoch(nodes, timestamp, version):
    return encode_node_sequence(nodes, version) + timestamp


def timestamp_decode(timestamp):
    return struct.unpack(_int64, timestamp)[0]


def decode_config(bl):
    if len(bl) != SD_CONFIG_SIZE:
        raise MalformedRecord(f"config record has invalid size: {len(bl)}")
    config = {}
    i=0
    config['ctime'],i = uint64_decode(bl,i)
    config['flags'],i = uint16_decode(bl,i)
    config['copies'],i = uint8_decode(bl,i)
    config['store'],i = bytes_decode(bl,i,STORE_LEN)
    config['shutdown'],i = uint8_decode(bl,i)
    config['copy_policy'],i = uint8_decode(bl,i)
    config['block_size_shift'],i = uint8_decode(bl,i)
    config['version'],i = uint16_decode(bl,i)
    config['space'],i = uint64_decode(bl,i)
    return config


def encode_config(config):
    return struct.pack(_config, *[config[f] for f in CONFIG_FIELDS])


def empty_inode(version):
    layout = inode_layout(version)
    inode = dict.fromkeys(layout['fields'], 0)
    inode['name'] = bytes(SD_MAX_VDI_LEN)
    inode['tag'] = bytes(SD_MAX_VDI_TAG_LEN)
    name, count = layout['table']
    if name:
        inode[name] = (0,) * count
    inode['data_vdi_id'] = (0,) * SD_INODE_DATA_INDEX
    if layout['gref']:
        inode['gref'] = bytes(SD_INODE_DATA_INDEX * GREF_SIZE)
    return inode


def decode_inode(bl, version):
    layout = inode_layout(version)
    size = inode_size(version)
    if len(bl) != size:
        raise MalformedRecord(
            f"inode record has invalid size: {len(bl)}, {version} inode is {size} bytes")
    inode = dict(zip(layout['fields'], struct.unpack_from(layout['header'], bl, 0)))
    i = struct.calcsize(layout['header'])
    name, count = layout['table']
    table,i = uint32_array_decode(bl,i,count)
    if name:
        inode[name] = table
    inode['data_vdi_id'],i = uint32_array_decode(bl,i,SD_INODE_DATA_INDEX)
    if layout['gref']:
        inode['gref'],i = bytes_decode(bl,i,SD_INODE_DATA_INDEX * GREF_SIZE)
    l.debug(f"decoded {version} inode {vdi_name(inode)} id {inode['vdi_id']:x}")
    return inode


def encode_inode(inode, version):
    layout = inode_layout(version)
    parts = [struct.pack(layout['header'], *[inode[f] for f in layout['fields']])]
    name, count = layout['table']
    parts.append(uint32_array_encode(inode[name] if name else (0,) * count, count))
    parts.append(uint32_array_encode(inode['data_vdi_id'], SD_INODE_DATA_INDEX))
    if layout['gref']:
        parts.append(inode['gref'])
    return b"".join(parts)


def vdi_name(inode):
    return inode['name'].rstrip(b"\0").decode("utf-8", "replace")


def bytes_decode(bufferlist, i, size):
    value = struct.unpack_from(f"{size}s",bufferlist,i)[0]
    i+=size
    return value,i


def uint8_decode(bufferlist, i):
    value = struct.unpack_from(_uint8,bufferlist,i)[0]
    i+=s_uint8
    return value,i


def uint16_decode(bufferlist, i):
    value = struct.unpack_from(_uint16,bufferlist,i)[0]
    i+=s_uint16
    return value,i


def uint32_decode(bufferlist, i):
    value = struct.unpack_from(_uint32,bufferlist,i)[0]
    i+=s_uint32
    return value,i


def uint64_decode(bufferlist, i):
    value = struct.unpack_from(_uint64,bufferlist,i)[0]
    i+=s_uint64
    return value,i


def uint32_array_decode(bufferlist, i, count):
    values = struct.unpack_from(f"<{count}I",bufferlist,i)
    i+=count * s_uint32
    return values,i


def uint32_array_encode(values, count):
    return struct.pack(f"<{count}I", *values)
