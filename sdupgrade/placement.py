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
import bisect
import ipaddress
import logging
import struct

from .errors import SystemFailure, UsageError
from .layouts import encode_node_id
from .topology import node_key

FNV1A_64_INIT = 0xcbf29ce484222325
FNV_64_PRIME = 0x100000001b3
_mask64 = (1 << 64) - 1
_uint64 = "<Q"

# node hash covers addr and port of the node id
NODE_HASH_LEN = 18

l = logging.getLogger(__name__)


def fnv_64a_buf(bl, hval):
    for c in bl:
        hval ^= c
        hval = (hval * FNV_64_PRIME) & _mask64
    return hval


def fnv_64a_64(value, hval):
    return fnv_64a_buf(struct.pack(_uint64, value), hval)


def sd_hash(bl):
    hval = fnv_64a_buf(bl, FNV1A_64_INIT)
    return fnv_64a_64(hval, hval)


def sd_hash_next(hval):
    return fnv_64a_64(hval, hval)


def sd_hash_oid(oid):
    hval = fnv_64a_64(oid, FNV1A_64_INIT)
    return fnv_64a_64(hval, hval)


def node_hash(node):
    return sd_hash(encode_node_id(node['nid'])[:NODE_HASH_LEN])


def build_ring(topology):
    vnodes = []
    for n in topology['nodes']:
        hval = node_hash(n)
        for _ in range(n['nr_vnodes']):
            hval = sd_hash_next(hval)
            vnodes.append((hval, node_key(n), n))
    vnodes.sort(key=lambda v: (v[0], v[1]))
    l.debug(f"built ring of {len(vnodes)} vnodes")
    return {
        'hashes': [v[0] for v in vnodes],
        'nodes': [v[2] for v in vnodes],
        'nr_zones': topology['nr_zones'],
    }


def oid_to_nodes(oid, ring, nr_copies):
    """Owners of the first nr_copies copies of oid, each in a different zone."""
    hashes = ring['hashes']
    if not hashes:
        raise SystemFailure("no node in the epoch owns any vnode")
    if nr_copies > ring['nr_zones']:
        raise UsageError(f"cannot place {nr_copies} copies in {ring['nr_zones']} zones")
    idx = bisect.bisect_left(hashes, sd_hash_oid(oid)) % len(hashes)
    owners = [ring['nodes'][idx]]
    zones = [owners[0]['zone']]
    while len(owners) < nr_copies:
        idx = (idx + 1) % len(hashes)
        n = ring['nodes'][idx]
        if n['zone'] in zones:
            continue
        owners.append(n)
        zones.append(n['zone'])
    return owners


def resolve(oid, ring, replica_index=0):
    return oid_to_nodes(oid, ring, replica_index + 1)[replica_index]


def addr_to_str(addr):
    if not any(addr[:12]):
        return str(ipaddress.IPv4Address(addr[12:]))
    return str(ipaddress.IPv6Address(addr))


def format_node(node):
    addr = node['nid']['addr']
    af = "IPv4" if not any(addr[:12]) else "IPv6"
    return f"{af} ip:{addr_to_str(addr)} port:{node['nid']['port']}"
