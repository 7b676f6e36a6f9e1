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

from .fileio import read_epoch_file
from .layouts import CURRENT_VERSION, SD_MAX_COPIES, decode_node_sequence, timestamp_decode

l = logging.getLogger(__name__)


def node_key(node):
    return node['nid']['addr'],node['nid']['port']


def count_zones(nodes):
    zones = []
    for n in nodes:
        # pure gateways don't contribute to the redundancy level
        if not n['nr_vnodes']:
            continue
        if n['zone'] in zones:
            continue
        zones.append(n['zone'])
        # redundancy never needs more distinct zones than copies
        if len(zones) == SD_MAX_COPIES:
            break
    return len(zones)


def build_topology(nodes):
    members = {}
    for n in nodes:
        members[node_key(n)] = n
    ordered = [members[k] for k in sorted(members)]
    return {
        'nodes': ordered,
        'nr_nodes': len(ordered),
        'nr_zones': count_zones(ordered),
    }


def load_epoch_nodes(path):
    node_bl,timestamp = read_epoch_file(path, CURRENT_VERSION)
    nodes = decode_node_sequence(node_bl, CURRENT_VERSION)
    l.debug(f"epoch log {path} timestamp {timestamp_decode(timestamp)}")
    return nodes


def topology_from_epoch_file(path):
    topology = build_topology(load_epoch_nodes(path))
    l.info(f"epoch {path}: {topology['nr_nodes']} nodes in {topology['nr_zones']} zones")
    return topology
