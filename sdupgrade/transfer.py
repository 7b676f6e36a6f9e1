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

from .convert import check_orig_version, convert_config, convert_inode, convert_nodes
from .fileio import log_checksum, read_epoch_file, read_fixed_file, write_destination
from .layouts import (CURRENT_VERSION, SD_CONFIG_SIZE, decode_config, decode_inode,
                      decode_node_sequence, encode_config, encode_inode,
                      encode_epoch, inode_size, vdi_name)
from .placement import format_node
from .topology import count_zones

l = logging.getLogger(__name__)


def convert_config_file(orig_file, dst_file):
    bl = read_fixed_file(orig_file, SD_CONFIG_SIZE, "config file")
    log_checksum("original config file", bl)
    config = decode_config(bl)
    l.info(f"original config file version {config['version']:#06x}")
    new = convert_config(config)
    out = encode_config(new)
    write_destination(dst_file, [out], "config file")
    crc = log_checksum("new config file", out)
    return {
        'version': new['version'],
        'block_size_shift': new['block_size_shift'],
        'crc': crc,
    }


def convert_epoch_file(orig_file, dst_file, orig_version):
    check_orig_version(orig_version)
    node_bl,timestamp = read_epoch_file(orig_file, orig_version)
    log_checksum("original epoch log file", node_bl, timestamp)
    nodes = convert_nodes(decode_node_sequence(node_bl, orig_version), orig_version)
    out = encode_epoch(nodes, timestamp, CURRENT_VERSION)
    write_destination(dst_file, [out], "epoch log file")
    crc = log_checksum("new epoch log file", out)

    nr_zones = count_zones(nodes)
    l.info(f"converted {len(nodes)} nodes in {nr_zones} zones")
    l.info("number of vnodes of each nodes:")
    for n in nodes:
        l.info(f"\t{format_node(n)} == {n['nr_vnodes']}")
    l.info("please supply the above numbers to sheeps with -V option")
    return {
        'nodes': nodes,
        'vnodes': [n['nr_vnodes'] for n in nodes],
        'nr_zones': nr_zones,
        'timestamp': timestamp,
        'crc': crc,
    }


def convert_inode_file(orig_file, dst_file, orig_version):
    check_orig_version(orig_version)
    bl = read_fixed_file(orig_file, inode_size(orig_version), "original inode file")
    log_checksum("original inode file", bl)
    new = convert_inode(decode_inode(bl, orig_version), orig_version)
    out = encode_inode(new, CURRENT_VERSION)
    write_destination(dst_file, [out], "converted inode file")
    crc = log_checksum("converted inode file", out)
    l.info(f"converted inode {vdi_name(new)} (vdi id {new['vdi_id']:x})")
    return {'vdi_id': new['vdi_id'], 'name': vdi_name(new), 'crc': crc}
