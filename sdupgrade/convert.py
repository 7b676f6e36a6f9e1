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

from .errors import UsageError
from .layouts import (CONFIG_VERSION, CONFIG_VERSION_0_7, CONFIG_VERSION_0_8,
                      CURRENT_VERSION, ORIG_VERSIONS, SD_DEFAULT_BLOCK_SIZE_SHIFT,
                      empty_inode, empty_node, vdi_name)

l = logging.getLogger(__name__)

INODE_COPIED_FIELDS = ('name', 'tag', 'create_time', 'vm_clock_nsec', 'vdi_size',
                       'vm_state_size', 'copy_policy', 'nr_copies',
                       'block_size_shift', 'vdi_id', 'data_vdi_id')


def check_orig_version(orig_version):
    if orig_version is None:
        raise UsageError("please specify original version of the file")
    if orig_version not in ORIG_VERSIONS:
        raise UsageError(f"unknown original version: {orig_version}, "
                         f"valid versions are {' or '.join(ORIG_VERSIONS)}")


def convert_config(config):
    if config['version'] not in (CONFIG_VERSION_0_7, CONFIG_VERSION_0_8):
        raise UsageError(f"unknown version config file: {config['version']:x}")
    new = dict(config)
    new['block_size_shift'] = SD_DEFAULT_BLOCK_SIZE_SHIFT
    new['version'] = CONFIG_VERSION
    l.debug(f"config version {config['version']:#06x} -> {CONFIG_VERSION:#06x}")
    return new


def convert_node(node, orig_version):
    check_orig_version(orig_version)
    new = empty_node()
    new['nid'] = dict(node['nid'])
    new['nr_vnodes'] = node['nr_vnodes']
    new['zone'] = node['zone']
    new['space'] = node['space']
    return new


def convert_nodes(nodes, orig_version):
    return [convert_node(n, orig_version) for n in nodes]


def convert_inode(inode, orig_version):
    check_orig_version(orig_version)
    if inode['snap_ctime']:
        raise UsageError("snapshot cannot be converted")
    new = empty_inode(CURRENT_VERSION)
    for field in INODE_COPIED_FIELDS:
        new[field] = inode[field]
    # v0.7 kept the copy policy in a u16, the current layout has a u8
    new['copy_policy'] = inode['copy_policy'] & 0xff
    l.debug(f"converted {orig_version} inode {vdi_name(inode)}")
    return new
