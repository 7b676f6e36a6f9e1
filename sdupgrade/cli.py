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
import argparse
import logging
import sys

from .errors import SystemFailure, UsageError
from .layouts import ORIG_VERSIONS
from .placement import build_ring, format_node, oid_to_nodes
from .topology import topology_from_epoch_file
from .transfer import convert_config_file, convert_epoch_file, convert_inode_file

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_SYSFAIL = 2
EXIT_USAGE = 87

l = logging.getLogger(__name__)


class UpgradeArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        l.error(message)
        sys.exit(EXIT_USAGE)


def setup_logging():
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    root.addHandler(handler)


def orig_version(opt):
    if opt not in ORIG_VERSIONS:
        l.info(f"unknown original version: {opt}")
        l.info(f"valid versions are {' or '.join(ORIG_VERSIONS)}")
        sys.exit(EXIT_FAILURE)
    return opt


def parse_oid(oid_string):
    try:
        oid = int(oid_string, 16)
    except ValueError:
        raise UsageError(f"invalid object id {oid_string}, please specify it in hex format") from None
    if not 0 <= oid < 1 << 64:
        raise UsageError(f"object id {oid_string} does not fit in 64 bits")
    return oid


def upgrade_inode_convert(args):
    convert_inode_file(args.orig_file, args.dst_file, args.orig_version)
    return EXIT_SUCCESS


def upgrade_epoch_convert(args):
    convert_epoch_file(args.orig_file, args.dst_file, args.orig_version)
    return EXIT_SUCCESS


def upgrade_config_convert(args):
    convert_config_file(args.orig_file, args.dst_file)
    return EXIT_SUCCESS


# disk vnodes mode is not supported here
def upgrade_object_location(args):
    oid = parse_oid(args.oid)
    if args.copies < 1:
        raise UsageError(f"invalid number of copies: {args.copies}")
    ring = build_ring(topology_from_epoch_file(args.epoch_file))
    owners = oid_to_nodes(oid, ring, args.copies)
    if len(owners) == 1:
        l.info(format_node(owners[0]))
    else:
        for idx, n in enumerate(owners):
            l.info(f"copy {idx}: {format_node(n)}")
    return EXIT_SUCCESS


def build_parser():
    parser = UpgradeArgumentParser(prog="sd-upgrade",
                                   description="Convert sheepdog metadata files to the current format")
    parser.add_argument("-v", "--verbose", help="Log decoded fields", action="store_true")
    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    p = sub.add_parser("inode-convert", help="upgrade inode object file")
    p.add_argument("orig_file", help="path of original inode file")
    p.add_argument("dst_file", help="path of new inode file")
    p.add_argument("-o", "--orig-version", help="version of converting file", type=orig_version)
    p.set_defaults(func=upgrade_inode_convert)

    p = sub.add_parser("epoch-convert", help="upgrade epoch log file")
    p.add_argument("orig_file", help="path of original epoch log file")
    p.add_argument("dst_file", help="path of new epoch log file")
    p.add_argument("-o", "--orig-version", help="version of converting file", type=orig_version)
    p.set_defaults(func=upgrade_epoch_convert)

    p = sub.add_parser("config-convert", help="upgrade config file")
    p.add_argument("orig_file", help="path of original config file")
    p.add_argument("dst_file", help="path of new config file")
    p.set_defaults(func=upgrade_config_convert)

    p = sub.add_parser("object-location", help="print object location")
    p.add_argument("epoch_file", help="path of latest epoch file")
    p.add_argument("oid", help="object id in hex format")
    p.add_argument("-c", "--copies", help="number of copies to locate", type=int, default=1)
    p.set_defaults(func=upgrade_object_location)
    return parser


def run(argv=None):
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        return args.func(args)
    except UsageError as e:
        l.error(str(e))
        return EXIT_USAGE
    except SystemFailure as e:
        l.error(str(e))
        return EXIT_SYSFAIL


def main():
    setup_logging()
    sys.exit(run())


if __name__ == '__main__':
    main()
