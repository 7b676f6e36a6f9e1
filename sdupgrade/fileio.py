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
import os
import tempfile

import crc32c

from .errors import MalformedRecord, SystemFailure, os_failure
from .layouts import TIMESTAMP_SIZE, check_node_sequence_size

READ_CHUNK = 1 << 20

l = logging.getLogger(__name__)


def open_source(path, what):
    """Open path read-only and return (fd, st_size)."""
    try:
        fd = os.open(path, os.O_RDONLY)
    except OSError as e:
        raise os_failure(f"failed to open {what} {path}", e) from e
    try:
        size = os.fstat(fd).st_size
    except OSError as e:
        os.close(fd)
        raise os_failure(f"failed to stat {what} {path}", e) from e
    return fd,size


def xread(fd, size, what):
    chunks = []
    remaining = size
    while remaining > 0:
        try:
            chunk = os.read(fd, min(remaining, READ_CHUNK))
        except OSError as e:
            raise os_failure(f"failed to read {what}", e) from e
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    bl = b"".join(chunks)
    if len(bl) != size:
        raise SystemFailure(f"failed to read {what}: got {len(bl)} of {size} bytes")
    return bl


def xwrite(fd, bl, what):
    view = memoryview(bl)
    while view:
        try:
            written = os.write(fd, view)
        except OSError as e:
            raise os_failure(f"failed to write to {what}", e) from e
        if written == 0:
            raise SystemFailure(f"failed to write to {what}: short write")
        view = view[written:]


def read_fixed_file(path, size, what):
    fd,st_size = open_source(path, what)
    try:
        if st_size != size:
            raise MalformedRecord(f"{what} {path} has invalid size: {st_size}, expected {size}")
        return xread(fd, size, what)
    finally:
        os.close(fd)


def read_epoch_file(path, version):
    """Return (node_bytes, timestamp_bytes) of an epoch log in the given node layout."""
    what = "epoch log file"
    fd,st_size = open_source(path, what)
    try:
        buf_len = st_size - TIMESTAMP_SIZE
        if buf_len < 0:
            raise MalformedRecord(f"invalid epoch log file {path}: only {st_size} bytes")
        check_node_sequence_size(buf_len, version)
        node_bl = xread(fd, buf_len, what)
        timestamp = xread(fd, TIMESTAMP_SIZE, f"timestamp of {what}")
    finally:
        os.close(fd)
    return node_bl,timestamp


def write_destination(path, chunks, what):
    """Write chunks to path through a temporary file renamed into place.

    The file is created 0600. On any failure the temporary file is removed
    and path is left as it was.
    """
    path = os.path.abspath(path)
    directory = os.path.dirname(path)
    try:
        fd,tmp = tempfile.mkstemp(prefix=f".{os.path.basename(path)}.", suffix=".tmp",
                                  dir=directory)
    except OSError as e:
        raise os_failure(f"failed to create a new {what} {path}", e) from e
    done = False
    try:
        for bl in chunks:
            xwrite(fd, bl, f"a new {what}")
        os.fsync(fd)
        os.replace(tmp, path)
        done = True
        fsync_directory(directory)
    except OSError as e:
        raise os_failure(f"failed to write to a new {what} {path}", e) from e
    finally:
        os.close(fd)
        if not done:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
    l.debug(f"wrote {what} {path}")


def fsync_directory(directory):
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def checksum(*chunks):
    crc = 0
    for bl in chunks:
        crc = crc32c.crc32c(bl, crc)
    return crc


def log_checksum(what, *chunks):
    crc = checksum(*chunks)
    l.info(f"Calculated crc32c sum for {what} {crc:#010x}")
    return crc
