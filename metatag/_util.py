# Copyright (C) 2022  The metatag authors
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Utility classes for metatag.

You should not rely on the interfaces here being stable. They are
intended for internal use in metatag only.
"""

from __future__ import annotations

import errno
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from functools import wraps
from typing import IO, Any, NamedTuple

log = logging.getLogger(__name__)


class MetatagError(Exception):
    """Base class for all custom exceptions in metatag"""

    __module__ = "metatag"


class MalformedHeaderError(MetatagError, ValueError):
    """The file does not start with the expected magic or version"""


class UnsupportedFeatureError(MetatagError, NotImplementedError):
    """The data uses a feature of the format which can't be handled"""


class UnsupportedEncodingError(UnsupportedFeatureError):
    """A text codec needed for decoding isn't available"""


class TruncatedStreamError(MetatagError, EOFError):
    """Fewer bytes were available than the data structure requires"""


class ValueTooLargeError(MetatagError, OverflowError):
    """An integer doesn't fit into the field it gets written to"""


class InvalidEncodingError(MetatagError, ValueError):
    """Text data is in an unknown encoding or can't be decoded/encoded"""


class DecompressionError(MetatagError, ValueError):
    """Compressed data could not be inflated"""


class ByteOrder(Enum):

    BIG = "big"
    LITTLE = "little"


class FileThing(NamedTuple):
    """
    filename is None if the source is not a filename.
    name is a printable name for error messages, if one is known.
    """

    fileobj: IO[bytes]
    filename: str | bytes | None
    name: str | None


def read_full(fileobj: IO[bytes], size: int) -> bytes:
    """Like fileobj.read but raises TruncatedStreamError if not all
    requested data is returned.
    """

    if size < 0:
        raise ValueError("size must not be negative")

    data = fileobj.read(size)
    if len(data) != size:
        raise TruncatedStreamError(
            "expected %d bytes, got %d" % (size, len(data)))
    return data


def skip_full(fileobj: IO[bytes], size: int) -> None:
    """Advance the position by size bytes.

    Raises TruncatedStreamError if that would move past the end of
    the file, in which case the position is left unchanged.
    """

    if size < 0:
        raise ValueError("size must not be negative")

    start = fileobj.tell()
    fileobj.seek(0, 2)
    end = fileobj.tell()
    if start + size > end:
        fileobj.seek(start, 0)
        raise TruncatedStreamError(
            "can't skip %d bytes, only %d left" % (size, end - start))
    fileobj.seek(start + size, 0)


def _read_uint(fileobj: IO[bytes], full: int, width: int | None,
               order: ByteOrder) -> int:
    if width is None:
        width = full
    if not 1 <= width <= full:
        raise ValueError(
            "width has to be in 1..%d, not %r" % (full, width))
    return int.from_bytes(read_full(fileobj, width), order.value)


def _write_uint(fileobj: IO[bytes], value: int, full: int, width: int | None,
                order: ByteOrder) -> None:
    if width is None:
        width = full
    if not 1 <= width <= full:
        raise ValueError(
            "width has to be in 1..%d, not %r" % (full, width))
    if value < 0 or value >> (8 * width):
        raise ValueTooLargeError(
            "%r does not fit into %d unsigned byte(s)" % (value, width))
    fileobj.write(value.to_bytes(width, order.value))


def read_uint16(fileobj: IO[bytes], width: int | None = None,
                order: ByteOrder = ByteOrder.BIG) -> int:
    """Reads `width` (1..2) bytes as an unsigned integer"""

    return _read_uint(fileobj, 2, width, order)


def read_uint32(fileobj: IO[bytes], width: int | None = None,
                order: ByteOrder = ByteOrder.BIG) -> int:
    """Reads `width` (1..4) bytes as an unsigned integer"""

    return _read_uint(fileobj, 4, width, order)


def read_uint64(fileobj: IO[bytes], width: int | None = None,
                order: ByteOrder = ByteOrder.BIG) -> int:
    """Reads `width` (1..8) bytes as an unsigned integer"""

    return _read_uint(fileobj, 8, width, order)


def write_uint16(fileobj: IO[bytes], value: int, width: int | None = None,
                 order: ByteOrder = ByteOrder.BIG) -> None:
    """Writes value using the lowest `width` (1..2) bytes.

    Raises:
        ValueTooLargeError: if value can't be represented in `width` bytes
    """

    _write_uint(fileobj, value, 2, width, order)


def write_uint32(fileobj: IO[bytes], value: int, width: int | None = None,
                 order: ByteOrder = ByteOrder.BIG) -> None:
    """Writes value using the lowest `width` (1..4) bytes.

    Raises:
        ValueTooLargeError: if value can't be represented in `width` bytes
    """

    _write_uint(fileobj, value, 4, width, order)


def write_uint64(fileobj: IO[bytes], value: int, width: int | None = None,
                 order: ByteOrder = ByteOrder.BIG) -> None:
    """Writes value using the lowest `width` (1..8) bytes.

    Raises:
        ValueTooLargeError: if value can't be represented in `width` bytes
    """

    _write_uint(fileobj, value, 8, width, order)


def convert_error(exc_src: type[BaseException] | tuple[type[BaseException], ...],
                  exc_dest: type[Exception]) -> Callable:
    """A decorator for reraising exceptions with a different type.
    Mostly useful for OSError.

    Args:
        exc_src (type): The source exception type
        exc_dest (type): The target exception type.
    """

    def wrap(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except exc_dest:
                raise
            except exc_src as err:
                raise exc_dest(err) from err

        return wrapper

    return wrap


def is_fileobj(fileobj: object) -> bool:
    """Returns:
        bool: if an argument passed ot loadfile() is a file-like object
    """

    if isinstance(fileobj, (str, bytes)):
        return False
    return not hasattr(fileobj, "__fspath__")


def verify_fileobj(fileobj: Any, writable: bool = False) -> None:
    """Verifies that the passed fileobj is a file like object which
    we can use.

    Args:
        writable (bool): verify that the file object is writable as well

    Raises:
        ValueError: In case the object is not a file object that is readable
            (or writable if required) or is not opened in bytes mode.
    """

    try:
        data = fileobj.read(0)
    except (AttributeError, OSError) as err:
        if not hasattr(fileobj, "read"):
            raise ValueError("%r not a valid file object" % fileobj) from err
        raise ValueError("Can't read from file object %r" % fileobj) from err

    if not isinstance(data, bytes):
        raise ValueError(
            "file object %r not opened in binary mode" % fileobj)

    if writable:
        try:
            fileobj.write(data)
        except (AttributeError, OSError) as err:
            if not hasattr(fileobj, "write"):
                raise ValueError(
                    "%r not a valid file object" % fileobj) from err
            raise ValueError(
                "Can't write to file object %r" % fileobj) from err


@contextmanager
def _openfile(instance: object, filething: object,
              writable: bool) -> Iterator[FileThing]:
    """yields a FileThing

    Args:
        filething: Either a file name, a file object or None
        writable (bool): if the file should be opened for writing
    Raises:
        OSError: In case opening the file failed
        TypeError: in case neither a file name nor a file object is passed
        ValueError: in case the file object isn't usable
    """

    if filething is None and instance is not None:
        filething = getattr(instance, "filename", None)

    if filething is None:
        raise TypeError("Missing filename or file object argument")

    if is_fileobj(filething):
        fileobj = filething
        verify_fileobj(fileobj, writable=writable)
        name = getattr(fileobj, "name", None)
        if not isinstance(name, str):
            name = None
        # not ours, so not closed
        yield FileThing(fileobj, None, name)
        return

    filename = os.fspath(filething)
    mode = "rb+" if writable else "rb"
    with open(filename, mode) as fileobj:
        yield FileThing(fileobj, filename, os.fsdecode(filename))


def loadfile(method: bool = True, writable: bool = False) -> Callable:
    """A decorator for functions taking a `filething` as a first argument.

    Passes a FileThing instance as the first argument to the wrapped function.

    Args:
        method (bool): If the wrapped functions is a method
        writable (bool): If a filename is passed opens the file readwrite, if
            passed a file object verifies that it is writable.
    """

    def wrap(func):

        if method:
            @wraps(func)
            def wrapper(self, filething=None, *args, **kwargs):
                with _openfile(self, filething, writable) as h:
                    return func(self, h, *args, **kwargs)
        else:
            @wraps(func)
            def wrapper(filething, *args, **kwargs):
                with _openfile(None, filething, writable) as h:
                    return func(h, *args, **kwargs)

        return wrapper

    return wrap


def resize_file(fobj: IO[bytes], diff: int, BUFFER_SIZE: int = 2 ** 16) -> None:
    """Resize a file by `diff`.

    New space will be filled with zeros.

    Args:
        fobj (fileobj)
        diff (int): amount of size to change
    Raises:
        OSError
    """

    fobj.seek(0, 2)
    filesize = fobj.tell()

    if diff < 0:
        if filesize + diff < 0:
            raise ValueError
        # truncate flushes internally
        fobj.truncate(filesize + diff)
    elif diff > 0:
        try:
            while diff:
                addsize = min(BUFFER_SIZE, diff)
                fobj.write(b"\x00" * addsize)
                diff -= addsize
            fobj.flush()
        except OSError as e:
            if e.errno == errno.ENOSPC:
                # To reduce the chance of corrupt files in case of missing
                # space try to revert the file expansion back. Of course
                # in reality every in-file-write can also fail due to COW etc.
                fobj.truncate(filesize)
            raise


def move_bytes(fobj: IO[bytes], dest: int, src: int, count: int,
               BUFFER_SIZE: int = 2 ** 16) -> None:
    """Moves data around using read()/write().

    Args:
        fileobj (fileobj)
        dest (int): The destination offset
        src (int): The source offset
        count (int) The amount of data to move
    Raises:
        OSError: In case an operation on the fileobj fails
        ValueError: In case invalid parameters were given
    """

    if dest < 0 or src < 0 or count < 0:
        raise ValueError

    fobj.seek(0, 2)
    filesize = fobj.tell()

    if max(dest, src) + count > filesize:
        raise ValueError("area outside of file")

    log.debug("moving %d bytes from offset %d to %d", count, src, dest)

    if src > dest:
        moved = 0
        while count - moved:
            this_move = min(BUFFER_SIZE, count - moved)
            fobj.seek(src + moved)
            buf = fobj.read(this_move)
            fobj.seek(dest + moved)
            fobj.write(buf)
            moved += this_move
        fobj.flush()
    else:
        while count:
            this_move = min(BUFFER_SIZE, count)
            fobj.seek(src + count - this_move)
            buf = fobj.read(this_move)
            fobj.seek(count + dest - this_move)
            fobj.write(buf)
            count -= this_move
        fobj.flush()


def insert_bytes(fobj: IO[bytes], size: int, offset: int,
                 BUFFER_SIZE: int = 2 ** 16) -> None:
    """Insert size bytes of empty space starting at offset.

    fobj must be an open file object, open rb+ or
    equivalent.

    Args:
        fobj (fileobj)
        size (int): The amount of space to insert
        offset (int): The offset at which to insert the space
    Raises:
        OSError
    """

    if size < 0 or offset < 0:
        raise ValueError

    fobj.seek(0, 2)
    filesize = fobj.tell()
    movesize = filesize - offset

    if movesize < 0:
        raise ValueError

    resize_file(fobj, size, BUFFER_SIZE)
    move_bytes(fobj, offset + size, offset, movesize, BUFFER_SIZE)


def delete_bytes(fobj: IO[bytes], size: int, offset: int,
                 BUFFER_SIZE: int = 2 ** 16) -> None:
    """Delete size bytes of empty space starting at offset.

    fobj must be an open file object, open rb+ or
    equivalent.

    Args:
        fobj (fileobj)
        size (int): The amount of space to delete
        offset (int): The start of the space to delete
    Raises:
        OSError
    """

    if size < 0 or offset < 0:
        raise ValueError

    fobj.seek(0, 2)
    filesize = fobj.tell()
    movesize = filesize - offset - size

    if movesize < 0:
        raise ValueError

    move_bytes(fobj, offset, offset + size, movesize, BUFFER_SIZE)
    resize_file(fobj, -size, BUFFER_SIZE)


def resize_bytes(fobj: IO[bytes], old_size: int, new_size: int, offset: int,
                 BUFFER_SIZE: int = 2 ** 16) -> None:
    """Resize an area in a file adding and deleting at the end of it.
    Does nothing if no resizing is needed.

    Everything after the area keeps its content, it only moves.

    Args:
        fobj (fileobj)
        old_size (int): The area starting at offset
        new_size (int): The new size of the area
        offset (int): The start of the area
    Raises:
        OSError
    """

    if new_size < old_size:
        delete_size = old_size - new_size
        delete_at = offset + new_size
        delete_bytes(fobj, delete_size, delete_at, BUFFER_SIZE)
    elif new_size > old_size:
        insert_size = new_size - old_size
        insert_at = offset + old_size
        insert_bytes(fobj, insert_size, insert_at, BUFFER_SIZE)
