# Copyright (C) 2022  The metatag authors
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Read and write FLAC Vorbis comments and embedded pictures.

FLAC supports arbitrary metadata blocks. The two interesting ones for
tagging are the Vorbis comment block and the picture block; every other
block (stream information, seek table, cue sheet, application data and
unknown future ones) is carried over unchanged when saving. Padding is
dropped.

This module does not handle Ogg FLAC files.

Based off documentation available at
https://xiph.org/flac/format.html
"""

from __future__ import annotations

import logging
from enum import IntEnum
from io import BytesIO
from typing import IO, override

from . import version_string
from ._tags import Metadata, PictureType, as_picture_type
from ._util import (
    ByteOrder,
    FileThing,
    InvalidEncodingError,
    MalformedHeaderError,
    MetatagError,
    TruncatedStreamError,
    convert_error,
    loadfile,
    read_full,
    read_uint16,
    read_uint32,
    resize_bytes,
    skip_full,
    write_uint16,
    write_uint32,
)

__all__ = ["FLACTag", "Picture", "Open", "read_flac", "write_flac"]

log = logging.getLogger(__name__)


class error(MetatagError):
    pass


class FLACNoHeaderError(error, MalformedHeaderError):
    pass


class FLACVorbisError(error, InvalidEncodingError):
    pass


class BlockType(IntEnum):
    """Metadata block types, the lower 7 bits of the block header"""

    STREAMINFO = 0
    PADDING = 1
    APPLICATION = 2
    SEEKTABLE = 3
    VORBIS_COMMENT = 4
    CUESHEET = 5
    PICTURE = 6


def _decode(data: bytes, what: str) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidEncodingError("%s: %s" % (what, e)) from e


def _encode(text: str, what: str) -> bytes:
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidEncodingError("%s: %s" % (what, e)) from e


class MetadataBlock:
    """A generic block of FLAC metadata.

    This class is extended by specific used as an ancestor for more specific
    blocks, and also as a container for data blobs of unknown blocks.

    Attributes:
        code (int): the block type
        data (bytes): raw binary data for this block
    """

    code: int = -1

    def __init__(self, data: bytes | None = None):
        """Parse the given data as a metadata block.
        The metadata header should not be included."""

        if data is not None:
            self.load(BytesIO(data))

    def load(self, fileobj: IO[bytes]) -> None:
        self.data = fileobj.read()

    def write(self) -> bytes:
        return self.data

    @staticmethod
    def writeblocks(blocks: list[MetadataBlock]) -> bytes:
        """Render metadata blocks as a byte string.

        Only the last block gets the last-block flag.

        Raises:
            metatag.ValueTooLargeError: if a block exceeds 2**24 - 1 bytes
        """

        fileobj = BytesIO()
        for index, block in enumerate(blocks):
            datum = block.write()
            code = block.code
            if index == len(blocks) - 1:
                code |= 0x80
            write_uint16(fileobj, code, width=1)
            write_uint32(fileobj, len(datum), width=3)
            fileobj.write(datum)
        return fileobj.getvalue()

    @override
    def __repr__(self) -> str:
        return "<%s code=%d (%d bytes)>" % (
            type(self).__name__, self.code, len(self.data))


class VComment(MetadataBlock):
    """A Vorbis comment block.

    Vorbis comments are Unicode values with a key that is
    case-insensitive ASCII between 0x20 and 0x7D inclusive,
    excluding '='.

    Attributes:
        vendor (str)
        comments (list[tuple[str, str]]): all comments, in file order
    """

    code = BlockType.VORBIS_COMMENT

    def __init__(self, data: bytes | None = None, vendor: str = "",
                 comments: list[tuple[str, str]] | None = None):
        self.vendor = vendor
        self.comments = list(comments) if comments is not None else []
        super().__init__(data)

    @override
    def load(self, fileobj):
        vendor_length = read_uint32(fileobj, order=ByteOrder.LITTLE)
        self.vendor = _decode(read_full(fileobj, vendor_length), "vendor")
        count = read_uint32(fileobj, order=ByteOrder.LITTLE)
        comments = []
        for _ in range(count):
            length = read_uint32(fileobj, order=ByteOrder.LITTLE)
            string = _decode(read_full(fileobj, length), "comment")
            try:
                key, value = string.split("=", 1)
            except ValueError as err:
                raise FLACVorbisError(
                    "%r is not a key=value pair" % string) from err
            comments.append((key, value))
        self.comments = comments

    def validate(self) -> None:
        """Validate keys and values, raising a ValueError if there
        are any problems.
        """

        if not isinstance(self.vendor, str):
            raise ValueError("vendor has to be str")
        for key, value in self.comments:
            if not is_valid_key(key):
                raise ValueError("%r is not a valid key" % key)
            if not isinstance(value, str):
                raise ValueError("%r needs to be str for key %r" % (
                    value, key))

    @override
    def write(self):
        self.validate()
        fileobj = BytesIO()
        vendor = _encode(self.vendor, "vendor")
        write_uint32(fileobj, len(vendor), order=ByteOrder.LITTLE)
        fileobj.write(vendor)
        write_uint32(fileobj, len(self.comments), order=ByteOrder.LITTLE)
        for key, value in self.comments:
            comment = key.encode("ascii") + b"=" + _encode(value, key)
            write_uint32(fileobj, len(comment), order=ByteOrder.LITTLE)
            fileobj.write(comment)
        return fileobj.getvalue()

    @override
    def __repr__(self) -> str:
        return "<%s vendor=%r comments=%r>" % (
            type(self).__name__, self.vendor, self.comments)


def is_valid_key(key: object) -> bool:
    """Return true if a string is a valid Vorbis comment key.

    Valid Vorbis comment keys are printable ASCII between 0x20 (space)
    and 0x7D ('}'), excluding '='.
    """

    if not isinstance(key, str):
        return False

    for c in key:
        if c < " " or c > "}" or c == "=":
            return False
    else:
        return bool(key)


class Picture(MetadataBlock):
    """Read and write FLAC embed pictures.

    .. currentmodule:: metatag

    Attributes:
        type (PictureType): picture type
            (same as types for ID3 APIC frames)
        mime (str): MIME type of the picture
        desc (str): picture's description
        width (int): width in pixels
        height (int): height in pixels
        depth (int): color depth in bits-per-pixel
        colors (int): number of colors for indexed palettes (like GIF),
            0 for non-indexed
        data (bytes): picture data

    To create a picture from file (in order to add to a FLAC file),
    instantiate this object without passing anything to the constructor and
    then set the properties manually::

        pic = Picture()

        with open("Local/cover.jpg", "rb") as f:
            pic.data = f.read()

        pic.type = PictureType.COVER_FRONT
        pic.mime = "image/jpeg"
        pic.width = 500
        pic.height = 500
        pic.depth = 16 # color depth
    """

    code = BlockType.PICTURE

    def __init__(self, data: bytes | None = None):
        self.type: PictureType | int = PictureType.OTHER
        self.mime = ""
        self.desc = ""
        self.width = 0
        self.height = 0
        self.depth = 0
        self.colors = 0
        self.data = b""
        super().__init__(data)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Picture):
            return NotImplemented
        return (self.type == other.type and
                self.mime == other.mime and
                self.desc == other.desc and
                self.width == other.width and
                self.height == other.height and
                self.depth == other.depth and
                self.colors == other.colors and
                self.data == other.data)

    __hash__ = None  # type: ignore[assignment]

    @override
    def load(self, fileobj):
        self.type = as_picture_type(read_uint32(fileobj))
        length = read_uint32(fileobj)
        self.mime = _decode(read_full(fileobj, length), "mime")
        length = read_uint32(fileobj)
        self.desc = _decode(read_full(fileobj, length), "description")
        self.width = read_uint32(fileobj)
        self.height = read_uint32(fileobj)
        self.depth = read_uint32(fileobj)
        self.colors = read_uint32(fileobj)
        length = read_uint32(fileobj)
        self.data = read_full(fileobj, length)

    @override
    def write(self):
        fileobj = BytesIO()
        mime = _encode(self.mime, "mime")
        write_uint32(fileobj, self.type)
        write_uint32(fileobj, len(mime))
        fileobj.write(mime)
        desc = _encode(self.desc, "description")
        write_uint32(fileobj, len(desc))
        fileobj.write(desc)
        write_uint32(fileobj, self.width)
        write_uint32(fileobj, self.height)
        write_uint32(fileobj, self.depth)
        write_uint32(fileobj, self.colors)
        write_uint32(fileobj, len(self.data))
        fileobj.write(self.data)
        return fileobj.getvalue()

    @override
    def __repr__(self) -> str:
        return "<%s '%s' (%d bytes)>" % (type(self).__name__, self.mime,
                                         len(self.data))


def _iter_blocks(fileobj: IO[bytes]):
    """Yields (code, size) for each metadata block header, leaving the
    file positioned at the start of the block data.

    The caller has to consume or skip the block data before continuing.
    """

    if fileobj.read(4) != b"fLaC":
        raise FLACNoHeaderError("%r is not a FLAC file" % (
            getattr(fileobj, "name", fileobj),))

    last_block = False
    while not last_block:
        byte = read_uint16(fileobj, width=1)
        last_block = bool(byte & 0x80)
        size = read_uint32(fileobj, width=3)
        yield byte & 0x7F, size


class FLACTag(Metadata):
    """FLACTag(filething=None)

    The Vorbis comment and pictures of a FLAC file.

    Attributes:
        vendor (str): the vendor string of the Vorbis comment
        comments (list[tuple[str, str]]): (field name, value) pairs in
            file order, field names may repeat
        pictures (list[Picture])
    """

    __module__ = "metatag.flac"

    DEFAULT_VENDOR = "metatag " + version_string

    def __init__(self, *args, **kwargs):
        self.vendor = self.DEFAULT_VENDOR
        self.comments: list[tuple[str, str]] = []
        self.pictures: list[Picture] = []
        super().__init__(*args, **kwargs)

    @convert_error(OSError, error)
    @loadfile()
    def load(self, filething: FileThing) -> None:
        """Load the Vorbis comment and pictures from a file.

        Raises:
            metatag.MetatagError
        """

        fileobj = filething.fileobj
        fileobj.seek(0, 0)

        vcomment = None
        pictures = []
        for code, size in _iter_blocks(fileobj):
            if code == BlockType.VORBIS_COMMENT:
                if vcomment is not None:
                    raise FLACVorbisError("> 1 Vorbis comment block found")
                vcomment = VComment(read_full(fileobj, size))
            elif code == BlockType.PICTURE:
                pictures.append(Picture(read_full(fileobj, size)))
            else:
                log.debug("skipping block type %d (%d bytes)", code, size)
                skip_full(fileobj, size)

        if vcomment is None:
            vcomment = VComment()
        self.vendor = vcomment.vendor
        self.comments = vcomment.comments
        self.pictures = pictures
        if filething.filename is not None:
            self.filename = filething.filename

    @convert_error(OSError, error)
    @loadfile(writable=True)
    def save(self, filething: FileThing | None = None) -> None:
        """save(filething=None)

        Save the Vorbis comment and pictures to a file.

        Existing comment, picture and padding blocks are removed, all
        other blocks are kept in their order. The pictures follow them,
        and a new Vorbis comment block comes last.

        Raises:
            metatag.MetatagError
        """

        assert filething is not None
        f = filething.fileobj
        f.seek(0, 0)

        blocks: list[MetadataBlock] = []
        for code, size in _iter_blocks(f):
            if code in (BlockType.PADDING, BlockType.VORBIS_COMMENT,
                        BlockType.PICTURE):
                log.debug("dropping block type %d (%d bytes)", code, size)
                skip_full(f, size)
            else:
                block = MetadataBlock(read_full(f, size))
                block.code = code
                blocks.append(block)
        audio_offset = f.tell()

        blocks.extend(self.pictures)
        blocks.append(VComment(vendor=self.vendor, comments=self.comments))
        data = b"fLaC" + MetadataBlock.writeblocks(blocks)

        resize_bytes(f, audio_offset, len(data), 0)
        f.seek(0, 0)
        f.write(data)
        f.flush()

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FLACTag):
            return NotImplemented
        return (self.vendor == other.vendor and
                [tuple(c) for c in self.comments] ==
                [tuple(c) for c in other.comments] and
                self.pictures == other.pictures)

    __hash__ = None  # type: ignore[assignment]

    @override
    def __repr__(self) -> str:
        return "<%s vendor=%r comments=%d pictures=%d>" % (
            type(self).__name__, self.vendor, len(self.comments),
            len(self.pictures))

    @override
    def pprint(self) -> str:
        lines = [self.vendor]
        for key, value in self.comments:
            lines.append("%s=%s" % (key, value))
        for picture in self.pictures:
            lines.append("%r" % picture)
        return "\n".join(lines)


Open = FLACTag


def read_flac(filething) -> FLACTag:
    """Reads the Vorbis comment and pictures of a FLAC file.

    Raises:
        metatag.MetatagError
    """

    return FLACTag(filething)


def write_flac(filething, tag: FLACTag) -> None:
    """Replaces the Vorbis comment and pictures of a FLAC file.

    Raises:
        metatag.MetatagError
    """

    tag.save(filething)
