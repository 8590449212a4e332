# Copyright (C) 2022  The metatag authors
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

import logging
from io import BytesIO
from typing import IO, override

from .._tags import Metadata
from .._util import (
    FileThing,
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
from ._frames import (
    APIC,
    COMM,
    IPLS,
    TXXX,
    USLT,
    WXXX,
    Frame,
    TextFrame,
    UrlFrame,
    get_frame_class,
)
from ._util import (
    BitPaddedInt,
    ID3NoHeaderError,
    ID3UnsupportedVersionError,
    ID3UnsynchUnsupportedError,
    error,
    is_valid_frame_id,
)

log = logging.getLogger(__name__)


class ID3Header:
    """The 10 byte ID3v2.3.0 tag header.

    Attributes:
        version (tuple[int]): always (2, 3, 0)
        f_unsynch (bool)
        f_extended (bool)
        size (int): the size of the whole tag, including this header
    """

    _V23 = (2, 3, 0)

    f_unsynch = property(lambda s: bool(s._flags & 0x80))
    f_extended = property(lambda s: bool(s._flags & 0x40))

    def __init__(self, fileobj: IO[bytes]):
        """
        Raises:
            ID3NoHeaderError: no "ID3" magic
            ID3UnsupportedVersionError: not an ID3v2.3.0 tag
            ID3UnsynchUnsupportedError
            TruncatedStreamError
        """

        if fileobj.read(3) != b"ID3":
            raise ID3NoHeaderError("%r doesn't start with an ID3 tag" % (
                getattr(fileobj, "name", fileobj),))

        vmaj = read_uint16(fileobj)
        if vmaj != 0x0300:
            raise ID3UnsupportedVersionError(
                "%r ID3v2.%d.%d not supported" % (
                    getattr(fileobj, "name", fileobj), vmaj >> 8, vmaj & 0xFF))

        self.version = self._V23
        self._flags = read_uint16(fileobj, width=1)
        self.size = BitPaddedInt(read_full(fileobj, 4)) + 10

        if self.f_unsynch:
            raise ID3UnsynchUnsupportedError(
                "unsynchronised tags are not supported")

        if self.f_extended:
            # not needed for reading the frames
            extsize = read_uint32(fileobj)
            skip_full(fileobj, extsize)

    @override
    def __repr__(self) -> str:
        return "<%s size=%d flags=0x%02x>" % (
            type(self).__name__, self.size, self._flags)


class ID3Tag(Metadata):
    """ID3Tag(filething=None)

    An ID3v2.3.0 tag.

    If any arguments are given, the :meth:`load` is called with them. If no
    arguments are given then an empty `ID3Tag` object is created.

    ::

        ID3Tag("foo.mp3")
        # same as
        t = ID3Tag()
        t.load("foo.mp3")

    Attributes:
        text_frames (list[TextFrame])
        url_frames (list[UrlFrame])
        user_defined_frames (list[TXXX | WXXX])
        involved_people (list[str])
        lyrics (list[USLT])
        comments (list[COMM])
        pictures (list[APIC])

    All lists keep the order of the file and may contain duplicates.
    """

    __module__ = "metatag.id3"

    _header: ID3Header | None = None

    def __init__(self, *args, **kwargs):
        self._clear()
        super().__init__(*args, **kwargs)

    def _clear(self) -> None:
        self.text_frames: list[TextFrame] = []
        self.url_frames: list[UrlFrame] = []
        self.user_defined_frames: list[TXXX | WXXX] = []
        self.involved_people: list[str] = []
        self.lyrics: list[USLT] = []
        self.comments: list[COMM] = []
        self.pictures: list[APIC] = []

    @property
    def size(self) -> int:
        """the total size of the loaded ID3 tag, including the header"""

        if self._header is not None:
            return self._header.size
        return 0

    def add(self, frame: Frame) -> None:
        """Adds a frame to the list it belongs to.

        The names of an IPLS frame get appended to `involved_people`.
        """

        if isinstance(frame, TextFrame):
            self.text_frames.append(frame)
        elif isinstance(frame, UrlFrame):
            self.url_frames.append(frame)
        elif isinstance(frame, (TXXX, WXXX)):
            self.user_defined_frames.append(frame)
        elif isinstance(frame, IPLS):
            self.involved_people.extend(frame.people)
        elif isinstance(frame, USLT):
            self.lyrics.append(frame)
        elif isinstance(frame, COMM):
            self.comments.append(frame)
        elif isinstance(frame, APIC):
            self.pictures.append(frame)
        else:
            raise TypeError("%r is not a supported frame" % (frame,))

    @convert_error(OSError, error)
    @loadfile()
    def load(self, filething: FileThing) -> None:
        """Load tags from a filename.

        Args:
            filething (filething): filename or file object to load tag
                data from

        Raises:
            metatag.MetatagError: in case the tag is missing, unsupported or
                broken. Nothing gets loaded in that case.
        """

        fileobj = filething.fileobj
        fileobj.seek(0, 0)
        header = ID3Header(fileobj)
        # frames start after the extended header, which is part of the size
        end = header.size - fileobj.tell()
        if end < 0:
            raise TruncatedStreamError("extended header larger than the tag")
        frames = list(self._read_frames(read_full(fileobj, end)))

        self._clear()
        self._header = header
        if filething.filename is not None:
            self.filename = filething.filename
        for frame in frames:
            self.add(frame)

    def _read_frames(self, data: bytes):
        fileobj = BytesIO(data)
        while fileobj.tell() < len(data):
            if data[fileobj.tell()] == 0:
                # padding
                break

            name = read_full(fileobj, 4).decode("latin-1")
            size = read_uint32(fileobj)
            tflags = read_uint16(fileobj)
            framedata = read_full(fileobj, size)

            cls = get_frame_class(name) if is_valid_frame_id(name) else None
            if cls is None:
                log.debug("ignoring %r frame (%d bytes)", name, size)
                continue

            yield cls._fromData(name, tflags, framedata)

    def _iter_save_frames(self):
        yield from self.text_frames
        yield from self.url_frames
        yield from self.user_defined_frames
        if self.involved_people:
            yield IPLS(people=list(self.involved_people))
        yield from self.lyrics
        yield from self.comments
        yield from self.pictures

    def _prepare_data(self) -> bytes:
        """Serializes the whole tag, header included"""

        fileobj = BytesIO()
        fileobj.write(b"ID3")
        write_uint16(fileobj, 0x0300)
        write_uint16(fileobj, 0, width=1)
        size_offset = fileobj.tell()
        fileobj.write(b"\x00" * 4)

        for frame in self._iter_save_frames():
            framedata = frame._get_save_frame()._writeData()
            fileobj.write(frame.FrameID.encode("ascii"))
            write_uint32(fileobj, len(framedata))
            write_uint16(fileobj, 0)
            fileobj.write(framedata)

        size = fileobj.tell() - 10
        fileobj.seek(size_offset)
        fileobj.write(BitPaddedInt.to_str(size))
        return fileobj.getvalue()

    @convert_error(OSError, error)
    @loadfile(writable=True)
    def save(self, filething: FileThing | None = None) -> None:
        """save(filething=None)

        Replace the ID3v2 tag of a file with this one.

        The file has to start with an ID3v2 tag already, which gets
        replaced as a whole. Everything following it is left untouched.

        Args:
            filething (filething):
                Filename to save the tag to. If no filename is given,
                the one most recently loaded is used.

        Raises:
            metatag.MetatagError
        """

        assert filething is not None
        f = filething.fileobj

        f.seek(0, 0)
        if f.read(3) != b"ID3":
            raise ID3NoHeaderError("%r doesn't start with an ID3 tag" % (
                filething.name,))
        skip_full(f, 3)
        old_size = BitPaddedInt(read_full(f, 4)) + 10
        f.seek(0, 2)
        if f.tell() < old_size:
            raise TruncatedStreamError("ID3 tag extends past the end of file")

        data = self._prepare_data()
        log.debug("replacing %d byte tag with %d bytes", old_size, len(data))

        resize_bytes(f, old_size, len(data), 0)
        f.seek(0, 0)
        f.write(data)
        f.flush()

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ID3Tag):
            return NotImplemented
        return (self.text_frames == other.text_frames and
                self.url_frames == other.url_frames and
                self.user_defined_frames == other.user_defined_frames and
                self.involved_people == other.involved_people and
                self.lyrics == other.lyrics and
                self.comments == other.comments and
                self.pictures == other.pictures)

    __hash__ = None  # type: ignore[assignment]

    @override
    def __repr__(self) -> str:
        return "<%s frames=%d>" % (
            type(self).__name__, len(list(self._iter_save_frames())))

    @override
    def pprint(self) -> str:
        lines = []
        for frame in self.text_frames:
            lines.append("%s=%s" % (frame.FrameID, frame.text))
        for frame in self.url_frames:
            lines.append("%s=%s" % (frame.FrameID, frame.url))
        for frame in self.user_defined_frames:
            value = frame.text if isinstance(frame, TXXX) else frame.url
            lines.append("%s=%s=%s" % (frame.FrameID, frame.desc, value))
        if self.involved_people:
            lines.append("IPLS=%s" % "/".join(self.involved_people))
        for frame in self.lyrics + self.comments:
            lines.append("%s=[%s]=%s" % (frame.FrameID, frame.lang,
                                         frame.text))
        for frame in self.pictures:
            lines.append("APIC=%s (%s, %d bytes)" % (
                frame.desc, frame.mime, len(frame.data)))
        return "\n".join(lines)


def read_id3(filething) -> ID3Tag:
    """Reads the ID3v2.3.0 tag at the start of a file.

    Args:
        filething (filething)
    Raises:
        metatag.MetatagError
    """

    return ID3Tag(filething)


def write_id3(filething, tag: ID3Tag) -> None:
    """Replaces the ID3v2 tag at the start of a file with `tag`.

    Args:
        filething (filething)
        tag (ID3Tag)
    Raises:
        metatag.MetatagError
    """

    tag.save(filething)
