# Copyright (C) 2022  The metatag authors
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

import logging
import zlib
from collections.abc import Sequence
from typing import Any, override

from .._util import TruncatedStreamError
from ._specs import (
    BinaryDataSpec,
    EncodedTextListSpec,
    EncodedTextSpec,
    EncodingSpec,
    FrameIDSpec,
    Latin1TextSpec,
    PictureTypeSpec,
    Spec,
    StringSpec,
)
from ._util import (
    Encoding,
    ID3BadCompressedData,
    ID3EncryptionUnsupportedError,
)

log = logging.getLogger(__name__)


class Frame:
    """Fundamental unit of ID3 data.

    ID3 tags are split into frames. Each frame has a potentially
    different structure, described by the list of specs in _framespec,
    in the order the fields appear in the frame payload.

    Positional arguments map to the specs in order, skipping the text
    encoding, which is chosen when saving.
    """

    FLAG23_COMPRESS: int = 0x0080
    FLAG23_ENCRYPT: int = 0x0040
    FLAG23_GROUP: int = 0x0020

    FrameID: str = ""
    _framespec: Sequence[Spec] = []

    def __init__(self, *args: Any, **kwargs: Any):
        positional = [s for s in self._framespec
                      if not isinstance(s, EncodingSpec)]
        if len(args) > len(positional):
            raise TypeError("%s takes at most %d positional arguments" % (
                type(self).__name__, len(positional)))

        values = {}
        for spec, value in zip(positional, args):
            values[spec.name] = value
        for key, value in kwargs.items():
            if key in values:
                raise TypeError("got multiple values for %r" % key)
            values[key] = value

        names = [s.name for s in self._framespec]
        for key in values:
            if key not in names:
                raise TypeError("%s got an unexpected argument %r" % (
                    type(self).__name__, key))

        for spec in self._framespec:
            setattr(self, spec.name, values.get(spec.name, spec.default))

    @override
    def __setattr__(self, name: str, value: Any):
        for checker in self._framespec:
            if checker.name == name:
                value = checker.validate(self, value)
                break
        super().__setattr__(name, value)

    def _content(self) -> tuple[Any, ...]:
        return tuple(getattr(self, s.name) for s in self._framespec
                     if not isinstance(s, EncodingSpec))

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return type(self) is type(other) and \
            self.FrameID == other.FrameID and \
            self._content() == other._content()

    __hash__ = None  # type: ignore[assignment]

    @override
    def __repr__(self) -> str:
        kw = []
        for attr in self._framespec:
            kw.append("%s=%r" % (attr.name, getattr(self, attr.name)))
        return "%s(%s)" % (type(self).__name__, ", ".join(kw))

    def _save_encoding(self) -> Encoding:
        return Encoding.UTF16

    def _get_save_frame(self) -> Frame:
        """Returns a copy of the frame with the text encoding used
        for writing.
        """

        kwargs = {}
        for spec in self._framespec:
            if isinstance(spec, EncodingSpec):
                kwargs[spec.name] = self._save_encoding()
            else:
                kwargs[spec.name] = getattr(self, spec.name)
        return type(self)(**kwargs)

    def _readData(self, data: bytes) -> None:
        # read values are normalized already and unterminated text may
        # contain nulls, which only get rejected when saving
        for reader in self._framespec:
            value, data = reader.read(self, data)
            object.__setattr__(self, reader.name, value)

    def _writeData(self) -> bytes:
        data = []
        for writer in self._framespec:
            data.append(writer.write(self, getattr(self, writer.name)))
        return b"".join(data)

    @classmethod
    def _fromData(cls, frame_id: str, tflags: int, data: bytes) -> Frame:
        """Construct this ID3 frame from raw payload data.

        Raises:
            ID3EncryptionUnsupportedError: in case the frame is encrypted
            ID3BadCompressedData: in case inflating fails
            metatag.MetatagError: in case parsing failed
        """

        if tflags & Frame.FLAG23_COMPRESS:
            # decompressed size, zlib knows better
            if len(data) < 4:
                raise TruncatedStreamError(
                    "frame too small: %r" % data)
            data = data[4:]
        if tflags & Frame.FLAG23_ENCRYPT:
            raise ID3EncryptionUnsupportedError(
                "%s: encrypted frames are not supported" % frame_id)
        if tflags & Frame.FLAG23_GROUP:
            if not data:
                raise TruncatedStreamError(
                    "frame too small: %r" % data)
            data = data[1:]
        if tflags & Frame.FLAG23_COMPRESS:
            log.debug("inflating %s frame (%d bytes)", frame_id, len(data))
            try:
                data = zlib.decompress(data)
            except zlib.error as err:
                raise ID3BadCompressedData(
                    "%s: zlib: %s" % (frame_id, err)) from err

        frame = cls.__new__(cls)
        frame.FrameID = frame_id
        frame._readData(data)
        return frame


class TextFrame(Frame):
    """Text frames (any T??? frame but TXXX).

    * FrameID -- the four character frame id, e.g. 'TIT2'
    * text -- the decoded text
    """

    _framespec = [
        FrameIDSpec("FrameID", "T", exclude=("TXXX",)),
        EncodingSpec("encoding"),
        EncodedTextSpec("text", terminated=False),
    ]

    @override
    def __str__(self) -> str:
        return self.text


class UrlFrame(Frame):
    """URL link frames (any W??? frame but WXXX).

    The URL is always ISO-8859-1 encoded.
    """

    _framespec = [
        FrameIDSpec("FrameID", "W", exclude=("WXXX",)),
        Latin1TextSpec("url", terminated=False),
    ]

    @override
    def __str__(self) -> str:
        return self.url


class TXXX(Frame):
    """User-defined text data.

    * desc -- a description of the text
    * text -- the text
    """

    FrameID = "TXXX"

    _framespec = [
        EncodingSpec("encoding"),
        EncodedTextSpec("desc"),
        EncodedTextSpec("text", terminated=False),
    ]


class WXXX(Frame):
    """User-defined URL data.

    * desc -- a description of the URL, in the frame encoding
    * url -- the URL, always ISO-8859-1
    """

    FrameID = "WXXX"

    _framespec = [
        EncodingSpec("encoding"),
        EncodedTextSpec("desc"),
        Latin1TextSpec("url", terminated=False),
    ]


class IPLS(Frame):
    """Involved people list

    * people -- list of names
    """

    FrameID = "IPLS"

    _framespec = [
        EncodingSpec("encoding"),
        EncodedTextListSpec("people"),
    ]


class USLT(Frame):
    """Unsynchronised lyrics/text transcription.

    Lyrics have a three letter ISO language code ('lang') and a
    content descriptor ('desc').
    """

    FrameID = "USLT"

    _framespec = [
        EncodingSpec("encoding"),
        StringSpec("lang", 3),
        EncodedTextSpec("desc"),
        EncodedTextSpec("text", terminated=False),
    ]

    @override
    def __str__(self) -> str:
        return self.text


class COMM(Frame):
    """User comment.

    User comment frames have a description, like other text frames, and
    also a three letter ISO language code in the 'lang' attribute.
    """

    FrameID = "COMM"

    _framespec = [
        EncodingSpec("encoding"),
        StringSpec("lang", 3),
        EncodedTextSpec("desc"),
        EncodedTextSpec("text", terminated=False),
    ]

    @override
    def __str__(self) -> str:
        return self.text


class APIC(Frame):
    """Attached (or linked) Picture.

    Attributes:

    * mime -- MIME type of the image, ISO-8859-1
    * type -- the PictureType
    * desc -- a text description of the image
    * data -- raw image data, as a byte string
    """

    FrameID = "APIC"

    _framespec = [
        EncodingSpec("encoding"),
        Latin1TextSpec("mime"),
        PictureTypeSpec("type"),
        EncodedTextSpec("desc"),
        BinaryDataSpec("data"),
    ]

    @override
    def _save_encoding(self) -> Encoding:
        # no description: the compact single byte form, some readers
        # can't handle a BOM only description
        if not self.desc:
            return Encoding.LATIN1
        return Encoding.UTF16

    @override
    def __repr__(self) -> str:
        return "%s(mime=%r, type=%r, desc=%r, data=<%d bytes>)" % (
            type(self).__name__, self.mime, self.type, self.desc,
            len(self.data))


Frames: dict[str, type[Frame]] = {
    "TXXX": TXXX,
    "WXXX": WXXX,
    "IPLS": IPLS,
    "USLT": USLT,
    "COMM": COMM,
    "APIC": APIC,
}
"""All frames with a fixed frame id, by id."""


def get_frame_class(frame_id: str) -> type[Frame] | None:
    """Returns the frame class handling the frame id or None if the
    frame isn't supported.
    """

    try:
        return Frames[frame_id]
    except KeyError:
        pass

    if frame_id.startswith("T"):
        return TextFrame
    elif frame_id.startswith("W"):
        return UrlFrame
    return None
