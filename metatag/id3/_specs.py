# Copyright (C) 2022  The metatag authors
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

from typing import TYPE_CHECKING, Any, override

from .._tags import PictureType, as_picture_type
from .._util import TruncatedStreamError
from ._util import (
    Encoding,
    decode_text,
    encode_text,
    get_encoding,
    get_terminator,
    is_valid_frame_id,
    split_terminated,
)

if TYPE_CHECKING:
    from ._frames import Frame


class Spec:
    """Reads, writes and validates one field of a frame payload.

    Fields are processed in the order the frame lists them, each
    read consuming its part of the payload and returning the rest.
    """

    name: str
    default: Any

    def __init__(self, name: str, default: Any = None):
        self.name = name
        self.default = default

    @override
    def __hash__(self) -> int:
        raise TypeError("Spec objects are unhashable")

    def read(self, frame: Frame, data: bytes) -> tuple[Any, bytes]:
        """
        Returns:
            (value: object, left_data: bytes)
        Raises:
            metatag.MetatagError
        """

        raise NotImplementedError

    def write(self, frame: Frame, value: Any) -> bytes:
        """
        Returns:
            bytes: The serialized data
        Raises:
            metatag.MetatagError
        """

        raise NotImplementedError

    def validate(self, frame: Frame, value: Any) -> Any:
        """
        Returns:
            the validated value
        Raises:
            ValueError
            TypeError
        """

        raise NotImplementedError


class ByteSpec(Spec):

    def __init__(self, name: str, default: int = 0):
        super().__init__(name, default)

    @override
    def read(self, frame, data):
        if not data:
            raise TruncatedStreamError("%s: missing byte" % self.name)
        return data[0], data[1:]

    @override
    def write(self, frame, value):
        return bytes([value])

    @override
    def validate(self, frame, value):
        if not isinstance(value, int):
            raise TypeError("%s has to be an int" % self.name)
        if not 0 <= value <= 0xFF:
            raise ValueError("%s out of range: %r" % (self.name, value))
        return value


class EncodingSpec(ByteSpec):

    def __init__(self, name: str, default: Encoding = Encoding.UTF16):
        super().__init__(name, default)

    @override
    def read(self, frame, data):
        enc, data = super().read(frame, data)
        return get_encoding(enc), data

    @override
    def validate(self, frame, value):
        return get_encoding(super().validate(frame, value))


class PictureTypeSpec(ByteSpec):

    def __init__(self, name: str,
                 default: PictureType = PictureType.COVER_FRONT):
        super().__init__(name, default)

    @override
    def read(self, frame, data):
        value, data = super().read(frame, data)
        return as_picture_type(value), data

    @override
    def validate(self, frame, value):
        return as_picture_type(super().validate(frame, value))


class FrameIDSpec(Spec):
    """The id of frame classes shared by many ids.

    The id is part of the frame header, so this neither consumes nor
    produces payload data.
    """

    def __init__(self, name: str, prefix: str, exclude: tuple[str, ...] = ()):
        super().__init__(name, None)
        self.prefix = prefix
        self.exclude = exclude

    @override
    def read(self, frame, data):
        return frame.FrameID, data

    @override
    def write(self, frame, value):
        return b""

    @override
    def validate(self, frame, value):
        if not isinstance(value, str):
            raise TypeError("%s has to be str" % self.name)
        if not is_valid_frame_id(value) or not value.startswith(self.prefix) \
                or value in self.exclude:
            raise ValueError("Invalid frame id for %s: %r" % (
                type(frame).__name__, value))
        return value


class StringSpec(Spec):
    """A fixed size payload, like the language code."""

    len: int

    def __init__(self, name: str, length: int, default: str = "XXX"):
        super().__init__(name, default)
        self.len = length

    @override
    def read(self, frame, data):
        if len(data) < self.len:
            raise TruncatedStreamError("%s: expected %d bytes" % (
                self.name, self.len))
        return data[:self.len].decode("latin-1"), data[self.len:]

    @override
    def write(self, frame, value):
        return value.encode("latin-1")

    @override
    def validate(self, frame, value):
        if not isinstance(value, str):
            raise TypeError("%s has to be str" % self.name)
        value.encode("latin-1")
        if len(value) != self.len:
            raise ValueError("Invalid StringSpec[%d] data: %r" % (
                self.len, value))
        return value


class Latin1TextSpec(Spec):
    """ISO-8859-1 text, independent of the frame encoding.

    If terminated is False the text takes up the rest of the payload.
    """

    def __init__(self, name: str, default: str = "", terminated: bool = True):
        super().__init__(name, default)
        self.terminated = terminated

    @override
    def read(self, frame, data):
        if self.terminated:
            value, data = split_terminated(data, Encoding.LATIN1)
        else:
            value, data = _strip_terminator(data, Encoding.LATIN1), b""
        return decode_text(value, Encoding.LATIN1), data

    @override
    def write(self, frame, value):
        data = encode_text(value, Encoding.LATIN1)
        if self.terminated:
            data += get_terminator(Encoding.LATIN1)
        return data

    @override
    def validate(self, frame, value):
        return _validate_text(self.name, value)


class EncodedTextSpec(Spec):
    """Text in the encoding of the frame."""

    def __init__(self, name: str, default: str = "", terminated: bool = True):
        super().__init__(name, default)
        self.terminated = terminated

    @override
    def read(self, frame, data):
        if self.terminated:
            value, data = split_terminated(data, frame.encoding)
        else:
            value, data = _strip_terminator(data, frame.encoding), b""
        return decode_text(value, frame.encoding), data

    @override
    def write(self, frame, value):
        data = encode_text(value, frame.encoding)
        if self.terminated:
            data += get_terminator(frame.encoding)
        return data

    @override
    def validate(self, frame, value):
        return _validate_text(self.name, value)


class EncodedTextListSpec(Spec):
    """Terminated strings in the encoding of the frame, taking up the
    rest of the payload.
    """

    def __init__(self, name: str, default: list[str] | None = None):
        super().__init__(name, default if default is not None else [])

    @override
    def read(self, frame, data):
        values = []
        while data:
            value, data = split_terminated(data, frame.encoding, strict=False)
            values.append(decode_text(value, frame.encoding))
        return values, b""

    @override
    def write(self, frame, value):
        term = get_terminator(frame.encoding)
        return b"".join(encode_text(v, frame.encoding) + term for v in value)

    @override
    def validate(self, frame, value):
        if not isinstance(value, list):
            raise TypeError("%s has to be a list" % self.name)
        for v in value:
            if not isinstance(v, str):
                raise TypeError("%s has to contain str" % self.name)
            _validate_text(self.name, v)
        return list(value)


class BinaryDataSpec(Spec):

    def __init__(self, name: str, default: bytes = b""):
        super().__init__(name, default)

    @override
    def read(self, frame, data):
        return data, b""

    @override
    def write(self, frame, value):
        return value

    @override
    def validate(self, frame, value):
        if not isinstance(value, bytes):
            raise TypeError("%s has to be bytes" % self.name)
        return value


def _validate_text(name: str, value: object) -> str:
    if not isinstance(value, str):
        raise TypeError("%s has to be str" % name)
    # a null would be written as a terminator
    if "\x00" in value:
        raise ValueError("%s can't contain null characters: %r" % (
            name, value))
    return value


def _strip_terminator(data: bytes, encoding: Encoding) -> bytes:
    """Removes a single trailing, aligned terminator"""

    term = get_terminator(encoding)
    if data.endswith(term) and (len(data) - len(term)) % len(term) == 0:
        return data[:-len(term)]
    return data
