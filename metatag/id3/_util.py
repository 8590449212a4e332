# Copyright (C) 2022  The metatag authors
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

import codecs
import re
from enum import IntEnum

from .._util import (
    DecompressionError,
    InvalidEncodingError,
    MalformedHeaderError,
    MetatagError,
    TruncatedStreamError,
    UnsupportedEncodingError,
    UnsupportedFeatureError,
    ValueTooLargeError,
)


class error(MetatagError):
    pass


class ID3NoHeaderError(error, MalformedHeaderError):
    pass


class ID3UnsupportedVersionError(ID3NoHeaderError):
    pass


class ID3UnsynchUnsupportedError(error, UnsupportedFeatureError):
    pass


class ID3EncryptionUnsupportedError(error, UnsupportedFeatureError):
    pass


class ID3BadCompressedData(error, DecompressionError):
    pass


def is_valid_frame_id(frame_id: str) -> bool:
    return re.fullmatch("[A-Z0-9]{4}", frame_id) is not None


class BitPaddedInt(int):
    """An integer stored in big endian bytes of which only the lower
    `bits` bits of each byte carry data.

    The ID3v2 tag size is such a synchsafe integer with 7 bits per byte,
    so no byte of it ever has the high bit set.

    ::

        BitPaddedInt(b"\\x00\\x00\\x02\\x01") == 257
    """

    bits: int

    def __new__(cls, value: bytes, bits: int = 7):
        mask = (1 << bits) - 1
        numeric_value = 0
        for byte in bytearray(value):
            numeric_value = (numeric_value << bits) | (byte & mask)

        self = int.__new__(cls, numeric_value)
        self.bits = bits
        return self

    def as_str(self, width: int = 4) -> bytes:
        return self.to_str(self, self.bits, width)

    @staticmethod
    def to_str(value: int, bits: int = 7, width: int = 4) -> bytes:
        """
        Raises:
            ValueTooLargeError: in case value needs more than `width` bytes
        """

        if value < 0 or value >> (bits * width):
            raise ValueTooLargeError(
                "%r too wide for %d bytes of %d bits" % (value, width, bits))

        mask = (1 << bits) - 1
        bytes_ = bytearray(width)
        for index in range(width - 1, -1, -1):
            bytes_[index] = value & mask
            value >>= bits
        return bytes(bytes_)

    @staticmethod
    def has_valid_padding(value: bytes, bits: int = 7) -> bool:
        """Whether the padding bits are all zero"""

        mask = ((1 << (8 - bits)) - 1) << bits
        return not any(byte & mask for byte in bytearray(value))


class Encoding(IntEnum):
    """Text encoding of an ID3v2.3 frame"""

    LATIN1 = 0
    """ISO-8859-1"""

    UTF16 = 1
    """UTF-16 with BOM"""


def get_encoding(value: int) -> Encoding:
    """
    Raises:
        InvalidEncodingError: for anything but the two ID3v2.3 encodings
    """

    try:
        return Encoding(value)
    except ValueError:
        raise InvalidEncodingError(
            "Invalid text encoding: %r" % value) from None


def get_terminator(encoding: Encoding) -> bytes:
    if encoding == Encoding.LATIN1:
        return b"\x00"
    return b"\x00\x00"


def _lookup_codec(name: str) -> str:
    try:
        return codecs.lookup(name).name
    except LookupError as e:
        raise UnsupportedEncodingError(
            "%s decoding is not available" % name) from e


def decode_text(data: bytes, encoding: Encoding) -> str:
    """Decodes the on-wire text representation.

    UTF-16 data starting with a little endian BOM is read as little
    endian, everything else as big endian.

    Raises:
        InvalidEncodingError
        UnsupportedEncodingError
    """

    if not data:
        return ""

    if encoding == Encoding.LATIN1:
        return data.decode("latin-1")
    elif encoding != Encoding.UTF16:
        raise InvalidEncodingError("Invalid text encoding: %r" % encoding)

    if data[:2] == codecs.BOM_UTF16_LE:
        codec, data = "utf-16-le", data[2:]
    elif data[:2] == codecs.BOM_UTF16_BE:
        codec, data = _lookup_codec("utf-16-be"), data[2:]
    else:
        codec = _lookup_codec("utf-16-be")

    try:
        return data.decode(codec)
    except UnicodeDecodeError as e:
        raise InvalidEncodingError(e) from e


def encode_text(text: str, encoding: Encoding) -> bytes:
    """The reverse of decode_text(). UTF-16 is always written little
    endian with a leading BOM.

    Raises:
        InvalidEncodingError: if the text can't be represented
    """

    try:
        if encoding == Encoding.LATIN1:
            return text.encode("latin-1")
        elif encoding == Encoding.UTF16:
            return codecs.BOM_UTF16_LE + text.encode("utf-16-le")
    except UnicodeEncodeError as e:
        raise InvalidEncodingError(e) from e
    raise InvalidEncodingError("Invalid text encoding: %r" % encoding)


def split_terminated(data: bytes, encoding: Encoding,
                     strict: bool = True) -> tuple[bytes, bytes]:
    """Returns the data up to the first terminator of the encoding and
    everything following that terminator.

    Only terminators starting at a multiple of the terminator width are
    considered, so the null byte in an UTF-16 code unit like b"A\\x00"
    doesn't count.

    In case there is no terminator raises TruncatedStreamError, except if
    strict is False, then (data, b"") is returned.
    """

    term = get_terminator(encoding)
    width = len(term)

    index = data.find(term)
    while index != -1 and index % width:
        index = data.find(term, index + 1)

    if index == -1:
        if strict:
            raise TruncatedStreamError("not null terminated")
        return data, b""
    return data[:index], data[index + width:]
