# Copyright (C) 2022  The metatag authors
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""metatag reads and writes ID3v2.3.0 tags and FLAC Vorbis comments.

    import metatag
    tag = metatag.File(filename)

or, if the format is known::

    tag = metatag.read_id3(filename)
    tag.text_frames.append(metatag.id3.TextFrame("TIT2", "Title"))
    metatag.write_id3(filename, tag)

Tags are read and written as a whole. Every function taking a
`filething` accepts either a path or an open binary file object.
"""

import logging

version = (1, 0, 0)
"""Version tuple."""

version_string = ".".join(map(str, version))
"""Version string."""

from ._util import (
    MetatagError,
    MalformedHeaderError,
    UnsupportedFeatureError,
    UnsupportedEncodingError,
    TruncatedStreamError,
    ValueTooLargeError,
    InvalidEncodingError,
    DecompressionError,
    FileThing,
    loadfile,
)
from ._tags import Metadata, PictureType
from .id3 import ID3Tag, read_id3, write_id3
from .flac import FLACTag, read_flac, write_flac

logging.getLogger(__name__).addHandler(logging.NullHandler())


@loadfile(method=False)
def File(filething: FileThing) -> Metadata | None:
    """File(filething)

    Guess the type of the file and try to read its tag.

    Args:
        filething (filething)
    Returns:
        ID3Tag or FLACTag, or None if the file starts with neither an
        ID3v2 tag nor the FLAC magic
    Raises:
        MetatagError: in case the tag is broken or unsupported
        OSError: in case the file can't be opened
    """

    fileobj = filething.fileobj
    fileobj.seek(0, 0)
    header = fileobj.read(4)
    fileobj.seek(0, 0)

    tag: Metadata
    if header[:3] == b"ID3":
        tag = ID3Tag()
    elif header == b"fLaC":
        tag = FLACTag()
    else:
        return None

    tag.load(fileobj)
    if filething.filename is not None:
        tag.filename = filething.filename
    return tag


__all__ = [
    "version", "version_string", "File", "Metadata", "PictureType",
    "ID3Tag", "read_id3", "write_id3", "FLACTag", "read_flac",
    "write_flac", "MetatagError", "MalformedHeaderError",
    "UnsupportedFeatureError", "UnsupportedEncodingError",
    "TruncatedStreamError", "ValueTooLargeError", "InvalidEncodingError",
    "DecompressionError",
]
