# Copyright (C) 2022  The metatag authors
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""ID3v2.3.0 reading and writing.

This is based off of the following reference:

* http://id3.org/id3v2.3.0

Only version 2.3.0 is supported. Unsynchronised tags and encrypted
frames are rejected, compressed frames are inflated.

The supported frames are text frames (T???), URL frames (W???), the
user-defined TXXX and WXXX frames, IPLS, USLT, COMM and APIC. Any
other frame is skipped when loading and not written back.

Since this file's documentation is a little unwieldy, you are probably
interested in the :class:`ID3Tag` class to start with.
"""

from .._tags import PictureType as PictureType
from ._file import ID3Tag, ID3Header as ID3Header, read_id3, write_id3
from ._frames import Frames as Frames, Frame as Frame, \
    TextFrame as TextFrame, UrlFrame as UrlFrame, TXXX as TXXX, \
    WXXX as WXXX, IPLS as IPLS, USLT as USLT, COMM as COMM, APIC as APIC
from ._util import Encoding as Encoding, BitPaddedInt as BitPaddedInt, \
    error as error, ID3NoHeaderError as ID3NoHeaderError, \
    ID3UnsupportedVersionError as ID3UnsupportedVersionError, \
    ID3UnsynchUnsupportedError as ID3UnsynchUnsupportedError, \
    ID3EncryptionUnsupportedError as ID3EncryptionUnsupportedError, \
    ID3BadCompressedData as ID3BadCompressedData

# support open(filename) as interface
Open = ID3Tag


__all__ = ['ID3Tag', 'Open', 'read_id3', 'write_id3']
