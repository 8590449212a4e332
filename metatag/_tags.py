# Copyright (C) 2022  The metatag authors
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

from enum import IntEnum


class PictureType(IntEnum):
    """Enumeration of image types defined by the ID3 standard for the APIC
    frame, but also reused in the FLAC picture block.
    """

    OTHER = 0
    """Other"""

    FILE_ICON = 1
    """32x32 pixels 'file icon' (PNG only)"""

    OTHER_FILE_ICON = 2
    """Other file icon"""

    COVER_FRONT = 3
    """Cover (front)"""

    COVER_BACK = 4
    """Cover (back)"""

    LEAFLET_PAGE = 5
    """Leaflet page"""

    MEDIA = 6
    """Media (e.g. label side of CD)"""

    LEAD_ARTIST = 7
    """Lead artist/lead performer/soloist"""

    ARTIST = 8
    """Artist/performer"""

    CONDUCTOR = 9
    """Conductor"""

    BAND = 10
    """Band/Orchestra"""

    COMPOSER = 11
    """Composer"""

    LYRICIST = 12
    """Lyricist/text writer"""

    RECORDING_LOCATION = 13
    """Recording Location"""

    DURING_RECORDING = 14
    """During recording"""

    DURING_PERFORMANCE = 15
    """During performance"""

    SCREEN_CAPTURE = 16
    """Movie/video screen capture"""

    FISH = 17
    """A bright coloured fish"""

    ILLUSTRATION = 18
    """Illustration"""

    BAND_LOGOTYPE = 19
    """Band/artist logotype"""

    PUBLISHER_LOGOTYPE = 20
    """Publisher/Studio logotype"""

    @property
    def label(self) -> str:
        """The name the ID3 standard uses for this type"""

        return _PICTURE_TYPE_LABELS[self.value]


_PICTURE_TYPE_LABELS = (
    "Other",
    "32x32 pixels 'file icon' (PNG only)",
    "Other file icon",
    "Cover (front)",
    "Cover (back)",
    "Leaflet page",
    "Media (e.g. label side of CD)",
    "Lead artist/lead performer/soloist",
    "Artist/performer",
    "Conductor",
    "Band/Orchestra",
    "Composer",
    "Lyricist/text writer",
    "Recording Location",
    "During recording",
    "During performance",
    "Movie/video screen capture",
    "A bright coloured fish",
    "Illustration",
    "Band/artist logotype",
    "Publisher/Studio logotype",
)


def as_picture_type(value: int) -> PictureType | int:
    """Returns a PictureType if the value is a known one, the plain int
    otherwise.
    """

    try:
        return PictureType(value)
    except ValueError:
        return value


class Metadata:
    """An abstract tag object.

    Metadata is the base class of the tag objects in metatag. A tag is
    created as a whole by :meth:`load` (or by assigning its attributes
    when authoring a new tag) and written as a whole by :meth:`save`.
    """

    __module__ = "metatag"

    filename: str | bytes | None = None

    def __init__(self, *args, **kwargs):
        if args or kwargs:
            self.load(*args, **kwargs)

    def load(self, *args, **kwargs):
        raise NotImplementedError

    def save(self, filething=None):
        """Save changes to a file."""

        raise NotImplementedError

    def pprint(self) -> str:
        """
        Returns:
            text: tag information in a human readable form
        """

        raise NotImplementedError
