import os
import struct
from io import BytesIO

from hypothesis import given, strategies as st

from metatag import (
    MalformedHeaderError,
    TruncatedStreamError,
    InvalidEncodingError,
)
from metatag._tags import PictureType
from metatag.id3 import (
    APIC,
    COMM,
    IPLS,
    TXXX,
    USLT,
    WXXX,
    BitPaddedInt,
    ID3Header,
    ID3NoHeaderError,
    ID3Tag,
    ID3UnsupportedVersionError,
    ID3UnsynchUnsupportedError,
    ID3EncryptionUnsupportedError,
    TextFrame,
    UrlFrame,
    error,
    read_id3,
    write_id3,
)
from metatag.id3._util import Encoding
from tests import TestCase, get_temp_with, read_file


def make_frame(frame_id, data, flags=0):
    return frame_id.encode("ascii") + struct.pack(">IH", len(data), flags) + \
        data


def make_tag(frames, flags=0, padding=0, version=b"\x03\x00"):
    body = b"".join(frames) + b"\x00" * padding
    return b"ID3" + version + bytes([flags]) + \
        BitPaddedInt.to_str(len(body)) + body


def parse_frame_ids(data):
    """Returns the frame ids of an ID3v2.3 tag in order"""

    size = BitPaddedInt(data[6:10]) + 10
    offset = 10
    ids = []
    while offset < size and data[offset] != 0:
        ids.append(data[offset:offset + 4].decode("ascii"))
        offset += 10 + struct.unpack(">I", data[offset + 4:offset + 8])[0]
    return ids


AUDIO = b"\xff\xfb\x90\x64" + b"\x00" * 100


class ID3FileTest(TestCase):

    def setUp(self):
        self.filenames = []

    def tearDown(self):
        for filename in self.filenames:
            os.unlink(filename)

    def temp(self, data):
        filename = get_temp_with(data, ".mp3")
        self.filenames.append(filename)
        return filename


class TID3Header(TestCase):

    def test_basic(self):
        header = ID3Header(BytesIO(make_tag([], padding=5)))
        self.assertEqual(header.version, (2, 3, 0))
        self.assertEqual(header.size, 15)
        self.assertFalse(header.f_unsynch)
        self.assertFalse(header.f_extended)

    def test_no_header(self):
        self.assertRaises(ID3NoHeaderError, ID3Header, BytesIO(b"RIFF" * 3))
        self.assertRaises(ID3NoHeaderError, ID3Header, BytesIO(b""))

    def test_other_versions(self):
        for version in [b"\x02\x00", b"\x04\x00", b"\x03\x01"]:
            self.assertRaises(
                ID3UnsupportedVersionError, ID3Header,
                BytesIO(make_tag([], version=version)))

    def test_unsupported_version_is_malformed(self):
        self.assertRaises(
            MalformedHeaderError, ID3Header,
            BytesIO(make_tag([], version=b"\x04\x00")))

    def test_unsynch(self):
        data = make_tag([], flags=0x80)
        self.assertRaises(ID3UnsynchUnsupportedError, ID3Header, BytesIO(data))
        self.assertRaises(NotImplementedError, ID3Header, BytesIO(data))

    def test_extended(self):
        ext = b"\x00\x00\x00\x06" + b"\x00" * 6
        fileobj = BytesIO(make_tag([ext], flags=0x40))
        header = ID3Header(fileobj)
        self.assertTrue(header.f_extended)
        self.assertEqual(fileobj.tell(), 20)

    def test_truncated(self):
        self.assertRaises(
            TruncatedStreamError, ID3Header, BytesIO(b"ID3\x03\x00\x00\x00"))


class TReadID3(ID3FileTest):

    def test_scenario_latin1_title(self):
        filename = self.temp(
            make_tag([make_frame("TIT2", b"\x00Test")]) + AUDIO)
        tag = read_id3(filename)
        self.assertEqual(tag.text_frames, [TextFrame("TIT2", "Test")])
        self.assertEqual(tag.text_frames[0].encoding, Encoding.LATIN1)
        self.assertEqual(tag.filename, filename)

    def test_fileobj(self):
        data = make_tag([make_frame("TPE1", b"\x00Artist")]) + AUDIO
        tag = read_id3(BytesIO(data))
        self.assertEqual(tag.text_frames[0].text, "Artist")
        self.assertIs(tag.filename, None)

    def test_all_lists(self):
        frames = [
            make_frame("TIT2", b"\x00Title"),
            make_frame("WOAR", b"http://artist"),
            make_frame("TXXX", b"\x00key\x00value"),
            make_frame("WXXX", b"\x00desc\x00http://x"),
            make_frame("IPLS", b"\x00a\x00b\x00"),
            make_frame("USLT", b"\x00englyr\x00lyrics"),
            make_frame("COMM", b"\x00engc\x00comment"),
            make_frame("APIC", b"\x00image/png\x00\x03\x00PNG"),
        ]
        tag = read_id3(BytesIO(make_tag(frames)))
        self.assertEqual(tag.text_frames, [TextFrame("TIT2", "Title")])
        self.assertEqual(tag.url_frames, [UrlFrame("WOAR", "http://artist")])
        self.assertEqual(tag.user_defined_frames, [
            TXXX(desc="key", text="value"),
            WXXX(desc="desc", url="http://x")])
        self.assertEqual(tag.involved_people, ["a", "b"])
        self.assertEqual(tag.lyrics, [USLT(lang="eng", desc="lyr",
                                           text="lyrics")])
        self.assertEqual(tag.comments, [COMM(lang="eng", desc="c",
                                             text="comment")])
        self.assertEqual(tag.pictures, [APIC(mime="image/png", desc="",
                                             data=b"PNG")])

    def test_duplicates_kept_in_order(self):
        frames = [
            make_frame("TPE1", b"\x00one"),
            make_frame("TIT2", b"\x00title"),
            make_frame("TPE1", b"\x00two"),
        ]
        tag = read_id3(BytesIO(make_tag(frames)))
        self.assertEqual([(f.FrameID, f.text) for f in tag.text_frames],
                         [("TPE1", "one"), ("TIT2", "title"),
                          ("TPE1", "two")])

    def test_involved_people_merged(self):
        frames = [
            make_frame("IPLS", b"\x00a\x00b\x00"),
            make_frame("IPLS", b"\x00c\x00d\x00"),
        ]
        tag = read_id3(BytesIO(make_tag(frames)))
        self.assertEqual(tag.involved_people, ["a", "b", "c", "d"])

    def test_unsupported_frames_ignored(self):
        frames = [
            make_frame("PRIV", b"owner\x00data"),
            make_frame("TIT2", b"\x00Title"),
            make_frame("GEOB", b"\x00\x00\x00\x00"),
        ]
        tag = read_id3(BytesIO(make_tag(frames)))
        self.assertEqual(tag.text_frames, [TextFrame("TIT2", "Title")])
        self.assertEqual(tag.pictures, [])

    def test_invalid_frame_id_ignored(self):
        frames = [
            make_frame("ti t", b"\x00garbage"),
            make_frame("TIT2", b"\x00Title"),
        ]
        tag = read_id3(BytesIO(make_tag(frames)))
        self.assertEqual(tag.text_frames, [TextFrame("TIT2", "Title")])

    def test_padding(self):
        frames = [make_frame("TIT2", b"\x00Title")]
        tag = read_id3(BytesIO(make_tag(frames, padding=1024) + AUDIO))
        self.assertEqual(tag.text_frames, [TextFrame("TIT2", "Title")])
        self.assertEqual(tag.size, 10 + 10 + 6 + 1024)

    def test_extended_header(self):
        ext = b"\x00\x00\x00\x06" + b"\x00" * 6
        data = make_tag([ext, make_frame("TIT2", b"\x00Title")], flags=0x40)
        tag = read_id3(BytesIO(data))
        self.assertEqual(tag.text_frames, [TextFrame("TIT2", "Title")])

    def test_compressed_frame(self):
        import zlib

        payload = b"\x00Compressed"
        data = struct.pack(">I", len(payload)) + zlib.compress(payload)
        frames = [make_frame("TIT2", data, flags=0x0080)]
        tag = read_id3(BytesIO(make_tag(frames)))
        self.assertEqual(tag.text_frames[0].text, "Compressed")

    def test_encrypted_frame(self):
        frames = [make_frame("TIT2", b"\x01\x00Title", flags=0x0040)]
        self.assertRaises(ID3EncryptionUnsupportedError,
                          read_id3, BytesIO(make_tag(frames)))

    def test_not_id3(self):
        filename = self.temp(b"fLaC" + b"\x00" * 20)
        self.assertRaises(ID3NoHeaderError, read_id3, filename)
        self.assertRaises(MalformedHeaderError, read_id3, filename)

    def test_truncated_tag(self):
        data = make_tag([make_frame("TIT2", b"\x00Title")])
        self.assertRaises(TruncatedStreamError, read_id3, BytesIO(data[:-2]))

    def test_frame_larger_than_tag(self):
        frame = b"TIT2" + struct.pack(">IH", 100, 0) + b"\x00Title"
        self.assertRaises(
            TruncatedStreamError, read_id3, BytesIO(make_tag([frame])))

    def test_bad_encoding(self):
        frames = [make_frame("TIT2", b"\x03Title")]
        self.assertRaises(
            InvalidEncodingError, read_id3, BytesIO(make_tag(frames)))

    def test_missing_file(self):
        self.assertRaises(error, read_id3, "/dev/null/nope.mp3")

    def test_failed_load_keeps_content(self):
        tag = read_id3(BytesIO(make_tag([make_frame("TIT2", b"\x00A")])))
        bad = make_tag([make_frame("TIT2", b"\x00B"),
                        make_frame("TPE1", b"\x07C")])
        self.assertRaises(InvalidEncodingError, tag.load, BytesIO(bad))
        self.assertEqual(tag.text_frames, [TextFrame("TIT2", "A")])


class TWriteID3(ID3FileTest):

    def test_scenario_latin1_title_rewritten_as_utf16(self):
        filename = self.temp(
            make_tag([make_frame("TIT2", b"\x00Test")]) + AUDIO)
        tag = read_id3(filename)
        write_id3(filename, tag)

        payload = b"\x01\xff\xfeT\x00e\x00s\x00t\x00"
        expected = make_tag([make_frame("TIT2", payload)]) + AUDIO
        self.assertEqual(read_file(filename), expected)

        tag = read_id3(filename)
        self.assertEqual(tag.text_frames, [TextFrame("TIT2", "Test")])
        self.assertEqual(tag.text_frames[0].encoding, Encoding.UTF16)

    def test_scenario_apic_compact(self):
        filename = self.temp(make_tag([]) + AUDIO)
        tag = ID3Tag()
        tag.pictures.append(
            APIC(mime="image/png", type=PictureType.COVER_FRONT, desc="",
                 data=b"\x89PNG"))
        write_id3(filename, tag)

        data = read_file(filename)
        self.assertTrue(b"\x00image/png\x00\x03\x00\x89PNG" in data)
        self.assertFalse(b"\xff\xfe" in data[:-len(AUDIO)])

        apic = read_id3(filename).pictures[0]
        self.assertEqual(apic.desc, "")
        self.assertEqual(apic.encoding, Encoding.LATIN1)
        self.assertEqual(apic.data, b"\x89PNG")

    def test_write_order(self):
        filename = self.temp(make_tag([]) + AUDIO)
        tag = ID3Tag()
        tag.pictures.append(APIC(mime="image/png", data=b"x"))
        tag.comments.append(COMM(lang="eng", text="c"))
        tag.lyrics.append(USLT(lang="eng", text="l"))
        tag.involved_people.extend(["a", "b"])
        tag.user_defined_frames.append(WXXX(desc="w", url="http://w"))
        tag.user_defined_frames.append(TXXX(desc="t", text="t"))
        tag.url_frames.append(UrlFrame("WOAR", "http://a"))
        tag.text_frames.append(TextFrame("TIT2", "t"))
        tag.text_frames.append(TextFrame("TPE1", "p"))
        write_id3(filename, tag)

        self.assertEqual(
            parse_frame_ids(read_file(filename)),
            ["TIT2", "TPE1", "WOAR", "WXXX", "TXXX", "IPLS", "USLT", "COMM",
             "APIC"])

    def test_single_ipls(self):
        data = make_tag([
            make_frame("IPLS", b"\x00a\x00b\x00"),
            make_frame("IPLS", b"\x00c\x00"),
        ]) + AUDIO
        filename = self.temp(data)
        write_id3(filename, read_id3(filename))
        data = read_file(filename)
        self.assertEqual(parse_frame_ids(data), ["IPLS"])
        self.assertEqual(read_id3(filename).involved_people, ["a", "b", "c"])

    def test_no_ipls_without_people(self):
        filename = self.temp(make_tag([]) + AUDIO)
        tag = ID3Tag()
        tag.text_frames.append(TextFrame("TIT2", "t"))
        write_id3(filename, tag)
        self.assertEqual(parse_frame_ids(read_file(filename)), ["TIT2"])

    def test_roundtrip(self):
        filename = self.temp(make_tag([], padding=10) + AUDIO)
        tag = ID3Tag()
        tag.text_frames.extend([
            TextFrame("TIT2", "Tïtle ☃"), TextFrame("TPE1", "Ärtist"),
            TextFrame("TPE1", "Second")])
        tag.url_frames.append(UrlFrame("WCOM", "http://example.com/buy"))
        tag.user_defined_frames.extend([
            TXXX(desc="REPLAYGAIN_TRACK_GAIN", text="-6.00 dB"),
            WXXX(desc="", url="http://example.com")])
        tag.involved_people.extend(["mixer", "Jane Doe"])
        tag.lyrics.append(USLT(lang="eng", desc="", text="line 1\nline 2"))
        tag.comments.append(COMM(lang="deu", desc="kommentar", text="ß"))
        tag.pictures.extend([
            APIC(mime="image/jpeg", type=PictureType.COVER_FRONT, desc="",
                 data=b"\xff\xd8\xff\xe0" * 10),
            APIC(mime="image/png", type=PictureType.COVER_BACK,
                 desc="Back ☃", data=b"\x89PNG\r\n\x1a\n")])
        write_id3(filename, tag)

        self.assertReallyEqual(read_id3(filename), tag)
        self.assertTrue(read_file(filename).endswith(AUDIO))

    def test_shrink_preserves_audio(self):
        frames = [make_frame("TIT2", b"\x00" + b"x" * 500)]
        filename = self.temp(make_tag(frames, padding=2048) + AUDIO)
        tag = ID3Tag()
        tag.text_frames.append(TextFrame("TIT2", "short"))
        write_id3(filename, tag)

        data = read_file(filename)
        self.assertTrue(data.endswith(AUDIO))
        self.assertEqual(len(data), read_id3(filename).size + len(AUDIO))

    def test_grow_preserves_audio(self):
        filename = self.temp(make_tag([]) + AUDIO)
        tag = ID3Tag()
        tag.pictures.append(APIC(mime="image/png", data=b"\x00" * 100000))
        write_id3(filename, tag)

        data = read_file(filename)
        self.assertTrue(data.endswith(AUDIO))
        self.assertEqual(read_id3(filename).pictures[0].data,
                         b"\x00" * 100000)

    def test_empty_tag(self):
        filename = self.temp(
            make_tag([make_frame("TIT2", b"\x00a")]) + AUDIO)
        write_id3(filename, ID3Tag())
        self.assertEqual(read_file(filename),
                         b"ID3\x03\x00\x00\x00\x00\x00\x00" + AUDIO)

    def test_save_to_loaded_filename(self):
        filename = self.temp(make_tag([]) + AUDIO)
        tag = ID3Tag(filename)
        tag.text_frames.append(TextFrame("TALB", "Album"))
        tag.save()
        self.assertEqual(read_id3(filename).text_frames[0].text, "Album")

    def test_save_fileobj(self):
        fileobj = BytesIO(make_tag([], padding=100) + AUDIO)
        tag = ID3Tag()
        tag.text_frames.append(TextFrame("TALB", "Album"))
        write_id3(fileobj, tag)
        fileobj.seek(0)
        self.assertEqual(read_id3(fileobj), tag)
        self.assertTrue(fileobj.getvalue().endswith(AUDIO))

    def test_existing_tag_of_other_version(self):
        # only the magic is required, the old tag gets replaced as a whole
        filename = self.temp(make_tag([], version=b"\x04\x00") + AUDIO)
        tag = ID3Tag()
        tag.text_frames.append(TextFrame("TIT2", "t"))
        write_id3(filename, tag)
        self.assertEqual(read_id3(filename), tag)

    def test_no_id3_leaves_file(self):
        data = b"\xff\xfb" + b"\x00" * 50
        filename = self.temp(data)
        self.assertRaises(ID3NoHeaderError, write_id3, filename, ID3Tag())
        self.assertEqual(read_file(filename), data)

    def test_old_tag_truncated(self):
        data = make_tag([], padding=100)[:50]
        filename = self.temp(data)
        self.assertRaises(TruncatedStreamError, write_id3, filename, ID3Tag())
        self.assertEqual(read_file(filename), data)

    def test_serialize_error_leaves_file(self):
        data = make_tag([make_frame("TIT2", b"\x00a")]) + AUDIO
        filename = self.temp(data)
        tag = ID3Tag()
        tag.url_frames.append(UrlFrame("WOAR", "http://☃.example"))
        self.assertRaises(InvalidEncodingError, write_id3, filename, tag)
        self.assertEqual(read_file(filename), data)

    def test_read_only_fileobj(self):
        data = make_tag([]) + AUDIO
        filename = self.temp(data)
        tag = ID3Tag()
        tag.text_frames.append(TextFrame("TIT2", "t"))
        with open(filename, "rb") as h:
            self.assertRaises(ValueError, write_id3, h, tag)
        self.assertEqual(read_file(filename), data)

    def test_null_in_text_rejected(self):
        self.assertRaises(ValueError, TextFrame, "TIT2", "a\x00")
        self.assertRaises(ValueError, TXXX, desc="a\x00b", text="c")
        self.assertRaises(ValueError, UrlFrame, "WOAR", "http://\x00")
        self.assertRaises(ValueError, IPLS, people=["x\x00y"])
        frame = COMM(lang="eng", text="c")
        self.assertRaises(ValueError, setattr, frame, "desc", "\x00")
        self.assertEqual(frame.desc, "")

    def test_null_in_involved_people_leaves_file(self):
        data = make_tag([make_frame("TIT2", b"\x00a")]) + AUDIO
        filename = self.temp(data)
        tag = ID3Tag()
        tag.involved_people.append("x\x00y")
        self.assertRaises(ValueError, write_id3, filename, tag)
        self.assertEqual(read_file(filename), data)

    def test_null_read_then_save_leaves_file(self):
        data = make_tag([make_frame("TPE1", b"\x00a\x00b")]) + AUDIO
        filename = self.temp(data)
        tag = read_id3(filename)
        self.assertEqual(tag.text_frames[0].text, "a\x00b")
        self.assertRaises(ValueError, write_id3, filename, tag)
        self.assertEqual(read_file(filename), data)

    def test_frame_size_not_synchsafe(self):
        filename = self.temp(make_tag([]) + AUDIO)
        tag = ID3Tag()
        tag.text_frames.append(TextFrame("TIT2", "x" * 100))
        write_id3(filename, tag)
        data = read_file(filename)
        # 1 + 2 + 200 payload bytes, 0xCB has the high bit set
        self.assertEqual(data[14:18], b"\x00\x00\x00\xcb")


class TID3Tag(TestCase):

    def test_add(self):
        tag = ID3Tag()
        tag.add(TextFrame("TIT2", "a"))
        tag.add(UrlFrame("WOAR", "b"))
        tag.add(TXXX(desc="c", text="d"))
        tag.add(IPLS(people=["e", "f"]))
        tag.add(USLT(lang="eng", text="g"))
        tag.add(COMM(lang="eng", text="h"))
        tag.add(APIC(data=b"i"))
        self.assertEqual(len(tag.text_frames), 1)
        self.assertEqual(len(tag.url_frames), 1)
        self.assertEqual(len(tag.user_defined_frames), 1)
        self.assertEqual(tag.involved_people, ["e", "f"])
        self.assertEqual(len(tag.lyrics), 1)
        self.assertEqual(len(tag.comments), 1)
        self.assertEqual(len(tag.pictures), 1)

    def test_add_bad(self):
        self.assertRaises(TypeError, ID3Tag().add, "TIT2")

    def test_empty(self):
        tag = ID3Tag()
        self.assertEqual(tag.size, 0)
        self.assertEqual(tag.pprint(), "")
        self.assertReallyEqual(tag, ID3Tag())

    def test_ne(self):
        tag = ID3Tag()
        tag.involved_people.append("a")
        self.assertReallyNotEqual(tag, ID3Tag())

    def test_pprint(self):
        tag = ID3Tag()
        tag.text_frames.append(TextFrame("TIT2", "Title"))
        tag.url_frames.append(UrlFrame("WOAR", "http://a"))
        tag.user_defined_frames.append(TXXX(desc="k", text="v"))
        tag.involved_people.extend(["a", "b"])
        tag.comments.append(COMM(lang="eng", text="c"))
        tag.pictures.append(APIC(mime="image/png", desc="d", data=b"123"))
        self.assertEqual(tag.pprint().splitlines(), [
            "TIT2=Title",
            "WOAR=http://a",
            "TXXX=k=v",
            "IPLS=a/b",
            "COMM=[eng]=c",
            "APIC=d (image/png, 3 bytes)",
        ])

    def test_repr(self):
        tag = ID3Tag()
        tag.text_frames.append(TextFrame("TIT2", "Title"))
        self.assertEqual(repr(tag), "<ID3Tag frames=1>")


texts = st.text(
    st.characters(exclude_categories=["Cs"], exclude_characters="\x00"),
    max_size=20)
latin1_texts = st.text(
    st.characters(max_codepoint=0xFF, exclude_characters="\x00"),
    max_size=20)
langs = st.sampled_from(["eng", "deu", "XXX"])

frames = {
    "text_frames": st.builds(
        TextFrame, st.sampled_from(["TIT2", "TPE1", "TALB", "TCON"]),
        texts),
    "url_frames": st.builds(
        UrlFrame, st.sampled_from(["WOAR", "WCOM", "WPUB"]), latin1_texts),
    "user_defined_frames": st.one_of(
        st.builds(TXXX, desc=texts, text=texts),
        st.builds(WXXX, desc=texts, url=latin1_texts)),
    "lyrics": st.builds(USLT, lang=langs, desc=texts, text=texts),
    "comments": st.builds(COMM, lang=langs, desc=texts, text=texts),
    "pictures": st.builds(
        APIC, mime=latin1_texts, type=st.integers(0, 255),
        desc=st.one_of(st.just(""), texts), data=st.binary(max_size=32)),
}


@st.composite
def id3_tags(draw):
    tag = ID3Tag()
    for attr, strategy in frames.items():
        getattr(tag, attr).extend(draw(st.lists(strategy, max_size=3)))
    tag.involved_people.extend(draw(st.lists(texts, max_size=3)))
    return tag


class TID3Roundtrip(TestCase):

    @given(id3_tags())
    def test_write_read(self, tag):
        fileobj = BytesIO(make_tag([], padding=16) + AUDIO)
        write_id3(fileobj, tag)
        self.assertTrue(fileobj.getvalue().endswith(AUDIO))
        self.assertReallyEqual(read_id3(fileobj), tag)

    @given(id3_tags())
    def test_rewrite_is_stable(self, tag):
        fileobj = BytesIO(make_tag([]) + AUDIO)
        write_id3(fileobj, tag)
        data = fileobj.getvalue()
        write_id3(fileobj, read_id3(fileobj))
        self.assertEqual(fileobj.getvalue(), data)
