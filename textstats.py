#!/usr/bin/env python3
"""
Streaming text classification for WhitespaceStats.

Decides whether a file is text or binary, which encoding its byte-order
marker implies, and counts line endings and leading/trailing whitespace
per logical line.
"""

import codecs
import io
from dataclasses import asdict, dataclass
from enum import Enum
from typing import BinaryIO, Iterable, Optional

# Characters decoded per read when streaming a file
CHUNK_SIZE = 8192

DEFAULT_CODEC = "utf-8"


class Encoding(Enum):
    """Encodings recognised by their byte-order marker."""

    UTF_8 = (b"\xef\xbb\xbf", "utf-8", "UTF-8")
    UTF_16_BE = (b"\xfe\xff", "utf-16-be", "UTF-16 (big-endian)")
    UTF_16_LE = (b"\xff\xfe", "utf-16-le", "UTF-16 (little-endian)")
    UTF_32_BE = (b"\x00\x00\xfe\xff", "utf-32-be", "UTF-32 (big-endian)")
    UTF_32_LE = (b"\xff\xfe\x00\x00", "utf-32-le", "UTF-32 (little-endian)")

    def __init__(self, preamble: bytes, codec: str, label: str) -> None:
        self.preamble = preamble
        self.codec = codec
        self.label = label


# Enum iteration order is the sniffing priority
PREAMBLE_PRIORITY = tuple(Encoding)


def sniff_encoding(stream: BinaryIO) -> Optional[Encoding]:
    """
    Return the encoding whose byte-order marker starts the stream, or None.

    The stream's read position is left where it was found.
    """
    original_position: int = stream.tell()
    try:
        length: int = stream.seek(0, io.SEEK_END)
        for encoding in PREAMBLE_PRIORITY:
            if length < len(encoding.preamble):
                continue
            stream.seek(0)
            if stream.read(len(encoding.preamble)) == encoding.preamble:
                return encoding
        return None
    finally:
        stream.seek(original_position)


@dataclass(frozen=True)
class TextStatistics:
    """Per-file line and character counts."""

    all_lines: int = 0
    lf_lines: int = 0
    crlf_lines: int = 0
    leading_spaces_lines: int = 0
    leading_tabs_lines: int = 0
    leading_mixed_lines: int = 0
    non_leading_tabs_lines: int = 0
    trailing_whitespace_lines: int = 0
    sole_cr_lines: int = 0
    all_characters: int = 0
    non_printable_characters: int = 0


@dataclass
class _Counters:
    """Mutable tally owned by a single analysis run."""

    all_lines: int = 0
    lf_lines: int = 0
    crlf_lines: int = 0
    leading_spaces_lines: int = 0
    leading_tabs_lines: int = 0
    leading_mixed_lines: int = 0
    non_leading_tabs_lines: int = 0
    trailing_whitespace_lines: int = 0
    sole_cr_lines: int = 0
    all_characters: int = 0
    non_printable_characters: int = 0

    def freeze(self) -> TextStatistics:
        return TextStatistics(**asdict(self))


class CharacterClassifier:
    """Counts characters and flags the non-printable ones."""

    def __init__(self, counters: _Counters) -> None:
        self._counters = counters

    def feed(self, c: str) -> None:
        self._counters.all_characters += 1
        if not (c >= " " or c in "\t\n\r"):
            self._counters.non_printable_characters += 1


class LineClassifier:
    """Tracks whitespace flags for the current line."""

    def __init__(self, counters: _Counters) -> None:
        self._counters = counters
        self._reset()

    def _reset(self) -> None:
        self.past_leading: bool = False
        self.leading_spaces: bool = False
        self.leading_tabs: bool = False
        self.trailing_whitespace: bool = False
        self.non_leading_tab: bool = False
        self.sole_cr: bool = False

    def feed(self, c: str) -> None:
        is_space: bool = c.isspace()

        if not self.past_leading:
            if c == " ":
                self.leading_spaces = True
            elif c == "\t":
                self.leading_tabs = True
            elif not is_space:
                self.past_leading = True
            # Other whitespace (form feed, sole CR, ...) stays in the
            # leading region without being counted as spaces or tabs.
        elif c == "\t":
            self.non_leading_tab = True

        # Only the last character of the line decides this
        self.trailing_whitespace = is_space

        # A CR only gets here when it was not followed by LF
        if c == "\r":
            self.sole_cr = True

    def line_done(self) -> None:
        counters = self._counters
        if self.leading_spaces and self.leading_tabs:
            counters.leading_mixed_lines += 1
        elif self.leading_spaces:
            counters.leading_spaces_lines += 1
        elif self.leading_tabs:
            counters.leading_tabs_lines += 1

        counters.all_lines += 1
        if self.trailing_whitespace:
            counters.trailing_whitespace_lines += 1
        if self.non_leading_tab:
            counters.non_leading_tabs_lines += 1
        if self.sole_cr:
            counters.sole_cr_lines += 1

        self._reset()


class LineBoundaryDetector:
    """
    Splits a character stream into logical lines.

    One character is held back until the next one is seen, so that a CR
    followed by LF is taken as a single CRLF terminator while any other CR
    is passed on to the line classifier as content.
    """

    def __init__(self, counters: _Counters, line_classifier: LineClassifier) -> None:
        self._counters = counters
        self._line_classifier = line_classifier
        self._pending: Optional[str] = None

    def feed(self, c: str) -> None:
        if c == "\n":
            if self._pending == "\r":
                self._counters.crlf_lines += 1
            else:
                if self._pending is not None:
                    self._line_classifier.feed(self._pending)
                self._counters.lf_lines += 1
            self._pending = None
            self._line_classifier.line_done()
        else:
            if self._pending is not None:
                self._line_classifier.feed(self._pending)
            self._pending = c

    def file_done(self) -> None:
        """Flush a final line that has no terminator."""
        if self._pending is not None:
            self._line_classifier.feed(self._pending)
            self._pending = None
            self._line_classifier.line_done()


def analyze_text(chars: Iterable[str]) -> TextStatistics:
    """Classify an already decoded character stream."""
    counters = _Counters()
    character_classifier = CharacterClassifier(counters)
    line_detector = LineBoundaryDetector(counters, LineClassifier(counters))

    for chunk in chars:
        # Chunks of any length are accepted; order is what matters
        for c in chunk:
            character_classifier.feed(c)
            line_detector.feed(c)
    line_detector.file_done()

    return counters.freeze()


@dataclass(frozen=True)
class FileCharacteristics:
    """Result of analysing one file."""

    is_text: bool
    encoding: Optional[Encoding] = None
    statistics: Optional[TextStatistics] = None

    @property
    def type_name(self) -> str:
        if not self.is_text:
            return "Binary"
        if self.encoding is not None:
            return self.encoding.label
        return "Any 8 bit text"


def _decode_chunks(stream: BinaryIO, codec: str) -> Iterable[str]:
    raw_chunks = iter(lambda: stream.read(CHUNK_SIZE), b"")
    return codecs.iterdecode(raw_chunks, codec, errors="replace")


def _content_encoding(stream: BinaryIO, detected: Encoding) -> Encoding:
    """Encoding used to decode the content after the byte-order marker."""
    if detected is Encoding.UTF_16_LE:
        # The UTF-32 LE marker starts with the UTF-16 LE one
        stream.seek(0)
        utf32_le = Encoding.UTF_32_LE.preamble
        if stream.read(len(utf32_le)) == utf32_le:
            return Encoding.UTF_32_LE
    return detected


def analyze_stream(stream: BinaryIO) -> FileCharacteristics:
    """
    Analyse a seekable binary stream from its first byte.

    Bytes that are invalid in the chosen encoding decode to U+FFFD, so a
    file is only reported as binary when it contains control characters.
    A stream starting with the UTF-32 LE marker is sniffed as UTF-16 LE
    but its content is decoded as UTF-32 LE.
    """
    detected: Optional[Encoding] = sniff_encoding(stream)
    if detected is not None:
        content_encoding = _content_encoding(stream, detected)
        codec = content_encoding.codec
        stream.seek(len(content_encoding.preamble))
    else:
        codec = DEFAULT_CODEC
        stream.seek(0)

    statistics: TextStatistics = analyze_text(_decode_chunks(stream, codec))

    if statistics.non_printable_characters == 0:
        return FileCharacteristics(
            is_text=True, encoding=detected, statistics=statistics
        )
    return FileCharacteristics(is_text=False)


def analyze_file(file_path: str) -> FileCharacteristics:
    """Open a file in binary mode and analyse it. OSError propagates."""
    with open(file_path, "rb") as f:
        return analyze_stream(f)
