"""Encoding detection and conversion for working-copy and repository text.

Detection order for a raw byte buffer:

1. Byte-order mark (UTF-8, UTF-16 LE/BE). Decisive.
2. Strict UTF-8 decode.
3. Configured regional encodings, in order. A candidate is accepted only if
   it decodes strictly *and* the text contains at least one character of
   that encoding's script, so an encoding that merely fails to error is not
   taken.
4. UTF-8 with replacement characters.

Process output from ``svn`` goes through ``decode_output()`` instead, which
falls back to charset-normalizer when the stream is not valid UTF-8.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from pathlib import Path

from charset_normalizer import from_bytes

from ..config import EncodingSettings

logger = logging.getLogger(__name__)

UTF8 = "utf-8"
UTF8_BOM = "utf-8-sig"
UTF16_LE = "utf-16-le"
UTF16_BE = "utf-16-be"

_BOM_TAGS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF8, UTF8_BOM),
    (codecs.BOM_UTF16_LE, UTF16_LE),
    (codecs.BOM_UTF16_BE, UTF16_BE),
)

_UTF8_ALIASES = frozenset({"utf_8", "utf_8_sig"})

# ---------------------------------------------------------------------------
# Script ranges per regional encoding
# ---------------------------------------------------------------------------

_CJK_IDEOGRAPHS = ((0x4E00, 0x9FFF), (0x3400, 0x4DBF), (0xF900, 0xFAFF))
_CJK_PUNCTUATION = ((0x3000, 0x303F), (0xFF00, 0xFFEF))
_KANA = ((0x3040, 0x309F), (0x30A0, 0x30FF))
_BOPOMOFO = ((0x3100, 0x312F),)
_HANGUL = ((0xAC00, 0xD7AF), (0x1100, 0x11FF), (0x3130, 0x318F))
_CYRILLIC = ((0x0400, 0x04FF),)
_GREEK = ((0x0370, 0x03FF),)
_HEBREW = ((0x0590, 0x05FF),)
_ARABIC = ((0x0600, 0x06FF),)
_THAI = ((0x0E00, 0x0E7F),)

# GB encodings carry the tone-marked pinyin letters as double-byte codes
_PINYIN_LETTERS = frozenset("āáǎàēéěèīíǐìōóǒòūúǔùǖǘǚǜüêɑńňǹɡ")

_CHINESE = _CJK_IDEOGRAPHS + _CJK_PUNCTUATION

SCRIPT_RANGES: dict[str, tuple[tuple[int, int], ...]] = {
    "gbk": _CHINESE,
    "gb2312": _CHINESE,
    "gb18030": _CHINESE,
    "hz": _CHINESE,
    "big5": _CHINESE + _BOPOMOFO,
    "big5hkscs": _CHINESE + _BOPOMOFO,
    "cp950": _CHINESE + _BOPOMOFO,
    "shift_jis": _CHINESE + _KANA,
    "cp932": _CHINESE + _KANA,
    "euc_jp": _CHINESE + _KANA,
    "iso2022_jp": _CHINESE + _KANA,
    "euc_kr": _HANGUL + _CJK_IDEOGRAPHS,
    "cp949": _HANGUL + _CJK_IDEOGRAPHS,
    "johab": _HANGUL + _CJK_IDEOGRAPHS,
    "cp1251": _CYRILLIC,
    "koi8_r": _CYRILLIC,
    "koi8_u": _CYRILLIC,
    "iso8859_5": _CYRILLIC,
    "cp1253": _GREEK,
    "iso8859_7": _GREEK,
    "cp1255": _HEBREW,
    "iso8859_8": _HEBREW,
    "cp1256": _ARABIC,
    "iso8859_6": _ARABIC,
    "cp874": _THAI,
    "tis_620": _THAI,
}

_PINYIN_CODECS = frozenset({"gbk", "gb2312", "gb18030"})


def canonical_codec(name: str) -> str:
    """Return Python's codec name with underscores, or *name* if unknown."""
    try:
        return codecs.lookup(name).name.replace("-", "_")
    except LookupError:
        return name


def has_script_characters(text: str, encoding: str) -> bool:
    """Return True if *text* contains a character of *encoding*'s script.

    Encodings without a registered script accept any non-ASCII character;
    pure ASCII never reaches this check because it is valid UTF-8.
    """
    codec = canonical_codec(encoding)
    ranges = SCRIPT_RANGES.get(codec)
    if ranges is None:
        return any(ord(ch) > 0x7F for ch in text)
    for ch in text:
        point = ord(ch)
        if any(low <= point <= high for low, high in ranges):
            return True
        if codec in _PINYIN_CODECS and ch in _PINYIN_LETTERS:
            return True
    return False


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def sniff_bom(buffer: bytes) -> str | None:
    """Return the encoding tag implied by a leading BOM, if any."""
    for bom, tag in _BOM_TAGS:
        if buffer.startswith(bom):
            return tag
    return None


def is_valid_utf8(buffer: bytes) -> bool:
    try:
        buffer.decode(UTF8, errors="strict")
    except UnicodeDecodeError:
        return False
    return True


def detect_regional(
    buffer: bytes, candidates: tuple[str, ...] | list[str]
) -> str | None:
    """Return the first candidate that decodes cleanly into its own script."""
    for candidate in candidates:
        if canonical_codec(candidate) in _UTF8_ALIASES:
            continue
        try:
            text = buffer.decode(candidate, errors="strict")
        except (UnicodeDecodeError, LookupError):
            continue
        if has_script_characters(text, candidate):
            logger.debug("Detected regional encoding %s", candidate)
            return candidate
    return None


def detect(buffer: bytes, settings: EncodingSettings | None = None) -> str:
    """Return the encoding tag for *buffer*.

    Never raises: when nothing matches, UTF-8 is returned and ``decode``
    renders invalid sequences as replacement characters.
    """
    settings = settings or EncodingSettings()

    if not settings.enable_encoding_detection:
        if settings.default_file_encoding == "auto":
            return UTF8
        return settings.default_file_encoding

    if settings.default_file_encoding != "auto":
        logger.debug(
            "Using configured encoding %s", settings.default_file_encoding
        )
        return settings.default_file_encoding

    bom_tag = sniff_bom(buffer)
    if bom_tag is not None:
        return bom_tag

    if is_valid_utf8(buffer):
        return UTF8

    regional = detect_regional(buffer, settings.encoding_fallbacks)
    if regional is not None:
        return regional

    logger.warning(
        "No candidate encoding decoded %d bytes cleanly; using lossy UTF-8",
        len(buffer),
    )
    return UTF8


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def decode(buffer: bytes, tag: str) -> str:
    """Decode *buffer* as *tag*, stripping any byte-order mark."""
    match tag:
        case "utf-8-sig":
            return buffer.decode(UTF8_BOM, errors="replace")
        case "utf-16-le":
            if buffer.startswith(codecs.BOM_UTF16_LE):
                buffer = buffer[len(codecs.BOM_UTF16_LE) :]
            return buffer.decode(UTF16_LE, errors="replace")
        case "utf-16-be":
            if buffer.startswith(codecs.BOM_UTF16_BE):
                buffer = buffer[len(codecs.BOM_UTF16_BE) :]
            return buffer.decode(UTF16_BE, errors="replace")
        case _:
            try:
                return buffer.decode(tag, errors="replace")
            except LookupError:
                logger.warning("Unknown encoding %s; decoding as UTF-8", tag)
                return buffer.decode(UTF8, errors="replace")


def encode(text: str, tag: str) -> bytes:
    """Encode *text* as *tag*, restoring the BOM for BOM-carrying tags."""
    match tag:
        case "utf-8-sig":
            return codecs.BOM_UTF8 + text.encode(UTF8)
        case "utf-16-le":
            return codecs.BOM_UTF16_LE + text.encode(UTF16_LE)
        case "utf-16-be":
            return codecs.BOM_UTF16_BE + text.encode(UTF16_BE)
        case _:
            return text.encode(tag)


@dataclass(frozen=True)
class DecodedText:
    """Canonical text plus the facts needed to describe where it came from."""

    text: str
    encoding: str
    byte_length: int


def decode_bytes(
    buffer: bytes, settings: EncodingSettings | None = None
) -> DecodedText:
    tag = detect(buffer, settings)
    return DecodedText(
        text=decode(buffer, tag), encoding=tag, byte_length=len(buffer)
    )


def read_text(
    path: Path, settings: EncodingSettings | None = None
) -> DecodedText:
    """Read a file from disk and decode it with automatic detection."""
    return decode_bytes(path.read_bytes(), settings)


def decode_output(raw: bytes) -> str:
    """Decode svn process output.

    svn runs under a UTF-8 locale, so its output is normally valid UTF-8.
    When it is not (file content piped through ``svn cat``/``svn diff`` in a
    regional encoding), charset-normalizer picks the most plausible codec.
    """
    if not raw:
        return ""
    try:
        return raw.decode(UTF8, errors="strict")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        logger.debug("charset-normalizer found no match; lossy UTF-8 output")
        return raw.decode(UTF8, errors="replace")
    logger.debug("Process output decoded as %s", result.encoding)
    return str(result)
