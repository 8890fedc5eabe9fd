"""
RouterOS API wire protocol.

Wire format:
  Sentence = Word+ ZeroWord
  Word     = Length Data
  ZeroWord = 0x00
  Length   = variable, 1-5 bytes

  value < 0x80         1 byte   0xxxxxxx
  value < 0x4000       2 bytes  10xxxxxx ...
  value < 0x200000     3 bytes  110xxxxx ...
  value < 0x10000000   4 bytes  1110xxxx ...
  otherwise            5 bytes  0xF0 + 4-byte big-endian length

Reply types:
  !re    = one data row
  !done  = command completed
  !trap  = error (command is still terminated by !done)
  !fatal = fatal error, the router closes the connection
"""
import asyncio
import hashlib
import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from modules.routeros.exceptions import ProtocolError

REPLY_TYPES = ("!re", "!done", "!trap", "!fatal")


# ─── Length Encoding ──────────────────────────────────────────────────────────

def encode_length(length: int) -> bytes:
    if length < 0:
        raise ValueError(f"negative word length: {length}")
    if length < 0x80:
        return struct.pack("B", length)
    elif length < 0x4000:
        return struct.pack(">H", length | 0x8000)
    elif length < 0x200000:
        return struct.pack(">I", length | 0xC00000)[1:]
    elif length < 0x10000000:
        return struct.pack(">I", length | 0xE0000000)
    elif length <= 0xFFFFFFFF:
        return b"\xF0" + struct.pack(">I", length)
    raise ValueError(f"word too long: {length} bytes")


def length_prefix_size(first_byte: int) -> int:
    """Total prefix size (including the first byte) announced by `first_byte`."""
    if first_byte < 0x80:
        return 1
    if first_byte < 0xC0:
        return 2
    if first_byte < 0xE0:
        return 3
    if first_byte < 0xF0:
        return 4
    if first_byte == 0xF0:
        return 5
    # 0xF8..0xFF are control bytes, never lengths
    raise ProtocolError(f"invalid length prefix byte 0x{first_byte:02X}")


def decode_length(prefix: bytes) -> int:
    """Decode a complete length prefix as produced by encode_length()."""
    if not prefix:
        raise ProtocolError("empty length prefix")
    size = length_prefix_size(prefix[0])
    if len(prefix) != size:
        raise ProtocolError(f"length prefix needs {size} bytes, got {len(prefix)}")
    if size == 1:
        return prefix[0]
    if size == 2:
        return struct.unpack(">H", prefix)[0] & 0x3FFF
    if size == 3:
        return struct.unpack(">I", b"\x00" + prefix)[0] & 0x1FFFFF
    if size == 4:
        return struct.unpack(">I", prefix)[0] & 0x0FFFFFFF
    return struct.unpack(">I", prefix[1:])[0]


# ─── Word / Sentence Encoding ─────────────────────────────────────────────────

def encode_word(word: str) -> bytes:
    data = word.encode("utf-8")
    if not data:
        # A zero-length word is the sentence terminator
        raise ValueError("empty word cannot be encoded inside a sentence")
    return encode_length(len(data)) + data


def encode_sentence(words: Sequence[str]) -> bytes:
    if not words:
        raise ValueError("a sentence needs at least one word")
    return b"".join(encode_word(w) for w in words) + b"\x00"


# ─── Sentence Decoding ────────────────────────────────────────────────────────

async def _read_exactly(reader: asyncio.StreamReader, n: int) -> bytes:
    try:
        return await reader.readexactly(n)
    except asyncio.IncompleteReadError as e:
        raise ProtocolError(
            f"connection closed after {len(e.partial)} of {n} bytes"
        ) from e


async def read_word(reader: asyncio.StreamReader) -> str:
    """Read one word; returns "" for the sentence terminator."""
    first = await _read_exactly(reader, 1)
    size = length_prefix_size(first[0])
    prefix = first + (await _read_exactly(reader, size - 1) if size > 1 else b"")
    length = decode_length(prefix)
    if length == 0:
        return ""
    data = await _read_exactly(reader, length)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        # Older RouterOS builds send comments in the router's codepage
        return data.decode("latin-1")


async def decode_sentence(reader: asyncio.StreamReader) -> List[str]:
    """
    Read one full sentence from `reader`.

    Suspends until the terminating zero-length word arrives. Raises
    ProtocolError on a malformed prefix, on premature EOF, and on an empty
    sentence (a terminator with no words before it).
    """
    words: List[str] = []
    while True:
        word = await read_word(reader)
        if word == "":
            break
        words.append(word)
    if not words:
        raise ProtocolError("empty sentence")
    return words


# ─── Commands and Replies ─────────────────────────────────────────────────────

def format_value(value: Any) -> str:
    if value is True:
        return "yes"
    if value is False:
        return "no"
    if value is None:
        return ""
    return str(value)


def build_command(
    command: str,
    params: Optional[Mapping[str, Any]] = None,
    words: Sequence[str] = (),
    tag: Union[int, str, None] = None,
) -> List[str]:
    """
    Build the word list of a command sentence.

    `params` become attribute words (=key=value); `words` are appended as-is
    (query words like ?name=bob, or pre-formatted =key=value words).
    """
    if not command.startswith("/"):
        raise ValueError(f"command must start with '/': {command!r}")
    sentence = [command]
    if params:
        for key, value in params.items():
            sentence.append(f"={key}={format_value(value)}")
    sentence.extend(words)
    if tag is not None:
        sentence.append(f".tag={tag}")
    return sentence


@dataclass
class Reply:
    type: str
    tag: Optional[str] = None
    attrs: Dict[str, str] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return self.attrs.get("message", "")


def parse_reply(words: Sequence[str]) -> Reply:
    """Parse one reply sentence into a Reply. Raises ProtocolError on an unknown type."""
    reply_type = words[0] if words else ""
    if reply_type not in REPLY_TYPES:
        raise ProtocolError(f"unexpected reply word: {reply_type!r}")

    reply = Reply(type=reply_type)
    for word in words[1:]:
        if word.startswith(".tag="):
            reply.tag = word[5:]
        elif word.startswith("="):
            # =key=value; the value may itself contain '='
            key, sep, value = word[1:].partition("=")
            reply.attrs[key] = value if sep else ""
        elif reply_type == "!fatal":
            # !fatal carries its reason as a bare word
            reply.attrs.setdefault("message", word)
    return reply


# ─── Login ────────────────────────────────────────────────────────────────────

def md5_challenge_response(password: str, challenge_hex: str) -> str:
    """
    Legacy (pre 6.43) RouterOS login:
      "00" + hex(MD5(0x00 + password + challenge))
    """
    try:
        challenge = bytes.fromhex(challenge_hex)
    except ValueError as e:
        raise ProtocolError(f"invalid login challenge: {challenge_hex!r}") from e
    h = hashlib.md5()
    h.update(b"\x00")
    h.update(password.encode("utf-8"))
    h.update(challenge)
    return "00" + h.hexdigest()
