"""Structural text heuristics for PDF byte streams.

Nothing here decompresses or parses the object graph. The scan looks for
text-showing operators inside ``BT``/``ET`` blocks and for word-like runs
inside raw ``stream`` sections, which is enough for simple uncompressed
documents and cheap enough to try before the OCR fallback.
"""
from __future__ import annotations

_MIN_TOKEN_LENGTH = 2
_MIN_HEX_LINE_LENGTH = 10
_MIN_STREAM_WORD_LENGTH = 3
_STREAM_WORD_ALNUM_RATIO = 0.7

_LITERAL_ESCAPES = (
    ("\\(", "("),
    ("\\)", ")"),
    ("\\\\", "\\"),
    ("\\n", "\n"),
    ("\\r", "\r"),
    ("\\t", "\t"),
)


def decode_literal_string(text: str) -> str:
    for escaped, plain in _LITERAL_ESCAPES:
        text = text.replace(escaped, plain)
    return text


def decode_hex_string(hex_text: str) -> str | None:
    """Decode ``<48656C6C6F>`` style strings, keeping printable ASCII only.

    Returns None when the digit count is odd.
    """
    compact = hex_text.replace(" ", "").replace("\n", "").replace("\r", "")
    if len(compact) % 2 != 0:
        return None

    chars: list[str] = []
    for index in range(0, len(compact), 2):
        try:
            value = int(compact[index : index + 2], 16)
        except ValueError:
            continue
        if 32 <= value <= 126:
            chars.append(chr(value))
    return "".join(chars)


def _is_ascii_alnum(char: str) -> bool:
    return ("a" <= char <= "z") or ("A" <= char <= "Z") or ("0" <= char <= "9")


def _tokens_from_text_block(block: str) -> list[str]:
    tokens: list[str] = []
    for raw_line in block.split("\n"):
        line = raw_line.strip()

        if "(" in line and ")" in line:
            start = line.index("(")
            end = line.rindex(")")
            if start < end:
                text = decode_literal_string(line[start + 1 : end])
                if len(text) > _MIN_TOKEN_LENGTH:
                    tokens.append(text)

        if "<" in line and ">" in line and len(line) > _MIN_HEX_LINE_LENGTH:
            start = line.index("<")
            end = line.rindex(">")
            if start < end:
                decoded = decode_hex_string(line[start + 1 : end])
                if decoded is not None and len(decoded) > _MIN_TOKEN_LENGTH:
                    tokens.append(decoded)
    return tokens


def _text_block_tokens(content: str) -> list[str]:
    tokens: list[str] = []
    cursor = 0
    while True:
        begin = content.find("BT", cursor)
        if begin == -1:
            break
        end = content.find("ET", begin)
        if end == -1:
            break
        tokens.extend(_tokens_from_text_block(content[begin + 2 : end]))
        cursor = end + 2
    return tokens


def _stream_word_tokens(content: str) -> list[str]:
    tokens: list[str] = []
    cursor = 0
    while True:
        begin = content.find("stream", cursor)
        if begin == -1:
            break
        end = content.find("endstream", begin)
        if end == -1:
            break
        for word in content[begin + 6 : end].split():
            if len(word) <= _MIN_STREAM_WORD_LENGTH:
                continue
            readable = sum(1 for char in word if _is_ascii_alnum(char))
            if readable / len(word) > _STREAM_WORD_ALNUM_RATIO:
                tokens.append(word)
        cursor = end + 9
    return tokens


def extract_text_heuristically(data: bytes) -> str:
    """Return whitespace-collapsed text recovered from raw PDF bytes.

    The result may be empty or very short; callers decide whether it is
    good enough.
    """
    content = data.decode("latin-1")
    tokens = _text_block_tokens(content)
    tokens.extend(_stream_word_tokens(content))
    return " ".join(" ".join(tokens).split())
