"""XOR checksum shared by the sentence validator and the GGA generator.

The checksum covers every character strictly between the leading ``$`` and
the ``*`` delimiter and is written as two hex digits::

    $GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47
     <------------------------ covered ------------------------>  ^^

Regenerated GGA lines are signed with ``compute_checksum``, so anything this
package emits also passes ``validate_checksum``.
"""

import string

__all__ = ["compute_checksum", "validate_checksum"]

_HEX_DIGITS = frozenset(string.hexdigits)


def _xor(content: str) -> int:
    # code points above 0xFF are folded so stray unicode is a mismatch, not an error
    value = 0
    for character in content:
        value ^= ord(character) & 0xFF
    return value


def _body_and_checksum(sentence: str) -> tuple[str, str] | None:
    """Split ``$<body>*<hh>`` into body and checksum text.

    Returns None unless the sentence starts with ``$``, has exactly one
    ``*`` and exactly two characters after it.
    """
    if not sentence.startswith("$") or sentence.count("*") != 1:
        return None
    body, _, provided = sentence[1:].partition("*")
    if len(provided) != 2:
        return None
    return body, provided


def compute_checksum(content: str) -> str:
    """Two uppercase hex digits for *content*, the text between ``$`` and ``*``.

    Example:
        >>> compute_checksum("GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,")
        '47'
    """
    return f"{_xor(content):02X}"


def validate_checksum(sentence: str) -> bool:
    """Check a complete sentence against its trailing checksum.

    Surrounding whitespace (the CR/LF terminator) is ignored and the hex
    digits are compared case-insensitively.

    Args:
        sentence: A sentence such as ``"$GPGSA,...*39\\r\\n"``.

    Returns:
        False for a mismatch and for anything that is not shaped like
        ``$<body>*<hh>``: missing or repeated delimiters, a truncated or
        padded checksum, or non-hex checksum characters.
    """
    parts = _body_and_checksum(sentence.strip())
    if parts is None:
        return False
    body, provided = parts
    if not all(character in _HEX_DIGITS for character in provided):
        return False
    return _xor(body) == int(provided, 16)
