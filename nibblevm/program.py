"""Program text parsing.

A program is one nibble per line. Lines accept hex (0xA), binary (0b1010),
octal (0o12) or decimal (10) literals, case-insensitively. Anything after '#',
';' or '//' is a comment, and lines that are empty once comments are removed
are skipped.
"""

import logging
import re
from typing import Iterable

from nibblevm.exceptions import ProgramParseError
from nibblevm.types import Nibble

logger = logging.getLogger(__name__)

NIBBLE_MAX = 0xF

_COMMENT_RE = re.compile(r'(#|;|//).*$')
_LITERAL_RE = re.compile(r'^(0x[0-9a-f]+|0b[01]+|0o[0-7]+|[0-9]+)$')


def strip_comment(line: str) -> str:
    return _COMMENT_RE.sub('', line).strip()


def parse_nibble(token: str, line: int = 1) -> Nibble:
    """Parse one literal into a nibble.

    Args:
        token: Literal text, already stripped of comments and whitespace
        line: 1-based line number used in error messages

    Returns:
        Integer in [0, 15]

    Raises:
        ProgramParseError: token is not a literal or is out of range
    """
    text = token.lower().replace('_', '')
    if not _LITERAL_RE.match(text):
        raise ProgramParseError(line, token, 'not a numeric literal')
    # Leading zeros on plain decimals are fine, int(x, 0) would reject them
    value = int(text, 0) if text[:2] in ('0x', '0b', '0o') else int(text, 10)
    if value > NIBBLE_MAX:
        raise ProgramParseError(line, token, f'value {value} does not fit in a nibble')
    return value


def parse_program(text: str) -> list[Nibble]:
    """Parse program text into a list of nibbles, one per non-blank line."""
    nibbles: list[Nibble] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        token = strip_comment(raw)
        if not token:
            continue
        nibbles.append(parse_nibble(token, lineno))
    logger.debug(f'Parsed {len(nibbles)} nibbles from {len(text.splitlines())} lines')
    return nibbles


def check_nibbles(values: Iterable[int]) -> list[Nibble]:
    """Validate an already numeric program.

    Raises:
        ProgramParseError: a value is not an int in [0, 15]. The line number is
            the 1-based position in the sequence.
    """
    nibbles: list[Nibble] = []
    for position, value in enumerate(values, start=1):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ProgramParseError(position, repr(value), 'not an integer')
        if not 0 <= value <= NIBBLE_MAX:
            raise ProgramParseError(position, repr(value), f'value {value} does not fit in a nibble')
        nibbles.append(value)
    return nibbles
