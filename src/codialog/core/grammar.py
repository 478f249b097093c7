"""Lexical rules of the line-oriented automation script format.

Each command sits on its own line and every argument is double-quoted::

    click "<selector>"
    hover "<selector>"
    type "<selector>" "<value>"
    upload "<selector>" "<path>"

Inside a quoted argument a backslash is written ``\\\\``, a double quote ``\\"``
and line breaks ``\\n`` / ``\\r`` so that one command always stays on one line.
"""

import re
from typing import Dict, List, NamedTuple, Sequence

COMMAND_ARITY: Dict[str, int] = {
    "click": 1,
    "hover": 1,
    "type": 2,
    "upload": 2,
}

COMMENT_MARKERS = ("//", "#")

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
}
_UNESCAPES = {"n": "\n", "r": "\r"}

_TOKEN_PATTERN = re.compile(r'"((?:[^"\\]|\\.)*)"|(\S+)')
_ESCAPE_SEQUENCE = re.compile(r"\\(.)")


def escape_argument(value: str) -> str:
    """Escape a raw argument for use between double quotes."""
    return "".join(_ESCAPES.get(char, char) for char in value)


def unescape_argument(value: str) -> str:
    """Reverse :func:`escape_argument`."""
    return _ESCAPE_SEQUENCE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(1)), value)


def format_command(verb: str, arguments: Sequence[str]) -> str:
    """Render one command line with every argument quoted and escaped."""
    quoted = " ".join(f'"{escape_argument(argument)}"' for argument in arguments)
    return f"{verb} {quoted}" if quoted else verb


def is_ignorable(line: str) -> bool:
    """Blank lines and comment lines carry no command."""
    stripped = line.strip()
    return not stripped or stripped.startswith(COMMENT_MARKERS)


class Token(NamedTuple):
    """One lexical unit of a command line."""
    text: str
    quoted: bool


def lex_line(line: str) -> List[Token]:
    """
    Split a command line into tokens, remembering which ones were double-quoted.

    Quoted tokens are unescaped and may contain whitespace. Anything outside quotes
    is split on whitespace, so an unterminated quote surfaces as a bare token
    starting with ``"``.
    """
    tokens: List[Token] = []
    for match in _TOKEN_PATTERN.finditer(line.strip()):
        quoted, bare = match.groups()
        if quoted is not None:
            tokens.append(Token(unescape_argument(quoted), True))
        else:
            tokens.append(Token(bare, False))
    return tokens


def tokenize_line(line: str) -> List[str]:
    """Split a command line into its verb and unescaped arguments."""
    return [token.text for token in lex_line(line)]


def split_lines(text: str) -> List[str]:
    """Split script text into physical lines (only ``\\n`` separates commands)."""
    return [line.rstrip("\r") for line in text.split("\n")]
