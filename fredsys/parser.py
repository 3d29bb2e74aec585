"""Tokenizer for the whitespace/comma separated configuration files."""

from __future__ import annotations

import re
from os import PathLike

MAX_LINES = 256
MAX_TOKENS = 64
MAX_TOKEN_LEN = 256

SEPARATORS = " ,\t\n"
COMMENT = "#"

_SPLIT_RE = re.compile(f"[{re.escape(SEPARATORS)}]+")


class ParserError(Exception):
    """Raised when a configuration file cannot be read or tokenized."""


def tokenize_line(line: str) -> list[str]:
    """Split one line into tokens; blank and comment lines give an empty list."""
    line = line.split("\n", 1)[0]
    tokens = [tok for tok in _SPLIT_RE.split(line) if tok]
    if not tokens or tokens[0].startswith(COMMENT):
        return []
    if len(tokens) > MAX_TOKENS:
        raise ParserError(f"too many tokens on line: {len(tokens)} > {MAX_TOKENS}")
    return [tok[:MAX_TOKEN_LEN] for tok in tokens]


def tokenize_text(text: str) -> list[list[str]]:
    """Tokenize every meaningful line of a text, skipping blanks and comments."""
    lines: list[list[str]] = []
    for raw in text.split("\n"):
        tokens = tokenize_line(raw)
        if not tokens:
            continue
        if len(lines) >= MAX_LINES:
            raise ParserError(f"too many lines: more than {MAX_LINES}")
        lines.append(tokens)
    return lines


def tokenize_file(path: str | PathLike[str]) -> list[list[str]]:
    """Read and tokenize a configuration file."""
    try:
        with open(path, encoding="utf-8", newline="") as handle:
            text = handle.read()
    except OSError as exc:
        raise ParserError(f"error while opening file: {path}") from exc
    try:
        return tokenize_text(text)
    except ParserError as exc:
        raise ParserError(f"error while parsing file: {path}: {exc}") from exc