"""Reader for PowerShell data files (``.psd1`` module manifests)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?(?![\w.])")
_WORD = re.compile(r"[A-Za-z_][\w.-]*")
_VARIABLES = {"true": True, "false": False, "null": None}
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "0": "\0", "a": "\a", "b": "\b", "f": "\f", "v": "\v"}


class DataFileSyntaxError(ValueError):
    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(f"{line}:{column}: {message}")
        self.message = message
        self.line = line
        self.column = column


@dataclass(frozen=True)
class _Token:
    kind: str
    value: Any
    line: int
    column: int


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    line, line_start = 1, 0
    i = 0

    def error(message: str, at: int) -> DataFileSyntaxError:
        return DataFileSyntaxError(message, line, at - line_start + 1)

    while i < len(text):
        ch = text[i]
        col = i - line_start + 1
        if ch == "\n":
            tokens.append(_Token("newline", None, line, col))
            line, line_start = line + 1, i + 1
            i += 1
        elif ch in " \t\r\ufeff":
            i += 1
        elif text.startswith("<#", i):
            end = text.find("#>", i + 2)
            if end < 0:
                raise error("unterminated block comment", i)
            for offset in range(i, end):
                if text[offset] == "\n":
                    line, line_start = line + 1, offset + 1
            i = end + 2
        elif ch == "#":
            end = text.find("\n", i)
            i = len(text) if end < 0 else end
        elif ch == "`" and text[i + 1:i + 2] in ("\n", "\r"):
            i += 3 if text.startswith("\r\n", i + 1) else 2
            line, line_start = line + 1, i
        elif text.startswith("@{", i) or text.startswith("@(", i):
            tokens.append(_Token(text[i:i + 2], None, line, col))
            i += 2
        elif ch in "}),;=":
            tokens.append(_Token(ch, None, line, col))
            i += 1
        elif ch == "'":
            start_line = line
            j = i + 1
            chunks: list[str] = []
            while True:
                if j >= len(text):
                    raise error("unterminated string", i)
                if text[j] == "'":
                    if text[j + 1:j + 2] == "'":
                        chunks.append("'")
                        j += 2
                        continue
                    break
                if text[j] == "\n":
                    line, line_start = line + 1, j + 1
                chunks.append(text[j])
                j += 1
            tokens.append(_Token("string", "".join(chunks), start_line, col))
            i = j + 1
        elif ch == '"':
            start_line = line
            j = i + 1
            chunks = []
            while True:
                if j >= len(text):
                    raise error("unterminated string", i)
                cj = text[j]
                if cj == "`" and j + 1 < len(text):
                    chunks.append(_ESCAPES.get(text[j + 1], text[j + 1]))
                    j += 2
                    continue
                if cj == '"':
                    if text[j + 1:j + 2] == '"':
                        chunks.append('"')
                        j += 2
                        continue
                    break
                if cj == "\n":
                    line, line_start = line + 1, j + 1
                chunks.append(cj)
                j += 1
            tokens.append(_Token("string", "".join(chunks), start_line, col))
            i = j + 1
        elif ch == "$":
            match = _WORD.match(text, i + 1)
            name = match.group(0).lower() if match else ""
            if name not in _VARIABLES:
                raise error(f"unsupported variable `${name}`", i)
            tokens.append(_Token("literal", _VARIABLES[name], line, col))
            i = match.end() if match else i + 1
        elif _NUMBER.match(text, i):
            match = _NUMBER.match(text, i)
            assert match is not None
            raw = match.group(0)
            tokens.append(_Token("literal", float(raw) if "." in raw else int(raw), line, col))
            i = match.end()
        elif _WORD.match(text, i):
            match = _WORD.match(text, i)
            assert match is not None
            tokens.append(_Token("word", match.group(0), line, col))
            i = match.end()
        else:
            raise error(f"unexpected character `{ch}`", i)
    tokens.append(_Token("eof", None, line, len(text) - line_start + 1))
    return tokens


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.pos]

    def advance(self) -> _Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def skip(self, *kinds: str) -> None:
        while self.current.kind in kinds:
            self.pos += 1

    def error(self, message: str, tok: _Token | None = None) -> DataFileSyntaxError:
        tok = tok or self.current
        return DataFileSyntaxError(message, tok.line, tok.column)

    def expect(self, kind: str) -> _Token:
        if self.current.kind != kind:
            raise self.error(f"expected `{kind}` but found `{self.current.kind}`")
        return self.advance()

    def document(self) -> dict[str, Any]:
        self.skip("newline", ";")
        result = self.hashtable()
        self.skip("newline", ";")
        if self.current.kind != "eof":
            raise self.error("unexpected content after the top-level hashtable")
        return result

    def hashtable(self) -> dict[str, Any]:
        self.expect("@{")
        result: dict[str, Any] = {}
        self.skip("newline", ";")
        while self.current.kind != "}":
            key_tok = self.advance()
            if key_tok.kind not in ("word", "string", "literal") or key_tok.value is None:
                raise self.error(f"expected a key but found `{key_tok.kind}`", key_tok)
            key = str(key_tok.value)
            self.expect("=")
            self.skip("newline")
            value, _ = self.value()
            result[key] = value
            if self.current.kind not in ("newline", ";", "}"):
                raise self.error(f"expected a newline or `;` after `{key}`")
            self.skip("newline", ";")
        self.expect("}")
        return result

    def value(self) -> tuple[Any, bool]:
        items = [self.item()]
        while self.current.kind == ",":
            self.advance()
            self.skip("newline")
            items.append(self.item())
        if len(items) == 1:
            return items[0], False
        return items, True

    def item(self) -> Any:
        tok = self.current
        if tok.kind in ("string", "literal"):
            self.advance()
            return tok.value
        if tok.kind == "@{":
            return self.hashtable()
        if tok.kind == "@(":
            return self.array()
        raise self.error(f"unsupported value `{tok.value if tok.value is not None else tok.kind}`")

    def array(self) -> list[Any]:
        self.expect("@(")
        result: list[Any] = []
        self.skip("newline", ";")
        while self.current.kind != ")":
            value, is_list = self.value()
            if is_list:
                result.extend(value)
            else:
                result.append(value)
            if self.current.kind not in ("newline", ";", ",", ")"):
                raise self.error("expected a separator inside `@( )`")
            self.skip("newline", ";", ",")
        self.expect(")")
        return result


def parse_data_file(text: str) -> dict[str, Any]:
    return _Parser(_tokenize(text)).document()


def lookup(mapping: Mapping[str, Any], key: str, default: Any = None) -> Any:
    if key in mapping:
        return mapping[key]
    lowered = key.lower()
    for candidate, value in mapping.items():
        if candidate.lower() == lowered:
            return value
    return default


__all__ = ["DataFileSyntaxError", "lookup", "parse_data_file"]
