"""Reader for PowerShell ``param (...)`` blocks.

Produces a small declaration model (parameters, their attributes and the
attributes' arguments, each with a source extent) without needing a PowerShell
runtime. Only the parts of the language that can appear in a parameter block
are understood; everything else is skipped as opaque text while keeping
strings, comments and bracket nesting balanced.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass

_WORD_CHARS = re.compile(r"[\w-]")
_VARIABLE = re.compile(r"\$(?:\{[^}]*\}|[\w:?]+)")
_NAMED_ARG = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)\s*=(?!=)\s*(.*)", re.DOTALL)
_BARE_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}


class ParamBlockSyntaxError(ValueError):
    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(f"{line}:{column}: {message}")
        self.message = message
        self.line = line
        self.column = column


@dataclass(frozen=True)
class Extent:
    start_line: int
    start_column: int
    end_line: int
    end_column: int
    text: str


@dataclass(frozen=True)
class NamedArgument:
    name: str
    value_text: str
    expression_omitted: bool
    extent: Extent


@dataclass(frozen=True)
class Attribute:
    name: str
    named_arguments: tuple[NamedArgument, ...]
    positional_arguments: tuple[str, ...]
    is_type_constraint: bool
    extent: Extent


@dataclass(frozen=True)
class Parameter:
    name: str
    attributes: tuple[Attribute, ...]
    default_text: str | None
    extent: Extent


@dataclass(frozen=True)
class ParamBlock:
    parameters: tuple[Parameter, ...]
    extent: Extent


class _Source:
    def __init__(self, text: str) -> None:
        self.text = text
        self._line_starts = [0] + [m.end() for m in re.finditer(r"\n", text)]

    def position(self, offset: int) -> tuple[int, int]:
        index = bisect.bisect_right(self._line_starts, offset) - 1
        return index + 1, offset - self._line_starts[index] + 1

    def extent(self, start: int, end: int) -> Extent:
        start_line, start_column = self.position(start)
        end_line, end_column = self.position(end)
        return Extent(start_line, start_column, end_line, end_column, self.text[start:end])

    def error(self, message: str, offset: int) -> ParamBlockSyntaxError:
        line, column = self.position(offset)
        return ParamBlockSyntaxError(message, line, column)

    def skip_opaque(self, i: int) -> int | None:
        """Return the offset past a comment, string or escape starting at ``i``, else None."""
        text = self.text
        if text.startswith("<#", i):
            end = text.find("#>", i + 2)
            if end < 0:
                raise self.error("unterminated block comment", i)
            return end + 2
        ch = text[i]
        if ch == "#":
            end = text.find("\n", i)
            return len(text) if end < 0 else end
        if ch == "`":
            return min(i + 2, len(text))
        if text.startswith("@'", i) or text.startswith('@"', i):
            if _here_string_opens(text, i + 2):
                return self._skip_here_string(i)
        if ch == "'":
            return self._skip_single_quoted(i)
        if ch == '"':
            return self._skip_double_quoted(i)
        return None

    def _skip_single_quoted(self, i: int) -> int:
        text = self.text
        j = i + 1
        while j < len(text):
            if text[j] == "'":
                if j + 1 < len(text) and text[j + 1] == "'":
                    j += 2
                    continue
                return j + 1
            j += 1
        raise self.error("unterminated string", i)

    def _skip_double_quoted(self, i: int) -> int:
        text = self.text
        j = i + 1
        while j < len(text):
            ch = text[j]
            if ch == "`":
                j += 2
                continue
            if ch == '"':
                if j + 1 < len(text) and text[j + 1] == '"':
                    j += 2
                    continue
                return j + 1
            j += 1
        raise self.error("unterminated string", i)

    def _skip_here_string(self, i: int) -> int:
        quote = self.text[i + 1]
        match = re.compile(r"\n[ \t]*" + re.escape(quote) + "@").search(self.text, i + 2)
        if match is None:
            raise self.error("unterminated here-string", i)
        return match.end()

    def skip_trivia(self, i: int, end: int) -> int:
        text = self.text
        while i < end:
            ch = text[i]
            if ch.isspace():
                i += 1
                continue
            if ch == "#" or text.startswith("<#", i):
                skipped = self.skip_opaque(i)
                assert skipped is not None
                i = skipped
                continue
            if ch == "`" and i + 1 < end and text[i + 1] in "\r\n":
                i += 2
                continue
            break
        return min(i, end)

    def rstrip(self, start: int, end: int) -> int:
        while end > start and self.text[end - 1].isspace():
            end -= 1
        return end

    def code_end(self, start: int, end: int) -> int:
        """Return the offset past the last character in ``[start, end)`` that is not whitespace or a comment."""
        text = self.text
        last = start
        i = start
        while i < end:
            if text[i] == "`" and text[i + 1:i + 2] in ("\r", "\n"):
                i += 2
                continue
            skipped = self.skip_opaque(i)
            if skipped is not None:
                if text[i] != "#" and not text.startswith("<#", i):
                    last = min(skipped, end)
                i = skipped
                continue
            if not text[i].isspace():
                last = i + 1
            i += 1
        return last

    def code_text(self, start: int, end: int) -> str:
        """Source text of ``[start, end)`` with each comment replaced by a single space."""
        text = self.text
        parts: list[str] = []
        seg = i = start
        while i < end:
            if text[i] == "#" or text.startswith("<#", i):
                skipped = self.skip_opaque(i)
                assert skipped is not None
                parts.append(text[seg:i])
                parts.append(" ")
                seg = i = min(skipped, end)
                continue
            skipped = self.skip_opaque(i)
            i = skipped if skipped is not None else i + 1
        parts.append(text[seg:end])
        return "".join(parts)

    def find_closing(self, open_at: int) -> int:
        text = self.text
        stack = [_OPENERS[text[open_at]]]
        i = open_at + 1
        while i < len(text):
            skipped = self.skip_opaque(i)
            if skipped is not None:
                i = skipped
                continue
            ch = text[i]
            if ch in _OPENERS:
                stack.append(_OPENERS[ch])
            elif ch in _CLOSERS:
                expected = stack.pop()
                if ch != expected:
                    raise self.error(f"expected `{expected}` but found `{ch}`", i)
                if not stack:
                    return i
            i += 1
        raise self.error(f"unbalanced `{text[open_at]}`", open_at)

    def split_top_level(self, start: int, end: int) -> list[tuple[int, int]]:
        spans: list[tuple[int, int]] = []
        text = self.text
        seg_start = start
        i = start
        while i < end:
            skipped = self.skip_opaque(i)
            if skipped is not None:
                i = skipped
                continue
            ch = text[i]
            if ch in _OPENERS:
                i = self.find_closing(i) + 1
                continue
            if ch == ",":
                spans.append((seg_start, i))
                seg_start = i + 1
            i += 1
        spans.append((seg_start, end))
        return spans


def _here_string_opens(text: str, i: int) -> bool:
    j = i
    while j < len(text) and text[j] in " \t":
        j += 1
    return j < len(text) and text[j] in "\r\n"


def _is_word_start(text: str, i: int) -> bool:
    if i == 0:
        return True
    prev = text[i - 1]
    return not (_WORD_CHARS.match(prev) or prev in "$.:")


def parse_param_blocks(text: str) -> list[ParamBlock]:
    src = _Source(text)
    blocks: list[ParamBlock] = []
    i = 0
    while i < len(text):
        skipped = src.skip_opaque(i)
        if skipped is not None:
            i = skipped
            continue
        if text[i].isalpha() and _is_word_start(text, i):
            j = i
            while j < len(text) and _WORD_CHARS.match(text[j]):
                j += 1
            if text[i:j].lower() == "param":
                k = src.skip_trivia(j, len(text))
                if k < len(text) and text[k] == "(":
                    close = src.find_closing(k)
                    blocks.append(_parse_block(src, i, k, close))
                    i = close + 1
                    continue
            i = j
            continue
        i += 1
    return blocks


def find_closing_bracket(text: str, open_at: int) -> int:
    """Offset of the bracket closing the one at ``open_at``, skipping strings and comments."""
    return _Source(text).find_closing(open_at)


def iter_parameters(text: str) -> list[Parameter]:
    return [param for block in parse_param_blocks(text) for param in block.parameters]


def _parse_block(src: _Source, keyword_at: int, open_at: int, close_at: int) -> ParamBlock:
    parameters: list[Parameter] = []
    for seg_start, seg_end in src.split_top_level(open_at + 1, close_at):
        start = src.skip_trivia(seg_start, seg_end)
        if start >= seg_end:
            if parameters or src.text[seg_end:seg_end + 1] == ",":
                raise src.error("empty parameter declaration", seg_start)
            continue
        parameters.append(_parse_parameter(src, start, seg_end))
    return ParamBlock(parameters=tuple(parameters), extent=src.extent(keyword_at, close_at + 1))


def _parse_parameter(src: _Source, start: int, end: int) -> Parameter:
    text = src.text
    attributes: list[Attribute] = []
    i = start
    while i < end and text[i] == "[":
        close = src.find_closing(i)
        attributes.append(_parse_attribute(src, i, close))
        i = src.skip_trivia(close + 1, end)
    match = _VARIABLE.match(text, i, end)
    if match is None:
        raise src.error("expected a parameter variable", i)
    name = match.group(0)[1:].strip("{}")
    stop = match.end()
    default_text: str | None = None
    rest = src.skip_trivia(match.end(), end)
    if rest < end:
        if text[rest] != "=":
            raise src.error(f"unexpected `{text[rest]}` after parameter ${name}", rest)
        value_start = src.skip_trivia(rest + 1, end)
        stop = src.code_end(value_start, end)
        if value_start >= stop:
            raise src.error(f"missing default value for parameter ${name}", rest)
        default_text = src.code_text(value_start, stop)
    return Parameter(
        name=name,
        attributes=tuple(attributes),
        default_text=default_text,
        extent=src.extent(start, stop),
    )


def _parse_attribute(src: _Source, open_at: int, close_at: int) -> Attribute:
    text = src.text
    inner_start = src.skip_trivia(open_at + 1, close_at)
    paren = -1
    i = inner_start
    while i < close_at:
        ch = text[i]
        if ch == "(":
            paren = i
            break
        if ch == "[":
            i = src.find_closing(i) + 1
            continue
        i += 1
    extent = src.extent(open_at, close_at + 1)
    if paren < 0:
        name = text[inner_start:src.rstrip(inner_start, close_at)]
        return Attribute(name=name, named_arguments=(), positional_arguments=(), is_type_constraint=True, extent=extent)
    name = text[inner_start:src.rstrip(inner_start, paren)]
    args_close = src.find_closing(paren)
    tail = src.skip_trivia(args_close + 1, close_at)
    if tail != close_at:
        raise src.error(f"unexpected text after arguments of attribute `{name}`", tail)
    named: list[NamedArgument] = []
    positional: list[str] = []
    for seg_start, seg_end in src.split_top_level(paren + 1, args_close):
        arg_start = src.skip_trivia(seg_start, seg_end)
        arg_end = src.code_end(arg_start, seg_end)
        if arg_start >= arg_end:
            continue
        arg_text = src.code_text(arg_start, arg_end)
        arg_extent = src.extent(arg_start, arg_end)
        assignment = _NAMED_ARG.fullmatch(arg_text)
        if assignment is not None:
            named.append(NamedArgument(assignment.group(1), assignment.group(2).strip(), False, arg_extent))
        elif _BARE_NAME.fullmatch(arg_text):
            named.append(NamedArgument(arg_text, "", True, arg_extent))
        else:
            positional.append(arg_text)
    return Attribute(
        name=name,
        named_arguments=tuple(named),
        positional_arguments=tuple(positional),
        is_type_constraint=False,
        extent=extent,
    )


__all__ = [
    "Attribute",
    "Extent",
    "NamedArgument",
    "ParamBlock",
    "ParamBlockSyntaxError",
    "Parameter",
    "find_closing_bracket",
    "iter_parameters",
    "parse_param_blocks",
]
