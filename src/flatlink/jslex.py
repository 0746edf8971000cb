# src/flatlink/jslex.py
"""Lossless tokenizer for compiled JavaScript units.

Every pass that recognizes a syntactic shape (scaffolding statements,
native imports, qualified references) works on these tokens instead of raw
text, so string literals, comments, regex literals and template text can
never be matched by accident. Concatenating the `text` of all tokens
reproduces the input exactly.

Template literals are split into chunks: the literal parts are opaque
`template` tokens and the `${ ... }` substitutions are tokenized as normal
code, so references inside substitutions are still visible to the passes.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

# --- token kinds -------------------------------------------------------------

WS = "ws"
NL = "nl"
COMMENT = "comment"
STRING = "string"
TEMPLATE = "template"
REGEX = "regex"
IDENT = "ident"
NUMBER = "number"
PUNCT = "punct"

TRIVIA = frozenset({WS, NL, COMMENT})

# --- lexical grammar ---------------------------------------------------------

_NBSP, _BOM, _LS, _PS = chr(0xA0), chr(0xFEFF), chr(0x2028), chr(0x2029)
_NON_ASCII = f"{chr(0x80)}-{chr(0xFFFF)}"

_WS_RE = re.compile(rf"[ \t\f\v{_NBSP}{_BOM}]+")
_NL_RE = re.compile(rf"\r\n|[\n\r{_LS}{_PS}]")
_IDENT_RE = re.compile(rf"[A-Za-z_${_NON_ASCII}][A-Za-z0-9_${_NON_ASCII}]*")
_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F_]+n?"
    r"|0[oO][0-7_]+n?"
    r"|0[bB][01_]+n?"
    r"|(?:\d[\d_]*(?:\.[\d_]*)?|\.\d[\d_]*)(?:[eE][+-]?\d[\d_]*)?n?"
)
_PUNCTUATORS = sorted(
    [
        ">>>=", "...", "===", "!==", "**=", "<<=", ">>=", ">>>", "&&=", "||=",
        "??=", "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--",
        "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
    ],
    key=len,
    reverse=True,
)  # fmt: skip

# keywords after which a `/` starts a regex literal rather than a division
_REGEX_AFTER_KEYWORDS = frozenset(
    {
        "return", "typeof", "instanceof", "in", "of", "new", "delete", "void",
        "throw", "case", "do", "else", "yield", "await",
    }
)  # fmt: skip

_LINE_BREAKS = f"\n\r{_LS}{_PS}"


class LexError(ValueError):
    """Raised when compiled text cannot be tokenized."""

    def __init__(self, message: str, pos: int, source: str) -> None:
        line = source.count("\n", 0, pos) + 1
        col = pos - (source.rfind("\n", 0, pos) + 1) + 1
        self.pos = pos
        self.line = line
        self.column = col
        super().__init__(f"{message} (line {line}, column {col})")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    @property
    def is_trivia(self) -> bool:
        return self.kind in TRIVIA

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.text!r}@{self.start})"


# --- scanners ----------------------------------------------------------------


def _scan_string(src: str, pos: int) -> int:
    quote = src[pos]
    i = pos + 1
    while i < len(src):
        ch = src[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch in _LINE_BREAKS:
            break
        i += 1
    raise LexError("Unterminated string literal", pos, src)


def _scan_template_chunk(src: str, pos: int) -> tuple[int, bool]:
    """Scan from just after '`' or '}' to the end of a literal chunk.

    Returns (end, closed): closed is True when the chunk ends the template
    and False when it stops at a `${` substitution.
    """
    i = pos
    while i < len(src):
        ch = src[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "`":
            return i + 1, True
        if ch == "$" and src.startswith("{", i + 1):
            return i + 2, False
        i += 1
    raise LexError("Unterminated template literal", pos, src)


def _scan_regex(src: str, pos: int) -> int:
    i = pos + 1
    in_class = False
    while i < len(src):
        ch = src[i]
        if ch == "\\":
            i += 2
            continue
        if ch in _LINE_BREAKS:
            break
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            i += 1
            while i < len(src) and (src[i].isalnum() or src[i] in "_$"):
                i += 1
            return i
        i += 1
    raise LexError("Unterminated regular expression literal", pos, src)


def _regex_allowed(prev: Token | None) -> bool:
    if prev is None:
        return True
    if prev.kind == PUNCT:
        return prev.text not in (")", "]", "}")
    if prev.kind == IDENT:
        return prev.text in _REGEX_AFTER_KEYWORDS
    if prev.kind == TEMPLATE:
        # `${` opens an expression; a closing chunk ends one
        return prev.text.endswith("${")
    return False


def tokenize(source: str) -> list[Token]:  # noqa: C901, PLR0912, PLR0915
    """Split compiled JavaScript into a lossless list of tokens."""
    tokens: list[Token] = []
    prev: Token | None = None  # last significant token
    brace_depth = 0
    template_stack: list[int] = []  # brace depth at each open `${`
    pos = 0
    n = len(source)

    def push(kind: str, end: int) -> Token:
        nonlocal pos
        tok = Token(kind, source[pos:end], pos)
        tokens.append(tok)
        pos = end
        return tok

    while pos < n:
        ch = source[pos]

        if m := _WS_RE.match(source, pos):
            push(WS, m.end())
            continue
        if m := _NL_RE.match(source, pos):
            push(NL, m.end())
            continue

        # shebang only at the very start
        if pos == 0 and source.startswith("#!"):
            end = pos
            while end < n and source[end] not in _LINE_BREAKS:
                end += 1
            push(COMMENT, end)
            continue

        if source.startswith("//", pos):
            end = pos
            while end < n and source[end] not in _LINE_BREAKS:
                end += 1
            push(COMMENT, end)
            continue
        if source.startswith("/*", pos):
            end = source.find("*/", pos + 2)
            if end < 0:
                raise LexError("Unterminated block comment", pos, source)
            push(COMMENT, end + 2)
            continue

        if ch in "\"'":
            prev = push(STRING, _scan_string(source, pos))
            continue

        if ch == "`":
            end, closed = _scan_template_chunk(source, pos + 1)
            if not closed:
                template_stack.append(brace_depth)
            prev = push(TEMPLATE, end)
            continue

        if ch == "}" and template_stack and template_stack[-1] == brace_depth:
            end, closed = _scan_template_chunk(source, pos + 1)
            if closed:
                template_stack.pop()
            prev = push(TEMPLATE, end)
            continue

        if ch == "/" and _regex_allowed(prev):
            prev = push(REGEX, _scan_regex(source, pos))
            continue

        if m := _IDENT_RE.match(source, pos):
            prev = push(IDENT, m.end())
            continue

        if ch.isdigit() or (ch == "." and source[pos + 1 : pos + 2].isdigit()):
            m = _NUMBER_RE.match(source, pos)
            if m:
                prev = push(NUMBER, m.end())
                continue

        for punct in _PUNCTUATORS:
            if source.startswith(punct, pos):
                # `?.5` is a conditional followed by a number
                if punct == "?." and source[pos + 2 : pos + 3].isdigit():
                    continue
                prev = push(PUNCT, pos + len(punct))
                break
        else:
            if ch == "{":
                brace_depth += 1
            elif ch == "}":
                brace_depth -= 1
            prev = push(PUNCT, pos + 1)

    if template_stack:
        raise LexError("Unterminated template substitution", n, source)
    return tokens


def render(tokens: Iterable[Token]) -> str:
    return "".join(t.text for t in tokens)


# --- structural view ---------------------------------------------------------

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_OPENERS.values())


def _opens(tok: Token) -> bool:
    if tok.kind == PUNCT:
        return tok.text in _OPENERS
    return tok.kind == TEMPLATE and tok.text.endswith("${")


def _closes(tok: Token) -> bool:
    if tok.kind == PUNCT:
        return tok.text in _CLOSERS
    return tok.kind == TEMPLATE and tok.text.startswith("}")


class TokenStream:
    """Significant-token view over a token list, with nesting depth.

    Indices used by the query helpers (`k`) address the significant
    tokens; `index(k)` maps back into the full token list.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.sig: list[int] = [i for i, t in enumerate(tokens) if not t.is_trivia]
        self.depth: list[int] = []
        depth = 0
        for i in self.sig:
            tok = tokens[i]
            if _closes(tok):
                depth -= 1
            self.depth.append(depth)
            if _opens(tok):
                depth += 1

    @classmethod
    def from_source(cls, source: str) -> TokenStream:
        return cls(tokenize(source))

    def __len__(self) -> int:
        return len(self.sig)

    def tok(self, k: int) -> Token | None:
        if 0 <= k < len(self.sig):
            return self.tokens[self.sig[k]]
        return None

    def text(self, k: int) -> str | None:
        tok = self.tok(k)
        return tok.text if tok is not None else None

    def kind(self, k: int) -> str | None:
        tok = self.tok(k)
        return tok.kind if tok is not None else None

    def index(self, k: int) -> int:
        return self.sig[k]

    def is_ident(self, k: int, name: str | None = None) -> bool:
        tok = self.tok(k)
        if tok is None or tok.kind != IDENT:
            return False
        return name is None or tok.text == name

    def is_punct(self, k: int, text: str) -> bool:
        tok = self.tok(k)
        return tok is not None and tok.kind == PUNCT and tok.text == text

    def is_member_access(self, k: int) -> bool:
        """True if the token at k follows `.` or `?.` (a property name)."""
        return self.is_punct(k - 1, ".") or self.is_punct(k - 1, "?.")

    def expression_position(self, k: int) -> bool:
        """True if an expression (not an operand continuation) may start at k."""
        return _regex_allowed(self.tok(k - 1) if k > 0 else None)

    def line_break_before(self, k: int) -> bool:
        if k <= 0:
            return True
        lo = self.sig[k - 1] + 1
        return any(t.kind == NL for t in self.tokens[lo : self.sig[k]]) or any(
            t.kind == COMMENT and "\n" in t.text for t in self.tokens[lo : self.sig[k]]
        )

    def statement_starts(self) -> Iterator[int]:
        """Yield significant indices where a top-level statement may begin."""
        for k in range(len(self.sig)):
            if self.depth[k] != 0 or _closes(self.tokens[self.sig[k]]):
                continue
            if k == 0:
                yield k
                continue
            prev = self.tok(k - 1)
            if prev is None:
                continue
            if prev.kind == PUNCT and prev.text in (";", "}"):
                yield k
            elif self.line_break_before(k) and (
                prev.kind in (IDENT, NUMBER, STRING, REGEX)
                or (prev.kind == TEMPLATE and prev.text.endswith("`"))
                or (prev.kind == PUNCT and prev.text in (")", "]", "++", "--"))
            ):
                yield k

    def matching_close(self, k: int) -> int | None:
        """Return the index of the token closing the bracket opened at k."""
        start_depth = self.depth[k]
        for j in range(k + 1, len(self.sig)):
            if self.depth[j] == start_depth and _closes(self.tokens[self.sig[j]]):
                return j
            if self.depth[j] < start_depth:
                return None
        return None

    def statement_end(self, k: int) -> int | None:
        """Return the index of the `;` ending the statement starting at k."""
        start_depth = self.depth[k]
        for j in range(k, len(self.sig)):
            if self.depth[j] < start_depth:
                return None
            if self.depth[j] == start_depth and self.is_punct(j, ";"):
                return j
        return None

    def source_between(self, k_first: int, k_last: int) -> str:
        """Exact source text from significant token k_first to k_last inclusive."""
        return render(self.tokens[self.sig[k_first] : self.sig[k_last] + 1])

    def line_of(self, k: int) -> str:
        """The full source line holding significant token k, for diagnostics."""
        i = self.sig[k]
        lo = i
        while lo > 0 and self.tokens[lo - 1].kind != NL:
            lo -= 1
        hi = i
        while hi + 1 < len(self.tokens) and self.tokens[hi + 1].kind != NL:
            hi += 1
        return render(self.tokens[lo : hi + 1])


# --- editing -----------------------------------------------------------------


@dataclass(frozen=True)
class Edit:
    """Replace tokens[first:last + 1] (full-list indices) with `text`."""

    first: int
    last: int
    text: str = ""


def removal(stream: TokenStream, k_first: int, k_last: int) -> Edit:
    """Build an Edit that deletes a statement.

    When the statement occupies whole lines, its indentation and trailing
    line break go with it; otherwise only the statement tokens are removed.
    """
    tokens = stream.tokens
    first = stream.index(k_first)
    last = stream.index(k_last)

    lo = first
    while lo > 0 and tokens[lo - 1].kind == WS:
        lo -= 1
    at_line_start = lo == 0 or tokens[lo - 1].kind == NL

    hi = last
    while hi + 1 < len(tokens) and tokens[hi + 1].kind == WS:
        hi += 1
    at_line_end = hi + 1 == len(tokens) or tokens[hi + 1].kind == NL

    if at_line_start and at_line_end:
        if hi + 1 < len(tokens):
            hi += 1  # the line break
        return Edit(lo, hi)
    return Edit(first, last)


def apply_edits(tokens: list[Token], edits: Iterable[Edit]) -> str:
    """Render tokens with non-overlapping edits applied."""
    ordered = sorted(edits, key=lambda e: e.first)
    out: list[str] = []
    pos = 0
    for edit in ordered:
        if edit.first < pos:
            xmsg = f"Overlapping edits at token {edit.first}"
            raise ValueError(xmsg)
        out.append(render(tokens[pos : edit.first]))
        out.append(edit.text)
        pos = edit.last + 1
    out.append(render(tokens[pos:]))
    return "".join(out)


def string_value(text: str) -> str:
    """Contents of a string literal token, with quote and backslash escapes undone."""
    inner = text[1:-1]
    if "\\" not in inner:
        return inner
    return re.sub(r"\\(.)", r"\1", inner)
