## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# cmdsplice — Scanner for the command language, yielding lark tokens on demand.
#

import re

from lark import Token
from lark.lexer import Lexer

from .errors import SpliceSyntaxError, SpliceIncompleteParse


IDENT_RE = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
# `${` directly followed by `name(` opens a command reference, anything else a variable.
CMD_OPEN_RE = re.compile(r'\$\{(?=[A-Za-z_][A-Za-z0-9_]*\()')
VAR_OPEN_RE = re.compile(r'\$(ENV|CACHE)?\{')
VAR_NAME_RE = re.compile(r'[A-Za-z0-9/_.+\-]')
BRACKET_OPEN_RE = re.compile(r'\[(=*)\[')
SPACE_RE = re.compile(r'[ \t\r\n]+')
TOP_LEVEL_TEXT_RE = re.compile(r'[^ \t\r\n#]+')

UNQUOTED_STOP = frozenset(' \t\r\n()#"')
ENCODED_ESCAPES = {'t': '\t', 'n': '\n', 'r': '\r'}


def normalize_source(source: str | bytes) -> str:
    """Drop a leading byte-order mark and fold CRLF pairs into a single newline."""
    if isinstance(source, bytes):
        source = source.decode('utf-8-sig')
    if source.startswith('\ufeff'):
        source = source[1:]
    return source.replace('\r\n', '\n')


class Scanner:
    """Converts normalized source text into a stream of tokens.

    The scanner tracks nesting itself (argument lists, quotes, references), since whether
    a character is text or structure depends on where it appears.  Unbalanced structure
    is reported at the position of the opener that was never closed.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos, self.line, self.column = 0, 1, 1

    # Positions ───────────────────────────────────────────────────────────────────────────────
    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ''

    def _mark(self) -> tuple[int, int, int]:
        return (self.pos, self.line, self.column)

    def _advance(self, count: int = 1) -> str:
        chunk = self.text[self.pos:self.pos+count]
        if (newlines := chunk.count('\n')):
            self.line += newlines
            self.column = len(chunk) - chunk.rfind('\n')
        else:
            self.column += len(chunk)
        self.pos += len(chunk)
        return chunk

    def _token(self, type_: str, value: str, start: tuple[int, int, int]) -> Token:
        pos, line, column = start
        return Token(type_, value, start_pos=pos, line=line, column=column,
                     end_line=self.line, end_column=self.column, end_pos=self.pos)

    def _error(self, message: str, start=None, incomplete: bool = False) -> SpliceSyntaxError:
        pos, line, column = start or self._mark()
        error_class = SpliceIncompleteParse if incomplete else SpliceSyntaxError
        return error_class(message, line=line, column=column, token=self.text[pos:pos+1])

    # Top level ───────────────────────────────────────────────────────────────────────────────
    def scan(self):
        while True:
            self._skip_separation()
            if self._at_end(): return

            start = self._mark()
            if (m := IDENT_RE.match(self.text, self.pos)):
                yield self._token('IDENT', self._advance(m.end() - self.pos), start)
                self._skip_separation()
                if self._peek() == '(':
                    yield from self._arguments()
            else:
                # Not a command name; let the parser report what it expected instead.
                m = TOP_LEVEL_TEXT_RE.match(self.text, self.pos)
                yield self._token('TEXT', self._advance(m.end() - self.pos), start)

    def _skip_separation(self) -> None:
        while not self._at_end():
            if (m := SPACE_RE.match(self.text, self.pos)):
                self._advance(m.end() - self.pos)
            elif self._peek() == '#':
                self._comment()
            else:
                return

    def _comment(self) -> None:
        start = self._mark()
        self._advance()
        if (m := BRACKET_OPEN_RE.match(self.text, self.pos)):
            self._bracket_content(m, start, what='bracket comment')
            return
        end = self.text.find('\n', self.pos)
        self._advance((len(self.text) if end < 0 else end) - self.pos)

    def _bracket_content(self, match: re.Match, start, what: str) -> str:
        close = ']' + match.group(1) + ']'
        self._advance(match.end() - self.pos)
        if (end := self.text.find(close, self.pos)) < 0:
            raise self._error(f"Unterminated {what}, expected `{close}` before end of input.", start, incomplete=True)
        content = self._advance(end - self.pos)
        self._advance(len(close))
        return content[1:] if content.startswith('\n') else content

    # Arguments ───────────────────────────────────────────────────────────────────────────────
    def _arguments(self):
        opener = self._mark()
        yield self._token('LPAR', self._advance(), opener)
        while True:
            self._skip_separation()
            if self._at_end():
                raise self._error("Unbalanced `(`, missing `)` before end of input.", opener, incomplete=True)

            start, ch = self._mark(), self._peek()
            if ch == ')':
                yield self._token('RPAR', self._advance(), start)
                return
            if ch == '(':
                yield from self._arguments()
            elif ch == '"':
                yield from self._quoted()
            elif ch == '[' and (m := BRACKET_OPEN_RE.match(self.text, self.pos)):
                content = self._bracket_content(m, start, what='bracket argument')
                yield self._token('BRACKET', content, start)
            else:
                yield from self._parts(lambda c: c in UNQUOTED_STOP, context='unquoted')
                yield self._token('_ARG_END', '', self._mark())

    def _quoted(self):
        opener = self._mark()
        yield self._token('QUOTE', self._advance(), opener)
        yield from self._parts(lambda c: c == '"', context='quoted')
        if self._at_end():
            raise self._error("Unterminated quoted argument, missing `\"` before end of input.", opener, incomplete=True)
        start = self._mark()
        yield self._token('QUOTE', self._advance(), start)

    def _parts(self, stop, context: str):
        """Yield merged TEXT runs and references until `stop` accepts the next character."""
        chunk, start = [], None
        while not self._at_end() and not stop(ch := self._peek()):
            if ch == '$' and (CMD_OPEN_RE.match(self.text, self.pos) or VAR_OPEN_RE.match(self.text, self.pos)):
                if chunk:
                    yield self._token('TEXT', ''.join(chunk), start)
                    chunk = []
                yield from self._reference()
                continue

            if not chunk: start = self._mark()
            if ch == '\\':
                chunk.append(self._escape(context))
            elif ch == '\0':
                raise self._error("Disallowed character NUL in source.")
            elif context == 'reference' and not VAR_NAME_RE.match(ch):
                raise self._error(f"Invalid character `{ch}` in variable reference, expected a name, `${{` or `}}`.")
            else:
                chunk.append(self._advance())

        if chunk:
            yield self._token('TEXT', ''.join(chunk), start)

    def _escape(self, context: str) -> str:
        start = self._mark()
        self._advance()
        if self._at_end():
            raise self._error("Escape sequence `\\` at end of input.", start, incomplete=True)
        ch = self._peek()
        if ch in ENCODED_ESCAPES:
            self._advance()
            return ENCODED_ESCAPES[ch]
        if ch == ';':
            self._advance()
            return '\\;'
        if ch == '\n' and context == 'quoted':
            self._advance()
            return ''
        if ch.isascii() and ch.isalnum():
            raise self._error(f"Invalid escape sequence `\\{ch}`.", start)
        return self._advance()

    # References ──────────────────────────────────────────────────────────────────────────────
    def _reference(self):
        opener = self._mark()
        if (m := CMD_OPEN_RE.match(self.text, self.pos)):
            yield self._token('_CMD_OPEN', self._advance(m.end() - self.pos), opener)
            start = self._mark()
            m = IDENT_RE.match(self.text, self.pos)
            yield self._token('IDENT', self._advance(m.end() - self.pos), start)
            yield from self._arguments()
            if self._at_end():
                raise self._error("Unterminated command reference, missing `}` before end of input.", opener, incomplete=True)
            if self._peek() != '}':
                raise self._error(f"Expected `}}` to close command reference, found `{self._peek()}`.")
            start = self._mark()
            yield self._token('_REF_CLOSE', self._advance(), start)
            return

        m = VAR_OPEN_RE.match(self.text, self.pos)
        self._advance(m.end() - self.pos)
        yield self._token('VAR_OPEN', m.group(1) or '', opener)
        yield from self._parts(lambda c: c == '}', context='reference')
        if self._at_end():
            raise self._error("Unterminated variable reference, missing `}` before end of input.", opener, incomplete=True)
        start = self._mark()
        yield self._token('_REF_CLOSE', self._advance(), start)


class LarkScanner(Lexer):
    """Plugs `Scanner` into lark as a custom lexer for the LALR parser."""

    def __init__(self, lexer_conf):
        pass

    def lex(self, data):
        return Scanner(data).scan()
