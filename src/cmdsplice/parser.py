## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import lark

from .types import Instruction, Program, Location, Literal, VarRef, CmdRef, QuotedArg, UnquotedArg, Call
from .errors import SpliceSyntaxError, SpliceIncompleteParse
from .scanner import LarkScanner, normalize_source


GRAMMAR = r"""start: call*
call: IDENT LPAR argument* RPAR

?argument: quoted_argument | unquoted_argument | bracket_argument | group
group: group_open argument* group_close
group_open: LPAR
group_close: RPAR
quoted_argument: QUOTE _part* QUOTE
unquoted_argument: _part+ _ARG_END
bracket_argument: BRACKET

_part: text | var_reference | cmd_reference
text: TEXT
var_reference: VAR_OPEN _part* _REF_CLOSE
cmd_reference: _CMD_OPEN IDENT LPAR argument* RPAR _REF_CLOSE

%declare IDENT LPAR RPAR QUOTE TEXT BRACKET VAR_OPEN _CMD_OPEN _REF_CLOSE _ARG_END
"""


TERMINAL_NAMES = {
    'IDENT': 'command name', 'LPAR': '`(`', 'RPAR': '`)`', 'QUOTE': '`"`',
    'TEXT': 'argument text', 'BRACKET': 'bracket argument', 'VAR_OPEN': 'variable reference',
    '_CMD_OPEN': 'command reference', '_REF_CLOSE': '`}`', '_ARG_END': 'end of argument',
    '$END': 'end of input',
}


def _describe(terminal: str) -> str:
    return TERMINAL_NAMES.get(terminal, terminal)


class _Emitter(lark.Transformer):
    """Callbacks run by the LALR parser at the moment each rule is reduced.  Operands are
    always reduced before the rule that consumes them, so appending to a flat list yields
    a post-order instruction stream without building a tree.

    Argument rules return how many argument-producing sub-expressions they contributed,
    part rules return the instruction they emitted.
    """

    def __init__(self, source: str, filename: str | None):
        super().__init__(visit_tokens=False)
        self.source = source
        self.filename = filename
        self.output: list[Instruction] = []

    def _loc(self, token: lark.Token) -> Location:
        return Location(token.line, token.column, self.filename)

    def _emit(self, instruction: Instruction) -> Instruction:
        self.output.append(instruction)
        return instruction

    @staticmethod
    def _arity(children) -> int:
        return sum(c for c in children if isinstance(c, int))

    # Invocations ─────────────────────────────────────────────────────────────────────────────
    def start(self, children):
        return list(children)

    def call(self, children):
        name, rpar = children[0], children[-1]
        self._emit(Call(name.value, self._arity(children), location=self._loc(name)))
        instructions, self.output = self.output, []
        source = self.source[name.start_pos:rpar.end_pos]
        return Program(name.value, instructions, location=self._loc(name), source=source)

    def cmd_reference(self, children):
        name = children[0]
        return self._emit(CmdRef(name.value, self._arity(children), location=self._loc(name)))

    # Arguments ───────────────────────────────────────────────────────────────────────────────
    def group_open(self, children):
        [lpar] = children
        self._emit(Literal('(', location=self._loc(lpar)))
        self._emit(UnquotedArg(1, location=self._loc(lpar)))
        return 1

    def group_close(self, children):
        [rpar] = children
        self._emit(Literal(')', location=self._loc(rpar)))
        self._emit(UnquotedArg(1, location=self._loc(rpar)))
        return 1

    def group(self, children):
        return self._arity(children)

    def quoted_argument(self, children):
        quote, parts = children[0], children[1:-1]
        self._emit(QuotedArg(len(parts), location=self._loc(quote)))
        return 1

    def unquoted_argument(self, parts):
        expand = None
        if len(parts) == 1:
            expand = {Instruction.VAR_REF: 'list', Instruction.CMD_REF: 'values'}.get(parts[0].op)
        self._emit(UnquotedArg(len(parts), expand=expand, location=parts[0].location))
        return 1

    def bracket_argument(self, children):
        [bracket] = children
        self._emit(Literal(bracket.value, location=self._loc(bracket)))
        self._emit(QuotedArg(1, location=self._loc(bracket)))
        return 1

    # Parts ───────────────────────────────────────────────────────────────────────────────────
    def text(self, children):
        [token] = children
        return self._emit(Literal(token.value, location=self._loc(token)))

    def var_reference(self, children):
        opener, parts = children[0], children[1:]
        return self._emit(VarRef(len(parts), opener.value, location=self._loc(opener)))


def parse(source: str | bytes, filename: str | None = None) -> list[Program]:
    """Parse source text into one post-order `Program` per top-level invocation."""
    text = normalize_source(source)
    emitter = _Emitter(text, filename)
    parser = lark.Lark(GRAMMAR, parser="lalr", lexer=LarkScanner, transformer=emitter)

    try:
        return parser.parse(text)
    except lark.exceptions.UnexpectedToken as exc:
        token = exc.token
        expected = sorted(_describe(t) for t in exc.expected)
        found = _describe(token.type) + (f" `{token.value}`" if token.value else "")
        error_class = SpliceIncompleteParse if token.type == '$END' else SpliceSyntaxError
        raise error_class(f"Unexpected {found}, expected {' or '.join(expected)}.", filename=filename,
                          line=getattr(token, 'line', None), column=getattr(token, 'column', None),
                          token=token.value, expected=expected) from None
    except SpliceSyntaxError as exc:
        exc.filename = filename
        raise


def parse_invocation(source: str | bytes, filename: str | None = None) -> Program:
    """Parse text that must hold exactly one invocation."""
    programs = parse(source, filename=filename)
    if len(programs) != 1:
        line, column = (programs[1].location.line, programs[1].location.column) if programs else (1, 1)
        raise SpliceSyntaxError(f"Expected exactly one command invocation, found {len(programs)}.",
                                filename=filename, line=line, column=column, token='')
    return programs[0]


def format_parse_error_context(filename, line, column, token_value, source=None):
    lines = source.splitlines(keepends=True) if source is not None else open(filename, 'r').readlines()
    line = line if line and line > 0 else len(lines)
    start_line, end_line = max(0, line - 3), min(len(lines), line + 2)
    result = [f"\033[97m  File \"{filename}\", line {line}\033[0m"]

    for i in range(start_line, end_line):
        line_content = lines[i].rstrip('\n')
        line_color = '\033[90m'
        if i+1 == line:
            line_color = '\033[97m'
            width = max(1, len(token_value or ''))
            if column and 0 < column <= len(line_content):
                line_content = (
                    line_content[:column-1] +
                    f"\033[48;5;30m\033[1;97m{line_content[column-1:column+width-1]}\033[0m" +
                    line_content[column+width-1:]
                )
        result.append(f"{line_color}{i+1:>5} |\033[0m {line_content}")
    return '\n' + '\n'.join(result) + '\n'


def format_source_lines(program: Program, location: Location | None = None) -> str:
    """Render the invocation a runtime error came from, with its location header."""
    if program is None or program.location is None: return ""
    loc = location or program.location
    header = f"\033[97m  File \"{loc.filename or '<input>'}\", line {loc.line}, in {program.name}\033[0m\n"
    body = '\n'.join('    ' + l for l in (program.source or '').split('\n'))
    return header + (body + "\n" if program.source else "")
