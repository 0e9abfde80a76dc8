## cmdsplice — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Location:
    line: int
    column: int
    filename: str | None = None

    def __str__(self):
        return f"{self.filename or '<input>'}:{self.line}:{self.column}"


@dataclass(eq=False, slots=True)
class Instruction:
    """One entry of a post-order instruction stream.

    `arg` is the literal text for LITERAL, otherwise the number of immediate operand
    sub-expressions as written in the source.  `name` is the command name for CALL and
    CMD_REF, and the variable namespace ('', 'ENV' or 'CACHE') for VAR_REF.  `expand`
    only applies to UNQUOTED_ARG: 'list' when the sole part is a variable reference,
    'values' when it's a command reference, None otherwise.
    """
    LITERAL = 1
    VAR_REF = 2
    CMD_REF = 3
    QUOTED_ARG = 4
    UNQUOTED_ARG = 5
    CALL = 6

    op: int
    arg: str | int
    name: str | None = None
    expand: str | None = None
    location: Location | None = None

    def __eq__(self, other):
        return isinstance(other, Instruction) and \
            (self.op, self.arg, self.name, self.expand) == (other.op, other.arg, other.name, other.expand)

    def __hash__(self):
        return hash((self.op, self.arg, self.name, self.expand))

    def __repr__(self):
        match self.op:
            case Instruction.LITERAL:
                return f"Literal({self.arg!r})"
            case Instruction.VAR_REF:
                return f"VarRef{'.' + self.name if self.name else ''}({self.arg})"
            case Instruction.CMD_REF:
                return f"CmdRef({self.name}, {self.arg})"
            case Instruction.QUOTED_ARG:
                return f"QuotedArg({self.arg})"
            case Instruction.UNQUOTED_ARG:
                return f"UnquotedArg({self.arg}{', ' + self.expand if self.expand else ''})"
            case Instruction.CALL:
                return f"Call({self.name}, {self.arg})"
        return f"Instruction({self.op}, {self.arg!r})"


def Literal(text, location=None): return Instruction(Instruction.LITERAL, text, location=location)
def VarRef(count, namespace='', location=None): return Instruction(Instruction.VAR_REF, count, namespace, location=location)
def CmdRef(name, arity, location=None): return Instruction(Instruction.CMD_REF, arity, name, location=location)
def QuotedArg(count, location=None): return Instruction(Instruction.QUOTED_ARG, count, location=location)
def UnquotedArg(count, expand=None, location=None): return Instruction(Instruction.UNQUOTED_ARG, count, expand=expand, location=location)
def Call(name, arity, location=None): return Instruction(Instruction.CALL, arity, name, location=location)


@dataclass
class Program:
    name: str                        # command name of the outermost invocation
    instructions: list               # list[Instruction], post-order, ending with CALL
    location: Location | None = None
    source: str | None = None        # raw text of the invocation
    meta: dict = field(default_factory=dict)

    def __iter__(self):
        return iter(self.instructions)

    def __len__(self):
        return len(self.instructions)
