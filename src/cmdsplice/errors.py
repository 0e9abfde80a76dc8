## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import lark


class SpliceError(Exception):
    def __init__(self, message: str = "", *, splice_name=None, splice_location=None):
        """Base class for all errors raised by the expansion engine."""
        super().__init__(message)
        self.splice_name: str = splice_name
        self.splice_location = splice_location

class SpliceSyntaxError(SpliceError):
    def __init__(self, message, *, filename=None, line=None, column=None, token=None, expected=None):
        super().__init__(message)
        self.filename = filename
        self.line = line
        self.column = column
        self.token = token
        self.expected = expected or []

class SpliceIncompleteParse(SpliceSyntaxError, lark.exceptions.ParseError):
    """Input ended while a quote, reference or parenthesis was still open."""
    def __init__(self, message, *, filename=None, line=None, column=None, token=None, expected=None):
        super().__init__(message, filename=filename, line=line, column=column, token=token, expected=expected)


class SpliceDispatchError(SpliceError):
    """Raised by the dispatcher, or by a command, when an invocation fails.  Non-fatal errors
    are reported as warnings by the evaluator, which then carries on with zero results.
    """
    def __init__(self, message: str = "", *, fatal: bool = True, splice_name=None, splice_location=None):
        super().__init__(message, splice_name=splice_name, splice_location=splice_location)
        self.fatal = fatal

class SpliceNameError(SpliceDispatchError, NameError):
    pass

class SpliceArityError(SpliceDispatchError, TypeError):
    pass


class SpliceRecursionError(SpliceError, RecursionError):
    def __init__(self, message: str = "", *, depth: int = 0, splice_name=None, splice_location=None):
        super().__init__(message, splice_name=splice_name, splice_location=splice_location)
        self.depth = depth
