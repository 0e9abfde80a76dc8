## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import enum
import logging
from typing import Callable
from dataclasses import dataclass

from .types import Location


log = logging.getLogger("cmdsplice.diagnostics")


class Severity(enum.Enum):
    ERROR = 'error'
    WARNING = 'warning'


@dataclass(frozen=True)
class Diagnostic:
    location: Location | None
    message: str
    severity: Severity

    def __str__(self):
        where = f"{self.location}: " if self.location else ""
        return f"{where}{self.severity.value}: {self.message}"


class Diagnostics:
    """Collects non-fatal problems found while evaluating, and forwards them to `sink`."""

    def __init__(self, sink: Callable[[Diagnostic], None] | None = None):
        self.records: list[Diagnostic] = []
        self.sink = sink

    def emit(self, location: Location | None, message: str, severity: Severity = Severity.WARNING) -> Diagnostic:
        diag = Diagnostic(location, message, severity)
        self.records.append(diag)
        log.log(logging.ERROR if severity is Severity.ERROR else logging.WARNING, "%s", diag)
        if self.sink is not None:
            self.sink(diag)
        return diag

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.records if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.records if d.severity is Severity.WARNING]

    def clear(self) -> None:
        self.records.clear()
