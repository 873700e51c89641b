from typing import Optional


class BatchGCDError(Exception):
    """
    Basisklasse aller fatalen Fehler des Audits. Trägt optional Phase, Ebene und Position,
    damit der Fehler ohne Debugger eingegrenzt werden kann.
    """
    kind = "batchgcd_error"

    def __init__(self, message: str, *, phase: Optional[str] = None,
                 level: Optional[int] = None, position: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.phase = phase
        self.level = level
        self.position = position

    def context(self) -> dict:
        """
        Gibt nur die gesetzten Kontextfelder zurück.
        """
        ctx = {"phase": self.phase, "level": self.level, "position": self.position}
        return {k: v for k, v in ctx.items() if v is not None}

    def to_reply(self) -> dict:
        """
        Expliziter Ergebniswert für den Dispatcher: Meldung, Fehlerart und Kontext.
        """
        reply = {"error": str(self), "kind": self.kind}
        reply.update(self.context())
        return reply

    def __str__(self):
        ctx = self.context()
        if not ctx:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in ctx.items())
        return f"{self.message} ({details})"


class StorageIOError(BatchGCDError):
    kind = "io_error"


class MissingLevelError(StorageIOError):
    kind = "missing_level"


class DecodeError(BatchGCDError, ValueError):
    kind = "decode_error"


class ParseError(BatchGCDError, ValueError):
    kind = "parse_error"


class EmptyInputError(BatchGCDError):
    kind = "empty_input"


class IncompleteTreeError(BatchGCDError):
    kind = "incomplete_tree"


class ArithmeticPreconditionError(BatchGCDError):
    kind = "arithmetic_precondition"
