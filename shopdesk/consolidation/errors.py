from __future__ import annotations


class ConsoleError(Exception):
    """Base class for errors raised by the console core."""


class ValidationError(ConsoleError):
    """Nothing eligible to act on; raised before any backend call."""


class ConsolidationBusyError(ConsoleError):
    """A consolidation run is already in progress for this tenant."""


class InvalidTransitionError(ConsoleError):
    def __init__(self, action: str, phase: str):
        super().__init__(f"cannot {action} while {phase}")
        self.action = action
        self.phase = phase


class UnitError(ConsoleError):
    """Failure of a single consolidation unit. Recorded, not raised."""

    code = "unit_failed"
    step: str | None = None


class IdentityMissingError(UnitError):
    code = "identity_missing"
    step = "partition"

    def __init__(self, member_id: str | None):
        who = member_id or "<no member>"
        super().__init__(f"member {who} has no messaging identity")
        self.member_id = member_id


class ExternalCallError(UnitError):
    def __init__(self, step: str, code: str, message: str):
        super().__init__(f"{step} failed ({code}): {message}")
        self.step = step
        self.code = code
        self.message = message
