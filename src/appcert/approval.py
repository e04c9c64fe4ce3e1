"""Interactive approval of policy violations."""

import logging
from typing import Optional, Protocol

import typer

logger = logging.getLogger(__name__)


class ApprovalGate(Protocol):
    """Asks an operator to confirm something; returns True when accepted."""

    def prompt(self, message: str, is_yes_no: bool = True) -> bool:
        ...


class TyperApprovalGate:
    """Approval gate that asks on the terminal."""

    def __init__(self, default: bool = False):
        self.default = default

    def prompt(self, message: str, is_yes_no: bool = True) -> bool:
        if not is_yes_no:
            typer.echo(message)
            return True
        return typer.confirm(message, default=self.default)


def request_override(message: str, approval_gate: Optional[ApprovalGate], silent: bool) -> bool:
    """
    Report a policy violation and ask whether to accept it anyway.

    Silent mode, or a missing gate, always declines.
    """
    logger.warning(message)
    if silent or approval_gate is None:
        return False
    accepted = bool(approval_gate.prompt(message, True))
    logger.info(f"Operator {'accepted' if accepted else 'declined'}: {message}")
    return accepted
