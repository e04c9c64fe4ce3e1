"""Tests for interactive approval."""

from unittest.mock import Mock, patch

from appcert.approval import TyperApprovalGate, request_override


def test_silent_never_prompts():
    gate = Mock()

    assert request_override("Use certificate?", gate, silent=True) is False
    gate.prompt.assert_not_called()


def test_missing_gate_declines():
    assert request_override("Use certificate?", None, silent=False) is False


def test_gate_answer_is_returned():
    gate = Mock()
    gate.prompt.return_value = True

    assert request_override("Use certificate?", gate, silent=False) is True
    gate.prompt.assert_called_once_with("Use certificate?", True)


@patch("appcert.approval.typer.confirm", return_value=True)
def test_typer_gate_confirms(mock_confirm):
    assert TyperApprovalGate().prompt("Use certificate?") is True
    mock_confirm.assert_called_once_with("Use certificate?", default=False)


@patch("appcert.approval.typer.echo")
def test_typer_gate_message_only(mock_echo):
    assert TyperApprovalGate().prompt("Certificate replaced.", is_yes_no=False) is True
    mock_echo.assert_called_once_with("Certificate replaced.")
