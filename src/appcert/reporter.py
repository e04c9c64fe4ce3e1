"""Report generation (text and JSON)."""

import json
import logging
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, Optional

import typer

from appcert.models import CertificateRecord, PolicyResult

logger = logging.getLogger(__name__)

# Global flag for colored output
_use_color = True


def set_color_output(enabled: bool) -> None:
    """Enable or disable colored output."""
    global _use_color
    _use_color = enabled


def _format_decision(accepted: bool) -> str:
    text = "ACCEPTED ✓" if accepted else "REJECTED ✗"
    if _use_color:
        return typer.style(text, fg=typer.colors.GREEN if accepted else typer.colors.RED)
    return text


def generate_text_report(record: CertificateRecord, result: Optional[PolicyResult] = None) -> str:
    """
    Generate human-readable text report.

    Args:
        record: Certificate to describe
        result: Optional policy decision for the certificate

    Returns:
        Formatted text report
    """
    lines = []
    lines.append("=" * 70)
    lines.append("Application Instance Certificate")
    lines.append("=" * 70)
    lines.append(f"Subject: {record.subject}")
    lines.append(f"Issuer: {record.issuer}")
    lines.append(f"Thumbprint: {record.thumbprint}")
    lines.append(f"Key Size: {record.key_size} bits")
    lines.append(f"Application URI: {record.application_uri or '<none>'}")
    lines.append("Domains:")
    if record.domains:
        for domain in record.domains:
            lines.append(f"  - {domain}")
    else:
        lines.append("  <none>")

    if result is not None:
        lines.append("")
        lines.append("Policy:")
        lines.append(f"  Status: {_format_decision(result.accepted)}")
        if result.reason:
            lines.append(f"  Reason: {result.reason}")
        for message in result.overridden:
            lines.append(f"  Accepted by operator: {message}")

    lines.append("=" * 70)
    return "\n".join(lines)


def _to_dict(record: CertificateRecord, result: Optional[PolicyResult]) -> Dict[str, Any]:
    data = asdict(record)
    data.pop("raw_data", None)
    data["policy"] = asdict(result) if result is not None else None
    return data


def generate_json_report(record: CertificateRecord, result: Optional[PolicyResult] = None) -> str:
    """
    Generate JSON report.

    Args:
        record: Certificate to describe
        result: Optional policy decision

    Returns:
        JSON string
    """

    def serialize(obj: Any) -> str:
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, bytes):
            return obj.hex()
        raise TypeError(f"Type {type(obj)} not serializable")

    return json.dumps(_to_dict(record, result), indent=2, default=serialize)
