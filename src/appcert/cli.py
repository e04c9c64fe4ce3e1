"""CLI entry point using Typer."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer

from appcert.approval import TyperApprovalGate
from appcert.certificate import load_certificate_file
from appcert.config import DEFAULT_MINIMUM_KEY_SIZE, ApplicationConfiguration
from appcert.exceptions import CertificateParseError, HostResolutionError
from appcert.models import ApplicationType
from appcert.policy import CertificatePolicy
from appcert.reporter import generate_json_report, generate_text_report, set_color_output

app = typer.Typer(help="Application instance certificate checker")

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
)


def _set_verbose(verbose: bool) -> None:
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("appcert").setLevel(logging.DEBUG)


def _load(path: Path):
    logger = logging.getLogger(__name__)
    try:
        return load_certificate_file(path)
    except (OSError, CertificateParseError) as e:
        logger.error(f"Could not read certificate {path}: {e}")
        sys.exit(1)


@app.command()
def inspect(
    certificate: Path = typer.Argument(..., help="Certificate file (DER or PEM)"),
    json_output: bool = typer.Option(False, "--json", "-j", help="JSON output"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    color: bool = typer.Option(True, "--color/--no-color", help="Enable/disable colored output"),
):
    """
    Show the identity a certificate asserts.
    """
    _set_verbose(verbose)
    set_color_output(color)
    record = _load(certificate)

    if json_output:
        print(generate_json_report(record))
    else:
        print(generate_text_report(record))


@app.command()
def evaluate(
    certificate: Path = typer.Argument(..., help="Certificate file (DER or PEM)"),
    role: ApplicationType = typer.Option(ApplicationType.SERVER, "--role", "-r", help="Application role"),
    base_address: Optional[List[str]] = typer.Option(
        None, "--base-address", "-b", help="Server base address URL (repeatable), e.g. opc.tcp://localhost:4840"
    ),
    application_uri: Optional[str] = typer.Option(None, "--application-uri", help="Configured application URI"),
    min_key_size: int = typer.Option(DEFAULT_MINIMUM_KEY_SIZE, "--min-key-size", help="Minimum key size in bits"),
    silent: bool = typer.Option(False, "--silent/--interactive", help="Never prompt; treat violations as rejections"),
    json_output: bool = typer.Option(False, "--json", "-j", help="JSON output"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    color: bool = typer.Option(True, "--color/--no-color", help="Enable/disable colored output"),
):
    """
    Check a certificate against the application instance certificate policy.
    """
    logger = logging.getLogger(__name__)
    _set_verbose(verbose)
    set_color_output(color)
    record = _load(certificate)

    configuration = ApplicationConfiguration(
        application_name=record.subject,
        application_type=role,
        application_uri=application_uri,
        base_addresses=list(base_address or []),
    )
    policy = CertificatePolicy(approval_gate=None if silent else TyperApprovalGate())

    try:
        result = policy.evaluate(record, configuration, min_key_size, silent)
    except HostResolutionError as e:
        logger.error(f"Domain check failed: {e}")
        sys.exit(1)

    if json_output:
        print(generate_json_report(record, result))
    else:
        print(generate_text_report(record, result))

    sys.exit(0 if result.accepted else 2)
