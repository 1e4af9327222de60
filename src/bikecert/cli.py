"""Typer CLI: inspect a certificate, generate a key pair, print the version."""

import json
import platform
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from bikecert import __version__
from bikecert.config import InspectorSettings
from bikecert.crypto_utils import generate_keypair, is_valid_public_key_b64
from bikecert.inspector import inspect_certificate
from bikecert.inventory import DeviceRecord, is_numeric_id, load_inventory
from bikecert.logging import setup_logging
from bikecert.report import MARKERS, SECTION_TITLES, Level, Section, ValidationReport, Verdict
from bikecert.validators import is_valid_serial

app = typer.Typer(no_args_is_help=True)
console = Console(highlight=False, soft_wrap=True)

STYLES: dict[Level, str] = {
    Level.ERROR: "red",
    Level.WARNING: "yellow",
    Level.INFO: "cyan",
    Level.SUCCESS: "green",
}


def _read_inventory(path: Path) -> list[DeviceRecord]:
    try:
        return load_inventory(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        raise typer.BadParameter(f"Invalid inventory file: {e}", param_hint="--inventory") from e


def print_report(report: ValidationReport) -> None:
    for section in Section:
        findings = [f for f in report.findings if f.section == section]
        rows = report.fields if section == Section.FIELDS else []
        if not findings and not rows:
            continue
        console.print(f"\n[bold]--- {SECTION_TITLES[section]} ---[/bold]")
        for row in rows:
            note = f" [dim]{escape(row.note)}[/dim]" if row.note else ""
            console.print(f"{escape(row.label)}: {escape(row.value)}{note}")
        for finding in findings:
            style = STYLES[finding.level]
            console.print(f"[{style}]{MARKERS[finding.level]} {escape(finding.message)}[/{style}]")
            for detail in finding.details:
                console.print(f"  {escape(detail)}")

    summary = report.summary()
    style = STYLES[summary.level]
    console.print(f"\n[{style}]{MARKERS[summary.level]} {summary.message}[/{style}]")
    console.print(f"Verdict: [bold]{report.verdict.value}[/bold]")


@app.command()
def inspect(
    certificate: Annotated[str, typer.Argument(help="Base64 encoded certificate.")],
    pubkey: Annotated[
        str | None, typer.Option("--pubkey", help="Expected base64 Ed25519 public key.")
    ] = None,
    device: Annotated[
        str | None, typer.Option("--device", help="Device to verify: numeric ID or serial.")
    ] = None,
    owner: Annotated[
        str | None, typer.Option("--owner", help="Expected owner UUID.")
    ] = None,
    inventory: Annotated[
        Path | None,
        typer.Option(
            "--inventory",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
            help="JSON file with the account's devices.",
        ),
    ] = None,
    authority_key: Annotated[
        list[str] | None,
        typer.Option("--authority-key", help="Authority public key (hex or base64). Repeatable."),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show diagnostic output.")] = False,
    legacy: Annotated[
        bool, typer.Option("--legacy", help="Fall back to the legacy fixed-offset layout.")
    ] = False,
) -> None:
    """Decode and validate a certificate, then print the report."""
    settings = InspectorSettings()
    setup_logging(settings.log_level, settings.log_format)

    if pubkey and not is_valid_public_key_b64(pubkey):
        raise typer.BadParameter(
            "Must be base64-encoded 32 bytes, or 33 bytes with a 0x00 prefix", param_hint="--pubkey"
        )
    if device and not (is_numeric_id(device.strip()) or is_valid_serial(device.strip())):
        raise typer.BadParameter(
            f"'{device}' must be a numeric ID or a valid serial", param_hint="--device"
        )

    devices = _read_inventory(inventory) if inventory else []
    report = inspect_certificate(
        certificate,
        expected_public_key=pubkey,
        target_device_id=device,
        expected_owner_id=owner,
        inventory=devices,
        authority_keys=[*settings.authority_keys, *(authority_key or [])],
        verbose=verbose or settings.verbose,
        allow_legacy_layout=legacy or settings.allow_legacy_layout,
    )
    print_report(report)
    if report.verdict == Verdict.INVALID:
        raise typer.Exit(code=1)


@app.command()
def genkey() -> None:
    """Generate an Ed25519 key pair."""
    private, public = generate_keypair()
    typer.echo(f"Privkey = {private}")
    typer.echo(f"Pubkey = {public}")


@app.command()
def version() -> None:
    """Print version information."""
    console.print(f"bikecert version {__version__}")
    console.print(
        f"OS: {platform.system()}, Arch: {platform.machine()}, "
        f"Python: {platform.python_version()} ({platform.python_implementation()})"
    )
