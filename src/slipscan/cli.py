"""Command-line interface for Slipscan."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from slipscan.config import get_settings
from slipscan.logging_utils import configure_logging
from slipscan.ocr import EncodingError, OCRFailure, OcrProviderChain, ReceiptOcrService

app = typer.Typer(help="Receipt OCR extraction commands.")


def _emit(payload: dict, pretty: bool) -> None:
    output = json.dumps(payload, indent=2 if pretty else None, sort_keys=pretty)
    typer.echo(output)


@app.callback()
def main_callback() -> None:
    """Configure logging before any command runs."""

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format, settings.secrets())


@app.command()
def scan(
    image_ref: str = typer.Argument(..., help="Image URL or filesystem path of the receipt."),
    currency: Optional[str] = typer.Option(
        None, "--currency", "-c", help="3-letter currency code used to format line items."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds allowed for each OCR provider request."
    ),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty-print output JSON."),
) -> None:
    """
    Run OCR against a receipt image and print the structured record.
    """

    service = ReceiptOcrService()
    try:
        result = service.process_receipt(image_ref, currency, timeout=timeout)
    except EncodingError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    except OCRFailure as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        typer.secho(exc.remediation(), fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=2) from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--currency") from exc
    _emit(result.model_dump(mode="json"), pretty)


@app.command()
def parse(
    text_path: Path = typer.Argument(..., help="File containing raw OCR text."),
    currency: Optional[str] = typer.Option(
        None, "--currency", "-c", help="3-letter currency code used to format line items."
    ),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty-print output JSON."),
) -> None:
    """
    Parse previously captured OCR text without calling any OCR provider.
    """

    text = text_path.read_text(encoding="utf-8")
    # Parsing never touches a provider, so skip building the configured chain.
    parser_service = ReceiptOcrService(settings=get_settings(), chain=OcrProviderChain([]))
    try:
        result = parser_service.parse_text(text, currency)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--currency") from exc
    _emit(result.model_dump(mode="json"), pretty)


def main() -> None:
    """Execute the Typer application."""

    app()


if __name__ == "__main__":
    main()
