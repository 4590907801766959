"""
Main CLI interface for JobTalk.

This module provides the Typer-based command-line interface with commands for:
- Recording a job description from the microphone
- Processing an existing audio file
- Categorizing a text transcript
- Rendering a proposal from named fields
"""

import asyncio
import logging
import mimetypes
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pyperclip
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .core.capture import CaptureError, MicrophoneRecorder
from .core.categorize import Categorizer
from .core.config import ConfigError, validate_config
from .core.document import DocumentParams, DocumentRenderer
from .core.errors import IntakeError
from .core.pipeline import IntakePipeline
from .core.progress import reporter
from .core.speech import load_audio_file
from .core.store import (
    CONTACT_FIELDS,
    FieldStore,
    add_image,
    add_line_item,
    field_cards,
    load_categorized,
    reset_store,
    set_contact_field,
    set_down_payment,
    set_field,
    set_image_description,
    set_terms,
    total_price,
)
from .core.types import SENTINEL, AudioPayload, CategorizedFields, Custom

app = typer.Typer(
    name="jobtalk",
    help="JobTalk CLI - Record construction job details and turn them into a client-ready proposal",
    no_args_is_help=True,
)

console = Console()

FIELD_TITLES = {"scope_of_work": "Scope of Work", "timeline": "Timeline", "budget": "Budget"}

ItemOption = typer.Option(None, "--item", "-i", help="Budget line item as QTY:NAME:PRICE (repeatable)")
ImageOption = typer.Option(None, "--image", help="Image to attach as PATH or PATH::DESCRIPTION (repeatable, max 5)")
DownPaymentOption = typer.Option(None, "--down-payment", help="Down payment percentage (default: 50)")
TermsOption = typer.Option(None, "--terms", help="Payment terms text")
FormatOption = typer.Option("html", "--format", "-f", help="Document format (html, text)")
OutputOption = typer.Option(None, "--output", "-o", help="Write the proposal to this file instead of stdout")
CopyOption = typer.Option(False, "--copy", help="Copy the proposal to the clipboard")
EditOption = typer.Option(False, "--edit/--no-edit", help="Review and edit each field before rendering")
DebugOption = typer.Option(False, "--debug", help="Enable debug logging and request logs under .jobtalk/debug")


def _configure_logging(debug: bool) -> None:
    """Route library logging through rich; CLI flag always overrides .env."""
    os.environ["JT_DEBUG"] = "1" if debug else "0"
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _check_format(output_format: str) -> None:
    if output_format not in DocumentRenderer().formats:
        console.print(f"[bold red]Error:[/bold red] Unsupported format: {output_format}. Use html or text.")
        sys.exit(1)


def _parse_item(entry: str) -> Tuple[str, str, str]:
    parts = entry.split(":")
    if len(parts) < 3:
        raise typer.BadParameter(f"Line item must be QTY:NAME:PRICE, got '{entry}'")
    return parts[0].strip(), ":".join(parts[1:-1]).strip(), parts[-1].strip().lstrip("$").replace(",", "")


def _attach_images(store: FieldStore, images: List[str]) -> FieldStore:
    for entry in images:
        path_text, _, description = entry.partition("::")
        path = Path(path_text)
        if not path.is_file():
            console.print(f"[yellow]Skipped image:[/yellow] file not found: {path_text}")
            continue
        content_type, _ = mimetypes.guess_type(path.name)
        result = add_image(store, path.name, content_type, path.read_bytes())
        if not result.ok:
            console.print(f"[yellow]Skipped image:[/yellow] {result.errors['image']}")
            continue
        store = result.store
        if description:
            store = set_image_description(store, store.images[-1].id, description.strip())
    return store


def _apply_options(
    store: FieldStore,
    items: Optional[List[str]],
    images: Optional[List[str]],
    down_payment: Optional[float],
    terms: Optional[str],
) -> FieldStore:
    """Apply line items, images and payment options, reporting rejected entries."""
    for entry in items or []:
        quantity, name, price = _parse_item(entry)
        result = add_line_item(store, quantity, name, price)
        if not result.ok:
            problems = "; ".join(f"{field}: {message}" for field, message in result.errors.items())
            console.print(f"[yellow]Skipped line item '{entry}':[/yellow] {problems}")
            continue
        store = result.store

    store = _attach_images(store, images or [])

    if down_payment is not None:
        result = set_down_payment(store, down_payment)
        if not result.ok:
            console.print(f"[yellow]Ignored down payment:[/yellow] {result.errors['down_payment']}")
        store = result.store

    if terms is not None:
        store = set_terms(store, terms)
    return store


def _edit_interactively(store: FieldStore) -> FieldStore:
    """Prompt for each field, keeping the current value on an empty answer."""
    contact = store.fields.contact_information
    for name in CONTACT_FIELDS:
        current = getattr(contact, name)
        default = "" if current == SENTINEL else current
        value = typer.prompt(f"Contact {name}", default=default, show_default=bool(default))
        store = set_contact_field(store, name, value.strip() or SENTINEL)

    for name, title in FIELD_TITLES.items():
        current = getattr(store.fields, name)
        value = typer.prompt(title, default=current, show_default=False)
        store = set_field(store, name, value.strip() or SENTINEL)
    return store


def _display_fields(store: FieldStore, transcript: Optional[str] = None) -> None:
    """Display categorized fields as rich panels."""
    if transcript:
        console.print(Panel(Text(transcript), title="Transcription", border_style="dim"))

    contact = store.fields.contact_information
    for card in field_cards(store):
        view = card.view
        if isinstance(view, Custom):
            table = Table(show_header=False, box=None)
            table.add_column("Key", style="cyan")
            table.add_column("Value", style="white")
            for name in view.subform:
                table.add_row(name.capitalize(), Text(getattr(contact, name)))
            body = table
        else:
            body = Text(view.text)
        console.print(Panel(body, title=card.title, subtitle=card.hint, border_style="green"))


def _output_document(document: str, output: Optional[str], copy: bool) -> None:
    if output:
        Path(output).write_text(document, encoding="utf-8")
        console.print(f"[bold green]Proposal written to[/bold green] {output}")
    else:
        console.print(document, markup=False, highlight=False, emoji=False, soft_wrap=True)

    if copy:
        try:
            pyperclip.copy(document)
        except pyperclip.PyperclipException as e:
            console.print(f"[yellow]Could not copy to clipboard:[/yellow] {e}")


def _finish_intake(
    fields: CategorizedFields,
    transcript: Optional[str],
    edit: bool,
    items: Optional[List[str]],
    images: Optional[List[str]],
    down_payment: Optional[float],
    terms: Optional[str],
    output_format: str,
    output: Optional[str],
    copy: bool,
) -> None:
    store = load_categorized(reset_store(), fields)
    _display_fields(store, transcript)

    if edit:
        store = _edit_interactively(store)
    store = _apply_options(store, items, images, down_payment, terms)
    if store.line_items:
        console.print(f"[dim]Line items total: ${total_price(store):,.2f}[/dim]")

    document = DocumentRenderer().render_store(store, fmt=output_format)
    _output_document(document, output, copy)


async def _run_pipeline(audio: AudioPayload) -> IntakePipeline:
    pipeline = IntakePipeline()
    unsubscribe = pipeline.subscribe(reporter.on_pipeline_status)
    try:
        with reporter.initialize(console, "Preparing audio…"):
            await pipeline.run_intake(audio)
    finally:
        unsubscribe()
    return pipeline


async def _record(device: Optional[str], seconds: Optional[float]) -> AudioPayload:
    async with MicrophoneRecorder(device_name=device) as recorder:
        if seconds:
            console.print(f"[bold]Recording for {seconds:g}s…[/bold] speak clearly into your microphone.")
            await asyncio.sleep(seconds)
        else:
            console.print("[bold]Recording…[/bold] speak clearly, then press Enter to stop.")
            await asyncio.to_thread(sys.stdin.readline)
    console.print("[dim]Recording stopped, processing audio…[/dim]")
    return recorder.payload


@app.command()
def record(
    device: Optional[str] = typer.Option(None, "--device", "-d", help="Input device name (substring match)"),
    seconds: Optional[float] = typer.Option(None, "--seconds", "-s", help="Stop after this many seconds instead of on Enter"),
    edit: bool = EditOption,
    items: Optional[List[str]] = ItemOption,
    images: Optional[List[str]] = ImageOption,
    down_payment: Optional[float] = DownPaymentOption,
    terms: Optional[str] = TermsOption,
    output_format: str = FormatOption,
    output: Optional[str] = OutputOption,
    copy: bool = CopyOption,
    debug: bool = DebugOption,
):
    """
    Record a job description from the microphone, sort it, and render a proposal.

    Examples:
        jobtalk record --edit --output proposal.html
        jobtalk record --seconds 60 --item "2:Gallon of paint:45.50" --down-payment 30
    """
    _configure_logging(debug)
    _check_format(output_format)
    try:
        validate_config()
        audio = asyncio.run(_record(device, seconds))
        pipeline = asyncio.run(_run_pipeline(audio))
        _finish_intake(
            pipeline.fields, pipeline.transcript.text, edit, items, images, down_payment, terms, output_format, output, copy
        )
    except (ConfigError, CaptureError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except IntakeError as e:
        console.print(f"[bold red]Processing Error ({e.stage}):[/bold red] {e}")
        sys.exit(1)


@app.command("from-audio")
def from_audio(
    path: str = typer.Argument(..., help="Path to audio file (webm, wav, ogg, mp3)"),
    edit: bool = EditOption,
    items: Optional[List[str]] = ItemOption,
    images: Optional[List[str]] = ImageOption,
    down_payment: Optional[float] = DownPaymentOption,
    terms: Optional[str] = TermsOption,
    output_format: str = FormatOption,
    output: Optional[str] = OutputOption,
    copy: bool = CopyOption,
    debug: bool = DebugOption,
):
    """
    Transcribe and categorize an audio file, then render a proposal.

    Examples:
        jobtalk from-audio walkthrough.webm
        jobtalk from-audio walkthrough.wav --edit --format text --copy
    """
    _configure_logging(debug)
    _check_format(output_format)
    try:
        audio = load_audio_file(path)
        validate_config()
        console.print(f"[dim]Processing: {Path(path).name} ({len(audio.data) / 1024 / 1024:.2f} MB)[/dim]")
        pipeline = asyncio.run(_run_pipeline(audio))
        _finish_intake(
            pipeline.fields, pipeline.transcript.text, edit, items, images, down_payment, terms, output_format, output, copy
        )
    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)
    except IntakeError as e:
        console.print(f"[bold red]Processing Error ({e.stage}):[/bold red] {e}")
        sys.exit(1)


@app.command()
def categorize(
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Transcript text to categorize"),
    file: Optional[str] = typer.Option(None, "--file", help="Path to file containing transcript text"),
    output_format: str = typer.Option("rich", "--format", "-f", help="Output format (rich, json)"),
    debug: bool = DebugOption,
):
    """
    Categorize a text transcript into contact, scope, timeline and budget.

    Examples:
        jobtalk categorize --text "Jane Doe, 555-1234, repaint the fence in one week for $500"
        jobtalk categorize --file notes.txt --format json
    """
    _configure_logging(debug)
    if text and file:
        console.print("[bold red]Error:[/bold red] Cannot specify both --text and --file options")
        sys.exit(1)
    if text is None and not file:
        console.print("[bold red]Error:[/bold red] Must specify either --text or --file option")
        sys.exit(1)

    if file:
        file_path = Path(file)
        if not file_path.exists():
            console.print(f"[bold red]Error:[/bold red] File not found: {file}")
            sys.exit(1)
        text = file_path.read_text(encoding="utf-8")

    try:
        with reporter.initialize(console, "Categorizing information…"):
            fields = asyncio.run(Categorizer().categorize(text or ""))
            reporter.complete_step()
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)
    except IntakeError as e:
        console.print(f"[bold red]Processing Error ({e.stage}):[/bold red] {e}")
        sys.exit(1)

    if output_format == "json":
        console.print_json(fields.model_dump_json(by_alias=True))
        return
    _display_fields(load_categorized(reset_store(), fields))


@app.command()
def render(
    scope: Optional[str] = typer.Option(None, "--scope", help="Scope of work"),
    name: Optional[str] = typer.Option(None, "--name", help="Contact name"),
    address: Optional[str] = typer.Option(None, "--address", help="Contact address"),
    phone: Optional[str] = typer.Option(None, "--phone", help="Contact phone"),
    email: Optional[str] = typer.Option(None, "--email", help="Contact email"),
    timeline: Optional[str] = typer.Option(None, "--timeline", help="Project timeline"),
    budget: Optional[str] = typer.Option(None, "--budget", help="Free-text budget"),
    down_payment: Optional[str] = typer.Option(None, "--down-payment", help="Down payment percentage (default: 50)"),
    terms: Optional[str] = TermsOption,
    items: Optional[List[str]] = ItemOption,
    images: Optional[List[str]] = ImageOption,
    output_format: str = FormatOption,
    output: Optional[str] = OutputOption,
    copy: bool = CopyOption,
):
    """
    Render a proposal from named fields, each defaulted when missing.

    Examples:
        jobtalk render --name "Jane Doe" --scope "Repaint the fence" --budget "Paint and labor $500"
        jobtalk render --name "Jane Doe" --item "1:Fence repaint:500" --format text
    """
    _check_format(output_format)
    params = DocumentParams.from_query(
        {
            "scope": scope,
            "name": name,
            "address": address,
            "phone": phone,
            "email": email,
            "timeline": timeline,
            "budget": budget,
            "downPayment": down_payment,
            "terms": terms,
        }
    )
    store = load_categorized(reset_store(), params.to_fields())
    store = set_terms(store, params.terms)
    store = _apply_options(store, items, images, params.down_payment_percent, None)

    document = DocumentRenderer().render_store(store, fmt=output_format)
    _output_document(document, output, copy)


if __name__ == "__main__":
    app()
