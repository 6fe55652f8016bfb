"""Typer CLI entry point for Shiro."""

from __future__ import annotations

import asyncio
import sys
import threading
from typing import Any, Optional

import typer

from .config import (
    EnvironmentSettingError,
    Settings,
    clear_environment_setting,
    get_settings,
    list_environment_settings,
    update_environment_setting,
)
from .core.audio.base import CaptureError, CaptureOptions, MediaCapture
from .core.audio.levels import MAX_SCALE, MIN_SCALE
from .core.audio.session import CapturedAudio, RecordingSessionController, RecordingState
from .core.chat.responder import ResponderState, TurnCoalescingResponder
from .core.chat.scheduler import LoopScheduler
from .core.pipeline.orchestrator import VoiceNoteOrchestrator
from .data.models import (
    Author,
    CreateNoteInput,
    Message,
    Note,
    ServiceResult,
    TextBlock,
    block_text,
)
from .data.repository import NoteRepository
from .logging import configure_logging, get_logger
from .services.chat.base import ResponseGenerator
from .services.factory import (
    ServiceConfigurationError,
    resolve_note_repository,
    resolve_response_generator,
    resolve_transcription_backend,
)
from .utils.audio import format_duration

app = typer.Typer(help="Shiro voice journal")
notes_app = typer.Typer(help="Browse and edit notes")
config_app = typer.Typer(help="Inspect and change SHIRO_* settings")
app.add_typer(notes_app, name="notes")
app.add_typer(config_app, name="config")

LOGGER = get_logger(__name__)

METER_WIDTH = 20
QUIT_COMMANDS = {"/quit", "/exit"}


def _parse_device(device: Optional[str]) -> Optional[int | str]:
    if device is None:
        return None
    if device.isdigit():
        return int(device)
    return device


def _repository(backend: Optional[str]) -> NoteRepository:
    settings = get_settings()
    try:
        return resolve_note_repository(backend or settings.note_backend, settings)
    except ServiceConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _unwrap(result: ServiceResult) -> Any:
    if not result.success:
        typer.secho(result.error or "Operation failed", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return result.data


def _summary_line(note: Note) -> str:
    preview = next((block_text(block) for block in note.content if block_text(block)), "")
    if len(preview) > 60:
        preview = preview[:57] + "..."
    return f"{note.id}  {note.updated_at:%Y/%m/%d %H:%M}  {preview}"


def _alert(title: str, message: str) -> None:
    typer.secho(f"{title}: {message}", fg=typer.colors.RED, err=True)


async def _read_line() -> Optional[str]:
    """Read one stdin line without blocking the loop; ``None`` on EOF.

    A daemon thread is used so a pending read never holds up interpreter exit.
    """

    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _deliver(value: Optional[str]) -> None:
        if not future.done():
            future.set_result(value)

    def _worker() -> None:
        line = sys.stdin.readline()
        loop.call_soon_threadsafe(_deliver, line if line else None)

    threading.Thread(target=_worker, name="shiro-stdin", daemon=True).start()
    return await future


def _print_reply(message: Message) -> None:
    if message.author is Author.AGENT:
        typer.echo(f"shiro> {message.text}")


async def _run_chat(generator: ResponseGenerator, settings: Settings, delay: float) -> int:
    responder = TurnCoalescingResponder(
        generator,
        LoopScheduler(),
        delay=delay,
        greeting=settings.chat_greeting,
        fallback_reply=settings.fallback_reply,
        listener=_print_reply,
    )
    try:
        while True:
            line = await _read_line()
            if line is None:
                break
            if line.strip() in QUIT_COMMANDS:
                break
            responder.submit_user_message(line)
        # Piped input ends before the quiet period does; let the last turn finish.
        while responder.state is ResponderState.ARMED:
            await asyncio.sleep(0.01)
    finally:
        responder.close()
    return len(responder.messages)


@app.command()
def chat(
    response_backend: Optional[str] = typer.Option(None, help="Reply backend: echo/openai"),
    delay: Optional[float] = typer.Option(None, min=0.0, help="Quiet period in seconds before replying"),
) -> None:
    """Chat with the journaling companion; replies come once you pause."""

    configure_logging()
    settings = get_settings()
    try:
        generator = resolve_response_generator(response_backend or settings.response_backend)
    except (ServiceConfigurationError, RuntimeError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    typer.echo("Type messages and press Enter; /quit to leave.")
    asyncio.run(_run_chat(generator, settings, settings.response_delay if delay is None else delay))


def build_controller(capture: MediaCapture, settings: Settings) -> RecordingSessionController:
    return RecordingSessionController(
        capture,
        CaptureOptions(sample_rate=settings.sample_rate, channels=settings.channels),
        duration_interval=settings.duration_poll_interval,
        level_interval=settings.level_poll_interval,
        metering_probe_samples=settings.metering_probe_samples,
        oscillation_period=settings.oscillation_period,
        alert=_alert,
    )


def _meter(controller: RecordingSessionController) -> str:
    fraction = (controller.display_scale() - MIN_SCALE) / (MAX_SCALE - MIN_SCALE)
    bars = int(round(max(0.0, min(fraction, 1.0)) * METER_WIDTH))
    return f"\r{format_duration(controller.elapsed_ms)} [{'#' * bars:<{METER_WIDTH}}]"


async def _render_meter(controller: RecordingSessionController) -> None:
    while controller.state is RecordingState.ACTIVE:
        typer.echo(_meter(controller), nl=False)
        await asyncio.sleep(0.1)


async def run_recording(controller: RecordingSessionController) -> Optional[CapturedAudio]:
    async with controller:
        if not await controller.start():
            return None
        typer.echo("Recording... press Enter to save, Ctrl+C to discard.")
        meter = asyncio.create_task(_render_meter(controller))
        try:
            line = await _read_line()
        finally:
            meter.cancel()
            typer.echo("")
        if line is None:
            await controller.cancel()
            return None
        return await controller.stop_and_save()


@app.command()
def record(
    note_id: Optional[str] = typer.Option(None, help="Attach the recording to this note"),
    device: Optional[str] = typer.Option(None, help="Input device id/name"),
    transcription_backend: Optional[str] = typer.Option(None, help="Transcription backend: none/dummy/openai"),
    backend: Optional[str] = typer.Option(None, help="Note backend: memory/sqlite"),
) -> None:
    """Record a voice note from the microphone."""

    configure_logging()
    settings = get_settings()
    repository = _repository(backend)
    try:
        transcription = resolve_transcription_backend(
            transcription_backend or settings.transcription_backend
        )
    except (ServiceConfigurationError, RuntimeError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    from .core.audio.sounddevice_backend import SoundDeviceMediaCapture

    try:
        capture = SoundDeviceMediaCapture(
            settings.recordings_dir,
            device=_parse_device(device),
            prefix=settings.recording_prefix,
        )
    except CaptureError as exc:
        raise typer.BadParameter(str(exc)) from exc

    controller = build_controller(capture, settings)
    try:
        captured = asyncio.run(run_recording(controller))
    except KeyboardInterrupt:
        typer.echo("Recording discarded.")
        raise typer.Exit(code=130)

    if captured is None:
        if controller.state is RecordingState.FAILED:
            raise typer.Exit(code=1)
        typer.echo("Recording discarded.")
        return

    note = _unwrap(VoiceNoteOrchestrator(repository, transcription).save_recording(captured, note_id))
    typer.echo(f"Saved {format_duration(captured.duration_ms)} recording to note {note.id}")


@notes_app.command("list")
def list_notes(backend: Optional[str] = typer.Option(None, help="Note backend: memory/sqlite")) -> None:
    """List notes, most recently updated first."""

    configure_logging()
    notes = _unwrap(_repository(backend).list_notes())
    if not notes:
        typer.echo("No notes yet.")
        return
    for note in notes:
        typer.echo(_summary_line(note))


@notes_app.command("show")
def show_note(
    note_id: str = typer.Argument(..., help="Note id"),
    backend: Optional[str] = typer.Option(None, help="Note backend: memory/sqlite"),
) -> None:
    """Print every block of a note."""

    configure_logging()
    note = _unwrap(_repository(backend).get_note(note_id))
    if note is None:
        typer.secho("Note not found", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{note.id} (updated {note.updated_at:%Y/%m/%d %H:%M})")
    for index, block in enumerate(note.content):
        typer.echo(f"  [{index}] {block_text(block)}")


@notes_app.command("add")
def add_note(
    text: str = typer.Argument(..., help="Text to write"),
    note_id: Optional[str] = typer.Option(None, help="Append to this note instead of creating one"),
    backend: Optional[str] = typer.Option(None, help="Note backend: memory/sqlite"),
) -> None:
    """Create a text note, or append a paragraph to an existing one."""

    configure_logging()
    repository = _repository(backend)
    block = TextBlock(value=text)
    if note_id is None:
        note = _unwrap(repository.create_note(CreateNoteInput(content=[block])))
    else:
        note = _unwrap(repository.append_block(note_id, block))
    typer.echo(note.id)


@notes_app.command("search")
def search_notes(
    query: str = typer.Argument(..., help="Case-insensitive text to look for"),
    backend: Optional[str] = typer.Option(None, help="Note backend: memory/sqlite"),
) -> None:
    """Find notes whose text blocks contain the query."""

    configure_logging()
    notes = _unwrap(_repository(backend).search_notes(query))
    for note in notes:
        typer.echo(_summary_line(note))
    typer.echo(f"{len(notes)} note(s) found")


@notes_app.command("delete")
def delete_note(
    note_id: str = typer.Argument(..., help="Note id"),
    backend: Optional[str] = typer.Option(None, help="Note backend: memory/sqlite"),
) -> None:
    """Delete a note."""

    configure_logging()
    _unwrap(_repository(backend).delete_note(note_id))
    typer.echo(f"Deleted {note_id}")


@notes_app.command("stats")
def note_stats(backend: Optional[str] = typer.Option(None, help="Note backend: memory/sqlite")) -> None:
    """Count notes and blocks by kind."""

    configure_logging()
    stats = _unwrap(_repository(backend).get_stats())
    typer.echo(f"notes: {stats.total_notes}")
    typer.echo(f"text blocks: {stats.total_text_blocks}")
    typer.echo(f"image blocks: {stats.total_image_blocks}")
    typer.echo(f"audio blocks: {stats.total_audio_blocks}")


def _display_value(field: str, value: Any) -> str:
    if value is None:
        return ""
    if "api_key" in field:
        return "********"
    return str(value)


@config_app.command("show")
def config_show() -> None:
    """Print every setting with its environment variable."""

    for entry in list_environment_settings():
        marker = "" if entry.is_overridden else "  (default)"
        typer.echo(f"{entry.env_name}={_display_value(entry.field, entry.value)}{marker}")


@config_app.command("set")
def config_set(
    field: str = typer.Argument(..., help="Setting name, e.g. response_delay"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Persist an override to the .env file."""

    try:
        settings = update_environment_setting(field, value)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} = {_display_value(field, getattr(settings, field))}")


@config_app.command("unset")
def config_unset(field: str = typer.Argument(..., help="Setting name")) -> None:
    """Remove an override and fall back to the default."""

    try:
        settings = clear_environment_setting(field)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} = {_display_value(field, getattr(settings, field))}")


if __name__ == "__main__":  # pragma: no cover
    app()
