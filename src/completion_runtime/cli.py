"""CLI interface for completion-runtime.

Requires the 'cli' extra: pip install completion-runtime[cli]
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

try:
    import typer
    from rich.console import Console
    from rich.logging import RichHandler
    from rich.table import Table
except ImportError:
    print(
        "CLI dependencies not installed. Install with: pip install completion-runtime[cli]",
        file=sys.stderr,
    )
    sys.exit(1)

from pydantic import TypeAdapter, ValidationError

from completion_runtime import __version__
from completion_runtime.caching.strategy import CacheStrategySelector
from completion_runtime.config import RuntimeSettings
from completion_runtime.exceptions import (
    GatewayError,
    InsufficientCreditsError,
    InvalidCredentialError,
    RateLimitError,
)
from completion_runtime.gateway.client import GatewayClient
from completion_runtime.models.generation import StoredMessage
from completion_runtime.models.request import Message, TextBlock
from completion_runtime.reasoning import ReasoningSettings
from completion_runtime.session.generation import GenerationSession
from completion_runtime.session.request_builder import RequestBuilder
from completion_runtime.storage.memory_store import InMemoryMessageStore

app = typer.Typer(
    name="completion-runtime",
    help="Streaming chat-completion runtime for OpenAI-compatible gateways.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

DEFAULT_MODEL = "openai/gpt-4o-mini"

_messages_adapter = TypeAdapter(list[Message])


def _build_client(settings: RuntimeSettings) -> GatewayClient:
    return GatewayClient.from_settings(settings)


def _load_settings(api_key: str | None) -> RuntimeSettings:
    settings = RuntimeSettings.from_env()
    if api_key:
        settings = settings.model_copy(update={"api_key": api_key})
    if not settings.api_key:
        err_console.print(
            "[red]No API key. Pass --api-key or set COMPLETION_RUNTIME_API_KEY.[/red]"
        )
        raise typer.Exit(code=1)
    return settings


def _report_gateway_error(client: GatewayClient, error: GatewayError) -> None:
    if isinstance(error, RateLimitError):
        err_console.print(f"[yellow]{client.governor.rate_limit_message(error)}[/yellow]")
    elif isinstance(error, InvalidCredentialError):
        err_console.print("[red]The API key was rejected.[/red]")
    elif isinstance(error, InsufficientCreditsError):
        err_console.print("[red]Insufficient credits for this request.[/red]")
    else:
        err_console.print(f"[red]{error}[/red]")


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output"),
) -> None:
    if version:
        console.print(f"completion-runtime {__version__}")
        raise typer.Exit()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


@app.command()
def info() -> None:
    """Show information about the completion-runtime installation."""
    table = Table(title="completion-runtime info")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Version", __version__)
    table.add_row("Python", sys.version.split()[0])
    table.add_row("Gateway", RuntimeSettings.from_env().base_url)

    for dep_name in ["httpx", "pydantic", "tiktoken"]:
        try:
            mod = __import__(dep_name)
            ver = getattr(mod, "__version__", "installed")
            table.add_row(dep_name, str(ver))
        except ImportError:
            table.add_row(dep_name, "[red]not installed[/red]")

    console.print(table)


@app.command("validate-key")
def validate_key(
    api_key: str | None = typer.Option(None, "--api-key", help="Key to check"),
) -> None:
    """Check that the gateway accepts the API key."""
    settings = _load_settings(api_key)

    async def _validate() -> bool:
        async with _build_client(settings) as client:
            return await client.validate_api_key()

    if asyncio.run(_validate()):
        console.print("[green]API key is valid.[/green]")
    else:
        console.print("[red]API key is not valid.[/red]")
        raise typer.Exit(code=1)


@app.command()
def chat(
    prompt: str = typer.Argument(..., help="User message"),
    model: str = typer.Option(DEFAULT_MODEL, "--model", "-m", help="Model id"),
    system: str | None = typer.Option(None, "--system", "-s", help="System prompt"),
    reasoning: bool = typer.Option(
        False, "--reasoning/--no-reasoning", help="Request reasoning tokens"
    ),
    web_search: bool = typer.Option(False, "--web-search", help="Enable web search"),
    api_key: str | None = typer.Option(None, "--api-key", help="Gateway API key"),
) -> None:
    """Stream one completion to the terminal."""
    settings = _load_settings(api_key)
    chat_id = "cli"
    now = datetime.now(UTC)
    store = InMemoryMessageStore()
    if system:
        store.add(StoredMessage(id="system", chat_id=chat_id, role="system", content=system, created_at=now))
    store.add(StoredMessage(id="user", chat_id=chat_id, role="user", content=prompt, created_at=now))
    store.add(
        StoredMessage(
            id="assistant",
            chat_id=chat_id,
            role="assistant",
            is_complete=False,
            created_at=datetime.now(UTC),
        )
    )

    printed = 0

    def on_chunk(content: str, is_complete: bool) -> None:
        nonlocal printed
        console.print(content[printed:], end="", markup=False, highlight=False)
        printed = len(content)
        if is_complete:
            console.print()

    async def _chat() -> None:
        async with _build_client(settings) as client:
            session = GenerationSession(
                client,
                store,
                buffer_size=settings.buffer_size,
                buffer_time_ms=settings.buffer_time_ms,
                builder=RequestBuilder(
                    temperature=settings.temperature,
                    base_max_tokens=settings.base_max_tokens,
                    reasoning_max_tokens_cap=settings.reasoning_max_tokens_cap,
                ),
            )
            try:
                await session.send(
                    chat_id,
                    model,
                    reasoning=ReasoningSettings(enabled=reasoning),
                    web_search=web_search,
                    on_chunk=on_chunk,
                )
            except GatewayError as exc:
                _report_gateway_error(client, exc)
                raise typer.Exit(code=1) from exc

    asyncio.run(_chat())

    message = store.get("assistant")
    if message is not None and message.reasoning:
        console.print(f"[dim]Reasoning: {len(message.reasoning)} characters[/dim]")
    if message is not None and message.generation_id:
        console.print(f"[dim]Generation: {message.generation_id}[/dim]")


@app.command()
def generation(
    generation_id: str = typer.Argument(..., help="Gateway generation id"),
    api_key: str | None = typer.Option(None, "--api-key", help="Gateway API key"),
) -> None:
    """Show cost and token metadata for a generation."""
    settings = _load_settings(api_key)

    async def _fetch():
        async with _build_client(settings) as client:
            try:
                return await client.get_generation(generation_id)
            except GatewayError as exc:
                _report_gateway_error(client, exc)
                raise typer.Exit(code=1) from exc

    metadata = asyncio.run(_fetch())
    table = Table(title=f"Generation {metadata.id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Model", metadata.model)
    table.add_row("Provider", metadata.provider_name or "-")
    table.add_row("Prompt tokens", str(metadata.tokens_prompt))
    table.add_row("Completion tokens", str(metadata.tokens_completion))
    table.add_row("Total cost", f"${metadata.total_cost:.6f}")
    if metadata.cache_discount is not None:
        table.add_row("Cache discount", f"${metadata.cache_discount:.6f}")
    if metadata.finish_reason:
        table.add_row("Finish reason", metadata.finish_reason)
    console.print(table)


@app.command("cache-plan")
def cache_plan(
    path: Path = typer.Argument(..., help="JSON file with a list of messages"),  # noqa: B008
    model: str = typer.Option(..., "--model", "-m", help="Model id"),
) -> None:
    """Show which messages would carry a prompt-cache breakpoint."""
    if not path.exists():
        console.print(f"[red]Error: {path} does not exist[/red]")
        raise typer.Exit(code=1)
    try:
        messages = _messages_adapter.validate_python(json.loads(path.read_text()))
    except (json.JSONDecodeError, ValidationError) as exc:
        console.print(f"[red]Error: invalid message file: {exc}[/red]")
        raise typer.Exit(code=1) from exc

    selector = CacheStrategySelector()
    capability = selector.capability_for(model)
    planned = selector.apply(model, messages)
    console.print(
        f"Cache type: [cyan]{capability.type.value}[/cyan], "
        f"conversation tokens: {selector.estimate_conversation_tokens(messages)}"
    )

    table = Table(title=f"Cache plan for {model}")
    table.add_column("#", justify="right")
    table.add_column("Role", style="cyan")
    table.add_column("Breakpoint", style="green")
    table.add_column("Preview")
    for index, message in enumerate(planned):
        marked = not isinstance(message.content, str) and any(
            isinstance(block, TextBlock) and block.cache_control is not None
            for block in message.content
        )
        preview = message.text[:60].replace("\n", " ")
        table.add_row(str(index), message.role, "yes" if marked else "", preview)
    console.print(table)


if __name__ == "__main__":
    app()
