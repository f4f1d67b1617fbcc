"""CLI entry point.

Commands:
- serve: Run the API server
- init-db: Create the database tables
- chat: Send one message to a running server and print the streamed reply
"""

import asyncio
import json
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from relay.settings import get_settings

app = typer.Typer(
    name="relay",
    help="Streaming chat relay for Gemini with MCP tools",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


@app.command()
def serve(
    host: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--host", "-h", help="Host to bind to (default: API_HOST)"),
    ] = None,
    port: Annotated[
        Optional[int],  # noqa: UP007
        typer.Option("--port", "-p", help="Port to bind to (default: PORT)"),
    ] = None,
    reload: Annotated[
        bool,
        typer.Option("--reload", "-r", help="Enable auto-reload for development"),
    ] = False,
    workers: Annotated[
        Optional[int],  # noqa: UP007
        typer.Option("--workers", "-w", help="Number of worker processes"),
    ] = None,
) -> None:
    """Start the relay API server with uvicorn."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    workers = workers or settings.api_workers

    console.print(
        Panel(
            f"[bold green]Starting Relay API Server[/bold green]\n"
            f"Host: {host}\n"
            f"Port: {port}\n"
            f"Workers: {workers}\n"
            f"Model: {settings.gemini_model}\n"
            f"Reload: {reload}",
            title="Relay",
            border_style="green",
        )
    )

    uvicorn.run(
        "relay.api.main:get_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers if not reload else 1,
        log_level=settings.log_level.lower(),
    )


@app.command("init-db")
def init_db() -> None:
    """Create any missing tables in DATABASE_URL."""
    from relay.storage import close_db, create_schema

    async def _run() -> None:
        try:
            await create_schema()
        finally:
            await close_db()

    asyncio.run(_run())
    console.print("[green]Database tables are up to date.[/green]")


@app.command()
def chat(
    message: Annotated[str, typer.Argument(help="Message to send")],
    app_id: Annotated[str, typer.Option("--app", "-a", help="App ID with a registered config")],
    org_id: Annotated[str, typer.Option("--org", help="Value for x-org-id")] = "local-org",
    user_id: Annotated[str, typer.Option("--user", help="Value for x-user-id")] = "local-user",
    session_id: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--session", "-s", help="Continue an existing session"),
    ] = None,
    url: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--url", help="Server base URL (default: http://localhost:PORT)"),
    ] = None,
) -> None:
    """Send one message and print the streamed reply."""
    import httpx

    settings = get_settings()
    base_url = url or f"http://localhost:{settings.api_port}"
    body: dict[str, object] = {"message": message, "appId": app_id}
    if session_id:
        body["sessionId"] = session_id

    async def _run() -> None:
        async with (
            httpx.AsyncClient(base_url=base_url, timeout=None) as client,
            client.stream(
                "POST",
                "/chat",
                json=body,
                headers={"x-org-id": org_id, "x-user-id": user_id},
            ) as response,
        ):
            if response.status_code != 200:
                await response.aread()
                console.print(f"[red]HTTP {response.status_code}[/red] {escape(response.text)}")
                raise typer.Exit(code=1)
            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue
                payload = line.removeprefix("data: ")
                if payload == "[DONE]":
                    break
                _print_event(json.loads(payload))
        console.print()

    asyncio.run(_run())


def _print_event(event: dict) -> None:
    kind = event.get("type")
    if "sessionId" in event:
        console.print(f"[dim]session {event['sessionId']}[/dim]")
    elif kind == "token":
        console.print(event["content"], end="", markup=False, highlight=False)
    elif kind == "tool_call":
        console.print(f"\n[cyan]-> {event['name']}({escape(json.dumps(event['args']))})[/cyan]")
    elif kind == "tool_result":
        console.print(f"[cyan]<- {event['name']}[/cyan]")
    elif kind == "input_request":
        console.print(f"\n[yellow]? {escape(event['label'])} ({event['input_type']} -> {event['field']})[/yellow]")
    elif kind == "buttons":
        labels = " | ".join(f"[{b['label']}]" for b in event["buttons"])
        console.print(f"\n[magenta]{escape(labels)}[/magenta]")


if __name__ == "__main__":
    app()
