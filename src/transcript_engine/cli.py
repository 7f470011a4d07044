"""Typer CLI for Transcript-Engine."""

import asyncio

import typer
from rich.console import Console

app = typer.Typer(name="transcripts", help="Transcript-Engine: certified transcript issuance and verification")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Transcript-Engine API server."""
    import uvicorn
    from transcript_engine.app import create_app

    console.print(f"[bold green]Starting Transcript-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command("init-db")
def init_db():
    """Create all tables in the configured database."""
    from transcript_engine.deps import get_db

    async def _run() -> None:
        db = get_db()
        await db.init()
        await db.create_all()
        await db.close()

    asyncio.run(_run())
    console.print("[bold green]Database initialized[/bold green]")


@app.command("generate-code")
def generate_code():
    """Print a fresh verification code (offline, no DB required)."""
    from transcript_engine.codes.generator import generate_verification_code

    console.print(f"[bold]{generate_verification_code()}[/bold]")


@app.command()
def verify(
    code: str = typer.Argument(..., help="Verification code printed on the transcript"),
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Verify a transcript code against a running server."""
    from transcript_engine.client import VerificationClient

    with VerificationClient(server_url=url) as client:
        result = client.verify(code)

    if result.valid:
        console.print(f"[bold green]VALID[/bold green] — {result.student_name} ({result.usn})")
        console.print(f"  Program: {result.major}")
        console.print(f"  CGPA: {result.cgpa}")
        console.print(f"  Approved: {result.approval_date}")
    elif result.error:
        console.print(f"[bold red]{result.code}[/bold red] — {result.error}")
        raise typer.Exit(2)
    else:
        console.print("[bold red]INVALID[/bold red] — no approved certificate matches this code")
        raise typer.Exit(1)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Transcript-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
