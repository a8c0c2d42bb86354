import asyncio

import httpx
import typer
from rich.console import Console
from rich.table import Table

from spark_console.config import settings

console = Console()
cli_app = typer.Typer(name="spark-console", help="Spark Console host monitoring CLI")

GIB = 1024**3


def _run_async(coro):
    """Run async code from sync CLI context."""
    return asyncio.run(coro)


def _gib(value: int | None) -> str:
    return "-" if value is None else f"{value / GIB:.1f} GiB"


def _print_snapshot(snapshot) -> None:
    table = Table(title=f"System snapshot ({snapshot.collected_at:%Y-%m-%d %H:%M:%S} UTC)")
    table.add_column("Family", style="cyan")
    table.add_column("Mode", style="dim")
    table.add_column("Value")

    def unavailable(family: str) -> str:
        err = snapshot.errors.get(family)
        return f"[yellow]unavailable[/yellow] ({err.kind}: {err.message})" if err else "[yellow]unavailable[/yellow]"

    if snapshot.gpu is None:
        table.add_row("gpu", snapshot.mode.get("gpu", ""), unavailable("gpu"))
    elif not snapshot.gpu:
        table.add_row("gpu", snapshot.mode.get("gpu", ""), "no devices")
    for gpu in snapshot.gpu or []:
        util = "-" if gpu.utilization_pct is None else f"{gpu.utilization_pct:.0f}%"
        table.add_row(
            f"gpu{gpu.index}",
            snapshot.mode.get("gpu", ""),
            f"{gpu.name}  util {util}  mem {_gib(gpu.memory_used_bytes)} / {_gib(gpu.memory_total_bytes)}",
        )

    cpu = snapshot.cpu
    table.add_row(
        "cpu",
        snapshot.mode.get("cpu", ""),
        unavailable("cpu") if cpu is None
        else f"{cpu.utilization_pct:.1f}% of {cpu.core_count} cores  load {cpu.load_1m} {cpu.load_5m} {cpu.load_15m}",
    )
    mem = snapshot.memory
    table.add_row(
        "memory",
        snapshot.mode.get("memory", ""),
        unavailable("memory") if mem is None else f"{_gib(mem.used_bytes)} / {_gib(mem.total_bytes)}",
    )
    if snapshot.disk is None:
        table.add_row("disk", snapshot.mode.get("disk", ""), unavailable("disk"))
    for mount in (snapshot.disk.mounts if snapshot.disk else []):
        table.add_row("disk", snapshot.mode.get("disk", ""), f"{mount.path}  {_gib(mount.used_bytes)} / {_gib(mount.total_bytes)}")
    up = snapshot.uptime
    table.add_row(
        "uptime",
        snapshot.mode.get("uptime", ""),
        unavailable("uptime") if up is None else f"{int(up.seconds) // 86400}d {int(up.seconds) % 86400 // 3600}h",
    )
    console.print(table)


@cli_app.command("serve")
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default: SPARK_BIND_HOST)"),
    port: int = typer.Option(None, "--port", help="Port (default: SPARK_PORT)"),
):
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "spark_console.main:app",
        host=host or settings.spark_bind_host,
        port=port or settings.spark_port,
        log_level=settings.spark_log_level.lower(),
    )


@cli_app.command("snapshot")
def snapshot(as_json: bool = typer.Option(False, "--json", help="Print raw JSON")):
    """Collect a snapshot on this host and print it."""
    from spark_console.services.provider import build_provider

    result = _run_async(build_provider(settings).get_snapshot())
    if as_json:
        console.print_json(result.model_dump_json())
        return
    _print_snapshot(result)


@cli_app.command("containers")
def containers():
    """List containers known to the runtime."""
    from spark_console.core.exceptions import SourceUnavailable
    from spark_console.services.containers import build_container_services

    try:
        reader, _ = build_container_services(settings)
        records = _run_async(reader.collect())
    except SourceUnavailable as e:
        console.print(f"[red]Container runtime unavailable:[/red] {e.reason}")
        raise typer.Exit(code=1)

    if not records:
        console.print("[dim]No containers found.[/dim]")
        return

    table = Table(title="Containers")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Image")
    table.add_column("Status", style="green")
    table.add_column("CPU")
    table.add_column("Memory")
    table.add_column("Ports")
    for record in records:
        cpu = "-" if record.cpu_pct is None else f"{record.cpu_pct:.1f}%"
        table.add_row(
            record.id[:12], record.name, record.image, record.status.value,
            cpu, _gib(record.memory_usage_bytes), ", ".join(record.ports),
        )
    console.print(table)


@cli_app.command("action")
def action(
    container_id: str = typer.Argument(help="Container id or name"),
    verb: str = typer.Argument(help="start, stop or restart"),
):
    """Start, stop or restart a container."""
    from spark_console.core.exceptions import ControlError
    from spark_console.schemas.containers import ContainerAction
    from spark_console.services.containers import build_container_services

    try:
        container_action = ContainerAction(verb.lower())
    except ValueError:
        console.print(f"[red]Unknown action '{verb}'.[/red] Use start, stop or restart.")
        raise typer.Exit(code=2)

    _, control = build_container_services(settings)
    try:
        record = _run_async(control.apply_action(container_id, container_action))
    except ControlError as e:
        console.print(f"[red]{e.code}:[/red] {e.message}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]{record.name}[/bold green] is now {record.status.value}")


@cli_app.command("models")
def models():
    """List model files under the configured model directories."""
    from spark_console.services.model_discovery import ModelDiscovery

    records = _run_async(ModelDiscovery(settings.model_dirs(), max_depth=settings.spark_model_scan_depth).scan())
    if not records:
        console.print("[dim]No model files found.[/dim]")
        return

    table = Table(title="Models")
    table.add_column("Name", style="cyan")
    table.add_column("Format")
    table.add_column("Size")
    table.add_column("Repo")
    table.add_column("Modified")
    for record in records:
        table.add_row(
            record.name, record.format, _gib(record.size_bytes), record.repo_id or "-",
            record.modified.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@cli_app.command("remote")
def remote(
    url: str = typer.Option("http://localhost:3000", "--url", help="Base URL of a running server"),
    token: str = typer.Option(None, "--token", help="Access token, if the server requires one"),
):
    """Fetch and print the snapshot from a running server."""
    from spark_console.schemas.system import SystemSnapshot

    headers = {"Authorization": f"Bearer {token}"} if token else {}
    try:
        response = httpx.get(f"{url.rstrip('/')}/api/v1/system", headers=headers, timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]Request failed:[/red] {e}")
        raise typer.Exit(code=1)
    _print_snapshot(SystemSnapshot.model_validate(response.json()))


def main():
    cli_app()


if __name__ == "__main__":
    main()
