"""Command line interface for TunnlTo."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config.storage import JsonFileStorage
from .core.app_paths import STORAGE_FILE, TUNNEL_CONFIG_FILE, ensure_directories
from .core.keys import derive_public_key, generate_key_pair
from .core.manager import TunnelManager
from .core.store import TunnelStore
from .core.tunnel import Tunnel
from .core.wiresock import render_tunnel_config, write_tunnel_config

console = Console()
app = typer.Typer(add_completion=False, help="Manage TunnlTo tunnel configurations from the terminal")


@app.callback()
def main(
    ctx: typer.Context,
    storage: Optional[Path] = typer.Option(None, "--storage", help="Storage file to use instead of the default"),
) -> None:
    ctx.obj = storage or STORAGE_FILE


def _manager(ctx: typer.Context) -> TunnelManager:
    path = Path(ctx.obj or STORAGE_FILE)
    if path == STORAGE_FILE:
        ensure_directories()
    return TunnelManager(TunnelStore(JsonFileStorage(path)))


def _require(manager: TunnelManager, tunnel_id: str) -> Tunnel:
    tunnel = manager.get_tunnel(tunnel_id)
    if tunnel is None:
        console.print(f"[red]Tunnel {tunnel_id} not found[/red]")
        raise typer.Exit(code=1)
    return tunnel


@app.command("list")
def list_tunnels(ctx: typer.Context) -> None:
    """List configured tunnels."""
    manager = _manager(ctx)
    selected = manager.selected_tunnel_id()
    table = Table(title="Tunnels")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Endpoint")
    table.add_column("Address")
    table.add_column("Selected")
    for tunnel in manager.list_tunnels():
        address = ", ".join(a for a in (tunnel.interface.ipv4_address, tunnel.interface.ipv6_address) if a)
        table.add_row(
            tunnel.id,
            tunnel.name,
            f"{tunnel.peer.endpoint}:{tunnel.peer.port}" if tunnel.peer.port else tunnel.peer.endpoint,
            address or "-",
            "Yes" if tunnel.id == selected else "",
        )
    console.print(table)


@app.command()
def show(ctx: typer.Context, tunnel_id: str) -> None:
    """Print a tunnel as a WireGuard style config."""
    tunnel = _require(_manager(ctx), tunnel_id)
    console.print(f"# {tunnel.name}", highlight=False)
    console.print(render_tunnel_config(tunnel), highlight=False, markup=False)


@app.command("import")
def import_profile(
    ctx: typer.Context,
    path: Path,
    save: bool = typer.Option(False, "--save", help="Save the imported tunnel instead of only printing it"),
) -> None:
    """Import a WireGuard profile file."""
    manager = _manager(ctx)
    tunnel = manager.import_profile(path.read_text(encoding="utf-8"), path.name)
    console.print(render_tunnel_config(tunnel), highlight=False, markup=False)
    if not save:
        return
    if not manager.save_tunnel(tunnel):
        for problem in manager.check_tunnel(tunnel):
            console.print(f"[red]{problem}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Saved tunnel {tunnel.name} as {tunnel.id}[/green]")


@app.command()
def export(
    ctx: typer.Context,
    tunnel_id: str,
    path: Path = typer.Argument(TUNNEL_CONFIG_FILE, help="Config file to write"),
) -> None:
    """Write a tunnel's config file for the wiresock client."""
    tunnel = _require(_manager(ctx), tunnel_id)
    write_tunnel_config(tunnel, path)
    console.print(f"Exported {tunnel.name} to {path}")


@app.command()
def remove(ctx: typer.Context, tunnel_id: str) -> None:
    """Delete a tunnel."""
    manager = _manager(ctx)
    tunnel = _require(manager, tunnel_id)
    manager.remove_tunnel(tunnel_id)
    console.print(f"Deleted {tunnel.name}")


@app.command()
def select(ctx: typer.Context, tunnel_id: str) -> None:
    """Mark a tunnel as the selected one."""
    manager = _manager(ctx)
    _require(manager, tunnel_id)
    manager.select_tunnel(tunnel_id)
    console.print(f"Selected {tunnel_id}")


@app.command()
def genkey() -> None:
    """Generate a new key pair."""
    pair = generate_key_pair()
    console.print(f"PrivateKey = {pair['privateKey']}", highlight=False)
    console.print(f"PublicKey = {pair['publicKey']}", highlight=False)


@app.command()
def pubkey(private_key: str) -> None:
    """Derive the public key for a private key."""
    public_key = derive_public_key(private_key)
    if not public_key:
        console.print("[red]Not a valid private key[/red]")
        raise typer.Exit(code=1)
    console.print(public_key, highlight=False)


@app.command()
def migrate(ctx: typer.Context) -> None:
    """Upgrade stored data and report what changed."""
    report = _manager(ctx).migration_report
    if not report.changed:
        console.print("Nothing to migrate")
        return
    console.print(f"Converted {len(report.legacy_migrated)} legacy tunnels")
    console.print(f"Split addresses of {len(report.addresses_split)} tunnels")
    if report.normalised:
        console.print(f"Rewrote {len(report.normalised)} incomplete tunnel records")


@app.command()
def backup(ctx: typer.Context, path: Path) -> None:
    """Export all tunnels to a JSON or YAML file."""
    _manager(ctx).store.export_tunnels(path)
    console.print(f"Wrote backup to {path}")


@app.command()
def restore(ctx: typer.Context, path: Path) -> None:
    """Merge tunnels from a backup file."""
    tunnels = _manager(ctx).store.import_tunnels(path)
    console.print(f"Restored backup; {len(tunnels)} tunnels stored")


def run_cli(argv: List[str] | None = None) -> int:
    try:
        result = app(args=argv, prog_name="tunnlto", standalone_mode=False)
    except typer.Exit as exc:
        return exc.exit_code
    return result if isinstance(result, int) else 0
