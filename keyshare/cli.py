"""
keyshare CLI - share your OpenPGP public keys on the local network.
"""

import asyncio
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import Config, get_config, set_config
from .daemon import SharingDaemon
from .errors import KeyStoreError
from .hkp import HKPDispatcher, HKPServer
from .hkp.formatter import format_date, format_fingerprint
from .keys import GnuPGKeyStore
from .sharing import HKP_SERVICE_TYPE, ServiceAdvertiser, SharingCoordinator, compute_share_name

console = Console()

SYSLOG_IDENT = "keyshare"


def setup_logging(verbose: bool = False, syslog: bool = False):
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler()]

    if syslog:
        address = "/dev/log" if os.path.exists("/dev/log") else ("localhost", 514)
        try:
            handler = logging.handlers.SysLogHandler(
                address=address,
                facility=logging.handlers.SysLogHandler.LOG_AUTH,
            )
        except OSError as e:
            console.print(f"[yellow]⚠️  Can't log to syslog: {e}[/yellow]")
        else:
            handler.setFormatter(logging.Formatter(f"{SYSLOG_IDENT}[{os.getpid()}]: %(name)s: %(message)s"))
            handlers.append(handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def console_notifier(heading: str, message: str) -> None:
    """Show sharing errors to the operator."""
    console.print(Panel(message, title=f"[bold red]{heading}[/bold red]", border_style="red"))


def build_keystore(config: Config) -> GnuPGKeyStore:
    return GnuPGKeyStore(
        gpg_binary=config.keystore.gpg_binary,
        homedir=config.keystore.homedir,
    )


def build_coordinator(config: Config, advertise: bool = True) -> SharingCoordinator:
    """Wire the key store, HKP server and advertiser together."""
    server = HKPServer(
        HKPDispatcher(build_keystore(config)),
        host=config.server.host,
        port=config.server.port,
    )

    advertiser_factory = None
    if advertise and config.sharing.enabled:
        def advertiser_factory(port: int) -> ServiceAdvertiser:
            return ServiceAdvertiser(
                port=port,
                name=config.sharing.share_name,
                notifier=console_notifier,
                retry_delay=config.sharing.retry_delay,
            )

    return SharingCoordinator(server, advertiser_factory, notifier=console_notifier)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--data-dir', type=click.Path(), help='Data directory')
@click.pass_context
def main(ctx, verbose, data_dir):
    """🔑 keyshare - share OpenPGP keys on the local network"""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    if data_dir:
        set_config(Config.load(Path(data_dir)))
    setup_logging(verbose)


@main.command()
@click.option('--host', '-h', default=None, help='Host to bind to')
@click.option('--port', '-p', default=None, type=int, help='Port to bind to (0 = any)')
@click.option('--name', '-n', default=None, help='Advertised name')
@click.option('--no-advertise', is_flag=True, help='Serve HKP without DNS-SD')
@click.option('--syslog', is_flag=True, help='Also log to syslog')
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int], name: Optional[str],
          no_advertise: bool, syslog: bool):
    """Serve and advertise your public keys until interrupted."""
    config = get_config()

    if syslog:
        setup_logging(ctx.obj.get('verbose', False), syslog=True)

    if host is not None:
        config.server.host = host
    if port is not None:
        config.server.port = port
    if name is not None:
        config.sharing.share_name = name

    coordinator = build_coordinator(config, advertise=not no_advertise)
    daemon = SharingDaemon(coordinator)

    console.print(f"\n[bold blue]🔑 Sharing keys[/bold blue]")
    console.print(f"   Press Ctrl+C to stop\n")

    sys.exit(asyncio.run(daemon.run()))


@main.command()
@click.argument('search', required=False, default="")
@click.option('--sigs', is_flag=True, help='Include signatures')
@click.option('--fingerprint', is_flag=True, help='Show full fingerprints')
def keys(search: str, sigs: bool, fingerprint: bool):
    """List the keys that would be shared."""
    config = get_config()
    store = build_keystore(config)

    table = Table(title="Shared keys")
    table.add_column("Key ID", style="cyan")
    table.add_column("Type")
    table.add_column("Created")
    table.add_column("User IDs")
    if fingerprint:
        table.add_column("Fingerprint", style="dim")
    if sigs:
        table.add_column("Signed by", style="dim")

    count = 0
    try:
        for key in store.query(search, include_signatures=sigs):
            count += 1
            primary = key.primary
            uids = "\n".join(
                f"{uid.name or ''} <{uid.email}>" if uid.email else (uid.name or "")
                for uid in key.uids
            )
            row = [
                key.keyid,
                f"{primary.length}{primary.algorithm.letter}",
                format_date(primary.created),
                "[red]revoked[/red]" if key.revoked else uids,
            ]
            if fingerprint:
                row.append(format_fingerprint(key.fingerprint))
            if sigs:
                signers = {sig.keyid[-8:] for uid in key.uids for sig in uid.signatures}
                row.append("\n".join(sorted(signers)))
            table.add_row(*row)
    except KeyStoreError as e:
        console.print(f"[red]Couldn't list keys: {e}[/red]")
        sys.exit(1)

    if count == 0:
        console.print("[yellow]No matching keys in the keyring.[/yellow]")
        return

    console.print(table)


@main.command()
def status():
    """Show sharing configuration."""
    config = get_config()

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")

    port = config.server.port or "any"
    table.add_row("Config", str(config.config_path))
    table.add_row("Bind", f"{config.server.host}:{port}")
    table.add_row("Advertise", "yes" if config.sharing.enabled else "no")
    table.add_row("Service type", HKP_SERVICE_TYPE)
    table.add_row("Name", f"[cyan]{compute_share_name(config.sharing.share_name)}[/cyan]")
    table.add_row("gpg", config.keystore.gpg_binary)
    table.add_row("Keyring", config.keystore.homedir or "default")

    console.print(table)


@main.group(name="config")
def config_group():
    """Change saved settings."""


@config_group.command(name="set-name")
@click.argument('name', required=False)
def set_name(name: Optional[str]):
    """Set the advertised name (omit NAME to derive it from your user)."""
    config = get_config()
    config.sharing.share_name = name or None
    config.save()
    console.print(f"[green]✓[/green] Advertising as: {compute_share_name(config.sharing.share_name)}")


@config_group.command(name="set-port")
@click.argument('port', type=int)
def set_port(port: int):
    """Set the HKP port (0 = any free port)."""
    config = get_config()
    config.server.port = port
    config.save()
    console.print(f"[green]✓[/green] HKP port: {port or 'any'}")


@config_group.command(name="advertise")
@click.argument('enabled', type=bool)
def set_advertise(enabled: bool):
    """Turn DNS-SD advertisement on or off."""
    config = get_config()
    config.sharing.enabled = enabled
    config.save()
    console.print(f"[green]✓[/green] Advertise: {'yes' if enabled else 'no'}")


if __name__ == "__main__":
    main()
