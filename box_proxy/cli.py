"""
box-proxy - deploy, upgrade and call upgradeable boxes.

Commands:
  box-proxy deploy --caller A                    Deploy and initialize a proxy (Box1)
  box-proxy upgrade --caller A --to Box2         Upgrade the latest (or --address) proxy
  box-proxy get-value / get-version              Read through the proxy
  box-proxy set-value 42 --caller B              Write (needs Box2 or later)
  box-proxy transfer-ownership --caller A --new-owner B
  box-proxy events                               Ordered event log of a proxy
  box-proxy deployments                          Recorded deployments on the network
  box-proxy implementations                      Known implementations

Global options:
  --home PATH        Deployment book root (env: BOX_PROXY_HOME)
  --network TEXT     Network name (env: BOX_PROXY_NETWORK)
  --json             Output JSON instead of human-readable text
  --verbose / -v     Debug logging

Domain errors are printed as ``CODE: message`` on stderr with exit status 1.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable, Optional

import typer

from .config import load_config
from .deployments import DeploymentBook
from .errors import BoxProxyError
from .proxy import BoxProxy

app = typer.Typer(
    name="box-proxy",
    help="Owner-gated upgradeable box proxies",
    no_args_is_help=True,
    add_completion=False,
)


class GlobalContext:
    def __init__(self) -> None:
        self.home: Optional[Path] = None
        self.network: Optional[str] = None
        self.json_output: bool = False


_ctx = GlobalContext()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _book() -> DeploymentBook:
    cfg = load_config()
    if _ctx.home is not None:
        cfg = replace(cfg, home=_ctx.home)
    if _ctx.network:
        cfg = replace(cfg, network=_ctx.network)
    return DeploymentBook(config=cfg)


def _emit(obj: Any, text: Optional[str] = None) -> None:
    if _ctx.json_output or text is None:
        typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))
    else:
        typer.echo(text)


def _run(fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except BoxProxyError as exc:
        typer.echo(f"{exc.code}: {exc.message}", err=True)
        raise typer.Exit(1)


def _mutate(address: Optional[str], action: Callable[[BoxProxy], Any]) -> Any:
    """Load a proxy, apply `action`, persist only if it succeeded."""
    book = _book()

    def go() -> Any:
        proxy = book.load(address)
        out = action(proxy)
        book.save(proxy)
        return proxy, out

    return _run(go)


@app.callback()
def main_callback(
    home: Optional[Path] = typer.Option(None, "--home", help="Deployment book root", envvar="BOX_PROXY_HOME"),
    network: Optional[str] = typer.Option(None, "--network", help="Network name", envvar="BOX_PROXY_NETWORK"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON instead of human-readable text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """
    Deploy boxes behind a stable proxy address and upgrade them owner-gated.
    """
    _ctx.home = home
    _ctx.network = network
    _ctx.json_output = json_output
    _configure_logging("DEBUG" if verbose else load_config().log_level)


@app.command()
def deploy(
    caller: str = typer.Option(..., "--caller", help="Deployer; becomes owner"),
) -> None:
    """Deploy a new proxy and initialize it once at version 1."""
    proxy = _run(lambda: _book().deploy(caller))
    _emit(
        {"address": proxy.address, "owner": proxy.owner, "version": proxy.get_version()},
        f"Deployed {proxy.address} (owner {proxy.owner}, version {proxy.get_version()})",
    )


@app.command()
def upgrade(
    caller: str = typer.Option(..., "--caller", help="Must be the owner"),
    to: str = typer.Option(..., "--to", help="Implementation name, version tag or code hash"),
    address: Optional[str] = typer.Option(None, "--address", help="Proxy address (default: latest)"),
) -> None:
    """Swap the implementation behind a proxy."""
    proxy, event = _mutate(address, lambda p: p.upgrade_to(caller, to))
    _emit(
        {"address": proxy.address, "event": event.to_receipt()},
        f"Upgraded {proxy.address}: v{event.args['previous_version']} -> v{event.args['new_version']}",
    )


@app.command("get-value")
def get_value(address: Optional[str] = typer.Option(None, "--address", help="Proxy address (default: latest)")) -> None:
    """Print the stored value."""
    proxy = _run(lambda: _book().load(address))
    value = _run(proxy.get_value)
    _emit({"address": proxy.address, "value": value}, str(value))


@app.command("get-version")
def get_version(address: Optional[str] = typer.Option(None, "--address", help="Proxy address (default: latest)")) -> None:
    """Print the active version tag."""
    proxy = _run(lambda: _book().load(address))
    version = _run(proxy.get_version)
    _emit({"address": proxy.address, "version": version}, str(version))


@app.command("set-value")
def set_value(
    value: int = typer.Argument(..., help="New unsigned value"),
    caller: str = typer.Option(..., "--caller", help="Any principal"),
    address: Optional[str] = typer.Option(None, "--address", help="Proxy address (default: latest)"),
) -> None:
    """Write a new value (requires Box2 or later)."""
    proxy, previous = _mutate(address, lambda p: p.set_value(caller, value))
    _emit({"address": proxy.address, "previous": previous, "value": value}, f"{previous} -> {value}")


@app.command("transfer-ownership")
def transfer_ownership(
    caller: str = typer.Option(..., "--caller", help="Current owner"),
    new_owner: str = typer.Option(..., "--new-owner", help="Next owner"),
    address: Optional[str] = typer.Option(None, "--address", help="Proxy address (default: latest)"),
) -> None:
    """Hand the owner role to another principal."""
    proxy, _ = _mutate(address, lambda p: p.transfer_ownership(caller, new_owner))
    _emit({"address": proxy.address, "owner": proxy.owner}, f"Owner of {proxy.address}: {proxy.owner}")


@app.command()
def events(address: Optional[str] = typer.Option(None, "--address", help="Proxy address (default: latest)")) -> None:
    """Show the ordered event log."""
    proxy = _run(lambda: _book().load(address))
    receipts = proxy.registry.events.to_receipts()
    lines = [f"#{r['seq']} {r['name']} {json.dumps(r['args'], sort_keys=True)}" for r in receipts]
    _emit(receipts, "\n".join(lines) if lines else "(no events)")


@app.command()
def deployments() -> None:
    """List recorded deployments, oldest first."""
    book = _book()
    recs = book.records()
    lines = [f"{r.nonce:>3}  {r.address}  {r.implementation}  {r.deployer}" for r in recs]
    _emit([asdict(r) for r in recs], "\n".join(lines) if lines else f"(no deployments on {book.network})")


@app.command()
def implementations() -> None:
    """List implementations known to this build."""
    comps = list(_book().catalog)
    rows = [
        {
            "name": c.name,
            "version": c.version,
            "capabilities": sorted(c.capabilities),
            "layout": c.layout.describe(),
            "code_hash": "0x" + c.code_hash().hex(),
        }
        for c in comps
    ]
    _emit(rows, "\n".join(f"v{r['version']}  {r['name']:<6} {','.join(r['capabilities'])}" for r in rows))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
