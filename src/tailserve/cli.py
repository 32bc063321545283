"""CLI entry point — the `tailserve` command."""

import ipaddress
import logging
import shutil

import click

from tailserve import __version__


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])
WILDCARD_ADDRESSES = ["0.0.0.0", "::"]


def _format_endpoint(ip, port: int) -> str:
    if ipaddress.ip_address(str(ip)).version == 6:
        return f"[{ip}]:{port}"
    return f"{ip}:{port}"


def _resolve(config: dict):
    """Resolve the tailnet identity, turning failures into CLI errors."""
    from tailserve import tailscale

    try:
        return tailscale.resolve(binary=config["tailscale_binary"])
    except tailscale.TailscaleError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__, prog_name="tailserve")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx, verbose):
    """tailserve — serve files to the devices on your Tailscale network."""
    from tailserve.config import load_config

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = load_config()


@cli.command()
@click.pass_obj
def status(config):
    """Show this machine's Tailscale identity."""
    info = _resolve(config)
    port = config["port"]

    click.echo(f"Tailscale IPs: {', '.join(str(ip) for ip in info.ips)}")
    click.echo(f"MagicDNS:      {info.dns_name or 'Not available'}")
    click.echo()
    if info.dns_name:
        click.echo(f"  Files:  http://{info.dns_name}:{port}")
    for ip in info.ips:
        click.echo(f"  Files:  http://{_format_endpoint(ip, port)}")


@cli.command()
@click.option("--tailscale", "use_tailscale", is_flag=True,
              help="Bind to this machine's Tailscale IPs.")
@click.option("-i", "--interfaces", multiple=True, metavar="IP",
              help="Interface address to bind to (repeatable).")
@click.option("-p", "--port", type=int, default=None, help="Port to listen on.")
@click.pass_obj
def bind(config, use_tailscale, interfaces, port):
    """Print the addresses the file server would listen on."""
    if use_tailscale and interfaces:
        raise click.UsageError("--tailscale cannot be used with --interfaces")

    for value in interfaces:
        try:
            ipaddress.ip_address(value)
        except ValueError:
            raise click.BadParameter(f"{value!r} is not an IP address", param_hint="--interfaces")

    port = port if port is not None else config["port"]
    if use_tailscale:
        addresses = list(_resolve(config).ips)
    else:
        addresses = list(interfaces) or WILDCARD_ADDRESSES

    for ip in addresses:
        click.echo(_format_endpoint(ip, port))


@cli.command()
@click.pass_obj
def doctor(config):
    """Check that Tailscale is installed and connected."""
    from tailserve import tailscale

    binary = config["tailscale_binary"]
    found = shutil.which(binary)
    if not found:
        click.echo(click.style("  ✗ ", fg="red") + f"{binary} — Install from https://tailscale.com")
        return
    click.echo(click.style("  ✓ ", fg="green") + f"{binary} ({found})")

    try:
        info = tailscale.resolve(binary=binary)
    except tailscale.TailscaleError as exc:
        click.echo(click.style("  ✗ ", fg="red") + str(exc))
        return
    click.echo(click.style("  ✓ ", fg="green") + f"connected as {info.host}")
    click.echo()
    click.echo(click.style("Ready to serve on your tailnet!", fg="green"))
