"""
Command-Line Interface for DMXWebRTC.

Provides commands for running the bridge, listing candidate outputs,
and sending a test universe to the network.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
import structlog

from dmx_webrtc import __version__
from dmx_webrtc.core.config import OutputConfig, Settings
from dmx_webrtc.core.exceptions import BridgeError, SocketBindError

logger = structlog.get_logger()


def _load_settings(config_path: Optional[Path]) -> Settings:
    if config_path:
        return Settings.from_yaml(config_path)
    return Settings()


def _parse_output(spec: str) -> OutputConfig:
    """Parse ``address/mask`` (mask dotted or prefix length) into an output."""
    address, sep, mask = spec.partition("/")
    if not sep or not mask:
        raise click.BadParameter(f"expected ADDRESS/MASK, got {spec!r}")
    if mask.isdigit() and int(mask) <= 32:
        prefix = int(mask)
        bits = (0xFFFFFFFF << (32 - prefix)) & 0xFFFFFFFF
        mask = ".".join(str((bits >> shift) & 0xFF) for shift in (24, 16, 8, 0))
    return OutputConfig(name=spec, address=address, mask=mask)


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, config: Optional[str]) -> None:
    """
    DMXWebRTC - WebRTC to Art-Net bridge

    Receives DMX512 universes from browsers over WebRTC data channels
    and broadcasts them as ArtDMX packets on every configured output.
    """
    ctx.ensure_object(dict)

    settings = _load_settings(Path(config) if config else None)

    # Configure logging; --debug wins over the configured level
    log_level = "DEBUG" if debug else settings.log_level
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level)
        ),
    )

    ctx.obj["debug"] = debug
    ctx.obj["settings"] = settings


@cli.command()
@click.option(
    "--websocket-port",
    "-w",
    type=int,
    default=None,
    help="Port of the websocket server used for signaling.",
)
@click.option(
    "--udp-port",
    "-u",
    type=int,
    default=None,
    help="Art-Net port packets are forwarded to and intercepted from.",
)
@click.pass_context
def run(ctx: click.Context, websocket_port: Optional[int], udp_port: Optional[int]) -> None:
    """Run the WebRTC to Art-Net bridge."""
    from dmx_webrtc.bridge.service import DMXWebRTCBridge

    settings = ctx.obj["settings"]
    settings.debug = ctx.obj["debug"]
    if websocket_port is not None:
        settings.signaling.port = websocket_port
    if udp_port is not None:
        settings.artnet.port = udp_port

    click.echo(f"DMXWebRTC v{__version__}")
    click.echo("=" * 50)
    click.echo(f"Websocket signaling through port {settings.signaling.port}")
    click.echo(f"Forwarding ArtDMX packets on port {settings.artnet.port}")
    click.echo("Press Ctrl+C to stop.")
    click.echo()

    bridge = DMXWebRTCBridge(settings)
    try:
        asyncio.run(bridge.run())
    except KeyboardInterrupt:
        click.echo("\nShutting down...")
    except SocketBindError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        if ctx.obj["debug"]:
            raise
        sys.exit(1)


@cli.command()
@click.pass_context
def list_outputs(ctx: click.Context) -> None:
    """List host IPv4 interfaces usable as outputs."""
    from dmx_webrtc.dmx.network import list_ipv4_interfaces, resolve_broadcast

    interfaces = list_ipv4_interfaces()

    click.echo("Available outputs:")
    click.echo("-" * 60)

    for iface in interfaces:
        broadcast = resolve_broadcast(iface["address"], iface["mask"])
        click.echo(f"  {iface['name']:<16} {iface['cidr']:<20} broadcast {broadcast}")

    if not interfaces:
        click.echo("  (no IPv4 interfaces found)")


@cli.command()
@click.option("--universe", "-n", type=int, default=0, show_default=True, help="Universe (0-32767)")
@click.option(
    "--output",
    "-o",
    "outputs",
    multiple=True,
    required=True,
    help="Output as ADDRESS/MASK, e.g. 192.168.1.10/24. Repeatable.",
)
@click.option("--udp-port", "-u", type=int, default=None, help="Destination Art-Net port")
@click.argument("values", nargs=-1, type=click.IntRange(0, 255))
@click.pass_context
def send(
    ctx: click.Context,
    universe: int,
    outputs: Tuple[str, ...],
    udp_port: Optional[int],
    values: Tuple[int, ...],
) -> None:
    """Broadcast one ArtDMX frame with VALUES for channels 1..N."""
    from dmx_webrtc.bridge.outputs import OutputSet
    from dmx_webrtc.bridge.pipeline import ControlPayload, ForwardingPipeline
    from dmx_webrtc.bridge.transport import open_artnet_socket
    from dmx_webrtc.dmx.artnet import ArtNetCodec

    settings = ctx.obj["settings"]
    port = udp_port if udp_port is not None else settings.artnet.port

    try:
        output_set = OutputSet(_parse_output(spec) for spec in outputs)
        payload = ControlPayload(universe=universe, channel_values=list(values))
    except (BridgeError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    # Source port is ephemeral; a running bridge may hold the Art-Net port
    sock = open_artnet_socket("0.0.0.0", 0, broadcast=True, reuse_address=False)
    try:
        pipeline = ForwardingPipeline(ArtNetCodec(), output_set, port=port, sender=sock)
        delivered = pipeline.forward(payload)
    finally:
        sock.close()

    for output in output_set:
        click.echo(f"  {output.name} -> {output.broadcast}:{port}")
    click.echo(f"Sent universe {universe} ({len(values)} channels) to {delivered} output(s).")


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
