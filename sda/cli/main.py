"""
SDA CLI - Command Line Interface for the Sealed-Duration Auction engine

Main entry point for all CLI commands. Settings come from SDA_*
environment variables (optionally loaded from --env-file); --data-dir
overrides SDA_DATA_DIR.
"""

import dataclasses
import json
import logging

import click

from sda.utils.logger import setup_logging


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (default: SDA_DATA_DIR or ~/.sda)")
@click.option("--env-file", default=None, help="Optional .env file with SDA_* settings")
@click.option("--log-file", is_flag=True, help="Also write a DEBUG audit log to SDA_LOG_DIR")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, env_file, log_file):
    """Sealed-Duration Auction - bid accounting and settlement engine"""
    from sda.core.config import ConfigError, load_config

    overrides = {"data_dir": data_dir} if data_dir else {}
    try:
        config = load_config(env_file, **overrides)
    except ConfigError as e:
        raise click.ClickException(str(e))

    level = logging.DEBUG if debug else logging.WARNING
    setup_logging(level=level, log_dir=config.log_dir, log_to_file=log_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["data_dir"] = config.data_dir


# =============================================================================
# Config Command
# =============================================================================


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Show the effective auction configuration"""
    click.echo(json.dumps(ctx.obj["config"].to_dict(), indent=2))


# =============================================================================
# Keygen Command
# =============================================================================


@cli.command("keygen")
def keygen():
    """Generate a participant keypair and print its address"""
    from sda.crypto import bytes_to_hex, generate_keypair

    kp = generate_keypair()
    click.echo(f"address:     {bytes_to_hex(kp.address)}")
    click.echo(f"public key:  {bytes_to_hex(kp.public_key)}")
    click.echo(f"private key: {bytes_to_hex(kp.private_key)}")
    click.echo("⚠️  Keep the private key secret")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--mode", type=click.Choice(["push", "pull"]), default="push", help="Settlement mode")
@click.option("--persist", is_flag=True, help="Persist the demo auction to the data directory")
@click.pass_context
def demo(ctx, mode, persist):
    """Run a late-bid extension and settlement scenario"""
    from sda.core import Auction, SettlementMode
    from sda.core.environment import Chain, ManualClock
    from sda.core.errors import AuctionError
    from sda.core.storage import StorageManager
    from sda.crypto import address_from_label
    from sda.utils.logger import short_address

    names = {}

    def label(address):
        return names.get(address, short_address(address))

    owner = address_from_label("owner")
    alice = address_from_label("alice")
    bob = address_from_label("bob")
    names.update({owner: "owner", alice: "alice", bob: "bob"})

    clock = ManualClock(start=0)
    chain = Chain()
    chain.fund(alice, 1000)
    chain.fund(bob, 1000)

    storage = None
    if persist:
        data_dir = ctx.obj["data_dir"]
        data_dir.mkdir(parents=True, exist_ok=True)
        storage = StorageManager(data_dir, db_name="demo.db")
        if storage.load_state() is not None:
            storage.close()
            raise click.ClickException(
                f"{storage.db_path} already holds a demo auction; remove it or pass another --data-dir"
            )

    # Fixed timeline; the remaining parameters come from the environment
    config = dataclasses.replace(ctx.obj["config"], duration=700, settlement_mode=SettlementMode(mode))
    auction = Auction(owner, config=config, clock=clock, chain=chain, storage_manager=storage)

    def show(event):
        fields = ", ".join(
            f"{k}={label(getattr(event, k)) if isinstance(getattr(event, k), bytes) else getattr(event, k)}"
            for k in event.to_dict() if k != "event"
        )
        click.echo(f"    [t={clock.now():>4}] {event.name}({fields})")

    auction.events.subscribe(show)

    click.echo("=" * 60)
    click.echo("  SEALED-DURATION AUCTION - DEMO")
    click.echo("=" * 60)
    click.echo(f"  duration=700s, window={config.extension_window}s, "
               f"commission={config.commission_percent}%, mode={mode}")
    click.echo()

    try:
        click.echo("🔨 alice bids 100, bob bids 106 at t=0")
        auction.place_bid(alice, 100)
        auction.place_bid(bob, 106)

        click.echo("⏱️  alice raises to 112 at t=695 (inside the final window)")
        clock.set(695)
        auction.place_bid(alice, 12)
        click.echo(f"  ✓ deadline {700} -> {auction.get_deadline()}")
        click.echo()

        clock.set(auction.get_deadline())
        click.echo("⚖️  owner ends the auction")
        winner = auction.end_auction(owner)
        click.echo(f"  ✓ winner: {label(winner)}")

        if mode == "pull":
            click.echo("💸 participants withdraw")
            for bidder in auction.get_all_unique_bidders():
                auction.retrieve_deposit(bidder)
    except AuctionError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")

    click.echo()
    click.echo("📊 Final Statistics:")
    for key, value in auction.stats().items():
        click.echo(f"  {key}: {value}")
    click.echo(f"  conservation holds: {auction.check_conservation()}")
    if storage:
        click.echo(f"  persisted to: {storage.db_path}")
        storage.close()
    click.echo()
    click.echo("✅ Demo complete!")


# =============================================================================
# Events Command
# =============================================================================


@cli.command("events")
@click.option("--db-name", default="demo.db", help="Database file inside the data directory")
@click.option("--name", default=None, help="Only show events of this type (e.g. AuctionEnded)")
@click.option("--bidder", default=None, help="Only show events involving this 0x address")
@click.pass_context
def events(ctx, db_name, name, bidder):
    """Print the persisted event journal"""
    from sda.core.storage import StorageManager
    from sda.crypto import hex_to_bytes, is_valid_address

    address = None
    if bidder:
        if not is_valid_address(bidder):
            raise click.BadParameter(f"{bidder!r} is not a 0x-prefixed 20-byte address", param_hint="--bidder")
        address = hex_to_bytes(bidder)

    db_path = ctx.obj["data_dir"] / db_name
    if not db_path.exists():
        click.echo(f"❌ No journal at {db_path}")
        click.echo("   Create one with: sda demo --persist")
        return

    storage = StorageManager(ctx.obj["data_dir"], db_name=db_name)
    journal = storage.load_events(name)
    storage.close()

    if address is not None:
        journal = [e for e in journal if address in dataclasses.astuple(e)]

    for i, event in enumerate(journal, 1):
        click.echo(f"  {i}. {json.dumps(event.to_dict())}")
    click.echo(f"{len(journal)} event(s)")


if __name__ == "__main__":
    cli()
