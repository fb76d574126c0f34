"""
SealedLots CLI - Command Line Interface for lot auctions

Main entry point for all CLI commands. State lives in a SQLite database
under --data-dir and phases follow the wall clock.
"""

import json
import logging
from pathlib import Path
from typing import List, Tuple

import click

from sealedlots.utils.logger import setup_logging, get_logger

logger = get_logger("cli")


def parse_address(value: str, name: str) -> bytes:
    """Parse a 0x-prefixed 20-byte hex address, raising click.BadParameter."""
    from sealedlots.crypto import hex_to_bytes
    from sealedlots.utils.validation import validate_hex_string

    valid, err = validate_hex_string(value, name, expected_bytes=20)
    if not valid:
        raise click.BadParameter(err)
    return hex_to_bytes(value)


def parse_asset(value: str) -> Tuple[bytes, int]:
    """Parse TOKEN:SHARE."""
    token, sep, share = value.rpartition(":")
    if not sep:
        raise click.BadParameter(f"expected TOKEN:SHARE, got {value}")
    try:
        return parse_address(token, "asset token"), int(share)
    except ValueError:
        raise click.BadParameter(f"share must be an integer, got {share}") from None


def open_auction(ctx):
    """Auction over the persistent store of the current data dir."""
    from sealedlots.core.auction import Auction
    from sealedlots.core.clock import SystemClock
    from sealedlots.core.storage import StorageManager

    config = ctx.obj["config"]
    storage = StorageManager(ctx.obj["data_dir"], db_name=config.db_name)
    return Auction(
        config=config,
        clock=SystemClock(),
        storage_manager=storage,
        owner=ctx.obj.get("owner"),
    )


def fail(ctx, message: str):
    click.echo(f"❌ {message}")
    ctx.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default="~/.sealedlots", help="Data directory")
@click.option("--config", "config_path", default=None, help="JSON or TOML config file")
@click.option("--owner", default=None, help="Administrative owner (0x...) for a store that has none")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, config_path, owner):
    """SealedLots - multi-asset lot auctions"""
    from sealedlots.core.config import load_config

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        raise click.UsageError(f"Invalid configuration: {e}")

    level = logging.DEBUG if debug else logging.INFO
    setup_logging(level=level, log_dir=str(config.log_dir), log_to_file=debug)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["data_dir"] = Path(data_dir).expanduser()
    ctx.obj["data_dir"].mkdir(parents=True, exist_ok=True)
    ctx.obj["owner"] = parse_address(owner, "owner") if owner is not None else None


# =============================================================================
# Lot Commands
# =============================================================================

@cli.group()
def lot():
    """Lot and bid commands"""
    pass


@lot.command("create")
@click.option("--lot-id", required=True, type=int, help="Lot identifier")
@click.option("--sender", required=True, help="Creator address (0x...)")
@click.option("--asset", "assets", multiple=True, required=True, help="TOKEN:SHARE, repeatable")
@click.option("--reference-amount", default=0, type=int, help="Reference amount")
@click.pass_context
def lot_create(ctx, lot_id, sender, assets, reference_amount):
    """Create a lot and open its bidding window"""
    from sealedlots.core.errors import AuctionError

    sender_addr = parse_address(sender, "sender")
    parsed = [parse_asset(a) for a in assets]

    auction = open_auction(ctx)
    try:
        auction.create_lot(
            sender_addr,
            lot_id,
            [token for token, _ in parsed],
            [share for _, share in parsed],
            reference_amount,
        )
    except AuctionError as e:
        fail(ctx, str(e))
    finally:
        auction.close()

    created = auction.get_lot(lot_id)
    click.echo(f"✓ Lot {lot_id} created")
    click.echo(f"  Parts: {len(created.parts)}")
    click.echo(f"  Open until: {created.expiration}")


@lot.command("bid")
@click.option("--lot-id", required=True, type=int, help="Lot identifier")
@click.option("--sender", required=True, help="Bidder address (0x...)")
@click.option("--amount", "amounts", multiple=True, required=True, type=int, help="Amount per part, in order")
@click.option("--secret-hash", default=None, help="20-byte commitment hash (0x...)")
@click.pass_context
def lot_bid(ctx, lot_id, sender, amounts, secret_hash):
    """Submit a bid on an alive lot"""
    from sealedlots.core.auction import create_sealed_bid
    from sealedlots.core.errors import AuctionError
    from sealedlots.crypto import bytes_to_hex

    sender_addr = parse_address(sender, "sender")
    salt = None
    if secret_hash is not None:
        commitment = parse_address(secret_hash, "secret hash")
    else:
        try:
            commitment, salt = create_sealed_bid(lot_id, sender_addr, list(amounts))
        except AuctionError as e:
            fail(ctx, str(e))

    auction = open_auction(ctx)
    try:
        bid_index = auction.create_bet(sender_addr, lot_id, list(amounts), commitment)
    except AuctionError as e:
        fail(ctx, str(e))
    finally:
        auction.close()

    click.echo(f"✓ Bid {bid_index} recorded on lot {lot_id}")
    click.echo(f"  Secret hash: {bytes_to_hex(commitment)}")
    if salt is not None:
        click.echo(f"  Salt: {bytes_to_hex(salt)}")
        click.echo("  ⚠️  Keep the salt - it is needed to open the commitment")


@lot.command("show")
@click.option("--lot-id", required=True, type=int, help="Lot identifier")
@click.pass_context
def lot_show(ctx, lot_id):
    """Show a lot as JSON"""
    from sealedlots.core.auction import LotPhase

    auction = open_auction(ctx)
    try:
        found = auction.get_lot(lot_id)
        phase = auction.get_phase(lot_id)
    finally:
        auction.close()

    if found is None:
        fail(ctx, f"Lot {lot_id} does not exist")

    data = found.to_dict()
    data["phase"] = phase.name
    if ctx.obj["config"].sealed_bid_queries and phase != LotPhase.EXPIRED:
        data["bids"] = {i: {"sender": b["sender"]} for i, b in data["bids"].items()}
    click.echo(json.dumps(data, indent=2))


@lot.command("winner")
@click.option("--lot-id", required=True, type=int, help="Lot identifier")
@click.pass_context
def lot_winner(ctx, lot_id):
    """Show the winning bid of an expired lot"""
    from sealedlots.core.errors import AuctionError
    from sealedlots.crypto import bytes_to_hex

    auction = open_auction(ctx)
    try:
        winner = auction.get_winning_bet(lot_id)
        info = auction.get_win_bet_info(lot_id)
        sender = auction.get_bet_sender(lot_id, winner) if winner is not None else None
    except AuctionError as e:
        fail(ctx, str(e))
    finally:
        auction.close()

    if winner is None:
        click.echo(f"Lot {lot_id} closed without bids")
        return

    click.echo(f"Lot {lot_id} winner")
    click.echo("-" * 40)
    click.echo(f"  Bid: {winner}")
    click.echo(f"  Sender: {bytes_to_hex(sender)}")
    click.echo(f"  Score: {info.score}")
    click.echo(f"  Secret hash: {bytes_to_hex(info.secret_hash)}")


# =============================================================================
# Owner Commands
# =============================================================================

@cli.group()
def owner():
    """Administrative owner commands"""
    pass


@owner.command("show")
@click.pass_context
def owner_show(ctx):
    """Show the current owner"""
    from sealedlots.crypto import bytes_to_hex

    auction = open_auction(ctx)
    try:
        ownership = auction.ownership
    finally:
        auction.close()

    if ownership.renounced:
        click.echo("No owner (unclaimed or renounced)")
        return
    click.echo(f"Owner: {bytes_to_hex(ownership.owner)}")


@owner.command("transfer")
@click.option("--caller", required=True, help="Current owner (0x...)")
@click.option("--new-owner", required=True, help="Address receiving ownership (0x...)")
@click.pass_context
def owner_transfer(ctx, caller, new_owner):
    """Hand ownership to another address"""
    from sealedlots.core.errors import AuctionError

    caller_addr = parse_address(caller, "caller")
    new_owner_addr = parse_address(new_owner, "new owner")

    auction = open_auction(ctx)
    try:
        auction.ownership.transfer_ownership(caller_addr, new_owner_addr)
    except AuctionError as e:
        fail(ctx, str(e))
    finally:
        auction.close()

    click.echo(f"✓ Ownership transferred to {new_owner}")


@owner.command("renounce")
@click.option("--caller", required=True, help="Current owner (0x...)")
@click.pass_context
def owner_renounce(ctx, caller):
    """Give up ownership for good"""
    from sealedlots.core.errors import AuctionError

    caller_addr = parse_address(caller, "caller")

    auction = open_auction(ctx)
    try:
        auction.ownership.renounce_ownership(caller_addr)
    except AuctionError as e:
        fail(ctx, str(e))
    finally:
        auction.close()

    click.echo("✓ Ownership renounced")


# =============================================================================
# Audit Commands
# =============================================================================

@cli.command("events")
@click.option("--lot-id", default=None, type=int, help="Only records of this lot")
@click.pass_context
def events(ctx, lot_id):
    """Print audit records as JSON lines"""
    auction = open_auction(ctx)
    try:
        records = auction.audit_log.events() if lot_id is None else auction.audit_log.for_lot(lot_id)
    finally:
        auction.close()

    for record in records:
        click.echo(record.model_dump_json())


@cli.command("stats")
@click.pass_context
def stats(ctx):
    """Show auction statistics"""
    auction = open_auction(ctx)
    try:
        data = auction.stats()
    finally:
        auction.close()

    click.echo("SealedLots Statistics")
    click.echo("-" * 40)
    for key, value in data.items():
        click.echo(f"  {key}: {value}")


# =============================================================================
# Demo Command
# =============================================================================

@cli.command("demo")
@click.option("--window", default=10, type=int, help="Bidding window in seconds")
def demo(window):
    """Run a two-bid auction on an in-memory store"""
    from sealedlots.core.auction import Auction, create_sealed_bid
    from sealedlots.core.clock import ManualClock
    from sealedlots.core.config import AuctionConfig
    from sealedlots.crypto import bytes_to_hex, generate_keypair

    click.echo("=" * 60)
    click.echo("  SEALED LOT AUCTION - DEMO")
    click.echo("=" * 60)
    click.echo()

    clock = ManualClock(start=1_700_000_000)
    auction = Auction(config=AuctionConfig(bidding_window=window), clock=clock)

    creator, alice, bob = generate_keypair(), generate_keypair(), generate_keypair()
    token_x, token_y = generate_keypair().address, generate_keypair().address

    click.echo("📦 Creating lot 1: 40 X + 60 Y...")
    auction.create_lot(creator.address, 1, [token_x, token_y], [40, 60], 0)
    click.echo(f"  ✓ Open until {clock.now() + window}")
    click.echo()

    bids: List[Tuple[str, object, List[int]]] = [("Alice", alice, [1, 2]), ("Bob", bob, [5, 5])]
    for name, kp, amounts in bids:
        secret_hash, _ = create_sealed_bid(1, kp.address, amounts)
        index = auction.create_bet(kp.address, 1, amounts, secret_hash)
        click.echo(f"🔧 {name} bids {amounts} -> bid {index}")
    click.echo()

    click.echo(f"⏱️  Advancing clock by {window}s...")
    clock.advance(window)
    click.echo()

    winner = auction.get_winning_bet(1)
    info = auction.get_win_bet_info(1)
    click.echo("⚖️  Result:")
    click.echo(f"  ✓ Winning bid: {winner}")
    click.echo(f"  ✓ Sender: {bytes_to_hex(auction.get_bet_sender(1, winner))[:12]}...")
    click.echo(f"  ✓ Score: {info.score}")
    click.echo(f"  ✓ Summary verified: {auction.verify_winner(1)}")
    click.echo()
    click.echo("✅ Demo complete!")


if __name__ == "__main__":
    cli()
