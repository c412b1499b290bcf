"""
Blind Auction CLI

Main entry point for all CLI commands. State lives in an SQLite database
under ``--data-dir``; ``--at`` pins the clock to a timestamp for scripted runs.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

import click

from blindauction.utils.logger import setup_logging, get_logger

logger = get_logger("cli")


def _parse_address(value: str, name: str) -> bytes:
    from blindauction.crypto import hex_to_bytes, is_valid_address

    if not is_valid_address(value):
        raise click.BadParameter(f"{value!r} is not a 0x-prefixed 20-byte address", param_hint=name)
    return hex_to_bytes(value)


def _parse_secret(value: str) -> bytes:
    """Accept 0x-hex bytes32 or a short string (encoded as bytes32)."""
    from blindauction.crypto import encode_bytes32_string, hex_to_bytes

    try:
        if value.startswith("0x") and len(value) == 66:
            return hex_to_bytes(value)
        return encode_bytes32_string(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--secret")


def _parse_ether(value: str, name: str) -> int:
    from blindauction.crypto import parse_ether

    try:
        return parse_ether(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=name)


def _open_auction(ctx):
    """Load the stored auction or exit."""
    from blindauction.core.auction import BlindAuction
    from blindauction.core.errors import StorageMismatchError

    try:
        return BlindAuction.open(
            ctx.obj["storage"], clock=ctx.obj["clock"], config=ctx.obj["config"]
        )
    except StorageMismatchError as e:
        click.echo(f"❌ {e}")
        click.echo("   Create one with: blindauction init --beneficiary 0x...")
        ctx.exit(1)


def _run(ctx, operation, *args):
    """Call an auction operation, turning rejections into a failed exit."""
    from blindauction.core.errors import AuctionError, PaymentError

    try:
        return operation(*args)
    except (AuctionError, PaymentError) as e:
        click.echo(f"❌ {e}")
        ctx.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (default from config)")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="JSON config file")
@click.option("--at", "at_time", default=None, type=int, help="Pin the clock to this Unix timestamp")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, config_path, at_time):
    """Blind Auction - sealed-bid commit/reveal auction"""
    from blindauction.core.clock import ManualClock, SystemClock
    from blindauction.core.config import load_config
    from blindauction.core.storage import StorageManager

    config = load_config(config_path)
    level = logging.DEBUG if debug else getattr(logging, config.log_level.upper(), logging.INFO)
    setup_logging(level=level, log_dir=str(config.log_dir), log_to_file=config.log_to_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["data_dir"] = Path(data_dir).expanduser() if data_dir else config.data_dir
    ctx.obj["clock"] = ManualClock(at_time) if at_time is not None else SystemClock()

    # Commands that only compute values never touch the database
    if ctx.invoked_subcommand not in ("keygen", "commit", "demo"):
        ctx.obj["data_dir"].mkdir(parents=True, exist_ok=True)
        ctx.obj["storage"] = StorageManager(ctx.obj["data_dir"])


# =============================================================================
# Offline Tooling
# =============================================================================


@cli.command("keygen")
def keygen():
    """Generate a bidder keypair and print its address"""
    from blindauction.crypto import generate_keypair

    kp = generate_keypair()
    click.echo(f"Address:     {kp.address}")
    click.echo(f"Private key: {kp.private_key_hex}")
    click.echo("⚠️  Store the private key safely - it is not saved anywhere.")


@cli.command("commit")
@click.option("--value", required=True, help="Bid value in ether (e.g. 0.3)")
@click.option("--secret", required=True, help="Secret: short string or 0x-prefixed bytes32")
def commit(value, secret):
    """Compute the commitment for a bid"""
    from blindauction.crypto import bytes_to_hex, compute_commitment

    wei = _parse_ether(value, "--value")
    commitment = compute_commitment(wei, _parse_secret(secret))
    click.echo(f"Value:      {wei} wei")
    click.echo(f"Commitment: {bytes_to_hex(commitment)}")


# =============================================================================
# Auction Commands
# =============================================================================


@cli.command("init")
@click.option("--beneficiary", required=True, help="Beneficiary address (0x...)")
@click.option("--duration", default=None, type=int, help="Bidding duration in seconds")
@click.pass_context
def init(ctx, beneficiary, duration):
    """Create the auction in the data directory"""
    from blindauction.core.auction import BlindAuction
    from blindauction.core.errors import StorageMismatchError

    try:
        auction = BlindAuction(
            _parse_address(beneficiary, "--beneficiary"),
            duration,
            clock=ctx.obj["clock"],
            config=ctx.obj["config"],
            storage=ctx.obj["storage"],
        )
    except StorageMismatchError as e:
        click.echo(f"❌ {e}")
        ctx.exit(1)

    click.echo("✓ Auction created")
    click.echo(f"  Beneficiary: {beneficiary}")
    click.echo(f"  Bidding:     {auction.window.start_time} .. {auction.window.end_time}")
    click.echo(f"  Duration:    {auction.auction_duration}s")


@cli.command("bid")
@click.option("--bidder", required=True, help="Bidder address (0x...)")
@click.option("--commitment", default=None, help="Commitment (0x-prefixed bytes32)")
@click.option("--value", default=None, help="Bid value in ether, to compute the commitment here")
@click.option("--secret", default=None, help="Secret, to compute the commitment here")
@click.option("--deposit", default="0", help="Deposit in ether")
@click.pass_context
def bid(ctx, bidder, commitment, value, secret, deposit):
    """Submit a sealed bid"""
    from blindauction.crypto import compute_commitment, hex_to_bytes

    if commitment is None:
        if value is None or secret is None:
            raise click.UsageError("Give --commitment, or both --value and --secret")
        commitment_bytes = compute_commitment(_parse_ether(value, "--value"), _parse_secret(secret))
    else:
        try:
            commitment_bytes = hex_to_bytes(commitment)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--commitment")

    auction = _open_auction(ctx)
    bidder_bytes = _parse_address(bidder, "--bidder")
    deposit_wei = _parse_ether(deposit, "--deposit")

    _run(ctx, auction.submit_bid, bidder_bytes, commitment_bytes, deposit_wei)
    click.echo(f"✓ Bid accepted ({auction.get_bid_count(bidder_bytes)} total for {bidder})")


@cli.command("reveal")
@click.option("--bidder", required=True, help="Bidder address (0x...)")
@click.option("--value", "values", multiple=True, required=True, help="Bid value in ether (repeat per bid)")
@click.option("--secret", "secrets", multiple=True, required=True, help="Secret (repeat per bid)")
@click.pass_context
def reveal(ctx, bidder, values: Tuple[str, ...], secrets: Tuple[str, ...]):
    """Reveal all of a bidder's sealed bids, in submission order"""
    from blindauction.crypto import format_ether

    auction = _open_auction(ctx)
    bidder_bytes = _parse_address(bidder, "--bidder")
    wei_values = [_parse_ether(v, "--value") for v in values]
    secret_bytes = [_parse_secret(s) for s in secrets]

    outcome = _run(ctx, auction.reveal_bids, bidder_bytes, wei_values, secret_bytes)

    click.echo(f"✓ Revealed {outcome.bid_count} bid(s), {outcome.valid_count} valid")
    for i, result in enumerate(outcome.results):
        click.echo(f"    #{i}: {result.name}")
    if outcome.holds_lead:
        click.echo(f"  Leading with {format_ether(outcome.highest_after.amount)} ether")
    click.echo(f"  Pending refund: {format_ether(auction.pending_refund(bidder_bytes))} ether")


@cli.command("withdraw")
@click.option("--bidder", required=True, help="Bidder address (0x...)")
@click.pass_context
def withdraw(ctx, bidder):
    """Withdraw a pending refund"""
    from blindauction.crypto import format_ether

    auction = _open_auction(ctx)
    amount = _run(ctx, auction.withdraw, _parse_address(bidder, "--bidder"))
    click.echo(f"✓ Refunded {format_ether(amount)} ether to {bidder}")


@cli.command("claim")
@click.option("--caller", required=True, help="Beneficiary address (0x...)")
@click.pass_context
def claim(ctx, caller):
    """Pay the winning amount to the beneficiary"""
    from blindauction.crypto import format_ether

    auction = _open_auction(ctx)
    amount = _run(ctx, auction.claim_payout, _parse_address(caller, "--caller"))
    click.echo(f"✓ Paid {format_ether(amount)} ether to beneficiary {caller}")


@cli.command("status")
@click.option("--bidder", default=None, help="Also show this bidder's bids and refund")
@click.pass_context
def status(ctx, bidder: Optional[str]):
    """Show auction state"""
    from blindauction.crypto import bytes_to_hex, format_ether

    auction = _open_auction(ctx)
    stats = auction.stats()

    click.echo("Blind Auction")
    click.echo("-" * 40)
    click.echo(f"  Phase:          {stats['phase']}")
    click.echo(f"  Bidding:        {stats['start_time']} .. {stats['end_time']}")
    click.echo(f"  Bidders / bids: {stats['bidders']} / {stats['total_bids']}")
    click.echo(f"  Highest bid:    {format_ether(stats['highest_amount'])} ether")
    click.echo(f"  Leader:         {stats['highest_holder'] or '-'}")
    click.echo(f"  Escrow:         {format_ether(stats['escrow_balance'])} ether")
    click.echo(f"  Payout claimed: {stats['payout_claimed']}")

    if bidder:
        bidder_bytes = _parse_address(bidder, "--bidder")
        click.echo("")
        click.echo(f"  Bids of {bidder}:")
        for i, b in enumerate(auction.get_bids(bidder_bytes)):
            state = "revealed" if b.is_consumed else bytes_to_hex(b.commitment)[:18] + "..."
            click.echo(f"    #{i}: deposit={format_ether(b.deposit)} {state}")
        click.echo(f"  Pending refund: {format_ether(auction.pending_refund(bidder_bytes))} ether")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--order", type=click.Choice(["low-first", "high-first"]), default="low-first",
              help="Which bidder reveals first")
def demo(order):
    """Run a two-bidder auction end to end, in memory"""
    from blindauction.core.auction import BlindAuction
    from blindauction.core.clock import ManualClock
    from blindauction.core.payment import InMemoryPaymentGateway
    from blindauction.crypto import create_sealed_bid, encode_bytes32_string, format_ether, generate_keypair, parse_ether

    click.echo("=" * 60)
    click.echo("  BLIND AUCTION - DEMO")
    click.echo("=" * 60)
    click.echo()

    clock = ManualClock(start=1_700_000_000)
    payments = InMemoryPaymentGateway()
    beneficiary = generate_keypair()
    alice = generate_keypair()
    bob = generate_keypair()

    auction = BlindAuction(beneficiary.address_bytes, 3600, clock=clock, payments=payments)
    click.echo(f"🏛️  Auction open for {auction.auction_duration}s, beneficiary {beneficiary.address}")

    bids = {
        "alice": (alice, parse_ether("0.3"), "s1"),
        "bob": (bob, parse_ether("0.5"), "s2"),
    }
    for name, (kp, value, secret) in bids.items():
        commitment, deposit = create_sealed_bid(value, secret)
        auction.submit_bid(kp.address_bytes, commitment, deposit)
        click.echo(f"  ✓ {name} sealed a bid with deposit {format_ether(deposit)} ether")
    click.echo()

    clock.advance(3601)
    click.echo("⏰ Bidding closed, revealing...")
    reveal_order = ["alice", "bob"] if order == "low-first" else ["bob", "alice"]
    for name in reveal_order:
        kp, value, secret = bids[name]
        outcome = auction.reveal_bids(kp.address_bytes, [value], [encode_bytes32_string(secret)])
        click.echo(f"  ✓ {name}: {outcome.results[0].name}")
    click.echo()

    highest = auction.highest_bid
    winner = next(name for name, (kp, _, _) in bids.items() if kp.address_bytes == highest.holder)
    click.echo(f"🏆 Winner: {winner} with {format_ether(highest.amount)} ether")

    for name, (kp, _, _) in bids.items():
        pending = auction.pending_refund(kp.address_bytes)
        if pending:
            auction.withdraw(kp.address_bytes)
            click.echo(f"  ✓ {name} withdrew {format_ether(pending)} ether")

    paid = auction.claim_payout(beneficiary.address_bytes)
    click.echo(f"  ✓ Beneficiary received {format_ether(paid)} ether")
    click.echo()
    click.echo(f"📊 Escrow left: {format_ether(auction.escrow_balance)} ether")
    click.echo("✅ Demo complete!")


if __name__ == "__main__":
    cli()
