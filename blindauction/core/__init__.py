"""Auction core: clock gate, registry, reveal engine, refunds, payout, storage."""
