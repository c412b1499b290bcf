from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from blindauction.core.storage.sqlite_adapter import SQLiteAdapter
from blindauction.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Persists a single auction's state.

    Coordinates data persistence using the SQLite adapter. Handles:
    - Auction metadata (window, beneficiary)
    - Highest bid and escrow totals
    - Bid sequences and refunds

    Each auction operation is written in one transaction.
    """

    def __init__(self, data_dir: Path, db_name: str = "auction.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self) -> None:
        self.adapter.close()

    # =========================================================================
    # Auction Metadata
    # =========================================================================

    def has_auction(self) -> bool:
        return self.adapter.get_meta("beneficiary") is not None

    def save_auction(
        self,
        beneficiary: bytes,
        start_time: int,
        end_time: int,
        max_bids_per_bidder: Optional[int] = None,
        strict_reveal_lengths: bool = False,
    ):
        """Record a freshly created auction together with its fixed rules."""
        self.adapter.apply_update(meta={
            "beneficiary": beneficiary.hex(),
            "start_time": str(start_time),
            "end_time": str(end_time),
            "max_bids_per_bidder": "" if max_bids_per_bidder is None else str(max_bids_per_bidder),
            "strict_reveal_lengths": "1" if strict_reveal_lengths else "0",
            "highest_amount": "0",
            "highest_holder": "",
            "total_deposits": "0",
            "total_paid_out": "0",
            "payout_claimed": "0",
        })

    def load_auction(self) -> Optional[dict]:
        """
        Load auction metadata.

        Returns:
            Dict with typed fields, or None if no auction is stored
        """
        meta = self.adapter.get_all_meta()
        if "beneficiary" not in meta:
            return None

        holder = meta.get("highest_holder") or ""
        cap = meta.get("max_bids_per_bidder") or ""
        return {
            "beneficiary": bytes.fromhex(meta["beneficiary"]),
            "start_time": int(meta["start_time"]),
            "end_time": int(meta["end_time"]),
            "highest_amount": int(meta.get("highest_amount", "0")),
            "highest_holder": bytes.fromhex(holder) if holder else None,
            "total_deposits": int(meta.get("total_deposits", "0")),
            "total_paid_out": int(meta.get("total_paid_out", "0")),
            "payout_claimed": meta.get("payout_claimed") == "1",
            "max_bids_per_bidder": int(cap) if cap else None,
            "strict_reveal_lengths": meta.get("strict_reveal_lengths") == "1",
        }

    # =========================================================================
    # Auction Operations
    # =========================================================================

    def persist_bid(
        self,
        bidder: bytes,
        index: int,
        commitment: bytes,
        deposit: int,
        total_deposits: int,
    ):
        self.adapter.apply_update(
            meta={"total_deposits": str(total_deposits)},
            new_bid=(bidder, index, commitment, deposit),
        )

    def persist_reveal(
        self,
        bidder: bytes,
        consumed: Iterable[int],
        highest_amount: int,
        highest_holder: Optional[bytes],
        refunds: Dict[bytes, int],
    ):
        """Atomically persist a reveal: zeroed bids, highest bid, refund entries."""
        self.adapter.apply_update(
            meta={
                "highest_amount": str(highest_amount),
                "highest_holder": highest_holder.hex() if highest_holder else "",
            },
            zeroed=(bidder, list(consumed)),
            refunds=refunds,
        )

    def persist_refund(self, bidder: bytes, amount: int, total_paid_out: int):
        self.adapter.apply_update(
            meta={"total_paid_out": str(total_paid_out)},
            refunds={bidder: amount},
        )

    def persist_payout(self, claimed: bool, total_paid_out: int):
        self.adapter.apply_update(meta={
            "payout_claimed": "1" if claimed else "0",
            "total_paid_out": str(total_paid_out),
        })

    # =========================================================================
    # Loading
    # =========================================================================

    def load_bids(self) -> Dict[bytes, List[Tuple[bytes, int]]]:
        """
        Load all bid sequences.

        Returns:
            bidder -> [(commitment, deposit), ...] in submission order
        """
        bids: Dict[bytes, List[Tuple[bytes, int]]] = {}
        for bidder, _index, commitment, deposit in self.adapter.get_all_bids():
            bids.setdefault(bidder, []).append((commitment, deposit))
        return bids

    def load_refunds(self) -> Dict[bytes, int]:
        return dict(self.adapter.get_all_refunds())
