"""
Blind Auction

A sealed-bid auction engine:
- Bidders commit to hidden bids with keccak256(value || secret)
- After bidding closes, reveals are verified against the commitments
- The highest valid bid wins; other deposits become withdrawable refunds
- The beneficiary claims the winning amount
"""

__version__ = "0.1.0"
