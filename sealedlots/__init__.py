"""
SealedLots

A research prototype of multi-asset lot auctions:
- Lots bundling several asset shares
- Bids as per-asset amount vectors plus a commitment hash
- Streaming winner selection with checked arithmetic
- SQLite-backed audit trail
"""
