"""
ledgertable: Signed, indexed tables over append-only content-addressed storage.

Records are never updated in place. Every write is a new signed bundle and a
signed index of bundle hashes gives the table its current membership.
"""

__version__ = "0.1.0"
