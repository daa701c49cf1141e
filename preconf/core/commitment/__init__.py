"""
Commitment Module.

Bid and commitment records and the store that verifies and records them.
"""

from preconf.core.commitment.records import Bid, Commitment
from preconf.core.commitment.store import PreConfCommitmentStore

__all__ = [
    "Bid",
    "Commitment",
    "PreConfCommitmentStore",
]
