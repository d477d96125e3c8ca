"""Business logic services for the Iceberg daemon."""

from .anti_abuse import AntiAbuseGuard
from .consensus import ConsensusService
from .reconciliation import ReconciliationScheduler
from .trust import TrustStateMachine
from .vote_ledger import VoteAggregate, VoteLedger

__all__ = [
    "AntiAbuseGuard",
    "ConsensusService",
    "ReconciliationScheduler",
    "TrustStateMachine",
    "VoteAggregate",
    "VoteLedger",
]
