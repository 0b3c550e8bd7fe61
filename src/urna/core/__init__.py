"""Núcleo de la máquina de estados electoral.

English: Election state machine core.
"""

from urna.core.election import Election
from urna.core.errors import (
    AlreadyRegistered,
    AlreadyVoted,
    ElectionError,
    InvalidCandidate,
    LedgerConflictError,
    LedgerIntegrityError,
    NoCandidates,
    NotRegistered,
    NoVotesCast,
    Unauthorized,
    VotingClosed,
)
from urna.core.ledger import EventLedger, LedgerEntry
from urna.core.models import Candidate, ElectionSummary, VoterRecord, Winner

__all__ = [
    "AlreadyRegistered",
    "AlreadyVoted",
    "Candidate",
    "Election",
    "ElectionError",
    "ElectionSummary",
    "EventLedger",
    "InvalidCandidate",
    "LedgerEntry",
    "LedgerConflictError",
    "LedgerIntegrityError",
    "NoCandidates",
    "NotRegistered",
    "NoVotesCast",
    "Unauthorized",
    "VoterRecord",
    "VotingClosed",
    "Winner",
]
