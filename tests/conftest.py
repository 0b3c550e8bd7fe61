"""Fixtures compartidas de elecciones. / Shared election fixtures."""

from __future__ import annotations

import pytest

from urna.core.election import Election

ADMIN = "admin"


@pytest.fixture
def election() -> Election:
    return Election.create("Test Election", ADMIN)


@pytest.fixture
def open_election(election: Election) -> Election:
    """Alice (1) y Bob (2), votantes v1..v3, votación abierta.

    English: Alice (1) and Bob (2), voters v1..v3, voting open.
    """
    election.add_candidate(ADMIN, "Alice", "Candidate 1")
    election.add_candidate(ADMIN, "Bob", "Candidate 2")
    for voter in ("v1", "v2", "v3"):
        election.register_voter(ADMIN, voter)
    election.set_voting_status(ADMIN, True)
    return election
