"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview

======================== ESPAÑOL ========================
Archivo: `tests/test_election.py`.
Pruebas de la máquina de estados: despliegue, candidatos, registro de
votantes, proceso de votación, resultados y rechazos atómicos.

======================== ENGLISH ========================
File: `tests/test_election.py`.
State machine tests: deployment, candidates, voter registration, voting
process, results and atomic rejections.
"""

from __future__ import annotations

import pytest

from urna.core.election import Election
from urna.core.errors import (
    AlreadyRegistered,
    AlreadyVoted,
    InvalidCandidate,
    NoCandidates,
    NotRegistered,
    NoVotesCast,
    Unauthorized,
    VotingClosed,
)
from urna.core.models import Candidate, VoterRecord, Winner

ADMIN = "admin"


def _state(election: Election, identities=("v1", "v2", "v3", "v4", "intruder")):
    return (
        election.summary(),
        election.candidates(),
        {identity: election.get_voter(identity) for identity in identities},
        [entry.hash for entry in election.ledger.entries()],
    )


def test_create_sets_admin_name_and_closed_voting(election):
    assert election.admin == ADMIN
    assert election.name == "Test Election"
    assert election.voting_open is False
    assert election.candidates_count == 0
    assert election.voters_count == 0


def test_create_records_genesis_entry(election):
    entries = election.ledger.entries()

    assert len(entries) == 1
    assert entries[0].event_type == "ElectionCreated"
    assert entries[0].payload == {"name": "Test Election", "admin": ADMIN}
    assert entries[0].previous_hash is None


def test_admin_adds_candidates_with_sequential_ids(election):
    assert election.add_candidate(ADMIN, "Alice", "Candidate 1") == 1
    assert election.add_candidate(ADMIN, "Bob", "Candidate 2") == 2

    assert election.candidates_count == 2
    assert election.get_candidate(1) == Candidate(id=1, name="Alice", info="Candidate 1", vote_count=0)
    assert election.get_candidate(2).info == "Candidate 2"
    assert [candidate.id for candidate in election.candidates()] == [1, 2]


def test_candidate_info_may_be_empty(election):
    candidate_id = election.add_candidate(ADMIN, "Carol")

    assert election.get_candidate(candidate_id).info == ""


def test_non_admin_cannot_add_candidates(election):
    before = _state(election)

    with pytest.raises(Unauthorized):
        election.add_candidate("v1", "Charlie", "Candidate 3")

    assert _state(election) == before


def test_admin_registers_voters(election):
    election.register_voter(ADMIN, "v1")
    election.register_voter(ADMIN, "v2")

    assert election.voters_count == 2
    assert election.get_voter("v1") == VoterRecord(is_registered=True, has_voted=False)
    assert election.get_voter("v2").is_registered is True


def test_non_admin_cannot_register_voters(election):
    with pytest.raises(Unauthorized):
        election.register_voter("v1", "v2")

    assert election.voters_count == 0


def test_registering_same_voter_twice_fails(election):
    election.register_voter(ADMIN, "v1")
    before = _state(election)

    with pytest.raises(AlreadyRegistered):
        election.register_voter(ADMIN, "v1")

    assert election.voters_count == 1
    assert _state(election) == before


def test_unknown_voter_gets_zero_valued_record(election):
    assert election.get_voter("nobody") == VoterRecord(
        is_registered=False, has_voted=False, voted_candidate_id=None
    )


def test_set_voting_status_is_admin_only(election):
    with pytest.raises(Unauthorized):
        election.set_voting_status("v1", True)

    assert election.voting_open is False


def test_set_voting_status_is_idempotent_and_always_recorded(election):
    election.set_voting_status(ADMIN, True)
    election.set_voting_status(ADMIN, True)
    election.set_voting_status(ADMIN, False)
    election.set_voting_status(ADMIN, True)

    assert election.voting_open is True
    status_events = [e for e in election.ledger.entries() if e.event_type == "VotingStatusChanged"]
    assert [e.payload["open"] for e in status_events] == [True, True, False, True]


def test_registered_voters_vote_when_open(open_election):
    open_election.vote("v1", 1)
    open_election.vote("v2", 2)

    assert open_election.get_candidate(1).vote_count == 1
    assert open_election.get_candidate(2).vote_count == 1
    assert open_election.get_voter("v1") == VoterRecord(True, True, 1)
    assert open_election.get_voter("v2").voted_candidate_id == 2


def test_vote_fails_when_voting_closed(election):
    election.add_candidate(ADMIN, "Alice", "Candidate 1")
    election.register_voter(ADMIN, "v1")
    before = _state(election)

    with pytest.raises(VotingClosed):
        election.vote("v1", 1)

    assert election.get_candidate(1).vote_count == 0
    assert election.get_voter("v1").has_voted is False
    assert _state(election) == before


def test_unregistered_voter_cannot_vote(open_election):
    with pytest.raises(NotRegistered):
        open_election.vote("v4", 1)


def test_vote_for_invalid_candidate_fails(open_election):
    before = _state(open_election)

    for bad_id in (0, 3, -1):
        with pytest.raises(InvalidCandidate):
            open_election.vote("v1", bad_id)

    assert _state(open_election) == before


def test_voting_twice_fails(open_election):
    open_election.vote("v1", 1)
    before = _state(open_election)

    with pytest.raises(AlreadyVoted):
        open_election.vote("v1", 2)

    assert _state(open_election) == before
    assert open_election.get_voter("v1").voted_candidate_id == 1


def test_vote_precondition_order(election):
    # Closed voting wins over every other failure.
    with pytest.raises(VotingClosed):
        election.vote("stranger", 99)

    election.set_voting_status(ADMIN, True)
    with pytest.raises(NotRegistered):
        election.vote("stranger", 99)

    election.add_candidate(ADMIN, "Alice")
    election.register_voter(ADMIN, "v1")
    election.vote("v1", 1)
    with pytest.raises(AlreadyVoted):
        election.vote("v1", 99)

    election.register_voter(ADMIN, "v2")
    with pytest.raises(InvalidCandidate):
        election.vote("v2", 99)


def test_vote_after_reclose_is_rejected(open_election):
    open_election.vote("v1", 1)
    open_election.set_voting_status(ADMIN, False)

    with pytest.raises(VotingClosed):
        open_election.vote("v2", 1)

    open_election.set_voting_status(ADMIN, True)
    open_election.vote("v2", 1)
    assert open_election.get_candidate(1).vote_count == 2


def test_candidates_and_voters_can_be_added_while_open(open_election):
    candidate_id = open_election.add_candidate(ADMIN, "Dave", "Late entry")
    open_election.register_voter(ADMIN, "v4")
    open_election.vote("v4", candidate_id)

    assert open_election.get_candidate(candidate_id).vote_count == 1


def test_get_candidate_out_of_range_fails(open_election):
    for bad_id in (0, 3, -5):
        with pytest.raises(InvalidCandidate):
            open_election.get_candidate(bad_id)


def test_winner_is_candidate_with_most_votes(open_election):
    open_election.vote("v1", 1)
    open_election.vote("v2", 2)
    open_election.vote("v3", 1)

    assert open_election.get_winner() == Winner(id=1, name="Alice", vote_count=2)


def test_winner_tie_goes_to_lowest_id(election):
    election.add_candidate(ADMIN, "Alice")
    election.add_candidate(ADMIN, "Bob")
    voters = [f"v{i}" for i in range(10)]
    for voter in voters:
        election.register_voter(ADMIN, voter)
    election.set_voting_status(ADMIN, True)
    # Bob reaches five votes first; Alice ties later.
    for voter in voters[:5]:
        election.vote(voter, 2)
    for voter in voters[5:]:
        election.vote(voter, 1)

    winner = election.get_winner()
    assert winner.id == 1
    assert winner.vote_count == 5


def test_winner_requires_candidates(election):
    with pytest.raises(NoCandidates):
        election.get_winner()


def test_winner_requires_votes(election):
    election.add_candidate(ADMIN, "Alice", "Candidate 1")

    with pytest.raises(NoVotesCast):
        election.get_winner()


def test_results_rank_candidates_and_tolerate_no_votes(open_election):
    empty = open_election.results()
    assert empty["winner"] is None
    assert empty["total_votes"] == 0

    open_election.vote("v1", 2)
    table = open_election.results()

    assert [candidate.name for candidate in table["candidates"]] == ["Bob", "Alice"]
    assert table["winner"].name == "Bob"
    assert table["total_votes"] == 1


def test_tally_matches_voters_who_voted(open_election):
    choices = {"v1": 2, "v2": 2, "v3": 1}
    for voter, candidate_id in choices.items():
        open_election.vote(voter, candidate_id)
        with pytest.raises(AlreadyVoted):
            open_election.vote(voter, candidate_id)

    total = sum(candidate.vote_count for candidate in open_election.candidates())
    voted = sum(open_election.get_voter(voter).has_voted for voter in choices)
    assert total == voted == 3


def test_summary_reports_counts(open_election):
    summary = open_election.summary()

    assert summary.to_dict() == {
        "electionName": "Test Election",
        "admin": ADMIN,
        "votingOpen": True,
        "candidatesCount": 2,
        "votersCount": 3,
    }


def test_events_are_emitted_with_arguments(election):
    received = []
    election.subscribe(lambda entry: received.append((entry.event_type, entry.payload)))

    election.add_candidate(ADMIN, "Alice", "Candidate 1")
    election.register_voter(ADMIN, "v1")
    election.set_voting_status(ADMIN, True)
    election.vote("v1", 1)

    assert received == [
        ("CandidateAdded", {"id": 1, "name": "Alice", "info": "Candidate 1"}),
        ("VoterRegistered", {"voter": "v1"}),
        ("VotingStatusChanged", {"open": True}),
        ("VoteCast", {"voter": "v1", "candidateId": 1}),
    ]


def test_listener_sees_committed_state(election):
    seen = []
    election.subscribe(lambda entry: seen.append(election.candidates_count))

    election.add_candidate(ADMIN, "Alice")
    election.add_candidate(ADMIN, "Bob")

    assert seen == [1, 2]


def test_failed_calls_emit_nothing(election):
    received = []
    election.subscribe(received.append)

    with pytest.raises(Unauthorized):
        election.add_candidate("v1", "Mallory")
    with pytest.raises(VotingClosed):
        election.vote("v1", 1)

    assert received == []


def test_last_entry_tracks_this_threads_commit(election):
    election.add_candidate(ADMIN, "Alice")

    entry = election.last_entry()
    assert entry is not None
    assert entry.event_type == "CandidateAdded"
    assert entry.hash == election.ledger.last_hash


def test_non_scalar_identity_is_rejected_before_any_change(election):
    before = election.ledger.last_hash

    with pytest.raises(ValueError, match="JSON scalar"):
        election.register_voter(ADMIN, ("acct", 7))

    assert election.voters_count == 0
    assert election.get_voter(("acct", 7)).is_registered is False
    assert election.ledger.last_hash == before


def test_non_scalar_admin_cannot_create_election():
    with pytest.raises(ValueError, match="JSON scalar"):
        Election.create("Test Election", ("admin", 1))
