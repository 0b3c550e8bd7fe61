"""Máquina de estados de la elección.

Una instancia es dueña de los tres registros (identidad del administrador,
candidatos y votantes). Todas las mutaciones se ejecutan bajo un único candado:
validación, mutación, registro en el libro y notificación ocurren dentro de la
misma sección crítica, así que dos votos concurrentes de la misma identidad
nunca se cuentan dos veces y las notificaciones salen en orden de confirmación.

Las lecturas toman el mismo candado solo para copiar una vista consistente.

English:
    Election state machine.

    An instance owns the three registries (admin identity, candidates and
    voters). Every mutation runs under a single lock: validation, mutation,
    ledger append and notification happen inside the same critical section,
    so two concurrent votes from the same identity are never both counted and
    notifications leave in commit order.

    Reads take the same lock only to copy a consistent view.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Hashable, List, Optional

from urna.core.errors import (
    AlreadyRegistered,
    AlreadyVoted,
    ElectionError,
    InvalidCandidate,
    LedgerIntegrityError,
    NoCandidates,
    NotRegistered,
    NoVotesCast,
    Unauthorized,
    VotingClosed,
)
from urna.core.events import (
    CandidateAdded,
    ElectionCreated,
    ElectionEvent,
    VoteCast,
    VoterRegistered,
    VotingStatusChanged,
)
from urna.core.ledger import EventLedger, LedgerEntry, Listener
from urna.core.models import Candidate, ElectionSummary, VoterRecord, Winner

logger = logging.getLogger(__name__)


@dataclass
class _CandidateSlot:
    id: int
    name: str
    info: str
    vote_count: int = 0

    def freeze(self) -> Candidate:
        return Candidate(id=self.id, name=self.name, info=self.info, vote_count=self.vote_count)


@dataclass
class _VoterSlot:
    has_voted: bool = False
    voted_candidate_id: Optional[int] = None

    def freeze(self) -> VoterRecord:
        return VoterRecord(
            is_registered=True,
            has_voted=self.has_voted,
            voted_candidate_id=self.voted_candidate_id,
        )


class Election:
    """Elección única con administrador fijo y registros append-only.

    Usar `Election.create` para instanciar una elección nueva y
    `Election.from_ledger` para reconstruirla desde su libro.

    English:
        Single election with a fixed admin and append-only registries.

        Use `Election.create` for a new election and `Election.from_ledger`
        to rebuild one from its ledger.
    """

    def __init__(self, name: str, admin: Hashable, ledger: Optional[EventLedger] = None) -> None:
        self._name = name
        self._admin = admin
        self._voting_open = False
        # Candidate id N lives at index N - 1.
        self._candidates: List[_CandidateSlot] = []
        self._voters: Dict[Hashable, _VoterSlot] = {}
        self._ledger = ledger if ledger is not None else EventLedger()
        self._lock = threading.RLock()
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Creación / Creation
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, name: str, creator: Hashable, ledger: Optional[EventLedger] = None) -> "Election":
        """Crea la elección; el creador queda como administrador.

        English: Create the election; the creator becomes the admin.
        """
        election = cls(name, creator, ledger=ledger)
        with election._lock:
            election._commit(ElectionCreated(name=name, admin=creator), creator)
        logger.info("election_created name=%s admin=%s", name, creator)
        return election

    @classmethod
    def from_ledger(cls, ledger: EventLedger) -> "Election":
        """Reconstruye una elección reproduciendo su libro verificado.

        Cada eslabón se revalida con las mismas reglas que las operaciones
        en vivo, actuando como el llamador registrado.

        Raises:
            LedgerIntegrityError: Si la cadena no verifica o un eslabón viola
                las reglas de la elección.

        English:
            Rebuild an election by replaying its verified ledger.

            Each link is revalidated with the same rules as live operations,
            acting as the recorded caller.
        """
        verification = ledger.verify()
        if not verification.valid:
            raise LedgerIntegrityError(
                f"Ledger chain broken at index {verification.broken_at}: {verification.errors}"
            )
        entries = ledger.entries()
        if not entries or entries[0].event_type != ElectionCreated.event_type:
            raise LedgerIntegrityError("Ledger does not start with an ElectionCreated entry")

        try:
            genesis = entries[0].event
        except (ValueError, KeyError, TypeError) as exc:
            raise LedgerIntegrityError(f"Malformed genesis entry: {exc}") from exc
        election = cls(genesis.name, genesis.admin, ledger=ledger)
        if entries[0].caller != genesis.admin:
            raise LedgerIntegrityError("Genesis entry caller differs from admin")
        for entry in entries[1:]:
            try:
                election._replay(entry)
            except (ElectionError, ValueError, KeyError, TypeError) as exc:
                raise LedgerIntegrityError(
                    f"Ledger entry {entry.index} ({entry.event_type}) rejected on replay: {exc}"
                ) from exc
        logger.info(
            "election_replayed name=%s entries=%s last_hash=%s",
            election._name,
            len(entries),
            verification.last_hash,
        )
        return election

    # ------------------------------------------------------------------
    # Operaciones mutantes / Mutating operations
    # ------------------------------------------------------------------

    def add_candidate(self, caller: Hashable, name: str, info: str = "") -> int:
        with self._lock:
            self._require_admin(caller)
            event = CandidateAdded(id=len(self._candidates) + 1, name=name, info=info)
            self._commit(event, caller)
        return event.id

    def register_voter(self, caller: Hashable, voter: Hashable) -> None:
        with self._lock:
            self._check_register(caller, voter)
            self._commit(VoterRegistered(voter=voter), caller)

    def set_voting_status(self, caller: Hashable, open: bool) -> None:
        """Abre o cierra la votación; idempotente. / Open or close voting; idempotent."""
        with self._lock:
            self._require_admin(caller)
            self._commit(VotingStatusChanged(open=bool(open)), caller)

    def vote(self, caller: Hashable, candidate_id: int) -> None:
        """Emite el voto del llamador.

        Las precondiciones se evalúan en orden y el primer fallo determina el
        error: votación cerrada, no registrado, ya votó, candidato inválido.

        English:
            Cast the caller's vote.

            Preconditions are checked in order and the first failure decides
            the error: voting closed, not registered, already voted, invalid
            candidate.
        """
        with self._lock:
            self._check_vote(caller, candidate_id)
            self._commit(VoteCast(voter=caller, candidate_id=candidate_id), caller)

    def last_entry(self) -> Optional[LedgerEntry]:
        """Último eslabón confirmado por este hilo. / Last link committed by this thread."""
        return getattr(self._local, "last_entry", None)

    # ------------------------------------------------------------------
    # Lecturas / Reads
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def admin(self) -> Hashable:
        return self._admin

    @property
    def voting_open(self) -> bool:
        with self._lock:
            return self._voting_open

    @property
    def candidates_count(self) -> int:
        with self._lock:
            return len(self._candidates)

    @property
    def voters_count(self) -> int:
        with self._lock:
            return len(self._voters)

    @property
    def ledger(self) -> EventLedger:
        return self._ledger

    def get_candidate(self, candidate_id: int) -> Candidate:
        """Devuelve un candidato; un id fuera de rango falla con InvalidCandidate.

        English: Return one candidate; an out-of-range id fails with InvalidCandidate.
        """
        with self._lock:
            return self._candidate_slot(candidate_id).freeze()

    def candidates(self) -> List[Candidate]:
        with self._lock:
            return [slot.freeze() for slot in self._candidates]

    def get_voter(self, voter: Hashable) -> VoterRecord:
        """Registro del votante; identidades desconocidas dan el registro vacío.

        English: Voter record; unknown identities get the zero-valued record.
        """
        with self._lock:
            slot = self._voters.get(voter)
            return slot.freeze() if slot is not None else VoterRecord()

    def summary(self) -> ElectionSummary:
        with self._lock:
            return ElectionSummary(
                name=self._name,
                admin=self._admin,
                voting_open=self._voting_open,
                candidates_count=len(self._candidates),
                voters_count=len(self._voters),
            )

    def get_winner(self) -> Winner:
        """Candidato con más votos; los empates favorecen al id más bajo.

        Raises:
            NoCandidates: Si no hay candidatos.
            NoVotesCast: Si ningún candidato tiene votos.

        English:
            Candidate with the most votes; ties go to the lowest id.
        """
        with self._lock:
            return self._winner()

    def results(self) -> Dict[str, Any]:
        """Tabla de resultados ordenada y ganador, si lo hay.

        English: Sorted results table and the winner, if any.
        """
        with self._lock:
            ranked = sorted(self._candidates, key=lambda slot: (-slot.vote_count, slot.id))
            try:
                winner: Optional[Winner] = self._winner()
            except (NoCandidates, NoVotesCast):
                winner = None
            return {
                "candidates": [slot.freeze() for slot in ranked],
                "winner": winner,
                "total_votes": sum(slot.vote_count for slot in self._candidates),
            }

    # ------------------------------------------------------------------
    # Notificaciones / Notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        """Registra un suscriptor de eslabones confirmados.

        El suscriptor corre dentro de la sección crítica: puede leer la
        elección, pero no debe invocar sus operaciones mutantes.

        English:
            Register a subscriber for committed links.

            The subscriber runs inside the critical section: it may read the
            election but must not call its mutating operations.
        """
        self._ledger.subscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._ledger.unsubscribe(listener)

    # ------------------------------------------------------------------
    # Internos / Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _require_admin(self, caller: Hashable) -> None:
        if caller != self._admin:
            logger.warning("election_unauthorized caller=%s", caller)
            raise Unauthorized()

    def _check_register(self, caller: Hashable, voter: Hashable) -> None:
        self._require_admin(caller)
        if voter in self._voters:
            raise AlreadyRegistered()

    def _check_vote(self, caller: Hashable, candidate_id: int) -> None:
        if not self._voting_open:
            raise VotingClosed()
        slot = self._voters.get(caller)
        if slot is None:
            raise NotRegistered()
        if slot.has_voted:
            raise AlreadyVoted()
        self._candidate_slot(candidate_id)

    def _candidate_slot(self, candidate_id: int) -> _CandidateSlot:
        if isinstance(candidate_id, bool) or not isinstance(candidate_id, int):
            raise InvalidCandidate()
        if not 1 <= candidate_id <= len(self._candidates):
            raise InvalidCandidate()
        return self._candidates[candidate_id - 1]

    def _winner(self) -> Winner:
        if not self._candidates:
            raise NoCandidates()
        best: Optional[_CandidateSlot] = None
        for slot in self._candidates:
            if best is None or slot.vote_count > best.vote_count:
                best = slot
        if best is None or best.vote_count == 0:
            raise NoVotesCast()
        return Winner(id=best.id, name=best.name, vote_count=best.vote_count)

    def _apply(self, event: ElectionEvent) -> None:
        if isinstance(event, CandidateAdded):
            self._candidates.append(_CandidateSlot(id=event.id, name=event.name, info=event.info))
        elif isinstance(event, VoterRegistered):
            self._voters[event.voter] = _VoterSlot()
        elif isinstance(event, VotingStatusChanged):
            self._voting_open = event.open
        elif isinstance(event, VoteCast):
            self._candidates[event.candidate_id - 1].vote_count += 1
            voter = self._voters[event.voter]
            voter.has_voted = True
            voter.voted_candidate_id = event.candidate_id

    def _commit(self, event: ElectionEvent, caller: Hashable) -> LedgerEntry:
        # Append first: an identity that cannot be serialized must fail before any mutation.
        entry = self._ledger.append(event, caller)
        self._apply(event)
        self._local.last_entry = entry
        self._ledger.dispatch(entry)
        logger.info(
            "election_event_committed event=%s index=%s hash=%s",
            entry.event_type,
            entry.index,
            entry.hash,
        )
        return entry

    def _replay(self, entry: LedgerEntry) -> None:
        event = entry.event
        caller = entry.caller
        if isinstance(event, CandidateAdded):
            self._require_admin(caller)
            if event.id != len(self._candidates) + 1:
                raise ValueError(f"non-sequential candidate id {event.id}")
        elif isinstance(event, VoterRegistered):
            self._check_register(caller, event.voter)
        elif isinstance(event, VotingStatusChanged):
            self._require_admin(caller)
        elif isinstance(event, VoteCast):
            if event.voter != caller:
                raise ValueError("vote recorded for a different caller")
            self._check_vote(caller, event.candidate_id)
        else:
            raise ValueError(f"unexpected event {event.event_type}")
        self._apply(event)
