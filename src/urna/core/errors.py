"""Errores de precondición de la máquina de estados electoral.

Todos los errores son deterministas dados el estado y el llamador; ninguno es
transitorio ni reintentable.

English:
    Precondition errors raised by the election state machine.

    Every error is deterministic given the current state and the caller;
    none of them is transient or retriable.
"""

from __future__ import annotations


class ElectionError(Exception):
    """Base de todos los rechazos de operación. / Base of every rejected operation.

    Attributes:
        kind (str): Nombre estable del tipo de fallo. / Stable failure kind name.
    """

    kind = "ElectionError"
    default_message = "Election operation rejected"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        """Representación estructurada para la fachada. / Structured form for the façade."""
        return {"error": self.kind, "detail": self.message}


class Unauthorized(ElectionError):
    kind = "Unauthorized"
    default_message = "Only admin can perform this action"


class AlreadyRegistered(ElectionError):
    kind = "AlreadyRegistered"
    default_message = "Voter is already registered"


class VotingClosed(ElectionError):
    kind = "VotingClosed"
    default_message = "Voting is not open"


class NotRegistered(ElectionError):
    kind = "NotRegistered"
    default_message = "You are not registered to vote"


class AlreadyVoted(ElectionError):
    kind = "AlreadyVoted"
    default_message = "You have already voted"


class InvalidCandidate(ElectionError):
    kind = "InvalidCandidate"
    default_message = "Invalid candidate"


class NoCandidates(ElectionError):
    kind = "NoCandidates"
    default_message = "No candidates registered"


class NoVotesCast(ElectionError):
    kind = "NoVotesCast"
    default_message = "No votes cast yet"


class LedgerIntegrityError(Exception):
    """La cadena de eventos no verifica o no se puede reproducir.

    English: The event chain does not verify or cannot be replayed.
    """


class LedgerConflictError(Exception):
    """El libro en disco avanzó desde que se abrió esta copia.

    English: The on-disk ledger moved on since this copy was opened.
    """
