"""Notificaciones emitidas por cada mutación confirmada.

English:
    Notifications emitted for every committed mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Hashable, Type


@dataclass(frozen=True)
class ElectionEvent:
    event_type: ClassVar[str] = "ElectionEvent"

    def to_payload(self) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ElectionEvent":
        raise NotImplementedError


@dataclass(frozen=True)
class ElectionCreated(ElectionEvent):
    """Registro génesis de la elección. / Election genesis record."""

    event_type: ClassVar[str] = "ElectionCreated"

    name: str
    admin: Hashable

    def to_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "admin": self.admin}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ElectionCreated":
        return cls(name=payload["name"], admin=payload["admin"])


@dataclass(frozen=True)
class CandidateAdded(ElectionEvent):
    """Candidato agregado por el administrador.

    `info` viaja en el libro para poder reconstruir el registro.

    English:
        Candidate added by the admin.

        `info` travels in the ledger so the registry can be rebuilt.
    """

    event_type: ClassVar[str] = "CandidateAdded"

    id: int
    name: str
    info: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "info": self.info}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CandidateAdded":
        return cls(id=int(payload["id"]), name=payload["name"], info=payload.get("info", ""))


@dataclass(frozen=True)
class VoterRegistered(ElectionEvent):
    event_type: ClassVar[str] = "VoterRegistered"

    voter: Hashable

    def to_payload(self) -> Dict[str, Any]:
        return {"voter": self.voter}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "VoterRegistered":
        return cls(voter=payload["voter"])


@dataclass(frozen=True)
class VotingStatusChanged(ElectionEvent):
    event_type: ClassVar[str] = "VotingStatusChanged"

    open: bool

    def to_payload(self) -> Dict[str, Any]:
        return {"open": self.open}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "VotingStatusChanged":
        return cls(open=bool(payload["open"]))


@dataclass(frozen=True)
class VoteCast(ElectionEvent):
    event_type: ClassVar[str] = "VoteCast"

    voter: Hashable
    candidate_id: int

    def to_payload(self) -> Dict[str, Any]:
        return {"voter": self.voter, "candidateId": self.candidate_id}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "VoteCast":
        return cls(voter=payload["voter"], candidate_id=int(payload["candidateId"]))


EVENT_TYPES: Dict[str, Type[ElectionEvent]] = {
    event_cls.event_type: event_cls
    for event_cls in (
        ElectionCreated,
        CandidateAdded,
        VoterRegistered,
        VotingStatusChanged,
        VoteCast,
    )
}


def event_from_payload(event_type: str, payload: Dict[str, Any]) -> ElectionEvent:
    """Reconstruye un evento desde su forma serializada.

    English: Rebuild an event from its serialized form.
    """
    try:
        event_cls = EVENT_TYPES[event_type]
    except KeyError as exc:
        raise ValueError(f"Unknown event_type: {event_type}") from exc
    return event_cls.from_payload(payload)
