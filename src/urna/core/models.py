"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/urna/core/models.py`.
Vistas inmutables de los registros de la elección. Las lecturas devuelven
copias congeladas, nunca referencias a los registros internos.

Componentes detectados:
  - Candidate
  - VoterRecord
  - Winner
  - ElectionSummary

Notas:
- Mantener esta cabecera sincronizada con cambios estructurales del archivo.

======================== ENGLISH ========================
File: `src/urna/core/models.py`.
Immutable views of the election registries. Reads return frozen copies,
never references into the internal registries.

Detected components:
  - Candidate
  - VoterRecord
  - Winner
  - ElectionSummary

Notes:
- Keep this header in sync with structural changes in the file.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Hashable, Optional


@dataclass(frozen=True)
class Candidate:
    """Candidato de la elección con su conteo de votos.

    Attributes:
        id (int): Identificador secuencial desde 1.
        name (str): Nombre del candidato.
        info (str): Información libre, puede estar vacía.
        vote_count (int): Votos recibidos.

    English:
        Election candidate with its vote tally.

    Attributes:
        id (int): Sequential identifier starting at 1.
        name (str): Candidate name.
        info (str): Free-form info, may be empty.
        vote_count (int): Votes received.
    """

    id: int
    name: str
    info: str = ""
    vote_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "info": self.info,
            "voteCount": self.vote_count,
        }


@dataclass(frozen=True)
class VoterRecord:
    """Estado de registro y voto de una identidad.

    `voted_candidate_id` solo tiene sentido cuando `has_voted` es verdadero.

    English:
        Registration and voting status of one identity.

        `voted_candidate_id` is only meaningful when `has_voted` is true.
    """

    is_registered: bool = False
    has_voted: bool = False
    voted_candidate_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isRegistered": self.is_registered,
            "hasVoted": self.has_voted,
            "votedCandidateId": self.voted_candidate_id,
        }


@dataclass(frozen=True)
class Winner:
    """Ganador declarado. / Declared winner."""

    id: int
    name: str
    vote_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "voteCount": self.vote_count}


@dataclass(frozen=True)
class ElectionSummary:
    """Estado público de la elección. / Public election state."""

    name: str
    admin: Hashable
    voting_open: bool
    candidates_count: int
    voters_count: int

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        return {
            "electionName": payload["name"],
            "admin": payload["admin"],
            "votingOpen": payload["voting_open"],
            "candidatesCount": payload["candidates_count"],
            "votersCount": payload["voters_count"],
        }
