# Schemas Module
# AUTO-DOC-INDEX
#
# ES: Índice rápido
#   1) Cuerpos de petición de la fachada REST
#
# EN: Quick index
#   1) REST façade request bodies

"""Esquemas Pydantic para validar las peticiones de la fachada.

La fachada solo valida la presencia y forma de sus campos; las reglas de la
elección las aplica el núcleo.

Pydantic schemas to validate façade requests. The façade only checks the
presence and shape of its own fields; election rules belong to the core.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CandidateCreate(_RequestModel):
    """Alta de candidato. / Candidate creation."""

    name: str = Field(min_length=1)
    info: str = ""

    @field_validator("name")
    @classmethod
    def strip_text(cls, value: str) -> str:
        """Normaliza texto eliminando espacios y valida no vacío.

        English:
            Normalize text by trimming whitespace and validate non-empty.
        """
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Candidate name is required")
        return cleaned

    @field_validator("info", mode="before")
    @classmethod
    def default_info(cls, value: object) -> object:
        return "" if value is None else value


class VoterCreate(_RequestModel):
    """Registro de votante. / Voter registration."""

    voter_address: str = Field(alias="voterAddress", min_length=1)

    @field_validator("voter_address")
    @classmethod
    def strip_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Voter address is required")
        return cleaned


class VoteRequest(_RequestModel):
    """Voto emitido por `voter_address`. / Vote cast by `voter_address`."""

    candidate_id: int = Field(alias="candidateId")
    voter_address: str = Field(alias="voterAddress", min_length=1)

    @field_validator("voter_address")
    @classmethod
    def strip_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Voter address is required")
        return cleaned


class VotingStatusRequest(_RequestModel):
    voting_open: StrictBool = Field(alias="votingOpen")
