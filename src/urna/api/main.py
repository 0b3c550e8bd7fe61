"""Fachada REST de la elección.

Cada ruta se traduce 1:1 a una operación del núcleo; los fallos del núcleo se
devuelven tal cual como error estructurado y cada mutación devuelve su
notificación como resultado inmediato.

English:
    Election REST façade.

    Every route maps 1:1 onto a core operation; core failures are relayed
    verbatim as structured errors and every mutation returns its
    notification as the immediate call result.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import structlog
from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from urna import __version__
from urna.config import UrnaSettings, load_config
from urna.core.election import Election
from urna.core.errors import ElectionError, LedgerIntegrityError
from urna.core.ledger import LedgerEntry
from urna.logging import bind_context
from urna.schemas import CandidateCreate, VoteRequest, VoterCreate, VotingStatusRequest
from urna.storage import ElectionStore

logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[str, int] = {
    "Unauthorized": 403,
    "NotRegistered": 403,
    "AlreadyVoted": 403,
    "AlreadyRegistered": 409,
    "VotingClosed": 409,
    "NoCandidates": 409,
    "NoVotesCast": 409,
    "InvalidCandidate": 404,
}


def _mutation_result(entry: Optional[LedgerEntry], **extra: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {"success": True, **extra}
    if entry is not None:
        result["event"] = {"type": entry.event_type, **entry.payload}
        result["hash"] = entry.hash
        result["index"] = entry.index
    return result


def create_app(
    election: Election,
    *,
    operator_identity: str = "admin",
    store: Optional[ElectionStore] = None,
    election_id: Optional[str] = None,
    cors_origins: Optional[List[str]] = None,
    rate_limit_per_minute: int = 120,
) -> FastAPI:
    """Construye la aplicación FastAPI sobre una elección ya instanciada.

    Args:
        election (Election): Elección servida.
        operator_identity (str): Identidad usada cuando la petición no trae
            `X-Caller-Identity`.
        store (Optional[ElectionStore]): Si se indica, cada mutación corre
            como transacción bajo el candado de archivo y las lecturas
            reproducen el libro guardado.
        election_id (Optional[str]): Identificador dentro de `store`.
        cors_origins (Optional[List[str]]): Orígenes permitidos.
        rate_limit_per_minute (int): Límite por cliente.

    English:
        Build the FastAPI application over an already instantiated election.
        With a store, every mutation runs as a transaction under the file
        lock and reads replay the stored ledger.
    """
    if store is not None and not election_id:
        raise ValueError("election_id is required when a store is configured")

    app = FastAPI(title="Urna Election API", version=__version__)
    log = bind_context(structlog.get_logger("urna.api"), election=election_id)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{rate_limit_per_minute}/minute"],
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(LedgerIntegrityError)
    async def _integrity_handler(request: Request, exc: LedgerIntegrityError) -> JSONResponse:
        log.error("api_ledger_rejected", path=request.url.path, detail=str(exc))
        return JSONResponse(status_code=500, content={"error": "LedgerIntegrity", "detail": str(exc)})

    @app.exception_handler(ElectionError)
    async def _election_error_handler(request: Request, exc: ElectionError) -> JSONResponse:
        log.info("api_operation_rejected", path=request.url.path, kind=exc.kind)
        return JSONResponse(status_code=ERROR_STATUS.get(exc.kind, 400), content=exc.to_dict())

    def caller_identity(x_caller_identity: Optional[str] = Header(default=None)) -> str:
        if x_caller_identity and x_caller_identity.strip():
            return x_caller_identity.strip()
        return operator_identity

    def current() -> Election:
        if store is None:
            return election
        return store.open(election_id)

    @contextmanager
    def mutating() -> Iterator[Election]:
        if store is None:
            yield election
            return
        with store.transaction(election_id) as stored:
            yield stored

    @app.get("/api/health")
    def health() -> Dict[str, Any]:
        return {"success": True, "version": __version__}

    @app.get("/api/election")
    def get_election() -> Dict[str, Any]:
        return current().summary().to_dict()

    @app.get("/api/candidates")
    def list_candidates() -> List[Dict[str, Any]]:
        return [candidate.to_dict() for candidate in current().candidates()]

    @app.get("/api/candidates/{candidate_id}")
    def get_candidate(candidate_id: int) -> Dict[str, Any]:
        return current().get_candidate(candidate_id).to_dict()

    @app.post("/api/candidates")
    def add_candidate(body: CandidateCreate, caller: str = Depends(caller_identity)) -> Dict[str, Any]:
        with mutating() as target:
            candidate_id = target.add_candidate(caller, body.name, body.info)
            entry = target.last_entry()
        log.info("api_candidate_added", caller=caller, candidate_id=candidate_id)
        return _mutation_result(entry, candidateId=candidate_id)

    @app.post("/api/voters")
    def register_voter(body: VoterCreate, caller: str = Depends(caller_identity)) -> Dict[str, Any]:
        with mutating() as target:
            target.register_voter(caller, body.voter_address)
            entry = target.last_entry()
        log.info("api_voter_registered", caller=caller)
        return _mutation_result(entry)

    @app.get("/api/voters/{identity}")
    def get_voter(identity: str) -> Dict[str, Any]:
        return current().get_voter(identity).to_dict()

    @app.post("/api/vote")
    def cast_vote(body: VoteRequest) -> Dict[str, Any]:
        with mutating() as target:
            target.vote(body.voter_address, body.candidate_id)
            entry = target.last_entry()
        log.info("api_vote_cast", candidate_id=body.candidate_id)
        return _mutation_result(entry)

    @app.post("/api/voting-status")
    def set_voting_status(
        body: VotingStatusRequest, caller: str = Depends(caller_identity)
    ) -> Dict[str, Any]:
        with mutating() as target:
            target.set_voting_status(caller, body.voting_open)
            entry = target.last_entry()
        log.info("api_voting_status_changed", caller=caller, voting_open=body.voting_open)
        return _mutation_result(entry, votingOpen=body.voting_open)

    @app.get("/api/results")
    def get_results() -> Dict[str, Any]:
        results = current().results()
        if not results["candidates"]:
            return {"message": "No candidates registered yet"}
        winner = results["winner"]
        return {
            "candidates": [candidate.to_dict() for candidate in results["candidates"]],
            "winner": winner.to_dict() if winner is not None else None,
            "totalVotes": results["total_votes"],
        }

    @app.get("/api/ledger")
    def get_ledger() -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in current().ledger.entries()]

    @app.get("/api/ledger/verify")
    def verify_ledger() -> Dict[str, Any]:
        return current().ledger.verify().to_dict()

    return app


def app_from_config(settings: Optional[UrnaSettings] = None) -> FastAPI:
    """Construye la aplicación desde la configuración del entorno.

    Requiere `ELECTION_ID` apuntando a una elección existente en
    `STORAGE_PATH`.

    English:
        Build the application from environment configuration. Requires
        `ELECTION_ID` pointing at an existing election in `STORAGE_PATH`.
    """
    settings = settings or load_config()
    if not settings.ELECTION_ID:
        raise ValueError("ELECTION_ID is required to serve an election")
    store = ElectionStore(settings.STORAGE_PATH)
    try:
        election = store.open(settings.ELECTION_ID)
    except LedgerIntegrityError:
        logger.error("api_ledger_rejected election_id=%s", settings.ELECTION_ID)
        raise
    return create_app(
        election,
        operator_identity=settings.OPERATOR_IDENTITY,
        store=store,
        election_id=settings.ELECTION_ID,
        cors_origins=settings.cors_origins(),
        rate_limit_per_minute=settings.API_RATE_LIMIT,
    )
