"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/urna/cli.py`.
Interfaz de línea de comandos para aprovisionar y administrar elecciones
guardadas en un `ElectionStore`. Cada comando mutante toma el candado de
archivo de la elección, la abre reproduciendo su libro verificado, aplica una
operación y vuelve a guardar el libro antes de soltar el candado.

Componentes detectados:
  - create, list_elections
  - add_candidate, register_voter, set_status, vote
  - show, results, verify

Notas:
- Los rechazos del núcleo se imprimen con su tipo y salen con código 1.

======================== ENGLISH ========================
File: `src/urna/cli.py`.
Command line interface to provision and administer elections kept in an
`ElectionStore`. Each mutating command takes the election file lock, opens
the election by replaying its verified ledger, applies one operation and saves
the ledger back before releasing the lock.

Detected components:
  - create, list_elections
  - add_candidate, register_voter, set_status, vote
  - show, results, verify

Notes:
- Core rejections are printed with their kind and exit with code 1.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, NoReturn, Optional

import typer

from urna.core.election import Election
from urna.core.errors import ElectionError, LedgerConflictError, LedgerIntegrityError
from urna.logging import bind_election, setup_logging
from urna.storage import ElectionStore

app = typer.Typer(help="Urna election ledger CLI")

StorageOption = typer.Option(Path("data"), "--storage", envvar="STORAGE_PATH", help="Storage root.")
ElectionOption = typer.Option(..., "--election", envvar="ELECTION_ID", help="Election id.")
CallerOption = typer.Option("admin", "--caller", envvar="OPERATOR_IDENTITY", help="Caller identity.")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Enable logging at this level."),
    log_dir: Path = typer.Option(Path("data"), "--log-dir", envvar="STORAGE_PATH", help="Root for logs/."),
) -> None:
    """Interfaz de línea de comandos de Urna.

    English: Urna command line interface.
    """
    if log_level:
        setup_logging(log_level, log_dir)


def _fail(exc: Exception) -> NoReturn:
    if isinstance(exc, ElectionError):
        typer.echo(f"{exc.kind}: {exc.message}", err=True)
    else:
        typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(code=1)


def _open(storage: Path, election_id: str) -> tuple[ElectionStore, Election]:
    bind_election(election_id)
    store = ElectionStore(storage)
    try:
        return store, store.open(election_id)
    except (FileNotFoundError, ValueError, LedgerIntegrityError) as exc:
        _fail(exc)


def _mutate(storage: Path, election_id: str, operation: Callable[[Election], object]) -> object:
    bind_election(election_id)
    store = ElectionStore(storage)
    try:
        with store.transaction(election_id) as election:
            result = operation(election)
            entry = election.last_entry()
    except (ElectionError, FileNotFoundError, ValueError, LedgerIntegrityError, LedgerConflictError) as exc:
        _fail(exc)
    if entry is not None:
        typer.echo(f"{entry.event_type} #{entry.index} {entry.hash}")
    return result


@app.command()
def create(
    name: str = typer.Argument(..., help="Election name."),
    admin: str = typer.Option(..., "--admin", help="Admin identity."),
    election_id: Optional[str] = typer.Option(None, "--id", help="Explicit election id."),
    storage: Path = StorageOption,
) -> None:
    """Aprovisiona una elección nueva. / Provision a new election."""
    store = ElectionStore(storage)
    try:
        new_id = store.create(name, admin, election_id=election_id)
    except (FileExistsError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"election_id={new_id}")
    typer.echo(f"admin={admin}")


@app.command("list")
def list_elections(storage: Path = StorageOption) -> None:
    for election_id in ElectionStore(storage).list():
        typer.echo(election_id)


@app.command("add-candidate")
def add_candidate(
    name: str = typer.Argument(...),
    info: str = typer.Option("", "--info"),
    election_id: str = ElectionOption,
    caller: str = CallerOption,
    storage: Path = StorageOption,
) -> None:
    candidate_id = _mutate(storage, election_id, lambda e: e.add_candidate(caller, name, info))
    typer.echo(f"candidate_id={candidate_id}")


@app.command("register-voter")
def register_voter(
    voter: str = typer.Argument(...),
    election_id: str = ElectionOption,
    caller: str = CallerOption,
    storage: Path = StorageOption,
) -> None:
    _mutate(storage, election_id, lambda e: e.register_voter(caller, voter))


@app.command("set-status")
def set_status(
    status: str = typer.Argument(..., help="'open' or 'closed'."),
    election_id: str = ElectionOption,
    caller: str = CallerOption,
    storage: Path = StorageOption,
) -> None:
    """Abre o cierra la votación. / Open or close voting."""
    normalized = status.strip().lower()
    if normalized not in {"open", "closed"}:
        typer.echo("status must be 'open' or 'closed'", err=True)
        raise typer.Exit(code=2)
    _mutate(storage, election_id, lambda e: e.set_voting_status(caller, normalized == "open"))


@app.command()
def vote(
    candidate_id: int = typer.Argument(...),
    voter: str = typer.Option(..., "--voter", help="Voting identity."),
    election_id: str = ElectionOption,
    storage: Path = StorageOption,
) -> None:
    _mutate(storage, election_id, lambda e: e.vote(voter, candidate_id))


@app.command()
def show(
    election_id: str = ElectionOption,
    voter: Optional[str] = typer.Option(None, "--voter", help="Include this voter's record."),
    storage: Path = StorageOption,
) -> None:
    """Muestra el estado de la elección en JSON. / Print election state as JSON."""
    _, election = _open(storage, election_id)
    payload = election.summary().to_dict()
    payload["candidates"] = [candidate.to_dict() for candidate in election.candidates()]
    if voter is not None:
        payload["voter"] = election.get_voter(voter).to_dict()
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command()
def results(election_id: str = ElectionOption, storage: Path = StorageOption) -> None:
    _, election = _open(storage, election_id)
    table = election.results()
    for candidate in table["candidates"]:
        typer.echo(f"{candidate.id}\t{candidate.name}\t{candidate.vote_count}")
    try:
        winner = election.get_winner()
    except ElectionError as exc:
        _fail(exc)
    typer.echo(f"winner={winner.id} {winner.name} ({winner.vote_count})")


@app.command()
def verify(election_id: str = ElectionOption, storage: Path = StorageOption) -> None:
    """Verifica la cadena y la reproducción del libro. / Verify ledger chain and replay."""
    bind_election(election_id)
    try:
        result = ElectionStore(storage).verify(election_id)
    except (FileNotFoundError, ValueError, LedgerIntegrityError) as exc:
        _fail(exc)
    typer.echo(json.dumps(result.to_dict(), indent=2))
    if not result.valid:
        raise typer.Exit(code=1)
    # Hashes hold; replay still rejects links that break election rules.
    _open(storage, election_id)


if __name__ == "__main__":
    app()
