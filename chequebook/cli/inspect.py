from __future__ import annotations

"""
chequebook.cli.inspect
----------------------

Read-only views of the cheque ledger:
- every beneficiary's last cheque
- one beneficiary's last cheque
- the total issued so far

The available balance needs the chain and is not shown here.

Examples
--------
chequebook-inspect cheques --db sqlite:///chequebook.db
chequebook-inspect cheque 0x1111111111111111111111111111111111111111 --json
chequebook-inspect total-issued
"""

import json
import shutil
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

import typer

from .. import logging as clog
from ..cheque import SignedCheque, to_address
from ..db import open_kv
from ..errors import ChequebookError, NoCheque
from ..registry import ChequeRegistry

app = typer.Typer(
    name="chequebook-inspect",
    add_completion=False,
    no_args_is_help=True,
    help="Inspect cheques issued from a chequebook ledger.",
)

DEFAULT_DB = "sqlite:///chequebook.db"

_DB_OPTION = typer.Option(DEFAULT_DB, "--db", envvar="CHEQUEBOOK_DB_URI", help="Ledger KV URI.")
_JSON_OPTION = typer.Option(False, "--json", help="Emit JSON instead of a table.")

# -------------------- utils --------------------


@contextmanager
def _registry(db: str) -> Iterator[ChequeRegistry]:
    """Open the ledger read-only for one command; storage faults exit 2."""
    try:
        store = open_kv(db, create=False)
    except (FileNotFoundError, ValueError, sqlite3.DatabaseError) as e:
        typer.echo(f"error: cannot open ledger {db!r}: {e}", err=True)
        raise typer.Exit(code=2)
    try:
        yield ChequeRegistry(store)
    except sqlite3.DatabaseError as e:
        typer.echo(f"error: cannot read ledger {db!r}: {e}", err=True)
        raise typer.Exit(code=2)
    finally:
        store.close()


def _width(default: int = 100) -> int:
    return shutil.get_terminal_size((default, 20)).columns


def _row(c: SignedCheque) -> Dict[str, Any]:
    d = c.to_dict()
    return {
        "beneficiary": d["beneficiary"],
        "cumulative_payout": d["cumulative_payout"],
        "chequebook": d["chequebook"],
        "signature": d["signature"],
    }


def _print_table(rows: List[Dict[str, Any]]) -> None:
    if not rows:
        typer.echo("(no cheques)")
        return
    payout_w = max(len("CUMULATIVE_PAYOUT"), *(len(r["cumulative_payout"]) for r in rows))
    typer.echo(f"{'BENEFICIARY':<42}  {'CUMULATIVE_PAYOUT':>{payout_w}}  SIGNATURE")
    sig_w = max(8, _width() - 42 - payout_w - 4)
    for r in rows:
        sig = r["signature"]
        if len(sig) > sig_w:
            sig = sig[: sig_w - 1] + "…"
        typer.echo(f"{r['beneficiary']:<42}  {r['cumulative_payout']:>{payout_w}}  {sig}")


# -------------------- commands --------------------


@app.command("cheques")
def cheques(db: str = _DB_OPTION, as_json: bool = _JSON_OPTION) -> None:
    """Last cheque of every beneficiary."""
    with _registry(db) as reg:
        try:
            found = reg.last_cheques()
        except ChequebookError as e:
            typer.echo(f"error: {e}", err=True)
            raise typer.Exit(code=2)
    rows = [_row(found[b]) for b in sorted(found)]
    if as_json:
        typer.echo(json.dumps(rows, indent=2))
    else:
        _print_table(rows)


@app.command("cheque")
def cheque(
    beneficiary: str = typer.Argument(..., help="Beneficiary address (0x + 40 hex)."),
    db: str = _DB_OPTION,
    as_json: bool = _JSON_OPTION,
) -> None:
    """Last cheque issued to BENEFICIARY."""
    try:
        addr = to_address(beneficiary)
    except ValueError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=2)
    with _registry(db) as reg:
        try:
            c = reg.last_cheque(addr)
        except NoCheque:
            typer.echo(f"no cheque issued to {addr}", err=True)
            raise typer.Exit(code=1)
        except ChequebookError as e:
            typer.echo(f"error: {e}", err=True)
            raise typer.Exit(code=2)
    if as_json:
        typer.echo(json.dumps(_row(c), indent=2))
    else:
        _print_table([_row(c)])


@app.command("total-issued")
def total_issued(db: str = _DB_OPTION, as_json: bool = _JSON_OPTION) -> None:
    """Sum of all amounts ever issued."""
    with _registry(db) as reg:
        try:
            total = reg.total_issued()
        except ChequebookError as e:
            typer.echo(f"error: {e}", err=True)
            raise typer.Exit(code=2)
    if as_json:
        typer.echo(json.dumps({"total_issued": str(total)}))
    else:
        typer.echo(str(total))


def main() -> None:
    """Console entrypoint: set up logging (CHEQUEBOOK_LOG_*), then run the app."""
    clog.configure()
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
