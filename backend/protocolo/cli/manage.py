"""Operator commands for the protocol database."""

from __future__ import annotations

import typer
from sqlalchemy.exc import IntegrityError

from .. import models
from ..auth import get_password_hash
from ..bootstrap import (
    OPERATOR_ROLE,
    MissingSchemaError,
    ensure_doc_type_column,
    init_db,
    rehash_plaintext_passwords,
)
from ..database import engine, session_scope

app = typer.Typer(help="Protocol database maintenance commands")


@app.command("init-db")
def init_db_command() -> None:
    """Create missing tables, apply additive migrations and seed defaults."""
    init_db(engine)
    typer.echo("Database ready")


@app.command("migrate")
def migrate_command() -> None:
    try:
        added = ensure_doc_type_column(engine)
    except MissingSchemaError:
        typer.echo("No protocols table found, run init-db first", err=True)
        raise typer.Exit(code=1)
    typer.echo("Added protocols.doc_type" if added else "Schema up to date")
    rehashed = rehash_plaintext_passwords(engine)
    if rehashed:
        typer.echo(f"Rehashed {rehashed} plaintext password(s)")


@app.command("create-user")
def create_user_command(
    username: str,
    password: str,
    role: str = typer.Option(OPERATOR_ROLE, help="Name of an existing role"),
) -> None:
    try:
        with session_scope() as db:
            db_role = db.query(models.Role).filter(models.Role.name == role).first()
            if db_role is None:
                raise typer.BadParameter(f"Unknown role {role!r}", param_hint="--role")
            db.add(
                models.User(
                    username=username,
                    password=get_password_hash(password),
                    role_id=db_role.id,
                )
            )
    except IntegrityError:
        typer.echo(f"User {username} already exists", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Created user {username} ({role})")


if __name__ == "__main__":
    app()
