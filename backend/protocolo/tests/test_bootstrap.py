import logging

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import Session

from protocolo import models
from protocolo.auth import authenticate, verify_password
from protocolo.bootstrap import (
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_TEMPLATES,
    MissingSchemaError,
    ensure_doc_type_column,
    init_db,
    rehash_plaintext_passwords,
    seed_defaults,
)
from protocolo.database import Base, make_engine


def fresh_engine(tmp_path):
    return make_engine(f"sqlite:///{tmp_path / 'boot.db'}")


def test_init_db_seeds_defaults(tmp_path):
    engine = fresh_engine(tmp_path)
    init_db(engine)
    with Session(bind=engine) as db:
        roles = {r.name: r.permissions for r in db.query(models.Role).all()}
        assert roles == {"Admin": ["all"], "Operador": ["create_protocol", "view_protocol"]}
        admin = db.query(models.User).one()
        assert admin.username == "admin"
        assert admin.role.name == "Admin"
        assert verify_password(DEFAULT_ADMIN_PASSWORD, admin.password)
        templates = db.query(models.Template).order_by(models.Template.id).all()
        assert [t.name for t in templates] == [name for name, _ in DEFAULT_TEMPLATES]
        assert all(t.created_by == admin.id for t in templates)
    engine.dispose()


def test_init_db_is_idempotent(tmp_path):
    engine = fresh_engine(tmp_path)
    init_db(engine)
    init_db(engine)
    assert seed_defaults(engine) == {"roles": 0, "users": 0, "templates": 0}
    with Session(bind=engine) as db:
        assert db.query(models.Role).count() == 2
        assert db.query(models.User).count() == 1
        assert db.query(models.Template).count() == len(DEFAULT_TEMPLATES)
    engine.dispose()


def test_seed_skips_non_empty_tables(tmp_path):
    engine = fresh_engine(tmp_path)
    Base.metadata.create_all(bind=engine)
    with Session(bind=engine) as db:
        db.add(models.Template(name="Próprio", content="<p>{{title}}</p>"))
        db.commit()
    created = seed_defaults(engine)
    assert created == {"roles": 2, "users": 1, "templates": 0}
    with Session(bind=engine) as db:
        assert [t.name for t in db.query(models.Template).all()] == ["Próprio"]
    engine.dispose()


def test_doc_type_column_added_to_legacy_table(tmp_path):
    engine = fresh_engine(tmp_path)
    with engine.begin() as conn:
        conn.execute(sa.text("CREATE TABLE protocols (id TEXT PRIMARY KEY, title TEXT, status TEXT)"))
        conn.execute(sa.text("INSERT INTO protocols (id, title) VALUES ('20250101000000000', 'antigo')"))

    assert ensure_doc_type_column(engine) is True
    with engine.connect() as conn:
        doc_type = conn.execute(sa.text("SELECT doc_type FROM protocols")).scalar_one()
    assert doc_type == "Geral"
    assert ensure_doc_type_column(engine) is False
    engine.dispose()


def test_doc_type_present_on_new_schema(tmp_path):
    engine = fresh_engine(tmp_path)
    init_db(engine)
    columns = {c["name"] for c in sa.inspect(engine).get_columns("protocols")}
    assert "doc_type" in columns
    assert set(sa.inspect(engine).get_table_names()) >= {
        "roles", "users", "templates", "protocols", "attachments", "logs",
    }
    assert ensure_doc_type_column(engine) is False
    engine.dispose()


def test_seed_loses_concurrent_first_boot(tmp_path, caplog):
    engine = fresh_engine(tmp_path)
    Base.metadata.create_all(bind=engine)
    raced = []

    def competing_boot(session, flush_context, instances):
        # another process commits its roles between our count and our insert
        if raced or not any(isinstance(o, models.Role) for o in session.new):
            return
        raced.append(True)
        with engine.begin() as conn:
            conn.execute(sa.text("INSERT INTO roles (name, permissions) VALUES ('Admin', '[\"all\"]')"))

    caplog.set_level(logging.WARNING, logger="protocolo.bootstrap")
    sa.event.listen(Session, "before_flush", competing_boot)
    try:
        created = seed_defaults(engine)
    finally:
        sa.event.remove(Session, "before_flush", competing_boot)

    assert raced
    assert created == {"roles": 0, "users": 0, "templates": 0}
    assert "already written by another process" in caplog.text
    with Session(bind=engine) as db:
        assert [r.name for r in db.query(models.Role).all()] == ["Admin"]
        assert db.query(models.User).count() == 0
        assert db.query(models.Template).count() == 0
    engine.dispose()


def test_legacy_plaintext_passwords_are_rehashed(tmp_path):
    engine = fresh_engine(tmp_path)
    with engine.begin() as conn:
        conn.execute(sa.text(
            "CREATE TABLE roles (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT UNIQUE, permissions TEXT)"
        ))
        conn.execute(sa.text(
            "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, username TEXT UNIQUE, "
            "password TEXT, role_id INTEGER, FOREIGN KEY (role_id) REFERENCES roles(id))"
        ))
        conn.execute(sa.text("INSERT INTO roles (name, permissions) VALUES ('Admin', '[\"all\"]')"))
        conn.execute(sa.text("INSERT INTO users (username, password, role_id) VALUES ('admin', 'admin123', 1)"))

    init_db(engine)

    with Session(bind=engine) as db:
        admin = authenticate(db, "admin", "admin123")
        assert admin is not None
        assert admin.password.startswith("$2")
        assert admin.role.permissions == ["all"]
    assert rehash_plaintext_passwords(engine) == 0
    engine.dispose()


def test_doc_type_migration_needs_schema(tmp_path):
    engine = fresh_engine(tmp_path)
    with pytest.raises(MissingSchemaError):
        ensure_doc_type_column(engine)
    engine.dispose()
