"""Schema creation, additive migrations and first-boot seed data."""

import logging

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from .database import Base, engine as default_engine
from .auth import get_password_hash
from . import models

logger = logging.getLogger(__name__)

BCRYPT_PREFIX = "$2"


class MissingSchemaError(RuntimeError):
    pass


ADMIN_ROLE = "Admin"
OPERATOR_ROLE = "Operador"
DEFAULT_ROLES = (
    (ADMIN_ROLE, ["all"]),
    (OPERATOR_ROLE, ["create_protocol", "view_protocol"]),
)
DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"

DEFAULT_TEMPLATES = (
    (
        "Geral",
        '<div style="font-family: sans-serif; padding: 20px;"><h1>Protocolo Geral</h1>'
        "<p>{{description}}</p></div>",
    ),
    (
        "Ofício",
        '<div style="font-family: serif; padding: 40px; border: 1px solid #ccc;">'
        "<h2>OFÍCIO Nº {{protocol_id}}</h2><p>{{description}}</p></div>",
    ),
    (
        "Memorando",
        '<div style="background: #f9f9f9; padding: 20px;"><h3>MEMORANDO INTERNO</h3>'
        "<hr/><p>{{description}}</p></div>",
    ),
    (
        "Requerimento",
        '<div style="padding: 30px;"><h1>REQUERIMENTO</h1>'
        "<p>Eu, abaixo assinado, venho requerer: {{description}}</p></div>",
    ),
    (
        "Contrato",
        '<div style="padding: 50px; line-height: 1.6;"><h1>CONTRATO DE PRESTAÇÃO DE SERVIÇOS</h1>'
        "<p>{{description}}</p></div>",
    ),
)


def ensure_doc_type_column(engine) -> bool:
    """Add ``protocols.doc_type`` to databases created before it existed.

    Returns True when the column had to be added.
    """
    if not sa.inspect(engine).has_table("protocols"):
        raise MissingSchemaError("protocols table does not exist, run init-db first")
    with engine.connect() as conn:
        try:
            conn.execute(sa.text("SELECT doc_type FROM protocols LIMIT 1"))
            return False
        except DBAPIError:
            logger.info("protocols.doc_type missing, adding column")
    with engine.begin() as conn:
        op = Operations(MigrationContext.configure(conn))
        op.add_column(
            "protocols",
            sa.Column("doc_type", sa.Text(), server_default=models.DEFAULT_DOC_TYPE),
        )
    return True


def rehash_plaintext_passwords(engine) -> int:
    """Replace plaintext passwords left by older installs with bcrypt hashes.

    Returns the number of users whose stored password was rewritten.
    """
    rehashed = 0
    with Session(bind=engine) as db:
        for user in db.query(models.User).all():
            if user.password and not user.password.startswith(BCRYPT_PREFIX):
                user.password = get_password_hash(user.password)
                rehashed += 1
        db.commit()
    if rehashed:
        logger.info("Rehashed %d plaintext password(s)", rehashed)
    return rehashed


def _seed(db: Session) -> dict[str, int]:
    created = {"roles": 0, "users": 0, "templates": 0}

    if db.query(models.Role).count() == 0:
        for name, permissions in DEFAULT_ROLES:
            db.add(models.Role(name=name, permissions=permissions))
        db.flush()
        created["roles"] = len(DEFAULT_ROLES)

    if db.query(models.User).count() == 0:
        admin_role = db.query(models.Role).filter(models.Role.name == ADMIN_ROLE).first()
        db.add(
            models.User(
                username=DEFAULT_ADMIN_USERNAME,
                password=get_password_hash(DEFAULT_ADMIN_PASSWORD),
                role_id=admin_role.id if admin_role else None,
            )
        )
        db.flush()
        created["users"] = 1

    if db.query(models.Template).count() == 0:
        admin = (
            db.query(models.User)
            .filter(models.User.username == DEFAULT_ADMIN_USERNAME)
            .first()
        )
        for name, content in DEFAULT_TEMPLATES:
            db.add(
                models.Template(
                    name=name,
                    content=content,
                    created_by=admin.id if admin else None,
                )
            )
        created["templates"] = len(DEFAULT_TEMPLATES)

    return created


def seed_defaults(engine) -> dict[str, int]:
    """Insert default roles, the admin user and templates into empty tables.

    All checks and inserts share one transaction. A process that loses a
    concurrent first-boot race hits the unique role name, rolls back and
    leaves the winner's rows in place. Templates have no unique column, so
    when roles and users already exist and only ``templates`` is empty, two
    concurrent boots can each insert the default set.
    """
    db = Session(bind=engine)
    try:
        created = _seed(db)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Seed data already written by another process")
        return {"roles": 0, "users": 0, "templates": 0}
    finally:
        db.close()
    if any(created.values()):
        logger.info("Seeded defaults: %s", created)
    return created


def init_db(engine=None) -> None:
    engine = engine or default_engine
    Base.metadata.create_all(bind=engine)
    ensure_doc_type_column(engine)
    rehash_plaintext_passwords(engine)
    seed_defaults(engine)
