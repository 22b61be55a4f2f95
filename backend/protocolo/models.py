from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base

DEFAULT_DOC_TYPE = "Geral"
DEFAULT_STATUS = "Aberto"


class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)
    # capability tags, e.g. ["create_protocol", "view_protocol"]; "all" matches any
    permissions = Column(JSON, default=list, nullable=False)

    users = relationship("User", back_populates="role")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"))

    role = relationship("Role", back_populates="users")


class Template(Base):
    __tablename__ = "templates"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"))


class Protocol(Base):
    __tablename__ = "protocols"
    # temporal identifier, see protocol_ids.generate_protocol_id
    id = Column(String(17), primary_key=True)
    title = Column(String)
    description = Column(Text)
    doc_type = Column(String, default=DEFAULT_DOC_TYPE, server_default=DEFAULT_DOC_TYPE)
    data = Column(JSON, nullable=True)
    template_id = Column(Integer, ForeignKey("templates.id"), nullable=True)
    status = Column(String, default=DEFAULT_STATUS, server_default=DEFAULT_STATUS)
    created_at = Column(DateTime, default=datetime.now)
    created_by = Column(Integer, ForeignKey("users.id"))

    template = relationship("Template")
    attachments = relationship("Attachment", back_populates="protocol")


class Attachment(Base):
    __tablename__ = "attachments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    protocol_id = Column(String(17), ForeignKey("protocols.id"))
    filename = Column(String)
    file_path = Column(String)

    protocol = relationship("Protocol", back_populates="attachments")


class LogEntry(Base):
    __tablename__ = "logs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    action = Column(String, nullable=False)
    details = Column(Text)
    created_at = Column(DateTime, default=datetime.now)

    user = relationship("User")
