from datetime import datetime
from typing import Optional, Any, Dict, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


class LoginRequest(BaseModel):
    username: str
    password: str


class SessionUser(BaseModel):
    id: int
    username: str
    role: str
    permissions: List[str] = []


class SuccessOut(BaseModel):
    success: bool = True


class ProtocolCreate(BaseModel):
    title: str
    description: str
    template_id: Optional[int] = None
    data: Optional[Dict[str, Any]] = None
    # accepted for compatibility with older clients; the session user is recorded
    created_by: Optional[int] = None

    @field_validator("template_id", mode="before")
    @classmethod
    def blank_template_is_none(cls, value):
        if value in ("", 0):
            return None
        return value


class ProtocolCreated(BaseModel):
    id: str


class ProtocolOut(BaseModel):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    doc_type: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    template_id: Optional[int] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    created_by: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


class TemplateCreate(BaseModel):
    name: str
    content: str
    created_by: Optional[int] = None


class TemplateUpdate(BaseModel):
    name: str
    content: str


class TemplateOut(BaseModel):
    id: int
    name: str
    content: str
    created_by: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


class TemplatePreviewOut(BaseModel):
    id: int
    name: str
    content: str


class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role_id: int


class UserOut(BaseModel):
    id: int
    username: str
    role: str


class RoleCreate(BaseModel):
    name: str = Field(min_length=1)
    permissions: Optional[List[str]] = None


class RoleOut(BaseModel):
    id: int
    name: str
    permissions: List[str] = []
    model_config = ConfigDict(from_attributes=True)


class LogEntryOut(BaseModel):
    id: int
    user_id: int
    action: str
    details: Optional[str] = None
    created_at: Optional[datetime] = None
    username: str
