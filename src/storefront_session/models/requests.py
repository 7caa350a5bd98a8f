"""Request/response bodies for the HTTP bridge."""

from pydantic import BaseModel, Field

from storefront_session.models.identity import Principal


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    email: str
    password: str
    name: str = Field(min_length=1)


class SignUpResponse(BaseModel):
    """Sign-up confirmation. The profile shows up on the session stream later."""

    principal: Principal


class PasswordUpdateRequest(BaseModel):
    password: str


class PasswordResetRequest(BaseModel):
    email: str


class AdminStatus(BaseModel):
    is_admin: bool
