"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from src.domain.ports import Account, EmailRecord


class AddEmailRequest(BaseModel):
    """Request model for adding an email address to the current account."""

    email: EmailStr


class VerifyEmailRequest(BaseModel):
    """Request model for email verification."""

    email: EmailStr
    code: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Verification code received by email",
    )


class ProvisionEmailRequest(BaseModel):
    """Request model for provisioning an unowned email address."""

    email: EmailStr


class EmailResponse(BaseModel):
    """Email record as exposed over HTTP. The verification code is never returned."""

    id: UUID
    email: str
    account_id: UUID | None
    verified: bool

    @classmethod
    def from_record(cls, record: EmailRecord) -> "EmailResponse":
        return cls(
            id=record.id,
            email=record.address,
            account_id=record.account_id,
            verified=record.verified,
        )


class VerifyEmailResponse(BaseModel):
    """Response model for successful verification."""

    message: str
    email: str


class AuthenticationResponse(BaseModel):
    id: UUID
    service: str
    identifier: str


class RoleResponse(BaseModel):
    id: UUID
    name: str


class AccountResponse(BaseModel):
    """Account with its email addresses, authentication methods, roles and tags."""

    id: UUID
    handle: str
    name: str
    emails: list[EmailResponse]
    authentication: list[AuthenticationResponse]
    roles: list[RoleResponse]
    tags: list[str]

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            handle=account.handle,
            name=account.name,
            emails=[EmailResponse.from_record(record) for record in account.emails],
            authentication=[
                AuthenticationResponse(id=m.id, service=m.service, identifier=m.identifier)
                for m in account.authentication
            ],
            roles=[RoleResponse(id=r.id, name=r.name) for r in account.roles],
            tags=list(account.tags),
        )


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    code: str | None = None
