"""
API v1 routes.

Defines REST endpoints for the email ownership registry:
- POST /v1/emails - Add an email address to the current account
- POST /v1/emails/verify - Verify an address with its code
- DELETE /v1/emails/{email_id} - Remove an address from the current account
- POST /v1/admin/emails - Provision an unowned address
- GET /v1/admin/accounts - Look up the account owning an address

Registry failures propagate as RegistryError and are translated to HTTP
responses by the handler installed in src.api.main.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.api.dependencies import (
    get_current_account,
    get_request_context,
    get_verification_service,
    require_admin,
)
from src.api.models import (
    AccountResponse,
    AddEmailRequest,
    EmailResponse,
    ErrorResponse,
    ProvisionEmailRequest,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from src.domain.context import RequestContext
from src.domain.ports import VerifyResult
from src.domain.verification import EmailVerificationService, normalize_email

router = APIRouter(tags=["v1"])
admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post(
    "/emails",
    response_model=EmailResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        409: {"model": ErrorResponse, "description": "Email already claimed or verified"},
        422: {"description": "Validation error"},
    },
    summary="Add an email address",
    description="Add an email address to the authenticated account. "
    "A verification code is sent to the address. Re-adding an unverified "
    "address sends a fresh code.",
)
async def add_email(
    request_data: AddEmailRequest,
    account_id: UUID = Depends(get_current_account),
    ctx: RequestContext = Depends(get_request_context),
    service: EmailVerificationService = Depends(get_verification_service),
) -> EmailResponse:
    record = service.add_email(ctx, account_id, request_data.email)
    return EmailResponse.from_record(record)


@router.post(
    "/emails/verify",
    response_model=VerifyEmailResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid verification code"},
        404: {"model": ErrorResponse, "description": "Email address not found"},
        422: {"description": "Validation error"},
    },
    summary="Verify an email address",
    description="Submit the verification code received by email to mark the address verified.",
)
async def verify_email(
    request_data: VerifyEmailRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: EmailVerificationService = Depends(get_verification_service),
) -> VerifyEmailResponse:
    result = service.verify_email(ctx, request_data.email, request_data.code)

    if result == VerifyResult.SUCCESS:
        return VerifyEmailResponse(message="Email verified", email=normalize_email(request_data.email))

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Invalid verification code",
    )


@router.delete(
    "/emails/{email_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
    summary="Remove an email address",
)
async def remove_email(
    email_id: UUID,
    account_id: UUID = Depends(get_current_account),
    ctx: RequestContext = Depends(get_request_context),
    service: EmailVerificationService = Depends(get_verification_service),
) -> Response:
    service.remove_email(ctx, account_id, email_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.post(
    "/emails",
    response_model=EmailResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse, "description": "Missing or invalid admin token"},
        409: {"model": ErrorResponse, "description": "Email address already exists"},
    },
    summary="Provision an email address",
    description="Create an email address without an owner, to be claimed later.",
)
async def provision_email(
    request_data: ProvisionEmailRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: EmailVerificationService = Depends(get_verification_service),
) -> EmailResponse:
    record = service.provision_email(ctx, request_data.email)
    return EmailResponse.from_record(record)


@admin_router.get(
    "/accounts",
    response_model=AccountResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Missing or invalid admin token"},
        404: {"model": ErrorResponse, "description": "No account owns this address"},
    },
    summary="Look up an account by email address",
)
async def lookup_account(
    email: str = Query(..., min_length=3),
    ctx: RequestContext = Depends(get_request_context),
    service: EmailVerificationService = Depends(get_verification_service),
) -> AccountResponse:
    account = service.account_for_email(ctx, email)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return AccountResponse.from_account(account)


router.include_router(admin_router)
