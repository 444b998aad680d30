"""
API v1 routes.

Defines REST endpoints for passwordless sign-in:
- POST /v1/auth                 send-code | verify-code
- POST /v1/auth/profile         complete the profile (display name gate)
- GET  /v1/auth/me              current session user
- POST /v1/auth/logout          clear the session cookies
- POST /v1/account/password     attach an optional password
- GET  /v1/account/profile      profile fields and equipment
- PUT  /v1/account/profile      edit full name, address, country
- GET  /v1/account/equipment    list equipment
- POST /v1/account/equipment    add an equipment entry
- DELETE /v1/account/equipment/{id}  remove an equipment entry
- POST /v1/newsletter/discount  welcome package without an account

Domain calls run through capture(); an Err is serialized by
error_response() and never carries cookies from the injected Response.
"""

from fastapi import APIRouter, Cookie, Depends, Response, status

from listening_circle.api.dependencies import get_auth_service
from listening_circle.api.errors import ERROR_RESPONSES, error_response
from listening_circle.api.models import (
    AccountProfileRequest,
    AccountProfileResponse,
    AuthRequest,
    AuthResponse,
    DiscountSignupRequest,
    DiscountSignupResponse,
    EquipmentItem,
    EquipmentListResponse,
    EquipmentRequest,
    EquipmentResponse,
    PasswordRequest,
    ProfileRequest,
    ProfileResponse,
    SessionResponse,
    SuccessResponse,
    UserPayload,
)
from listening_circle.domain.account import AccountProfile
from listening_circle.domain.auth import AuthService
from listening_circle.domain.exceptions import NotAuthenticated
from listening_circle.domain.ports import Equipment, User
from listening_circle.domain.profile import ProfileSubmission
from listening_circle.domain.results import Err, capture
from listening_circle.domain.sessions import SESSION_COOKIE

router = APIRouter(tags=["v1"])


def _user_payload(user: User) -> UserPayload:
    return UserPayload(id=user.id, email=user.email, display_name=user.display_name)


@router.post(
    "/auth",
    response_model=AuthResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    summary="Request or verify an email code",
    description="action=send-code emails a 6-digit code; action=verify-code consumes it "
    "and sets the session cookies.",
)
def authenticate(
    request_data: AuthRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
):
    if request_data.action == "send-code":
        result = capture(lambda: service.send_code(request_data.email))
        if isinstance(result, Err):
            return error_response(result)
        return AuthResponse(success=True, message="Verification code sent", state=result.value.value)

    result = capture(lambda: service.verify_code(request_data.email, request_data.code or "", response))
    if isinstance(result, Err):
        return error_response(result)

    outcome = result.value
    welcome = outcome.welcome
    return AuthResponse(
        success=True,
        state=outcome.state.value,
        is_new_user=outcome.is_new_user,
        needs_username=outcome.needs_username,
        discount_code=welcome.discount_code if welcome else None,
        discount_percent=welcome.discount_percent if welcome else None,
        user=_user_payload(outcome.user),
    )


@router.post(
    "/auth/profile",
    response_model=ProfileResponse,
    responses=ERROR_RESPONSES,
    summary="Complete the profile",
    description="Claim a unique display name (3-20 letters, digits, underscores). "
    "Optional fields are saved best-effort.",
)
def complete_profile(
    request_data: ProfileRequest,
    response: Response,
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
    service: AuthService = Depends(get_auth_service),
):
    submission = ProfileSubmission(
        display_name=request_data.display_name,
        full_name=request_data.full_name,
        address=request_data.address,
        country=request_data.country,
        equipment=request_data.equipment,
    )
    result = capture(lambda: service.complete_profile(session_token, submission, response))
    if isinstance(result, Err):
        return error_response(result)

    outcome = result.value
    return ProfileResponse(
        success=True,
        state=outcome.state.value,
        user=_user_payload(outcome.user),
        failed_fields=list(outcome.failed_fields),
    )


@router.get(
    "/auth/me",
    response_model=SessionResponse,
    response_model_exclude_none=True,
    summary="Current session user",
)
def current_user(
    response: Response,
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
    service: AuthService = Depends(get_auth_service),
):
    try:
        user = service.current_user(session_token)
    except NotAuthenticated:
        if session_token:
            service.sign_out(response)
        return SessionResponse(success=True, user=None)
    return SessionResponse(
        success=True,
        user=_user_payload(user),
        has_password=service.users.has_password(user),
    )


@router.post("/auth/logout", response_model=SuccessResponse, summary="Sign out")
def logout(response: Response, service: AuthService = Depends(get_auth_service)):
    service.sign_out(response)
    return SuccessResponse(success=True)


@router.post(
    "/account/password",
    response_model=SuccessResponse,
    responses=ERROR_RESPONSES,
    summary="Set an optional password",
)
def set_password(
    request_data: PasswordRequest,
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
    service: AuthService = Depends(get_auth_service),
):
    result = capture(lambda: service.set_password(session_token, request_data.password))
    if isinstance(result, Err):
        return error_response(result)
    return SuccessResponse(success=True)


def _equipment_item(entry: Equipment) -> EquipmentItem:
    return EquipmentItem(id=entry.id, name=entry.name, created_at=entry.created_at)


def _account_profile_response(service: AuthService, profile: AccountProfile) -> AccountProfileResponse:
    user = profile.user
    return AccountProfileResponse(
        success=True,
        user=_user_payload(user),
        full_name=user.full_name,
        address=user.address,
        country=user.country,
        has_password=service.users.has_password(user),
        equipment=[_equipment_item(entry) for entry in profile.equipment],
    )


@router.get(
    "/account/profile",
    response_model=AccountProfileResponse,
    responses=ERROR_RESPONSES,
    summary="Read the account profile",
    description="Profile fields and equipment list of the session user.",
)
def read_account_profile(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
    service: AuthService = Depends(get_auth_service),
):
    result = capture(lambda: service.account_profile(session_token))
    if isinstance(result, Err):
        return error_response(result)
    return _account_profile_response(service, result.value)


@router.put(
    "/account/profile",
    response_model=AccountProfileResponse,
    responses=ERROR_RESPONSES,
    summary="Update profile fields",
    description="Omitted fields are left unchanged; an empty string clears a field.",
)
def update_account_profile(
    request_data: AccountProfileRequest,
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
    service: AuthService = Depends(get_auth_service),
):
    changes = request_data.model_dump(exclude_unset=True)
    result = capture(lambda: service.update_account_profile(session_token, changes))
    if isinstance(result, Err):
        return error_response(result)
    return _account_profile_response(service, result.value)


@router.get(
    "/account/equipment",
    response_model=EquipmentListResponse,
    responses=ERROR_RESPONSES,
    summary="List equipment",
)
def list_equipment(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
    service: AuthService = Depends(get_auth_service),
):
    result = capture(lambda: service.list_equipment(session_token))
    if isinstance(result, Err):
        return error_response(result)
    return EquipmentListResponse(success=True, equipment=[_equipment_item(entry) for entry in result.value])


@router.post(
    "/account/equipment",
    response_model=EquipmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Add an equipment entry",
)
def add_equipment(
    request_data: EquipmentRequest,
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
    service: AuthService = Depends(get_auth_service),
):
    result = capture(lambda: service.add_equipment(session_token, request_data.name))
    if isinstance(result, Err):
        return error_response(result)
    return EquipmentResponse(success=True, equipment=_equipment_item(result.value))


@router.delete(
    "/account/equipment/{equipment_id}",
    response_model=SuccessResponse,
    responses=ERROR_RESPONSES,
    summary="Remove an equipment entry",
)
def remove_equipment(
    equipment_id: int,
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
    service: AuthService = Depends(get_auth_service),
):
    result = capture(lambda: service.remove_equipment(session_token, equipment_id))
    if isinstance(result, Err):
        return error_response(result)
    return SuccessResponse(success=True)


@router.post(
    "/newsletter/discount",
    response_model=DiscountSignupResponse,
    responses=ERROR_RESPONSES,
    summary="Send the welcome discount",
    description="Emails the discount code and subscribes the address to the mailing list "
    "(best-effort). Does not create an account.",
)
def discount_signup(
    request_data: DiscountSignupRequest,
    service: AuthService = Depends(get_auth_service),
):
    result = capture(lambda: service.discount_signup(str(request_data.email)))
    if isinstance(result, Err):
        return error_response(result)

    package = result.value
    return DiscountSignupResponse(
        success=True,
        message="Discount code sent! Check your email.",
        discount_code=package.discount_code,
        discount_percent=package.discount_percent,
        subscribed=package.subscribed,
    )
