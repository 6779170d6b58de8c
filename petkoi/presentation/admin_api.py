from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from petkoi.presentation.dependencies import (
    get_unit_of_work, get_email_sender, get_access_token, require_admin, require_section
)
from petkoi.presentation.schemas import (
    AdminLoginRequest, OtpTokenResponse, VerifyOtpRequest, ResendOtpRequest, AccessTokenResponse,
    AdminMeResponse, AdminStatsResponse, OrderResponse, AdminOrderResponse, UpdateOrderStatusRequest,
    DonationResponse, VerifyDonationRequest, DonationStatsResponse, SupportTicketResponse,
    SupportMessageResponse, AddMessageRequest, TicketStatusRequest, TicketAssignRequest,
    TicketPriorityRequest, MarkReadResponse, ErrorResponse
)
from petkoi.application.admin_login import InitiateLoginUseCase, VerifyOtpUseCase, ResendOtpUseCase
from petkoi.application.admin_session import RefreshSessionUseCase, LogoutUseCase
from petkoi.application.admin_stats import AdminStatsUseCase
from petkoi.application.get_order import GetOrderUseCase, ListOrdersUseCase, GetOrderPaymentsUseCase
from petkoi.application.update_order_status import UpdateOrderStatusUseCase
from petkoi.application.donations import (
    GetDonationUseCase, ListDonationsUseCase, DonationStatsUseCase, VerifyDonationUseCase
)
from petkoi.application.support_tickets import SupportTicketService
from petkoi.domain.admin import AdminIdentity, AdminSection
from petkoi.domain.models import OrderStatus, DonationStatus, TicketStatus, SenderType
from petkoi.domain.exceptions import (
    AuthenticationFailedError, OrderNotFoundError, DonationNotFoundError, DonationAlreadyReviewedError,
    TicketNotFoundError, TicketClosedError, AdminNotFoundError, ValidationError
)
from petkoi.infrastructure.unit_of_work import UnitOfWork
from petkoi.config import settings

router = APIRouter(prefix="/admin")

orders_access = require_section(AdminSection.ORDER_TRACKING)
system_access = require_section(AdminSection.SYSTEM)


def get_support_service(uow: UnitOfWork = Depends(get_unit_of_work)):
    return SupportTicketService(uow)


# --- Вход ---

@router.post("/login", response_model=OtpTokenResponse, responses={401: {"model": ErrorResponse}})
async def admin_login(
    request: AdminLoginRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    email_sender=Depends(get_email_sender)
):
    """Шаг 1: email + пароль, код уходит на почту"""
    use_case = InitiateLoginUseCase(
        uow,
        email_sender,
        otp_expiry_minutes=settings.OTP_EXPIRY_MINUTES,
        hourly_limit=settings.OTP_HOURLY_LIMIT,
        cooldown_seconds=settings.OTP_COOLDOWN_SECONDS
    )
    try:
        challenge = await use_case(request.email, request.password)
        return OtpTokenResponse(otp_token=challenge.otp_token)
    except AuthenticationFailedError as e:
        raise HTTPException(status_code=401, detail=str(e))


@router.post("/login/verify", response_model=AccessTokenResponse, responses={401: {"model": ErrorResponse}})
async def admin_verify(request: VerifyOtpRequest, http_request: Request, uow: UnitOfWork = Depends(get_unit_of_work)):
    """Шаг 2: код из письма → access_token"""
    use_case = VerifyOtpUseCase(
        uow,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
        lock_minutes=settings.OTP_LOCK_MINUTES,
        session_days=settings.ADMIN_SESSION_DAYS
    )
    try:
        login = await use_case(
            request.otp_token,
            request.code,
            ip_address=http_request.client.host if http_request.client else None,
            user_agent=http_request.headers.get("user-agent")
        )
        return AccessTokenResponse(access_token=login.access_token, role=login.role, expires_in=login.expires_in)
    except AuthenticationFailedError as e:
        raise HTTPException(status_code=401, detail=str(e))


@router.post("/login/resend", responses={401: {"model": ErrorResponse}})
async def admin_resend(
    request: ResendOtpRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    email_sender=Depends(get_email_sender)
):
    try:
        await ResendOtpUseCase(uow, email_sender, settings.OTP_EXPIRY_MINUTES)(request.otp_token)
        return {"status": "ok", "message": "OTP resent"}
    except AuthenticationFailedError as e:
        raise HTTPException(status_code=401, detail=str(e))


@router.post("/refresh", response_model=AccessTokenResponse, responses={401: {"model": ErrorResponse}})
async def admin_refresh(access_token: str = Depends(get_access_token), uow: UnitOfWork = Depends(get_unit_of_work)):
    try:
        login = await RefreshSessionUseCase(uow, settings.ADMIN_SESSION_DAYS)(access_token)
        return AccessTokenResponse(access_token=login.access_token, role=login.role, expires_in=login.expires_in)
    except AuthenticationFailedError as e:
        raise HTTPException(status_code=401, detail=str(e))


@router.post("/logout")
async def admin_logout(
    identity: AdminIdentity = Depends(require_admin),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    await LogoutUseCase(uow)(identity)
    return {"status": "ok", "message": "Logged out"}


@router.get("/me", response_model=AdminMeResponse)
async def admin_me(identity: AdminIdentity = Depends(require_admin)):
    return AdminMeResponse(
        admin_id=identity.admin_id,
        email=identity.email,
        role=identity.role,
        sections=identity.sections
    )


@router.get("/stats", response_model=AdminStatsResponse)
async def admin_stats(identity: AdminIdentity = Depends(system_access), uow: UnitOfWork = Depends(get_unit_of_work)):
    stats = await AdminStatsUseCase(uow)()
    return AdminStatsResponse(**stats.model_dump())


# --- Заказы ---

@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(
    status: Optional[OrderStatus] = None,
    order_no: Optional[str] = None,
    user_id: Optional[str] = None,
    take: int = Query(20, ge=1),
    identity: AdminIdentity = Depends(orders_access),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    orders = await ListOrdersUseCase(uow)(status=status, order_no=order_no, user_id=user_id, take=take)
    return [OrderResponse.from_domain(order) for order in orders]


@router.get("/orders/{order_no}", response_model=AdminOrderResponse, responses={404: {"model": ErrorResponse}})
async def get_order(
    order_no: str,
    identity: AdminIdentity = Depends(orders_access),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    try:
        order = await GetOrderUseCase(uow)(order_no)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    payments = await GetOrderPaymentsUseCase(uow)(order)
    return AdminOrderResponse.from_domain_with_payments(order, payments)


@router.patch("/orders/{order_no}/status", response_model=OrderResponse, responses={404: {"model": ErrorResponse}})
async def update_order_status(
    order_no: str,
    request: UpdateOrderStatusRequest,
    identity: AdminIdentity = Depends(orders_access),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Любой статус из перечня, без проверки графа переходов"""
    try:
        order = await UpdateOrderStatusUseCase(uow)(order_no, request.status, admin_email=identity.email)
        return OrderResponse.from_domain(order)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# --- Пожертвования ---

@router.get("/donations", response_model=List[DonationResponse])
async def list_donations(
    status: Optional[DonationStatus] = None,
    identity: AdminIdentity = Depends(system_access),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    donations = await ListDonationsUseCase(uow)(status=status)
    return [DonationResponse.from_domain(d) for d in donations]


@router.get("/donations/stats", response_model=DonationStatsResponse)
async def donation_stats(identity: AdminIdentity = Depends(system_access), uow: UnitOfWork = Depends(get_unit_of_work)):
    stats = await DonationStatsUseCase(uow)()
    return DonationStatsResponse(**stats.model_dump())


@router.get("/donations/{donation_id}", response_model=DonationResponse, responses={404: {"model": ErrorResponse}})
async def get_donation(
    donation_id: str,
    identity: AdminIdentity = Depends(system_access),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    try:
        return DonationResponse.from_domain(await GetDonationUseCase(uow)(donation_id))
    except DonationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch(
    "/donations/{donation_id}/verify",
    response_model=DonationResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def verify_donation(
    donation_id: str,
    request: VerifyDonationRequest,
    identity: AdminIdentity = Depends(system_access),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    try:
        donation = await VerifyDonationUseCase(uow)(donation_id, request.status, identity.admin_id, request.note)
        return DonationResponse.from_domain(donation)
    except DonationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (DonationAlreadyReviewedError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- Поддержка ---

@router.get("/support/tickets", response_model=List[SupportTicketResponse])
async def list_tickets(
    status: Optional[TicketStatus] = None,
    assigned_to: Optional[str] = None,
    identity: AdminIdentity = Depends(system_access),
    service: SupportTicketService = Depends(get_support_service)
):
    tickets = await service.list_tickets(status=status, assigned_to=assigned_to)
    return [SupportTicketResponse.from_domain(t) for t in tickets]


@router.get(
    "/support/tickets/{ticket_id}",
    response_model=SupportTicketResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_ticket(
    ticket_id: str,
    identity: AdminIdentity = Depends(system_access),
    service: SupportTicketService = Depends(get_support_service)
):
    try:
        return SupportTicketResponse.from_domain(await service.get_ticket(ticket_id))
    except TicketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/support/tickets/{ticket_id}/messages",
    response_model=SupportMessageResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    status_code=201
)
async def reply_to_ticket(
    ticket_id: str,
    request: AddMessageRequest,
    identity: AdminIdentity = Depends(system_access),
    service: SupportTicketService = Depends(get_support_service)
):
    try:
        message = await service.add_message(ticket_id, identity.admin_id, request.content, SenderType.ADMIN)
        return SupportMessageResponse(**message.model_dump())
    except TicketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (TicketClosedError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch(
    "/support/tickets/{ticket_id}/status",
    response_model=SupportTicketResponse,
    responses={404: {"model": ErrorResponse}}
)
async def update_ticket_status(
    ticket_id: str,
    request: TicketStatusRequest,
    identity: AdminIdentity = Depends(system_access),
    service: SupportTicketService = Depends(get_support_service)
):
    try:
        return SupportTicketResponse.from_domain(await service.update_status(ticket_id, request.status))
    except TicketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch(
    "/support/tickets/{ticket_id}/assign",
    response_model=SupportTicketResponse,
    responses={404: {"model": ErrorResponse}}
)
async def assign_ticket(
    ticket_id: str,
    request: TicketAssignRequest,
    identity: AdminIdentity = Depends(system_access),
    service: SupportTicketService = Depends(get_support_service)
):
    try:
        return SupportTicketResponse.from_domain(await service.assign(ticket_id, request.admin_id))
    except (TicketNotFoundError, AdminNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch(
    "/support/tickets/{ticket_id}/priority",
    response_model=SupportTicketResponse,
    responses={404: {"model": ErrorResponse}}
)
async def update_ticket_priority(
    ticket_id: str,
    request: TicketPriorityRequest,
    identity: AdminIdentity = Depends(system_access),
    service: SupportTicketService = Depends(get_support_service)
):
    try:
        return SupportTicketResponse.from_domain(await service.update_priority(ticket_id, request.priority))
    except TicketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/support/tickets/{ticket_id}/read",
    response_model=MarkReadResponse,
    responses={404: {"model": ErrorResponse}}
)
async def mark_ticket_read(
    ticket_id: str,
    identity: AdminIdentity = Depends(system_access),
    service: SupportTicketService = Depends(get_support_service)
):
    try:
        return MarkReadResponse(updated=await service.mark_read(ticket_id, as_admin=True))
    except TicketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
