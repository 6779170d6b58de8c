from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from petkoi.presentation.dependencies import get_unit_of_work
from petkoi.presentation.schemas import (
    CreateOrderRequest, OrderResponse, ManualPaymentRequest, ManualPaymentResponse, ProductResponse,
    CreateDonationRequest, DonationResponse, NotificationResponse, CreateTicketRequest,
    UserMessageRequest, SupportTicketResponse, SupportMessageResponse, MarkReadResponse, ErrorResponse
)
from petkoi.application.create_order import CreateOrderUseCase, CreateOrderDTO, OrderItemDTO
from petkoi.application.get_order import GetOrderUseCase, ListUserOrdersUseCase
from petkoi.application.process_payment import SubmitManualPaymentUseCase, ManualPaymentDTO
from petkoi.application.catalog import ListProductsUseCase, ListNotificationsUseCase
from petkoi.application.donations import (
    CreateDonationUseCase, CreateDonationDTO, GetDonationUseCase, ListDonationsUseCase
)
from petkoi.application.support_tickets import SupportTicketService
from petkoi.domain.models import SenderType
from petkoi.domain.exceptions import (
    ValidationError, ProductUnavailableError, OrderNotFoundError, OrderNotPayableError, OrderExpiredError,
    DonationNotFoundError, TicketNotFoundError, TicketClosedError
)
from petkoi.infrastructure.unit_of_work import UnitOfWork
from petkoi.config import settings

router = APIRouter()


# Фабрики для создания use cases
def get_create_order_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return CreateOrderUseCase(
        uow,
        shipping_fee_bdt=settings.SHIPPING_FEE_BDT,
        free_shipping_threshold_bdt=settings.FREE_SHIPPING_THRESHOLD_BDT,
        expiry_minutes=settings.ORDER_EXPIRY_MINUTES
    )


def get_support_service(uow: UnitOfWork = Depends(get_unit_of_work)):
    return SupportTicketService(uow)


@router.get("/products", response_model=List[ProductResponse])
async def list_products(uow: UnitOfWork = Depends(get_unit_of_work)):
    """Активные товары"""
    products = await ListProductsUseCase(uow)()
    return [ProductResponse(**p.model_dump()) for p in products]


@router.post(
    "/orders",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Создать новый заказ"""
    try:
        dto = CreateOrderDTO(
            user_id=request.user_id,
            items=[OrderItemDTO(product_id=i.product_id, quantity=i.quantity) for i in request.items],
            shipping_address=request.shipping_address,
            shipping_district=request.shipping_district,
            shipping_postal_code=request.shipping_postal_code,
            contact_name=request.contact_name,
            contact_phone=request.contact_phone,
            pet_id=request.pet_id,
            pet_qr_url=request.pet_qr_url,
            idempotency_key=request.idempotency_key
        )
        order = await use_case(dto)
        return OrderResponse.from_domain(order)

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProductUnavailableError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/orders", response_model=List[OrderResponse])
async def list_my_orders(user_id: str = Query(...), uow: UnitOfWork = Depends(get_unit_of_work)):
    """Заказы пользователя, новые сверху"""
    orders = await ListUserOrdersUseCase(uow)(user_id)
    return [OrderResponse.from_domain(order) for order in orders]


@router.get(
    "/orders/{order_no}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_order(order_no: str, user_id: str = Query(...), uow: UnitOfWork = Depends(get_unit_of_work)):
    """Получить свой заказ по номеру"""
    try:
        order = await GetOrderUseCase(uow)(order_no, user_id=user_id)
        return OrderResponse.from_domain(order)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/payments/manual",
    response_model=ManualPaymentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def submit_manual_payment(request: ManualPaymentRequest, uow: UnitOfWork = Depends(get_unit_of_work)):
    """Пользователь сообщает о переводе (bKash, Nagad и т.д.)"""
    try:
        payment = await SubmitManualPaymentUseCase(uow)(ManualPaymentDTO(**request.model_dump()))
        return ManualPaymentResponse.from_domain(payment)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrderNotPayableError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OrderExpiredError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/donations",
    response_model=DonationResponse,
    responses={400: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_donation(request: CreateDonationRequest, uow: UnitOfWork = Depends(get_unit_of_work)):
    try:
        donation = await CreateDonationUseCase(uow)(CreateDonationDTO(**request.model_dump()))
        return DonationResponse.from_domain(donation)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/donations", response_model=List[DonationResponse])
async def list_my_donations(user_id: str = Query(...), uow: UnitOfWork = Depends(get_unit_of_work)):
    donations = await ListDonationsUseCase(uow)(user_id=user_id)
    return [DonationResponse.from_domain(d) for d in donations]


@router.get(
    "/donations/{donation_id}",
    response_model=DonationResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_my_donation(donation_id: str, user_id: str = Query(...), uow: UnitOfWork = Depends(get_unit_of_work)):
    try:
        donation = await GetDonationUseCase(uow)(donation_id, user_id=user_id)
        return DonationResponse.from_domain(donation)
    except DonationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/notifications", response_model=List[NotificationResponse])
async def list_notifications(user_id: str = Query(...), uow: UnitOfWork = Depends(get_unit_of_work)):
    notifications = await ListNotificationsUseCase(uow)(user_id)
    return [NotificationResponse(**n.model_dump()) for n in notifications]


@router.post(
    "/support/tickets",
    response_model=SupportTicketResponse,
    responses={400: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_ticket(request: CreateTicketRequest, service: SupportTicketService = Depends(get_support_service)):
    try:
        ticket = await service.create_ticket(request.user_id, request.subject, request.message, request.priority)
        return SupportTicketResponse.from_domain(ticket)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/support/tickets", response_model=List[SupportTicketResponse])
async def list_my_tickets(user_id: str = Query(...), service: SupportTicketService = Depends(get_support_service)):
    tickets = await service.list_user_tickets(user_id)
    return [SupportTicketResponse.from_domain(t) for t in tickets]


@router.get(
    "/support/tickets/{ticket_id}",
    response_model=SupportTicketResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_my_ticket(
    ticket_id: str,
    user_id: str = Query(...),
    service: SupportTicketService = Depends(get_support_service)
):
    try:
        return SupportTicketResponse.from_domain(await service.get_ticket(ticket_id, user_id=user_id))
    except TicketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/support/tickets/{ticket_id}/messages",
    response_model=SupportMessageResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def reply_to_ticket(
    ticket_id: str,
    request: UserMessageRequest,
    service: SupportTicketService = Depends(get_support_service)
):
    try:
        message = await service.add_message(
            ticket_id, request.user_id, request.content, SenderType.USER, user_id=request.user_id
        )
        return SupportMessageResponse(**message.model_dump())
    except TicketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (TicketClosedError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/support/tickets/{ticket_id}/read",
    response_model=MarkReadResponse,
    responses={404: {"model": ErrorResponse}}
)
async def mark_ticket_read(
    ticket_id: str,
    user_id: str = Query(...),
    service: SupportTicketService = Depends(get_support_service)
):
    try:
        updated = await service.mark_read(ticket_id, as_admin=False, user_id=user_id)
        return MarkReadResponse(updated=updated)
    except TicketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
