"""
Booking endpoints: creation, checkout, payment confirmation, review and cancellation.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request, UploadFile, File
from fastapi.responses import Response
from sqlalchemy.orm import Session
import time
from mailslot.api.deps import (
    get_db,
    get_current_user,
    require_admin,
    ensure_owner_or_admin,
    get_payment_gateway,
    get_notification_dispatcher,
    get_artifact_store,
)
from mailslot.exceptions import BookingEngineError
from mailslot.integrations import ArtifactStore, NotificationDispatcher, PaymentGateway
from mailslot.models.db import User
from mailslot.models.db.enums import BookingStatus, PaymentStatus, UserRole
from mailslot.models.schemas.bookings import (
    BookingCreate,
    BundleCreate,
    BookingRead,
    BookingCreatedResponse,
    BundleCreatedResponse,
    CheckoutResponse,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    RejectRequest,
    ArtworkReviewRequest,
    CancelResponse,
    RefundInfo,
    ExpirePendingRequest,
    ExpirePendingResponse,
)
from mailslot.services import booking_lifecycle
from mailslot.services.booking_lifecycle import BookingRequest
from mailslot.utils import get_logger, log_performance

router = APIRouter()
logger = get_logger(__name__)

def _to_request(data: BookingCreate) -> BookingRequest:
    return BookingRequest(**data.model_dump())

def _unexpected(operation: str, request_id: str, e: Exception, **context) -> HTTPException:
    logger.error(
        f"{operation} failed with unexpected error",
        error=str(e),
        request_id=request_id,
        exc_info=True,
        **context
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Internal server error during {operation.lower()}"
    )

@router.post(
    "/",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a slot",
    description="Reserve an exclusive campaign/route/industry slot. Fails with 409 if the slot is taken."
)
async def create_booking(
    booking_data: BookingCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> BookingCreatedResponse:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    logger.info(
        "Booking creation started",
        user_id=current_user.id,
        campaign_id=booking_data.campaign_id,
        route_id=booking_data.route_id,
        industry_id=booking_data.industry_id,
        quantity=booking_data.quantity,
        request_id=request_id
    )

    try:
        booking = booking_lifecycle.create_booking(db, current_user, _to_request(booking_data))

        duration_ms = (time.time() - start_time) * 1000
        log_performance(
            operation="create_booking",
            duration_ms=duration_ms,
            additional_data={"booking_id": booking.id}
        )
        logger.info(
            "Booking created successfully",
            booking_id=booking.id,
            slot_key=booking.slot_key,
            amount=booking.amount,
            duration_ms=duration_ms,
            request_id=request_id
        )
        return BookingCreatedResponse(booking_id=booking.id, booking=BookingRead.model_validate(booking))

    except (HTTPException, BookingEngineError):
        raise
    except Exception as e:
        raise _unexpected("Booking creation", request_id, e, user_id=current_user.id)

@router.post(
    "/bundle",
    response_model=BundleCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book several campaigns at once",
    description="Book one slot in each of several campaigns in a single transaction (bulk discount eligible)."
)
async def create_bundle(
    bundle_data: BundleCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> BundleCreatedResponse:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    logger.info(
        "Bundle booking started",
        user_id=current_user.id,
        bundle_size=len(bundle_data.items),
        request_id=request_id
    )

    try:
        bookings = booking_lifecycle.create_bundle(
            db, current_user, [_to_request(item) for item in bundle_data.items]
        )
        duration_ms = (time.time() - start_time) * 1000
        log_performance(
            operation="create_bundle",
            duration_ms=duration_ms,
            additional_data={"bundle_size": len(bookings)}
        )
        return BundleCreatedResponse(
            bundle_id=bookings[0].bundle_id or "",
            booking_ids=[b.id for b in bookings],
            total_amount=sum(b.amount for b in bookings),
            bookings=[BookingRead.model_validate(b) for b in bookings],
        )

    except (HTTPException, BookingEngineError):
        raise
    except Exception as e:
        raise _unexpected("Bundle booking", request_id, e, user_id=current_user.id)

@router.get(
    "/",
    response_model=List[BookingRead],
    summary="List bookings",
    description="Customers see their own bookings; admins may filter across all users."
)
async def list_bookings(
    request: Request,
    campaign_id: Optional[int] = Query(None, gt=0),
    user_id: Optional[int] = Query(None, gt=0, description="Admin only"),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[BookingRead]:
    start_time = time.time()
    owner_filter = user_id if current_user.role == UserRole.ADMIN else current_user.id
    bookings = booking_lifecycle.list_bookings(
        db,
        user_id=owner_filter,
        campaign_id=campaign_id,
        status=status_filter,
        payment_status=payment_status,
        limit=limit,
        offset=offset,
    )
    log_performance(
        operation="list_bookings",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"bookings_returned": len(bookings)}
    )
    return [BookingRead.model_validate(b) for b in bookings]

@router.post(
    "/expire-pending",
    response_model=ExpirePendingResponse,
    summary="Release unpaid bookings",
    description="Cancel bookings whose payment has been pending longer than the configured window."
)
async def expire_pending(
    request: Request,
    body: Optional[ExpirePendingRequest] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
) -> ExpirePendingResponse:
    request_id = request.headers.get("X-Request-ID", "unknown")
    older_than = body.older_than_minutes if body else None
    expired = booking_lifecycle.expire_pending_bookings(
        db, older_than_minutes=older_than, dispatcher=dispatcher
    )
    logger.info(
        "Pending booking sweep completed",
        expired_count=len(expired),
        admin_id=admin.id,
        request_id=request_id
    )
    return ExpirePendingResponse(expired_booking_ids=expired)

@router.get(
    "/{booking_id}",
    response_model=BookingRead,
    summary="Get booking"
)
async def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> BookingRead:
    booking = booking_lifecycle.get_booking(db, booking_id)
    ensure_owner_or_admin(booking.user_id, current_user)
    return BookingRead.model_validate(booking)

@router.post(
    "/{booking_id}/checkout",
    response_model=CheckoutResponse,
    summary="Start payment",
    description="Create a hosted checkout session for the booking amount."
)
async def start_checkout(
    booking_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> CheckoutResponse:
    request_id = request.headers.get("X-Request-ID", "unknown")
    booking = booking_lifecycle.get_booking(db, booking_id)
    ensure_owner_or_admin(booking.user_id, current_user)
    checkout = booking_lifecycle.start_checkout(db, booking_id, gateway)
    logger.info("Checkout started", booking_id=booking_id, session_id=checkout.session_id,
                request_id=request_id)
    return CheckoutResponse(
        booking_id=booking_id,
        session_id=checkout.session_id,
        checkout_url=checkout.url,
        amount=booking.amount,
    )

@router.post(
    "/{booking_id}/confirm-payment",
    response_model=ConfirmPaymentResponse,
    summary="Confirm payment",
    description="Verify the checkout session with the gateway. Safe to repeat for the same session."
)
async def confirm_payment(
    booking_id: int,
    payload: ConfirmPaymentRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> ConfirmPaymentResponse:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")
    booking = booking_lifecycle.get_booking(db, booking_id)
    ensure_owner_or_admin(booking.user_id, current_user)

    logger.info(
        "Payment confirmation started",
        booking_id=booking_id,
        session_id=payload.session_id,
        request_id=request_id
    )
    result = booking_lifecycle.confirm_payment(db, booking_id, payload.session_id, gateway)
    log_performance(
        operation="confirm_payment",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"booking_id": booking_id, "replayed": result.replayed}
    )
    return ConfirmPaymentResponse(
        booking=BookingRead.model_validate(result.booking),
        replayed=result.replayed,
        loyalty_discounts_earned=result.loyalty_discounts_earned,
    )

@router.post(
    "/{booking_id}/cancel",
    response_model=CancelResponse,
    summary="Cancel booking",
    description="Cancel a booking. Paid bookings cancelled at least 7 days before the print deadline are refunded in full."
)
async def cancel_booking(
    booking_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
) -> CancelResponse:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")
    booking = booking_lifecycle.get_booking(db, booking_id)
    ensure_owner_or_admin(booking.user_id, current_user)

    logger.info("Booking cancellation started", booking_id=booking_id, actor_id=current_user.id,
                request_id=request_id)
    result = booking_lifecycle.cancel_booking(
        db, booking_id, gateway=gateway, dispatcher=dispatcher, actor_id=current_user.id
    )
    duration_ms = (time.time() - start_time) * 1000
    log_performance(
        operation="cancel_booking",
        duration_ms=duration_ms,
        additional_data={"booking_id": booking_id, "refund_status": result.refund_status.value}
    )
    return CancelResponse(
        booking_id=booking_id,
        refund=RefundInfo(
            status=result.refund_status,
            amount=result.refund_amount,
            days_until_deadline=result.days_until_deadline,
        ),
        waitlist_notified=result.waitlist_notified,
    )

@router.post(
    "/{booking_id}/approve",
    response_model=BookingRead,
    summary="Approve booking (admin)"
)
async def approve_booking(
    booking_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BookingRead:
    booking = booking_lifecycle.approve_booking(db, booking_id, admin_id=admin.id)
    return BookingRead.model_validate(booking)

@router.post(
    "/{booking_id}/reject",
    response_model=BookingRead,
    summary="Reject booking (admin)"
)
async def reject_booking(
    booking_id: int,
    payload: RejectRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BookingRead:
    booking = booking_lifecycle.reject_booking(db, booking_id, payload.note, admin_id=admin.id)
    return BookingRead.model_validate(booking)

@router.post(
    "/{booking_id}/artwork",
    response_model=BookingRead,
    summary="Upload artwork",
    description="Upload (or re-upload after rejection) the ad artwork for a paid booking."
)
async def upload_artwork(
    booking_id: int,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store)
) -> BookingRead:
    booking = booking_lifecycle.get_booking(db, booking_id)
    ensure_owner_or_admin(booking.user_id, current_user)
    content = await file.read()
    booking = booking_lifecycle.upload_artwork(db, booking_id, file.filename or "artwork", content, store)
    return BookingRead.model_validate(booking)

@router.get(
    "/{booking_id}/artwork",
    summary="Download artwork",
    response_class=Response
)
async def download_artwork(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store)
) -> Response:
    booking = booking_lifecycle.get_booking(db, booking_id)
    ensure_owner_or_admin(booking.user_id, current_user)
    content = booking_lifecycle.get_artwork(db, booking_id, store)
    return Response(
        content=content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{booking.artwork_file_name or "artwork"}"'},
    )

@router.post(
    "/{booking_id}/artwork/review",
    response_model=BookingRead,
    summary="Review artwork (admin)"
)
async def review_artwork(
    booking_id: int,
    payload: ArtworkReviewRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BookingRead:
    booking = booking_lifecycle.review_artwork(db, booking_id, payload.approve, payload.reason, admin_id=admin.id)
    return BookingRead.model_validate(booking)
