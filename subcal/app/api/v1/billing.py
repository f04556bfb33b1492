"""
FastAPI route: billing reminders.

Provides endpoints to:
    GET  /api/v1/billing/ping            — API liveness
    POST /api/v1/billing/check-upcoming  — match + notify in one call
    POST /api/v1/billing/notify          — send a reminder for given subscriptions
    POST /api/v1/billing/test/email      — canned email to an address
    POST /api/v1/billing/test/telegram   — canned message to a chat

Request bodies keep the camelCase field names used by the web front-end.
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from subcal.app.billing.models import (
    ChannelOutcome,
    NotificationChannel,
    NotificationRequest,
    Subscription,
)
from subcal.app.billing.notification_service import (
    NotificationService,
    build_notification_service,
)
from subcal.app.core.config import settings

router = APIRouter(prefix="/api/v1/billing", tags=["billing-reminders"])


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SubscriptionInput(_CamelModel):
    """A single tracked subscription."""
    name: str = Field(..., min_length=1, examples=["Netflix"])
    price: Decimal = Field(..., ge=0, examples=[15.99])
    billing_cycle: str = Field("monthly", alias="billingCycle", examples=["monthly"])
    # any JSON value; unreadable dates are rejected per record by the matcher
    next_billing_date: Any = Field(
        None, alias="nextBillingDate", examples=["2025-02-02"],
        description="ISO-8601 date or timestamp; only the calendar day is used",
    )


class CheckUpcomingRequest(_CamelModel):
    subscriptions: List[SubscriptionInput]
    notification_days: Union[int, str] = Field(
        ..., alias="notificationDays", examples=[7],
        description="Lookahead window in days",
    )
    email_address: Optional[str] = Field(None, alias="emailAddress", examples=["me@example.com"])


class BillingNotificationRequest(_CamelModel):
    email_address: Optional[str] = Field(None, alias="emailAddress", examples=["me@example.com"])
    subscriptions: List[SubscriptionInput] = Field(default_factory=list)
    days_until_billing: int = Field(..., alias="daysUntilBilling", examples=[7])


class EmailTestRequest(_CamelModel):
    email_address: Optional[str] = Field(None, alias="emailAddress", examples=["me@example.com"])


class TelegramTestRequest(_CamelModel):
    chat_id: Optional[str] = Field(
        None, alias="chatId",
        description="Defaults to the configured TELEGRAM_CHAT_ID",
    )


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

@lru_cache()
def get_notification_service() -> NotificationService:
    """Process-wide service built from settings (override in tests)."""
    return build_notification_service(settings)


def _to_subscription(s: SubscriptionInput) -> Subscription:
    """Convert Pydantic model to dataclass."""
    return Subscription(
        name=s.name,
        price=s.price,
        billing_cycle=s.billing_cycle,
        next_billing_date=s.next_billing_date,
    )


def _test_response(outcome: ChannelOutcome, label: str) -> Any:
    if outcome.success:
        return {"success": True, "message": f"Test {label} sent successfully!"}
    return JSONResponse(
        status_code=502,
        content={
            "success": False,
            "error": f"Failed to send test {label}",
            "details": outcome.error,
        },
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/ping", summary="API liveness")
async def ping() -> Dict[str, Any]:
    return {"success": True, "message": "API is working!"}


@router.post(
    "/check-upcoming",
    summary="Find subscriptions due in N days and notify",
    description=(
        "Matches subscriptions whose next billing date is exactly "
        "notificationDays from today. When any match and a recipient is "
        "known, a reminder is dispatched in the same call."
    ),
)
def check_upcoming(
    request: CheckUpcomingRequest,
    service: NotificationService = Depends(get_notification_service),
):
    result = service.check_upcoming(
        [_to_subscription(s) for s in request.subscriptions],
        request.notification_days,
        request.email_address,
    )
    return {"success": True, **result.to_dict()}


@router.post(
    "/notify",
    summary="Send a billing reminder",
    description="Dispatch a reminder for the given subscriptions on all configured channels.",
)
def send_billing_notification(
    request: BillingNotificationRequest,
    service: NotificationService = Depends(get_notification_service),
):
    outcome = service.send_billing_notification(
        NotificationRequest(
            recipient_address=request.email_address,
            subscriptions=[_to_subscription(s) for s in request.subscriptions],
            days_until_billing=request.days_until_billing,
        )
    )
    body = {"success": outcome.success, "dispatch": outcome.to_dict()}

    if not any(o.success for o in outcome.channels.values()):
        body["error"] = "Failed to send billing notification"
        return JSONResponse(status_code=502, content=body)

    delivered = [c.value for c, o in outcome.channels.items() if o.success]
    body["message"] = f"Billing notification sent via {', '.join(delivered)}"
    return body


@router.post("/test/email", summary="Send a test email")
def send_test_email(
    request: EmailTestRequest,
    service: NotificationService = Depends(get_notification_service),
):
    outcome = service.send_test(NotificationChannel.EMAIL, request.email_address)
    return _test_response(outcome, "email")


@router.post("/test/telegram", summary="Send a test Telegram message")
def send_test_telegram(
    request: TelegramTestRequest,
    service: NotificationService = Depends(get_notification_service),
):
    outcome = service.send_test(NotificationChannel.TELEGRAM, request.chat_id)
    return _test_response(outcome, "Telegram message")
