"""Domain errors raised by the billing, entitlement and scheduling services.

Each error is an ``HTTPException`` so it propagates unchanged to the request
boundary and renders as a structured ``{"detail": ...}`` body.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException


class BillingError(HTTPException):
    status_code = 400
    default_detail: Any = "Request could not be processed."

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(status_code=self.status_code, detail=detail if detail is not None else self.default_detail)


class ServiceNotFound(BillingError):
    status_code = 403
    default_detail = "Service not found"


class ForbiddenPlan(BillingError):
    status_code = 403
    default_detail = "This service is not available in your current subscription plan"


class UsageLimitExceeded(ForbiddenPlan):
    def __init__(self, *, limit: int, current_usage: int, period: str):
        super().__init__(
            {
                "message": f"Usage limit reached for this {str(period).lower()} period ({current_usage}/{limit}).",
                "limit": limit,
                "current_usage": current_usage,
                "period": str(period),
            }
        )


class InsufficientCredits(BillingError):
    status_code = 402

    def __init__(self, *, required: int, available: int):
        self.required = int(required)
        self.available = int(available)
        super().__init__(f"Insufficient credits. Required: {self.required}, Available: {self.available}")


class InvalidSchedule(BillingError):
    default_detail = "Scheduled time must be in the future"


class WebhookSignatureInvalid(BillingError):
    default_detail = "Invalid webhook signature"


class InvalidPassthrough(BillingError):
    default_detail = "Webhook passthrough payload is missing or malformed"


class PaymentProviderError(BillingError):
    status_code = 502
    default_detail = "Failed to create checkout session"


class NoActiveSubscription(BillingError):
    default_detail = "No active subscription found"


class SubscriptionConflict(BillingError):
    status_code = 409
    default_detail = "Another subscription change for this user is in progress. Retry the request."


class PlanNotFound(BillingError):
    status_code = 404
    default_detail = "Plan not found"


class TransactionNotFound(BillingError):
    status_code = 404
    default_detail = "Credit transaction not found"


class ScheduledContentNotFound(BillingError):
    status_code = 404
    default_detail = "Scheduled content not found"


class PromptNotFound(BillingError):
    status_code = 404
    default_detail = "Prompt template not found"


class WebhookPayloadInvalid(BillingError):
    default_detail = "Webhook payload is malformed"


class DuplicateDelivery(BillingError):
    status_code = 409
    default_detail = "Webhook event is already being processed. Retry later."


class AlreadySubscribed(BillingError):
    status_code = 409
    default_detail = "You are already subscribed to this plan"


class SubscriptionNotYetKnown(BillingError):
    status_code = 409
    default_detail = "Subscription is not on file yet. Retry later."
