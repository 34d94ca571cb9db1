"""String enums shared by ledger, subscription and scheduler models."""

import enum


class PlanType(str, enum.Enum):
    FREE = "FREE"
    SUBSCRIPTION = "SUBSCRIPTION"


class TransactionType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    SUBSCRIPTION_GRANT = "SUBSCRIPTION_GRANT"
    BONUS = "BONUS"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class UsagePeriod(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class CreditActionType(str, enum.Enum):
    GENERATE_POST = "GENERATE_POST"
    GENERATE_EMAIL = "GENERATE_EMAIL"
    GENERATE_HOOK = "GENERATE_HOOK"
    GENERATE_HEADLINE = "GENERATE_HEADLINE"
    GENERATE_AD_COPY = "GENERATE_AD_COPY"
    GENERATE_VOICE_SCRIPT = "GENERATE_VOICE_SCRIPT"
    GENERATE_PROMPT_TEMPLATE = "GENERATE_PROMPT_TEMPLATE"
    USE_PROMPT_TEMPLATE = "USE_PROMPT_TEMPLATE"
    SCHEDULE_CONTENT = "SCHEDULE_CONTENT"


class ContentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    FAILED = "failed"
    CANCELLED = "cancelled"
