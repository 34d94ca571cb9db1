"""Models package."""

from .user import User
from .service import Service
from .credit_account import UserCredit
from .credit_transaction import CreditTransaction
from .credit_usage_log import CreditUsageLog
from .subscription_plan import PlanService, SubscriptionPlan
from .user_subscription import UserSubscription
from .service_usage import UserServiceUsage
from .scheduled_content import ScheduledContent
