"""Enums and type aliases for Planwarden."""

from enum import StrEnum


class LimitType(StrEnum):
    BOOLEAN = "BOOLEAN"
    COUNT = "COUNT"
    UNLIMITED = "UNLIMITED"


class FeatureType(StrEnum):
    RESOURCE = "RESOURCE"  # counted by live record count
    CONSUMABLE = "CONSUMABLE"  # counted by period usage


class LimitPeriod(StrEnum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class SubscriptionStatus(StrEnum):
    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class PlanChangeType(StrEnum):
    UPGRADE = "UPGRADE"
    DOWNGRADE_SCHEDULED = "DOWNGRADE_SCHEDULED"
    DOWNGRADE_APPLIED = "DOWNGRADE_APPLIED"
    CANCELLATION = "CANCELLATION"
    CANCELLATION_APPLIED = "CANCELLATION_APPLIED"
    REACTIVATION = "REACTIVATION"


class ChangeDirection(StrEnum):
    UPGRADE = "UPGRADE"
    DOWNGRADE = "DOWNGRADE"


class DenialReason(StrEnum):
    FEATURE_NOT_AVAILABLE = "FEATURE_NOT_AVAILABLE"
    FEATURE_LIMIT_EXCEEDED = "FEATURE_LIMIT_EXCEEDED"
    UNKNOWN_LIMIT_TYPE = "UNKNOWN_LIMIT_TYPE"


class ErrorCode(StrEnum):
    FEATURE_NOT_AVAILABLE = "FEATURE_NOT_AVAILABLE"
    FEATURE_LIMIT_EXCEEDED = "FEATURE_LIMIT_EXCEEDED"
    NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
    PLAN_NOT_FOUND = "PLAN_NOT_FOUND"
    ALREADY_ON_PLAN = "ALREADY_ON_PLAN"
    NOT_AN_UPGRADE = "NOT_AN_UPGRADE"
    NOT_A_DOWNGRADE = "NOT_A_DOWNGRADE"
    CANNOT_CANCEL_FREE_PLAN = "CANNOT_CANCEL_FREE_PLAN"
    SUBSCRIPTION_ALREADY_CANCELLED = "SUBSCRIPTION_ALREADY_CANCELLED"
    NO_PENDING_CANCELLATION = "NO_PENDING_CANCELLATION"
    NO_SCHEDULED_CHANGE = "NO_SCHEDULED_CHANGE"
    CONCURRENT_PLAN_CHANGE = "CONCURRENT_PLAN_CHANGE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class NotificationTemplate(StrEnum):
    PLAN_UPGRADED = "plan-upgraded"
    PLAN_DOWNGRADE_SCHEDULED = "plan-downgrade-scheduled"
    SUBSCRIPTION_CANCELLED = "subscription-cancelled"
    GRACE_PERIOD_WARNING = "grace-period-warning"
    GRACE_PERIOD_EXPIRED = "grace-period-expired"
