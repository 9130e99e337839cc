"""Feature codes, plan codes and lifecycle defaults."""

UNLIMITED = -1

# Days a downgraded user keeps over-limit resources before soft enforcement is permanent
GRACE_PERIOD_DAYS = 7
BILLING_PERIOD_DAYS = 30
GRACE_WARNING_DAYS = 2

DEFAULT_HISTORY_LIMIT = 20

# Resource features (counted live by the owning module)
ACCOUNTS = "accounts"
GOALS = "goals"
DEBTS = "debts"
LOANS = "loans"
CUSTOM_CATEGORIES = "custom_categories"
RECURRING_PAYMENTS = "recurring_payments"

# Consumable features (counted per period)
TRANSACTIONS_PER_MONTH = "transactions_per_month"

# Boolean features
ADVANCED_REPORTS = "advanced_reports"
EXPORT_DATA = "export_data"
MULTI_CURRENCY = "multi_currency"
BUDGET_ALERTS = "budget_alerts"
AI_INSIGHTS = "ai_insights"

RESOURCE_FEATURES = (ACCOUNTS, GOALS, DEBTS, LOANS, CUSTOM_CATEGORIES, RECURRING_PAYMENTS)

GRACE_PERIOD_FEATURES = frozenset({GOALS, CUSTOM_CATEGORIES})

PLAN_FREE = "free"
PLAN_PRO = "pro"
PLAN_PREMIUM = "premium"
