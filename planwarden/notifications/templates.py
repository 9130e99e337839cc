"""Email subjects and HTML bodies rendered with Jinja2."""

from __future__ import annotations

from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from planwarden.types import NotificationTemplate

SUBJECTS: dict[NotificationTemplate, str] = {
    NotificationTemplate.PLAN_UPGRADED: "Your plan has been upgraded to {{ newPlanName }}",
    NotificationTemplate.PLAN_DOWNGRADE_SCHEDULED: "Your plan will change to {{ newPlanName }}",
    NotificationTemplate.SUBSCRIPTION_CANCELLED: (
        "Your {{ currentPlanName }} subscription was cancelled"
    ),
    NotificationTemplate.GRACE_PERIOD_WARNING: (
        "{{ daysRemaining }} day(s) left to resolve plan limits"
    ),
    NotificationTemplate.GRACE_PERIOD_EXPIRED: "Your grace period has ended",
}

_BASE = """<!doctype html>
<html><body style="font-family: sans-serif; color: #222;">
<p>Hi {{ userName }},</p>
{% block content %}{% endblock %}
<p style="color: #888; font-size: 12px;">You are receiving this email about your subscription.</p>
</body></html>
"""

_OVERAGE_TABLE = """<table>
<tr><th align="left">Feature</th><th>Current</th><th>Limit</th></tr>
{% for row in overages %}<tr><td>{{ row.feature }}</td><td>{{ row.current }}</td>
<td>{{ row.newLimit if row.newLimit is defined else row.limit }}</td></tr>
{% endfor %}</table>
"""

_TEMPLATES: dict[str, str] = {
    "base.html": _BASE,
    "overages.html": _OVERAGE_TABLE,
    NotificationTemplate.PLAN_UPGRADED: """{% extends "base.html" %}{% block content %}
<p>Your plan changed from <b>{{ previousPlanName }}</b> to <b>{{ newPlanName }}</b>
({{ newPlanPrice }}) on {{ effectiveDate }}. Your new features are available now.</p>
{% endblock %}""",
    NotificationTemplate.PLAN_DOWNGRADE_SCHEDULED: """{% extends "base.html" %}{% block content %}
<p>Your <b>{{ currentPlanName }}</b> plan changes to <b>{{ newPlanName }}</b>
on {{ effectiveDate }}.</p>
{% if hasOverages %}<p>Some of your data exceeds the new plan's limits:</p>
{% include "overages.html" %}
{% if gracePeriodEnd %}<p>You can keep these items until {{ gracePeriodEnd }}.</p>{% endif %}
{% endif %}{% endblock %}""",
    NotificationTemplate.SUBSCRIPTION_CANCELLED: """{% extends "base.html" %}{% block content %}
<p>Your <b>{{ currentPlanName }}</b> subscription has been cancelled. You keep access
until {{ effectiveDate }}, after which your account moves to the free plan.</p>
{% endblock %}""",
    NotificationTemplate.GRACE_PERIOD_WARNING: """{% extends "base.html" %}{% block content %}
<p>Your grace period ends on {{ gracePeriodEnd }} ({{ daysRemaining }} day(s) left).
Please bring these items within your plan limits or upgrade:</p>
{% include "overages.html" %}
{% endblock %}""",
    NotificationTemplate.GRACE_PERIOD_EXPIRED: """{% extends "base.html" %}{% block content %}
<p>Your grace period has ended. Items above your plan limits are now read-only:</p>
{% include "overages.html" %}
{% endblock %}""",
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(default=True, default_for_string=True),
    undefined=StrictUndefined,
)


def render_email(template: NotificationTemplate, variables: dict[str, Any]) -> tuple[str, str]:
    """Return ``(subject, html)`` for a lifecycle email."""
    subject = _env.from_string(SUBJECTS[template]).render(**variables)
    html = _env.get_template(str(template)).render(**variables)
    return subject, html
