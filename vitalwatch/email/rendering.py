"""Alert notification email rendering.

Renders ``templates/alert_notification.html`` with Jinja2. Tone and
recommendations depend on the metric type and on whether the alert is
critical; the subject line is prefixed ``CRITICAL`` for critical alerts.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from vitalwatch.alerts.schemas import Alert
from vitalwatch.email.schemas import EmailMessage
from vitalwatch.users.directory import SubjectUser

TEMPLATE_DIR = Path(__file__).parent / "templates"

template_env = Environment(
    loader=FileSystemLoader(searchpath=str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)

METRIC_LABELS: dict[str, str] = {
    "heartRate": "heart rate",
    "bloodPressure": "blood pressure",
    "bloodGlucose": "blood glucose",
    "oxygenSaturation": "oxygen saturation",
    "temperature": "body temperature",
}

RECOMMENDATIONS: dict[str, list[str]] = {
    "heartRate": [
        "Sit down and rest for a few minutes, then measure again.",
        "Avoid caffeine and strenuous activity until your reading settles.",
        "Contact your provider if you feel dizzy, short of breath, or have chest pain.",
    ],
    "bloodPressure": [
        "Rest quietly for five minutes and take another reading.",
        "Limit salt, caffeine, and alcohol today.",
        "Take any prescribed blood pressure medication as directed.",
    ],
    "bloodGlucose": [
        "If your glucose is low, take 15g of fast-acting carbohydrate and recheck in 15 minutes.",
        "If your glucose is high, drink water and follow your care plan.",
        "Log your meals and medication so your provider can review them.",
    ],
    "oxygenSaturation": [
        "Sit upright and breathe slowly and deeply, then measure again.",
        "Make sure your hands are warm and the sensor is positioned correctly.",
        "Seek care promptly if you feel short of breath.",
    ],
    "temperature": [
        "Drink plenty of fluids and rest.",
        "Measure again in an hour to track the trend.",
        "Contact your provider if the reading persists or you feel worse.",
    ],
}

DEFAULT_RECOMMENDATIONS = [
    "Measure again to confirm the reading.",
    "Contact your healthcare provider if you have concerns.",
]

CRITICAL_RECOMMENDATION = (
    "Your provider has been notified. Contact them today or seek urgent care "
    "if symptoms develop."
)


def _fmt(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def display_value(value: Any) -> str:
    """Render a reading value for humans: ``165/95`` or ``130``."""
    if isinstance(value, Mapping):
        if "systolic" in value and "diastolic" in value:
            return f"{_fmt(value['systolic'])}/{_fmt(value['diastolic'])}"
        if "value" in value:
            return _fmt(value["value"])
    return "" if value is None else _fmt(value)


def recommendations_for(metric_type: str, critical: bool) -> list[str]:
    items = list(RECOMMENDATIONS.get(metric_type, DEFAULT_RECOMMENDATIONS))
    if critical:
        items.insert(0, CRITICAL_RECOMMENDATION)
    return items


def build_alert_context(alert: Alert, user: SubjectUser, dashboard_url: str) -> dict[str, Any]:
    """Template variables for an alert notification."""
    snapshot = alert.metric_snapshot
    metric_type = snapshot.metric_type if snapshot else alert.type
    critical = alert.is_critical
    return {
        "patient_name": user.display_name,
        "metric_type": metric_type,
        "metric_label": METRIC_LABELS.get(metric_type, metric_type),
        "metric_value": display_value(snapshot.value) if snapshot else "",
        "unit": snapshot.unit if snapshot else "",
        "severity": alert.severity,
        "message": alert.message,
        "recommendations": recommendations_for(metric_type, critical),
        "critical": critical,
        "severity_class": "critical" if critical else "warning",
        "dashboard_url": dashboard_url,
    }


def render_alert_email(alert: Alert, user: SubjectUser, dashboard_url: str) -> EmailMessage:
    """Render the alert notification for ``user``.

    Raises:
        ValueError: The user has no email address.
    """
    if not user.email:
        raise ValueError(f"User {user.user_id} has no email address")

    context = build_alert_context(alert, user, dashboard_url)
    html = template_env.get_template("alert_notification.html").render(context)
    prefix = "\U0001F6A8 CRITICAL" if context["critical"] else "⚠️"
    text = (
        f"Hi {context['patient_name']},\n\n"
        f"Health Alert: {context['metric_type']} reading of "
        f"{context['metric_value']} {context['unit']} ({alert.severity})\n\n"
        f"{alert.message}\n\n"
        f"View your dashboard: {dashboard_url}"
    )
    return EmailMessage(
        to=user.email,
        subject=f"{prefix} Health Alert",
        html=html,
        text=text,
    )
