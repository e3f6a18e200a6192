"""
Command-line interface for vitalwatch.

Usage:
    vitalwatch serve            # Run the API server
    vitalwatch init-db          # Create all tables
    vitalwatch evaluate         # Dry-run the evaluator on one reading
    vitalwatch send-test-email  # Send a sample alert email
    vitalwatch health           # Check service health
"""

import asyncio
import json
import os
import sys

import click

from vitalwatch.config.settings import get_settings
from vitalwatch.observability.logging import setup_logging
from vitalwatch.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """vitalwatch - health-metric alerting for telehealth."""
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "vitalwatch.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command("init-db")
def init_db() -> None:
    """Create the readings, alerts, email audit, and user stats tables."""
    from vitalwatch.alerts.repository import AlertRepository
    from vitalwatch.email.audit import EmailAttemptLog
    from vitalwatch.gamification.repository import UserStatsRepository
    from vitalwatch.readings.repository import ReadingRepository
    from vitalwatch.storage.database import Database

    async def run():
        async with Database() as db:
            for repo in (
                ReadingRepository(db),
                AlertRepository(db),
                EmailAttemptLog(db),
                UserStatsRepository(db),
            ):
                await repo.ensure_table()

        click.echo("Database initialized successfully")

    asyncio.run(run())


def _parse_value(raw: str):
    """Accept ``130``, ``36.8``, ``165/95``, or a JSON object."""
    if "/" in raw:
        systolic, _, diastolic = raw.partition("/")
        return {"systolic": float(systolic), "diastolic": float(diastolic)}
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Cannot parse value {raw!r}") from e


@main.command()
@click.argument("metric_type")
@click.argument("value")
@click.option("--unit", default=None, help="Unit (defaults to the threshold unit)")
@click.option("--user-id", default="cli-user", help="Subject user id")
def evaluate(metric_type: str, value: str, unit: str | None, user_id: str) -> None:
    """Evaluate one reading without persisting it.

    \b
    Examples:
        vitalwatch evaluate heartRate 130
        vitalwatch evaluate bloodPressure 165/95
    """
    from vitalwatch.alerts.evaluator import evaluate as evaluate_reading
    from vitalwatch.alerts.thresholds import get_threshold
    from vitalwatch.errors import ReadingValidationError
    from vitalwatch.readings.schemas import MetricReading

    threshold = get_threshold(metric_type)
    unit = unit or (threshold.unit if threshold else "unit")

    try:
        reading = MetricReading(
            user_id=user_id,
            metric_type=metric_type,
            value=_parse_value(value),
            unit=unit,
        )
    except ReadingValidationError as e:
        click.echo(click.style(f"Invalid reading: {e}", fg="red"))
        sys.exit(2)

    decision = evaluate_reading(reading)
    if decision is None:
        click.echo(click.style("No alert: reading within normal range", fg="green"))
        return

    color = "red" if decision.severity in ("high", "critical") else "yellow"
    click.echo(click.style(f"{decision.severity.upper()}: {decision.title}", fg=color))
    click.echo(f"  {decision.message}")


@main.command("send-test-email")
@click.argument("to")
@click.option("--severity", default="high", type=click.Choice(["high", "critical"]))
def send_test_email(to: str, severity: str) -> None:
    """Send a sample alert email through the configured providers."""
    from vitalwatch.alerts.schemas import Alert, MetricSnapshot
    from vitalwatch.alerts.thresholds import DEFAULT_THRESHOLDS
    from vitalwatch.email.providers import build_providers
    from vitalwatch.email.rendering import render_alert_email
    from vitalwatch.email.service import EmailDeliveryService
    from vitalwatch.errors import EmailDeliveryError
    from vitalwatch.users.directory import SubjectUser

    settings = get_settings()

    async def run():
        service = EmailDeliveryService(providers=build_providers(settings))
        if not service.enabled:
            click.echo(click.style("No email providers configured", fg="red"))
            sys.exit(1)

        alert = Alert(
            user_id="test-user",
            severity=severity,
            title="Abnormal heartRate detected",
            message="heartRate reading (130 bpm) is higher than normal range.",
            metric_snapshot=MetricSnapshot(
                metric_type="heartRate",
                value=130,
                unit="bpm",
                threshold=DEFAULT_THRESHOLDS["heartRate"].to_dict(),
            ),
        )
        message = render_alert_email(
            alert,
            SubjectUser(user_id="test-user", email=to, first_name="Test"),
            settings.dashboard_url,
        )

        try:
            result = await service.send_with_retry(message)
        except EmailDeliveryError as e:
            click.echo(click.style(f"Delivery failed: {e}", fg="red"))
            sys.exit(1)

        click.echo(click.style(
            f"Sent via {result.provider} on attempt {result.attempt} "
            f"(message_id={result.message_id})",
            fg="green",
        ))

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import redis.asyncio as aioredis
    import structlog

    from vitalwatch.storage.database import Database

    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}
        settings = get_settings()

        try:
            client = aioredis.from_url(str(settings.redis_url))
            results["redis"] = bool(await client.ping())
            await client.aclose()
        except Exception as e:
            results["redis"] = False
            logger.error("Redis health check failed", error=str(e))

        try:
            async with Database() as db:
                results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        results["sendgrid_configured"] = settings.sendgrid_configured
        results["mailgun_configured"] = settings.mailgun_configured
        results["smtp_configured"] = settings.smtp_configured

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name in ("redis", "postgres") and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
