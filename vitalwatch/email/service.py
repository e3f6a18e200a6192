"""Email delivery with retry, exponential backoff, and provider failover.

``send_with_retry`` runs an explicit state machine per message:

    PENDING -> ATTEMPTING(provider, attempt) -> SUCCEEDED
                                             -> FAILED

Providers are tried in their fixed priority order. Each gets up to
``max_retries`` attempts with ``2^attempt`` seconds of backoff between
attempts; after its last attempt the run falls through to the next
provider with no delay. The first success stops the run. Every attempt
is appended to the audit log.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from vitalwatch.email.audit import EmailAttemptLog
from vitalwatch.email.backoff import ExponentialBackoff
from vitalwatch.email.config import EmailConfig
from vitalwatch.email.providers import EmailProvider
from vitalwatch.email.schemas import (
    DeliveryAttempt,
    DeliveryResult,
    DeliveryState,
    EmailMessage,
)
from vitalwatch.errors import EmailDeliveryError
from vitalwatch.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class _DeliveryRun:
    """Mutable state of one delivery run. Never shared across messages."""

    state: DeliveryState = DeliveryState.PENDING
    provider: str | None = None
    attempt: int = 0
    total_attempts: int = 0
    last_error: Exception | None = None

    def transition(self, state: DeliveryState) -> None:
        logger.debug(
            "Email delivery %s -> %s (provider=%s attempt=%d)",
            self.state.value, state.value, self.provider, self.attempt,
        )
        self.state = state


class EmailDeliveryService:
    """Sends email through an ordered, immutable tuple of providers."""

    def __init__(
        self,
        providers: tuple[EmailProvider, ...],
        audit: EmailAttemptLog | None = None,
        config: EmailConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._providers = tuple(providers)
        self._audit = audit
        self._config = config or EmailConfig()
        self._sleep = sleep

    @property
    def providers(self) -> tuple[EmailProvider, ...]:
        return self._providers

    @property
    def enabled(self) -> bool:
        return bool(self._providers)

    async def send(self, message: EmailMessage) -> DeliveryResult:
        """Single attempt on the highest-priority provider, no retry."""
        if not self._providers:
            raise EmailDeliveryError("No email providers configured")

        provider = self._providers[0]
        try:
            return await self._attempt(provider, message, attempt=1)
        except Exception as e:
            raise EmailDeliveryError(
                f"Failed to send email via {provider.name}: {e}",
                last_error=e,
                attempts=1,
            ) from e

    async def send_with_retry(
        self,
        message: EmailMessage,
        max_retries: int | None = None,
    ) -> DeliveryResult:
        """Deliver ``message`` with per-provider retries and failover.

        Args:
            message: Message to deliver.
            max_retries: Attempts per provider (defaults to config).

        Returns:
            DeliveryResult from the first provider that accepted the message.

        Raises:
            EmailDeliveryError: Every provider exhausted its attempts.
            ValueError: max_retries is below 1.
        """
        if max_retries is None:
            max_retries = self._config.max_retries
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        run = _DeliveryRun()

        if not self._providers:
            run.transition(DeliveryState.FAILED)
            raise EmailDeliveryError("No email providers configured")

        backoff = ExponentialBackoff(
            base_delay=self._config.backoff_base,
            max_delay=self._config.backoff_max,
        )

        for provider in self._providers:
            run.provider = provider.name
            backoff.reset()

            for attempt in range(1, max_retries + 1):
                run.attempt = attempt
                run.total_attempts += 1
                run.transition(DeliveryState.ATTEMPTING)

                try:
                    result = await self._attempt(provider, message, attempt)
                except Exception as e:
                    run.last_error = e
                    logger.warning(
                        "Email to %s failed via %s (attempt %d/%d): %s",
                        message.to, provider.name, attempt, max_retries, e,
                    )
                    if attempt < max_retries:
                        await self._sleep(backoff.next_delay())
                    continue

                run.transition(DeliveryState.SUCCEEDED)
                logger.info(
                    "Email to %s sent via %s (attempt %d)",
                    message.to, provider.name, attempt,
                )
                return result

            logger.warning(
                "Email provider %s exhausted %d attempts, falling through",
                provider.name, max_retries,
            )

        run.transition(DeliveryState.FAILED)
        raise EmailDeliveryError(
            f"Failed to send email after {run.total_attempts} attempts. "
            f"Last error: {run.last_error}",
            last_error=run.last_error,
            attempts=run.total_attempts,
        )

    async def _attempt(
        self,
        provider: EmailProvider,
        message: EmailMessage,
        attempt: int,
    ) -> DeliveryResult:
        """One provider call, audited and counted whatever the outcome."""
        metrics = get_metrics()
        try:
            message_id = await provider.send(message)
        except Exception as e:
            metrics.record_email_attempt(provider.name, success=False)
            await self._record(DeliveryAttempt(
                to=message.to,
                subject=message.subject,
                provider=provider.name,
                status="failed",
                attempt=attempt,
                error=str(e),
            ))
            raise

        metrics.record_email_attempt(provider.name, success=True)
        await self._record(DeliveryAttempt(
            to=message.to,
            subject=message.subject,
            provider=provider.name,
            status="success",
            attempt=attempt,
            message_id=message_id,
        ))
        return DeliveryResult(
            provider=provider.name,
            message_id=message_id,
            attempt=attempt,
        )

    async def _record(self, attempt: DeliveryAttempt) -> None:
        if self._audit is None:
            return
        try:
            await self._audit.record(attempt)
        except Exception as e:
            logger.error("Email audit hook failed: %s", e)
