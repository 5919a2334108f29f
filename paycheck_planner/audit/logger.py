"""
Audit Logger

DESIGN DECISION: Every write the planning engine performs is recorded,
along with every refused request and storage failure. Household members
can later see who changed the plan and when.

The audit logger is async to match the storage interface. A failing audit
backend is reported through structlog and never interrupts planning.
All events of one request share a correlation id.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from paycheck_planner.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from paycheck_planner.services.storage import AuditStorageInterface


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog (JSON lines on top of stdlib logging)."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level))
    logging.getLogger().setLevel(getattr(logging, log_level))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Default configuration; create_planning_service() re-applies the configured level
configure_logging()


class AuditLogger:
    """
    Records audit events for the planning engine.

    Logs events both to:
    1. The structlog output (JSON lines)
    2. Audit storage (for persistence and household visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Where audit events are appended.
                    Without one, events only reach structlog.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Emits the event through structlog at its severity, then appends it
        to audit storage when one is configured.

        Returns False only when the storage append failed.
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_instances_populated(
        self,
        budget_account_id: str,
        user_id: str,
        year: int,
        month: int,
        window: int,
        created: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a population run."""
        event = AuditEventBuilder.instances_populated(
            budget_account_id=budget_account_id,
            user_id=user_id,
            year=year,
            month=month,
            window=window,
            created=created,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_instance_insert_race(
        self,
        budget_account_id: str,
        debt_id: str,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an instance insert that lost to a concurrent request."""
        event = AuditEventBuilder.instance_insert_race(
            budget_account_id=budget_account_id,
            debt_id=debt_id,
            year=year,
            month=month,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_instance_visibility_changed(
        self,
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        is_active: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.instance_visibility_changed(
            budget_account_id=budget_account_id,
            user_id=user_id,
            instance_id=instance_id,
            is_active=is_active,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_allocation_created(
        self,
        budget_account_id: str,
        user_id: str,
        allocation_id: str,
        instance_id: str,
        paycheck_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.allocation_created(
            budget_account_id=budget_account_id,
            user_id=user_id,
            allocation_id=allocation_id,
            instance_id=instance_id,
            paycheck_id=paycheck_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_allocation_updated(
        self,
        budget_account_id: str,
        user_id: str,
        allocation_id: str,
        instance_id: str,
        paycheck_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.allocation_updated(
            budget_account_id=budget_account_id,
            user_id=user_id,
            allocation_id=allocation_id,
            instance_id=instance_id,
            paycheck_id=paycheck_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_allocation_removed(
        self,
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        paycheck_id: str,
        removed: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.allocation_removed(
            budget_account_id=budget_account_id,
            user_id=user_id,
            instance_id=instance_id,
            paycheck_id=paycheck_id,
            removed=removed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_allocation_moved(
        self,
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        from_paycheck_id: str,
        to_paycheck_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.allocation_moved(
            budget_account_id=budget_account_id,
            user_id=user_id,
            instance_id=instance_id,
            from_paycheck_id=from_paycheck_id,
            to_paycheck_id=to_paycheck_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_payment_marked_paid(
        self,
        budget_account_id: str,
        user_id: str,
        allocation_id: str,
        amount: Optional[str],
        payment_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.payment_marked_paid(
            budget_account_id=budget_account_id,
            user_id=user_id,
            allocation_id=allocation_id,
            amount=amount,
            payment_date=payment_date,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_warning_dismissed(
        self,
        budget_account_id: str,
        user_id: str,
        warning_type: str,
        warning_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.warning_dismissed(
            budget_account_id=budget_account_id,
            user_id=user_id,
            warning_type=warning_type,
            warning_key=warning_key,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_access_denied(
        self,
        budget_account_id: str,
        user_id: Optional[str],
        operation: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected request."""
        event = AuditEventBuilder.access_denied(
            budget_account_id=budget_account_id,
            user_id=user_id,
            operation=operation,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        budget_account_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage failure."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            budget_account_id=budget_account_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Correlation id for one planning request.

    Use this at the start of a new request (e.g., one planning request).
    Every component call of the request receives the same id.
    """
    return uuid4()
