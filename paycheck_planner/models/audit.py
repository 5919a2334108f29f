"""
Audit Models for Paycheck Planner

Every write the planning engine performs is logged for audit purposes.
This provides:
1. Traceability of who allocated, moved or paid what
2. Debugging information when a plan looks wrong
3. Ability to reconstruct how a month was planned

Audit events are only ever appended.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from paycheck_planner.models.planning import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every write operation of the engine has its own event type.
    """
    # Monthly debt instances
    INSTANCES_POPULATED = "instances_populated"
    INSTANCE_INSERT_RACE = "instance_insert_race"
    INSTANCE_VISIBILITY_CHANGED = "instance_visibility_changed"

    # Allocation ledger
    ALLOCATION_CREATED = "allocation_created"
    ALLOCATION_UPDATED = "allocation_updated"
    ALLOCATION_REMOVED = "allocation_removed"
    ALLOCATION_MOVED = "allocation_moved"
    PAYMENT_MARKED_PAID = "payment_marked_paid"

    # Warnings
    WARNING_DISMISSED = "warning_dismissed"

    # Access control
    ACCESS_DENIED = "access_denied"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """How loudly an event is logged."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One entry of the audit trail. Each write, refusal and storage
    failure produces exactly one.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Event id"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="UTC time the event was built"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Operation that produced the event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Log level of the event"
    )

    # Account, actor and the record the event concerns
    budget_account_id: Optional[str] = None
    user_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'allocation', 'monthly_debt_instance')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of the record concerned"
    )

    # Shared by every event of one request
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one planning request)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="One-line summary for people reading the log"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Operation-specific fields"
    )

    # Set on refusals and failures
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="False for events the engine raises on its own"
    )

    def to_log_dict(self) -> dict:
        """
        Keyword arguments for the structlog call.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "budget_account_id": self.budget_account_id,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        One AuditLog worksheet row, in AUDIT_COLUMNS order.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, budget_account_id, user_id,
         entity_type, entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.budget_account_id or "",
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Factory methods, one per audited operation.

    Usage:
        event = AuditEventBuilder.allocation_created(account_id, user_id, allocation_id, ...)
        event = AuditEventBuilder.warning_dismissed(account_id, user_id, "insufficient_funds", key)
    """

    @staticmethod
    def instances_populated(
        budget_account_id: str,
        user_id: str,
        year: int,
        month: int,
        window: int,
        created: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTANCES_POPULATED,
            budget_account_id=budget_account_id,
            user_id=user_id,
            entity_type="monthly_debt_instance",
            correlation_id=correlation_id,
            description=f"Populated {created} monthly debt instances from {year:04d}-{month:02d}",
            details={
                "year": year,
                "month": month,
                "planning_window_months": window,
                "created": created,
            },
        )

    @staticmethod
    def instance_insert_race(
        budget_account_id: str,
        debt_id: str,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTANCE_INSERT_RACE,
            severity=AuditSeverity.DEBUG,
            budget_account_id=budget_account_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description="Monthly debt instance already created by a concurrent request",
            details={"year": year, "month": month},
        )

    @staticmethod
    def instance_visibility_changed(
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        is_active: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTANCE_VISIBILITY_CHANGED,
            budget_account_id=budget_account_id,
            user_id=user_id,
            entity_type="monthly_debt_instance",
            entity_id=instance_id,
            correlation_id=correlation_id,
            description="Monthly debt instance restored" if is_active else "Monthly debt instance hidden",
            details={"is_active": is_active},
            is_user_action=True,
        )

    @staticmethod
    def allocation_created(
        budget_account_id: str,
        user_id: str,
        allocation_id: str,
        instance_id: str,
        paycheck_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_CREATED,
            budget_account_id=budget_account_id,
            user_id=user_id,
            entity_type="allocation",
            entity_id=allocation_id,
            correlation_id=correlation_id,
            description=f"Debt instance {instance_id} allocated to paycheck {paycheck_id}",
            details={
                "monthly_debt_instance_id": instance_id,
                "paycheck_id": paycheck_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def allocation_updated(
        budget_account_id: str,
        user_id: str,
        allocation_id: str,
        instance_id: str,
        paycheck_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_UPDATED,
            budget_account_id=budget_account_id,
            user_id=user_id,
            entity_type="allocation",
            entity_id=allocation_id,
            correlation_id=correlation_id,
            description=f"Allocation of {instance_id} on paycheck {paycheck_id} updated",
            details={
                "monthly_debt_instance_id": instance_id,
                "paycheck_id": paycheck_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def allocation_removed(
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        paycheck_id: str,
        removed: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_REMOVED,
            budget_account_id=budget_account_id,
            user_id=user_id,
            entity_type="monthly_debt_instance",
            entity_id=instance_id,
            correlation_id=correlation_id,
            description=f"Removed {removed} allocation(s) from paycheck {paycheck_id}",
            details={"paycheck_id": paycheck_id, "removed": removed},
            is_user_action=True,
        )

    @staticmethod
    def allocation_moved(
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        from_paycheck_id: str,
        to_paycheck_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_MOVED,
            budget_account_id=budget_account_id,
            user_id=user_id,
            entity_type="monthly_debt_instance",
            entity_id=instance_id,
            correlation_id=correlation_id,
            description=f"Allocation moved from {from_paycheck_id} to {to_paycheck_id}",
            details={
                "from_paycheck_id": from_paycheck_id,
                "to_paycheck_id": to_paycheck_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_marked_paid(
        budget_account_id: str,
        user_id: str,
        allocation_id: str,
        amount: Optional[str],
        payment_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_MARKED_PAID,
            budget_account_id=budget_account_id,
            user_id=user_id,
            entity_type="allocation",
            entity_id=allocation_id,
            correlation_id=correlation_id,
            description=f"Payment marked as paid on {payment_date}",
            details={"amount": amount, "payment_date": payment_date},
            is_user_action=True,
        )

    @staticmethod
    def warning_dismissed(
        budget_account_id: str,
        user_id: str,
        warning_type: str,
        warning_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WARNING_DISMISSED,
            budget_account_id=budget_account_id,
            user_id=user_id,
            entity_type="warning",
            entity_id=f"{warning_type}:{warning_key}",
            correlation_id=correlation_id,
            description=f"Warning dismissed: {warning_type}",
            details={"warning_type": warning_type, "warning_key": warning_key},
            is_user_action=True,
        )

    @staticmethod
    def access_denied(
        budget_account_id: str,
        user_id: Optional[str],
        operation: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_DENIED,
            severity=AuditSeverity.WARNING,
            budget_account_id=budget_account_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Access denied to {operation}",
            error_message=reason,
            details={"operation": operation},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        budget_account_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            budget_account_id=budget_account_id,
            correlation_id=correlation_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
