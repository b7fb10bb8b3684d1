"""
Multi-calendar write fan-out
Applies one booking mutation to every active calendar target and aggregates the
per-target outcomes. Calls are sequential and never short-circuit; partial
success is a normal, reconcilable state.
"""
import logging
from typing import Optional, Sequence

from pydantic import BaseModel

from ..domain.calendars.schemas import CalendarTarget
from .google_calendar_service import BookingEventFields, CalendarGateway

logger = logging.getLogger(__name__)


class TargetOutcome(BaseModel):
    calendar_id: str
    target_id: Optional[int] = None
    operation: str
    success: bool
    reference: Optional[str] = None
    already_absent: bool = False
    error: Optional[str] = None


class FanOutResult(BaseModel):
    success: bool
    references: list[str] = []
    outcomes: list[TargetOutcome] = []

    @property
    def primary_reference(self) -> Optional[str]:
        return self.references[0] if self.references else None

    @property
    def failures(self) -> list[TargetOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def warnings(self) -> list[str]:
        return [o.error for o in self.failures if o.error]


class CalendarFanOut:
    """Fan booking writes out to a set of calendar targets through one gateway"""

    def __init__(self, gateway: CalendarGateway):
        self.gateway = gateway

    async def create(
        self, fields: BookingEventFields, targets: Sequence[CalendarTarget]
    ) -> FanOutResult:
        """One create per target; references come back in target order (primary first)"""
        references: list[str] = []
        outcomes: list[TargetOutcome] = []

        for target in targets:
            result = await self.gateway.create_event(target.calendar_id, fields)
            if result.ok and result.reference:
                references.append(result.reference)
                outcomes.append(
                    TargetOutcome(
                        calendar_id=target.calendar_id,
                        target_id=target.id,
                        operation="create",
                        success=True,
                        reference=result.reference,
                    )
                )
            else:
                outcomes.append(
                    TargetOutcome(
                        calendar_id=target.calendar_id,
                        target_id=target.id,
                        operation="create",
                        success=False,
                        error=str(result.error) if result.error else "No event id returned",
                    )
                )

        if targets:
            logger.info(
                f"📅 Calendar create fan-out: {len(references)}/{len(targets)} calendars succeeded"
            )
        else:
            logger.warning("⚠️ No active calendar targets configured; booking not published")
        return FanOutResult(success=bool(references), references=references, outcomes=outcomes)

    async def update(
        self,
        references: Sequence[str],
        fields: BookingEventFields,
        targets: Sequence[CalendarTarget],
    ) -> FanOutResult:
        """
        Update every stored reference.

        Each reference is tried first against the target at its own position and
        then against the remaining targets. A reference every target reports as
        gone is dropped; one that met a transient failure, or had no target to
        try, is kept for the next pass. Targets added since the booking was
        published get nothing here; reconciliation covers them only through the
        primary.
        """
        if not references:
            return FanOutResult(success=True)

        kept: list[str] = []
        outcomes: list[TargetOutcome] = []
        updated = 0

        for index, reference in enumerate(references):
            candidates = list(targets)
            if index < len(candidates):
                candidates.insert(0, candidates.pop(index))

            saw_transient = False
            saw_not_found = False
            resolved = False
            for target in candidates:
                result = await self.gateway.update_event(target.calendar_id, reference, fields)
                if result.ok:
                    new_reference = result.reference or reference
                    kept.append(new_reference)
                    outcomes.append(
                        TargetOutcome(
                            calendar_id=target.calendar_id,
                            target_id=target.id,
                            operation="update",
                            success=True,
                            reference=new_reference,
                        )
                    )
                    updated += 1
                    resolved = True
                    break

                outcomes.append(
                    TargetOutcome(
                        calendar_id=target.calendar_id,
                        target_id=target.id,
                        operation="update",
                        success=False,
                        reference=reference,
                        error=str(result.error) if result.error else None,
                    )
                )
                if result.error and result.error.not_found:
                    saw_not_found = True
                else:
                    saw_transient = True

            if not resolved:
                if saw_transient or not saw_not_found:
                    kept.append(reference)
                else:
                    logger.warning(f"⚠️ Dropping stale calendar reference {reference}")

        logger.info(f"📅 Calendar update fan-out: {updated}/{len(references)} references updated")
        return FanOutResult(success=updated > 0, references=kept, outcomes=outcomes)

    async def delete(
        self, references: Sequence[str], targets: Sequence[CalendarTarget]
    ) -> FanOutResult:
        """
        Delete every reference from every active target.

        A reference lives in one calendar only, so the other targets answer
        not-found, which the gateway reports as an ack.
        """
        if not references:
            return FanOutResult(success=True)

        outcomes: list[TargetOutcome] = []
        acked = 0

        for reference in references:
            for target in targets:
                result = await self.gateway.delete_event(target.calendar_id, reference)
                outcomes.append(
                    TargetOutcome(
                        calendar_id=target.calendar_id,
                        target_id=target.id,
                        operation="delete",
                        success=result.ok,
                        reference=reference,
                        already_absent=result.already_absent,
                        error=str(result.error) if result.error else None,
                    )
                )
                if result.ok:
                    acked += 1

        logger.info(
            f"📅 Calendar delete fan-out: {acked}/{len(outcomes)} attempts acked for {len(references)} references"
        )
        return FanOutResult(success=acked > 0, references=[], outcomes=outcomes)
