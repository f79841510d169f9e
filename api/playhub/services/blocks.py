"""Court blocks: owner-declared unavailable intervals (maintenance, events).

Blocks are created under the same court lock as reservations, so a block and
a booking can never be committed over each other.
"""

import logging
from datetime import datetime

from sqlalchemy import select

from playhub.core.errors import InvalidInterval, NotFound, PermissionDenied
from playhub.models.booking import CourtBlock
from playhub.services.booking_rules import check_repeat_weeks
from playhub.services.conflicts import check_block_overlap, check_reservation_overlap
from playhub.services.context import Actor, BookingContext
from playhub.services.intervals import duration_minutes, is_aligned
from playhub.services.series import weekly_occurrences
from playhub.services.transaction import lock_court, reservation_transaction

logger = logging.getLogger(__name__)


async def create_block(
    ctx: BookingContext,
    actor: Actor,
    court_id: int,
    start: datetime,
    end: datetime,
    note: str | None = None,
    repeat_weeks: int = 0,
) -> list[CourtBlock]:
    """Block a court for an interval, optionally repeated weekly. All-or-nothing."""
    policy = ctx.policy
    duration_minutes(start, end)
    step = policy.slot_step_minutes
    if not is_aligned(start, step) or not is_aligned(end, step):
        raise InvalidInterval(f"Blocks must be on a {step}-minute grid.")
    check_repeat_weeks(repeat_weeks, policy.owner_max_repeat_weeks)

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court = await lock_court(db, court_id, policy.lock_timeout_ms, require_active=True)
        if court.establishment.owner_id != actor.id:
            raise PermissionDenied("Only the establishment owner can block courts.")

        blocks: list[CourtBlock] = []
        for occurrence in weekly_occurrences(start, end, repeat_weeks):
            await check_block_overlap(db, court.id, occurrence.start, occurrence.end)
            await check_reservation_overlap(db, court.id, occurrence.start, occurrence.end)
            block = CourtBlock(
                court_id=court.id,
                start_time=occurrence.start,
                end_time=occurrence.end,
                note=note,
                created_by_id=actor.id,
            )
            db.add(block)
            await db.flush()
            blocks.append(block)

        uow.intents.audit(
            actor.id, "block.create", "court_block", blocks[0].id,
            block_ids=[b.id for b in blocks], court_id=court.id, note=note,
        )

    logger.info("Owner %s blocked court %s (%d occurrence(s))", actor.id, court_id, len(blocks))
    return blocks


async def delete_block(ctx: BookingContext, actor: Actor, block_id: int) -> None:
    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court_id = (
            await db.execute(select(CourtBlock.court_id).where(CourtBlock.id == block_id))
        ).scalar_one_or_none()
        if court_id is None:
            raise NotFound("Block not found.")

        court = await lock_court(db, court_id, ctx.policy.lock_timeout_ms)
        if court.establishment.owner_id != actor.id:
            raise PermissionDenied("Only the establishment owner can remove blocks.")

        block = await db.get(CourtBlock, block_id)
        await db.delete(block)
        uow.intents.audit(actor.id, "block.delete", "court_block", block_id, court_id=court_id)

    logger.info("Owner %s removed block %s", actor.id, block_id)
