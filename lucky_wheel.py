"""
Lucky Wheel Service
Daily spin bookkeeping and the spin flow behind the API
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo
import asyncio
import logging

from fastapi import HTTPException
from google.api_core.exceptions import AlreadyExists

from config import settings
from firebase_client import get_db
from models import SpinStatus
from reward_engine import (
    LuckyWheel, OwnedVoucherCache, SpinInProgressError, VoucherPrize,
    build_prizes, win_probability
)
from user_vouchers import get_owned_vouchers, grant_voucher
from vouchers import get_eligible_vouchers

logger = logging.getLogger(__name__)

SPINS_COLLECTION = "spins"

wheel = LuckyWheel(commit=grant_voucher)


def spin_day(now: Optional[datetime] = None) -> str:
    """Calendar day of a spin in the store's timezone (YYYY-MM-DD)"""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(settings.SPIN_TIMEZONE)).strftime("%Y-%m-%d")


def _spin_doc_id(user_uid: str, day: str) -> str:
    return f"{user_uid}_{day}"


async def record_spin(user_uid: str, day: str) -> None:
    """
    Claim the user's spin for the day

    Uses create(), which fails if the document already exists, so two
    requests cannot both claim the same day.

    Raises:
        HTTPException: 429 if the user already spun that day
    """
    spin_ref = get_db().collection(SPINS_COLLECTION).document(_spin_doc_id(user_uid, day))
    try:
        spin_ref.create({
            "user_uid": user_uid,
            "day": day,
            "status": "spinning",
            "voucher_id": None,
            "created_at": datetime.now(timezone.utc),
        })
    except AlreadyExists:
        raise HTTPException(
            status_code=429,
            detail="You have already spun the wheel today. Come back tomorrow!"
        )


async def release_spin(user_uid: str, day: str) -> None:
    """Give the day's spin back (used when the spin did not complete)"""
    get_db().collection(SPINS_COLLECTION).document(_spin_doc_id(user_uid, day)).delete()


async def complete_spin(user_uid: str, day: str, status: SpinStatus, voucher_id: Optional[str]) -> None:
    get_db().collection(SPINS_COLLECTION).document(_spin_doc_id(user_uid, day)).update({
        "status": status.value,
        "voucher_id": voucher_id,
        "completed_at": datetime.now(timezone.utc),
    })


async def get_wheel(user_uid: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Slots currently on the wheel for a user

    Returns:
        dict: slots (eligible vouchers then the no-win slot) and the chance
        of winning a voucher
    """
    eligible = await get_eligible_vouchers(now)
    owned = await get_owned_vouchers(user_uid)

    slots = []
    for prize in build_prizes(eligible):
        if isinstance(prize, VoucherPrize):
            voucher = prize.voucher
            slots.append({
                "voucher_id": voucher.id,
                "option": voucher.label or voucher.code,
                "is_no_win": False,
                "owned": owned.get(voucher.id, 0) > 0,
            })
        else:
            slots.append({
                "voucher_id": None,
                "option": prize.label,
                "is_no_win": True,
                "owned": False,
            })

    return {
        "slots": slots,
        "win_probability": round(win_probability(len(eligible)), 4),
    }


async def spin_for_user(user_uid: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Spin the wheel for a user

    Flow:
    1. Claim today's spin (when the daily limit is enforced)
    2. Load eligible vouchers and the user's owned vouchers
    3. Select the prize and, on a win, commit the grant
    4. Store the outcome on the spin record

    A failed commit releases the day's spin so the user can try again.

    Returns:
        dict: SpinResponse fields

    Raises:
        HTTPException: 409 spin already running, 429 daily spin used,
        502 prize could not be saved
    """
    if wheel.is_spinning(user_uid):
        raise HTTPException(status_code=409, detail="A spin is already in progress")

    day = spin_day(now)
    enforce_limit = settings.ENFORCE_DAILY_SPIN_LIMIT
    if enforce_limit:
        await record_spin(user_uid, day)

    try:
        eligible = await get_eligible_vouchers(now)
        owned = OwnedVoucherCache(await get_owned_vouchers(user_uid))
        result = await wheel.spin(user_uid, eligible, owned)
    except SpinInProgressError:
        if enforce_limit:
            await release_spin(user_uid, day)
        raise HTTPException(status_code=409, detail="A spin is already in progress")
    except (Exception, asyncio.CancelledError):
        if enforce_limit:
            await release_spin(user_uid, day)
        raise

    if result.status == SpinStatus.COMMIT_FAILED:
        if enforce_limit:
            await release_spin(user_uid, day)
        raise HTTPException(
            status_code=502,
            detail="Could not save your prize. Please spin again."
        )

    voucher = result.prize.voucher if isinstance(result.prize, VoucherPrize) else None
    if enforce_limit:
        # the day stays claimed by the record created above, only the outcome is missing
        try:
            await complete_spin(user_uid, day, result.status, voucher.id if voucher else None)
        except Exception as e:
            logger.error(f"Could not store spin outcome for user {user_uid} on {day}: {e}")

    if result.won:
        message = f"Congratulations! You won {voucher.label or voucher.code}"
    else:
        message = "Better luck next time!"

    return {
        "status": result.status,
        "won": result.won,
        "voucher": voucher,
        "quantity": result.quantity,
        "message": message,
    }
