"""
Owned Vouchers
Per-user voucher quantities stored on the user document as
`vouchers: {voucher_id: quantity}`
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from fastapi import HTTPException
from firebase_admin import firestore

from firebase_client import get_db
from vouchers import get_voucher_by_id, get_vouchers_by_ids

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


def normalize_owned_vouchers(raw: Any) -> Dict[str, int]:
    """
    Convert any stored shape of a user's vouchers to {voucher_id: quantity}

    Older user records hold a list, either of voucher ids (one entry per copy)
    or of {"voucherId": ..., "quantity": ...} objects.

    Args:
        raw: Value of the user's `vouchers` field

    Returns:
        dict: voucher id -> quantity, only positive quantities
    """
    owned: Dict[str, int] = {}
    if not raw:
        return owned

    if isinstance(raw, dict):
        for voucher_id, quantity in raw.items():
            quantity = int(quantity or 0)
            if quantity > 0:
                owned[str(voucher_id)] = quantity
        return owned

    if isinstance(raw, list):
        for entry in raw:
            if isinstance(entry, str):
                owned[entry] = owned.get(entry, 0) + 1
            elif isinstance(entry, dict) and entry.get("voucherId"):
                owned[str(entry["voucherId"])] = int(entry.get("quantity") or 1)
        return owned

    logger.warning(f"Unrecognized vouchers value of type {type(raw).__name__}")
    return owned


async def get_owned_vouchers(user_uid: str) -> Dict[str, int]:
    """
    Get the vouchers a user holds

    Args:
        user_uid: User UID

    Returns:
        dict: voucher id -> quantity (empty if the user has no record)
    """
    user_doc = get_db().collection(USERS_COLLECTION).document(user_uid).get()
    if not user_doc.exists:
        return {}
    return normalize_owned_vouchers((user_doc.to_dict() or {}).get("vouchers"))


async def grant_voucher(user_uid: str, voucher_id: str) -> Optional[Dict[str, int]]:
    """
    Add one copy of a voucher to a user's owned vouchers

    The quantity is bumped with a server-side increment so concurrent grants
    do not lose updates. Legacy list-shaped records are rewritten to the map
    shape first.

    Args:
        user_uid: User receiving the voucher
        voucher_id: Voucher to grant

    Returns:
        dict: The user's owned vouchers after the grant, or None when the
        grant was saved but reading it back failed

    Raises:
        HTTPException: 404 if the voucher does not exist, 400 if it is no
        longer eligible
    """
    voucher = await get_voucher_by_id(voucher_id)
    if voucher is None:
        raise HTTPException(status_code=404, detail="Voucher not found")
    if not voucher.is_eligible():
        raise HTTPException(status_code=400, detail=f"Voucher {voucher.code} is no longer available")

    user_ref = get_db().collection(USERS_COLLECTION).document(user_uid)
    user_doc = user_ref.get()
    now = datetime.now(timezone.utc)

    if user_doc.exists:
        raw = (user_doc.to_dict() or {}).get("vouchers")
        if isinstance(raw, list):
            user_ref.update({"vouchers": normalize_owned_vouchers(raw)})

    user_ref.set({
        "vouchers": {voucher_id: firestore.Increment(1)},
        "updated_at": now,
    }, merge=True)

    logger.info(f"Voucher {voucher_id} granted to user {user_uid}")

    # the grant is stored at this point, a failed read must not undo it
    try:
        return await get_owned_vouchers(user_uid)
    except Exception as e:
        logger.warning(f"Could not read vouchers of user {user_uid} after grant: {e}")
        return None


async def get_user_voucher_details(user_uid: str) -> Dict[str, Any]:
    """
    Owned vouchers with their catalog details

    Vouchers deleted from the catalog are still listed, without details.
    """
    owned = await get_owned_vouchers(user_uid)
    catalog = await get_vouchers_by_ids(list(owned.keys()))

    details: List[Dict[str, Any]] = [
        {
            "voucher_id": voucher_id,
            "quantity": quantity,
            "voucher": catalog.get(voucher_id),
        }
        for voucher_id, quantity in owned.items()
    ]

    return {
        "vouchers": owned,
        "details": details,
        "total": sum(owned.values()),
    }
