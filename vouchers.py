"""
Voucher Catalog
Firestore-backed voucher CRUD with a Redis-cached catalog listing
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
import logging
import uuid

from fastapi import HTTPException
from pydantic import ValidationError

from cache_utils import delete_cache, get_cache, set_cache
from config import settings
from firebase_client import get_db
from models import Voucher

logger = logging.getLogger(__name__)

VOUCHERS_COLLECTION = "vouchers"
CATALOG_CACHE_KEY = "vouchers:catalog"


def voucher_from_document(doc_id: str, data: dict) -> Voucher:
    """Build a Voucher from a Firestore document"""
    return Voucher(**{**data, "id": doc_id})


def _to_document(data: dict) -> dict:
    """Firestore-ready copy of a voucher dict (enums stored as plain strings)"""
    document = {}
    for key, value in data.items():
        if key == "id":
            continue
        document[key] = value.value if isinstance(value, Enum) else value
    return document


def invalidate_catalog_cache() -> None:
    delete_cache(CATALOG_CACHE_KEY)


# ============================================
# READ OPERATIONS
# ============================================

async def list_vouchers() -> List[Voucher]:
    """
    Get the whole voucher catalog, newest first

    Served from the Redis cache when available. Documents that do not parse as
    a Voucher are skipped and logged.

    Returns:
        List[Voucher]: All vouchers
    """
    cached = get_cache(CATALOG_CACHE_KEY)
    if cached is not None:
        return [Voucher(**v) for v in cached]

    vouchers = []
    for doc in get_db().collection(VOUCHERS_COLLECTION).stream():
        try:
            vouchers.append(voucher_from_document(doc.id, doc.to_dict() or {}))
        except ValidationError as e:
            logger.warning(f"Skipping malformed voucher {doc.id}: {e}")

    epoch = datetime.min.replace(tzinfo=timezone.utc)
    vouchers.sort(
        key=lambda v: v.created_at.replace(tzinfo=v.created_at.tzinfo or timezone.utc) if v.created_at else epoch,
        reverse=True
    )

    set_cache(
        CATALOG_CACHE_KEY,
        [v.model_dump(mode="json") for v in vouchers],
        ttl=settings.VOUCHER_CACHE_TTL_SECONDS
    )
    return vouchers


async def get_eligible_vouchers(now: Optional[datetime] = None) -> List[Voucher]:
    """Vouchers that are active, not used up and not expired"""
    return [v for v in await list_vouchers() if v.is_eligible(now)]


async def get_voucher_by_id(voucher_id: str) -> Optional[Voucher]:
    """
    Get a voucher by ID

    Args:
        voucher_id: Voucher document ID

    Returns:
        Voucher or None if not found
    """
    doc = get_db().collection(VOUCHERS_COLLECTION).document(voucher_id).get()
    if not doc.exists:
        return None
    return voucher_from_document(doc.id, doc.to_dict() or {})


async def get_vouchers_by_ids(voucher_ids: List[str]) -> Dict[str, Voucher]:
    """Vouchers for the given ids; unknown ids are left out"""
    found = {}
    for voucher_id in voucher_ids:
        voucher = await get_voucher_by_id(voucher_id)
        if voucher is not None:
            found[voucher_id] = voucher
    return found


async def _code_taken(code: str, exclude_id: Optional[str] = None) -> bool:
    for doc in get_db().collection(VOUCHERS_COLLECTION).stream():
        if doc.id != exclude_id and (doc.to_dict() or {}).get("code") == code:
            return True
    return False


# ============================================
# WRITE OPERATIONS
# ============================================

async def create_voucher(voucher_data: dict) -> Voucher:
    """
    Create a new voucher

    Args:
        voucher_data: Fields from CreateVoucherModel

    Returns:
        Voucher: Created voucher

    Raises:
        HTTPException: If the code is already used by another voucher
    """
    if await _code_taken(voucher_data["code"]):
        raise HTTPException(
            status_code=400,
            detail=f"Voucher code {voucher_data['code']} already exists"
        )

    voucher_id = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    voucher = Voucher(**{
        **voucher_data,
        "id": voucher_id,
        "current_usage": 0,
        "created_at": now,
        "updated_at": now,
    })

    get_db().collection(VOUCHERS_COLLECTION).document(voucher_id).set(
        _to_document(voucher.model_dump())
    )
    invalidate_catalog_cache()

    logger.info(f"Voucher {voucher.code} created ({voucher_id})")
    return voucher


async def update_voucher(voucher_id: str, update_data: dict) -> Voucher:
    """
    Update fields of an existing voucher

    The merged result is validated as a whole, so e.g. switching to a
    percent discount with a value above 100 is rejected.

    Raises:
        HTTPException: 404 if not found, 400 if the result is invalid or the
        new code is taken
    """
    voucher_ref = get_db().collection(VOUCHERS_COLLECTION).document(voucher_id)
    doc = voucher_ref.get()

    if not doc.exists:
        raise HTTPException(status_code=404, detail="Voucher not found")

    if "code" in update_data and await _code_taken(update_data["code"], exclude_id=voucher_id):
        raise HTTPException(
            status_code=400,
            detail=f"Voucher code {update_data['code']} already exists"
        )

    merged = {
        **(doc.to_dict() or {}),
        **update_data,
        "updated_at": datetime.now(timezone.utc),
    }
    try:
        voucher = voucher_from_document(voucher_id, merged)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    voucher_ref.set(_to_document(voucher.model_dump()))
    invalidate_catalog_cache()

    return voucher


async def delete_voucher(voucher_id: str) -> None:
    """
    Delete a voucher

    Raises:
        HTTPException: If the voucher does not exist
    """
    voucher_ref = get_db().collection(VOUCHERS_COLLECTION).document(voucher_id)
    if not voucher_ref.get().exists:
        raise HTTPException(status_code=404, detail="Voucher not found")

    voucher_ref.delete()
    invalidate_catalog_cache()
    logger.info(f"Voucher {voucher_id} deleted")


async def deactivate_expired_vouchers(now: Optional[datetime] = None) -> int:
    """
    Mark active vouchers whose expiry date has passed as inactive

    Returns:
        int: Number of vouchers deactivated
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    vouchers_ref = get_db().collection(VOUCHERS_COLLECTION)

    count = 0
    for doc in vouchers_ref.stream():
        data = doc.to_dict() or {}
        if not data.get("is_active", True):
            continue
        try:
            voucher = voucher_from_document(doc.id, data)
        except ValidationError:
            continue
        if voucher.expired < now:
            vouchers_ref.document(doc.id).update({
                "is_active": False,
                "updated_at": now,
            })
            count += 1

    if count:
        invalidate_catalog_cache()
    return count
