"""
Lucky wheel reward selection.

The wheel holds every eligible voucher plus one no-win slot, each with the same
chance. A spin avoids vouchers the user already owns on a best-effort basis:
it re-draws up to `max_retries` times while the draw lands on an owned voucher
and some eligible voucher is still unowned.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Union

from config import settings
from models import SpinStatus, Voucher

logger = logging.getLogger(__name__)


# ============================================
# PRIZES
# ============================================

@dataclass(frozen=True)
class NoWin:
    """The "better luck next time" slot."""

    label: str = settings.NO_WIN_LABEL


@dataclass(frozen=True)
class VoucherPrize:
    voucher: Voucher

    @property
    def voucher_id(self) -> str:
        return self.voucher.id


Prize = Union[VoucherPrize, NoWin]

NO_WIN = NoWin()


def build_prizes(eligible_vouchers: Iterable[Voucher]) -> List[Prize]:
    """Wheel slots: one per eligible voucher, then the no-win slot."""
    prizes: List[Prize] = [VoucherPrize(v) for v in eligible_vouchers]
    prizes.append(NO_WIN)
    return prizes


def filter_eligible(vouchers: Iterable[Voucher], now: Optional[datetime] = None) -> List[Voucher]:
    return [v for v in vouchers if v.is_eligible(now)]


def select_prize(
    prizes: List[Prize],
    owned_ids: Set[str],
    rng: random.Random,
    max_retries: int = settings.SPIN_MAX_RETRIES,
) -> Prize:
    """
    Draw one prize uniformly, re-drawing owned vouchers while alternatives exist.

    Args:
        prizes: Wheel slots from `build_prizes`
        owned_ids: Voucher ids the user holds with quantity > 0
        rng: Random source, seed it for deterministic draws
        max_retries: Maximum number of re-draws

    Returns:
        The selected prize. A duplicate is still possible when every eligible
        voucher is owned or the retries run out.
    """
    if not prizes:
        raise ValueError("prizes must contain at least the no-win slot")

    has_unowned = any(
        isinstance(p, VoucherPrize) and p.voucher_id not in owned_ids for p in prizes
    )

    index = rng.randrange(len(prizes))
    retries = 0
    while (
        isinstance(prizes[index], VoucherPrize)
        and prizes[index].voucher_id in owned_ids
        and retries < max_retries
        and has_unowned
    ):
        index = rng.randrange(len(prizes))
        retries += 1

    return prizes[index]


def win_probability(eligible_count: int) -> float:
    """Chance that a spin lands on a voucher rather than the no-win slot."""
    return eligible_count / (eligible_count + 1)


# ============================================
# OWNED VOUCHER CACHE
# ============================================

@dataclass(frozen=True)
class CacheEvent:
    kind: str  # applied, confirmed, rolled_back, reconciled
    voucher_id: Optional[str]
    quantity: Optional[int]
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PendingGrant:
    voucher_id: str
    settled: bool = False


class OwnedVoucherCache:
    """
    In-memory copy of a user's owned vouchers with optimistic updates.

    A grant is applied locally first, then either confirmed (and optionally
    reconciled against the authoritative quantities) or rolled back. Every
    change is published to subscribers as a CacheEvent.
    """

    def __init__(self, quantities: Optional[Dict[str, int]] = None):
        self._quantities: Dict[str, int] = dict(quantities or {})
        self._listeners: List[Callable[[CacheEvent], None]] = []
        self.events: List[CacheEvent] = []

    def subscribe(self, listener: Callable[[CacheEvent], None]) -> None:
        self._listeners.append(listener)

    def _publish(self, event: CacheEvent) -> None:
        self.events.append(event)
        for listener in self._listeners:
            listener(event)

    def quantities(self) -> Dict[str, int]:
        return dict(self._quantities)

    def quantity(self, voucher_id: str) -> int:
        return self._quantities.get(voucher_id, 0)

    def owned_ids(self) -> Set[str]:
        return {vid for vid, qty in self._quantities.items() if qty > 0}

    def apply(self, voucher_id: str) -> PendingGrant:
        self._quantities[voucher_id] = self.quantity(voucher_id) + 1
        self._publish(CacheEvent("applied", voucher_id, self._quantities[voucher_id]))
        return PendingGrant(voucher_id)

    def confirm(self, pending: PendingGrant) -> None:
        if pending.settled:
            return
        pending.settled = True
        self._publish(CacheEvent("confirmed", pending.voucher_id, self.quantity(pending.voucher_id)))

    def rollback(self, pending: PendingGrant) -> None:
        if pending.settled:
            return
        pending.settled = True
        remaining = max(0, self.quantity(pending.voucher_id) - 1)
        if remaining:
            self._quantities[pending.voucher_id] = remaining
        else:
            self._quantities.pop(pending.voucher_id, None)
        self._publish(CacheEvent("rolled_back", pending.voucher_id, remaining))

    def reconcile(self, authoritative: Dict[str, int]) -> None:
        """Replace local quantities with the server's."""
        self._quantities = {vid: int(qty) for vid, qty in authoritative.items()}
        self._publish(CacheEvent("reconciled", None, None))


# ============================================
# SPINNING
# ============================================

class SpinInProgressError(Exception):
    """Raised when a user starts a spin while another is still running."""
    pass


@dataclass
class SpinResult:
    prize: Prize
    status: SpinStatus
    quantity: Optional[int] = None
    error: Optional[str] = None

    @property
    def won(self) -> bool:
        return self.status == SpinStatus.GRANTED


# commit(user_uid, voucher_id) -> authoritative owned quantities, or None
GrantCommit = Callable[[str, str], Awaitable[Optional[Dict[str, int]]]]


class LuckyWheel:
    """
    Runs spins and commits wins through `commit`.

    The prize is decided before the commit starts. A win only counts once the
    commit succeeds; on failure the optimistic cache update is rolled back and
    the result is reported as COMMIT_FAILED.
    """

    def __init__(
        self,
        commit: GrantCommit,
        rng: Optional[random.Random] = None,
        max_retries: int = settings.SPIN_MAX_RETRIES,
    ):
        self._commit = commit
        self._rng = rng or random.Random()
        self._max_retries = max_retries
        self._spinning: Set[str] = set()

    def is_spinning(self, user_uid: str) -> bool:
        return user_uid in self._spinning

    async def spin(
        self,
        user_uid: str,
        eligible_vouchers: List[Voucher],
        owned: OwnedVoucherCache,
    ) -> SpinResult:
        if user_uid in self._spinning:
            raise SpinInProgressError(f"User {user_uid} is already spinning")

        self._spinning.add(user_uid)
        try:
            prizes = build_prizes(eligible_vouchers)
            prize = select_prize(prizes, owned.owned_ids(), self._rng, self._max_retries)

            if isinstance(prize, NoWin):
                return SpinResult(prize=prize, status=SpinStatus.NO_WIN)

            pending = owned.apply(prize.voucher_id)
            try:
                authoritative = await self._commit(user_uid, prize.voucher_id)
            except asyncio.CancelledError:
                owned.rollback(pending)
                raise
            except Exception as e:
                owned.rollback(pending)
                logger.error(f"Granting voucher {prize.voucher_id} to {user_uid} failed: {e}")
                return SpinResult(prize=prize, status=SpinStatus.COMMIT_FAILED, error=str(e))

            owned.confirm(pending)
            if authoritative is not None:
                owned.reconcile(authoritative)

            logger.info(f"User {user_uid} won voucher {prize.voucher_id}")
            return SpinResult(
                prize=prize,
                status=SpinStatus.GRANTED,
                quantity=owned.quantity(prize.voucher_id),
            )
        finally:
            self._spinning.discard(user_uid)
