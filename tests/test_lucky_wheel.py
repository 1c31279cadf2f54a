"""Tests for the daily spin flow."""

import asyncio
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException

import lucky_wheel
import user_vouchers
from config import settings
from conftest import SequenceRandom
from lucky_wheel import get_wheel, spin_day, spin_for_user
from models import SpinStatus
from reward_engine import LuckyWheel
from user_vouchers import grant_voucher

MORNING = datetime(2025, 6, 1, 2, 0, tzinfo=timezone.utc)


@pytest.fixture
def use_wheel(monkeypatch):
    """Replace the service's wheel with one drawing the given indexes."""
    def _use(indexes, commit=grant_voucher):
        wheel = LuckyWheel(commit=commit, rng=SequenceRandom(indexes))
        monkeypatch.setattr(lucky_wheel, "wheel", wheel)
        return wheel
    return _use


class TestSpinDay:
    def test_local_calendar_day(self):
        # 18:00 UTC is already the next morning in Ho Chi Minh City
        assert spin_day(datetime(2025, 6, 1, 18, 0, tzinfo=timezone.utc)) == "2025-06-02"
        assert spin_day(datetime(2025, 6, 1, 16, 59, tzinfo=timezone.utc)) == "2025-06-01"

    def test_naive_is_utc(self):
        assert spin_day(datetime(2025, 6, 1, 18, 0)) == "2025-06-02"


class TestGetWheel:
    def test_slots(self, seed_voucher, seed_user):
        seed_voucher("a", label="Giảm 50K")
        seed_voucher("b", label="")
        seed_voucher("off", is_active=False)
        seed_user("u1", vouchers={"a": 1})

        wheel = asyncio.run(get_wheel("u1"))

        options = {s["voucher_id"]: s for s in wheel["slots"]}
        assert set(options) == {"a", "b", None}
        assert options["a"]["option"] == "Giảm 50K"
        assert options["a"]["owned"] is True
        assert options["b"]["option"] == "B"
        assert options[None]["is_no_win"] is True
        assert options[None]["option"] == settings.NO_WIN_LABEL
        assert wheel["slots"][-1]["is_no_win"] is True
        assert wheel["win_probability"] == pytest.approx(0.6667)

    def test_empty_catalog(self):
        wheel = asyncio.run(get_wheel("u1"))
        assert len(wheel["slots"]) == 1
        assert wheel["win_probability"] == 0


class TestSpinForUser:
    def test_win_is_granted_and_recorded(self, fake_db, seed_voucher, seed_user, use_wheel):
        seed_voucher("a")
        seed_user("u1")
        use_wheel([0])

        result = asyncio.run(spin_for_user("u1", MORNING))

        assert result["status"] == SpinStatus.GRANTED
        assert result["won"] is True
        assert result["voucher"].id == "a"
        assert result["quantity"] == 1
        assert fake_db.data["users"]["u1"]["vouchers"] == {"a": 1}

        record = fake_db.data["spins"]["u1_2025-06-01"]
        assert record["status"] == "granted"
        assert record["voucher_id"] == "a"

    def test_no_win(self, fake_db, seed_voucher, seed_user, use_wheel):
        seed_voucher("a")
        seed_user("u1")
        use_wheel([1])

        result = asyncio.run(spin_for_user("u1", MORNING))

        assert result["status"] == SpinStatus.NO_WIN
        assert result["won"] is False
        assert result["voucher"] is None
        assert result["message"] == "Better luck next time!"
        assert fake_db.data["users"]["u1"]["vouchers"] == {}
        assert fake_db.data["spins"]["u1_2025-06-01"]["status"] == "no_win"

    def test_one_spin_per_day(self, seed_voucher, seed_user, use_wheel):
        seed_voucher("a")
        seed_user("u1")
        use_wheel([1, 1, 1])

        asyncio.run(spin_for_user("u1", MORNING))
        with pytest.raises(HTTPException) as exc:
            asyncio.run(spin_for_user("u1", MORNING.replace(hour=10)))
        assert exc.value.status_code == 429

        # next local day
        asyncio.run(spin_for_user("u1", datetime(2025, 6, 1, 17, 0, tzinfo=timezone.utc)))

    def test_limit_can_be_disabled(self, monkeypatch, fake_db, seed_voucher, seed_user, use_wheel):
        monkeypatch.setattr(settings, "ENFORCE_DAILY_SPIN_LIMIT", False)
        seed_voucher("a")
        seed_user("u1")
        use_wheel([0, 0])

        asyncio.run(spin_for_user("u1", MORNING))
        result = asyncio.run(spin_for_user("u1", MORNING))

        assert result["quantity"] == 2
        assert fake_db.data.get("spins", {}) == {}

    def test_commit_failure_releases_spin(self, fake_db, seed_voucher, seed_user, use_wheel):
        async def failing_commit(user_uid, voucher_id):
            raise RuntimeError("deadline exceeded")

        seed_voucher("a")
        seed_user("u1")
        use_wheel([0], commit=failing_commit)

        with pytest.raises(HTTPException) as exc:
            asyncio.run(spin_for_user("u1", MORNING))

        assert exc.value.status_code == 502
        assert fake_db.data["users"]["u1"]["vouchers"] == {}
        assert "u1_2025-06-01" not in fake_db.data["spins"]

        use_wheel([0])
        result = asyncio.run(spin_for_user("u1", MORNING))
        assert result["won"] is True

    def test_unexpected_error_releases_spin(self, monkeypatch, fake_db, seed_user, use_wheel):
        async def broken_catalog(now=None):
            raise RuntimeError("catalog unavailable")

        monkeypatch.setattr(lucky_wheel, "get_eligible_vouchers", broken_catalog)
        seed_user("u1")
        use_wheel([0])

        with pytest.raises(RuntimeError):
            asyncio.run(spin_for_user("u1", MORNING))

        assert "u1_2025-06-01" not in fake_db.data["spins"]

    def test_spin_in_progress(self, monkeypatch, fake_db, seed_user, use_wheel):
        wheel = use_wheel([])
        monkeypatch.setattr(wheel, "is_spinning", lambda user_uid: True)
        seed_user("u1")

        with pytest.raises(HTTPException) as exc:
            asyncio.run(spin_for_user("u1", MORNING))

        assert exc.value.status_code == 409
        assert "u1_2025-06-01" not in fake_db.data.get("spins", {})

    def test_grant_saved_but_read_back_fails(self, monkeypatch, fake_db, seed_voucher, seed_user, use_wheel):
        async def unreadable(user_uid):
            raise RuntimeError("read timed out")

        seed_voucher("a")
        seed_user("u1")
        use_wheel([0, 0])
        # only the read inside grant_voucher fails
        monkeypatch.setattr(user_vouchers, "get_owned_vouchers", unreadable)

        result = asyncio.run(spin_for_user("u1", MORNING))

        assert result["status"] == SpinStatus.GRANTED
        assert result["quantity"] == 1
        assert fake_db.data["users"]["u1"]["vouchers"] == {"a": 1}
        assert fake_db.data["spins"]["u1_2025-06-01"]["status"] == "granted"

        with pytest.raises(HTTPException) as exc:
            asyncio.run(spin_for_user("u1", MORNING))
        assert exc.value.status_code == 429
        assert fake_db.data["users"]["u1"]["vouchers"] == {"a": 1}

    def test_outcome_write_failure_keeps_grant(self, monkeypatch, fake_db, seed_voucher, seed_user, use_wheel):
        async def broken_complete(user_uid, day, status, voucher_id):
            raise RuntimeError("update failed")

        seed_voucher("a")
        seed_user("u1")
        use_wheel([0, 0])
        monkeypatch.setattr(lucky_wheel, "complete_spin", broken_complete)

        result = asyncio.run(spin_for_user("u1", MORNING))

        assert result["won"] is True
        assert fake_db.data["users"]["u1"]["vouchers"] == {"a": 1}
        assert fake_db.data["spins"]["u1_2025-06-01"]["status"] == "spinning"

        with pytest.raises(HTTPException) as exc:
            asyncio.run(spin_for_user("u1", MORNING))
        assert exc.value.status_code == 429
