"""Tests for the balance primitives and append-only records."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from extensions import db
from ledger.errors import InsufficientFunds, InvalidAmount, InvalidState, NotFound, ValidationError
from models import CommissionEntry, CommissionSource, MiningClaim, User


class TestBalances:
    def test_credit(self, ledger, make_user):
        user = make_user(balance="10")
        with ledger.store.atomic():
            updated = ledger.store.credit_balance(user.id, "2.50", reason="test")
        assert updated.balance == Decimal("12.50")

    def test_debit(self, ledger, make_user, reload):
        user = make_user(balance="30")
        with ledger.store.atomic():
            ledger.store.debit_balance(user.id, 30, reason="test")
        assert reload(User, user.id).balance == Decimal("0.00")

    def test_debit_refuses_overdraft(self, ledger, make_user, reload):
        user = make_user(balance="30")
        with pytest.raises(InsufficientFunds):
            with ledger.store.atomic():
                ledger.store.debit_balance(user.id, 50, reason="test")
        assert reload(User, user.id).balance == Decimal("30.00")

    def test_unknown_user(self, ledger):
        with pytest.raises(NotFound):
            with ledger.store.atomic():
                ledger.store.credit_balance(9999, 1, reason="test")
        with pytest.raises(NotFound):
            with ledger.store.atomic():
                ledger.store.debit_balance(9999, 1, reason="test")

    @pytest.mark.parametrize("amount", [0, -1, "abc", None])
    def test_invalid_amounts(self, ledger, make_user, amount):
        user = make_user(balance="5")
        with pytest.raises(InvalidAmount):
            ledger.store.credit_balance(user.id, amount, reason="test")
        with pytest.raises(InvalidAmount):
            ledger.store.debit_balance(user.id, amount, reason="test")

    def test_atomic_rolls_back_everything(self, ledger, make_user, reload):
        user = make_user(balance="10")
        with pytest.raises(InsufficientFunds):
            with ledger.store.atomic():
                ledger.store.credit_balance(user.id, 5, reason="first")
                ledger.store.debit_balance(user.id, 100, reason="second")
        assert reload(User, user.id).balance == Decimal("10.00")


class TestRecords:
    def test_record_mining_claim_credits_owner(self, ledger, make_user, reload):
        user = make_user()
        with ledger.store.atomic():
            claim = ledger.store.record_mining_claim(user.id, "12.50", 3)
        stored = reload(MiningClaim, claim.id)
        assert stored.amount == Decimal("12.50")
        assert stored.machines_claimed == 3
        assert reload(User, user.id).balance == Decimal("12.50")

    def test_record_commission_updates_earnings(self, ledger, make_user, reload):
        upline = make_user()
        downline = make_user(referrer=upline)
        with ledger.store.atomic():
            ledger.store.record_commission(upline.id, downline.id, 1, CommissionSource.DEPOSIT, "2.00", "deposit:1")
        fresh = reload(User, upline.id)
        assert fresh.balance == Decimal("2.00")
        assert fresh.total_referral_earnings == Decimal("2.00")

    def test_duplicate_commission_is_refused(self, ledger, make_user, reload):
        upline = make_user()
        downline = make_user(referrer=upline)
        with pytest.raises(InvalidState):
            with ledger.store.atomic():
                ledger.store.record_commission(upline.id, downline.id, 1, "deposit", "1.00", "deposit:7")
                ledger.store.record_commission(upline.id, downline.id, 1, "deposit", "1.00", "deposit:7")
        assert CommissionEntry.query.count() == 0
        assert reload(User, upline.id).balance == Decimal("0.00")

    def test_self_commission_is_refused(self, ledger, make_user):
        user = make_user()
        with pytest.raises(ValidationError):
            ledger.store.record_commission(user.id, user.id, 1, "daily_claim", "1.00", "claim:1")

    def test_level_outside_two_is_refused(self, ledger, make_user):
        upline = make_user()
        downline = make_user(referrer=upline)
        with pytest.raises(ValidationError):
            ledger.store.record_commission(upline.id, downline.id, 3, "daily_claim", "1.00", "claim:1")

    def test_listing_is_newest_first(self, ledger, make_user):
        user = make_user()
        for amount in ("1.00", "2.00", "3.00"):
            with ledger.store.atomic():
                ledger.store.record_mining_claim(user.id, amount, 1)
        claims = ledger.store.list_mining_claims(user.id)
        assert [c.amount for c in claims] == [Decimal("3.00"), Decimal("2.00"), Decimal("1.00")]


def test_balance_never_negative_at_storage_level(make_user):
    user = make_user(balance="1")
    user.balance = Decimal("-1")
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()
