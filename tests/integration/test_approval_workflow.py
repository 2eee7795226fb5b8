"""Tests for deposit and withdrawal approval."""

from decimal import Decimal

import pytest

from ledger.credentials import Principal
from ledger.errors import Forbidden, InsufficientFunds, InvalidAmount, InvalidState, NotFound, ValidationError
from models import CommissionEntry, DepositRequest, User, WithdrawalRequest


def deposit_payload(**overrides):
    payload = {"amount": 20, "transactionId": "TX-1001", "screenshotUrl": "uploads/tx1001.png", "method": "easypaisa"}
    payload.update(overrides)
    return payload


def withdrawal_payload(**overrides):
    payload = {"amount": 10, "method": "jazzcash", "accountNumber": "03001234567", "accountName": "Ali"}
    payload.update(overrides)
    return payload


@pytest.fixture
def admin(make_user, principal_for):
    return principal_for(make_user(username="boss", is_admin=True))


@pytest.fixture
def family(make_user):
    grandparent = make_user(username="grandparent")
    parent = make_user(username="parent", referrer=grandparent)
    child = make_user(username="child", referrer=parent)
    return grandparent, parent, child


# ----------------------------------------------------------------------------------
# Deposits
# ----------------------------------------------------------------------------------
class TestDeposits:
    def test_submit_computes_local_amount(self, ledger, make_user, reload):
        user = make_user()
        deposit = ledger.approvals.submit_deposit(user.id, deposit_payload(localAmount=1))

        stored = reload(DepositRequest, deposit.id)
        assert stored.status == "pending"
        assert stored.amount == Decimal("20.00")
        assert stored.local_amount == Decimal("5600.00")
        assert reload(User, user.id).balance == Decimal("0.00")

    def test_minimum_deposit(self, ledger, make_user):
        user = make_user()
        with pytest.raises(InvalidAmount):
            ledger.approvals.submit_deposit(user.id, deposit_payload(amount="4.99"))

    @pytest.mark.parametrize("overrides", [
        {"method": "paypal"},
        {"method": None},
        {"transactionId": ""},
        {"transactionId": None},
        {"transactionId": "x" * 121},
    ])
    def test_submit_validation(self, ledger, make_user, overrides):
        user = make_user()
        with pytest.raises(ValidationError):
            ledger.approvals.submit_deposit(user.id, deposit_payload(**overrides))
        assert DepositRequest.query.count() == 0

    def test_approve_credits_and_pays_commissions(self, ledger, family, admin, reload):
        grandparent, parent, child = family
        deposit = ledger.approvals.submit_deposit(child.id, deposit_payload())

        decided = ledger.approvals.decide_deposit(deposit.id, "approve", admin)

        assert decided.status == "approved"
        assert decided.processed_by == admin.user_id
        assert decided.processed_at is not None
        assert reload(User, child.id).balance == Decimal("20.00")
        assert reload(User, parent.id).balance == Decimal("2.00")
        assert reload(User, grandparent.id).balance == Decimal("0.80")
        refs = {e.source_ref for e in CommissionEntry.query.all()}
        assert refs == {f"deposit:{deposit.id}"}

    def test_failed_level_two_commission_undoes_approval(self, ledger, family, admin, reload, monkeypatch):
        grandparent, parent, child = family
        deposit = ledger.approvals.submit_deposit(child.id, deposit_payload())

        record_commission = ledger.store.record_commission

        def failing_at_level_two(**kwargs):
            if kwargs["level"] == 2:
                raise RuntimeError("commission write failed")
            return record_commission(**kwargs)

        monkeypatch.setattr(ledger.store, "record_commission", failing_at_level_two)
        with pytest.raises(RuntimeError):
            ledger.approvals.decide_deposit(deposit.id, "approve", admin)

        assert reload(DepositRequest, deposit.id).status == "pending"
        assert reload(User, child.id).balance == Decimal("0.00")
        assert reload(User, parent.id).balance == Decimal("0.00")
        assert reload(User, grandparent.id).balance == Decimal("0.00")
        assert CommissionEntry.query.count() == 0

        # the request is still decidable once the fault is gone
        monkeypatch.undo()
        assert ledger.approvals.decide_deposit(deposit.id, "approve", admin).status == "approved"
        assert reload(User, parent.id).balance == Decimal("2.00")

    def test_reject_moves_no_money(self, ledger, family, admin, reload):
        grandparent, parent, child = family
        deposit = ledger.approvals.submit_deposit(child.id, deposit_payload())

        decided = ledger.approvals.decide_deposit(deposit.id, "reject", admin)

        assert decided.status == "rejected"
        assert reload(User, child.id).balance == Decimal("0.00")
        assert reload(User, parent.id).balance == Decimal("0.00")
        assert CommissionEntry.query.count() == 0

    @pytest.mark.parametrize("first,second", [
        ("approve", "approve"), ("approve", "reject"), ("reject", "approve"), ("reject", "reject"),
    ])
    def test_second_decision_is_refused(self, ledger, family, admin, reload, first, second):
        grandparent, parent, child = family
        deposit = ledger.approvals.submit_deposit(child.id, deposit_payload())
        ledger.approvals.decide_deposit(deposit.id, first, admin)
        balances = [reload(User, u.id).balance for u in family]

        with pytest.raises(InvalidState):
            ledger.approvals.decide_deposit(deposit.id, second, admin)

        assert [reload(User, u.id).balance for u in family] == balances
        assert reload(DepositRequest, deposit.id).status == ("approved" if first == "approve" else "rejected")

    def test_non_admin_cannot_decide(self, ledger, family):
        grandparent, parent, child = family
        deposit = ledger.approvals.submit_deposit(child.id, deposit_payload())
        with pytest.raises(Forbidden):
            ledger.approvals.decide_deposit(deposit.id, "approve", Principal(parent.id, "parent", False))
        with pytest.raises(Forbidden):
            ledger.approvals.decide_deposit(deposit.id, "approve", None)

    def test_unknown_request(self, ledger, admin):
        with pytest.raises(NotFound):
            ledger.approvals.decide_deposit(31337, "approve", admin)

    def test_bad_decision(self, ledger, family, admin):
        deposit = ledger.approvals.submit_deposit(family[2].id, deposit_payload())
        with pytest.raises(ValidationError):
            ledger.approvals.decide_deposit(deposit.id, "escalate", admin)

    def test_listings(self, ledger, family, admin):
        child = family[2]
        first = ledger.approvals.submit_deposit(child.id, deposit_payload(transactionId="TX-1"))
        second = ledger.approvals.submit_deposit(child.id, deposit_payload(transactionId="TX-2"))
        ledger.approvals.decide_deposit(first.id, "approve", admin)

        assert [d.id for d in ledger.approvals.deposits_by_status("pending")] == [second.id]
        assert [d.id for d in ledger.approvals.deposits_by_status("approved")] == [first.id]
        assert {d.id for d in ledger.approvals.list_deposits(child.id)} == {first.id, second.id}
        with pytest.raises(ValidationError):
            ledger.approvals.deposits_by_status("lost")


# ----------------------------------------------------------------------------------
# Withdrawals
# ----------------------------------------------------------------------------------
class TestWithdrawals:
    def test_submit_reserves_funds(self, ledger, make_user, reload):
        user = make_user(balance="30")
        withdrawal = ledger.approvals.submit_withdrawal(user.id, withdrawal_payload())

        assert reload(WithdrawalRequest, withdrawal.id).status == "pending"
        assert reload(User, user.id).balance == Decimal("20.00")

    def test_insufficient_balance(self, ledger, make_user, reload):
        user = make_user(balance="30")
        with pytest.raises(InsufficientFunds):
            ledger.approvals.submit_withdrawal(user.id, withdrawal_payload(amount=50))

        assert reload(User, user.id).balance == Decimal("30.00")
        assert WithdrawalRequest.query.count() == 0

    def test_exact_balance_can_be_withdrawn(self, ledger, make_user, reload):
        user = make_user(balance="30")
        ledger.approvals.submit_withdrawal(user.id, withdrawal_payload(amount=30))
        assert reload(User, user.id).balance == Decimal("0.00")

    @pytest.mark.parametrize("overrides", [
        {"method": "cheque"},
        {"accountNumber": ""},
        {"accountNumber": 3001234567},
    ])
    def test_submit_validation(self, ledger, make_user, reload, overrides):
        user = make_user(balance="30")
        with pytest.raises(ValidationError):
            ledger.approvals.submit_withdrawal(user.id, withdrawal_payload(**overrides))
        assert reload(User, user.id).balance == Decimal("30.00")

    def test_approve_keeps_funds_out(self, ledger, make_user, admin, reload):
        user = make_user(balance="30")
        withdrawal = ledger.approvals.submit_withdrawal(user.id, withdrawal_payload())

        decided = ledger.approvals.decide_withdrawal(withdrawal.id, "approve", admin)

        assert decided.status == "approved"
        assert reload(User, user.id).balance == Decimal("20.00")

    def test_reject_refunds(self, ledger, make_user, admin, reload):
        user = make_user(balance="30")
        withdrawal = ledger.approvals.submit_withdrawal(user.id, withdrawal_payload(amount="12.34"))
        assert reload(User, user.id).balance == Decimal("17.66")

        decided = ledger.approvals.decide_withdrawal(withdrawal.id, "reject", admin)

        assert decided.status == "rejected"
        assert reload(User, user.id).balance == Decimal("30.00")

    def test_refund_happens_once(self, ledger, make_user, admin, reload):
        user = make_user(balance="30")
        withdrawal = ledger.approvals.submit_withdrawal(user.id, withdrawal_payload())
        ledger.approvals.decide_withdrawal(withdrawal.id, "reject", admin)

        with pytest.raises(InvalidState):
            ledger.approvals.decide_withdrawal(withdrawal.id, "reject", admin)
        assert reload(User, user.id).balance == Decimal("30.00")

    def test_withdrawals_pay_no_commission(self, ledger, family, admin):
        grandparent, parent, child = family
        ledger.mining.claim(child.id, "40", 1)
        before = CommissionEntry.query.count()

        withdrawal = ledger.approvals.submit_withdrawal(child.id, withdrawal_payload(amount=20))
        ledger.approvals.decide_withdrawal(withdrawal.id, "approve", admin)

        assert CommissionEntry.query.count() == before

    def test_listings(self, ledger, make_user, admin):
        user = make_user(balance="100")
        first = ledger.approvals.submit_withdrawal(user.id, withdrawal_payload())
        second = ledger.approvals.submit_withdrawal(user.id, withdrawal_payload())
        ledger.approvals.decide_withdrawal(second.id, "reject", admin)

        assert [w.id for w in ledger.approvals.withdrawals_by_status()] == [first.id]
        assert [w.id for w in ledger.approvals.withdrawals_by_status("rejected")] == [second.id]
        assert len(ledger.approvals.list_withdrawals(user.id)) == 2
