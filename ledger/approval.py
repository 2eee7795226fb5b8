"""
Approval workflow for deposit and withdrawal requests.

    pending --approve--> approved   (terminal)
    pending --reject---> rejected   (terminal)

Deposits move money on approval (credit + referral commissions). Withdrawals
move money on submission (debit) and give it back on rejection (refund).
"""
import enum
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from sqlalchemy import select, update

from extensions import db
from ledger.commission import CommissionEngine
from ledger.config import LedgerConfig
from ledger.errors import Forbidden, InvalidAmount, InvalidState, LedgerError, NotFound, ValidationError
from ledger.ledger_store import CENTS, LedgerStore, to_money
from logger import ledger_logger
from models import CommissionSource, DepositRequest, PaymentMethod, RequestStatus, WithdrawalRequest


class Decision(enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        aliases = {"approved": cls.APPROVE, "rejected": cls.REJECT}
        normalized = str(value or "").strip().lower()
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError("decision must be 'approve' or 'reject'")


class Transition(NamedTuple):
    ok: bool
    new_state: Optional[RequestStatus] = None
    error: Optional[LedgerError] = None


_TRANSITIONS = {
    (RequestStatus.PENDING, Decision.APPROVE): RequestStatus.APPROVED,
    (RequestStatus.PENDING, Decision.REJECT): RequestStatus.REJECTED,
}


def transition(current: RequestStatus, decision: Decision) -> Transition:
    """Pure state machine step. Terminal states accept no decision."""
    new_state = _TRANSITIONS.get((current, decision))
    if new_state is None:
        return Transition(False, error=InvalidState(f"Request is already {current.value}"))
    return Transition(True, new_state=new_state)


def _parse_method(value) -> str:
    try:
        return PaymentMethod(str(value or "").strip().lower()).value
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"method must be one of: {allowed}")


def parse_status(value) -> RequestStatus:
    try:
        return RequestStatus(str(value or "").strip().lower())
    except ValueError:
        raise ValidationError("status must be one of: pending, approved, rejected")


def _required_text(payload, key, max_length=120) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{key} is too long")
    return value


def _optional_text(payload, key, max_length=500) -> Optional[str]:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    if len(value) > max_length:
        raise ValidationError(f"{key} is too long")
    return value.strip() or None


class ApprovalWorkflow:

    def __init__(self, store: LedgerStore, commission_engine: CommissionEngine, config: LedgerConfig):
        self.store = store
        self.commission_engine = commission_engine
        self.config = config

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _ensure_admin(admin):
        if admin is None or not getattr(admin, "is_admin", False):
            raise Forbidden("Admin access required")

    @staticmethod
    def _load_for_update(model, request_id):
        instance = db.session.execute(
            select(model).where(model.id == request_id).with_for_update()
        ).scalar_one_or_none()
        if instance is None:
            raise NotFound(f"{model.__name__} {request_id} not found")
        return instance

    @staticmethod
    def _apply_transition(model, request_id, new_state: RequestStatus, admin):
        """
        Move a pending row to ``new_state``. The WHERE on status makes the
        write itself the guard: a concurrent decision finds zero rows.
        """
        result = db.session.execute(
            update(model)
            .where(model.id == request_id, model.status == RequestStatus.PENDING.value)
            .values(
                status=new_state.value,
                processed_by=admin.user_id,
                processed_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidState("Request has already been processed")

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------
    def submit_deposit(self, user_id: int, payload: dict) -> DepositRequest:
        amount = to_money(payload.get("amount"))
        if amount < self.config.min_deposit:
            raise InvalidAmount(f"Minimum deposit is ${self.config.min_deposit}")
        method = _parse_method(payload.get("method"))
        transaction_id = _required_text(payload, "transactionId")
        screenshot_url = _optional_text(payload, "screenshotUrl")

        with self.store.atomic():
            self.store.get_user(user_id)
            deposit = DepositRequest(
                user_id=user_id,
                amount=amount,
                local_amount=(amount * self.config.deposit_rate).quantize(CENTS),
                method=method,
                transaction_id=transaction_id,
                screenshot_url=screenshot_url,
                status=RequestStatus.PENDING.value,
            )
            db.session.add(deposit)
            db.session.flush()
            ledger_logger.info(
                f"DEPOSIT SUBMITTED id={deposit.id} user={user_id} amount={amount} "
                f"local={deposit.local_amount} method={method}"
            )
        return deposit

    def decide_deposit(self, request_id: int, decision, admin) -> DepositRequest:
        self._ensure_admin(admin)
        decision = Decision.parse(decision)

        with self.store.atomic():
            deposit = self._load_for_update(DepositRequest, request_id)
            outcome = transition(RequestStatus(deposit.status), decision)
            if not outcome.ok:
                raise outcome.error

            if outcome.new_state is RequestStatus.APPROVED:
                participants = self.commission_engine.participants(deposit.user_id)
                self.store.lock_users(participants)
                self._apply_transition(DepositRequest, request_id, outcome.new_state, admin)

                source_ref = f"deposit:{request_id}"
                self.store.credit_balance(deposit.user_id, deposit.amount, reason=source_ref)
                self.commission_engine.on_qualifying_event(
                    deposit.user_id, deposit.amount, CommissionSource.DEPOSIT,
                    source_ref, chain=participants[1:],
                )
            else:
                self._apply_transition(DepositRequest, request_id, outcome.new_state, admin)

            ledger_logger.info(
                f"DEPOSIT {outcome.new_state.value.upper()} id={request_id} by admin={admin.user_id}"
            )

        return db.session.get(DepositRequest, request_id, populate_existing=True)

    def list_deposits(self, user_id: int):
        return DepositRequest.query.filter_by(user_id=user_id) \
            .order_by(DepositRequest.created_at.desc(), DepositRequest.id.desc()).all()

    def deposits_by_status(self, status=RequestStatus.PENDING.value):
        return DepositRequest.query.filter_by(status=parse_status(status).value) \
            .order_by(DepositRequest.created_at.asc(), DepositRequest.id.asc()).all()

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------
    def submit_withdrawal(self, user_id: int, payload: dict) -> WithdrawalRequest:
        amount = to_money(payload.get("amount"))
        if amount < self.config.min_withdrawal:
            raise InvalidAmount(f"Minimum withdrawal is ${self.config.min_withdrawal}")
        method = _parse_method(payload.get("method"))
        account_number = _required_text(payload, "accountNumber")
        account_name = _optional_text(payload, "accountName", max_length=120)

        with self.store.atomic():
            # reserve the funds first; a short balance stops here
            self.store.debit_balance(user_id, amount, reason="withdrawal:reserve")
            withdrawal = WithdrawalRequest(
                user_id=user_id,
                amount=amount,
                method=method,
                account_number=account_number,
                account_name=account_name,
                status=RequestStatus.PENDING.value,
            )
            db.session.add(withdrawal)
            db.session.flush()
            ledger_logger.info(
                f"WITHDRAWAL SUBMITTED id={withdrawal.id} user={user_id} amount={amount} method={method}"
            )
        return withdrawal

    def decide_withdrawal(self, request_id: int, decision, admin) -> WithdrawalRequest:
        self._ensure_admin(admin)
        decision = Decision.parse(decision)

        with self.store.atomic():
            withdrawal = self._load_for_update(WithdrawalRequest, request_id)
            outcome = transition(RequestStatus(withdrawal.status), decision)
            if not outcome.ok:
                raise outcome.error

            self._apply_transition(WithdrawalRequest, request_id, outcome.new_state, admin)
            if outcome.new_state is RequestStatus.REJECTED:
                self.store.credit_balance(
                    withdrawal.user_id, withdrawal.amount, reason=f"withdrawal:{request_id}:refund"
                )

            ledger_logger.info(
                f"WITHDRAWAL {outcome.new_state.value.upper()} id={request_id} by admin={admin.user_id}"
            )

        return db.session.get(WithdrawalRequest, request_id, populate_existing=True)

    def list_withdrawals(self, user_id: int):
        return WithdrawalRequest.query.filter_by(user_id=user_id) \
            .order_by(WithdrawalRequest.created_at.desc(), WithdrawalRequest.id.desc()).all()

    def withdrawals_by_status(self, status=RequestStatus.PENDING.value):
        return WithdrawalRequest.query.filter_by(status=parse_status(status).value) \
            .order_by(WithdrawalRequest.created_at.asc(), WithdrawalRequest.id.asc()).all()
