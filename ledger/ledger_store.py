# ledger/ledger_store.py
"""
Authoritative record of balances, mining claims and commission entries.

Every primitive here runs inside the caller's unit of work (see
``LedgerStore.atomic``). Balance changes are single conditional UPDATE
statements so that check-and-modify happens in one step at the database,
whatever the isolation level.
"""
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from extensions import db
from ledger.config import LedgerConfig
from ledger.errors import InsufficientFunds, InvalidAmount, InvalidState, NotFound, ValidationError
from logger import ledger_logger
from models import CommissionEntry, CommissionSource, MiningClaim, User
from utils import retry_read

CENTS = Decimal("0.01")
# Numeric(18, 2) holds at most 16 integer digits
MAX_AMOUNT = Decimal("1e16")


def to_money(value, field="amount") -> Decimal:
    """
    Parse a monetary input into a positive Decimal rounded to cents.
    Rejects booleans, blanks, NaN/Infinity, anything <= 0 and anything
    too large for a money column.
    """
    if value is None or isinstance(value, bool) or value == "":
        raise InvalidAmount(f"{field} is required and must be a positive number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"{field} must be a number")
    if not amount.is_finite():
        raise InvalidAmount(f"{field} must be a finite number")
    if amount >= MAX_AMOUNT:
        raise InvalidAmount(f"{field} is too large")
    try:
        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(f"{field} must be a number")
    if amount <= 0:
        raise InvalidAmount(f"{field} must be greater than zero")
    return amount


def to_count(value, field) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive whole number")
    try:
        count = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive whole number")
    if count <= 0:
        raise ValidationError(f"{field} must be a positive whole number")
    return count


class LedgerStore:

    def __init__(self, config: LedgerConfig):
        self.config = config

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------
    @contextmanager
    def atomic(self):
        """Commit everything done inside the block, or nothing at all."""
        try:
            yield db.session
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def lock_users(self, user_ids: Iterable[int]) -> List[User]:
        """
        Row-lock the given users in ascending id order. Every multi-row
        balance change goes through here first so two transactions never
        wait on each other's rows in opposite order.
        """
        ids = sorted({uid for uid in user_ids if uid is not None})
        if not ids:
            return []
        return db.session.execute(
            select(User).where(User.id.in_(ids)).order_by(User.id).with_for_update()
        ).scalars().all()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_user(self, user_id: int) -> User:
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def _reload_user(self, user_id: int) -> User:
        return db.session.get(User, user_id, populate_existing=True)

    @retry_read()
    def list_mining_claims(self, user_id: int, limit: int = 100):
        return MiningClaim.query.filter_by(user_id=user_id) \
            .order_by(MiningClaim.created_at.desc(), MiningClaim.id.desc()) \
            .limit(limit).all()

    @retry_read()
    def list_commissions(self, beneficiary_id: int, limit: int = 100):
        return CommissionEntry.query.filter_by(beneficiary_id=beneficiary_id) \
            .order_by(CommissionEntry.created_at.desc(), CommissionEntry.id.desc()) \
            .limit(limit).all()

    # ------------------------------------------------------------------
    # Balance primitives
    # ------------------------------------------------------------------
    def credit_balance(self, user_id: int, amount, reason: str) -> User:
        amount = to_money(amount)
        result = db.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(balance=User.balance + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound(f"User {user_id} not found")

        ledger_logger.info(f"CREDIT user={user_id} amount={amount} reason={reason}")
        return self._reload_user(user_id)

    def debit_balance(self, user_id: int, amount, reason: str) -> User:
        amount = to_money(amount)
        result = db.session.execute(
            update(User)
            .where(User.id == user_id, User.balance >= amount)
            .values(balance=User.balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            if db.session.get(User, user_id) is None:
                raise NotFound(f"User {user_id} not found")
            ledger_logger.info(f"DEBIT REFUSED user={user_id} amount={amount} reason={reason}")
            raise InsufficientFunds("Insufficient balance")

        ledger_logger.info(f"DEBIT user={user_id} amount={amount} reason={reason}")
        return self._reload_user(user_id)

    # ------------------------------------------------------------------
    # Append-only records
    # ------------------------------------------------------------------
    def record_mining_claim(self, user_id: int, amount, machine_count) -> MiningClaim:
        amount = to_money(amount)
        machine_count = to_count(machine_count, "machinesClaimed")

        claim = MiningClaim(user_id=user_id, amount=amount, machines_claimed=machine_count)
        db.session.add(claim)
        db.session.flush()

        self.credit_balance(user_id, amount, reason=f"claim:{claim.id}")
        ledger_logger.info(f"MINING CLAIM id={claim.id} user={user_id} amount={amount} machines={machine_count}")
        return claim

    def record_commission(self, beneficiary_id: int, source_user_id: int, level: int,
                          source_type: str, amount, source_ref: str) -> CommissionEntry:
        amount = to_money(amount)
        if level not in (1, 2):
            raise ValidationError(f"Invalid commission level: {level}")
        source_type = CommissionSource(source_type).value
        if beneficiary_id == source_user_id:
            raise ValidationError("A user cannot earn commission on their own activity")

        entry = CommissionEntry(
            beneficiary_id=beneficiary_id,
            source_user_id=source_user_id,
            level=level,
            source_type=source_type,
            source_ref=source_ref,
            amount=amount,
        )
        db.session.add(entry)
        try:
            db.session.flush()
        except IntegrityError:
            # the whole unit of work is rolled back by atomic()
            raise InvalidState(f"Commission for {source_ref} level {level} was already posted")

        result = db.session.execute(
            update(User)
            .where(User.id == beneficiary_id)
            .values(
                balance=User.balance + amount,
                total_referral_earnings=User.total_referral_earnings + amount,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound(f"User {beneficiary_id} not found")

        ledger_logger.info(
            f"COMMISSION L{level} {source_type} {source_ref}: user={beneficiary_id} "
            f"from={source_user_id} amount={amount}"
        )
        self._reload_user(beneficiary_id)
        return entry
