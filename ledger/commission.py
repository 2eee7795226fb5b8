# ledger/commission.py
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from flask import current_app

from ledger.config import LedgerConfig
from ledger.ledger_store import CENTS, LedgerStore, to_money
from ledger.referral_tree import ReferralTreeHelper
from models import CommissionEntry, CommissionSource


class CommissionEngine:
    """
    Two-level referral commissions on qualifying events.

    Level 1 (the direct upline) earns ``level_one_rate`` of the event amount,
    level 2 (the upline's upline) earns ``level_two_rate``. Nothing propagates
    beyond level 2. Posting never commits; it joins the transaction that marks
    the source event processed.
    """

    def __init__(self, store: LedgerStore, config: LedgerConfig):
        self.store = store
        self.config = config

    def commission_for(self, amount, level: int) -> Decimal:
        amount = to_money(amount)
        return (amount * self.config.rate_for_level(level)).quantize(CENTS, rounding=ROUND_HALF_UP)

    def participants(self, source_user_id: int) -> Tuple[int, Optional[int], Optional[int]]:
        """The (at most three) user rows an event touches."""
        level_one, level_two = ReferralTreeHelper.upline_chain(source_user_id)
        return source_user_id, level_one, level_two

    def on_qualifying_event(self, source_user_id: int, amount, source_type,
                            source_ref: str, chain=None) -> List[CommissionEntry]:
        source_type = CommissionSource(source_type).value
        if chain is None:
            chain = ReferralTreeHelper.upline_chain(source_user_id)

        entries = []
        for level, beneficiary_id in enumerate(chain, start=1):
            if beneficiary_id is None:
                # no upline here means none above it either
                break
            commission = self.commission_for(amount, level)
            if commission <= 0:
                current_app.logger.info(
                    f"Level {level} commission for {source_ref} rounds to zero, skipping"
                )
                continue
            entries.append(self.store.record_commission(
                beneficiary_id=beneficiary_id,
                source_user_id=source_user_id,
                level=level,
                source_type=source_type,
                amount=commission,
                source_ref=source_ref,
            ))

        current_app.logger.info(
            f"{source_type} {source_ref} by user {source_user_id}: posted {len(entries)} commission(s)"
        )
        return entries
