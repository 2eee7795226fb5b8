from datetime import datetime, timedelta, timezone
from typing import Optional

from extensions import db
from ledger.commission import CommissionEngine
from ledger.config import LedgerConfig
from ledger.errors import InvalidAmount, InvalidState
from ledger.ledger_store import LedgerStore, to_count, to_money
from models import CommissionSource, MiningClaim


class MiningService:
    """
    Mining rewards are credited immediately; no approval step. A user may
    claim once per interval, and never more than the per-machine cap times
    the number of machines claimed for.
    """

    def __init__(self, store: LedgerStore, commission_engine: CommissionEngine, config: LedgerConfig):
        self.store = store
        self.commission_engine = commission_engine
        self.config = config

    def claim(self, user_id: int, amount, machines_claimed) -> MiningClaim:
        amount = to_money(amount)
        machines_claimed = to_count(machines_claimed, "machinesClaimed")

        ceiling = self.config.max_claim_per_machine * machines_claimed
        if amount > ceiling:
            raise InvalidAmount(f"Claim cannot exceed {ceiling} for {machines_claimed} machine(s)")

        with self.store.atomic():
            participants = self.commission_engine.participants(user_id)
            self.store.lock_users(participants)

            # checked under the claimant's row lock so two claims cannot both pass
            next_at = self.next_claim_at(user_id)
            if next_at is not None and next_at > datetime.now(timezone.utc):
                raise InvalidState(f"Next claim available at {next_at.isoformat()}")

            claim = self.store.record_mining_claim(user_id, amount, machines_claimed)
            self.commission_engine.on_qualifying_event(
                user_id, amount, CommissionSource.DAILY_CLAIM,
                f"claim:{claim.id}", chain=participants[1:],
            )

        return db.session.get(MiningClaim, claim.id)

    def next_claim_at(self, user_id: int) -> Optional[datetime]:
        """When the user may claim again, or None if they have never claimed."""
        last = (
            MiningClaim.query.filter_by(user_id=user_id)
            .order_by(MiningClaim.created_at.desc(), MiningClaim.id.desc())
            .first()
        )
        if last is None or last.created_at is None:
            return None
        claimed_at = last.created_at
        if claimed_at.tzinfo is None:
            # SQLite hands back naive UTC timestamps
            claimed_at = claimed_at.replace(tzinfo=timezone.utc)
        return claimed_at + timedelta(seconds=self.config.mining_claim_interval)
