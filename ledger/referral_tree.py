from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import logging
import secrets
import string

from sqlalchemy import func

from extensions import db
from ledger.errors import CodeGenerationError, NotFound, ReferralCycle
from ledger.tiers import weekly_bonus_tier
from models import CommissionEntry, User


logger = logging.getLogger(__name__)

REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_ATTEMPTS = 10
CODE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_code(code) -> str:
    return (code or "").strip().upper()


class ReferralTreeHelper:
    """
    Two-level referral forest. Each user row holds a parent pointer
    (``users.referred_by``) that is fixed at signup; every lookup goes
    through that id column rather than object references.
    """

    @staticmethod
    def resolve_code(code) -> Optional[User]:
        code = normalize_code(code)
        if not code:
            return None
        return User.query.filter_by(referral_code=code).first()

    @staticmethod
    def level_one_downline(user_id: int) -> List[User]:
        return User.query.filter(User.referred_by == user_id).order_by(User.id).all()

    @staticmethod
    def level_two_downline(user_id: int) -> List[User]:
        level_one_ids = [u.id for u in ReferralTreeHelper.level_one_downline(user_id)]
        if not level_one_ids:
            return []
        return User.query.filter(
            User.referred_by.in_(level_one_ids),
            User.id != user_id,
        ).order_by(User.id).all()

    @staticmethod
    def upline_chain(user_id: int) -> Tuple[Optional[int], Optional[int]]:
        """
        Return (level-1 upline id, level-2 upline id) for ``user_id``.
        Fails closed with ReferralCycle if the chain loops back on itself.
        """
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")

        level_one = user.referred_by
        if level_one is None:
            return None, None
        if level_one == user_id:
            logger.error(f"Referral cycle: user {user_id} is its own upline")
            raise ReferralCycle()

        parent = db.session.get(User, level_one)
        if parent is None:
            logger.warning(f"User {user_id} points at missing upline {level_one}")
            return None, None

        level_two = parent.referred_by
        if level_two is None:
            return level_one, None
        if level_two in (user_id, level_one):
            logger.error(f"Referral cycle: chain {user_id} -> {level_one} -> {level_two}")
            raise ReferralCycle()
        if db.session.get(User, level_two) is None:
            logger.warning(f"User {level_one} points at missing upline {level_two}")
            return level_one, None

        return level_one, level_two

    @staticmethod
    def generate_unique_code(length: int = REFERRAL_CODE_LENGTH, max_attempts: int = REFERRAL_CODE_ATTEMPTS) -> str:
        for _ in range(max_attempts):
            code = ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))
            if not User.query.filter_by(referral_code=code).first():
                return code
        logger.error(f"Referral code space exhausted after {max_attempts} attempts")
        raise CodeGenerationError()

    @staticmethod
    def resolve_signup_upline(code, username: str, phone_number: Optional[str]) -> Optional[User]:
        """
        Referral codes are optional at signup: unknown codes and self-referrals
        are ignored and the user simply starts without an upline.
        """
        if not normalize_code(code):
            return None

        referrer = ReferralTreeHelper.resolve_code(code)
        if referrer is None:
            logger.info(f"Signup with unknown referral code {normalize_code(code)!r}, ignoring")
            return None

        if referrer.username.lower() == (username or "").lower() or \
                (phone_number and referrer.phone_number == phone_number):
            logger.warning(f"Self-referral attempt with code {referrer.referral_code}, ignoring")
            return None

        return referrer

    @staticmethod
    def _earned_from(beneficiary_id: int, source_ids: List[int]) -> Dict[int, Decimal]:
        if not source_ids:
            return {}
        rows = db.session.query(
            CommissionEntry.source_user_id,
            func.sum(CommissionEntry.amount),
        ).filter(
            CommissionEntry.beneficiary_id == beneficiary_id,
            CommissionEntry.source_user_id.in_(source_ids),
        ).group_by(CommissionEntry.source_user_id).all()
        return {source_id: Decimal(str(total or 0)) for source_id, total in rows}

    @staticmethod
    def team_summary(user_id: int) -> Dict:
        if db.session.get(User, user_id) is None:
            raise NotFound(f"User {user_id} not found")

        level1 = ReferralTreeHelper.level_one_downline(user_id)
        level2 = ReferralTreeHelper.level_two_downline(user_id)
        earned = ReferralTreeHelper._earned_from(user_id, [u.id for u in level1 + level2])

        def member(user, level):
            return {
                "id": user.id,
                "username": user.username,
                "level": level,
                "joinedAt": user.created_at.isoformat() if user.created_at else None,
                "commissionEarned": float(earned.get(user.id, Decimal("0"))),
            }

        team_size = len(level1) + len(level2)
        return {
            "level1": [member(u, 1) for u in level1],
            "level2": [member(u, 2) for u in level2],
            "teamSize": team_size,
            "tier": weekly_bonus_tier(team_size).to_dict(),
        }
