# ledger/tiers.py
from decimal import Decimal
from typing import NamedTuple, Optional

from ledger.errors import InvalidAmount


class BonusTier(NamedTuple):
    title: str
    min_team: int
    max_team: Optional[int]  # inclusive, None = open ended
    bonus: Decimal
    period: Optional[str]  # "week", "month" or None when there is no bonus

    def to_dict(self):
        return {
            "title": self.title,
            "minTeam": self.min_team,
            "maxTeam": self.max_team,
            "bonus": float(self.bonus),
            "period": self.period,
        }


# Ordered, contiguous, inclusive ranges of total team size (level 1 + level 2).
WEEKLY_BONUS_TIERS = (
    BonusTier("New Partner", 0, 29, Decimal("0"), None),
    BonusTier("Junior Partner", 30, 49, Decimal("2"), "week"),
    BonusTier("Intermediate Partner", 50, 99, Decimal("5"), "week"),
    BonusTier("Senior Partner", 100, 199, Decimal("10"), "week"),
    BonusTier("Regional Partner", 200, 499, Decimal("15"), "week"),
    BonusTier("City Partner", 500, 1299, Decimal("30"), "week"),
    BonusTier("Executive Partner", 1300, 2499, Decimal("100"), "week"),
    BonusTier("Corporate Partner", 2500, 4999, Decimal("1000"), "month"),
    BonusTier("Consultant", 5000, None, Decimal("15000"), "month"),
)


def weekly_bonus_tier(team_size: int) -> BonusTier:
    """Advisory lookup only; nothing is credited from here."""
    if isinstance(team_size, bool) or not isinstance(team_size, int) or team_size < 0:
        raise InvalidAmount("Team size must be a non-negative whole number")
    for tier in WEEKLY_BONUS_TIERS:
        if tier.max_team is None or team_size <= tier.max_team:
            return tier
    return WEEKLY_BONUS_TIERS[-1]
