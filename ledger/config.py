# ledger/config.py
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping


@dataclass(frozen=True)
class LedgerConfig:
    """
    Rates and thresholds used by the ledger, commission engine, approval
    workflow and mining service. Built once from the Flask config and
    injected at construction.
    """
    deposit_rate: Decimal = Decimal("280")
    level_one_rate: Decimal = Decimal("0.10")
    level_two_rate: Decimal = Decimal("0.04")
    min_deposit: Decimal = Decimal("5")
    min_withdrawal: Decimal = Decimal("0")
    mining_claim_interval: int = 24 * 60 * 60  # seconds between two claims of one user
    max_claim_per_machine: Decimal = Decimal("50")

    MAX_LEVEL = 2

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "LedgerConfig":
        defaults = cls()

        def _decimal(key, default):
            raw = mapping.get(key)
            if raw is None or raw == "":
                return default
            try:
                return Decimal(str(raw))
            except InvalidOperation:
                raise ValueError(f"{key} must be numeric, got {raw!r}")

        def _seconds(key, default):
            raw = mapping.get(key)
            if raw is None or raw == "":
                return default
            try:
                return int(raw)
            except (TypeError, ValueError):
                raise ValueError(f"{key} must be a whole number of seconds, got {raw!r}")

        config = cls(
            deposit_rate=_decimal("DEPOSIT_RATE", defaults.deposit_rate),
            level_one_rate=_decimal("LEVEL_ONE_RATE", defaults.level_one_rate),
            level_two_rate=_decimal("LEVEL_TWO_RATE", defaults.level_two_rate),
            min_deposit=_decimal("MIN_DEPOSIT", defaults.min_deposit),
            min_withdrawal=_decimal("MIN_WITHDRAWAL", defaults.min_withdrawal),
            mining_claim_interval=_seconds("MINING_CLAIM_INTERVAL", defaults.mining_claim_interval),
            max_claim_per_machine=_decimal("MAX_CLAIM_PER_MACHINE", defaults.max_claim_per_machine),
        )
        config.validate()
        return config

    def rate_for_level(self, level: int) -> Decimal:
        if level == 1:
            return self.level_one_rate
        if level == 2:
            return self.level_two_rate
        raise ValueError(f"Commission level {level} is outside 1-{self.MAX_LEVEL}")

    def validate(self):
        """Validate that the configured rates are sound"""
        if self.deposit_rate <= 0:
            raise ValueError("DEPOSIT_RATE must be positive")
        for name, rate in (("LEVEL_ONE_RATE", self.level_one_rate), ("LEVEL_TWO_RATE", self.level_two_rate)):
            if rate < 0 or rate > 1:
                raise ValueError(f"{name} must be between 0 and 1")
        if self.level_one_rate + self.level_two_rate > Decimal("0.5"):
            raise ValueError("Total commission percentage too high")
        if self.min_deposit < 0 or self.min_withdrawal < 0:
            raise ValueError("Minimum amounts cannot be negative")
        if self.mining_claim_interval < 0:
            raise ValueError("MINING_CLAIM_INTERVAL cannot be negative")
        if self.max_claim_per_machine <= 0:
            raise ValueError("MAX_CLAIM_PER_MACHINE must be positive")
