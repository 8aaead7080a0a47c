# corgi_buddy/services/reward_calculator.py
from __future__ import annotations

from dataclasses import dataclass

from corgi_buddy.core.errors import ValidationError

MIN_CORGI_COUNT = 1
MAX_CORGI_COUNT = 100


@dataclass(frozen=True)
class RewardCalculator:
    """
    corgi_count -> reward in token base units.

    reward = min(corgi_count * reward_per_corgi, max_reward_coins) * 10**decimals
    """

    jetton_decimals: int = 9
    reward_per_corgi: int = 1
    max_reward_coins: int = 100

    @property
    def unit(self) -> int:
        return 10 ** self.jetton_decimals

    def validate_count(self, corgi_count: int) -> int:
        if isinstance(corgi_count, bool) or not isinstance(corgi_count, int):
            raise ValidationError("corgiCount must be an integer")
        if corgi_count < MIN_CORGI_COUNT or corgi_count > MAX_CORGI_COUNT:
            raise ValidationError(f"corgiCount must be between {MIN_CORGI_COUNT} and {MAX_CORGI_COUNT}")
        return corgi_count

    def reward_coins(self, corgi_count: int) -> int:
        count = self.validate_count(corgi_count)
        return min(count * self.reward_per_corgi, self.max_reward_coins)

    def calculate(self, corgi_count: int) -> int:
        return self.reward_coins(corgi_count) * self.unit

    def to_coins(self, amount: int) -> int:
        """Whole coins in `amount` base units (rewards are always whole coins)."""
        return int(amount) // self.unit
