from __future__ import annotations

import logging
from typing import Optional

from .catalog.catalog import Catalog
from .catalog.models import ElementDefinition
from .config import GameConfig
from .events import ElementSold, EventQueue
from .inventory import Inventory
from .progression.ledger import Currency, ProgressionLedger

logger = logging.getLogger(__name__)


class Economy:
    """Selling banked elements for coins and buying energy refills."""

    def __init__(
        self,
        catalog: Catalog,
        inventory: Inventory,
        ledger: ProgressionLedger,
        events: EventQueue,
        config: Optional[GameConfig] = None,
    ) -> None:
        self.catalog = catalog
        self.inventory = inventory
        self.ledger = ledger
        self.events = events
        self.config = config or GameConfig()

    def sell_value(self, definition: ElementDefinition) -> int:
        return definition.sell_value() * definition.rarity.multiplier

    def sell_element(self, definition: ElementDefinition, qty: int = 1) -> int:
        """Sell ``qty`` banked units. Returns coins earned."""
        if qty <= 0:
            raise ValueError("Quantity to sell must be positive")
        coins = self.sell_value(definition) * qty
        self.inventory.remove(definition, qty)
        self.ledger.earn(Currency.COINS, coins, reason="sale")
        self.events.append(ElementSold(element_id=definition.id, tier=definition.tier, quantity=qty, coins=coins))
        logger.info("Sold %d x %s for %d coins", qty, definition.id, coins)
        self.ledger.add_xp(self.config.sell_xp * qty, source="sale")
        self.ledger.track_progress("elements_sold", qty)
        return coins

    def energy_price(self, amount: int) -> int:
        return self.config.energy_refill_cost * amount

    def buy_energy(self, amount: int) -> int:
        """Buy up to ``amount`` energy; only the room below the cap is charged.

        Returns the energy actually bought.
        """
        if amount <= 0:
            raise ValueError("Energy to buy must be positive")
        room = self.ledger.max_energy - self.ledger.energy
        amount = min(amount, room)
        if amount == 0:
            logger.debug("Energy already full; nothing bought")
            return 0
        self.ledger.spend(Currency.COINS, self.energy_price(amount), reason="energy_refill")
        return self.ledger.add_energy(amount, reason="purchase")
