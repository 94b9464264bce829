import pytest

from mergecraft.economy import Economy
from mergecraft.events import ElementSold
from mergecraft.exceptions import InsufficientFundsError, InsufficientQuantityError


@pytest.fixture
def economy(catalog, inventory, ledger, events, config):
    return Economy(catalog, inventory, ledger, events, config)


def test_sell_value_includes_tier_and_rarity(economy, catalog):
    assert economy.sell_value(catalog.element("berry_1")) == 4
    # base 20 x (tier 1 + 1) x uncommon 2
    assert economy.sell_value(catalog.element("potion_1")) == 80
    # base 13 x 6 x rare 4
    assert economy.sell_value(catalog.element("berry_5")) == 312


def test_sell_element(economy, catalog, inventory, ledger, events):
    potion = catalog.element("potion_1")
    inventory.add(potion, 3)
    events.drain()

    coins = economy.sell_element(potion, 2)

    assert coins == 160
    assert ledger.coins == 260
    assert inventory.quantity(potion) == 1
    assert ledger.current_xp == 10
    assert ledger.stats["elements_sold"] == 2
    assert ledger.stats["coins_earned"] == 160
    assert ElementSold(element_id="potion_1", tier=1, quantity=2, coins=160) in events.drain()


def test_cannot_sell_what_is_not_banked(economy, catalog, ledger):
    with pytest.raises(InsufficientQuantityError):
        economy.sell_element(catalog.element("berry_1"))
    assert ledger.coins == 100
    with pytest.raises(ValueError):
        economy.sell_element(catalog.element("berry_1"), 0)


def test_buy_energy_only_charges_for_room(economy, ledger):
    ledger.use_energy(5)
    assert economy.buy_energy(8) == 5
    assert ledger.energy == 100
    assert ledger.coins == 50
    assert economy.buy_energy(3) == 0
    assert ledger.coins == 50


def test_buy_energy_needs_coins(economy, ledger):
    ledger.use_energy(50)
    with pytest.raises(InsufficientFundsError):
        economy.buy_energy(20)
    assert ledger.energy == 50
    assert ledger.coins == 100
