import sys
from pathlib import Path
from decimal import Decimal
import random

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / 'src'))

import sim  # type: ignore
import objects as G  # type: ignore


class FixedRandom(random.Random):
    """Random source whose daily variance is pinned to `variance`."""
    variance = 1.0

    def uniform(self, a, b):
        return self.variance


CATALOG = {
    1: G.Product(id=1, name="Bread", category=G.Category.FOOD, wholesale_price=Decimal("2")),
    5: G.Product(id=5, name="Headphones", category=G.Category.ELECTRONICS, wholesale_price=Decimal("25")),
    8: G.Product(id=8, name="T-Shirt", category=G.Category.CLOTHING, wholesale_price=Decimal("12")),
    11: G.Product(id=11, name="Lumber", category=G.Category.RAW_MATERIAL, wholesale_price=Decimal("10")),
}


def setup_store(product_id: int, quantity: int, price: str, employees: int = 0, variance: float = 1.0):
    config = G.GameConfig()
    rng = FixedRandom(0)
    rng.variance = variance
    market = sim.Market(config, rng)
    store = G._StoreInstance(store_id=1, name="Test Store", employees=employees)
    store.add_inventory(product_id, quantity, Decimal(price))
    return store, market, config


def test_sales_factor_elasticity_table():
    base = Decimal("2")
    assert sim.sales_factor(base, base) == Decimal("1")
    assert sim.sales_factor(base * Decimal("1.5"), base) == Decimal("0.75")
    assert sim.sales_factor(base * 2, base) == Decimal("0.5")


def test_sales_factor_never_negative():
    base = Decimal("10")
    assert sim.sales_factor(base * 3, base) == 0
    assert sim.sales_factor(base * 5, base) == 0


def test_discount_raises_sales_factor():
    assert sim.sales_factor(Decimal("1"), Decimal("2")) == Decimal("1.25")


def test_bread_scenario_is_clamped_by_stock():
    store, market, config = setup_store(1, 10, "2")
    lines = sim.compute_store_sales(store, CATALOG, market, config)
    assert len(lines) == 1
    assert lines[0].units == 10
    assert lines[0].revenue == Decimal("20")
    assert store.quantity_of(1) == 0


def test_potential_units_when_stock_is_plentiful():
    store, market, config = setup_store(1, 100, "2")
    lines = sim.compute_store_sales(store, CATALOG, market, config)
    # 50 customers * 1.2 food demand
    assert lines[0].units == 60
    assert store.quantity_of(1) == 40


def test_employees_bring_more_customers():
    store, market, config = setup_store(5, 100, "25", employees=3)
    assert store.customer_traffic(config.traffic_per_employee) == Decimal("80")
    lines = sim.compute_store_sales(store, CATALOG, market, config)
    # 80 customers * 0.8 electronics demand
    assert lines[0].units == 64


def test_rounds_half_up():
    # 50 * 1.0 * 0.5 * 0.9 = 22.5
    store, market, config = setup_store(8, 100, "24", variance=0.9)
    lines = sim.compute_store_sales(store, CATALOG, market, config)
    assert lines[0].units == 23


def test_overpriced_products_do_not_sell():
    store, market, config = setup_store(8, 100, "36")
    assert sim.compute_store_sales(store, CATALOG, market, config) == []
    assert store.quantity_of(8) == 100


def test_raw_materials_never_sell_at_retail():
    store, market, config = setup_store(11, 100, "10")
    assert sim.compute_store_sales(store, CATALOG, market, config) == []


def test_empty_entries_are_skipped():
    store, market, config = setup_store(1, 0, "2")
    assert sim.compute_store_sales(store, CATALOG, market, config) == []


def test_never_sells_more_than_stocked():
    config = G.GameConfig()
    rng = random.Random(7)
    market = sim.Market(config, rng)
    for _ in range(200):
        quantity = rng.randint(0, 120)
        price = Decimal(str(round(rng.uniform(0.5, 8.0), 2)))
        store = G._StoreInstance(store_id=1, name="S", employees=rng.randint(0, 3))
        store.add_inventory(1, quantity, price)
        lines = sim.compute_store_sales(store, CATALOG, market, config)
        sold = sum(l.units for l in lines)
        assert 0 <= sold <= quantity
        assert store.quantity_of(1) == quantity - sold


def test_daily_variance_stays_in_bounds():
    market = sim.Market(G.GameConfig(), random.Random(3))
    for _ in range(500):
        v = market.daily_variance()
        assert Decimal("0.8") <= v <= Decimal("1.2")


def test_demand_modifiers():
    market = sim.Market(G.GameConfig(), random.Random(0))
    assert market.demand_modifier(G.Category.FOOD) == Decimal("1.2")
    assert market.demand_modifier(G.Category.ELECTRONICS) == Decimal("0.8")
    assert market.demand_modifier(G.Category.CLOTHING) == Decimal("1.0")
    assert market.demand_modifier(G.Category.MANUFACTURED) == 0
    assert market.wholesale_price(CATALOG[5]) == Decimal("25")
