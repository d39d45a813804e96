import logging
import math
import random
import threading
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

import objects as G
from register import load_catalog

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# -----------------------------------
# Errors
# -----------------------------------

class SimulationError(Exception):
    """Base class for every rejected player action."""

class InsufficientFunds(SimulationError):
    def __init__(self, needed: Decimal, available: Decimal):
        super().__init__(f"Not enough cash! Need ${needed:.2f}, have ${available:.2f}")
        self.needed = needed
        self.available = available

class InvalidPrice(SimulationError, ValueError):
    pass

class InvalidQuantity(SimulationError, ValueError):
    pass

class StaffLimitExceeded(SimulationError):
    pass

class NoStaffToFire(SimulationError):
    pass

class InvalidStore(SimulationError):
    pass

class UnknownProduct(SimulationError):
    pass

class ProductNotStocked(SimulationError):
    pass

class InvalidLoan(SimulationError):
    pass

class GameOverError(SimulationError):
    pass

# -----------------------------------
# Pricing math
# -----------------------------------

def markup(retail_price: Decimal, base_price: Decimal) -> Decimal:
    """Markup over base price as a fraction (0.5 == 50%)."""
    return (retail_price - base_price) / base_price

def sales_factor(retail_price: Decimal, base_price: Decimal, elasticity: Decimal = Decimal("0.5")) -> Decimal:
    """
    Share of baseline demand kept at this shelf price. Every 100% of markup
    costs `elasticity` of demand; never negative.
    """
    return max(Decimal(0), 1 - markup(retail_price, base_price) * elasticity)

def round_units(value: Decimal) -> int:
    return max(0, int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP)))

def to_cents(value: Decimal) -> Decimal:
    # widen precision so very large amounts still quantize
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(CENT, rounding=ROUND_HALF_UP)

def _as_decimal(value, error: SimulationError) -> Decimal:
    try:
        value = G._decimize(value)
    except (InvalidOperation, TypeError, ValueError):
        raise error from None
    if not value.is_finite():
        raise error
    return value

# -----------------------------------
# Market
# -----------------------------------

class Market:
    """Demand signal per product category plus the day's randomness."""

    _BASE_SHIFT_CHANCE = 0.04
    _TREND_WEIGHT = 0.06
    _REVERSION = 0.10

    def __init__(self, config: G.GameConfig, rng: random.Random):
        self.config = config
        self.rng = rng
        self.economic_state: G.EconomicState = G.EconomicState.STANDARD
        self.economic_trend: float = 0.0

    def demand_modifier(self, category: G.Category) -> Decimal:
        return G.CATEGORY_DEMAND[category]

    def daily_variance(self) -> Decimal:
        low, high = self.config.variance_low, self.config.variance_high
        return Decimal(str(self.rng.uniform(float(low), float(high))))

    def wholesale_price(self, product: G.Product) -> Decimal:
        return product.wholesale_price * self.economic_state.price_multiplier

    def sales_multiplier(self) -> Decimal:
        return self.economic_state.sales_multiplier

    def loan_rate(self, loan_type: G.LoanType) -> Decimal:
        return self.economic_state.interest_rate + loan_type.rate_modifier

    def advance_day(self, day: int) -> Optional[str]:
        """
        Let the economy drift one step. A slow sine trend (~50 day period)
        tilts the odds; the extremes revert toward the middle.
        Returns a message when the state changed.
        """
        if not self.config.economic_cycle:
            return None
        old_state = self.economic_state
        self.economic_trend = math.sin(day * 0.125)

        up_chance = self._BASE_SHIFT_CHANCE
        down_chance = self._BASE_SHIFT_CHANCE
        if self.economic_trend > 0:
            up_chance += self.economic_trend * self._TREND_WEIGHT
        else:
            down_chance += -self.economic_trend * self._TREND_WEIGHT

        if old_state == G.EconomicState.COLLAPSE:
            up_chance += self._REVERSION
            down_chance = 0.0
        elif old_state == G.EconomicState.PROSPERITY:
            down_chance += self._REVERSION
            up_chance = 0.0

        roll = self.rng.random()
        if roll < up_chance:
            self.economic_state = old_state.shifted(1)
        elif roll < up_chance + down_chance:
            self.economic_state = old_state.shifted(-1)

        if self.economic_state == old_state:
            return None
        direction = "improved" if self.economic_state.sales_multiplier > old_state.sales_multiplier else "worsened"
        return f"Economy {direction} to {self.economic_state.value}!"

    def snapshot(self) -> Tuple[G.EconomicState, float, tuple]:
        return self.economic_state, self.economic_trend, self.rng.getstate()

    def restore(self, snap: Tuple[G.EconomicState, float, tuple]) -> None:
        self.economic_state, self.economic_trend, rng_state = snap
        self.rng.setstate(rng_state)

# -----------------------------------
# Reports
# -----------------------------------

class SaleLine(BaseModel):
    store_id: int
    product_id: int
    product_name: str
    units: int
    revenue: Decimal

class ExpenseLine(BaseModel):
    store_id: int
    store_name: str
    rent: Decimal
    salaries: Decimal

class InventoryLine(BaseModel):
    product_id: int
    product_name: str
    category: G.Category
    quantity: int
    retail_price: Decimal
    markup_pct: Decimal

class DayResult(BaseModel):
    day: int
    sales: List[SaleLine] = Field(default_factory=list)
    expenses: List[ExpenseLine] = Field(default_factory=list)
    total_revenue: Decimal = Decimal(0)
    total_items_sold: int = 0
    total_expenses: Decimal = Decimal(0)
    loan_interest: Decimal = Decimal(0)
    loan_payments: List[Tuple[int, Decimal]] = Field(default_factory=list)
    loans_due: List[Tuple[int, Decimal]] = Field(default_factory=list)
    term_loan_penalties: Decimal = Decimal(0)
    economic_state: G.EconomicState = G.EconomicState.STANDARD
    economic_change: Optional[str] = None
    cash: Decimal = Decimal(0)
    game_over: bool = False

    @property
    def net_profit(self) -> Decimal:
        return self.total_revenue - self.total_expenses - self.loan_interest

# -----------------------------------
# Store sales
# -----------------------------------

def compute_store_sales(store: G._StoreInstance, catalog: Dict[int, G.Product], market: Market,
                        config: G.GameConfig) -> List[SaleLine]:
    """
    Sell from every stocked product of `store` for one day. Mutates inventory
    quantities and returns one line per product that sold at least one unit.
    """
    traffic = store.customer_traffic(config.traffic_per_employee)
    lines: List[SaleLine] = []
    for product_id, entry in store.inventory.items():
        if entry.quantity <= 0:
            continue
        product = catalog[product_id]
        factor = sales_factor(entry.retail_price, product.base_price, config.price_elasticity)
        potential = round_units(
            traffic
            * market.demand_modifier(product.category)
            * factor
            * market.daily_variance()
            * market.sales_multiplier()
        )
        units = min(potential, entry.quantity)
        if units <= 0:
            continue
        revenue = entry.retail_price * units
        entry.quantity -= units
        logger.debug("%s sold %d x %s for $%.2f", store.name, units, product.name, revenue)
        lines.append(SaleLine(
            store_id=store.store_id,
            product_id=product_id,
            product_name=product.name,
            units=units,
            revenue=revenue,
        ))
    return lines

# -----------------------------------
# Game state & day engine
# -----------------------------------

class EngineState(str, Enum):
    AWAITING_DAY_ADVANCE = "awaiting_day_advance"
    SETTLING = "settling"
    GAME_OVER = "game_over"


class GameState:
    """
    The whole game: player, market, catalog and the day clock.
    Every action either fully applies or raises and leaves state untouched.
    """

    def __init__(self, config: Optional[G.GameConfig] = None, catalog: Optional[Dict[int, G.Product]] = None,
                 rng: Optional[random.Random] = None, seed: int = 0):
        self.config = config or G.GameConfig()
        self.catalog: Dict[int, G.Product] = catalog if catalog is not None else load_catalog()
        self.random = rng if rng is not None else random.Random(seed)
        self.market = Market(self.config, self.random)
        self.player = G._PlayerInstance(cash=self.config.starting_cash)
        self.player.add_store(self.config.starting_store_name, self.config.base_daily_customers, self.config.daily_rent)
        self.day: int = 1
        self.state = EngineState.AWAITING_DAY_ADVANCE
        self.active_store: int = 0
        self._lock = threading.RLock()

    # ── Queries ────────────────────────────────────────────────────────────
    @property
    def cash(self) -> Decimal:
        return self.player.cash

    @property
    def is_game_over(self) -> bool:
        return self.state == EngineState.GAME_OVER

    @property
    def stores(self) -> List[G._StoreInstance]:
        return self.player.stores

    def store(self, index: Optional[int] = None) -> G._StoreInstance:
        idx = self.active_store if index is None else index
        if not 0 <= idx < len(self.player.stores):
            raise InvalidStore(f"No store at index {idx}")
        return self.player.stores[idx]

    def product(self, product_id: int) -> G.Product:
        try:
            return self.catalog[product_id]
        except KeyError:
            raise UnknownProduct(f"Product {product_id} not found") from None

    def net_worth(self) -> Decimal:
        return self.player.net_worth()

    def total_debt(self) -> Decimal:
        return self.player.total_debt()

    def daily_expenses(self) -> Decimal:
        return self.player.daily_expenses(self.config.employee_salary)

    def employee_count(self, store: Optional[int] = None) -> int:
        return self.store(store).employees

    def inventory_view(self, store: Optional[int] = None) -> List[InventoryLine]:
        lines = []
        for product_id, entry in self.store(store).inventory.items():
            product = self.catalog[product_id]
            lines.append(InventoryLine(
                product_id=product_id,
                product_name=product.name,
                category=product.category,
                quantity=entry.quantity,
                retail_price=entry.retail_price,
                markup_pct=to_cents(markup(entry.retail_price, product.base_price) * 100),
            ))
        return lines

    # ── Actions ────────────────────────────────────────────────────────────
    def _ensure_running(self) -> None:
        if self.is_game_over:
            raise GameOverError("The business is bankrupt; start a new game")

    def switch_active_store(self, index: int) -> G._StoreInstance:
        with self._lock:
            self._ensure_running()
            store = self.store(index)
            self.active_store = index
            return store

    def buy_wholesale(self, product_id: int, quantity: int, store: Optional[int] = None) -> Decimal:
        """Buy stock for a store at today's wholesale price. Returns the cost."""
        with self._lock:
            self._ensure_running()
            target = self.store(store)
            product = self.product(product_id)
            if isinstance(quantity, bool) or not isinstance(quantity, int):
                raise InvalidQuantity(f"Quantity must be a whole number of units, got {quantity!r}")
            if quantity <= 0:
                raise InvalidQuantity("Quantity must be positive")
            unit_cost = self.market.wholesale_price(product)
            cost = unit_cost * quantity
            if cost > self.player.cash:
                raise InsufficientFunds(cost, self.player.cash)

            self.player.cash -= cost
            suggested = (unit_cost * (1 + self.config.default_markup)).quantize(CENT, rounding=ROUND_HALF_UP)
            target.add_inventory(product_id, quantity, suggested)
            logger.info("Bought %d x %s for %s ($%.2f)", quantity, product.name, target.name, cost)
            return cost

    def set_retail_price(self, product_id: int, price, store: Optional[int] = None) -> None:
        with self._lock:
            self._ensure_running()
            target = self.store(store)
            price = _as_decimal(price, InvalidPrice(f"Not a price: {price!r}"))
            if price <= 0:
                raise InvalidPrice("Price must be positive")
            entry = target.inventory.get(product_id)
            if entry is None:
                raise ProductNotStocked(f"Product {product_id} is not in {target.name}'s inventory")
            entry.retail_price = price

    def hire_employee(self, store: Optional[int] = None) -> int:
        with self._lock:
            self._ensure_running()
            target = self.store(store)
            if target.employees >= G.MAX_EMPLOYEES:
                raise StaffLimitExceeded(f"{target.name} already has {G.MAX_EMPLOYEES} employees")
            target.employees += 1
            return target.employees

    def fire_employee(self, store: Optional[int] = None) -> int:
        with self._lock:
            self._ensure_running()
            target = self.store(store)
            if target.employees <= 0:
                raise NoStaffToFire(f"{target.name} has no employees")
            target.employees -= 1
            return target.employees

    def buy_store(self, name: Optional[str] = None) -> G._StoreInstance:
        with self._lock:
            self._ensure_running()
            cost = self.config.new_store_cost
            if self.player.cash < cost:
                raise InsufficientFunds(cost, self.player.cash)
            self.player.cash -= cost
            store = self.player.add_store(
                name or f"Store #{self.player.next_store_id}",
                self.config.base_daily_customers,
                self.config.daily_rent,
            )
            logger.info("Opened %s for $%.2f", store.name, cost)
            return store

    def take_loan(self, amount, loan_type: G.LoanType = G.LoanType.FLEXIBLE,
                  term_days: Optional[int] = None) -> G._LoanInstance:
        with self._lock:
            self._ensure_running()
            amount = _as_decimal(amount, InvalidLoan(f"Not an amount: {amount!r}"))
            cfg = self.config
            if amount < cfg.min_loan:
                raise InvalidLoan(f"Minimum loan is ${cfg.min_loan:.2f}")
            if amount > cfg.max_loan:
                raise InvalidLoan(f"Maximum single loan is ${cfg.max_loan:.2f}")
            if self.player.total_debt() + amount > cfg.max_total_debt:
                room = max(Decimal(0), cfg.max_total_debt - self.player.total_debt())
                raise InvalidLoan(f"Would exceed the ${cfg.max_total_debt:.2f} debt limit; ${room:.2f} left")

            rate = self.market.loan_rate(loan_type)
            if loan_type == G.LoanType.TERM:
                if term_days not in G.TERM_LOAN_DAYS:
                    raise InvalidLoan("Term loan must be 7, 14, or 30 days")
                discount = {14: Decimal("0.005"), 30: Decimal("0.01")}.get(term_days, Decimal(0))
                if discount:
                    rate = max(rate - discount, Decimal("0.01"))
            elif term_days is not None:
                raise InvalidLoan("Only term loans have a duration")

            loan = self.player.add_loan(loan_type, amount, rate, term_days)
            logger.info("Took %s loan #%d of $%.2f at %.2f%%", loan_type.value, loan.loan_id, amount, rate * 100)
            return loan

    def repay_loan(self, loan_id: int, amount) -> Decimal:
        """Pay down a loan. Returns the amount actually paid (never above the balance)."""
        with self._lock:
            self._ensure_running()
            amount = _as_decimal(amount, InvalidLoan(f"Not an amount: {amount!r}"))
            if amount <= 0:
                raise InvalidLoan("Payment amount must be positive")
            loan = self.player.get_loan(loan_id)
            if loan is None:
                raise InvalidLoan(f"Loan {loan_id} not found")
            if self.player.cash < amount:
                raise InsufficientFunds(amount, self.player.cash)
            paid = loan.pay(amount)
            self.player.cash -= paid
            self.player.cleanup_loans()
            return paid

    # ── Day settlement ─────────────────────────────────────────────────────
    def advance_day(self) -> DayResult:
        """
        Settle one day for every store: sales, rent and salaries, loans, then
        the bankruptcy check. Runs against a snapshot so a failure part way
        through leaves the game exactly as it was.
        """
        with self._lock:
            self._ensure_running()
            player_snapshot = self.player.model_copy(deep=True)
            market_snapshot = self.market.snapshot()
            self.state = EngineState.SETTLING
            try:
                result = self._settle()
            except Exception:
                self.player.restore(player_snapshot)
                self.market.restore(market_snapshot)
                self.state = EngineState.AWAITING_DAY_ADVANCE
                logger.exception("Settlement of day %d failed; state rolled back", self.day)
                raise

            self.day += 1
            if self.player.cash < 0:
                self.state = EngineState.GAME_OVER
                logger.info("Bankrupt after day %d with $%.2f", result.day, self.player.cash)
            else:
                self.state = EngineState.AWAITING_DAY_ADVANCE
            result.cash = self.player.cash
            result.game_over = self.is_game_over
            logger.info(
                "Day %d: revenue $%.2f, expenses $%.2f, cash $%.2f",
                result.day, result.total_revenue, result.total_expenses, result.cash,
            )
            return result

    def _settle(self) -> DayResult:
        result = DayResult(day=self.day)
        result.economic_change = self.market.advance_day(self.day)
        result.economic_state = self.market.economic_state
        if result.economic_change:
            logger.info(result.economic_change)

        for store in self.player.stores:
            lines = compute_store_sales(store, self.catalog, self.market, self.config)
            result.sales.extend(lines)
            result.expenses.append(ExpenseLine(
                store_id=store.store_id,
                store_name=store.name,
                rent=store.daily_rent,
                salaries=store.salaries(self.config.employee_salary),
            ))

        result.total_revenue = sum((l.revenue for l in result.sales), Decimal(0))
        result.total_items_sold = sum(l.units for l in result.sales)
        result.total_expenses = sum((e.rent + e.salaries for e in result.expenses), Decimal(0))
        self.player.cash += result.total_revenue - result.total_expenses

        self._settle_loans(result)
        return result

    def _settle_loans(self, result: DayResult) -> None:
        player, cfg = self.player, self.config
        for loan in player.loans:
            result.loan_interest += loan.accrue_interest()

        for loan in player.loans:
            due = loan.auto_payment(cfg.line_of_credit_rate, cfg.line_of_credit_minimum)
            if due <= 0:
                continue
            # short on cash: pay what we can
            payable = min(due, max(player.cash, Decimal(0)))
            if payable > 0:
                paid = loan.pay(payable)
                player.cash -= paid
                result.loan_payments.append((loan.loan_id, paid))

        for loan in player.loans:
            if loan.loan_type == G.LoanType.TERM and loan.days_remaining:
                loan.days_remaining -= 1

        for loan in player.loans:
            if not loan.is_due or loan.is_paid_off:
                continue
            result.loans_due.append((loan.loan_id, loan.balance))
            if player.cash >= loan.balance:
                player.cash -= loan.pay(loan.balance)
                continue
            penalty = loan.balance * cfg.term_loan_penalty
            result.term_loan_penalties += penalty
            if player.cash > 0:
                player.cash -= loan.pay(player.cash)
            loan.balance += penalty
            logger.info("Defaulted on term loan #%d; $%.2f penalty added", loan.loan_id, penalty)

        player.cleanup_loans()

# -----------------------------------
# Autoplay
# -----------------------------------

class Behavior:
    def act(self, game: GameState) -> None:
        raise NotImplementedError

class RestockBehavior(Behavior):
    """
    Keeps every store stocked with retail products at a fixed markup,
    spending at most `budget_share` of cash per day.
    """

    def __init__(self, target_units: int = 40, markup_pct: Decimal = Decimal("50"),
                 budget_share: Decimal = Decimal("0.5")) -> None:
        self.target_units = target_units
        self.markup_pct = markup_pct
        self.budget_share = budget_share

    def act(self, game: GameState) -> None:
        budget = game.cash * self.budget_share
        retail = [p for p in game.catalog.values() if p.category.is_retail]
        for idx, store in enumerate(game.stores):
            for product in retail:
                short = self.target_units - store.quantity_of(product.id)
                unit_cost = game.market.wholesale_price(product)
                affordable = int(budget // unit_cost) if unit_cost > 0 else 0
                qty = min(short, affordable)
                if qty <= 0:
                    continue
                budget -= game.buy_wholesale(product.id, qty, store=idx)
                price = (product.base_price * (1 + self.markup_pct / 100)).quantize(CENT, rounding=ROUND_HALF_UP)
                game.set_retail_price(product.id, price, store=idx)

class BehaviorManager:
    """Runs registered behaviors before each day is settled."""

    def __init__(self, game: GameState):
        self.game = game
        self.behaviors: List[Behavior] = []

    def register(self, behavior: Behavior) -> None:
        self.behaviors.append(behavior)

    def tick(self) -> DayResult:
        for behavior in self.behaviors:
            behavior.act(self.game)
        return self.game.advance_day()

# -----------------------------------
# Main Simulation Loop
# -----------------------------------

def main(days: int = 10, seed: int = 0, config_path: Optional[Path] = None) -> GameState:
    """Autoplay the game for a number of days using the given RNG seed."""

    config = G.GameConfig.load(config_path) if config_path else G.GameConfig()
    game = GameState(config=config, seed=seed)
    bm = BehaviorManager(game)
    bm.register(RestockBehavior())

    for _ in range(days):
        result = bm.tick()
        print(
            f"Day {result.day:>3}: sold {result.total_items_sold:>4} items | "
            f"revenue ${result.total_revenue:>9.2f} | expenses ${result.total_expenses:>7.2f} | "
            f"cash ${result.cash:>10.2f} | {result.economic_state.value}"
        )
        if result.game_over:
            print("Bankrupt!")
            break
    print(f"Net worth after day {game.day - 1}: ${game.net_worth():.2f}")
    return game

def cli(argv: Optional[List[str]] = None) -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Run the retail simulation on autopilot")
    parser.add_argument("--days", type=int, default=10, help="Number of days to run")
    parser.add_argument("--seed", type=int, default=0, help="RNG seed for deterministic runs")
    parser.add_argument("--config", type=Path, default=None, help="JSON file with GameConfig overrides")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    main(days=args.days, seed=args.seed, config_path=args.config)


if __name__ == "__main__":
    cli()
