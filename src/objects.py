from __future__ import annotations
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_EMPLOYEES = 3
DAYS_PER_YEAR = Decimal(365)


def _decimize(v):
    # allow int/float literals in JSON configs without binary float noise
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v))


def _copy_fields(live: BaseModel, saved: BaseModel, skip=()) -> None:
    for name in type(live).model_fields:
        if name not in skip:
            setattr(live, name, getattr(saved, name))

# ────────────────────────────────────────────────────────────────────────────
# Configuration
# ────────────────────────────────────────────────────────────────────────────

class GameConfig(BaseModel):
    """Every economic constant of a game. Defaults reproduce the stock game."""

    starting_cash: Decimal = Decimal("1000")
    starting_store_name: str = "My First Store"

    # stores & staff
    base_daily_customers: int = Field(50, ge=0)
    traffic_per_employee: Decimal = Decimal("0.2")
    daily_rent: Decimal = Decimal("100")
    employee_salary: Decimal = Decimal("50")
    new_store_cost: Decimal = Decimal("5000")

    # pricing & demand
    default_markup: Decimal = Field(Decimal("0.5"), description="Markup applied to wholesale cost for newly stocked products")
    price_elasticity: Decimal = Field(Decimal("0.5"), description="Sales lost per unit of markup over base retail price")
    variance_low: Decimal = Decimal("0.8")
    variance_high: Decimal = Decimal("1.2")
    economic_cycle: bool = Field(False, description="Let the economy drift between states day to day")

    # borrowing
    min_loan: Decimal = Decimal("500")
    max_loan: Decimal = Decimal("25000")
    max_total_debt: Decimal = Decimal("50000")
    line_of_credit_rate: Decimal = Field(Decimal("0.02"), description="Share of balance auto-paid daily")
    line_of_credit_minimum: Decimal = Decimal("10")
    term_loan_penalty: Decimal = Decimal("0.25")

    @field_validator(
        "starting_cash", "traffic_per_employee", "daily_rent", "employee_salary",
        "new_store_cost", "default_markup", "price_elasticity", "variance_low",
        "variance_high", "min_loan", "max_loan", "max_total_debt",
        "line_of_credit_rate", "line_of_credit_minimum", "term_loan_penalty",
        mode="before",
    )
    @classmethod
    def _decimize_fields(cls, v):
        return _decimize(v)

    @classmethod
    def load(cls, path: Path) -> GameConfig:
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))

# ────────────────────────────────────────────────────────────────────────────
# Products
# ────────────────────────────────────────────────────────────────────────────

class Category(str, Enum):
    FOOD = "Food"
    ELECTRONICS = "Electronics"
    CLOTHING = "Clothing"
    RAW_MATERIAL = "RawMaterial"
    MANUFACTURED = "Manufactured"

    @property
    def is_retail(self) -> bool:
        return self in (Category.FOOD, Category.ELECTRONICS, Category.CLOTHING)


# How eagerly customers buy from each category. Raw materials and
# manufactured goods only feed the factory side and never sell at retail.
CATEGORY_DEMAND: Dict[Category, Decimal] = {
    Category.FOOD: Decimal("1.2"),
    Category.ELECTRONICS: Decimal("0.8"),
    Category.CLOTHING: Decimal("1.0"),
    Category.RAW_MATERIAL: Decimal("0"),
    Category.MANUFACTURED: Decimal("0"),
}


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    category: Category
    wholesale_price: Decimal = Field(..., gt=0, description="Cost to the player of one unit")
    base_retail_price: Optional[Decimal] = Field(None, gt=0, description="Reference shelf price; defaults to wholesale")

    @field_validator("wholesale_price", "base_retail_price", mode="before")
    @classmethod
    def _decimize_prices(cls, v):
        return None if v is None else _decimize(v)

    @property
    def base_price(self) -> Decimal:
        return self.base_retail_price if self.base_retail_price is not None else self.wholesale_price

# ────────────────────────────────────────────────────────────────────────────
# Stores
# ────────────────────────────────────────────────────────────────────────────

class _InventoryEntry(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    product_id: int
    quantity: int = Field(0, ge=0)
    retail_price: Decimal = Field(..., gt=0)


class _StoreInstance(BaseModel):
    """A retail store owned by the player."""
    model_config = ConfigDict(validate_assignment=True)

    store_id: int
    name: str
    # keyed by product id, insertion order is the order products were first stocked
    inventory: Dict[int, _InventoryEntry] = Field(default_factory=dict)
    employees: int = Field(0, ge=0, le=MAX_EMPLOYEES)
    base_daily_customers: int = Field(50, ge=0)
    daily_rent: Decimal = Decimal("100")

    # ── Helpers ────────────────────────────────────────────────────────────
    def customer_traffic(self, per_employee: Decimal = Decimal("0.2")) -> Decimal:
        return Decimal(self.base_daily_customers) * (1 + per_employee * self.employees)

    def add_inventory(self, product_id: int, quantity: int, retail_price: Decimal) -> _InventoryEntry:
        entry = self.inventory.get(product_id)
        if entry is None:
            entry = _InventoryEntry(product_id=product_id, quantity=quantity, retail_price=retail_price)
            self.inventory[product_id] = entry
        else:
            entry.quantity += quantity
        return entry

    def quantity_of(self, product_id: int) -> int:
        entry = self.inventory.get(product_id)
        return entry.quantity if entry else 0

    def inventory_value(self) -> Decimal:
        return sum((e.retail_price * e.quantity for e in self.inventory.values()), Decimal(0))

    def total_items(self) -> int:
        return sum(e.quantity for e in self.inventory.values())

    def salaries(self, salary: Decimal) -> Decimal:
        return salary * self.employees

    def restore(self, saved: _StoreInstance) -> None:
        """Reset to an earlier copy of this store, keeping inventory entry objects."""
        _copy_fields(self, saved, skip=("inventory",))
        inventory = {}
        for product_id, saved_entry in saved.inventory.items():
            entry = self.inventory.get(product_id)
            if entry is None:
                entry = saved_entry
            else:
                _copy_fields(entry, saved_entry)
            inventory[product_id] = entry
        self.inventory.clear()
        self.inventory.update(inventory)

# ────────────────────────────────────────────────────────────────────────────
# Loans
# ────────────────────────────────────────────────────────────────────────────

class LoanType(str, Enum):
    FLEXIBLE = "flexible"            # manual payments
    LINE_OF_CREDIT = "line_of_credit"  # auto-deducted daily
    TERM = "term"                    # due in full at end of term

    @property
    def rate_modifier(self) -> Decimal:
        return {
            LoanType.FLEXIBLE: Decimal("0.02"),
            LoanType.LINE_OF_CREDIT: Decimal("0.01"),
            LoanType.TERM: Decimal("0"),
        }[self]


TERM_LOAN_DAYS = (7, 14, 30)


class _LoanInstance(BaseModel):
    loan_id: int
    loan_type: LoanType
    principal: Decimal
    balance: Decimal
    interest_rate: Decimal = Field(..., description="Annual rate, e.g. 0.08 for 8%")
    days_remaining: Optional[int] = None

    def accrue_interest(self) -> Decimal:
        interest = self.balance * self.interest_rate / DAYS_PER_YEAR
        self.balance += interest
        return interest

    def pay(self, amount: Decimal) -> Decimal:
        paid = min(amount, self.balance)
        self.balance -= paid
        return paid

    def auto_payment(self, rate: Decimal, minimum: Decimal) -> Decimal:
        if self.loan_type != LoanType.LINE_OF_CREDIT:
            return Decimal(0)
        return min(max(self.balance * rate, minimum), self.balance)

    @property
    def is_due(self) -> bool:
        return self.days_remaining == 0

    @property
    def is_paid_off(self) -> bool:
        return self.balance < Decimal("0.01")

# ────────────────────────────────────────────────────────────────────────────
# Player
# ────────────────────────────────────────────────────────────────────────────

class _PlayerInstance(BaseModel):
    cash: Decimal
    stores: List[_StoreInstance] = Field(default_factory=list)
    loans: List[_LoanInstance] = Field(default_factory=list)
    next_store_id: int = 1
    next_loan_id: int = 1

    def add_store(self, name: str, base_daily_customers: int, daily_rent: Decimal) -> _StoreInstance:
        store = _StoreInstance(
            store_id=self.next_store_id,
            name=name,
            base_daily_customers=base_daily_customers,
            daily_rent=daily_rent,
        )
        self.next_store_id += 1
        self.stores.append(store)
        return store

    def add_loan(self, loan_type: LoanType, amount: Decimal, rate: Decimal, days: Optional[int] = None) -> _LoanInstance:
        loan = _LoanInstance(
            loan_id=self.next_loan_id,
            loan_type=loan_type,
            principal=amount,
            balance=amount,
            interest_rate=rate,
            days_remaining=days,
        )
        self.next_loan_id += 1
        self.cash += amount
        self.loans.append(loan)
        return loan

    def get_loan(self, loan_id: int) -> Optional[_LoanInstance]:
        return next((l for l in self.loans if l.loan_id == loan_id), None)

    def cleanup_loans(self) -> None:
        self.loans = [l for l in self.loans if not l.is_paid_off]

    def total_debt(self) -> Decimal:
        return sum((l.balance for l in self.loans), Decimal(0))

    def inventory_value(self) -> Decimal:
        return sum((s.inventory_value() for s in self.stores), Decimal(0))

    def net_worth(self) -> Decimal:
        """Cash plus stock at shelf prices, less what is still owed."""
        return self.cash + self.inventory_value() - self.total_debt()

    def daily_expenses(self, salary: Decimal) -> Decimal:
        return sum((s.daily_rent + s.salaries(salary) for s in self.stores), Decimal(0))

    def restore(self, saved: _PlayerInstance) -> None:
        """
        Roll back to `saved` (a deep copy taken earlier) in place. Store, inventory
        and loan objects that still exist are updated rather than replaced, so
        references held by callers stay attached to the game.
        """
        live_stores = {s.store_id: s for s in self.stores}
        stores = []
        for saved_store in saved.stores:
            store = live_stores.get(saved_store.store_id)
            if store is None:
                store = saved_store
            else:
                store.restore(saved_store)
            stores.append(store)

        live_loans = {l.loan_id: l for l in self.loans}
        loans = []
        for saved_loan in saved.loans:
            loan = live_loans.get(saved_loan.loan_id)
            if loan is None:
                loan = saved_loan
            else:
                _copy_fields(loan, saved_loan)
            loans.append(loan)

        self.cash = saved.cash
        self.next_store_id = saved.next_store_id
        self.next_loan_id = saved.next_loan_id
        self.stores[:] = stores
        self.loans = loans

# ────────────────────────────────────────────────────────────────────────────
# Economy
# ────────────────────────────────────────────────────────────────────────────

class EconomicState(str, Enum):
    COLLAPSE = "Collapse"
    RECESSION = "Recession"
    STANDARD = "Standard"
    GROWTH = "Growth"
    BOOMING = "Booming"
    PROSPERITY = "Prosperity"

    @property
    def sales_multiplier(self) -> Decimal:
        return _ECONOMY_TABLE[self][0]

    @property
    def price_multiplier(self) -> Decimal:
        return _ECONOMY_TABLE[self][1]

    @property
    def interest_rate(self) -> Decimal:
        return _ECONOMY_TABLE[self][2]

    def shifted(self, steps: int) -> EconomicState:
        """Neighbouring state `steps` away, saturating at Collapse/Prosperity."""
        order = list(EconomicState)
        idx = min(max(order.index(self) + steps, 0), len(order) - 1)
        return order[idx]


# state -> (sales multiplier, wholesale price multiplier, base interest rate)
_ECONOMY_TABLE = {
    EconomicState.COLLAPSE: (Decimal("0.5"), Decimal("0.8"), Decimal("0.15")),
    EconomicState.RECESSION: (Decimal("0.7"), Decimal("0.9"), Decimal("0.10")),
    EconomicState.STANDARD: (Decimal("1"), Decimal("1"), Decimal("0.06")),
    EconomicState.GROWTH: (Decimal("1.2"), Decimal("1.05"), Decimal("0.05")),
    EconomicState.BOOMING: (Decimal("1.4"), Decimal("1.1"), Decimal("0.04")),
    EconomicState.PROSPERITY: (Decimal("1.6"), Decimal("1.15"), Decimal("0.03")),
}
