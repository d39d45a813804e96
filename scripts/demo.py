from decimal import Decimal
from pathlib import Path
import sys

# Make src package discoverable
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import sim  # type: ignore
import objects as G  # type: ignore

# --- New import for live plotting ---
import matplotlib.pyplot as plt


def setup_game(seed: int, economic_cycle: bool) -> sim.GameState:
    """A fresh game with a bigger bankroll so there is something to watch."""
    config = G.GameConfig(starting_cash=Decimal("3000"), economic_cycle=economic_cycle)
    game = sim.GameState(config=config, seed=seed)
    game.hire_employee()
    return game


def run_simulation(days: int = 120, seed: int = 42, economic_cycle: bool = True) -> None:
    """Autoplay the store and plot cash, net worth and units sold as days pass.

    After day 30 the demo opens a second store whenever it can afford one and
    staffs it, so the effect of expansion shows up in the charts.
    """

    game = setup_game(seed, economic_cycle)
    bm = sim.BehaviorManager(game)
    bm.register(sim.RestockBehavior(target_units=60))

    plt.ion()

    fig_money, ax_money = plt.subplots()
    (line_cash,) = ax_money.plot([], [], label="cash")
    (line_worth,) = ax_money.plot([], [], label="net_worth")
    ax_money.set_xlabel("Day")
    ax_money.set_ylabel("$")
    ax_money.set_title("Cash & Net Worth")
    ax_money.legend()

    fig_sales, ax_sales = plt.subplots()
    (line_units,) = ax_sales.plot([], [], label="units_sold")
    ax_sales.set_xlabel("Day")
    ax_sales.set_ylabel("Units")
    ax_sales.set_title("Daily Units Sold")
    ax_sales.legend()

    cash_history: list[float] = []
    worth_history: list[float] = []
    units_history: list[int] = []

    for d in range(1, days + 1):
        if d > 30 and len(game.stores) < 3 and game.cash > game.config.new_store_cost * 2:
            store = game.buy_store()
            game.hire_employee(store=len(game.stores) - 1)
            print(f"Day {d:>3}: opened {store.name}")

        result = bm.tick()

        cash_history.append(float(result.cash))
        worth_history.append(float(game.net_worth()))
        units_history.append(result.total_items_sold)
        xs = range(1, d + 1)
        line_cash.set_data(xs, cash_history)
        line_worth.set_data(xs, worth_history)
        line_units.set_data(xs, units_history)

        change = f" | {result.economic_change}" if result.economic_change else ""
        print(f"Day {d:>3}: cash ${result.cash:.2f} | sold {result.total_items_sold}{change}")

        for ax in (ax_money, ax_sales):
            ax.relim()
            ax.autoscale_view()
        plt.pause(0.001)

        if result.game_over:
            print("Bankrupt!")
            break

    plt.ioff()
    plt.show()


if __name__ == "__main__":
    run_simulation()
