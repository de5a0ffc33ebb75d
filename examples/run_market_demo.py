#!/usr/bin/env python3
"""Run a baseline tradepost market simulation and print results."""

from tradepost.core.engine import EconomyEngine
from tradepost.experiment.presets import get_preset


def main():
    config = get_preset("baseline")
    agents = config.agent_config["initial_population"]
    days = 2

    print(f"=== tradepost: {config.experiment_name} ===")
    print(f"Agents: {agents}")
    print(f"Catalog: {'built-in' if config.item_catalog is None else len(config.item_catalog)} items")
    print(f"Tick: {config.minutes_per_tick} minutes ({config.ticks_per_day} ticks/day)")
    print()

    engine = EconomyEngine(config)
    engine.populate(agents)
    history = engine.run(config.ticks_per_day * days)

    print(f"{'Tick':>5} {'Mkt':>4} {'Net':>4} {'Offers':>6} {'Agreed':>6} {'Failed':>6} "
          f"{'Volume':>9} {'PriceIdx':>8} {'Gini':>6} {'Health':>7}")
    print("-" * 78)

    for snap in history:
        if snap.health_score is None:
            continue
        print(
            f"{snap.tick:5d} {snap.market_trades:4d} {snap.network_trades:4d} "
            f"{snap.offers_made:6d} {snap.negotiations_agreed:6d} {snap.negotiations_failed:6d} "
            f"{snap.trade_volume:9.1f} {snap.price_index:8.3f} {snap.gini:6.3f} "
            f"{snap.health_score:5.1f} {snap.health_grade}"
        )

    print()
    print(engine.market.get_market_report())
    print()
    print(engine.network.get_trading_network_report())
    print()
    print(engine.analyzer.generate_report())

    shocks = [s for snap in history for s in snap.shocks]
    print(f"\nShocks injected: {len(shocks)}")
    for shock in shocks[:10]:
        print(f"  {shock}")


if __name__ == "__main__":
    main()
