"""
Resource flow ledger: every gold and item movement in the economy.

The ledger subscribes to the market's transfer primitives, so trades,
shop purchases/sales and external rewards all land here as ResourceFlow
entries. From the ledger it derives per-agent economic entities, system
source/sink nodes, wealth distribution snapshots and flow graphs.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from tradepost.analysis.stats import concentration_label, gini_coefficient, percentile

if TYPE_CHECKING:
    from tradepost.core.market import MarketSimulation


class ResourceType(str, Enum):
    GOLD = "gold"
    ITEM = "item"


class FlowType(str, Enum):
    TRADE = "trade"
    JOB_REWARD = "job_reward"
    COMBAT_LOOT = "combat_loot"
    SALE = "sale"
    PURCHASE = "purchase"
    GIFT = "gift"
    QUEST_REWARD = "quest_reward"
    GANG_PAYMENT = "gang_payment"
    TAX = "tax"
    SINK = "sink"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResourceFlow:
    flow_id: str
    from_id: str
    to_id: str
    resource_type: ResourceType
    amount: float
    tick: int
    flow_type: FlowType
    value: float  # gold equivalent
    item_id: str | None = None


@dataclass
class EconomicEntity:
    """Derived economic position of one agent. Recomputed on demand."""
    entity_id: str
    entity_type: str = "agent"
    current_gold: float = 0.0
    current_inventory_value: float = 0.0
    total_wealth: float = 0.0
    wealth_rank: int = 0
    wealth_percentile: float = 0.0
    net_worth: float = 0.0
    cash_flow_24h: float = 0.0
    flow_velocity: float = 0.0  # flows per simulated hour


@dataclass
class ResourceNode:
    """A system gold source or sink."""
    node_id: str
    node_type: str  # "source" | "sink"
    resource_type: ResourceType
    description: str
    total_processed: float = 0.0
    flow_rate: float = 0.0  # gold per simulated hour


@dataclass(frozen=True)
class WealthDistribution:
    tick: int
    agent_count: int
    total_wealth: float
    mean_wealth: float
    median_wealth: float
    percentiles: dict[str, float]
    gini_coefficient: float
    top_10_percent_share: float
    bottom_50_percent_share: float
    concentration: str


@dataclass
class FlowGraphNode:
    id: str
    type: str  # "agent" | "system"
    wealth: float = 0.0
    inflow: float = 0.0
    outflow: float = 0.0

    @property
    def net_flow(self) -> float:
        return self.inflow - self.outflow


@dataclass
class FlowGraphEdge:
    source: str
    target: str
    flow_type: FlowType
    value: float = 0.0
    volume: int = 0


SYSTEM_NODES: list[tuple[str, str, str]] = [
    ("job_system", "source", "Job system gold generation"),
    ("combat_system", "source", "Combat loot gold generation"),
    ("quest_system", "source", "Quest reward gold generation"),
    ("shop_system", "sink", "Shop purchases gold removal"),
    ("tax_system", "sink", "Tax collection gold removal"),
]

# Which system node accounts for each flow type
NODE_FOR_FLOW: dict[FlowType, str] = {
    FlowType.JOB_REWARD: "job_system",
    FlowType.COMBAT_LOOT: "combat_system",
    FlowType.QUEST_REWARD: "quest_system",
    FlowType.PURCHASE: "shop_system",
    FlowType.TAX: "tax_system",
}

PERCENTILES = (10, 25, 50, 75, 90, 99)


class ResourceFlowLedger:
    """Bounded, append-only log of resource flows for one market."""

    def __init__(self, market: MarketSimulation):
        self.market = market
        ac = market.config.analysis_config
        self.flows: deque[ResourceFlow] = deque(maxlen=int(ac["flow_history_limit"]))
        self.wealth_history: deque[WealthDistribution] = deque(maxlen=int(ac["wealth_history_limit"]))
        self.entities: dict[str, EconomicEntity] = {}
        self.nodes: dict[str, ResourceNode] = {
            node_id: ResourceNode(node_id, node_type, ResourceType.GOLD, description)
            for node_id, node_type, description in SYSTEM_NODES
        }
        self._next_flow_id = 0
        market.add_flow_listener(self.record_flow)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def record_flow(
        self,
        from_id: str,
        to_id: str,
        resource_type: ResourceType | str,
        amount: float,
        flow_type: FlowType | str,
        item_id: str | None = None,
        value: float | None = None,
    ) -> ResourceFlow:
        resource_type = ResourceType(resource_type)
        flow_type = FlowType(flow_type)
        if value is None:
            if resource_type == ResourceType.GOLD:
                value = float(amount)
            else:
                item = self.market.get_item(item_id) if item_id else None
                value = item.current_price * amount if item else 0.0

        flow = ResourceFlow(
            flow_id=f"flow_{self._next_flow_id}",
            from_id=from_id,
            to_id=to_id,
            resource_type=resource_type,
            amount=float(amount),
            tick=self.market.tick,
            flow_type=flow_type,
            value=float(value),
            item_id=item_id,
        )
        self._next_flow_id += 1
        self.flows.append(flow)

        for agent_id in (from_id, to_id):
            if self.market.has_agent(agent_id):
                self._update_balances(agent_id)

        node_id = NODE_FOR_FLOW.get(flow_type)
        if node_id is not None and resource_type == ResourceType.GOLD:
            self.nodes[node_id].total_processed += flow.value
        return flow

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def recent_flows(self, hours: float = 1.0) -> list[ResourceFlow]:
        cutoff = self.market.tick - self.market.config.hours_to_ticks(hours)
        return [f for f in self.flows if f.tick > cutoff]

    def cash_flow_24h(self, agent_id: str) -> float:
        """Net gold gained (or lost) by an agent over the last simulated day."""
        net = 0.0
        for f in self.recent_flows(24):
            if f.resource_type != ResourceType.GOLD:
                continue
            if f.to_id == agent_id:
                net += f.amount
            if f.from_id == agent_id:
                net -= f.amount
        return net

    def flow_velocity(self, agent_id: str) -> float:
        return float(sum(1 for f in self.recent_flows(1) if agent_id in (f.from_id, f.to_id)))

    def _update_balances(self, agent_id: str) -> EconomicEntity:
        entity = self.entities.get(agent_id) or EconomicEntity(entity_id=agent_id)
        entity.current_gold = self.market.get_gold(agent_id)
        entity.current_inventory_value = self.market.inventory_value(agent_id)
        entity.total_wealth = entity.current_gold + entity.current_inventory_value
        entity.net_worth = entity.total_wealth
        self.entities[agent_id] = entity
        return entity

    def refresh_entity(self, agent_id: str) -> EconomicEntity:
        """Recompute an agent's balances and flow statistics."""
        entity = self._update_balances(agent_id)
        entity.cash_flow_24h = self.cash_flow_24h(agent_id)
        entity.flow_velocity = self.flow_velocity(agent_id)
        return entity

    def get_resource_nodes(self) -> list[ResourceNode]:
        """System nodes with their flow rate over the last simulated hour."""
        recent = self.recent_flows(1)
        for node_id, node in self.nodes.items():
            node.flow_rate = sum(
                f.value for f in recent
                if f.resource_type == ResourceType.GOLD and NODE_FOR_FLOW.get(f.flow_type) == node_id
            )
        return list(self.nodes.values())

    # ------------------------------------------------------------------
    # Wealth distribution
    # ------------------------------------------------------------------
    def calculate_wealth_distribution(self) -> WealthDistribution:
        """Wealth distribution across every registered agent.

        Writes ranks and percentiles back onto the entities. The result is
        not recorded; use ``snapshot_wealth`` for that.
        """
        entities = [self.refresh_entity(a) for a in self.market.agent_ids]
        wealths = sorted(e.total_wealth for e in entities)
        n = len(wealths)
        total = float(sum(wealths))

        if n == 0:
            distribution = WealthDistribution(
                tick=self.market.tick, agent_count=0, total_wealth=0.0,
                mean_wealth=0.0, median_wealth=0.0,
                percentiles={f"p{p}": 0.0 for p in PERCENTILES},
                gini_coefficient=0.0, top_10_percent_share=0.0,
                bottom_50_percent_share=0.0, concentration="low",
            )
        else:
            gini = gini_coefficient(wealths)
            top_count = -(-n // 10)  # ceil
            bottom_count = -(-n // 2)
            distribution = WealthDistribution(
                tick=self.market.tick,
                agent_count=n,
                total_wealth=total,
                mean_wealth=total / n,
                median_wealth=percentile(wealths, 50),
                percentiles={f"p{p}": percentile(wealths, p) for p in PERCENTILES},
                gini_coefficient=gini,
                top_10_percent_share=sum(wealths[-top_count:]) / total if total > 0 else 0.0,
                bottom_50_percent_share=sum(wealths[:bottom_count]) / total if total > 0 else 0.0,
                concentration=concentration_label(gini),
            )

        ranked = sorted(entities, key=lambda e: (-e.total_wealth, e.entity_id))
        for index, entity in enumerate(ranked):
            entity.wealth_rank = index + 1
            entity.wealth_percentile = index / n * 100
        return distribution

    def snapshot_wealth(self) -> WealthDistribution:
        """Compute the distribution and append it to the bounded wealth history."""
        distribution = self.calculate_wealth_distribution()
        self.wealth_history.append(distribution)
        return distribution

    # ------------------------------------------------------------------
    # Flow graph
    # ------------------------------------------------------------------
    def generate_flow_graph(self, hours: float = 1.0) -> dict[str, Any]:
        """Aggregate recent flows into a node/edge graph for visualization."""
        recent = self.recent_flows(hours)
        nodes: dict[str, FlowGraphNode] = {
            agent_id: FlowGraphNode(agent_id, "agent", wealth=self.refresh_entity(agent_id).total_wealth)
            for agent_id in self.market.agent_ids
        }
        edges: dict[tuple[str, str, FlowType], FlowGraphEdge] = {}

        for f in recent:
            for node_id in (f.from_id, f.to_id):
                if node_id not in nodes:
                    nodes[node_id] = FlowGraphNode(node_id, "system")
            nodes[f.from_id].outflow += f.value
            nodes[f.to_id].inflow += f.value

            key = (f.from_id, f.to_id, f.flow_type)
            edge = edges.get(key)
            if edge is None:
                edge = edges[key] = FlowGraphEdge(f.from_id, f.to_id, f.flow_type)
            edge.value += f.value
            edge.volume += 1

        return {"nodes": list(nodes.values()), "edges": list(edges.values())}
