"""
Graph — nodnod computation graphs.

    from bazaar import graph as G

    @G.node
    class SubtotalNode:
        def __init__(self, amount: Money) -> None:
            self.amount = amount

        @classmethod
        def __compose__(cls, snapshot: SnapshotNode) -> "SubtotalNode":
            return cls(sum(line.amount for line in snapshot.lines))

    node = await G.compose(BillingNode, context)
    node = await G.run(GuardResultNode).inject(spec)

Note: modules defining nodes must NOT use `from __future__ import
annotations`; nodnod resolves dependencies from runtime type hints.
"""

from nodnod import NodeError, case, polymorphic
from nodnod import scalar_node as node

from bazaar.graph._run import Run, compose, run

__all__ = (
    "node",
    "case",
    "polymorphic",
    "NodeError",
    "Run",
    "run",
    "compose",
)
