"""Breadth-first graph scheduler."""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Sequence, Set

from core.execution.context import RunContext
from core.execution.errors import NodeExecutionError
from core.execution.loop import LoopExpander
from core.execution.resolver import VariableResolver
from core.execution.router import BranchRouter
from core.graph.models import ExecutedRecord, GraphEdge, GraphNode, RunPayload
from plugins.base import BranchResult, NodeAdapter


@dataclass
class QueueItem:
    """A node waiting to run and its distance from the nearest root."""
    node_id: str
    depth: int


@dataclass
class ExploredState:
    """Cycle bookkeeping for one node id."""
    remaining_loop: int
    last_seen_depth: int


class GraphScheduler:
    """Walks a workflow graph breadth-first and runs every reached node.

    Starting nodes are treated as already satisfied: only their successors
    run. A node reached again at a new depth consumes one unit of its loop
    budget; once the budget is spent the node is no longer queued, which is
    what terminates cycles. The first adapter failure aborts the run with
    :class:`NodeExecutionError`.
    """

    def __init__(self, context: RunContext):
        self.context = context
        self.resolver = VariableResolver(context.code_keys)
        self.expander = LoopExpander(self.resolver)
        self.router = BranchRouter()
        self.logger = context.logger

    async def run_payload(self, payload: RunPayload) -> List[ExecutedRecord]:
        return await self.execute(
            payload.starting_node_ids,
            payload.nodes,
            payload.edges,
            payload.graph
        )

    async def execute(
        self,
        starting_node_ids: Sequence[str],
        nodes: Iterable[GraphNode],
        edges: Sequence[GraphEdge],
        graph: Dict[str, List[str]]
    ) -> List[ExecutedRecord]:
        """Run the graph and return the executed records in execution order."""
        records = self.context.records
        node_map = {node.id: node for node in nodes}
        roots = set(starting_node_ids)
        max_loop = self.context.max_loop

        queue: Deque[QueueItem] = deque()
        explored: Dict[str, ExploredState] = {}
        for node_id in starting_node_ids:
            queue.append(QueueItem(node_id=node_id, depth=0))
            explored[node_id] = ExploredState(remaining_loop=max_loop, last_seen_depth=0)

        self.logger.info(
            "graph_execution_started",
            starting_nodes=list(starting_node_ids),
            nodes=len(node_map)
        )

        while queue:
            item = queue.popleft()
            ignore: Set[str] = set()

            if item.node_id not in roots:
                node = node_map.get(item.node_id)
                if node is None:
                    self.logger.warning("node_not_found", node_id=item.node_id)
                    continue

                adapter = self.context.registry.get(node.data.name)
                if adapter is None:
                    self.logger.warning(
                        "adapter_not_found",
                        node_id=node.id,
                        node_type=node.data.name
                    )
                    continue

                record = await self._execute_node(node, adapter, item.depth)

                if adapter.branching:
                    ignore = self.router.prune_edges(node.id, record, edges)

                records.append(record)

            self._enqueue_successors(item, graph.get(item.node_id, []), ignore, explored, queue)

        self.logger.info("graph_execution_completed", executed=len(records))
        return records

    async def _execute_node(self, node: GraphNode, adapter: NodeAdapter, depth: int) -> ExecutedRecord:
        log = self.logger.bind(node_id=node.id, node_type=node.data.name)
        log.info("node_execution_started", depth=depth)

        try:
            node_data = await self.context.resources.prepare(node.data)
            iterations = self.expander.expand(node_data, self.context.records)

            results: List = []
            branches: List[int] = []
            explicit_branch = False

            # Iterations run strictly one after another
            for node_input in iterations:
                outcome = await adapter.run(node_input)
                if isinstance(outcome, BaseException):
                    raise outcome
                await self.context.resources.after_call(outcome, node_input)

                if isinstance(outcome, BranchResult):
                    explicit_branch = True
                    results.extend(outcome.records)
                    if outcome.taken is not None and outcome.taken not in branches:
                        branches.append(outcome.taken)
                elif outcome:
                    results.extend(outcome)

        except Exception as e:
            message = str(e) or type(e).__name__
            log.error("node_execution_failed", error=message, error_type=type(e).__name__)
            self.context.records.append(
                ExecutedRecord(
                    node_id=node.id,
                    node_label=node.data.label,
                    data=[{"error": message}]
                )
            )
            raise NodeExecutionError(node.id, message, self.context.records) from e

        log.info("node_execution_completed", iterations=len(iterations), results=len(results))
        return ExecutedRecord(
            node_id=node.id,
            node_label=node.data.label,
            data=results,
            branches=branches if explicit_branch else None
        )

    def _enqueue_successors(
        self,
        item: QueueItem,
        successors: Iterable[str],
        ignore: Set[str],
        explored: Dict[str, ExploredState],
        queue: Deque[QueueItem]
    ) -> None:
        next_depth = item.depth + 1

        for successor in successors:
            if successor in ignore:
                continue

            state = explored.get(successor)
            if state is None:
                explored[successor] = ExploredState(
                    remaining_loop=self.context.max_loop,
                    last_seen_depth=next_depth
                )
                queue.append(QueueItem(node_id=successor, depth=next_depth))
                continue

            # Already queued in this wave
            if state.last_seen_depth == next_depth:
                continue

            if state.remaining_loop == 0:
                self.logger.debug("loop_budget_exhausted", node_id=successor)
                continue

            state.remaining_loop -= 1
            state.last_seen_depth = next_depth
            queue.append(QueueItem(node_id=successor, depth=next_depth))
