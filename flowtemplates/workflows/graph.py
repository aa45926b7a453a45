"""
Task Graph

DAG structure built from a template's task list for structural validation.
Vertices are task names, edges are preTask -> task precedence. The graph is
ephemeral: it lives for a single validation call and is never persisted.
"""

from collections import defaultdict, deque
from typing import Any, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from flowtemplates.logging_config import get_logger
from flowtemplates.schemas.template import TaskNode

logger = get_logger(__name__)


class TaskGraph(BaseModel):
    """
    Directed graph of task names.

    Supports:
    - Vertex management (re-adding a name overwrites its payload)
    - Guarded edge insertion that refuses unknown endpoints and cycles
    - Topological traversal and whole-graph cycle detection
    """
    nodes: Dict[str, Any] = Field(default_factory=dict)

    # predecessor name -> names of the tasks that wait for it
    edges: Dict[str, List[str]] = Field(default_factory=lambda: defaultdict(list))

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def add_node(self, name: str, node: Any = None) -> None:
        """Add a vertex, or replace the payload of an existing one."""
        self.nodes[name] = node

    def contains_node(self, name: str) -> bool:
        return name in self.nodes

    def add_edge(self, from_node: str, to_node: str) -> bool:
        """
        Add a precedence edge.

        Returns False without modifying the graph when either endpoint is
        unknown, when the edge is a self-loop, or when ``to_node`` already
        reaches ``from_node`` (the edge would close a cycle).
        """
        if not self._is_legal_add_edge(from_node, to_node):
            logger.debug("Illegal edge rejected", from_node=from_node, to_node=to_node)
            return False

        if to_node not in self.edges[from_node]:
            self.edges[from_node].append(to_node)
        return True

    def _is_legal_add_edge(self, from_node: str, to_node: str) -> bool:
        if from_node == to_node:
            return False
        if from_node not in self.nodes or to_node not in self.nodes:
            return False
        return from_node not in self._reachable_from(to_node)

    def _reachable_from(self, start: str) -> Set[str]:
        """All vertices reachable from ``start`` (``start`` included)."""
        seen: Set[str] = set()
        stack = [start]
        while stack:
            name = stack.pop()
            if name not in seen:
                seen.add(name)
                stack.extend(self.edges.get(name, ()))
        return seen

    def successors(self, name: str) -> List[str]:
        """Tasks that list ``name`` in their preTasks."""
        return list(self.edges.get(name, []))

    def predecessors(self, name: str) -> List[str]:
        """preTasks of ``name``."""
        return [source for source, targets in self.edges.items() if name in targets]

    def begin_nodes(self) -> List[str]:
        """Tasks without preTasks, in insertion order."""
        waiting = {target for targets in self.edges.values() for target in targets}
        return [name for name in self.nodes if name not in waiting]

    def end_nodes(self) -> List[str]:
        """Tasks nothing waits for."""
        return [name for name in self.nodes if not self.edges.get(name)]

    def topological_order(self) -> Optional[List[str]]:
        """
        Return vertices in topological order, or None if the graph has a cycle.
        """
        in_degree = {name: 0 for name in self.nodes}
        for targets in self.edges.values():
            for target in targets:
                in_degree[target] += 1

        queue = deque(name for name, degree in in_degree.items() if degree == 0)
        result = []

        while queue:
            name = queue.popleft()
            result.append(name)

            for waiting in self.edges.get(name, ()):
                in_degree[waiting] -= 1
                if not in_degree[waiting]:
                    queue.append(waiting)

        return result if len(result) == len(self.nodes) else None

    def has_cycle(self) -> bool:
        return self.topological_order() is None


def build_task_graph(task_nodes: Iterable[TaskNode]) -> Optional[TaskGraph]:
    """
    Build the precedence graph of a task list.

    Returns None as soon as an edge is refused (unknown predecessor or a
    cycle closed at insertion time).
    """
    task_nodes = list(task_nodes)
    graph = TaskGraph()

    for task_node in task_nodes:
        graph.add_node(task_node.name, task_node)

    for task_node in task_nodes:
        for pre_task in task_node.pre_tasks:
            if not graph.add_edge(pre_task, task_node.name):
                logger.info(
                    "Task edge refused",
                    pre_task=pre_task,
                    task=task_node.name,
                    known=graph.contains_node(pre_task),
                )
                return None

    return graph


def graph_has_cycle(task_nodes: Iterable[TaskNode]) -> bool:
    """True when the task list's preTasks edges cannot form a DAG."""
    graph = build_task_graph(task_nodes)
    if graph is None:
        return True
    return graph.has_cycle()
