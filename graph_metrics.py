# graph_metrics.py

"""
graph_metrics.py - Information metrics for weighted directed graphs.

Turns a coupling graph (commit ancestry, static coupling, co-change coupling)
into a few scalars:
1. Coupling degrees: per-node sums of edge weights and their sum/max/average.
2. Estimated size: bits needed to describe the role of every node.
3. Estimated complexity: the extra description needed when the graph is
   described as independent 1-hop neighbourhoods instead of one whole.

Graphs are arenas: nodes are addressed by their index in the graph and edges
store the index of the node on the other side.
"""

import math
from dataclasses import dataclass
from typing import Dict, Hashable, List, NamedTuple, Optional, Sequence, Tuple


class GraphMetricError(ValueError):
    """Base error for graph construction and metric evaluation."""


class MalformedGraphError(GraphMetricError):
    """Raised when an edge references an unknown node or carries a bad weight."""


class EmptyGraphError(GraphMetricError):
    """Raised when an average is requested over zero nodes."""


# ============================================================================
# GRAPH MODEL
# ============================================================================


class GraphEdge(NamedTuple):
    """One side of a directed edge: the index of the other node and the weight."""

    node: int
    weight: float


@dataclass(frozen=True)
class GraphNode:
    """A vertex holding its incoming and outgoing edges."""

    in_edges: Tuple[GraphEdge, ...] = ()
    out_edges: Tuple[GraphEdge, ...] = ()

    @property
    def is_isolated(self) -> bool:
        return not self.in_edges and not self.out_edges


Graph = Sequence[GraphNode]


class GraphBuilder:
    """
    Two-pass, identifier-keyed construction of a Graph.

    Nodes are allocated first under an external key (a tool node id, a commit
    hash); edges are then resolved against those keys. With
    ``create_missing=True`` an edge endpoint that has not been added yet gets
    a node allocated on the fly, which is how commit parents are discovered.
    """

    def __init__(self, create_missing: bool = False):
        self.create_missing = create_missing
        self._index: Dict[Hashable, int] = {}
        self._in_edges: List[List[GraphEdge]] = []
        self._out_edges: List[List[GraphEdge]] = []

    def __len__(self) -> int:
        return len(self._index)

    def add_node(self, key: Hashable) -> int:
        """Allocates a node for key (once) and returns its index."""
        if key not in self._index:
            self._index[key] = len(self._in_edges)
            self._in_edges.append([])
            self._out_edges.append([])
        return self._index[key]

    def index_of(self, key: Hashable) -> int:
        try:
            return self._index[key]
        except KeyError:
            raise MalformedGraphError(f"Unknown node id: {key!r}") from None

    def add_edge(self, start: Hashable, end: Hashable, weight: float = 1.0):
        """Records a directed edge start -> end on both of its endpoints."""
        weight = float(weight)
        if not math.isfinite(weight) or weight < 0:
            raise MalformedGraphError(
                f"Invalid weight {weight!r} on edge {start!r} -> {end!r}"
            )

        if self.create_missing:
            start_idx, end_idx = self.add_node(start), self.add_node(end)
        else:
            start_idx, end_idx = self.index_of(start), self.index_of(end)

        self._out_edges[start_idx].append(GraphEdge(end_idx, weight))
        self._in_edges[end_idx].append(GraphEdge(start_idx, weight))

    def build(self) -> List[GraphNode]:
        """Freezes the collected nodes into an immutable graph snapshot."""
        return [
            GraphNode(tuple(in_edges), tuple(out_edges))
            for in_edges, out_edges in zip(self._in_edges, self._out_edges)
        ]


# ============================================================================
# DEGREE AGGREGATION & FILTERING
# ============================================================================


@dataclass(frozen=True)
class DegreeStats:
    sum: float
    max: float
    avg: float


def sum_weights(graph: Graph) -> List[float]:
    """Sums the weights of all in and out edges for every node."""
    return [
        sum(edge.weight for edge in node.in_edges)
        + sum(edge.weight for edge in node.out_edges)
        for node in graph
    ]


def degree_stats(graph: Graph) -> DegreeStats:
    """
    Sum, maximum and mean of the coupling degrees of a graph.

    Raises EmptyGraphError for a graph without nodes, so that "no data" is
    never reported as "no coupling".
    """
    degrees = sum_weights(graph)
    if not degrees:
        raise EmptyGraphError("Cannot average coupling degrees of an empty graph")

    total = sum(degrees)
    maximum = max([0.0] + degrees)
    return DegreeStats(sum=total, max=maximum, avg=total / len(degrees))


def edge_only_graph(graph: Graph) -> List[GraphNode]:
    """Drops isolated nodes and re-indexes the remaining ones densely."""
    remap = {}
    for idx, node in enumerate(graph):
        if not node.is_isolated:
            remap[idx] = len(remap)

    return [
        GraphNode(
            tuple(GraphEdge(remap[e.node], e.weight) for e in graph[idx].in_edges),
            tuple(GraphEdge(remap[e.node], e.weight) for e in graph[idx].out_edges),
        )
        for idx in remap
    ]


# ============================================================================
# SIZE & COMPLEXITY ESTIMATION
# ============================================================================


@dataclass(frozen=True)
class EstimatorOptions:
    """
    Switches for the two known quirks of the estimators.

    Both default to the reference behaviour: a two-node pipe is charged on
    both of its nodes, and an empty remainder in a subsystem view evaluates
    log2(0) to -inf.
    """

    dedupe_pipes: bool = False
    guard_empty_remainder: bool = False


DEFAULT_OPTIONS = EstimatorOptions()


def _log2(x: float) -> float:
    # log2(0) is surfaced as -inf; negative arguments mean the counts are broken.
    if x == 0:
        return -math.inf
    if x < 0:
        raise GraphMetricError(f"log2 of negative argument {x!r}")
    return math.log2(x)


def _zero_label_bits(zero_nodes: float, node_count: float) -> float:
    # Zero-labelled nodes share one class; the environment node is not charged.
    if zero_nodes == 1:
        return 0.0
    return -(zero_nodes - 1) * _log2(zero_nodes / node_count)


def _is_pipe_source(graph: Graph, node: GraphNode) -> bool:
    if len(node.in_edges) != 0 or len(node.out_edges) != 1:
        return False
    other = graph[node.out_edges[0].node]
    return len(other.in_edges) == 1 and len(other.out_edges) == 0


def _is_pipe_sink(graph: Graph, node: GraphNode) -> bool:
    if len(node.in_edges) != 1 or len(node.out_edges) != 0:
        return False
    other = graph[node.in_edges[0].node]
    return len(other.in_edges) == 0 and len(other.out_edges) == 1


def _is_mutual_pair(graph: Graph, node: GraphNode) -> bool:
    if len(node.in_edges) != 1 or len(node.out_edges) != 1:
        return False
    if node.in_edges[0].node != node.out_edges[0].node:
        return False
    other = graph[node.in_edges[0].node]
    return len(other.in_edges) == 1 and len(other.out_edges) == 1


def est_graph_size(graph: Graph, options: Optional[EstimatorOptions] = None) -> float:
    """
    Estimates the size of a graph in bits.

    Every node gets a label: isolated nodes share the zero label with the
    implicit environment node, the two nodes of a pipe or a mutual pair share
    a label, and every other node has a distinct one. The result is the
    self-information of all labels among len(graph) + 1 locations.
    """
    options = options or DEFAULT_OPTIONS
    zero_nodes = 1.0
    node_count = float(len(graph) + 1)
    result = 0.0

    for node in graph:
        if node.is_isolated:
            zero_nodes += 1
            continue

        if _is_pipe_source(graph, node):
            result -= _log2(2 / node_count)
            continue

        if _is_pipe_sink(graph, node):
            if not options.dedupe_pipes:
                result -= _log2(2 / node_count)
            continue

        if _is_mutual_pair(graph, node):
            result -= _log2(2 / node_count)
            continue

        result -= _log2(1 / node_count)

    result += _zero_label_bits(zero_nodes, node_count)
    return result


def connected_nodes(graph: Graph, i: int) -> int:
    """Number of distinct nodes one edge away from node i, in either direction."""
    node = graph[i]
    neighbours = {edge.node for edge in node.in_edges}
    neighbours.update(edge.node for edge in node.out_edges)
    return len(neighbours)


def est_subsystem_size(
    graph: Graph, i: int, options: Optional[EstimatorOptions] = None
) -> float:
    """Estimates the size of the 1-hop subsystem around node i."""
    options = options or DEFAULT_OPTIONS
    node_count = float(len(graph) + 1)
    connected = connected_nodes(graph, i)
    result = 0.0

    if connected == 1:
        # node i and its single neighbour share a label
        result -= 2 * _log2(2 / node_count)
    else:
        result -= (connected + 1) * _log2(1 / node_count)

    zero_nodes = node_count - connected - 1
    if zero_nodes == 0 and options.guard_empty_remainder:
        return result

    result += _zero_label_bits(zero_nodes, node_count)
    return result


def est_graph_complexity(
    graph: Graph, options: Optional[EstimatorOptions] = None
) -> float:
    """
    Estimates the complexity of a graph.

    Sum of the subsystem sizes of every node of the edge-only graph, minus the
    size of the edge-only graph itself. May be negative, and is -inf when a
    subsystem covers the whole graph and the remainder is left unguarded.
    """
    edges_only = edge_only_graph(graph)

    result = 0.0
    for i in range(len(edges_only)):
        result += est_subsystem_size(edges_only, i, options)

    result -= est_graph_size(edges_only, options)
    return result
