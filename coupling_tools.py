# coupling_tools.py

"""
Static and git co-change coupling analyses.

Both analyses run an external tool on a repository, read the node/edge JSON
it writes, convert it into a coupling graph and report the coupling degrees,
size and complexity of that graph. Tool outputs are kept under the output
directory and reused by later runs unless a rerun is forced.
"""

import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from graph_metrics import (
    GraphBuilder,
    GraphNode,
    MalformedGraphError,
    degree_stats,
    est_graph_complexity,
    est_graph_size,
)
from gitutils import run_command
from options import AnalysisOptions

logger = logging.getLogger(__name__)


class ToolOutputError(Exception):
    """Raised when a coupling tool output cannot be read or holds no graph."""


@dataclass
class ToolNode:
    id: str


@dataclass
class ToolEdge:
    start: str
    end: str
    weight: float = 0.0
    id: Optional[str] = None
    directed: bool = True


@dataclass
class ToolOutput:
    """Node/edge list written by a coupling tool."""

    nodes: List[ToolNode] = field(default_factory=list)
    edges: List[ToolEdge] = field(default_factory=list)


@dataclass(frozen=True)
class CouplingTool:
    """How to run one coupling tool and name its metrics."""

    label: str
    degree_key: str
    graph_key: str
    command: Callable[[AnalysisOptions], str]
    output_root: Callable[[AnalysisOptions], Path]
    # Path of the results file relative to the tool's output directory
    results_file: str
    arguments: Callable[[str, Path], List[str]]
    force: Callable[[AnalysisOptions], bool]


def _sct_arguments(repo_path: str, output_dir: Path) -> List[str]:
    return ["-m", "-l", "cpp", "-p", repo_path, "-o", str(output_dir)]


def _gct_arguments(repo_path: str, output_dir: Path) -> List[str]:
    args = [repo_path, "-r", "-c", "1"]
    for extension in (".c", ".cpp", ".h", ".hpp"):
        args += ["--file-type", extension]
    return args + ["-f", "JSON", "-o", str(output_dir / "result.json")]


STATIC_COUPLING_TOOL = CouplingTool(
    label="sct",
    degree_key="Scd",
    graph_key="Sct",
    command=lambda opts: opts.sct_command,
    output_root=lambda opts: opts.sct_dir,
    results_file="0/results.json",
    arguments=_sct_arguments,
    force=lambda opts: opts.force_sct,
)

GIT_COUPLING_TOOL = CouplingTool(
    label="gct",
    degree_key="Gcd",
    graph_key="Gct",
    command=lambda opts: opts.gct_command,
    output_root=lambda opts: opts.gct_dir,
    results_file="result.json",
    arguments=_gct_arguments,
    force=lambda opts: opts.force_gct,
)


# ============================================================================
# PARSING & CONVERSION
# ============================================================================


def _lower_keys(record: Dict[str, Any]) -> Dict[str, Any]:
    # Tool JSON field names are matched case-insensitively ("Id" == "id").
    return {str(key).lower(): value for key, value in record.items()}


def _as_id(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def load_tool_output(raw_data: Dict[str, Any], label: str = "tool") -> ToolOutput:
    """Converts decoded tool JSON into a ToolOutput, rejecting empty graphs."""
    if not isinstance(raw_data, dict):
        raise ToolOutputError(f"{label} output is not a JSON object")

    raw_data = _lower_keys(raw_data)
    nodes = [
        ToolNode(id=_as_id(_lower_keys(node).get("id")))
        for node in raw_data.get("nodes") or []
    ]
    edges = []
    for edge in raw_data.get("edges") or []:
        edge = _lower_keys(edge)
        edges.append(
            ToolEdge(
                start=_as_id(edge.get("start")),
                end=_as_id(edge.get("end")),
                weight=float(edge.get("weight") or 0.0),
                id=_as_id(edge.get("id")),
                directed=bool(edge.get("directed", True)),
            )
        )

    if not nodes:
        raise ToolOutputError(f"empty {label} graph")

    return ToolOutput(nodes=nodes, edges=edges)


def parse_tool_output(path: Union[str, Path], label: str = "tool") -> ToolOutput:
    """Parses the results file at path. Raises ToolOutputError if parsing fails."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ToolOutputError(f"Invalid {label} JSON file {path}: {e}") from e
    except OSError as e:
        raise ToolOutputError(f"Error reading {label} output {path}: {e}") from e

    try:
        return load_tool_output(raw_data, label)
    except (AttributeError, TypeError, ValueError) as e:
        raise ToolOutputError(f"Malformed {label} output {path}: {e}") from e


def convert_to_graph(output: ToolOutput) -> List[GraphNode]:
    """
    Converts a tool output into the graph representation used for analysis.

    Nodes are allocated first; an edge referencing an id that is not in the
    node list raises MalformedGraphError.
    """
    builder = GraphBuilder()
    for node in output.nodes:
        builder.add_node(node.id)
    for edge in output.edges:
        builder.add_edge(edge.start, edge.end, edge.weight)
    return builder.build()


# ============================================================================
# ANALYSIS
# ============================================================================


def analyse_tool_output(
    output: ToolOutput,
    tool: CouplingTool,
    options: Optional[AnalysisOptions] = None,
) -> Dict[str, float]:
    """
    Analyses a tool output.

    Returns a mapping with the fields Sum<X>, Max<X>, Avg<X>, Size<Y> and
    Complexity<Y>, where X is the tool's degree key and Y its graph key.
    """
    options = options or AnalysisOptions()
    graph = convert_to_graph(output)
    stats = degree_stats(graph)

    return {
        f"Sum{tool.degree_key}": stats.sum,
        f"Max{tool.degree_key}": stats.max,
        f"Avg{tool.degree_key}": stats.avg,
        f"Size{tool.graph_key}": est_graph_size(graph, options.estimator),
        f"Complexity{tool.graph_key}": est_graph_complexity(graph, options.estimator),
    }


def run_tool(
    tool: CouplingTool, repo_path: str, output_dir: Path, options: AnalysisOptions
):
    """Runs the coupling tool on the repository, writing into output_dir."""
    args = [tool.command(options)] + tool.arguments(repo_path, output_dir)
    run_command(args, options)


def run_coupling_analysis(
    repo_path: Union[str, Path],
    tool: CouplingTool,
    options: Optional[AnalysisOptions] = None,
) -> Dict[str, float]:
    """
    Runs a coupling tool and the corresponding analysis on the repository.

    A previous output of the tool for this repository is reused if it still
    parses into a valid graph; an unparsable, malformed or forced-stale output
    is deleted and regenerated.
    """
    options = options or AnalysisOptions()
    repo_path = str(repo_path)
    output_dir = tool.output_root(options) / Path(repo_path).name
    results_path = output_dir / tool.results_file

    if results_path.exists():
        if tool.force(options):
            shutil.rmtree(output_dir)
        else:
            logger.debug(f"parsing old {tool.label} result")
            try:
                output = parse_tool_output(results_path, tool.label)
                convert_to_graph(output)
            except (ToolOutputError, MalformedGraphError) as e:
                logger.debug(f"parsing failed: {e}")
                shutil.rmtree(output_dir)
            else:
                logger.debug("using old result for analysis")
                return analyse_tool_output(output, tool, options)

    output_dir.mkdir(parents=True, exist_ok=True)

    logger.debug(f"running {tool.label} on {repo_path}")
    try:
        run_tool(tool, repo_path, output_dir, options)
    except Exception:
        shutil.rmtree(output_dir, ignore_errors=True)
        raise

    logger.debug(f"parsing {tool.label} output")
    output = parse_tool_output(results_path, tool.label)

    logger.debug(f"analysing {tool.label} output")
    return analyse_tool_output(output, tool, options)


def run_sct_analysis(
    repo_path: Union[str, Path], options: Optional[AnalysisOptions] = None
) -> Dict[str, float]:
    """Static coupling analysis: SumScd, MaxScd, AvgScd, SizeSct, ComplexitySct."""
    return run_coupling_analysis(repo_path, STATIC_COUPLING_TOOL, options)


def run_gct_analysis(
    repo_path: Union[str, Path], options: Optional[AnalysisOptions] = None
) -> Dict[str, float]:
    """Git coupling analysis: SumGcd, MaxGcd, AvgGcd, SizeGct, ComplexityGct."""
    return run_coupling_analysis(repo_path, GIT_COUPLING_TOOL, options)
