#!/usr/bin/env python3
"""
Mine a list of repositories for commit-graph and coupling-graph metrics.

Clones and builds every repository from the input file, runs the git, static
coupling and git coupling analyses on each and saves all metrics as JSON.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from coupling_tools import run_gct_analysis, run_sct_analysis
from gitutils import load_repositories, parse_input_file, run_git_analysis
from graph_metrics import EstimatorOptions
from options import AnalysisOptions, OUT_DIR, configure_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="cgm",
        description="Estimate size and complexity of repositories from their coupling graphs.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
The input file alternates repository URLs and build commands:
  https://github.com/org/project.git
  mkdir build && cd build && cmake .. && make

Examples:
  %(prog)s repos.txt
  %(prog)s repos.txt -v 2 -o metrics.json --skip-build
  %(prog)s repos.txt --skip-sct --gct ./GitCouplingTool
        """,
    )

    parser.add_argument("input", help="Path to the input file")

    parser.add_argument(
        "-v",
        dest="verbosity",
        type=int,
        default=1,
        help="verbosity: 0 errors only, 1 status, 2 debug, 3 pass on tool output (default: 1)",
    )
    parser.add_argument(
        "--sct",
        default="StaticCouplingTool",
        help="command to run the StaticCouplingTool (default: StaticCouplingTool)",
    )
    parser.add_argument(
        "--gct",
        default="GitCouplingTool",
        help="command to run the GitCouplingTool (default: GitCouplingTool)",
    )
    parser.add_argument(
        "--skip-git", action="store_true", help="skip extraction of git metrics"
    )
    parser.add_argument(
        "--skip-sct",
        action="store_true",
        help="skip analysis based on the static coupling tool",
    )
    parser.add_argument(
        "--skip-gct",
        action="store_true",
        help="skip analysis based on the git coupling tool",
    )
    parser.add_argument(
        "--skip-build",
        action="store_true",
        help="skip build process and only clone the repositories",
    )
    parser.add_argument(
        "--force-git", action="store_true", help="ignore old saves and reload every git"
    )
    parser.add_argument(
        "--force-sct",
        action="store_true",
        help="ignore old sct outputs and rerun analysis",
    )
    parser.add_argument(
        "--force-gct",
        action="store_true",
        help="ignore old gct outputs and rerun analysis",
    )
    parser.add_argument(
        "-o",
        "--output",
        default="./result.json",
        help="file to save output in (default: ./result.json)",
    )
    parser.add_argument(
        "--out-dir",
        default=OUT_DIR,
        help=f"directory for clones and tool outputs (default: {OUT_DIR})",
    )
    parser.add_argument(
        "--dedupe-pipes",
        action="store_true",
        help="charge a two-node pipe once instead of once per node in size estimates",
    )
    parser.add_argument(
        "--guard-empty-remainder",
        action="store_true",
        help="let an empty remainder contribute 0 bits instead of -inf to complexity",
    )

    return parser.parse_args(argv)


def options_from_args(args) -> AnalysisOptions:
    return AnalysisOptions(
        verbosity=args.verbosity,
        sct_command=args.sct,
        gct_command=args.gct,
        skip_build=args.skip_build,
        force_git=args.force_git,
        force_sct=args.force_sct,
        force_gct=args.force_gct,
        out_dir=args.out_dir,
        estimator=EstimatorOptions(
            dedupe_pipes=args.dedupe_pipes,
            guard_empty_remainder=args.guard_empty_remainder,
        ),
    )


def analyse_repositories(
    repos: List[str],
    options: AnalysisOptions,
    skip_git: bool = False,
    skip_sct: bool = False,
    skip_gct: bool = False,
) -> Dict[str, Dict[str, Any]]:
    """
    Runs the selected analyses on every repository.

    Returns a mapping from repository directory name to its Git, Sct and Gct
    results. A repository whose analyses fail is logged and left out.
    """
    analyses = [
        ("Git", "git analysis", skip_git, run_git_analysis),
        ("Sct", "static coupling analysis", skip_sct, run_sct_analysis),
        ("Gct", "git coupling analysis", skip_gct, run_gct_analysis),
    ]

    output = {}
    for i, repo in enumerate(repos, 1):
        logger.info(f"[{i}/{len(repos)}] {repo}")
        result = {"Git": None, "Sct": None, "Gct": None}

        try:
            for key, name, skip, analyse in analyses:
                if skip:
                    continue
                logger.info(f"[{i}/{len(repos)}] running {name}")
                result[key] = analyse(repo, options)
        except Exception as e:
            logger.error(f"{repo}: {e}")
            continue

        output[Path(repo).name] = result

    return output


def save_output(output: Dict[str, Dict[str, Any]], output_file: str):
    """Writes the results as indented JSON; non-finite metrics stay visible."""
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(output, f, indent=4)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    options = options_from_args(args)
    configure_logging(options.verbosity)

    try:
        urls, commands = parse_input_file(args.input)
    except (OSError, ValueError) as e:
        logger.error(f"Error: {e}")
        return 1

    logger.info("loading repositories:")
    repos = load_repositories(urls, commands, options)

    logger.info("analysing repositories:")
    output = analyse_repositories(
        repos,
        options,
        skip_git=args.skip_git,
        skip_sct=args.skip_sct,
        skip_gct=args.skip_gct,
    )

    logger.info(f"saving output: {args.output}")
    try:
        save_output(output, args.output)
    except OSError as e:
        logger.error(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
