# gitutils.py

"""
gitutils.py - Repository loading and commit-history analysis.

This module contains two types of functions:
1. Repo-Based: cloning, building and opening the repositories listed in an
   input file, with live Git and shell operations.
2. Cache-Based: commit-graph and contributor metrics computed from a
   pre-built CommitHistoryCache.
"""

import logging
import math
import shutil
import subprocess
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

from git_cache import CommitHistoryCache
from graph_metrics import GraphBuilder, GraphNode, est_graph_complexity, est_graph_size
from options import AnalysisOptions

logger = logging.getLogger(__name__)


class GitAnalysisError(Exception):
    """Raised when a repository has no history to analyse."""


# ============================================================================
# REPOSITORY LOADING
# ============================================================================


def parse_input_file(path: Union[str, Path]) -> Tuple[List[str], List[str]]:
    """
    Parses an input file of alternating repository URL and build command lines.

    Returns the URLs and the build commands, in file order.
    """
    urls, commands = [], []
    lines = Path(path).read_text(encoding="utf-8").splitlines()

    for i in range(0, len(lines), 2):
        if i + 1 >= len(lines):
            raise ValueError(f"parsing {path}: missing command line")
        urls.append(lines[i])
        commands.append(lines[i + 1])

    return urls, commands


def repository_dir_name(url: str) -> str:
    """Directory name for a cloned repository: the URL basename without '.git'."""
    name = url.rstrip("/").rsplit("/", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name


def run_command(
    args: Sequence[str],
    options: AnalysisOptions,
    cwd: Optional[Union[str, Path]] = None,
) -> subprocess.CompletedProcess:
    """
    Runs a shell command, raising CalledProcessError on a non-zero exit.

    With verbosity >= 3 the command shares the terminal; otherwise its output
    is captured and logged at debug level.
    """
    logger.debug(f"executing: {' '.join(str(a) for a in args)}")

    if options.passthrough_output:
        return subprocess.run(list(args), cwd=cwd, check=True)

    try:
        result = subprocess.run(
            list(args),
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=True,
        )
    except subprocess.CalledProcessError as e:
        logger.debug(f"Command failed: {(e.stderr or '').strip()}")
        raise

    if result.stdout.strip():
        logger.debug(result.stdout.strip())
    return result


def load_repository(repo_path: Union[str, Path]) -> Repo:
    """Loads a Git repository from a given path."""
    try:
        return Repo(repo_path)
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        logger.error(
            f"Could not load repository at {repo_path}. Is it a valid git repo?"
        )
        raise e


def clone_repository(url: str, directory: Union[str, Path]) -> Repo:
    """Clones the repository given by url into directory."""
    logger.debug("cloning repository")
    return Repo.clone_from(url, str(directory))


def build_repository(
    directory: Union[str, Path], command: str, options: AnalysisOptions
):
    """Builds the repository at directory with the given shell command."""
    logger.debug("building repository")
    run_command(["sh", "-c", command], options, cwd=directory)


def load_repositories(
    urls: Sequence[str], commands: Sequence[str], options: AnalysisOptions
) -> List[str]:
    """
    Clones and builds every repository, returning the paths of the checkouts.

    Existing checkouts are reused unless options.force_git is set. A
    repository that fails to clone or build is logged and skipped.
    """
    if len(urls) != len(commands):
        raise ValueError(
            "loading repositories: unequal number of urls and build commands"
        )

    paths = []
    for i, (url, command) in enumerate(zip(urls, commands), 1):
        directory = options.gits_dir / repository_dir_name(url)
        logger.info(f"[{i}/{len(urls)}] loading repository: {url}")

        if _is_repository(directory):
            if not options.force_git:
                logger.debug("repository already exists")
                paths.append(str(directory))
                continue
            shutil.rmtree(directory)

        try:
            clone_repository(url, directory)
            if not options.skip_build:
                build_repository(directory, command, options)
        except Exception as e:
            logger.error(f"{url}: {e}")
            shutil.rmtree(directory, ignore_errors=True)
            continue

        paths.append(str(directory))

    return paths


def _is_repository(directory: Path) -> bool:
    try:
        Repo(directory)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False
    return True


# ============================================================================
# CACHE-BASED ANALYSIS
# ============================================================================


def _non_merge_commits(cache: CommitHistoryCache):
    commits = cache.commits
    if commits.empty:
        return commits
    return commits[commits["parents"].apply(len) <= 1]


def build_commit_graph(cache: CommitHistoryCache) -> List[GraphNode]:
    """Builds the commit graph: an edge of weight 1.0 from every commit to each parent."""
    builder = GraphBuilder(create_missing=True)
    for commit_hash, parents in zip(cache.commits["hash"], cache.commits["parents"]):
        builder.add_node(commit_hash)
        for parent in parents:
            builder.add_edge(commit_hash, parent, 1.0)
    return builder.build()


def count_contributor_commits(cache: CommitHistoryCache) -> Dict[str, int]:
    """Counts non-merge commits per author name."""
    commits = _non_merge_commits(cache)
    if commits.empty:
        return {}
    return {
        name: int(count)
        for name, count in commits["author_name"].value_counts().items()
    }


def calculate_contributor_entropy(contributor_commits: Dict[str, int]) -> float:
    """Shannon entropy (bits) of the distribution of commits over contributors."""
    total = sum(contributor_commits.values())
    entropy = 0.0
    for count in contributor_commits.values():
        p = count / total
        entropy -= p * math.log2(p)
    return entropy


def count_branches(cache: CommitHistoryCache) -> int:
    """
    Counts branches from the fan-out of non-merge commits.

    Starts at one and adds one whenever a non-merge commit names a parent
    that another non-merge commit already named.
    """
    parent_uses = Counter()
    for parents in _non_merge_commits(cache)["parents"]:
        parent_uses.update(parents)
    return 1 + sum(uses - 1 for uses in parent_uses.values())


def calculate_lifetime_hours(cache: CommitHistoryCache) -> float:
    """Hours between the earliest and the latest author date."""
    dates = cache.commits["date"]
    return (dates.max() - dates.min()).total_seconds() / 3600


def analyse_commit_history(
    cache: CommitHistoryCache, options: Optional[AnalysisOptions] = None
) -> Dict[str, Union[int, float]]:
    """
    Analyses a commit history cache.

    Returns a mapping with the fields:
      ContributorCount, ContributorEntropy, CommitCount, BranchCount,
      FileCount, Lifetime, GitSize, GitComplexity, AvgContributorCommits,
      AvgBranchCommits
    """
    options = options or AnalysisOptions()
    if cache.commits.empty:
        raise GitAnalysisError("repository has no commits")

    contributors = count_contributor_commits(cache)
    commit_count = sum(contributors.values())
    branch_count = count_branches(cache)

    commit_graph = build_commit_graph(cache)

    return {
        "ContributorCount": len(contributors),
        "ContributorEntropy": calculate_contributor_entropy(contributors),
        "CommitCount": commit_count,
        "BranchCount": branch_count,
        "FileCount": cache.file_count,
        "Lifetime": calculate_lifetime_hours(cache),
        "GitSize": est_graph_size(commit_graph, options.estimator),
        "GitComplexity": est_graph_complexity(commit_graph, options.estimator),
        "AvgContributorCommits": commit_count / len(contributors),
        "AvgBranchCommits": commit_count / branch_count,
    }


def run_git_analysis(
    repo_path: Union[str, Path], options: Optional[AnalysisOptions] = None
) -> Dict[str, Union[int, float]]:
    """Opens the repository at repo_path and analyses its commit history."""
    logger.debug("opening repository")
    repo = load_repository(repo_path)

    logger.debug("analysing repository")
    cache = CommitHistoryCache(repo)
    return analyse_commit_history(cache, options)
