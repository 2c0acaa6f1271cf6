"""
Pytest fixtures for the entire test suite.

This file defines:
1. Session-scoped fixtures to generate test repositories once.
2. Function-scoped fixtures to provide Repo objects and caches to tests.
3. Small hand-built graphs shared by the metric tests.
"""
import pytest
from git import Repo

from git_cache import CommitHistoryCache
from options import AnalysisOptions
from tests.fixtures.create_test_repos import (
    create_simple_repo,
    create_complex_repo,
)
from tests.fixtures.graphs import make_graph


@pytest.fixture(scope="session")
def test_repos_dir(tmp_path_factory):
    """
    Creates all test repositories once per test session in a temporary directory.
    This is a performance optimization.
    """
    repos_dir = tmp_path_factory.mktemp("git_repos")

    repo_paths = {
        "simple": repos_dir / "simple",
        "complex": repos_dir / "complex",
    }

    create_simple_repo(repo_paths["simple"])
    create_complex_repo(repo_paths["complex"])

    return repo_paths


@pytest.fixture
def simple_repo(test_repos_dir) -> Repo:
    """Provides a Repo object for the simple, linear-history repository."""
    return Repo(test_repos_dir["simple"])


@pytest.fixture
def complex_repo(test_repos_dir) -> Repo:
    """Provides a Repo object for the multi-author, branched repository."""
    return Repo(test_repos_dir["complex"])


@pytest.fixture
def empty_repo(tmp_path) -> Repo:
    """Provides an empty, newly initialized repository."""
    return Repo.init(tmp_path / "empty")


@pytest.fixture
def simple_repo_cache(simple_repo) -> CommitHistoryCache:
    return CommitHistoryCache(simple_repo)


@pytest.fixture
def complex_repo_cache(complex_repo) -> CommitHistoryCache:
    return CommitHistoryCache(complex_repo)


@pytest.fixture
def empty_repo_cache(empty_repo) -> CommitHistoryCache:
    return CommitHistoryCache(empty_repo)


@pytest.fixture
def options(tmp_path) -> AnalysisOptions:
    """Analysis options writing clones and tool outputs below tmp_path."""
    return AnalysisOptions(verbosity=2, out_dir=str(tmp_path / ".mp"))


@pytest.fixture
def pipe_graph():
    """A -> B: the smallest two-node pipe."""
    return make_graph(["A", "B"], [("A", "B", 1.0)])


@pytest.fixture
def mutual_pair_graph():
    """A <-> B with one edge in each direction."""
    return make_graph(["A", "B"], [("A", "B", 1.5), ("B", "A", 1.5)])


@pytest.fixture
def star_graph():
    """A -> C and B -> C: two leaves sharing a hub."""
    return make_graph(["A", "B", "C"], [("A", "C", 1.0), ("B", "C", 1.0)])
