# git_cache.py
"""
Commit history cache built with batched git processing.

A single ``git log --all`` call replaces walking commit objects one by one
through GitPython, which keeps large histories cheap to load:
- One batched git log call for hashes, parents, authors and dates
- One ls-tree call for the files tracked at HEAD
- Platform-agnostic (Windows + Linux compatible)
"""

import logging
from datetime import datetime
from typing import List, Optional

import pandas as pd
from git import GitCommandError, Repo

logger = logging.getLogger(__name__)

COMMIT_COLUMNS = ["hash", "parents", "author_name", "author_email", "date"]


class CommitHistoryCache:
    """
    Processes a Git repository into an in-memory cache of commit metadata.

    The ``commits`` DataFrame holds one row per commit reachable from any
    ref, newest first, with the list of parent hashes of every commit.
    """

    def __init__(
        self,
        repo: Repo,
        max_commits: Optional[int] = None,
        progress_interval: int = 1000,
    ):
        """
        Initializes and processes the repository.

        Args:
            repo: The git.Repo object to analyze
            max_commits: Maximum number of commits to process (None = all)
            progress_interval: Log progress every N commits
        """
        self.repo = repo
        self.progress_interval = progress_interval
        self._commits_df = pd.DataFrame(columns=COMMIT_COLUMNS)
        self._file_count = 0

        # An empty repo has an invalid HEAD; git log would fail on it.
        if not self.repo.head.is_valid():
            logger.debug("Repository is empty. Initializing empty cache.")
            return

        self._process_commits_batched(max_commits)
        self._file_count = self._count_head_files()

    def _process_commits_batched(self, max_commits: Optional[int] = None):
        """Process all commits in a single git log call."""
        # Author name goes last so that a '|' inside it survives the split.
        format_str = "%H|%P|%ae|%at|%an"
        args = ["--all", f"--pretty=format:{format_str}"]
        if max_commits:
            args.append(f"--max-count={max_commits}")

        logger.debug("Running batched git log command...")
        start_time = datetime.now()
        try:
            output = self.repo.git.log(*args)
        except GitCommandError as e:
            raise RuntimeError(f"Batched git log failed: {e}") from e

        logger.debug(
            f"Git log completed in {(datetime.now() - start_time).total_seconds():.2f}s"
        )

        commits_data = []
        seen = set()
        for line in output.splitlines():
            parts = line.split("|")
            if len(parts) < 5:
                # Handle potentially malformed lines, though unlikely
                continue

            commit_hash = parts[0]
            if commit_hash in seen:
                continue
            seen.add(commit_hash)

            commits_data.append(
                {
                    "hash": commit_hash,
                    "parents": parts[1].split(),
                    "author_name": "|".join(parts[4:]),
                    "author_email": parts[2],
                    "date": pd.Timestamp.fromtimestamp(int(parts[3]), tz="UTC"),
                }
            )
            if len(commits_data) % self.progress_interval == 0:
                logger.debug(f"Parsed {len(commits_data):,} commits...")

        logger.debug(f"Parsed {len(commits_data):,} commits total")

        if commits_data:
            self._commits_df = pd.DataFrame(commits_data, columns=COMMIT_COLUMNS)
        else:
            logger.warning("No commits data parsed")

    def _count_head_files(self) -> int:
        """Counts the file blobs tracked in the HEAD commit, skipping submodules."""
        try:
            tree_output = self.repo.git.ls_tree("-r", "HEAD")
        except GitCommandError as e:
            raise RuntimeError(f"Could not list files at HEAD: {e}") from e

        file_count = 0
        for line in tree_output.splitlines():
            # <mode> SP <type> SP <object> TAB <path>
            entry = line.split("\t", 1)[0].split()
            if len(entry) == 3 and entry[1] == "blob":
                file_count += 1
        return file_count

    @property
    def commits(self) -> pd.DataFrame:
        """DataFrame of commit metadata."""
        return self._commits_df

    @property
    def file_count(self) -> int:
        """Number of files tracked at HEAD."""
        return self._file_count

    @property
    def hashes(self) -> List[str]:
        return self._commits_df["hash"].tolist()
