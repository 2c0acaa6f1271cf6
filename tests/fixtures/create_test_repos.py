"""
Programmatic generation of Git repositories with known commit graphs.

Each builder lays out a history whose commit-graph metrics can be counted by
hand: a chain, a fork joined again by a merge, and a tree holding a
submodule entry next to ordinary files.
"""

import shutil
from datetime import datetime, timezone
from itertools import cycle
from pathlib import Path
from typing import Dict

from git import Actor, Repo

ALICE = Actor("Alice", "alice@example.com")
BOB = Actor("Bob", "bob@example.com")
CHARLIE = Actor("Charlie", "charlie@example.com")


def utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


class HistoryWriter:
    """Writes files into a fresh repository and commits them at fixed dates."""

    def __init__(self, path: Path, user: Actor = ALICE):
        if path.exists():
            shutil.rmtree(path)
        self.path = path
        self.repo = Repo.init(path)
        # merges and CLI commits are authored by the configured user
        with self.repo.config_writer() as cw:
            cw.set_value("user", "name", user.name)
            cw.set_value("user", "email", user.email)

    @property
    def branch(self) -> str:
        return self.repo.active_branch.name

    def commit(
        self,
        author: Actor,
        when: datetime,
        files: Dict[str, str],
        message: str,
        append: bool = False,
    ):
        for name, content in files.items():
            target = self.path / name
            target.parent.mkdir(parents=True, exist_ok=True)
            if append and target.exists():
                with target.open("a") as f:
                    f.write(f"\n{content}")
            else:
                target.write_text(content)

        self.repo.index.add(list(files))
        return self.repo.index.commit(
            message,
            author=author,
            committer=author,
            author_date=when,
            commit_date=when,
        )

    def fork(self, name: str):
        """Starts a new branch at the current commit and switches to it."""
        self.repo.git.checkout("-b", name)

    def switch(self, name: str):
        self.repo.git.checkout(name)

    def join(self, name: str):
        """Merges branch name into the current branch with a merge commit."""
        self.repo.git.merge("--no-ff", "-m", f"Merge {name}", name)


def create_simple_repo(path: Path) -> Repo:
    """
    A chain of eleven commits by one author.
    - 4 files at HEAD, 240 hours between the first and the last commit
    - no commit is the parent of more than one commit: branch count 1
    """
    history = HistoryWriter(path)
    history.commit(
        ALICE,
        utc(2020, 1, 1, 12),
        {"README.md": "# Simple Repo", "main.py": "print('hello')", "utils.py": "# Utilities"},
        "Initial commit",
    )
    for day in range(2, 11):
        history.commit(
            ALICE,
            utc(2020, 1, day, 12),
            {"main.py": f"print('Update {day}')"},
            f"Update {day}",
            append=True,
        )
    history.commit(ALICE, utc(2020, 1, 11, 12), {"docs/guide.md": "Documentation"}, "Add docs")
    return history.repo


def create_complex_repo(path: Path) -> Repo:
    """
    A fork of the root commit joined again by a merge, then a chain on top.

        root -+- feature (Bob) ----+- merge - 5 updates
              +- core (Alice) -----+

    - 8 non-merge commits + 1 merge commit, 3 files, 3 authors
    - Alice: 4 commits, Bob: 3 commits, Charlie: 1 commit
    - the root is the parent of two non-merge commits: branch count 2
    """
    history = HistoryWriter(path)
    history.commit(ALICE, utc(2021, 1, 1), {"main.py": "import core"}, "Initial commit")
    # 'master' or 'main', depending on the local git configuration
    trunk = history.branch

    history.fork("feature-x")
    history.commit(BOB, utc(2021, 1, 5), {"feature_x.py": "# Feature X"}, "Add Feature X")

    history.switch(trunk)
    history.commit(ALICE, utc(2021, 1, 8), {"core.py": "# Core logic"}, "Add core module")
    history.join("feature-x")

    for i, author in zip(range(5), cycle([ALICE, BOB, CHARLIE])):
        history.commit(
            author,
            utc(2021, 2, 1 + i),
            {"core.py": f"# Change {i}"},
            f"Core update {i}",
            append=True,
        )
    return history.repo


def create_submodule_repo(path: Path, module_url: str) -> Repo:
    """
    One tracked file plus a submodule checked out from module_url.

    HEAD holds a.txt, .gitmodules and the gitlink 'sub', of which only the
    first two are file blobs.
    """
    history = HistoryWriter(path)
    history.commit(ALICE, utc(2022, 3, 1), {"a.txt": "a"}, "Add a.txt")

    # local clone sources need file protocol access for submodules
    history.repo.git.execute(
        ["git", "-c", "protocol.file.allow=always", "submodule", "add", module_url, "sub"]
    )
    history.repo.git.commit("-m", "Add submodule")
    return history.repo
