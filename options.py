# options.py

"""Run configuration shared by the loaders, the analyses and the CLI."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from graph_metrics import EstimatorOptions

# Directory for all output/temp files and directories
OUT_DIR = ".mp"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


@dataclass
class AnalysisOptions:
    """Options controlling a mining run."""

    # 0: errors, 1: status, 2: debug, 3: pass through output of shell commands
    verbosity: int = 1
    sct_command: str = "StaticCouplingTool"
    gct_command: str = "GitCouplingTool"
    skip_build: bool = False
    force_git: bool = False
    force_sct: bool = False
    force_gct: bool = False
    out_dir: str = OUT_DIR
    estimator: EstimatorOptions = field(default_factory=EstimatorOptions)

    @property
    def gits_dir(self) -> Path:
        return Path(self.out_dir) / "gits"

    @property
    def sct_dir(self) -> Path:
        return Path(self.out_dir) / "sct"

    @property
    def gct_dir(self) -> Path:
        return Path(self.out_dir) / "gct"

    @property
    def passthrough_output(self) -> bool:
        return self.verbosity >= 3


def verbosity_to_level(verbosity: int) -> int:
    """Maps the -v verbosity onto a logging level."""
    if verbosity < 0:
        return logging.CRITICAL + 1
    if verbosity == 0:
        return logging.ERROR
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(verbosity: int):
    """Setup logging configuration."""
    logging.basicConfig(
        level=verbosity_to_level(verbosity),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
        force=True,
    )
