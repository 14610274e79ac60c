"""Building blocks for running CI workflow jobs locally: executors, run contexts, git helpers, an artifact server and command-line configuration."""

__version__ = "0.1.0"