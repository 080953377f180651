# Console I/O and lightweight logging shared by the client, stores and orchestrators.

import sys

from .config import VERBOSE


class Context:
    """
    Thin wrapper around console I/O and logging.

    Business logic never prints directly; it goes through a Context so hosts can
    substitute their own sink (tests use RecordingContext).
    """

    def __init__(self, verbose: bool = VERBOSE) -> None:
        self.verbose = verbose

    def log(self, message: str) -> None:
        """Emit a [LOG] line to stdout when verbose."""
        if self.verbose:
            print(f"[LOG] {message}")

    def error_message(self, message: str) -> None:
        """Print an error message to stderr."""
        print(f"Error: {message}", file=sys.stderr)
