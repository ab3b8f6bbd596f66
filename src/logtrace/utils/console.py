"""
Shared rich console and logging setup

Every module logs through logging.getLogger(__name__); setup_logging()
routes those records through rich so the API, the simulator and the CLI
all print to the same console.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console()


def setup_logging(level: str = "INFO") -> None:
    """Route stdlib logging through a RichHandler on the shared console"""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # Per-request transport lines from the ES client drown everything else
    logging.getLogger("elastic_transport").setLevel(logging.WARNING)
