"""Utilities and constants for the HTTP engine."""

import logging
from rich.console import Console
from rich.logging import RichHandler

# Rich Console for pretty printing
console = Console()

# Configure logging with RichHandler
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
)

# Get logger for the package
logger = logging.getLogger("httptls")

# httpx logs every request at INFO; the Manager has its own trace output
logging.getLogger("httpx").setLevel(logging.WARNING)

DEFAULT_PORTS = {"http": 80, "https": 443}

IDEMPOTENT_METHODS = ("GET", "HEAD", "PUT", "DELETE", "OPTIONS", "TRACE")
