"""filterpush CLI: publish a branch to a private and a filtered public remote."""

from ._helpers import main  # noqa: F401

# Import command modules to register Click commands with the main group.
from . import _publish  # noqa: F401
