"""
Cluster Kernel — State Construction
"""

from .constants import MODE_CLUSTERED
from .domain_types import StateTree


def create_initial_state(mode: str = MODE_CLUSTERED) -> StateTree:
    """Create a fresh, empty StateTree for the given mode."""
    return StateTree(mode=mode, schools={})
