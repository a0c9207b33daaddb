"""
Shared compute infrastructure for pycoxnet.

Submodules:
    timing: Stage timing of solver calls
"""

from pycoxnet.core.compute.timing import Timer

__all__ = [
    "Timer",
]
