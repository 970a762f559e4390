"""
FlowCanvas - Visual workflow composition with simulated async execution.

Compose a directed graph of trigger, action and logic steps, run it as a
simulated asynchronous workflow, and undo/redo every edit.
"""

__version__ = "1.0.0"
