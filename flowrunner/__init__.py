"""
FlowRunner - an async engine for typed node graphs.

Build a graph of entry, action and exit nodes, run it breadth-first,
pause it mid-run and resume without repeating completed work.
"""

__version__ = "1.0.0"
