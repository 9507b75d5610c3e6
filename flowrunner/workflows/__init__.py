"""
Workflows package - Sample workflow implementations.
"""

from flowrunner.workflows.demo import create_demo_workflow, load_demo_workflow

__all__ = ["create_demo_workflow", "load_demo_workflow"]
