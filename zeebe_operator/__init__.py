"""Zeebe cluster operator: keeps ZeebeCluster records in sync with Camunda Cloud."""

__version__ = "1.0.0"
