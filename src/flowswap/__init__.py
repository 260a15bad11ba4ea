# src/flowswap/__init__.py
"""
Flowswap: hot-swap the configuration of a running dataflow.

Replaces the active configuration of a live dataflow process with a new
one, draining in-flight work first and rolling back to the previous
configuration when the candidate cannot be brought up.
"""

__version__ = "0.1.0"
