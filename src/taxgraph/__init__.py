"""
taxgraph: incremental computation graph for interdependent return lines.

Registers a dependency graph of named nodes, rejects malformed graphs at
registration time, and recomputes exactly the affected nodes after every
input event while recording an auditable trace of what changed and why.
"""

__version__ = "0.1.0"
