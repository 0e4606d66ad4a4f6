"""
grp - General release pipeline

Runs declarative release plans: ordered stages of dependent jobs,
dispatched in parallel waves to pluggable handlers, with approval gates
and best-effort rollback.
"""

__version__ = "0.1.0"
