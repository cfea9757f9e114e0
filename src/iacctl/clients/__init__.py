"""Clients for the remote services iacctl talks to.

Import pattern:
    from iacctl.clients import JobClient, LogClient
"""

from iacctl.clients.jobs import JobClient, PipelineExecutionGetter
from iacctl.clients.logs import LogClient, format_log_line
from iacctl.clients.tracker import MigrationTracker

__all__ = [
    "JobClient",
    "LogClient",
    "MigrationTracker",
    "PipelineExecutionGetter",
    "format_log_line",
]
