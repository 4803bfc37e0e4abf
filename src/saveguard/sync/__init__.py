"""
Save sync -- endpoints, transfers, freshness and background pushes.

Local endpoints are mirrored. Remote endpoints go through rclone and
are only ever added to. The working directory is the hub: nothing is
copied straight from one endpoint to another.
"""

from .freshness import FreshnessResolver
from .models import Endpoint, EndpointKind, build_registry, parse_endpoint
from .remote import RcloneTool, RemoteTransferTool
from .scheduler import BackgroundSyncScheduler
from .synchronizer import DirectorySynchronizer

__all__ = [
    "BackgroundSyncScheduler",
    "DirectorySynchronizer",
    "Endpoint",
    "EndpointKind",
    "FreshnessResolver",
    "RcloneTool",
    "RemoteTransferTool",
    "build_registry",
    "parse_endpoint",
]
