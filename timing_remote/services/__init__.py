"""Service layer called by the transport."""

from timing_remote.services.data_plane import DataPlaneService, validate_reads

__all__ = ["DataPlaneService", "validate_reads"]
