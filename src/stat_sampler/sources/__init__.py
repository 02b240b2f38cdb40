from .system import STATS, SystemStatsSource, read_snapshot

__all__ = ["STATS", "SystemStatsSource", "read_snapshot"]
