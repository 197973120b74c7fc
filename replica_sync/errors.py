class ReplicaSyncError(Exception):
    pass


class ConfigError(ReplicaSyncError, ValueError):
    """Startup configuration is unusable; the scheduler must not start."""


class OverlappingRootsError(ConfigError):
    pass
