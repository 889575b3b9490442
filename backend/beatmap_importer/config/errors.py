"""
Configuration errors.
"""


class ConfigError(Exception):
    """Configuration file is unreadable or fails validation."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration {path}: {reason}")
