"""
Exceptions raised outside the validation core.
Validation problems are never raised; they are recorded as diagnostics.
"""


class ConfigError(Exception):
    """A rule-set or platform file could not be loaded"""

    def __init__(self, message: str, path: str = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class ValidationFailed(Exception):
    """Render output was requested for a rule set that did not validate"""

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"{count} configuration issues must be fixed before rendering")
