class TransientIOError(Exception):
    """An image fetch or cache store read/write failed. Retried next pass."""


class ClassifierError(Exception):
    """Face/gender inference failed. Treated as an unknown signal."""


class ElementTimeoutError(TimeoutError):
    """An expected page element never appeared."""


class DataIntegrityWarning(UserWarning):
    """Hash collision or malformed cache entry. Logged, never fatal."""


class UserNotifiedError(Exception):
    def __init__(self, title: str, message: str):
        super().__init__(message)
        self.title = title
        self.message = message
