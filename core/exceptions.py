class CaptureError(Exception):
    """Base class for errors that end a capture run."""

    def __init__(self, message: str | None = None):
        self.message = message if message is not None else "Capture failed"
        super().__init__(self.message)


class SessionSetupError(CaptureError):
    """Exception raised when the CDP subscription could not be established."""

    def __init__(self, step: str, cause: BaseException | None = None):
        self.step = step
        message = f"Failed to set up capture session at step: {step}"
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message)


class NavigationError(CaptureError):
    """Exception raised when a page fails to load."""

    def __init__(self, url: str, cause: BaseException | None = None):
        self.url = url
        message = f"Navigation to {url} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class AwaitedConditionNeverResolved(CaptureError):
    """Exception raised when the capture-end condition does not fire in time."""

    def __init__(self, condition: str, timeout_ms: int):
        self.condition = condition
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Completion condition '{condition}' did not resolve within {timeout_ms} ms"
        )


class AlreadyDetachedError(CaptureError):
    """Exception raised when a capture session is exported a second time."""

    def __init__(self):
        super().__init__("Capture session is already detached; export can only run once")


class MalformedEventGroup(CaptureError):
    """Exception raised when a request's events cannot be folded into a HAR entry."""

    def __init__(self, request_id: str, reason: str):
        self.request_id = request_id
        self.reason = reason
        super().__init__(f"Cannot build HAR entry for request {request_id}: {reason}")


class LighthouseError(CaptureError):
    """Exception raised when the Lighthouse audit fails or produces no report."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str | None = None):
        self.returncode = returncode
        self.stderr = stderr
        details = []
        if returncode is not None:
            details.append(f"Exit code: {returncode}")
        if stderr:
            details.append(f"Stderr: {stderr.strip()}")
        super().__init__(" ".join([message] + details) if details else message)
