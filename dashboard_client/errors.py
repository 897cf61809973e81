"""
Exceptions raised by the dashboard session layer.
"""
import httpx


class DashboardClientError(Exception):
    """Base class for session layer errors."""


class SignInError(DashboardClientError):
    """Sign-in exchange rejected or unreachable."""


class RefreshError(DashboardClientError):
    """No refresh token, or the refresh exchange failed."""


class SessionExpiredError(DashboardClientError):
    """
    Authorization failed and could not be recovered. The session has been cleared and
    the UI told to go to sign-in. `response` is the last 401 when there was one.
    """

    def __init__(self, message: str, response: httpx.Response | None = None):
        super().__init__(message)
        self.response = response
