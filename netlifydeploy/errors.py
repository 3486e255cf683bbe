"""Exception hierarchy for netlify-deploy."""

from typing import Optional


class NetlifyDeployError(Exception):
    """Base exception for all netlify-deploy errors."""


class ConfigError(NetlifyDeployError):
    """
    Invalid or missing configuration, raised before any network call.

    Attributes:
        field: Setting that caused the error (e.g. "auth_token")
        message: Human-readable description
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class SiteNotFoundError(NetlifyDeployError):
    """No site with the requested name after scanning every page."""

    def __init__(self, site_name: str) -> None:
        self.site_name = site_name
        super().__init__(f"No site found for {site_name}")


class APIError(NetlifyDeployError):
    """
    Transport or decoding failure talking to the Netlify API.

    operation names the phase: "list sites", "create deploy", "get deploy"
    or "upload file".
    """

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None) -> None:
        self.operation = operation
        self.message = message
        self.status_code = status_code
        super().__init__(f"Unable to {operation}: {message}")


class FingerprintError(NetlifyDeployError):
    """A file or directory could not be read while fingerprinting."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"Unable to fingerprint {path}: {message}")


class UploadError(NetlifyDeployError):
    """An upload job failed (after any retries)."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"Unable to upload {path}: {message}")


class UnknownDigestError(NetlifyDeployError):
    """The remote asked for a digest that no local file has."""

    def __init__(self, digest: str) -> None:
        self.digest = digest
        super().__init__(f"Deploy requires unknown file digest {digest}")


class DeployCancelledError(NetlifyDeployError):
    """The run was cancelled while waiting (sibling failure or interrupt)."""


class CredentialsError(NetlifyDeployError):
    """The OS keyring could not store or remove the token."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Keyring error: {message}")
