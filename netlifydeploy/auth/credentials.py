"""Keyring-backed storage for the Netlify API token."""

import logging
import os
from typing import Optional

import keyring
import keyring.errors

from netlifydeploy.errors import CredentialsError

log = logging.getLogger(__name__)

KEY_AUTH_TOKEN = "auth_token"


def _keyring_service_name() -> str:
    """Use a separate keyring namespace when NETLIFY_DEPLOY_KEYRING_TEST is set."""
    if os.environ.get("NETLIFY_DEPLOY_KEYRING_TEST", "").strip():
        return "netlify-deploy-test"
    return "netlify-deploy"


class CredentialsStore:
    """
    Stores the personal access token in the OS keyring (Windows Credential Manager,
    macOS Keychain, Linux Secret Service) so it need not sit in shell history or env.
    """

    def get_token(self) -> Optional[str]:
        """
        Return the stored token, or None.
        On keyring read error (no backend, locked keychain) returns None so the
        caller reports a missing token instead of a keyring traceback.
        """
        try:
            token = keyring.get_password(_keyring_service_name(), KEY_AUTH_TOKEN)
        except Exception as e:
            log.warning("Could not read stored token: %s", e)
            return None
        return token or None

    def set_token(self, token: str) -> None:
        """Store token in keyring. Raises CredentialsError when no backend can take it."""
        try:
            keyring.set_password(_keyring_service_name(), KEY_AUTH_TOKEN, token)
        except keyring.errors.KeyringError as e:
            raise CredentialsError(f"could not store token: {e}") from e
        log.debug("Stored API token in keyring")

    def clear_token(self) -> None:
        """Remove the stored token (no error if none is stored)."""
        try:
            keyring.delete_password(_keyring_service_name(), KEY_AUTH_TOKEN)
        except keyring.errors.PasswordDeleteError:
            pass
        except keyring.errors.KeyringError as e:
            raise CredentialsError(f"could not remove token: {e}") from e
