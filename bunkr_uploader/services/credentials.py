"""
Credential Store - Single Responsibility: persist the API token.

Tokens live in the system keyring, never in the config file.
"""
import logging
import os
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..errors import MissingCredential, StoreError
from ..models import Token
from ..protocols import ICredentialStore

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "bunkr_uploader"
KEYRING_USERNAME = "api_token"
TOKEN_ENV_VAR = "BUNKR_TOKEN"


class KeyringCredentialStore(ICredentialStore):
    """Token storage backed by the ``keyring`` package."""

    def __init__(self, service: str = KEYRING_SERVICE, username: str = KEYRING_USERNAME):
        self._service = service
        self._username = username

    def save_token(self, token: Token) -> None:
        if not token:
            raise StoreError("Refusing to save an empty token")
        try:
            keyring.set_password(self._service, self._username, token.reveal())
        except KeyringError as exc:
            # exc text comes from the backend and never contains the secret
            raise StoreError(f"Could not save token to keyring: {type(exc).__name__}") from exc
        logger.info("Token saved to keyring service %s", self._service)

    def get_token(self) -> Token:
        try:
            value = keyring.get_password(self._service, self._username)
        except KeyringError as exc:
            logger.warning("Keyring lookup failed: %s", type(exc).__name__)
            value = None
        if not value:
            raise MissingCredential()
        return Token(value)

    def delete_token(self) -> None:
        try:
            keyring.delete_password(self._service, self._username)
        except PasswordDeleteError:
            logger.debug("No stored token to delete")
        except KeyringError as exc:
            raise StoreError(f"Could not delete token from keyring: {type(exc).__name__}") from exc


class StaticCredentialStore(ICredentialStore):
    """In-memory store; used for an explicit --token and in tests."""

    def __init__(self, token: Optional[str] = None):
        self._token = Token(token) if token else None

    def save_token(self, token: Token) -> None:
        self._token = token

    def get_token(self) -> Token:
        if not self._token:
            raise MissingCredential()
        return self._token


def resolve_token(explicit: Optional[str], store: Optional[ICredentialStore]) -> Token:
    """
    Token precedence: explicit argument > stored token > BUNKR_TOKEN env var.

    Raises:
        MissingCredential: when none of the sources has a token
    """
    if explicit:
        return Token(explicit)
    if store is not None:
        try:
            return store.get_token()
        except MissingCredential:
            pass
    env_token = os.getenv(TOKEN_ENV_VAR)
    if env_token:
        return Token(env_token)
    raise MissingCredential()
