# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Credential handling: Azure AD bearer tokens or shared access signatures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Union
from urllib.parse import parse_qsl

from azure.core.credentials import AzureSasCredential, TokenCredential

from ..common.constants import STORAGE_TOKEN_SCOPE


@dataclass
class _TokenPair:
    resource: str
    access_token: str


class _AuthManager:
    """
    Applies a credential to outgoing requests.

    :param credential: ``TokenCredential`` for Azure AD, ``AzureSasCredential``
        for a SAS token, or ``None`` for anonymous access (e.g. a local emulator
        with a SAS already embedded in the URL).
    :raises TypeError: For any other credential type.
    """

    def __init__(self, credential: Optional[Union[TokenCredential, AzureSasCredential]]) -> None:
        if credential is not None and not isinstance(credential, (TokenCredential, AzureSasCredential)):
            raise TypeError(
                "credential must implement azure.core.credentials.TokenCredential or be an AzureSasCredential."
            )
        self.credential = credential

    def _acquire_token(self, scope: str) -> _TokenPair:
        """Acquire an access token for the given scope using Azure Identity."""
        token = self.credential.get_token(scope)
        return _TokenPair(resource=scope, access_token=token.token)

    def headers(self) -> Dict[str, str]:
        if isinstance(self.credential, AzureSasCredential) or self.credential is None:
            return {}
        return {"Authorization": f"Bearer {self._acquire_token(STORAGE_TOKEN_SCOPE).access_token}"}

    def query_parameters(self) -> Dict[str, str]:
        """Return the SAS token as query parameters, or an empty dict."""
        if not isinstance(self.credential, AzureSasCredential):
            return {}
        return dict(parse_qsl(self.credential.signature.lstrip("?"), keep_blank_values=True))
