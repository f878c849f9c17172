"""
Authorization server metadata discovery.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from ..errors import DiscoveryError

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/uma2-configuration"

REQUIRED_METADATA = (
    "issuer",
    "jwks_uri",
    "token_endpoint",
    "permission_endpoint",
    "introspection_endpoint",
    "resource_registration_endpoint",
)


@dataclass
class UmaConfiguration:
    """The fields of the discovery document this package relies on"""
    issuer: str
    jwks_uri: str
    token_endpoint: str
    permission_endpoint: str
    introspection_endpoint: str
    resource_registration_endpoint: str

    @classmethod
    def from_dict(cls, data: Any, issuer: Optional[str] = None) -> "UmaConfiguration":
        """
        Validate a discovery document.

        Raises:
            DiscoveryError: If a required field is missing or not a string
        """
        if not isinstance(data, dict):
            raise DiscoveryError("Discovery document is not a JSON object", issuer)
        problems = [key for key in REQUIRED_METADATA if not isinstance(data.get(key), str)]
        if problems:
            raise DiscoveryError(
                f"Discovery document has missing or non-string fields: {', '.join(problems)}", issuer
            )
        return cls(**{key: data[key] for key in REQUIRED_METADATA})

    def to_dict(self) -> Dict[str, str]:
        return {key: getattr(self, key) for key in REQUIRED_METADATA}


def discovery_url(issuer: str) -> str:
    return issuer.rstrip("/") + WELL_KNOWN_PATH


class UmaDiscovery:
    """
    Fetches and caches discovery documents and key sets per issuer.

    Cached entries never expire; create a new instance to force a refresh.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = 10.0):
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._configs: Dict[str, UmaConfiguration] = {}
        self._lock = asyncio.Lock()

    def get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_json(self, url: str, issuer: str) -> Any:
        try:
            async with self.get_session().get(url, headers={"Accept": "application/json"}) as response:
                if response.status != 200:
                    raise DiscoveryError(f"GET {url} returned {response.status}", issuer)
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise DiscoveryError(f"GET {url} failed: {e}", issuer, cause=e)
        except ValueError as e:
            raise DiscoveryError(f"GET {url} did not return JSON", issuer, cause=e)

    async def fetch_config(self, issuer: str) -> UmaConfiguration:
        """Discovery document of an issuer, fetched once"""
        async with self._lock:
            if issuer in self._configs:
                return self._configs[issuer]
        data = await self._get_json(discovery_url(issuer), issuer)
        config = UmaConfiguration.from_dict(data, issuer)
        async with self._lock:
            self._configs[issuer] = config
        logger.debug(f"Discovered authorization server {config.issuer}")
        return config

    async def fetch_jwks(self, issuer: str) -> Dict[str, Any]:
        """The key set published by an issuer; always fetched so rotated keys are seen"""
        config = await self.fetch_config(issuer)
        jwks = await self._get_json(config.jwks_uri, issuer)
        if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
            raise DiscoveryError("Key set is not a JWKS document", issuer)
        return jwks
