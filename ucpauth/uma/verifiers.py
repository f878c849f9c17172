"""
Claim token verifiers.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from urllib.parse import quote, unquote, urlparse

import jwt

from ..core.types import ClaimSet
from ..errors import BadRequestError, ClaimVerificationError, DiscoveryError
from .credentials import CLIENTID, JWT, UNSECURE, WEBID, Credential
from .discovery import UmaDiscovery

logger = logging.getLogger(__name__)


def is_iri(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme) and (bool(parsed.netloc) or parsed.scheme == "urn")


class Verifier(ABC):
    """Turns a claim token into a verified claim set."""

    @abstractmethod
    async def verify(self, credential: Credential) -> ClaimSet:
        """
        Raises:
            ClaimVerificationError: If the token cannot be verified
        """
        pass


class UnsecureVerifier(Verifier):
    """
    Accepts tokens of the form `urlencode(webid)[:urlencode(clientid)]` without
    any cryptographic check. For development only.
    """

    def __init__(self):
        logger.warning("UnsecureVerifier in use, claim tokens are not verified")

    async def verify(self, credential: Credential) -> ClaimSet:
        if credential.format != UNSECURE:
            raise ClaimVerificationError(f"Unexpected token format {credential.format}", credential.format)

        raw = credential.token.split(":")
        # encoded IRIs contain no ':' so a single separator is expected
        if len(raw) > 2:
            raise ClaimVerificationError("Invalid token, only one ':' is expected", credential.format)

        webid = unquote(raw[0])
        if not is_iri(webid):
            raise ClaimVerificationError("WebID is not an IRI", credential.format)
        claims: ClaimSet = {WEBID: webid}
        if len(raw) == 2:
            client_id = unquote(raw[1])
            if not is_iri(client_id):
                raise ClaimVerificationError("Client id is not an IRI", credential.format)
            claims[CLIENTID] = client_id

        logger.info(f"Authenticated {webid} via unsecure verifier")
        return claims


class JwtVerifier(Verifier):
    """
    Verifies JWT claim tokens signed by an authorization server.

    The `iss` claim is resolved through discovery; the discovered issuer
    must equal the claimed one and the signature must check out against
    its published key set. Claims outside `allowed_claims` are dropped,
    or rejected when `error_on_extra_claims` is set.
    """

    def __init__(
        self,
        allowed_claims: List[str],
        discovery: Optional[UmaDiscovery] = None,
        error_on_extra_claims: bool = False,
        verify_jwt: bool = True,
        audience: Optional[str] = None,
    ):
        self.allowed_claims = list(allowed_claims)
        self.discovery = discovery or UmaDiscovery()
        self.error_on_extra_claims = error_on_extra_claims
        self.verify_jwt = verify_jwt
        self.audience = audience

    async def verify(self, credential: Credential) -> ClaimSet:
        if credential.format != JWT:
            raise ClaimVerificationError(f"Unexpected token format {credential.format}", credential.format)

        try:
            claims = jwt.decode(credential.token, options={"verify_signature": False})
            header = jwt.get_unverified_header(credential.token)
        except jwt.InvalidTokenError as e:
            raise ClaimVerificationError(f"Malformed JWT: {e}", JWT, cause=e)

        if self.verify_jwt:
            claims = await self._verify_signature(credential.token, claims, header)

        result: ClaimSet = {}
        for claim, value in claims.items():
            if claim in self.allowed_claims:
                result[claim] = value
            elif self.error_on_extra_claims:
                raise ClaimVerificationError(f"Claim {claim} not allowed", JWT)

        logger.debug(f"Verified JWT claims: {sorted(result)}")
        return result

    async def _verify_signature(self, token: str, claims: Dict, header: Dict) -> ClaimSet:
        issuer = claims.get("iss")
        if not isinstance(issuer, str):
            raise ClaimVerificationError("JWT should contain an 'iss' claim", JWT)
        alg = header.get("alg")
        kid = header.get("kid")
        if not alg or alg == "none":
            raise ClaimVerificationError("JWT should contain an 'alg' header", JWT)
        if not kid:
            raise ClaimVerificationError("JWT should contain a 'kid' header", JWT)

        try:
            config = await self.discovery.fetch_config(issuer)
            if config.issuer != issuer:
                raise ClaimVerificationError(f"Issuer mismatch: {issuer} != {config.issuer}", JWT)
            jwks = jwt.PyJWKSet.from_dict(await self.discovery.fetch_jwks(issuer))
        except DiscoveryError as e:
            raise ClaimVerificationError(f"Unable to discover issuer {issuer}: {e.message}", JWT, cause=e)
        except (jwt.PyJWKError, jwt.PyJWKSetError) as e:
            raise ClaimVerificationError(f"Unusable key set for {issuer}: {e}", JWT, cause=e)

        key = next((k for k in jwks.keys if k.key_id == kid), None)
        if key is None:
            raise ClaimVerificationError(f"No key {kid} published by {issuer}", JWT)
        if alg != key.algorithm_name:
            raise ClaimVerificationError(
                f"Algorithm {alg} does not match key {kid} ({key.algorithm_name})", JWT
            )

        options = {} if self.audience else {"verify_aud": False}
        try:
            return jwt.decode(
                token, key.key, algorithms=[key.algorithm_name], audience=self.audience, options=options
            )
        except jwt.InvalidTokenError as e:
            raise ClaimVerificationError(f"JWT verification failed: {e}", JWT, cause=e)


class IriVerifier(Verifier):
    """Turns bare user and client identifiers into IRIs under a base URL."""

    def __init__(self, verifier: Verifier, base_url: str):
        self.verifier = verifier
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"

    def to_iri(self, value: str) -> str:
        if is_iri(value):
            return value
        return self.base_url + quote(value, safe="")

    async def verify(self, credential: Credential) -> ClaimSet:
        claims = dict(await self.verifier.verify(credential))
        for key in (WEBID, CLIENTID):
            if isinstance(claims.get(key), str):
                claims[key] = self.to_iri(claims[key])
        return claims


class TypedVerifier(Verifier):
    """Dispatches on claim_token_format."""

    def __init__(self, verifiers: Dict[str, Verifier]):
        self.verifiers = dict(verifiers)

    def formats(self) -> List[str]:
        return list(self.verifiers.keys())

    async def verify(self, credential: Credential) -> ClaimSet:
        verifier = self.verifiers.get(credential.format)
        if verifier is None:
            logger.warning(f"Unsupported claim_token_format {credential.format}")
            raise BadRequestError("The provided claim_token_format is not supported")
        return await verifier.verify(credential)
