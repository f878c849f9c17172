"""
Signing keys and JWT access tokens.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

import jwt
from cryptography.hazmat.primitives.asymmetric import ec
from jwt.algorithms import ECAlgorithm

from ..core.types import Clock, Permission, utc_now
from ..errors import TokenError

logger = logging.getLogger(__name__)

BEARER = "Bearer"


class JwksKeyHolder:
    """Holds one EC P-256 signing key and publishes its public half as a JWKS."""

    def __init__(self, alg: str = "ES256", kid: Optional[str] = None,
                 private_key: Optional[ec.EllipticCurvePrivateKey] = None):
        if alg != "ES256":
            raise ValueError(f"Unsupported signing algorithm: {alg}")
        self.alg = alg
        self.kid = kid or str(uuid.uuid4())
        self._private_key = private_key or ec.generate_private_key(ec.SECP256R1())

    def get_private_key(self) -> ec.EllipticCurvePrivateKey:
        return self._private_key

    def get_public_key(self) -> ec.EllipticCurvePublicKey:
        return self._private_key.public_key()

    def get_public_jwks(self) -> Dict[str, Any]:
        jwk = json.loads(ECAlgorithm.to_jwk(self.get_public_key()))
        jwk.update({"kid": self.kid, "alg": self.alg, "use": "sig"})
        return {"keys": [jwk]}


@dataclass
class AccessToken:
    """Content of an access token before signing."""
    permissions: List[Permission]
    webid: Optional[str] = None
    client_id: Optional[str] = None
    contract: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class JwtTokenFactory:
    """Mints and reads ES256-signed access tokens."""

    def __init__(
        self,
        key_holder: JwksKeyHolder,
        issuer: str,
        audience: str = "solid",
        expiration: timedelta = timedelta(minutes=30),
        clock: Optional[Clock] = None,
    ):
        self.key_holder = key_holder
        self.issuer = issuer
        self.audience = audience
        self.expiration = expiration
        self.clock = clock or utc_now

    def serialize(self, token: AccessToken) -> Tuple[str, str]:
        """
        Sign an access token.

        Returns:
            Tuple of the encoded token and its token type
        """
        now = self.clock()
        payload = dict(token.extra)
        payload.update({
            'permissions': [p.to_dict() for p in token.permissions],
            'iss': self.issuer,
            'aud': self.audience,
            'iat': int(now.timestamp()),
            'exp': int((now + self.expiration).timestamp()),
            'jti': str(uuid.uuid4()),
        })
        if token.webid:
            payload['sub'] = token.webid
            payload['webid'] = token.webid
        if token.client_id:
            payload['azp'] = token.client_id
        if token.contract is not None:
            payload['contract'] = token.contract

        try:
            encoded = jwt.encode(
                payload,
                self.key_holder.get_private_key(),
                algorithm=self.key_holder.alg,
                headers={'kid': self.key_holder.kid},
            )
        except Exception as e:
            logger.error(f"JWT generation failed: {e}")
            raise TokenError("JWT generation failed", cause=e)

        logger.debug(f"Minted token {payload['jti']} for {token.webid}")
        return encoded, BEARER

    def deserialize(self, token: str) -> Dict[str, Any]:
        """
        Verify signature, issuer, audience and expiry, and return the payload.

        Raises:
            TokenError: If the token is not valid
        """
        try:
            payload = jwt.decode(
                token,
                self.key_holder.get_public_key(),
                algorithms=[self.key_holder.alg],
                audience=self.audience,
                issuer=self.issuer,
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenError("Token has expired", cause=e)
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}", cause=e)

        permissions = payload.get('permissions')
        if not isinstance(permissions, list):
            raise TokenError("Token carries no permissions")
        try:
            payload['permissions'] = [Permission.from_dict(p).to_dict() for p in permissions]
        except ValueError as e:
            raise TokenError(f"Token permissions are malformed: {e}", cause=e)
        return payload
