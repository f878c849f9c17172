"""
Tests for signing keys, access tokens and contracts.
"""

from datetime import timedelta

import jwt
import pytest

from ucpauth.core.types import Permission
from ucpauth.errors import TokenError
from ucpauth.uma import AccessToken, ContractManager, JwksKeyHolder, JwtTokenFactory

from conftest import ALICE, BOB, NOW, OTHER_RESOURCE, RESOURCE

ISSUER = "http://localhost:4000/uma"


def factory(key_holder=None, **kwargs):
    kwargs.setdefault('issuer', ISSUER)
    return JwtTokenFactory(key_holder or JwksKeyHolder(), **kwargs)


class TestJwksKeyHolder:
    """Test key generation and publication"""

    def test_public_jwks(self):
        keys = JwksKeyHolder(kid="key-1")
        jwks = keys.get_public_jwks()

        assert len(jwks['keys']) == 1
        jwk = jwks['keys'][0]
        assert jwk['kid'] == "key-1"
        assert jwk['alg'] == "ES256"
        assert jwk['kty'] == "EC"
        assert jwk['crv'] == "P-256"
        assert 'd' not in jwk

    def test_published_key_verifies(self):
        """Test that the published key set verifies tokens signed with the private key"""
        keys = JwksKeyHolder()
        token = jwt.encode({'sub': BOB}, keys.get_private_key(), algorithm="ES256", headers={'kid': keys.kid})

        key = jwt.PyJWKSet.from_dict(keys.get_public_jwks()).keys[0]
        assert key.key_id == keys.kid
        assert jwt.decode(token, key.key, algorithms=["ES256"]) == {'sub': BOB}

    def test_unsupported_algorithm(self):
        with pytest.raises(ValueError):
            JwksKeyHolder(alg="HS256")


class TestJwtTokenFactory:
    """Test minting and reading access tokens"""

    def test_round_trip(self):
        tokens = factory()
        encoded, token_type = tokens.serialize(AccessToken(
            permissions=[Permission(RESOURCE, ["read"])],
            webid=BOB,
            client_id="https://app.example.org/client#id",
            contract={'uid': "urn:ucp:contract:1"},
        ))

        assert token_type == "Bearer"
        payload = tokens.deserialize(encoded)
        assert payload['permissions'] == [{'resource_id': RESOURCE, 'resource_scopes': ["read"]}]
        assert payload['iss'] == ISSUER
        assert payload['aud'] == "solid"
        assert payload['sub'] == BOB
        assert payload['webid'] == BOB
        assert payload['azp'] == "https://app.example.org/client#id"
        assert payload['contract'] == {'uid': "urn:ucp:contract:1"}
        assert payload['exp'] - payload['iat'] == 30 * 60

    def test_header_names_key(self):
        keys = JwksKeyHolder(kid="key-1")
        encoded, _ = factory(keys).serialize(AccessToken(permissions=[]))
        assert jwt.get_unverified_header(encoded)['kid'] == "key-1"
        assert jwt.get_unverified_header(encoded)['alg'] == "ES256"

    def test_expired_token(self):
        """Test that tokens past their expiry are rejected"""
        keys = JwksKeyHolder()
        minted = factory(keys, clock=lambda: NOW, expiration=timedelta(minutes=1))
        encoded, _ = minted.serialize(AccessToken(permissions=[Permission(RESOURCE, ["read"])]))

        with pytest.raises(TokenError, match="expired"):
            factory(keys).deserialize(encoded)

    def test_wrong_audience(self):
        keys = JwksKeyHolder()
        encoded, _ = factory(keys, audience="other").serialize(AccessToken(permissions=[]))
        with pytest.raises(TokenError):
            factory(keys).deserialize(encoded)

    def test_wrong_issuer(self):
        keys = JwksKeyHolder()
        encoded, _ = factory(keys, issuer="https://other.example.org").serialize(AccessToken(permissions=[]))
        with pytest.raises(TokenError):
            factory(keys).deserialize(encoded)

    def test_foreign_key(self):
        encoded, _ = factory().serialize(AccessToken(permissions=[]))
        with pytest.raises(TokenError):
            factory().deserialize(encoded)

    def test_malformed_permissions(self):
        """Test that tokens with malformed permissions are rejected"""
        keys = JwksKeyHolder()
        tokens = factory(keys)
        encoded, _ = tokens.serialize(AccessToken(permissions=[], extra={'note': "x"}))
        payload = jwt.decode(encoded, keys.get_public_key(), algorithms=["ES256"], audience="solid")
        payload['permissions'] = [{'resource_scopes': ["read"]}]
        forged = jwt.encode(payload, keys.get_private_key(), algorithm="ES256")

        with pytest.raises(TokenError, match="malformed"):
            tokens.deserialize(forged)

    def test_garbage(self):
        with pytest.raises(TokenError):
            factory().deserialize("garbage")


class TestContractManager:
    """Test agreement creation"""

    @pytest.mark.asyncio
    async def test_contract_contents(self):
        contracts = ContractManager(clock=lambda: NOW)
        contract = await contracts.create_contract(
            [Permission(RESOURCE, ["read", "write"]), Permission(OTHER_RESOURCE, ["read"])],
            BOB,
            ["urn:p:1"],
            {RESOURCE: ALICE},
        )

        assert contract['@type'] == "Agreement"
        assert contract['uid'].startswith("urn:ucp:contract:")
        assert contract['issued'] == NOW.isoformat()
        assert contract['wasDerivedFrom'] == ["urn:p:1"]
        assert contract['permission'] == [
            {'action': "http://www.w3.org/ns/odrl/2/read", 'target': RESOURCE, 'assignee': BOB, 'assigner': ALICE},
            {'action': "http://www.w3.org/ns/odrl/2/write", 'target': RESOURCE, 'assignee': BOB, 'assigner': ALICE},
            {'action': "http://www.w3.org/ns/odrl/2/read", 'target': OTHER_RESOURCE, 'assignee': BOB},
        ]

    @pytest.mark.asyncio
    async def test_contracts_are_kept(self):
        contracts = ContractManager()
        contract = await contracts.create_contract([Permission(RESOURCE, ["read"])], BOB, [])

        assert await contracts.get_contract(contract['uid']) == contract
        assert await contracts.list_contracts() == [contract]
        assert await contracts.get_contract("urn:ucp:contract:unknown") is None

    @pytest.mark.asyncio
    async def test_unknown_scope_kept_verbatim(self):
        contracts = ContractManager()
        contract = await contracts.create_contract([Permission(RESOURCE, ["urn:example:print"])], None, [])
        assert contract['permission'] == [{'action': "urn:example:print", 'target': RESOURCE}]
