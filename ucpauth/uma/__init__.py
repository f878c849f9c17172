"""
UMA grant negotiation: tickets, claim verification, authorizers, contracts
and access tokens.
"""

from .credentials import WEBID, CLIENTID, PURPOSE, LEGAL_BASIS, UNSECURE, JWT, Credential
from .discovery import UmaConfiguration, UmaDiscovery, discovery_url, REQUIRED_METADATA
from .verifiers import Verifier, UnsecureVerifier, JwtVerifier, IriVerifier, TypedVerifier
from .resources import ResourceDescription, ResourceRegistry
from .authorizers import AuthorizationDecision, Authorizer, PatternAuthorizer, ReportAuthorizer
from .tickets import Ticket, TicketResolution, MemoryTicketStore, ImmediateAuthorizerStrategy
from .contracts import ContractManager
from .tokens import AccessToken, JwksKeyHolder, JwtTokenFactory
from .negotiator import Negotiator, TokenRequest, TokenResponse, UMA_GRANT_TYPE
from .client import UmaClient, challenge_header

__all__ = [
    'WEBID',
    'CLIENTID',
    'PURPOSE',
    'LEGAL_BASIS',
    'UNSECURE',
    'JWT',
    'Credential',
    'UmaConfiguration',
    'UmaDiscovery',
    'discovery_url',
    'REQUIRED_METADATA',
    'Verifier',
    'UnsecureVerifier',
    'JwtVerifier',
    'IriVerifier',
    'TypedVerifier',
    'ResourceDescription',
    'ResourceRegistry',
    'AuthorizationDecision',
    'Authorizer',
    'PatternAuthorizer',
    'ReportAuthorizer',
    'Ticket',
    'TicketResolution',
    'MemoryTicketStore',
    'ImmediateAuthorizerStrategy',
    'ContractManager',
    'AccessToken',
    'JwksKeyHolder',
    'JwtTokenFactory',
    'Negotiator',
    'TokenRequest',
    'TokenResponse',
    'UMA_GRANT_TYPE',
    'UmaClient',
    'challenge_header',
]
