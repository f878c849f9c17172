"""
Claim types and claim token formats understood by the negotiator.
"""

from dataclasses import dataclass

WEBID = "urn:solidlab:uma:claims:types:webid"
CLIENTID = "urn:solidlab:uma:claims:types:clientid"
PURPOSE = "http://www.w3.org/ns/odrl/2/purpose"
LEGAL_BASIS = "https://w3id.org/oac#LegalBasis"

# claim_token_format values
UNSECURE = "urn:solidlab:uma:claims:formats:webid"
JWT = "urn:solidlab:uma:claims:formats:jwt"


@dataclass
class Credential:
    """A claim token together with its declared format"""
    token: str
    format: str
