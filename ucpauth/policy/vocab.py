"""
RDF vocabularies used by the policy store, the request context and the
reasoning rules.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from rdflib import Namespace
from rdflib.namespace import DCTERMS, RDF, XSD

ODRL = Namespace("http://www.w3.org/ns/odrl/2/")
ACL = Namespace("http://www.w3.org/ns/auth/acl#")
FNO = Namespace("https://w3id.org/function/ontology#")
LDP = Namespace("http://www.w3.org/ns/ldp#")
SOLID = Namespace("http://www.w3.org/ns/solid/terms#")
REPORT = Namespace("https://w3id.org/force/compliance-report#")
OAC = Namespace("https://w3id.org/oac#")
PROV = Namespace("http://www.w3.org/ns/prov#")

# Namespace of the request context and of the execution records
EX = Namespace("http://example.org/")

# Request context predicates
CONTEXT_RESOURCE_OWNER = EX.resourceOwner
CONTEXT_REQUESTING_PARTY = EX.requestingParty
CONTEXT_TARGET = EX.target
CONTEXT_REQUEST_PERMISSION = EX.requestPermission

# Execution record arguments
ACCESS_MODES_ALLOWED = EX.accessModesAllowed
ACCESS_MODES_PROHIBITED = EX.accessModesProhibited
EXECUTION_RULE = EX.UCrule
EXECUTION_INTERPRETATION = EX.N3Identifier

# Function identifiers understood by the bundled plugins
DATA_USAGE = EX.dataUsage
DATA_USAGE_PROHIBITION = EX.dataUsageProhibition
DATA_USAGE_LOG = EX.dataUsageLog

RULE_TYPES = (ODRL.Permission, ODRL.Prohibition, ODRL.Duty)
POLICY_TYPES = (ODRL.Agreement, ODRL.Offer, ODRL.Set, ODRL.Policy, ODRL.Request)

__all__ = [
    'ODRL', 'ACL', 'FNO', 'LDP', 'SOLID', 'REPORT', 'OAC', 'PROV', 'EX',
    'RDF', 'XSD', 'DCTERMS',
    'CONTEXT_RESOURCE_OWNER', 'CONTEXT_REQUESTING_PARTY', 'CONTEXT_TARGET',
    'CONTEXT_REQUEST_PERMISSION',
    'ACCESS_MODES_ALLOWED', 'ACCESS_MODES_PROHIBITED', 'EXECUTION_RULE',
    'EXECUTION_INTERPRETATION',
    'DATA_USAGE', 'DATA_USAGE_PROHIBITION', 'DATA_USAGE_LOG',
    'RULE_TYPES', 'POLICY_TYPES',
]
