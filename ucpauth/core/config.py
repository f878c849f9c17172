"""
Configuration module for the usage-control authorization server.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import json
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

import yaml

from ..errors import ConfigurationError

ODRL_NS = "http://www.w3.org/ns/odrl/2/"
ACL_NS = "http://www.w3.org/ns/auth/acl#"
CSS_MODES = "urn:example:css:modes:"

WEBID_CLAIM = "urn:solidlab:uma:claims:types:webid"

RULES_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "rules")


def default_action_mapping() -> Dict[str, str]:
    """Protocol-neutral action names and their common spellings mapped to ODRL actions"""
    mapping = {}
    for mode, acl_mode in (("read", "Read"), ("append", "Append"), ("write", "Write"),
                           ("create", "Create"), ("delete", "Delete")):
        odrl_action = f"{ODRL_NS}{mode}"
        mapping[mode] = odrl_action
        mapping[f"{CSS_MODES}{mode}"] = odrl_action
        mapping[f"{ACL_NS}{acl_mode}"] = odrl_action
        mapping[odrl_action] = odrl_action
    return mapping


def default_rule_paths() -> List[str]:
    return [
        os.path.join(RULES_DIR, name)
        for name in ("constraint-temporal.rq", "constraint-claim.rq", "permission.rq", "prohibition.rq")
    ]


def parse_duration(value: Any) -> timedelta:
    """Accept a timedelta, a number of seconds, or a string like '30s', '5m', '2h'"""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if isinstance(value, str):
        text = value.strip().lower()
        units = {'s': 'seconds', 'm': 'minutes', 'h': 'hours', 'd': 'days'}
        try:
            if text and text[-1] in units:
                return timedelta(**{units[text[-1]]: float(text[:-1])})
            return timedelta(seconds=float(text))
        except ValueError:
            pass
    raise ConfigurationError(f"Invalid duration: {value!r}")


@dataclass
class TokenConfig:
    """Access token settings"""
    algorithm: str = "ES256"
    audience: str = "solid"
    expiration: timedelta = field(default_factory=lambda: timedelta(minutes=30))
    issuer: Optional[str] = None


@dataclass
class TicketConfig:
    """Permission ticket settings"""
    ttl: timedelta = field(default_factory=lambda: timedelta(minutes=5))
    required_claims: List[str] = field(default_factory=lambda: [WEBID_CLAIM])


@dataclass
class DecisionConfig:
    """Policy decision engine settings"""
    action_mapping: Dict[str, str] = field(default_factory=default_action_mapping)
    rule_paths: List[str] = field(default_factory=default_rule_paths)
    reasoner: str = "sparql"  # sparql or eye
    eye_path: str = "eye"
    eye_args: List[str] = field(default_factory=lambda: ["--quiet", "--nope", "--pass-only-new"])
    max_iterations: int = 16

    def load_rules(self) -> List[str]:
        """Read the configured rule texts"""
        rules = []
        for path in self.rule_paths:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    rules.append(f.read())
            except OSError as e:
                raise ConfigurationError(f"Cannot read rule file {path}: {e}", "decision.rule_paths")
        return rules


@dataclass
class StorageConfig:
    """Rule storage settings"""
    store_type: str = "memory"
    path: Optional[str] = None
    base_iri: Optional[str] = None
    container_url: Optional[str] = None


@dataclass
class Config:
    """Configuration for the authorization server"""
    base_url: str
    token: TokenConfig = field(default_factory=TokenConfig)
    ticket: TicketConfig = field(default_factory=TicketConfig)
    decision: DecisionConfig = field(default_factory=DecisionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        if self.token.issuer is None:
            self.token.issuer = self.base_url

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from UCP_* environment variables"""
        decision = DecisionConfig(
            reasoner=os.getenv("UCP_REASONER", "sparql"),
            eye_path=os.getenv("UCP_EYE_PATH", "eye"),
        )
        if os.getenv("UCP_RULE_PATHS"):
            decision.rule_paths = [p.strip() for p in os.getenv("UCP_RULE_PATHS").split(",") if p.strip()]

        return cls(
            base_url=os.getenv("UCP_BASE_URL", "http://localhost:4000/uma"),
            token=TokenConfig(
                audience=os.getenv("UCP_TOKEN_AUDIENCE", "solid"),
                expiration=parse_duration(os.getenv("UCP_TOKEN_EXPIRATION", "30m")),
            ),
            ticket=TicketConfig(ttl=parse_duration(os.getenv("UCP_TICKET_TTL", "5m"))),
            decision=decision,
            storage=StorageConfig(
                store_type=os.getenv("UCP_STORAGE_TYPE", "memory"),
                path=os.getenv("UCP_STORAGE_PATH"),
                base_iri=os.getenv("UCP_STORAGE_BASE_IRI"),
                container_url=os.getenv("UCP_STORAGE_CONTAINER_URL"),
            ),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create configuration from a nested dictionary"""
        if not isinstance(data, dict) or 'base_url' not in data:
            raise ConfigurationError("base_url is required", "base_url")

        token_data = dict(data.get('token') or {})
        if 'expiration' in token_data:
            token_data['expiration'] = parse_duration(token_data['expiration'])
        ticket_data = dict(data.get('ticket') or {})
        if 'ttl' in ticket_data:
            ticket_data['ttl'] = parse_duration(ticket_data['ttl'])

        try:
            return cls(
                base_url=data['base_url'],
                token=TokenConfig(**token_data),
                ticket=TicketConfig(**ticket_data),
                decision=DecisionConfig(**(data.get('decision') or {})),
                storage=StorageConfig(**(data.get('storage') or {})),
            )
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration option: {e}")

    @classmethod
    def from_file(cls, path: str) -> "Config":
        """Load configuration from a JSON or YAML file"""
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith((".yaml", ".yml")):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load configuration from {path}: {e}")
        return cls.from_dict(data)

    def validate(self) -> bool:
        """Validate the configuration"""
        if not self.base_url:
            raise ConfigurationError("base_url is required", "base_url")
        if self.token.algorithm != "ES256":
            raise ConfigurationError("Only ES256 signing is supported", "token.algorithm")
        if self.token.expiration <= timedelta(0):
            raise ConfigurationError("Token expiration must be positive", "token.expiration")
        if self.ticket.ttl <= timedelta(0):
            raise ConfigurationError("Ticket TTL must be positive", "ticket.ttl")
        if self.decision.reasoner not in ("sparql", "eye"):
            raise ConfigurationError(f"Unknown reasoner: {self.decision.reasoner}", "decision.reasoner")
        if self.decision.max_iterations < 1:
            raise ConfigurationError("max_iterations must be at least 1", "decision.max_iterations")
        if not self.decision.rule_paths:
            raise ConfigurationError("At least one rule file is required", "decision.rule_paths")
        if self.storage.store_type not in ("memory", "directory", "container"):
            raise ConfigurationError(f"Unknown storage type: {self.storage.store_type}", "storage.store_type")
        if self.storage.store_type == "directory" and not self.storage.path:
            raise ConfigurationError("Directory storage requires a path", "storage.path")
        if self.storage.store_type == "container" and not self.storage.container_url:
            raise ConfigurationError("Container storage requires a container_url", "storage.container_url")
        return True
