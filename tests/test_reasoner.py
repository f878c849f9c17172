"""
Tests for the inference adapters.
"""

import threading

import pytest
from rdflib import Graph, Literal, URIRef

from ucpauth.core.config import DecisionConfig
from ucpauth.decision import EyeReasoner, SparqlRuleReasoner, create_reasoner
from ucpauth.errors import InferenceError

EX = "http://example.org/"

PARENT_TO_ANCESTOR = f"""
PREFIX ex: <{EX}>
CONSTRUCT {{ ?a ex:ancestor ?b }} WHERE {{ ?a ex:parent ?b }}
"""

TRANSITIVE_ANCESTOR = f"""
PREFIX ex: <{EX}>
CONSTRUCT {{ ?a ex:ancestor ?c }} WHERE {{ ?a ex:ancestor ?b . ?b ex:ancestor ?c }}
"""


def family():
    graph = Graph()
    for child, parent in (("a", "b"), ("b", "c"), ("c", "d")):
        graph.add((URIRef(EX + child), URIRef(EX + "parent"), URIRef(EX + parent)))
    return graph


class TestSparqlRuleReasoner:
    """Test the in-process SPARQL rule engine"""

    @pytest.mark.asyncio
    async def test_fixpoint(self):
        """Test that rules are applied until nothing new is derived"""
        derived = await SparqlRuleReasoner().reason([family()], [PARENT_TO_ANCESTOR, TRANSITIVE_ANCESTOR])

        ancestor = URIRef(EX + "ancestor")
        assert (URIRef(EX + "a"), ancestor, URIRef(EX + "d")) in derived
        assert len(list(derived.triples((None, ancestor, None)))) == 6

    @pytest.mark.asyncio
    async def test_only_derived_triples_are_returned(self):
        """Test that input facts are neither returned nor modified"""
        facts = family()
        derived = await SparqlRuleReasoner().reason([facts], [PARENT_TO_ANCESTOR])

        assert len(facts) == 3
        assert not list(derived.triples((None, URIRef(EX + "parent"), None)))

    @pytest.mark.asyncio
    async def test_evaluation_runs_off_the_event_loop(self, monkeypatch):
        """Test that the fixpoint is computed in a worker thread"""
        reasoner = SparqlRuleReasoner()
        threads = []
        original = reasoner._fixpoint

        def recording(facts, queries):
            threads.append(threading.get_ident())
            return original(facts, queries)

        monkeypatch.setattr(reasoner, "_fixpoint", recording)
        derived = await reasoner.reason([family()], [PARENT_TO_ANCESTOR])

        assert len(derived) == 3
        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_no_rules(self):
        """Test that no rules derive nothing"""
        assert len(await SparqlRuleReasoner().reason([family()], [])) == 0

    @pytest.mark.asyncio
    async def test_malformed_rule(self):
        """Test that a malformed rule fails the evaluation and is not retryable"""
        with pytest.raises(InferenceError) as exc_info:
            await SparqlRuleReasoner().reason([family()], ["CONSTRUCT { broken"])
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_select_is_rejected(self):
        """Test that only CONSTRUCT queries are rules"""
        with pytest.raises(InferenceError):
            await SparqlRuleReasoner().reason([family()], ["SELECT * WHERE { ?s ?p ?o }"])

    @pytest.mark.asyncio
    async def test_no_fixpoint(self):
        """Test that blank node templates exhaust the iteration limit"""
        rule = f"PREFIX ex: <{EX}> CONSTRUCT {{ ?s ex:tag [ ex:value 1 ] }} WHERE {{ ?s ex:parent ?o }}"
        with pytest.raises(InferenceError, match="fixpoint"):
            await SparqlRuleReasoner(max_iterations=3).reason([family()], [rule])

    @pytest.mark.asyncio
    async def test_calls_are_independent(self):
        """Test that one reasoner instance keeps no state between calls"""
        reasoner = SparqlRuleReasoner()
        first = await reasoner.reason([family()], [PARENT_TO_ANCESTOR])

        other = Graph()
        other.add((URIRef(EX + "x"), URIRef(EX + "parent"), URIRef(EX + "y")))
        second = await reasoner.reason([other], [PARENT_TO_ANCESTOR])

        assert len(first) == 3
        assert len(second) == 1
        assert (URIRef(EX + "x"), URIRef(EX + "ancestor"), URIRef(EX + "y")) in second

    @pytest.mark.asyncio
    async def test_literals_survive(self):
        """Test that literal values are carried into derived triples"""
        facts = Graph()
        facts.add((URIRef(EX + "a"), URIRef(EX + "name"), Literal("Alice")))
        rule = f"PREFIX ex: <{EX}> CONSTRUCT {{ ?s ex:label ?n }} WHERE {{ ?s ex:name ?n }}"

        derived = await SparqlRuleReasoner().reason([facts], [rule])
        assert (URIRef(EX + "a"), URIRef(EX + "label"), Literal("Alice")) in derived


class TestEyeReasoner:
    """Test the external reasoner adapter"""

    @pytest.mark.asyncio
    async def test_missing_binary_is_retryable(self, tmp_path):
        """Test that spawn failures are flagged as retryable"""
        reasoner = EyeReasoner(eye_path=str(tmp_path / "no-such-eye"))
        with pytest.raises(InferenceError) as exc_info:
            await reasoner.reason([family()], ["{ ?a <urn:p> ?b } => { ?b <urn:q> ?a } ."])
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_not_retryable(self):
        """Test that a failing reasoner process is a hard error"""
        reasoner = EyeReasoner(eye_path="false", args=[])
        with pytest.raises(InferenceError) as exc_info:
            await reasoner.reason([family()], [])
        assert exc_info.value.retryable is False

    def test_default_arguments(self):
        assert EyeReasoner().args == ["--quiet", "--nope", "--pass-only-new"]


class TestCreateReasoner:
    """Test reasoner selection from configuration"""

    def test_default_is_sparql(self):
        reasoner = create_reasoner(DecisionConfig(max_iterations=4))
        assert isinstance(reasoner, SparqlRuleReasoner)
        assert reasoner.max_iterations == 4

    def test_eye(self):
        reasoner = create_reasoner(DecisionConfig(reasoner="eye", eye_path="/opt/eye/bin/eye"))
        assert isinstance(reasoner, EyeReasoner)
        assert reasoner.eye_path == "/opt/eye/bin/eye"
