"""
Rule storage backed by a remote LDP container.

Every rule graph is a Turtle document inside the container. Reads list
the container and fetch each member; writes create new members and
deletions are sent as N3 patches to the documents holding the triples.
"""

import logging
from typing import Dict, List, Optional
from urllib.parse import urljoin

import aiohttp
from rdflib import Graph

from ..errors import PolicyParseError, StorageError
from ..policy.validation import validate_rule_graph
from ..policy.vocab import LDP
from .types import RulesStorage
from .util import extract_reachable

logger = logging.getLogger(__name__)

TURTLE = "text/turtle"
N3 = "text/n3"


def build_delete_patch(data: Graph) -> str:
    """N3 patch document removing the given triples."""
    body = "\n".join(f"    {s.n3()} {p.n3()} {o.n3()} ." for s, p, o in data)
    return (
        "@prefix solid: <http://www.w3.org/ns/solid/terms#>.\n"
        "_:patch a solid:InsertDeletePatch;\n"
        f"  solid:deletes {{\n{body}\n  }}.\n"
    )


class ContainerRulesStorage(RulesStorage):
    """Rule storage on a Solid/LDP container reachable over HTTP."""

    def __init__(self, container_url: str, session: Optional[aiohttp.ClientSession] = None,
                 timeout: float = 10.0):
        self.container_url = container_url if container_url.endswith("/") else container_url + "/"
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _fetch(self, url: str) -> Graph:
        session = self._get_session()
        try:
            async with session.get(url, headers={"Accept": TURTLE}) as response:
                if response.status != 200:
                    raise StorageError("read", f"GET {url} returned {response.status}")
                text = await response.text()
        except aiohttp.ClientError as e:
            raise StorageError("read", f"GET {url} failed: {e}", cause=e)

        graph = Graph()
        try:
            graph.parse(data=text, format="turtle", publicID=url)
        except Exception as e:
            raise PolicyParseError(f"Unable to parse {url}: {e}", cause=e)
        return graph

    async def _documents(self) -> Dict[str, Graph]:
        container = await self._fetch(self.container_url)
        members: List[str] = sorted(
            urljoin(self.container_url, str(member))
            for member in container.objects(None, LDP.contains)
        )
        documents = {}
        for member in members:
            if member.endswith("/"):
                continue
            documents[member] = await self._fetch(member)
        return documents

    async def get_store(self) -> Graph:
        merged = Graph()
        for graph in (await self._documents()).values():
            for triple in graph:
                merged.add(triple)
        return merged

    async def add_rule(self, rule: Graph) -> None:
        validate_rule_graph(rule, await self.get_store())
        session = self._get_session()
        try:
            async with session.post(
                self.container_url,
                data=rule.serialize(format="turtle"),
                headers={"Content-Type": TURTLE},
            ) as response:
                if response.status not in (200, 201, 204):
                    raise StorageError("write", f"POST {self.container_url} returned {response.status}")
                logger.info(f"Stored rule graph at {response.headers.get('Location', self.container_url)}")
        except aiohttp.ClientError as e:
            raise StorageError("write", f"POST {self.container_url} failed: {e}", cause=e)

    async def get_rule(self, identifier: str) -> Graph:
        return extract_reachable(await self.get_store(), identifier)

    async def delete_rule(self, identifier: str) -> int:
        rule = extract_reachable(await self.get_store(), identifier)
        removed = await self.remove_data(rule)
        logger.info(f"Deleted rule {identifier} ({removed} triples)")
        return removed

    async def remove_data(self, data: Graph) -> int:
        session = self._get_session()
        removed = set()
        for url, graph in (await self._documents()).items():
            present = Graph()
            for triple in data:
                if triple in graph:
                    present.add(triple)
            if len(present) == 0:
                continue
            try:
                async with session.patch(
                    url, data=build_delete_patch(present), headers={"Content-Type": N3}
                ) as response:
                    if response.status not in (200, 204, 205):
                        raise StorageError("delete", f"PATCH {url} returned {response.status}")
            except aiohttp.ClientError as e:
                raise StorageError("delete", f"PATCH {url} failed: {e}", cause=e)
            removed.update(present)
        return len(removed)
