"""
Graph store contract.

Anything that can run a Cypher statement inside a managed read or write
transaction and hand back plain ``dict`` records satisfies it: the Neo4j
driver wrapper in production, the networkx-backed store in tests and
``--memory`` runs.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

Params = Optional[Dict[str, Any]]
Records = List[Dict[str, Any]]


@runtime_checkable
class GraphStore(Protocol):

    async def execute_write(self, query: str, params: Params = None) -> Records:
        """Run ``query`` in one write transaction; raise GraphStoreError on failure."""
        ...

    async def execute_read(self, query: str, params: Params = None) -> Records:
        ...

    async def verify_connectivity(self) -> None:
        ...

    async def close(self) -> None:
        ...
