"""
In-process graph store built on NetworkX.

Implements the GraphStore contract for exactly the statements in
``relgraph.utils.cypher_queries``: each statement is dispatched by its
``// relgraph:<name>`` tag to a handler that reproduces the statement's
merge-on-key semantics on a ``networkx.MultiDiGraph``. Anything else is
rejected with GraphStoreError.

Layout:
  node id  = (label, *business key)    e.g. ("User", "USR-000001")
             ("Attribute", attributeType, value)
  node     = {"label": ..., "props": {...}}
  edge key = (type, *merge properties) e.g. ("PARTICIPATED_IN", txId, "SENDER")
  edge     = {"type": ..., "props": {...}}

Handlers never await, so every statement is atomic with respect to other
coroutines on the same loop.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import networkx as nx

from relgraph.errors import GraphStoreError
from relgraph.models.domain import LinkDirection, ParticipantRole
from relgraph.utils import cypher_queries as Q

logger = logging.getLogger(__name__)

NodeId = Tuple[Any, ...]
Record = Dict[str, Any]

_MAX_HOPS_RE = re.compile(r"\*\.\.(\d+)")

SENDER = ParticipantRole.SENDER.value
RECEIVER = ParticipantRole.RECEIVER.value
OUTBOUND = LinkDirection.OUTBOUND.value
INBOUND = LinkDirection.INBOUND.value

_WRITE_STATEMENTS = {"ingest_user", "ingest_transaction", "clear_all"}


def _set(props: Dict[str, Any], key: str, value: Any) -> None:
    """Cypher SET semantics: assigning null removes the property."""
    if value is None:
        props.pop(key, None)
    else:
        props[key] = value


def _coalesce(*values: Any) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


class MemoryGraphStore:
    """NetworkX-backed GraphStore for tests and dry runs."""

    def __init__(self) -> None:
        self.graph = nx.MultiDiGraph()
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._closed = False
        self._handlers: Dict[str, Callable[[str, Dict[str, Any]], List[Record]]] = {
            "ingest_user": self._ingest_user,
            "ingest_transaction": self._ingest_transaction,
            "user_direct_links": self._user_direct_links,
            "user_transactions": self._user_transactions,
            "user_shared_attributes": self._user_shared_attributes,
            "transaction_users": self._transaction_users,
            "transaction_linked": self._transaction_linked,
            "shortest_path": self._shortest_path,
            "export_users": self._export_users,
            "export_transactions": self._export_transactions,
            "ping": lambda q, p: [{"ok": 1}],
            "count_nodes": self._count_nodes,
            "count_rels": self._count_rels,
            "clear_all": self._clear_all,
        }

    # ── GraphStore contract ──────────────────────────────────

    async def execute_write(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Record]:
        return self._dispatch(query, params or {}, write=True)

    async def execute_read(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Record]:
        return self._dispatch(query, params or {}, write=False)

    async def verify_connectivity(self) -> None:
        if self._closed:
            raise GraphStoreError("memory store is closed")

    async def close(self) -> None:
        self._closed = True

    def _dispatch(self, query: str, params: Dict[str, Any], write: bool) -> List[Record]:
        if self._closed:
            raise GraphStoreError("memory store is closed")
        name = Q.statement_name(query)
        handler = self._handlers.get(name)
        if handler is None:
            raise GraphStoreError(f"unsupported statement: {query.strip()[:60]!r}")
        if name in _WRITE_STATEMENTS and not write:
            raise GraphStoreError(f"write statement {name!r} in read transaction")
        self.calls.append((name, dict(params)))
        return handler(query, params)

    # ── introspection ────────────────────────────────────────

    def node_count(self, label: Optional[str] = None) -> int:
        if label is None:
            return self.graph.number_of_nodes()
        return sum(1 for _, lbl in self.graph.nodes(data="label") if lbl == label)

    def edge_count(self, rel_type: Optional[str] = None) -> int:
        if rel_type is None:
            return self.graph.number_of_edges()
        return sum(1 for _, _, t in self.graph.edges(data="type") if t == rel_type)

    def props(self, label: str, *key: Any) -> Optional[Dict[str, Any]]:
        node = (label, *key)
        if node not in self.graph:
            return None
        return dict(self.graph.nodes[node]["props"])

    # ── primitives ───────────────────────────────────────────

    def _merge_node(self, label: str, key: Tuple[Any, ...], identity: Dict[str, Any]) -> Dict[str, Any]:
        node = (label, *key)
        if node not in self.graph:
            self.graph.add_node(node, label=label, props=dict(identity))
        return self.graph.nodes[node]["props"]

    def _merge_edge(self, src: NodeId, dst: NodeId, rel_type: str, *merge_key: Any,
                    identity: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        key = (rel_type, *merge_key)
        if not self.graph.has_edge(src, dst, key):
            self.graph.add_edge(src, dst, key=key, type=rel_type, props=dict(identity or {}))
        return self.graph.edges[src, dst, key]["props"]

    def _out_edges(self, node: NodeId, *rel_types: str):
        for _, dst, data in self.graph.out_edges(node, data=True):
            if data["type"] in rel_types:
                yield dst, data

    def _in_edges(self, node: NodeId, *rel_types: str):
        for src, _, data in self.graph.in_edges(node, data=True):
            if data["type"] in rel_types:
                yield src, data

    def _node_props(self, node: NodeId) -> Dict[str, Any]:
        return self.graph.nodes[node]["props"]

    # ══════════════════════════════════════════════════════════
    # Writes
    # ══════════════════════════════════════════════════════════

    def _ingest_user(self, _query: str, p: Dict[str, Any]) -> List[Record]:
        user_id = p["userId"]
        user = ("User", user_id)
        props = self._merge_node("User", (user_id,), {"userId": user_id})
        for k, v in p["props"].items():
            _set(props, k, v)
        props["createdAt"] = _coalesce(p.get("createdAt"), props.get("createdAt"), p["updatedAt"])
        props["updatedAt"] = p["updatedAt"]

        for attr in p["attributes"]:
            attr_props = self._merge_node(
                "Attribute", (attr["type"], attr["value"]),
                {"attributeType": attr["type"], "value": attr["value"]},
            )
            _set(attr_props, "rawValue", attr["rawValue"])
            edge = self._merge_edge(user, ("Attribute", attr["type"], attr["value"]), "HAS_ATTRIBUTE")
            _set(edge, "confidenceScore", attr["confidence"])

        for pm in p["paymentMethods"]:
            pm_props = self._merge_node("PaymentMethod", (pm["id"],), {"paymentMethodId": pm["id"]})
            for k, v in pm["props"].items():
                _set(pm_props, k, v)
            edge = self._merge_edge(user, ("PaymentMethod", pm["id"]), "USES_PAYMENT_METHOD")
            _set(edge, "firstUsedAt", pm["firstUsedAt"])
            _set(edge, "lastUsedAt", pm["lastUsedAt"])

        return [{"userId": user_id}]

    def _ingest_transaction(self, _query: str, p: Dict[str, Any]) -> List[Record]:
        sender = ("User", p["senderId"])
        receiver = ("User", p["receiverId"])
        # MATCH semantics: no row, no write
        if sender not in self.graph or receiver not in self.graph:
            return []

        tx_id = p["transactionId"]
        tx = ("Transaction", tx_id)
        props = self._merge_node("Transaction", (tx_id,), {"transactionId": tx_id})
        for k, v in p["props"].items():
            _set(props, k, v)
        props["createdAt"] = _coalesce(p.get("createdAt"), props.get("createdAt"), p["updatedAt"])
        props["updatedAt"] = p["updatedAt"]

        money = {"amount": p["amount"], "currency": p["currency"], "timestamp": p["timestamp"]}
        for user, role in ((sender, SENDER), (receiver, RECEIVER)):
            edge = self._merge_edge(user, tx, "PARTICIPATED_IN", tx_id, role,
                                    identity={"transactionId": tx_id, "role": role})
            edge.update(money)
        for rel_type, src, dst in (("SENT_TO", sender, receiver), ("RECEIVED_FROM", receiver, sender)):
            edge = self._merge_edge(src, dst, rel_type, tx_id, identity={"transactionId": tx_id})
            edge.update(money)

        for attr in p["attributes"]:
            attr_node = ("Attribute", attr["type"], attr["value"])
            attr_props = self._merge_node(
                "Attribute", (attr["type"], attr["value"]),
                {"attributeType": attr["type"], "value": attr["value"]},
            )
            _set(attr_props, "rawValue", attr["rawValue"])
            edge = self._merge_edge(tx, attr_node, "HAS_ATTRIBUTE")
            edge["origin"] = "TRANSACTION"
            _set(edge, "confidenceScore", attr["confidence"])

            others = {
                src for src, _ in self._in_edges(attr_node, "HAS_ATTRIBUTE")
                if src[0] == "Transaction" and src != tx
            }
            link_identity = {"attributeHash": attr["value"], "linkType": attr["type"]}
            for other in sorted(others):
                for src, dst in ((tx, other), (other, tx)):
                    link = self._merge_edge(src, dst, "LINKED_TO", attr["value"], attr["type"],
                                            identity=link_identity)
                    _set(link, "score", attr["confidence"])
                    _set(link, "updatedAt", p["linkedAt"])

        pm_id = p.get("paymentMethodId") or ""
        pm_node = ("PaymentMethod", pm_id)
        if pm_id and pm_node in self.graph:
            edge = self._merge_edge(tx, pm_node, "PAYMENT_METHOD_RELATES")
            edge["role"] = SENDER

        return [{"transactionId": tx_id}]

    def _clear_all(self, _query: str, _p: Dict[str, Any]) -> List[Record]:
        self.graph.clear()
        return []

    # ══════════════════════════════════════════════════════════
    # Reads
    # ══════════════════════════════════════════════════════════

    def _user_direct_links(self, _query: str, p: Dict[str, Any]) -> List[Record]:
        user = ("User", p["userId"])
        if user not in self.graph:
            return []
        rows = []
        for peer, data in self._out_edges(user, "SENT_TO", "RECEIVED_FROM"):
            if peer[0] != "User":
                continue
            e = data["props"]
            rows.append({
                "peerId": peer[1],
                "linkType": data["type"],
                "direction": OUTBOUND if data["type"] == "SENT_TO" else INBOUND,
                "transactionId": e.get("transactionId"),
                "amount": e.get("amount"),
                "currency": e.get("currency"),
                "timestamp": e.get("timestamp"),
            })
        rows.sort(key=lambda r: (r["timestamp"] or "", r["transactionId"] or "", r["linkType"]))
        return rows

    def _user_transactions(self, _query: str, p: Dict[str, Any]) -> List[Record]:
        user = ("User", p["userId"])
        if user not in self.graph:
            return []
        rows = [
            {
                "transactionId": tx[1],
                "role": data["props"].get("role"),
                "amount": data["props"].get("amount"),
                "currency": data["props"].get("currency"),
                "timestamp": data["props"].get("timestamp"),
            }
            for tx, data in self._out_edges(user, "PARTICIPATED_IN")
        ]
        rows.sort(key=lambda r: (r["timestamp"] or "", r["transactionId"]))
        return rows

    def _user_shared_attributes(self, _query: str, p: Dict[str, Any]) -> List[Record]:
        user_id = p["userId"]
        user = ("User", user_id)
        if user not in self.graph:
            return []
        rows = []
        for attr_node, _ in self._out_edges(user, "HAS_ATTRIBUTE"):
            others = sorted({
                src[1] for src, _ in self._in_edges(attr_node, "HAS_ATTRIBUTE")
                if src[0] == "User" and src[1] != user_id
            })
            if not others:
                continue
            attr = self._node_props(attr_node)
            rows.append({
                "attributeType": attr["attributeType"],
                "attributeHash": attr["value"],
                "userIds": others,
            })
        rows.sort(key=lambda r: (r["attributeType"], r["attributeHash"]))
        return rows

    def _transaction_users(self, _query: str, p: Dict[str, Any]) -> List[Record]:
        tx = ("Transaction", p["transactionId"])
        if tx not in self.graph:
            return []
        rows = []
        for user, data in self._in_edges(tx, "PARTICIPATED_IN"):
            e = data["props"]
            rows.append({
                "userId": user[1],
                "role": e.get("role"),
                "amount": e.get("amount"),
                "currency": e.get("currency"),
                "direction": OUTBOUND if e.get("role") == SENDER else INBOUND,
            })
        rows.sort(key=lambda r: r["role"] or "", reverse=True)
        return rows

    def _transaction_linked(self, _query: str, p: Dict[str, Any]) -> List[Record]:
        tx = ("Transaction", p["transactionId"])
        if tx not in self.graph:
            return []
        rows = []
        for other, data in self._out_edges(tx, "LINKED_TO"):
            e = data["props"]
            rows.append({
                "otherTransactionId": other[1],
                "linkType": e.get("linkType"),
                "attributeHash": e.get("attributeHash"),
                "score": e.get("score"),
                "updatedAt": e.get("updatedAt"),
            })
        rows.sort(key=lambda r: (r["otherTransactionId"], r["linkType"] or ""))
        return rows

    # ── shortest path ────────────────────────────────────────

    def _path_node(self, node: NodeId) -> Dict[str, Any]:
        props = self._node_props(node)
        label = self.graph.nodes[node]["label"]
        node_id = _coalesce(props.get("userId"), props.get("transactionId"),
                            props.get("paymentMethodId"), props.get("value"))
        return {
            "id": node_id,
            "label": _coalesce(props.get("userId"), props.get("transactionId"),
                               props.get("attributeType"), props.get("paymentMethodId"),
                               props.get("value")),
            "type": label,
            "weight": 1.0,
        }

    def _path_edge(self, a: NodeId, b: NodeId) -> Dict[str, Any]:
        candidates = []
        for src, dst in ((a, b), (b, a)):
            for key, data in (self.graph.get_edge_data(src, dst) or {}).items():
                if data["type"] in Q.PATH_RELATIONSHIP_TYPES:
                    candidates.append((data["type"], repr(key), src, dst))
        rel_type, _, src, dst = min(candidates)
        return {
            "type": rel_type,
            "sourceId": self._path_node(src)["id"],
            "targetId": self._path_node(dst)["id"],
            "label": rel_type,
            "weight": 1.0,
        }

    def _shortest_path(self, query: str, p: Dict[str, Any]) -> List[Record]:
        source = ("User", p["sourceId"])
        target = ("User", p["targetId"])
        if source not in self.graph or target not in self.graph:
            return []
        match = _MAX_HOPS_RE.search(query)
        max_hops = int(match.group(1)) if match else Q.PATH_MAX_HOPS_CEILING

        allowed = set(Q.PATH_RELATIONSHIP_TYPES)
        view = nx.subgraph_view(
            self.graph, filter_edge=lambda u, v, k: self.graph.edges[u, v, k]["type"] in allowed
        ).to_undirected(as_view=True)
        paths = nx.single_source_shortest_path(view, source, cutoff=max_hops)
        path = paths.get(target)
        if path is None or len(path) < 2:
            return []
        return [{
            "nodes": [self._path_node(n) for n in path],
            "edges": [self._path_edge(a, b) for a, b in zip(path, path[1:])],
            "hops": len(path) - 1,
        }]

    # ── export ───────────────────────────────────────────────

    def _export_users(self, _query: str, _p: Dict[str, Any]) -> List[Record]:
        rows = []
        for node, label in self.graph.nodes(data="label"):
            if label != "User":
                continue
            u = self._node_props(node)
            rows.append({
                "userId": u.get("userId"),
                "fullName": u.get("fullName"),
                "email": u.get("email"),
                "phone": u.get("phone"),
                "kycStatus": u.get("kycStatus"),
                "riskScore": u.get("riskScore"),
                "createdAt": u.get("createdAt"),
                "updatedAt": u.get("updatedAt"),
            })
        rows.sort(key=lambda r: r["userId"])
        return rows

    def _participant(self, tx: NodeId, role: str) -> Optional[str]:
        for user, data in self._in_edges(tx, "PARTICIPATED_IN"):
            if data["props"].get("role") == role:
                return user[1]
        return None

    def _export_transactions(self, _query: str, _p: Dict[str, Any]) -> List[Record]:
        rows = []
        for node, label in self.graph.nodes(data="label"):
            if label != "Transaction":
                continue
            t = self._node_props(node)
            rows.append({
                "transactionId": t.get("transactionId"),
                "amount": t.get("amount"),
                "currency": t.get("currency"),
                "type": t.get("type"),
                "status": t.get("status"),
                "channel": t.get("channel"),
                "timestamp": t.get("timestamp"),
                "createdAt": t.get("createdAt"),
                "updatedAt": t.get("updatedAt"),
                "senderId": self._participant(node, SENDER),
                "receiverId": self._participant(node, RECEIVER),
            })
        # timestamp DESC, transactionId ASC
        rows.sort(key=lambda r: r["transactionId"])
        rows.sort(key=lambda r: r["timestamp"] or "", reverse=True)
        return rows

    # ── maintenance ──────────────────────────────────────────

    def _count_nodes(self, _query: str, _p: Dict[str, Any]) -> List[Record]:
        counts: Dict[str, int] = {}
        for _, label in self.graph.nodes(data="label"):
            counts[label] = counts.get(label, 0) + 1
        return [{"label": k, "count": v} for k, v in sorted(counts.items())]

    def _count_rels(self, _query: str, _p: Dict[str, Any]) -> List[Record]:
        counts: Dict[str, int] = {}
        for _, _, rel_type in self.graph.edges(data="type"):
            counts[rel_type] = counts.get(rel_type, 0) + 1
        return [{"type": k, "count": v} for k, v in sorted(counts.items())]
