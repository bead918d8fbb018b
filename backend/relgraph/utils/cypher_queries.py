"""
Centralised Cypher query repository.

Organisation
────────────
SCHEMA_*        – constraints & indexes (run once at startup)
INGEST_*        – idempotent merge-on-key write path
QUERY_*         – relationship neighbourhood reads
PATH_*          – bounded shortest-path search
EXPORT_*        – unfiltered enumerations (caller paginates)
MAINT_*         – maintenance helpers

Every statement opens with a ``// relgraph:<name>`` tag; the in-process
MemoryGraphStore dispatches on it.

Neo4j Graph Schema
──────────────────
Nodes   :User {userId}  :Transaction {transactionId}
        :Attribute {attributeType, value}  :PaymentMethod {paymentMethodId}
Edges   :HAS_ATTRIBUTE          (User|Transaction → Attribute)
        :USES_PAYMENT_METHOD    (User → PaymentMethod)
        :PARTICIPATED_IN        (User → Transaction, keyed by transactionId+role)
        :SENT_TO / :RECEIVED_FROM (User → User, keyed by transactionId)
        :LINKED_TO              (Transaction → Transaction, keyed by attributeHash+linkType)
        :PAYMENT_METHOD_RELATES (Transaction → PaymentMethod)
"""

STATEMENT_TAG_PREFIX = "// relgraph:"

PATH_RELATIONSHIP_TYPES: tuple = (
    "SENT_TO",
    "RECEIVED_FROM",
    "HAS_ATTRIBUTE",
    "PARTICIPATED_IN",
    "LINKED_TO",
    "USES_PAYMENT_METHOD",
    "PAYMENT_METHOD_RELATES",
)

# Hard ceiling for the variable-length bound, whatever the configuration says
PATH_MAX_HOPS_CEILING = 15


def statement_name(query: str) -> str:
    """Return the ``relgraph:<name>`` tag of a statement, or ''."""
    first = query.lstrip().split("\n", 1)[0].strip()
    if first.startswith(STATEMENT_TAG_PREFIX):
        return first[len(STATEMENT_TAG_PREFIX):].strip()
    return ""


# ==============================================================
# SCHEMA – constraints & indexes
# ==============================================================

SCHEMA_CONSTRAINTS: list[str] = [
    "CREATE CONSTRAINT user_id_uniq       IF NOT EXISTS FOR (u:User)          REQUIRE u.userId IS UNIQUE",
    "CREATE CONSTRAINT tx_id_uniq         IF NOT EXISTS FOR (t:Transaction)   REQUIRE t.transactionId IS UNIQUE",
    "CREATE CONSTRAINT payment_id_uniq    IF NOT EXISTS FOR (p:PaymentMethod) REQUIRE p.paymentMethodId IS UNIQUE",
    "CREATE CONSTRAINT attribute_key_uniq IF NOT EXISTS FOR (a:Attribute)     REQUIRE (a.attributeType, a.value) IS UNIQUE",
]

SCHEMA_INDEXES: list[str] = [
    "CREATE INDEX idx_user_risk     IF NOT EXISTS FOR (u:User)        ON (u.riskScore)",
    "CREATE INDEX idx_user_kyc      IF NOT EXISTS FOR (u:User)        ON (u.kycStatus)",
    "CREATE INDEX idx_tx_ts         IF NOT EXISTS FOR (t:Transaction) ON (t.timestamp)",
    "CREATE INDEX idx_tx_status     IF NOT EXISTS FOR (t:Transaction) ON (t.status)",
    "CREATE INDEX idx_attr_type     IF NOT EXISTS FOR (a:Attribute)   ON (a.attributeType)",
]

# ==============================================================
# INGEST – merge-on-key writes
# ==============================================================

INGEST_USER = """
// relgraph:ingest_user
MERGE (u:User {userId: $userId})
SET u += $props
SET u.createdAt = coalesce($createdAt, u.createdAt, $updatedAt),
    u.updatedAt = $updatedAt
WITH u
FOREACH (attr IN $attributes |
    MERGE (a:Attribute {attributeType: attr.type, value: attr.value})
    SET a.rawValue = attr.rawValue
    MERGE (u)-[ha:HAS_ATTRIBUTE]->(a)
    SET ha.confidenceScore = attr.confidence
)
FOREACH (pm IN $paymentMethods |
    MERGE (p:PaymentMethod {paymentMethodId: pm.id})
    SET p += pm.props
    MERGE (u)-[upm:USES_PAYMENT_METHOD]->(p)
    SET upm.firstUsedAt = pm.firstUsedAt,
        upm.lastUsedAt  = pm.lastUsedAt
)
RETURN u.userId AS userId
"""

# ─── MATCH (not MERGE) on both users: no row → nothing written ───
# ─── Linkage edges are merged in both directions              ───

INGEST_TRANSACTION = """
// relgraph:ingest_transaction
MATCH (sender:User {userId: $senderId})
MATCH (receiver:User {userId: $receiverId})
MERGE (t:Transaction {transactionId: $transactionId})
SET t += $props
SET t.createdAt = coalesce($createdAt, t.createdAt, $updatedAt),
    t.updatedAt = $updatedAt

MERGE (sender)-[ps:PARTICIPATED_IN {transactionId: $transactionId, role: "SENDER"}]->(t)
SET ps.amount = $amount, ps.currency = $currency, ps.timestamp = $timestamp
MERGE (receiver)-[pr:PARTICIPATED_IN {transactionId: $transactionId, role: "RECEIVER"}]->(t)
SET pr.amount = $amount, pr.currency = $currency, pr.timestamp = $timestamp

MERGE (sender)-[st:SENT_TO {transactionId: $transactionId}]->(receiver)
SET st.amount = $amount, st.currency = $currency, st.timestamp = $timestamp
MERGE (receiver)-[rf:RECEIVED_FROM {transactionId: $transactionId}]->(sender)
SET rf.amount = $amount, rf.currency = $currency, rf.timestamp = $timestamp

WITH t
CALL {
    WITH t
    UNWIND $attributes AS attr
    MERGE (a:Attribute {attributeType: attr.type, value: attr.value})
    SET a.rawValue = attr.rawValue
    MERGE (t)-[hta:HAS_ATTRIBUTE]->(a)
    SET hta.origin = "TRANSACTION", hta.confidenceScore = attr.confidence
    WITH t, a, attr
    MATCH (other:Transaction)-[:HAS_ATTRIBUTE]->(a)
    WHERE other <> t
    MERGE (t)-[out:LINKED_TO {attributeHash: attr.value, linkType: attr.type}]->(other)
    SET out.score = attr.confidence, out.updatedAt = $linkedAt
    MERGE (other)-[back:LINKED_TO {attributeHash: attr.value, linkType: attr.type}]->(t)
    SET back.score = attr.confidence, back.updatedAt = $linkedAt
    RETURN count(*) AS linked
}

WITH t
OPTIONAL MATCH (pm:PaymentMethod {paymentMethodId: $paymentMethodId})
FOREACH (_ IN CASE WHEN $paymentMethodId = "" OR pm IS NULL THEN [] ELSE [1] END |
    MERGE (t)-[pmr:PAYMENT_METHOD_RELATES]->(pm)
    SET pmr.role = "SENDER"
)
RETURN t.transactionId AS transactionId
"""

# ==============================================================
# QUERY – relationship neighbourhoods
# ==============================================================

QUERY_USER_DIRECT_LINKS = """
// relgraph:user_direct_links
MATCH (u:User {userId: $userId})-[r:SENT_TO|RECEIVED_FROM]->(peer:User)
RETURN peer.userId       AS peerId,
       type(r)           AS linkType,
       CASE WHEN type(r) = "SENT_TO" THEN "OUTBOUND" ELSE "INBOUND" END AS direction,
       r.transactionId   AS transactionId,
       r.amount          AS amount,
       r.currency        AS currency,
       r.timestamp       AS timestamp
ORDER BY timestamp, transactionId, linkType
"""

QUERY_USER_TRANSACTIONS = """
// relgraph:user_transactions
MATCH (u:User {userId: $userId})-[rel:PARTICIPATED_IN]->(t:Transaction)
RETURN t.transactionId AS transactionId,
       rel.role        AS role,
       rel.amount      AS amount,
       rel.currency    AS currency,
       rel.timestamp   AS timestamp
ORDER BY timestamp, transactionId
"""

QUERY_USER_SHARED_ATTRIBUTES = """
// relgraph:user_shared_attributes
MATCH (u:User {userId: $userId})-[:HAS_ATTRIBUTE]->(a:Attribute)<-[:HAS_ATTRIBUTE]-(other:User)
WHERE other.userId <> $userId
RETURN a.attributeType                 AS attributeType,
       a.value                         AS attributeHash,
       collect(DISTINCT other.userId)  AS userIds
ORDER BY attributeType, attributeHash
"""

QUERY_TRANSACTION_USERS = """
// relgraph:transaction_users
MATCH (t:Transaction {transactionId: $transactionId})<-[rel:PARTICIPATED_IN]-(user:User)
RETURN user.userId   AS userId,
       rel.role      AS role,
       rel.amount    AS amount,
       rel.currency  AS currency,
       CASE WHEN rel.role = "SENDER" THEN "OUTBOUND" ELSE "INBOUND" END AS direction
ORDER BY role DESC
"""

QUERY_TRANSACTION_LINKED = """
// relgraph:transaction_linked
MATCH (t:Transaction {transactionId: $transactionId})-[link:LINKED_TO]->(other:Transaction)
RETURN other.transactionId AS otherTransactionId,
       link.linkType       AS linkType,
       link.attributeHash  AS attributeHash,
       link.score          AS score,
       link.updatedAt      AS updatedAt
ORDER BY otherTransactionId, linkType
"""

# ==============================================================
# PATH – bounded shortest path over the undirected projection
# ==============================================================

_NODE_KEY = "coalesce({n}.userId, {n}.transactionId, {n}.paymentMethodId, {n}.value, elementId({n}))"

PATH_SHORTEST_TEMPLATE = """
// relgraph:shortest_path
MATCH (source:User {{userId: $sourceId}}), (target:User {{userId: $targetId}})
MATCH path = shortestPath((source)-[:{rel_types}*..{max_hops}]-(target))
RETURN [n IN nodes(path) | {{
          id:     %(node_n)s,
          label:  coalesce(n.userId, n.transactionId, n.attributeType, n.paymentMethodId, n.value),
          type:   head(labels(n)),
          weight: 1.0
       }}] AS nodes,
       [rel IN relationships(path) | {{
          type:     type(rel),
          sourceId: %(node_start)s,
          targetId: %(node_end)s,
          label:    type(rel),
          weight:   1.0
       }}] AS edges,
       length(path) AS hops
""" % {
    "node_n": _NODE_KEY.format(n="n"),
    "node_start": _NODE_KEY.format(n="startNode(rel)"),
    "node_end": _NODE_KEY.format(n="endNode(rel)"),
}


def shortest_path_query(max_hops: int) -> str:
    """Shortest-path statement bounded to ``max_hops``.

    Cypher cannot parameterise a variable-length bound, so the bound is
    rendered into the text; only a validated int ever reaches it.
    """
    hops = int(max_hops)
    if not 1 <= hops <= PATH_MAX_HOPS_CEILING:
        raise ValueError(f"max_hops must be within 1..{PATH_MAX_HOPS_CEILING}, got {hops}")
    return PATH_SHORTEST_TEMPLATE.format(
        rel_types="|".join(PATH_RELATIONSHIP_TYPES),
        max_hops=hops,
    )


# ==============================================================
# EXPORT – full enumerations
# ==============================================================

USER_SUMMARY_RETURN = """
RETURN u.userId    AS userId,
       u.fullName  AS fullName,
       u.email     AS email,
       u.phone     AS phone,
       u.kycStatus AS kycStatus,
       u.riskScore AS riskScore,
       u.createdAt AS createdAt,
       u.updatedAt AS updatedAt
"""

TRANSACTION_SUMMARY_RETURN = """
RETURN t.transactionId AS transactionId,
       t.amount        AS amount,
       t.currency      AS currency,
       t.type          AS type,
       t.status        AS status,
       t.channel       AS channel,
       t.timestamp     AS timestamp,
       t.createdAt     AS createdAt,
       t.updatedAt     AS updatedAt,
       head([(s:User)-[:PARTICIPATED_IN {role: "SENDER"}]->(t) | s.userId])   AS senderId,
       head([(r:User)-[:PARTICIPATED_IN {role: "RECEIVER"}]->(t) | r.userId]) AS receiverId
"""

EXPORT_USERS = (
    "\n// relgraph:export_users\nMATCH (u:User)"
    + USER_SUMMARY_RETURN
    + "ORDER BY u.userId\n"
)

EXPORT_TRANSACTIONS = (
    "\n// relgraph:export_transactions\nMATCH (t:Transaction)"
    + TRANSACTION_SUMMARY_RETURN
    + "ORDER BY t.timestamp DESC, t.transactionId\n"
)

# ==============================================================
# MAINT – maintenance helpers
# ==============================================================

MAINT_PING = """
// relgraph:ping
RETURN 1 AS ok
"""

MAINT_COUNT_NODES = """
// relgraph:count_nodes
MATCH (n)
RETURN labels(n)[0] AS label, count(n) AS count
ORDER BY label
"""

MAINT_COUNT_RELS = """
// relgraph:count_rels
MATCH ()-[r]->()
RETURN type(r) AS type, count(r) AS count
ORDER BY type
"""

MAINT_CLEAR_ALL = """
// relgraph:clear_all
MATCH (n) DETACH DELETE n
"""
