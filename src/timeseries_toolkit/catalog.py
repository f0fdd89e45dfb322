"""Lazily loaded schema catalog.

The tree has four levels: database, retention policy, measurement and the
fields/tags of a measurement (grouped under two header nodes). Children are
fetched on first expansion through a catalog collaborator and memoized for
the lifetime of the cache. Fetches are single-flight per node: a second
request for a node that is still loading waits on the pending fetch.

``reset()`` drops everything and bumps the generation counter; a response
that belongs to an older generation is discarded when it arrives.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Hashable, Iterable, List, Optional, Protocol, Set, Tuple
import asyncio
import inspect
import logging

from .exceptions import CatalogFetchError
from .models import CatalogEntry, CatalogNode, FlatNode, LoadState, NodeId, NodeKind, PathContext

logger = logging.getLogger(__name__)

FIELDS_GROUP_NAME = "Fields"
TAGS_GROUP_NAME = "Tags"

_LOADABLE = (NodeKind.DATABASE, NodeKind.RETENTION_POLICY, NodeKind.MEASUREMENT)
_ROOT_KEY = ("databases",)

TagValueKey = Tuple[Optional[str], Optional[str], str]


class CatalogFetcher(Protocol):
    """Collaborator that reads the catalog from a backend.

    Both methods may be coroutine functions or plain blocking functions;
    blocking ones are run in a worker thread.
    """

    def fetch_catalog_children(self, context: PathContext) -> Iterable[CatalogEntry | str]:
        ...

    def fetch_tag_values(
        self, measurement: str, tag_key: str, database: Optional[str] = None
    ) -> List[str]:
        ...


async def call_collaborator(fn: Callable[..., Any], *args: Any) -> Any:
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    result = await asyncio.to_thread(fn, *args)
    if inspect.isawaitable(result):
        return await result
    return result


def quote_identifier(name: str) -> str:
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


def measurement_token(name: str) -> str:
    return f"FROM {quote_identifier(name)}"


def tag_value_token(value: str) -> str:
    return "'" + value.replace("'", "\\'") + "'"


class SchemaCache:
    """Catalog tree owned by one backend connection."""

    def __init__(self, fetcher: CatalogFetcher) -> None:
        self._fetcher = fetcher
        self._generation = 0
        self._background: Set[asyncio.Task] = set()
        self._clear()

    def _clear(self) -> None:
        self._roots: Optional[List[CatalogNode]] = None
        self._nodes: Dict[NodeId, CatalogNode] = {}
        self._inflight: Dict[Hashable, asyncio.Future] = {}
        self._tag_values: Dict[TagValueKey, List[str]] = {}

    # -------------------- State --------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def databases(self) -> List[CatalogNode]:
        return list(self._roots or [])

    def node(self, node_id: NodeId) -> CatalogNode:
        try:
            return self._nodes[tuple(node_id)]
        except KeyError:
            raise KeyError(f"Unknown catalog node: {node_id!r}") from None

    def reset(self) -> None:
        """Discard the whole cache, e.g. when the active connection changes."""
        self._generation += 1
        self._clear()
        logger.debug("Schema cache reset (generation %d)", self._generation)

    def rebind(self, fetcher: CatalogFetcher) -> None:
        """Point the cache at another connection and reset it."""
        self._fetcher = fetcher
        self.reset()

    # -------------------- Loading --------------------

    async def load_databases(self, refresh: bool = False) -> List[CatalogNode]:
        if self._roots is not None and not refresh:
            return self.databases
        await self._single_flight(_ROOT_KEY, self._fetch_databases)
        return self.databases

    async def toggle(self, node_id: NodeId) -> CatalogNode:
        """Flip a node between collapsed and expanded, loading it on first expansion."""
        node = self.node(node_id)
        if node.expanded:
            node.expanded = False
            return node
        return await self.expand(node_id)

    async def expand(self, node_id: NodeId) -> CatalogNode:
        node = self.node(node_id)
        node.expanded = True
        if node.kind in _LOADABLE and node.children is None:
            await self._load_children(node)
        return node

    def collapse(self, node_id: NodeId) -> CatalogNode:
        node = self.node(node_id)
        node.expanded = False
        return node

    async def _load_children(self, node: CatalogNode) -> Optional[List[CatalogNode]]:
        node.state = LoadState.LOADING

        async def fetch(generation: int) -> Optional[List[CatalogNode]]:
            return await self._fetch_children(node, generation)

        return await self._single_flight(("children", id(node)) + node.id, fetch)

    async def _single_flight(self, key: Hashable, factory: Callable[[int], Awaitable[Any]]) -> Any:
        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._run(key, factory, self._generation))
            self._inflight[key] = pending
        else:
            logger.debug("Joining pending fetch %s", key)
        return await asyncio.shield(pending)

    async def _run(self, key: Hashable, factory: Callable[[int], Awaitable[Any]], generation: int) -> Any:
        try:
            return await factory(generation)
        finally:
            if generation == self._generation:
                self._inflight.pop(key, None)

    async def _fetch_databases(self, generation: int) -> None:
        logger.debug("Fetching databases")
        try:
            entries = await call_collaborator(self._fetcher.fetch_catalog_children, PathContext())
        except Exception as exc:
            if generation != self._generation:
                logger.debug("Discarding stale database listing failure: %s", exc)
                return
            raise CatalogFetchError(f"Failed to list databases: {exc}") from exc
        if generation != self._generation:
            logger.debug("Discarding stale database listing")
            return
        if self._roots is not None:
            # Relisting replaces the whole tree below the roots.
            self._nodes.clear()
            self._tag_values.clear()
        roots = []
        for entry in entries:
            entry = _as_entry(entry, NodeKind.DATABASE)
            node = CatalogNode(
                id=(entry.name,),
                kind=NodeKind.DATABASE,
                name=entry.name,
                context=PathContext(database=entry.name),
            )
            roots.append(self._register(node))
        self._roots = roots

    async def _fetch_children(self, node: CatalogNode, generation: int) -> Optional[List[CatalogNode]]:
        logger.debug("Fetching children of %s %s", node.kind.value, node.id)
        try:
            entries = await call_collaborator(self._fetcher.fetch_catalog_children, node.context)
            if generation != self._generation:
                logger.debug("Discarding stale catalog response for %s", node.id)
                return None
            if self._nodes.get(node.id) is not node:
                logger.debug("Discarding catalog response for dropped node %s", node.id)
                return None
            node.children = self._build_children(node, entries)
            node.state = LoadState.LOADED
            return node.children
        except Exception as exc:
            if generation != self._generation:
                logger.debug("Discarding stale catalog failure for %s: %s", node.id, exc)
                return None
            node.expanded = False
            logger.warning("Loading %s '%s' failed: %s", node.kind.value, node.name, exc)
            raise CatalogFetchError(
                f"Failed to load children of {node.kind.value} '{node.name}': {exc}"
            ) from exc
        finally:
            if generation == self._generation and node.children is None:
                node.state = LoadState.UNLOADED

    def _build_children(self, node: CatalogNode, entries: Iterable[CatalogEntry | str]) -> List[CatalogNode]:
        ctx = node.context
        if node.kind is NodeKind.DATABASE:
            return [
                self._register(
                    CatalogNode(
                        id=node.id + (e.name,),
                        kind=NodeKind.RETENTION_POLICY,
                        name=e.name,
                        context=PathContext(database=ctx.database, retention_policy=e.name),
                    )
                )
                for e in (_as_entry(x, NodeKind.RETENTION_POLICY) for x in entries)
            ]
        if node.kind is NodeKind.RETENTION_POLICY:
            return [
                self._register(
                    CatalogNode(
                        id=node.id + (e.name,),
                        kind=NodeKind.MEASUREMENT,
                        name=e.name,
                        context=PathContext(
                            database=ctx.database,
                            retention_policy=ctx.retention_policy,
                            measurement=e.name,
                        ),
                    )
                )
                for e in (_as_entry(x, NodeKind.MEASUREMENT) for x in entries)
            ]
        return self._build_groups(node, [_as_entry(x, NodeKind.FIELD) for x in entries])

    def _build_groups(self, node: CatalogNode, entries: List[CatalogEntry]) -> List[CatalogNode]:
        groups = []
        for kind, leaf_kind, name in (
            (NodeKind.FIELD_GROUP, NodeKind.FIELD, FIELDS_GROUP_NAME),
            (NodeKind.TAG_GROUP, NodeKind.TAG, TAGS_GROUP_NAME),
        ):
            group_id = node.id + (kind.value,)
            leaves = [
                self._register(
                    CatalogNode(
                        id=group_id + (e.name,),
                        kind=leaf_kind,
                        name=e.name,
                        context=node.context,
                        field_type=e.field_type if leaf_kind is NodeKind.FIELD else None,
                    )
                )
                for e in entries
                if e.kind is leaf_kind
            ]
            groups.append(
                self._register(
                    CatalogNode(
                        id=group_id,
                        kind=kind,
                        name=name,
                        context=node.context,
                        children=leaves,
                        state=LoadState.LOADED,
                    )
                )
            )
        return groups

    def _register(self, node: CatalogNode) -> CatalogNode:
        self._nodes[node.id] = node
        return node

    # -------------------- Flattening and search --------------------

    def visible_nodes(self) -> List[FlatNode]:
        """Rows of the tree as displayed, honoring expansion."""
        result: List[FlatNode] = []

        def walk(nodes: List[CatalogNode], depth: int) -> None:
            for n in nodes:
                result.append(FlatNode(node=n, depth=depth))
                if n.expanded and n.children:
                    walk(n.children, depth + 1)

        walk(self._roots or [], 0)
        return result

    def filter(self, text: str) -> List[FlatNode]:
        """Loaded nodes whose name contains ``text``, regardless of expansion.

        Never fetches. An empty filter returns the visible rows.
        """
        needle = text.strip().lower()
        if not needle:
            return self.visible_nodes()
        result: List[FlatNode] = []

        def walk(nodes: List[CatalogNode], depth: int) -> None:
            for n in nodes:
                if needle in n.name.lower():
                    result.append(FlatNode(node=n, depth=depth))
                if n.children:
                    walk(n.children, depth + 1)

        walk(self._roots or [], 0)
        return result

    # -------------------- Leaves and tag values --------------------

    def select_leaf(self, node_id: NodeId) -> str:
        """Return the token to insert for a field or tag.

        Selecting a tag also toggles its value list and starts loading the
        values when an event loop is running. Without a running loop nothing
        is fetched; await ``load_tag_values`` instead.
        """
        node = self.node(node_id)
        if not node.kind.is_leaf:
            raise ValueError(f"{node.kind.value} nodes cannot be inserted as a leaf")
        if node.kind is NodeKind.TAG:
            node.expanded = not node.expanded
            if node.expanded and _tag_key(node) not in self._tag_values:
                self._start_tag_value_fetch(node)
        return quote_identifier(node.name)

    def tag_values(self, node_id: NodeId) -> Optional[List[str]]:
        node = self.node(node_id)
        values = self._tag_values.get(_tag_key(node))
        return list(values) if values is not None else None

    def tag_value_state(self, node_id: NodeId) -> LoadState:
        key = _tag_key(self.node(node_id))
        if key in self._tag_values:
            return LoadState.LOADED
        if ("tag-values",) + key in self._inflight:
            return LoadState.LOADING
        return LoadState.UNLOADED

    async def load_tag_values(self, node_id: NodeId) -> List[str]:
        node = self.node(node_id)
        if node.kind is not NodeKind.TAG:
            raise ValueError(f"{node.kind.value} nodes have no tag values")
        key = _tag_key(node)
        if key in self._tag_values:
            return list(self._tag_values[key])

        async def fetch(generation: int) -> Optional[List[str]]:
            return await self._fetch_tag_values(key, generation)

        values = await self._single_flight(("tag-values",) + key, fetch)
        return list(values or [])

    async def _fetch_tag_values(self, key: TagValueKey, generation: int) -> Optional[List[str]]:
        database, measurement, tag = key
        logger.debug("Fetching values of tag %s on %s", tag, measurement)
        try:
            values = await call_collaborator(self._fetcher.fetch_tag_values, measurement, tag, database)
        except Exception as exc:
            if generation != self._generation:
                logger.debug("Discarding stale tag value failure for %s: %s", key, exc)
                return None
            raise CatalogFetchError(f"Failed to load values of tag '{tag}': {exc}") from exc
        if generation != self._generation:
            logger.debug("Discarding stale tag values for %s", key)
            return None
        self._tag_values[key] = list(values)
        return self._tag_values[key]

    def _start_tag_value_fetch(self, node: CatalogNode) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; tag values of %s load on load_tag_values", node.id)
            return
        task = loop.create_task(self.load_tag_values(node.id))
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background tag value fetch failed: %s", exc)


def _tag_key(node: CatalogNode) -> TagValueKey:
    return (node.context.database, node.context.measurement, node.name)


def _as_entry(item: CatalogEntry | str, default_kind: NodeKind) -> CatalogEntry:
    if isinstance(item, CatalogEntry):
        return item
    return CatalogEntry(kind=default_kind, name=str(item))
