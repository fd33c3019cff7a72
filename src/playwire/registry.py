"""Id-to-node index used for cascade disposal by remote identifier."""

import logging
import threading

from playwire.node import RemoteObject

logger = logging.getLogger(__name__)


class OwnershipRegistry:
    """Map remote identifiers to live ownership nodes.

    Entries are dropped in the same critical section that marks their node
    disposed, so the index never exposes a disposed node.
    """

    _lock: threading.RLock
    _nodes: dict[str, RemoteObject]

    def __init__(self, lock: "threading.RLock | None" = None) -> None:
        """Initialize an empty registry.

        :param lock: Lock guarding the index; also the forest lock for session-created nodes.
        """
        if lock is None:
            self._lock = threading.RLock()
        else:
            self._lock = lock
        self._nodes = {}

    @property
    def lock(self) -> threading.RLock:
        """Return the lock nodes tracked by this registry should share.

        :returns: Re-entrant lock.
        """
        return self._lock

    def register(self, node: RemoteObject) -> None:
        """Insert or overwrite the entry for ``node.remote_id``.

        :param node: Live node to index.
        :raises DisposedObjectError: If the node is already disposed.
        """
        with node.lock:
            node.assert_alive("register")
            node.add_dispose_listener(self._forget)
            with self._lock:
                self._nodes[node.remote_id] = node

    def link_parent_child(self, parent: RemoteObject, child: RemoteObject) -> None:
        """Register both nodes and make ``child`` owned by ``parent``.

        :param parent: Owning node.
        :param child: Owned node.
        """
        self.register(parent)
        self.register(child)
        parent.attach_child(child)
        logger.debug(
            "Linked %s %s under %s %s",
            child.remote_type,
            child.remote_id,
            parent.remote_type,
            parent.remote_id,
        )

    def dispose_cascade(self, remote_id: str) -> bool:
        """Dispose the node registered under ``remote_id`` and its subtree.

        Unknown identifiers are ignored, since remote disposal notices can race
        with client-initiated disposal.

        :param remote_id: Remote identifier.
        :returns: ``True`` when a registered node was found.
        """
        with self._lock:
            node: RemoteObject | None = self._nodes.get(remote_id)
        if node is None:
            logger.debug("dispose_cascade ignored unknown id %s", remote_id)
            return False

        node.dispose()
        with self._lock:
            current: RemoteObject | None = self._nodes.get(remote_id)
            if current is node:
                self._nodes.pop(remote_id, None)
        return True

    def get(self, remote_id: str) -> RemoteObject | None:
        """Return the node registered under ``remote_id``.

        :param remote_id: Remote identifier.
        :returns: Registered node, or ``None`` when absent.
        """
        with self._lock:
            return self._nodes.get(remote_id)

    def get_all(self) -> dict[str, RemoteObject]:
        """Return a snapshot of every registered entry.

        :returns: Copy of the id-to-node mapping.
        """
        with self._lock:
            return dict(self._nodes)

    def reset(self) -> None:
        """Drop every entry without disposing anything. Intended for test isolation."""
        with self._lock:
            self._nodes.clear()

    def _forget(self, node: RemoteObject) -> None:
        """Drop the entry for a node that was just disposed.

        :param node: Disposed node.
        """
        with self._lock:
            current: RemoteObject | None = self._nodes.get(node.remote_id)
            if current is node:
                self._nodes.pop(node.remote_id, None)

    def __len__(self) -> int:
        """Return the number of registered entries.

        :returns: Entry count.
        """
        with self._lock:
            return len(self._nodes)

    def __contains__(self, remote_id: object) -> bool:
        """Report whether ``remote_id`` is registered.

        :param remote_id: Candidate remote identifier.
        :returns: Membership result.
        """
        with self._lock:
            return remote_id in self._nodes
