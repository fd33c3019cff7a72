"""Ownership-tree nodes backing every remote object proxy."""

import logging
import threading
import weakref
from collections.abc import Callable

from playwire.errors import DisposedObjectError
from playwire.errors import OwnershipError

logger = logging.getLogger(__name__)

_DEFAULT_TREE_LOCK: threading.RLock = threading.RLock()
DisposeListener = Callable[["RemoteObject"], None]


class RemoteObject:
    """Local half of one remote entity's lifetime and its place in an ownership forest.

    Every node of one forest shares a single re-entrant lock. Nodes built
    without an explicit lock share a module-wide default; sessions pass the
    lock owned by their registry.
    """

    _remote_id: str
    _remote_type: str
    _lock: threading.RLock
    _disposed: bool
    _disposing: bool
    _parent_ref: "weakref.ReferenceType[RemoteObject] | None"
    _children: list["RemoteObject"]
    _dispose_listeners: list[DisposeListener]

    def __init__(self, remote_id: str, remote_type: str, lock: "threading.RLock | None" = None) -> None:
        """Initialize a live, detached node.

        :param remote_id: Opaque identifier of the remote entity.
        :param remote_type: Category tag, such as ``page`` or ``handle``.
        :param lock: Forest lock shared with every node this one may be linked to.
        """
        self._remote_id = remote_id
        self._remote_type = remote_type
        if lock is None:
            self._lock = _DEFAULT_TREE_LOCK
        else:
            self._lock = lock
        self._disposed = False
        self._disposing = False
        self._parent_ref = None
        self._children = []
        self._dispose_listeners = []

    @property
    def remote_id(self) -> str:
        """Return the remote identifier.

        :returns: Remote identifier.
        """
        return self._remote_id

    @property
    def remote_type(self) -> str:
        """Return the remote category tag.

        :returns: Remote type tag.
        """
        return self._remote_type

    @property
    def lock(self) -> threading.RLock:
        """Return the forest lock guarding this node.

        :returns: Re-entrant lock.
        """
        return self._lock

    @property
    def is_disposed(self) -> bool:
        """Report whether this node reached its terminal disposed state.

        :returns: ``True`` once disposed.
        """
        with self._lock:
            return self._disposed

    @property
    def parent(self) -> "RemoteObject | None":
        """Return the owning parent.

        :returns: Parent node, or ``None`` for roots and detached nodes.
        """
        with self._lock:
            parent_ref = self._parent_ref
            if parent_ref is None:
                return None
            return parent_ref()

    @property
    def children(self) -> tuple["RemoteObject", ...]:
        """Return a snapshot of the owned children in attach order.

        :returns: Tuple of child nodes.
        """
        with self._lock:
            return tuple(self._children)

    def assert_alive(self, action: str = "operation") -> None:
        """Ensure this node may still be operated on.

        :param action: Name of the attempted operation.
        :raises DisposedObjectError: If the node is disposed or being disposed.
        """
        with self._lock:
            if self._disposed is True or self._disposing is True:
                raise DisposedObjectError(action, self._remote_type, self._remote_id)

    def attach_child(self, child: "RemoteObject") -> None:
        """Make ``child`` owned by this node, moving it from any previous parent.

        :param child: Node to adopt.
        :raises DisposedObjectError: If either node is disposed.
        :raises OwnershipError: If the link would create a cycle or join two forests.
        """
        if child._lock is not self._lock:
            raise OwnershipError(
                f"Cannot link {child._remote_type} {child._remote_id} under "
                + f"{self._remote_type} {self._remote_id}: nodes belong to different ownership forests"
            )

        with self._lock:
            self.assert_alive("attach_child")
            child.assert_alive("attach_child")
            if child is self:
                raise OwnershipError(f"{self._remote_type} {self._remote_id} cannot own itself")

            ancestor: RemoteObject | None = self.parent
            while ancestor is not None:
                if ancestor is child:
                    raise OwnershipError(
                        f"Cannot link {child._remote_type} {child._remote_id} under its own "
                        + f"descendant {self._remote_type} {self._remote_id}"
                    )
                ancestor = ancestor.parent

            current_parent: RemoteObject | None = child.parent
            if current_parent is self:
                return
            if current_parent is not None:
                current_parent.detach_child(child)

            child._parent_ref = weakref.ref(self)
            self._children.append(child)

    def detach_child(self, child: "RemoteObject") -> None:
        """Stop owning ``child``. No-op when it is not a current child.

        :param child: Node to release.
        """
        with self._lock:
            for index, candidate in enumerate(self._children):
                if candidate is child:
                    del self._children[index]
                    child._parent_ref = None
                    return

    def add_dispose_listener(self, listener: DisposeListener) -> None:
        """Register a callback run under the forest lock right after disposal.

        :param listener: Callable receiving this node.
        """
        with self._lock:
            if listener in self._dispose_listeners:
                return
            self._dispose_listeners.append(listener)

    def dispose(self) -> None:
        """Dispose this node and, transitively, every descendant.

        State changes happen under the forest lock. Cleanup hooks run after
        the lock is released, innermost nodes first. Safe to call repeatedly
        and from re-entrant cleanup paths.
        """
        disposed_nodes: list[RemoteObject] = []
        with self._lock:
            self._dispose_subtree(disposed_nodes)

        for node in disposed_nodes:
            node._run_cleanup_hook()

    def _dispose_subtree(self, disposed_nodes: list["RemoteObject"]) -> None:
        """Mark this subtree disposed, collecting every newly disposed node.

        Must be called with the forest lock held.

        :param disposed_nodes: Receives nodes in post-order.
        """
        if self._disposed is True or self._disposing is True:
            return

        self._disposing = True
        try:
            for child in list(self._children):
                child._dispose_subtree(disposed_nodes)
            self._children.clear()

            parent: RemoteObject | None = self.parent
            if parent is not None:
                parent.detach_child(self)
            self._parent_ref = None
            self._disposed = True
        finally:
            self._disposing = False

        listeners: list[DisposeListener] = list(self._dispose_listeners)
        self._dispose_listeners.clear()
        for listener in listeners:
            try:
                listener(self)
            except Exception:
                logger.warning(
                    "Dispose listener failed for %s %s",
                    self._remote_type,
                    self._remote_id,
                    exc_info=True,
                )
        disposed_nodes.append(self)

    def _run_cleanup_hook(self) -> None:
        """Run ``_on_dispose`` once, logging instead of raising on failure."""
        logger.debug("Disposed %s %s", self._remote_type, self._remote_id)
        try:
            self._on_dispose()
        except Exception:
            logger.warning(
                "Cleanup hook failed for %s %s",
                self._remote_type,
                self._remote_id,
                exc_info=True,
            )

    def _on_dispose(self) -> None:
        """Release remote-side resources. Runs exactly once, after the node is marked disposed."""

    def __repr__(self) -> str:
        """Return a debugging representation.

        :returns: Representation string.
        """
        state: str = "disposed" if self._disposed is True else "alive"
        return f"<{type(self).__name__} {self._remote_type} id={self._remote_id!r} {state}>"
