"""Tests for ownership-tree nodes."""

import importlib.util
import logging
import threading
from pathlib import Path
from types import ModuleType

import pytest

import playwire
from playwire import DisposedObjectError
from playwire import OwnershipError
from playwire import RemoteObject
from playwire.registry import OwnershipRegistry


class RecordingNode(RemoteObject):
    """Node that records its cleanup hook invocations."""

    log: list[str]
    fail: bool

    def __init__(self, remote_id: str, log: list[str], lock: "threading.RLock | None" = None, fail: bool = False) -> None:
        """Initialize a recording node.

        :param remote_id: Remote identifier.
        :param log: Shared list receiving disposed ids.
        :param lock: Forest lock.
        :param fail: Raise from the cleanup hook.
        """
        super().__init__(remote_id, "node", lock=lock)
        self.log = log
        self.fail = fail

    def _on_dispose(self) -> None:
        self.log.append(self.remote_id)
        if self.fail is True:
            raise RuntimeError(f"cleanup of {self.remote_id} failed")


def test_dispose_cascades_children_before_parent() -> None:
    """Descendants are disposed depth first, in attach order, before their owner."""
    log: list[str] = []
    root: RecordingNode = RecordingNode("root", log)
    first: RecordingNode = RecordingNode("a", log)
    nested: RecordingNode = RecordingNode("a1", log)
    second: RecordingNode = RecordingNode("b", log)
    root.attach_child(first)
    first.attach_child(nested)
    root.attach_child(second)

    root.dispose()

    assert log == ["a1", "a", "b", "root"]
    for node in (root, first, nested, second):
        assert node.is_disposed is True
        assert node.children == ()
        assert node.parent is None


def test_dispose_is_idempotent() -> None:
    """The cleanup hook runs exactly once across repeated disposal."""
    log: list[str] = []
    node: RecordingNode = RecordingNode("n", log)

    node.dispose()
    node.dispose()

    assert log == ["n"]


def test_disposing_child_detaches_it_from_parent() -> None:
    """A disposed child leaves its parent's child list and the parent stays alive."""
    log: list[str] = []
    parent: RecordingNode = RecordingNode("p", log)
    child: RecordingNode = RecordingNode("c", log)
    parent.attach_child(child)

    child.dispose()

    assert parent.children == ()
    assert parent.is_disposed is False
    assert log == ["c"]


def test_assert_alive_message_names_action_type_and_id() -> None:
    """Operations on a disposed node fail with a descriptive error."""
    node: RemoteObject = RemoteObject("page-7", "page")
    node.dispose()

    with pytest.raises(DisposedObjectError) as exc_info:
        node.assert_alive("goto")

    assert str(exc_info.value) == "Cannot perform goto on disposed page (id: page-7)"
    assert exc_info.value.action == "goto"
    assert exc_info.value.remote_type == "page"
    assert exc_info.value.remote_id == "page-7"


def test_attach_is_a_move() -> None:
    """Attaching a child that already has an owner moves it."""
    first: RemoteObject = RemoteObject("first", "context")
    second: RemoteObject = RemoteObject("second", "context")
    child: RemoteObject = RemoteObject("child", "page")
    first.attach_child(child)

    second.attach_child(child)

    assert first.children == ()
    assert second.children == (child,)
    assert child.parent is second


def test_attach_same_child_twice_keeps_one_entry() -> None:
    """Re-attaching an existing child is a no-op."""
    parent: RemoteObject = RemoteObject("p", "context")
    child: RemoteObject = RemoteObject("c", "page")

    parent.attach_child(child)
    parent.attach_child(child)

    assert parent.children == (child,)


def test_attach_rejects_cycles() -> None:
    """A node cannot own itself or one of its ancestors."""
    root: RemoteObject = RemoteObject("root", "context")
    middle: RemoteObject = RemoteObject("middle", "page")
    leaf: RemoteObject = RemoteObject("leaf", "handle")
    root.attach_child(middle)
    middle.attach_child(leaf)

    with pytest.raises(OwnershipError):
        leaf.attach_child(root)
    with pytest.raises(OwnershipError):
        middle.attach_child(middle)

    assert leaf.children == ()
    assert root.parent is None


def test_attach_rejects_nodes_from_other_forests() -> None:
    """Nodes guarded by different locks cannot be linked."""
    parent: RemoteObject = RemoteObject("p", "context", lock=threading.RLock())
    child: RemoteObject = RemoteObject("c", "page", lock=threading.RLock())

    with pytest.raises(OwnershipError):
        parent.attach_child(child)


def test_attach_requires_both_nodes_alive() -> None:
    """Linking to or from a disposed node fails."""
    parent: RemoteObject = RemoteObject("p", "context")
    child: RemoteObject = RemoteObject("c", "page")
    child.dispose()

    with pytest.raises(DisposedObjectError):
        parent.attach_child(child)

    parent.dispose()
    with pytest.raises(DisposedObjectError):
        parent.attach_child(RemoteObject("other", "page"))


def test_detach_unknown_child_is_noop() -> None:
    """Detaching a node that is not a child changes nothing."""
    parent: RemoteObject = RemoteObject("p", "context")
    stranger: RemoteObject = RemoteObject("s", "page")

    parent.detach_child(stranger)

    assert parent.children == ()


def test_cleanup_hook_failure_is_logged_and_node_stays_disposed(caplog: pytest.LogCaptureFixture) -> None:
    """Hook exceptions never escape dispose and never undo the disposed state."""
    log: list[str] = []
    parent: RecordingNode = RecordingNode("p", log)
    child: RecordingNode = RecordingNode("c", log, fail=True)
    parent.attach_child(child)

    with caplog.at_level(logging.WARNING, logger="playwire.node"):
        parent.dispose()

    assert log == ["c", "p"]
    assert child.is_disposed is True
    assert parent.is_disposed is True
    assert "Cleanup hook failed for node c" in caplog.text


def test_dispose_listeners_run_once_and_are_deduplicated() -> None:
    """A listener added twice runs once, after the node is marked disposed."""
    node: RemoteObject = RemoteObject("n", "page")
    seen: list[bool] = []

    def listener(disposed: RemoteObject) -> None:
        seen.append(disposed.is_disposed)

    node.add_dispose_listener(listener)
    node.add_dispose_listener(listener)
    node.dispose()
    node.dispose()

    assert seen == [True]


def test_reentrant_dispose_from_hook_is_noop() -> None:
    """A cleanup hook that disposes its own node again does not recurse."""
    calls: list[str] = []

    class SelfDisposingNode(RemoteObject):
        def _on_dispose(self) -> None:
            calls.append(self.remote_id)
            self.dispose()

    node: SelfDisposingNode = SelfDisposingNode("n", "page")
    node.dispose()

    assert calls == ["n"]


def test_concurrent_dispose_runs_hooks_once() -> None:
    """Racing disposals from several threads still clean up each node once."""
    log: list[str] = []
    root: RecordingNode = RecordingNode("root", log)
    for index in range(20):
        root.attach_child(RecordingNode(f"child-{index}", log))

    barrier: threading.Barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        root.dispose()

    threads: list[threading.Thread] = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(log) == sorted(["root"] + [f"child-{index}" for index in range(20)])
    assert log[-1] == "root"


@pytest.mark.parametrize("module_name", ["node", "registry"])
def test_lock_parameter_modules_execute_cleanly(module_name: str) -> None:
    """Modules taking an optional forest lock load from source without evaluating bad annotations."""
    source: Path = Path(playwire.__file__).parent / f"{module_name}.py"
    spec = importlib.util.spec_from_file_location(f"_playwire_{module_name}_fresh", source)
    assert spec is not None and spec.loader is not None
    module: ModuleType = importlib.util.module_from_spec(spec)

    spec.loader.exec_module(module)

    assert hasattr(module, "RemoteObject" if module_name == "node" else "OwnershipRegistry")


def test_default_locks_are_created_when_none_given() -> None:
    """Nodes share the module default lock and each registry owns a fresh one."""
    first: RemoteObject = RemoteObject("a", "page")
    second: RemoteObject = RemoteObject("b", "page", lock=None)
    registry: OwnershipRegistry = OwnershipRegistry()

    assert first.lock is second.lock
    assert registry.lock is not OwnershipRegistry().lock
    with registry.lock:
        registry.register(RemoteObject("c", "page", lock=registry.lock))
    assert registry.get("c") is not None
