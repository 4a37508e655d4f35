"""Tests for SnapshotSandbox."""

import logging

from scopebox.core import MISSING, PropertyDescriptor, SandboxType
from scopebox.namespace import Namespace
from scopebox.sandbox import SnapshotSandbox
from scopebox.sandbox.snapshot_sandbox import LEGACY_SNAPSHOT_KEYS, iter_snapshot_keys


class TestRestore:
    """Deactivate puts the namespace back the way activate found it."""

    def test_changed_key_restored_and_recorded(self, namespace, make_snapshot):
        """A changed key is restored and its module value kept."""
        namespace["x"] = "base"
        app = make_snapshot("app1")

        app.activate()
        namespace["x"] = "changed"
        app.deactivate()

        assert namespace["x"] == "base"
        assert app.modified_map == {"x": "changed"}

    def test_reactivate_replays_changes(self, namespace, make_snapshot):
        """Activating again brings the module's values back."""
        namespace["x"] = "base"
        app = make_snapshot("app1")
        app.activate()
        namespace["x"] = "changed"
        app.deactivate()

        app.activate()

        assert namespace["x"] == "changed"

    def test_added_key_removed(self, namespace, make_snapshot):
        """Keys the module added disappear on deactivate."""
        app = make_snapshot("app1")

        app.activate()
        namespace["added"] = 1
        app.deactivate()

        assert not namespace.has("added")
        assert app.modified_map == {"added": 1}

        app.activate()
        assert namespace["added"] == 1

    def test_deleted_key_restored(self, namespace, make_snapshot):
        """Keys the module deleted come back on deactivate."""
        namespace["gone"] = "value"
        app = make_snapshot("app1")

        app.activate()
        del namespace["gone"]
        app.deactivate()

        assert namespace["gone"] == "value"
        assert app.modified_map == {"gone": MISSING}

        app.activate()
        assert not namespace.has("gone")

    def test_unchanged_keys_not_recorded(self, namespace, make_snapshot):
        """Only differences end up in the modified map."""
        namespace["a"] = 1
        namespace["b"] = [1, 2]
        app = make_snapshot("app1")

        app.activate()
        namespace["a"] = 1
        app.deactivate()

        assert app.modified_map == {}

    def test_equal_scalar_is_not_a_change(self, namespace, make_snapshot):
        """A rebuilt but equal string or number leaves the key unchanged."""
        namespace["x"] = "base"
        namespace["size"] = 10**20
        app = make_snapshot("app1")

        app.activate()
        namespace["x"] = "".join(["ba", "se"])
        namespace["size"] = int("1" + "0" * 20)
        app.deactivate()

        assert app.modified_map == {}
        assert namespace["x"] == "base"

    def test_equal_mutable_object_is_a_change(self, namespace, make_snapshot):
        """Containers are compared by identity, not equality."""
        original = [1, 2]
        namespace["items"] = original
        app = make_snapshot("app1")

        app.activate()
        namespace["items"] = [1, 2]
        app.deactivate()

        assert namespace["items"] is original
        assert "items" in app.modified_map

    def test_scalar_type_change_is_a_change(self, namespace, make_snapshot):
        """Equal values of different types still differ."""
        namespace["flag"] = 1
        app = make_snapshot("app1")

        app.activate()
        namespace["flag"] = True
        app.deactivate()

        assert app.modified_map == {"flag": True}
        assert namespace["flag"] == 1
        assert namespace["flag"] is not True

    def test_modified_map_reset_each_deactivate(self, namespace, make_snapshot):
        """Each deactivate records the changes of its own activation."""
        app = make_snapshot("app1")
        app.activate()
        namespace["first"] = 1
        app.deactivate()

        app.activate()
        del namespace["first"]
        app.deactivate()

        assert app.modified_map == {}
        assert not namespace.has("first")


class TestTrackedKeys:
    """Tests for which keys a snapshot covers."""

    def test_non_enumerable_keys_not_tracked(self, namespace, make_snapshot):
        """Changes to non-enumerable keys survive deactivate."""
        namespace.define("hidden", PropertyDescriptor.data("base", enumerable=False))
        app = make_snapshot("app1")

        app.activate()
        namespace["hidden"] = "changed"
        app.deactivate()

        assert namespace["hidden"] == "changed"
        assert app.modified_map == {}

    def test_legacy_key_tracked_when_not_enumerable(self, namespace, make_snapshot):
        """clearInterval is always part of the snapshot."""
        original = object()
        namespace.define("clearInterval", PropertyDescriptor.data(original, enumerable=False))
        app = make_snapshot("app1")

        app.activate()
        namespace["clearInterval"] = "patched"
        app.deactivate()

        assert namespace["clearInterval"] is original
        assert app.modified_map == {"clearInterval": "patched"}

    def test_iter_snapshot_keys(self, namespace):
        """Enumerable keys first, then legacy keys present in the namespace."""
        namespace["a"] = 1
        namespace.define("hidden", PropertyDescriptor.data(2, enumerable=False))
        namespace.define("clearInterval", PropertyDescriptor.data(3, enumerable=False))

        assert iter_snapshot_keys(namespace) == ["a", "clearInterval"]
        assert LEGACY_SNAPSHOT_KEYS == ("clearInterval",)

    def test_iter_snapshot_keys_without_legacy_key(self, namespace):
        """Absent legacy keys are not invented."""
        namespace["a"] = 1

        assert iter_snapshot_keys(namespace) == ["a"]


class TestLifecycle:
    """Tests for the sandbox contract."""

    def test_proxy_is_the_namespace(self, namespace, make_snapshot):
        """Module code works on the shared namespace directly."""
        app = make_snapshot("app1")

        assert app.proxy is namespace
        assert app.type is SandboxType.SNAPSHOT

    def test_running_flag(self, make_snapshot):
        """activate/deactivate toggle the running flag."""
        app = make_snapshot("app1")

        app.activate()
        assert app.is_running
        app.deactivate()
        assert not app.is_running

    def test_deactivate_without_activate(self, namespace, make_snapshot):
        """Without a snapshot there is nothing to restore."""
        namespace["x"] = 1
        app = make_snapshot("app1")

        app.deactivate()

        assert namespace["x"] == 1
        assert app.modified_map == {}
        assert not app.is_running

    def test_host_changes_attributed_to_module(self, namespace, make_snapshot):
        """Changes made by anyone while the sandbox is active are undone."""
        namespace["shared"] = "base"
        app = make_snapshot("app1")

        app.activate()
        # written by the host, not by the module
        namespace.write("shared", "host")
        app.deactivate()

        assert namespace["shared"] == "base"
        assert app.modified_map == {"shared": "host"}

    def test_sequential_modules(self):
        """Two modules taking turns each see only their own changes."""
        namespace = Namespace.from_mapping({"x": "base"})

        app1 = SnapshotSandbox("app1", namespace)
        app2 = SnapshotSandbox("app2", namespace)

        app1.activate()
        namespace["x"] = "one"
        app1.deactivate()

        app2.activate()
        assert namespace["x"] == "base"
        namespace["x"] = "two"
        app2.deactivate()

        app1.activate()
        assert namespace["x"] == "one"
        app1.deactivate()
        assert namespace["x"] == "base"

    def test_development_log(self, namespace, make_snapshot, dev_settings, caplog):
        """Development mode logs the restored keys."""
        app = make_snapshot("app1", settings=dev_settings)
        app.activate()
        namespace["x"] = 1

        with caplog.at_level(logging.INFO, logger="scopebox.sandbox"):
            app.deactivate()

        assert "app1 origin namespace restore" in caplog.text
        assert "'x'" in caplog.text
