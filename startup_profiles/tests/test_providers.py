"""Tests for profile providers, provider selection and the provider registry."""

import logging
from pathlib import Path
from types import SimpleNamespace

import pytest

from startup_profiles.errors import MissingProfileLocationError
from startup_profiles.providers import registry as registry_module
from startup_profiles.providers.base import (
    EmptyProfileProvider,
    StaticProfileProvider,
    memoize_factory,
    select_provider,
    split_profile_list,
)
from startup_profiles.providers.cli import (
    CommandlineProfileProvider,
    location_to_uri,
    parse_startup_arguments,
)
from startup_profiles.providers.registry import ProviderRegistry
from startup_profiles.providers.workspace import WorkspaceProfileProvider
from startup_profiles.utils.deferred_log import DeferredLogger


class TestProviderBasics:
    def test_split_profile_list(self):
        assert split_profile_list("a,b;c:d") == ["a", "b", "c", "d"]
        assert split_profile_list(" a ,, b ") == ["a", "b"]
        assert split_profile_list("") == []

    def test_empty_provider(self):
        provider = EmptyProfileProvider()
        assert provider.requested_profiles() == []
        assert provider.resolve_variable("anything") is None
        with pytest.raises(MissingProfileLocationError):
            provider.profiles_location()

    def test_static_provider(self):
        provider = StaticProfileProvider(["a"], "file:///tmp/p", {"var": "value"})
        assert provider.requested_profiles() == ["a"]
        assert provider.profiles_location() == "file:///tmp/p"
        assert provider.resolve_variable("var") == "value"
        assert provider.resolve_variable("other") is None

    def test_cache_key_depends_on_class(self):
        class OtherProvider(StaticProfileProvider):
            pass

        first = StaticProfileProvider([], None)
        second = OtherProvider([], None)
        assert first.cache_key != second.cache_key
        assert first.cache_key.endswith("StaticProfileProvider")


class TestSelectProvider:
    """Provider selection by priority."""

    def test_first_provider_with_profiles_wins(self):
        calls = []

        def factory(name, profiles):
            def create():
                calls.append(name)
                return StaticProfileProvider(profiles, None)

            return create

        selected = select_provider(
            [factory("cli", []), factory("workspace", ["w"]), factory("plugin", ["p"])]
        )

        assert selected.requested_profiles() == ["w"]
        assert calls == ["cli", "workspace"]

    def test_no_provider_with_profiles(self):
        selected = select_provider([lambda: StaticProfileProvider([], None)])
        assert isinstance(selected, EmptyProfileProvider)

    def test_memoize_factory(self):
        calls = []

        def factory():
            calls.append(1)
            return StaticProfileProvider(["a"], None)

        memoized = memoize_factory(factory)
        assert memoized() is memoized()
        assert len(calls) == 1


class TestCommandlineProfileProvider:
    """Test cases for CommandlineProfileProvider class."""

    def test_profiles_and_location(self):
        provider = CommandlineProfileProvider(
            ["-consoleLog", "-profileList", "base,custom;extra", "-profileLocation",
             "https://example.com/profiles", "-data", "/tmp/ws"]
        )
        assert provider.requested_profiles() == ["base", "custom", "extra"]
        assert provider.profiles_location() == "https://example.com/profiles"

    def test_relative_path_resolves_against_installation(self, tmp_path):
        provider = CommandlineProfileProvider(
            ["-profileList", "base", "-profileLocation", "profiles"],
            installation_dir=tmp_path,
        )
        assert provider.profiles_location() == (tmp_path / "profiles").as_uri()

    def test_absolute_path_ignores_installation(self, tmp_path):
        provider = CommandlineProfileProvider(
            ["-profileList", "base", "-profileLocation", str(tmp_path / "profiles")],
            installation_dir="/somewhere/else",
        )
        assert provider.profiles_location() == (tmp_path / "profiles").as_uri()

    def test_flags_without_value_are_ignored(self):
        provider = CommandlineProfileProvider(["-profileLocation"])
        assert provider.requested_profiles() == []
        with pytest.raises(MissingProfileLocationError):
            provider.profiles_location()

        provider = CommandlineProfileProvider(["-profileList"])
        assert provider.requested_profiles() == []

    def test_no_arguments(self):
        provider = CommandlineProfileProvider([])
        assert provider.requested_profiles() == []

    def test_plugin_customization(self):
        namespace = parse_startup_arguments(["-pluginCustomization", "/etc/app/custom.ini"])
        assert namespace.plugin_customization == "/etc/app/custom.ini"
        assert namespace.profile_list is None

    def test_location_to_uri(self, tmp_path):
        assert location_to_uri("file:///opt/profiles") == "file:///opt/profiles"
        assert location_to_uri("http://example.com/p?x=1") == "http://example.com/p?x=1"
        assert location_to_uri(str(tmp_path)) == tmp_path.as_uri()
        assert location_to_uri("p", tmp_path) == (tmp_path / "p").as_uri()


class TestWorkspaceProfileProvider:
    """Test cases for WorkspaceProfileProvider class."""

    def write_descriptor(self, workspace: Path, name: str, content: str) -> Path:
        profiles_dir = workspace / ".profiles"
        profiles_dir.mkdir(parents=True, exist_ok=True)
        path = profiles_dir / name
        path.write_text(content, encoding="utf-8")
        return path

    def test_yaml_descriptor(self, tmp_path):
        self.write_descriptor(
            tmp_path,
            "profiles.yaml",
            "profiles:\n  - base\n  - team\nvariables:\n  region: eu-west\n",
        )
        provider = WorkspaceProfileProvider(tmp_path)

        assert provider.requested_profiles() == ["base", "team"]
        assert provider.profiles_location() == (tmp_path / ".profiles").as_uri()
        assert provider.resolve_variable("region") == "eu-west"
        assert provider.resolve_variable("other") is None

    def test_json_descriptor_with_relative_location(self, tmp_path):
        self.write_descriptor(
            tmp_path,
            "profiles.json",
            '{"profiles": "base;team", "location": "shared/profiles"}',
        )
        provider = WorkspaceProfileProvider(tmp_path)

        assert provider.requested_profiles() == ["base", "team"]
        assert provider.profiles_location() == (tmp_path / "shared" / "profiles").as_uri()

    def test_remote_location(self, tmp_path):
        self.write_descriptor(
            tmp_path,
            "profiles.ini",
            "[DEFAULT]\nprofiles = base\nlocation = https://example.com/profiles\n",
        )
        provider = WorkspaceProfileProvider(tmp_path)

        assert provider.requested_profiles() == ["base"]
        assert provider.profiles_location() == "https://example.com/profiles"

    def test_missing_descriptor(self, tmp_path):
        provider = WorkspaceProfileProvider(tmp_path)
        assert provider.descriptor is None
        assert provider.requested_profiles() == []
        with pytest.raises(MissingProfileLocationError):
            provider.profiles_location()

    def test_broken_descriptor_requests_nothing(self, tmp_path, caplog):
        self.write_descriptor(tmp_path, "profiles.yaml", "profiles: [base\n")
        with caplog.at_level(logging.WARNING):
            provider = WorkspaceProfileProvider(tmp_path)
        assert provider.requested_profiles() == []
        assert "Ignoring workspace profile descriptor" in caplog.text

    def test_unsupported_profiles_value(self, tmp_path):
        self.write_descriptor(tmp_path, "profiles.json", '{"profiles": 42}')
        assert WorkspaceProfileProvider(tmp_path).requested_profiles() == []


class TestProviderRegistry:
    """Test cases for ProviderRegistry class."""

    def setup_method(self):
        self.log = DeferredLogger()
        self.registry = ProviderRegistry(log=self.log)

    def test_first_constructible_provider_wins(self):
        def broken():
            raise RuntimeError("boom")

        self.registry.register("broken", broken)
        self.registry.register("working", lambda: StaticProfileProvider(["a"], None))

        provider = self.registry.first_provider()

        assert provider.requested_profiles() == ["a"]
        errors = [m for m in self.log.pending if m.level == logging.ERROR]
        assert len(errors) == 1
        assert "'broken'" in errors[0].message
        assert isinstance(errors[0].exc_info, RuntimeError)

    def test_no_provider(self):
        assert self.registry.first_provider() is None

    def test_register_and_unregister(self):
        self.registry.register("a", EmptyProfileProvider)
        self.registry.register("b", EmptyProfileProvider)
        self.registry.unregister("a")
        self.registry.unregister("missing")
        assert self.registry.names == ["b"]

    def test_discover_entry_points(self, monkeypatch):
        def make_entry_point(name, target):
            return SimpleNamespace(name=name, value=f"plugin:{name}", load=lambda: target)

        entry_points = [
            make_entry_point("not-a-provider", dict),
            make_entry_point("static", lambda: StaticProfileProvider(["p"], None)),
        ]
        monkeypatch.setattr(registry_module, "_select_entry_points", lambda group: entry_points)

        assert self.registry.discover() == 2
        provider = self.registry.first_provider()

        assert provider.requested_profiles() == ["p"]
        errors = [m.message for m in self.log.pending if m.level == logging.ERROR]
        assert "did not produce a ProfileProvider" in errors[0]

    def test_discover_keeps_explicit_registrations(self, monkeypatch):
        self.registry.register("static", lambda: StaticProfileProvider(["explicit"], None))
        entry_point = SimpleNamespace(
            name="static", value="plugin:static", load=lambda: EmptyProfileProvider
        )
        monkeypatch.setattr(registry_module, "_select_entry_points", lambda group: [entry_point])

        assert self.registry.discover() == 0
        assert self.registry.first_provider().requested_profiles() == ["explicit"]
