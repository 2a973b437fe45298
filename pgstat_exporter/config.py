"""Exporter configuration: authentication modules loaded from YAML."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or decoded."""


@dataclass
class UserPass:
    username: str = ""
    password: str = ""


@dataclass
class AuthModule:
    type: str = ""
    userpass: UserPass = field(default_factory=UserPass)
    options: dict[str, str] = field(default_factory=dict)


@dataclass
class Config:
    auth_modules: dict[str, AuthModule] = field(default_factory=dict)


_CORE_TAG = "tag:yaml.org,2002:"


def _short_tag(tag: str) -> str:
    return "!!" + tag[len(_CORE_TAG):] if tag.startswith(_CORE_TAG) else tag


def _is_null(node: Node) -> bool:
    return isinstance(node, ScalarNode) and node.tag == _CORE_TAG + "null"


class _Decoder:
    """Strict decoder: unknown fields and type mismatches are collected as errors."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def _fail(self, node: Node, message: str) -> None:
        self.errors.append(f"line {node.start_mark.line + 1}: {message}")

    def _string(self, node: Node) -> str:
        if isinstance(node, ScalarNode):
            return "" if _is_null(node) else node.value
        self._fail(node, f"cannot unmarshal {_short_tag(node.tag)} into string")
        return ""

    def _pairs(self, node: Node, type_name: str) -> list[tuple[Node, Node]]:
        if _is_null(node):
            return []
        if not isinstance(node, MappingNode):
            self._fail(node, f"cannot unmarshal {_short_tag(node.tag)} into {type_name}")
            return []
        return list(node.value)

    def _fields(self, node: Node, type_name: str, known: set[str]) -> dict[str, Node]:
        found: dict[str, Node] = {}
        for key, value in self._pairs(node, type_name):
            name = self._string(key)
            if name in known:
                found[name] = value
            else:
                self._fail(key, f"field {name} not found in type {type_name}")
        return found

    def _user_pass(self, node: Node) -> UserPass:
        fields = self._fields(node, "config.UserPass", {"username", "password"})
        return UserPass(**{name: self._string(value) for name, value in fields.items()})

    def _auth_module(self, node: Node) -> AuthModule:
        fields = self._fields(node, "config.AuthModule", {"type", "userpass", "options"})
        module = AuthModule()
        if "type" in fields:
            module.type = self._string(fields["type"])
        if "userpass" in fields:
            module.userpass = self._user_pass(fields["userpass"])
        if "options" in fields:
            module.options = {
                self._string(key): self._string(value)
                for key, value in self._pairs(fields["options"], "map[string]string")
            }
        return module

    def config(self, node: Node) -> Config:
        fields = self._fields(node, "config.Config", {"auth_modules"})
        config = Config()
        if "auth_modules" in fields:
            config.auth_modules = {
                self._string(key): self._auth_module(value)
                for key, value in self._pairs(fields["auth_modules"], "map[string]config.AuthModule")
            }
        return config


def parse_config(text: str) -> Config:
    """Decode a YAML document, rejecting unknown fields."""
    try:
        node = yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"yaml: {exc}") from exc
    if node is None:
        raise ConfigError("EOF")
    decoder = _Decoder()
    config = decoder.config(node)
    if decoder.errors:
        raise ConfigError("yaml: unmarshal errors:\n" + "\n".join("  " + e for e in decoder.errors))
    return config


def _quote(path: str) -> str:
    return '"' + path.replace("\\", "\\\\").replace('"', '\\"') + '"'


class ConfigHandler:
    """Holds the current configuration and reloads it from disk."""

    def __init__(self, config: Config | None = None) -> None:
        self._lock = threading.Lock()
        self._config = config if config is not None else Config()
        self.last_reload_successful = 0.0
        self.last_reload_success_timestamp = 0.0

    def get_config(self) -> Config:
        with self._lock:
            return self._config

    def reload_config(self, path: str | os.PathLike[str]) -> None:
        """Replace the configuration with the one in *path*; keep the old one on error."""
        name = os.fspath(path)
        try:
            try:
                with open(name, encoding="utf-8") as handle:
                    text = handle.read()
            except OSError as exc:
                raise ConfigError(f"Error opening config file {_quote(name)}: {exc}") from exc
            try:
                config = parse_config(text)
            except ConfigError as exc:
                raise ConfigError(f"Error parsing config file {_quote(name)}: {exc}") from exc
        except ConfigError:
            self.last_reload_successful = 0.0
            raise
        with self._lock:
            self._config = config
        self.last_reload_successful = 1.0
        self.last_reload_success_timestamp = time.time()