from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar

from ..logging import get_logger
from .platform import (
    PLATFORM_KINDS,
    AwsConfig,
    AwsPlatformConfig,
    AzureConfig,
    AzurePlatformConfig,
    CliToolEnv,
    GcpConfig,
    GcpPlatformConfig,
    PlatformConfig,
)

LOG = get_logger(__name__)

T = TypeVar("T")

FOUNDATION_KEYS = {"name", "meshStack"}
MESH_STACK_KEYS = {"website", "organization"}
PLATFORM_KEYS = {"id", "name", "cli"} | set(PLATFORM_KINDS)
CLI_TOOLS = ("aws", "az", "gcloud")

# Provider block schemas: front-matter key -> dataclass field
AWS_FIELDS: Tuple[Tuple[str, str], ...] = (("accountId", "account_id"), ("accountAccessRole", "account_access_role"))
GCP_FIELDS: Tuple[Tuple[str, str], ...] = (("project", "project"),)
AZURE_FIELDS: Tuple[Tuple[str, str], ...] = (("aadTenantId", "aad_tenant_id"), ("subscriptionId", "subscription_id"))


@dataclass(frozen=True)
class ValidationError:
    path: str
    message: str

    def __str__(self) -> str:
        if not self.path:
            return self.message
        return f"{self.path}: {self.message}"


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    data: Optional[T] = None
    errors: Optional[List[ValidationError]] = None

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class FoundationFrontmatter:
    name: str
    mesh_stack: Optional[Mapping[str, Any]] = None


@dataclass
class _Collector:
    errors: List[ValidationError] = field(default_factory=list)

    def add(self, path: str, message: str) -> None:
        self.errors.append(ValidationError(path=path, message=message))

    def unknown_keys(self, obj: Mapping[str, Any], allowed: set, prefix: str = "") -> None:
        for key in sorted(set(obj.keys()) - allowed, key=str):
            self.add(_join(prefix, str(key)), "unknown property")

    def required_str(self, obj: Mapping[str, Any], key: str, prefix: str = "") -> Optional[str]:
        path = _join(prefix, key)
        if key not in obj or obj[key] is None:
            self.add(path, "is required")
            return None
        value = obj[key]
        if not isinstance(value, str):
            self.add(path, f"must be a string, got {type(value).__name__} (quote numeric ids)")
            return None
        if not value.strip():
            self.add(path, "must not be empty")
            return None
        return value.strip()

    def mapping(self, obj: Mapping[str, Any], key: str, prefix: str = "") -> Optional[Mapping[str, Any]]:
        value = obj.get(key)
        if value is None:
            return None
        if not isinstance(value, Mapping):
            self.add(_join(prefix, key), f"must be an object, got {type(value).__name__}")
            return None
        return value


def _join(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _result(collector: _Collector, build: Callable[[], T], what: str) -> ValidationResult[T]:
    if collector.errors:
        LOG.debug(
            "Validation failed",
            extra={"step": "validate", "phase": "error", "model": what, "errors": [str(e) for e in collector.errors]},
        )
        return ValidationResult(errors=list(collector.errors))
    return ValidationResult(data=build())


class ModelValidator:
    """
    Validates raw front-matter objects into typed models.

    Defaulting is applied before structural checks, and every violation is collected
    in one pass so a user sees all configuration mistakes at once.
    """

    def validate_foundation_frontmatter(self, raw: Any) -> ValidationResult[FoundationFrontmatter]:
        c = _Collector()
        if not isinstance(raw, Mapping):
            c.add("", "foundation front-matter must be an object")
            return ValidationResult(errors=c.errors)

        c.unknown_keys(raw, FOUNDATION_KEYS)
        name = c.required_str(raw, "name")
        mesh_stack = c.mapping(raw, "meshStack")
        if mesh_stack is not None:
            c.unknown_keys(mesh_stack, MESH_STACK_KEYS, "meshStack")
            for key in sorted(MESH_STACK_KEYS):
                value = mesh_stack.get(key)
                if value is not None and not isinstance(value, str):
                    c.add(f"meshStack.{key}", "must be a string")

        return _result(
            c,
            lambda: FoundationFrontmatter(name=str(name), mesh_stack=dict(mesh_stack) if mesh_stack else None),
            "foundation",
        )

    def validate_platform_config(self, raw: Any) -> ValidationResult[PlatformConfig]:
        c = _Collector()
        if not isinstance(raw, Mapping):
            c.add("", "platform front-matter must be an object")
            return ValidationResult(errors=c.errors)

        config: Dict[str, Any] = dict(raw)
        if config.get("id") is None and isinstance(config.get("name"), str):
            config["id"] = config["name"]

        c.unknown_keys(config, PLATFORM_KEYS)
        platform_id = c.required_str(config, "id")
        name = c.required_str(config, "name")
        cli = self._validate_cli(c, config)

        present = [kind for kind in PLATFORM_KINDS if config.get(kind) is not None]
        if not present:
            c.add("", f"must contain exactly one of {', '.join(PLATFORM_KINDS)} (found none)")
        elif len(present) > 1:
            c.add("", f"must contain exactly one of {', '.join(PLATFORM_KINDS)} (found {', '.join(present)})")

        payloads: Dict[str, Dict[str, str]] = {}
        for kind, fields in (("aws", AWS_FIELDS), ("gcp", GCP_FIELDS), ("azure", AZURE_FIELDS)):
            if kind not in present:
                continue
            block = c.mapping(config, kind)
            if block is None:
                continue
            c.unknown_keys(block, {key for key, _ in fields}, kind)
            values = {attr: c.required_str(block, key, kind) for key, attr in fields}
            payloads[kind] = {k: v for k, v in values.items() if v is not None}

        def build() -> PlatformConfig:
            kind = present[0]
            if kind == "aws":
                return AwsPlatformConfig(id=str(platform_id), name=str(name), aws=AwsConfig(**payloads["aws"]), cli=cli)
            if kind == "gcp":
                return GcpPlatformConfig(id=str(platform_id), name=str(name), gcp=GcpConfig(**payloads["gcp"]), cli=cli)
            return AzurePlatformConfig(
                id=str(platform_id), name=str(name), azure=AzureConfig(**payloads["azure"]), cli=cli
            )

        return _result(c, build, "platform")

    def _validate_cli(self, c: _Collector, config: Mapping[str, Any]) -> Optional[CliToolEnv]:
        cli = c.mapping(config, "cli")
        if cli is None:
            return None
        c.unknown_keys(cli, set(CLI_TOOLS), "cli")
        envs: Dict[str, Dict[str, str]] = {}
        for tool in CLI_TOOLS:
            env = c.mapping(cli, tool, "cli")
            if env is None:
                continue
            for key, value in env.items():
                if not isinstance(value, str):
                    c.add(f"cli.{tool}.{key}", "must be a string")
            envs[tool] = {str(k): v for k, v in env.items() if isinstance(v, str)}
        return CliToolEnv(**envs)
