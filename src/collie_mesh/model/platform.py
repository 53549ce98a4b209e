from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Mapping, Optional, Tuple, Union

PlatformKind = Literal["aws", "gcp", "azure"]

PLATFORM_KINDS: Tuple[str, ...] = ("aws", "gcp", "azure")


@dataclass(frozen=True)
class CliToolEnv:
    """Per-tool environment overrides applied when a platform's CLI runs."""

    aws: Optional[Mapping[str, str]] = None
    az: Optional[Mapping[str, str]] = None
    gcloud: Optional[Mapping[str, str]] = None

    def env_for(self, tool: str) -> Dict[str, str]:
        env = getattr(self, tool, None)
        return dict(env or {})


@dataclass(frozen=True)
class AwsConfig:
    account_id: str
    account_access_role: str


@dataclass(frozen=True)
class GcpConfig:
    project: str


@dataclass(frozen=True)
class AzureConfig:
    aad_tenant_id: str
    subscription_id: str


@dataclass(frozen=True)
class AwsPlatformConfig:
    id: str
    name: str
    aws: AwsConfig
    cli: Optional[CliToolEnv] = None
    kind: Literal["aws"] = "aws"


@dataclass(frozen=True)
class GcpPlatformConfig:
    id: str
    name: str
    gcp: GcpConfig
    cli: Optional[CliToolEnv] = None
    kind: Literal["gcp"] = "gcp"


@dataclass(frozen=True)
class AzurePlatformConfig:
    id: str
    name: str
    azure: AzureConfig
    cli: Optional[CliToolEnv] = None
    kind: Literal["azure"] = "azure"


# Closed union: adapter construction switches on `kind`, anything else is unsupported.
PlatformConfig = Union[AwsPlatformConfig, GcpPlatformConfig, AzurePlatformConfig]


def _cli_to_frontmatter(cli: Optional[CliToolEnv]) -> Optional[Dict[str, Dict[str, str]]]:
    if cli is None:
        return None
    out = {tool: dict(env) for tool, env in (("aws", cli.aws), ("az", cli.az), ("gcloud", cli.gcloud)) if env}
    return out or None


def config_to_frontmatter(config: PlatformConfig) -> Dict[str, Any]:
    """
    Render a platform config back into README front-matter (camelCase keys).
    The id is derived on load and therefore not written.
    """
    frontmatter: Dict[str, Any] = {"name": config.name}
    cli = _cli_to_frontmatter(config.cli)
    if cli:
        frontmatter["cli"] = cli
    if isinstance(config, AwsPlatformConfig):
        frontmatter["aws"] = {
            "accountId": config.aws.account_id,
            "accountAccessRole": config.aws.account_access_role,
        }
    elif isinstance(config, GcpPlatformConfig):
        frontmatter["gcp"] = {"project": config.gcp.project}
    elif isinstance(config, AzurePlatformConfig):
        frontmatter["azure"] = {
            "aadTenantId": config.azure.aad_tenant_id,
            "subscriptionId": config.azure.subscription_id,
        }
    return frontmatter


def platform_scope(config: PlatformConfig) -> str:
    """Provider scope identifier shown next to a platform (account, project, subscription)."""
    if isinstance(config, AwsPlatformConfig):
        return config.aws.account_id
    if isinstance(config, GcpPlatformConfig):
        return config.gcp.project
    return config.azure.subscription_id
