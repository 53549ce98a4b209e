from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from ..model.platform import AwsPlatformConfig, AzurePlatformConfig, GcpPlatformConfig, PlatformConfig
from ..process.runner import ProcessRunner, SubprocessRunner
from ..util.cancel import CancelToken
from ..util.errors import UnknownPlatformKindError
from .aws import AwsCliFacade
from .az import AzCliFacade
from .cache import DEFAULT_CACHE_TTL, QueryCache
from .gcloud import GcloudCliFacade

ProviderFacade = Union[AzCliFacade, AwsCliFacade, GcloudCliFacade]


class CliApiFacadeFactory:
    """
    Builds the provider facade for a platform: the platform's CLI env overrides are
    applied, and results are cached under cache_dir/<platform id>/ unless disabled.
    """

    def __init__(
        self,
        *,
        cache_dir: Optional[Path] = None,
        cache_ttl: int = DEFAULT_CACHE_TTL,
        command_timeout: Optional[float] = None,
        runner: Optional[ProcessRunner] = None,
    ) -> None:
        self.cache_dir = cache_dir
        self.cache_ttl = cache_ttl
        self.command_timeout = command_timeout
        self._runner = runner

    def _cache(self, platform: PlatformConfig, refresh: bool) -> Optional[QueryCache]:
        if self.cache_dir is None:
            return None
        return QueryCache(self.cache_dir / platform.id, ttl=self.cache_ttl, refresh=refresh)

    def build(self, platform: PlatformConfig, *, refresh: bool, token: Optional[CancelToken] = None) -> ProviderFacade:
        runner = self._runner or SubprocessRunner(token)
        cache = self._cache(platform, refresh)
        cli = platform.cli
        if isinstance(platform, AzurePlatformConfig):
            env = cli.env_for("az") if cli else {}
            return AzCliFacade(runner, env=env, cache=cache, timeout=self.command_timeout)
        if isinstance(platform, AwsPlatformConfig):
            env = cli.env_for("aws") if cli else {}
            return AwsCliFacade(runner, env=env, cache=cache, timeout=self.command_timeout)
        if isinstance(platform, GcpPlatformConfig):
            env = {"CLOUDSDK_CORE_PROJECT": platform.gcp.project}
            env.update(cli.env_for("gcloud") if cli else {})
            return GcloudCliFacade(runner, env=env, cache=cache, timeout=self.command_timeout)
        raise UnknownPlatformKindError(
            f"Unsupported platform kind {getattr(platform, 'kind', type(platform).__name__)!r}"
        )
