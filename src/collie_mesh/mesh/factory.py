from __future__ import annotations

from typing import Dict, Optional, Sequence, Type

from ..api.cache import DEFAULT_CACHE_TTL
from ..api.factory import CliApiFacadeFactory
from ..logging import get_logger
from ..model.foundation import FoundationRepository
from ..model.platform import PlatformConfig
from ..model.repository import CollieRepository
from ..process.runner import ProcessRunner
from ..util.cancel import CancelToken
from ..util.errors import UnknownPlatformKindError
from .adapter import PlatformMeshAdapter
from .aggregate import DEFAULT_MAX_WORKERS, AggregatingMeshAdapter
from .aws import AwsMeshAdapter
from .azure import AzureMeshAdapter
from .gcp import GcpMeshAdapter
from .statistics import QueryStatistics

LOG = get_logger(__name__)

ADAPTERS: Dict[str, Type[PlatformMeshAdapter]] = {
    "azure": AzureMeshAdapter,
    "aws": AwsMeshAdapter,
    "gcp": GcpMeshAdapter,
}


class MeshAdapterFactory:
    def __init__(
        self,
        repo: CollieRepository,
        foundation: FoundationRepository,
        facade_factory: CliApiFacadeFactory,
    ) -> None:
        self.repo = repo
        self.foundation = foundation
        self.facade_factory = facade_factory

    def build_platform_adapter(
        self,
        platform: PlatformConfig,
        statistics: QueryStatistics,
        refresh: bool,
        token: Optional[CancelToken] = None,
    ) -> PlatformMeshAdapter:
        adapter_cls = ADAPTERS.get(getattr(platform, "kind", None))  # type: ignore[arg-type]
        if adapter_cls is None:
            raise UnknownPlatformKindError(
                f"Unsupported platform kind {getattr(platform, 'kind', type(platform).__name__)!r} "
                f"for platform {getattr(platform, 'id', '?')!r}"
            )
        facade = self.facade_factory.build(platform, refresh=refresh, token=token)
        LOG.debug(
            "Built mesh adapter",
            extra={"step": "build_adapter", "platform": platform.id, "kind": platform.kind, "refresh": refresh},
        )
        return adapter_cls(platform, facade, statistics)

    def build_mesh_adapter(
        self,
        platforms: Sequence[PlatformConfig],
        statistics: QueryStatistics,
        refresh: bool,
        token: Optional[CancelToken] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> AggregatingMeshAdapter:
        """
        One adapter per platform, in the given order. Any unsupported platform fails the
        whole construction before a query is issued.
        """
        token = token or CancelToken()
        adapters = [self.build_platform_adapter(p, statistics, refresh, token) for p in platforms]
        return AggregatingMeshAdapter(adapters, statistics, token=token, max_workers=max_workers)


def build_aggregator(
    repo: CollieRepository,
    foundation: FoundationRepository,
    platforms: Sequence[PlatformConfig],
    refresh: bool,
    *,
    statistics: Optional[QueryStatistics] = None,
    timeout: Optional[float] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    cache_ttl: int = DEFAULT_CACHE_TTL,
    use_cache: bool = True,
    command_timeout: Optional[float] = None,
    runner: Optional[ProcessRunner] = None,
) -> AggregatingMeshAdapter:
    """Command-surface entry point: wire facades, adapters and the aggregation barrier."""
    cache_dir = repo.resolve_path(".collie", "cache", foundation.name) if use_cache else None
    facades = CliApiFacadeFactory(
        cache_dir=cache_dir,
        cache_ttl=cache_ttl,
        command_timeout=command_timeout,
        runner=runner,
    )
    factory = MeshAdapterFactory(repo, foundation, facades)
    return factory.build_mesh_adapter(
        platforms,
        statistics if statistics is not None else QueryStatistics(),
        refresh,
        token=CancelToken(timeout),
        max_workers=max_workers,
    )
