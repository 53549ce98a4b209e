from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from ..logging import get_logger
from ..util.errors import CollieModelValidationError, DocumentParseError, PlatformNotFoundError
from .markdown import MarkdownDocument
from .platform import PlatformConfig
from .repository import CollieRepository, PathLike
from .validator import FoundationFrontmatter, ModelValidator

LOG = get_logger(__name__)

README = "README.md"


@dataclass(frozen=True)
class FoundationConfig:
    name: str
    mesh_stack: Optional[Mapping[str, Any]]
    platforms: Tuple[PlatformConfig, ...]


class FoundationRepository:
    """
    A loaded foundation: its validated front-matter plus every platform below
    foundations/<name>/platforms/*/README.md. Immutable once loaded.
    """

    def __init__(self, foundation_dir: Path, config: FoundationConfig) -> None:
        self._foundation_dir = foundation_dir
        self._config = config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> FoundationConfig:
        return self._config

    @property
    def platforms(self) -> Tuple[PlatformConfig, ...]:
        return self._config.platforms

    def find_platform(self, name: str) -> PlatformConfig:
        for platform in self._config.platforms:
            if platform.name == name:
                return platform
        raise PlatformNotFoundError(f'Could not find platform named "{name}" in configuration.')

    def resolve_path(self, *segments: PathLike) -> Path:
        """Resolve a path relative to the foundation."""
        return self._foundation_dir.joinpath(*segments)

    def resolve_platform_path(self, platform: PlatformConfig, *segments: PathLike) -> Path:
        """Resolve a path relative to a platform."""
        return self.resolve_path("platforms", platform.id, *segments)

    @classmethod
    def load(cls, repo: CollieRepository, foundation: str, validator: ModelValidator) -> FoundationRepository:
        """
        Load and validate a foundation. Configuration is all-or-nothing: a missing or
        invalid foundation README, or any invalid platform README, aborts the load.
        """
        foundation_dir = repo.resolve_path("foundations", foundation)
        frontmatter = cls._parse_foundation_readme(repo, foundation_dir, validator)
        platforms = cls._parse_platform_readmes(repo, foundation_dir, validator)

        LOG.info(
            "Foundation loaded",
            extra={"step": "load", "phase": "complete", "foundation": frontmatter.name, "platforms": len(platforms)},
        )
        config = FoundationConfig(name=frontmatter.name, mesh_stack=frontmatter.mesh_stack, platforms=platforms)
        return cls(foundation_dir, config)

    @staticmethod
    def _read_frontmatter(repo: CollieRepository, path: Path, what: str) -> Dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise DocumentParseError(f"Missing {what} README at {repo.relative_path(path)}") from e
        md = MarkdownDocument.parse(text)
        if md.frontmatter is None:
            raise DocumentParseError(f"Failed to parse {what} README at {repo.relative_path(path)}")
        return md.frontmatter

    @classmethod
    def _parse_foundation_readme(
        cls, repo: CollieRepository, foundation_dir: Path, validator: ModelValidator
    ) -> FoundationFrontmatter:
        readme_path = foundation_dir / README
        frontmatter = cls._read_frontmatter(repo, readme_path, "foundation")

        # default the name to the directory name
        config = {"name": foundation_dir.name, **frontmatter}

        result = validator.validate_foundation_frontmatter(config)
        if result.errors:
            raise CollieModelValidationError(
                "Invalid foundation configuration at " + repo.relative_path(readme_path), result.errors
            )
        assert result.data is not None
        return result.data

    @classmethod
    def _parse_platform_readmes(
        cls, repo: CollieRepository, foundation_dir: Path, validator: ModelValidator
    ) -> Tuple[PlatformConfig, ...]:
        platforms = []
        # Lexical by directory name so aggregation output is reproducible.
        readmes = sorted(foundation_dir.glob(f"platforms/*/{README}"), key=lambda p: p.parent.name)
        for path in readmes:
            frontmatter = cls._read_frontmatter(repo, path, "platform")

            # id and name default to the directory name
            dirname = path.parent.name
            config = {"id": dirname, "name": dirname, **frontmatter}

            result = validator.validate_platform_config(config)
            if result.errors:
                raise CollieModelValidationError(
                    "Invalid platform configuration at " + repo.relative_path(path), result.errors
                )
            assert result.data is not None
            platforms.append(result.data)
        return tuple(platforms)


def load_foundation(repo_path: PathLike, foundation: str) -> FoundationRepository:
    """Command-surface entry point: load and validate one foundation of a repository."""
    repo = CollieRepository.load(repo_path)
    return FoundationRepository.load(repo, foundation, ModelValidator())
