from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from ..logging import get_logger

LOG = get_logger(__name__)

FRONTMATTER_DELIMITER = "---"


@dataclass(frozen=True)
class MarkdownDocument:
    """
    A markdown document with an optional YAML front-matter block:

        ---
        name: prod
        ---
        # Body
    """

    frontmatter: Optional[Dict[str, Any]]
    body: str

    @classmethod
    def parse(cls, text: str) -> MarkdownDocument:
        """
        Split text into front-matter and body.

        Never raises on malformed input: a missing block, invalid YAML or a block that is
        not a mapping all yield frontmatter=None so callers can report the file path.
        """
        lines = text.splitlines(keepends=True)
        if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
            return cls(frontmatter=None, body=text)

        end = None
        for idx in range(1, len(lines)):
            if lines[idx].strip() == FRONTMATTER_DELIMITER:
                end = idx
                break
        if end is None:
            return cls(frontmatter=None, body=text)

        raw = "".join(lines[1:end])
        body = "".join(lines[end + 1 :])
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            LOG.debug("Front-matter is not valid YAML", extra={"error": str(e)})
            return cls(frontmatter=None, body=body)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return cls(frontmatter=None, body=body)
        return cls(frontmatter=data, body=body)

    def format(self) -> str:
        if self.frontmatter is None:
            return self.body
        block = yaml.safe_dump(self.frontmatter, sort_keys=False, default_flow_style=False)
        return f"{FRONTMATTER_DELIMITER}\n{block}{FRONTMATTER_DELIMITER}\n{self.body}"
