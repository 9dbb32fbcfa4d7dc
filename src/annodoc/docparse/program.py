from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from annodoc.config import Config
from annodoc.docparse.models import Endpoint, Reference
from annodoc.docparse.resolver import DeclCache, SourceIndex


@dataclass
class Program:
    """
    Everything one run builds up: parsed source files, endpoints, and the
    reference table keyed by "module.Name".

    A new Program means fresh caches; nothing is shared between runs.
    """

    config: Config
    index: SourceIndex
    decls: DeclCache
    endpoints: list[Endpoint] = field(default_factory=list)
    references: dict[str, Reference] = field(default_factory=dict)

    # Responses from config.default_responses: code -> Reference of the body.
    default_responses: dict[int, Reference] = field(default_factory=dict)

    _map_types: dict[str, str] = field(default_factory=dict, repr=False)
    _map_formats: dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_config(cls, config: Config, roots: Optional[Iterable[str]] = None) -> Program:
        index = SourceIndex(roots if roots is not None else config.paths)
        return cls(
            config=config,
            index=index,
            decls=DeclCache(index),
            _map_types=config.merged_map_types(),
            _map_formats=config.merged_map_formats(),
        )

    def map_type(self, qualified: str) -> Optional[tuple[str, str]]:
        """(type, format) for a well-known or configured type, or None."""
        t = self._map_types.get(qualified)
        if t is None:
            return None
        return t, self._map_formats.get(qualified, "")
