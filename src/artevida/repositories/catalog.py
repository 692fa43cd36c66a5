"""
Allowed Object Catalog.

The single source of truth for which relations user queries may read.
Built once at startup and never mutated afterwards, so it can be shared
by every request without locking.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from artevida.domain.errors import ConfigurationError
from artevida.domain.pipeline import CatalogListing
from artevida.utils.logging import get_module_logger
from artevida.utils.yaml_loader import load_yaml_file, parse_catalog_section


logger = get_module_logger()


class CatalogObject:
    """A table or view from the catalog."""

    __slots__ = ("name", "is_view", "columns", "description")

    def __init__(self, name: str, is_view: bool, columns: Tuple[str, ...], description: str = ""):
        self.name = name
        self.is_view = is_view
        self.columns = columns
        self.description = description

    def __repr__(self) -> str:
        kind = "view" if self.is_view else "table"
        return f"CatalogObject({self.name!r}, {kind}, {len(self.columns)} columns)"


class AllowedObjectCatalog:
    """
    Immutable whitelist of tables and views.

    Lookups are case-insensitive ("evento", "EVENTO" and "Evento" are the
    same object); listings keep the canonical spelling from the catalog file.

    Usage:
        catalog = AllowedObjectCatalog.from_yaml(settings.catalog.catalog_path)
        catalog.contains("vw_eventos_proximos")   # True
        catalog.is_view("Evento")                 # False
    """

    def __init__(self, objects: Iterable[CatalogObject]):
        by_key: Dict[str, CatalogObject] = {}
        for obj in objects:
            key = obj.name.lower()
            if key in by_key:
                raise ConfigurationError(f"Duplicate catalog object: {obj.name}")
            by_key[key] = obj

        if not by_key:
            raise ConfigurationError("Allowed object catalog is empty")

        self._objects: Mapping[str, CatalogObject] = MappingProxyType(by_key)
        self._listing = CatalogListing(
            tables=tuple(o.name for o in by_key.values() if not o.is_view),
            views=tuple(o.name for o in by_key.values() if o.is_view),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AllowedObjectCatalog":
        """Build the catalog from a YAML file with "tables" and "views" sections."""
        content = load_yaml_file(path)
        objects: List[CatalogObject] = []
        for section, is_view in (("tables", False), ("views", True)):
            for name, data in parse_catalog_section(content, section).items():
                objects.append(CatalogObject(
                    name=name,
                    is_view=is_view,
                    columns=tuple(data["columns"]),
                    description=data["description"],
                ))

        catalog = cls(objects)
        logger.info(
            "Allowed object catalog loaded",
            path=str(path),
            tables=len(catalog.list().tables),
            views=len(catalog.list().views)
        )
        return catalog

    def list(self) -> CatalogListing:
        return self._listing

    def contains(self, name: str) -> bool:
        return name.lower() in self._objects

    def is_view(self, name: str) -> bool:
        obj = self.get(name)
        return obj is not None and obj.is_view

    def get(self, name: str) -> Optional[CatalogObject]:
        return self._objects.get(name.lower())

    def names(self) -> Tuple[str, ...]:
        return self._listing.tables + self._listing.views

    def __len__(self) -> int:
        return len(self._objects)

    def describe(self) -> str:
        """
        Static schema summary for generation prompts.

        Example:
            Tablas:
            - Evento(id, nombre, ...): Celebración concreta de una actividad ...
            Vistas:
            - vw_eventos_proximos(evento_id, ...): Eventos futuros ...
        """
        lines: List[str] = ["Tablas:"]
        for name in self._listing.tables:
            lines.append(self._describe_object(self._objects[name.lower()]))
        lines.append("Vistas:")
        for name in self._listing.views:
            lines.append(self._describe_object(self._objects[name.lower()]))
        return "\n".join(lines)

    @staticmethod
    def _describe_object(obj: CatalogObject) -> str:
        line = f"- {obj.name}({', '.join(obj.columns)})"
        if obj.description:
            line += f": {obj.description}"
        return line
