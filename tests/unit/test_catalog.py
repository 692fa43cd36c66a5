"""Unit tests for the Allowed Object Catalog and its YAML loader."""

import pytest

from artevida.domain.errors import ConfigurationError
from artevida.repositories.catalog import AllowedObjectCatalog, CatalogObject

EXPECTED_TABLES = (
    "Actividad", "Artista", "Actividad_Artista", "Ubicacion",
    "Evento", "Asistente", "Entrada", "Valoracion",
)
EXPECTED_VIEWS = (
    "vw_eventos_enriquecidos", "vw_ventas_evento", "vw_artistas_por_actividad",
    "vw_estadisticas_ciudad", "vw_coste_actividad", "vw_eventos_proximos",
)


class TestPackagedCatalog:

    def test_listing(self, catalog):
        listing = catalog.list()

        assert listing.tables == EXPECTED_TABLES
        assert listing.views == EXPECTED_VIEWS
        assert len(catalog) == 14

    def test_case_insensitive_lookup(self, catalog):
        assert catalog.contains("evento")
        assert catalog.contains("EVENTO")
        assert catalog.contains("VW_EVENTOS_PROXIMOS")
        assert not catalog.contains("usuarios")

    def test_is_view(self, catalog):
        assert catalog.is_view("vw_ventas_evento")
        assert not catalog.is_view("Evento")
        assert not catalog.is_view("desconocida")

    def test_objects_carry_columns(self, catalog):
        evento = catalog.get("evento")

        assert "precio_entrada" in evento.columns
        assert "fecha_hora" in evento.columns

    def test_describe(self, catalog):
        text = catalog.describe()

        assert text.startswith("Tablas:\n- Actividad(")
        assert "\nVistas:\n- vw_eventos_enriquecidos(" in text

    def test_mapping_is_read_only(self, catalog):
        with pytest.raises(TypeError):
            catalog._objects["nueva"] = CatalogObject("nueva", False, ())


class TestCatalogConstruction:

    def test_empty_catalog_rejected(self):
        with pytest.raises(ConfigurationError, match="empty"):
            AllowedObjectCatalog([])

    def test_duplicates_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            AllowedObjectCatalog([
                CatalogObject("Evento", False, ("id",)),
                CatalogObject("EVENTO", True, ("id",)),
            ])

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "tables:\n"
            "  Evento:\n"
            "    description: Eventos\n"
            "    columns:\n"
            "      id: {description: pk}\n"
            "      nombre: {description: nombre}\n"
            "views:\n"
            "  vw_resumen:\n"
            "    columns:\n"
            "      total: {}\n",
            encoding="utf-8",
        )

        catalog = AllowedObjectCatalog.from_yaml(path)

        assert catalog.list().tables == ("Evento",)
        assert catalog.list().views == ("vw_resumen",)
        assert catalog.get("evento").columns == ("id", "nombre")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            AllowedObjectCatalog.from_yaml(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("tables: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            AllowedObjectCatalog.from_yaml(path)

    def test_yaml_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- Evento\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="mapping"):
            AllowedObjectCatalog.from_yaml(path)
