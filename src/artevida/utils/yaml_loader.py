"""
Utility for loading and parsing the allowed object catalog YAML file.

The file lists every readable table and view together with its columns
and short human-written descriptions used in generation prompts.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, List, Union

from ..domain.errors import ConfigurationError
from ..utils.logging import get_module_logger


logger = get_module_logger()


def load_yaml_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a YAML file from disk.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML content as dictionary

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a mapping
    """
    file_path = Path(path)
    logger.info("Loading YAML file", file_path=str(file_path))

    try:
        with file_path.open("r", encoding="utf-8") as handle:
            content = yaml.safe_load(handle)
    except FileNotFoundError as e:
        raise ConfigurationError(f"YAML file not found: {file_path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {file_path}: {e}") from e

    if not isinstance(content, dict):
        raise ConfigurationError(
            f"YAML file must contain a mapping: {file_path}",
            details={"found": type(content).__name__}
        )

    return content


def parse_catalog_section(
    yaml_content: Dict[str, Any],
    section: str
) -> Dict[str, Dict[str, Any]]:
    """
    Parse one catalog section ("tables" or "views").

    Args:
        yaml_content: Parsed YAML dictionary with structure:
            {
                "tables": {
                    "Evento": {
                        "description": "table desc",
                        "columns": {"nombre": {"description": "col desc"}}
                    }
                },
                "views": {...}
            }
        section: Section name

    Returns:
        {"Evento": {"description": "...", "columns": ["id", "nombre", ...]}}
    """
    objects: Dict[str, Dict[str, Any]] = {}

    for object_name, object_data in (yaml_content.get(section) or {}).items():
        object_data = object_data or {}
        columns: List[str] = list((object_data.get("columns") or {}).keys())
        objects[str(object_name)] = {
            "description": object_data.get("description", ""),
            "columns": columns,
        }

    logger.info("Parsed catalog section", section=section, object_count=len(objects))

    return objects
