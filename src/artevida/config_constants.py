from enum import Enum
from pathlib import Path


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

class OPENROUTER_LLM_MODELS(str, Enum):
    # OpenAI models
    GPT_4O = "openai/gpt-4o"
    GPT_4O_MINI = "openai/gpt-4o-mini"

    # Anthropic Claude models
    ANTHROPIC_SONNET_45 = "anthropic/claude-4.5-sonnet"
    ANTHROPIC_HAIKU_45 = "anthropic/claude-haiku-4.5"

class PipelineRunnerType(str, Enum):
    GRAPH = "graph"
    SEQUENTIAL = "sequential"

class SqlDialect(str, Enum):
    POSTGRES = "postgres"

OPEN_ROUTER_API_URL = "https://openrouter.ai/api/v1"

# -------------------------
# Catalog Constants
# -------------------------

# Packaged catalog of the tables and views user queries may read
DEFAULT_CATALOG_PATH = Path(__file__).parent / "resources" / "catalog.yaml"

SMALL_TALK_REPLY = (
    "¡Hola! Soy tu asistente de ArteVida. Dime qué quieres consultar "
    "(por ejemplo: precios de Rosalía, eventos en Madrid 2024, top artistas)."
)
