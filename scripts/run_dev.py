#!/usr/bin/env python3
"""
Development server runner for the ArteVida SQL agent.

Starts uvicorn with hot reloading after loading the project's .env file.
"""

import sys
from pathlib import Path

# Add the src directory to the Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from dotenv import load_dotenv

env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)
    print(f"✓ Loaded environment variables from {env_file}")
else:
    print(f"⚠ No .env file found at {env_file}")
    print("  DATABASE__DATABASE_URL must be set in the environment")


if __name__ == "__main__":
    import uvicorn
    from artevida.config import get_settings

    settings = get_settings()
    server = settings.server
    base_url = f"http://{server.host}:{server.port}"

    print("🎭 Starting ArteVida SQL agent (development)...")
    print(f"📊 API Documentation: {base_url}/docs")
    print(f"💬 Ask endpoint: {base_url}/api/ask")
    print(f"🔍 Health Check: {base_url}/health")
    print(f"🗂  Catalog: {settings.catalog.catalog_path}")
    print(f"🧭 Pipeline runner: {settings.pipeline.runner.value}")
    if not settings.llm.openrouter_api_key.strip():
        print("🤖 No LLM__OPENROUTER_API_KEY set: SQL comes from heuristics and keyword fallback")
    print()

    uvicorn.run(
        server.app_module,
        host=server.host,
        port=server.port,
        reload=server.reload,
        workers=server.workers,
        reload_dirs=[str(src_path)],
        log_config=None,  # structlog handles logging
        access_log=False  # request logging lives in the middleware
    )
