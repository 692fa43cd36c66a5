#!/usr/bin/env python3
"""
Production server runner for the ArteVida SQL agent.

No reloading, at least two workers, and no server/date headers.
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
    print("  Ensure environment variables are set via your deployment system")


if __name__ == "__main__":
    import uvicorn
    from artevida.config import get_settings

    server = get_settings().server

    production_config = {
        "app": server.app_module,
        "host": server.host,
        "port": server.port,
        "workers": max(server.workers, 2),
        "reload": False,
        "log_config": None,
        "access_log": False,
        "server_header": False,
        "date_header": False,
    }

    print("🎭 Starting ArteVida SQL agent (production)...")
    print(f"🌐 Listening: {server.host}:{server.port}")
    print(f"👥 Workers: {production_config['workers']}")
    print()

    uvicorn.run(**production_config)
