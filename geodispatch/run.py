import signal
import os

import uvicorn

from geodispatch.config.logging_setup import setup_logging
from geodispatch.providers.settings import get_settings


def setup_signal_handlers():
    """Exit immediately on SIGINT/SIGTERM."""
    def signal_handler(signum, frame):
        print(f"\n🛑 Received signal {signum}. Shutting down...")
        os._exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def main():
    """Start the API server locally."""
    setup_logging()
    settings = get_settings()

    print(f"Starting API at http://{settings.geodispatch_host}:{settings.geodispatch_port}")
    print("Press CTRL+C to quit.")

    setup_signal_handlers()

    uvicorn.run(
        "geodispatch.main:app",
        host=settings.geodispatch_host,
        port=settings.geodispatch_port,
        log_config=None  # Keep the configuration loaded by setup_logging
    )


if __name__ == "__main__":
    main()
