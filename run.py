#!/usr/bin/env python3
"""
Run the assessment engine web server.
"""

import uvicorn

from utils.config import Config, configure_logging


def main():
    """Start the web server."""
    config = Config.load()
    configure_logging(config.log_level)

    print(f"Starting Assessment Engine on http://{config.host}:{config.port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "web.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.debug,
    )


if __name__ == "__main__":
    main()
