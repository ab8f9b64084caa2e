#!/usr/bin/env python3
"""Main entry point for MySQL Info Exporter

Usage:
    python main.py [config_path]

The target document path defaults to CONFIG_FILE (config.yaml).
"""
import sys
import uvicorn
from config import Config, load_targets
from app.poller import create_pollers
from app.server import MetricsServer
from metrics.registry import MetricsRegistry
from logging_config import setup_structured_logging, get_logger, log_server_startup, log_error


def main(argv=None):
    """Main application entry point"""
    argv = sys.argv[1:] if argv is None else argv

    try:
        # Load configuration
        config = Config(config_file=argv[0]) if argv else Config()

        # Setup structured logging
        setup_structured_logging(config)
        logger = get_logger(__name__)

        targets = load_targets(config.config_file)
        log_server_startup(logger, config, targets)

        # Every target must be reachable before the listener starts
        registry = MetricsRegistry()
        pollers = create_pollers(targets, registry, config)

    except Exception as e:
        # ConfigError, TargetConnectionError and settings validation are all fatal
        logger = get_logger(__name__)
        log_error(logger, e, {"component": "main", "phase": "startup"})
        sys.exit(1)

    server = MetricsServer(config, registry, pollers)
    uvicorn.run(
        server.get_app(),
        host=config.metrics_host,
        port=config.metrics_port,
        log_config=None  # We handle logging ourselves
    )


if __name__ == '__main__':
    main()
