"""
Command-line interface for Scanhook.

Starts the webhook listener and the dispatch workers creating one scan job
per pushed image in the configured namespace.
"""

import argparse
import logging
import sys
from typing import Optional

from constants import DEFAULT_HOST, DEFAULT_NAMESPACE, DEFAULT_PORT
from core.dispatcher import Dispatcher
from core.exceptions import ConfigurationException
from core.job_builder import ScanJobBuilder
from core.platform_interface import JobPlatform
from core.platforms import PlatformResolver
from core.worker_pool import DispatchWorkerPool
from integrations.registry_client import RegistryClient
from utils.logging_helpers import log_error_section, log_info_header

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_args(args: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Scanhook - create vulnerability scan jobs for pushed container images",
    )
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to bind server to.")
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE, help="Namespace to deploy scan jobs into.")
    parser.add_argument(
        "--insecure-registry",
        action="store_true",
        help="Disable TLS verification for registry endpoint.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")

    parsed = parser.parse_args(args)
    if not 0 < parsed.port < 65536:
        parser.error(f"invalid port: {parsed.port}")
    if not parsed.namespace:
        parser.error("namespace must not be empty")
    return parsed


def build_pool(args: argparse.Namespace, job_platform: JobPlatform) -> DispatchWorkerPool:
    """Wire the dispatch pipeline for the parsed configuration."""
    resolver = PlatformResolver(RegistryClient(), insecure_registry=args.insecure_registry)
    builder = ScanJobBuilder(args.namespace, insecure_registry=args.insecure_registry)
    dispatcher = Dispatcher(job_platform, resolver, builder)
    return DispatchWorkerPool(dispatcher)


def main(argv: Optional[list[str]] = None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    import uvicorn
    from integrations.kubernetes_jobs import KubernetesJobPlatform
    from webhook.server import create_app

    try:
        job_platform = KubernetesJobPlatform.from_environment()
    except ConfigurationException as e:
        log_error_section(
            "Kubernetes configuration not available.",
            [str(e), "Run inside a cluster or set KUBECONFIG."],
            logger=logger,
        )
        sys.exit(1)

    pool = build_pool(args, job_platform)
    app = create_app(pool)

    log_info_header(
        f"Scanhook serving on port {args.port} (namespace: {args.namespace}, "
        f"insecure registry: {args.insecure_registry})",
        logger=logger,
    )
    uvicorn.run(
        app,
        host=DEFAULT_HOST,
        port=args.port,
        log_level="debug" if args.verbose else "info",
    )
    logger.info("http server closed")


if __name__ == "__main__":
    main()
