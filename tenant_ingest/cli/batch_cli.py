"""
Command-line interface for tenant ingestion.

Usage:
    tenant-ingest process [--input <file_path>] [options]
    tenant-ingest serve [--host HOST] [--port PORT]
"""

import argparse
import json
import sys
from pathlib import Path

from tenant_ingest.batch.pipeline import TenantIngestionPipeline
from tenant_ingest.batch.readers import SUPPORTED_FORMATS
from tenant_ingest.clients import StaticTokenProvider
from tenant_ingest.config import (
    DuplicateIdPolicy,
    FailurePolicy,
    ResourceNaming,
    load_settings,
)
from tenant_ingest.core.exceptions import PipelineError
from tenant_ingest.observability.logger import get_logger
from tenant_ingest.observability.metrics import start_metrics_server
from tenant_ingest.utils.validation import ValidationError, validate_file_path


logger = get_logger(__name__)


def _settings_from_args(args):
    return load_settings(
        config_path=args.config,
        failure_policy=getattr(args, "failure_policy", None),
        resource_naming=getattr(args, "naming", None),
        duplicate_ids=getattr(args, "duplicate_ids", None),
        await_import=True if getattr(args, "await_import", False) else None,
    )


def process_command(args) -> int:
    """
    Execute batch processing command.

    Args:
        args: Command-line arguments

    Returns:
        Process exit code
    """
    try:
        settings = _settings_from_args(args)
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    input_path = settings.input_path
    if args.input:
        try:
            input_path = Path(validate_file_path(args.input, "input"))
        except ValidationError as e:
            logger.error(str(e))
            return 1

    logger.info(f"Input file: {input_path}")
    if not input_path.exists():
        logger.error(f"Input file not found: {input_path}")
        return 1

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    token_provider = StaticTokenProvider(args.access_token) if args.access_token else None

    try:
        with TenantIngestionPipeline.from_settings(settings, token_provider=token_provider) as pipeline:
            result = pipeline.run(input_path, batch_id=args.batch_id, file_format=args.format)
    except PipelineError as e:
        logger.error(f"Error during batch processing: {e}")
        return 1
    except Exception:
        logger.exception("Unexpected error during batch processing")
        return 1

    summary = result.summary()
    logger.info("=" * 60)
    logger.info(f"PROCESSING {result.status.upper()}")
    logger.info("=" * 60)
    logger.info(f"Total records read: {result.total_records}")
    logger.info(f"Tenants processed: {result.tenants_processed}")
    logger.info(f"Tenants failed: {result.tenants_failed}")
    for tenant_key, resource in result.resources.items():
        logger.info(f"  {tenant_key}: index={resource.index_id} search_app={resource.search_app_id}")
    logger.info("=" * 60)

    if args.json:
        print(json.dumps(summary, indent=2))

    return 0 if result.status == "succeeded" else 1


def serve_command(args) -> int:
    """Run the HTTP batch trigger."""
    # Lazy import: uvicorn only needed when serving
    import uvicorn

    from tenant_ingest.api.app import create_app

    try:
        settings = load_settings(config_path=args.config)
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tenant-ingest",
        description="Per-tenant search index provisioning and ingestion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process the configured input file (DATA_DIR/INPUT_FILE)
  tenant-ingest process

  # Process a JSON Lines file, continuing past failed tenants
  tenant-ingest process --input data/messages.jsonl --format jsonl \\
      --failure-policy best_effort

  # Rerun a batch without duplicating resources
  tenant-ingest process --naming idempotent --batch-id 2024-06-01

  # Serve POST /api/process on port 3002
  tenant-ingest serve --port 3002
        """
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to pipeline YAML configuration file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    process_parser = subparsers.add_parser("process", help="Process a batch file")
    process_parser.add_argument(
        "--input",
        default=None,
        help="Path to input file (default: DATA_DIR/INPUT_FILE)"
    )
    process_parser.add_argument(
        "--format",
        default="json",
        choices=list(SUPPORTED_FORMATS),
        help="Input file format (default: json)"
    )
    process_parser.add_argument(
        "--batch-id",
        default=None,
        help="Idempotency key for resource naming (default: hash of the input file)"
    )
    process_parser.add_argument(
        "--failure-policy",
        default=None,
        choices=[p.value for p in FailurePolicy],
        help="Stop at the first failed tenant or continue (default: abort)"
    )
    process_parser.add_argument(
        "--naming",
        default=None,
        choices=[n.value for n in ResourceNaming],
        help="Resource id derivation (default: timestamp)"
    )
    process_parser.add_argument(
        "--duplicate-ids",
        default=None,
        choices=[d.value for d in DuplicateIdPolicy],
        help="Handling of records with colliding document ids (default: overwrite)"
    )
    process_parser.add_argument(
        "--await-import",
        action="store_true",
        help="Wait for each import job to finish"
    )
    process_parser.add_argument(
        "--access-token",
        default=None,
        help="Use this bearer token instead of google-auth credentials"
    )
    process_parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while processing"
    )
    process_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the batch summary as JSON"
    )

    serve_parser = subparsers.add_parser("serve", help="Serve the HTTP batch trigger")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=3002, help="Port (default: 3002)")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "process":
        sys.exit(process_command(args))
    elif args.command == "serve":
        sys.exit(serve_command(args))


if __name__ == "__main__":
    main()
