#!/usr/bin/env python3
"""
Image Factory - Main Entry Point

Command-line interface for building AppStream images, replicating AMIs to
other accounts and regions, sharing built images and deleting AMIs.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from core.services.config_service import ConfigService
from core.orchestration.workflow_orchestrator import WorkflowOrchestrator
from core.models.image import parse_artifact_id
from core.models.workflow import WorkflowResult
from core.utils.logger import configure_root_logging
from infrastructure.aws.client_factory import AWSClientFactory
from infrastructure.aws.session_manager import AWSSessionManager
from infrastructure.storage.manifest_writer import ManifestWriter


def setup_logging(verbose: bool = False, log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Setup logging configuration."""
    configure_root_logging("DEBUG" if verbose else log_level, log_file)


def report_result(workflow_result: WorkflowResult) -> bool:
    logger = logging.getLogger(__name__)
    summary = workflow_result.get_summary()

    if workflow_result.is_successful:
        logger.info(f"Workflow completed successfully: {summary['workflow_id']}")
        logger.info(f"Duration: {summary['duration']}")
        for phase in workflow_result.phase_results.values():
            if phase.results:
                logger.info(f"{phase.phase.value}: {phase.results}")
        return True

    logger.error(f"Workflow finished with status: {summary['status']}")
    for error in workflow_result.errors:
        logger.error(f"Error: {error}")
    return False


async def run_command(args: argparse.Namespace) -> bool:
    """Load configuration and run the selected workflow."""
    logger = logging.getLogger(__name__)

    config_service = ConfigService()
    workflow_config = await config_service.load_workflow_config(args.config)
    if not args.verbose:
        logging.getLogger().setLevel(workflow_config.log_level.value)

    session_manager = AWSSessionManager(
        region=workflow_config.aws.region,
        profile=workflow_config.aws.profile,
    )
    orchestrator = WorkflowOrchestrator(
        clients=AWSClientFactory(session_manager),
        manifest_writer=ManifestWriter(),
    )

    if args.command == "build":
        workflow_result = await orchestrator.run_build_workflow(workflow_config)
    elif args.command == "replicate":
        workflow_result = await orchestrator.run_replication_workflow(
            workflow_config, parse_artifact_id(args.artifact)
        )
    elif args.command == "delete":
        workflow_result = await orchestrator.run_delete_workflow(
            workflow_config, parse_artifact_id(args.artifact)
        )
    elif args.command == "share":
        workflow_result = await orchestrator.run_share_workflow(workflow_config)
    else:
        logger.error(f"Unknown command: {args.command}")
        return False

    return report_result(workflow_result)


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Image Factory - AppStream image build and AMI replication',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Build an image from the builder section of the config
  python main.py build --config factory.yml

  # Copy AMIs to the configured targets
  python main.py replicate us-east-1:ami-0123456789abcdef0 --config factory.yml

  # Deregister AMIs and delete their snapshots
  python main.py delete us-east-1:ami-0123456789abcdef0,eu-west-1:ami-0fedcba9876543210

  # Share a built AppStream image
  python main.py share --config factory.yml
        """
    )

    parser.add_argument(
        '--config',
        default='config.yml',
        help='Path to configuration file (default: config.yml)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--log-file',
        help='Also write logs to this file'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('build', help='Create an image builder, capture an image, tear it down')

    replicate_parser = subparsers.add_parser('replicate', help='Copy AMIs to target accounts and regions')
    replicate_parser.add_argument('artifact', help='Comma separated region:ami-id list')

    delete_parser = subparsers.add_parser('delete', help='Deregister AMIs and delete their snapshots')
    delete_parser.add_argument('artifact', help='Comma separated region:ami-id list')

    subparsers.add_parser('share', help='Share a built AppStream image with accounts and regions')

    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(args.verbose, log_file=args.log_file)
    logger = logging.getLogger(__name__)

    try:
        success = await run_command(args)
        return 0 if success else 1

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.error("Operation cancelled by user")
        return 1
    except Exception as e:
        logger.error(f"{args.command} failed: {str(e)}")
        return 1


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
