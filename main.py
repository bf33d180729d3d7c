#!/usr/bin/env python3
"""
Basti - Main Entry Point

Opens tunnels to private RDS databases and custom hosts through a disposable
bastion instance reached over AWS Systems Manager, and cleans up every
resource it created.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from botocore.exceptions import BotoCoreError

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from core.exceptions import BastiError
from core.models.config import TunnelConfig
from core.models.target import TargetIntent, TargetKind
from core.orchestration.tunnel_orchestrator import TunnelOrchestrator
from core.services.bastion_provisioner_service import BastionProvisionerService
from core.services.cleanup_service import CleanupService
from core.services.config_service import ConfigService
from core.services.session_negotiator_service import SessionNegotiatorService
from core.services.target_resolver_service import TargetResolverService
from core.utils.logger import configure_logging
from infrastructure.aws import AWSSessionManager, EC2Client, IAMClient, RDSClient, SSMClient
from infrastructure.cli.prompter import RichPrompter
from infrastructure.tunnel.session_plugin import SessionPluginRunner


async def load_config(args: argparse.Namespace) -> TunnelConfig:
    """Load configuration with command line flags taking precedence."""
    config_service = ConfigService()
    config_service.set_environment_override("aws.region", args.region)
    config_service.set_environment_override("aws.profile", args.profile)

    config = await config_service.load_config(args.config)
    await config_service.validate_config()
    return config


def build_orchestrator(config: TunnelConfig, prompter: RichPrompter) -> TunnelOrchestrator:
    """Wire AWS clients and services together."""
    session_manager = AWSSessionManager(
        region=config.aws.region, profile=config.aws.profile
    )
    ec2_client = EC2Client(session_manager)
    iam_client = IAMClient(session_manager)
    rds_client = RDSClient(session_manager)
    ssm_client = SSMClient(session_manager)

    return TunnelOrchestrator(
        target_resolver=TargetResolverService(rds_client, prompter),
        bastion_provisioner=BastionProvisionerService(
            ec2_client, iam_client, ssm_client, rds_client, config.bastion, prompter
        ),
        session_negotiator=SessionNegotiatorService(ssm_client),
        cleanup_service=CleanupService(
            ec2_client, iam_client, rds_client, prompter, config.cleanup
        ),
        prompter=prompter,
        tunnel_runner=SessionPluginRunner(profile=config.aws.profile),
    )


def build_intent(args: argparse.Namespace) -> TargetIntent:
    """Translate connect flags into a target intent."""
    if args.rds_instance:
        return TargetIntent(kind=TargetKind.DB_INSTANCE, identifier=args.rds_instance)
    if args.rds_cluster:
        return TargetIntent(kind=TargetKind.DB_CLUSTER, identifier=args.rds_cluster)
    if args.custom_host or args.custom_port or args.custom_vpc:
        return TargetIntent(
            kind=TargetKind.CUSTOM,
            custom_host=args.custom_host,
            custom_port=args.custom_port,
            custom_vpc_id=args.custom_vpc,
        )
    return TargetIntent()


async def run_connect(orchestrator: TunnelOrchestrator, args: argparse.Namespace) -> int:
    await orchestrator.connect(build_intent(args), local_port=args.local_port)
    return 0


async def run_cleanup(orchestrator: TunnelOrchestrator, args: argparse.Namespace) -> int:
    await orchestrator.cleanup(auto_confirm=args.yes)
    return 0


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--config',
        default=None,
        help='Path to configuration file (default: config/default.yml when present)'
    )
    common.add_argument('--region', help='AWS region')
    common.add_argument('--profile', help='AWS named profile')
    common.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    parser = argparse.ArgumentParser(
        prog='basti',
        description='Tunnels to private AWS databases through SSM bastions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Pick a target interactively
  basti connect

  # Connect to a DB instance on local port 5432
  basti connect --rds-instance my-db --local-port 5432

  # Connect to a host reachable from a VPC
  basti connect --custom-host 10.0.1.15 --custom-port 6379 --custom-vpc vpc-0abc

  # Remove every resource basti created
  basti cleanup --yes
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    connect = subparsers.add_parser(
        'connect', parents=[common], help='Open a port-forwarding tunnel to a target'
    )
    target_group = connect.add_mutually_exclusive_group()
    target_group.add_argument('--rds-instance', metavar='ID', help='RDS DB instance identifier')
    target_group.add_argument('--rds-cluster', metavar='ID', help='RDS DB cluster identifier')
    target_group.add_argument('--custom-host', metavar='HOST', help='Custom target host')
    connect.add_argument('--custom-port', type=int, metavar='PORT', help='Custom target port')
    connect.add_argument('--custom-vpc', metavar='VPC_ID', help='VPC the custom target lives in')
    connect.add_argument('--local-port', type=int, metavar='PORT', help='Local port to listen on')

    cleanup = subparsers.add_parser(
        'cleanup', parents=[common], help='Delete all basti-managed AWS resources'
    )
    cleanup.add_argument('--yes', '-y', action='store_true', help='Skip the confirmation prompt')

    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    prompter = RichPrompter()

    try:
        config = await load_config(args)
        configure_logging(config.log_level.value, config.log_file, args.verbose)
        orchestrator = build_orchestrator(config, prompter)

        if args.command == 'connect':
            return await run_connect(orchestrator, args)
        return await run_cleanup(orchestrator, args)

    except KeyboardInterrupt:
        prompter.console.print("\nOperation cancelled by user")
        return 1
    except (BastiError, BotoCoreError, ValueError, FileNotFoundError) as e:
        logging.getLogger(__name__).debug("Command failed", exc_info=True)
        prompter.console.print(str(e), style="red", markup=False)
        return 1


def cli() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    cli()
