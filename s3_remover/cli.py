"""
S3 Remover - empty the S3 buckets of a deployed service before teardown.

Reads the bucket list from the ``custom.remover`` section of a serverless
service file, resolves ``Ref`` entries through the service's CloudFormation
stack, and deletes every object in every bucket concurrently.

License: MIT
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional, Sequence

import botocore.exceptions

from .config import (
    DEFAULT_CONFIG_FILE,
    RemoverConfig,
    RunOptions,
    effective_prompt,
    effective_region,
    effective_stage,
    stack_name,
)
from .errors import ConfigurationError
from .models import BucketReference, RemovalOutcome, summarize
from .prompt import ConsolePrompt, PresetPrompt
from .provider import AwsProvider
from .remover import RemovalOrchestrator, confirmation_questions

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    """Configure root logging; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        for noisy in ("botocore", "aiobotocore", "urllib3"):
            logging.getLogger(noisy).setLevel(logging.INFO)


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="s3-remover",
        description="S3 Remover - Remove all files in the S3 buckets of a service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          Empty the buckets listed in serverless.yml
  %(prog)s remove --stage prod      Resolve Ref buckets in the prod stack
  %(prog)s remove --prompt          Ask before emptying each bucket
  %(prog)s inspect                  Show the loaded configuration

Environment Variables:
  AWS_PROFILE                Named AWS profile to use
  S3_REMOVER_ENDPOINT_URL    Endpoint override (LocalStack, MinIO)
        """,
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="remove",
        choices=("remove", "inspect"),
        help="remove: empty the buckets (default); inspect: print configuration",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_FILE,
        help=f"Service file to read (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument("--stage", "-s", help="Stage of the deployed service")
    parser.add_argument("--region", "-r", help="AWS region")
    parser.add_argument("--aws-profile", dest="profile", help="Named AWS profile")
    parser.add_argument("--endpoint-url", help="Override the AWS endpoint URL")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Increase verbosity"
    )
    prompt_group = parser.add_mutually_exclusive_group()
    prompt_group.add_argument(
        "--prompt",
        dest="prompt",
        action="store_true",
        default=None,
        help="Ask for confirmation before emptying each bucket",
    )
    prompt_group.add_argument(
        "--yes",
        "-y",
        dest="prompt",
        action="store_false",
        default=None,
        help="Skip confirmation prompts",
    )
    return parser.parse_args(argv)


async def remove_buckets(
    config: RemoverConfig,
    options: RunOptions,
    answers: Optional[dict[str, str]] = None,
) -> dict[BucketReference, RemovalOutcome]:
    """
    Empty every configured bucket through AWS.

    Args:
        config: Remover configuration.
        options: Run-time overrides.
        answers: Confirmation answers by prompt label, collected beforehand
            when prompting is enabled.
    """
    interactive = effective_prompt(config, options)
    async with AwsProvider(
        region=effective_region(config, options),
        profile=options.profile,
        endpoint_url=options.endpoint_url,
        max_retries=config.max_retries,
        connection_pool_size=config.connection_pool_size,
    ) as provider:
        orchestrator = RemovalOrchestrator.create(
            provider,
            config,
            options,
            prompt=PresetPrompt(answers or {}) if interactive else None,
        )
        return await orchestrator.run(config.buckets, interactive=interactive)


def describe(config: RemoverConfig, options: RunOptions) -> dict:
    """Configuration and effective options as plain data."""
    return {
        "config": asdict(config),
        "options": asdict(options),
        "effective": {
            "stage": effective_stage(config, options),
            "region": effective_region(config, options),
            "prompt": effective_prompt(config, options),
            "stack": stack_name(config, options),
            "buckets": [reference.label for reference in config.buckets],
        },
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point; returns the process exit code."""
    args = parse_arguments(argv)
    configure_logging(args.verbose)

    options = RunOptions.from_environment(
        stage=args.stage,
        region=args.region,
        profile=args.profile,
        endpoint_url=args.endpoint_url,
        verbose=args.verbose,
        prompt=args.prompt,
    )

    try:
        config = RemoverConfig.from_file(args.config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 2

    if args.command == "inspect":
        print(json.dumps(describe(config, options), indent=2, default=str))
        return 0

    if not config.buckets:
        logger.info("No buckets configured.")
        return 0

    logger.info(
        f"Emptying {len(config.buckets)} bucket(s) for stack {stack_name(config, options)}"
    )

    try:
        answers = None
        if effective_prompt(config, options):
            try:
                answers = ConsolePrompt().collect(confirmation_questions(config.buckets))
            except EOFError:
                logger.error("No answer on standard input; no bucket will be emptied")
                answers = {}
        outcomes = asyncio.run(remove_buckets(config, options, answers))
    except KeyboardInterrupt:
        logger.warning("\n\nOperation interrupted by user")
        return 1
    except botocore.exceptions.BotoCoreError as e:
        logger.error(f"Could not set up AWS clients: {e}")
        return 1

    summary = summarize(outcomes)
    logger.info(
        f"Done: {summary['emptied']} emptied, {summary['failed']} failed, "
        f"{summary['cancelled']} cancelled"
    )
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
