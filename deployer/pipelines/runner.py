"""
Shared entry point plumbing: environment, logging, gateway, executor.
"""

import os
import logging
from typing import Callable, Optional

from dotenv import load_dotenv

from ..artifacts import ArtifactStore
from ..config import ChainConfig, Settings
from ..errors import PreconditionError
from ..executor import StepExecutor
from ..gateway import ChainGateway, connect
from ..notify import send_slack_message
from ..pipeline import Pipeline, PipelineReport

logger = logging.getLogger(__name__)

PipelineBuilder = Callable[[ChainConfig, str], Pipeline]


def configure_logging(log_file: str) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def run_pipeline(build: PipelineBuilder, settings: Settings, gateway: Optional[ChainGateway] = None) -> PipelineReport:
    """
    Build and run one pipeline against the network named by settings.

    Args:
        build: Turns the chain configuration and the sender address into a pipeline
        settings: Process settings
        gateway: Already connected gateway; connects from settings when omitted

    Raises:
        PreconditionError: Configuration is incomplete or the chain id does not match
    """
    config = ChainConfig.load(settings.chain_configs_path, settings.chain_id)
    owner = config.require_owner()

    if gateway is None:
        gateway = connect(settings)
    if gateway.chain_id != settings.chain_id:
        raise PreconditionError(f"Chain ID mismatch. Expected {settings.chain_id}, got {gateway.chain_id}")

    logger.info(f"chainID: {gateway.chain_id} wallet: {gateway.address}")

    store = ArtifactStore(settings.artifacts_path)
    executor = StepExecutor(gateway, store, gateway.chain_id, settings.artifacts_path, owner)
    pipeline = build(config, gateway.address)
    return pipeline.run(executor)


def main_for(name: str, build: PipelineBuilder) -> PipelineReport:
    """Entry point body: load .env, run, notify; errors are logged and re-raised"""
    load_dotenv()
    configure_logging(os.getenv("LOG_FILE", "deploy.log"))
    webhook = os.getenv("SLACK_WEBHOOK")

    try:
        settings = Settings.from_env()
        report = run_pipeline(build, settings)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        send_slack_message(webhook, f"Deployment {name} failed: {e}")
        raise

    send_slack_message(
        webhook,
        f"Deployment {name} finished on {settings.chain_id}: "
        f"{len(report.executed)} steps executed, {len(report.skipped)} already recorded",
    )
    return report
