#!/usr/bin/env python3
"""
Pool creation: one pair per configured entry, created through the factory,
plus an oracle for pairs that ask for one.
"""

import copy
import json
import logging
from typing import Any, Dict, List

from ..artifacts import ArtifactRecord
from ..assets import describe_pair, to_encoded_binary
from ..config import ChainConfig, PairConfig, resolve
from ..executor import StepExecutor
from ..extract import extract_liquidity_token, extract_pair_address
from ..pipeline import Pipeline, Step
from .runner import main_for

logger = logging.getLogger(__name__)


def pair_asset_infos(pair: PairConfig, record: ArtifactRecord, token_key: str) -> List[Dict[str, Any]]:
    """Asset infos with empty token addresses filled from the recorded protocol token"""
    asset_infos = copy.deepcopy(pair.asset_infos)
    for info in asset_infos:
        token = info.get("token")
        if isinstance(token, dict):
            token["contract_addr"] = resolve(
                f"{pair.identifier}.assetInfos.token.contract_addr",
                configured=token.get("contract_addr"),
                default=record.get(token_key),
            )
    return asset_infos


def create_pair_msg(pair: PairConfig, asset_infos: List[Dict[str, Any]]) -> Dict[str, Any]:
    msg: Dict[str, Any] = {
        "pair_type": pair.pair_type,
        "asset_infos": asset_infos,
    }
    if pair.init_params:
        msg["init_params"] = to_encoded_binary(pair.init_params)
    return {"create_pair": msg}


def pool_step(config: ChainConfig, pair: PairConfig) -> Step:
    factory_key = config.factory.address_key

    def run(executor: StepExecutor) -> None:
        def create(record: ArtifactRecord) -> str:
            asset_infos = pair_asset_infos(pair, record, config.token.address_key)
            logger.info(f"Creating pool {pair.identifier} ({describe_pair(asset_infos)})...")
            result = executor.gateway.execute(record[factory_key], create_pair_msg(pair, asset_infos))
            return extract_pair_address(result)

        pool = executor.ensure(pair.pool_key, create)

        def lp_token(record: ArtifactRecord) -> str:
            return extract_liquidity_token(executor.gateway.query(pool, {"pair": {}}))

        executor.ensure(pair.lp_token_key, lp_token)
        logger.info(f"Pair successfully created! Address: {pool}")

    return Step(f"pool:{pair.identifier}", (pair.pool_key, pair.lp_token_key), run, requires=(factory_key,))


def oracle_step(config: ChainConfig, pair: PairConfig) -> Step:
    def run(executor: StepExecutor) -> None:
        logger.info(f"Deploying oracle for {pair.identifier}...")
        asset_infos = pair_asset_infos(pair, executor.load(), config.token.address_key)
        address = executor.deploy(
            config.oracle,
            defaults={"asset_infos": asset_infos},
            address_key=pair.oracle_key,
        )
        logger.info(f"Address of {pair.identifier} oracle contract: {address}")

    return Step(
        f"oracle:{pair.identifier}",
        (pair.oracle_key,),
        run,
        requires=(pair.pool_key, config.factory.address_key),
    )


def build_pools_pipeline(config: ChainConfig, sender: str) -> Pipeline:
    steps: List[Step] = []
    for pair in config.pairs:
        steps.append(pool_step(config, pair))
        if pair.init_oracle:
            steps.append(oracle_step(config, pair))

    return Pipeline(
        "pools",
        steps,
        external={
            config.token.address_key: "core:token",
            config.factory.address_key: "core:factory",
        },
    )


def main():
    report = main_for("pools", build_pools_pipeline)
    logger.info(f"network: {json.dumps(report.record.as_dict(), indent=2)}")
    logger.info("FINISH")


if __name__ == "__main__":
    main()
