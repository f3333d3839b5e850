#!/usr/bin/env python3
"""
Core DEX deployment: token, treasury, pair templates, factory, router.
"""

import logging
from typing import Any, Dict

from ..artifacts import ArtifactRecord
from ..config import SECONDS_IN_DAY, ChainConfig
from ..errors import PostConditionError
from ..executor import ResolvedUnit, StepExecutor
from ..pipeline import Pipeline, Step
from .runner import main_for

logger = logging.getLogger(__name__)

PAIR_TYPE_CODE_KEYS = {
    "xyk": "pairCodeID",
    "stable": "pairStableCodeID",
}

FACTORY_OWNER_PROPOSAL_KEY = "factoryOwnerProposal"


def verify_token(executor: StepExecutor):
    """Post-condition: every configured initial balance is held on chain"""
    def check(address: str, resolved: ResolvedUnit) -> None:
        gateway = executor.gateway
        logger.info(f"Token info: {gateway.query(address, {'token_info': {}})}")
        logger.info(f"Token minter: {gateway.query(address, {'minter': {}})}")

        for entry in resolved.init_msg.get("initial_balances") or []:
            response = gateway.query(address, {"balance": {"address": entry["address"]}})
            balance = response.get("balance") if isinstance(response, dict) else None
            if str(balance) != str(entry["amount"]):
                raise PostConditionError(
                    f"Token {address}: balance of {entry['address']} is {balance}, expected {entry['amount']}"
                )

    return check


def pair_config_code_ids(init_msg: Dict[str, Any], record: ArtifactRecord) -> Dict[str, Any]:
    """Recorded code id for every `pair_configs` entry of a known pair type"""
    recorded: Dict[str, Any] = {}
    for i, pair_config in enumerate(init_msg.get("pair_configs") or []):
        pair_type = pair_config.get("pair_type") or {}
        if len(pair_type) != 1:
            continue
        key = PAIR_TYPE_CODE_KEYS.get(next(iter(pair_type)))
        if key is not None:
            recorded[f"pair_configs.{i}.code_id"] = record.get(key)
    return recorded


def propose_factory_owner(executor: StepExecutor, factory: str, proposal: Dict[str, Any], sender: str):
    """
    Action proposing the configured owner for the factory.

    Only the current owner can propose. When the factory already belongs to
    someone else (the proposal was claimed, or the factory was handed over
    outside this tool) nothing is sent and that owner is recorded instead
    of a transaction hash.
    """
    def propose(record: ArtifactRecord) -> str:
        owner = (executor.gateway.query(factory, {"config": {}}) or {}).get("owner")
        if owner and owner != sender:
            logger.info(f"Factory {factory} is owned by {owner}, no owner proposal sent")
            return owner

        expires_in = proposal.get("expires_in")
        if expires_in is not None:
            logger.info(
                f"Propose owner for factory. Ownership has to be claimed within "
                f"{int(expires_in) / SECONDS_IN_DAY} days"
            )
        result = executor.gateway.execute(factory, {"propose_new_owner": proposal})
        return result.tx_hash

    return propose


def build_core_pipeline(config: ChainConfig, sender: str) -> Pipeline:
    def token(executor: StepExecutor) -> None:
        executor.deploy(config.token, post=verify_token(executor))

    def treasury(executor: StepExecutor) -> None:
        executor.deploy(config.treasury)

    def pair_templates(executor: StepExecutor) -> None:
        executor.upload(config.pair)
        executor.upload(config.pair_stable)

    def factory(executor: StepExecutor) -> None:
        recorded = pair_config_code_ids(config.factory.init_msg, executor.load())
        address = executor.deploy(config.factory, recorded=recorded, defaults={"owner": sender})

        proposal = config.factory_owner_proposal
        if proposal is not None:
            executor.ensure(FACTORY_OWNER_PROPOSAL_KEY, propose_factory_owner(executor, address, proposal, sender))

    def router(executor: StepExecutor) -> None:
        executor.deploy(config.router)

    # a recorded address is enough to skip a unit; code ids are not always recorded
    factory_produces = (config.factory.address_key,)
    if config.factory_owner_proposal is not None:
        factory_produces += (FACTORY_OWNER_PROPOSAL_KEY,)

    steps = [
        Step("token", (config.token.address_key,), token),
        Step("treasury", (config.treasury.address_key,), treasury),
        Step("pair-templates", (config.pair.code_id_key, config.pair_stable.code_id_key), pair_templates),
        Step(
            "factory",
            factory_produces,
            factory,
            requires=(
                config.pair.code_id_key,
                config.pair_stable.code_id_key,
                config.token.code_id_key,
                config.treasury.code_id_key,
            ),
        ),
        Step("router", (config.router.address_key,), router, requires=(config.factory.address_key,)),
    ]
    return Pipeline("core", steps)


def main():
    main_for("core", build_core_pipeline)


if __name__ == "__main__":
    main()
