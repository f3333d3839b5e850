#!/usr/bin/env python3
"""
Tests for the step executor
"""

import pytest

from deployer.artifacts import ArtifactRecord
from deployer.config import UnitDescriptor
from deployer.conftest import CHAIN_ID, MULTISIG, FakeGateway
from deployer.errors import (
    ExtractionError,
    MissingParameterError,
    PostConditionError,
    PreconditionError,
    TransactionError,
)
from deployer.executor import StepExecutor
from deployer.gateway import TxResult


@pytest.fixture
def unit(artifacts_dir):
    (artifacts_dir / "X").write_bytes(b"\0asm")
    return UnitDescriptor(name="x", binary="X", init_msg={"a": 1}, label="L")


class TestDeploy:
    """Test class for upload-then-instantiate"""

    def test_fresh_deploy(self, store, artifacts_dir, unit):
        """Test the single-unit scenario: one upload, one instantiate, both keys recorded"""
        gateway = FakeGateway(code_ids=[7], addresses=["addr1"])
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)

        assert executor.deploy(unit) == "addr1"

        assert store.load(CHAIN_ID) == {"xCodeID": 7, "xAddress": "addr1"}
        assert gateway.count("upload") == 1
        assert gateway.count("instantiate") == 1
        _, (code_id, init_msg, label, admin) = gateway.calls[1]
        assert (code_id, init_msg, label, admin) == (7, {"a": 1}, "L", MULTISIG)

    def test_deploy_twice_is_idempotent(self, store, artifacts_dir, unit):
        gateway = FakeGateway(code_ids=[7], addresses=["addr1"])
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)
        executor.deploy(unit)

        gateway.freeze()
        assert executor.deploy(unit) == "addr1"
        assert store.load(CHAIN_ID) == {"xCodeID": 7, "xAddress": "addr1"}

    def test_failed_instantiate_keeps_code_id(self, store, artifacts_dir, unit):
        """Test that a re-run after a failed instantiate does not upload again"""
        gateway = FakeGateway(code_ids=[7], addresses=["addr1"])
        gateway.fail = lambda method, args: method == "instantiate"
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)

        with pytest.raises(TransactionError):
            executor.deploy(unit)
        assert store.load(CHAIN_ID) == {"xCodeID": 7}

        gateway.fail = None
        executor.deploy(unit)
        assert gateway.count("upload") == 1
        assert gateway.count("instantiate") == 2
        assert store.load(CHAIN_ID) == {"xCodeID": 7, "xAddress": "addr1"}

    def test_missing_label_stops_before_upload(self, gateway, store, artifacts_dir):
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)
        unit = UnitDescriptor(name="token", binary="astroport_token.wasm", init_msg={})

        with pytest.raises(MissingParameterError, match="token.label"):
            executor.deploy(unit)
        assert gateway.calls == []
        assert len(store.load(CHAIN_ID)) == 0

    def test_missing_binary(self, gateway, store, artifacts_dir):
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)
        unit = UnitDescriptor(name="ghost", binary="ghost.wasm", label="Ghost")

        with pytest.raises(PreconditionError, match="ghost.wasm"):
            executor.deploy(unit)
        assert gateway.calls == []

    def test_gateway_failure_writes_nothing(self, gateway, store, artifacts_dir, unit):
        gateway.fail = lambda method, args: method == "upload"
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)

        with pytest.raises(TransactionError) as exc:
            executor.deploy(unit)
        assert exc.value.code == 5
        assert exc.value.raw_log == "rejected by chain"
        assert len(store.load(CHAIN_ID)) == 0

    def test_extraction_failure(self, store, artifacts_dir, unit):
        """Test that an unexpected response shape stops the step without recording"""
        gateway = FakeGateway()
        gateway.upload = lambda path: TxResult(tx_hash="H", events=[])
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)

        with pytest.raises(ExtractionError):
            executor.deploy(unit)
        assert len(store.load(CHAIN_ID)) == 0

    def test_post_condition_failure_after_record(self, gateway, store, artifacts_dir, unit):
        """Test that a failed post-condition is fatal but the address stays recorded"""
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)

        def post(address, resolved):
            raise PostConditionError("balance mismatch")

        with pytest.raises(PostConditionError):
            executor.deploy(unit, post=post)
        assert store.load(CHAIN_ID).has("xAddress")

    def test_post_condition_not_rerun(self, gateway, store, artifacts_dir, unit):
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)
        seen = []
        executor.deploy(unit, post=lambda address, resolved: seen.append(address))
        executor.deploy(unit, post=lambda address, resolved: seen.append(address))
        assert len(seen) == 1

    def test_recorded_address_without_code_id(self, gateway, store, artifacts_dir, unit):
        """Test that a unit recorded only by its address is left alone"""
        store.save(ArtifactRecord({"xAddress": "addr1"}), CHAIN_ID)
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)

        gateway.freeze()
        assert executor.deploy(unit) == "addr1"
        assert store.load(CHAIN_ID) == {"xAddress": "addr1"}

    def test_custom_address_key(self, gateway, store, artifacts_dir, unit):
        """Test that one code id serves several instances under their own keys"""
        executor = StepExecutor(gateway, store, CHAIN_ID, str(artifacts_dir), MULTISIG)
        executor.deploy(unit, address_key="xOne")
        executor.deploy(unit, address_key="xTwo")

        record = store.load(CHAIN_ID)
        assert record.missing("xCodeID", "xOne", "xTwo") == []
        assert gateway.count("upload") == 1
        assert gateway.count("instantiate") == 2


class TestResolveUnit:
    """Test class for placeholder resolution"""

    def setup_method(self):
        self.unit = UnitDescriptor(
            name="router",
            binary="astroport_router.wasm",
            init_msg={"astroport_factory": "sei1configured", "owners": [{"address": ""}, {"address": "sei1bob"}]},
            label="Router",
            substitutions={"astroport_factory": "factoryAddress"},
            owner_fields=("owners.*.address", "marketing.marketing"),
        )

    def test_record_beats_configuration(self, executor):
        resolved = executor.resolve_unit(self.unit, ArtifactRecord({"factoryAddress": "sei1recorded"}))
        assert resolved.init_msg["astroport_factory"] == "sei1recorded"

    def test_configuration_when_not_recorded(self, executor):
        resolved = executor.resolve_unit(self.unit, ArtifactRecord())
        assert resolved.init_msg["astroport_factory"] == "sei1configured"

    def test_owner_defaults(self, executor):
        resolved = executor.resolve_unit(self.unit, ArtifactRecord())
        assert resolved.init_msg["owners"] == [{"address": MULTISIG}, {"address": "sei1bob"}]
        assert resolved.init_msg["marketing"] == {"marketing": MULTISIG}
        assert resolved.admin == MULTISIG

    def test_descriptor_not_mutated(self, executor):
        executor.resolve_unit(self.unit, ArtifactRecord({"factoryAddress": "sei1recorded"}))
        assert self.unit.init_msg["astroport_factory"] == "sei1configured"
        assert self.unit.init_msg["owners"][0]["address"] == ""

    def test_missing_everywhere(self, executor):
        unit = UnitDescriptor(name="router", binary="r.wasm", label="Router",
                              substitutions={"astroport_factory": "factoryAddress"})
        with pytest.raises(MissingParameterError, match="router.initMsg.astroport_factory"):
            executor.resolve_unit(unit, ArtifactRecord())

    def test_extra_recorded_and_defaults(self, executor):
        unit = UnitDescriptor(name="factory", binary="f.wasm", label="F", init_msg={"owner": ""})
        resolved = executor.resolve_unit(
            unit, ArtifactRecord(), recorded={"token_code_id": 3}, defaults={"owner": "sei1sender"}
        )
        assert resolved.init_msg == {"owner": "sei1sender", "token_code_id": 3}


class TestEnsure:
    """Test class for the generic ensure primitive"""

    def test_ensure_runs_once(self, executor, store):
        calls = []

        def action(record):
            calls.append(1)
            return "value"

        assert executor.ensure("someKey", action) == "value"
        assert executor.ensure("someKey", action) == "value"
        assert len(calls) == 1
        assert store.load(CHAIN_ID)["someKey"] == "value"

    def test_ensure_saves_before_returning(self, executor, store):
        executor.ensure("first", lambda record: 1)
        seen = {}
        executor.ensure("second", lambda record: seen.setdefault("first", record.get("first")) and 2)
        assert seen["first"] == 1
