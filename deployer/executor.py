"""
Step executor.

Every on-chain action is guarded by a record key: if the key is already
populated the action is skipped, otherwise the action runs and its result
is saved to the artifact store before anything else happens.
"""

import os
import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .artifacts import ArtifactRecord, ArtifactStore
from .config import UnitDescriptor, expand_path, get_path, resolve, set_path
from .errors import PreconditionError
from .extract import extract_code_id, extract_contract_address
from .gateway import ChainGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedUnit:
    """A descriptor with every placeholder filled in"""
    init_msg: Dict[str, Any]
    label: str
    admin: str


PostCondition = Callable[[str, ResolvedUnit], None]


class StepExecutor:
    def __init__(self, gateway: ChainGateway, store: ArtifactStore, network_id: str, binaries_path: str, owner: str):
        self.gateway = gateway
        self.store = store
        self.network_id = network_id
        self.binaries_path = binaries_path
        self.owner = owner

    def load(self) -> ArtifactRecord:
        return self.store.load(self.network_id)

    def _ensure(self, key: str, action: Callable[[ArtifactRecord], Any]) -> Tuple[Any, bool]:
        record = self.load()
        if record.has(key):
            logger.info(f"{key} already recorded: {record[key]}")
            return record[key], False

        value = action(record)

        # the action may have recorded other keys, so re-read before writing
        record = self.load()
        record.set(key, value)
        self.store.save(record, self.network_id)
        logger.info(f"Recorded {key}: {value}")
        return value, True

    def ensure(self, key: str, action: Callable[[ArtifactRecord], Any]) -> Any:
        """
        Run action once per network and record its result under key.

        Args:
            key: Record key the action produces
            action: Called with the current record when key is not populated

        Returns:
            The recorded value, existing or new
        """
        value, _ = self._ensure(key, action)
        return value

    def binary_path(self, unit: UnitDescriptor) -> str:
        path = os.path.join(self.binaries_path, unit.binary)
        if not os.path.exists(path):
            raise PreconditionError(f"Contract binary not found: {path}")
        return path

    def resolve_unit(
        self,
        unit: UnitDescriptor,
        record: ArtifactRecord,
        recorded: Optional[Dict[str, Any]] = None,
        defaults: Optional[Dict[str, Any]] = None,
    ) -> ResolvedUnit:
        """
        Fill a descriptor's placeholders without touching the descriptor.

        Record substitutions win over configured values, which win over
        defaults; owner_fields default to the owner multisig.

        Args:
            unit: Descriptor to resolve
            record: Current artifact record
            recorded: Extra payload path -> value pairs taken from the record
            defaults: Extra payload path -> fallback value pairs

        Raises:
            MissingParameterError: A field has no value in any source
        """
        init_msg = copy.deepcopy(unit.init_msg)

        recorded_values: Dict[str, Any] = {path: record.get(key) for path, key in unit.substitutions.items()}
        recorded_values.update(recorded or {})

        default_values: Dict[str, Any] = {}
        for pattern in unit.owner_fields:
            for path in expand_path(init_msg, pattern):
                default_values[path] = self.owner
        default_values.update(defaults or {})

        for path in list(recorded_values) + [p for p in default_values if p not in recorded_values]:
            value = resolve(
                f"{unit.name}.initMsg.{path}",
                recorded=recorded_values.get(path),
                configured=get_path(init_msg, path),
                default=default_values.get(path),
            )
            set_path(init_msg, path, value)

        label = resolve(f"{unit.name}.label", configured=unit.label)
        admin = resolve(f"{unit.name}.admin", configured=unit.admin, default=self.owner)
        return ResolvedUnit(init_msg=init_msg, label=label, admin=admin)

    def upload(self, unit: UnitDescriptor) -> int:
        """Upload the unit's binary unless its code id is recorded"""
        def action(record: ArtifactRecord) -> int:
            path = self.binary_path(unit)
            logger.info(f"Uploading {unit.binary}...")
            return extract_code_id(self.gateway.upload(path))

        return self.ensure(unit.code_id_key, action)

    def instantiate(
        self,
        unit: UnitDescriptor,
        recorded: Optional[Dict[str, Any]] = None,
        defaults: Optional[Dict[str, Any]] = None,
        post: Optional[PostCondition] = None,
        address_key: Optional[str] = None,
    ) -> str:
        """
        Instantiate the unit from its recorded code id unless its address is recorded.

        The post-condition runs only when the contract was instantiated in
        this call, after the address has been saved.
        """
        resolved_holder: Dict[str, ResolvedUnit] = {}

        def action(record: ArtifactRecord) -> str:
            code_id = resolve(unit.code_id_key, recorded=record.get(unit.code_id_key))
            resolved = self.resolve_unit(unit, record, recorded=recorded, defaults=defaults)
            resolved_holder["unit"] = resolved
            logger.info(f"Instantiating {unit.name} from code id {code_id}...")
            result = self.gateway.instantiate(code_id, resolved.init_msg, resolved.label, resolved.admin)
            return extract_contract_address(result)

        address, created = self._ensure(address_key or unit.address_key, action)
        if created and post is not None:
            post(address, resolved_holder["unit"])
        return address

    def deploy(
        self,
        unit: UnitDescriptor,
        recorded: Optional[Dict[str, Any]] = None,
        defaults: Optional[Dict[str, Any]] = None,
        post: Optional[PostCondition] = None,
        address_key: Optional[str] = None,
    ) -> str:
        """
        Upload then instantiate as one logical unit.

        A recorded address means the unit is deployed: nothing is sent, even
        when the record carries no code id for it. Otherwise the code id is
        saved as soon as the upload lands, so a failed instantiate is retried
        on the next run without uploading again. Placeholders are resolved
        before the upload so missing configuration stops the step before any
        transaction is sent.
        """
        key = address_key or unit.address_key
        record = self.load()
        if record.has(key):
            logger.info(f"{key} already recorded: {record[key]}")
            return record[key]

        self.resolve_unit(unit, record, recorded=recorded, defaults=defaults)
        self.upload(unit)
        return self.instantiate(unit, recorded=recorded, defaults=defaults, post=post, address_key=key)
