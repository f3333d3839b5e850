"""
Errors raised while deploying.

Every error aborts the current run; recovery is a re-run, which skips the
steps already present in the artifact record.
"""

from typing import Optional, Union


class DeploymentError(Exception):
    """Base class for deployment errors"""


class PreconditionError(DeploymentError):
    """Missing environment or configuration, or wrong chain"""


class MissingParameterError(PreconditionError):
    """A required parameter has no recorded, configured or default value"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Set required param: {name}")


class PrerequisiteError(DeploymentError):
    """A step needs a record key that an earlier step should have produced"""

    def __init__(self, key: str, producer: str):
        self.key = key
        self.producer = producer
        super().__init__(f"{key} is not set, run '{producer}' first")


class TransactionError(DeploymentError):
    """The chain rejected a transaction"""

    def __init__(self, code: Union[int, str], tx_hash: Optional[str], raw_log: Optional[str]):
        self.code = code
        self.tx_hash = tx_hash
        self.raw_log = raw_log
        super().__init__(f"transaction failed (code={code}, hash={tx_hash}): {raw_log}")


class ExtractionError(DeploymentError):
    """A chain response did not have the expected shape"""


class PostConditionError(DeploymentError):
    """The on-chain state after a step does not match what was requested"""


class ArtifactParseError(DeploymentError):
    """The persisted artifact record could not be parsed"""


class RecordConflictError(DeploymentError):
    """Attempt to overwrite an already populated record key"""
