class DistributionError(Exception):
    """Base class for exceptions in this module.

    Attributes:
        message -- explanation of this error
    """

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class DuplicateJob(DistributionError):
    """Raised when a hackathon already has a SCHEDULED or PROCESSING job.
    Callers treat this as "already scheduled".
    """

    def __init__(self, hackathon_id):
        super().__init__(
            f"Hackathon {hackathon_id} already has an open distribution job"
        )
        self.hackathon_id = hackathon_id


class InvalidTransition(DistributionError):
    def __init__(self, entity, entity_id, from_status, to_status):
        super().__init__(
            f"{entity} {entity_id} cannot move from {from_status} to {to_status}"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.from_status = from_status
        self.to_status = to_status


class InvalidWinners(DistributionError):
    pass


class JobNotFound(DistributionError):
    def __init__(self, hackathon_id, message=None):
        super().__init__(
            message or f"No distribution job found for hackathon {hackathon_id}"
        )
        self.hackathon_id = hackathon_id


class EmergencyStopActive(DistributionError):
    def __init__(self, message="Emergency stop is active"):
        super().__init__(message)


class OperationRejected(DistributionError):
    pass


class AuditWriteError(DistributionError):
    """Raised when an audit entry could not be written.

    Attributes:
        trigger -- error that triggered this one
    """

    def __init__(self, trigger, message="Failed to write audit entry"):
        super().__init__(message)
        self.trigger = trigger


class StuckAttemptMined(DistributionError):
    """Raised when a stuck attempt turns out to be mined, so it must not be
    replaced before the monitor settles it.
    """

    def __init__(self, tx_hash):
        super().__init__(f"Stuck transaction {tx_hash} was mined")
        self.tx_hash = tx_hash
