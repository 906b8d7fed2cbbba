class Error(Exception):
    """Base class for exceptions in this module."""

    pass


class InvalidStatusTransition(Error):
    def __init__(self, from_status, to_status):
        self.from_status = from_status
        self.to_status = to_status
        self.message = f"Cannot move hackathon from {from_status} to {to_status}"
        super().__init__(self.message)


class WinnersAlreadyFinalized(Error):
    def __init__(self, hackathon_id):
        self.message = f"Winners for hackathon {hackathon_id} are already finalized"
        super().__init__(self.message)


class HackathonNotCompleted(Error):
    def __init__(self, hackathon_id, status):
        self.message = (
            f"Hackathon {hackathon_id} is {status}, winners can only be "
            "finalized once it is COMPLETED"
        )
        super().__init__(self.message)
