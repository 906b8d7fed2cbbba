"""Admin operations accepted by the emergency control plane."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ManualDistribution:
    hackathon_id: int
    reason: str
    bypass_checks: bool = False


@dataclass(frozen=True)
class StatusOverride:
    hackathon_id: int
    from_status: str
    to_status: str
    reason: str
    bypass_validation: bool = False


@dataclass(frozen=True)
class Cancellation:
    hackathon_id: int
    reason: str
    refund_prize_pool: bool = False


@dataclass(frozen=True)
class ForceRetry:
    hackathon_id: int
    custom_gas_price: int | None = None
    custom_gas_limit: int | None = None
    reason: str = ""


EmergencyOperation = ManualDistribution | StatusOverride | Cancellation | ForceRetry
