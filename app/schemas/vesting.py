"""Vesting request/response schemas.

Token amounts are decimal strings: they routinely exceed 2**53.
"""

from app.schemas.common import CamelModel
from tokenledger.services._types import LockInfoDict


class LockCountResponse(CamelModel):
    count: int


class LockResponse(CamelModel):
    id: int
    asset: str
    beneficiary: str
    duration: int
    periodicity: int
    total_amount: str
    cliff_time: int
    released: str
    status: str | None = None
    next_unlock_time: int | None = None

    @classmethod
    def from_info(
        cls,
        info: LockInfoDict,
        status: str | None = None,
        next_unlock_time: int | None = None,
    ) -> "LockResponse":
        return cls(
            id=info["id"],
            asset=info["asset"],
            beneficiary=info["beneficiary"],
            duration=info["duration"],
            periodicity=info["periodicity"],
            total_amount=str(info["total_amount"]),
            cliff_time=info["cliff_time"],
            released=str(info["released"]),
            status=status,
            next_unlock_time=next_unlock_time,
        )


class AvailableResponse(CamelModel):
    lock_id: int
    available: str


class ReleaseResponse(CamelModel):
    lock_id: int
    beneficiary: str
    released: str
