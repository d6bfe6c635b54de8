"""Lock schedule endpoints."""

from fastapi import APIRouter, Depends

from app.dependencies import get_api_key, get_caller, get_vesting_ledger
from app.schemas.vesting import AvailableResponse, LockCountResponse, LockResponse, ReleaseResponse
from tokenledger.services.vesting import VestingLedger

router = APIRouter(prefix="/api", tags=["vesting"])


@router.get("/locks/count", response_model=LockCountResponse)
def lock_count(ledger: VestingLedger = Depends(get_vesting_ledger)) -> LockCountResponse:
    return LockCountResponse(count=ledger.lock_count())


@router.get("/locks/{lock_id}", response_model=LockResponse)
def get_lock(lock_id: int, ledger: VestingLedger = Depends(get_vesting_ledger)) -> LockResponse:
    status = ledger.lock_status(lock_id)  # LockNotFound -> 404
    return LockResponse.from_info(
        ledger.lock_info(lock_id),
        status=status.value,
        next_unlock_time=ledger.next_unlock_time(lock_id),
    )


@router.get("/locks/{lock_id}/available", response_model=AvailableResponse)
def get_available(
    lock_id: int, ledger: VestingLedger = Depends(get_vesting_ledger)
) -> AvailableResponse:
    return AvailableResponse(lock_id=lock_id, available=str(ledger.get_available_amount(lock_id)))


@router.get("/beneficiaries/{account}/locks", response_model=list[LockResponse])
def list_beneficiary_locks(
    account: str, ledger: VestingLedger = Depends(get_vesting_ledger)
) -> list[LockResponse]:
    return [LockResponse.from_info(info) for info in ledger.locks_of(account)]


@router.post(
    "/locks/{lock_id}/release", response_model=ReleaseResponse, dependencies=[Depends(get_api_key)]
)
def release_lock(
    lock_id: int,
    caller: str = Depends(get_caller),
    ledger: VestingLedger = Depends(get_vesting_ledger),
) -> ReleaseResponse:
    released = ledger.release_all_available(caller, lock_id)
    return ReleaseResponse(lock_id=lock_id, beneficiary=caller, released=str(released))
