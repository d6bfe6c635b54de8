"""Worker: release everything vested to beneficiaries, acting as the controller.

Usage:
    python -m worker.release_vested                          # every beneficiary
    python -m worker.release_vested --beneficiary alice --beneficiary bob
"""

import argparse
import sys

import structlog

from config import get_settings
from db.connection import get_session
from tokenledger.services.ledgers import vesting_ledger

logger = structlog.get_logger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Release vested tokens to beneficiaries")
    parser.add_argument(
        "--beneficiary", "-b", action="append", default=None,
        help="Beneficiary to release for (repeatable; default: all)",
    )
    args = parser.parse_args(argv)

    controller: str = get_settings().ledger.controller

    with get_session() as session:
        ledger = vesting_ledger(session)
        beneficiaries: list[str] = args.beneficiary or ledger.beneficiaries()

        logger.info("Starting release", beneficiaries=len(beneficiaries))
        result = ledger.batch_release_to_beneficiaries(controller, beneficiaries)

    logger.info(
        "Release complete",
        beneficiaries=len(beneficiaries),
        beneficiaries_released=result.beneficiaries_released,
        failed=len(result.failed),
    )
    for r in result.results:
        for asset, amount in r.released_by_asset.items():
            logger.info("released", beneficiary=r.beneficiary, asset=asset, amount=str(amount))

    if result.errors:
        for err in result.errors[:10]:
            logger.error("release_error", detail=err)
        sys.exit(1)


if __name__ == "__main__":
    main()
