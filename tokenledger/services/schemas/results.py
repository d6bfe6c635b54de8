"""Result dataclasses returned by service operations."""

from dataclasses import dataclass, field


@dataclass
class ReleaseResult:
    beneficiary: str
    released_by_lock: dict[int, int] = field(default_factory=dict)
    released_by_asset: dict[str, int] = field(default_factory=dict)

    @property
    def total_released(self) -> int:
        return sum(self.released_by_asset.values())


@dataclass
class BatchReleaseResult:
    results: list[ReleaseResult]
    failed: dict[str, str]
    errors: list[str]

    @property
    def beneficiaries_released(self) -> int:
        return sum(1 for r in self.results if r.total_released > 0)
