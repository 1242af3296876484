"""Priority-ordered resolution of area codes to boundary features."""

from __future__ import annotations

import re
from dataclasses import dataclass

from service_finder.boundaries.datasets import BoundaryDataset
from service_finder.common.errors import ConfigError
from service_finder.common.models import BoundaryFeature
from service_finder.common.postcode import normalise_code

MATCHED = "matched"
WALES_FALLBACK = "wales_fallback"
NOT_FOUND = "not_found"


@dataclass(frozen=True)
class WalesPolicy:
    aggregate_dataset: str
    sub_region_dataset: str
    postcode_areas: tuple[str, ...]
    whole_country_codes: tuple[str, ...]

    @classmethod
    def from_config(cls, wales_cfg: dict) -> "WalesPolicy":
        return cls(
            aggregate_dataset=wales_cfg["aggregate_dataset"],
            sub_region_dataset=wales_cfg["sub_region_dataset"],
            postcode_areas=tuple(normalise_code(area) for area in wales_cfg["postcode_areas"]),
            whole_country_codes=tuple(normalise_code(code) for code in wales_cfg["whole_country_codes"]),
        )

    def __post_init__(self) -> None:
        areas = "|".join(re.escape(area) for area in sorted(self.postcode_areas, key=len, reverse=True))
        # An area ("cf") or one of its districts ("cf10", "sa1", "ll11a").
        pattern = re.compile(rf"^(?:{areas})(?:\d{{1,2}}[a-z]?)?$") if areas else None
        object.__setattr__(self, "_area_re", pattern)

    def is_welsh_code(self, key: str) -> bool:
        if key in self.whole_country_codes:
            return True
        return bool(self._area_re and self._area_re.match(key))


@dataclass(frozen=True)
class Resolution:
    code: str
    status: str
    feature: BoundaryFeature | None = None

    @property
    def dataset(self) -> str | None:
        return self.feature.dataset if self.feature else None


class CodeResolver:
    """Resolves service area codes against datasets in configured priority order."""

    def __init__(
        self,
        datasets: dict[str, BoundaryDataset],
        priority: list[str],
        wales: WalesPolicy,
    ) -> None:
        missing = [name for name in [*priority, wales.aggregate_dataset, wales.sub_region_dataset] if name not in datasets]
        if missing:
            raise ConfigError(f"Resolver references unloaded datasets: {', '.join(missing)}")

        self.datasets = datasets
        self.priority = list(priority)
        self.wales = wales
        self._indexes = {name: self._build_index(dataset) for name, dataset in datasets.items()}

    @classmethod
    def from_config(cls, datasets: dict[str, BoundaryDataset], boundaries_cfg: dict) -> "CodeResolver":
        return cls(datasets, boundaries_cfg["priority"], WalesPolicy.from_config(boundaries_cfg["wales"]))

    @staticmethod
    def _build_index(dataset: BoundaryDataset) -> dict[str, BoundaryFeature]:
        index: dict[str, BoundaryFeature] = {}
        for feature in dataset.features:
            # First feature carrying a code wins inside a dataset too.
            index.setdefault(normalise_code(feature.code), feature)
        return index

    def _lookup(self, dataset_name: str, key: str) -> BoundaryFeature | None:
        return self._indexes[dataset_name].get(key)

    def resolve(self, code: str) -> Resolution:
        key = normalise_code(code)
        if not key:
            return Resolution(code=code, status=NOT_FOUND)

        if self.wales.is_welsh_code(key):
            feature = self._lookup(self.wales.sub_region_dataset, key)
            if feature is not None:
                return Resolution(code=code, status=MATCHED, feature=feature)
            return Resolution(code=code, status=WALES_FALLBACK)

        for dataset_name in self.priority:
            feature = self._lookup(dataset_name, key)
            if feature is not None:
                return Resolution(code=code, status=MATCHED, feature=feature)
        return Resolution(code=code, status=NOT_FOUND)

    def wales_features(self) -> list[BoundaryFeature]:
        return list(self.datasets[self.wales.aggregate_dataset].features)

    def locate(self, code: str) -> list[BoundaryFeature]:
        """Every dataset entry for ``code``: priority datasets first, then the rest in config order."""
        key = normalise_code(code)
        ordered = self.priority + [name for name in self.datasets if name not in self.priority]
        hits = []
        for dataset_name in ordered:
            feature = self._lookup(dataset_name, key)
            if feature is not None:
                hits.append(feature)
        return hits

    def unavailable_datasets(self) -> list[str]:
        return [name for name, dataset in self.datasets.items() if not dataset.available]
