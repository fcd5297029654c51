"""
StaticDataPool - Pre-generated Faker data for filling in shipment metadata.

Requests may omit the customer, phone number, package name or weight. Rather
than calling Faker per request, pools are generated once and sampled with a
seeded NumPy generator so runs are reproducible.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
from faker import Faker

if TYPE_CHECKING:
    from numpy.random import Generator

DEFAULT_POOL_SIZES = {
    "names": 500,
    "phone_numbers": 500,
}

DEFAULT_WEIGHT_RANGE_KG = (1.0, 26.0)


class StaticDataPool:
    """
    Pre-generated pool of Faker data for efficient sampling.

    Attributes:
        seed: Random seed for reproducibility
        names: Pool of customer names
        phone_numbers: Pool of phone numbers
        package_types: Package descriptions from the world definition
    """

    def __init__(
        self,
        seed: int = 42,
        pool_sizes: dict[str, int] | None = None,
        package_types: list[str] | None = None,
        weight_range_kg: tuple[float, float] = DEFAULT_WEIGHT_RANGE_KG,
    ) -> None:
        self.seed = seed
        self._rng: Generator = np.random.default_rng(seed)

        sizes = {**DEFAULT_POOL_SIZES, **(pool_sizes or {})}

        self._faker = Faker()
        Faker.seed(seed)

        self.names: list[str] = self._generate_pool(self._faker.name, sizes["names"])
        self.phone_numbers: list[str] = self._generate_pool(
            self._faker.phone_number, sizes["phone_numbers"]
        )
        self.package_types: list[str] = list(package_types or ["General Cargo"])

        low, high = weight_range_kg
        if not 0 < low <= high:
            raise ValueError(f"Invalid weight range: {weight_range_kg}")
        self.weight_range_kg = (float(low), float(high))

    @classmethod
    def from_config(
        cls, config: dict[str, Any], world_definition: dict[str, Any]
    ) -> StaticDataPool:
        sim_params = config.get("simulation_parameters", {})
        gen_config = sim_params.get("generators", {})
        ship_config = sim_params.get("shipments", {})
        low, high = ship_config.get("weight_range_kg", DEFAULT_WEIGHT_RANGE_KG)
        return cls(
            seed=int(gen_config.get("seed", 42)),
            pool_sizes=gen_config.get("pool_sizes"),
            package_types=world_definition.get("package_types"),
            weight_range_kg=(float(low), float(high)),
        )

    def _generate_pool(self, generator_func: Any, size: int) -> list[str]:
        """
        Generate a pool of unique values using a Faker generator function.
        Falls back to duplicates if uniqueness cannot be reached in 3x attempts.
        """
        pool: list[str] = []
        seen: set[str] = set()
        max_attempts = size * 3
        attempts = 0

        while len(pool) < size and attempts < max_attempts:
            value = str(generator_func())
            if value not in seen:
                seen.add(value)
                pool.append(value)
            attempts += 1

        while len(pool) < size:
            pool.append(str(generator_func()))

        return pool

    def _pick(self, pool: list[str]) -> str:
        return pool[int(self._rng.integers(len(pool)))]

    def customer_name(self) -> str:
        return self._pick(self.names)

    def phone_number(self) -> str:
        return self._pick(self.phone_numbers)

    def package_name(self) -> str:
        return self._pick(self.package_types)

    def weight_kg(self) -> float:
        low, high = self.weight_range_kg
        return round(float(self._rng.uniform(low, high)), 1)

    def city_pair(self, city_names: list[str]) -> tuple[str, str]:
        """Two distinct cities, for demo traffic."""
        if len(city_names) < 2:
            raise ValueError("Need at least two cities to pick a route")
        i, j = self._rng.choice(len(city_names), size=2, replace=False)
        return city_names[int(i)], city_names[int(j)]
