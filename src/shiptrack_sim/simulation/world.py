from shiptrack_sim.network.core import City


class World:
    """
    The container for the static city catalog.
    Populated once by the WorldBuilder, read-only for the engine afterwards.
    """

    def __init__(self) -> None:
        self.cities: dict[str, City] = {}

    def add_city(self, city: City) -> None:
        if city.name in self.cities:
            raise ValueError(f"City {city.name} already exists")
        self.cities[city.name] = city

    def get_city(self, name: str) -> City | None:
        return self.cities.get(name)

    def has_city(self, name: str) -> bool:
        return name in self.cities

    @property
    def continents(self) -> list[str]:
        """Distinct continents, in catalog order."""
        seen: dict[str, None] = {}
        for city in self.cities.values():
            seen.setdefault(city.continent, None)
        return list(seen)

    def __len__(self) -> int:
        return len(self.cities)
