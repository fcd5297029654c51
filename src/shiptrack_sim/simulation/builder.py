import csv
import logging
from pathlib import Path
from typing import Any

from shiptrack_sim.config.loader import load_world_definition
from shiptrack_sim.network.core import City, Coordinate
from shiptrack_sim.simulation.world import World

logger = logging.getLogger(__name__)


class WorldBuilder:
    """
    Builds the city catalog.

    Cities come from world_definition.json unless a static CSV
    (name, lat, lng, country, continent) is supplied instead.
    """

    def __init__(
        self,
        world_definition: dict[str, Any] | None = None,
        cities_csv: str | Path | None = None,
    ) -> None:
        self.world_config = (
            world_definition if world_definition is not None else load_world_definition()
        )
        self.cities_csv = Path(cities_csv) if cities_csv else None
        self.world = World()

    def build(self) -> World:
        if self.cities_csv is not None:
            logger.info("WorldBuilder: Loading cities from %s", self.cities_csv)
            self._load_cities_csv(self.cities_csv)
        else:
            logger.info("WorldBuilder: Loading cities from world definition")
            self._build_cities()

        logger.info(
            "WorldBuilder: %d cities across %d continents",
            len(self.world),
            len(self.world.continents),
        )
        return self.world

    def _build_cities(self) -> None:
        for name, entry in self.world_config.get("cities", {}).items():
            self.world.add_city(
                City(
                    name=name,
                    coordinate=Coordinate(float(entry["lat"]), float(entry["lng"])),
                    country=entry.get("country", ""),
                    continent=entry.get("continent", ""),
                )
            )

    def _load_cities_csv(self, path: Path) -> None:
        with open(path, encoding="utf-8") as f:
            reader = csv.DictReader(f)
            for row in reader:
                self.world.add_city(
                    City(
                        name=row["name"],
                        coordinate=Coordinate(float(row["lat"]), float(row["lng"])),
                        country=row.get("country", ""),
                        continent=row.get("continent", ""),
                    )
                )
