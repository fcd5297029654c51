"""Tests for WorldBuilder and the city catalog."""

import pytest

from shiptrack_sim.config.loader import load_world_definition
from shiptrack_sim.network.core import City, Coordinate
from shiptrack_sim.simulation.builder import WorldBuilder
from shiptrack_sim.simulation.world import World


def test_world_builder_from_definition():
    world = WorldBuilder(load_world_definition()).build()

    assert len(world) == 70
    tokyo = world.get_city("Tokyo")
    assert tokyo is not None
    assert tokyo.coordinate == Coordinate(35.6762, 139.6503)
    assert tokyo.country == "Japan"
    assert world.has_city("São Paulo")
    assert world.get_city("Atlantis") is None

    assert world.continents[0] == "North America"
    assert "Oceania" in world.continents


def test_world_builder_from_csv(tmp_path):
    path = tmp_path / "cities.csv"
    path.write_text(
        "name,lat,lng,country,continent\n"
        "Lima,-12.0464,-77.0428,Peru,South America\n"
        "Cairo,30.0444,31.2357,Egypt,Africa\n",
        encoding="utf-8",
    )
    world = WorldBuilder({}, cities_csv=path).build()

    assert len(world) == 2
    assert world.get_city("Cairo").continent == "Africa"
    assert world.continents == ["South America", "Africa"]


def test_duplicate_city_rejected():
    world = World()
    world.add_city(City("Lima", Coordinate(-12.0464, -77.0428)))
    with pytest.raises(ValueError):
        world.add_city(City("Lima", Coordinate(0.0, 0.0)))
