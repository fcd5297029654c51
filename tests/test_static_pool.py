import pytest

from shiptrack_sim.config.loader import load_simulation_config, load_world_definition
from shiptrack_sim.generators import StaticDataPool

SIZES = {"names": 25, "phone_numbers": 25}


def test_pool_sizes():
    pool = StaticDataPool(seed=1, pool_sizes=SIZES)
    assert len(pool.names) == 25
    assert len(pool.phone_numbers) == 25
    assert pool.package_types == ["General Cargo"]


def test_pool_reproducible():
    a = StaticDataPool(seed=3, pool_sizes=SIZES)
    b = StaticDataPool(seed=3, pool_sizes=SIZES)
    assert a.names == b.names
    assert [a.customer_name() for _ in range(10)] == [b.customer_name() for _ in range(10)]
    assert [a.weight_kg() for _ in range(10)] == [b.weight_kg() for _ in range(10)]


def test_weight_sampling():
    pool = StaticDataPool(seed=5, pool_sizes=SIZES, weight_range_kg=(1.0, 26.0))
    for _ in range(200):
        w = pool.weight_kg()
        assert 1.0 <= w <= 26.0
        assert w == round(w, 1)

    with pytest.raises(ValueError):
        StaticDataPool(pool_sizes=SIZES, weight_range_kg=(0.0, 5.0))
    with pytest.raises(ValueError):
        StaticDataPool(pool_sizes=SIZES, weight_range_kg=(10.0, 5.0))


def test_city_pair():
    pool = StaticDataPool(seed=9, pool_sizes=SIZES)
    names = ["Lima", "Bogotá", "Santiago"]
    for _ in range(50):
        origin, destination = pool.city_pair(names)
        assert origin != destination
        assert origin in names and destination in names

    with pytest.raises(ValueError):
        pool.city_pair(["Lima"])


def test_from_config():
    config = load_simulation_config()
    config["simulation_parameters"]["generators"]["pool_sizes"] = SIZES
    world_definition = load_world_definition()

    pool = StaticDataPool.from_config(config, world_definition)
    assert pool.seed == 42
    assert pool.package_types == world_definition["package_types"]
    assert pool.package_name() in world_definition["package_types"]
    assert pool.weight_range_kg == (1.0, 26.0)
