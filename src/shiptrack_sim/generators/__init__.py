"""Generators module for synthetic customer and package data."""

from shiptrack_sim.generators.static_pool import StaticDataPool

__all__ = [
    "StaticDataPool",
]
