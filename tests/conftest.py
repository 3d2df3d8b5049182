"""Shared fixtures: a seeded config and a client on a virtual clock."""

import random

import pytest

from coffee_fleet_sim.client import FleetClient
from coffee_fleet_sim.config import Config
from coffee_fleet_sim.scheduler import ManualScheduler


@pytest.fixture
def config():
    cfg = Config.default()
    cfg.simulation.random_seed = 42
    return cfg


@pytest.fixture
def scheduler():
    return ManualScheduler(start=1000.0)


@pytest.fixture
def client(config, scheduler):
    return FleetClient(config, scheduler=scheduler, rng=random.Random(42))


@pytest.fixture
def connected_client(client, scheduler):
    future = client.connect()
    scheduler.advance(client.config.connection.connect_delay_ms / 1000.0)
    assert future.result(timeout=0) is True
    return client
