"""Command-line interface for the coffee fleet simulator."""

import json
import logging
import sys
import time
from collections import Counter
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from . import __version__
from .client import FleetClient
from .config import Config
from .errors import ConfigError
from .messages import Message
from .monitor import FleetMonitor
from .scheduler import ManualScheduler
from .topics import Topics

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def _load_config(config_path: Optional[Path], seed: Optional[int] = None) -> Config:
    """Load YAML (if given), apply environment overrides and validate."""
    try:
        base = Config.from_yaml(config_path) if config_path else None
        config = Config.from_env(base)
        if seed is not None:
            config.simulation.random_seed = seed
        return config.validate()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to config.yaml (defaults plus environment overrides if omitted)",
)

seed_option = click.option(
    "--seed",
    type=int,
    default=None,
    help="Random seed for reproducible telemetry",
)


@click.group()
@click.version_option(version=__version__)
def main():
    """Coffee Fleet Simulator - simulated real-time telemetry for a
    corporate coffee machine fleet.

    Publishes per-machine status and usage updates and fleet-wide
    low-supply alerts through an in-process publish/subscribe client.

    Environment variables (also read from a .env file):
      COFFEE_FLEET_TICK_MS, COFFEE_FLEET_SEED, COFFEE_FLEET_CONNECT_DELAY_MS,
      COFFEE_FLEET_TOPIC_PREFIX, COFFEE_FLEET_ALERTS_TOPIC, COFFEE_FLEET_MACHINES
    """
    load_dotenv()


@main.command()
@config_option
@seed_option
@click.option(
    "--duration",
    "-d",
    type=click.FloatRange(min=0),
    default=None,
    help="Stop after this many seconds (default: run until Ctrl+C)",
)
@click.option(
    "--filter",
    "-f",
    "topic_filter",
    default="#",
    help="MQTT-style topic filter for printed messages (default: # for all)",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def run(config_path, seed, duration, topic_filter, verbose):
    """Connect and print live telemetry.

    Subscribes to every topic the fleet publishes, prints the messages that
    match --filter as JSON, and prints client statistics on exit.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = _load_config(config_path, seed)
    client = FleetClient(config)
    monitor = FleetMonitor(client).start()

    def on_message(message: Message) -> None:
        click.echo(json.dumps(message.to_dict()))

    subscriptions = [
        client.subscribe(topic, on_message)
        for topic in client.topics.all_topics(config.machine_ids)
        if Topics.matches(topic_filter, topic)
    ]
    if not subscriptions:
        logger.warning(f"Filter {topic_filter!r} matches no fleet topics")

    click.echo(f"Fleet: {', '.join(config.machine_ids)}")
    click.echo(f"Tick:  {config.simulation.tick_interval_ms}ms")
    click.echo(f"Topics: {client.topics.prefix}/<machine>/status|usage, {client.topics.alerts}")
    click.echo("Press Ctrl+C to stop")
    click.echo("-" * 40)

    timeout = config.connection.connect_delay_ms / 1000.0 + 5.0
    try:
        if not client.connect().result(timeout=timeout):
            click.echo("Error: failed to connect", err=True)
            sys.exit(1)

        deadline = time.monotonic() + duration if duration is not None else None
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.1)
    except KeyboardInterrupt:
        click.echo("\nShutting down...")
    finally:
        for sub in subscriptions:
            sub.dispose()
        monitor.stop()
        client.disconnect()

    click.echo("-" * 40)
    click.echo(json.dumps({"stats": client.stats(), "fleet": monitor.summary()}, indent=2))


@main.command()
@config_option
@seed_option
@click.option(
    "--ticks",
    "-t",
    type=click.IntRange(min=1),
    default=100,
    help="Number of simulation ticks to run (default: 100)",
)
def simulate(config_path, seed, ticks):
    """Run ticks offline on a virtual clock and summarize the output.

    No real time passes; useful for checking alert rates and value ranges.
    """
    config = _load_config(config_path, seed)
    scheduler = ManualScheduler(start=time.time())
    client = FleetClient(config, scheduler=scheduler)

    counts: Counter = Counter()

    def count(message: Message) -> None:
        counts[message.kind.value if message.kind else "unknown"] += 1

    for topic in client.topics.all_topics(config.machine_ids):
        client.subscribe(topic, count)

    with FleetMonitor(client) as monitor:
        client.connect()
        scheduler.advance(config.connection.connect_delay_ms / 1000.0)
        # Half an interval of slack so float rounding cannot drop the last tick
        scheduler.advance((ticks + 0.5) * client.driver.interval)
        client.disconnect()

        click.echo(f"Ticks:    {client.driver.tick_count}")
        for kind in ("status", "usage", "alert"):
            click.echo(f"{kind.capitalize() + ':':<9} {counts[kind]}")
        summary = monitor.summary()
        click.echo(
            f"Fleet:    {summary['machines']} machines, "
            f"{summary['operational']} operational, {summary['maintenance']} maintenance, "
            f"{summary['offline']} offline"
        )
        click.echo()
        for snapshot in monitor.snapshots():
            status = snapshot.status
            if status is None:
                click.echo(f"  {snapshot.machine_id}: no data")
                continue
            low = ", ".join(s.value for s in monitor.low_supplies(snapshot.machine_id))
            click.echo(
                f"  {snapshot.machine_id}: {status.status.value:<12} "
                f"{status.temperature:5.1f}C {status.pressure:4.1f}bar "
                f"water {status.water_level:5.1f}% milk {status.milk_level:5.1f}%"
                + (f"  LOW: {low}" if low else "")
            )
        alerts = monitor.recent_alerts(limit=5)
        if alerts:
            click.echo()
            click.echo("Recent alerts:")
            for alert in alerts:
                click.echo(f"  {alert.machine_id} {alert.supply.value} at {alert.level}%")


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=Path("config"),
    help="Output directory for config files",
)
@click.option(
    "--machines",
    "-m",
    type=click.IntRange(min=1),
    default=None,
    help="Generate a sample fleet with this many machines",
)
@seed_option
def init(output, machines, seed):
    """Generate a sample configuration file.

    Creates config.yaml with connection, topic and simulation settings plus
    the fleet (the three demo machines, or a generated fleet with --machines).
    """
    output.mkdir(parents=True, exist_ok=True)

    cfg = Config.sample(machines, seed=seed) if machines else Config.default()
    config_path = output / "config.yaml"
    cfg.to_yaml(config_path)

    click.echo(f"Created: {config_path}")
    click.echo(f"  Machines: {len(cfg.machines)} in {len(cfg.hierarchy())} locations")
    click.echo()
    click.echo("Edit the config file to customize:")
    click.echo("  - Fleet (location, office, floor per machine)")
    click.echo("  - Topic prefix and alerts topic")
    click.echo("  - Tick interval and probabilities")
    click.echo()
    click.echo(f"Run with: coffee-fleet-sim run --config {config_path}")


@main.command()
@config_option
def fleet(config_path):
    """Show the location -> office -> machine hierarchy."""
    config = _load_config(config_path)
    for location, offices in config.hierarchy().items():
        click.echo(location)
        for office, machines in offices.items():
            click.echo(f"  {office}")
            for machine in machines:
                floor = f" ({machine.floor})" if machine.floor else ""
                click.echo(f"    {machine.machine_id}  {machine.name}{floor}")


@main.command()
def status():
    """Show topic structure and simulation defaults."""
    config = Config.default()
    sim = config.simulation

    click.echo("Coffee Fleet Simulator")
    click.echo("=" * 40)
    click.echo()
    click.echo("Topic Structure:")
    click.echo(f"  {config.topics.prefix}/{{machine_id}}/status  (every tick)")
    click.echo(f"  {config.topics.prefix}/{{machine_id}}/usage   (p={sim.usage_probability} per machine)")
    click.echo(f"  {config.topics.alerts_topic}                  (p={sim.alert_probability} per tick)")
    click.echo()
    click.echo("Defaults:")
    click.echo(f"  Tick interval:  {sim.tick_interval_ms}ms")
    click.echo(f"  Connect delay:  {config.connection.connect_delay_ms}ms")
    click.echo(f"  Machines:       {', '.join(config.machine_ids)}")
    click.echo()
    click.echo("Status payload fields:")
    click.echo("  machineId, status, temperature (88-96), pressure (13-17),")
    click.echo("  waterLevel, milkLevel, coffeeBeansLevel, sugarLevel (0-100),")
    click.echo("  powerUsage (0-100), currentOrder, queueLength")


if __name__ == "__main__":
    main()
