"""
Command-line interface for the constellation search tool.

This module provides a CLI for running design sweeps and the closed-form
coverage geometry helpers from the command line.
"""

from pathlib import Path
from typing import Optional
import logging
import sys

import click

from .config import ConfigurationError, create_sample_config_file, load_config
from .geometry import max_earth_central_angle, min_inclination_for_equal_coverage
from .parallel import ParallelSweep, cleanup_process_pool, create_default_engine
from .report import format_solution_table, write_reports
from .sweep import ParameterSweep
from .utils import setup_logging, format_duration

logger = logging.getLogger(__name__)


@click.group()
@click.option('--log-level', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set logging level')
@click.option('--log-file', type=click.Path(), help='Log file path')
def main(log_level: str, log_file: Optional[str]) -> None:
    """Constellation Search Tool - find constellations meeting a coverage-gap target."""
    setup_logging(log_level, log_file)
    logger.info("Starting Constellation Search CLI")


@main.command()
@click.option('--config', 'config_file', required=True, type=click.Path(exists=True),
              help='Path to YAML search configuration')
@click.option('--output', type=click.Path(),
              help='Output directory for reports (overrides output_path)')
@click.option('--workers', type=int,
              help='Worker processes (overrides workers; 1 = sequential)')
def run(config_file: str, output: Optional[str], workers: Optional[int]) -> None:
    """Run a constellation design sweep.

    Example:
    run --config search.yaml --output results/ --workers 4
    """
    try:
        config = load_config(config_file)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)

    n_workers = workers if workers is not None else config.workers
    output_path = output or config.output_path

    click.echo(f"Searching planes {config.min_planes}-{config.max_planes}, "
               f"sats per plane {config.min_sats_in_plane}-{config.max_sats_in_plane}, "
               f"MCG target {config.max_mcg} min over +/-{config.max_lat} deg")

    if n_workers > 1:
        try:
            result = ParallelSweep(config, max_workers=n_workers).run()
        finally:
            cleanup_process_pool()
    else:
        result = ParameterSweep(config, create_default_engine(config)).run()

    csv_path, log_path = write_reports(result.context, output_path)

    click.echo("\n=== Search Summary ===")
    click.echo(f"Minimum inclination: {result.min_inclination} deg")
    click.echo(f"Shapes evaluated: {result.evaluations}")
    click.echo(f"Discarded per level: {result.discarded}")
    click.echo(f"Elapsed: {format_duration(result.elapsed_seconds)}")

    if result.solutions:
        click.echo(f"\n{len(result.solutions)} solution(s):")
        click.echo(format_solution_table(result.solutions))
    else:
        click.echo("\nNo constellation met the coverage-gap target")

    click.echo(f"\nSolutions saved to: {csv_path}")
    click.echo(f"Run log saved to: {log_path}")


@main.command()
@click.option('--semi-major-axis', required=True, type=float,
              help='Semi-major axis in km')
@click.option('--eccentricity', default=0.0, type=float,
              help='Eccentricity (default: 0.0)')
@click.option('--visibility-threshold', default=10.0, type=float,
              help='Minimum elevation in degrees (default: 10.0)')
@click.option('--max-lat', required=True, type=float,
              help='Upper edge of the latitude band in degrees')
def min_inclination(
    semi_major_axis: float,
    eccentricity: float,
    visibility_threshold: float,
    max_lat: float
) -> None:
    """Compute the minimum inclination for equal equator/band-edge coverage."""
    lambda_max = max_earth_central_angle(semi_major_axis, eccentricity, visibility_threshold)
    inclination = min_inclination_for_equal_coverage(
        semi_major_axis, eccentricity, visibility_threshold, max_lat
    )

    click.echo(f"Maximum Earth central angle: {lambda_max:.4f} deg")
    click.echo(f"Minimum inclination: {round(inclination, 2)} deg")


@main.command()
@click.option('--output', required=True, type=click.Path(),
              help='Output YAML file path')
def create_sample_config(output: str) -> None:
    """Create a sample search configuration file."""
    path = create_sample_config_file(Path(output))
    click.echo(f"Sample configuration created: {path}")


if __name__ == '__main__':
    main()
