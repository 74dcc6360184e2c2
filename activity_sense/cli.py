"""
Command-line interface for Activity Sense
"""

import json
import logging
import sys
from typing import Optional, Tuple

import click

from activity_sense.config.settings import get_settings, load_settings_from_file
from activity_sense.logger import setup_logging, get_logger
from activity_sense.commands.features import features_command
from activity_sense.commands.simulate import simulate_command
from activity_sense.sensing.evaluation import evaluate_counts

# Get default settings and setup logging for CLI
settings = get_settings()
setup_logging(settings)
logger = get_logger(__name__)


def get_settings_with_config(config_file: Optional[str] = None):
    """Get settings with optional config file."""
    if config_file:
        return load_settings_from_file(config_file)
    else:
        return get_settings()


@click.group()
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration (.env) file'
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging'
)
@click.option(
    '--debug',
    is_flag=True,
    help='Enable debug mode'
)
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool, debug: bool):
    """Activity Sense command line interface."""

    ctx.ensure_object(dict)

    ctx.obj['config_file'] = config
    ctx.obj['verbose'] = verbose
    ctx.obj['debug'] = debug

    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")
    elif verbose:
        logging.getLogger().setLevel(logging.INFO)
        logger.info("Verbose mode enabled")


@cli.command()
@click.argument('csv_path', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--format',
    type=click.Choice(['text', 'json']),
    default='text',
    help='Output format (default: text)'
)
@click.pass_context
def features(ctx, csv_path: str, format: str):
    """Print the 22 features of every complete frame in CSV_PATH."""

    try:
        settings = get_settings_with_config(ctx.obj.get('config_file'))
        features_command(settings=settings, csv_path=csv_path, output_format=format)

    except Exception as e:
        logger.error(f"Failed to extract features: {e}")
        sys.exit(1)


@cli.command()
@click.option(
    '--segment',
    '-s',
    'segments',
    multiple=True,
    default=('stationary:10', 'walking:30', 'running:20'),
    show_default=True,
    help='Scripted activity segment as activity:seconds (repeatable)'
)
@click.option(
    '--evaluate',
    is_flag=True,
    help='Drive ground truth from the script and report precision/recall/F1'
)
@click.option(
    '--classifier',
    type=click.Choice(['onnx', 'joblib', 'threshold']),
    default=None,
    help='Classifier backend (default: from configuration)'
)
@click.option(
    '--model',
    type=str,
    default=None,
    help='Model asset file name inside the asset directory'
)
@click.option(
    '--seed',
    default=42,
    type=int,
    help='Random seed of the simulated signal (default: 42)'
)
@click.option(
    '--realtime',
    is_flag=True,
    help='Deliver samples at the configured sampling rate'
)
@click.option(
    '--format',
    type=click.Choice(['text', 'json']),
    default='text',
    help='Output format (default: text)'
)
@click.pass_context
def simulate(
    ctx,
    segments: Tuple[str, ...],
    evaluate: bool,
    classifier: Optional[str],
    model: Optional[str],
    seed: int,
    realtime: bool,
    format: str,
):
    """Run a simulated recording session."""

    try:
        settings = get_settings_with_config(ctx.obj.get('config_file'))

        overrides = {}
        if classifier:
            overrides['classifier_backend'] = classifier
        if model:
            overrides['model_asset_name'] = model
        if ctx.obj.get('debug'):
            overrides['debug'] = True
        if overrides:
            settings = settings.model_copy(update=overrides)

        simulate_command(
            settings=settings,
            segments=list(segments),
            evaluate=evaluate,
            seed=seed,
            realtime=realtime,
            output_format=format,
        )

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, stopping simulation...")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Simulation failed: {e}")
        sys.exit(1)


@cli.command()
@click.argument('actual_walk', type=click.IntRange(min=0))
@click.argument('predicted_walk', type=click.IntRange(min=0))
@click.argument('actual_run', type=click.IntRange(min=0))
@click.argument('predicted_run', type=click.IntRange(min=0))
@click.option(
    '--format',
    type=click.Choice(['text', 'json']),
    default='text',
    help='Output format (default: text)'
)
def evaluate(actual_walk: int, predicted_walk: int, actual_run: int, predicted_run: int, format: str):
    """Score predicted walking/running frame counts against ground truth."""

    result = evaluate_counts(actual_walk, predicted_walk, actual_run, predicted_run)

    if format == 'json':
        click.echo(json.dumps(result.as_dict(), indent=2))
    else:
        click.echo(f"Precision: {result.precision:.3f}")
        click.echo(f"Recall:    {result.recall:.3f}")
        click.echo(f"F1 score:  {result.f1:.3f}")


@cli.group()
def config():
    """Configuration commands."""
    pass


@config.command()
@click.pass_context
def show(ctx):
    """Show current configuration."""

    try:
        settings = get_settings_with_config(ctx.obj.get('config_file'))
        click.echo(json.dumps(settings.model_dump(), indent=2, default=str))

    except Exception as e:
        logger.error(f"Failed to show configuration: {e}")
        sys.exit(1)


@config.command()
@click.pass_context
def validate(ctx):
    """Validate configuration."""

    from activity_sense.config.settings import validate_settings

    try:
        settings = get_settings_with_config(ctx.obj.get('config_file'))
        issues = validate_settings(settings)

        for issue in issues:
            click.echo(f"✗ {issue}")
        if issues:
            sys.exit(1)
        click.echo("✓ Configuration validation passed")

    except Exception as e:
        logger.error(f"Failed to validate configuration: {e}")
        sys.exit(1)


@cli.command()
def version():
    """Show version information."""

    click.echo(f"{settings.app_name} v{settings.version}")
    click.echo(f"Environment: {settings.environment}")
    click.echo(f"Python: {sys.version}")


if __name__ == '__main__':
    cli()
