"""
CLI commands for the Company Website Resolver.
"""

import sys
from pathlib import Path
from typing import List

import click
import yaml
from tqdm import tqdm

from sitefinder.batch.runner import BatchRunner
from sitefinder.core.config import Config
from sitefinder.core.exceptions import (
    BatchAbortedError, ConfigurationError, CSVProcessingError, SystemicError
)
from sitefinder.core.models import BatchStats, CompanyQuery, CompanyRecord
from sitefinder.csv_processor.reader import CSVReader
from sitefinder.csv_processor.writer import CSVWriter
from sitefinder.filtering.blocklist import DEFAULT_BLOCKED_DOMAINS
from sitefinder.pipeline.orchestrator import DEFAULT_STAGES, build_pipeline
from sitefinder.state.checkpoint import ResultCheckpoint
from sitefinder.utils.logging_config import setup_logging


def _fail(message: str) -> None:
    click.echo(f"❌ Error: {message}", err=True)
    sys.exit(1)


def _load_config(ctx: click.Context) -> Config:
    """Load, validate and apply the configuration named on the command line."""
    try:
        config = Config(ctx.obj['config_path'])
        config.validate()
    except (ConfigurationError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    logger = setup_logging(config.logging_config)
    if ctx.obj.get('verbose'):
        logger.setLevel('DEBUG')
        for handler in logger.handlers:
            handler.setLevel('DEBUG')
    return config


def _read_records(path: str) -> List[CompanyRecord]:
    try:
        return list(CSVReader(path).read_records())
    except CSVProcessingError as e:
        _fail(str(e))


def _run_batch(runner: BatchRunner, records: List[CompanyRecord], checkpoint: ResultCheckpoint,
               rerun: bool = False) -> BatchStats:
    """Run a batch behind a progress bar, checkpointing each finished record."""
    if rerun:
        total = sum(1 for record in records if record.status == 'not_available')
    else:
        total = sum(1 for record in records if record.status == 'pending')

    with tqdm(total=total, desc="Resolving websites", unit="company") as progress_bar:
        found = 0

        def on_result(record: CompanyRecord) -> None:
            nonlocal found
            checkpoint.save_result(record)
            if record.status == 'found':
                found += 1
            progress_bar.set_postfix(found=found)
            progress_bar.update(1)

        if rerun:
            return runner.rerun_not_available(records, on_result=on_result)
        return runner.run(records, on_result=on_result)


def _summarise(stats: BatchStats) -> None:
    if stats.stopped:
        status_msg = click.style("⚠️  STOPPED", fg="yellow", bold=True)
    else:
        status_msg = click.style("✅ SUCCESS", fg="green", bold=True)
    click.echo(f"{status_msg}: Processed {stats.processed}/{stats.total} companies "
               f"({stats.found} found, {stats.not_available} not available, "
               f"{stats.success_rate:.0%} success rate)")
    for method, count in sorted(stats.by_method.items(), key=lambda item: -item[1]):
        click.echo(f"  {method}: {count}")


@click.command('resolve')
@click.argument('name')
@click.option('--employees', '-e', default=None, help='Employee count hint')
@click.pass_context
def resolve_company(ctx: click.Context, name: str, employees: str):
    """Resolve the official website of a single company."""
    config = _load_config(ctx)

    try:
        query = CompanyQuery(name=name.strip(), employee_count_hint=employees)
    except ValueError as e:
        _fail(str(e))

    try:
        result = build_pipeline(config).resolve(query)
    except SystemicError as e:
        _fail(str(e))

    click.echo(result.url)
    if result.confidence is not None:
        click.echo(f"method: {result.method} (confidence {result.confidence:.2f})")
    else:
        click.echo(f"method: {result.method}")


@click.command('process')
@click.option('--input', '-i', 'input_path', required=True, type=click.Path(exists=True),
              help='Path to input CSV file with company data')
@click.option('--output', '-o', 'output_path', required=True, type=click.Path(),
              help='Path to output CSV file for results')
@click.option('--workers', '-w', default=None, type=click.IntRange(1, 3),
              help='Number of companies resolved concurrently (1-3)')
@click.option('--details', is_flag=True, help='Add resolution method and confidence columns')
@click.option('--resume', is_flag=True, help='Skip companies already resolved in the last run')
@click.option('--restart', is_flag=True, help='Discard saved progress and start over')
@click.pass_context
def process_companies(ctx: click.Context, input_path: str, output_path: str, workers: int,
                      details: bool, resume: bool, restart: bool):
    """Resolve websites for every company in a CSV file."""
    if resume and restart:
        _fail("Cannot use both --resume and --restart options")
    if Path(input_path).suffix.lower() != '.csv':
        _fail(f"Input file must be CSV format: {input_path}")

    config = _load_config(ctx)
    processing = config.processing_config

    records = _read_records(input_path)
    if not records:
        click.echo("No companies found in input file")
        return

    checkpoint = ResultCheckpoint(processing.get('checkpoint_db', 'data/checkpoints.db'))
    if restart:
        checkpoint.restart_from_scratch()
    elif resume:
        restored = checkpoint.restore(records)
        saved = checkpoint.get_stats()
        click.echo(f"Resuming: {restored} companies already resolved "
                   f"({saved['found']} found, {saved['not_available']} not available in saved progress)")

    runner = BatchRunner(
        build_pipeline(config),
        workers=workers or processing.get('workers', 3),
        company_delay=processing.get('company_delay', 0.4),
        max_retries=processing.get('max_retries', 1),
    )

    writer = CSVWriter(output_path)
    try:
        stats = _run_batch(runner, records, checkpoint)
    except BatchAbortedError as e:
        writer.write_records(records, details=details)
        _fail(f"{e}. Partial results written to {output_path}")

    writer.write_records(records, details=details)
    _summarise(stats)


@click.command('rerun')
@click.option('--input', '-i', 'input_path', required=True, type=click.Path(exists=True),
              help='Output CSV of a previous run')
@click.option('--output', '-o', 'output_path', default=None, type=click.Path(),
              help='Where to write the updated CSV (defaults to the input file)')
@click.option('--details', is_flag=True, help='Add resolution method and confidence columns')
@click.pass_context
def rerun_not_available(ctx: click.Context, input_path: str, output_path: str, details: bool):
    """Resolve again every company whose website is "Not Available"."""
    config = _load_config(ctx)
    processing = config.processing_config
    output_path = output_path or input_path

    records = _read_records(input_path)
    if not any(record.status == 'not_available' for record in records):
        click.echo("No \"Not Available\" companies to re-run")
        return

    checkpoint = ResultCheckpoint(processing.get('checkpoint_db', 'data/checkpoints.db'))
    runner = BatchRunner(
        build_pipeline(config),
        workers=processing.get('workers', 3),
        company_delay=processing.get('company_delay', 0.4),
        max_retries=processing.get('max_retries', 1),
    )

    writer = CSVWriter(output_path)
    try:
        stats = _run_batch(runner, records, checkpoint, rerun=True)
    except BatchAbortedError as e:
        writer.write_records(records, details=details)
        _fail(f"{e}. Partial results written to {output_path}")

    writer.write_records(records, details=details)
    _summarise(stats)


@click.group('blocklist')
def manage_blocklist():
    """Inspect the blocked-domain list."""
    pass


@manage_blocklist.command('list')
@click.pass_context
def list_blocklist(ctx: click.Context):
    """List blocked domains."""
    click.echo("Built-in blocked domains:")
    for domain in DEFAULT_BLOCKED_DOMAINS:
        click.echo(f"  - {domain}")

    try:
        extra = Config(ctx.obj['config_path']).get('filtering.blocklist', []) or []
    except (ConfigurationError, FileNotFoundError, ValueError) as e:
        click.echo(f"Warning: Could not load config file, showing built-in list only: {e}",
                   err=True)
        return

    if extra:
        click.echo("Configured blocked domains:")
        for domain in extra:
            click.echo(f"  - {domain}")


@click.group('config')
def config_commands():
    """Configuration management commands."""
    pass


@config_commands.command('show')
@click.pass_context
def config_show(ctx: click.Context):
    """Show current configuration."""
    try:
        config = Config(ctx.obj['config_path'])
    except (ConfigurationError, FileNotFoundError, ValueError) as e:
        _fail(f"Error loading configuration: {e}")

    config_dict = config.get_all()
    search = dict(config_dict.get('search', {}))
    if search.get('api_key'):
        search['api_key'] = '***'
    config_dict['search'] = search

    click.echo("Current Configuration:")
    click.echo(yaml.dump(config_dict, default_flow_style=False, sort_keys=False))


@config_commands.command('validate')
@click.pass_context
def config_validate(ctx: click.Context):
    """Validate configuration file."""
    try:
        Config(ctx.obj['config_path']).validate()
    except (ConfigurationError, FileNotFoundError, ValueError) as e:
        _fail(f"Configuration validation failed: {e}")
    click.echo("✅ Configuration is valid")


@config_commands.command('example')
def config_example():
    """Show example configuration."""
    example_config = {
        'search': {
            'provider': 'anthropic',
            'api_key': '${ANTHROPIC_API_KEY}',
            'model': 'claude-sonnet-4-20250514',
            'timeout': 25,
            'max_retries': 5,
            'initial_backoff': 8,
            'max_backoff': 60,
            'min_interval': 0.4,
            'max_connection_failures': 5
        },
        'probe': {
            'timeout': 3,
            'max_variations': 15
        },
        'scoring': {
            'acceptance_threshold': 0.5,
            'early_exit_similarity': 0.8,
            'cross_validation_min_stages': 2
        },
        'pipeline': {
            'time_budget': 180,
            'model_judgment': False,
            'stages': DEFAULT_STAGES,
            'rate_limit_policy': {'last_resort_search': 'skip'}
        },
        'processing': {
            'workers': 3,
            'company_delay': 0.4,
            'max_retries': 1,
            'checkpoint_db': 'data/checkpoints.db'
        },
        'filtering': {
            'blocklist': []
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'file': 'logs/sitefinder.log'
        }
    }

    click.echo("Example Configuration:")
    click.echo(yaml.dump(example_config, default_flow_style=False, sort_keys=False))
    click.echo("\nTo use this configuration:")
    click.echo("1. Save to config/config.yaml")
    click.echo("2. Set ANTHROPIC_API_KEY environment variable")
    click.echo("3. Adjust parameters as needed")
