"""
Main CLI entry point for the Company Website Resolver.
"""

import click

from sitefinder import __version__
from sitefinder.cli.commands import (
    config_commands, manage_blocklist, process_companies, rerun_not_available, resolve_company
)


@click.group()
@click.version_option(version=__version__, message='Company Website Resolver v%(version)s')
@click.option('--config', '-c', 'config_path', default='config/config.yaml',
              help='Path to configuration file (default: config/config.yaml)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Company Website Resolver - find official websites from company names."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['verbose'] = verbose


main.add_command(resolve_company)
main.add_command(process_companies)
main.add_command(rerun_not_available)
main.add_command(manage_blocklist)
main.add_command(config_commands)


if __name__ == '__main__':
    main()
