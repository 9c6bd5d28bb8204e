"""
Main CLI entry point for docchunk.
"""

import click

from docchunk.config.settings import Config
from docchunk.utils.logging import setup_logging
from .chunk import chunk_cmd


@click.group()
@click.option('--data-dir', '-d', help='Data directory path')
@click.option('--log-level', '-l', default=None, help='Logging level')
@click.option('--log-file', help='Log file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.pass_context
def cli(ctx, data_dir, log_level, log_file, verbose):
    """docchunk - Documentation chunker for retrieval pipelines"""

    # Initialize config
    config = Config(data_dir=data_dir)

    # Setup logging
    if verbose:
        log_level = 'DEBUG'

    setup_logging(log_level=log_level or config.log_level, log_file=log_file)

    # Store config in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
def version():
    """Show version information."""
    from docchunk import __version__

    click.echo(f"docchunk version {__version__}")


@cli.command()
@click.option('--config', '-c', 'config_file', type=click.Path(dir_okay=False), help='Sources YAML file')
@click.pass_context
def status(ctx, config_file):
    """Show docchunk status and configuration."""
    config = ctx.obj['config']

    click.echo("docchunk Status:")
    click.echo(f"  Data directory: {config.data_dir}")
    click.echo(f"  Chunks: {config.chunks_dir}")
    click.echo()

    click.echo("Data Status:")

    if config.chunks_file.exists():
        click.echo(f"  Chunks file: ✓ {config.chunks_file}")
    else:
        click.echo("  Chunks file: ✗ Not found")

    sources_file = config_file or config.find_config_file()
    if sources_file is None:
        click.echo("  Sources file: ✗ Not found")
        return

    try:
        sources = config.load_sources(str(sources_file))
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"  Sources file: ✗ {e}")
        return

    click.echo(f"  Sources file: ✓ {sources_file}")
    click.echo()
    click.echo(f"Sources ({len(sources)}):")
    for source in sources:
        chunk_config = config.chunk_config_for(source)
        click.echo(
            f"  {source.name} [{source.parser}] "
            f"max={chunk_config.max_chunk_size} min={chunk_config.min_chunk_size} "
            f"ideal={chunk_config.ideal_chunk_size}"
        )


# Add subcommands
cli.add_command(chunk_cmd, name='chunk')


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
