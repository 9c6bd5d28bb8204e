"""
Chunking commands for docchunk CLI.
"""

import click

from docchunk.chunking.chunker import DocumentChunker
from docchunk.utils.helpers import Timer


@click.command()
@click.option('--config', '-c', 'config_file', type=click.Path(dir_okay=False), help='Sources YAML file')
@click.option('--source', '-s', 'source_names', multiple=True, help='Only chunk the named source (repeatable)')
@click.option('--path', '-p', 'input_path', type=click.Path(exists=True), help='Chunk a single directory instead of configured sources')
@click.option('--parser', type=click.Choice(['mdx', 'markdown', 'openapi']), default='markdown', help='Parser for --path')
@click.option('--name', help='Source name for --path')
@click.option('--base-url', help='Documentation base URL for --path')
@click.option('--output', '-o', help='Output file')
@click.option('--format', 'output_format', type=click.Choice(['json', 'txt']), default='json', help='Output format')
@click.option('--stats', is_flag=True, help='Show chunk statistics')
@click.pass_context
def chunk_cmd(ctx, config_file, source_names, input_path, parser, name, base_url, output, output_format, stats):
    """Chunk documentation sources."""
    config = ctx.obj['config']
    chunker = DocumentChunker(config)

    try:
        with Timer("Chunking") as timer:
            if input_path:
                click.echo(f"Chunking {input_path} as {parser}...")
                chunks = chunker.process_directory(input_path, parser=parser, name=name, base_url=base_url)
            else:
                config.load_sources(config_file)
                sources = config.sources
                if source_names:
                    sources = [config.get_source(source_name) for source_name in source_names]
                click.echo(f"Chunking {len(sources)} source(s) from {config.config_file}...")
                chunks = chunker.process_sources(sources)

            if output_format == 'txt':
                if not output:
                    raise click.UsageError("--output is required with --format txt")
                output_path = chunker.save_text(output)
            else:
                output_path = chunker.save_chunks(output)

    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo(f"Created {len(chunks)} chunks in {timer}")
    click.echo(f"Output: {output_path}")

    if stats:
        click.echo("\nChunk Statistics:")
        for category, count in chunker.get_stats().items():
            if category != 'total':
                click.echo(f"  {category}: {count}")
        click.echo(f"  Total chunks: {len(chunks)}")
