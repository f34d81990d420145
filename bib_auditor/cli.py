"""
Command-line interface for the bibliography auditor.
"""

import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from . import __version__
from .auditor import BibliographyAuditor
from .config import load_settings, write_config_value
from .exceptions import ConfigurationError, EmptyDocumentError
from .reporters import generate_report

# Load environment variables
load_dotenv()

EXIT_NO_REFERENCES = 2


def setup_logging(verbose: bool, stream=None):
    """Setup logging configuration; records go to ``stream`` (default stdout)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(stream or sys.stdout),
        ]
    )


def _write_output(content: str, output: str):
    with open(output, 'w', encoding='utf-8') as f:
        f.write(content)


@click.command()
@click.argument('text_path', type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.option(
    '--output', '-o',
    type=click.Path(dir_okay=False),
    help='Output file path (default: stdout)'
)
@click.option(
    '--format', 'output_format',
    type=click.Choice(['markdown', 'json'], case_sensitive=False),
    default='markdown',
    help='Output format',
    show_default=True
)
@click.option('--before-words', type=int, help='Words of context before each citation')
@click.option('--after-words', type=int, help='Words of context after each citation')
@click.option('--timeout', type=float, help='Parse time budget in seconds (0 disables it)')
@click.option(
    '--verbose', '-v',
    is_flag=True,
    help='Enable verbose logging'
)
def audit(
    text_path: str,
    output: str,
    output_format: str,
    before_words: int,
    after_words: int,
    timeout: float,
    verbose: bool
):
    """
    Extract and link the citations of a document.

    TEXT_PATH: Path to the extracted document text (UTF-8), or - for stdin

    Examples:

        # Markdown report on stdout
        bib-auditor audit paper.txt

        # JSON report with a wider context window
        bib-auditor audit paper.txt --format json --before-words 200 -o report.json
    """
    # Keep stdout clean for the report when it is printed there.
    setup_logging(verbose, stream=None if output else sys.stderr)
    logger = logging.getLogger(__name__)

    try:
        settings = load_settings(
            context_before_words=before_words,
            context_after_words=after_words,
            timeout=timeout,
        )
        auditor = BibliographyAuditor(settings)

        logger.info(f"Starting audit of {text_path}")
        if text_path == '-':
            text = click.get_text_stream('stdin').read()
            result = auditor.audit(text, require_text=True, source_name='stdin')
        else:
            result = auditor.audit_file(text_path)
    except KeyboardInterrupt:
        click.echo("\n❌ Audit cancelled by user", err=True)
        sys.exit(1)
    except (EmptyDocumentError, ConfigurationError, OSError) as e:
        logger.error(f"Audit failed: {e}")
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    report_content = generate_report(result, output_format)
    if output:
        _write_output(report_content, output)
        click.echo(f"✅ Report saved to {output}")
    else:
        click.echo(report_content)

    if not result.has_references:
        click.echo("❌ Could not detect any references in this document", err=True)
        sys.exit(EXIT_NO_REFERENCES)

    document = result.document
    click.echo(f"\n📊 Summary: {document.style.value} style, "
               f"{len(document.in_text_citations)} citations, "
               f"{len(document.bibliography)} entries, "
               f"{len(document.citation_to_bib_mapping)} linked", err=True)


@click.command()
@click.argument('text_paths', nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--output-dir', '-d',
    required=True,
    type=click.Path(file_okay=False),
    help='Directory that receives one report per document'
)
@click.option(
    '--format', 'output_format',
    type=click.Choice(['markdown', 'json'], case_sensitive=False),
    default='json',
    help='Output format',
    show_default=True
)
@click.option(
    '--verbose', '-v',
    is_flag=True,
    help='Enable verbose logging'
)
def batch(text_paths, output_dir: str, output_format: str, verbose: bool):
    """Audit several text files in parallel."""
    setup_logging(verbose)

    try:
        auditor = BibliographyAuditor(load_settings())
    except ConfigurationError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    summary = auditor.audit_many(list(text_paths))

    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    extension = 'json' if output_format.lower() == 'json' else 'md'
    for item in summary['results']:
        report_path = out_dir / f"{Path(item['filename']).stem}.{extension}"
        _write_output(generate_report(item['result'], output_format), str(report_path))

    for error in summary['processing_errors']:
        click.echo(f"❌ {error['file']}: {error['error']}", err=True)

    click.echo(f"\n📊 Summary: {summary['processed_files']} processed, "
               f"{summary['failed_files']} failed, "
               f"{summary['total_references']} references", err=True)

    if summary['failed_files']:
        sys.exit(1)


@click.command()
@click.argument('config_name')
@click.argument('config_value')
def config(config_name: str, config_value: str):
    """Set configuration values."""
    try:
        config_file = write_config_value(config_name, config_value)
    except ConfigurationError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Set {config_name} = {config_value} in {config_file}")


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    Bibliography Auditor

    A tool for extracting the citations of a document, detecting its citation
    style and linking each citation to its bibliography entry.
    """
    pass


cli.add_command(audit)
cli.add_command(batch)
cli.add_command(config)


if __name__ == '__main__':
    cli()
