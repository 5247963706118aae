# finance_tracker/cli.py
import logging
import os
from datetime import date

import click

from finance_tracker.config import load_config
from finance_tracker.database import init_db
from finance_tracker.outputs import get_output
from finance_tracker.parser import parse_transaction_text
from finance_tracker.web import serve


@click.group()
@click.option(
    '--config', 'config_path',
    default='config.yaml',
    type=click.Path(dir_okay=False),
    help='Path to config.yaml (defaults are used when it does not exist)'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file with FINANCE_TRACKER_DB, HOST, PORT or LOG_LEVEL'
)
@click.option(
    '--log-level', 'log_level',
    default=None,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    help='Logging level (default: $LOG_LEVEL or INFO)'
)
@click.pass_context
def main(ctx, config_path, env_file, log_level):
    """
    Extract transactions from pasted bank-statement text and serve the
    finance tracker API.
    """
    cfg = load_config(config_path, env_file=env_file)
    logging.basicConfig(
        level=(log_level or os.getenv('LOG_LEVEL', 'INFO')).upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    ctx.obj = cfg


@main.command()
@click.argument('source', type=click.File('r'), default='-')
@click.option(
    '--output', 'output_format',
    default=None,
    type=click.Choice(['csv', 'json']),
    help='Also write the candidates to the output directory'
)
@click.option(
    '--date', 'fallback_date',
    default=None,
    type=click.DateTime(formats=['%Y-%m-%d']),
    help='Date used for lines without one (default: today)'
)
@click.pass_obj
def parse(cfg, source, output_format, fallback_date):
    """Parse statement text from SOURCE (a file, or - for stdin)."""
    clock = (lambda: fallback_date.date()) if fallback_date else date.today
    transactions = parse_transaction_text(source.read(), clock=clock)
    if not transactions:
        raise click.ClickException("No transactions found in text")

    for tx in transactions:
        click.echo(
            f"{tx.date.isoformat()}  {tx.type.value:<7}  {tx.amount:>12.2f}  "
            f"{tx.confidence:.2f}  {tx.description}"
        )

    if output_format:
        path = get_output(output_format, cfg).write(transactions)
        click.echo(f"Written {len(transactions)} transaction(s) to {path}.")


@main.command('init-db')
@click.option('--db', 'db_path', default=None, type=click.Path(dir_okay=False), help='SQLite database file')
@click.pass_obj
def init_db_command(cfg, db_path):
    """Create the database schema."""
    db_path = db_path or cfg['db_path']
    init_db(db_path)
    click.echo(f"Initialized database at {db_path}.")


@main.command('serve')
@click.option('--host', default=None, help='Host to bind (default: from config)')
@click.option('--port', default=None, type=int, help='Port to bind (default: from config)')
@click.option('--db', 'db_path', default=None, type=click.Path(dir_okay=False), help='SQLite database file')
@click.pass_obj
def serve_command(cfg, host, port, db_path):
    """Run the HTTP API."""
    if db_path:
        cfg = dict(cfg, db_path=db_path)
    serve(cfg, host=host, port=port)
