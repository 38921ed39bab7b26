import sys

import click

from intelx_cli import __version__
from intelx_cli.config import Config, log
from intelx_cli.display import console
from intelx_cli.menu import Session

EPILOG = """\b
Examples:
  $ intelx example@email.com
  $ intelx 1d69f42e-3e31-46cc-a349-0870d07b3b61 -o custom-name.zip
  $ intelx example.com --limit 50
  $ intelx
  (will show the main menu)

\b
Notes:
  - The API key is read from INTELX_KEY or ~/.intelx_cli.json (--set-key)
  - Files are saved to the current directory by default
  - You'll be prompted to select which files to download
"""


@click.command(epilog=EPILOG, context_settings={'help_option_names': ['-h', '--help']})
@click.version_option(__version__, prog_name='intelx')
@click.argument('query', required=False)
@click.option('-o', '--output', help='Output zip file path (default: ./<query>.zip in current directory).')
@click.option('-n', '--limit', default=1000, show_default=True, type=click.IntRange(min=1),
              help='Maximum number of records to fetch per search.')
@click.option('--set-key', 'set_key', metavar='KEY', help='Save an IntelX API key and exit.')
@click.option('--base-url', help='API instance to talk to (e.g. https://free.intelx.io).')
def main(query, output, limit, set_key, base_url):
    """Search intelx.io, preview matches and download files.

    QUERY is a search term or system ID, e.g. example@email.com or
    1d69f42e-3e31-46cc-a349-0870d07b3b61.
    """
    config = Config.load()
    if base_url:
        config.base_url = base_url.rstrip('/')
    if set_key is not None:
        try:
            config.set_api_key(set_key)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint='--set-key')
        console.print(f'[green]✓ API key saved to {config.path}[/green]')
        return

    session = Session(config, query=query, output=output, limit=limit)
    try:
        session.run()
    except KeyboardInterrupt:
        console.print('\nInterrupted. Exiting.')
    except Exception as e:
        console.print(f'[red]Fatal error: {e}[/]')
        log(f'Fatal: {e}')
        sys.exit(1)


if __name__ == '__main__':
    main()
