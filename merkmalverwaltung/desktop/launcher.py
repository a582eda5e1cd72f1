"""Desktop launcher.

Starts the API server as a child process, waits until /health answers,
opens the UI in the system browser and stops the server on exit.

Usage:
    merkmalverwaltung-desktop run
    merkmalverwaltung-desktop show-config
    merkmalverwaltung-desktop save-config --host sql01 --database merkmale --windows-auth
    merkmalverwaltung-desktop test-connection
"""
import json
import os
import subprocess
import sys
import time
import webbrowser

import click
import httpx

from merkmalverwaltung.desktop.config_store import LocalConfigStore, test_connection


class ServerProcess:
    """The API server child process."""

    def __init__(self, port: int, config_name: str = 'production'):
        self.port = port
        self.config_name = config_name
        self.process = None

    @property
    def base_url(self) -> str:
        return f'http://127.0.0.1:{self.port}'

    def start(self):
        env = dict(os.environ, FLASK_CONFIG=self.config_name, PORT=str(self.port))
        self.process = subprocess.Popen(
            [sys.executable, '-m', 'merkmalverwaltung.server', '--port', str(self.port)],
            env=env,
        )

    def wait_until_ready(self, timeout: float = 30.0, interval: float = 0.5) -> bool:
        """Poll /health until it answers, the process dies or ``timeout`` passes.

        A 503 from /health still means the server is up; the UI shows the
        database state itself.
        """
        deadline = time.monotonic() + timeout
        with httpx.Client(timeout=2.0) as client:
            while time.monotonic() < deadline:
                if self.process is not None and self.process.poll() is not None:
                    return False
                try:
                    response = client.get(f'{self.base_url}/health')
                    if response.status_code in (200, 503):
                        return True
                except httpx.TransportError:
                    pass
                time.sleep(interval)
        return False

    def stop(self, timeout: float = 5.0):
        if self.process is None:
            return
        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        self.process = None


@click.group()
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              help='Path to config.json')
@click.pass_context
def cli(ctx, config_path):
    """Merkmal Verwaltung desktop launcher."""
    ctx.obj = LocalConfigStore(config_path)
    if config_path:
        # The server process reads the same file
        os.environ['MERKMAL_CONFIG_PATH'] = os.path.abspath(config_path)


@cli.command('run')
@click.option('--port', type=int, default=3001, show_default=True)
@click.option('--no-browser', is_flag=True, help='Do not open the UI')
@click.option('--startup-timeout', type=float, default=30.0, show_default=True)
def run_command(port, no_browser, startup_timeout):
    """Start the server and open the UI."""
    server = ServerProcess(port)
    server.start()
    try:
        if not server.wait_until_ready(startup_timeout):
            click.echo('ERROR: Server konnte nicht gestartet werden', err=True)
            raise SystemExit(1)
        url = f'{server.base_url}/ui/'
        click.echo(f'Merkmal Verwaltung läuft auf {url} (Beenden mit Strg+C)')
        if not no_browser:
            webbrowser.open(url)
        server.process.wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
        click.echo('Server gestoppt')


@cli.command('show-config')
@click.pass_obj
def show_config_command(store):
    """Print the database configuration (password masked)."""
    config = store.get_database_config()
    if config.get('password'):
        config['password'] = '********'
    click.echo(json.dumps(config, indent=2, ensure_ascii=False))


@cli.command('save-config')
@click.option('--host', required=True)
@click.option('--port', type=int, default=1433, show_default=True)
@click.option('--database', required=True)
@click.option('--user', default='')
@click.option('--password', default='')
@click.option('--windows-auth', is_flag=True)
@click.pass_obj
def save_config_command(store, host, port, database, user, password, windows_auth):
    """Save the database configuration."""
    result = store.save_database_config({
        'host': host,
        'port': port,
        'database': database,
        'user': user,
        'password': password,
        'useWindowsAuth': windows_auth,
    })
    click.echo(result['message'])
    if not result['success']:
        raise SystemExit(1)


@cli.command('test-connection')
@click.pass_obj
def test_connection_command(store):
    """Test the saved database configuration."""
    result = test_connection(store.get_database_config())
    click.echo(result['message'])
    if not result['success']:
        raise SystemExit(1)


def main():
    cli()


if __name__ == '__main__':
    main()
