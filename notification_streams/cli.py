"""Command line interface for notification streams."""

import asyncio
import json
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Optional

import click
from pydantic import ValidationError

from notification_streams.config import NotificationStreamConfig, load_config
from notification_streams.logging_config import configure_logging
from notification_streams.models import RegisteredController, StreamCategory
from notification_streams.stream_management import NotificationStreamManager

logger = logging.getLogger(__name__)


async def listen_to_stream(config: NotificationStreamConfig,
                           url: str,
                           controller: RegisteredController,
                           category: StreamCategory,
                           user: str,
                           password: str,
                           output_json: bool = False,
                           stop_event: Optional[asyncio.Event] = None) -> None:
    """Print every notification of one stream until stopped."""
    stop_event = stop_event or asyncio.Event()

    async with NotificationStreamManager(config) as manager:

        def on_message(payload: str, name: str, release: str, source_url: str) -> None:
            count = manager.increase_counter(name, release, category)
            if output_json:
                click.echo(json.dumps({
                    "controller": name,
                    "release": release,
                    "category": category.value,
                    "url": source_url,
                    "count": count,
                    "received_at": datetime.now(timezone.utc).isoformat(),
                    "payload": payload,
                }))
            else:
                click.echo(f"[{name}-{release} {category.value} #{count}] {payload}")

        # Windows doesn't support signal handlers in event loops
        handle_signals = sys.platform != "win32"
        if handle_signals:
            loop = asyncio.get_running_loop()
            loop.add_signal_handler(signal.SIGTERM, stop_event.set)
            loop.add_signal_handler(signal.SIGINT, stop_event.set)

        try:
            await manager.start_stream(url, controller, on_message, category, user, password)
            logger.info("Listening to %s notifications of %s-%s at %s",
                        category.value, controller.name, controller.release, url)

            await stop_event.wait()
            logger.info("Stopping notification stream listener")
        finally:
            if handle_signals:
                loop.remove_signal_handler(signal.SIGTERM)
                loop.remove_signal_handler(signal.SIGINT)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--env-file', type=click.Path(dir_okay=False), help='Dotenv file with NOTIFY_STREAM_* settings')
@click.pass_context
def cli(ctx, verbose, env_file):
    """Notification Streams: listen to controller notification streams."""
    ctx.ensure_object(dict)

    try:
        config = load_config(env_file)
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    configure_logging(level="DEBUG" if verbose else config.log_level, verbose=verbose)
    ctx.obj['config'] = config


@cli.command()
@click.argument('url')
@click.option('--name', '-n', required=True, help='Controller name')
@click.option('--release', '-r', required=True, help='Controller release')
@click.option('--category', '-c', type=click.Choice([c.value for c in StreamCategory], case_sensitive=False),
              default=StreamCategory.DEVICE.value, help='Stream category')
@click.option('--user', '-u', envvar='NOTIFY_STREAM_USER', default='', help='Basic auth user')
@click.option('--password', '-p', envvar='NOTIFY_STREAM_PASSWORD', default='', help='Basic auth password')
@click.option('--json', 'output_json', is_flag=True, help='Output in JSON format')
@click.pass_context
def listen(ctx, url, name, release, category, user, password, output_json):
    """Listen to the notification stream at URL."""
    controller = RegisteredController(name=name, release=release)

    try:
        asyncio.run(listen_to_stream(
            ctx.obj['config'], url, controller, StreamCategory(category.upper()),
            user, password, output_json=output_json,
        ))
    except KeyboardInterrupt:
        logger.info("Interrupted")


@cli.command()
def version():
    """Show version information."""
    from notification_streams import __version__
    click.echo(f"Notification Streams version {__version__}")


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
