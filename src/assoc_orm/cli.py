"""Точка входа командной строки: демонстрационные запросы и создание БД."""

import asyncio
import logging

import click

from .config import DataSettings, set_default_settings
from .northwind.samples import run_samples
from .northwind.seed import seed_database
from .session import dispose_engines
from .tracing import set_trace_writer, turn_trace_switch_on

LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


@click.group()
@click.option(
    '-l',
    '--log-level',
    type=click.Choice(LEVELS, case_sensitive=False),
    default='WARNING',
    show_default=True,
    help='Уровень логирования.',
)
def cli(log_level):
    """Ассоциации между моделями на примере Northwind."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )


@cli.command()
@click.option('-c', '--configuration', default=None, help='Имя конфигурации подключения.')
@click.option('--trace/--no-trace', default=True, show_default=True, help='Печатать выполняемый SQL.')
@click.option('--wait/--no-wait', default=True, show_default=True, help='Ждать Enter перед выходом.')
def run(configuration, trace, wait):
    """Выполнить четыре демонстрационных запроса."""
    settings = DataSettings(default_configuration=configuration) if configuration else DataSettings()
    set_default_settings(settings)

    if trace:
        turn_trace_switch_on()
        set_trace_writer(lambda line, _category: click.echo(line))

    asyncio.run(_run())

    if wait:
        click.pause(info='Нажмите любую клавишу для выхода...')


async def _run():
    try:
        await run_samples(click.echo)
    finally:
        await dispose_engines()


@cli.command()
@click.argument('path', type=click.Path(dir_okay=False))
@click.option('--force', is_flag=True, help='Перезаписать существующий файл.')
def seed(path, force):
    """Создать демонстрационную БД в PATH."""
    try:
        created = asyncio.run(seed_database(path, force=force))
    except FileExistsError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f'Создана БД: {created}')
