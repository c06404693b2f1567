from __future__ import annotations

import importlib
import sys
from typing import Optional

import typer

from minorm.config import get_settings
from minorm.errors import MinormError
from minorm.infrastructure.db_factory import DirectConnectionProvider
from minorm.mapping.registry import MappingRegistry
from minorm.persistence.session import Session
from minorm.reporter import print_descriptors
from minorm.strategies.postgres import PostgresMappingStrategy
from minorm.utils.logging import configure_logging

app = typer.Typer(help="minorm: dataclass-to-PostgreSQL mapping tools.")

TARGET_HELP = "Mapping registry to load, as 'package.module:attribute' (attribute defaults to 'registry')."


def _load_registry(target: str) -> MappingRegistry:
    module_name, _, attribute = target.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise typer.BadParameter(f"Cannot import module '{module_name}': {exc}") from exc
    registry = getattr(module, attribute or "registry", None)
    if not isinstance(registry, MappingRegistry):
        raise typer.BadParameter(
            f"'{target}' does not name a MappingRegistry (found {type(registry).__name__})"
        )
    return registry


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"pool=({settings.db_pool_min_size},{settings.db_pool_max_size}) "
        f"statement_timeout_ms={settings.db_statement_timeout_ms} "
        f"default_string_length={settings.default_string_length}"
    )


@app.command()
def schema(
    target: str = typer.Argument(..., help=TARGET_HELP),
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables first."),
    apply: bool = typer.Option(
        False, "--apply", help="Execute the statements instead of printing them."
    ),
) -> None:
    """
    Print (or apply) the CREATE TABLE statements for every registered record type.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    registry = _load_registry(target)
    strategy = PostgresMappingStrategy()

    if not apply:
        descriptors = registry.descriptors()
        foreign_keys = registry.foreign_key_map()
        if drop:
            for descriptor in reversed(descriptors):
                typer.echo(strategy.drop_table(descriptor))
        for descriptor in descriptors:
            typer.echo(strategy.create_table(descriptor, foreign_keys[descriptor.record_type]))
        return

    provider = DirectConnectionProvider()
    with Session(provider.acquire(), strategy, registry, provider=provider) as session:
        if drop:
            session.drop_schema()
        session.create_schema()
    typer.echo(f"Created {len(registry)} table(s).")


@app.command()
def describe(target: str = typer.Argument(..., help=TARGET_HELP)) -> None:
    """
    Show how each registered record type maps to its table.
    """
    registry = _load_registry(target)
    print_descriptors(
        registry.descriptors(),
        PostgresMappingStrategy(),
        foreign_keys=registry.foreign_key_map(),
    )


def main(argv: Optional[list] = None) -> None:
    try:
        app(args=argv)
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
    except MinormError as exc:
        typer.echo(f"Error: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
