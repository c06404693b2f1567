from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from minorm.mapping.descriptor import TypeDescriptor
from minorm.strategies.abstract import MappingStrategy


def descriptor_table(
    descriptor: TypeDescriptor,
    strategy: MappingStrategy,
    foreign_keys: Sequence[str] = (),
) -> Table:
    """
    Build a rich table describing how one record type maps to its table.
    """
    title = f"{descriptor.type_name} → [bold]{descriptor.table_name}[/bold]"
    order = ", ".join(f"{o.name} {o.direction.value}" for o in descriptor.order_fields)
    table = Table(
        title=title,
        box=box.ROUNDED,
        caption=f"ORDER BY {order}" if order else None,
    )

    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Type", style="magenta")
    table.add_column("Mapping", style="green")

    for field in descriptor.scalar_fields:
        mapping = "primary key" if field.primary_key else field.kind.value.lower()
        table.add_row(field.name, strategy.column_type(field), mapping)
    for column in foreign_keys:
        table.add_row(f"[dim]{column}[/dim]", "INTEGER", "foreign key")
    for association in descriptor.association_fields:
        required = "" if association.required else ", optional"
        table.add_row(
            association.name,
            f"[dim]{association.foreign_key}[/dim]",
            f"{association.relation.value} → {association.target.__name__}{required}",
        )
    return table


def print_descriptors(
    descriptors: List[TypeDescriptor],
    strategy: MappingStrategy,
    foreign_keys: Optional[Dict[type, List[str]]] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Render one table per record type.
    """
    console = console or Console()

    if not descriptors:
        console.print("[yellow]No record types registered.[/yellow]")
        return

    foreign_keys = foreign_keys or {}
    for descriptor in descriptors:
        console.print(
            descriptor_table(descriptor, strategy, foreign_keys.get(descriptor.record_type, ()))
        )
