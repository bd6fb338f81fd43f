"""Command-line interface for protowire schemas."""

from __future__ import annotations

import json
import logging
from typing import Any

import click
from rich.console import Console
from rich.pretty import Pretty
from rich.table import Table

from protowire.compiler import compile_file, parse
from protowire.proto import Message, MessageDescriptor, ProtobufError


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Protowire schema compiler and message inspector."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--json", "output_json", is_flag=True, help="Output the parsed schema as JSON")
def info(input_file: str, output_json: bool) -> None:
    """Display the messages and fields a schema defines."""
    try:
        if output_json:
            with open(input_file, encoding="utf-8") as f:
                schema = parse(f.read())
            print(schema.to_json(indent=2))
            return
        compiled = compile_file(input_file)
    except (OSError, ProtobufError) as e:
        raise click.ClickException(str(e)) from e

    console = Console()

    if compiled.package:
        console.print(f"[bold cyan]Package[/bold cyan] {compiled.package}")
        console.print()

    for name, enum in compiled.enums.items():
        console.print(f"[bold cyan]enum {name}[/bold cyan]")
        enum_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
        enum_table.add_column("Name", style="white")
        enum_table.add_column("Value", style="yellow", justify="right")
        for value_name, value in enum.values.items():
            enum_table.add_row(value_name, str(value))
        console.print(enum_table)
        console.print()

    for name, message in compiled.messages.items():
        console.print(f"[bold cyan]message {name}[/bold cyan]")
        _print_fields(console, message)
        console.print()


def _print_fields(console: Console, message: MessageDescriptor) -> None:
    field_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    field_table.add_column("#", style="green", justify="right")
    field_table.add_column("Label", style="dim")
    field_table.add_column("Type", style="yellow")
    field_table.add_column("Name", style="white")
    field_table.add_column("Default", style="dim")

    for field in message.fields:
        field_table.add_row(
            str(field.number),
            field.label.value,
            field.type_name or field.type.value,
            field.name,
            "" if field.default is None else repr(field.default),
        )
    console.print(field_table)


def _json_value(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.hex()
    raise TypeError(f"Cannot serialize {type(value).__name__}")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--message", "-m", "message_name", required=True, help="Message type to decode")
@click.option("--data", "-d", "data_file", required=True, help="Binary file to decode")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def decode(input_file: str, message_name: str, data_file: str, output_json: bool) -> None:
    """Decode a binary message and print its fields."""
    try:
        compiled = compile_file(input_file)
        descriptor = compiled.get(message_name)
        if not isinstance(descriptor, MessageDescriptor):
            raise click.ClickException(f"No message type named {message_name}")

        with open(data_file, "rb") as f:
            message = descriptor.decode(f)
    except (OSError, ProtobufError) as e:
        raise click.ClickException(str(e)) from e

    # Through the class, since a decoded schema may declare fields with these names
    values = Message.to_dict(message)
    unknown = Message.unknown_fields.fget(message)

    if output_json:
        print(json.dumps(values, indent=2, default=_json_value))
        return

    console = Console()
    console.print(f"[bold cyan]{descriptor.full_name}[/bold cyan]")
    console.print(Pretty(values))
    if unknown:
        console.print(f"[dim]{len(unknown)} unknown field(s) retained[/dim]")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
