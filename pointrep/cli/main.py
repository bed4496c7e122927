from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from ..core.fields import describe_fields
from ..core.point_types import get_point_type, registered_point_types
from ..core.representation import (
    CustomPointRepresentation,
    DefaultFeatureRepresentation,
    DefaultPointRepresentation,
    PointRepresentation,
    default_representation,
)
from ..sdk.run import vectorize_from_config

app = typer.Typer(help="pointrep point-to-vector utilities")

REPRESENTATION_KINDS = ("default", "raw", "feature", "custom")


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("pointrep").setLevel(numeric)


def _build(point_type_name: str, kind: str, max_dim: int, start_dim: int) -> PointRepresentation:
    try:
        point_type = get_point_type(point_type_name)
    except KeyError as exc:
        raise typer.BadParameter(exc.args[0], param_hint="POINT_TYPE")
    try:
        if kind == "default":
            return default_representation(point_type)
        if kind == "raw":
            return DefaultPointRepresentation(point_type)
        if kind == "feature":
            return DefaultFeatureRepresentation(point_type)
        if kind == "custom":
            return CustomPointRepresentation(point_type, max_dim=max_dim, start_dim=start_dim)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--kind")
    raise typer.BadParameter(f"kind must be one of {list(REPRESENTATION_KINDS)}.", param_hint="--kind")


@app.command("types")
def types() -> None:
    """List the registered point types and their default vector sizes."""

    for name, pt in sorted(registered_point_types().items()):
        rep = default_representation(pt)
        typer.echo(f"{name:<24} {pt.itemsize:>5} bytes  {type(rep).__name__:<30} {rep.get_number_of_dimensions():>4} dims")


@app.command("describe")
def describe(
    point_type: str = typer.Argument(..., help="Point type name, e.g. PointNormal or Histogram<16>."),
    kind: str = typer.Option("default", "--kind", help="Representation: default, raw, feature or custom."),
    max_dim: int = typer.Option(3, "--max-dim", help="Custom representation: maximum number of dimensions."),
    start_dim: int = typer.Option(0, "--start-dim", help="Custom representation: first float slot used."),
) -> None:
    """Show a point type's fields and the vector its representation produces."""

    rep = _build(point_type, kind, max_dim, start_dim)
    typer.echo(f"{rep.point_type_name} ({rep.dtype.itemsize} bytes)")
    for fd in describe_fields(rep.dtype):
        shape = f"[{fd.count}]" if fd.is_array else ""
        typer.echo(f"  {fd.name}{shape:<8} offset={fd.offset:<5} width={fd.width} dtype={fd.dtype}")
    typer.echo(f"{rep!r}")


@app.command("vectorize")
def vectorize(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML configuration file."),
    input: Optional[Path] = typer.Option(None, "--input", "-i", help="Override the .npy record array to read."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override the .npz output path."),
    drop_invalid: Optional[bool] = typer.Option(None, "--drop-invalid/--keep-invalid", help="Leave out records with non-finite values."),
    batch_size: int = typer.Option(100_000, "--batch-size", help="Records projected per batch."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Project a stored record array into float vectors."""

    if batch_size < 1:
        raise typer.BadParameter("batch_size must be positive.", param_hint="--batch-size")
    if output is not None and output.suffix.lower() != ".npz":
        raise typer.BadParameter(f"Unsupported output extension '{output.suffix}'", param_hint="--output")
    _configure_logging(log_level)
    result = vectorize_from_config(
        config,
        input=input,
        output=output,
        drop_invalid=drop_invalid,
        batch_size=batch_size,
    )
    stats = result.stats
    typer.echo(
        f"Completed {stats['vectors']} vectors ({stats['dimensions']} dims) from "
        f"{stats['records']} records, {stats['invalid']} invalid → {result.output_path}"
    )


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
