# src/aggrows/cli.py
"""aggrows Command Line Interface.

Entry point for the aggrows CLI tool.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from aggrows import __version__
from aggrows.cli_formatters import format_error, render_rows
from aggrows.contracts import (
    AggregationDecodeError,
    AggregationNode,
    LogLevel,
    OutputFormat,
    ResultRow,
    UnsupportedAggregationTypeError,
)
from aggrows.core.config import AggrowsSettings, load_settings
from aggrows.core.decoding import load_response
from aggrows.core.flatten import flatten
from aggrows.core.logging import configure_logging, get_logger

__all__ = [
    "app",
]

logger = get_logger(__name__)

app = typer.Typer(
    name="aggrows",
    help="aggrows: Flatten search aggregation results into rows.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"aggrows version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Settings files may reference ${VAR}; a .env file is the usual place for
    those values.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # Existence checked in _load_dotenv for a better message
    ),
) -> None:
    """aggrows: Flatten search aggregation results into rows."""
    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _resolve_settings(settings: Path | None) -> AggrowsSettings:
    """Load settings from file, or defaults when no file is given.

    Raises:
        typer.Exit: On any settings error, after printing it
    """
    if settings is None:
        return AggrowsSettings()

    settings_path = settings.expanduser()
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        format_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if e.problem else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        format_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        # Must be before ValueError - ValidationError inherits from it
        details = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            details.append(f"{loc}: {error['msg']}")
        format_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and allowed values.",
        )
        raise typer.Exit(1) from None
    except ValueError as e:
        format_error(title="Configuration Error", message=str(e))
        raise typer.Exit(1) from None


def _flatten_file(response: Path, config: AggrowsSettings) -> list[ResultRow]:
    """Decode and flatten a response file.

    Raises:
        typer.Exit: On any read, decode or flatten error, after printing it
    """
    response_path = response.expanduser()
    try:
        nodes: tuple[AggregationNode, ...] = load_response(response_path, config.response_key)
        return flatten(nodes)
    except FileNotFoundError:
        format_error(
            title="File Not Found",
            message=f"Response file does not exist: {response}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except json.JSONDecodeError as e:
        # Must be before ValueError - JSONDecodeError inherits from it
        format_error(
            title="Invalid JSON",
            message=f"Failed to parse {response_path.name}",
            details=[f"line {e.lineno}, column {e.colno}: {e.msg}"],
        )
        raise typer.Exit(1) from None
    except AggregationDecodeError as e:
        format_error(
            title="Malformed Aggregations",
            message=str(e),
            hint="Request the search with typed_keys=true so every aggregation key is '<type>#<name>'.",
        )
        raise typer.Exit(1) from None
    except UnsupportedAggregationTypeError as e:
        logger.error("flatten_failed", **e.to_payload())
        format_error(
            title="Unsupported Aggregation",
            message=str(e),
            details=[f"aggregation: {e.aggregation_name}"],
            hint="Supported: single-value metrics, percentiles, stats, filter, and top-level composite.",
        )
        raise typer.Exit(1) from None
    except ValueError as e:
        # Non-standard JSON constants rejected at parse time
        format_error(title="Invalid JSON", message=str(e))
        raise typer.Exit(1) from None


@app.command("flatten")
def flatten_command(
    response: Path = typer.Argument(
        ...,
        help="Path to a JSON search response (rendered with typed_keys).",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    output_format: OutputFormat | None = typer.Option(
        None,
        "--format",
        "-f",
        help="Output format (overrides settings).",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write rows to this file instead of stdout.",
    ),
    log_level: LogLevel | None = typer.Option(
        None,
        "--log-level",
        case_sensitive=False,
        help="Log level (overrides settings).",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Flatten the aggregations of a search response into rows."""
    config = _resolve_settings(settings)
    configure_logging(
        json_output=json_logs or config.logging.json_output,
        level=log_level or config.logging.level,
    )

    rows = _flatten_file(response, config)
    text = render_rows(rows, output_format or config.output.format, indent=config.output.indent)

    if output is None:
        typer.echo(text, nl=False)
        return

    output_path = output.expanduser()
    try:
        output_path.write_text(text, encoding="utf-8")
    except OSError as e:
        format_error(
            title="Write Failed",
            message=f"Could not write rows to {output_path}",
            details=[e.strerror or str(e)],
            hint="Check that the parent directory exists and is writable.",
        )
        raise typer.Exit(1) from None
    logger.info("rows_written", path=str(output_path), rows=len(rows))


@app.command()
def validate(
    response: Path = typer.Argument(
        ...,
        help="Path to a JSON search response (rendered with typed_keys).",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Check that a response flattens, without writing rows."""
    config = _resolve_settings(settings)
    configure_logging(json_output=config.logging.json_output, level=config.logging.level)

    rows = _flatten_file(response, config)

    fields: list[str] = []
    for row in rows:
        fields.extend(field for field in row if field not in fields)

    typer.echo("Aggregations valid.")
    typer.echo(f"  Rows: {len(rows)}")
    typer.echo(f"  Fields: {', '.join(fields) if fields else '(none)'}")


if __name__ == "__main__":
    app()
