"""Command-line interface for x402-testkit.

Thin process wiring around the engine: parse flags, build an EngineConfig,
call the api, render the result and exit with the code the exit code policy
assigns. This is the only module that exits the process.

Example:
    >>> # From terminal:
    >>> # x402-testkit --version
    >>> # x402-testkit test suite.yaml --junit reports/junit.xml
    >>> # x402-testkit test suite.yaml --json --base-url http://localhost:3402
    >>> # x402-testkit check http://localhost:3402/api/data --format json
    >>> # x402-testkit validate suite.yaml
"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from x402_testkit import __version__
from x402_testkit.api import check, run_file
from x402_testkit.config import ExecutionStrategy, load_config
from x402_testkit.errors import ConfigError, ParseError
from x402_testkit.exit_codes import ExitCode, check_exit_code, error_exit_code
from x402_testkit.loader import load_suite
from x402_testkit.observability import configure_logging
from x402_testkit.reporting import format_check, format_json, format_summary, write_junit_xml

app = typer.Typer(help="x402 protocol compliance testing.")

# Global verbose flag
_verbose: bool = False


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show x402-testkit version and exit.",
    callback=_version_callback,
    is_eager=True,
)


def _fail(exc: ParseError | ConfigError) -> typer.Exit:
    """Report an error that stopped the command and build the matching Exit."""
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(int(error_exit_code(exc)))


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging on stderr."),
) -> None:
    """x402-testkit CLI entrypoint."""
    global _verbose
    _verbose = verbose
    if verbose:
        configure_logging(log_level="DEBUG", force=True)


@app.command("test")
def run_tests(
    suite_file: Annotated[Path, typer.Argument(help="Path to the YAML test suite.")],
    json_output: Annotated[
        bool, typer.Option("--json", help="Print the result as JSON instead of a summary.")
    ] = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Only print pass/fail lines and totals.")
    ] = False,
    junit: Annotated[
        Optional[Path], typer.Option("--junit", help="Also write a JUnit XML report here.")
    ] = None,
    timeout: Annotated[
        Optional[float], typer.Option("--timeout", help="Per-request timeout in seconds.")
    ] = None,
    base_url: Annotated[
        Optional[str], typer.Option("--base-url", help="Base URL for relative request paths.")
    ] = None,
    parallel: Annotated[
        bool, typer.Option("--parallel", help="Run test cases concurrently.")
    ] = False,
    max_concurrency: Annotated[
        Optional[int],
        typer.Option("--max-concurrency", help="In-flight request cap with --parallel."),
    ] = None,
) -> None:
    """Run a YAML test suite against a live endpoint.

    Exits 0 when every test passed, 1 when any failed, 2 on an invalid suite
    or configuration and 3 when no test could reach the server.
    """
    try:
        config = load_config(
            timeout=timeout,
            base_url=base_url,
            strategy=ExecutionStrategy.PARALLEL if parallel else None,
            max_concurrency=max_concurrency,
        )
        result = run_file(suite_file, config)
    except (ParseError, ConfigError) as exc:
        raise _fail(exc) from exc

    typer.echo(format_json(result) if json_output else format_summary(result, quiet=quiet))

    if junit is not None:
        try:
            written = write_junit_xml(result, junit)
        except ConfigError as exc:
            raise _fail(exc) from exc
        if _verbose:
            typer.echo(f"JUnit report written to {written}", err=True)

    raise typer.Exit(result.exit_code)


@app.command("check")
def check_command(
    url: Annotated[str, typer.Argument(help="Absolute URL of the payment-gated endpoint.")],
    output_format: Annotated[
        str, typer.Option("--format", "-f", help="Output format: text or json.")
    ] = "text",
    timeout: Annotated[
        Optional[float], typer.Option("--timeout", help="Request timeout in seconds.")
    ] = None,
    expected_amount: Annotated[
        Optional[str],
        typer.Option("--expected-amount", help="Fail unless the invoice amount equals this."),
    ] = None,
) -> None:
    """Check one endpoint's x402 challenge and invoice fields.

    Exits 0 when compliant, 1 when any check failed and 3 when the endpoint
    could not be reached.
    """
    fmt = output_format.strip().lower()
    if fmt not in ("text", "json"):
        typer.echo("Error: --format must be 'text' or 'json'", err=True)
        raise typer.Exit(int(ExitCode.CONFIG))

    try:
        config = load_config(timeout=timeout)
        result = check(url, config.timeout_seconds, expected_amount=expected_amount)
    except ConfigError as exc:
        raise _fail(exc) from exc

    typer.echo(format_check(result, fmt))  # type: ignore[arg-type]
    raise typer.Exit(int(check_exit_code(result)))


@app.command("validate")
def validate_command(
    suite_file: Annotated[Path, typer.Argument(help="Path to the YAML test suite.")],
) -> None:
    """Parse a test suite without sending any request."""
    try:
        suite = load_suite(suite_file)
    except (ParseError, ConfigError) as exc:
        raise _fail(exc) from exc
    typer.echo(f"{suite_file}: valid ({len(suite.tests)} test(s) in '{suite.name}')")


def main() -> None:
    """Run the x402-testkit CLI."""
    app()


if __name__ == "__main__":
    main()
