"""
Main CLI interface for cost analysis.

Lets an operator preview and run cost queries for a client, and inspect or
re-check the cost-read permission setup of the client's Azure environments.
"""

import asyncio
import json
import logging
import sys

import click

from .analysis.session import CostAnalysisSession
from .analysis.table import SORTABLE_FIELDS, dimension_columns, grouping_value, show_previous_period
from .config.settings import get_config, settings
from .display.formatters import format_currency, format_percentage
from .permissions.gate import PermissionState
from .providers.base import BillingBackend, CostAnalysisError, Dimension, ProviderFactory
from .query.builder import QuerySpecBuilder
from .query.date_presets import DATE_PRESETS, resolve_preset

# Set up logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity settings."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        # Default behavior: only show results and errors
        logging.getLogger().setLevel(logging.ERROR)

    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.ERROR)
    logging.getLogger("httpcore").setLevel(logging.WARNING if verbose else logging.ERROR)


def create_backend(config) -> BillingBackend:
    """Create the Azure billing backend from configuration."""
    from .providers import azure  # noqa: F401  (registers the backend)

    return ProviderFactory.create_provider("azure", config.get_backend_config())


def query_options(func):
    """Options shared by commands that build a query."""
    options = [
        click.option("--preset", type=click.Choice(list(DATE_PRESETS)), help="Date preset"),
        click.option("--from", "start", type=click.DateTime(formats=["%Y-%m-%d"]), help="Custom range start"),
        click.option("--to", "end", type=click.DateTime(formats=["%Y-%m-%d"]), help="Custom range end"),
        click.option("--granularity", type=click.Choice(["None", "Daily"]), help="Cost granularity"),
        click.option(
            "--group",
            "groups",
            multiple=True,
            type=click.Choice([d.value for d in Dimension]),
            help="Grouping dimension (repeatable, replaces the default grouping)",
        ),
        click.option("--no-group", is_flag=True, help="Aggregate without grouping dimensions"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def apply_query_options(builder: QuerySpecBuilder, preset, start, end, granularity, groups, no_group):
    """Apply CLI query options to a builder."""
    if (start is None) != (end is None):
        raise click.UsageError("--from and --to must be given together")
    if start is not None:
        builder.set_custom_range(start.date(), end.date())
    elif preset:
        builder.set_preset(preset)

    if granularity:
        builder.set_granularity(granularity)

    if groups or no_group:
        for dimension in builder.selected_dimensions:
            builder.toggle_dimension(dimension)
        for name in groups:
            if Dimension(name) not in builder.selected_dimensions:
                builder.toggle_dimension(name)


def render_table(session: CostAnalysisSession) -> str:
    """Plain-text rendering of the current result."""
    result = session.result
    if result is None or not result.items:
        return "No cost data found for the selected time period and filters."

    with_previous = show_previous_period(result.include_previous_period)
    columns = dimension_columns(result.query)
    headers = ["Name"] + [label for _, label in columns]
    if with_previous:
        headers.append("Previous")
    headers += ["Current", "Difference", "Change"]

    rows = []
    for item in session.display_items():
        row = [item.name] + [grouping_value(item, dimension) for dimension, _ in columns]
        if with_previous:
            row.append(format_currency(item.previous_period_cost, item.currency))
        row += [
            format_currency(item.current_period_cost, item.currency),
            format_currency(item.cost_difference, item.currency),
            format_percentage(item.percentage_change),
        ]
        rows.append(row)

    widths = [max(len(str(cell)) for cell in column) for column in zip(headers, *rows)]
    lines = ["  ".join(str(cell).ljust(width) for cell, width in zip(headers, widths))]
    lines.append("  ".join("-" * width for width in widths))
    for row in rows:
        lines.append("  ".join(str(cell).ljust(width) for cell, width in zip(row, widths)))

    summary = result.summary
    lines.append("")
    lines.append(f"Items: {summary.item_count}")
    if with_previous:
        lines.append(f"Previous period: {format_currency(summary.total_previous_period_cost, summary.currency)}")
    lines.append(f"Current period:  {format_currency(summary.total_current_period_cost, summary.currency)}")
    lines.append(
        f"Change:          {format_currency(summary.total_cost_difference, summary.currency)} "
        f"({format_percentage(summary.total_percentage_change)})"
    )
    return "\n".join(lines)


@click.group()
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False), help="Path to configuration file")
@click.option("--api-url", help="Cost analysis API base URL")
@click.option("--token", help="Bearer token for the cost analysis API")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging and debug output")
@click.pass_context
def cli(ctx, config, api_url, token, verbose):
    """Cost Analysis - Compare Azure costs between periods."""
    setup_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    try:
        if config:
            settings.load_file(path=config)
        analysis_config = get_config()
        analysis_config.override_from_cli({"base_url": api_url, "token": token})
        ctx.obj["config"] = analysis_config
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def presets():
    """List date presets and the ranges they resolve to today."""
    for key, preset in DATE_PRESETS.items():
        period = resolve_preset(key)
        click.echo(f"{key:<12} {preset.label:<20} {period.start_date} .. {period.end_date}")


@cli.command()
@query_options
@click.pass_context
def preview(ctx, preset, start, end, granularity, groups, no_group):
    """Show the query that would be submitted."""
    session = CostAnalysisSession.from_config(None, ctx.obj["config"])
    apply_query_options(session.builder, preset, start, end, granularity, groups, no_group)
    spec = session.builder.serialize()

    click.echo(spec.describe())
    if session.include_previous_period:
        comparison = spec.comparison_period()
        click.echo(f"Compared with {comparison.start_date} .. {comparison.end_date}")
    click.echo(session.builder.preview_json())


@cli.command()
@click.option("--client", "client_id", required=True, help="Client (tenant) identifier")
@query_options
@click.option("--no-previous", is_flag=True, help="Skip the previous period comparison")
@click.option("--anonymize", is_flag=True, help="Anonymize identifiers for screen sharing")
@click.option("--sort", "sort_field", type=click.Choice(SORTABLE_FIELDS), help="Sort field (descending)")
@click.option("--hide-zero", is_flag=True, help="Hide items without any change")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def run(ctx, client_id, preset, start, end, granularity, groups, no_group, no_previous, anonymize, sort_field, hide_zero, output_format):
    """Run a cost analysis for a client."""
    config = ctx.obj["config"]

    async def _run():
        backend = create_backend(config)
        session = CostAnalysisSession.from_config(backend, config)
        try:
            session.select_client(client_id)
            apply_query_options(session.builder, preset, start, end, granularity, groups, no_group)
            if no_previous:
                session.include_previous_period = False
            if anonymize:
                session.toggle_anonymization()
            if sort_field and sort_field != session.table.sort_field:
                session.table.handle_sort(sort_field)
            session.table.hide_zero_changes = hide_zero

            await session.run_analysis()
            return session
        finally:
            session.close()
            await backend.close()

    try:
        session = asyncio.run(_run())
    except CostAnalysisError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if session.state == PermissionState.NEEDS_SETUP:
        click.echo("⚠️  Cost analysis setup required for:", err=True)
        for env in session.gate.environments_needing_setup:
            click.echo(f"  {env.azure_environment_id}  {env.environment_name}", err=True)
        click.echo("Run 'cost-analysis setup-instructions ENV_ID' for the steps.", err=True)
        sys.exit(2)

    if session.state == PermissionState.ERROR:
        click.echo(f"❌ Cost analysis failed: {session.last_error}", err=True)
        sys.exit(1)

    if output_format == "json":
        payload = session.result.model_dump(mode="json")
        payload["items"] = [item.model_dump(mode="json") for item in session.display_items()]
        payload["query"] = session.result.query.to_wire() if session.result.query else None
        click.echo(json.dumps(payload, indent=2))
    else:
        click.echo(render_table(session))


@cli.command("setup-instructions")
@click.argument("environment_id")
@click.pass_context
def setup_instructions(ctx, environment_id):
    """Show how to grant cost-read access to an environment."""
    config = ctx.obj["config"]

    async def _fetch():
        backend = create_backend(config)
        try:
            session = CostAnalysisSession.from_config(backend, config)
            return await session.get_setup_instructions(environment_id)
        finally:
            await backend.close()

    try:
        instructions = asyncio.run(_fetch())
    except CostAnalysisError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if instructions is None:
        click.echo(f"❌ Could not retrieve setup instructions for {environment_id}", err=True)
        sys.exit(1)

    click.echo(f"Assign the '{instructions.role_name}' role")
    if instructions.scope:
        click.echo(f"Scope: {instructions.scope}")
    for number, step in enumerate(instructions.steps, start=1):
        click.echo(f"  {number}. {step}")
    if instructions.azure_cli_command:
        click.echo("\nAzure CLI:")
        click.echo(instructions.azure_cli_command)


@cli.command("check-permissions")
@click.argument("environment_id")
@click.pass_context
def check_permissions(ctx, environment_id):
    """Re-check cost-read access of an environment."""
    config = ctx.obj["config"]

    async def _check():
        backend = create_backend(config)
        try:
            session = CostAnalysisSession.from_config(backend, config)
            return await session.check_environment_permissions(environment_id)
        finally:
            await backend.close()

    try:
        has_access = asyncio.run(_check())
    except CostAnalysisError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if has_access is None:
        click.echo(f"❌ Permission check failed for {environment_id}", err=True)
        sys.exit(1)
    if has_access:
        click.echo(f"✅ {environment_id} has cost access")
    else:
        click.echo(f"⚠️  {environment_id} still needs setup")
        sys.exit(2)


@cli.command()
def version():
    """Display version information."""
    from . import __version__

    click.echo(f"Cost Analysis v{__version__}")


if __name__ == "__main__":
    cli()
