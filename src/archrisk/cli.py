"""
Command-line interface for archrisk

Provides CLI commands for:
- Analyzing an architecture: archrisk analyze --input-file system.json
- Fallback-only analysis: archrisk fallback --input-file system.json
- Keyword risk score: archrisk score --input-file system.json
- Serving the HTTP API: archrisk serve --port 5000
- Managing configuration: archrisk config --show
"""

import asyncio
import json

import click
import uvicorn
import yaml

from . import __version__
from .analysis_pipeline import analyze as analyze_func
from .analysis_pipeline import analyze_offline, validate_input
from .config import get_config
from .fallback import estimate_risk_score


def _load_input(input_file: str) -> dict:
    with open(input_file, encoding="utf-8") as f:
        return json.load(f)


def _echo_summary(result: dict) -> None:
    metadata = result.get("metadata", {})
    metrics = result.get("metrics", {})

    click.echo(f"🔍 Risk Analysis for {metadata.get('systemName', 'unknown system')}")
    click.echo("=" * 50)
    click.echo(f"Risk Score: {result['riskScore']}")
    click.echo(f"Confidence: {metadata.get('confidenceLevel')}")
    click.echo(f"Generated By: {metadata.get('generatedBy')}")
    click.echo(f"Analysis ID: {metadata.get('analysisId')}")

    if result.get("scenarios"):
        click.echo("\n🚨 Failure Scenarios:")
        for scenario in result["scenarios"]:
            click.echo(
                f"  {scenario['rank']}. {scenario['title']} "
                f"[{scenario['severity']}, {scenario['probability']}, "
                f"MTTR {scenario['mttr']} min]"
            )

    if result.get("components"):
        click.echo("\nComponent Health:")
        for component in result["components"]:
            click.echo(
                f"  - {component['name']}: {component['score']} ({component['status']})"
            )

    if result.get("recommendations"):
        click.echo("\n🔧 Recommendations:")
        for rec in result["recommendations"]:
            click.echo(f"  {rec['priority']}. {rec['action']} ({rec['costSaving']})")

    failure = result.get("failureInfo", {})
    if failure.get("failurePoint"):
        click.echo(
            f"\nFailure Point: {failure['failurePoint']} "
            f"in {failure.get('failureComponent')}"
        )

    if metrics:
        click.echo(
            f"SPOF: {metrics.get('totalSPOF')}  "
            f"Avg MTTR: {metrics.get('avgMTTR')} min  "
            f"Downtime: {metrics.get('projectedDowntime')} h/mo  "
            f"Savings: {metrics.get('totalSavings')}"
        )


@click.group()
@click.version_option(version=__version__, prog_name="archrisk")
def cli():
    """archrisk - AI-assisted architecture failure-risk analysis"""


@cli.command()
@click.option(
    "--input-file",
    type=click.Path(exists=True),
    required=True,
    help="JSON file describing the architecture",
)
@click.option("--offline", is_flag=True, help="Skip the LLM and use the fallback engine")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["summary", "json"]),
    default="summary",
    help="Output format",
)
def analyze(input_file: str, offline: bool, output_format: str):
    """Analyze an architecture description and report failure risks"""
    try:
        input_data = _load_input(input_file)

        if offline:
            result = analyze_offline(input_data)
        else:
            result = asyncio.run(analyze_func(input_data))

        if output_format == "json":
            click.echo(json.dumps(result, indent=2))
        else:
            _echo_summary(result)

    except Exception as e:
        click.echo(f"❌ Analysis failed: {e}", err=True)
        raise SystemExit(1)


@cli.command()
@click.option(
    "--input-file",
    type=click.Path(exists=True),
    required=True,
    help="JSON file describing the architecture",
)
def fallback(input_file: str):
    """Print the deterministic fallback report as JSON"""
    try:
        result = analyze_offline(_load_input(input_file))
        click.echo(json.dumps(result, indent=2))
    except Exception as e:
        click.echo(f"❌ Fallback analysis failed: {e}", err=True)
        raise SystemExit(1)


@cli.command()
@click.option(
    "--input-file",
    type=click.Path(exists=True),
    required=True,
    help="JSON file describing the architecture",
)
def score(input_file: str):
    """Estimate a risk score from keywords in the description"""
    try:
        record = validate_input(_load_input(input_file))
        click.echo(f"Heuristic Risk Score: {estimate_risk_score(record)}")
    except Exception as e:
        click.echo(f"❌ Scoring failed: {e}", err=True)
        raise SystemExit(1)


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to config)")
@click.option("--port", type=int, default=None, help="Port (defaults to config)")
def serve(host, port):
    """Run the HTTP API"""
    server_config = get_config().server
    uvicorn.run(
        "archrisk.server:create_app",
        factory=True,
        host=host or server_config.host,
        port=port or server_config.port,
    )


@cli.command()
@click.option("--show", is_flag=True, help="Show current configuration")
@click.option("--format", type=click.Choice(["yaml", "json"]), default="yaml", help="Output format")
def config(show: bool, format: str):
    """Manage archrisk configuration"""
    if show:
        try:
            config_dict = get_config().model_dump()

            click.echo("🔧 Current archrisk Configuration")
            click.echo("=" * 40)

            if format == "yaml":
                click.echo(yaml.dump(config_dict, default_flow_style=False, indent=2))
            elif format == "json":
                click.echo(json.dumps(config_dict, indent=2))

        except Exception as e:
            click.echo(f"❌ Failed to load configuration: {e}", err=True)
    else:
        click.echo("Use --show to display current configuration")
        click.echo("Available options:")
        click.echo("  --show          Show current configuration")
        click.echo("  --format yaml   Output in YAML format (default)")
        click.echo("  --format json   Output in JSON format")


def main():
    """Entry point for the CLI"""
    cli()


if __name__ == "__main__":
    main()
