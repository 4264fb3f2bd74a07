"""
Command line interface for the cloud resource monitor.
"""

import argparse
import json
import sys
from typing import List, Optional

import pandas as pd

from .exceptions import MonitoringError
from .models import (
    MetricKind,
    MetricSeriesResponse,
    ResourceFamilyName,
    ResourceUsageSummary,
)
from .models.types import SUMMARY_METRIC_KINDS
from .services.aws_clients import (
    AWSClientFactory,
    CloudWatchMetricBackend,
    EC2InventoryBackend,
    RDSInventoryBackend,
)
from .services.config import ConfigManager
from .services.inventory import InventoryService
from .services.monitoring import MonitoringService
from .utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

SERIES_COLUMNS = ["timestamp", "average", "maximum", "minimum", "sum", "sample_count", "unit"]


class MonitoringApp:
    """Main application class"""

    def __init__(self, config_dir: str = "config"):
        self.config_manager = ConfigManager(config_dir)
        factory = AWSClientFactory(self.config_manager.aws_config)
        self.monitoring = MonitoringService(
            CloudWatchMetricBackend(factory.cloudwatch()),
            metrics_config=self.config_manager.metrics_config,
        )
        self.inventory = InventoryService(
            EC2InventoryBackend(factory.ec2()),
            RDSInventoryBackend(factory.rds()),
        )

        logger.debug(
            "Application initialized",
            config_dir=config_dir,
            region=self.config_manager.aws_config.region,
        )

    async def list_instances(self, family: ResourceFamilyName, running_only: bool = False) -> list:
        if running_only:
            if family == ResourceFamilyName.RDS:
                return await self.inventory.list_available_db_instances()
            return await self.inventory.list_running_instances()
        return await self.inventory.list_instances(family)

    async def get_metric(
        self,
        family: ResourceFamilyName,
        resource_id: str,
        metric_kind: MetricKind,
        period: Optional[int] = None,
        hours: Optional[int] = None,
    ) -> MetricSeriesResponse:
        return await self.monitoring.get_metric(
            family, resource_id, metric_kind, period=period, hours=hours
        )

    async def get_usage_summary(self, family: ResourceFamilyName, resource_id: str) -> ResourceUsageSummary:
        return await self.monitoring.get_usage_summary(family, resource_id)

    def print_instances(self, instances: list):
        """Print a human-readable instance table"""
        print("\n" + "=" * 80)
        print(f"Instances: {len(instances)}")
        print()
        for instance in instances:
            if hasattr(instance, "engine"):
                print(
                    f"  {instance.instance_id:<40} {instance.instance_class or '-':<16} "
                    f"{instance.engine or '-':<12} {instance.status or '-'}"
                )
            else:
                print(
                    f"  {instance.instance_id:<20} {instance.name or '-':<24} "
                    f"{instance.instance_type or '-':<12} {instance.state or '-':<10} "
                    f"{instance.platform}"
                )
        print("=" * 80)

    def print_metric(self, response: MetricSeriesResponse):
        """Print one series and its window statistics"""
        series = response.series
        stats = response.statistics
        print("\n" + "=" * 80)
        print(f"Resource: {series.resource_id}")
        print(f"Metric:   {series.namespace}/{series.metric_name} ({series.unit})")
        print(f"Window:   {series.window.start.isoformat()} -> {series.window.end.isoformat()}")
        print(f"Period:   {series.period}s, {stats.data_point_count} data points")
        print()

        if series.is_empty:
            print("No data points in window")
        else:
            print("STATISTICS:")
            print(f"  Average: {_fmt(stats.average)}")
            print(f"  Maximum: {_fmt(stats.maximum)}")
            print(f"  Minimum: {_fmt(stats.minimum)}")
            print()
            print("LATEST DATA POINTS:")
            for point in series.data_points[-5:]:
                print(
                    f"  {point.timestamp.isoformat()}  avg={_fmt(point.average)}  "
                    f"max={_fmt(point.maximum)}  min={_fmt(point.minimum)}"
                )
        print("=" * 80)

    def print_summary(self, summary: ResourceUsageSummary):
        """Print a human-readable usage summary"""
        print("\n" + "=" * 80)
        print(f"Resource: {summary.resource_id} ({summary.family.value})")
        print(f"Window:   {summary.window.start.isoformat()} -> {summary.window.end.isoformat()}")
        print()
        print(f"  {'Metric':<18} {'Average':>16} {'Maximum':>16} {'Minimum':>16}  Unit")
        for kind in SUMMARY_METRIC_KINDS:
            usage = summary.usage_for(kind)
            print(
                f"  {kind.value:<18} {usage.average:>16.2f} {usage.maximum:>16.2f} "
                f"{usage.minimum:>16.2f}  {usage.unit}"
            )

        if summary.degraded_metrics:
            print()
            print(
                "Unavailable (reported as zero): "
                + ", ".join(k.value for k in summary.degraded_metrics)
            )
        print("=" * 80)

    def export_series(self, response: MetricSeriesResponse, output_file: str, format_type: str = "json"):
        """Export a metric series in the specified format

        Returns:
            dict: Information about exported files
        """
        format_type = format_type.lower()
        try:
            if format_type == "json":
                with open(output_file, "w") as f:
                    json.dump(response.model_dump(mode="json"), f, indent=2)
                logger.info("JSON series exported", file=output_file)
                return {"format": "json", "files": [output_file]}

            frame = pd.DataFrame(
                [p.model_dump() for p in response.series.data_points],
                columns=SERIES_COLUMNS,
            )

            if format_type == "csv":
                frame.to_csv(output_file, index=False)
                logger.info("CSV series exported", file=output_file, rows=len(frame))
                return {"format": "csv", "files": [output_file]}

            if format_type == "excel":
                # openpyxl rejects timezone-aware datetimes
                frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True).dt.tz_localize(None)
                statistics = response.statistics.model_dump(exclude={"latest"})
                with pd.ExcelWriter(output_file, engine="openpyxl") as writer:
                    frame.to_excel(writer, sheet_name="Data Points", index=False)
                    pd.DataFrame(
                        {"Statistic": list(statistics), "Value": list(statistics.values())}
                    ).to_excel(writer, sheet_name="Statistics", index=False)
                logger.info("Excel series exported", file=output_file, sheets=2)
                return {"format": "excel", "files": [output_file]}

            raise ValueError(f"Unsupported export format: {format_type}")

        except Exception as e:
            logger.error("Export failed", error=str(e), format=format_type)
            return {"format": format_type, "files": [], "error": str(e)}

    def export_summary(self, summary: ResourceUsageSummary, output_file: str, format_type: str = "json"):
        """Export a usage summary; one row per metric for tabular formats"""
        format_type = format_type.lower()
        try:
            if format_type == "json":
                with open(output_file, "w") as f:
                    json.dump(summary.model_dump(mode="json"), f, indent=2)
                return {"format": "json", "files": [output_file]}

            rows = []
            for kind in SUMMARY_METRIC_KINDS:
                usage = summary.usage_for(kind)
                rows.append(
                    {
                        "Metric": kind.value,
                        "Average": usage.average,
                        "Maximum": usage.maximum,
                        "Minimum": usage.minimum,
                        "Unit": usage.unit,
                        "Data Points": usage.data_point_count,
                        "Unavailable": kind in summary.degraded_metrics,
                    }
                )
            frame = pd.DataFrame(rows)

            if format_type == "csv":
                frame.to_csv(output_file, index=False)
            elif format_type == "excel":
                with pd.ExcelWriter(output_file, engine="openpyxl") as writer:
                    frame.to_excel(writer, sheet_name="Usage Summary", index=False)
            else:
                raise ValueError(f"Unsupported export format: {format_type}")

            logger.info("Usage summary exported", file=output_file, format=format_type)
            return {"format": format_type, "files": [output_file]}

        except Exception as e:
            logger.error("Export failed", error=str(e), format=format_type)
            return {"format": format_type, "files": [], "error": str(e)}

    def get_status(self):
        """Get application status"""
        return {
            "config": self.config_manager.as_dict(),
            "families": [f.value for f in self.monitoring.families],
        }


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:,.2f}"


def _print_export_result(result: dict, output_file: str):
    if result.get("error"):
        print(f"\nExport failed: {result['error']}")
    else:
        print(f"\nSaved to: {result['files'][0] if result['files'] else output_file}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Cloud Resource Monitor - CLI and API Server",
        prog="python -m cloud_resource_monitor",
    )

    subparsers = parser.add_subparsers(dest="mode", help="Operation mode")

    instances_parser = subparsers.add_parser("instances", help="List instances")
    instances_parser.add_argument(
        "--running",
        action="store_true",
        help="Only running EC2 instances / available RDS instances",
    )

    metric_parser = subparsers.add_parser("metric", help="Fetch a metric series")
    metric_parser.add_argument("--resource-id", required=True, help="Instance identifier")
    metric_parser.add_argument(
        "--metric",
        choices=[k.value for k in MetricKind],
        default=MetricKind.CPU_UTILIZATION.value,
        help="Metric to fetch",
    )
    metric_parser.add_argument("--period", type=int, help="Aggregation period in seconds")
    metric_parser.add_argument("--hours", type=int, help="Lookback in hours")

    summary_parser = subparsers.add_parser("summary", help="Trailing 24 hour usage summary")
    summary_parser.add_argument("--resource-id", required=True, help="Instance identifier")

    for subparser in [metric_parser, summary_parser]:
        subparser.add_argument("--output-file", help="Output file for the result")
        subparser.add_argument(
            "--output-format",
            choices=["json", "csv", "excel"],
            default="json",
            help="Output format (json=full details, csv=table, excel=workbook)",
        )

    status_parser = subparsers.add_parser("status", help="Show configuration status")

    server_parser = subparsers.add_parser("serve", help="Start API server")
    server_parser.add_argument("--host", default="0.0.0.0", help="Server host")
    server_parser.add_argument("--port", type=int, default=8000, help="Server port")
    server_parser.add_argument("--workers", type=int, default=1, help="Number of workers")
    server_parser.add_argument("--reload", action="store_true", help="Enable auto-reload (development)")

    # Common arguments
    for subparser in [instances_parser, metric_parser, summary_parser, status_parser, server_parser]:
        subparser.add_argument("--config-dir", default="config", help="Configuration directory")
        subparser.add_argument(
            "--family",
            choices=[f.value for f in ResourceFamilyName],
            default=ResourceFamilyName.EC2.value,
            help="Resource family",
        )
        subparser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose (DEBUG) logging"
        )
        subparser.add_argument(
            "--quiet", "-q", action="store_true", help="Reduce output (WARNING+ only)"
        )
        subparser.add_argument(
            "--log-format",
            choices=["auto", "json", "human"],
            default="auto",
            help="Log output format (auto=detect based on terminal)",
        )

    return parser


async def main(argv: Optional[List[str]] = None):
    """Main entry point

    Returns ("serve", config) in serve mode so the caller can start uvicorn
    outside the running event loop.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.mode is None:
        parser.print_help()
        return None

    if args.quiet:
        log_level = "WARNING"
    elif args.verbose:
        log_level = "DEBUG"
    else:
        log_level = "INFO"

    configure_logging(level=log_level, format_type=args.log_format, component="cli")

    if args.mode == "serve":
        return (
            "serve",
            {
                "host": args.host,
                "port": args.port,
                "workers": args.workers,
                "log_level": log_level,
                "config_dir": args.config_dir,
                "reload": args.reload,
                "log_format": args.log_format,
            },
        )

    try:
        app = MonitoringApp(args.config_dir)
        family = ResourceFamilyName(args.family)

        if args.mode == "status":
            print(json.dumps(app.get_status(), indent=2))

        elif args.mode == "instances":
            instances = await app.list_instances(family, running_only=args.running)
            app.print_instances(instances)

        elif args.mode == "metric":
            response = await app.get_metric(
                family,
                args.resource_id,
                MetricKind(args.metric),
                period=args.period,
                hours=args.hours,
            )
            app.print_metric(response)
            if args.output_file:
                _print_export_result(
                    app.export_series(response, args.output_file, args.output_format),
                    args.output_file,
                )

        elif args.mode == "summary":
            summary = await app.get_usage_summary(family, args.resource_id)
            app.print_summary(summary)
            if args.output_file:
                _print_export_result(
                    app.export_summary(summary, args.output_file, args.output_format),
                    args.output_file,
                )

    except MonitoringError as e:
        logger.error("Query failed", error=e.message, **e.details())
        print(f"Error ({e.kind.value}): {e.message}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        sys.exit(0)
    except Exception as e:
        logger.critical("Application failed", error=str(e))
        sys.exit(1)

    return None
