"""Prometheus format exporter"""
from typing import Dict, List
from ..models import MetricValue


CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


class PrometheusExporter:
    """Export metrics in Prometheus text exposition format"""

    def export_metrics(self, metrics: List[MetricValue]) -> str:
        """Convert metrics to Prometheus format"""
        # Group metrics by name to avoid duplicate HELP/TYPE comments
        metrics_by_name: Dict[str, List[MetricValue]] = {}
        for metric in metrics:
            metrics_by_name.setdefault(metric.name, []).append(metric)

        lines = []
        for metric_name, metric_list in metrics_by_name.items():
            first = metric_list[0]
            help_text = first.help_text.replace("\\", "\\\\").replace("\n", "\\n")
            lines.append(f"# HELP {metric_name} {help_text}")
            lines.append(f"# TYPE {metric_name} {first.metric_type.value}")

            for metric in metric_list:
                lines.append(metric.to_prometheus_line())

        if not lines:
            return ""
        return "\n".join(lines) + "\n"
