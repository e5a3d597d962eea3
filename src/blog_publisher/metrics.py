"""Shared OTel metrics instruments for linting and site builds."""

from opentelemetry import metrics

METER_NAME = "blog_publisher"

meter = metrics.get_meter(METER_NAME)

lint_issues_total = meter.create_counter(
    name="lint_issues_total",
    description="Lint issues found, by rule and severity",
    unit="1",
)

pages_rendered_total = meter.create_counter(
    name="pages_rendered_total",
    description="Pages rendered, by kind (post, index, tag)",
    unit="1",
)

builds_total = meter.create_counter(
    name="builds_total",
    description="Site builds, by outcome",
    unit="1",
)

build_duration = meter.create_histogram(
    name="build_duration_seconds",
    description="Duration of a full site build",
    unit="s",
)
