"""
Analysis Pipeline - turns an architecture description into a risk report

Renders the analysis prompt, makes one LLM call, parses the JSON answer and
attaches report metadata. Any failure along the way (network error, missing
API key, malformed output) is converted into a seeded fallback report.
"""

import contextlib
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import jinja2
import yaml
from pydantic import ValidationError

from .config import ArchriskConfig, get_config
from .fallback import (
    INCIDENT_MONTHS,
    TRAFFIC_POINTS,
    TRAFFIC_STEP_HOURS,
    generate_fallback_analysis,
)
from .llm_client import LLMRouter
from .models import (
    AnalysisReport,
    ArchitectureInput,
    MissingFieldsError,
    ReportMetadata,
    ReportParseError,
)
from .observability.metrics import get_metrics
from .observability.tracer import add_event, set_attribute, trace_async, trace_operation

logger = logging.getLogger(__name__)

FALLBACK_GENERATOR = "Seeded Fallback Engine"
FALLBACK_CONFIDENCE = "Low (Fallback)"
HIGH_RISK_THRESHOLD = 7

_FENCE_JSON = re.compile(r"```json\n?")
_FENCE = re.compile(r"```\n?")


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fence markers and surrounding whitespace"""
    return _FENCE.sub("", _FENCE_JSON.sub("", text)).strip()


def parse_report_text(text: str) -> AnalysisReport:
    """
    Parse model output into an AnalysisReport.

    Raises:
        ReportParseError: output is not a JSON object or does not fit the
            report shape.
    """
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ReportParseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ReportParseError("Response JSON is not an object")

    # Metadata is always produced locally
    data.pop("metadata", None)

    try:
        return AnalysisReport.model_validate(data)
    except ValidationError as e:
        raise ReportParseError(f"Response does not match report shape: {e}") from e


def confidence_label(risk_score: float, fallback: bool = False) -> str:
    if fallback:
        return FALLBACK_CONFIDENCE
    return "High" if risk_score >= HIGH_RISK_THRESHOLD else "Medium"


def build_metadata(
    report: AnalysisReport,
    system_name: str,
    *,
    generated_by: str,
    fallback: bool = False,
    now: Optional[datetime] = None,
) -> ReportMetadata:
    """Build the metadata block wrapped around every outbound report"""
    now = now or datetime.now(timezone.utc)
    return ReportMetadata(
        generated_by=generated_by,
        timestamp=now.strftime("%Y-%m-%d %H:%M:%S UTC"),
        analysis_id=f"RAS-{int(now.timestamp() * 1000)}",
        confidence_level=confidence_label(report.risk_score, fallback),
        system_name=system_name,
    )


def build_fallback_report(
    record: ArchitectureInput, now: Optional[datetime] = None
) -> AnalysisReport:
    """Seeded report wrapped with fallback metadata"""
    report = generate_fallback_analysis(record)
    metadata = build_metadata(
        report,
        record.system_name,
        generated_by=FALLBACK_GENERATOR,
        fallback=True,
        now=now,
    )
    return report.model_copy(update={"metadata": metadata})


def validate_input(input_data: dict[str, Any]) -> ArchitectureInput:
    """
    Validate a raw request body into an ArchitectureInput.

    Raises:
        MissingFieldsError: systemName or components is absent or empty.
        pydantic.ValidationError: a field is not a text value.
    """
    record = ArchitectureInput.model_validate(input_data)
    missing = record.missing_required_fields()
    if missing:
        metrics = get_metrics()
        if metrics:
            metrics.record_rejection()
        raise MissingFieldsError(missing)
    return record


class PromptManager:
    """Manages Jinja2 templates for LLM prompts"""

    def __init__(self, prompts_dir: Optional[str] = None):
        if prompts_dir is None:
            prompts_dir = get_config().prompts.prompts_dir

        self.prompts_dir = Path(prompts_dir)
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.prompts_dir)),
            autoescape=jinja2.select_autoescape(["html", "xml"]),
        )

    def get_template(self, template_path: str) -> jinja2.Template:
        """Get Jinja2 template by path (e.g., 'risk_analysis/v1/template.jinja2')"""
        try:
            return self.env.get_template(template_path)
        except jinja2.TemplateNotFound:
            logger.error(f"Template not found: {template_path}")
            raise

    def load_template_meta(self, template_key: str) -> dict[str, Any]:
        """Load template metadata (e.g., 'risk_analysis:v1' -> meta.yaml)"""
        template_name, version = template_key.split(":")
        meta_path = self.prompts_dir / template_name / version / "meta.yaml"

        if not meta_path.exists():
            logger.warning(f"Template metadata not found: {meta_path}")
            return {}

        with open(meta_path, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def render_template(self, template_key: str, context: dict[str, Any]) -> str:
        """Render template with context"""
        template_name, version = template_key.split(":")
        template = self.get_template(f"{template_name}/{version}/template.jinja2")
        return template.render(**context)


class AnalysisPipeline:
    """
    Request orchestrator

    One LLM attempt per analysis, seeded fallback on any failure.
    """

    def __init__(
        self,
        config: Optional[ArchriskConfig] = None,
        llm_router: Optional[LLMRouter] = None,
        prompt_manager: Optional[PromptManager] = None,
    ):
        self.config = config or get_config()
        self.llm_router = llm_router or LLMRouter(self.config)
        self.prompt_manager = prompt_manager or PromptManager(
            self.config.prompts.prompts_dir
        )

    def build_prompt(self, record: ArchitectureInput) -> str:
        context = {
            "architecture": record.model_dump(),
            "scenario_count": 3,
            "recommendation_count": 4,
            "traffic_labels": [
                f"{i * TRAFFIC_STEP_HOURS}h" for i in range(TRAFFIC_POINTS)
            ],
            "incident_months": INCIDENT_MONTHS,
        }
        return self.prompt_manager.render_template(
            self.config.prompts.risk_template, context
        )

    @trace_async("analysis.request_llm")
    async def request_analysis(self, record: ArchitectureInput) -> AnalysisReport:
        """Ask the LLM for a report; raises on any failure"""
        prompt = self.build_prompt(record)
        set_attribute("prompt.length", len(prompt))

        template_key = self.config.prompts.risk_template
        meta = self.prompt_manager.load_template_meta(template_key)

        response = await self.llm_router.generate(
            prompt=prompt, template_type=meta.get("template_type", "risk_analysis")
        )
        logger.info(f"Received response from {response.model}")

        try:
            report = parse_report_text(response.content)
        except ReportParseError:
            logger.debug(f"Raw response: {response.content[:500]}")
            raise

        metadata = build_metadata(
            report, record.system_name, generated_by=f"LLM ({response.model})"
        )
        return report.model_copy(update={"metadata": metadata})

    def fallback_report(self, record: ArchitectureInput, reason: str) -> AnalysisReport:
        """Seeded report with fallback metadata"""
        with trace_operation("analysis.fallback", {"fallback.reason": reason}):
            report = build_fallback_report(record)

        metrics = get_metrics()
        if metrics:
            metrics.record_fallback(reason)
        add_event("fallback_used", {"reason": reason})
        return report

    async def run(self, record: ArchitectureInput) -> AnalysisReport:
        """Produce a report for the record; never raises for LLM problems"""
        metrics = get_metrics()
        outcome: dict[str, str] = {}
        timer = metrics.time_analysis(outcome) if metrics else contextlib.nullcontext()

        logger.info(f"Received analysis request for: {record.system_name}")

        with trace_operation("analysis.pipeline", {"system.name": record.system_name}):
            with timer:
                try:
                    report = await self.request_analysis(record)
                    outcome["source"] = "llm"
                except ReportParseError as e:
                    logger.error(f"Error parsing LLM response, using fallback: {e}")
                    report = self.fallback_report(record, reason="parse_error")
                    outcome["source"] = "fallback"
                except Exception as e:
                    logger.error(f"LLM analysis failed, using fallback: {e}")
                    report = self.fallback_report(record, reason="llm_error")
                    outcome["source"] = "fallback"

            set_attribute("analysis.source", outcome["source"])
            set_attribute("analysis.risk_score", report.risk_score)

        if metrics:
            metrics.record_analysis(outcome["source"], report.metadata.confidence_level)

        logger.info(
            f"Analysis complete: risk score {report.risk_score}, "
            f"{len(report.scenarios)} scenarios, "
            f"{len(report.recommendations)} recommendations"
        )
        return report


async def analyze(
    input_data: dict[str, Any], config: Optional[ArchriskConfig] = None
) -> dict[str, Any]:
    """
    Main entry point for architecture risk analysis

    Args:
        input_data: Request body with systemName, components and the
            optional free-text fields
        config: Configuration to use instead of the global one

    Returns:
        Report dictionary with camelCase keys and a metadata block

    Raises:
        MissingFieldsError: required fields are absent
    """
    record = validate_input(input_data)
    pipeline = AnalysisPipeline(config)
    report = await pipeline.run(record)
    return report.to_wire()


def analyze_offline(input_data: dict[str, Any]) -> dict[str, Any]:
    """Fallback-only analysis, no LLM call"""
    record = validate_input(input_data)
    return build_fallback_report(record).to_wire()
