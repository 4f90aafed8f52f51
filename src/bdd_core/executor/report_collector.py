import json
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Any, Optional
import logging
from jinja2 import Template

from .events import (
    EventDispatcher,
    SUITE_BEFORE,
    SUITE_AFTER,
    TEST_STARTED,
    TEST_PASSED,
    TEST_FAILED,
    TEST_SKIPPED,
    TEST_FINISHED,
)

logger = logging.getLogger(__name__)

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Test Execution Report - {{ timestamp }}</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 20px; background-color: #f5f5f5; }
        .header { background-color: #333; color: white; padding: 20px; border-radius: 5px; }
        .summary { display: flex; gap: 20px; margin: 20px 0 30px 0; }
        .summary-card { background: white; padding: 20px; border-radius: 5px; flex: 1; text-align: center; }
        .number { font-size: 36px; font-weight: bold; }
        .passed { color: #28a745; }
        .failed { color: #dc3545; }
        .skipped { color: #ffc107; }
        .feature { background: white; margin-bottom: 20px; border-radius: 5px; overflow: hidden; }
        .feature-header { background: #f8f9fa; padding: 15px 20px; border-bottom: 1px solid #dee2e6; }
        .scenario { padding: 15px 20px; border-bottom: 1px solid #eee; }
        .scenario-name { font-weight: bold; }
        .step { margin-left: 20px; padding: 5px 0; font-family: monospace; font-size: 14px; }
        .error { background-color: #f8d7da; color: #721c24; padding: 10px; margin: 10px 0 10px 20px; }
        .tag { background-color: #e9ecef; padding: 2px 6px; border-radius: 3px; font-size: 11px; }
    </style>
</head>
<body>
    <div class="header">
        <h1>Test Execution Report</h1>
        <p>Generated: {{ timestamp }}</p>
        <p>Duration: {{ duration }}</p>
    </div>

    <div class="summary">
        <div class="summary-card"><h3>Total Tests</h3><div class="number">{{ summary.total }}</div></div>
        <div class="summary-card"><h3>Passed</h3><div class="number passed">{{ summary.passed }}</div></div>
        <div class="summary-card"><h3>Failed</h3><div class="number failed">{{ summary.failed }}</div></div>
        <div class="summary-card"><h3>Skipped</h3><div class="number skipped">{{ summary.skipped }}</div></div>
        <div class="summary-card"><h3>Pass Rate</h3><div class="number">{{ pass_rate }}%</div></div>
    </div>

    {% for feature in features %}
    <div class="feature">
        <div class="feature-header {{ feature.status }}"><h2>{{ feature.feature }}</h2></div>
        {% for scenario in feature.scenarios %}
        <div class="scenario">
            <span class="scenario-name">{{ scenario.name }}</span>
            <span class="{{ scenario.status }}">{{ scenario.status|upper }}</span>
            {% for tag in scenario.tags %}<span class="tag">@{{ tag }}</span>{% endfor %}
            {% for step in scenario.steps %}
            <div class="step">{{ step.keyword }} {{ step.name }}</div>
            {% endfor %}
            {% if scenario.error %}<div class="error">{{ scenario.error }}</div>{% endif %}
        </div>
        {% endfor %}
    </div>
    {% endfor %}
</body>
</html>
"""

JUNIT_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<testsuites name="BDD Core Test Results" time="{{ duration }}" tests="{{ summary.total }}" failures="{{ summary.failed }}" skipped="{{ summary.skipped }}">
{%- for feature in features %}
    <testsuite name="{{ feature.feature|e }}" tests="{{ feature.scenarios|length }}" failures="{{ feature.failures }}" time="{{ feature.duration }}">
    {%- for scenario in feature.scenarios %}
        <testcase classname="{{ feature.feature|replace(' ', '_')|e }}" name="{{ scenario.name|e }}" time="{{ scenario.duration }}">
        {%- if scenario.status == 'failed' %}
            <failure message="{{ scenario.error|default('Test failed')|e }}"></failure>
        {%- elif scenario.status == 'skipped' %}
            <skipped/>
        {%- endif %}
        </testcase>
    {%- endfor %}
    </testsuite>
{%- endfor %}
</testsuites>
"""


def _seconds(start: Optional[str], end: Optional[str]) -> float:
    if not start or not end:
        return 0
    return (datetime.fromisoformat(end) - datetime.fromisoformat(start)).total_seconds()


class ReportCollector:
    """Collects test results from lifecycle events and writes reports"""

    def __init__(self, output_dir: str = "test-results"):
        self.output_dir = Path(output_dir)
        self._features: List[Dict[str, Any]] = []
        self._current_feature: Optional[Dict[str, Any]] = None
        self._current_scenario: Optional[Dict[str, Any]] = None
        self._start_time: Optional[str] = None
        self._end_time: Optional[str] = None

    def attach(self, dispatcher: EventDispatcher) -> 'ReportCollector':
        """Subscribe to the events the report is built from"""
        dispatcher.on(SUITE_BEFORE, self._on_suite_before)
        dispatcher.on(SUITE_AFTER, self._on_suite_after)
        dispatcher.on(TEST_STARTED, self._on_test_started)
        dispatcher.on(TEST_PASSED, self._on_test_passed)
        dispatcher.on(TEST_FAILED, self._on_test_failed)
        dispatcher.on(TEST_SKIPPED, self._on_test_skipped)
        dispatcher.on(TEST_FINISHED, self._on_test_finished)
        return self

    def detach(self, dispatcher: EventDispatcher) -> None:
        dispatcher.off(SUITE_BEFORE, self._on_suite_before)
        dispatcher.off(SUITE_AFTER, self._on_suite_after)
        dispatcher.off(TEST_STARTED, self._on_test_started)
        dispatcher.off(TEST_PASSED, self._on_test_passed)
        dispatcher.off(TEST_FAILED, self._on_test_failed)
        dispatcher.off(TEST_SKIPPED, self._on_test_skipped)
        dispatcher.off(TEST_FINISHED, self._on_test_finished)

    def _on_suite_before(self, suite) -> None:
        now = datetime.now().isoformat()
        self._start_time = self._start_time or now
        self._current_feature = {
            'feature': suite.title,
            'tags': list(suite.tags),
            'scenarios': [],
            'status': 'passed',
            'start_time': now,
        }
        self._features.append(self._current_feature)

    def _on_suite_after(self, suite) -> None:
        if self._current_feature is not None:
            self._current_feature['end_time'] = datetime.now().isoformat()
        self._end_time = datetime.now().isoformat()
        self._current_feature = None

    def _on_test_started(self, test) -> None:
        if self._current_feature is None:
            # Test run outside a suite
            self._on_suite_before(_Untitled())

        self._start_time = self._start_time or datetime.now().isoformat()
        self._current_scenario = {
            'name': test.title,
            'tags': list(test.tags),
            'steps': [{'keyword': step.keyword, 'name': step.text} for step in test.steps],
            'status': 'running',
            'start_time': datetime.now().isoformat(),
        }
        self._current_feature['scenarios'].append(self._current_scenario)

    def _set_status(self, status: str, error: Optional[BaseException] = None) -> None:
        if self._current_scenario is None:
            return
        self._current_scenario['status'] = status
        if error is not None:
            self._current_scenario['error'] = str(error)
        if status == 'failed' and self._current_feature is not None:
            self._current_feature['status'] = 'failed'

    def _on_test_passed(self, test) -> None:
        self._set_status('passed')

    def _on_test_failed(self, test, error: Optional[BaseException] = None) -> None:
        self._set_status('failed', error)

    def _on_test_skipped(self, test) -> None:
        self._set_status('skipped')

    def _on_test_finished(self, test) -> None:
        if self._current_scenario is not None:
            self._current_scenario['end_time'] = datetime.now().isoformat()
        self._end_time = datetime.now().isoformat()
        self._current_scenario = None

    def results(self) -> Dict[str, Any]:
        """Results collected so far, with a per-test summary"""
        scenarios = [s for f in self._features for s in f['scenarios']]
        summary = {
            'total': len(scenarios),
            'passed': sum(1 for s in scenarios if s['status'] == 'passed'),
            'failed': sum(1 for s in scenarios if s['status'] == 'failed'),
            'skipped': sum(1 for s in scenarios if s['status'] == 'skipped'),
        }
        return {
            'features': self._features,
            'summary': summary,
            'start_time': self._start_time or datetime.now().isoformat(),
            'end_time': self._end_time or datetime.now().isoformat(),
        }

    def generate_report(self, results: Dict[str, Any], format: str = "html") -> str:
        """
        Generate test report in specified format

        Args:
            results: Test execution results
            format: Report format (html, json, junit)

        Returns:
            Path to generated report
        """
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        self.output_dir.mkdir(parents=True, exist_ok=True)

        if format == "html":
            return self._generate_html_report(results, timestamp)
        elif format == "json":
            return self._generate_json_report(results, timestamp)
        elif format == "junit":
            return self._generate_junit_report(results, timestamp)
        else:
            raise ValueError(f"Unsupported report format: {format}")

    def _generate_html_report(self, results: Dict[str, Any], timestamp: str) -> str:
        """Generate HTML report"""
        summary = results.get('summary', {})
        total = summary.get('total', 0)
        passed = summary.get('passed', 0)
        pass_rate = round((passed / total * 100) if total > 0 else 0, 1)
        duration = _seconds(results.get('start_time'), results.get('end_time'))

        template = Template(HTML_TEMPLATE, autoescape=True)
        html_content = template.render(
            timestamp=timestamp,
            duration=f"{duration:.3f}s",
            summary=summary,
            pass_rate=pass_rate,
            features=results.get('features', [])
        )

        report_path = self.output_dir / f"report_{timestamp}.html"
        with open(report_path, 'w', encoding='utf-8') as f:
            f.write(html_content)

        logger.info(f"HTML report generated: {report_path}")
        return str(report_path)

    def _generate_json_report(self, results: Dict[str, Any], timestamp: str) -> str:
        """Generate JSON report"""
        report_path = self.output_dir / f"report_{timestamp}.json"

        with open(report_path, 'w', encoding='utf-8') as f:
            json.dump(results, f, indent=2)

        logger.info(f"JSON report generated: {report_path}")
        return str(report_path)

    def _generate_junit_report(self, results: Dict[str, Any], timestamp: str) -> str:
        """Generate JUnit XML report"""
        features = []
        for feature in results.get('features', []):
            scenarios = [
                {**scenario, 'duration': _seconds(scenario.get('start_time'), scenario.get('end_time'))}
                for scenario in feature.get('scenarios', [])
            ]
            features.append({
                **feature,
                'scenarios': scenarios,
                'failures': sum(1 for s in scenarios if s.get('status') == 'failed'),
                'duration': _seconds(feature.get('start_time'), feature.get('end_time')),
            })

        template = Template(JUNIT_TEMPLATE)
        junit_content = template.render(
            duration=_seconds(results.get('start_time'), results.get('end_time')),
            summary=results.get('summary', {}),
            features=features
        )

        report_path = self.output_dir / f"report_{timestamp}.xml"
        with open(report_path, 'w', encoding='utf-8') as f:
            f.write(junit_content)

        logger.info(f"JUnit report generated: {report_path}")
        return str(report_path)


class _Untitled:
    title = ""
    tags: List[str] = []
