import asyncio
import importlib.util
import logging
import sys
from pathlib import Path
from typing import Iterable, List

import click
from behave.parser import parse_feature, ParserError

from . import __version__
from .core import ConfigManager, BDDCoreError
from .steps import default_registry
from .executor import (
    SuiteCompiler,
    ReportCollector,
    default_container,
    default_dispatcher,
    default_recorder,
)

logger = logging.getLogger(__name__)


def _step_files(paths: Iterable[str]) -> List[Path]:
    files = []
    for path in map(Path, paths):
        if path.is_dir():
            files.extend(sorted(path.glob('**/*.py')))
        elif path.exists():
            files.append(path)
        else:
            raise click.BadParameter(f"Step definitions not found: {path}")
    return files


def load_step_modules(paths: Iterable[str]) -> int:
    """Import step definition files; returns how many definitions they added"""
    before = len(default_registry.definitions)

    for path in _step_files(paths):
        module_name = f"bdd_core_steps_{path.stem}_{abs(hash(path.resolve()))}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        default_registry.register_from_module(module)
        logger.debug(f"Loaded step definitions from {path}")

    return len(default_registry.definitions) - before


@click.group()
@click.option('--config', '-c', type=click.Path(), help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """BDD Core - run Gherkin features against step definitions"""
    config_path = Path(config) if config else None
    try:
        ctx.obj = ConfigManager(config_path)
    except BDDCoreError as e:
        raise click.ClickException(str(e))

    # Setup logging
    level = logging.DEBUG if verbose else getattr(logging, str(ctx.obj.get('general.log_level', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    default_registry.whitespace = ctx.obj.get('steps.whitespace')


@cli.command()
def version():
    """Show version information"""
    click.echo(f"BDD Core v{__version__}")


@cli.command()
@click.argument('feature_files', nargs=-1, required=True, type=click.Path(exists=True))
@click.option('-s', '--steps', 'step_paths', multiple=True, help='Step definition file or directory')
@click.option('-r', '--report', 'report_formats', multiple=True,
              type=click.Choice(['html', 'json', 'junit']), help='Report format')
@click.option('-o', '--output-dir', help='Report output directory')
@click.option('--trace', is_flag=True, help='Print the recorded execution trace')
@click.pass_obj
def run(config, feature_files, step_paths, report_formats, output_dir, trace):
    """Run feature files"""
    report_config = config.get_module_config('report')
    report_formats = report_formats or tuple(report_config.get('formats', []))
    collector = ReportCollector(output_dir or report_config.get('output_dir', 'test-results'))
    collector.attach(default_dispatcher)

    try:
        count = load_step_modules([*config.get('steps.paths', []), *step_paths])
        click.echo(f"Loaded {count} step definitions")

        default_container.create({'helpers': config.get('helpers', {})})

        compiler = SuiteCompiler()
        failed = 0

        for feature_file in feature_files:
            text = Path(feature_file).read_text(encoding='utf-8')
            suite = compiler.compile(text, filename=str(feature_file))
            click.echo(f"\nFeature: {suite.title}")

            default_recorder.start()
            outcomes = asyncio.run(suite.run())
            default_recorder.stop()

            for test, error in outcomes:
                if test.pending:
                    click.echo(f"  - {test.title} (pending)")
                elif error is None:
                    click.echo(f"  ✓ {test.title}")
                else:
                    failed += 1
                    click.echo(f"  ✗ {test.title}")
                    click.echo(f"      Error: {error}")

            if trace:
                click.echo("\nTrace:")
                for line in default_recorder.trace():
                    click.echo(f"  {line}")

        results = collector.results()
        summary = results['summary']
        click.echo("\nTest Execution Summary:")
        click.echo(f"  Total: {summary['total']}")
        click.echo(f"  Passed: {summary['passed']}")
        click.echo(f"  Failed: {summary['failed']}")
        click.echo(f"  Skipped: {summary['skipped']}")

        for report_format in report_formats:
            report_path = collector.generate_report(results, report_format)
            click.echo(f"Report: {report_path}")

    except (BDDCoreError, ParserError, click.BadParameter) as e:
        raise click.ClickException(str(e))
    finally:
        collector.detach(default_dispatcher)
        default_container.clear()

    # Exit with appropriate code
    raise SystemExit(0 if failed == 0 else 1)


@cli.command('list-steps')
@click.option('-s', '--steps', 'step_paths', multiple=True, help='Step definition file or directory')
@click.pass_obj
def list_steps(config, step_paths):
    """List all available step definitions"""
    load_step_modules([*config.get('steps.paths', []), *step_paths])
    definitions = default_registry.list_definitions()

    click.echo("Available Step Definitions:")
    click.echo("=" * 60)

    for defn in definitions:
        click.echo(f"  {defn['keyword'].capitalize():<6} {defn['pattern']}")
        if defn.get('description'):
            click.echo(f"         {defn['description']}")

    click.echo(f"\nTotal: {len(definitions)}")
    click.echo("Note: matching ignores the keyword; the first registered match wins")


@cli.command()
@click.argument('feature_file', type=click.Path(exists=True))
@click.option('-s', '--steps', 'step_paths', multiple=True, help='Check steps against these definitions')
@click.pass_obj
def preview(config, feature_file, step_paths):
    """Preview feature file execution plan"""
    paths = [*config.get('steps.paths', []), *step_paths]
    check = bool(paths)
    if check:
        load_step_modules(paths)

    try:
        content = Path(feature_file).read_text(encoding='utf-8')
        feature = parse_feature(content, filename=feature_file)
    except ParserError as e:
        click.echo(f"Error parsing feature file: {str(e)}", err=True)
        raise SystemExit(1)

    if feature is None:
        click.echo(f"No feature found in {feature_file}", err=True)
        raise SystemExit(1)

    def show_step(step):
        marker = ""
        if check:
            marker = "✓ " if default_registry.find_step_definition(step.name) else "✗ "
        click.echo(f"    {marker}{step.keyword} {step.name}")

    click.echo(f"Feature: {feature.name}")
    if feature.description:
        click.echo(f"  {' '.join(feature.description)}")

    if feature.background:
        click.echo("\n  Background:")
        for step in feature.background.steps:
            show_step(step)

    for scenario in feature.scenarios:
        click.echo(f"\n  {scenario.keyword}: {scenario.name}")
        if scenario.tags:
            click.echo(f"    Tags: {' '.join('@' + tag for tag in scenario.tags)}")
        for step in scenario.steps:
            show_step(step)

    click.echo(f"\nTotal scenarios: {len(feature.scenarios)}")


def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
