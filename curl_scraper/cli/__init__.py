"""Command-line interface for curl_scraper.

Provides commands for fetching one or many URLs with browser impersonation,
listing the available fingerprints and extracting embedded script data.
"""

import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import click

from ..browser.binaries import discover_fingerprints
from ..browser.fingerprint import default_catalog
from ..config import ScraperConfig
from ..errors import FingerprintNotFoundError, ScraperError
from ..extract import DEFAULT_SCRIPT_ID
from ..models import ProxyConfig, RequestSpec
from ..orchestrator import RequestOrchestrator


def setup_logging(verbose: int = 0) -> None:
    """Setup logging based on verbosity level."""
    if verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def parse_headers(headers: Tuple[str, ...]) -> Dict[str, str]:
    """Parse repeated ``Name: Value`` options."""
    parsed = {}
    for header in headers:
        if ':' not in header:
            raise click.BadParameter(f"Header must be 'Name: Value', got {header!r}",
                                     param_hint="--header")
        key, value = header.split(':', 1)
        parsed[key.strip()] = value.strip()
    return parsed


def build_config(ctx: click.Context, proxies: Tuple[str, ...] = ()) -> ScraperConfig:
    config: ScraperConfig = ctx.obj['config']
    if proxies:
        try:
            proxy_configs = [ProxyConfig.from_url(proxy) for proxy in proxies]
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--proxy") from e
        rotation = dataclasses.replace(config.proxy_rotation, enabled=True, proxies=proxy_configs)
        config = dataclasses.replace(config, proxy_rotation=rotation)
    return config


def create_orchestrator(ctx: click.Context, config: ScraperConfig) -> RequestOrchestrator:
    factory: Callable[[ScraperConfig], RequestOrchestrator] = ctx.obj.get('orchestrator_factory',
                                                                          RequestOrchestrator)
    return factory(config)


def format_response(response: Any, include: bool) -> str:
    if not include:
        return response.body
    head = [f"HTTP {response.status_code} {response.status_text}".rstrip()]
    head += [f"{name}: {value}" for name, value in response.headers.items()]
    return "\n".join(head) + "\n\n" + response.body


@click.group()
@click.option('--verbose', '-v', count=True, help='Increase verbosity (use -vv for debug)')
@click.option('--config', '-c', type=click.Path(exists=True), help='Configuration file path')
@click.pass_context
def cli(ctx: click.Context, verbose: int, config: Optional[str]) -> None:
    """curl-scraper - browser-impersonating HTTP client.

    Fetches URLs through curl-impersonate with real browser TLS fingerprints,
    persistent sessions and proxy rotation.
    """
    setup_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['config_file'] = config

    if config:
        try:
            ctx.obj['config'] = ScraperConfig.from_file(config)
        except (OSError, ValueError, TypeError) as e:
            click.echo(f"Error loading config file: {e}", err=True)
            sys.exit(1)
    else:
        ctx.obj['config'] = ScraperConfig()


@cli.command()
@click.argument('url')
@click.option('--method', '-X', default='GET',
              type=click.Choice(['GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'HEAD', 'OPTIONS'],
                                case_sensitive=False),
              help='HTTP method')
@click.option('--header', '-H', 'headers', multiple=True, help='Header in format "Name: Value"')
@click.option('--data', '-d', help='Raw request body')
@click.option('--json-data', help='JSON request body')
@click.option('--fingerprint', '-f', help='Fingerprint name to use for a new session')
@click.option('--proxy', '-x', 'proxies', multiple=True, help='Proxy URL (repeatable, enables rotation)')
@click.option('--timeout', '-t', type=float, help='Per-attempt timeout in seconds')
@click.option('--session-file', type=click.Path(), help='Session state to restore before and save after')
@click.option('--include', '-i', is_flag=True, help='Print status line and headers')
@click.option('--output', '-o', type=click.Path(), help='Write the response to a file')
@click.pass_context
def request(ctx: click.Context, url: str, method: str, headers: Tuple[str, ...],
            data: Optional[str], json_data: Optional[str], fingerprint: Optional[str],
            proxies: Tuple[str, ...], timeout: Optional[float], session_file: Optional[str],
            include: bool, output: Optional[str]) -> None:
    """Fetch URL with browser impersonation."""
    if data is not None and json_data is not None:
        raise click.UsageError("--data and --json-data are mutually exclusive")

    payload = None
    if json_data is not None:
        try:
            payload = json.loads(json_data)
        except ValueError as e:
            raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--json-data") from e

    spec_kwargs = {
        'method': method.upper(),
        'headers': parse_headers(headers),
        'body': data,
        'json': payload,
        'timeout': timeout,
    }
    config = build_config(ctx, proxies)

    async def execute_request():
        async with create_orchestrator(ctx, config) as orchestrator:
            session_id = None
            if session_file and Path(session_file).exists():
                restored = orchestrator.sessions.load(session_file)[0]
                # An expired saved session resolves to a fresh one
                session_id = orchestrator.sessions.get(restored.id).id
            elif fingerprint:
                selected = orchestrator.catalog.get(fingerprint)
                if selected is None:
                    raise FingerprintNotFoundError(f"Unknown fingerprint: {fingerprint}")
                session_id = orchestrator.sessions.create(selected).id
            else:
                session_id = orchestrator.sessions.create().id

            response = await orchestrator.request(url, RequestSpec(**spec_kwargs), session_id)

            if session_file:
                orchestrator.sessions.save(session_file, session_id)
            return response

    try:
        response = asyncio.run(execute_request())
    except ScraperError as e:
        click.echo(f"Request failed: {e}", err=True)
        sys.exit(1)

    output_text = format_response(response, include)
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(output_text)
        click.echo(f"Response saved to {output}")
    else:
        click.echo(output_text)


@cli.command()
@click.option('--browser', '-b', help='Filter by browser (chrome, firefox, safari)')
@click.option('--os', 'os_name', help='Filter by operating system')
@click.option('--json-output', is_flag=True, help='Output full fingerprints as JSON')
@click.option('--binaries-path', type=click.Path(exists=True, file_okay=False),
              help='List the curl_* wrappers installed in this directory instead')
def fingerprints(browser: Optional[str], os_name: Optional[str], json_output: bool,
                 binaries_path: Optional[str]) -> None:
    """List the built-in browser fingerprints, or those of installed wrappers."""
    candidates = discover_fingerprints(binaries_path) if binaries_path else list(default_catalog())
    selected = [
        fp for fp in candidates
        if (browser is None or fp.browser == browser.lower())
        and (os_name is None or fp.os == os_name.lower())
    ]

    if json_output:
        click.echo(json.dumps([fp.to_dict() for fp in selected], indent=2))
        return

    for fp in selected:
        click.echo(f"{fp.name:<20} {fp.display_name:<22} {fp.platform:<8} {fp.user_agent}")


@cli.command()
@click.argument('urls', nargs=-1)
@click.option('--url-file', type=click.File('r'), help='File with one URL per line')
@click.option('--concurrency', '-n', type=click.IntRange(min=1),
              help='Requests in flight at once (default from configuration)')
@click.option('--delay', type=click.FloatRange(min=0),
              help='Minimum seconds between request starts')
@click.option('--proxy', '-x', 'proxies', multiple=True, help='Proxy URL (repeatable, enables rotation)')
@click.option('--json-output', is_flag=True, help='Output the batch result as JSON')
@click.pass_context
def batch(ctx: click.Context, urls: Tuple[str, ...], url_file: Optional[Any],
          concurrency: Optional[int], delay: Optional[float], proxies: Tuple[str, ...],
          json_output: bool) -> None:
    """Fetch several URLs concurrently and summarize the outcome."""
    targets = list(urls)
    if url_file is not None:
        targets += [line.strip() for line in url_file
                    if line.strip() and not line.lstrip().startswith('#')]
    if not targets:
        raise click.UsageError("Give at least one URL or --url-file")

    config = build_config(ctx, proxies)
    if delay is not None:
        pacing = dataclasses.replace(config.rate_limiting, enabled=True, delay_between_requests=delay)
        config = dataclasses.replace(config, rate_limiting=pacing)

    async def execute_batch():
        async with create_orchestrator(ctx, config) as orchestrator:
            return await orchestrator.batch_request(targets, concurrency=concurrency)

    result = asyncio.run(execute_batch())

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        for item in result.items:
            if item.success:
                click.echo(f"OK    {item.response.status_code} {item.url}")
            else:
                click.echo(f"FAIL  {getattr(item.error, 'code', 'ERROR')} {item.url}")
        click.echo(f"\n{result.successful_requests}/{result.total_requests} succeeded, "
                   f"{result.cloudflare_challenges} challenged, {result.proxy_failures} proxy failures")

    if result.failed_requests:
        sys.exit(1)


@cli.command('script-data')
@click.argument('url')
@click.option('--script-id', default=DEFAULT_SCRIPT_ID, show_default=True,
              help='id attribute of the script tag')
@click.option('--proxy', '-x', 'proxies', multiple=True, help='Proxy URL (repeatable, enables rotation)')
@click.pass_context
def script_data(ctx: click.Context, url: str, script_id: str, proxies: Tuple[str, ...]) -> None:
    """Print the JSON embedded in a script tag of URL."""
    config = build_config(ctx, proxies)

    async def extract():
        async with create_orchestrator(ctx, config) as orchestrator:
            return await orchestrator.request_script_data(url, script_id)

    try:
        data = asyncio.run(extract())
    except ScraperError as e:
        click.echo(f"Request failed: {e}", err=True)
        sys.exit(1)

    if data is None:
        click.echo(f"No JSON script data found for #{script_id}", err=True)
        sys.exit(1)
    click.echo(json.dumps(data, indent=2))


def main() -> None:
    """Main CLI entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
