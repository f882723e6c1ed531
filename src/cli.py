"""
Command line price checks against the platform pricing API.

    coffee-prices quote arabica 7
    coffee-prices seasonal arabica 7 6
    coffee-prices board
    coffee-prices validate robusta 4 3.25
    coffee-prices project 0xGROVE arabica 7 1000 6
"""

import argparse
import asyncio
import json
import sys
from typing import Any, List, Optional

from . import __version__
from .logging_utils import setup_logging
from .metrics import set_system_info, start_metrics_server
from .pricing import HttpQuoteSource, PriceResolver, QuoteSource, describe_grade
from .pricing.errors import PricingError
from .pricing.price_resolver import require_fresh
from .pricing.tables import price_matrix, stale_pairs
from .settings import DEFAULT_CONFIG_PATH, OracleSettings, resolve_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='coffee-prices', description='Coffee price oracle')
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH, help='Path to settings.yaml')
    parser.add_argument('--base-url', help='Pricing API base URL (overrides config)')
    parser.add_argument('--json', action='store_true', help='Print results as JSON')
    parser.add_argument('--require-fresh', action='store_true',
                        help='Fail instead of printing stale price data')
    parser.add_argument('--metrics-port', type=int, help='Serve Prometheus /metrics on this port')

    sub = parser.add_subparsers(dest='command', required=True)

    quote = sub.add_parser('quote', help='Base price for a variety and grade')
    quote.add_argument('variety')
    quote.add_argument('grade', type=int)

    seasonal = sub.add_parser('seasonal', help='Seasonally adjusted price')
    seasonal.add_argument('variety')
    seasonal.add_argument('grade', type=int)
    seasonal.add_argument('month', type=int)

    sub.add_parser('board', help='All variety/grade prices')
    sub.add_parser('multipliers', help='Seasonal multipliers by month')

    validate = sub.add_parser('validate', help='Check a proposed sale price')
    validate.add_argument('variety')
    validate.add_argument('grade', type=int)
    validate.add_argument('price', type=float)

    project = sub.add_parser('project', help='Projected harvest revenue')
    project.add_argument('grove_token')
    project.add_argument('variety')
    project.add_argument('grade', type=int)
    project.add_argument('yield_kg', type=float)
    project.add_argument('harvest_month', type=int)

    return parser


def build_resolver(settings: OracleSettings, quote_source: Optional[QuoteSource] = None) -> PriceResolver:
    """Resolver wired from settings (HTTP quote source unless one is given)."""
    source = quote_source or HttpQuoteSource(
        settings.base_url, timeout_seconds=settings.timeout_seconds
    )
    return PriceResolver(source, cache_ttl=settings.cache_ttl)


def _stale_note(result: Any) -> str:
    return " [STALE]" if getattr(result, 'is_stale', False) else ""


async def run_command(args: argparse.Namespace, resolver: PriceResolver) -> Any:
    """Execute one subcommand, returning (json payload, text lines)."""
    if args.command == 'quote':
        quote = await resolver.get_quote(args.variety, args.grade)
        if args.require_fresh:
            require_fresh(quote)
        text = [
            f"{quote.variety} grade {quote.grade} ({describe_grade(quote.grade)}): "
            f"${quote.base_price:.2f}/kg{_stale_note(quote)}"
        ]
        return quote.to_dict(), text

    if args.command == 'seasonal':
        quote = await resolver.get_seasonal_quote(args.variety, args.grade, args.month)
        if args.require_fresh:
            require_fresh(quote)
        text = [
            f"{quote.variety} grade {quote.grade} month {quote.month}: "
            f"${quote.seasonal_price:.2f}/kg (base ${quote.base_price:.2f} x {quote.multiplier}){_stale_note(quote)}"
        ]
        return quote.to_dict(), text

    if args.command == 'board':
        quotes = await resolver.get_all_quotes()
        if args.require_fresh:
            for quote in quotes:
                require_fresh(quote)
        stale = len(stale_pairs(quotes))
        text = [price_matrix(quotes).to_string(float_format=lambda v: f"{v:.2f}")]
        if stale:
            text.append(f"{stale} stale price(s)")
        return [q.to_dict() for q in quotes], text

    if args.command == 'multipliers':
        multipliers = await resolver.get_seasonal_multipliers()
        text = [f"{month:>2}: {value:.2f}" for month, value in sorted(multipliers.items())]
        return {str(month): value for month, value in multipliers.items()}, text

    if args.command == 'validate':
        result = await resolver.validate_sale_price(args.variety, args.grade, args.price)
        if args.require_fresh:
            require_fresh(result)
        verdict = "VALID" if result.is_valid else "INVALID"
        text = [
            f"{verdict}: ${result.proposed_price:.2f}/kg vs market ${result.market_price:.2f} "
            f"(range ${result.min_price:.2f}-${result.max_price:.2f}){_stale_note(result)}"
        ]
        if result.reason:
            text.append(result.reason)
        return result.to_dict(), text

    if args.command == 'project':
        projection = await resolver.compute_revenue_projection(
            args.grove_token, args.variety, args.grade, args.yield_kg, args.harvest_month
        )
        if args.require_fresh:
            require_fresh(projection)
        b = projection.breakdown
        text = [
            f"Projected revenue: ${projection.projected_revenue:,.2f}{_stale_note(projection)}",
            f"  {b.yield_kg:g} kg x ${b.seasonal_price:.2f}/kg "
            f"(base ${b.base_price:.2f} x {b.seasonal_multiplier})",
        ]
        return projection.to_dict(), text

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None, quote_source: Optional[QuoteSource] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = resolve_settings(args.config)
        if args.base_url:
            settings.base_url = args.base_url
        setup_logging(
            log_level=settings.log_level,
            log_file=settings.log_file,
            json_format=settings.log_json,
        )
        set_system_info(__version__, 'cli')
        if args.metrics_port:
            start_metrics_server(args.metrics_port)
        resolver = build_resolver(settings, quote_source)
        payload, text = asyncio.run(run_command(args, resolver))
    except PricingError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        print("\n".join(text))
    return 0


if __name__ == "__main__":
    sys.exit(main())
