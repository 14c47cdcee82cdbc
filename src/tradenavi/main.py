"""Main CLI entry point for the TradeNavi reconciler."""

import os
import sys
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
import typer
from rich.console import Console
from dotenv import load_dotenv

# Relative imports for package
from .config_validator import validate_config
from .models import Action, ActorRole, ExtraFees, OriginKind, StatementItem
from .normalizer import is_accepted_inquiry
from .reconciler import TradeReconciler
from .reporter import Reporter
from .store import InMemoryTradeStore
from .exceptions import (
    ExceptionMapper,
    ConfigError,
    InvalidInput,
    EXIT_SUCCESS,
)

# Load environment variables
load_dotenv()

# Initialize Typer app
app = typer.Typer(
    name="tradenavi",
    help="Trade reconciliation engine for machine resale deals.",
    add_completion=False
)

# Initialize consoles for output
console = Console()
err_console = Console(stderr=True)

DEFAULT_CONFIG = os.environ.get("TRADENAVI_CONFIG", "config.yaml")


def setup_logging(debug: bool = False, level: str = "INFO"):
    """Configure logging based on debug flag."""
    resolved = logging.DEBUG if debug else getattr(logging, level, logging.INFO)

    logging.basicConfig(
        level=resolved,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def load_config(filepath: str) -> dict:
    """
    Load and validate configuration file.

    Args:
        filepath: Path to configuration YAML file

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigError: If configuration is invalid
    """
    try:
        with open(filepath, 'r') as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {filepath}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}")

    return validate_config(config)


def load_trade_data(filepath: str) -> Dict[str, List[Dict[str, Any]]]:
    """
    Load raw trade payloads from a YAML or JSON file.

    The file holds two lists, ``navi`` and ``inquiries``.
    """
    path = Path(filepath)
    if not path.exists():
        raise InvalidInput(f"Trade data file not found: {filepath}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidInput(f"Invalid trade data file: {e}")

    if not isinstance(data, dict):
        raise InvalidInput("Trade data must be a mapping with 'navi' and 'inquiries' lists")

    return {
        'navi': list(data.get('navi') or []),
        'inquiries': list(data.get('inquiries') or []),
    }


def build_store(data: Dict[str, List[Dict[str, Any]]]) -> InMemoryTradeStore:
    """Seed an in-memory store with navi requests and accepted inquiries."""
    store = InMemoryTradeStore()

    for raw in data['navi']:
        store.put_raw(raw, OriginKind.DIRECT_NAVI)

    for raw in data['inquiries']:
        if is_accepted_inquiry(raw):
            store.put_raw(raw, OriginKind.ONLINE_INQUIRY)

    return store


def parse_item_spec(spec: str, index: int, taxable: bool = True) -> StatementItem:
    """
    Parse a CLI item argument.

    ``10x80000`` is a quantity x unit price line, ``5000`` a flat amount.
    """
    text = spec.strip().lower().replace(',', '')
    try:
        if 'x' in text:
            qty, price = text.split('x', 1)
            return StatementItem(
                line_id=f"line-{index}",
                quantity=int(qty),
                unit_price=int(price),
                is_taxable=taxable,
            )
        return StatementItem(line_id=f"line-{index}", amount=int(text), is_taxable=taxable)
    except ValueError:
        raise InvalidInput(f"Invalid item spec '{spec}' (use QTYxPRICE or AMOUNT)", field="items")


def _fail(e: Exception, debug: bool):
    """Print an error and exit with its mapped code."""
    exit_code = ExceptionMapper.map_to_exit_code(e)

    if isinstance(e, ConfigError):
        err_console.print(f"\n[red]Configuration error: {e}[/red]")
    elif debug:
        # In debug mode, show full traceback
        err_console.print_exception()
    else:
        err_console.print(f"\n[red]Error: {e}[/red]")
        err_console.print(f"[dim]Exit code: {exit_code}[/dim]")

    sys.exit(exit_code)


@app.command()
def quote(
    item: List[str] = typer.Option(
        [],
        "--item", "-i",
        help="Taxable line: QTYxPRICE or AMOUNT (repeatable)"
    ),
    exempt: List[str] = typer.Option(
        [],
        "--exempt", "-e",
        help="Non-taxable line: QTYxPRICE or AMOUNT (repeatable)"
    ),
    tax_rate: Optional[str] = typer.Option(
        None,
        "--tax-rate",
        help="Tax rate (defaults to trades.default_tax_rate)"
    ),
    shipping: int = typer.Option(0, "--shipping", help="Shipping fee"),
    handling: int = typer.Option(0, "--handling", help="Handling fee"),
    cardboard: int = typer.Option(0, "--cardboard", help="Cardboard fee"),
    nail_sheet: int = typer.Option(0, "--nail-sheet", help="Nail sheet fee"),
    insurance: int = typer.Option(0, "--insurance", help="Insurance fee"),
    config_file: str = typer.Option(
        DEFAULT_CONFIG,
        "--config-file", "-c",
        help="Path to configuration file"
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """
    Preview statement totals before a request is submitted.
    """
    try:
        config = load_config(config_file)
        setup_logging(debug, config['logging']['level'])

        items = [parse_item_spec(spec, i) for i, spec in enumerate(item, start=1)]
        items += [
            parse_item_spec(spec, len(items) + i, taxable=False)
            for i, spec in enumerate(exempt, start=1)
        ]
        if not items:
            raise InvalidInput("At least one --item or --exempt line is required", field="items")

        fees = ExtraFees(
            shipping=shipping,
            handling=handling,
            cardboard=cardboard,
            nail_sheet=nail_sheet,
            insurance=insurance,
        )

        reconciler = TradeReconciler.from_config(config, InMemoryTradeStore())
        totals = reconciler.compute_totals(items, tax_rate, fees)

        Reporter(console).display_totals(totals)
        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _fail(e, debug)


@app.command()
def trades(
    data_file: str = typer.Option(..., "--data", help="YAML/JSON file with navi and inquiries lists"),
    user: str = typer.Option(..., "--user", "-u", help="Acting user id"),
    config_file: str = typer.Option(
        DEFAULT_CONFIG,
        "--config-file", "-c",
        help="Path to configuration file"
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """
    List the user's trades with their current todo.
    """
    try:
        config = load_config(config_file)
        setup_logging(debug, config['logging']['level'])

        store = build_store(load_trade_data(data_file))
        reconciler = TradeReconciler.from_config(config, store)

        Reporter(console).display_trades(reconciler.list_trades(user), user)
        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _fail(e, debug)


@app.command()
def apply(
    data_file: str = typer.Option(..., "--data", help="YAML/JSON file with navi and inquiries lists"),
    trade_id: str = typer.Option(..., "--trade-id", "-t", help="Source-qualified trade id"),
    user: str = typer.Option(..., "--user", "-u", help="Acting user id"),
    action: List[Action] = typer.Option(
        [],
        "--action", "-a",
        help="Action to apply (repeatable, applied in order)"
    ),
    draft_file: Optional[str] = typer.Option(
        None,
        "--draft",
        help="YAML/JSON draft (shipping/items) merged before the actions"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the resulting record as JSON"),
    config_file: str = typer.Option(
        DEFAULT_CONFIG,
        "--config-file", "-c",
        help="Path to configuration file"
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """
    Apply actions to a trade and show the result.
    """
    try:
        config = load_config(config_file)
        setup_logging(debug, config['logging']['level'])

        store = build_store(load_trade_data(data_file))
        reconciler = TradeReconciler.from_config(config, store)

        if draft_file:
            with open(draft_file, 'r', encoding='utf-8') as f:
                draft = yaml.safe_load(f) or {}
            reconciler.merge_draft(trade_id, draft)

        result = None
        for step in action:
            result = reconciler.apply_action(trade_id, user, step)

        if result is None:
            result = next(
                (t for t in reconciler.list_trades(user) if t.id == trade_id),
                None,
            )
            if result is None:
                raise InvalidInput(f"Trade {trade_id} is not visible to {user}")

        reporter = Reporter(console)
        if as_json:
            console.print_json(reporter.dump_json(result))
        else:
            role = ActorRole.BUYER if result.buyer_user_id == user else ActorRole.SELLER
            reporter.display_trade(result, role)
        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _fail(e, debug)


@app.command()
def version():
    """Show version information."""
    from . import __version__
    console.print(f"TradeNavi Reconciler v{__version__}")


if __name__ == "__main__":
    app()
