#!/usr/bin/env python
"""
Export a convention's price schedule to CSV or Excel.

Usage:
    python scripts/export_schedule.py CONVENTION_ID OUTPUT.(csv|xlsx) [--as-of YYYY-MM-DD]
"""
import argparse
import sys
from datetime import date
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from convention_pricing.config.settings import configure_logging, get_settings
from convention_pricing.engine import PricingEngine
from convention_pricing.engine.errors import AmbiguousDiscountError
from convention_pricing.services.pricing_service import PricingService


def main():
    parser = argparse.ArgumentParser(description="Export a convention price schedule")
    parser.add_argument("convention_id")
    parser.add_argument("output", type=Path)
    parser.add_argument("--as-of", type=date.fromisoformat, default=None)
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings)
    engine = PricingEngine(settings)
    service = PricingService(settings.data_dir, engine.currencies, settings.default_currency)

    config = service.load_pricing_configuration(args.convention_id)
    if not config.tiers:
        print(f"❌ No price tiers stored for convention {args.convention_id}")
        sys.exit(1)

    try:
        schedule = engine.display_schedule(config, args.as_of)
    except AmbiguousDiscountError as e:
        print(f"❌ {e}")
        sys.exit(1)

    df = schedule.to_frame()
    if args.output.suffix.lower() == '.xlsx':
        df.to_excel(args.output, sheet_name='Pricing')
    else:
        df.to_csv(args.output)

    print(f"Exported {len(df)} tier(s) x {len(df.columns)} column(s) in {schedule.currency}")
    print(f"Output: {args.output}")
    print()
    print(df.to_string())


if __name__ == "__main__":
    main()
