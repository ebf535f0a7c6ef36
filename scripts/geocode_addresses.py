# Script that geocodes an address spreadsheet and exports it for the map
from argparse import ArgumentParser
import logging
import sys

from address_mapper.exporters import export_csv, export_geojson
from address_mapper.filters import filter_rows, regions
from address_mapper.geocoding import (
    GEOCODE_PREFIX,
    PREFERENCE_PREFIX,
    CompositeProgressReporter,
    LoggingProgressReporter,
    ResolutionConfig,
    TqdmProgressReporter,
    export_cache,
    import_cache,
    open_cache,
)
from address_mapper.row_loader import load_rows
from address_mapper.service import build_session
from address_mapper.settings import settings
from address_mapper.utils.errors import ParseError

from pathlib import Path


def parse_args(argv=None):
    parser = ArgumentParser(description="Geocode an address file and export it for the map")
    parser.add_argument('input', type=Path, nargs='?')
    parser.add_argument('--output', '-o', type=Path, help='CSV with coordinates, input order and columns kept')
    parser.add_argument('--geojson', '-g', type=Path, help='GeoJSON point layer of resolved rows')
    parser.add_argument('--cache', type=Path, default=settings.cache_path)
    parser.add_argument('--preload', type=Path, default=settings.preload_path)
    parser.add_argument('--concurrency', '-c', type=int, default=settings.concurrency)
    parser.add_argument('--rate-limit-ms', type=int, default=settings.rate_limit_ms)
    parser.add_argument('--region', '-r', type=str, help='Only export rows of this region')
    parser.add_argument('--search', '-s', type=str, help='Only export rows whose address/neighborhood contains this text')
    parser.add_argument('--clear-cache', choices=['geo', 'all'])
    parser.add_argument('--import-cache', type=Path)
    parser.add_argument('--export-cache', type=Path)
    parser.add_argument('--log-file', type=Path)
    parser.add_argument('--verbose', '-v', action='store_true')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        filename=str(args.log_file) if args.log_file else None,
    )

    config = ResolutionConfig.from_settings(
        settings,
        cache_path=args.cache,
        preload_path=args.preload,
        concurrency=args.concurrency,
        rate_limit_ms=args.rate_limit_ms,
    )
    cache = open_cache(config.cache_path)

    try:
        if args.clear_cache:
            removed = cache.clear(GEOCODE_PREFIX)
            if args.clear_cache == 'all':
                removed += cache.clear(PREFERENCE_PREFIX)
            print(f'Cleared {removed} cache entries')

        if args.import_cache:
            print(f'Imported {import_cache(cache, args.import_cache)} cache entries')

        if args.input:
            reporter = CompositeProgressReporter([TqdmProgressReporter(), LoggingProgressReporter(every=50)])
            session = build_session(config, cache=cache, reporter=reporter)
            rows, columns = load_rows(args.input)
            run = session.run_batch(rows, columns)

            region = args.region or cache.get_preference('region')
            if args.region:
                cache.set_preference('region', args.region)
            elif region:
                print(f'Region filter: {region} (saved preference, pass --region to change)')
            print(f'Regions: {", ".join(regions(rows)) or "-"}')

            if args.output:
                export_csv(session.rows, session.columns, args.output)
            if args.geojson:
                visible = filter_rows(session.rows, region=region, text=args.search)
                export_geojson(visible, args.geojson)
                print(f'{len(visible)} points exported')

            if run.failed_queries:
                print(f'{len(run.failed_queries)} addresses could not be geocoded:')
                for query in run.failed_queries:
                    print(f'  - {query}')

        if args.export_cache:
            print(f'Exported {export_cache(cache, args.export_cache)} cache entries')
    except ParseError as e:
        print(f'Error loading or processing {e.source}: {e.reason}', file=sys.stderr)
        if e.errors:
            print(e.summary(), file=sys.stderr)
        return 1
    finally:
        cache.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())
