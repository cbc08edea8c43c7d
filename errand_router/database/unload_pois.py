# errand_router/database/unload_pois.py

import argparse

from errand_router.app.core.config import POI_TABLE
from errand_router.database.load_database import load_pois_from_db
from errand_router.services.staging_service import write_pois_csv


def unload_pois(path, table=POI_TABLE, output_format="WKB", category=None, engine=None):
    """Write the POI table (optionally one category) to a CSV file."""
    gdf = load_pois_from_db(table, engine=engine)
    if gdf is None:
        print(f"Table {table} is empty, nothing written.")
        return 0

    if category:
        gdf = gdf[gdf["category"] == category]

    count = write_pois_csv(gdf, path, output_format=output_format)
    print(f"{count} POIs written to {path} ({output_format})")
    return count


def main(argv=None):
    parser = argparse.ArgumentParser(description="Unload POIs from PostGIS to CSV")
    parser.add_argument("path")
    parser.add_argument("--table", default=POI_TABLE)
    parser.add_argument("--format", default="WKB", choices=["WKB", "EWKB", "WKT", "EWKT"])
    parser.add_argument("--category")
    args = parser.parse_args(argv)

    unload_pois(args.path, table=args.table, output_format=args.format, category=args.category)


if __name__ == "__main__":
    main()
