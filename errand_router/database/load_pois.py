# errand_router/database/load_pois.py

import argparse
import time

from errand_router.app.core.config import POI_TABLE
from errand_router.database.db_service import enable_postgis, get_engine
from errand_router.services.staging_service import read_pois_csv


def load_pois(path, table=POI_TABLE, geometry_column="geometry", lon_column=None, lat_column=None, engine=None):
    """Read a POI CSV and replace the PostGIS table with it."""
    print("=" * 70)
    print(f"LOADING POIs INTO {table}")
    print("=" * 70)
    start_time = time.time()

    gdf = read_pois_csv(path, geometry_column=geometry_column, lon_column=lon_column, lat_column=lat_column)
    print(f"   {len(gdf)} POIs read from {path}")
    if "category" in gdf.columns:
        for category, count in gdf["category"].value_counts().head(10).items():
            print(f"   {category}: {count}")

    engine = engine or get_engine()
    enable_postgis(engine)

    # if_exists='replace' drops the previous table
    gdf.to_postgis(table, engine, if_exists="replace", index=False)
    print(f"\nDone: {len(gdf)} POIs stored in {table} ({time.time() - start_time:.2f} s)")
    return len(gdf)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Load a POI CSV into PostGIS")
    parser.add_argument("path", help="CSV file with an id column and a geometry or lon/lat columns")
    parser.add_argument("--table", default=POI_TABLE)
    parser.add_argument("--geometry-column", default="geometry")
    parser.add_argument("--lon-column")
    parser.add_argument("--lat-column")
    args = parser.parse_args(argv)

    load_pois(
        args.path,
        table=args.table,
        geometry_column=args.geometry_column,
        lon_column=args.lon_column,
        lat_column=args.lat_column,
    )


if __name__ == "__main__":
    main()
