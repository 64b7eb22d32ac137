"""
Load raw materials from a CSV or Excel sheet (same columns as the materials
export). Safe to run multiple times: materials are upserted by name and
suppliers are created on first sight.

Usage:  python import_materials.py materials.xlsx
"""

import argparse
import asyncio
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import literal_column, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("import_materials")


async def _supplier_id(session, name, known: dict):
    from inventory.models import Supplier

    if name in known:
        return known[name]
    supplier_id = await session.scalar(select(Supplier.id).where(Supplier.name == name))
    if supplier_id is None:
        supplier = Supplier(name=name)
        session.add(supplier)
        await session.flush()
        supplier_id = supplier.id
        logger.info("created supplier %s", name)
    known[name] = supplier_id
    return supplier_id


async def import_materials(path: Path) -> dict:
    from inventory.database import session_scope
    from inventory.importer import parse_material_row, read_rows
    from inventory.models import RawMaterial

    stats = {"inserted": 0, "updated": 0, "skipped": 0, "errors": []}
    suppliers: dict = {}

    async with session_scope() as session:
        for line_no, raw in enumerate(read_rows(path), start=2):
            values, result = parse_material_row(raw)
            if not result.is_valid:
                stats["errors"].append(f"row {line_no}: {'; '.join(result.errors)}")
                stats["skipped"] += 1
                continue

            supplier_name = values.pop("supplier")
            update_set = {k: v for k, v in values.items() if k != "name" and v is not None}
            try:
                # one savepoint per row so a rejected row leaves the rest intact
                async with session.begin_nested():
                    if supplier_name:
                        values["supplier_id"] = update_set["supplier_id"] = await _supplier_id(
                            session, supplier_name, suppliers,
                        )
                    stmt = pg_insert(RawMaterial).values(**values)
                    if update_set:
                        stmt = stmt.on_conflict_do_update(constraint="uq_raw_material_name", set_=update_set)
                    else:
                        stmt = stmt.on_conflict_do_nothing(constraint="uq_raw_material_name")
                    # xmax is 0 only on a freshly inserted tuple
                    inserted = (await session.execute(stmt.returning(literal_column("xmax = 0")))).scalar()
            except SQLAlchemyError as exc:
                # a supplier created inside the rolled-back savepoint is gone too
                suppliers.pop(supplier_name, None)
                reason = getattr(exc, "orig", None) or exc
                stats["errors"].append(f"row {line_no}: {exc.__class__.__name__}: {reason}")
                stats["skipped"] += 1
                continue

            if inserted is None:
                stats["skipped"] += 1
            elif inserted:
                stats["inserted"] += 1
            else:
                stats["updated"] += 1

    return stats


def main():
    parser = argparse.ArgumentParser(description="Import raw materials from CSV / Excel")
    parser.add_argument("path", type=Path)
    args = parser.parse_args()

    stats = asyncio.run(import_materials(args.path))
    for error in stats["errors"]:
        logger.warning(error)
    logger.info(
        "materials: %d inserted, %d updated, %d skipped, %d errors",
        stats["inserted"], stats["updated"], stats["skipped"], len(stats["errors"]),
    )


if __name__ == "__main__":
    main()
