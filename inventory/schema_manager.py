# inventory/schema_manager.py
"""
Schema management for the embedded store.

The stored schema revision (Alembic's alembic_version row) is compared with
the head revision of the scripts in inventory/migrations; missing revisions
are applied forward inside one transaction. Stores created before
versioning carry no revision row, for those the product table's columns are
inspected to tell a legacy layout from the current one.

Legacy default substitutions (placeholder name, company and quality, zero
prices, bundle quantity 1) are business policy inherited from earlier
releases and kept as-is for compatibility.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import sqlalchemy as sa
from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from alembic.script.revision import RevisionError
from alembic.util import CommandError
from sqlalchemy.exc import SQLAlchemyError

from inventory.database import StoreHandle, locked
from inventory.errors import SchemaError
from inventory.models import DynamicField, Product, ProductImage

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

SHADOW_TABLE = "products_new"

# Column names of the superseded product layout
LEGACY_COLUMNS = ("name", "category", "gst", "master", "inner", "mrp", "dp")

CURRENT_COLUMNS = (
    "product_name",
    "company_name",
    "product_quality",
    "quantity_bundle",
    "purchase_price",
    "wholesale_price",
    "retail_price",
)

# current column -> (source columns in order of preference, default SQL, cast type)
LEGACY_COLUMN_MAP: Dict[str, Tuple[Tuple[str, ...], str, Optional[str]]] = {
    "product_name": (("product_name", "name"), "'Unknown Product'", None),
    "company_name": (("company_name", "company", "category"), "'Unknown Company'", None),
    "product_quality": (("product_quality", "quality"), "'Standard'", None),
    "quantity_bundle": (("quantity_bundle", "quantity", "master", "inner"), "1", "INTEGER"),
    "purchase_price": (("purchase_price", "dp"), "0", "REAL"),
    "wholesale_price": (("wholesale_price",), "0", "REAL"),
    "retail_price": (("retail_price", "mrp"), "0", "REAL"),
    "image_id": (("image_id",), "NULL", None),
    "created_at": (("created_at",), "CURRENT_TIMESTAMP", None),
    "updated_at": ((), "CURRENT_TIMESTAMP", None),
}

LAYOUT_EMPTY = "empty"
LAYOUT_LEGACY = "legacy"
LAYOUT_CURRENT = "current"


def detect_layout(bind) -> str:
    """Classify the products table as empty (absent), legacy or current."""
    inspector = sa.inspect(bind)
    if not inspector.has_table("products"):
        return LAYOUT_EMPTY
    columns = {c["name"] for c in inspector.get_columns("products")}
    legacy = columns.intersection(LEGACY_COLUMNS)
    if legacy:
        logger.info("Old schema detected (columns %s), migration needed", sorted(legacy))
        return LAYOUT_LEGACY
    if not columns.issuperset(CURRENT_COLUMNS):
        logger.info("Product table is missing current columns %s", sorted(set(CURRENT_COLUMNS) - columns))
        return LAYOUT_LEGACY
    return LAYOUT_CURRENT


def build_legacy_copy_sql(bind, source: str, target: str) -> str:
    """INSERT ... SELECT moving rows of a legacy product table into `target`."""
    columns = {c["name"] for c in sa.inspect(bind).get_columns(source)}
    quote = bind.dialect.identifier_preparer.quote

    targets, exprs = [], []
    if "id" in columns:
        targets.append("id")
        exprs.append(quote("id"))
    for name, (sources, default, cast) in LEGACY_COLUMN_MAP.items():
        present = [quote(s) for s in sources if s in columns]
        if cast:
            # text without digits counts as missing, not as 0
            present = [
                f"CASE WHEN typeof({p}) IN ('integer', 'real') OR trim({p}) GLOB '*[0-9]*' "
                f"THEN CAST({p} AS {cast}) END"
                for p in present
            ]
        targets.append(name)
        exprs.append(f"COALESCE({', '.join(present + [default])})" if present else default)

    return (
        f"INSERT INTO {quote(target)} ({', '.join(targets)}) "
        f"SELECT {', '.join(exprs)} FROM {quote(source)}"
    )


@dataclass
class SchemaReport:
    from_revision: Optional[str]
    to_revision: Optional[str]
    layout: str
    migrated: bool
    repaired: int


class SchemaManager:
    def __init__(self, store: StoreHandle):
        self.store = store
        self.config = Config()
        self.config.set_main_option("script_location", str(MIGRATIONS_DIR))

    def head_revision(self) -> Optional[str]:
        return ScriptDirectory.from_config(self.config).get_current_head()

    @locked
    def current_revision(self) -> Optional[str]:
        with self.store.connect() as conn:
            return MigrationContext.configure(conn).get_current_revision()

    @locked
    def detect_layout(self) -> str:
        with self.store.connect() as conn:
            return detect_layout(conn)

    @locked
    def ensure_schema(self) -> SchemaReport:
        """Bring the live store to the head revision. Safe to call repeatedly."""
        logger.info("Checking database schema...")
        head = self.head_revision()
        try:
            current = self.current_revision()
            layout = self.detect_layout()
        except SQLAlchemyError as e:
            logger.exception("Cannot read database schema")
            raise SchemaError("Cannot read database schema") from e

        migrated = False
        if current != head:
            logger.info(
                "Schema revision %s, upgrading to %s (layout: %s)",
                current or "unversioned", head, layout,
            )
            self._upgrade()
            migrated = True
            logger.info("Database schema migration completed")
        else:
            logger.info("Database schema is up to date (revision %s)", head)

        repaired = self.repair_references()
        if migrated or repaired:
            self.store.persist()
        return SchemaReport(
            from_revision=current, to_revision=head, layout=layout, migrated=migrated, repaired=repaired
        )

    def _upgrade(self) -> None:
        try:
            with self.store.foreign_keys_disabled():
                with self.store.engine.begin() as conn:
                    self.config.attributes["connection"] = conn
                    command.upgrade(self.config, "head")
        except (SQLAlchemyError, CommandError, RevisionError) as e:
            logger.exception("Error migrating database schema")
            raise SchemaError(f"Schema migration failed: {e}") from e
        finally:
            self.config.attributes.pop("connection", None)

    @locked
    def repair_references(self) -> int:
        """
        Clear image references that point to no image row and drop dynamic
        field / image rows whose product is gone. Returns the number of rows
        touched; failures are logged only.
        """
        try:
            with self.store.session() as db:
                dangling = (
                    db.query(Product.id)
                    .outerjoin(ProductImage, Product.image_id == ProductImage.image_id)
                    .filter(Product.image_id.isnot(None), ProductImage.image_id.is_(None))
                    .all()
                )
                if dangling:
                    logger.info("Found %d products with missing image data", len(dangling))
                    db.query(Product).filter(Product.id.in_([row.id for row in dangling])).update(
                        {Product.image_id: None}, synchronize_session=False
                    )
                    logger.info("Cleared invalid image_id references")

                product_ids = sa.select(Product.id)
                orphan_fields = (
                    db.query(DynamicField)
                    .filter(DynamicField.product_id.not_in(product_ids))
                    .delete(synchronize_session=False)
                )
                orphan_images = (
                    db.query(ProductImage)
                    .filter(ProductImage.product_id.not_in(product_ids))
                    .delete(synchronize_session=False)
                )
                if orphan_fields or orphan_images:
                    logger.info(
                        "Removed %d orphaned dynamic fields and %d orphaned images",
                        orphan_fields, orphan_images,
                    )
                db.commit()
        except SQLAlchemyError as e:
            logger.error("Error repairing references: %s", e)
            return 0
        return len(dangling) + orphan_fields + orphan_images
