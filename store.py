import logging
from datetime import date, datetime, timedelta
from decimal import Decimal

import models
from exceptions import ReferenceNotFoundError

logger = logging.getLogger(__name__)

# Purchases dated today back to (today - 7 days), both ends inclusive.
# A purchase made exactly 7 days ago still counts and one 8 days ago does not,
# same as the old date('now', '-7 days') query (not a strict 7-day span).
WEEKLY_LOOKBACK_DAYS = 7

_CHECK_COLUMNS = '''dc.id, dc.date, dc.item_id, dc.status, dc.quantity_needed, dc.is_urgent,
                    dc.checked_at, dc.staff_name, i.name, i.category, i.is_core, i.unit'''


class InventoryStore:
    """Data layer for items, daily checks, purchases and reports.

    Every public method runs in its own transaction on ``backend``. The
    ``clock`` callable (default ``datetime.now``) decides what "today" is,
    so tests can pin the date.
    """

    def __init__(self, backend, clock=None):
        self.backend = backend
        self._clock = clock or datetime.now

    def close(self):
        self.backend.close()

    def now(self):
        return self._clock()

    def today(self):
        return self.now().date().isoformat()

    def _timestamp(self):
        return self.now().isoformat(sep=" ", timespec="seconds")

    def _require_item(self, db, item_id):
        if db.execute("SELECT id FROM items WHERE id = ?", (item_id,)).one() is None:
            raise ReferenceNotFoundError(f"Item {item_id} does not exist",
                                         code="unknown_item",
                                         details={"item_id": item_id})

    # --- Items ---

    def list_items(self):
        with self.backend.transaction() as db:
            rows = db.execute("SELECT * FROM items ORDER BY category, name, id").all()
        return [models.item_row(r) for r in rows]

    def get_item(self, item_id):
        item_id = models.coerce_int(item_id, "id")
        with self.backend.transaction() as db:
            row = db.execute("SELECT * FROM items WHERE id = ?", (item_id,)).one()
        return models.item_row(row) if row else None

    def create_item(self, name, category, min_level=0, is_core=False, unit=models.DEFAULT_UNIT):
        name = models.require_text(name, "name")
        category = models.require_text(category, "category")
        min_level = models.coerce_int(min_level, "min_level", default=0, minimum=0)
        unit = models.optional_text(unit, models.DEFAULT_UNIT)

        with self.backend.transaction() as db:
            item_id = db.insert(
                "INSERT INTO items (name, category, min_level, is_core, unit) VALUES (?, ?, ?, ?, ?)",
                (name, category, min_level, models.coerce_bool(is_core), unit),
            )
        logger.info("Created item %s (%s / %s)", item_id, category, name)
        return item_id

    def delete_item(self, item_id):
        """Delete an item and everything that references it. Unknown ids are a no-op."""
        item_id = models.coerce_int(item_id, "id")
        with self.backend.transaction() as db:
            checks = db.execute("DELETE FROM daily_checks WHERE item_id = ?", (item_id,)).rowcount
            purchases = db.execute("DELETE FROM purchases WHERE item_id = ?", (item_id,)).rowcount
            deleted = db.execute("DELETE FROM items WHERE id = ?", (item_id,)).rowcount
        if deleted:
            logger.info("Deleted item %s with %d checks and %d purchases",
                        item_id, checks, purchases)
        return True

    # --- Daily checks ---

    def checks_for(self, day):
        day = models.coerce_day(day)
        with self.backend.transaction() as db:
            rows = db.execute(f'''
                SELECT {_CHECK_COLUMNS}
                FROM daily_checks dc
                JOIN items i ON dc.item_id = i.id
                WHERE dc.date = ?
                ORDER BY i.category, i.name, dc.id
            ''', (day,)).all()
        return [models.check_row(r) for r in rows]

    def todays_checks(self):
        return self.checks_for(self.today())

    def submit_checklist(self, staff_name, items, day=None):
        """Replace every check for ``day`` with ``items`` in one transaction."""
        staff_name = models.require_text(staff_name, "staff_name")
        checks = models.coerce_checklist(items)
        day = models.coerce_day(day) if day is not None else self.today()
        checked_at = self._timestamp()

        with self.backend.transaction() as db:
            replaced = db.execute("DELETE FROM daily_checks WHERE date = ?", (day,)).rowcount
            for check in checks:
                self._require_item(db, check["item_id"])
                db.insert('''
                    INSERT INTO daily_checks
                        (date, item_id, status, quantity_needed, is_urgent, checked_at, staff_name)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', (day, check["item_id"], check["status"], 0, check["is_urgent"],
                      checked_at, staff_name))

        logger.info("Checklist for %s submitted by %s: %d items (replaced %d)",
                    day, staff_name, len(checks), max(replaced, 0))
        return len(checks)

    # --- Purchases ---

    def list_purchases(self):
        with self.backend.transaction() as db:
            rows = db.execute('''
                SELECT p.*, i.name
                FROM purchases p
                JOIN items i ON p.item_id = i.id
                ORDER BY p.date DESC, p.purchased_at DESC, p.id DESC
            ''').all()
        return [models.purchase_row(r) for r in rows]

    def record_purchase(self, item_id, quantity, cost, store=None, day=None):
        item_id = models.coerce_int(item_id, "item_id")
        quantity = models.coerce_int(quantity, "quantity", minimum=1)
        cost = models.coerce_money(cost)
        store = models.optional_text(store)
        day = models.coerce_day(day) if day is not None else self.today()

        with self.backend.transaction() as db:
            self._require_item(db, item_id)
            purchase_id = db.insert('''
                INSERT INTO purchases (date, item_id, quantity, cost, store, purchased_at)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (day, item_id, quantity, cost, store, self._timestamp()))

        logger.info("Recorded purchase %s: item %s x%d for %s at %s",
                    purchase_id, item_id, quantity, cost, store)
        return purchase_id

    # --- Reports ---

    def list_reports(self, limit=30):
        limit = models.coerce_int(limit, "limit", minimum=1)
        with self.backend.transaction() as db:
            rows = db.execute("SELECT * FROM reports ORDER BY date DESC, id DESC LIMIT ?",
                              (limit,)).all()
        return [models.report_row(r) for r in rows]

    def create_report(self, staff_name, day=None):
        staff_name = models.require_text(staff_name, "staff_name")
        day = models.coerce_day(day) if day is not None else self.today()
        with self.backend.transaction() as db:
            report_id = db.insert(
                "INSERT INTO reports (date, staff_name, submitted_at, status) VALUES (?, ?, ?, ?)",
                (day, staff_name, self._timestamp(), models.REPORT_PENDING),
            )
        logger.info("Report %s created by %s for %s", report_id, staff_name, day)
        return report_id

    # --- Stats ---

    def weekly_stats(self, now=None):
        """Per-item and per-store spending over the trailing week ending at ``now``."""
        end = date.fromisoformat(models.coerce_day(now or self.now()))
        start = end - timedelta(days=WEEKLY_LOOKBACK_DAYS)

        with self.backend.transaction() as db:
            rows = db.execute('''
                SELECT p.item_id, i.name, p.quantity, p.cost, p.store
                FROM purchases p
                JOIN items i ON p.item_id = i.id
                WHERE p.date >= ? AND p.date <= ?
                ORDER BY i.name, p.item_id
            ''', (start.isoformat(), end.isoformat())).all()

        items = {}
        stores = {}
        for row in rows:
            cost = models.to_decimal(row["cost"])
            # keyed by id so two items sharing a name stay separate
            stat = items.setdefault(row["item_id"], {
                "name": row["name"],
                "total_quantity": 0,
                "total_cost": Decimal("0"),
            })
            stat["total_quantity"] += row["quantity"]
            stat["total_cost"] += cost

            if row["store"] is not None:
                stores[row["store"]] = stores.get(row["store"], Decimal("0")) + cost

        return {
            "items": list(items.values()),
            "stores": [{"store": store, "total_cost": total}
                       for store, total in sorted(stores.items())],
        }
