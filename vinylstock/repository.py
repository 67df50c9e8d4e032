"""Data access for materials, rolls and roll usages.

Every screen goes through these functions instead of building queries
inline. Database failures come out as ``DataAccessError`` with the
session already rolled back.
"""
import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from vinylstock.errors import DataAccessError, NotFound, ValidationError
from vinylstock.extensions import db
from vinylstock.inventory import day_bounds, display_remaining_in, is_overdrawn, remaining_inches
from vinylstock.models import Material, Roll, RollUsage, ROLL_STATUSES

logger = logging.getLogger(__name__)


@dataclass
class RollRemaining:
    roll_id: int
    remaining_in: int


@dataclass
class MaterialRemaining:
    material_id: int
    brand: str
    film_code: str
    color_name: str
    width_in: int
    reorder_threshold_in: int
    total_remaining_in: int


@dataclass
class ArchivedRoll:
    roll: Roll
    remaining_in: int
    usages: list = field(default_factory=list)

    @property
    def display_in(self):
        return display_remaining_in(self.remaining_in)

    @property
    def overdrawn(self):
        return is_overdrawn(self.remaining_in)

    @property
    def last_used_at(self):
        return self.usages[0].created_at if self.usages else None


@contextmanager
def _db_errors(action: str):
    try:
        yield
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("%s failed: %s", action, e)
        raise DataAccessError(f"Error {action}: {e.__class__.__name__}") from e


def _clean(v):
    if v is None:
        return None
    return str(v).strip() or None


# =========================
# Materials
# =========================
def list_materials():
    with _db_errors("loading materials"):
        return Material.query.order_by(Material.brand.asc(), Material.film_code.asc()).all()


def count_materials() -> int:
    with _db_errors("counting materials"):
        return Material.query.count()


def create_material(brand, film_code, color_name, finish=None, width_in=60, reorder_threshold_in=300) -> Material:
    brand, film_code, color_name = _clean(brand), _clean(film_code), _clean(color_name)
    if not brand or not film_code or not color_name:
        raise ValidationError("Brand, film code and color name are required.")
    if width_in is None or width_in <= 0:
        raise ValidationError("Width must be greater than 0.")
    if reorder_threshold_in is None or reorder_threshold_in < 0:
        raise ValidationError("Reorder threshold cannot be negative.")

    m = Material(
        brand=brand,
        film_code=film_code,
        color_name=color_name,
        finish=_clean(finish),
        width_in=width_in,
        reorder_threshold_in=reorder_threshold_in,
    )
    with _db_errors("saving material"):
        db.session.add(m)
        db.session.commit()

    logger.info("material %s created: %s %s", m.id, m.brand, m.film_code)
    return m


# =========================
# Rolls
# =========================
def list_rolls(status=None):
    with _db_errors("loading rolls"):
        q = Roll.query.options(joinedload(Roll.material))
        if status:
            q = q.filter(Roll.status == status)
        return q.order_by(Roll.received_at.desc(), Roll.id.desc()).all()


def count_open_rolls() -> int:
    with _db_errors("counting rolls"):
        return Roll.query.filter_by(status="open").count()


def get_roll(roll_id) -> Roll:
    with _db_errors("loading roll"):
        roll = db.session.get(Roll, roll_id)
    if roll is None:
        raise NotFound(f"Roll {roll_id} not found.")
    return roll


def create_roll(material_id, starting_length_in=1800, supplier=None, cost_cents=0, location=None, note=None) -> Roll:
    if not material_id:
        raise ValidationError("Select a material.")
    if starting_length_in is None or starting_length_in <= 0:
        raise ValidationError("Starting length must be greater than 0.")
    if cost_cents is not None and cost_cents < 0:
        raise ValidationError("Cost cannot be negative.")

    with _db_errors("loading material"):
        mat = db.session.get(Material, material_id)
    if mat is None:
        raise ValidationError("Invalid material.")

    roll = Roll(
        material_id=mat.id,
        starting_length_in=starting_length_in,
        supplier=_clean(supplier),
        cost_cents=cost_cents or 0,
        location=_clean(location),
        note=_clean(note),
        status="open",
    )
    with _db_errors("saving roll"):
        db.session.add(roll)
        db.session.commit()

    logger.info("roll %s received: material=%s length=%sin", roll.id, mat.id, starting_length_in)
    return roll


def set_roll_status(roll_id, status) -> Roll:
    if status not in ROLL_STATUSES:
        raise ValidationError(f"Unknown roll status: {status}.")
    roll = get_roll(roll_id)
    roll.status = status
    with _db_errors("updating roll"):
        db.session.commit()
    logger.info("roll %s marked %s", roll.id, status)
    return roll


# =========================
# Usage
# =========================
def log_usage(roll_id, used_length_in, waste_length_in=0, job_code=None, operator=None) -> RollUsage:
    if used_length_in is None or used_length_in <= 0:
        raise ValidationError("Used length must be greater than 0.")
    waste_length_in = waste_length_in or 0
    if waste_length_in < 0:
        raise ValidationError("Waste length cannot be negative.")

    with _db_errors("loading roll"):
        roll = db.session.get(Roll, roll_id)
    if roll is None:
        raise NotFound(f"Roll {roll_id} not found.")

    u = RollUsage(
        roll_id=roll.id,
        used_length_in=used_length_in,
        waste_length_in=waste_length_in,
        job_code=_clean(job_code),
        operator=_clean(operator),
    )
    with _db_errors("saving usage"):
        db.session.add(u)
        db.session.commit()

    logger.info(
        "usage logged on roll %s: used=%sin waste=%sin job=%s",
        roll.id, used_length_in, waste_length_in, u.job_code or "-",
    )
    return u


def usages_between(date_from=None, date_to=None):
    start, end = day_bounds(date_from, date_to)

    with _db_errors("loading usage"):
        q = RollUsage.query.options(joinedload(RollUsage.roll).joinedload(Roll.material))
        if start:
            q = q.filter(RollUsage.created_at >= start)
        if end:
            q = q.filter(RollUsage.created_at <= end)
        return q.order_by(RollUsage.created_at.desc()).all()


def consumed_rolls_with_usages(date_from=None, date_to=None) -> list[ArchivedRoll]:
    """Consumed rolls with their usages inside the day range, most recent first."""
    rolls = list_rolls(status="consumed")

    by_roll = defaultdict(list)
    for u in usages_between(date_from, date_to):
        by_roll[u.roll_id].append(u)

    result = [
        ArchivedRoll(
            roll=r,
            remaining_in=remaining_inches(r.starting_length_in, r.usages),
            usages=by_roll.get(r.id, []),
        )
        for r in rolls
    ]
    result.sort(key=lambda a: a.last_used_at.timestamp() if a.last_used_at else 0, reverse=True)
    return result


# =========================
# Derived projections
# =========================
def _consumed_subquery():
    return (
        db.session.query(
            RollUsage.roll_id.label("roll_id"),
            func.sum(RollUsage.used_length_in + func.coalesce(RollUsage.waste_length_in, 0)).label("consumed_in"),
        )
        .group_by(RollUsage.roll_id)
        .subquery()
    )


def roll_remaining() -> list[RollRemaining]:
    """``roll_remaining(roll_id, remaining_in)``, one row per roll."""
    consumed = _consumed_subquery()
    with _db_errors("loading remaining lengths"):
        rows = (
            db.session.query(
                Roll.id,
                Roll.starting_length_in - func.coalesce(consumed.c.consumed_in, 0),
            )
            .outerjoin(consumed, consumed.c.roll_id == Roll.id)
            .all()
        )
    return [RollRemaining(roll_id=rid, remaining_in=int(rem)) for rid, rem in rows]


def roll_remaining_by_id() -> dict:
    return {r.roll_id: r.remaining_in for r in roll_remaining()}


def material_remaining() -> list[MaterialRemaining]:
    """Per-material remaining summed over its open rolls."""
    consumed = _consumed_subquery()
    open_rolls = (
        db.session.query(
            Roll.material_id.label("material_id"),
            (Roll.starting_length_in - func.coalesce(consumed.c.consumed_in, 0)).label("remaining_in"),
        )
        .outerjoin(consumed, consumed.c.roll_id == Roll.id)
        .filter(Roll.status == "open")
        .subquery()
    )

    with _db_errors("loading material totals"):
        rows = (
            db.session.query(
                Material.id,
                Material.brand,
                Material.film_code,
                Material.color_name,
                Material.width_in,
                Material.reorder_threshold_in,
                func.coalesce(func.sum(open_rolls.c.remaining_in), 0),
            )
            .outerjoin(open_rolls, open_rolls.c.material_id == Material.id)
            .group_by(
                Material.id,
                Material.brand,
                Material.film_code,
                Material.color_name,
                Material.width_in,
                Material.reorder_threshold_in,
            )
            .order_by(Material.brand.asc(), Material.film_code.asc())
            .all()
        )

    return [
        MaterialRemaining(
            material_id=mid,
            brand=brand,
            film_code=film_code,
            color_name=color_name,
            width_in=width_in,
            reorder_threshold_in=threshold or 0,
            total_remaining_in=int(total or 0),
        )
        for mid, brand, film_code, color_name, width_in, threshold, total in rows
    ]
