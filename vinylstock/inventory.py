"""Roll-remaining accounting and usage aggregation.

Everything in here is plain Python over already-loaded rows, so screens,
exports and tests share the same arithmetic. Lengths are always integer
inches; feet only exist at the display and form boundary.

Usage records may be model instances (``RollUsage``) or mappings with the
same field names.
"""
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal, DecimalException, InvalidOperation, ROUND_HALF_UP

# per-roll screens: a single roll under 25 ft is "low"
ROLL_LOW_THRESHOLD_IN = 25 * 12

INCHES_PER_FOOT = 12


# =========================
# Helpers
# =========================
def _field(obj, name, default=None):
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def _int(v) -> int:
    if v is None:
        return 0
    return int(v)


def _material_of(record):
    """Material joined to a usage record, directly or through its roll."""
    mat = _field(record, "material")
    if mat is None:
        mat = _field(_field(record, "roll"), "material")
    if mat is None:
        # supabase-style nesting: usage -> rolls -> materials
        mat = _field(_field(record, "rolls"), "materials")
    if isinstance(mat, (list, tuple)):
        mat = mat[0] if mat else None
    return mat


# =========================
# Remaining length
# =========================
def consumed_inches(usages) -> int:
    return sum(
        _int(_field(u, "used_length_in", 0)) + _int(_field(u, "waste_length_in", 0))
        for u in usages or ()
    )


def remaining_inches(starting_length_in, usages) -> int:
    """Starting length minus every recorded used + waste length.

    Never clamps: a negative result means the roll was over-drawn and is
    reported as such by the screens (see ``is_overdrawn``).
    """
    return _int(starting_length_in) - consumed_inches(usages)


def is_low_inventory(remaining_in, threshold_in) -> bool:
    if remaining_in is None:
        return False
    return remaining_in < threshold_in


def is_low_roll(remaining_in) -> bool:
    return is_low_inventory(remaining_in, ROLL_LOW_THRESHOLD_IN)


def is_low_material(total_remaining_in, reorder_threshold_in) -> bool:
    """Dashboard check against the material's own reorder threshold.

    Materials without a positive threshold are never flagged.
    """
    threshold = _int(reorder_threshold_in)
    if threshold <= 0:
        return False
    return is_low_inventory(_int(total_remaining_in), threshold)


def is_overdrawn(remaining_in) -> bool:
    return remaining_in is not None and remaining_in < 0


def display_remaining_in(remaining_in):
    if remaining_in is None:
        return None
    return max(0, remaining_in)


# =========================
# Units
# =========================
def inches_to_feet(inches) -> float:
    return _int(inches) / INCHES_PER_FOOT


def format_feet(inches) -> str:
    if inches is None:
        return "—"
    return f"{inches_to_feet(inches):.1f}"


def _to_decimal(v) -> Decimal:
    s = str(v).strip().replace(",", ".")
    if not s:
        return Decimal("0")
    try:
        d = Decimal(s)
    except InvalidOperation:
        raise ValueError(f"not a number: {v!r}")
    if not d.is_finite():
        raise ValueError(f"not a number: {v!r}")
    return d


def _round_scaled(v, factor) -> int:
    """``v * factor`` rounded to a whole number, halves rounded up."""
    try:
        scaled = _to_decimal(v) * factor
        return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except DecimalException:
        raise ValueError(f"number out of range: {v!r}")


def feet_to_inches(feet) -> int:
    """Form input in feet to stored inches, ``round(feet * 12)``.

    Only ever called on user input; stored values are not re-rounded.
    """
    if feet is None:
        return 0
    return _round_scaled(feet, INCHES_PER_FOOT)


def dollars_to_cents(dollars) -> int:
    if dollars is None:
        return 0
    return _round_scaled(dollars, 100)


# =========================
# Date range
# =========================
def parse_date(s: str | None):
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)


def day_bounds(date_from, date_to):
    start = start_of_day(date_from) if date_from else None
    end = end_of_day(date_to) if date_to else None
    return start, end


def default_range(days: int = 30, today: date | None = None):
    today = today or date.today()
    return today - timedelta(days=days), today


def in_range(ts, start, end) -> bool:
    if start is None and end is None:
        return True
    if ts is None:
        return False
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True


# =========================
# Aggregation
# =========================
@dataclass
class MaterialUsage:
    brand: str
    film_code: str
    color_name: str
    width_in: int
    used_in: int = 0
    waste_in: int = 0
    cuts: int = 0

    @property
    def material_key(self):
        return (self.brand, self.film_code, self.color_name, self.width_in)

    @property
    def total_in(self) -> int:
        return self.used_in + self.waste_in

    @property
    def waste_percent(self) -> float:
        return waste_percent(self.used_in, self.waste_in)


def waste_percent(used_in, waste_in) -> float:
    total = _int(used_in) + _int(waste_in)
    if total == 0:
        return 0.0
    return _int(waste_in) / total * 100


def _sort_key(row: MaterialUsage):
    return (
        (row.brand or "").lower(),
        (row.film_code or "").lower(),
        (row.color_name or "").lower(),
        row.width_in or 0,
    )


def aggregate_by_material(usages_with_material, date_from=None, date_to=None) -> list[MaterialUsage]:
    """Sum used/waste inches per material over an inclusive day range.

    Records are grouped by (brand, film code, color name, width). Records
    whose material cannot be resolved are skipped. The result is sorted by
    brand then film code, case-insensitively.
    """
    start, end = day_bounds(date_from, date_to)

    agg: dict[tuple, MaterialUsage] = {}
    for row in usages_with_material or ():
        if not in_range(_field(row, "created_at"), start, end):
            continue

        mat = _material_of(row)
        if mat is None:
            continue

        key = (
            _field(mat, "brand"),
            _field(mat, "film_code"),
            _field(mat, "color_name"),
            _field(mat, "width_in"),
        )
        if key not in agg:
            agg[key] = MaterialUsage(*key)

        item = agg[key]
        item.used_in += _int(_field(row, "used_length_in", 0))
        item.waste_in += _int(_field(row, "waste_length_in", 0))
        item.cuts += 1

    return sorted(agg.values(), key=_sort_key)
