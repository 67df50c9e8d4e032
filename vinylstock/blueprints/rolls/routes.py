import logging

from flask import render_template, request, redirect, url_for, flash

from vinylstock import repository
from vinylstock.errors import DataAccessError, NotFound, ValidationError
from vinylstock.inventory import (
    ROLL_LOW_THRESHOLD_IN,
    dollars_to_cents,
    display_remaining_in,
    feet_to_inches,
    is_low_material,
    is_low_roll,
    is_overdrawn,
    remaining_inches,
)
from vinylstock.models import ROLL_STATUSES
from vinylstock.permissions import session_required

from . import rolls_bp

logger = logging.getLogger(__name__)


# ------------------------- helpers -------------------------
def _int_field(name, default=None, label=None):
    raw = (request.form.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{label or name} must be a whole number.")


def _feet_field(name, label):
    try:
        return feet_to_inches(request.form.get(name) or "0")
    except ValueError:
        raise ValidationError(f"{label} must be a number of feet.")


def _usage_form():
    return dict(
        used_length_in=_feet_field("used_length_ft", "Used length"),
        waste_length_in=_feet_field("waste_length_ft", "Waste"),
        job_code=request.form.get("job_code"),
        operator=request.form.get("operator"),
    )


def _roll_view(roll):
    remaining = remaining_inches(roll.starting_length_in, roll.usages)
    if is_overdrawn(remaining):
        logger.warning("roll %s is over-drawn: remaining=%sin", roll.id, remaining)
    return dict(
        roll=roll,
        remaining_in=remaining,
        display_in=display_remaining_in(remaining),
        low=is_low_roll(remaining),
        overdrawn=is_overdrawn(remaining),
        threshold_in=ROLL_LOW_THRESHOLD_IN,
    )


@rolls_bp.errorhandler(NotFound)
def _not_found(e):
    return render_template("error.html", message=str(e)), 404


# ------------------------- dashboard -------------------------
@rolls_bp.get("/")
@session_required
def dashboard():
    try:
        materials_count = repository.count_materials()
        open_rolls_count = repository.count_open_rolls()
        low_inventory = [
            m for m in repository.material_remaining()
            if is_low_material(m.total_remaining_in, m.reorder_threshold_in)
        ]
    except DataAccessError as e:
        return render_template("rolls/dashboard.html", error=str(e))

    return render_template(
        "rolls/dashboard.html",
        error=None,
        materials_count=materials_count,
        open_rolls_count=open_rolls_count,
        low_inventory=low_inventory,
    )


# ------------------------- materials -------------------------
@rolls_bp.route("/materials/new", methods=["GET", "POST"])
@session_required
def material_new():
    if request.method == "POST":
        try:
            repository.create_material(
                brand=request.form.get("brand"),
                film_code=request.form.get("film_code"),
                color_name=request.form.get("color_name"),
                finish=request.form.get("finish"),
                width_in=_int_field("width_in", 60, "Width"),
                reorder_threshold_in=_int_field("reorder_threshold_in", 300, "Reorder threshold"),
            )
        except ValidationError as e:
            flash(str(e), "warning")
            return render_template("rolls/material_form.html", form=request.form), 400
        except DataAccessError as e:
            flash(str(e), "danger")
            return render_template("rolls/material_form.html", form=request.form), 500

        flash("Material saved!", "success")
        return redirect(url_for("rolls.material_new"))

    return render_template("rolls/material_form.html", form={})


# ------------------------- rolls -------------------------
@rolls_bp.get("/rolls")
@session_required
def rolls_list():
    status = (request.args.get("status") or "").strip().lower() or None
    try:
        rolls = repository.list_rolls(status=status)
        remaining_by_id = repository.roll_remaining_by_id()
    except DataAccessError as e:
        return render_template("rolls/rolls_list.html", error=str(e), rows=[], status=status)

    rows = []
    for r in rolls:
        remaining = remaining_by_id.get(r.id)
        rows.append(dict(
            roll=r,
            remaining_in=remaining,
            display_in=display_remaining_in(remaining),
            low=is_low_roll(remaining),
            overdrawn=is_overdrawn(remaining),
        ))

    return render_template("rolls/rolls_list.html", error=None, rows=rows, status=status)


@rolls_bp.route("/rolls/new", methods=["GET", "POST"])
@session_required
def roll_new():
    try:
        materials = repository.list_materials()
    except DataAccessError as e:
        flash(str(e), "danger")
        materials = []

    if request.method == "POST":
        try:
            try:
                cost_cents = dollars_to_cents(request.form.get("cost") or "0")
            except ValueError:
                raise ValidationError("Cost must be a dollar amount.")
            repository.create_roll(
                material_id=_int_field("material_id", None, "Material"),
                starting_length_in=_int_field("starting_length_in", 1800, "Starting length"),
                supplier=request.form.get("supplier"),
                cost_cents=cost_cents,
                location=request.form.get("location"),
                note=request.form.get("note"),
            )
        except ValidationError as e:
            flash(str(e), "warning")
            return render_template("rolls/roll_form.html", materials=materials, form=request.form), 400
        except DataAccessError as e:
            flash(str(e), "danger")
            return render_template("rolls/roll_form.html", materials=materials, form=request.form), 500

        flash("Roll saved!", "success")
        return redirect(url_for("rolls.roll_new"))

    return render_template("rolls/roll_form.html", materials=materials, form={})


@rolls_bp.route("/rolls/<int:roll_id>", methods=["GET", "POST"])
@session_required
def roll_detail(roll_id):
    if request.method == "POST":
        try:
            repository.log_usage(roll_id, **_usage_form())
        except ValidationError as e:
            flash(str(e), "warning")
        except DataAccessError as e:
            flash(str(e), "danger")
        else:
            flash("Usage logged!", "success")
        return redirect(url_for("rolls.roll_detail", roll_id=roll_id))

    roll = repository.get_roll(roll_id)
    return render_template("rolls/roll_detail.html", statuses=ROLL_STATUSES, **_roll_view(roll))


@rolls_bp.post("/rolls/<int:roll_id>/status")
@session_required
def roll_status(roll_id):
    status = (request.form.get("status") or "").strip().lower()
    try:
        repository.set_roll_status(roll_id, status)
    except ValidationError as e:
        flash(str(e), "warning")
    except DataAccessError as e:
        flash(str(e), "danger")
    else:
        flash(f"Roll marked {status}.", "success")
    return redirect(url_for("rolls.roll_detail", roll_id=roll_id))


# ------------------------- usage -------------------------
@rolls_bp.route("/quick/<int:roll_id>", methods=["GET", "POST"])
@session_required
def quick_log(roll_id):
    if request.method == "POST":
        try:
            repository.log_usage(
                roll_id,
                used_length_in=_feet_field("used_length_ft", "Used length"),
                waste_length_in=_feet_field("waste_length_ft", "Waste"),
            )
        except ValidationError as e:
            flash(str(e), "warning")
        except DataAccessError as e:
            flash(str(e), "danger")
        else:
            flash("Saved!", "success")
        return redirect(url_for("rolls.quick_log", roll_id=roll_id))

    roll = repository.get_roll(roll_id)
    return render_template("rolls/quick.html", **_roll_view(roll))


@rolls_bp.route("/usage/new", methods=["GET", "POST"])
@session_required
def usage_new():
    try:
        rolls = repository.list_rolls(status="open")
    except DataAccessError as e:
        flash(str(e), "danger")
        rolls = []

    if request.method == "POST":
        try:
            roll_id = _int_field("roll_id", None, "Roll")
            if not roll_id:
                raise ValidationError("Please select a roll.")
            repository.log_usage(roll_id, **_usage_form())
        except (ValidationError, NotFound) as e:
            flash(str(e), "warning")
            return render_template("rolls/usage_form.html", rolls=rolls, form=request.form), 400
        except DataAccessError as e:
            flash(str(e), "danger")
            return render_template("rolls/usage_form.html", rolls=rolls, form=request.form), 500

        flash("Usage logged!", "success")
        return redirect(url_for("rolls.usage_new"))

    return render_template("rolls/usage_form.html", rolls=rolls, form={})
