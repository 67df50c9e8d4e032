from datetime import datetime

from vinylstock.extensions import db

ROLL_STATUSES = ("open", "consumed")


class Roll(db.Model):
    __tablename__ = "rolls"

    id = db.Column(db.Integer, primary_key=True)
    material_id = db.Column(db.Integer, db.ForeignKey("materials.id"), nullable=False)
    supplier = db.Column(db.String(120))

    starting_length_in = db.Column(db.Integer, nullable=False, default=1800)
    cost_cents = db.Column(db.Integer, default=0)

    location = db.Column(db.String(120))
    status = db.Column(db.String(20), nullable=False, default="open")  # open | consumed
    note = db.Column(db.Text)
    received_at = db.Column(db.DateTime, default=datetime.now)

    material = db.relationship("Material", back_populates="rolls")
    usages = db.relationship(
        "RollUsage",
        back_populates="roll",
        order_by="RollUsage.created_at.desc()",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Roll {self.id} {self.status}>"
