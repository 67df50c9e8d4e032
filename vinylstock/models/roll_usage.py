from datetime import datetime

from vinylstock.extensions import db


class RollUsage(db.Model):
    __tablename__ = "roll_usages"

    id = db.Column(db.Integer, primary_key=True)
    roll_id = db.Column(db.Integer, db.ForeignKey("rolls.id"), nullable=False)

    used_length_in = db.Column(db.Integer, nullable=False)
    waste_length_in = db.Column(db.Integer, nullable=False, default=0)

    job_code = db.Column(db.String(60))
    operator = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)

    roll = db.relationship("Roll", back_populates="usages")

    @property
    def material(self):
        return self.roll.material if self.roll else None

    def __repr__(self):
        return f"<RollUsage {self.id} roll={self.roll_id}>"
