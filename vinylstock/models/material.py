from vinylstock.extensions import db


class Material(db.Model):
    __tablename__ = "materials"

    id = db.Column(db.Integer, primary_key=True)
    brand = db.Column(db.String(80), nullable=False)
    film_code = db.Column(db.String(80), nullable=False)
    color_name = db.Column(db.String(120), nullable=False)
    finish = db.Column(db.String(80))

    width_in = db.Column(db.Integer, nullable=False, default=60)
    reorder_threshold_in = db.Column(db.Integer, nullable=False, default=300)

    rolls = db.relationship("Roll", back_populates="material")

    @property
    def label(self):
        return f"{self.brand} {self.film_code} – {self.color_name} ({self.width_in}\" wide)"

    def __repr__(self):
        return f"<Material {self.brand} {self.film_code}>"
