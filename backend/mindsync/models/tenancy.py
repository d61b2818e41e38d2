from __future__ import annotations

from ..extensions import db
from mindsync.time_utils import to_utc_z


class BusinessProfile(db.Model):
    """
    Tenant root. Every transaction, account, product, customer and invoice
    belongs to exactly one business.

    user_id references the owning account in the external auth provider;
    it is stored only so callers can resolve "my business".
    """
    __tablename__ = "business_profiles"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_business_profiles_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)

    business_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    business_email = db.Column(db.String(255), nullable=True)
    industry = db.Column(db.String(128), nullable=True)
    whatsapp_number = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<BusinessProfile id={self.id} name={self.business_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "business_name": self.business_name,
            "phone": self.phone,
            "business_email": self.business_email,
            "industry": self.industry,
            "whatsapp_number": self.whatsapp_number,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
