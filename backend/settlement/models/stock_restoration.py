from datetime import datetime

from settlement.extensions import db


class StockRestoration(db.Model):
    __tablename__ = "stock_restorations"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    reason = db.Column(db.String(16), nullable=False)  # return | cancel
    units = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint("order_id", "reason", name="uq_stock_restorations_order_reason"),)
