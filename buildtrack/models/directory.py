"""
Directory models — people and organisations.

    users               staff accounts (workbook email is the natural key)
    customers           homeowners / clients (primary email is the natural key)
    contacts            extra contact people per customer
    role_assignments    which user currently holds each company role
"""

from buildtrack.models import db
from buildtrack.models.base import TimestampedRecordModel


# ═══════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════
class User(TimestampedRecordModel):
    __tablename__ = "users"

    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(20))
    position = db.Column(db.String(100))
    department = db.Column(db.String(100))
    bio = db.Column(db.String(500))
    role = db.Column(db.String(40), nullable=False, default="WORKER")
    permissions = db.Column(db.JSON)
    is_active = db.Column(db.Boolean, default=True)
    is_verified = db.Column(db.Boolean, default=False)
    language = db.Column(db.String(5), default="en")
    timezone = db.Column(db.String(50), default="UTC")
    skills = db.Column(db.JSON)
    experience = db.Column(db.Integer)
    notification_preferences = db.Column(db.JSON)
    theme = db.Column(db.String(20), default="LIGHT")

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"


# ═══════════════════════════════════════════════════════════════
# CUSTOMERS & CONTACTS
# ═══════════════════════════════════════════════════════════════
class Customer(TimestampedRecordModel):
    __tablename__ = "customers"

    primary_name = db.Column(db.String(100), nullable=False)
    primary_email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    primary_phone = db.Column(db.String(20), nullable=False)
    secondary_name = db.Column(db.String(100))
    secondary_email = db.Column(db.String(255))
    secondary_phone = db.Column(db.String(20))
    primary_contact = db.Column(db.String(20), default="PRIMARY")
    address = db.Column(db.String(500), nullable=False)
    notes = db.Column(db.String(2000))

    def __repr__(self):
        return f"<Customer {self.id}: {self.primary_email}>"


class Contact(TimestampedRecordModel):
    __tablename__ = "contacts"

    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20))
    email = db.Column(db.String(255))
    role = db.Column(db.String(50))
    is_primary = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    notes = db.Column(db.String(500))
    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=False, index=True)


# ═══════════════════════════════════════════════════════════════
# ROLE ASSIGNMENTS
# ═══════════════════════════════════════════════════════════════
class RoleAssignment(TimestampedRecordModel):
    """One row per company role; ``role_type`` is unique."""
    __tablename__ = "role_assignments"

    role_type = db.Column(db.String(40), unique=True, nullable=False)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    assigned_at = db.Column(db.DateTime)
    assigned_by_id = db.Column(db.String(64), db.ForeignKey("users.id"))
    is_active = db.Column(db.Boolean, default=True)
