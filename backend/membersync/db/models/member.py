"""
Member destination tables — members and their transactions and visits.

Emails are unique per site; transactions and visits reference the
owning member by id.
"""

from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint

from membersync.db.models.base import Base, JSONType, generate_uuid, utcnow


class Member(Base):
    __tablename__ = "members"
    __table_args__ = (UniqueConstraint("site_id", "email", name="uq_members_site_email"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    site_id = Column(String(36), nullable=True, index=True)

    # ── Identity ──────────────────────────────
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(320), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)

    # ── Membership ────────────────────────────
    membership_status = Column(String(50), nullable=False, default="active")
    tags = Column(JSONType, default=list)

    # ── Address ───────────────────────────────
    address_line1 = Column(String(255), nullable=True)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Member {self.id} email={self.email}>"


class MemberTransaction(Base):
    __tablename__ = "member_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    transaction_date = Column(Date, nullable=False)
    transaction_type = Column(String(50), nullable=False, default="purchase")
    description = Column(Text, nullable=True)
    payment_method = Column(String(50), nullable=True)
    reference_number = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class MemberVisit(Base):
    __tablename__ = "member_visits"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    site_id = Column(String(36), nullable=True, index=True)

    visit_date = Column(Date, nullable=False)
    check_in_time = Column(String(20), nullable=True)
    check_out_time = Column(String(20), nullable=True)
    visit_type = Column(String(50), nullable=False, default="general")
    service_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
