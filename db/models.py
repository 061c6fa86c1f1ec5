# WORKFLOW: Database models for registers, parcels, vocabularies and FEACN rules.
# Used by: Register import, classification services, API endpoints
# Models represent:
# 1. registers / parcels - Uploaded declaration batches and their line items
# 2. stop_words / key_words - Vocabulary entries with a match type
# 3. feacn_orders / feacn_prefixes - Prohibition rules grouped by legal-basis order
# 4. feacn_codes - FEACN catalog with validity window and hierarchy
# 5. parcel_* link tables - Matches recorded by the last classification pass
#
# Data flow: XLSX -> Register import -> parcels -> Classification -> link tables + check status

from datetime import datetime

from sqlalchemy import Column, Integer, BigInteger, String, Float, Boolean, Date, DateTime, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Register(Base):
    __tablename__ = "registers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_name = Column(String(255), nullable=False)
    document_type = Column(String(16), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    parcels = relationship("Parcel", back_populates="register", cascade="all, delete-orphan")


class Parcel(Base):
    __tablename__ = "parcels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    register_id = Column(Integer, ForeignKey("registers.id", ondelete="CASCADE"), nullable=False)
    document_type = Column(String(16), nullable=False)
    check_status_id = Column(Integer, nullable=False)
    row_number = Column(Integer, nullable=True)
    product_name = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    tn_ved = Column(String(32), nullable=True)
    country_code = Column(Integer, nullable=True)
    quantity = Column(Float, nullable=True)
    unit_price = Column(Float, nullable=True)
    weight_kg = Column(Float, nullable=True)
    currency = Column(String(8), nullable=True)
    partner_color = Column(BigInteger, nullable=True)  # ARGB fill of partner-marked rows
    details = Column(JSON, nullable=False, default=dict)  # Document-type specific payload

    # Relationships
    register = relationship("Register", back_populates="parcels")
    stop_word_links = relationship("ParcelStopWord", cascade="all, delete-orphan")
    key_word_links = relationship("ParcelKeyWord", cascade="all, delete-orphan")
    feacn_prefix_links = relationship("ParcelFeacnPrefix", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_parcel_register', 'register_id'),
        Index('idx_parcel_status', 'check_status_id'),
    )


class StopWord(Base):
    __tablename__ = "stop_words"

    id = Column(Integer, primary_key=True, autoincrement=True)
    word = Column(String(256), nullable=False)
    match_type_id = Column(Integer, nullable=False)

    parcel_links = relationship("ParcelStopWord", cascade="all, delete-orphan")


class KeyWord(Base):
    __tablename__ = "key_words"

    id = Column(Integer, primary_key=True, autoincrement=True)
    word = Column(String(256), nullable=False)
    match_type_id = Column(Integer, nullable=False)
    insert_before = Column(Text, nullable=True)
    insert_after = Column(Text, nullable=True)

    feacn_codes = relationship("KeyWordFeacnCode", back_populates="key_word", cascade="all, delete-orphan")
    parcel_links = relationship("ParcelKeyWord", cascade="all, delete-orphan")


class KeyWordFeacnCode(Base):
    __tablename__ = "key_word_feacn_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key_word_id = Column(Integer, ForeignKey("key_words.id", ondelete="CASCADE"), nullable=False)
    code = Column(String(10), nullable=False)

    key_word = relationship("KeyWord", back_populates="feacn_codes")


class FeacnOrder(Base):
    __tablename__ = "feacn_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    url = Column(Text, nullable=True)
    comment = Column(Text, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)

    prefixes = relationship("FeacnPrefix", back_populates="order", cascade="all, delete-orphan")


class FeacnPrefix(Base):
    __tablename__ = "feacn_prefixes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(10), nullable=False)
    interval_code = Column(String(10), nullable=True)  # Upper bound when the rule covers a numeric range
    description = Column(Text, nullable=True)
    comment = Column(Text, nullable=True)
    feacn_order_id = Column(Integer, ForeignKey("feacn_orders.id", ondelete="CASCADE"), nullable=True)

    order = relationship("FeacnOrder", back_populates="prefixes")
    exceptions = relationship("FeacnPrefixException", back_populates="prefix", cascade="all, delete-orphan")
    parcel_links = relationship("ParcelFeacnPrefix", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_feacn_prefix_code', 'code'),
        Index('idx_feacn_prefix_order', 'feacn_order_id'),
    )


class FeacnPrefixException(Base):
    __tablename__ = "feacn_prefix_exceptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    feacn_prefix_id = Column(Integer, ForeignKey("feacn_prefixes.id", ondelete="CASCADE"), nullable=False)
    code = Column(String(10), nullable=False)

    prefix = relationship("FeacnPrefix", back_populates="exceptions")


class FeacnCode(Base):
    __tablename__ = "feacn_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(10), nullable=False)
    code_ex = Column(String(32), nullable=True)
    name = Column(Text, nullable=True)
    normalized = Column(Text, nullable=True)
    from_date = Column(Date, nullable=True)
    to_date = Column(Date, nullable=True)
    old_name = Column(Text, nullable=True)
    old_name_to_date = Column(Date, nullable=True)
    parent_id = Column(Integer, ForeignKey("feacn_codes.id"), nullable=True)

    parent = relationship("FeacnCode", remote_side=[id], back_populates="children")
    children = relationship("FeacnCode", back_populates="parent")

    __table_args__ = (
        Index('idx_feacn_code', 'code'),
    )


class ParcelStopWord(Base):
    __tablename__ = "parcel_stop_words"

    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), primary_key=True)
    stop_word_id = Column(Integer, ForeignKey("stop_words.id", ondelete="CASCADE"), primary_key=True)


class ParcelKeyWord(Base):
    __tablename__ = "parcel_key_words"

    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), primary_key=True)
    key_word_id = Column(Integer, ForeignKey("key_words.id", ondelete="CASCADE"), primary_key=True)


class ParcelFeacnPrefix(Base):
    __tablename__ = "parcel_feacn_prefixes"

    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), primary_key=True)
    feacn_prefix_id = Column(Integer, ForeignKey("feacn_prefixes.id", ondelete="CASCADE"), primary_key=True)
    feacn_order_id = Column(Integer, nullable=True)  # Null for standalone prefix rules
