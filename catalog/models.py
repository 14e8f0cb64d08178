"""Core SQLAlchemy models (2.x style) for the publication catalog.

Departments and journals are reference tables that the import pipeline only
reads; publications are created by it. The unique constraints on DOI, PMID
and WOS number back up the duplicate detector under concurrent imports.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Department(Base):
    """Hospital departments."""
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    publications: Mapped[list[Publication]] = relationship("Publication", back_populates="department")


class User(Base):
    """Catalog users; only referenced here as the acting user of an import."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(30), nullable=False, default="user")
    department_id: Mapped[int | None] = mapped_column(ForeignKey("departments.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)


class Journal(Base):
    """Journal reference data, one row per journal per ranking year."""
    __tablename__ = "journals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    abbreviation: Mapped[str | None] = mapped_column(String(100), index=True)
    issn: Mapped[str | None] = mapped_column(String(20), index=True)
    impact_factor: Mapped[Decimal] = mapped_column(Numeric(8, 4), nullable=False)
    quartile: Mapped[str] = mapped_column(String(2), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    publisher: Mapped[str | None] = mapped_column(String(100))
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    publications: Mapped[list[Publication]] = relationship("Publication", back_populates="journal")

    __table_args__ = (
        UniqueConstraint("name", "year", name="uq_journals_name_year"),
        UniqueConstraint("issn", "year", name="uq_journals_issn_year"),
    )


class Publication(Base):
    """Publications written to the catalog."""
    __tablename__ = "publications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    authors: Mapped[str] = mapped_column(Text, nullable=False)
    journal_id: Mapped[int] = mapped_column(ForeignKey("journals.id"), nullable=False, index=True)
    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    publish_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    volume: Mapped[str | None] = mapped_column(String(20))
    issue: Mapped[str | None] = mapped_column(String(20))
    pages: Mapped[str | None] = mapped_column(String(50))
    doi: Mapped[str | None] = mapped_column(String(100))
    pmid: Mapped[str | None] = mapped_column(String(20))
    wos_number: Mapped[str | None] = mapped_column(String(50))
    document_type: Mapped[str | None] = mapped_column(String(50), index=True)
    journal_abbreviation: Mapped[str | None] = mapped_column(String(100))
    address: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    journal: Mapped[Journal] = relationship("Journal", back_populates="publications")
    department: Mapped[Department] = relationship("Department", back_populates="publications")

    __table_args__ = (
        UniqueConstraint("doi", name="uq_publications_doi"),
        UniqueConstraint("pmid", name="uq_publications_pmid"),
        UniqueConstraint("wos_number", name="uq_publications_wos_number"),
        Index("ix_publications_created_at", "created_at"),
    )
