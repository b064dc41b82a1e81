"""Core SQLAlchemy models (2.x style) for the job-offer schema.

Every lookup entity carries a unique constraint on its natural key so that
find-or-create can lean on the database to settle creation races.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Table, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Location(Base):
    """City/country pair shared by job offers and companies."""
    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    city: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str | None] = mapped_column(String(255))
    region: Mapped[str | None] = mapped_column(String(255))

    __table_args__ = (
        UniqueConstraint("city", "country", name="uq_locations_city_country", postgresql_nulls_not_distinct=True),
    )


class Company(Base):
    """Hiring company, keyed by name."""
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    website: Mapped[str | None] = mapped_column(String(2000))
    size: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    location_id: Mapped[int | None] = mapped_column(ForeignKey("locations.id", ondelete="SET NULL"))

    location: Mapped[Location | None] = relationship("Location")


class Salary(Base):
    """Salary band; all four key columns participate in equality."""
    __tablename__ = "salaries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    min_value: Mapped[float | None] = mapped_column(Float)
    max_value: Mapped[float | None] = mapped_column(Float)
    currency: Mapped[str | None] = mapped_column(String(10))
    period: Mapped[str | None] = mapped_column(String(20))
    salary_type: Mapped[str | None] = mapped_column(String(20))  # gross / net

    __table_args__ = (
        UniqueConstraint(
            "min_value",
            "max_value",
            "currency",
            "period",
            name="uq_salaries_band",
            postgresql_nulls_not_distinct=True,
        ),
    )


class Industry(Base):
    __tablename__ = "industries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


class Profession(Base):
    __tablename__ = "professions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


def _job_offer_link_table(name: str, target: str) -> Table:
    return Table(
        name,
        Base.metadata,
        Column("job_offer_id", ForeignKey("job_offers.id", ondelete="CASCADE"), primary_key=True),
        Column(f"{target}_id", ForeignKey(f"{target}s.id", ondelete="CASCADE"), primary_key=True),
    )


job_offer_benefits = _job_offer_link_table("job_offer_benefits", "benefit")
job_offer_requirements = _job_offer_link_table("job_offer_requirements", "requirement")
job_offer_work_modes = _job_offer_link_table("job_offer_work_modes", "work_mode")
job_offer_contract_types = _job_offer_link_table("job_offer_contract_types", "contract_type")
job_offer_keywords = _job_offer_link_table("job_offer_keywords", "keyword")


class Benefit(Base):
    __tablename__ = "benefits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


class Requirement(Base):
    __tablename__ = "requirements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)


class WorkMode(Base):
    __tablename__ = "work_modes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class ContractType(Base):
    __tablename__ = "contract_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class Keyword(Base):
    __tablename__ = "keywords"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


class JobOffer(Base):
    """Job offers table, keyed by the source system's ``external_id``."""
    __tablename__ = "job_offers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    source_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    seniority: Mapped[str | None] = mapped_column(String(50))
    source_name: Mapped[str | None] = mapped_column(String(100))
    # UTC, without offset
    published_at: Mapped[datetime | None] = mapped_column(DateTime)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime)

    company_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id", ondelete="SET NULL"))
    salary_id: Mapped[int | None] = mapped_column(ForeignKey("salaries.id", ondelete="SET NULL"))
    location_id: Mapped[int | None] = mapped_column(ForeignKey("locations.id", ondelete="SET NULL"))
    industry_id: Mapped[int | None] = mapped_column(ForeignKey("industries.id", ondelete="SET NULL"))
    profession_id: Mapped[int | None] = mapped_column(ForeignKey("professions.id", ondelete="SET NULL"))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    company: Mapped[Company | None] = relationship("Company")
    salary: Mapped[Salary | None] = relationship("Salary")
    location: Mapped[Location | None] = relationship("Location")
    industry: Mapped[Industry | None] = relationship("Industry")
    profession: Mapped[Profession | None] = relationship("Profession")

    benefits: Mapped[list[Benefit]] = relationship("Benefit", secondary=job_offer_benefits)
    requirements: Mapped[list[Requirement]] = relationship("Requirement", secondary=job_offer_requirements)
    work_modes: Mapped[list[WorkMode]] = relationship("WorkMode", secondary=job_offer_work_modes)
    contract_types: Mapped[list[ContractType]] = relationship("ContractType", secondary=job_offer_contract_types)
    keywords: Mapped[list[Keyword]] = relationship("Keyword", secondary=job_offer_keywords)

    __table_args__ = (
        Index("ix_job_offers_company", "company_id"),
    )
