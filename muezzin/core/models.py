"""
DB models mirroring the entity records: Country, City, District and PrayerTime.
"""
from sqlalchemy import Column, Date, ForeignKey, Integer, String, Time, UniqueConstraint

from muezzin.core.db import Base


class CountryRecord(Base):
    """Country table; id is the provider's id, never generated locally."""
    __tablename__ = "Country"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False)
    trName = Column(String(255), nullable=False)
    nativeName = Column(String(255), nullable=False)


class CityRecord(Base):
    __tablename__ = "City"

    id = Column(Integer, primary_key=True, autoincrement=False)
    countryId = Column(Integer, ForeignKey("Country.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    trName = Column(String(255), nullable=False)


class DistrictRecord(Base):
    __tablename__ = "District"

    id = Column(Integer, primary_key=True, autoincrement=False)
    cityId = Column(Integer, ForeignKey("City.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    trName = Column(String(255), nullable=False)


class PrayerTimeRecord(Base):
    """One day of prayer times for a district; unique per (districtId, date)."""
    __tablename__ = "PrayerTime"
    __table_args__ = (UniqueConstraint("districtId", "date", name="uq_prayer_time_district_date"),)

    districtId = Column(Integer, ForeignKey("District.id"), primary_key=True, autoincrement=False)
    date = Column(Date, primary_key=True, index=True)
    fajr = Column(Time, nullable=False)
    sunrise = Column(Time, nullable=False)
    dhuhr = Column(Time, nullable=False)
    asr = Column(Time, nullable=False)
    maghrib = Column(Time, nullable=False)
    isha = Column(Time, nullable=False)
