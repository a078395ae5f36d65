"""Database models for relagg tests (shared)."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table
from sqlalchemy.orm import DeclarativeBase, relationship

from relagg import AggregatedQueryMixin, belongs_to, has_many


class Base(DeclarativeBase):
    """Base class for test models."""
    pass


partner_tags = Table(
    'partner_tags',
    Base.metadata,
    Column('partner_id', Integer, ForeignKey('partners.id'), primary_key=True),
    Column('tag_id', Integer, ForeignKey('tags.id'), primary_key=True),
)

# Plain tables without mapped classes; reachable only through explicit accessors.
regions = Table(
    'regions',
    Base.metadata,
    Column('code', String(8), primary_key=True),
    Column('title', String(100), nullable=False),
)

partner_notes = Table(
    'partner_notes',
    Base.metadata,
    Column('id', Integer, primary_key=True),
    Column('partner_id', Integer, ForeignKey('partners.id'), nullable=False),
    Column('body', String(500), nullable=False),
)


class Profile(Base):
    __tablename__ = 'profiles'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    avatar = Column(String(200))


class Country(Base):
    __tablename__ = 'countries'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    code = Column(String(2), nullable=False)


class Partner(AggregatedQueryMixin, Base):
    __tablename__ = 'partners'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default='active')
    profile_id = Column(Integer, ForeignKey('profiles.id'))
    country_id = Column(Integer, ForeignKey('countries.id'))
    region_code = Column(String(8))
    created_at = Column(DateTime, default=datetime.utcnow)

    profile = relationship('Profile')
    country = relationship('Country')
    promocodes = relationship('Promocode', back_populates='partner')
    contract = relationship('Contract', uselist=False, back_populates='partner')
    tags = relationship('Tag', secondary=partner_tags)

    # explicit accessors
    region = staticmethod(lambda: belongs_to('regions', foreign_key='region_code', owner_key='code'))
    notes = staticmethod(lambda: has_many('partner_notes'))

    @classmethod
    def lookup(cls, key):
        return belongs_to(Profile)

    @staticmethod
    def label():
        return 'partner'


class Promocode(Base):
    __tablename__ = 'promocodes'

    id = Column(Integer, primary_key=True)
    partner_id = Column('partner_id', Integer, ForeignKey('partners.id'), nullable=False)
    code = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    deleted_at = Column(DateTime)

    partner = relationship('Partner', back_populates='promocodes')


class Contract(Base):
    __tablename__ = 'contracts'

    id = Column(Integer, primary_key=True)
    partner_id = Column(Integer, ForeignKey('partners.id'), unique=True, nullable=False)
    number = Column(String(50), nullable=False)

    partner = relationship('Partner', back_populates='contract')


class Tag(Base):
    __tablename__ = 'tags'

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False)
