"""
Basic example of aggregating relations with relagg and SQLAlchemy.

This example demonstrates:
- Declaring models with relationship() and explicit accessors
- Attaching a single object, a collection and a count in one statement
- Dict and entity hydration
- Pagination with a COUNT(*) companion query
"""

import asyncio
import logging
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, relationship

import relagg
from relagg import AggregatedQueryMixin, has_many


# SQLAlchemy Models
class Base(DeclarativeBase):
    pass


# Audit table without a mapped class
user_logins = Table(
    'user_logins',
    Base.metadata,
    Column('id', Integer, primary_key=True),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('ip', String(45), nullable=False),
)


class Team(Base):
    __tablename__ = 'teams'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)


class User(AggregatedQueryMixin, Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    team_id = Column(Integer, ForeignKey('teams.id'))
    created_at = Column(DateTime, default=datetime.utcnow)

    team = relationship("Team")
    posts = relationship("Post", back_populates="author")

    logins = staticmethod(lambda: has_many('user_logins'))


class Post(Base):
    __tablename__ = 'posts'

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    author_id = Column(Integer, ForeignKey('users.id'), nullable=False)

    author = relationship("User", back_populates="posts")


async def setup_database(session_factory):
    """Add sample data."""
    async with session_factory() as session:
        session.add_all([
            Team(id=1, name="Core"),
            User(id=1, name="Alice Johnson", email="alice@example.com", team_id=1),
            User(id=2, name="Bob Smith", email="bob@example.com"),
            Post(id=1, title="First Post", author_id=1),
            Post(id=2, title="SQLAlchemy Tips", author_id=1),
        ])
        await session.flush()
        await session.execute(user_logins.insert(), [{"id": 1, "user_id": 2, "ip": "10.0.0.1"}])
        await session.commit()


async def main():
    logging.basicConfig(level=logging.INFO)
    relagg.configure(max_limit=100)

    engine = create_async_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await setup_database(session_factory)

    async with session_factory() as session:
        query = (
            User.aggregated_query(session)
            .add_single_relation('team', ['id', 'name'])
            .add_collection_relation('posts', ['id', 'title'])
            .add_count('posts')
            .order_by('name')
        )
        print(await query.acompile_sql())
        for row in await query.aget():
            print(row['name'], row['team'], row['posts'], row['posts_count'])

        # wildcard columns of a bare table are read from the catalog once
        users = await (
            User.aggregated_query(session)
            .add_collection_relation('logins')
            .aget(hydrator='typed')
        )
        for user in users:
            print(user.name, user.logins)

        page = await User.aggregated_query(session).add_count('posts').apaginate(page=1, per_page=1)
        print(f"page {page.page}/{page.last_page}, total {page.total}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
