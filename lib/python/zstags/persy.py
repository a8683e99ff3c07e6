#!/usr/bin/env python3

''' Tag storage in a transactional embedded database.

    The backend specification is:

        persy:DATABASE_PATH:NORM_PATH[:init]

    where `DATABASE_PATH` is the database file,
    `NORM_PATH` is the directory against which file paths are normalised
    and the optional `init` modifier creates a fresh database.

    The database is an SQLite file accessed via SQLAlchemy
    holding a single table `zstags` which acts as a cluster index:
    it has a row per `(path_key,tag)` pair
    with a nonunique index on `path_key`.
    The `path_key` is the path of the file relative to `NORM_PATH`.
    Unlike the `xattr` backend, tags do not follow a file when it moves.

    Every mutation is a single transaction.
'''

from contextlib import contextmanager
from os.path import exists as existspath
from typing import Iterable, List, Set

from sqlalchemy import Column, Integer, String, create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from cs.logutils import info
from cs.pfx import pfx_method
from cs.threads import locked

from .backend import ConfigError, TagBackend
from .paths import absolute_path, normalize_path

INDEX_NAME = 'zstags'

# the optional third argument
INIT_MODIFIER = 'init'

Base = declarative_base()

class TagRow(Base):
  ''' A row associating a tag with a normalised path.
  '''

  __tablename__ = INDEX_NAME
  id = Column(Integer, primary_key=True)
  path_key = Column(
      String,
      nullable=False,
      index=True,
      comment='the file path relative to the normalisation directory',
  )
  tag = Column(String, nullable=False, comment='a single tag')

  def __repr__(self):
    return f'{type(self).__name__}(path_key={self.path_key!r},tag={self.tag!r})'

class PersyBackend(TagBackend):
  ''' A backend storing tags in a database keyed by normalised path.
  '''

  SCHEMA = 'persy'

  def __init__(self, db_path, norm_path, *, init=False, cur_dir):
    ''' Initialise the backend.

        Parameters:
        * `db_path`: the database file path
        * `norm_path`: the normalisation base directory,
          made absolute relative to `cur_dir`
        * `init`: if true, create a fresh database immediately
        * `cur_dir`: the current working directory,
          against which relative paths are resolved
    '''
    super().__init__()
    self.cur_dir = absolute_path(cur_dir, '/')
    self.db_path = absolute_path(db_path, self.cur_dir)
    self.norm_path = absolute_path(norm_path, self.cur_dir)
    self._engine = None
    self._sessionmaker = None
    self.prepare_database(init=init)

  def __str__(self):
    return f'{type(self).__name__}(db_path={self.db_path!r},norm_path={self.norm_path!r})'

  @classmethod
  def from_args(cls, args: List[str], *, cur_dir):
    ''' Construct from `[DATABASE_PATH, NORM_PATH[, init]]`.
    '''
    if len(args) not in (2, 3):
      raise ConfigError(
          f'{cls.SCHEMA} backend: invalid invocation'
          f' (expects only 2 or 3 args, got {len(args)}: {args!r})'
      )
    db_path, norm_path, *modifiers = args
    init = False
    if modifiers:
      modifier, = modifiers
      if modifier != INIT_MODIFIER:
        raise ConfigError(
            f'{cls.SCHEMA} backend: unknown modifier {modifier!r}'
        )
      init = True
    if not db_path:
      raise ConfigError(f'{cls.SCHEMA} backend: empty database path')
    if not norm_path:
      raise ConfigError(f'{cls.SCHEMA} backend: empty normalisation path')
    return cls(db_path, norm_path, init=init, cur_dir=cur_dir)

  @property
  def db_url(self):
    ''' The SQLAlchemy URL for the database.
    '''
    return 'sqlite:///' + self.db_path

  @pfx_method
  def prepare_database(self, *, init=False):
    ''' Check that the database is ready for use.
        If `init` is true, create a fresh database containing an empty index,
        otherwise require an existing database containing the index.
    '''
    db_path = self.db_path
    if init:
      if existspath(db_path):
        raise self.storage_error(
            'database already exists, refusing to init', path=db_path
        )
    elif not existspath(db_path):
      raise self.storage_error('no such database', path=db_path)
    engine = create_engine(self.db_url, poolclass=NullPool)
    try:
      if init:
        with engine.begin() as conn:
          Base.metadata.create_all(bind=conn)
        info("created %s database %r", self.SCHEMA, db_path)
      elif not inspect(engine).has_table(INDEX_NAME):
        raise self.storage_error(
            f'no {INDEX_NAME!r} index in database', path=db_path
        )
    except SQLAlchemyError as e:
      raise self.storage_error(str(e), path=db_path) from e
    finally:
      engine.dispose()

  @contextmanager
  def startup_shutdown(self):
    ''' Open the database engine, dispose of it on the final close.
    '''
    with super().startup_shutdown():
      engine = create_engine(self.db_url, poolclass=NullPool)
      self._engine = engine
      self._sessionmaker = sessionmaker(bind=engine)
      try:
        yield
      finally:
        self._sessionmaker = None
        self._engine = None
        engine.dispose()

  @contextmanager
  def transaction(self):
    ''' Context manager yielding a database session
        whose work is committed as a single transaction on exit,
        or rolled back if there is an exception.
        The backend is held open for the duration.
    '''
    self.open()
    try:
      session = self._sessionmaker()
      try:
        with session.begin():
          yield session
      except SQLAlchemyError as e:
        raise self.storage_error(f'transaction failed: {e}') from e
      finally:
        session.close()
    finally:
      self.close()

  def path_key(self, path) -> str:
    ''' Return the index key for `path`:
        its path relative to `self.norm_path`.
    '''
    return normalize_path(absolute_path(path, self.cur_dir), self.norm_path)

  @locked
  def key_rows(self, key) -> List[str]:
    ''' Return a list of the tags in the rows stored under `key`.
    '''
    with self.transaction() as session:
      return [
          row.tag for row in session.query(TagRow.tag).filter_by(path_key=key)
      ]

  @locked
  def keys(self) -> List[str]:
    ''' Return a sorted list of the distinct keys in the index.
    '''
    with self.transaction() as session:
      return sorted(
          row.path_key for row in session.query(TagRow.path_key).distinct()
      )

  @locked
  def tags(self, path) -> Set[str]:
    ''' Return the tags stored for `path`.
    '''
    return set(self.key_rows(self.path_key(path)))

  @locked
  @pfx_method
  def set_tags(self, path, tags: Iterable[str]):
    ''' Replace the rows for `path` with one row per tag.
    '''
    tags = set(tags)
    for tag in tags:
      self.check_tag(tag)
    key = self.path_key(path)
    with self.transaction() as session:
      session.query(TagRow).filter_by(path_key=key).delete(
          synchronize_session=False
      )
      session.add_all(TagRow(path_key=key, tag=tag) for tag in sorted(tags))

  @locked
  @pfx_method
  def add_tag(self, path, tag: str) -> bool:
    ''' Add `tag` to `path` in a single row transaction.
        Return `True` if the tag was not already present.
    '''
    self.check_tag(tag)
    key = self.path_key(path)
    with self.transaction() as session:
      removed = session.query(TagRow).filter_by(
          path_key=key, tag=tag
      ).delete(synchronize_session=False)
      session.add(TagRow(path_key=key, tag=tag))
    return removed == 0

  @locked
  @pfx_method
  def delete_tag(self, path, tag: str) -> bool:
    ''' Remove `tag` from `path` in a single row transaction.
        Return `True` if the tag was present.
    '''
    key = self.path_key(path)
    with self.transaction() as session:
      removed = session.query(TagRow).filter_by(
          path_key=key, tag=tag
      ).delete(synchronize_session=False)
    return removed > 0
