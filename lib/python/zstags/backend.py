#!/usr/bin/env python3

''' The tag storage interface shared by all `zstags` backends.

    A backend stores the tag set of a file.
    Backends implement two primitive operations:
    * `tags(path)`: return the current tag set for `path`
    * `set_tags(path, tags)`: replace the tag set for `path`;
      an empty set removes all trace of `path` from the storage
    and inherit `add_tag` and `delete_tag`,
    which read the tag set, modify it and write it back.
    A backend may override these with something more direct.

    Backends are selected by a specification string of the form
    *schema*`[:`*arg*`[:`*arg*...`]]`, for example `xattr`
    or `persy:/path/to/tags.db:/path/to/base[:init]`.
'''

from abc import ABC, abstractmethod
from contextlib import contextmanager
from threading import RLock
from typing import Iterable, List, Set, Tuple

from typeguard import typechecked

from cs.resources import MultiOpenMixin
from cs.threads import locked

class ZSTagsError(Exception):
  ''' Base class for `zstags` errors.
  '''

class ConfigError(ZSTagsError, ValueError):
  ''' A malformed backend specification or backend arguments.
  '''

class StorageError(ZSTagsError):
  ''' A failure of the underlying storage:
      I/O errors, undecodable data, failed transactions.

      Attributes:
      * `path`: the path being accessed, or `None`
      * `backend_name`: the name of the backend class
  '''

  def __init__(self, message, *, path=None, backend_name=None):
    super().__init__(message)
    self.message = message
    self.path = path
    self.backend_name = backend_name

  def __str__(self):
    prefix = self.backend_name or 'zstags'
    if self.path is None:
      return f'{prefix}: {self.message}'
    return f'{prefix}: {self.path}: {self.message}'

@typechecked
def parse_backend_spec(bspec: str) -> Tuple[str, List[str]]:
  ''' Split a backend specification into `(schema,args)`.

      Examples:

          >>> parse_backend_spec('xattr')
          ('xattr', [])
          >>> parse_backend_spec('persy:tags.db:.:init')
          ('persy', ['tags.db', '.', 'init'])
  '''
  if not bspec:
    raise ConfigError("empty backend specification")
  schema, *args = bspec.split(':')
  if not schema:
    raise ConfigError(f'missing schema in backend specification {bspec!r}')
  return schema, args

def validate_tag(tag):
  ''' Check that `tag` is a nonempty `str`, raise `ValueError` if not.
  '''
  if not isinstance(tag, str):
    raise ValueError(f'tag is not a str: {tag!r}')
  if not tag:
    raise ValueError('empty tag')

class TagBackend(MultiOpenMixin, ABC):
  ''' Abstract base class for tag storage backends.

      Subclasses must define `SCHEMA`, the backend specification schema name,
      implement `from_args`, `tags` and `set_tags`,
      and may override `add_tag` and `delete_tag`.

      Operations on a single instance are serialised by an internal lock.
  '''

  SCHEMA = None

  def __init__(self):
    self._lock = RLock()

  def __str__(self):
    return f'{type(self).__name__}()'

  @classmethod
  @abstractmethod
  def from_args(cls, args: List[str], *, cur_dir: str):
    ''' Construct an instance from the arguments following the schema
        in a backend specification.
        Raises `ConfigError` for bad arguments.
    '''
    raise NotImplementedError

  @contextmanager
  def startup_shutdown(self):
    ''' Default open/close: nothing to do.
    '''
    yield

  def storage_error(self, message, path=None):
    ''' Return a `StorageError` for this backend.
    '''
    return StorageError(message, path=path, backend_name=type(self).__name__)

  def check_tag(self, tag):
    ''' Validate a tag for storage by this backend.
        The default accepts any nonempty `str`.
    '''
    validate_tag(tag)

  @abstractmethod
  def tags(self, path) -> Set[str]:
    ''' Return the set of tags stored for `path`,
        an empty set if there are none.
    '''
    raise NotImplementedError

  @abstractmethod
  def set_tags(self, path, tags: Iterable[str]):
    ''' Replace the tags stored for `path` with `tags`.
        An empty `tags` removes the stored entry entirely.
    '''
    raise NotImplementedError

  @locked
  def add_tag(self, path, tag: str) -> bool:
    ''' Add `tag` to the tags of `path`.
        Return `True` if the tag was not already present.
    '''
    self.check_tag(tag)
    tags = self.tags(path)
    if tag in tags:
      return False
    tags.add(tag)
    self.set_tags(path, tags)
    return True

  @locked
  def delete_tag(self, path, tag: str) -> bool:
    ''' Remove `tag` from the tags of `path`.
        Return `True` if the tag was present.
    '''
    tags = self.tags(path)
    if tag not in tags:
      return False
    tags.discard(tag)
    self.set_tags(path, tags)
    return True
