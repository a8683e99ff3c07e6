#!/usr/bin/env python3

''' Tag files with free text labels and select files by their tags.

    The tags of a file are a set of nonempty strings.
    They are kept by a pluggable storage backend,
    chosen by a backend specification string:
    * `xattr`: store the tags in the `user.zstags` extended attribute
      of the file itself
    * `persy:`*dbpath*`:`*normpath*`[:init]`: store the tags in a
      transactional database keyed by the file's path relative to
      the directory *normpath*; the `init` modifier creates the database

    Example:

        with create_backend('xattr') as backend:
            backend.add_tag('notes.txt', 'todo')
            if Query(FoldOp.OR, ['todo', 'urgent']).matches('notes.txt', backend):
                ...

    The `zstags` command line tool is implemented in `zstags.__main__`.
'''

import os

from cs.deco import fmtdoc
from cs.pfx import Pfx

from .backend import (
    ConfigError,
    StorageError,
    TagBackend,
    ZSTagsError,
    parse_backend_spec,
)
from .paths import absolute_path, normalize_path, rpaths
from .persy import PersyBackend
from .query import FoldOp, Query
from .xattr import XattrBackend

__version__ = '20261019'

DISTINFO = {
    'keywords': ["python3"],
    'classifiers': [
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: System :: Filesystems",
    ],
    'entry_points': {
        'console_scripts': ['zstags = zstags.__main__:main'],
    },
    'install_requires': [
        'cs.cmdutils',
        'cs.context',
        'cs.deco',
        'cs.logutils',
        'cs.pfx',
        'cs.resources',
        'cs.threads',
        'cs.upd',
        'icontract',
        'sqlalchemy>=1.4',
        'typeguard',
    ],
}

# environment variable specifying the default backend
BACKEND_ENVVAR = 'ZSTAGS_BACKEND'
BACKEND_DEFAULT = 'xattr'

BACKEND_CLASSES = {
    backend_class.SCHEMA: backend_class
    for backend_class in (XattrBackend, PersyBackend)
}

def create_backend(bspec: str, cur_dir=None) -> TagBackend:
  ''' Return a new `TagBackend` from the backend specification `bspec`.
      Raises `ConfigError` for an unknown schema or bad arguments.

      Relative paths in `bspec` and those supplied to the backend later
      are resolved against `cur_dir`, default `os.getcwd()`.
  '''
  with Pfx("create_backend(%r)", bspec):
    schema, args = parse_backend_spec(bspec)
    try:
      backend_class = BACKEND_CLASSES[schema]
    except KeyError as e:
      raise ConfigError(
          f'unknown backend schema {schema!r},'
          f' expected one of {", ".join(sorted(BACKEND_CLASSES))}'
      ) from e
    if cur_dir is None:
      cur_dir = os.getcwd()
    return backend_class.from_args(args, cur_dir=cur_dir)

@fmtdoc
def default_backend_spec(environ=None) -> str:
  ''' The default backend specification:
      `${BACKEND_ENVVAR}` if set, otherwise `{BACKEND_DEFAULT!r}`.
  '''
  if environ is None:
    environ = os.environ
  return environ.get(BACKEND_ENVVAR) or BACKEND_DEFAULT
