#!/usr/bin/env python3

''' Path normalisation for tag storage keys
    and the directory walk used by the `zstags` tools.

    These functions are purely lexical: they never consult the
    filesystem and never resolve symlinks. The current directory
    is always passed in by the caller.
'''

import os
from os.path import (
    isabs as isabspath,
    join as joinpath,
    normpath,
    relpath,
)

from icontract import require

from cs.logutils import warning
from cs.pfx import Pfx

def absolute_path(path, cur_dir) -> str:
  ''' Return `path` as a lexically cleaned absolute path.
      A relative `path` is taken relative to `cur_dir`.

      Examples:

          >>> absolute_path('a/./b/../c', '/x/y')
          '/x/y/a/c'
          >>> absolute_path('/p//q/', '/x/y')
          '/p/q'
  '''
  path = os.fspath(path)
  if not isabspath(path):
    path = joinpath(os.fspath(cur_dir), path)
  path = normpath(path)
  # POSIX normpath preserves a leading "//"
  if path.startswith('//'):
    path = '/' + path.lstrip('/')
  return path

@require(lambda path: isabspath(path))
@require(lambda base: isabspath(base))
def normalize_path(path, base) -> str:
  ''' Return the lexical relative path from `base` to `path`,
      both of which must be absolute.
      If there is no relative path (different drives on Windows)
      return `path` unchanged.

      Examples:

          >>> normalize_path('/a/b/c', '/a')
          'b/c'
          >>> normalize_path('/a', '/a/b/c')
          '../..'
          >>> normalize_path('/a', '/a')
          '.'
  '''
  path = os.fspath(path)
  try:
    return relpath(path, os.fspath(base))
  except ValueError:
    return path

def rpaths(top_path, cur_dir):
  ''' Walk `top_path`, yielding the absolute path of it and
      every entry below it in lexical order,
      skipping entries whose names commence with a dot
      (and, for directories, their contents).
      The top path itself is always yielded.
  '''
  top_path = absolute_path(top_path, cur_dir)
  yield top_path
  with Pfx(top_path):

    def onerror(e):
      warning("%s", e)

    for dirpath, dirnames, filenames in os.walk(top_path, onerror=onerror):
      dirnames[:] = sorted(
          dirname for dirname in dirnames if not dirname.startswith('.')
      )
      for name in sorted(dirnames + filenames):
        if not name.startswith('.'):
          yield joinpath(dirpath, name)
