#!/usr/bin/env python3

''' The `zstags` command line tool.
'''

from contextlib import contextmanager
from dataclasses import dataclass, field
from getopt import getopt, GetoptError
import os
from os.path import (
    basename,
    isdir as isdirpath,
    join as joinpath,
    splitext,
)
import shutil
import sys
from typing import Iterable, List, Tuple

from cs.cmdutils import BaseCommand
from cs.context import stackattrs
from cs.logutils import error, warning
from cs.pfx import Pfx, pfx_call
from cs.upd import print  # pylint: disable=redefined-builtin

from . import (
    ConfigError,
    FoldOp,
    Query,
    StorageError,
    absolute_path,
    create_backend,
    default_backend_spec,
    normalize_path,
    rpaths,
)

def main(argv=None):
  ''' Command line mode.
  '''
  return ZSTagsCommand(argv).run()

def format_tags(title: str, tags: Iterable[str]) -> str:
  ''' Format `tags` in sorted order after `title`.

      Example:

          >>> format_tags('old tags', {'red', 'blue'})
          'old tags: blue red'
  '''
  return ' '.join([f'{title}:', *sorted(tags)])

def parse_tag_modifier(modifier: str) -> Tuple[bool, str]:
  ''' Parse a tag modifier `+`*tag* or `-`*tag*,
      return `(True,tag)` for an addition or `(False,tag)` for a removal.
      Raises `ValueError` for an invalid modifier.

      Examples:

          >>> parse_tag_modifier('+red')
          (True, 'red')
          >>> parse_tag_modifier('-blue')
          (False, 'blue')
  '''
  if len(modifier) < 2 or modifier[0] not in '+-':
    raise ValueError(f'expected +tag or -tag, got {modifier!r}')
  return modifier[0] == '+', modifier[1:]

def link_name(index: int, count: int, path: str) -> str:
  ''' The name of the browse symlink for the `index`th of `count` paths:
      the zero padded index followed by the extension of `path`.

      Example:

          >>> link_name(3, 120, '/a/b/c.jpg')
          '003.jpg'
  '''
  _, ext = splitext(basename(path))
  return f'{index:0{len(str(count))}d}{ext}'

def make_links(paths: List[str], target_dirpath: str):
  ''' Create a numbered symlink in `target_dirpath` for each path in `paths`
      (absolute paths), each pointing at the path relative to `target_dirpath`.
      Yield `(name,relpath,exception)` for each link
      where `exception` is `None` on success
      or the `OSError` from `os.symlink`.
  '''
  count = len(paths)
  for index, path in enumerate(paths):
    name = link_name(index, count, path)
    relpath = normalize_path(path, target_dirpath)
    try:
      pfx_call(os.symlink, relpath, joinpath(target_dirpath, name))
    except OSError as e:
      yield name, relpath, e
    else:
      yield name, relpath, None

class ZSTagsCommand(BaseCommand):
  ''' Tag files and browse files by their tags.
  '''

  @dataclass
  class Options(BaseCommand.Options):
    ''' Options for `ZSTagsCommand`.
    '''
    backend_spec: str = field(default_factory=default_backend_spec)

    # pylint: disable=use-dict-literal
    COMMON_OPT_SPECS = dict(
        **BaseCommand.Options.COMMON_OPT_SPECS,
        b_=(
            'backend_spec',
            ''' The backend specification, default from $ZSTAGS_BACKEND
                or "xattr". Example: persy:tags.db:.:init
            ''',
        ),
    )

  @contextmanager
  def run_context(self):
    ''' Open the backend around the subcommand.
    '''
    with super().run_context():
      options = self.options
      try:
        backend = create_backend(options.backend_spec)
      except ConfigError as e:
        raise GetoptError(f'invalid backend: {e}') from e
      except StorageError as e:
        error("cannot open backend: %s", e)
        yield 1
        return
      with backend:
        with stackattrs(options, backend=backend):
          yield

  def cmd_browse(self, argv):
    ''' Usage: {cmd} [-o foldop] source target tags...
          Recreate the directory target containing numbered symlinks
          to the paths under source whose tags match the query tags.
          -o foldop How to combine the query tags:
                    & or && (default): paths with all the tags;
                    | or ||: paths with any of the tags;
                    ^ or ^^: paths with exactly one of the tags.
    '''
    options = self.options
    backend = options.backend
    foldop = FoldOp.AND
    opts, argv = getopt(argv, 'o:')
    for opt, val in opts:
      with Pfx(opt):
        if opt == '-o':
          try:
            foldop = FoldOp.from_str(val)
          except ValueError as e:
            raise GetoptError(str(e)) from e
        else:
          raise RuntimeError("unhandled option")
    if not argv:
      raise GetoptError("missing source")
    source = argv.pop(0)
    if not argv:
      raise GetoptError("missing target")
    target = argv.pop(0)
    if not argv:
      raise GetoptError("missing query tags")
    query = Query(foldop, argv)
    if not isdirpath(source):
      raise GetoptError(f'source {source!r}: not a directory')
    cur_dir = os.getcwd()
    source = absolute_path(source, cur_dir)
    target = absolute_path(target, cur_dir)
    rel = normalize_path(source, target)
    if not (rel == '..' or rel.startswith('..' + os.sep)):
      raise GetoptError(
          f'source {source!r} is within target {target!r}, refusing to remove it'
      )
    with Pfx(target):
      try:
        pfx_call(shutil.rmtree, target)
      except FileNotFoundError:
        pass
      pfx_call(os.makedirs, target)
    selected = list(query.select(rpaths(source, cur_dir), backend))
    xit = 0
    for name, relpath, e in make_links(selected, target):
      if e is None:
        print(f'{name} -> {relpath}')
      else:
        print(f'{name} -> {relpath}: failed to create symlink: {e}')
        xit = 1
    return xit

  def cmd_dump(self, argv):
    ''' Usage: {cmd} [source]
          Walk source, default ".", skipping hidden names,
          and recite the tags of each tagged path.
    '''
    source = argv.pop(0) if argv else '.'
    if argv:
      raise GetoptError(f'extra arguments: {argv!r}')
    if not isdirpath(source):
      raise GetoptError(f'source {source!r}: not a directory')
    backend = self.options.backend
    xit = 0
    for path in rpaths(source, os.getcwd()):
      try:
        tags = backend.tags(path)
      except StorageError as e:
        error("%s: %s", path, e)
        xit = 1
        continue
      if tags:
        print(format_tags(path, tags))
    return xit

  def cmd_ls(self, argv):
    ''' Usage: {cmd} paths...
          Recite the tags of each path.
    '''
    if not argv:
      raise GetoptError("missing paths")
    backend = self.options.backend
    xit = 0
    for path in argv:
      try:
        tags = backend.tags(path)
      except StorageError as e:
        error("%s: %s", path, e)
        xit = 1
        continue
      print(format_tags(path, tags))
    return xit

  def cmd_tag(self, argv):
    ''' Usage: {cmd} path {{+tag|-tag}}...
          Add or remove tags on path.
          With -v, recite the old and new tags.
    '''
    if not argv:
      raise GetoptError("missing path")
    path = argv.pop(0)
    if not argv:
      raise GetoptError("missing tag modifiers")
    options = self.options
    backend = options.backend
    verbose = options.verbose
    xit = 0
    with Pfx(path):
      try:
        tags = backend.tags(path)
      except StorageError as e:
        error("unable to read tags: %s", e)
        return 1
      if verbose:
        print(format_tags("old tags", tags))
      changed = False
      for modifier in argv:
        try:
          add, tag = parse_tag_modifier(modifier)
          backend.check_tag(tag)
        except ValueError as e:
          warning("invalid tag modifier: %s", e)
          xit = 1
          continue
        if add:
          if tag not in tags:
            tags.add(tag)
            changed = True
        elif tag in tags:
          tags.remove(tag)
          changed = True
      if not changed:
        if verbose:
          print("no tags changed")
        return xit
      if verbose:
        print(format_tags("new tags", tags))
      try:
        backend.set_tags(path, tags)
      except StorageError as e:
        error("unable to write tags: %s", e)
        return 1
    return xit

if __name__ == '__main__':
  sys.exit(main(sys.argv))
