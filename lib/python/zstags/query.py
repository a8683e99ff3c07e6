#!/usr/bin/env python3

''' Selection of files by their tags.
'''

from enum import Enum
from typing import Iterable

from typeguard import typechecked

from cs.logutils import warning

from .backend import StorageError

class FoldOp(Enum):
  ''' The rule combining the query tags against a file's tags.
  '''
  AND = '&'  # the file has all the query tags
  OR = '|'  # the file has at least one query tag
  XOR = '^'  # the file has exactly one query tag

  @classmethod
  def from_str(cls, op_s: str) -> "FoldOp":
    ''' Return the `FoldOp` for the command line operator `op_s`,
        one of `&`, `&&`, `|`, `||`, `^` or `^^`.

        Examples:

            >>> FoldOp.from_str('&&')
            <FoldOp.AND: '&'>
            >>> FoldOp.from_str('^')
            <FoldOp.XOR: '^'>
    '''
    for op in cls:
      if op_s in (op.value, op.value * 2):
        return op
    raise ValueError(f'unknown fold operation {op_s!r}')

  def fold(self, intersection_count: int, query_count: int) -> bool:
    ''' Decide a match from the number of query tags present on a file
        and the number of query tags.
    '''
    if self is FoldOp.AND:
      return intersection_count == query_count
    if self is FoldOp.OR:
      return intersection_count != 0
    if self is FoldOp.XOR:
      # exactly one, not parity
      return intersection_count == 1
    raise RuntimeError(f'unhandled FoldOp {self!r}')

class Query:
  ''' A query matching files whose tags satisfy a `FoldOp`
      against a fixed set of query tags.
  '''

  @typechecked
  def __init__(self, foldop: FoldOp, tags: Iterable[str]):
    self.foldop = foldop
    self.tags = frozenset(tags)

  def __str__(self):
    return f' {self.foldop.value} '.join(sorted(self.tags))

  def __repr__(self):
    return f'{type(self).__name__}({self.foldop!r},{sorted(self.tags)!r})'

  def match_tags(self, file_tags) -> bool:
    ''' Test a set of file tags against this query.
    '''
    return self.foldop.fold(len(self.tags & set(file_tags)), len(self.tags))

  def matches(self, path, backend) -> bool:
    ''' Test whether the tags of `path` obtained from `backend` match.
        If the tags cannot be read, issue a warning and return `False`.
    '''
    try:
      file_tags = backend.tags(path)
    except StorageError as e:
      warning("%s: unable to access tags: %s", path, e)
      return False
    return self.match_tags(file_tags)

  def select(self, paths: Iterable[str], backend):
    ''' Generator yielding the `paths` which match.
    '''
    for path in paths:
      if self.matches(path, backend):
        yield path
