#!/usr/bin/env python3

''' Tag storage in a file's extended attributes.

    The tags are stored in the `user.zstags` extended attribute
    as the UTF-8 encoding of the tags joined by `'|'`.
    NUL bytes are also accepted as separators when reading,
    but are never written because various programmes and file
    managers do not cope with NUL bytes in extended attributes.

    Because the attribute lives on the inode, the tags follow
    the file through renames and are shared by all hard links.
    There is no locking beyond that of the extended attribute
    system calls themselves.
'''

import errno
import os
import re
from typing import Iterable, List, Set

from cs.pfx import Pfx, pfx_call
from cs.threads import locked

from .backend import ConfigError, TagBackend

XATTR_NAME = 'user.zstags'
XATTR_NAME_B = XATTR_NAME.encode()

TAG_SEPARATOR = '|'

# bytes which separate tags in a stored value
TAG_SEPARATOR_bre = re.compile(rb'[\0|]')

# errnos meaning "no such attribute"
_NOATTR_ERRNOS = tuple(
    getattr(errno, errname)
    for errname in ('ENODATA', 'ENOATTR')
    if hasattr(errno, errname)
)

def decode_tags(xattr_value_b: bytes) -> Set[str]:
  ''' Decode a stored extended attribute value into a set of tags.
      Raises `UnicodeDecodeError` if any tag is not valid UTF-8.

      Empty fields are ignored.
  '''
  return set(
      field_b.decode('utf-8')
      for field_b in TAG_SEPARATOR_bre.split(xattr_value_b)
      if field_b
  )

def encode_tags(tags: Iterable[str]) -> bytes:
  ''' Encode `tags` for storage.
  '''
  return TAG_SEPARATOR.join(tags).encode('utf-8')

class XattrBackend(TagBackend):
  ''' A backend storing tags in the `user.zstags` extended attribute.
  '''

  SCHEMA = 'xattr'

  @classmethod
  def from_args(cls, args: List[str], *, cur_dir=None):
    ''' The `xattr` schema takes no arguments.
    '''
    if args:
      raise ConfigError(f'{cls.SCHEMA} backend: expects no arguments, got {args!r}')
    return cls()

  def check_tag(self, tag):
    ''' Tags may not contain the separator characters.
    '''
    super().check_tag(tag)
    if TAG_SEPARATOR in tag or '\0' in tag:
      raise ValueError(
          f'tag {tag!r} may not contain {TAG_SEPARATOR!r} or NUL characters'
      )

  def get_raw(self, path):
    ''' Return the raw `bytes` of the tags attribute of `path`,
        or `None` if the attribute is not present.
    '''
    try:
      return pfx_call(os.getxattr, path, XATTR_NAME_B)
    except OSError as e:
      if e.errno in _NOATTR_ERRNOS:
        return None
      raise self.storage_error(f'getxattr: {e}', path=path) from e

  @locked
  def tags(self, path) -> Set[str]:
    ''' Return the tags stored on `path`.
    '''
    xattr_value_b = self.get_raw(path)
    if xattr_value_b is None:
      return set()
    try:
      return decode_tags(xattr_value_b)
    except UnicodeDecodeError as e:
      raise self.storage_error(
          f'invalid UTF-8 in {XATTR_NAME}: {e}', path=path
      ) from e

  @locked
  def set_tags(self, path, tags: Iterable[str]):
    ''' Store `tags` on `path`,
        removing the attribute entirely if `tags` is empty.
    '''
    tags = set(tags)
    with Pfx("%s.set_tags(%r)", type(self).__name__, path):
      if not tags:
        try:
          pfx_call(os.removexattr, path, XATTR_NAME_B)
        except OSError as e:
          # tolerate the removal of an absent attribute
          if self.tags(path):
            raise self.storage_error(f'removexattr: {e}', path=path) from e
        return
      for tag in tags:
        self.check_tag(tag)
      try:
        pfx_call(os.setxattr, path, XATTR_NAME_B, encode_tags(tags))
      except OSError as e:
        raise self.storage_error(f'setxattr: {e}', path=path) from e
