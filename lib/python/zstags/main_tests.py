#!/usr/bin/env python3

''' Unit tests for the zstags command line tool.
'''

import os
from os.path import islink, join as joinpath
import sys
from tempfile import TemporaryDirectory
import unittest

from zstags import create_backend
from zstags.__main__ import (
    format_tags,
    link_name,
    main,
    make_links,
    parse_tag_modifier,
)

class TestHelpers(unittest.TestCase):
  ''' Tests for the command line helper functions.
  '''

  def test_format_tags(self):
    self.assertEqual(format_tags('f', {'b', 'a'}), 'f: a b')
    self.assertEqual(format_tags('f', ()), 'f:')

  def test_parse_tag_modifier(self):
    self.assertEqual(parse_tag_modifier('+a'), (True, 'a'))
    self.assertEqual(parse_tag_modifier('-a b'), (False, 'a b'))
    for modifier in '', '+', '-', 'a', '*a':
      with self.subTest(modifier=modifier):
        with self.assertRaises(ValueError):
          parse_tag_modifier(modifier)

  def test_link_name(self):
    self.assertEqual(link_name(0, 1, '/a/b.txt'), '0.txt')
    self.assertEqual(link_name(7, 10, '/a/b.tar.gz'), '07.gz')
    self.assertEqual(link_name(7, 9, '/a/b'), '7')
    self.assertEqual(link_name(12, 100, '/a/.profile'), '012')

  def test_make_links(self):
    with TemporaryDirectory() as tmpdirpath:
      target = joinpath(tmpdirpath, 'target')
      os.mkdir(target)
      paths = [joinpath(tmpdirpath, 'src', name) for name in ('a.txt', 'b')]
      results = list(make_links(paths, target))
      self.assertEqual(
          results,
          [('0.txt', '../src/a.txt', None), ('1', '../src/b', None)],
      )
      self.assertEqual(
          os.readlink(joinpath(target, '0.txt')), '../src/a.txt'
      )
      # a second pass collides with the existing links
      for _, _, e in make_links(paths, target):
        self.assertIsInstance(e, OSError)

class TestCommand(unittest.TestCase):
  ''' Tests running the command against a `persy` backend.
  '''

  def setUp(self):
    self._tmpdir = TemporaryDirectory()
    self.tmpdirpath = self._tmpdir.name
    self.source = joinpath(self.tmpdirpath, 'source')
    os.mkdir(self.source)
    for name in 'a.txt', 'b.txt', 'c.txt', '.hidden.txt':
      with open(joinpath(self.source, name), 'w'):
        pass
    self.db_path = joinpath(self.tmpdirpath, 'tags.db')
    self.bspec = f'persy:{self.db_path}:{self.tmpdirpath}'
    create_backend(self.bspec + ':init', cur_dir=self.tmpdirpath)

  def tearDown(self):
    self._tmpdir.cleanup()

  def tags(self, name):
    ''' The stored tags of `name` in the source directory.
    '''
    backend = create_backend(self.bspec, cur_dir=self.tmpdirpath)
    return backend.tags(joinpath(self.source, name))

  def zstags(self, *argv):
    ''' Run the command with the test backend.
    '''
    return main(['zstags', '-b', self.bspec, *argv])

  def test_tag(self):
    path = joinpath(self.source, 'a.txt')
    self.assertEqual(self.zstags('tag', path, '+red', '+blue'), 0)
    self.assertEqual(self.tags('a.txt'), {'red', 'blue'})
    self.assertEqual(self.zstags('tag', path, '-red', '-green'), 0)
    self.assertEqual(self.tags('a.txt'), {'blue'})
    self.assertEqual(self.zstags('tag', path, '-blue'), 0)
    self.assertEqual(self.tags('a.txt'), set())

  def test_tag_bad_modifier(self):
    path = joinpath(self.source, 'a.txt')
    self.assertEqual(self.zstags('tag', path, '+red', 'oops'), 1)
    self.assertEqual(self.tags('a.txt'), {'red'})

  def test_bad_backend(self):
    self.assertEqual(
        main(['zstags', '-b', 'nosuchbackend', 'ls', self.source]), 2
    )

  def test_dump_and_ls(self):
    self.zstags('tag', joinpath(self.source, 'b.txt'), '+x')
    self.assertEqual(self.zstags('dump', self.source), 0)
    self.assertEqual(self.zstags('ls', joinpath(self.source, 'a.txt')), 0)

  def test_browse(self):
    self.zstags('tag', joinpath(self.source, 'a.txt'), '+x', '+y')
    self.zstags('tag', joinpath(self.source, 'b.txt'), '+x')
    self.zstags('tag', joinpath(self.source, '.hidden.txt'), '+x', '+y')
    target = joinpath(self.tmpdirpath, 'target')
    os.mkdir(target)
    with open(joinpath(target, 'stale'), 'w'):
      pass
    for foldop, expected in (
        ('&', ['../source/a.txt']),
        ('|', ['../source/a.txt', '../source/b.txt']),
        ('^', ['../source/b.txt']),
    ):
      with self.subTest(foldop=foldop):
        self.assertEqual(
            self.zstags('browse', '-o', foldop, self.source, target, 'x', 'y'),
            0,
        )
        names = sorted(os.listdir(target))
        self.assertTrue(all(islink(joinpath(target, name)) for name in names))
        self.assertEqual(
            [os.readlink(joinpath(target, name)) for name in names],
            expected,
        )

  def test_browse_refuses_source_in_target(self):
    target = joinpath(self.tmpdirpath, 'target')
    for name in '..src', 'src':
      with self.subTest(name=name):
        source = joinpath(target, name)
        os.makedirs(source)
        keep = joinpath(source, 'keep.txt')
        with open(keep, 'w'):
          pass
        self.zstags('tag', keep, '+x')
        self.assertEqual(self.zstags('browse', source, target, 'x'), 2)
        self.assertTrue(os.path.exists(keep))
    self.assertEqual(self.zstags('browse', target, target, 'x'), 2)
    self.assertTrue(os.path.isdir(target))

  def test_browse_bad_foldop(self):
    target = joinpath(self.tmpdirpath, 'target')
    self.assertEqual(
        self.zstags('browse', '-o', '!', self.source, target, 'x'), 2
    )

def selftest(argv):
  ''' Run the unit tests.
  '''
  unittest.main(__name__, None, argv)

if __name__ == '__main__':
  selftest(sys.argv)
