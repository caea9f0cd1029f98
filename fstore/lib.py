# coding=utf-8

''' fstore library  (C) 2016-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''

import logging, os

from fstore.constants import NL
from fstore.errors import DirectoryTraversalFailed, InvalidPath
from fstore.filter import Filter
from fstore.store import DirWalker, GlobMatches, readDescriptor
from fstore.utils import dictGetSet, implicitTags, joinPath, sjoin


_log = logging.getLogger(__name__)
def log(func): return (lambda *s: func(sjoin([_() if callable(_) else _ for _ in s]), stacklevel = 2))
debug, info, warn, error = log(_log.debug), log(_log.info), log(_log.warning), log(_log.error)


class InheritedTags(object):
  ''' Tags of all folders on the chain from the root to the currently visited folder.
      The walk is iterative, therefore the chain is tracked with an explicit stack of offsets into one flat list.
  >>> i = InheritedTags()
  >>> i.update(0); i.tagIndices.extend([0])      # root
  >>> i.update(1); i.tagIndices.extend([1, 2])   # /a
  >>> i.update(2); i.tagIndices.extend([3])      # /a/x
  >>> i.tagIndices, i.offsets
  ([0, 1, 2, 3], [0, 1, 3])
  >>> i.update(1); i.tagIndices.extend([4])      # /b: drops tags of /a/x and /a
  >>> i.tagIndices, i.offsets
  ([0, 4], [0, 1])
  >>> i.update(3)
  Traceback (most recent call last):
  ...
  fstore.errors.DirectoryTraversalFailed: Depth jumped from 1 to 3
  '''

  def __init__(_):
    _.tagIndices = []  # tag indices contributed by the folders of the current chain, root first
    _.offsets = []     # start of each chain folder's contribution in tagIndices
    _.depth = -1       # the root arrives at depth 0

  def update(_, newdepth):
    ''' Adjust the chain for the next visited folder's depth, before adding that folder's own tags. '''
    if newdepth == _.depth + 1:  # one level deeper
      _.offsets.append(len(_.tagIndices))
    elif newdepth <= _.depth:  # sibling, or back up the tree
      marker = len(_.tagIndices)
      for _i in range(_.depth + 1 - newdepth):
        if not _.offsets: raise DirectoryTraversalFailed(f"No inherited tags left to remove at depth {newdepth}")
        marker = _.offsets.pop()
      del _.tagIndices[marker:]
      _.offsets.append(marker)
    else: raise DirectoryTraversalFailed(f"Depth jumped from {_.depth} to {newdepth}")
    _.depth = newdepth


def internTag(tagIndex, tag):
  ''' Return the index of a tag name, assigning the next free index on first sight.
  >>> m = {}; internTag(m, "b"), internTag(m, "a"), internTag(m, "b"), m
  (0, 1, 0, {'b': 0, 'a': 1})
  '''
  return dictGetSet(tagIndex, tag, lambda: len(tagIndex))


class TagResolver(object):
  ''' Tag maker for the filter parser, shared by tables that provide a tagIndex mapping. '''

  def createTag(_, name):
    ''' Resolve a tag name to its table index; unknown tags never match. '''
    if name in _.tagIndex: return Filter.tag(_.tagIndex[name])
    info(f"Unknown tag '{name}' matches nothing")
    return Filter.false()


class TagTable(TagResolver):
  ''' Sparse table of all tracked files and their tags, built by walking a folder tree.
      files:    root-relative paths, position = file index
      tagIndex: tag name -> tag index, in first-seen order
      table:    set of (file index, tag index) pairs
  '''

  def __init__(_, root):
    _.root = root
    _.tagIndex = {}
    _.files = []
    _.table = set()

  @staticmethod
  def fromDir(root):
    ''' Create a tag table by recursively traversing folders from root. '''
    table = TagTable(os.path.abspath(root))
    table.walk()
    return table

  def walk(_):
    ''' Build the table in a single walk, threading the inherited tags through the traversal. '''
    info(f"Walk folder tree '{_.root}'")
    inherited = InheritedTags()
    matcher = GlobMatches()
    for visited in DirWalker(_.root).walk():
      inherited.update(visited.depth)
      data = visited.metadata.unwrap()  # a corrupt descriptor aborts: its descendants' inherited tags would be wrong
      if data is None: continue  # no descriptor: nothing tracked here, but sub-folders still inherit
      inherited.tagIndices.extend(internTag(_.tagIndex, tag) for tag in data.tags + implicitTags(os.path.basename(visited.absPath)))
      names = [f.name for f in visited.files]
      matcher.findMatches(names, data.globs)
      for fi, name in enumerate(names):
        if not matcher.isFileMatched(fi): continue  # untracked
        _.addFile(joinPath(visited.relPath, name), data.ruleTags(matcher.matchedGlobs(fi)) + implicitTags(name), inherited.tagIndices)
    info(f"Indexed {len(_.files)} files with {len(_.tagIndex)} tags")

  def addFile(_, path, tags, inherited):
    ''' Append a tracked file with its own tag names and the inherited tag indices. '''
    fi = len(_.files)
    _.files.append(path)
    _.table.update((fi, internTag(_.tagIndex, tag)) for tag in tags)
    _.table.update((fi, ti) for ti in inherited)
    return fi

  def contains(_, fi, ti): return (fi, ti) in _.table

  def tags(_):
    ''' Tag names ordered by tag index. '''
    return list(_.tagIndex)  # dict order is insertion order, which is index order

  def fileTags(_, fi):
    ''' Tag names of one file, ordered by tag index. '''
    return [tag for tag, ti in _.tagIndex.items() if (fi, ti) in _.table]

  def query(_, filt):
    ''' Yield the paths of all files matching the filter, in table order. '''
    for fi, path in enumerate(_.files):
      if filt.eval(lambda ti: (fi, ti) in _.table): yield path


class DenseTagTable(TagResolver):
  ''' Same content as a TagTable, with the file/tag relation stored as an immutable rows x columns boolean matrix.
      Derived from a completed TagTable, never updated; a changed folder tree requires a new walk.
  '''

  def __init__(_, root, paths, tagNames, tagIndex, data):
    _.root = root
    _.paths = paths        # tuple of root-relative file paths
    _.tagNames = tagNames  # tuple of tag names, by tag index
    _.tagIndex = tagIndex
    _.ncols = len(tagNames)
    _.data = data          # read-only boolean view of len(paths) * ncols flags

  @staticmethod
  def fromTable(table):
    tags = table.tags()
    cols = len(tags)
    flags = bytearray(len(table.files) * cols)
    for fi, ti in table.table: flags[fi * cols + ti] = 1
    debug(f"Allocated {len(table.files)} x {cols} flags")
    return DenseTagTable(table.root, tuple(table.files), tuple(tags), dict(table.tagIndex), memoryview(bytes(flags)).cast('?'))

  @staticmethod
  def fromDir(root): return DenseTagTable.fromTable(TagTable.fromDir(root))

  def path(_): return _.root

  def files(_): return _.paths

  def tags(_): return _.tagNames

  def flags(_, row):
    ''' Read-only boolean flags of one file, indexed by tag index. '''
    if not 0 <= row < len(_.paths): raise IndexError(f"No file with index {row}")
    return _.data[row * _.ncols:(row + 1) * _.ncols]

  def query(_, filt):
    for fi, path in enumerate(_.paths):
      if filt.eval(_.flags(fi).__getitem__): yield path


def runQuery(root, filterText, dense = False):
  ''' Build a tag table for root and return an iterator of root-relative paths of files matching the filter.
      Raises InvalidFilter before walking the result. '''
  table = DenseTagTable.fromDir(root) if dense else TagTable.fromDir(root)
  filt = Filter.parse(filterText, table)
  return table.query(filt)


def checkTree(root):
  ''' Find glob rules that match no file, across the whole tree. Folders without descriptor are skipped.
      returns: 2-tuple(success, [(root-relative folder, glob)])
  '''
  problems = []
  matcher = GlobMatches()
  for visited in DirWalker(root).walk():
    data = visited.metadata.unwrap()
    if data is None: continue
    matcher.findMatches([f.name for f in visited.files], data.globs)
    for gi in matcher.unmatchedRules():
      debug(f"No files matching '{data.globs[gi].path}' in '{visited.absPath}'")
      problems.append((visited.relPath, data.globs[gi].path))
  info("No problems found" if not problems else f"Found {len(problems)} globs without matching files")
  return not problems, problems


def untrackedFiles(root):
  ''' Root-relative paths of all files that aren't matched by any glob rule of their folder. '''
  untracked = []
  matcher = GlobMatches()
  for visited in DirWalker(root).walk():
    data = visited.metadata.unwrap()
    names = [f.name for f in visited.files]
    if data is None: untracked.extend(joinPath(visited.relPath, name) for name in names); continue  # no descriptor: everything is untracked
    matcher.findMatches(names, data.globs)
    untracked.extend(joinPath(visited.relPath, name) for fi, name in enumerate(names) if not matcher.isFileMatched(fi))
  return untracked


def allTags(root):
  ''' Sorted union of all folder tags, glob rule tags and tags implied by folder names and globs. '''
  tags = set()
  for visited in DirWalker(root).walk():
    data = visited.metadata.unwrap()
    if data is None: continue
    tags.update(data.allTags())
    tags.update(implicitTags(os.path.basename(visited.absPath)))
    for rule in data.globs: tags.update(implicitTags(os.path.basename(rule.path)))
  return sorted(tags)


def countFilesTags(root):
  ''' returns: 2-tuple(number of tracked files, number of distinct tags) '''
  numfiles, tags = 0, set()
  matcher = GlobMatches()
  for visited in DirWalker(root).walk():
    data = visited.metadata.unwrap()
    if data is None: continue
    tags.update(data.allTags())
    tags.update(implicitTags(os.path.basename(visited.absPath)))
    names = [f.name for f in visited.files]
    matcher.findMatches(names, data.globs)
    for fi, name in enumerate(names):
      if matcher.isFileMatched(fi): numfiles += 1; tags.update(implicitTags(name))
  return numfiles, len(tags)


class Info(object):
  ''' Resolved description and sorted tags of one file or folder. '''

  def __init__(_, desc, tags): _.desc, _.tags = desc, tags

  def __repr__(_): return f"Info({_.desc!r}, {_.tags!r})"


def whatIs(path):
  ''' Describe a single file or folder from its (parent) folder's descriptor.
      Folder: folder description, folder tags and tags implied by its name.
      File:   descriptions of the matching globs followed by the folder description,
              folder tags, tags implied by the folder and file names, tags of the matching globs.
      Inherited tags of further ancestors are not included.
  '''
  path = os.path.abspath(path)
  if os.path.isfile(path):
    folder, name = os.path.split(path)
    data = readDescriptor(folder)
    if data is None: raise InvalidPath(path, "No descriptor found for")
    matched = list(GlobMatches().findMatches([name], data.globs).matchedGlobs(0))
    tags = data.tags + implicitTags(os.path.basename(folder)) + implicitTags(name) + data.ruleTags(matched)
    return Info(NL.join(desc for desc in (data.ruleDesc(matched), data.desc) if desc), sorted(set(tags)))
  if os.path.isdir(path):
    data = readDescriptor(path)
    if data is None: raise InvalidPath(path, "No descriptor found for")
    return Info(data.desc or "", sorted(set(data.tags + implicitTags(os.path.basename(path)))))
  raise InvalidPath(path)


if __name__ == '__main__': import doctest; doctest.testmod()
