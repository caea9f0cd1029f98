# coding=utf-8

''' fstore descriptors and folder traversal  (C) 2016-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''

import logging, os

import yaml

from fstore.constants import DESC, DIR, ENCODING, FILE, FILES, FSTORE, NL, PATH, SLASH, TAGS
from fstore.errors import CannotParseDescriptor, CannotReadStoreFile, DirectoryTraversalFailed, InvalidPath
from fstore.utils import isDir, isFile, normalizer, sjoin, splitByPredicate


_log = logging.getLogger(__name__)
def log(func): return (lambda *s: func(sjoin([_() if callable(_) else _ for _ in s]), stacklevel = 2))
debug, info, warn, error = log(_log.debug), log(_log.info), log(_log.warning), log(_log.error)


FOUND, NOT_FOUND, FAILED, NOT_LOADED = "found", "not found", "failed", "not loaded"  # descriptor load outcomes
YAML_NULL, YAML_MERGE = "tag:yaml.org,2002:null", "tag:yaml.org,2002:merge"


class TextLoader(yaml.SafeLoader):
  ''' Safe loader that keeps plain scalars as text: years like 2019_2020, 0123 or yes are names, not numbers or booleans.
      Only empty values and ~/null resolve to None.
  '''
TextLoader.yaml_implicit_resolvers = {first: [(tag, regexp) for tag, regexp in resolvers if tag in (YAML_NULL, YAML_MERGE)] for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()}


class GlobRule(object):
  ''' One entry of a descriptor's file list: a glob with optional description and tags. '''

  def __init__(_, path, desc = None, tags = None):
    _.path, _.desc, _.tags = path, desc, tags if tags is not None else []

  def __repr__(_): return f"GlobRule({_.path!r}, {_.desc!r}, {_.tags!r})"


class Descriptor(object):
  ''' Contents of one folder's descriptor file. '''

  def __init__(_, desc = None, tags = None, globs = None):
    _.desc  = desc  # folder description or None
    _.tags  = tags  if tags  is not None else []  # explicit folder tags, inherited by all sub-folders
    _.globs = globs if globs is not None else []  # ordered list of GlobRule

  def allTags(_):
    ''' Folder tags followed by the tags of all glob rules, as declared. '''
    return _.tags + [tag for rule in _.globs for tag in rule.tags]

  def ruleTags(_, indices):
    ''' Tags of the given glob rules, first occurrence only. '''
    tags = []
    for gi in indices: tags.extend(tag for tag in _.globs[gi].tags if tag not in tags)
    return tags

  def ruleDesc(_, indices):
    ''' Descriptions of the given glob rules, newline-separated in rule order. '''
    return NL.join(_.globs[gi].desc for gi in indices if _.globs[gi].desc)

  def __repr__(_): return f"Descriptor({_.desc!r}, {_.tags!r}, {_.globs!r})"


def _scalar(value, what, filename):
  if isinstance(value, str): return value
  raise CannotParseDescriptor(filename, f"{what} must be a string, found {type(value).__name__} {value!r}")


def _tagList(value, what, filename):
  if value is None: return []
  if not isinstance(value, list): raise CannotParseDescriptor(filename, f"{what} must be a list of tags")
  return [_scalar(tag, f"tag in {what}", filename) for tag in value]


def parseDescriptor(data, filename = FSTORE):
  ''' Convert descriptor file contents into a Descriptor.
      data:     YAML text
      filename: only used for error messages
      returns:  Descriptor, raises CannotParseDescriptor
  >>> d = parseDescriptor("desc: Holidays\\ntags: [travel, 2019]\\nfiles:\\n  - path: '*.jpg'\\n    tags: [photo]\\n  - path: notes.txt\\n    desc: Diary")
  >>> d.desc, d.tags, [rule.path for rule in d.globs], d.globs[0].tags, d.globs[1].desc
  ('Holidays', ['travel', '2019'], ['*.jpg', 'notes.txt'], ['photo'], 'Diary')
  >>> parseDescriptor("")
  Descriptor(None, [], [])
  >>> parseDescriptor("desc:\\ntags: [2019_2020, 0123, yes]\\nfiles:\\n  - path: 2019_2020")
  Descriptor(None, ['2019_2020', '0123', 'yes'], [GlobRule('2019_2020', None, [])])
  >>> parseDescriptor("tags: travel")
  Traceback (most recent call last):
  ...
  fstore.errors.CannotParseDescriptor: Cannot parse descriptor '.fstore': 'tags' must be a list of tags
  '''
  try: content = yaml.load(data, Loader = TextLoader)
  except yaml.YAMLError as E: raise CannotParseDescriptor(filename, " ".join(str(E).split())) from E
  if content is None: return Descriptor()  # empty file
  if not isinstance(content, dict): raise CannotParseDescriptor(filename, "expected a mapping with optional keys " + ", ".join(f"'{key}'" for key in (DESC, TAGS, FILES)))
  entries = content.get(FILES)
  if entries is None: entries = []
  if not isinstance(entries, list): raise CannotParseDescriptor(filename, f"'{FILES}' must be a list")
  globs = []
  for number, entry in enumerate(entries, start = 1):
    if not isinstance(entry, dict) or entry.get(PATH) is None: raise CannotParseDescriptor(filename, f"entry {number} of '{FILES}' needs a '{PATH}' glob")
    globs.append(GlobRule(
      _scalar(entry[PATH], f"'{PATH}' of entry {number}", filename),
      None if entry.get(DESC) is None else _scalar(entry[DESC], f"'{DESC}' of entry {number}", filename),
      _tagList(entry.get(TAGS), f"'{TAGS}' of entry {number}", filename)))
  return Descriptor(
    None if content.get(DESC) is None else _scalar(content[DESC], f"'{DESC}'", filename),
    _tagList(content.get(TAGS), f"'{TAGS}'", filename),
    globs)


def readDescriptor(folder):
  ''' Load the descriptor of a folder.
      returns: Descriptor, or None if the folder has no descriptor file
      raises:  CannotReadStoreFile, CannotParseDescriptor
  '''
  filename = os.path.join(folder, FSTORE)
  if not os.path.exists(filename): return None
  try:
    with open(filename, "r", encoding = ENCODING) as fd: data = fd.read()
  except (OSError, UnicodeDecodeError) as E: raise CannotReadStoreFile(filename, E) from E
  debug(f"Read descriptor '{filename}'")
  return parseDescriptor(data, filename)


class Metadata(object):
  ''' Outcome of loading a folder's descriptor: FOUND with data, NOT_FOUND, FAILED with the error, or NOT_LOADED when the walk skipped it. '''

  def __init__(_, status, data = None, error = None): _.status, _.data, _.error = status, data, error

  @staticmethod
  def load(folder):
    try: data = readDescriptor(folder)
    except (CannotReadStoreFile, CannotParseDescriptor) as E: return Metadata(FAILED, error = E)
    return Metadata(NOT_FOUND) if data is None else Metadata(FOUND, data)

  def unwrap(_):
    ''' Descriptor or None if not found; re-raises a load failure. '''
    if _.status == FAILED: raise _.error
    return _.data


class GlobMatches(object):
  ''' Determines for the files of one folder which glob rules match them.
  >>> m = GlobMatches().findMatches(["a.txt", "b.log"], [GlobRule("*.txt"), GlobRule("missing.*"), GlobRule("?.txt")])
  >>> list(m.matchedGlobs(0)), m.isFileMatched(0), m.isFileMatched(1), m.unmatchedRules()
  ([0, 2], True, False, [1])
  '''

  def __init__(_):
    _.matches = []  # per file position: ordered indices of the matching rules
    _.rules = 0

  def findMatches(_, names, rules):
    ''' names: bare file names of one folder
        rules: that folder's ordered GlobRule list
        returns: self, to allow chaining
    '''
    _.matches[:] = [[gi for gi, rule in enumerate(rules) if normalizer.globmatch(name, rule.path)] for name in names]
    _.rules = len(rules)
    return _

  def matchedGlobs(_, fi): return iter(_.matches[fi])

  def isFileMatched(_, fi): return len(_.matches[fi]) > 0

  def unmatchedRules(_):
    used = set(gi for matched in _.matches for gi in matched)
    return [gi for gi in range(_.rules) if gi not in used]


class DirEntry(object):
  ''' A pending or listed folder entry. '''

  def __init__(_, depth, kind, name): _.depth, _.kind, _.name = depth, kind, name

  def __repr__(_): return f"DirEntry({_.depth}, {_.kind!r}, {_.name!r})"


class VisitedDir(object):
  ''' One step of a folder walk. '''

  def __init__(_, depth, absPath, relPath, children, metadata):
    _.depth    = depth     # root = 0, root's children = 1
    _.absPath  = absPath   # absolute file system path
    _.relPath  = relPath   # root-relative path with forward slashes, root = ""
    _.children = children  # immediate files and folders, sorted by name
    _.files, _.folders = splitByPredicate(children, lambda e: e.kind == FILE)
    _.metadata = metadata


class DirWalker(object):
  ''' Depth-first pre-order folder traversal, iterative using an explicit stack of pending entries.
      Each folder is visited exactly once; files appear only in their folder's children.
  '''

  def __init__(_, root, loadMetadata = True):
    if not os.path.isdir(root): raise InvalidPath(root, "Not a folder")
    _.root = os.path.abspath(root)
    _.stack = [DirEntry(0, DIR, "")]  # entries still to visit, tagged with their depth
    _.cursor = []  # names from the root ("") to the current folder
    _.started = False
    _.loadMetadata = loadMetadata  # False: only list the tree, descriptors stay NOT_LOADED

  def walk(_):
    ''' returns: generator of VisitedDir; a walker can only be consumed once. '''
    if _.started: raise DirectoryTraversalFailed(f"Walk of '{_.root}' cannot be restarted")
    _.started = True
    return _._walk()

  def _walk(_):
    while _.stack:
      entry = _.stack.pop()
      if entry.kind != DIR: continue  # files were already reported with their folder
      while len(_.cursor) > entry.depth: _.cursor.pop()  # retract to the parent of entry
      _.cursor.append(entry.name)
      relPath = SLASH.join(_.cursor[1:])
      absPath = os.path.join(_.root, *_.cursor[1:])
      before = len(_.stack)
      for kind, name in reversed(_.listChildren(absPath)): _.stack.append(DirEntry(entry.depth + 1, kind, name))  # reversed to pop in name order
      children = _.stack[before:][::-1]
      debug(f"Visit '{relPath}' at depth {entry.depth} with {len(children)} entries")
      yield VisitedDir(entry.depth, absPath, relPath, children, Metadata.load(absPath) if _.loadMetadata else Metadata(NOT_LOADED))

  def listChildren(_, folder):
    ''' returns: sorted list of (kind, name) of regular files and folders, excluding the descriptor and links. '''
    try: names = sorted(os.listdir(folder))
    except OSError as E: warn(f"Cannot list folder '{folder}': {E}"); return []
    children = []
    for name in names:
      if name == FSTORE: continue
      path = os.path.join(folder, name)
      if   isDir(path):  children.append((DIR, name))
      elif isFile(path): children.append((FILE, name))
      else: debug(f"Skip special entry '{path}'")
    return children


if __name__ == '__main__': import doctest; doctest.testmod()
