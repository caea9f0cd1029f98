''' fstore errors  (C) 2016-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''

from fstore.constants import EXIT_FILTER, EXIT_MISSING, EXIT_PATH, EXIT_TRAVERSAL, NL


class FstoreError(Exception):
  ''' Base class of all errors raised while loading, walking or querying a folder tree. '''
  exitCode = EXIT_PATH


class InvalidPath(FstoreError):
  ''' The given path doesn't exist, is of the wrong kind, or can't be represented as text. '''
  def __init__(_, path, reason = "Invalid path"):
    FstoreError.__init__(_, f"{reason}: '{path}'")
    _.path = path


class CannotReadStoreFile(FstoreError):
  ''' A descriptor file exists but cannot be opened or read. '''
  def __init__(_, path, cause = None):
    FstoreError.__init__(_, f"Cannot read descriptor '{path}'" + (f": {cause}" if cause else ""))
    _.path = path


class CannotParseDescriptor(FstoreError):
  ''' A descriptor file is no valid YAML or doesn't have the expected shape.
  >>> print(CannotParseDescriptor("/a/.fstore", "'tags' must be a list"))
  Cannot parse descriptor '/a/.fstore': 'tags' must be a list
  '''
  def __init__(_, path, reason):
    FstoreError.__init__(_, f"Cannot parse descriptor '{path}': {reason}")
    _.path, _.reason = path, reason


class InvalidFilter(FstoreError):
  ''' The filter expression violates the grammar.
  >>> e = InvalidFilter("a and", 5, "Expected a tag or '('"); print(e)
  Expected a tag or '(' at position 5 in filter 'a and'
  >>> e.position
  5
  '''
  exitCode = EXIT_FILTER

  def __init__(_, text, position, reason):
    FstoreError.__init__(_, f"{reason} at position {position} in filter '{text}'")
    _.text, _.position, _.reason = text, position, reason


class DirectoryTraversalFailed(FstoreError):
  ''' Depth sequence of a walk broke the tag inheritance invariant. Indicates a programming error. '''
  exitCode = EXIT_TRAVERSAL


class MissingFiles(FstoreError):
  ''' At least one glob rule of a descriptor didn't match any file. '''
  exitCode = EXIT_MISSING

  def __init__(_, problems):
    FstoreError.__init__(_, NL.join(f"No files matching '{pattern}' in '{folder}'" for folder, pattern in problems))
    _.problems = problems
