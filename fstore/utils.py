''' fstore utilities  (C) 2016-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''

import fnmatch, logging, os
from functools import reduce

from fstore.constants import SLASH, YEAR


_log = logging.getLogger(__name__)
def log(func): return (lambda *s: func(sjoin([_() if callable(_) else _ for _ in s]), stacklevel = 2))
debug, info, warn, error = log(_log.debug), log(_log.info), log(_log.warning), log(_log.error)


def expandBraces(pattern):
  ''' Expand {a,b} alternatives of a glob pattern into plain fnmatch patterns. Nested braces are not supported.
  >>> expandBraces("*.{jpg,png}")
  ['*.jpg', '*.png']
  >>> expandBraces("{a,b}{1,2}")
  ['a1', 'a2', 'b1', 'b2']
  >>> expandBraces("plain?.txt")
  ['plain?.txt']
  >>> expandBraces("{unclosed")
  ['{unclosed']
  '''
  start = pattern.find('{')
  end = pattern.find('}', start + 1) if start >= 0 else -1
  if start < 0 or end < 0: return [pattern]
  return [expanded for alternative in pattern[start + 1:end].split(",") for expanded in expandBraces(pattern[:start] + alternative + pattern[end + 1:])]


def globAlternatives(pattern):
  ''' All fnmatch patterns a glob stands for: its brace alternatives, each also with every "**/" matching zero folders.
  >>> globAlternatives("**/*.{txt,md}")
  ['**/*.txt', '*.txt', '**/*.md', '*.md']
  >>> globAlternatives("a?")
  ['a?']
  '''
  return [alt for expanded in expandBraces(pattern) for alt in ([expanded, expanded.replace("**/", "")] if "**/" in expanded else [expanded])]


class Normalizer(object):
  ''' Class that provides the glob matching primitive, optionally case-insensitive. '''

  def setupCasematching(_, case_sensitive, suppress = False):
    ''' Setup normalization.
    >>> n = Normalizer(); n.setupCasematching(case_sensitive = True)
    >>> n.globmatch("abc", "?Bc"), n.globmatch("ab1", "a??"), n.globmatch("b.png", "*.{jpg,png}")
    (False, True, True)
    >>> n.globmatch("2021_report.pdf", "**.pdf"), n.globmatch("a.txt", "**/*.txt"), n.globmatch("a.txt", "x/**/*.txt")
    (True, True, False)
    >>> n.setupCasematching(False)
    >>> n.globmatch("abc", "?Bc"), n.globmatch("A.TXT", "**/*.txt")
    (True, True)
    '''
    if not suppress: debug("Case-sensitive matching: " + ("On" if case_sensitive else "Off"))
    _.globmatch = (lambda f, g: xany(lambda p: fnmatch.fnmatchcase(f, p), globAlternatives(g))) if case_sensitive else \
                  (lambda f, g: xany(lambda p: fnmatch.fnmatchcase(f.lower(), p.lower()), globAlternatives(g)))
normalizer = Normalizer()  # keep a static module-reference
normalizer.setupCasematching(os.environ.get("IGNORE_CASE", "False").lower() != "true", suppress = True)


def implicitTags(name):
  ''' Infer tags from a bare file or folder name: a leading year, or a year range.
  >>> implicitTags("2021_to_2023")
  ['2021', '2022', '2023']
  >>> implicitTags("2021_2023")
  ['2021', '2022', '2023']
  >>> implicitTags("1998_MyDirectory"), implicitTags("1998_MyFile.pdf")
  (['1998'], ['1998'])
  >>> implicitTags("2001.jpg"), implicitTags("2001_to"), implicitTags("2001_20")
  (['2001'], ['2001'], ['2001'])
  >>> implicitTags("2021_to_x"), implicitTags("2023_2021"), implicitTags("x2021"), implicitTags(None)
  ([], [], [], [])
  '''
  if not name: return []
  match = YEAR.match(name)
  if match is None: return []
  first, second, to, last = match.groups()
  if to is not None:
    if last is None: return []  # "to_" promises a second year
    second = last
  return [str(year) for year in range(int(first), (int(second) if second else int(first)) + 1)]


def joinPath(folder, name):
  ''' Root-relative path of a folder entry; the root folder is the empty string.
  >>> joinPath("", "a.txt"), joinPath("a/b", "c.txt")
  ('a.txt', 'a/b/c.txt')
  '''
  return folder + SLASH + name if folder else name


def sjoin(*string, sep = " "):
  ''' Join strings.
  >>> sjoin("a", "b")
  'a b'
  >>> sjoin([1, 2, 3])
  '1 2 3'
  >>> sjoin(["a", None, 2, ""])
  'a 2'
  '''
  if not string: return ""
  string = string[0] if isinstance(string[0], (list, set)) else string
  return sep.join([str(elem) for elem in string if elem])


def xany(pred, lizt):
  ''' Lazy any implementation. '''
  return any(pred(elem) for elem in lizt)  # works with all iterables and generators, using short-circuit logic


def wrapExc(func, otherwise = None):
  ''' Wrap a no-args function; catch any exception and compute return value lazily.
  >>> print(wrapExc(lambda: 1))
  1
  >>> None is wrapExc(lambda: 1 / 0)  # return default fallback value (None)
  True
  >>> print(wrapExc(lambda: 1 / 0, lambda: 2))  # return defined default by function call
  2
  '''
  try: return func()
  except Exception: return otherwise() if callable(otherwise) else otherwise


def lappend(listOrSet, elem):
  ''' Append one element to a set or list, returning the updated set or list (in-place).
  >>> a = [1, 2, 3]; lappend(a, 4)
  [1, 2, 3, 4]
  >>> list(sorted(lappend(set([1]), 0)))
  [0, 1]
  '''
  assert isinstance(listOrSet, (list, set))
  (listOrSet.append if isinstance(listOrSet, list) else listOrSet.add)(elem)
  return listOrSet


def dictGet(dikt, key, default, set = False):
  ''' dict.get() that returns default when missing.
      dikt: a dictionary
      key:  key to find value of
      default: value or callable (to compute value) to use if key missing
  >>> dictGet({}, 'a', dictGet({'a': 1}, 'b', 2))
  2
  >>> dictGet({}, 'a', dictGet({'a': 1}, 'b', lambda: 3))
  3
  '''
  try: return dikt[key]
  except KeyError:
    value = default() if callable(default) else default
    if set: dikt[key] = value
    return value


def dictGetSet(dikt, key, default):
  ''' dict.get() that computes and adds missing values.
      Returns existing value otherwise new (computed) value.
  >>> a = {}; b = dictGetSet(a, 0, 0); print((a, b))
  ({0: 0}, 0)
  >>> a = {"x": 0}; b = dictGetSet(a, "y", lambda: len(a)); print((a, b))  # callable is evaluated before insertion
  ({'x': 0, 'y': 1}, 1)
  '''
  return dictGet(dikt, key, default, set = True)


def splitByPredicate(lizt, pred, transform = None):
  ''' Split lists by a (boolean) predicate.
      transform: optional transformation on resulting elements
      returns ([if-true], [if-false])
  >>> print(splitByPredicate([1,2,3,4,5], lambda e: e % 2 == 0))
  ([2, 4], [1, 3, 5])
  '''
  MATCH, NO_MATCH = 0, 1
  return reduce(lambda acc, nxt_: (
      lappend(acc[MATCH], nxt_ if transform is None else transform(nxt_)), acc[NO_MATCH])
    if pred(nxt_) else
      (acc[MATCH], lappend(acc[NO_MATCH], nxt_ if transform is None else transform(nxt_))),
    lizt, ([], []))


def isDir(f):  return wrapExc(lambda: os.path.isdir(f) and not os.path.islink(f), False)  # HINT silently catches encoding errors


def isFile(f): return wrapExc(lambda: os.path.isfile(f) and not os.path.islink(f), False)  # handle "no file" errors


if __name__ == '__main__': import doctest; doctest.testmod()
