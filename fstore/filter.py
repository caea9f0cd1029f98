# coding=utf-8

''' fstore filter language  (C) 2016-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''

import logging

from fstore.constants import AND, LPAREN, NOT, OR, RPAREN, SYMBOLS
from fstore.errors import InvalidFilter
from fstore.utils import sjoin


_log = logging.getLogger(__name__)
def log(func): return (lambda *s: func(sjoin([_() if callable(_) else _ for _ in s]), stacklevel = 2))
debug, info, warn, error = log(_log.debug), log(_log.info), log(_log.warning), log(_log.error)


TAG, NEG, CONJ, DISJ, FALSE = "tag", "not", "and", "or", "false"  # node kinds
WORD, OPERATOR, END = "word", "operator", "end"  # token kinds
QUOTE = '"'


class Filter(object):
  ''' Boolean expression over tag handles, as a tagged variant:
        (TAG, handle)  (NEG, child)  (CONJ, left, right)  (DISJ, left, right)  (FALSE,)
      Handles are whatever the tag maker used for parsing returns, e.g. tag names or tag indices.
  >>> f = Filter.parse("a and not b or c", StringTags()); f
  ((a and not b) or c)
  >>> f.eval(lambda tag: tag in {"a"}), f.eval(lambda tag: tag in {"a", "b"}), f.eval(lambda tag: tag == "c")
  (True, False, True)
  >>> Filter.parse("a & (b | !c)", StringTags())
  (a and (b or not c))
  '''

  def __init__(_, kind, *args): _.kind, _.args = kind, args

  @staticmethod
  def tag(handle): return Filter(TAG, handle)

  @staticmethod
  def false(): return Filter(FALSE)

  @staticmethod
  def parse(text, maker):
    ''' Parse a filter expression, resolving each tag immediately.
        text:  expression like "2020 and (family or friends) and not work"
        maker: object with createTag(name) returning a Filter leaf, e.g. a tag table
        returns: Filter, raises InvalidFilter
    '''
    parsed = Parser(text, maker).parse()
    debug(f"Parsed filter '{text}' as {parsed!r}")
    return parsed

  def eval(_, contains):
    ''' Evaluate for one file.
        contains: predicate telling whether the file has the tag for a handle
    '''
    if _.kind == TAG:  return bool(contains(_.args[0]))
    if _.kind == NEG:  return not _.args[0].eval(contains)
    if _.kind == CONJ: return _.args[0].eval(contains) and _.args[1].eval(contains)
    if _.kind == DISJ: return _.args[0].eval(contains) or  _.args[1].eval(contains)
    return False  # FALSE: unknown tag

  def resolve(_, maker):
    ''' Map the handles of this filter to another maker's handles, e.g. tag names to a table's tag indices.
    >>> class Upper:
    ...   def createTag(_, name): return Filter.tag(name.upper()) if name != "x" else Filter.false()
    >>> Filter.parse("a or not (x and b)", StringTags()).resolve(Upper())
    (A or not (false and B))
    '''
    if _.kind == TAG:  return maker.createTag(_.args[0])
    if _.kind == FALSE: return _
    return Filter(_.kind, *(child.resolve(maker) for child in _.args))

  def __eq__(_, other): return isinstance(other, Filter) and _.kind == other.kind and _.args == other.args

  __hash__ = None

  def __repr__(_):
    if _.kind == TAG:  return str(_.args[0])
    if _.kind == NEG:  return f"not {_.args[0]!r}"
    if _.kind == CONJ: return f"({_.args[0]!r} and {_.args[1]!r})"
    if _.kind == DISJ: return f"({_.args[0]!r} or {_.args[1]!r})"
    return FALSE


class StringTags(object):
  ''' Tag maker that keeps tag names as handles, for parsing once and resolving later against any table. '''
  def createTag(_, name): return Filter.tag(name)


def tokenize(text):
  ''' Split a filter expression into (kind, value, position) tokens, terminated by an END token.
  >>> [value for kind, value, pos in tokenize('a AND(b|!"not")')]
  ['a', 'and', '(', 'b', 'or', 'not', 'not', ')', None]
  >>> [kind for kind, value, pos in tokenize('"not"')]
  ['word', 'end']
  '''
  tokens, i = [], 0
  while i < len(text):
    c = text[i]
    if c.isspace(): i += 1; continue
    if c in (LPAREN, RPAREN): tokens.append((c, c, i)); i += 1; continue
    if c in SYMBOLS: tokens.append((OPERATOR, SYMBOLS[c], i)); i += 1; continue
    if c == QUOTE:  # quoted tags may contain blanks, parentheses or keywords
      end = text.find(QUOTE, i + 1)
      if end < 0: raise InvalidFilter(text, i, "Unterminated quote")
      if end == i + 1: raise InvalidFilter(text, i, "Empty tag")
      tokens.append((WORD, text[i + 1:end], i)); i = end + 1; continue
    start = i
    while i < len(text) and not text[i].isspace() and text[i] not in (LPAREN, RPAREN, QUOTE) and text[i] not in SYMBOLS: i += 1
    word = text[start:i]
    tokens.append((OPERATOR, word.lower(), start) if word.lower() in (AND, OR, NOT) else (WORD, word, start))
  tokens.append((END, None, len(text)))
  return tokens


class Parser(object):
  ''' Recursive descent parser. Precedence: not > and > or; binary operators associate left.

        or_expr  := and_expr ('or' and_expr)*
        and_expr := term ('and' term)*
        term     := 'not' term | '(' or_expr ')' | TAG
  '''

  def __init__(_, text, maker):
    _.text, _.maker = text, maker
    _.tokens = tokenize(text)
    _.pos = 0

  def peek(_): return _.tokens[_.pos]

  def advance(_):
    token = _.tokens[_.pos]
    _.pos += 1
    return token

  def isOperator(_, value): return _.peek()[:2] == (OPERATOR, value)

  def parse(_):
    if _.peek()[0] == END: raise InvalidFilter(_.text, 0, "Empty filter")
    result = _.parseOr()
    kind, value, pos = _.peek()
    if kind == RPAREN: raise InvalidFilter(_.text, pos, "Unbalanced ')'")
    if kind != END:    raise InvalidFilter(_.text, pos, f"Expected 'and' or 'or' before '{value}'")
    return result

  def parseOr(_):
    left = _.parseAnd()
    while _.isOperator(OR):
      _.advance()
      left = Filter(DISJ, left, _.parseAnd())
    return left

  def parseAnd(_):
    left = _.parseTerm()
    while _.isOperator(AND):
      _.advance()
      left = Filter(CONJ, left, _.parseTerm())
    return left

  def parseTerm(_):
    kind, value, pos = _.advance()
    if kind == OPERATOR and value == NOT: return Filter(NEG, _.parseTerm())
    if kind == LPAREN:
      inner = _.parseOr()
      if _.advance()[0] != RPAREN: raise InvalidFilter(_.text, pos, "Unbalanced '('")
      return inner
    if kind == WORD: return _.maker.createTag(value)
    if kind == END: raise InvalidFilter(_.text, pos, "Unexpected end of filter, expected a tag or '('")
    raise InvalidFilter(_.text, pos, f"Expected a tag or '(' instead of '{value}'")


if __name__ == '__main__': import doctest; doctest.testmod()
