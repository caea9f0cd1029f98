# coding=utf-8

''' fstore test suite  (C) 2016-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''

import doctest, logging, os, shlex, shutil, sys, tempfile, unittest, traceback
from io import StringIO

from fstore import errors, filter, fst, lib, store, utils  # entire files
from fstore.constants import EXIT_FILTER, EXIT_MISSING, EXIT_NOOP, EXIT_OK, EXIT_PATH, FSTORE, NL
from fstore.errors import CannotParseDescriptor, DirectoryTraversalFailed, InvalidFilter, InvalidPath
from fstore.filter import Filter, StringTags
from fstore.lib import DenseTagTable, InheritedTags, TagTable


TREE = {  # root-relative path -> file contents
  FSTORE: "tags: [archive]\nfiles:\n  - path: '*.txt'\n    tags: [text]\n",
  "readme.txt": "",
  "setup.log": "",
  "2019_holidays/" + FSTORE: "desc: Holidays\ntags: [travel]\nfiles:\n  - path: '*.jpg'\n    tags: [photo]\n  - path: beach.*\n    desc: At the beach\n    tags: [beach]\n",
  "2019_holidays/beach.jpg": "",
  "2019_holidays/city.jpg": "",
  "2019_holidays/notes.md": "",
  "2019_holidays/day1/sub/" + FSTORE: "files:\n  - path: '*'\n    tags: [nested]\n",
  "2019_holidays/day1/sub/deep.txt": "",
  "family/" + FSTORE: "tags: [family]\nfiles:\n  - path: 2020_to_2021_album.pdf\n    tags: [album]\n  - path: '*.png'\n    tags: [photo]\n",
  "family/2020_to_2021_album.pdf": "",
  "family/mom.png": "",
}
FILES = ["readme.txt", "2019_holidays/beach.jpg", "2019_holidays/city.jpg", "2019_holidays/day1/sub/deep.txt", "family/2020_to_2021_album.pdf", "family/mom.png"]


def makeTree(root, tree):
  ''' Create files (and implicitly their folders) under root. '''
  for path, contents in tree.items():
    filename = os.path.join(root, *path.split("/"))
    os.makedirs(os.path.dirname(filename), exist_ok = True)
    with open(filename, "w", encoding = "utf-8") as fd: fd.write(contents)


def wrapChannels(func):
  ''' Run func, capturing stdout, stderr and the modules' log output. '''
  oldo, olde = sys.stdout, sys.stderr
  buf = StringIO()
  sys.stdout = sys.stderr = buf
  handler = logging.StreamHandler(buf)
  loggers = [mod._log for mod in (fst, lib, store, filter, utils)]
  for logger in loggers: logger.addHandler(handler)
  try: func()
  except Exception as E: buf.write(str(E) + NL); traceback.print_exc(file = buf)
  finally:
    sys.stdout, sys.stderr = oldo, olde
    for logger in loggers: logger.removeHandler(handler)
  return buf.getvalue()


def runP(argstr, root):
  ''' Run the command-line interface in-process.
      returns: 2-tuple(output, exit code)
  '''
  code = [None]
  oldv = sys.argv
  fst._log.setLevel(logging.WARNING)  # a previous verbose run would log the start message
  sys.argv = ["fst.py", "-r", root] + shlex.split(argstr)
  def tmp():
    try: fst.Main().parse_and_run()
    except SystemExit as E: code[0] = E.code
  try: res = wrapChannels(tmp)
  finally: sys.argv = oldv
  return res, code[0]


class TreeTestCase(unittest.TestCase):
  ''' Base class operating on a fresh copy of the test tree. '''

  def setUp(_):
    _.root = tempfile.mkdtemp(prefix = "fstore_")
    makeTree(_.root, TREE)

  def tearDown(_):
    shutil.rmtree(_.root, ignore_errors = True)
    utils.normalizer.setupCasematching(True, suppress = True)

  def write(_, path, contents): makeTree(_.root, {path: contents})

  def path(_, rel): return os.path.join(_.root, *rel.split("/"))

  def query(_, text, dense = False): return list(lib.runQuery(_.root, text, dense = dense))

  def assertAllIn(_, what, where):
    ''' Assert all elements of what have an exact match in where. '''
    [_.assertIn(a, where) for a in what]


class ImplicitTagsTestCase(unittest.TestCase):

  def testYearRanges(_):
    for name in ("2021_to_2023", "2021_2023"): _.assertEqual(["2021", "2022", "2023"], utils.implicitTags(name))

  def testSingleYear(_):
    for name in ("1998_MyDirectory", "1998_MyFile.pdf", "1998", "1998.txt"): _.assertEqual(["1998"], utils.implicitTags(name))

  def testNoYear(_):
    for name in ("notes.txt", "MyFile_1998", "199_x", "", None): _.assertEqual([], utils.implicitTags(name))


class WalkerTestCase(TreeTestCase):

  def testOrderAndDepth(_):
    visits = [(v.relPath, v.depth, v.metadata.status) for v in store.DirWalker(_.root).walk()]
    _.assertEqual([
        ("", 0, store.FOUND),
        ("2019_holidays", 1, store.FOUND),
        ("2019_holidays/day1", 2, store.NOT_FOUND),
        ("2019_holidays/day1/sub", 3, store.FOUND),
        ("family", 1, store.FOUND)
      ], visits)

  def testChildren(_):
    first = next(store.DirWalker(_.root).walk())
    _.assertEqual(os.path.abspath(_.root), first.absPath)
    _.assertEqual(["2019_holidays", "family", "readme.txt", "setup.log"], [c.name for c in first.children])  # descriptor never listed
    _.assertEqual(["readme.txt", "setup.log"], [f.name for f in first.files])
    _.assertEqual(["2019_holidays", "family"], [f.name for f in first.folders])
    _.assertTrue(all(c.depth == 1 for c in first.children))

  def testNoRestart(_):
    walker = store.DirWalker(_.root)
    list(walker.walk())
    with _.assertRaises(DirectoryTraversalFailed): walker.walk()

  def testInvalidRoot(_):
    with _.assertRaises(InvalidPath): store.DirWalker(_.path("readme.txt"))
    with _.assertRaises(InvalidPath): store.DirWalker(_.path("nothing/here"))

  def testWithoutMetadata(_):
    _.write("family/" + FSTORE, "files: [")  # never read
    visits = list(store.DirWalker(_.root, loadMetadata = False).walk())
    _.assertEqual(["", "2019_holidays", "2019_holidays/day1", "2019_holidays/day1/sub", "family"], [v.relPath for v in visits])
    _.assertTrue(all(v.metadata.status == store.NOT_LOADED and v.metadata.unwrap() is None for v in visits))

  def testFailedDescriptorIsReported(_):
    _.write("family/" + FSTORE, "files: [")
    statuses = {v.relPath: v.metadata for v in store.DirWalker(_.root).walk()}
    _.assertEqual(store.FAILED, statuses["family"].status)
    _.assertIsInstance(statuses["family"].error, CannotParseDescriptor)
    with _.assertRaises(CannotParseDescriptor): statuses["family"].unwrap()


class DescriptorTestCase(unittest.TestCase):

  def testShapes(_):
    d = store.parseDescriptor("tags: [2019, x]\nunknown: ignored\nfiles:\n  - path: a.txt\n")
    _.assertEqual(["2019", "x"], d.tags)
    _.assertIsNone(d.desc)
    _.assertEqual([], d.globs[0].tags)
    _.assertIsNone(d.globs[0].desc)

  def testPlainScalarsStayText(_):
    d = store.parseDescriptor("tags: [2019_2020, 0123, yes, no, on, 12:30, 1.5]\nfiles:\n  - path: 2019_2020\n    tags: [true]\n")
    _.assertEqual(["2019_2020", "0123", "yes", "no", "on", "12:30", "1.5"], d.tags)
    _.assertEqual(("2019_2020", ["true"]), (d.globs[0].path, d.globs[0].tags))
    _.assertTrue(store.GlobMatches().findMatches(["2019_2020"], d.globs).isFileMatched(0))
    _.assertEqual(["2019", "2020"], utils.implicitTags(d.globs[0].path))

  def testEmptyValues(_):
    for text in ("desc:\ntags:\nfiles:\n", "desc: ~\ntags: null\nfiles: []\n"):
      d = store.parseDescriptor(text)
      _.assertEqual((None, [], []), (d.desc, d.tags, d.globs))

  def testErrors(_):
    for text in ("- a\n- b", "files: x", "files:\n  - tags: [a]", "files:\n  - path: a\n    tags: a", "desc: [a]", "files: [", "tags: [{a: b}]"):
      with _.assertRaises(CannotParseDescriptor, msg = text): store.parseDescriptor(text)

  def testRuleTagsAndDescriptions(_):
    d = store.parseDescriptor("files:\n  - path: '*'\n    desc: one\n    tags: [a, b]\n  - path: x\n    tags: [b, c]\n  - path: y\n    desc: three\n")
    _.assertEqual(["a", "b", "c"], d.ruleTags([0, 1, 2]))
    _.assertEqual("one" + NL + "three", d.ruleDesc([0, 1, 2]))
    _.assertEqual(["a", "b", "b", "c"], d.allTags())


class GlobTestCase(unittest.TestCase):

  def tearDown(_): utils.normalizer.setupCasematching(True, suppress = True)

  def testUntracked(_):
    m = store.GlobMatches().findMatches(["a.txt", "b.log"], [store.GlobRule("*.txt")])
    _.assertTrue(m.isFileMatched(0))
    _.assertFalse(m.isFileMatched(1))
    _.assertEqual([], m.unmatchedRules())

  def testBracesAndClasses(_):
    rules = [store.GlobRule("*.{jpg,png}"), store.GlobRule("[ab]?.txt"), store.GlobRule("[!ab]*")]
    m = store.GlobMatches().findMatches(["x.jpg", "y.png", "a1.txt", "c1.txt"], rules)
    _.assertEqual([[0, 2], [0, 2], [1], [2]], [list(m.matchedGlobs(i)) for i in range(4)])

  def testDeepMatch(_):
    m = store.GlobMatches().findMatches(["a.txt", "b.log"], [store.GlobRule("**/*.txt"), store.GlobRule("sub/**/*.log")])
    _.assertEqual(([0], []), (list(m.matchedGlobs(0)), list(m.matchedGlobs(1))))
    _.assertEqual([1], m.unmatchedRules())

  def testCaseInsensitive(_):
    rules = [store.GlobRule("*.JPG")]
    _.assertFalse(store.GlobMatches().findMatches(["x.jpg"], rules).isFileMatched(0))
    utils.normalizer.setupCasematching(False)
    _.assertTrue(store.GlobMatches().findMatches(["x.jpg"], rules).isFileMatched(0))


class InheritanceTestCase(unittest.TestCase):

  def testSiblingsDontLeak(_):
    i = InheritedTags()
    i.update(0); i.tagIndices.append(0)
    i.update(1); i.tagIndices.append(1)
    i.update(1); i.tagIndices.append(2)  # sibling replaces the first child's tags
    _.assertEqual([0, 2], i.tagIndices)
    i.update(2); i.tagIndices.append(3)
    i.update(3)  # folder without own tags
    i.update(0)  # back to a root-level entry
    _.assertEqual([], i.tagIndices)
    _.assertEqual([0], i.offsets)

  def testJumps(_):
    i = InheritedTags()
    with _.assertRaises(DirectoryTraversalFailed): i.update(1)  # root must come first
    i = InheritedTags()
    i.update(0)
    with _.assertRaises(DirectoryTraversalFailed): i.update(-1)


class TagTableTestCase(TreeTestCase):

  def testFilesAndOrder(_):
    table = TagTable.fromDir(_.root)
    _.assertEqual(FILES, table.files)
    _.assertEqual(["archive", "text", "travel", "2019", "photo", "beach", "nested", "family", "album", "2020", "2021"], table.tags())
    _.assertEqual(list(range(len(table.tagIndex))), sorted(table.tagIndex.values()))  # dense and contiguous

  def testInheritance(_):
    table = TagTable.fromDir(_.root)
    tags = {path: set(table.fileTags(fi)) for fi, path in enumerate(table.files)}
    _.assertEqual({"archive", "text"}, tags["readme.txt"])
    _.assertEqual({"archive", "travel", "2019", "photo", "beach"}, tags["2019_holidays/beach.jpg"])
    _.assertEqual({"archive", "travel", "2019", "photo"}, tags["2019_holidays/city.jpg"])
    _.assertEqual({"archive", "travel", "2019", "nested"}, tags["2019_holidays/day1/sub/deep.txt"])  # inherited across a folder without descriptor
    _.assertEqual({"archive", "family", "album", "2020", "2021"}, tags["family/2020_to_2021_album.pdf"])  # nothing from the holidays cousin
    _.assertEqual({"archive", "family", "photo"}, tags["family/mom.png"])

  def testDeterminism(_):
    one, two = TagTable.fromDir(_.root), TagTable.fromDir(_.root)
    _.assertEqual(one.tagIndex, two.tagIndex)
    _.assertEqual(one.files, two.files)
    _.assertEqual(one.table, two.table)

  def testMalformedDescriptorAborts(_):
    _.write("2019_holidays/day1/sub/" + FSTORE, "tags: nested")
    with _.assertRaises(CannotParseDescriptor): TagTable.fromDir(_.root)

  def testDenseEquivalence(_):
    sparse = TagTable.fromDir(_.root)
    dense = DenseTagTable.fromTable(sparse)
    _.assertEqual(tuple(sparse.files), dense.files())
    _.assertEqual(tuple(sparse.tags()), dense.tags())
    _.assertEqual(os.path.abspath(_.root), dense.path())
    for fi in range(len(sparse.files)):
      row = dense.flags(fi)
      _.assertEqual(len(sparse.tags()), len(row))
      for ti in range(len(sparse.tags())): _.assertEqual(sparse.contains(fi, ti), row[ti])

  def testDenseIsReadOnly(_):
    dense = DenseTagTable.fromDir(_.root)
    with _.assertRaises(TypeError): dense.flags(0)[0] = True
    with _.assertRaises(IndexError): dense.flags(len(FILES))

  def testEmptyTree(_):
    empty = tempfile.mkdtemp(prefix = "fstore_")
    try:
      table = TagTable.fromDir(empty)
      _.assertEqual(([], {}), (table.files, table.tagIndex))
      _.assertEqual((), DenseTagTable.fromTable(table).files())
    finally: shutil.rmtree(empty)


class FilterTestCase(unittest.TestCase):

  def setUp(_):
    _.root = tempfile.mkdtemp(prefix = "fstore_")
    makeTree(_.root, {
      FSTORE: "files:\n  - path: F1\n    tags: [A]\n  - path: F2\n    tags: [B]\n  - path: F3\n    tags: [A, B]\n",
      "F1": "", "F2": "", "F3": ""})

  def tearDown(_): shutil.rmtree(_.root, ignore_errors = True)

  def testEvaluation(_):
    for dense in (False, True):
      q = lambda text: list(lib.runQuery(_.root, text, dense = dense))
      _.assertEqual(["F1"], q("A and not B"))
      _.assertEqual(["F1", "F2", "F3"], q("A or B"))
      _.assertEqual([], q("not A and not B"))
      _.assertEqual(["F3"], q("A & B"))
      _.assertEqual(["F2"], q("!A"))
      for text in ("C", "C and A", "C and not A", "(C)"): _.assertEqual([], q(text))
      _.assertEqual(["F1", "F3"], q("C or A"))

  def testPrecedence(_):
    p = lambda text: repr(Filter.parse(text, StringTags()))
    _.assertEqual("(a or (b and c))", p("a or b and c"))
    _.assertEqual("((a and b) or c)", p("a and b or c"))
    _.assertEqual("(not a and b)", p("not a and b"))
    _.assertEqual("((a and b) and c)", p("a AND b And c"))
    _.assertEqual("((a or b) or c)", p("a or b or c"))
    _.assertEqual("((a or b) and c)", p("(a or b) and c"))
    _.assertEqual("not not a", p("not not a"))
    _.assertEqual("(family and my tag)", p('family and "my tag"'))

  def testShortCircuit(_):
    calls = []
    f = Filter.parse("a or b", StringTags())
    _.assertTrue(f.eval(lambda tag: calls.append(tag) or tag == "a"))
    _.assertEqual(["a"], calls)
    calls[:] = []
    _.assertFalse(Filter.parse("b and a", StringTags()).eval(lambda tag: calls.append(tag) or tag == "a"))
    _.assertEqual(["b"], calls)

  def testUnknownTagIsFalse(_):
    table = TagTable.fromDir(_.root)
    _.assertEqual(Filter.false(), table.createTag("C"))
    _.assertEqual(Filter.tag(table.tagIndex["A"]), table.createTag("A"))
    dense = DenseTagTable.fromTable(table)
    _.assertEqual(Filter.false(), dense.createTag("C"))
    _.assertEqual(table.createTag("B"), dense.createTag("B"))

  def testResolveOnceForBothTables(_):
    names = Filter.parse("A and not B", StringTags())
    sparse = TagTable.fromDir(_.root)
    dense = DenseTagTable.fromTable(sparse)
    filt = names.resolve(sparse)  # sparse and dense share tag indices
    _.assertEqual(["F1"], list(sparse.query(filt)))
    _.assertEqual(["F1"], list(dense.query(filt)))

  def testInvalid(_):
    for text, position in (("", 0), ("   ", 0), ("a and", 5), ("(a", 0), ("a)", 1), ("a b", 2), ("and a", 0), ("a or or b", 5), ('a "b', 2), ("()", 1), ("not", 3)):
      with _.assertRaises(InvalidFilter, msg = text) as ctx: Filter.parse(text, StringTags())
      _.assertEqual(position, ctx.exception.position, text)

  def testInvalidFilterBeforeQuerying(_):
    with _.assertRaises(InvalidFilter): lib.runQuery(_.root, "A and")


class OperationsTestCase(TreeTestCase):

  def testQueries(_):
    _.assertEqual(["2019_holidays/beach.jpg", "2019_holidays/city.jpg", "family/mom.png"], _.query("photo"))
    _.assertEqual(["2019_holidays/beach.jpg", "2019_holidays/city.jpg"], _.query("photo and not family"))
    _.assertEqual(["2019_holidays/beach.jpg", "2019_holidays/city.jpg", "2019_holidays/day1/sub/deep.txt"], _.query("travel"))
    _.assertEqual(["2019_holidays/beach.jpg", "2019_holidays/city.jpg", "2019_holidays/day1/sub/deep.txt"], _.query("2019"))
    _.assertEqual(["family/2020_to_2021_album.pdf"], _.query("2021 and album"))
    _.assertEqual([], _.query("family and travel"))
    _.assertEqual(FILES, _.query("archive"))
    _.assertEqual(FILES, _.query("archive", dense = True))

  def testUntrackedFiles(_):
    _.assertEqual(["setup.log", "2019_holidays/notes.md"], lib.untrackedFiles(_.root))
    _.write("2019_holidays/day1/loose.txt", "")
    _.assertIn("2019_holidays/day1/loose.txt", lib.untrackedFiles(_.root))  # no descriptor: everything untracked

  def testDeepGlobTracksBareNames(_):
    _.write(FSTORE, "files:\n  - path: '**/*.txt'\n    tags: [text]\n")
    _.assertEqual(["setup.log", "2019_holidays/notes.md"], lib.untrackedFiles(_.root))
    _.assertEqual(["readme.txt"], _.query("text"))

  def testCheckTree(_):
    _.assertEqual((True, []), lib.checkTree(_.root))
    _.write("family/" + FSTORE, "files:\n  - path: '*.png'\n  - path: missing.*\n")
    _.assertEqual((False, [("family", "missing.*")]), lib.checkTree(_.root))
    _.write("family/missing.doc", "")
    _.assertEqual((True, []), lib.checkTree(_.root))

  def testCheckTreeAggregates(_):
    _.write(FSTORE, "files:\n  - path: nope1\n")
    _.write("family/" + FSTORE, "files:\n  - path: nope2\n")
    _.assertEqual((False, [("", "nope1"), ("family", "nope2")]), lib.checkTree(_.root))
    _.write("2019_holidays/" + FSTORE, "tags: {}")
    with _.assertRaises(CannotParseDescriptor): lib.checkTree(_.root)

  def testAllTags(_):
    _.assertEqual(['2019', '2020', '2021', 'album', 'archive', 'beach', 'family', 'nested', 'photo', 'text', 'travel'], lib.allTags(_.root))

  def testCountFilesTags(_):
    _.assertEqual((6, 11), lib.countFilesTags(_.root))

  def testWhatIs(_):
    info = lib.whatIs(_.path("2019_holidays/beach.jpg"))
    _.assertEqual(["2019", "beach", "photo", "travel"], info.tags)
    _.assertEqual("At the beach" + NL + "Holidays", info.desc)
    info = lib.whatIs(_.path("2019_holidays"))
    _.assertEqual(("Holidays", ["2019", "travel"]), (info.desc, info.tags))
    info = lib.whatIs(_.path("family/2020_to_2021_album.pdf"))
    _.assertEqual(("", ["2020", "2021", "album", "family"]), (info.desc, info.tags))
    with _.assertRaises(InvalidPath): lib.whatIs(_.path("2019_holidays/day1"))  # no descriptor
    with _.assertRaises(InvalidPath): lib.whatIs(_.path("does/not/exist"))


class CommandLineTestCase(TreeTestCase):

  def testQuery(_):
    out, code = runP("photo -v", _.root)
    _.assertEqual(EXIT_OK, code)
    _.assertAllIn(["2019_holidays/beach.jpg", "family/mom.png", "Found 3 files"], out)
    out, code = runP("--dense -q 'photo and not family'", _.root)
    _.assertIn("2019_holidays/city.jpg", out)
    _.assertNotIn("mom.png", out)

  def testAbsolute(_):
    out, code = runP("--absolute text", _.root)
    _.assertIn(os.path.join(os.path.abspath(_.root), "readme.txt"), out)

  def testCheck(_):
    out, code = runP("--check", _.root)
    _.assertEqual((EXIT_OK, True), (code, "No problems found." in out))
    _.write("family/" + FSTORE, "files:\n  - path: missing.*\n")
    out, code = runP("--check", _.root)
    _.assertEqual(EXIT_MISSING, code)
    _.assertIn("No files matching 'missing.*' in 'family'", out)

  def testAuxiliary(_):
    _.assertIn("2019_holidays/notes.md", runP("--untracked", _.root)[0])
    _.assertEqual(["2019", "2020", "2021", "album", "archive", "beach", "family", "nested", "photo", "text", "travel"], runP("--tags", _.root)[0].split())
    _.assertAllIn(["Tracked files: 6", "Tags: 11"], runP("--stats", _.root)[0])
    _.assertAllIn(["tags: 2019, beach, photo, travel", "At the beach"], runP("--whatis " + shlex.quote(_.path("2019_holidays/beach.jpg")), _.root)[0])

  def testIgnoreCase(_):
    _.write("family/Dad.PNG", "")
    _.assertNotIn("family/Dad.PNG", runP("photo", _.root)[0])
    _.assertIn("family/Dad.PNG", runP("-c photo", _.root)[0])

  def testErrors(_):
    out, code = runP("'photo and'", _.root)
    _.assertEqual(EXIT_FILTER, code)
    _.assertIn("Unexpected end of filter", out)
    _.assertEqual(EXIT_NOOP, runP("", _.root)[1])
    _.assertEqual(EXIT_PATH, runP("photo", _.path("readme.txt"))[1])
    _.write("family/" + FSTORE, "tags: [")
    out, code = runP("photo", _.root)
    _.assertEqual(EXIT_PATH, code)
    _.assertIn("Cannot parse descriptor", out)


def load_tests(loader, tests, ignore):
  ''' Added up by unittest. '''
  for mod in (errors, filter, lib, store, utils): tests.addTests(doctest.DocTestSuite(mod))
  return tests


if __name__ == '__main__':
  unittest.main()
