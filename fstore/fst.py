# coding=utf-8

''' fstore command-line interface  (C) 2016-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''

import logging, optparse, os, sys, time

from fstore.constants import APPNAME, EXIT_NOOP, EXIT_OK, SLASH
from fstore.errors import FstoreError, MissingFiles
from fstore.lib import allTags, checkTree, countFilesTags, runQuery, untrackedFiles, whatIs
from fstore.utils import normalizer, sjoin, wrapExc
from fstore import filter, lib, store, utils  # for setting the log level dynamically


logging.basicConfig(
  level =  logging.DEBUG if '-V' in sys.argv or '--debug'   in sys.argv or os.environ.get("DEBUG",   "False").lower() == "true" else
          (logging.INFO  if '-v' in sys.argv or '--verbose' in sys.argv or os.environ.get("VERBOSE", "False").lower() == "true" else
           logging.WARNING),  # must be set here to already limit writing to info and debug (e.g. "Started at...")
  stream = sys.stdout if '--stdout' in sys.argv else sys.stderr,  # log to stderr, write results to stdout
  format =  '%(asctime)-8s.%(msecs)03d %(levelname)-4s %(module)s:%(funcName)s:%(lineno)d | %(message)s',
  datefmt = '%H:%M:%S')
wrapExc(lambda: sys.argv.remove('--stdout'))  # remove if present
_log = logging.getLogger(__name__)
def log(func): return (lambda *s: func(sjoin([_() if callable(_) else _ for _ in s]), stacklevel = 2))
debug, info, warn, error = log(_log.debug), log(_log.info), log(_log.warning), log(_log.error)


with open(os.path.join(os.path.dirname(__file__), 'VERSION'), encoding = 'utf-8') as fd: VERSION = fd.read().strip()
APPSTR  = APPNAME + " version %s  (C) 2016-2021  Arne Bachmann" % VERSION


class Main:
  ''' Command-line operations. Results go to stdout, one per line; everything else is logged. '''

  def output(_, path):
    ''' Root-relative path, or absolute file system path with --absolute. '''
    return os.path.join(os.path.abspath(_.options.root), *path.split(SLASH)) if _.options.absolute else path

  def query(_):
    ''' Print all files matching the filter given by -q or the remaining arguments. '''
    text = _.options.query if _.options.query else " ".join(_.args)
    info(f"Search '{_.options.root}' for '{text}'" + (" using the dense table" if _.options.dense else ""))
    counter = 0
    for path in runQuery(_.options.root, text, dense = _.options.dense):
      print(_.output(path)); counter += 1
    info(f"Found {counter} files for '{text}'")
    return EXIT_OK

  def check(_):
    success, problems = checkTree(_.options.root)
    if not success: raise MissingFiles(problems)
    print("No problems found.")
    return EXIT_OK

  def untracked(_):
    paths = untrackedFiles(_.options.root)
    for path in paths: print(_.output(path))
    info(f"Found {len(paths)} untracked files")
    return EXIT_OK

  def tags(_):
    for tag in allTags(_.options.root): print(tag)
    return EXIT_OK

  def whatis(_):
    result = whatIs(_.options.whatis)
    print("tags: " + ", ".join(result.tags))
    if result.desc: print(result.desc)
    return EXIT_OK

  def stats(_):
    files, tags = countFilesTags(_.options.root)
    print(f"Tracked files: {files}")
    print(f"Tags: {tags}")
    return EXIT_OK

  def parse_and_run(_):
    ''' Main logic that analyses the command line arguments and starts an operation. '''
    ts = time.time()
    info("Started at %s" % (time.strftime("%H:%M:%S", time.localtime(ts))))
    ihf = optparse.IndentedHelpFormatter(2, 60, 120)
    op = optparse.OptionParser(prog = APPNAME, usage = "fst [options] <filter>", description = APPSTR, version = VERSION, formatter = ihf)  # HINT options default to None!
    op.add_option('-r', '--root',        action = "store",      dest = "root",        default = os.curdir, type = str, help = "Specify root folder of file tree, default: current folder")
    op.add_option('-q', '--query',       action = "store",      dest = "query",       default = None,      type = str, help = "Filter expression, e.g. '2020 and (family or friends) and not work' (default action for arguments)")
    op.add_option(      '--dense',       action = "store_true", dest = "dense",       default = False,                 help = "Evaluate the query on a dense tag table")
    op.add_option(      '--check',       action = "store_true", dest = "check",       default = False,                 help = "Report globs that don't match any file")
    op.add_option(      '--untracked',   action = "store_true", dest = "untracked",   default = False,                 help = "List files not matched by their folder's globs")
    op.add_option(      '--tags',        action = "store_true", dest = "show_tags",   default = False,                 help = "List all tags of the file tree")
    op.add_option(      '--whatis',      action = "store",      dest = "whatis",      default = None,      type = str, help = "Show description and tags of a file or folder")
    op.add_option(      '--stats',       action = "store_true", dest = "stats",       default = False,                 help = "Count tracked files and tags")
    op.add_option(      '--absolute',    action = "store_true", dest = "absolute",    default = False,                 help = "Output absolute file system paths instead of root-relative ones")
    op.add_option('-c', '--ignore-case', action = "store_true", dest = "ignore_case", default = False,                 help = "Match globs case-insensitively")
    op.add_option('-v', '--verbose',     action = "store_true", dest = "verbose",     default = False,                 help = "Display more information")
    op.add_option('-V', '--debug',       action = "store_true", dest = "debug_on",    default = False,                 help = "Display internal data state")
    _.options, _.args = op.parse_args()
    logLevel = logging.DEBUG if _.options.debug_on else (logging.INFO if _.options.verbose else logging.WARNING)
    _log.setLevel(logLevel)
    for mod in (filter, lib, store, utils): mod._log.setLevel(logLevel)
    normalizer.setupCasematching(not (_.options.ignore_case or os.environ.get("IGNORE_CASE", "False").lower() == "true"))
    debug(f"Options:   {_.options}")
    debug(f"Arguments: {_.args}")
    code = EXIT_OK
    try:
      if   _.options.check:       code = _.check()
      elif _.options.untracked:   code = _.untracked()
      elif _.options.show_tags:   code = _.tags()
      elif _.options.whatis:      code = _.whatis()
      elif _.options.stats:       code = _.stats()
      elif _.options.query \
        or _.args:                code = _.query()
      else: error("No option specified. Use '--help' to list all options"); code = EXIT_NOOP
    except FstoreError as E: error(E); code = E.exitCode
    info("Finished at %s after %.1fs" % (time.strftime("%H:%M:%S"), time.time() - ts))
    sys.exit(code)


def main(): Main().parse_and_run()  # Main entry point for console tools (setuptools)


if __name__ == '__main__':   # pragma: no cover
  main()
