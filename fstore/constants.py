''' fstore constants  (C) 2016-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''

import re


# Constants
MAJOR_VERSION = 0
APPNAME = "fstore"
FSTORE  = ".fstore"  # per-folder descriptor file (YAML), never reported as a regular file
NL, SLASH, ENCODING = "\n", "/", "utf-8"  # often-used constants
DESC, TAGS, FILES, PATH = "desc", "tags", "files", "path"  # descriptor keys
FILE, DIR = "file", "dir"  # directory entry kinds
YEAR = re.compile(r"([0-9]{4})(?:_(?:([0-9]{4})|(to_)([0-9]{4})?))?")  # leading year or year range of a file or folder name

# Filter language
AND, OR, NOT = "and", "or", "not"  # keywords, matched case-insensitively
SYMBOLS = {"&": AND, "|": OR, "!": NOT}  # one-character synonyms
LPAREN, RPAREN = "(", ")"

# Exit codes
EXIT_OK, EXIT_MISSING, EXIT_PATH, EXIT_FILTER, EXIT_TRAVERSAL, EXIT_NOOP = 0, 1, 2, 3, 4, 5

