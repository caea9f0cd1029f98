''' fstore setup script  (C) 2017-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''

import os, shutil, subprocess, sys, time
from setuptools import setup

from fstore.constants import MAJOR_VERSION

if os.path.exists(".git"):
  so, se = subprocess.Popen("git describe --always", shell = True, stdout = subprocess.PIPE).communicate()
  micro = "-" + so.strip().decode(sys.stdout.encoding or "utf-8").strip()
else: micro = ""
lt = time.localtime()
versionString = "%d.%d.%d" % (MAJOR_VERSION, lt.tm_year * 100 + lt.tm_mon, lt.tm_mday * 10000 + lt.tm_hour * 100 + lt.tm_min) if any(_ in sys.argv for _ in ('clean', 'build')) else open(os.path.join(os.path.dirname(os.path.abspath(__file__)), "fstore", "VERSION"), "r", encoding = "utf-8").read().strip()
if 'clean' not in sys.argv:
  with open(os.path.join(os.path.dirname(os.path.abspath(__file__)), "fstore", "VERSION"), "w", encoding = "utf-8") as fd: fd.write(versionString)


setup(
  name = 'fstore',
  version = versionString,
  description = "fstore V" + versionString + micro + ": tag files with per-folder descriptors and query them with boolean filters",
  long_description = "",
  classifiers = [c.strip() for c in """
        Development Status :: 4 - Beta
        Intended Audience :: End Users/Desktop
        Intended Audience :: System Administrators
        License :: OSI Approved :: Mozilla Public License 2.0 (MPL 2.0)
        Operating System :: OS Independent
        Programming Language :: Python :: 3
        Programming Language :: Python :: 3.8
        Programming Language :: Python :: 3.9
        Programming Language :: Python :: 3.10
        Programming Language :: Python :: 3.11
        Programming Language :: Python :: 3.12
        """.split('\n') if c.strip()],  # https://pypi.python.org/pypi?:action=list_classifiers
  keywords = 'file tag search organize archive',
  author = 'Arne Bachmann',
  author_email = 'ArneBachmann@users.noreply.github.com',
  maintainer = 'Arne Bachmann',
  maintainer_email = 'ArneBachmann@users.noreply.github.com',
  url = 'http://github.com/ArneBachmann/tagsplorer',
  license = 'MPL-2.0',
  packages = ["fstore"],
  package_data = {"fstore": ["VERSION"]},
  python_requires = ">=3.8",
  install_requires = ["PyYAML >= 5.1"],
  extras_require = {"test": ["pytest"]},
  zip_safe = False,
  entry_points = {
    'console_scripts': [
      'fst=fstore.fst:main'
    ]
  },
)

if "clean" in sys.argv:
  for folder in ("fstore.egg-info", "build", "dist"):  # if keeping the egg-info folder, built files will remain no matter what exclude options are configured above
    try: shutil.rmtree(folder)
    except OSError: pass
