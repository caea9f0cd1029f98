''' fstore: tag files with per-folder descriptors and query them  (C) 2016-2021  Arne Bachmann  https://github.com/ArneBachmann/tagsplorer '''
