import fnmatch

# Files whose diffs only waste prompt tokens: binaries, fonts, archives and
# generated lock files.
NON_DIFFABLE_EXTENSIONS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".bmp",
    ".pdf",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".otf",
    ".mp4",
    ".mp3",
    ".wav",
    ".zip",
    ".tar",
    ".gz",
    ".7z",
    ".lock",  # e.g. poetry.lock, Cargo.lock
}

LOCK_FILES = {"package-lock.json", "pnpm-lock.yaml", "yarn.lock", "npm-shrinkwrap.json"}


def is_code_file(file_name: str) -> bool:
    base = file_name.rsplit("/", 1)[-1]
    if base in LOCK_FILES:
        return False
    return not any(file_name.lower().endswith(ext) for ext in NON_DIFFABLE_EXTENSIONS)


def is_excluded(filename: str, patterns) -> bool:
    """True if ``filename`` matches one of the exclude patterns.

    Each pattern is tried as a glob against the whole path and against the
    basename, then as a directory: ``vendor`` and ``vendor/`` both exclude
    ``vendor/a.js`` and ``web/vendor/a.js``.
    """
    basename = filename.rsplit("/", 1)[-1]
    for pattern in patterns:
        if fnmatch.fnmatch(filename, pattern) or fnmatch.fnmatch(basename, pattern):
            return True
        directory = pattern.strip("/")
        if directory and f"/{directory}/" in f"/{filename}":
            return True
    return False
