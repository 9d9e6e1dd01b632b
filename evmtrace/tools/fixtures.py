import fnmatch
import gzip
import json
import os
from pathlib import (
    Path,
)
from typing import (
    IO,
    Any,
    Iterable,
    Optional,
    Sequence,
    Tuple,
)

from eth_utils import (
    to_tuple,
)

from evmtrace.exceptions import (
    MalformedFixture,
)

DEFAULT_INCLUDES = ("*.json",)
DEFAULT_EXCLUDES: Tuple[str, ...] = ()

GZIP_SUFFIX = ".gz"


#
# Globs
#
class GlobMatcher:
    """
    Matches paths against a set of shell style globs.  ``*`` also matches
    ``/``, so ``*.json`` selects JSON files at any depth and ``stExample/*``
    everything under ``stExample``.
    """

    def __init__(self, patterns: Sequence[str]) -> None:
        self.patterns = tuple(patterns)

    def __repr__(self) -> str:
        return f"GlobMatcher({list(self.patterns)!r})"

    def matches(self, path: str) -> bool:
        normalized = Path(path).as_posix()
        return any(fnmatch.fnmatchcase(normalized, pattern) for pattern in self.patterns)


@to_tuple
def read_glob_file(glob_path: str) -> Iterable[str]:
    """
    Read one glob per line, ignoring blank lines and ``#`` comments.
    """
    with open(glob_path) as glob_file:
        for line in glob_file:
            pattern = line.strip()
            if pattern and not pattern.startswith("#"):
                yield pattern


def load_glob_matcher(glob_path: Optional[str], default: Sequence[str]) -> GlobMatcher:
    if glob_path is None:
        return GlobMatcher(default)
    else:
        return GlobMatcher(read_glob_file(glob_path))


#
# Discovery
#
@to_tuple
def find_fixture_files(
    fixtures_base_dir: str,
    includes: GlobMatcher = GlobMatcher(DEFAULT_INCLUDES),
    excludes: GlobMatcher = GlobMatcher(DEFAULT_EXCLUDES),
) -> Iterable[str]:
    """
    Find every fixture file under ``fixtures_base_dir`` whose path relative to
    that directory is included and not excluded.  Relative paths are returned,
    in sorted order.
    """
    relative_paths = []
    for dirpath, _, filenames in os.walk(fixtures_base_dir):
        for filename in filenames:
            relative_paths.append(
                os.path.relpath(os.path.join(dirpath, filename), fixtures_base_dir)
            )

    for relative_path in sorted(relative_paths):
        if includes.matches(relative_path) and not excludes.matches(relative_path):
            yield relative_path


def load_json_fixture(fixture_path: str) -> Any:
    opener = gzip.open if fixture_path.endswith(GZIP_SUFFIX) else open
    with opener(fixture_path, "rt") as fixture_file:
        try:
            return json.load(fixture_file)
        except ValueError as err:
            raise MalformedFixture(f"{fixture_path} is not valid JSON: {err}") from err


#
# Output
#
def output_path_for(out_dir: str, relative_path: str, compress: bool = False) -> str:
    path = os.path.join(out_dir, relative_path)
    if compress:
        path += GZIP_SUFFIX
    return path


class LazyOutputFile:
    """
    A text file which is only created (along with any missing parent
    directories) when something is first written to it, so a conversion which
    fails part way leaves nothing behind.
    """

    def __init__(self, path: str, compress: bool = False) -> None:
        self.path = path
        self.compress = compress
        self._file: Optional[IO[str]] = None

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def _open(self) -> IO[str]:
        if self._file is None:
            parent = os.path.dirname(self.path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            if self.compress:
                self._file = gzip.open(self.path, "wt")
            else:
                self._file = open(self.path, "w")
        return self._file

    def write(self, text: str) -> int:
        return self._open().write(text)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "LazyOutputFile":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def dump_document(document: Any, prettify: bool = False) -> str:
    if prettify:
        return json.dumps(document, indent=2)
    else:
        return json.dumps(document)
