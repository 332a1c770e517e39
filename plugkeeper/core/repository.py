"""
Repository identifiers for plugkeeper.

Every repository is identified by a normalized ``{host}/{user}/{name}`` path.
This module turns user input into that canonical form and provides the
reversible flat-name encoding used to store a hierarchical identifier as a
single directory name under the install tree.

Accepted input forms:
    user/name[.git]
    host/user/name[.git]
    {git,http,https}://user/name[.git][/]
    {git,http,https}://host/user/name[.git][/]

Example:
    >>> from plugkeeper.core.repository import normalize, encode_flat_name
    >>> path = normalize('https://github.com/tyru/caw.vim.git')
    >>> path
    'github.com/tyru/caw.vim'
    >>> encode_flat_name(path)
    'github.com_tyru_caw.vim'
"""

import os
import re
from pathlib import Path
from typing import List, Optional, Union

from plugkeeper.core.directory import get_opt_dir, get_repos_dir
from plugkeeper.core.exceptions import InvalidFormatError

DEFAULT_HOST = "github.com"
LOCAL_HOST = "localhost"
LOCAL_USER = "local"
ALLOWED_SCHEMES = ("git", "http", "https")

_REPOS_PATTERN = re.compile(
    r"^(?:(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://)?"
    r"(?:(?P<host>[^/]+)/)?"
    r"(?P<user>[^/]+)/"
    r"(?P<name>[^/]+?)"
    r"(?:\.git)?"
    r"(?P<slash>/)?$"
)

# A segment never starts or ends with "_": an underscore next to a separator
# would make the flat-name encoding ambiguous.
_SEGMENT_PATTERN = re.compile(r"^[^\s/_](?:[^\s/]*[^\s/_])?$")


class RepositoryPath(str):
    """
    Normalized ``{host}/{user}/{name}`` repository identifier.

    Instances are produced by normalize()/normalize_local()/decode_flat_name()
    or re-read from documents that only ever persist normalized values.
    """

    __slots__ = ()

    @property
    def host(self) -> str:
        return self.split("/")[0]

    @property
    def user(self) -> str:
        return self.split("/")[1]

    @property
    def name(self) -> str:
        return self.split("/")[-1]

    def encode_flat_name(self) -> str:
        """Encode this path into a single directory name."""
        return encode_flat_name(self)

    def full_path(self, repos_dir: Optional[Path] = None) -> Path:
        """
        Get the clone location of this repository.

        Args:
            repos_dir: Root of cloned sources (default: {data}/repos)

        Returns:
            {repos_dir}/{host}/{user}/{name}
        """
        if repos_dir is None:
            repos_dir = get_repos_dir()
        return Path(repos_dir).joinpath(*self.split("/"))

    def install_path(self, opt_dir: Optional[Path] = None) -> Path:
        """
        Get the flattened install location of this repository.

        Args:
            opt_dir: Install tree (default: {install}/opt)

        Returns:
            {opt_dir}/{flat name}
        """
        if opt_dir is None:
            opt_dir = get_opt_dir()
        return Path(opt_dir) / encode_flat_name(self)

    def clone_url(self) -> str:
        return f"https://{self}"


def _check_segments(raw: str, segments: List[str]) -> None:
    for segment in segments:
        if segment in (".", "..") or not _SEGMENT_PATTERN.match(segment):
            raise InvalidFormatError(raw, f"invalid path segment {segment!r}")


def normalize(raw: str) -> RepositoryPath:
    """
    Normalize user input into a ``{host}/{user}/{name}`` repository path.

    The scheme, a ``.git`` suffix and a trailing slash are stripped. When no
    host is given it defaults to DEFAULT_HOST.

    Args:
        raw: Repository as typed by the user

    Returns:
        Normalized repository path

    Raises:
        InvalidFormatError: If the input matches none of the accepted forms,
            uses a scheme other than git/http/https, or has a trailing slash
            without an explicit scheme

    Example:
        >>> normalize('tyru/caw.vim')
        'github.com/tyru/caw.vim'
        >>> normalize('git://example.com/user/name.git/')
        'example.com/user/name'
    """
    if os.sep != "/":
        raw = raw.replace(os.sep, "/")

    match = _REPOS_PATTERN.match(raw)
    if match is None:
        raise InvalidFormatError(raw)

    scheme = match.group("scheme")
    if scheme is not None and scheme not in ALLOWED_SCHEMES:
        raise InvalidFormatError(raw, f"unsupported scheme '{scheme}'")

    if match.group("slash") and scheme is None:
        raise InvalidFormatError(
            raw, "trailing slash is only allowed with an explicit scheme"
        )

    segments = [
        match.group("host") or DEFAULT_HOST,
        match.group("user"),
        match.group("name"),
    ]
    _check_segments(raw, segments)

    return RepositoryPath("/".join(segments))


def normalize_local(raw: str) -> RepositoryPath:
    """
    Normalize a repository name that may refer to a local-only plugin.

    A single-segment name maps to ``localhost/local/{name}``; anything
    containing a separator is handled by normalize().

    Raises:
        InvalidFormatError: If the name cannot be normalized
    """
    if "/" not in raw:
        _check_segments(raw, [raw])
        return RepositoryPath(f"{LOCAL_HOST}/{LOCAL_USER}/{raw}")
    return normalize(raw)


def encode_flat_name(repos_path: Union[str, RepositoryPath]) -> str:
    """
    Encode a repository path into one filesystem path segment.

    Literal underscores are doubled first, then every separator becomes a
    single underscore.

    Example:
        >>> encode_flat_name('github.com/user/my_plugin')
        'github.com_user_my__plugin'
    """
    return str(repos_path).replace("_", "__").replace("/", "_")


def decode_flat_name(name: Union[str, Path]) -> RepositoryPath:
    """
    Decode a flat directory name back into a repository path.

    Only the base name of the argument is decoded, so a full install
    directory path may be passed. Separators are reconstructed before
    doubled underscores are collapsed; the two passes must run in this order.

    Raises:
        InvalidFormatError: If the name is not the encoding of a
            ``{host}/{user}/{name}`` path

    Example:
        >>> decode_flat_name('github.com_user_my__plugin')
        'github.com/user/my_plugin'
    """
    name = os.path.basename(os.fspath(name))
    decoded = name.replace("_", "/").replace("//", "_")
    segments = decoded.split("/")
    if len(segments) != 3:
        raise InvalidFormatError(name, "not a flat repository name")
    _check_segments(name, segments)
    return RepositoryPath(decoded)


class ReposList(list):
    """
    List of entries that each carry a ``path`` attribute.

    Shared by lock.json repos and build-info.json repos; lookups are linear
    and compare repository paths for equality.
    """

    def find_by_path(self, repos_path: str):
        """Return the entry with the given path, or None."""
        for repos in self:
            if repos.path == repos_path:
                return repos
        return None

    def contains(self, repos_path: str) -> bool:
        return self.find_by_path(repos_path) is not None

    def remove_by_path(self, repos_path: str) -> None:
        """Remove the entry with the given path; does nothing if absent."""
        for i, repos in enumerate(self):
            if repos.path == repos_path:
                del self[i]
                return

    def paths(self) -> List[RepositoryPath]:
        return [repos.path for repos in self]

    def duplicate_paths(self) -> List[RepositoryPath]:
        """Return every path that occurs more than once, in first-seen order."""
        seen = set()
        duplicates = []
        for repos in self:
            if repos.path in seen and repos.path not in duplicates:
                duplicates.append(repos.path)
            seen.add(repos.path)
        return duplicates


__all__ = [
    "DEFAULT_HOST",
    "LOCAL_HOST",
    "LOCAL_USER",
    "ALLOWED_SCHEMES",
    "RepositoryPath",
    "ReposList",
    "normalize",
    "normalize_local",
    "encode_flat_name",
    "decode_flat_name",
]
