#!/usr/bin/env python
import sys
from typing import Optional
from typing import Tuple
from typing import Union
from urllib.parse import ParseResult
from urllib.parse import quote
from urllib.parse import SplitResult
from urllib.parse import unquote
from urllib.parse import urljoin
from urllib.parse import urlparse

from davkit.lib.python_utilities import to_normal_str

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

## Characters left alone when a path is quoted.  "%" is kept so that
## already quoted paths are not quoted twice.
PATH_SAFE = "/~@!$&'()*+,;=:%"


class URL:
    """
    This class is for wrapping URLs into objects.  It's used
    internally in the library, end users should not need to know
    anything about this class.

    The base URL given to a client is fixed; every path an operation
    works on is appended to it, so ``/docs/a.txt`` on top of
    ``https://dav.example.com/dav/`` becomes
    ``https://dav.example.com/dav/docs/a.txt``.  Dot segments in the
    path are resolved, nothing stops them from climbing out of the
    base path.
    """

    def __init__(self, url: Union[str, ParseResult, SplitResult]) -> None:
        if isinstance(url, (ParseResult, SplitResult)):
            self.url_parsed = url
            self.url_raw = url.geturl()
        else:
            self.url_raw = to_normal_str(url)
            self.url_parsed = urlparse(self.url_raw)

    @classmethod
    def objectify(cls, url: Union[Self, str, ParseResult, SplitResult, None]) -> "URL":
        if url is None or isinstance(url, URL):
            return url
        return URL(url)

    def __getattr__(self, attr: str):
        if "url_parsed" not in vars(self):
            raise AttributeError(attr)
        return getattr(self.url_parsed, attr)

    def __str__(self) -> str:
        return self.url_raw

    def __repr__(self) -> str:
        return "URL(%s)" % str(self)

    def __eq__(self, other: object) -> bool:
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    def is_auth(self) -> bool:
        return self.username is not None

    def credentials(self) -> Tuple[Optional[str], Optional[str]]:
        if not self.is_auth():
            return (None, None)
        password = self.password
        return (unquote(self.username), unquote(password) if password else password)

    def unauth(self) -> "URL":
        if not self.is_auth():
            return self
        netloc = self.hostname
        if self.port:
            netloc = "%s:%i" % (netloc, self.port)
        return URL(
            ParseResult(
                self.scheme,
                netloc,
                self.path,
                self.params,
                self.query,
                self.fragment,
            )
        )

    def base(self) -> "URL":
        """The URL with a trailing slash, suitable for appending paths to"""
        if self.path.endswith("/"):
            return self
        return URL(self.url_parsed._replace(path=self.path + "/"))

    def append(self, path: str) -> "URL":
        """
        Appends a path to this URL, treating this URL as a directory.
        A leading slash on ``path`` does not make it absolute.
        """
        path = quote(to_normal_str(path or ""), safe=PATH_SAFE)
        if not path.lstrip("/"):
            return self.base()
        ## "./" keeps a colon in the first segment from reading as a scheme
        return URL(urljoin(str(self.base()), "./" + path.lstrip("/")))
