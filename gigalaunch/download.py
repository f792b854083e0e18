"""Batch download of files, each one checked against its expected size and sha1.
"""

from http.client import HTTPConnection, HTTPSConnection, HTTPResponse, HTTPException
from threading import Thread
from pathlib import Path
from queue import Queue
import urllib.parse
import hashlib
import time

from .http import ssl_context
from .util import calc_file_sha1

from typing import Optional, Dict, List, Tuple, Iterator


# Entries without known size are sorted as if they weighed 1 MiB.
_DEFAULT_SORT_SIZE = 1 << 20

_REDIRECT_STATUSES = (301, 302, 307, 308)


class DownloadEntry:
    """A file to download, with optional expected size and sha1.
    """

    __slots__ = "url", "size", "sha1", "dst", "name"

    def __init__(self,
        url: str,
        dst: Path, *,
        size: Optional[int] = None,
        sha1: Optional[str] = None,
        name: Optional[str] = None
    ) -> None:
        self.url = url
        self.dst = dst
        self.size = size
        self.sha1 = sha1
        self.name = url if name is None else name

    def is_installed(self) -> bool:
        """Return true if the destination file exists and has the expected size and sha1,
        when they are known.
        """
        if not self.dst.is_file():
            return False
        if self.size is not None and self.size != self.dst.stat().st_size:
            return False
        if self.sha1 is not None and self.sha1 != calc_file_sha1(self.dst):
            return False
        return True

    def _key(self) -> tuple:
        return self.url, self.dst, self.size, self.sha1

    def __hash__(self) -> int:
        return hash(self._key())

    def __eq__(self, other) -> bool:
        return isinstance(other, DownloadEntry) and self._key() == other._key()

    def __repr__(self) -> str:
        return f"<DownloadEntry {self.name}>"


class _Request:
    """An entry with its URL split, only http and https are accepted.
    """

    __slots__ = "https", "host", "port", "target", "entry"

    def __init__(self, entry: DownloadEntry) -> None:

        url = urllib.parse.urlsplit(entry.url)
        if url.scheme not in ("http", "https"):
            raise ValueError(f"unsupported scheme '{url.scheme}://' from url {entry.url}")

        self.https = url.scheme == "https"
        self.host = url.hostname or ""
        self.port = url.port
        self.target = (url.path or "/") + (f"?{url.query}" if url.query else "")
        self.entry = entry

    @property
    def conn_key(self) -> Tuple[bool, str, Optional[int]]:
        return self.https, self.host, self.port

    def redirect(self, location: str) -> "_Request":
        entry = self.entry
        return _Request(DownloadEntry(urllib.parse.urljoin(entry.url, location), entry.dst,
            size=entry.size,
            sha1=entry.sha1,
            name=entry.name))


class DownloadResult:
    """Base class of the results yielded by `DownloadList.download`.
    """
    __slots__ = "thread_id", "entry"
    def __init__(self, thread_id: int, entry: DownloadEntry) -> None:
        self.thread_id = thread_id
        self.entry = entry


class DownloadResultProgress(DownloadResult):
    """A successful download, with the downloaded size and the speed in bytes per second.
    """
    __slots__ = "size", "speed"
    def __init__(self, thread_id: int, entry: DownloadEntry, size: int, speed: float) -> None:
        super().__init__(thread_id, entry)
        self.size = size
        self.speed = speed


class DownloadResultError(DownloadResult):
    """A failed download with its error code, the origin is the exception that caused
    connection errors.
    """

    CONNECTION = "connection"
    NOT_FOUND = "not_found"
    INVALID_SIZE = "invalid_size"
    INVALID_SHA1 = "invalid_sha1"

    __slots__ = "code", "origin"

    def __init__(self, thread_id: int, entry: DownloadEntry, code: str, origin: Optional[Exception] = None) -> None:
        super().__init__(thread_id, entry)
        self.code = code
        self.origin = origin


class DownloadList:
    """Entries to download all at once on several threads. Each entry is attempted once,
    failures are only reported as results.
    """

    __slots__ = "entries", "count", "size"

    def __init__(self) -> None:
        self.entries: List[_Request] = []
        self.count = 0
        self.size = 0

    def clear(self) -> None:
        self.entries.clear()
        self.count = 0
        self.size = 0

    def add(self, entry: DownloadEntry, *, verify: bool = False) -> None:
        """Add an entry to download.

        :param verify: Skip the entry if its file is already installed, see
        `DownloadEntry.is_installed`.
        :raises ValueError: If the URL scheme is not supported.
        """

        if verify and entry.is_installed():
            return

        self.entries.append(_Request(entry))
        self.count += 1
        self.size += entry.size or 0

    def download(self, threads_count: int) -> Iterator[Tuple[int, DownloadResult]]:
        """Download all entries, yielding the number of results received so far along
        with each result.
        """

        if not len(self.entries) or threads_count < 1:
            return

        requests: Queue = Queue()
        results: Queue = Queue()

        # Biggest files are started first.
        for request in sorted(self.entries, key=lambda r: r.entry.size or _DEFAULT_SORT_SIZE, reverse=True):
            requests.put(request)

        workers = [_Worker(thread_id, requests, results) for thread_id in range(threads_count)]
        for worker in workers:
            worker.start()

        try:
            for count in range(1, len(self.entries) + 1):
                result = results.get()
                if isinstance(result, _WorkerCrash):
                    raise ValueError(f"unexpected crash of download thread {result.thread_id}", result.origin)
                yield count, result
        finally:
            # Workers are daemons, they are stopped but not joined.
            for _ in workers:
                requests.put(None)


class _WorkerCrash:
    """Unexpected exception raised in a worker, this is a bug.
    """
    __slots__ = "thread_id", "origin"
    def __init__(self, thread_id: int, origin: Exception) -> None:
        self.thread_id = thread_id
        self.origin = origin


class _Worker(Thread):

    def __init__(self, thread_id: int, requests: Queue, results: Queue) -> None:
        super().__init__(name=f"Download Thread {thread_id}", daemon=True)
        self.thread_id = thread_id
        self.requests = requests
        self.results = results
        self.conns: Dict[Tuple[bool, str, Optional[int]], HTTPConnection] = {}
        self.buffer = memoryview(bytearray(65536))
        self.ssl_context = ssl_context()

    def run(self) -> None:
        try:
            while True:
                request: Optional[_Request] = self.requests.get()
                if request is None:
                    break
                result = self.fetch(request)
                if result is not None:
                    self.results.put(result)
        except Exception as e:
            self.results.put(_WorkerCrash(self.thread_id, e))

    def connection(self, request: _Request) -> HTTPConnection:
        """Return the connection to the request's host, kept alive between requests.
        """
        conn = self.conns.get(request.conn_key)
        if conn is None:
            if request.https:
                conn = HTTPSConnection(request.host, request.port, context=self.ssl_context)
            else:
                conn = HTTPConnection(request.host, request.port)
            self.conns[request.conn_key] = conn
        return conn

    def fetch(self, request: _Request) -> Optional[DownloadResult]:
        """Download a request's entry, none is returned if the request is redirected,
        the redirection being queued as a new request.
        """

        entry = request.entry
        conn = self.connection(request)
        start_time = time.monotonic()

        try:
            conn.request("GET", request.target)
            res = conn.getresponse()
            if res.status == 200:
                result = self.receive(res, entry, start_time)
            else:
                # The body is consumed so that the connection can be reused.
                while res.readinto(self.buffer):
                    pass
                if res.status in _REDIRECT_STATUSES:
                    self.requests.put(request.redirect(res.headers["location"]))
                    return None
                result = DownloadResultError(self.thread_id, entry, DownloadResultError.NOT_FOUND)
        except (OSError, HTTPException) as e:
            conn.close()
            del self.conns[request.conn_key]
            result = DownloadResultError(self.thread_id, entry, DownloadResultError.CONNECTION, e)

        if isinstance(result, DownloadResultError):
            # No partial or invalid file is kept.
            try:
                entry.dst.unlink()
            except FileNotFoundError:
                pass

        return result

    def receive(self, res: HTTPResponse, entry: DownloadEntry, start_time: float) -> DownloadResult:
        """Write the response's body to the entry's file, checking its size and sha1.
        """

        sha1 = hashlib.sha1()
        size = 0

        entry.dst.parent.mkdir(parents=True, exist_ok=True)
        with entry.dst.open("wb") as fp:
            while True:
                read_len = res.readinto(self.buffer)
                if not read_len:
                    break
                chunk = self.buffer[:read_len]
                sha1.update(chunk)
                fp.write(chunk)
                size += read_len

        if entry.size is not None and size != entry.size:
            return DownloadResultError(self.thread_id, entry, DownloadResultError.INVALID_SIZE)
        if entry.sha1 is not None and sha1.hexdigest() != entry.sha1:
            return DownloadResultError(self.thread_id, entry, DownloadResultError.INVALID_SHA1)

        elapsed = time.monotonic() - start_time
        return DownloadResultProgress(self.thread_id, entry, size, size / elapsed if elapsed > 0 else 0.0)
