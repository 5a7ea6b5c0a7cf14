"""HTTP front end that serves GIFs captioned with the text of the request path."""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass, field
from http import HTTPStatus
from os import PathLike
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Union
from urllib.parse import quote, unquote_to_bytes, urlsplit
from wsgiref.simple_server import make_server
from wsgiref.util import request_uri

from .gif_text import add_text_to_gif
from .parse_query import parse_gif_path

BASE_GIF_KEY = "base.gif"
BUCKET_SCAN_PAGE = 1000
_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}
_PATH_SAFE = "/:@!$&'()*+,;=-._~%"
_TEXT_TYPE = "text/plain;charset=UTF-8"


@dataclass
class Response:
    """A complete HTTP response: status code, headers and body bytes."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def text(cls, status: int, body: str) -> "Response":
        return cls(status, {"Content-Type": _TEXT_TYPE}, body.encode("utf-8"))

    @classmethod
    def redirect(cls, location: str) -> "Response":
        return cls(302, {"Location": location})

    @classmethod
    def json(cls, value) -> "Response":
        body = json.dumps(value, separators=(",", ":")).encode("utf-8")
        return cls(200, {"Content-Type": "application/json"}, body)


class Bucket(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...

    def put(self, key: str, data: bytes) -> None: ...

    def keys(self) -> List[str]: ...


class MemoryBucket:
    """Object store kept in a dictionary."""

    def __init__(self, objects: Optional[Mapping[str, bytes]] = None) -> None:
        self._objects: Dict[str, bytes] = dict(objects or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._objects.get(key)

    def put(self, key: str, data: bytes) -> None:
        self._objects[key] = bytes(data)

    def keys(self) -> List[str]:
        return sorted(self._objects)


class DirectoryBucket:
    """Object store whose keys are file paths below a root directory."""

    def __init__(self, root: Union[str, "PathLike[str]"]) -> None:
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValueError(f"key {key!r} escapes the bucket root")
        return path

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        return path.read_bytes() if path.is_file() else None

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(bytes(data))

    def keys(self) -> List[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*")
            if path.is_file()
        )


def _ascii_lower(value: str) -> str:
    return "".join(ch.lower() if ch.isascii() else ch for ch in value)


def _origin(url: str) -> str:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is None or _DEFAULT_PORTS.get(scheme) == port:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


class ImagineApp:
    """Serves captioned GIFs from a bucket, generating and storing missing ones."""

    def __init__(
        self,
        bucket: Bucket,
        font_path: Union[str, "PathLike[str]", None] = None,
    ) -> None:
        self.bucket = bucket
        self.font_path = font_path
        self._cache: Dict[str, Response] = {}

    def stats(self) -> Response:
        """Report how many objects the bucket holds."""
        return Response.json({"count": len(self.bucket.keys())})

    def handle(self, method: str, url: str) -> Response:
        """Answer one request.

        Raises LookupError when a GIF must be generated but the bucket has no
        base image, and ValueError when the base image cannot be processed.
        """
        if method.upper() != "GET":
            return Response.text(405, "Method Not Allowed\n")

        raw_path = urlsplit(url).path or "/"
        if raw_path == "/stats":
            return self.stats()

        try:
            path = unquote_to_bytes(raw_path).decode("utf-8")
        except UnicodeDecodeError:
            return Response.text(400, "Invalid UTF-8 in path\n")

        origin = _origin(url)
        if path == "/":
            return Response.redirect(f"{origin}/imagine.gif")

        if not path.strip().endswith(".gif"):
            return Response.text(404, "please add .gif on the end of your url path\n")

        config = parse_gif_path(path)
        if not config.text:
            return Response.redirect(f"{origin}/imagine.gif")

        if _ascii_lower(path) != _ascii_lower(f"/{config.file_name}.gif"):
            location = quote(f"/{config.file_name}.gif", safe=_PATH_SAFE)
            return Response.redirect(f"{origin}{location}")

        cached = self._cache.get(url)
        if cached is not None:
            return cached

        stored = self.bucket.get(config.bucket_path)
        if stored is not None:
            return self._gif_response(stored, url)

        base = self.bucket.get(BASE_GIF_KEY)
        if base is None:
            raise LookupError(f"{BASE_GIF_KEY} is missing from the bucket")

        gif = add_text_to_gif(base, config.text, self.font_path)
        self.bucket.put(config.bucket_path, gif)
        return self._gif_response(gif, url)

    def _gif_response(self, gif: bytes, url: str) -> Response:
        response = Response(
            200,
            {
                "Cache-Control": "public, max-age=604800, s-maxage=604800",
                "Access-Control-Allow-Origin": "*",
                "Content-Type": "image/gif",
            },
            bytes(gif),
        )
        self._cache[url] = response
        return response

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        try:
            response = self.handle(environ.get("REQUEST_METHOD", "GET"), request_uri(environ))
        except (LookupError, ValueError) as exc:
            response = Response.text(500, f"{exc}\n")
        phrase = HTTPStatus(response.status).phrase
        headers = list(response.headers.items())
        headers.append(("Content-Length", str(len(response.body))))
        start_response(f"{response.status} {phrase}", headers)
        return [response.body]


def main(argv: Optional[List[str]] = None) -> int:
    """Serve the app over HTTP from a directory bucket."""
    parser = argparse.ArgumentParser(prog="imagine", description=__doc__)
    parser.add_argument("--bucket", default=".", help="directory holding base.gif and generated GIFs")
    parser.add_argument("--font", default=None, help="TrueType font for captions")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8787)
    args = parser.parse_args(argv)

    app = ImagineApp(DirectoryBucket(args.bucket), args.font)
    with make_server(args.host, args.port, app) as server:
        print(f"Serving on http://{args.host}:{args.port}/")
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())