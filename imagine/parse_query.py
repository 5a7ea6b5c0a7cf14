"""Turn a request path such as ``/hello world.gif`` into a caption configuration."""

from __future__ import annotations

from dataclasses import dataclass

MAX_FILE_NAME_LENGTH = 30
_BASE_PATH = "/base.gif"


@dataclass(frozen=True)
class GifConfig:
    """Where a captioned GIF is stored, its canonical name and its caption."""

    bucket_path: str
    file_name: str
    text: str


def parse_gif_path(pathname: str) -> GifConfig:
    """Derive the storage key, canonical file name and caption text from a path.

    The leading ``/`` and the four-character extension are dropped; the rest is
    trimmed, spaces become underscores, it is lower-cased and cut to
    ``MAX_FILE_NAME_LENGTH`` characters.  The caption is that name with
    underscores turned back into spaces, trimmed and upper-cased.
    """
    if pathname == _BASE_PATH:
        return GifConfig(bucket_path="base.gif", file_name="base", text="base")

    stem = pathname[1 : 1 + max(len(pathname) - 5, 0)]
    file_name = stem.strip().replace(" ", "_").lower()[:MAX_FILE_NAME_LENGTH]
    text = file_name.replace("_", " ").strip().upper()

    return GifConfig(
        bucket_path=f"generated/{file_name}.gif",
        file_name=file_name,
        text=text,
    )