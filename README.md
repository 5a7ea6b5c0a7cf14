# imagine

A small web service that captions an animated GIF with whatever you put in
the URL. Ask for `/hello world.gif` and you get the base animation with
`HELLO WORLD` fading in near the top, drawn in white with a black outline.

## How requests are handled

- Only `GET` is accepted (the method is compared case-insensitively);
  anything else gets `405 Method Not Allowed`.
- `/stats` returns JSON of the form `{"count": N}`, the number of objects in
  the bucket.
- The path is percent-decoded as UTF-8; a path that is not valid UTF-8 gets
  `400`.
- `/` redirects to `/imagine.gif`.
- Paths that do not end in `.gif` get `404`.
- The path without its leading `/` and its extension is trimmed, spaces
  become underscores, it is lower-cased and cut to 30 characters. That name
  is the canonical URL; other spellings redirect to it. The caption is the
  same name with underscores turned back into spaces, trimmed and
  upper-cased. `/base.gif` is special: its name and caption are both `base`
  and it is stored as `base.gif`.
- A path that yields an empty caption redirects to `/imagine.gif`.
- Generated GIFs are stored under `generated/<name>.gif` in the bucket and
  served from there on later requests. The template animation is read from
  `base.gif` in the same bucket.
- GIF responses carry `Content-Type: image/gif`,
  `Cache-Control: public, max-age=604800, s-maxage=604800` and
  `Access-Control-Allow-Origin: *`, and are also remembered by the
  application, keyed by the full request URL.
- Under WSGI, a missing `base.gif` or a base image that cannot be processed
  gives `500` with the error message as the body.

## The caption

`add_text_to_gif` decodes the GIF, draws the caption centred horizontally
at 22 pixels from the top at size 25, with a 2-pixel black outline, and
writes a new GIF that loops forever. Frame delays, disposal, transparency
and palettes are kept. The caption is hidden for the first nine frames,
fades in with a shrinking blur up to frame 28, and is fully drawn from then
on (`fade_alpha` gives the opacity for a frame number). Colours are mapped
back onto each frame's own palette with `find_nearest_color`.

## Installation

```
pip install .
```

You need a `base.gif` to draw on. A TrueType font is optional; without one
Pillow's default font is used.

## Running the server

```
imagine --help
```

lists the options of the `imagine` command: `--bucket` (directory holding
`base.gif` and the generated GIFs, default `.`), `--font` (TrueType font for
captions), `--host` (default `127.0.0.1`) and `--port` (default `8787`). It
serves the application with the standard library's WSGI reference server
until interrupted.

## Using it from Python

Parse a path on its own:

```python
from imagine.parse_query import parse_gif_path

config = parse_gif_path("/hello world.gif")
config.file_name    # "hello_world"
config.text         # "HELLO WORLD"
config.bucket_path  # "generated/hello_world.gif"
```

Caption a GIF directly:

```python
from imagine.gif_text import add_text_to_gif

with open("base.gif", "rb") as f:
    captioned = add_text_to_gif(f.read(), "HELLO WORLD", "Roboto-Bold.ttf")
```

It raises `ValueError` for malformed GIF data, a frame without a palette or a
font that cannot be loaded.

Build the application around a storage bucket. `MemoryBucket` keeps objects
in a dictionary; `DirectoryBucket` keeps them as files under a directory and
refuses keys that would lead outside it. Both have `get`, `put` and `keys`.
`ImagineApp` is a WSGI application, and `handle` lets you call it without a
server; it returns a `Response` with `status`, `headers` and `body`:

```python
from imagine.app import DirectoryBucket, ImagineApp

app = ImagineApp(DirectoryBucket("storage"), "Roboto-Bold.ttf")
response = app.handle("GET", "http://localhost:8000/hello%20world.gif")
response.status                   # 200
response.headers["Content-Type"]  # "image/gif"
```

## What it does not do

Storage is either in memory or a local directory; there is no remote object
store. The response cache lives only in the running process and is never
expired or shared between processes.

## Running the tests

```
pip install ".[test]"
pytest
```