[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imagine"
version = "0.1.0"
description = "Serve animated GIFs captioned with the text taken from the request path"
requires-python = ">=3.10"
keywords = ["gif", "caption", "meme", "image", "wsgi", "text overlay"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Multimedia :: Graphics",
]
dependencies = [
    "pillow>=10.1",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pillow>=10.1",
]

[project.scripts]
imagine = "imagine.app:main"

[tool.hatch.build.targets.wheel]
packages = ["imagine"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
