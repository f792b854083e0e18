"""Main module for GigaLaunch API.

The launcher is split between a pure core, which decides which libraries and which
arguments are part of the launch given a platform and a set of features (see the 
`rules`, `arguments` and `parameters` modules), and the installer that fetches the
version's metadata, downloads its resources and runs the game (see `standard`).
"""

LAUNCHER_NAME = "GigaLaunch"
LAUNCHER_VERSION = "0.69.0"
LAUNCHER_AUTHORS = ["GigaLaunch contributors"]
LAUNCHER_COPYRIGHT = "GigaLaunch  Copyright (C) 2024  GigaLaunch contributors"
