"""CLI languages management.
"""

from ..download import DownloadResultError
from ..util import jvm_bin_filename

from typing import Optional


def get_raw(key: str, kwargs: Optional[dict]) -> str:
    """Get a message translated using the given keyword formatting arguments.

    :param key: The key of the message to translate.
    :param kwargs: The keyword formatting dictionary.
    :return: Translated message, or the key itself if not found.
    """
    try:
        return lang[key].format_map(kwargs or {})
    except KeyError:
        return key


def get(key: str, **kwargs) -> str:
    """Get a message translated using the given keyword formatting arguments.

    :param key: The key of the message to translate.
    :return: Translated message, or the key itself if not found.
    """
    return get_raw(key, kwargs)


lang = {
    # Args root
    "args": "GigaLaunch installs and starts the game from Mojang's official metadata, "
        "libraries and assets are verified and only downloaded when missing.",
    "args.main_dir": "Set the main directory where libraries, assets and versions are "
        "installed, defaults to 'game' in the current directory.",
    "args.work_dir": "Set the working directory where the game run and place for example "
        "saves, screenshots and options, defaults to the main directory.",
    "args.timeout": "Timeout in seconds of network operations.",
    "args.output": "Output format, human-color by default, machine for other programs.",
    "args.verbose": "Verbose output, -v prints the launch command and the enabled features.",
    # Args search
    "args.search": "Search for versions of the game.",
    "args.search.local": "Only search for installed versions.",
    # Args start
    "args.start": "Install and start a version of the game.",
    "args.start.version": "Version identifier (default to release): release|snapshot|<version>.",
    "args.start.dry": "Only install the version, without starting the game.",
    "args.start.demo": "Start game in demo mode.",
    "args.start.resolution": "Set a custom start resolution (<width>x<height>).",
    "args.start.resolution.invalid": "invalid format '{given}', expected <width>x<height>",
    "args.start.jvm": f"Set a custom JVM '{jvm_bin_filename}' executable path. If this argument "
        "is omitted, the JVM is searched in the PATH.",
    "args.start.jvm_args": "Additional JVM arguments, separated by spaces.",
    "args.start.username": "Set a custom user name to play.",
    "args.start.uuid": "Set a custom user UUID to play, derived from the username if not given.",
    "args.start.feature": "Enable a feature used by rules of libraries and arguments, "
        "this argument can be repeated (use 'show features' to list them).",
    # Args show
    "args.show": "Show information about the launcher or a version.",
    "args.show.about": "Display authors, version and license of GigaLaunch.",
    "args.show.lang": "List all messages of the launcher by key.",
    "args.show.features": "List the features referenced by the arguments of a version.",
    # Common
    "echo": "{echo}",
    "keyboard_interrupt": "Interrupted.",
    # Common errors
    "error.os": "System error:",
    "error.socket": "Network error, check your connection:",
    "error.cert": "Certificate verification failed, installing the 'certifi' package may help:",
    "error.http": "Request {method} {url} failed with status {status}",
    # Command search
    "search.type": "Type",
    "search.name": "Identifier",
    "search.release_date": "Release date",
    "search.last_modified": "Last modified",
    "search.flags": "Flags",
    "search.flags.local": "local",
    # Command start
    "start.version.loading": "Loading version {version}... ",
    "start.version.fetching": "Fetching version {version}... ",
    "start.version.loaded": "Loaded version {version}",
    "start.version.loaded.fetched": "Loaded version {version} (fetched)",
    "start.version.not_found": "Version {version} not found",
    "start.version.too_much_parents": "Too many parent versions, inheritance may be recursive.",
    "start.features": "Features: {features}",
    "start.jar.found": "Checked version jar",
    "start.jar.not_found": "Version jar not found",
    "start.assets.resolving": "Checking assets version {index_version}... ",
    "start.assets.resolved": "Checked {count} assets version {index_version}",
    "start.libraries.resolving": "Checking libraries...",
    "start.libraries.resolved": "Checked {class_libs_count} libraries ({excluded_libs_count} excluded)",
    "start.logger.found": "Using logger {version}",
    "start.dry": "Dry run, the game is not started.",
    "start.command": "Command: {command}",
    # Command show features
    "show.features.name": "Feature",
    "show.features.enabled": "Enabled by",
    "show.features.enabled.demo": "--demo",
    "show.features.enabled.resolution": "--resolution",
    "show.features.enabled.feature": "--feature {name}",
    # Pretty download
    "download.threads_count": "Downloading on {count} threads",
    "download.start": "Downloading...",
    "download.progress": "Download: {count}/{total_count} {size:>8} @ {speed}",
    "download.complete": "Downloaded {count} files, {size} in {duration}",
    "download.error": "{name}: {message}",
    f"download.error.{DownloadResultError.CONNECTION}": "Connection error",
    f"download.error.{DownloadResultError.NOT_FOUND}": "Not found",
    f"download.error.{DownloadResultError.INVALID_SIZE}": "Invalid size",
    f"download.error.{DownloadResultError.INVALID_SHA1}": "Invalid SHA1",
}
