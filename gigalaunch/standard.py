"""Installation and launch of standard versions, as described by the metadata format
used by Mojang and provided by their version manifest.
"""

from subprocess import Popen
from json import JSONDecodeError
from pathlib import Path
import hashlib
import json
import time
import os

from .download import DownloadList, DownloadEntry, DownloadResultProgress, DownloadResultError
from .metadata import VersionManifest, VersionMeta, AssetList
from .parameters import LaunchParameters
from .arguments import construct_arguments
from .auth import AuthSession, OfflineAuthSession
from .rules import Platform, current_platform
from .util import jvm_bin_filename, merge_dict, calc_file_sha1
from .http import http_request, HttpError
from . import LAUNCHER_NAME, LAUNCHER_VERSION

from typing import Optional, Iterator, Dict, List, Set, Tuple, Any, Callable


# Maximum number of versions in a hierarchy, following "inheritsFrom".
MAX_HIERARCHY_DEPTH = 10


class Context:
    """Directories of an installation: versions, assets and libraries are stored under
    the main directory, the game itself runs from the working directory.
    """

    def __init__(self,
        main_dir: Optional[Path] = None,
        work_dir: Optional[Path] = None
    ) -> None:
        """Relative paths are kept as is, they are only made absolute when given to
        the game.

        :param main_dir: Defaults to a `game` directory.
        :param work_dir: Where the game stores its saves and options, defaults to
        `main_dir`.
        """

        main_dir = Path("game") if main_dir is None else main_dir
        self.main_dir = main_dir
        self.work_dir = main_dir if work_dir is None else work_dir
        self.versions_dir = main_dir / "versions"
        self.assets_dir = main_dir / "assets"
        self.libraries_dir = main_dir / "libraries"

    def get_version(self, version: str) -> "VersionHandle":
        """Get a version's handle.
        """
        return VersionHandle(version, self.versions_dir / version)

    def list_versions(self) -> "Iterator[VersionHandle]":
        """Handles of the versions having a metadata file.
        """
        if self.versions_dir.is_dir():
            for version_dir in self.versions_dir.iterdir():
                if version_dir.is_dir():
                    version = VersionHandle(version_dir.name, version_dir)
                    if version.metadata_exists():
                        yield version

    def manifest_cache_file(self) -> Path:
        return self.versions_dir / "versions.json"


class Watcher:
    """Receives the events of an installation.
    """

    def handle(self, event: Any) -> None:
        """Handle an event, ignored by default.
        """


class SimpleWatcher(Watcher):
    """A watcher dispatching each event to the handler registered for its exact type.
    """

    def __init__(self, handlers: Dict[type, Callable[[Any], None]]) -> None:
        self.handlers = handlers

    def handle(self, event: Any) -> None:
        handler = self.handlers.get(type(event))
        if handler is not None:
            handler(event)


class VersionHandle:
    """A version's directory and raw metadata, linked to the handle of the version it
    inherits from, if any.
    """

    __slots__ = "id", "dir", "metadata", "parent"

    def __init__(self, id: str, dir: Path) -> None:
        self.id = id
        self.dir = dir
        self.metadata: dict = {}
        self.parent: Optional[VersionHandle] = None

    def metadata_exists(self) -> bool:
        return self.metadata_file().is_file()

    def metadata_file(self) -> Path:
        return self.dir / f"{self.id}.json"

    def jar_file(self) -> Path:
        return self.dir / f"{self.id}.jar"

    def natives_dir(self) -> Path:
        return self.dir / "natives"

    def read_metadata_file(self) -> bool:
        """Read the metadata file, false is returned if it can't be read or isn't an
        object, the current metadata is then unchanged.
        """
        try:
            with self.metadata_file().open("rt") as fp:
                metadata = json.load(fp)
        except (OSError, JSONDecodeError):
            return False
        if not isinstance(metadata, dict):
            return False
        self.metadata = metadata
        return True

    def write_metadata_file(self, data: bytes) -> None:
        """Write the raw metadata file, the data should be the one from which the
        internal metadata has been decoded.
        """
        self.dir.mkdir(parents=True, exist_ok=True)
        with self.metadata_file().open("wb") as fp:
            fp.write(data)

    def recurse(self) -> "Iterator[VersionHandle]":
        """Walk through every version in the hierarchy of the current one, starting with
        this version.
        """
        version: Optional[VersionHandle] = self
        while version is not None:
            yield version
            version = version.parent

    def merge(self) -> dict:
        """Merge this version metadata and all of its parents into a single metadata.
        """
        result: dict = {}
        for version in self.recurse():
            merge_dict(result, version.metadata)
        return result

    def __str__(self) -> str:
        return self.id

    def __repr__(self) -> str:
        return f"<VersionHandle {self.id}>"


class Environment:
    """The resolved command of an installed version. The arguments are kept with
    their placeholders, these are only substituted when computing the final command,
    so the arguments lists can still be extended.
    """

    def __init__(self,
        context: Context,
        jvm_path: str,
        main_class: str,
        params: LaunchParameters,
        natives_dir: Path
    ) -> None:
        self.context = context
        self.jvm_path = jvm_path
        self.jvm_args: List[str] = []
        self.main_class = main_class
        self.game_args: List[str] = []
        self.params = params
        self.natives_dir = natives_dir

    def args(self) -> List[str]:
        """Compute the full command line to launch the game: the JVM, its arguments, the
        main class and the game arguments, with all placeholders substituted.
        """
        return [
            self.jvm_path,
            *self.params.replace_list(self.jvm_args),
            self.main_class,
            *self.params.replace_list(self.game_args),
        ]

    def run(self, runner: "Optional[Runner]" = None) -> None:
        """Run the game, with the standard runner by default.
        """
        (runner or StandardRunner()).run(self)


class Runner:
    """Base class handling game running.
    """

    def run(self, env: Environment) -> None:
        raise NotImplementedError


class StandardRunner(Runner):
    """Default runner, it creates the process in the working directory, its output is
    the output of the current process, and then waits for its termination. This runner
    supports KeyboardInterrupt handling.
    """

    def run(self, env: Environment) -> None:
        env.natives_dir.mkdir(parents=True, exist_ok=True)
        env.context.work_dir.mkdir(parents=True, exist_ok=True)
        process = self.process_create(env.args(), env.context.work_dir)
        self.process_wait(process)

    def process_create(self, args: List[str], work_dir: Path) -> Popen:
        """Start the game's process.
        """
        return Popen(args, cwd=work_dir)

    def process_wait(self, process: Popen) -> None:
        """Wait for the process to exit, it is killed on keyboard interrupt.
        """
        try:
            while process.poll() is None:
                time.sleep(1)
        except KeyboardInterrupt:
            process.kill()
            raise
        finally:
            process.wait()


class Version:
    """Installer of a standard version. It handles metadata loading, resources
    resolution and download, then the computation of the environment to run.
    """

    def __init__(self, version: str = "release", *,
        context: Optional[Context] = None,
        platform: Optional[Platform] = None
    ) -> None:
        """Construct a standard version installer.

        :param version: The root version to resolve at first, can be a `release` or
        `snapshot` alias. All of its parents will be loaded and then all the metadata
        will be merged together.
        :param context: The installation context of the game, the default one is
        constructed if not given (see `Context`).
        :param platform: The platform for which rules are evaluated, defaults to the
        current one.
        """

        self.version = version
        self.context = context or Context()
        self.platform = platform or current_platform
        self.manifest = VersionManifest(self.context.manifest_cache_file())

        # General options
        self.features: Set[str] = set()
        self.demo: bool = False
        self.resolution: Optional[Tuple[int, int]] = None
        self.auth_session: Optional[AuthSession] = None
        self.jvm_path: Optional[Path] = None

        # Root version and its hierarchy, with decoded merged metadata
        self._hierarchy: List[VersionHandle] = []
        self._meta: Optional[VersionMeta] = None

        # Enabled features used for rules evaluation across the metadata
        self._features: Set[str] = set()

        self._jar_path: Optional[Path] = None
        self._assets_index_version: Optional[str] = None
        self._assets: Dict[str, Path] = {}
        self._class_libs: List[Path] = []

        self._logger_path: Optional[Path] = None
        self._logger_arg: Optional[str] = None

        self._dl = DownloadList()

    def set_auth_offline(self, username: Optional[str], uuid: Optional[str]) -> None:
        """Use an offline session, see `OfflineAuthSession`.
        """
        self.auth_session = OfflineAuthSession(username, uuid)

    def install(self, *, watcher: Optional[Watcher] = None) -> Environment:
        """Install the version and everything it needs, then return its environment.
        Files already installed are kept, so this can be called again.

        :raises VersionNotFoundError: The version (or one of its parents) is unknown.
        :raises TooMuchParentsError: The version's hierarchy is too deep.
        :raises JarNotFoundError: No client JAR can be found for the version.
        :raises DownloadError: Some files failed to download.
        :raises HttpError: A metadata document could not be requested.
        :raises ValueError: A metadata document is malformed.
        """

        watcher = watcher or Watcher()

        self._dl.clear()
        self._assets.clear()
        self._class_libs.clear()

        self._resolve_version(watcher)
        self._resolve_metadata(watcher)
        self._resolve_features(watcher)
        self._resolve_jar(watcher)
        self._resolve_assets(watcher)
        self._resolve_libraries(watcher)
        self._resolve_logger(watcher)
        self._download(watcher)

        return self._resolve_env(watcher)

    def load_metadata(self, *, watcher: Optional[Watcher] = None) -> VersionMeta:
        """Only resolve the version and its metadata, fetching it if needed, without
        installing anything else.
        """
        watcher = watcher or Watcher()
        self._resolve_version(watcher)
        self._resolve_metadata(watcher)
        assert self._meta is not None
        return self._meta

    def _resolve_version(self, watcher: Watcher) -> None:
        """Resolve the version alias (release, snapshot) if needed.
        """
        self.version = self.manifest.filter_latest(self.version)[0]

    def _resolve_metadata(self, watcher: Watcher) -> None:
        """This step resolves metadata of the root version and all of its parents, and
        decode the merged metadata.
        """

        hierarchy = self._hierarchy
        version: Optional[str] = self.version
        hierarchy.clear()

        while version is not None:

            if len(hierarchy) >= MAX_HIERARCHY_DEPTH:
                raise TooMuchParentsError([v.id for v in hierarchy])

            watcher.handle(VersionLoadingEvent(version))

            handle = self.context.get_version(version)
            fetched = False
            if not self._load_version(handle, watcher):
                watcher.handle(VersionFetchingEvent(version))
                self._fetch_version(handle, watcher)
                fetched = True

            watcher.handle(VersionLoadedEvent(version, fetched))

            if len(hierarchy):
                hierarchy[-1].parent = handle

            hierarchy.append(handle)
            version = handle.metadata.pop("inheritsFrom", None)

            if version is not None and not isinstance(version, str):
                raise ValueError("metadata: /inheritsFrom must be a string")

        self._meta = VersionMeta.from_json(hierarchy[0].merge())

    def _load_version(self, version: VersionHandle, watcher: Watcher) -> bool:
        """Load a version's metadata from its file, this returns false if the file can't
        be read, or if the version is known by the manifest and the file's sha1 doesn't
        match the expected one.
        """

        if not version.read_metadata_file():
            return False

        try:
            manifest_version = self.manifest.get_version(version.id)
        except HttpError:
            # Installed versions can still be launched offline.
            return True

        if manifest_version is None or manifest_version.sha1 is None:
            return True

        return calc_file_sha1(version.metadata_file()) == manifest_version.sha1

    def _fetch_version(self, version: VersionHandle, watcher: Watcher) -> None:
        """Fetch the metadata of the given version from the manifest and write it.

        :raises VersionNotFoundError: The version is not in the manifest.
        """

        manifest_version = self.manifest.get_version(version.id)
        if manifest_version is None:
            raise VersionNotFoundError(version.id)

        res = http_request("GET", manifest_version.url, accept="application/json")

        metadata = res.json()
        if not isinstance(metadata, dict):
            raise ValueError("metadata: / must be an object")

        version.metadata = metadata
        version.write_metadata_file(res.data)

    def _resolve_features(self, watcher: Watcher) -> None:
        """Compute the set of enabled features, used to evaluate rules of libraries and
        arguments.
        """

        features = set(self.features)
        if self.demo:
            features.add("is_demo_user")
        if self.resolution is not None:
            features.add("has_custom_resolution")

        self._features = features
        watcher.handle(FeaturesEvent(sorted(features)))

    def _resolve_jar(self, watcher: Watcher) -> None:
        """This step resolves the JAR file to use for launching the game.
        """

        assert self._meta is not None, "_resolve_metadata() missing"

        jar_path = self._hierarchy[0].jar_file()
        client = self._meta.client

        if client is not None:
            self._dl.add(DownloadEntry(client.url, jar_path,
                size=client.size,
                sha1=client.sha1,
                name=jar_path.name), verify=True)
        elif not jar_path.is_file():
            raise JarNotFoundError()

        self._jar_path = jar_path
        watcher.handle(JarFoundEvent())

    def _resolve_assets(self, watcher: Watcher) -> None:
        """This step resolves the assets index and add missing objects to the download
        list.
        """

        assert self._meta is not None, "_resolve_metadata() missing"

        asset_index = self._meta.asset_index
        index_version = self._meta.assets_index_version()
        if asset_index is None or index_version is None:
            # Some custom versions may use their own internal assets.
            return

        watcher.handle(AssetsResolveEvent(index_version, None))

        index_file = self.context.assets_dir / "indexes" / f"{index_version}.json"

        index_data = None
        if asset_index.sha1 is None or calc_file_sha1(index_file) == asset_index.sha1:
            try:
                with index_file.open("rt") as index_fp:
                    index_data = json.load(index_fp)
            except (OSError, JSONDecodeError):
                pass

        if index_data is None:
            res = http_request("GET", asset_index.url, accept="application/json")
            if asset_index.sha1 is not None and hashlib.sha1(res.data).hexdigest() != asset_index.sha1:
                raise ValueError(f"assets index {index_version}: invalid sha1 from {asset_index.url}")
            index_data = res.json()
            index_file.parent.mkdir(parents=True, exist_ok=True)
            with index_file.open("wb") as index_fp:
                index_fp.write(res.data)

        assets = AssetList.from_json(index_data)
        objects_dir = self.context.assets_dir / "objects"
        queued: Set[Path] = set()

        for asset_id, asset in assets.objects.items():
            asset_file = objects_dir / asset.prefix / asset.hash
            self._assets[asset_id] = asset_file
            # Many names share the same object.
            if asset_file in queued:
                continue
            queued.add(asset_file)
            self._dl.add(DownloadEntry(asset.url(), asset_file,
                size=asset.size,
                sha1=asset.hash,
                name=asset_id), verify=True)

        self._assets_index_version = index_version
        watcher.handle(AssetsResolveEvent(index_version, len(assets)))

    def _resolve_libraries(self, watcher: Watcher) -> None:
        """Step resolving libraries allowed by their rules, these are added to the class
        path in their declaration order. Libraries without artifact are skipped.
        """

        assert self._meta is not None, "_resolve_metadata() missing"

        watcher.handle(LibrariesResolvingEvent())

        excluded_count = 0
        for library in self._meta.libraries:

            if not library.is_allowed(self._features, self.platform):
                excluded_count += 1
                continue

            artifact = library.artifact
            if artifact is None:
                excluded_count += 1
                continue

            lib_path = self.context.libraries_dir / artifact.path
            self._dl.add(DownloadEntry(artifact.url, lib_path,
                size=artifact.size,
                sha1=artifact.sha1,
                name=library.name), verify=True)
            self._class_libs.append(lib_path)

        watcher.handle(LibrariesResolvedEvent(len(self._class_libs), excluded_count))

    def _resolve_logger(self, watcher: Watcher) -> None:
        """This step resolves the logger configuration file of the client, if any.
        """

        assert self._meta is not None, "_resolve_metadata() missing"

        logging = self._meta.logging
        if logging is None:
            return

        self._logger_arg = logging.argument
        self._logger_path = self.context.assets_dir / "log_configs" / logging.file_id
        self._dl.add(DownloadEntry(logging.file.url, self._logger_path,
            size=logging.file.size,
            sha1=logging.file.sha1,
            name=logging.file_id), verify=True)

        watcher.handle(LoggerFoundEvent(logging.file_id.replace(".xml", "")))

    def _download(self, watcher: Watcher) -> None:

        entries_count = len(self._dl.entries)
        if not entries_count:
            return

        # No more threads than entries.
        threads_count = min(entries_count, (os.cpu_count() or 1) * 4)
        errors = []

        watcher.handle(DownloadStartEvent(threads_count, entries_count, self._dl.size))

        for result_count, result in self._dl.download(threads_count):
            if isinstance(result, DownloadResultProgress):
                watcher.handle(DownloadProgressEvent(
                    result.thread_id,
                    result_count,
                    result.entry,
                    result.size,
                    result.speed))
            elif isinstance(result, DownloadResultError):
                errors.append((result.entry, result.code, result.origin))

        if len(errors):
            raise DownloadError(errors)

        self._dl.clear()

        watcher.handle(DownloadCompleteEvent())

    def _resolve_env(self, watcher: Watcher) -> Environment:
        """Step for computing the environment to run the game as configured in this
        version's instance.
        """

        meta = self._meta
        assert meta is not None, "_resolve_metadata() missing"
        assert self._jar_path is not None, "_resolve_jar() missing"

        auth_session = self.auth_session or OfflineAuthSession()
        context = self.context
        natives_dir = self._hierarchy[0].natives_dir()

        # Libraries first, then the client JAR.
        class_path = [str(path.absolute()) for path in self._class_libs]
        class_path.append(str(self._jar_path.absolute()))

        params = LaunchParameters(
            auth_player_name=auth_session.username,
            version_name=self._hierarchy[0].id,
            game_directory=str(context.work_dir.absolute()),
            assets_root=str(context.assets_dir.absolute()),
            auth_uuid=auth_session.uuid,
            user_type=auth_session.user_type,
            classpath=os.pathsep.join(class_path),
            classpath_separator=os.pathsep,
            library_directory=str(context.libraries_dir.absolute()),
            natives_directory=str(natives_dir.absolute()),
            launcher_name=LAUNCHER_NAME,
            launcher_version=LAUNCHER_VERSION)

        # Values left empty by the session keep the default value.
        if auth_session.access_token:
            params.auth_access_token = auth_session.access_token
        if auth_session.client_id:
            params.clientid = auth_session.client_id
        if auth_session.get_xuid():
            params.auth_xuid = auth_session.get_xuid()

        if self._assets_index_version is not None:
            params.assets_index_name = self._assets_index_version
        if meta.type is not None:
            params.version_type = version_type(meta.type)
        if self.resolution is not None:
            params.resolution_width = str(self.resolution[0])
            params.resolution_height = str(self.resolution[1])

        jvm_path = jvm_bin_filename if self.jvm_path is None else str(self.jvm_path)
        env = Environment(context, jvm_path, meta.main_class, params, natives_dir)

        env.jvm_args.extend(construct_arguments(meta.jvm_args, self._features, self.platform))
        if self._logger_path is not None and self._logger_arg is not None:
            env.jvm_args.append(self._logger_arg.replace("${path}", str(self._logger_path.absolute())))

        env.game_args.extend(construct_arguments(meta.game_args, self._features, self.platform))

        return env


def version_type(type: str) -> str:
    """Return the version type given to the game, from the type of the metadata.
    """
    return {"old_beta": "beta", "old_alpha": "alpha"}.get(type, type)


class VersionNotFoundError(Exception):
    """The version is neither installed nor in the manifest.
    """
    def __init__(self, version: str) -> None:
        self.version = version

    def __str__(self) -> str:
        return repr(self.version)

class TooMuchParentsError(Exception):
    """The `inheritsFrom` chain is too long, `versions` are the ones loaded so far.
    """
    def __init__(self, versions: List[str]) -> None:
        self.versions = versions

    def __str__(self) -> str:
        return repr(self.versions)

class JarNotFoundError(Exception):
    """The metadata has no client download and the JAR file isn't installed.
    """

class DownloadError(Exception):
    """Some entries failed to download, `errors` holds the entry, the error code (see
    `DownloadResultError`) and the exception that caused it, if any.
    """
    def __init__(self, errors: List[Tuple[DownloadEntry, str, Optional[Exception]]]) -> None:
        self.errors = errors

    def __str__(self) -> str:
        return repr(self.errors)


class VersionEvent:
    __slots__ = "version",
    def __init__(self, version: str) -> None:
        self.version = version

class VersionLoadingEvent(VersionEvent):
    __slots__ = tuple()

class VersionFetchingEvent(VersionEvent):
    """The version's metadata is missing or outdated and is being fetched.
    """
    __slots__ = tuple()

class VersionLoadedEvent(VersionEvent):
    __slots__ = "fetched",
    def __init__(self, version: str, fetched: bool) -> None:
        super().__init__(version)
        self.fetched = fetched

class FeaturesEvent:
    """Enabled features, sorted.
    """
    __slots__ = "features",
    def __init__(self, features: List[str]) -> None:
        self.features = features

class JarFoundEvent:
    __slots__ = tuple()

class AssetsResolveEvent:
    """Sent before resolving the assets with a count of none, then after with the count
    of assets in the index.
    """
    __slots__ = "index_version", "count"
    def __init__(self, index_version: str, count: Optional[int]) -> None:
        self.index_version = index_version
        self.count = count

class LibrariesResolvingEvent:
    __slots__ = tuple()

class LibrariesResolvedEvent:
    """Count of libraries added to the class path and of libraries excluded by their
    rules or without artifact.
    """
    __slots__ = "class_libs_count", "excluded_libs_count"
    def __init__(self, class_libs_count: int, excluded_libs_count: int) -> None:
        self.class_libs_count = class_libs_count
        self.excluded_libs_count = excluded_libs_count

class LoggerFoundEvent:
    __slots__ = "version",
    def __init__(self, version: str) -> None:
        self.version = version

class DownloadStartEvent:
    __slots__ = "threads_count", "entries_count", "size"
    def __init__(self, threads_count: int, entries_count: int, size: int) -> None:
        self.threads_count = threads_count
        self.entries_count = entries_count
        self.size = size

class DownloadProgressEvent:
    __slots__ = "thread_id", "count", "entry", "size", "speed"
    def __init__(self, thread_id: int, count: int, entry: DownloadEntry, size: int, speed: float) -> None:
        self.thread_id = thread_id
        self.count = count
        self.entry = entry
        self.size = size
        self.speed = speed

class DownloadCompleteEvent:
    __slots__ = tuple()
