"""Records decoded from the JSON documents served by Mojang: the version manifest,
version's metadata and assets indexes. Decoding functions raise ValueError with the
JSON path of the faulty value when a document doesn't have the expected structure.
"""

from pathlib import Path
import json

from .arguments import ArgumentList
from .rules import Platform, RuleList
from .http import http_request, HttpError
from .util import sha1_prefix, is_sha1

from typing import Optional, Dict, List, AbstractSet, Set, Tuple, Any


VERSION_MANIFEST_URL = "https://piston-meta.mojang.com/mc/game/version_manifest_v2.json"
RESOURCES_URL = "https://resources.download.minecraft.net/"


def _get_str(obj: dict, key: str, path: str, *, optional: bool = False) -> Optional[str]:
    value = obj.get(key)
    if value is None and optional:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{path}/{key} must be a string")
    return value


def _get_int(obj: dict, key: str, path: str, *, optional: bool = False) -> Optional[int]:
    value = obj.get(key)
    if value is None and optional:
        return None
    # Note that bool is a subclass of int.
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{path}/{key} must be an integer")
    return value


def _get_dict(obj: dict, key: str, path: str, *, optional: bool = False) -> Optional[dict]:
    value = obj.get(key)
    if value is None and optional:
        return None
    if not isinstance(value, dict):
        raise ValueError(f"{path}/{key} must be an object")
    return value


class Download:
    """A downloadable file, its size and sha1 are optional.
    """

    __slots__ = "url", "sha1", "size"

    def __init__(self, url: str, sha1: Optional[str] = None, size: Optional[int] = None) -> None:
        self.url = url
        self.sha1 = sha1
        self.size = size

    @classmethod
    def from_json(cls, value: Any, path: str) -> "Download":
        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")
        return cls(
            _get_str(value, "url", path),
            _get_str(value, "sha1", path, optional=True),
            _get_int(value, "size", path, optional=True))

    def __repr__(self) -> str:
        return f"<Download {self.url}>"


class Artifact(Download):
    """A library's downloadable artifact, with its path relative to the libraries
    directory.
    """

    __slots__ = "path",

    def __init__(self, path: str, url: str, sha1: Optional[str] = None, size: Optional[int] = None) -> None:
        super().__init__(url, sha1, size)
        self.path = path

    @classmethod
    def from_json(cls, value: Any, path: str) -> "Artifact":
        dl = Download.from_json(value, path)
        return cls(_get_str(value, "path", path), dl.url, dl.sha1, dl.size)

    def __repr__(self) -> str:
        return f"<Artifact {self.path}>"


class Library:
    """A library dependency of the game. The artifact may be absent for libraries that
    are only distributed as natives classifiers by old versions, such libraries are
    ignored by the installer.
    """

    __slots__ = "name", "artifact", "rules"

    def __init__(self, name: str, artifact: Optional[Artifact], rules: Optional[RuleList] = None) -> None:
        self.name = name
        self.artifact = artifact
        self.rules = rules

    @classmethod
    def from_json(cls, value: Any, path: str) -> "Library":

        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")

        name = _get_str(value, "name", path)

        rules = value.get("rules")
        if rules is not None:
            rules = RuleList.from_json(rules, f"{path}/rules")

        artifact = None
        downloads = _get_dict(value, "downloads", path, optional=True)
        if downloads is not None:
            artifact_info = downloads.get("artifact")
            if artifact_info is not None:
                artifact = Artifact.from_json(artifact_info, f"{path}/downloads/artifact")

        return cls(name, artifact, rules)

    def is_allowed(self, features: AbstractSet[str], platform: Optional[Platform] = None) -> bool:
        """Return true if this library should be installed and added to the class path,
        this is the case if it has no rules or if its rules allow it.
        """
        return self.rules is None or self.rules.evaluate(features, platform)

    def __repr__(self) -> str:
        return f"<Library {self.name}>"


class AssetIndex(Download):
    """Reference to the assets index of a version.
    """

    __slots__ = "id", "total_size"

    def __init__(self, id: str, url: str, sha1: Optional[str] = None, size: Optional[int] = None,
        total_size: Optional[int] = None
    ) -> None:
        super().__init__(url, sha1, size)
        self.id = id
        self.total_size = total_size

    @classmethod
    def from_json(cls, value: Any, path: str) -> "AssetIndex":
        dl = Download.from_json(value, path)
        return cls(
            _get_str(value, "id", path),
            dl.url, dl.sha1, dl.size,
            _get_int(value, "totalSize", path, optional=True))

    def __repr__(self) -> str:
        return f"<AssetIndex {self.id}>"


class Asset:
    """An asset object, identified by the sha1 of its content.
    """

    __slots__ = "hash", "size"

    def __init__(self, hash: str, size: int) -> None:
        self.hash = hash
        self.size = size

    @property
    def prefix(self) -> str:
        return sha1_prefix(self.hash)

    def rel_path(self) -> str:
        """Path of the object relative to the objects directory, forward slash separated.
        """
        return f"{self.prefix}/{self.hash}"

    def url(self) -> str:
        return f"{RESOURCES_URL}{self.rel_path()}"

    def __repr__(self) -> str:
        return f"<Asset {self.hash}>"


class AssetList:
    """Content of an assets index, mapping logical names to asset objects.
    """

    __slots__ = "objects",

    def __init__(self, objects: Dict[str, Asset]) -> None:
        self.objects = objects

    @classmethod
    def from_json(cls, value: Any, path: str = "assets index:") -> "AssetList":

        if not isinstance(value, dict):
            raise ValueError(f"{path} / must be an object")

        objects = _get_dict(value, "objects", f"{path} ")
        assert objects is not None

        assets = {}
        for asset_id, asset_obj in objects.items():

            asset_path = f"{path} /objects/{asset_id}"
            if not isinstance(asset_obj, dict):
                raise ValueError(f"{asset_path} must be an object")

            asset_hash = _get_str(asset_obj, "hash", asset_path)
            assert asset_hash is not None
            if not is_sha1(asset_hash):
                raise ValueError(f"{asset_path}/hash must be a sha1 of 40 lowercase hexadecimal characters")

            asset_size = _get_int(asset_obj, "size", asset_path)
            assert asset_size is not None

            assets[asset_id] = Asset(asset_hash, asset_size)

        return cls(assets)

    def total_size(self) -> int:
        return sum(asset.size for asset in self.objects.values())

    def __len__(self) -> int:
        return len(self.objects)


class JavaVersion:

    __slots__ = "component", "major_version"

    def __init__(self, component: Optional[str], major_version: Optional[int]) -> None:
        self.component = component
        self.major_version = major_version


class LoggingConfig:
    """The client's logger configuration, the argument is a JVM argument containing a
    `${path}` placeholder to be replaced by the path of the configuration file.
    """

    __slots__ = "argument", "file_id", "file"

    def __init__(self, argument: str, file_id: str, file: Download) -> None:
        self.argument = argument
        self.file_id = file_id
        self.file = file


class VersionMeta:
    """Decoded metadata of a version, after its hierarchy has been merged.
    """

    __slots__ = "id", "type", "main_class", "jvm_args", "game_args", "asset_index", \
        "assets", "client", "libraries", "java_version", "logging", "release_time"

    def __init__(self, id: str, main_class: str) -> None:
        self.id = id
        self.type: Optional[str] = None
        self.main_class = main_class
        self.jvm_args = ArgumentList()
        self.game_args = ArgumentList()
        self.asset_index: Optional[AssetIndex] = None
        self.assets: Optional[str] = None
        self.client: Optional[Download] = None
        self.libraries: List[Library] = []
        self.java_version: Optional[JavaVersion] = None
        self.logging: Optional[LoggingConfig] = None
        self.release_time: Optional[str] = None

    @classmethod
    def from_json(cls, value: Any, path: str = "metadata:") -> "VersionMeta":

        if not isinstance(value, dict):
            raise ValueError(f"{path} / must be an object")

        root = f"{path} "

        version_id = _get_str(value, "id", root)
        main_class = _get_str(value, "mainClass", root)
        assert version_id is not None and main_class is not None

        meta = cls(version_id, main_class)
        meta.type = _get_str(value, "type", root, optional=True)
        meta.release_time = _get_str(value, "releaseTime", root, optional=True)
        meta.assets = _get_str(value, "assets", root, optional=True)

        arguments = _get_dict(value, "arguments", root)
        assert arguments is not None
        meta.jvm_args = ArgumentList.from_json(arguments.get("jvm", []), f"{root}/arguments/jvm")
        meta.game_args = ArgumentList.from_json(arguments.get("game", []), f"{root}/arguments/game")

        asset_index = value.get("assetIndex")
        if asset_index is not None:
            meta.asset_index = AssetIndex.from_json(asset_index, f"{root}/assetIndex")

        downloads = _get_dict(value, "downloads", root, optional=True)
        if downloads is not None:
            client = downloads.get("client")
            if client is not None:
                meta.client = Download.from_json(client, f"{root}/downloads/client")

        libraries = value.get("libraries", [])
        if not isinstance(libraries, list):
            raise ValueError(f"{root}/libraries must be a list")
        meta.libraries = [Library.from_json(lib, f"{root}/libraries/{i}") for i, lib in enumerate(libraries)]

        java_version = _get_dict(value, "javaVersion", root, optional=True)
        if java_version is not None:
            meta.java_version = JavaVersion(
                _get_str(java_version, "component", f"{root}/javaVersion", optional=True),
                _get_int(java_version, "majorVersion", f"{root}/javaVersion", optional=True))

        logging = _get_dict(value, "logging", root, optional=True)
        client_logging = None if logging is None else _get_dict(logging, "client", f"{root}/logging", optional=True)
        if client_logging is not None:
            logging_path = f"{root}/logging/client"
            file_info = _get_dict(client_logging, "file", logging_path)
            assert file_info is not None
            meta.logging = LoggingConfig(
                _get_str(client_logging, "argument", logging_path),
                _get_str(file_info, "id", f"{logging_path}/file"),
                Download.from_json(file_info, f"{logging_path}/file"))

        return meta

    def assets_index_version(self) -> Optional[str]:
        """Return the assets index version, none if this version has no assets.
        """
        if self.asset_index is None:
            return None
        return self.assets or self.asset_index.id

    def all_features(self) -> Set[str]:
        """Return all features referenced by the rules of this version's arguments.
        """
        return self.jvm_args.feature_set() | self.game_args.feature_set()

    def __repr__(self) -> str:
        return f"<VersionMeta {self.id}>"


class ManifestVersion:
    """A version entry in the version manifest.
    """

    __slots__ = "id", "type", "url", "sha1", "release_time"

    def __init__(self, id: str, type: str, url: str, sha1: Optional[str], release_time: Optional[str]) -> None:
        self.id = id
        self.type = type
        self.url = url
        self.sha1 = sha1
        self.release_time = release_time

    @classmethod
    def from_json(cls, value: Any, path: str) -> "ManifestVersion":
        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")
        return cls(
            _get_str(value, "id", path),
            _get_str(value, "type", path),
            _get_str(value, "url", path),
            _get_str(value, "sha1", path, optional=True),
            _get_str(value, "releaseTime", path, optional=True))

    def __repr__(self) -> str:
        return f"<ManifestVersion {self.id}>"


class VersionManifest:
    """The Mojang's official version manifest. Providing officially available versions
    with optional cache file.
    """

    def __init__(self, cache_file: Optional[Path] = None) -> None:
        self.data: Optional[dict] = None
        self.cache_file = cache_file
        self._versions: Optional[List[ManifestVersion]] = None

    def _ensure_data(self) -> dict:
        """Internal method that ensure that the manifest data is up-to-date.

        :return: The full data of the manifest.
        :raises HttpError: Underlying HTTP error if manifest could not be requested.
        """

        if self.data is None:

            headers = {}
            cache_data = None

            # If a cache file should be used, try opening it and read the last modified
            # time that will be used for requesting the manifest, only if needed.
            if self.cache_file is not None:
                try:
                    with self.cache_file.open("rt") as cache_fp:
                        cache_data = json.load(cache_fp)
                    if not isinstance(cache_data, dict):
                        cache_data = None
                    elif "last_modified" in cache_data:
                        headers["If-Modified-Since"] = cache_data["last_modified"]
                except (OSError, json.JSONDecodeError):
                    pass

            try:

                res = http_request("GET", VERSION_MANIFEST_URL,
                    headers=headers,
                    accept="application/json")

                data = res.json()
                if not isinstance(data, dict):
                    raise ValueError("manifest: / must be an object")

                if "Last-Modified" in res.headers:
                    data["last_modified"] = res.headers["Last-Modified"]

                if self.cache_file is not None:
                    self.cache_file.parent.mkdir(parents=True, exist_ok=True)
                    with self.cache_file.open("wt") as cache_fp:
                        json.dump(data, cache_fp)

                self.data = data

            except HttpError as error:
                # Status 304 means that the cache is up-to-date, 0 is a network error and
                # in such case the cache is used if present.
                if error.res.status in (0, 304) and cache_data is not None:
                    self.data = cache_data
                else:
                    raise

        return self.data

    def is_alias(self, version: str) -> bool:
        """Return true if the given version is a release or snapshot alias.
        """
        return version in ("release", "snapshot")

    def filter_latest(self, version: str) -> Tuple[str, bool]:
        """Filter a version identifier if 'release' or 'snapshot' alias is used, then it's
        replaced by the full version identifier, like `1.20.1`.

        :return: A tuple containing the full version id and a boolean indicating if the
        given version identifier is an alias.
        :raises HttpError: Underlying HTTP error if manifest could not be requested, only
        possible when the given version is a known alias.
        """

        if self.is_alias(version):
            latest = _get_dict(self._ensure_data(), "latest", "manifest:")
            assert latest is not None
            latest_version = latest.get(version)
            if isinstance(latest_version, str):
                return latest_version, True
        return version, False

    def all_versions(self) -> List[ManifestVersion]:
        if self._versions is None:
            versions = self._ensure_data().get("versions")
            if not isinstance(versions, list):
                raise ValueError("manifest: /versions must be a list")
            self._versions = [ManifestVersion.from_json(v, f"manifest: /versions/{i}") for i, v in enumerate(versions)]
        return self._versions

    def get_version(self, version: str) -> Optional[ManifestVersion]:
        """Get a manifest's version entry, containing the metadata's URL, its sha1 and
        its type.

        :raises HttpError: Underlying HTTP error if manifest could not be requested.
        """
        version, _alias = self.filter_latest(version)
        for manifest_version in self.all_versions():
            if manifest_version.id == version:
                return manifest_version
        return None
