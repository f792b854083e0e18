"""Functional tests of the game's installation, all resources are served by a local
HTTP server.
"""

from pathlib import Path
import hashlib
import json
import os
import pytest

from gigalaunch.standard import Context, Version, SimpleWatcher, Environment, \
    StandardRunner, VersionNotFoundError, TooMuchParentsError, JarNotFoundError, \
    DownloadError, VersionLoadedEvent, DownloadStartEvent, FeaturesEvent, \
    LibrariesResolvedEvent, AssetsResolveEvent, version_type
from gigalaunch.download import DownloadResultError
from gigalaunch.parameters import LaunchParameters
from gigalaunch.auth import offline_uuid
from gigalaunch.rules import Platform
from gigalaunch.util import jvm_bin_filename

from typing import Any, List


ASSET_DATA = b"hello world!"
ASSET_HASH = "430ce34d020724ed75a196dfc2ad67c77772d169"


def _sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


class GameServer:
    """Write resources in the root directory of the local server.
    """

    def __init__(self, root: Path, url: str) -> None:
        self.root = root
        self.url = url
        self.versions: List[dict] = []

    def put(self, name: str, data: bytes) -> dict:
        """Serve the given data and return its download object.
        """
        file = self.root / name
        file.parent.mkdir(parents=True, exist_ok=True)
        file.write_bytes(data)
        return {"url": f"{self.url}{name}", "sha1": _sha1(data), "size": len(data)}

    def put_version(self, metadata: dict, type: str = "release") -> None:
        version_id = metadata["id"]
        dl = self.put(f"{version_id}.json", json.dumps(metadata).encode())
        self.versions.append({"id": version_id, "type": type, "url": dl["url"], "sha1": dl["sha1"],
            "releaseTime": "2023-06-07T09:35:21+00:00"})

    def put_manifest(self) -> None:
        self.put("manifest.json", json.dumps({
            "latest": {"release": "1.20", "snapshot": "1.20"},
            "versions": self.versions,
        }).encode())


def _library(server: GameServer, name: str, path: str, rules: Any = None, served: bool = True) -> dict:
    data = f"library {name}".encode()
    if served:
        artifact = server.put(f"libraries/{path}", data)
    else:
        artifact = {"url": f"{server.url}libraries/{path}", "sha1": _sha1(data), "size": len(data)}
    artifact["path"] = path
    lib = {"name": name, "downloads": {"artifact": artifact}}
    if rules is not None:
        lib["rules"] = rules
    return lib


@pytest.fixture
def server(http_root, monkeypatch) -> GameServer:

    root, url = http_root
    server = GameServer(root, url)

    monkeypatch.setattr("gigalaunch.metadata.VERSION_MANIFEST_URL", f"{url}manifest.json")
    monkeypatch.setattr("gigalaunch.metadata.RESOURCES_URL", f"{url}objects/")

    server.put(f"objects/43/{ASSET_HASH}", ASSET_DATA)
    asset_index = server.put("indexes/8.json", json.dumps({"objects": {
        "minecraft/hello.txt": {"hash": ASSET_HASH, "size": len(ASSET_DATA)},
    }}).encode())
    asset_index.update(id="8", totalSize=len(ASSET_DATA))

    log_config = server.put("log_configs/client-1.12.xml", b"<Configuration/>")
    log_config["id"] = "client-1.12.xml"

    server.put_version({
        "id": "1.20",
        "type": "release",
        "mainClass": "net.minecraft.client.main.Main",
        "assetIndex": asset_index,
        "assets": "8",
        "downloads": {"client": server.put("client.jar", b"client jar")},
        "logging": {"client": {"argument": "-Dlog4j.configurationFile=${path}", "file": log_config, "type": "log4j2-xml"}},
        "libraries": [
            _library(server, "com.example:common:1.0", "com/example/common/1.0/common-1.0.jar"),
            _library(server, "com.example:linux:1.0", "com/example/linux/1.0/linux-1.0.jar",
                [{"action": "allow", "os": {"name": "linux"}}]),
            _library(server, "com.example:windows:1.0", "com/example/windows/1.0/windows-1.0.jar",
                [{"action": "allow", "os": {"name": "windows"}}], served=False),
            _library(server, "com.example:custom:1.0", "com/example/custom/1.0/custom-1.0.jar",
                [{"action": "allow", "features": {"custom_feature": True}}]),
            {"name": "com.example:natives-only:1.0", "natives": {"linux": "natives-linux"}},
        ],
        "arguments": {
            "jvm": [
                {"rules": [{"action": "allow", "os": {"name": "osx"}}], "value": ["-XstartOnFirstThread"]},
                "-Djava.library.path=${natives_directory}",
                "-cp",
                "${classpath}",
            ],
            "game": [
                "--username", "${auth_player_name}",
                "--version", "${version_name}",
                "--assetIndex", "${assets_index_name}",
                "--uuid", "${auth_uuid}",
                "--accessToken", "${auth_access_token}",
                "--versionType", "${version_type}",
                {"rules": [{"action": "allow", "features": {"is_demo_user": True}}], "value": "--demo"},
                {"rules": [{"action": "allow", "features": {"has_custom_resolution": True}}],
                 "value": ["--width", "${resolution_width}", "--height", "${resolution_height}"]},
                "--unknown", "${unknown_param}",
            ],
        },
    })

    server.put_version({
        "id": "broken",
        "type": "snapshot",
        "mainClass": "net.minecraft.client.main.Main",
        "arguments": {},
        "downloads": {"client": server.put("broken.jar", b"broken jar")},
        "libraries": [
            _library(server, "com.example:missing:1.0", "com/example/missing/1.0/missing-1.0.jar", served=False),
        ],
    }, "snapshot")

    server.put_manifest()
    return server


def _write_local_version(context: Context, metadata: dict) -> None:
    handle = context.get_version(metadata["id"])
    handle.dir.mkdir(parents=True, exist_ok=True)
    with handle.metadata_file().open("wt") as fp:
        json.dump(metadata, fp)


class EventsWatcher(SimpleWatcher):

    def __init__(self) -> None:
        self.events = []
        super().__init__({})

    def handle(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]


def test_install(tmp_path: Path, server: GameServer):

    context = Context(tmp_path / "game")
    linux = Platform("linux", "x86_64")

    version = Version("release", context=context, platform=linux)
    version.set_auth_offline("Steve", None)
    version.resolution = (800, 600)

    watcher = EventsWatcher()
    env = version.install(watcher=watcher)

    assert version.version == "1.20"

    version_dir = context.versions_dir / "1.20"
    lib_dir = context.libraries_dir / "com" / "example"

    assert (context.versions_dir / "versions.json").is_file()
    assert (version_dir / "1.20.json").is_file()
    assert (version_dir / "1.20.jar").read_bytes() == b"client jar"
    assert (lib_dir / "common" / "1.0" / "common-1.0.jar").is_file()
    assert (lib_dir / "linux" / "1.0" / "linux-1.0.jar").is_file()
    assert not (lib_dir / "windows").exists()
    assert not (lib_dir / "custom").exists()
    assert (context.assets_dir / "indexes" / "8.json").is_file()
    assert (context.assets_dir / "objects" / "43" / ASSET_HASH).read_bytes() == ASSET_DATA
    assert (context.assets_dir / "log_configs" / "client-1.12.xml").is_file()

    assert watcher.of_type(VersionLoadedEvent)[0].fetched
    assert watcher.of_type(FeaturesEvent)[0].features == ["has_custom_resolution"]
    assert watcher.of_type(LibrariesResolvedEvent)[0].class_libs_count == 2
    assert watcher.of_type(DownloadStartEvent)[0].entries_count == 5

    class_path = os.pathsep.join([
        str(lib_dir / "common" / "1.0" / "common-1.0.jar"),
        str(lib_dir / "linux" / "1.0" / "linux-1.0.jar"),
        str(version_dir / "1.20.jar"),
    ])

    assert env.args() == [
        jvm_bin_filename,
        f"-Djava.library.path={version_dir / 'natives'}",
        "-cp",
        class_path,
        f"-Dlog4j.configurationFile={context.assets_dir / 'log_configs' / 'client-1.12.xml'}",
        "net.minecraft.client.main.Main",
        "--username", "Steve",
        "--version", "1.20",
        "--assetIndex", "8",
        "--uuid", offline_uuid("Steve"),
        "--accessToken", "null",
        "--versionType", "release",
        "--width", "800",
        "--height", "600",
        "--unknown", "${unknown_param}",
    ]

    # Everything is installed, nothing is downloaded nor fetched again.
    watcher = EventsWatcher()
    version.install(watcher=watcher)
    assert not watcher.of_type(VersionLoadedEvent)[0].fetched
    assert watcher.of_type(DownloadStartEvent) == []


def test_install_features(tmp_path: Path, server: GameServer):

    context = Context(tmp_path / "game")

    version = Version("1.20", context=context, platform=Platform("windows", "x86"))
    version.features.add("custom_feature")
    version.demo = True
    version.jvm_path = Path("/opt/java/bin/java")

    # The windows library is not served.
    with pytest.raises(DownloadError) as error:
        version.install()

    assert [(entry.name, code) for entry, code, _origin in error.value.errors] == \
        [("com.example:windows:1.0", DownloadResultError.NOT_FOUND)]
    assert (context.libraries_dir / "com" / "example" / "custom" / "1.0" / "custom-1.0.jar").is_file()

    version = Version("1.20", context=context, platform=Platform("osx", "x86_64"))
    version.demo = True
    version.jvm_path = Path("/opt/java/bin/java")
    env = version.install()

    args = env.args()
    assert args[0] == str(Path("/opt/java/bin/java"))
    assert args[1] == "-XstartOnFirstThread"
    assert "--demo" in args
    assert "--width" not in args
    assert args[args.index("--username") + 1] == "EngusMaze"


def test_install_inherits(tmp_path: Path, server: GameServer):

    context = Context(tmp_path / "game")
    _write_local_version(context, {
        "id": "1.20-custom",
        "inheritsFrom": "1.20",
        "arguments": {"game": ["--custom"]},
    })

    version = Version("1.20-custom", context=context, platform=Platform("linux", "x86_64"))
    env = version.install()

    assert (context.versions_dir / "1.20-custom" / "1.20-custom.jar").is_file()
    assert env.main_class == "net.minecraft.client.main.Main"
    assert env.game_args[-1] == "--custom"
    assert env.params.version_name == "1.20-custom"
    assert env.params.launcher_name == "GigaLaunch"


def _assets_version(server: GameServer, asset_index: dict) -> dict:
    asset_index.update(id="9", totalSize=2 * len(ASSET_DATA))
    return {
        "id": "assets",
        "mainClass": "net.minecraft.client.main.Main",
        "arguments": {},
        "assetIndex": asset_index,
        "assets": "9",
        "downloads": {"client": server.put("assets.jar", b"assets jar")},
    }


def test_install_shared_assets(tmp_path: Path, server: GameServer):

    context = Context(tmp_path / "game")
    asset_index = server.put("indexes/9.json", json.dumps({"objects": {
        "a.txt": {"hash": ASSET_HASH, "size": len(ASSET_DATA)},
        "b.txt": {"hash": ASSET_HASH, "size": len(ASSET_DATA)},
    }}).encode())
    _write_local_version(context, _assets_version(server, asset_index))

    version = Version("assets", context=context, platform=Platform("linux", "x86_64"))
    watcher = EventsWatcher()
    version.install(watcher=watcher)

    # The jar and a single object shared by both names.
    assert watcher.of_type(DownloadStartEvent)[0].entries_count == 2
    assert watcher.of_type(AssetsResolveEvent)[-1].count == 2

    object_file = context.assets_dir / "objects" / "43" / ASSET_HASH
    assert object_file.read_bytes() == ASSET_DATA
    assert version._assets == {"a.txt": object_file, "b.txt": object_file}


def test_install_invalid_assets_index(tmp_path: Path, server: GameServer):

    context = Context(tmp_path / "game")
    asset_index = server.put("indexes/9.json", json.dumps({"objects": {}}).encode())
    asset_index["sha1"] = _sha1(b"another index")
    _write_local_version(context, _assets_version(server, asset_index))

    version = Version("assets", context=context, platform=Platform("linux", "x86_64"))
    with pytest.raises(ValueError, match="invalid sha1"):
        version.install()

    assert not (context.assets_dir / "indexes" / "9.json").exists()


def test_install_download_error(tmp_path: Path, server: GameServer):

    version = Version("broken", context=Context(tmp_path / "game"))

    with pytest.raises(DownloadError) as error:
        version.install()

    assert len(error.value.errors) == 1
    entry, code, _origin = error.value.errors[0]
    assert entry.name == "com.example:missing:1.0"
    assert code == DownloadResultError.NOT_FOUND


def test_install_errors(tmp_path: Path, server: GameServer):

    context = Context(tmp_path / "game")

    with pytest.raises(VersionNotFoundError):
        Version("unknown", context=context).install()

    _write_local_version(context, {"id": "recurse", "inheritsFrom": "recurse"})
    with pytest.raises(TooMuchParentsError):
        Version("recurse", context=context).install()

    _write_local_version(context, {"id": "nojar", "mainClass": "Main", "arguments": {}})
    with pytest.raises(JarNotFoundError):
        Version("nojar", context=context).install()

    _write_local_version(context, {"id": "invalid", "mainClass": "Main", "arguments": {}, "libraries": {}})
    with pytest.raises(ValueError, match="metadata: /libraries must be a list"):
        Version("invalid", context=context).install()


def test_load_metadata(tmp_path: Path, server: GameServer):

    version = Version("snapshot", context=Context(tmp_path / "game"))
    meta = version.load_metadata()
    assert meta.id == "1.20"
    assert meta.all_features() == {"is_demo_user", "has_custom_resolution"}


def test_list_versions(tmp_path: Path):

    context = Context(tmp_path)
    assert list(context.list_versions()) == []

    _write_local_version(context, {"id": "foo"})
    (context.versions_dir / "bar").mkdir()
    assert [v.id for v in context.list_versions()] == ["foo"]


def test_context_default():
    context = Context()
    assert context.versions_dir == Path("game", "versions")
    assert context.work_dir == Path("game")


def test_version_type():
    assert version_type("release") == "release"
    assert version_type("snapshot") == "snapshot"
    assert version_type("old_beta") == "beta"
    assert version_type("old_alpha") == "alpha"


def test_runner(tmp_path: Path):

    created = []

    class FakeProcess:
        def poll(self):
            return 0
        def wait(self):
            return 0

    class FakeRunner(StandardRunner):
        def process_create(self, args, work_dir):
            created.append((args, work_dir))
            return FakeProcess()

    context = Context(tmp_path / "game", tmp_path / "work")
    env = Environment(context, "java", "Main", LaunchParameters(version_name="1.20"), tmp_path / "natives")
    env.jvm_args.append("-Dversion=${version_name}")
    env.game_args.extend(["--version", "${version_name}"])
    env.run(FakeRunner())

    assert created == [(["java", "-Dversion=1.20", "Main", "--version", "1.20"], tmp_path / "work")]
    assert (tmp_path / "work").is_dir()
    assert (tmp_path / "natives").is_dir()


@pytest.mark.slow
@pytest.mark.parametrize("test_version", ["release", "1.16.5", "1.20.1"])
def test_install_official(tmp_context: Context, test_version: str):
    """Install real versions from the official manifest, without assets because they
    take really long to download.
    """

    from gigalaunch.download import DownloadList

    version = Version(test_version, context=tmp_context)

    resolve_assets = version._resolve_assets
    def resolve_assets_discarded(watcher) -> None:
        saved_dl = version._dl
        version._dl = DownloadList()
        resolve_assets(watcher)
        version._dl = saved_dl

    version._resolve_assets = resolve_assets_discarded
    env = version.install()

    assert env.main_class
    assert version._hierarchy[0].jar_file().is_file()
