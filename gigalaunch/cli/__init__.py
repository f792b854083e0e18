"""Command line interface, the `gigalaunch` command.
"""

from contextlib import contextmanager
from subprocess import Popen
from pathlib import Path
import traceback
import socket
import time
import sys

from .parse import register_arguments, RootNs, SearchNs, StartNs, ShowFeaturesNs
from .util import format_locale_date, format_number, format_duration
from .output import Output, HumanOutput, MachineOutput, OutputTable
from .lang import get as _, lang

from ..http import HttpError
from ..metadata import VersionManifest
from ..standard import Context, Version, SimpleWatcher, StandardRunner, \
    DownloadError, DownloadStartEvent, DownloadProgressEvent, DownloadCompleteEvent, \
    VersionNotFoundError, TooMuchParentsError, FeaturesEvent, JarNotFoundError, \
    VersionLoadingEvent, VersionFetchingEvent, VersionLoadedEvent, JarFoundEvent, \
    AssetsResolveEvent, LibrariesResolvingEvent, LibrariesResolvedEvent, \
    LoggerFoundEvent

from typing import cast, Optional, List, Union, Dict, Callable, Iterator, Any


EXIT_OK = 0
EXIT_FAILURE = 1

CommandHandler = Callable[[Any], Any]
CommandTree = Dict[str, Union[CommandHandler, "CommandTree"]]


def main(args: Optional[List[str]] = None) -> None:
    """Parse the given arguments (or the process' ones) and run the selected command,
    this function always exits the process with the command's status.
    """

    parser = register_arguments()
    ns = cast(RootNs, parser.parse_args(sys.argv[1:] if args is None else args))

    ns.out = new_output(ns.out_kind)
    ns.context = Context(ns.main_dir, ns.work_dir)
    ns.version_manifest = VersionManifest(ns.context.manifest_cache_file())
    socket.setdefaulttimeout(ns.timeout)

    # Walk down the tree, each level of subcommands has its own namespace attribute:
    # subcommand, show_subcommand...
    node: Union[CommandHandler, CommandTree] = COMMANDS
    attr = "subcommand"
    while isinstance(node, dict):
        name = getattr(ns, attr, None)
        if name not in node:
            parser.print_help()
            sys.exit(EXIT_FAILURE)
        node = node[name]
        attr = f"{name}_{attr}"

    sys.exit(run_command(node, ns))


def new_output(kind: str) -> Output:
    if kind == "machine":
        return MachineOutput()
    elif kind in ("human", "human-color"):
        return HumanOutput(kind == "human-color")
    raise ValueError(f"unknown output kind: {kind}")


def run_command(handler: CommandHandler, ns: RootNs) -> int:
    """Run a command handler, errors that are not handled by the command itself are
    printed and give a failure status.
    """

    out = ns.out

    try:
        handler(ns)
        return EXIT_OK
    except KeyboardInterrupt:
        out.finish()
        _fail(out, "keyboard_interrupt", state="HALT")
    except ValueError as error:
        _fail(out)
        for arg in error.args:
            _fail(out, "echo", state=None, echo=arg)
    except HttpError as error:
        _fail(out)
        if error.res.status == 0:
            _fail(out, "error.socket", state=None)
            _fail(out, "echo", state=None, echo=str(error.reason))
        else:
            _fail(out, "error.http", state=None, method=error.method, url=error.url, status=error.res.status)
    except OSError as error:
        from ssl import SSLCertVerificationError
        if isinstance(error, SSLCertVerificationError):
            key = "error.cert"
        elif isinstance(error, (socket.gaierror, socket.timeout)):
            key = "error.socket"
        else:
            key = "error.os"
        _fail(out)
        _fail(out, key, state=None)
        traceback.print_exc()

    return EXIT_FAILURE


def _fail(out: Output, key: Optional[str] = None, *, state: Optional[str] = "FAILED", **kwargs) -> None:
    out.task(state, key, **kwargs)
    out.finish()


def cmd_search(ns: SearchNs) -> None:
    table = ns.out.table()
    if ns.local:
        search_local(ns, table)
    else:
        search_manifest(ns, table)
    table.print()


def search_manifest(ns: SearchNs, table: OutputTable) -> None:
    """Versions of the manifest containing the input, an alias only gives its version.
    """

    table.add(_("search.type"), _("search.name"), _("search.release_date"), _("search.flags"))
    table.separator()

    search, alias = (None, False) if ns.input is None else ns.version_manifest.filter_latest(ns.input)

    for manifest_version in ns.version_manifest.all_versions():

        if search is not None:
            if alias and manifest_version.id != search:
                continue
            if not alias and search not in manifest_version.id:
                continue

        installed = ns.context.get_version(manifest_version.id).metadata_exists()
        release_date = manifest_version.release_time
        table.add(
            manifest_version.type,
            manifest_version.id,
            "" if release_date is None else format_locale_date(release_date),
            _("search.flags.local") if installed else "")


def search_local(ns: SearchNs, table: OutputTable) -> None:

    table.add(_("search.name"), _("search.last_modified"))
    table.separator()

    for handle in ns.context.list_versions():
        if ns.input is None or ns.input in handle.id:
            mtime = handle.metadata_file().stat().st_mtime
            table.add(handle.id, format_locale_date(mtime))


def cmd_start(ns: StartNs) -> None:

    version = new_version(ns, ns.version)
    version.demo = ns.demo
    version.resolution = ns.resolution
    version.set_auth_offline(ns.username, ns.uuid)
    if ns.jvm is not None:
        version.jvm_path = Path(ns.jvm)
    if ns.feature is not None:
        version.features.update(ns.feature)

    with install_errors(ns):
        env = version.install(watcher=StartWatcher(ns))

    if ns.jvm_args:
        env.jvm_args.extend(ns.jvm_args.split())

    if ns.dry:
        ns.out.task("INFO", "start.dry")
        ns.out.finish()
        if ns.verbose >= 1:
            ns.out.task(None, "start.command", command=" ".join(env.args()))
            ns.out.finish()
    else:
        env.run(CliRunner(ns))


def new_version(ns: RootNs, version_id: str) -> Version:
    version = Version(version_id, context=ns.context)
    version.manifest = ns.version_manifest
    return version


@contextmanager
def install_errors(ns: RootNs) -> Iterator[None]:
    """Print the errors of a version's installation and exit with a failure status.
    """

    out = ns.out

    try:
        yield
    except VersionNotFoundError as error:
        _fail(out, "start.version.not_found", version=error.version)
    except TooMuchParentsError as error:
        _fail(out, "start.version.too_much_parents")
        _fail(out, "echo", state=None, echo=", ".join(error.versions))
    except JarNotFoundError:
        _fail(out, "start.jar.not_found")
    except DownloadError as error:
        _fail(out)
        for entry, code, _origin in error.errors:
            _fail(out, "download.error", state=None, name=entry.name, message=_(f"download.error.{code}"))
    else:
        return

    sys.exit(EXIT_FAILURE)


def cmd_show_about(ns: RootNs) -> None:

    from .. import LAUNCHER_VERSION, LAUNCHER_AUTHORS, LAUNCHER_COPYRIGHT

    print(f"Version: {LAUNCHER_VERSION}")
    print(f"Authors: {', '.join(LAUNCHER_AUTHORS)}")
    print(f"License: {LAUNCHER_COPYRIGHT}")
    print("         Free software released under the GNU GPL v3, without any warranty.")
    print("         See <https://www.gnu.org/licenses/gpl-3.0.html>.")


def cmd_show_lang(ns: RootNs) -> None:
    # Not translated, this is a debug command.
    table = ns.out.table()
    table.add("Key", "Message")
    table.separator()
    for key, msg in lang.items():
        table.add(key, msg)
    table.print()


def cmd_show_features(ns: ShowFeaturesNs) -> None:
    """Features referenced by the rules of a version's arguments, and the option
    enabling each of them.
    """

    version = new_version(ns, ns.version)
    with install_errors(ns):
        meta = version.load_metadata(watcher=StartWatcher(ns))

    table = ns.out.table()
    table.add(_("show.features.name"), _("show.features.enabled"))
    table.separator()

    for feature in sorted(meta.all_features()):
        if feature == "is_demo_user":
            table.add(feature, _("show.features.enabled.demo"))
        elif feature == "has_custom_resolution":
            table.add(feature, _("show.features.enabled.resolution"))
        else:
            table.add(feature, _("show.features.enabled.feature", name=feature))

    table.print()


COMMANDS: CommandTree = {
    "search": cmd_search,
    "start": cmd_start,
    "show": {
        "about": cmd_show_about,
        "lang": cmd_show_lang,
        "features": cmd_show_features,
    },
}


class StartWatcher(SimpleWatcher):
    """Print the progress of an installation.
    """

    def __init__(self, ns: RootNs) -> None:

        super().__init__({
            VersionLoadingEvent: lambda e: self.progress("start.version.loading", version=e.version),
            VersionFetchingEvent: lambda e: self.progress("start.version.fetching", version=e.version),
            VersionLoadedEvent: self.version_loaded,
            FeaturesEvent: self.features,
            JarFoundEvent: lambda e: self.done("start.jar.found"),
            AssetsResolveEvent: self.assets_resolve,
            LibrariesResolvingEvent: lambda e: self.progress("start.libraries.resolving"),
            LibrariesResolvedEvent: lambda e: self.done("start.libraries.resolved",
                class_libs_count=e.class_libs_count,
                excluded_libs_count=e.excluded_libs_count),
            LoggerFoundEvent: lambda e: self.done("start.logger.found", version=e.version),
            DownloadStartEvent: self.download_start,
            DownloadProgressEvent: self.download_progress,
            DownloadCompleteEvent: self.download_complete,
        })

        self.out = ns.out
        self.verbose = ns.verbose
        self.entries_count = 0
        self.speeds: List[float] = []
        self.size = 0
        self.start_time = 0.0

    def progress(self, key: str, **kwargs) -> None:
        self.out.task("..", key, **kwargs)

    def done(self, key: str, **kwargs) -> None:
        self.out.task("OK", key, **kwargs)
        self.out.finish()

    def version_loaded(self, e: VersionLoadedEvent) -> None:
        key = "start.version.loaded.fetched" if e.fetched else "start.version.loaded"
        self.done(key, version=e.version)

    def features(self, e: FeaturesEvent) -> None:
        if self.verbose >= 1 and len(e.features):
            self.out.task("INFO", "start.features", features=", ".join(e.features))
            self.out.finish()

    def assets_resolve(self, e: AssetsResolveEvent) -> None:
        if e.count is None:
            self.progress("start.assets.resolving", index_version=e.index_version)
        else:
            self.done("start.assets.resolved", index_version=e.index_version, count=e.count)

    def download_start(self, e: DownloadStartEvent) -> None:
        if self.verbose >= 1:
            self.out.task("INFO", "download.threads_count", count=e.threads_count)
            self.out.finish()
        self.entries_count = e.entries_count
        self.speeds = [0.0] * e.threads_count
        self.size = 0
        self.start_time = time.monotonic()
        self.progress("download.start")

    def download_progress(self, e: DownloadProgressEvent) -> None:
        self.speeds[e.thread_id] = e.speed
        self.size += e.size
        total = str(self.entries_count)
        self.progress("download.progress",
            count=str(e.count).rjust(len(total)),
            total_count=total,
            size=f"{format_number(self.size)}o",
            speed=f"{format_number(sum(self.speeds))}o/s")

    def download_complete(self, e: DownloadCompleteEvent) -> None:
        self.done("download.complete",
            count=self.entries_count,
            size=f"{format_number(self.size)}o",
            duration=format_duration(time.monotonic() - self.start_time))


class CliRunner(StandardRunner):
    """Runner separating the game's output from the installation output.
    """

    def __init__(self, ns: RootNs) -> None:
        self.out = ns.out
        self.verbose = ns.verbose

    def process_create(self, args: List[str], work_dir: Path) -> Popen:
        self.out.print("\n")
        if self.verbose >= 1:
            self.out.print(" ".join(args) + "\n")
        return super().process_create(args, work_dir)
