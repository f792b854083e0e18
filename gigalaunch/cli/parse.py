from argparse import ArgumentParser, HelpFormatter, ArgumentTypeError
from functools import partial
from pathlib import Path
import re

from ..standard import Context
from ..metadata import VersionManifest

from .output import Output
from .lang import get as _

from typing import Optional, Tuple, List


OUTPUT_KINDS = ("human-color", "human", "machine")

_resolution_re = re.compile(r"(\d+)x(\d+)")


# Typed namespaces, only used for type checking, the attributes are the destinations of
# the arguments registered below.

class RootNs:
    main_dir: Optional[Path]
    work_dir: Optional[Path]
    timeout: Optional[float]
    out_kind: str
    verbose: int
    # Set by the main function once arguments are parsed.
    out: Output
    context: Context
    version_manifest: VersionManifest

class SearchNs(RootNs):
    local: bool
    input: Optional[str]

class StartNs(RootNs):
    dry: bool
    demo: bool
    resolution: Optional[Tuple[int, int]]
    jvm: Optional[str]
    jvm_args: Optional[str]
    username: Optional[str]
    uuid: Optional[str]
    feature: Optional[List[str]]
    version: str

class ShowFeaturesNs(RootNs):
    version: str


def register_arguments() -> ArgumentParser:

    parser = ArgumentParser(allow_abbrev=False, prog="gigalaunch", description=_("args"))
    parser.add_argument("--main-dir", help=_("args.main_dir"), type=Path)
    parser.add_argument("--work-dir", help=_("args.work_dir"), type=Path)
    parser.add_argument("--timeout", help=_("args.timeout"), type=float)
    parser.add_argument("--output", help=_("args.output"), dest="out_kind", choices=OUTPUT_KINDS, default=OUTPUT_KINDS[0])
    parser.add_argument("-v", dest="verbose", help=_("args.verbose"), action="count", default=0)

    subparsers = parser.add_subparsers(title="subcommands", dest="subcommand")

    search = subparsers.add_parser("search", help=_("args.search"))
    search.add_argument("-l", "--local", help=_("args.search.local"), action="store_true")
    search.add_argument("input", nargs="?")

    start = subparsers.add_parser("start", help=_("args.start"), formatter_class=partial(HelpFormatter, max_help_position=40))
    register_start_arguments(start)

    show = subparsers.add_parser("show", help=_("args.show"))
    show_subparsers = show.add_subparsers(title="subcommands", dest="show_subcommand")
    show_subparsers.required = True
    show_subparsers.add_parser("about", help=_("args.show.about"))
    show_subparsers.add_parser("lang", help=_("args.show.lang"))
    show_features = show_subparsers.add_parser("features", help=_("args.show.features"))
    show_features.add_argument("version", nargs="?", default="release")

    return parser


def register_start_arguments(parser: ArgumentParser) -> None:
    parser.add_argument("--dry", help=_("args.start.dry"), action="store_true")
    parser.add_argument("--demo", help=_("args.start.demo"), action="store_true")
    parser.add_argument("--resolution", help=_("args.start.resolution"), type=resolution_from_str)
    parser.add_argument("--jvm", help=_("args.start.jvm"))
    parser.add_argument("--jvm-args", help=_("args.start.jvm_args"), metavar="ARGS")
    parser.add_argument("-u", "--username", help=_("args.start.username"), metavar="NAME")
    parser.add_argument("-i", "--uuid", help=_("args.start.uuid"))
    parser.add_argument("--feature", help=_("args.start.feature"), action="append", metavar="NAME")
    parser.add_argument("version", nargs="?", default="release", help=_("args.start.version"))


def resolution_from_str(s: str) -> Tuple[int, int]:
    """Parse a `<width>x<height>` resolution, both being strictly positive.
    """
    match = _resolution_re.fullmatch(s)
    if match is not None:
        width, height = int(match[1]), int(match[2])
        if width > 0 and height > 0:
            return width, height
    raise ArgumentTypeError(_("args.start.resolution.invalid", given=s))
